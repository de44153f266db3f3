"""
Lexical analyzer for the Perilla language.

This module provides the components that turn raw source text into tokens:

Classes:
    CharacterStream: Lazy character source with line/column tracking.
    Token: Immutable value for a single lexical unit.
    NumberRecognizer: Finite-state machine that recognises numeric literals.
    Lexer: Pulls characters from a CharacterStream and hands out Tokens.

Features:
    - Skips whitespace and single-line comments (`#` to end of line)
    - Recognizes:
        * Identifiers, with `def` and `extern` promoted to keywords
        * Numbers such as `42`, `-1.5`, `0.25`, `6.02e23`
        * Any other character as a one-character symbol
    - End of input is a terminal EOF token, returned again on every later call

Nothing here raises on bad input. A numeric literal that stops in the middle
(`1e`, `2.`) is cut back to its longest valid prefix and reported through
`Lexer.diagnostics`.

Example:
    >>> lexer = Lexer(CharacterStream("x + 1"))
    >>> lexer.next_token()
    Token(IDENT, x)

Exports:
    - CharacterStream
    - Token
    - NumberRecognizer
    - Lexer
    - tokenize
"""

import logging
from collections import deque
from collections.abc import Iterable, Iterator
from typing import Any

from perilla.perilla_constants import (
    COMMENT_CHAR,
    DEF,
    EOF,
    EXTERN,
    IDENT,
    NUMBER,
    SYMBOL,
    TOKEN_KINDS,
    VALUELESS_KINDS,
    keyword_hashmap,
)
from perilla.perilla_errors import WARNING, Diagnostic

logger = logging.getLogger(__name__)


class CharacterStream:
    """
    A lazy character reader with line and column tracking.

    The source may be a whole string or any iterable of string chunks (an open
    text file yields its lines, for example). Chunks are pulled only when the
    lookahead needs them.

    Attributes:
        position (int): Number of characters consumed so far.
        line (int): Current line number (1-indexed).
        column (int): Current column number (1-indexed).
    """

    def __init__(self, source: str | Iterable[str], line: int = 1, column: int = 1):
        """
        Initializes the character stream.

        Args:
            source (str | Iterable[str]): The input text, or an iterable of text chunks.
            line (int, optional): Starting line number. Defaults to 1.
            column (int, optional): Starting column number. Defaults to 1.
        """
        self._chunks: Iterator[str] = iter((source,)) if isinstance(source, str) else iter(source)
        self._lookahead: deque[str] = deque()
        self.position = 0
        self.line = line
        self.column = column

    def _fill(self, count: int) -> bool:
        """Pulls chunks until at least `count` characters are buffered."""
        while len(self._lookahead) < count:
            chunk = next(self._chunks, None)
            if chunk is None:
                return False
            self._lookahead.extend(chunk)
        return True

    def next(self) -> str:
        """
        Consumes and returns the next character in the stream.

        Returns:
            str: The next character.

        Raises:
            EOFError: If reading past the end of the source.
        """
        if not self._fill(1):
            raise EOFError(
                f"Attempted to read past end of source at position=<{self.position}>, line=<{self.line}>"
            )
        char = self._lookahead.popleft()
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.position += 1
        return char

    def peek(self, offset: int = 0) -> str:
        """
        Returns the character `offset` places ahead without advancing.

        Returns:
            str: The character at the offset, or an empty string if out of bounds.
        """
        if offset < 0 or not self._fill(offset + 1):
            return ""
        return self._lookahead[offset]

    def current(self) -> str | None:
        """Returns the next unconsumed character, or None at end of input."""
        return self._lookahead[0] if self._fill(1) else None

    def end_of_file(self) -> bool:
        return not self._fill(1)


class Token:
    """Represents a single lexical token in the Perilla language.

    Tokens are immutable. Equality looks at the kind and text only, never at
    the position, and `DEF`, `EXTERN` and `EOF` tokens equal any other token of
    the same kind.

    Attributes:
        type (str): The token kind (`DEF`, `EXTERN`, `IDENT`, `NUMBER`, `SYMBOL`, `EOF`).
        value (str): The raw source text of the token.
        number (float | None): The parsed value of a NUMBER token.
        line (int): The 1-based line number where the token starts.
        col (int): The 1-based column number where the token starts.
    """

    __slots__ = ("type", "value", "number", "line", "col")

    def __init__(
        self,
        type_: str,
        value: str,
        line: int = 0,
        col: int = 0,
        number: float | None = None,
    ):
        if type_ not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {type_!r}")
        if type_ == NUMBER and number is None:
            number = float(value)
        object.__setattr__(self, "type", type_)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "number", number)
        object.__setattr__(self, "line", line)
        object.__setattr__(self, "col", col)

    @classmethod
    def keyword(cls, text: str, line: int = 0, col: int = 0) -> "Token":
        return cls(keyword_hashmap[text], text, line, col)

    @classmethod
    def identifier(cls, text: str, line: int = 0, col: int = 0) -> "Token":
        return cls(IDENT, text, line, col)

    @classmethod
    def number_literal(cls, text: str, line: int = 0, col: int = 0) -> "Token":
        return cls(NUMBER, text, line, col)

    @classmethod
    def symbol(cls, char: str, line: int = 0, col: int = 0) -> "Token":
        return cls(SYMBOL, char, line, col)

    @classmethod
    def eof(cls, line: int = 0, col: int = 0) -> "Token":
        return cls(EOF, "EOF", line, col)

    def is_symbol(self, char: str) -> bool:
        return self.type == SYMBOL and self.value == char

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Token is immutable; cannot set {name!r}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Token is immutable; cannot delete {name!r}")

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Token) or self.type != other.type:
            return False
        if self.type in VALUELESS_KINDS:
            return True
        return self.value == other.value and self.number == other.number

    def __hash__(self) -> int:
        if self.type in VALUELESS_KINDS:
            return hash(self.type)
        return hash((self.type, self.value))


class NumberRecognizer:
    """Deterministic finite automaton for numeric literals.

    States:
        0 initial, 1 after leading minus, 2 after leading zero (accepting),
        3 integer part (accepting), 4 after dot, 5 after exponent marker,
        6 fraction (accepting), 7 after exponent sign, 8 exponent (accepting).

    Input characters are first folded into classes: ``"0"``, ``"d"`` (1-9),
    ``"-"``, ``"+"``, ``"."`` and ``"e"`` (e or E).
    """

    ACCEPTING = frozenset({2, 3, 6, 8})

    TRANSITIONS: dict[int, dict[str, int]] = {
        0: {"-": 1, "0": 2, "d": 3},
        1: {"0": 2, "d": 3},
        2: {".": 4, "e": 5},
        3: {"0": 3, "d": 3, ".": 4, "e": 5},
        4: {"0": 6, "d": 6},
        5: {"-": 7, "+": 7, "0": 8, "d": 8},
        6: {"0": 6, "d": 6, "e": 5},
        7: {"0": 8, "d": 8},
        8: {"0": 8, "d": 8},
    }

    @staticmethod
    def classify(ch: str) -> str | None:
        if ch == "0":
            return "0"
        if "1" <= ch <= "9":
            return "d"
        if ch in ("e", "E"):
            return "e"
        if ch in ("-", "+", "."):
            return ch
        return None

    @classmethod
    def step(cls, state: int, ch: str) -> int | None:
        """Returns the next state, or None if `ch` has no move from `state`."""
        cls_ = cls.classify(ch)
        if cls_ is None:
            return None
        return cls.TRANSITIONS[state].get(cls_)

    @classmethod
    def scan(cls, stream: CharacterStream) -> tuple[int, int]:
        """Runs the automaton over the stream's lookahead without consuming.

        Returns:
            tuple[int, int]: The length of the longest accepted prefix and the
            number of characters the automaton moved over before it stopped.
        """
        state = 0
        walked = 0
        accepted = 0
        while True:
            ch = stream.peek(walked)
            if ch == "":
                break
            nxt = cls.step(state, ch)
            if nxt is None:
                break
            state = nxt
            walked += 1
            if state in cls.ACCEPTING:
                accepted = walked
        return accepted, walked


class Lexer:
    """Lexical analyzer for the Perilla language.

    Tokens are produced into an internal buffer and handed out one at a time
    by `next_token`. The sequence is forward-only; once the input is exhausted
    every further call returns the same EOF token.

    Attributes:
        stream (CharacterStream): The source stream to tokenize.
        diagnostics (list[Diagnostic]): Warnings about malformed numeric literals.
    """

    def __init__(self, stream: CharacterStream) -> None:
        self.stream = stream
        self.diagnostics: list[Diagnostic] = []
        self._pending: deque[Token] = deque()
        self._eof: Token | None = None

    def peek(self, offset: int = 0) -> str:
        return self.stream.peek(offset)

    def advance(self) -> str:
        return self.stream.next()

    def skip_whitespace(self) -> None:
        """Skips all whitespace and comments in the stream."""
        while not self.stream.end_of_file():
            if self.peek().isspace():
                self.advance()
            elif self.peek() == COMMENT_CHAR:
                self.skip_comment()
            else:
                break

    def skip_comment(self) -> None:
        """Advances past the end of a comment line, newline included."""
        while not self.stream.end_of_file() and self.peek() != "\n":
            self.advance()
        if not self.stream.end_of_file():
            self.advance()

    def next_token(self) -> Token:
        """Returns the next Token, scanning more input if the buffer is empty."""
        if not self._pending:
            self._scan()
        return self._pending.popleft()

    def __iter__(self) -> Iterator[Token]:
        """Yields the remaining tokens, ending with a single EOF token."""
        while True:
            tok = self.next_token()
            yield tok
            if tok.type == EOF:
                return

    def _scan(self) -> None:
        """Scans input until at least one token is buffered."""
        while not self._pending:
            self.skip_whitespace()
            if self.stream.end_of_file():
                if self._eof is None:
                    self._eof = Token.eof(self.stream.line, self.stream.column)
                self._pending.append(self._eof)
                return

            ch = self.peek()
            if ch.isascii() and ch.isalpha():
                self._scan_identifier()
            elif "0" <= ch <= "9" or ch == "-":
                self._scan_number()
            else:
                line, col = self.stream.line, self.stream.column
                self._pending.append(Token.symbol(self.advance(), line, col))

    def _scan_identifier(self) -> None:
        line, col = self.stream.line, self.stream.column
        ident = ""
        while not self.stream.end_of_file() and self.peek().isascii() and self.peek().isalnum():
            ident += self.advance()
        if ident in keyword_hashmap:
            self._pending.append(Token.keyword(ident, line, col))
        else:
            self._pending.append(Token.identifier(ident, line, col))

    def _scan_number(self) -> None:
        line, col = self.stream.line, self.stream.column
        accepted, walked = NumberRecognizer.scan(self.stream)

        # A lone '-' (not followed by a digit) is an ordinary symbol.
        if accepted == 0:
            self._pending.append(Token.symbol(self.advance(), line, col))
            return

        if walked > accepted:
            malformed = "".join(self.peek(i) for i in range(walked))
            diagnostic = Diagnostic(
                f"malformed numeric literal {malformed!r}, using {malformed[:accepted]!r}",
                line,
                col,
                WARNING,
            )
            self.diagnostics.append(diagnostic)
            logger.warning("%s", diagnostic)

        text = "".join(self.advance() for _ in range(accepted))
        self._pending.append(Token.number_literal(text, line, col))


def tokenize(source: str | Iterable[str]) -> Iterator[Token]:
    """Lazily tokenizes `source`, ending with a single EOF token."""
    return iter(Lexer(CharacterStream(source)))


__all__ = [
    "DEF",
    "EOF",
    "EXTERN",
    "IDENT",
    "NUMBER",
    "SYMBOL",
    "CharacterStream",
    "Lexer",
    "NumberRecognizer",
    "Token",
    "tokenize",
]
