"""
Perilla Language Parser

Builds abstract syntax trees from the token stream produced by `Lexer`.

Grammar
-------
    program    := (';' | definition | extern | toplevel)* EOF
    definition := 'def' prototype expression
    extern     := 'extern' prototype
    prototype  := IDENT '(' IDENT* ')'
    toplevel   := expression
    expression := primary (OPERATOR expression)*
    primary    := NUMBER
                | IDENT ('(' arguments ')')?
                | '(' expression ')'
    arguments  := (expression (',' expression)*)?

Parser Behavior
---------------
- Pulls one token at a time from the lexer and never looks back.
- An identifier directly followed by `(` is a call, otherwise a variable.
- Binary operators are parsed by precedence climbing over the injected
  `PrecedenceTable`; equal precedences group to the left.
- Because the lexer reads `x-1` as `x`, `-1`, a negative number found where an
  operator is expected is treated as subtraction of the unsigned literal.
- Top-level expressions are wrapped in an anonymous, parameterless
  `FunctionDefinition` with a unique generated name.
- Syntax errors are recorded in `diagnostics` and parsing continues with the
  partial node (possibly None). With `strict=True` the first error raises
  `ParseError` instead.
- Nesting counts both sub-expressions and each step up to a tighter
  operator. Expressions nested deeper than `max_depth` are abandoned with a single
  diagnostic; the parser resumes at the next `;`, `def`, `extern` or EOF.

Entry Points
------------
- `Parser.parse()`: Parse a full program into a list of top-level nodes.
- `Parser.parse_expression()`: Parse a single expression.
- `parse_program()`: Lex and parse source text in one call.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass, field

from perilla.perilla_ast import (
    BinaryExpression,
    CallExpression,
    Expression,
    FunctionDefinition,
    NumberLiteral,
    Prototype,
    TopLevel,
    VariableReference,
)
from perilla.perilla_constants import (
    ANON_ALPHABET,
    ANON_PREFIX,
    ANON_SUFFIX_LENGTH,
    DEF,
    DEFAULT_MAX_DEPTH,
    EOF,
    EXTERN,
    IDENT,
    NUMBER,
    SYMBOL,
)
from perilla.perilla_errors import Diagnostic, NestingLimitError, ParseError
from perilla.perilla_lexer import CharacterStream, Lexer, Token
from perilla.perilla_precedence import PrecedenceTable

logger = logging.getLogger(__name__)

# Tokens that belong to the top-level loop; expression parsing never eats them.
_BOUNDARY_KINDS = frozenset({EOF, DEF, EXTERN})


@dataclass
class ParseResult:
    """Top-level nodes and every diagnostic collected while producing them."""

    nodes: list[TopLevel] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def ok(self) -> bool:
        return not self.errors


class Parser:
    """
    Perilla Parser Class

    Attributes
    ----------
    lexer : Lexer
        Source of tokens; pulled lazily, one token of lookahead.
    precedence : PrecedenceTable
        Operator table consulted for every binary operator.
    strict : bool
        Raise `ParseError` on the first syntax error instead of recovering.
    max_depth : int
        Deepest expression nesting accepted before giving up on a construct.
    ast : list[TopLevel]
        Top-level nodes completed so far.
    diagnostics : list[Diagnostic]
        Lexer warnings and parser errors, in the order they were found.
    """

    def __init__(
        self,
        lexer: Lexer,
        precedence: PrecedenceTable | None = None,
        *,
        strict: bool = False,
        max_depth: int = DEFAULT_MAX_DEPTH,
        seed: int | None = None,
        anon_prefix: str = ANON_PREFIX,
    ) -> None:
        self.lexer = lexer
        self.precedence = precedence if precedence is not None else PrecedenceTable()
        self.strict = strict
        self.max_depth = max_depth
        self.anon_prefix = anon_prefix
        self.ast: list[TopLevel] = []
        self.diagnostics: list[Diagnostic] = []

        self._rng = random.Random(seed)
        self._anon_names: set[str] = set()
        self._depth = 0
        self._lexer_seen = 0
        self._tok: Token = self._pull()

    # Token handling

    def _pull(self) -> Token:
        tok = self.lexer.next_token()
        if len(self.lexer.diagnostics) > self._lexer_seen:
            self.diagnostics.extend(self.lexer.diagnostics[self._lexer_seen :])
            self._lexer_seen = len(self.lexer.diagnostics)
        return tok

    def current(self) -> Token:
        return self._tok

    def advance(self) -> Token:
        """Consumes the current token and returns it."""
        tok = self._tok
        if tok.type != EOF:
            self._tok = self._pull()
        return tok

    def _record(self, message: str, tok: Token | None = None) -> Diagnostic:
        tok = tok or self._tok
        diagnostic = Diagnostic(message, tok.line, tok.col)
        self.diagnostics.append(diagnostic)
        logger.warning("%s", diagnostic)
        return diagnostic

    def report(self, message: str, tok: Token | None = None) -> None:
        """Records a syntax error at `tok` (default: the current token)."""
        diagnostic = self._record(message, tok)
        if self.strict:
            raise ParseError(diagnostic)

    @staticmethod
    def describe(tok: Token) -> str:
        if tok.type == EOF:
            return "end of input"
        return repr(tok.value)

    # Program structure

    def parse(self) -> list[TopLevel]:
        """Parse the whole program and return its top-level nodes."""
        while self._tok.type != EOF:
            if self._tok.is_symbol(";"):
                self.advance()
                continue

            try:
                if self._tok.type == DEF:
                    node: TopLevel | None = self.parse_definition()
                elif self._tok.type == EXTERN:
                    node = self.parse_extern()
                else:
                    node = self.parse_toplevel()
            except NestingLimitError:
                if self.strict:
                    raise
                self._synchronize()
                continue

            if node is not None:
                logger.debug("parsed %s %r at line %d", node.kind, getattr(node, "name", None), node.line)
                self.ast.append(node)
        return self.ast

    def _synchronize(self) -> None:
        """Skips tokens up to the start of the next top-level construct."""
        while self._tok.type not in _BOUNDARY_KINDS and not self._tok.is_symbol(";"):
            self.advance()

    def parse_definition(self) -> FunctionDefinition:
        """Parse `def prototype expression`."""
        def_tok = self.advance()
        proto = self.parse_prototype()
        body = self.parse_expression()
        return FunctionDefinition(proto, body, line=def_tok.line, col=def_tok.col)

    def parse_extern(self) -> Prototype | None:
        """Parse `extern prototype`."""
        self.advance()
        return self.parse_prototype()

    def parse_toplevel(self) -> FunctionDefinition:
        """Parse a bare expression and wrap it in an anonymous function."""
        start = self._tok
        body = self.parse_expression()
        proto = Prototype(self._anonymous_name(), (), line=start.line, col=start.col)
        return FunctionDefinition(proto, body, is_anonymous=True, line=start.line, col=start.col)

    def _anonymous_name(self) -> str:
        while True:
            suffix = "".join(self._rng.choice(ANON_ALPHABET) for _ in range(ANON_SUFFIX_LENGTH))
            name = self.anon_prefix + suffix
            if name not in self._anon_names:
                self._anon_names.add(name)
                return name

    def parse_prototype(self) -> Prototype | None:
        """Parse `IDENT '(' IDENT* ')'`.

        Returns None when there is no function name. Otherwise returns a
        Prototype with whatever parameters could be read.
        """
        name_tok = self._tok
        if name_tok.type != IDENT:
            self.report(f"expected function name in prototype, got {self.describe(name_tok)}")
            return None
        self.advance()
        name = name_tok.value

        if not self._tok.is_symbol("("):
            self.report(f"expected '(' after '{name}' in prototype, got {self.describe(self._tok)}")
            return Prototype(name, (), line=name_tok.line, col=name_tok.col)
        self.advance()

        params: list[str] = []
        reported = False
        while not self._tok.is_symbol(")"):
            tok = self._tok
            if tok.type in _BOUNDARY_KINDS or tok.is_symbol(";"):
                self.report(f"expected ')' to close prototype of '{name}', got {self.describe(tok)}")
                return Prototype(name, params, line=name_tok.line, col=name_tok.col)
            if tok.type == IDENT:
                params.append(tok.value)
            elif not reported:
                self.report(f"expected parameter name in prototype of '{name}', got {self.describe(tok)}")
                reported = True
            self.advance()
        self.advance()  # ')'
        return Prototype(name, params, line=name_tok.line, col=name_tok.col)

    # Expressions

    def parse_expression(self) -> Expression | None:
        """Parse `primary (OPERATOR expression)*`."""
        try:
            self._descend()
            lhs = self.parse_primary()
            return self.parse_binary_rhs(0, lhs)
        finally:
            self._depth -= 1

    def _descend(self) -> None:
        """Count one more level of recursion; callers undo it in `finally`."""
        self._depth += 1
        if self._depth > self.max_depth:
            raise NestingLimitError(self._record(f"expression nesting exceeds {self.max_depth} levels"))

    def parse_primary(self) -> Expression | None:
        tok = self._tok
        if tok.type == NUMBER:
            self.advance()
            assert tok.number is not None  # for mypy
            return NumberLiteral(tok.number, line=tok.line, col=tok.col)
        if tok.type == IDENT:
            return self.parse_identifier_expression()
        if tok.is_symbol("("):
            return self.parse_paren_expression()

        self.report(f"unexpected {self.describe(tok)}, expected an expression")
        if tok.type not in _BOUNDARY_KINDS and not tok.is_symbol(";"):
            self.advance()
        return None

    def parse_paren_expression(self) -> Expression | None:
        open_tok = self.advance()
        expr = self.parse_expression()
        if self._tok.is_symbol(")"):
            self.advance()
        else:
            self.report(
                f"expected ')' to close '(' from line {open_tok.line}, col {open_tok.col}, "
                f"got {self.describe(self._tok)}"
            )
        return expr

    def parse_identifier_expression(self) -> VariableReference | CallExpression:
        name_tok = self.advance()
        if not self._tok.is_symbol("("):
            return VariableReference(name_tok.value, line=name_tok.line, col=name_tok.col)

        self.advance()  # '('
        args = self.parse_arguments(name_tok.value)
        # parse_arguments has already reported anything other than ')'
        if self._tok.is_symbol(")"):
            self.advance()
        return CallExpression(name_tok.value, args, line=name_tok.line, col=name_tok.col)

    def parse_arguments(self, callee: str) -> list[Expression]:
        """Parse a comma-separated argument list up to, not including, `)`."""
        args: list[Expression] = []
        if self._tok.is_symbol(")"):
            return args
        while True:
            arg = self.parse_expression()
            if arg is not None:
                args.append(arg)
            if self._tok.is_symbol(")"):
                return args
            if not self._tok.is_symbol(","):
                self.report(f"expected ',' or ')' in call to '{callee}', got {self.describe(self._tok)}")
                return args
            self.advance()

    def binary_operator(self, tok: Token) -> tuple[str, int] | None:
        """Returns `(operator, precedence)` if `tok` can act as a binary operator."""
        if tok.type == SYMBOL:
            op = tok.value
        elif tok.type == NUMBER and tok.value.startswith("-"):
            op = "-"
        else:
            return None
        prec = self.precedence.get(op)
        return (op, prec) if prec is not None else None

    def parse_binary_rhs(self, min_precedence: int, lhs: Expression | None) -> Expression | None:
        """Precedence climbing: fold operators binding at least `min_precedence` into `lhs`."""
        while True:
            op_tok = self._tok
            binding = self.binary_operator(op_tok)
            if binding is None or binding[1] < min_precedence:
                return lhs
            op, prec = binding
            self.advance()

            rhs: Expression | None
            if op_tok.type == NUMBER:
                # `x-1` arrives as `x` followed by the number `-1`
                assert op_tok.number is not None  # for mypy
                rhs = NumberLiteral(-op_tok.number, line=op_tok.line, col=op_tok.col + 1)
            else:
                rhs = self.parse_primary()

            following = self.binary_operator(self._tok)
            if following is not None and prec < following[1]:
                # each tighter operator costs a frame, so it counts as nesting
                try:
                    self._descend()
                    rhs = self.parse_binary_rhs(prec + 1, rhs)
                finally:
                    self._depth -= 1

            anchor = lhs if lhs is not None else op_tok
            lhs = BinaryExpression(op, lhs, rhs, line=anchor.line, col=anchor.col)


def parse_program(
    source: str | Iterable[str] | Lexer,
    precedence: PrecedenceTable | None = None,
    **options: object,
) -> ParseResult:
    """Lex and parse `source` in one call.

    Args:
        source: Source text, an iterable of text chunks, or a ready Lexer.
        precedence: Operator table; a fresh built-in table when omitted.
        **options: Passed through to `Parser` (`strict`, `max_depth`, `seed`, `anon_prefix`).

    Returns:
        ParseResult: The top-level nodes and all diagnostics.
    """
    lexer = source if isinstance(source, Lexer) else Lexer(CharacterStream(source))
    parser = Parser(lexer, precedence, **options)  # type: ignore[arg-type]
    nodes = parser.parse()
    return ParseResult(list(nodes), list(parser.diagnostics))


__all__ = ["ParseError", "ParseResult", "Parser", "parse_program"]
