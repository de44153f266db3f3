"""
Diagnostics and exceptions raised by the Perilla front end.

Classes:
    Diagnostic: A positioned message collected by the lexer or parser.
    ParseError: Raised by a strict parser on the first syntax error.
    NestingLimitError: Raised internally when expressions nest too deeply.
    PrecedenceError: Raised when operator configuration is invalid.
"""

from __future__ import annotations

from dataclasses import dataclass

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single message tied to a source position.

    Attributes:
        message (str): Human-readable description of the problem.
        line (int): 1-based line of the offending token or character.
        col (int): 1-based column of the offending token or character.
        severity (str): Either ``"error"`` or ``"warning"``.
    """

    message: str
    line: int
    col: int
    severity: str = ERROR

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR

    def __str__(self) -> str:
        return f"line {self.line}, col {self.col}: {self.message}"


class ParseError(SyntaxError):
    """Syntax error carrying the diagnostic that triggered it."""

    def __init__(self, diagnostic: Diagnostic):
        super().__init__(str(diagnostic))
        self.diagnostic = diagnostic


class NestingLimitError(ParseError):
    """Expression nesting went past the parser's configured depth."""


class PrecedenceError(Exception):
    """Invalid operator registration.

    Attributes:
        conflicts (list[str]): One entry per rejected operator when several
            were registered at once.
    """

    def __init__(self, message: str, conflicts: list[str] | None = None):
        super().__init__(message)
        self.conflicts = conflicts or []


__all__ = [
    "ERROR",
    "WARNING",
    "Diagnostic",
    "NestingLimitError",
    "ParseError",
    "PrecedenceError",
]
