"""
Provides the `PrecedenceTable` used by the Perilla parser to recognise binary
operators and decide how tightly they bind.

The table always contains the built-in operators (`<`, `+`, `-`, `*`). Extra
single-character operators can be registered before parsing, one at a time
with `register`, in bulk with `configure`, or from a JSON file with
`load_from_json`.

Rules:
    - Built-in operators cannot be re-registered or shadowed.
    - A user operator may be registered again; the newest precedence wins.
    - Precedences are positive integers. Lookups of unknown operators return
      None rather than a sentinel number.

Usage:
    >>> table = PrecedenceTable()
    >>> table.register("^", 500)
    >>> table.get("^")
    500
"""

import json
import logging
from typing import Any

from perilla.perilla_constants import BUILTIN_PRECEDENCE, COMMENT_CHAR, STRUCTURAL_SYMBOLS
from perilla.perilla_errors import PrecedenceError

logger = logging.getLogger(__name__)


class PrecedenceTable:
    """Maps binary operator symbols to integer precedences.

    Attributes:
        builtins (dict[str, int]): The fixed built-in bindings.
    """

    def __init__(self) -> None:
        self.builtins: dict[str, int] = dict(BUILTIN_PRECEDENCE)
        self._user: dict[str, int] = {}

    def get(self, op: str) -> int | None:
        """Returns the precedence of `op`, or None if it is not an operator."""
        if op in self.builtins:
            return self.builtins[op]
        return self._user.get(op)

    def supports(self, op: str) -> bool:
        return op in self.builtins or op in self._user

    def __contains__(self, op: object) -> bool:
        return isinstance(op, str) and self.supports(op)

    def user_operators(self) -> dict[str, int]:
        """Returns a copy of the operators registered at runtime."""
        return dict(self._user)

    def _validate(self, op: Any, precedence: Any) -> str | None:
        """Returns a reason string if the binding is invalid, else None."""
        if not isinstance(op, str) or len(op) != 1:
            return f"operator must be a single character, got {op!r}"
        if op.isalnum() or op.isspace() or op == COMMENT_CHAR:
            return f"{op!r} cannot be lexed as an operator symbol"
        if op in STRUCTURAL_SYMBOLS:
            return f"{op!r} is reserved punctuation"
        if op in self.builtins:
            return f"{op!r} is a built-in operator and cannot be redefined"
        if isinstance(precedence, bool) or not isinstance(precedence, int):
            return f"precedence for {op!r} must be an integer, got {precedence!r}"
        if precedence <= 0:
            return f"precedence for {op!r} must be positive, got {precedence}"
        return None

    def register(self, op: str, precedence: int) -> None:
        """Registers (or re-registers) a user-defined binary operator.

        Args:
            op: A single operator character.
            precedence: A positive integer; higher binds tighter.

        Raises:
            PrecedenceError: If the operator or the precedence is not acceptable.
        """
        reason = self._validate(op, precedence)
        if reason is not None:
            raise PrecedenceError(f"Cannot register operator: {reason}", [reason])
        self._user[op] = precedence
        logger.debug("registered operator %r with precedence %d", op, precedence)

    def configure(self, cfg: dict[Any, Any]) -> None:
        """Registers several operators at once.

        Every entry is validated before any is applied, so a failing
        configuration leaves the table untouched.

        Raises:
            PrecedenceError: If `cfg` is not a dict or any entry is invalid.
                `conflicts` lists every rejected entry.
        """
        if not isinstance(cfg, dict):
            raise PrecedenceError("Operator configuration must be a dict")

        conflicts: list[str] = []
        for op, precedence in cfg.items():
            reason = self._validate(op, precedence)
            if reason is not None:
                conflicts.append(reason)

        if conflicts:
            raise PrecedenceError("Invalid operator configuration", conflicts)

        for op, precedence in cfg.items():
            self.register(op, precedence)

    def load_from_json(self, path: str) -> None:
        """Loads operator bindings from a JSON object such as ``{"^": 500}``.

        Raises:
            PrecedenceError: If the file cannot be read or holds invalid bindings.
        """
        try:
            with open(path, encoding="utf-8") as f:
                raw_cfg = json.load(f)
        except (OSError, ValueError) as e:
            raise PrecedenceError(f"Failed to load operator file: {e}") from e
        self.configure(raw_cfg)

    def __repr__(self) -> str:
        return f"PrecedenceTable(builtins={self.builtins!r}, user={self._user!r})"


__all__ = ["PrecedenceError", "PrecedenceTable"]
