"""
Shared constants for the Perilla front end.

Token kinds, the keyword table, the built-in operator precedences and the
defaults used by the lexer and parser live here so every stage agrees on them.
"""

# Token kinds
DEF = "DEF"
EXTERN = "EXTERN"
IDENT = "IDENT"
NUMBER = "NUMBER"
SYMBOL = "SYMBOL"
EOF = "EOF"

TOKEN_KINDS: tuple[str, ...] = (DEF, EXTERN, IDENT, NUMBER, SYMBOL, EOF)

# Kinds whose instances are all equal to each other
VALUELESS_KINDS: frozenset[str] = frozenset({DEF, EXTERN, EOF})

keyword_hashmap: dict[str, str] = {
    "def": DEF,
    "extern": EXTERN,
}

# Higher binds tighter. Precedence 0 and below is never a valid binding.
BUILTIN_PRECEDENCE: dict[str, int] = {
    "<": 100,
    "+": 200,
    "-": 200,
    "*": 400,
}

# Symbols with a fixed grammatical role; never usable as binary operators.
STRUCTURAL_SYMBOLS: frozenset[str] = frozenset({"(", ")", ",", ";"})

COMMENT_CHAR = "#"

ANON_PREFIX = "__anon_expr_"
ANON_SUFFIX_LENGTH = 10
ANON_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"

DEFAULT_MAX_DEPTH = 128

__all__ = [
    "ANON_ALPHABET",
    "ANON_PREFIX",
    "ANON_SUFFIX_LENGTH",
    "BUILTIN_PRECEDENCE",
    "COMMENT_CHAR",
    "DEF",
    "DEFAULT_MAX_DEPTH",
    "EOF",
    "EXTERN",
    "IDENT",
    "NUMBER",
    "STRUCTURAL_SYMBOLS",
    "SYMBOL",
    "TOKEN_KINDS",
    "VALUELESS_KINDS",
    "keyword_hashmap",
]
