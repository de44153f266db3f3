import logging
from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from perilla.perilla_ast import (
    ASTNode,
    BinaryExpression,
    CallExpression,
    FunctionDefinition,
    NumberLiteral,
    Prototype,
    VariableReference,
)
from perilla.perilla_errors import NestingLimitError, ParseError
from perilla.perilla_lexer import CharacterStream, Lexer
from perilla.perilla_parser import Parser, ParseResult, parse_program
from perilla.perilla_precedence import PrecedenceTable


def Num(value: float) -> NumberLiteral:
    return NumberLiteral(float(value))


def Var(name: str) -> VariableReference:
    return VariableReference(name)


def Bin(op: str, left: Any, right: Any) -> BinaryExpression:
    return BinaryExpression(op, left, right)


def parse(source: str, **options: Any) -> ParseResult:
    return parse_program(source, **options)


def parse_expr(source: str, precedence: PrecedenceTable | None = None) -> Any:
    """Parse a single top-level expression and return its body."""
    result = parse_program(source, precedence)
    assert result.diagnostics == []
    assert len(result.nodes) == 1
    node = result.nodes[0]
    assert isinstance(node, FunctionDefinition) and node.is_anonymous
    return node.body


@pytest.mark.parametrize(
    "source,expected",
    [
        ("1+2*3", Bin("+", Num(1), Bin("*", Num(2), Num(3)))),
        ("1*2+3", Bin("+", Bin("*", Num(1), Num(2)), Num(3))),
        ("1-2-3", Bin("-", Bin("-", Num(1), Num(2)), Num(3))),
        ("1+2-3", Bin("-", Bin("+", Num(1), Num(2)), Num(3))),
        ("a<b+c", Bin("<", Var("a"), Bin("+", Var("b"), Var("c")))),
        ("a*b<c", Bin("<", Bin("*", Var("a"), Var("b")), Var("c"))),
        (
            "1+2*3-4",
            Bin("-", Bin("+", Num(1), Bin("*", Num(2), Num(3))), Num(4)),
        ),
        ("(1+2)*3", Bin("*", Bin("+", Num(1), Num(2)), Num(3))),
        ("((x))", Var("x")),
    ],
)
def test_precedence_climbing(source: str, expected: ASTNode) -> None:
    assert parse_expr(source) == expected


def test_extern_yields_prototype() -> None:
    result = parse("extern sin(x)")
    assert result.diagnostics == []
    assert result.nodes == [Prototype("sin", ["x"])]


def test_extern_without_parameters() -> None:
    assert parse("extern rand()").nodes == [Prototype("rand", [])]


def test_definition() -> None:
    result = parse("def bar(a) a + 100")
    assert result.diagnostics == []
    assert result.nodes == [
        FunctionDefinition(
            Prototype("bar", ["a"]),
            Bin("+", Var("a"), Num(100)),
        )
    ]
    assert not result.nodes[0].is_anonymous  # type: ignore[union-attr]


def test_definition_with_space_separated_parameters() -> None:
    node = parse("def foo(x y) sin(x) * bar(y)").nodes[0]
    assert isinstance(node, FunctionDefinition)
    assert node.prototype == Prototype("foo", ["x", "y"])
    assert node.body == Bin("*", CallExpression("sin", [Var("x")]), CallExpression("bar", [Var("y")]))


def test_duplicate_parameters_are_accepted() -> None:
    result = parse("def f(a a) a")
    assert result.diagnostics == []
    assert result.nodes[0].prototype.parameters == ("a", "a")  # type: ignore[union-attr]


def test_toplevel_call_is_wrapped_in_anonymous_function() -> None:
    result = parse("foo(1,2)")
    assert result.diagnostics == []
    node = result.nodes[0]
    assert isinstance(node, FunctionDefinition)
    assert node.is_anonymous
    assert node.prototype is not None
    assert node.prototype.parameters == ()
    assert node.prototype.name.startswith("__anon_expr_")
    assert len(node.prototype.name) == len("__anon_expr_") + 10
    assert node.body == CallExpression("foo", [Num(1), Num(2)])


def test_anonymous_names_are_unique() -> None:
    result = parse("1; 2; 3\n4")
    names = [n.name for n in result.nodes]  # type: ignore[union-attr]
    assert len(names) == 4
    assert len(set(names)) == 4


def test_seeded_parsers_generate_the_same_names() -> None:
    first = [n.name for n in parse("1 2 3", seed=7).nodes]  # type: ignore[union-attr]
    second = [n.name for n in parse("1 2 3", seed=7).nodes]  # type: ignore[union-attr]
    assert first == second


def test_custom_anonymous_prefix() -> None:
    node = parse("x", anon_prefix="__top_").nodes[0]
    assert node.name.startswith("__top_")  # type: ignore[union-attr]


def test_identifier_disambiguation() -> None:
    assert parse_expr("foo") == Var("foo")
    assert parse_expr("foo()") == CallExpression("foo", [])
    assert parse_expr("foo (1)") == CallExpression("foo", [Num(1)])


def test_nested_calls_and_arguments() -> None:
    assert parse_expr("f(g(1), x + 2, (3))") == CallExpression(
        "f",
        [CallExpression("g", [Num(1)]), Bin("+", Var("x"), Num(2)), Num(3)],
    )


def test_negative_literal_in_operand_position() -> None:
    assert parse_expr("-1.5") == Num(-1.5)
    assert parse_expr("2 * -3") == Bin("*", Num(2), Num(-3))


@pytest.mark.parametrize(
    "source,expected",
    [
        ("x-1", Bin("-", Var("x"), Num(1))),
        ("x - 1", Bin("-", Var("x"), Num(1))),
        ("x -1", Bin("-", Var("x"), Num(1))),
        ("fib(x-1)+fib(x-2)", Bin("+", CallExpression("fib", [Bin("-", Var("x"), Num(1))]), CallExpression("fib", [Bin("-", Var("x"), Num(2))]))),
        ("3-2*4", Bin("-", Num(3), Bin("*", Num(2), Num(4)))),
        ("1 - -2", Bin("-", Num(1), Num(-2))),
    ],
)
def test_subtraction_from_signed_number_tokens(source: str, expected: ASTNode) -> None:
    assert parse_expr(source) == expected


def test_registered_operator(power_table: PrecedenceTable) -> None:
    assert parse_expr("2^3", power_table) == Bin("^", Num(2), Num(3))
    assert parse_expr("1+2^3*4", power_table) == Bin(
        "+", Num(1), Bin("*", Bin("^", Num(2), Num(3)), Num(4))
    )


def test_unregistered_operator_splits_toplevel() -> None:
    result = parse("2^3")
    assert len(result.nodes) == 3
    assert [n.body for n in result.nodes] == [Num(2), None, Num(3)]  # type: ignore[union-attr]
    assert len(result.errors) == 1
    assert "'^'" in result.errors[0].message


def test_operator_table_is_per_parser() -> None:
    table = PrecedenceTable()
    table.register("%", 400)
    assert parse("5%2", precedence=table).ok
    assert not parse("5%2").ok


def test_semicolons_are_ignored_at_top_level() -> None:
    result = parse(";;def f(x) x;; f(1);")
    assert result.ok
    assert [n.kind for n in result.nodes] == ["function", "function"]


def test_full_program() -> None:
    source = """
    # a small program
    6 * 7.777 - 8.8
    extern sin(x)

    def bar(a)
        a + 100

    def foo(x y)
        sin(x) * bar(y)

    1 + foo(2, 3)+(4 + 5.5555)* 6  * 7.777 - 8.8
    sin(0)

    def test(x) (1+2+x) * (x + (1+2))
    """
    result = parse(source)
    assert result.diagnostics == []
    kinds = [(n.kind, getattr(n, "is_anonymous", None)) for n in result.nodes]
    assert kinds == [
        ("function", True),
        ("prototype", None),
        ("function", False),
        ("function", False),
        ("function", True),
        ("function", True),
        ("function", False),
    ]
    last = result.nodes[-1]
    assert isinstance(last, FunctionDefinition)
    assert last.body == Bin(
        "*",
        Bin("+", Bin("+", Num(1), Num(2)), Var("x")),
        Bin("+", Var("x"), Bin("+", Num(1), Num(2))),
    )


def test_node_positions() -> None:
    result = parse("def f(x)\n  x * 2\nf(3)")
    definition, call = result.nodes
    assert (definition.line, definition.col) == (1, 1)
    body = definition.body  # type: ignore[union-attr]
    assert (body.line, body.col) == (2, 3)
    assert (body.right.line, body.right.col) == (2, 7)
    assert (call.line, call.col) == (3, 1)


# Error recovery


def test_unterminated_call_recovers() -> None:
    result = parse("foo(1,")
    assert len(result.errors) >= 1
    node = result.nodes[0]
    assert isinstance(node, FunctionDefinition)
    assert node.body == CallExpression("foo", [Num(1)])


def test_missing_closing_paren_in_call() -> None:
    result = parse("foo(1, 2")
    assert len(result.errors) == 1
    assert "expected ',' or ')'" in result.errors[0].message
    assert result.nodes[0].body == CallExpression("foo", [Num(1), Num(2)])  # type: ignore[union-attr]


def test_missing_comma_in_call() -> None:
    result = parse("foo(1 2)")
    assert result.errors[0].message.startswith("expected ',' or ')' in call to 'foo'")
    assert (result.errors[0].line, result.errors[0].col) == (1, 7)
    assert result.nodes[0].body == CallExpression("foo", [Num(1)])  # type: ignore[union-attr]


def test_missing_closing_paren_in_group() -> None:
    result = parse("(1 + 2")
    assert len(result.errors) == 1
    assert "expected ')'" in result.errors[0].message
    assert result.nodes[0].body == Bin("+", Num(1), Num(2))  # type: ignore[union-attr]


def test_stray_token_is_reported_and_skipped() -> None:
    result = parse(") 1")
    assert len(result.errors) == 1
    assert result.errors[0].message == "unexpected ')', expected an expression"
    bodies = [n.body for n in result.nodes]  # type: ignore[union-attr]
    assert bodies == [None, Num(1)]


def test_missing_operand_leaves_empty_slot() -> None:
    result = parse("1 +")
    assert len(result.errors) == 1
    assert "end of input" in result.errors[0].message
    assert result.nodes[0].body == Bin("+", Num(1), None)  # type: ignore[union-attr]


def test_prototype_missing_name() -> None:
    result = parse("extern (x)")
    assert result.errors[0].message.startswith("expected function name")
    assert all(n.kind != "prototype" for n in result.nodes)


def test_definition_missing_name_keeps_body() -> None:
    result = parse("def 1 + 2")
    assert len(result.errors) == 1
    node = result.nodes[0]
    assert isinstance(node, FunctionDefinition)
    assert node.prototype is None
    assert node.name is None
    assert node.body == Bin("+", Num(1), Num(2))


def test_prototype_missing_open_paren() -> None:
    result = parse("def foo x + 1")
    assert result.errors[0].message == "expected '(' after 'foo' in prototype, got 'x'"
    assert result.nodes[0] == FunctionDefinition(Prototype("foo", []), Bin("+", Var("x"), Num(1)))


def test_prototype_with_commas_keeps_parameters() -> None:
    result = parse("def foo(a, b) a + b")
    assert len(result.errors) == 1
    assert "expected parameter name" in result.errors[0].message
    assert result.nodes == [
        FunctionDefinition(Prototype("foo", ["a", "b"]), Bin("+", Var("a"), Var("b")))
    ]


def test_unterminated_prototype() -> None:
    result = parse("extern sin(x")
    assert len(result.errors) == 1
    assert result.nodes == [Prototype("sin", ["x"])]


def test_multiple_diagnostics_in_one_run() -> None:
    result = parse("foo(1 2)\n) \n(3")
    assert len(result.errors) >= 3
    lines = [d.line for d in result.errors]
    assert lines == sorted(lines)


def test_lexer_warnings_are_collected() -> None:
    result = parse("1e + 2")
    assert any(d.severity == "warning" for d in result.diagnostics)
    assert result.ok


def test_strict_mode_raises_first_error() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse("foo(1,", strict=True)
    assert excinfo.value.diagnostic.line == 1
    assert isinstance(excinfo.value, SyntaxError)


def test_strict_mode_accepts_valid_input() -> None:
    assert parse("def f(x) x*x f(2)", strict=True).ok


def test_deep_nesting_is_bounded() -> None:
    depth = 300
    source = "(" * depth + "1" + ")" * depth + "; 42"
    result = parse(source, max_depth=64)
    assert len(result.errors) == 1
    assert "nesting exceeds 64" in result.errors[0].message
    assert [n.body for n in result.nodes] == [Num(42)]  # type: ignore[union-attr]


def test_deep_nesting_strict_raises() -> None:
    with pytest.raises(NestingLimitError):
        parse("(" * 20 + "1" + ")" * 20, max_depth=5, strict=True)


def test_nesting_within_limit_is_fine() -> None:
    source = "(" * 50 + "x" + ")" * 50
    assert parse_expr(source) == Var("x")


@pytest.fixture
def climbing_table(power_table: PrecedenceTable) -> PrecedenceTable:
    power_table.register("%", 600)
    return power_table


def test_operator_climb_shape(climbing_table: PrecedenceTable) -> None:
    assert parse_expr("a<b+c*d^e%(1)", climbing_table) == Bin(
        "<",
        Var("a"),
        Bin("+", Var("b"), Bin("*", Var("c"), Bin("^", Var("d"), Bin("%", Var("e"), Num(1))))),
    )


def test_operator_climb_within_limit(climbing_table: PrecedenceTable) -> None:
    levels = 20
    source = "a<b+c*d^e%(" * levels + "1" + ")" * levels
    result = parse(source, precedence=climbing_table)
    assert result.ok
    assert len(result.nodes) == 1


def test_operator_climb_counts_towards_nesting(climbing_table: PrecedenceTable) -> None:
    levels = 120
    source = "a<b+c*d^e%(" * levels + "1" + ")" * levels + "; 7"
    result = parse(source, precedence=climbing_table)
    assert len(result.errors) == 1
    assert "nesting exceeds 128" in result.errors[0].message
    assert [n.body for n in result.nodes] == [Num(7)]  # type: ignore[union-attr]


def test_diagnostics_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="perilla.perilla_parser"):
        parse("foo(")
    assert any("expected an expression" in rec.getMessage() for rec in caplog.records)


def test_parser_pulls_tokens_lazily() -> None:
    lexer = Lexer(CharacterStream(iter(["1 + 2\n", "def"])))
    parser = Parser(lexer)
    assert parser.current().value == "1"
    node = parser.parse_toplevel()
    assert node.body == Bin("+", Num(1), Num(2))
    assert parser.current().type == "DEF"


def test_parse_program_accepts_a_lexer() -> None:
    lexer = Lexer(CharacterStream("x"))
    assert parse_program(lexer).nodes[0].body == Var("x")  # type: ignore[union-attr]


def test_parser_returns_accumulated_ast() -> None:
    parser = Parser(Lexer(CharacterStream("1 2")))
    nodes = parser.parse()
    assert nodes is parser.ast
    assert len(nodes) == 2


@settings(max_examples=50)  # type: ignore[misc]
@given(
    st.lists(
        st.tuples(st.sampled_from(["+", "-", "*", "<"]), st.integers(min_value=0, max_value=99)),
        max_size=8,
    ),
    st.integers(min_value=0, max_value=99),
)  # type: ignore[misc]
def test_binary_chains_parse_without_errors(ops: list[tuple[str, int]], first: int) -> None:
    source = str(first) + "".join(f" {op} {n}" for op, n in ops)
    body = parse_expr(source)
    operators: list[str] = []
    stack = [body]
    while stack:
        node = stack.pop()
        if isinstance(node, BinaryExpression):
            operators.append(node.operator)
            stack.extend([node.left, node.right])
    assert sorted(operators) == sorted(op for op, _ in ops)


@settings(max_examples=50)  # type: ignore[misc]
@given(st.text(alphabet="abc123(),;+-*<^ \n", max_size=40))  # type: ignore[misc]
def test_parser_never_crashes(source: str) -> None:
    result = parse(source)
    assert isinstance(result.nodes, list)
    assert all(isinstance(n, (Prototype, FunctionDefinition)) for n in result.nodes)
