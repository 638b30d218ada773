import pytest

from easel.easel_lexer import scan
from easel.easel_parser import Parser, parse
from easel.easel_datatypes import (
    Assign, Binary, Block, Call, ExpressionStmt, FunctionDecl, FunctionLiteral,
    Grouping, IfStmt, LetStmt, Literal, Logical, ParseError, ReturnStmt, Unary,
    Variable, WhileStmt,
)


def parse_src(src: str):
    scanned = scan(src)
    assert scanned.ok, scanned.error
    return parse(scanned.tokens)


def parse_ok(src: str):
    res = parse_src(src)
    assert res.ok, f"unexpected parse error: {res.error}"
    return res.statements


def parse_expr(src: str):
    (stmt,) = parse_ok(src)
    assert isinstance(stmt, ExpressionStmt)
    return stmt.expression


# --- precedence and associativity ---

def test_factor_binds_tighter_than_term():
    (stmt,) = parse_ok("let x = 1 + 2 * 3")
    assert stmt == LetStmt("x", Binary(Literal(1.0), "+", Binary(Literal(2.0), "*", Literal(3.0))))


def test_binary_operators_are_left_associative():
    assert parse_expr("10 - 4 - 3") == Binary(Binary(Literal(10.0), "-", Literal(4.0)), "-", Literal(3.0))


def test_assignment_is_right_associative():
    assert parse_expr("a = b = 2") == Assign("a", Assign("b", Literal(2.0)))


def test_logical_precedence_and_below_or():
    expr = parse_expr("a or b and c")
    assert expr == Logical(Variable("a"), "or", Logical(Variable("b"), "and", Variable("c")))


def test_comparison_below_arithmetic_and_above_equality():
    expr = parse_expr("1 + 1 < 3 == true")
    assert expr == Binary(
        Binary(Binary(Literal(1.0), "+", Literal(1.0)), "<", Literal(3.0)),
        "==",
        Literal(True),
    )


def test_unary_and_grouping():
    assert parse_expr("-(1 + 2)") == Unary("-", Grouping(Binary(Literal(1.0), "+", Literal(2.0))))
    assert parse_expr("!!true") == Unary("!", Unary("!", Literal(True)))


def test_call_chains_and_arguments():
    expr = parse_expr("make(1)(2, \"s\")")
    assert expr == Call(Call(Variable("make"), (Literal(1.0),)), (Literal(2.0), Literal("s")))


# --- statements ---

def test_let_without_initializer():
    assert parse_ok("let x;") == [LetStmt("x", None)]


def test_statements_terminated_by_newline_or_semicolon():
    stmts = parse_ok("let a = 1\nlet b = 2; a + b")
    assert len(stmts) == 3
    assert isinstance(stmts[2], ExpressionStmt)


def test_two_expressions_on_one_line_need_a_semicolon():
    res = parse_src("1 2")
    assert not res.ok
    assert res.error.message == "expected ';', found number '2'"
    assert (res.error.line, res.error.col) == (1, 3)
    assert res.statements == []


def test_function_declaration():
    (stmt,) = parse_ok("function add(a, b) { return a + b }")
    assert stmt == FunctionDecl(
        "add",
        FunctionLiteral(("a", "b"), (ReturnStmt(Binary(Variable("a"), "+", Variable("b"))),)),
    )


def test_function_literal_as_value():
    (stmt,) = parse_ok("let f = function (x) { x }")
    assert isinstance(stmt.initializer, FunctionLiteral)
    assert stmt.initializer.params == ("x",)


def test_if_else_if_else():
    (stmt,) = parse_ok("if a { 1 } else if b { 2 } else { 3 }")
    assert isinstance(stmt, IfStmt)
    assert isinstance(stmt.else_branch, IfStmt)
    assert isinstance(stmt.else_branch.else_branch, Block)


def test_while_and_block():
    (stmt,) = parse_ok("while i < 3 { i = i + 1 }")
    assert stmt == WhileStmt(
        Binary(Variable("i"), "<", Literal(3.0)),
        Block((ExpressionStmt(Assign("i", Binary(Variable("i"), "+", Literal(1.0)))),)),
    )


def test_bare_return():
    (fn,) = parse_ok("function f() { return }")
    assert fn.function.body == (ReturnStmt(None),)


def test_nodes_carry_positions_but_compare_without_them():
    a = parse_ok("let x = 1")
    b = parse_ok("\n\n   let   x =\n 1;")
    assert a == b
    assert (a[0].line, a[0].col) == (1, 1)
    assert (b[0].line, b[0].col) == (3, 4)


def test_foo_call_parses_without_semantic_checks():
    (stmt,) = parse_ok("foo(1)")
    assert stmt.expression == Call(Variable("foo"), (Literal(1.0),))


# --- errors and partial results ---

def test_invalid_assignment_target():
    res = parse_src("1 + 2 = 3")
    assert not res.ok
    assert "assignment target" in res.error.message
    assert (res.error.line, res.error.col) == (1, 7)


def test_missing_expression_at_end_of_input():
    res = parse_src("let x =")
    assert not res.ok
    assert res.error.expected == "expression"
    assert res.error.found == "end of input"
    assert res.error.at_eof


def test_completed_statements_survive_a_parse_error():
    res = parse_src("let a = 1\nlet b = 2\nlet = 3\nlet c = 4")
    assert not res.ok
    assert [s.name for s in res.statements] == ["a", "b"]
    assert res.error.line == 3


def test_unclosed_block_is_reported_at_eof():
    res = parse_src("if true {\n  print(1)")
    assert not res.ok
    assert res.error.at_eof
    assert res.statements == []


def test_parser_raises_and_keeps_prefix():
    parser = Parser(scan("let a = 1; )").tokens)
    with pytest.raises(ParseError):
        parser.parse()
    assert parser.ast == [LetStmt("a", Literal(1.0))]


def test_parses_partial_token_stream_without_eof():
    scanned = scan("let a = 1\nlet b = #")
    assert not scanned.ok
    res = parse(scanned.tokens)
    assert res.statements == [LetStmt("a", Literal(1.0))]
    assert res.error.at_eof


# --- line breaks ---

def test_operator_on_next_line_starts_a_new_statement():
    res = parse_src("let x = 1\n-1\n")
    assert res.ok
    assert res.statements == [LetStmt("x", Literal(1.0)), ExpressionStmt(Unary("-", Literal(1.0)))]


def test_parenthesis_on_next_line_is_not_a_call():
    stmts = parse_ok("let f = 5\n(f)\n")
    assert stmts == [LetStmt("f", Literal(5.0)), ExpressionStmt(Grouping(Variable("f")))]


def test_trailing_operator_continues_onto_next_line():
    assert parse_expr("1 +\n2") == Binary(Literal(1.0), "+", Literal(2.0))


def test_line_breaks_inside_parentheses_do_not_end_expression():
    assert parse_expr("(1\n+ 2)") == Grouping(Binary(Literal(1.0), "+", Literal(2.0)))
    assert parse_expr("f(1\n, 2\n- 1)") == Call(
        Variable("f"), (Literal(1.0), Binary(Literal(2.0), "-", Literal(1.0))))


def test_block_inside_arguments_uses_line_rules():
    (stmt,) = parse_ok("run(function () {\n  let a = 1\n  -a\n})")
    body = stmt.expression.arguments[0].body
    assert body == (LetStmt("a", Literal(1.0)), ExpressionStmt(Unary("-", Variable("a"))))
