import pytest

from easel.easel_lexer import scan
from easel.easel_parser import parse
from easel.easel_interpreter import Interpreter, is_truthy, values_equal
from easel.easel_runtime import StandardLibrary
from easel.easel_datatypes import (
    ArityError, EaselArithmeticError, EaselTypeError, Environment, Function,
    RecursionDepthError, UndefinedNameError,
)


def run_src(src: str, env=None, interpreter=None):
    scanned = scan(src)
    assert scanned.ok, scanned.error
    parsed = parse(scanned.tokens)
    assert parsed.ok, parsed.error
    env = env if env is not None else StandardLibrary.root()
    return (interpreter or Interpreter()).run(parsed.statements, env)


def value_of(src: str):
    res = run_src(src)
    assert res.ok, f"unexpected runtime error: {res.error}"
    return res.value


def error_of(src: str):
    res = run_src(src)
    assert not res.ok, f"expected an error, got value {res.value!r}"
    return res.error


# --- bindings and scope ---

def test_let_binds_in_supplied_environment():
    env = StandardLibrary.root()
    res = run_src("let x = 1 + 2 * 3", env)
    assert res.ok
    assert res.environment is env
    assert env.get("x") == 7.0


def test_let_without_initializer_is_nil():
    env = Environment()
    run_src("let x", env)
    assert env.get("x") is None


def test_block_scoped_binding_is_gone_afterwards():
    env = StandardLibrary.root()
    res = run_src("{ let y = 1 } y", env)
    assert isinstance(res.error, UndefinedNameError)
    assert res.error.name == "y"
    assert "y" not in env


def test_if_block_binding_is_gone_afterwards():
    res = run_src("if (true) { let y = 1 } \ny")
    assert isinstance(res.error, UndefinedNameError)
    assert res.error.name == "y"


def test_assignment_reaches_outer_frame():
    assert value_of("let x = 1\n{ x = x + 1 }\nx") == 2.0


def test_assignment_to_undeclared_name_fails():
    err = error_of("z = 3")
    assert isinstance(err, UndefinedNameError)
    assert err.name == "z"


def test_assignment_yields_value():
    assert value_of("let a\nlet b\na = b = 4") == 4.0


def test_value_is_last_expression_statement():
    assert value_of("1\n2\nlet x = 9") == 2.0
    assert value_of("let x = 9") is None


# --- operators ---

@pytest.mark.parametrize("src,expected", [
    ("7 - 2", 5.0),
    ("7 / 2", 3.5),
    ("7 % 3", 1.0),
    ("-(2 + 3)", -5.0),
    ('"ab" + "cd"', "abcd"),
    ("1 < 2", True),
    ('"a" < "b"', True),
    ("2 >= 3", False),
    ("1 == 1", True),
    ('1 == "1"', False),
    ("true != 1", True),
    ("nil == nil", True),
    ("!nil", True),
    ("!0", False),
    ('!""', False),
])
def test_operator_results(src, expected):
    assert value_of(src) == expected


def test_logical_operators_yield_deciding_operand():
    assert value_of('nil or "fallback"') == "fallback"
    assert value_of("0 or 1") == 0.0
    assert value_of("false and missing") is False
    assert value_of("1 and 2") == 2.0


def test_short_circuit_skips_right_side():
    # `missing` would raise UndefinedNameError if it were evaluated.
    assert value_of("true or missing") is True


@pytest.mark.parametrize("src", ['1 + "a"', '"a" - "b"', "-true", "1 < \"a\"", "nil * 2"])
def test_type_errors(src):
    assert isinstance(error_of(src), EaselTypeError)


def test_division_and_modulo_by_zero():
    err = error_of("1 / 0")
    assert isinstance(err, EaselArithmeticError)
    assert err.kind == "ArithmeticError"
    assert isinstance(error_of("5 % 0"), EaselArithmeticError)


def test_truthiness_and_equality_helpers():
    assert is_truthy(0.0) and is_truthy("")
    assert not is_truthy(None) and not is_truthy(False)
    assert not values_equal(True, 1.0)
    assert values_equal("a", "a")


# --- control flow ---

def test_if_else_chain():
    src = """
    let r
    let n = 5
    if n < 3 { r = "small" } else if n < 10 { r = "medium" } else { r = "large" }
    r
    """
    assert value_of(src) == "medium"


def test_while_loop_accumulates():
    src = """
    let i = 0
    let total = 0
    while i < 5 {
        i = i + 1
        total = total + i
    }
    total
    """
    assert value_of(src) == 15.0


def test_while_body_declarations_do_not_leak():
    env = StandardLibrary.root()
    res = run_src("let i = 0\nwhile i < 2 { let tmp = i\n i = i + 1 }", env)
    assert res.ok
    assert "tmp" not in env


# --- functions ---

def test_add_returns_sum():
    assert value_of("function add(a, b) { return a + b }\nadd(2, 3)") == 5.0


def test_fall_through_returns_nil():
    assert value_of("function f() { 1 }\nf()") is None


def test_closure_captures_defining_frame():
    src = """
    function make_counter() {
        let count = 0
        return function () {
            count = count + 1
            return count
        }
    }
    let c = make_counter()
    c()
    c()
    c()
    """
    assert value_of(src) == 3.0


def test_closures_see_later_updates_to_captured_binding():
    src = """
    let x = 1
    let get = function () { return x }
    x = 2
    get()
    """
    assert value_of(src) == 2.0


def test_recursion():
    src = """
    function fib(n) {
        if n < 2 { return n }
        return fib(n - 1) + fib(n - 2)
    }
    fib(10)
    """
    assert value_of(src) == 55.0


def test_return_inside_loop_exits_function():
    src = """
    function first_over(limit) {
        let i = 0
        while true {
            if i > limit { return i }
            i = i + 1
        }
    }
    first_over(3)
    """
    assert value_of(src) == 4.0


def test_top_level_return_ends_run_cleanly():
    env = StandardLibrary.root()
    res = run_src("let a = 1\nreturn a + 1\nlet b = 2", env)
    assert res.ok
    assert res.value == 2.0
    assert "b" not in env


def test_function_values():
    env = StandardLibrary.root()
    run_src("function f(x) { return x }", env)
    fn = env.get("f")
    assert isinstance(fn, Function)
    assert fn.name == "f"
    assert fn.arity == 1
    assert fn.closure is env


def test_call_non_callable():
    err = error_of("let x = 1\nx()")
    assert isinstance(err, EaselTypeError)
    assert "can only call functions" in err.message


def test_arity_mismatch():
    err = error_of("function f(a) { return a }\nf(1, 2)")
    assert isinstance(err, ArityError)
    assert (err.expected, err.got) == (1, 2)


def test_undefined_function_call():
    err = error_of("foo(1)")
    assert isinstance(err, UndefinedNameError)
    assert err.name == "foo"
    assert (err.line, err.col) == (1, 1)


def test_callee_evaluated_before_arguments():
    # The callee is evaluated first, so an undefined callee wins over a bad argument.
    err = error_of("nope(1 / 0)")
    assert isinstance(err, UndefinedNameError)


def test_runaway_recursion_raises_depth_error():
    err = error_of("function down(n) { return down(n + 1) }\ndown(0)")
    assert isinstance(err, RecursionDepthError)


def test_max_call_depth_is_configurable():
    src = "function down(n) { if n == 0 { return 0 }\n return down(n - 1) }\ndown(10)"
    res = run_src(src, interpreter=Interpreter(max_call_depth=5))
    assert isinstance(res.error, RecursionDepthError)
    res = run_src(src, interpreter=Interpreter(max_call_depth=20))
    assert res.ok
    assert res.value == 0.0


# --- error semantics ---

def test_fail_fast_keeps_earlier_side_effects():
    env = StandardLibrary.root()
    res = run_src("let a = 1\nlet b = a / 0\nlet c = 3", env)
    assert isinstance(res.error, EaselArithmeticError)
    assert env.get("a") == 1.0
    assert "b" not in env
    assert "c" not in env


def test_error_position_is_innermost_node():
    err = error_of('let x = 1\nlet y = (2 * "a")')
    assert isinstance(err, EaselTypeError)
    assert (err.line, err.col) == (2, 10)


def test_call_stack_kept_for_errors_inside_calls():
    interp = Interpreter()
    src = "function inner(x) { return x / 0 }\nfunction outer(y) { return inner(y) }\nouter(5)"
    res = run_src(src, interpreter=interp)
    assert isinstance(res.error, EaselArithmeticError)
    assert [f['name'] for f in interp.call_stack] == ["outer", "inner"]
    assert interp.call_stack[-1]['args'] == [5.0]


def test_recursion_just_below_call_depth_cap_succeeds():
    src = """
    function total(n) {
        if n == 0 {
            return 0
        } else {
            let rest = total(n - 1)
            return n + rest
        }
    }
    total(98)
    """
    # total(98) down to total(0) is 99 nested calls.
    assert value_of(src) == 4851.0


def test_recursion_at_call_depth_cap_fails_with_cap_message():
    err = error_of("function down(n) { return down(n + 1) }\ndown(0)")
    assert isinstance(err, RecursionDepthError)
    assert "maximum call depth of 100 exceeded" in err.message


def test_host_recursion_limit_restored_after_run():
    import sys
    before = sys.getrecursionlimit()
    run_src("function f(n) { if n > 0 { return f(n - 1) } }\nf(50)")
    assert sys.getrecursionlimit() == before


def test_statement_on_next_line_is_not_merged():
    env = StandardLibrary.root()
    res = run_src("let x = 1\n-1\n", env)
    assert res.ok
    assert env.get("x") == 1.0
    assert res.value == -1.0
