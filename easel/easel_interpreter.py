"""
The Easel tree-walking interpreter.

Statements are executed against an Environment; each one returns None, or a
ReturnValue when a `return` is unwinding out of a function body. Expressions
evaluate to plain Python values (float, str, bool, None) or to Function /
NativeFunction objects.
"""
import os
import sys
from typing import Any, Dict, List, Optional

from easel.easel_datatypes import (
    Assign, Binary, Block, Call, EaselArithmeticError, EaselCallable,
    EaselRuntimeError, EaselTypeError, Environment, Expr, ExpressionStmt,
    Function, FunctionDecl, FunctionLiteral, Grouping, IfStmt, LetStmt,
    Literal, Logical, NativeFunction, RecursionDepthError, ReturnStmt,
    RunResult, Stmt, Unary, Variable, WhileStmt, ArityError, type_name,
)


class ReturnValue:
    """Control-flow signal carrying the value of a `return` statement."""
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self):
        return f"<ReturnValue {self.value!r}>"


def is_return(x) -> bool:
    return isinstance(x, ReturnValue)


def unwrap_return(x):
    return x.value if is_return(x) else x


def is_truthy(value: Any) -> bool:
    """Only false and nil are falsy."""
    return not (value is None or value is False)


def values_equal(a: Any, b: Any) -> bool:
    """Equality that never crosses types, so true != 1 and nil == nil."""
    if type_name(a) != type_name(b):
        return False
    return a == b


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Interpreter:
    """The Easel execution engine."""
    DEFAULT_MAX_CALL_DEPTH = 100
    # Python frames one Easel call can take (nested blocks, if branches,
    # operator chains). The host recursion limit is raised by this much per
    # allowed call while a run is in progress.
    PYTHON_FRAMES_PER_CALL = 40

    def __init__(self, max_call_depth: int = DEFAULT_MAX_CALL_DEPTH):
        self.max_call_depth = max_call_depth
        self.call_stack: List[Dict[str, Any]] = []
        self.side_effects: List[Dict[str, Any]] = []
        self.current_node = None

    def _dbg(self, *parts):
        if os.environ.get("EASEL_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # =================================================================
    # Entry point
    # =================================================================

    def run(self, statements: List[Stmt], environment: Environment) -> RunResult:
        """Executes statements in order directly in environment.

        Stops at the first runtime error; bindings made by earlier statements
        stay in place. The environment is returned so a REPL can pass it back
        in with the next input.
        """
        self.call_stack.clear()
        value = None
        saved_limit = sys.getrecursionlimit()
        sys.setrecursionlimit(saved_limit + self.max_call_depth * self.PYTHON_FRAMES_PER_CALL)
        try:
            for stmt in statements:
                self.current_node = stmt
                if isinstance(stmt, ExpressionStmt):
                    value = self.evaluate(stmt.expression, environment)
                    continue
                result = self.execute(stmt, environment)
                if is_return(result):
                    # A top-level return ends the run cleanly.
                    value = result.value
                    break
        except EaselRuntimeError as e:
            self._dbg("run aborted", e.kind, e.message, "at", e.position)
            return RunResult(environment, e, None)
        except RecursionError:
            node = self.current_node
            err = RecursionDepthError("maximum recursion depth exceeded",
                                      getattr(node, "line", None), getattr(node, "col", None))
            return RunResult(environment, err, None)
        finally:
            sys.setrecursionlimit(saved_limit)
        self.call_stack.clear()
        return RunResult(environment, None, value)

    # =================================================================
    # Statements
    # =================================================================

    def execute(self, stmt: Stmt, env: Environment) -> Optional[ReturnValue]:
        self.current_node = stmt
        try:
            return self._execute(stmt, env)
        except EaselRuntimeError as e:
            if e.line is None:
                e.line, e.col = stmt.line, stmt.col
            raise

    def _execute(self, stmt: Stmt, env: Environment) -> Optional[ReturnValue]:
        match stmt:
            case ExpressionStmt(expression=expression):
                self.evaluate(expression, env)
                return None
            case LetStmt(name=name, initializer=initializer):
                value = None if initializer is None else self.evaluate(initializer, env)
                env.define(name, value)
                return None
            case FunctionDecl(name=name, function=literal):
                env.define(name, Function(literal, env, name))
                return None
            case Block(statements=statements):
                return self.execute_block(statements, env.child())
            case IfStmt(condition=condition, then_branch=then_branch, else_branch=else_branch):
                if is_truthy(self.evaluate(condition, env)):
                    return self.execute(then_branch, env)
                if else_branch is not None:
                    return self.execute(else_branch, env)
                return None
            case WhileStmt(condition=condition, body=body):
                while is_truthy(self.evaluate(condition, env)):
                    # Fresh frame per iteration so declarations do not leak across iterations.
                    result = self.execute_block(body.statements, env.child())
                    if is_return(result):
                        return result
                return None
            case ReturnStmt(value=value):
                return ReturnValue(None if value is None else self.evaluate(value, env))
        raise TypeError(f"unknown statement node {type(stmt).__name__}")

    def execute_block(self, statements, env: Environment) -> Optional[ReturnValue]:
        for stmt in statements:
            result = self.execute(stmt, env)
            if is_return(result):
                return result
        return None

    # =================================================================
    # Expressions
    # =================================================================

    def evaluate(self, expr: Expr, env: Environment) -> Any:
        try:
            return self._evaluate(expr, env)
        except EaselRuntimeError as e:
            # The innermost node stamps its position on errors raised without one.
            if e.line is None:
                e.line, e.col = expr.line, expr.col
            raise

    def _evaluate(self, expr: Expr, env: Environment) -> Any:
        match expr:
            case Literal(value=value):
                return value
            case Variable(name=name):
                return env.get(name)
            case Grouping(expression=inner):
                return self.evaluate(inner, env)
            case Unary(operator=op, operand=operand):
                return self._unary(op, self.evaluate(operand, env))
            case Binary(left=left, operator=op, right=right):
                lhs = self.evaluate(left, env)
                rhs = self.evaluate(right, env)
                return self._binary(op, lhs, rhs)
            case Logical(left=left, operator=op, right=right):
                lhs = self.evaluate(left, env)
                if op == "or":
                    return lhs if is_truthy(lhs) else self.evaluate(right, env)
                return self.evaluate(right, env) if is_truthy(lhs) else lhs
            case Assign(name=name, value=value_expr):
                value = self.evaluate(value_expr, env)
                env.assign(name, value)
                return value
            case FunctionLiteral():
                return Function(expr, env)
            case Call(callee=callee_expr, arguments=arg_exprs):
                callee = self.evaluate(callee_expr, env)
                args = [self.evaluate(a, env) for a in arg_exprs]
                return self.call(callee, args, expr)
        raise TypeError(f"unknown expression node {type(expr).__name__}")

    def _unary(self, op: str, operand: Any) -> Any:
        if op == "!":
            return not is_truthy(operand)
        if not _is_number(operand):
            raise EaselTypeError(f"operand of '{op}' must be a number, got {type_name(operand)}")
        return -operand

    def _binary(self, op: str, lhs: Any, rhs: Any) -> Any:
        match op:
            case "==":
                return values_equal(lhs, rhs)
            case "!=":
                return not values_equal(lhs, rhs)
            case "+":
                if _is_number(lhs) and _is_number(rhs):
                    return lhs + rhs
                if isinstance(lhs, str) and isinstance(rhs, str):
                    return lhs + rhs
                raise EaselTypeError(
                    f"operands of '+' must be two numbers or two strings, got {type_name(lhs)} and {type_name(rhs)}")
            case "<" | "<=" | ">" | ">=":
                comparable = (_is_number(lhs) and _is_number(rhs)) or (isinstance(lhs, str) and isinstance(rhs, str))
                if not comparable:
                    raise EaselTypeError(
                        f"operands of '{op}' must be two numbers or two strings, got {type_name(lhs)} and {type_name(rhs)}")
                if op == "<":
                    return lhs < rhs
                if op == "<=":
                    return lhs <= rhs
                if op == ">":
                    return lhs > rhs
                return lhs >= rhs

        if not (_is_number(lhs) and _is_number(rhs)):
            raise EaselTypeError(f"operands of '{op}' must be numbers, got {type_name(lhs)} and {type_name(rhs)}")
        match op:
            case "-":
                return lhs - rhs
            case "*":
                return lhs * rhs
            case "/":
                if rhs == 0:
                    raise EaselArithmeticError("division by zero")
                return lhs / rhs
            case "%":
                if rhs == 0:
                    raise EaselArithmeticError("modulo by zero")
                return lhs % rhs
        raise TypeError(f"unknown binary operator {op!r}")

    # =================================================================
    # Calls
    # =================================================================

    def _push_frame(self, name, args, call_site):
        self.call_stack.append({
            'name': name,
            'args': args,
            'call_site': (call_site.line, call_site.col) if call_site is not None else None,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def call(self, callee: Any, args: List[Any], call_site: Optional[Call] = None) -> Any:
        """Calls a Function or NativeFunction with already-evaluated arguments."""
        if not isinstance(callee, EaselCallable):
            raise EaselTypeError(f"can only call functions, got {type_name(callee)}")
        name = callee.name or "<function>"
        arity = callee.arity
        if arity is not None and len(args) != arity:
            raise ArityError(name, arity, len(args))
        if len(self.call_stack) >= self.max_call_depth:
            raise RecursionDepthError(f"maximum call depth of {self.max_call_depth} exceeded")

        self._dbg("call", name, "argc", len(args))
        self._push_frame(name, args, call_site)
        if isinstance(callee, NativeFunction):
            if callee.wants_interpreter:
                result = callee.fn(*args, interpreter=self)
            else:
                result = callee.fn(*args)
            self._pop_frame()
            return result

        call_env = callee.closure.child()
        for param, arg in zip(callee.declaration.params, args):
            call_env.define(param, arg)
        result = self.execute_block(callee.declaration.body, call_env)
        # Frames stay on the stack when an error unwinds, for the error stacktrace.
        self._pop_frame()
        return unwrap_return(result)
