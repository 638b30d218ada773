"""
A pretty-printer for Easel syntax trees and runtime values.

pformat() renders AST nodes back into Easel source that scans and parses to
an equivalent tree, and renders runtime values the way the REPL echoes them
(strings quoted). display() is the form `print` and `str` use (strings bare).
"""
import collections.abc
from decimal import Decimal

from easel.easel_datatypes import (
    Assign, Binary, Block, Call, ExpressionStmt, Function, FunctionDecl,
    FunctionLiteral, Grouping, IfStmt, LetStmt, Literal, Logical,
    NativeFunction, ReturnStmt, Unary, Variable, WhileStmt,
)

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r", "\0": "\\0"}

# Scans back to an infinite number literal; the language has no name for inf.
INFINITE_LITERAL = "1" + "0" * 309


def format_number(value) -> str:
    """Formats a number without a trailing '.0' and without exponent notation."""
    if value != value:
        return "nan"
    if value in (float("inf"), float("-inf")):
        return "inf" if value > 0 else "-inf"
    if float(value).is_integer():
        return str(int(value))
    text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    return text


def quote_string(value: str) -> str:
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in value) + '"'


class Printer:
    """Formats Easel objects into readable, valid Easel source strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def display(self, value) -> str:
        """The text `print` writes for a value: strings appear without quotes."""
        if isinstance(value, str):
            return value
        return self.pformat(value)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # A program is a sequence of statements.
        if isinstance(obj, collections.abc.Sequence) and not isinstance(obj, str):
            return self._pformat_program
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_number,
            float: self._pformat_number,
            bool: self._pformat_bool,
            type(None): self._pformat_nil,
            Function: self._pformat_function_value,
            NativeFunction: self._pformat_native,
            # Expressions
            Literal: self._pformat_literal,
            Variable: self._pformat_variable,
            Unary: self._pformat_unary,
            Binary: self._pformat_binary,
            Logical: self._pformat_binary,
            Grouping: self._pformat_grouping,
            Call: self._pformat_call,
            FunctionLiteral: self._pformat_function_literal,
            Assign: self._pformat_assign,
            # Statements
            ExpressionStmt: self._pformat_expression_stmt,
            LetStmt: self._pformat_let,
            Block: self._pformat_block,
            IfStmt: self._pformat_if,
            WhileStmt: self._pformat_while,
            FunctionDecl: self._pformat_function_decl,
            ReturnStmt: self._pformat_return,
        }

    # --- values ---

    def _pformat_str(self, obj, level):
        return quote_string(obj)

    def _pformat_number(self, obj, level):
        return format_number(obj)

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_nil(self, obj, level):
        return 'nil'

    def _pformat_function_value(self, obj, level):
        return f"<function {obj.name}>" if obj.name else "<function>"

    def _pformat_native(self, obj, level):
        return f"<native {obj.name}>"

    # --- expressions ---

    def _pformat_literal(self, obj, level):
        if obj.value == float("inf"):
            return INFINITE_LITERAL
        return self.pformat(obj.value, level)

    def _pformat_variable(self, obj, level):
        return obj.name

    def _pformat_unary(self, obj, level):
        return f"{obj.operator}{self.pformat(obj.operand, level)}"

    def _pformat_binary(self, obj, level):
        return f"{self.pformat(obj.left, level)} {obj.operator} {self.pformat(obj.right, level)}"

    def _pformat_grouping(self, obj, level):
        return f"({self.pformat(obj.expression, level)})"

    def _pformat_call(self, obj, level):
        args = ", ".join(self.pformat(a, level) for a in obj.arguments)
        return f"{self.pformat(obj.callee, level)}({args})"

    def _pformat_function_literal(self, obj, level):
        return f"function ({', '.join(obj.params)}) {self._pformat_body(obj.body, level)}"

    def _pformat_assign(self, obj, level):
        return f"{obj.name} = {self.pformat(obj.value, level)}"

    # --- statements ---

    def _pformat_program(self, obj, level):
        return "\n".join(self.pformat(stmt, level) for stmt in obj)

    def _pformat_expression_stmt(self, obj, level):
        return f"{self.pformat(obj.expression, level)};"

    def _pformat_let(self, obj, level):
        if obj.initializer is None:
            return f"let {obj.name};"
        return f"let {obj.name} = {self.pformat(obj.initializer, level)};"

    def _pformat_body(self, statements, level):
        if not statements:
            return "{}"
        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        lines = [inner_indent + self.pformat(stmt, level + 1) for stmt in statements]
        return "{\n" + "\n".join(lines) + f"\n{outer_indent}}}"

    def _pformat_block(self, obj, level):
        return self._pformat_body(obj.statements, level)

    def _pformat_if(self, obj, level):
        out = f"if {self.pformat(obj.condition, level)} {self._pformat_block(obj.then_branch, level)}"
        if obj.else_branch is not None:
            out += f" else {self.pformat(obj.else_branch, level)}"
        return out

    def _pformat_while(self, obj, level):
        return f"while {self.pformat(obj.condition, level)} {self._pformat_block(obj.body, level)}"

    def _pformat_function_decl(self, obj, level):
        fn = obj.function
        return f"function {obj.name}({', '.join(fn.params)}) {self._pformat_body(fn.body, level)}"

    def _pformat_return(self, obj, level):
        if obj.value is None:
            return "return;"
        return f"return {self.pformat(obj.value, level)};"
