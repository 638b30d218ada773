"""
Defines the core data types for the Easel language runtime.

This module provides the token and AST node classes produced by the lexer
and parser, the runtime value types the interpreter works with, the
Environment (scope chain), the error taxonomy, and the per-stage result
records that carry partial artifacts when a stage fails.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


# =================================================================
# Errors
# =================================================================

class EaselError(Exception):
    """Base class for every error raised by the Easel pipeline."""
    kind = "EaselError"

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col

    @property
    def position(self) -> Optional[Tuple[int, int]]:
        if self.line is None:
            return None
        return (self.line, self.col)

    def __str__(self) -> str:
        if self.line is None:
            return f"{self.kind}: {self.message}"
        return f"{self.kind}: {self.message} (line {self.line}, col {self.col})"


class LexError(EaselError):
    """A malformed lexeme: unrecognized character, bad escape, unterminated string."""
    kind = "LexError"

    def __init__(self, message: str, line: int, col: int, offset: int = 0, unterminated: bool = False):
        super().__init__(message, line, col)
        self.offset = offset
        # True when the input ran out inside a literal; a REPL can ask for more.
        self.unterminated = unterminated


class ParseError(EaselError):
    """A grammar violation. Carries what the parser expected and what it found."""
    kind = "ParseError"

    def __init__(self, expected: str, found: str, line: int, col: int, at_eof: bool = False):
        super().__init__(f"expected {expected}, found {found}", line, col)
        self.expected = expected
        self.found = found
        self.at_eof = at_eof


class EaselRuntimeError(EaselError):
    """Base class for errors raised while evaluating a program."""
    kind = "RuntimeError"


class UndefinedNameError(EaselRuntimeError):
    kind = "UndefinedNameError"

    def __init__(self, name: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(f"undefined name '{name}'", line, col)
        self.name = name


class EaselTypeError(EaselRuntimeError):
    kind = "TypeError"


class ArityError(EaselRuntimeError):
    kind = "ArityError"

    def __init__(self, callee: str, expected: int, got: int,
                 line: Optional[int] = None, col: Optional[int] = None):
        noun = "argument" if expected == 1 else "arguments"
        super().__init__(f"{callee} expects {expected} {noun}, got {got}", line, col)
        self.expected = expected
        self.got = got


class EaselArithmeticError(EaselRuntimeError):
    kind = "ArithmeticError"


class RecursionDepthError(EaselRuntimeError):
    kind = "RecursionDepthError"


# =================================================================
# Tokens
# =================================================================

class TokenCategory(enum.Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    LITERAL = "literal"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    EOF = "eof"


class TokenKind(enum.Enum):
    # Identifiers and literals
    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    # Keyword literals
    TRUE = "true"
    FALSE = "false"
    NIL = "nil"
    # Keywords
    LET = "let"
    FUNCTION = "function"
    IF = "if"
    ELSE = "else"
    WHILE = "while"
    RETURN = "return"
    AND = "and"
    OR = "or"
    # Operators
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    BANG = "!"
    BANG_EQUAL = "!="
    EQUAL = "="
    EQUAL_EQUAL = "=="
    LESS = "<"
    LESS_EQUAL = "<="
    GREATER = ">"
    GREATER_EQUAL = ">="
    # Punctuation
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    COMMA = ","
    SEMICOLON = ";"
    # Meta
    EOF = "eof"

    @property
    def category(self) -> TokenCategory:
        return _CATEGORIES[self]

    def __str__(self):
        return self.value


KEYWORDS: Dict[str, TokenKind] = {
    kind.value: kind for kind in (
        TokenKind.LET, TokenKind.FUNCTION, TokenKind.IF, TokenKind.ELSE,
        TokenKind.WHILE, TokenKind.RETURN, TokenKind.AND, TokenKind.OR,
        TokenKind.TRUE, TokenKind.FALSE, TokenKind.NIL,
    )
}

_CATEGORIES: Dict[TokenKind, TokenCategory] = {
    TokenKind.IDENTIFIER: TokenCategory.IDENTIFIER,
    TokenKind.NUMBER: TokenCategory.NUMBER,
    TokenKind.STRING: TokenCategory.STRING,
    TokenKind.TRUE: TokenCategory.LITERAL,
    TokenKind.FALSE: TokenCategory.LITERAL,
    TokenKind.NIL: TokenCategory.LITERAL,
    TokenKind.EOF: TokenCategory.EOF,
}
for _kind in TokenKind:
    if _kind in _CATEGORIES:
        continue
    if _kind.value in KEYWORDS:
        _CATEGORIES[_kind] = TokenCategory.KEYWORD
    elif _kind.value in "(){},;":
        _CATEGORIES[_kind] = TokenCategory.PUNCTUATION
    else:
        _CATEGORIES[_kind] = TokenCategory.OPERATOR


@dataclass(frozen=True)
class Token:
    """A classified lexeme with its decoded literal value and 1-based source position."""
    kind: TokenKind
    lexeme: str
    literal: Any
    line: int
    col: int

    def describe(self) -> str:
        """Human-readable form used in parse error messages."""
        if self.kind == TokenKind.EOF:
            return "end of input"
        if self.kind == TokenKind.STRING:
            return f"string {self.lexeme}"
        if self.kind in (TokenKind.IDENTIFIER, TokenKind.NUMBER):
            return f"{self.kind.value} '{self.lexeme}'"
        return f"'{self.lexeme}'"


# =================================================================
# AST nodes
# =================================================================
# Positions are excluded from equality so that two parses of the same
# program laid out differently compare equal.

@dataclass(frozen=True)
class Node:
    line: int = field(default=0, compare=False, kw_only=True)
    col: int = field(default=0, compare=False, kw_only=True)


class Expr(Node):
    pass


class Stmt(Node):
    pass


# --- Expressions ---

@dataclass(frozen=True)
class Literal(Expr):
    value: Any


@dataclass(frozen=True)
class Variable(Expr):
    name: str


@dataclass(frozen=True)
class Unary(Expr):
    operator: str
    operand: Expr


@dataclass(frozen=True)
class Binary(Expr):
    left: Expr
    operator: str
    right: Expr


@dataclass(frozen=True)
class Logical(Expr):
    """Short-circuiting `and` / `or`."""
    left: Expr
    operator: str
    right: Expr


@dataclass(frozen=True)
class Grouping(Expr):
    expression: Expr


@dataclass(frozen=True)
class Call(Expr):
    callee: Expr
    arguments: Tuple[Expr, ...]


@dataclass(frozen=True)
class FunctionLiteral(Expr):
    params: Tuple[str, ...]
    body: Tuple[Stmt, ...]


@dataclass(frozen=True)
class Assign(Expr):
    name: str
    value: Expr


# --- Statements ---

@dataclass(frozen=True)
class ExpressionStmt(Stmt):
    expression: Expr


@dataclass(frozen=True)
class LetStmt(Stmt):
    name: str
    initializer: Optional[Expr]


@dataclass(frozen=True)
class Block(Stmt):
    statements: Tuple[Stmt, ...]


@dataclass(frozen=True)
class IfStmt(Stmt):
    condition: Expr
    then_branch: Block
    else_branch: Optional[Stmt]


@dataclass(frozen=True)
class WhileStmt(Stmt):
    condition: Expr
    body: Block


@dataclass(frozen=True)
class FunctionDecl(Stmt):
    """Sugar for `let name = function (...) {...}`."""
    name: str
    function: FunctionLiteral


@dataclass(frozen=True)
class ReturnStmt(Stmt):
    value: Optional[Expr]


# =================================================================
# Environment
# =================================================================

class Environment:
    """A frame of name bindings linked to its enclosing frame.

    Closures keep a reference to the frame they were defined in, so a frame
    stays alive for as long as any function value still needs it.
    """
    def __init__(self, parent: Optional['Environment'] = None):
        self.bindings: Dict[str, Any] = {}
        self.parent = parent

    def define(self, name: str, value: Any) -> None:
        """Binds name in this frame, overwriting an existing binding here."""
        self.bindings[name] = value

    def find_owner(self, name: str) -> Optional['Environment']:
        """Finds the nearest frame in the chain that binds name."""
        env = self
        while env is not None:
            if name in env.bindings:
                return env
            env = env.parent
        return None

    def get(self, name: str) -> Any:
        owner = self.find_owner(name)
        if owner is None:
            raise UndefinedNameError(name)
        return owner.bindings[name]

    def assign(self, name: str, value: Any) -> None:
        """Rebinds name in the nearest frame that already binds it."""
        owner = self.find_owner(name)
        if owner is None:
            raise UndefinedNameError(name)
        owner.bindings[name] = value

    def child(self) -> 'Environment':
        return Environment(parent=self)

    def names(self) -> List[str]:
        """Names bound in this frame only."""
        return list(self.bindings.keys())

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment bindings=[{keys}]{parent_id}>"


# =================================================================
# Runtime values
# =================================================================

class EaselCallable:
    """Base class for values that can be called from Easel code."""
    name: Optional[str] = None

    @property
    def arity(self) -> Optional[int]:
        raise NotImplementedError


class Function(EaselCallable):
    """A user-defined function.

    This is a closure, bundling the function literal (parameters and body)
    with the environment in which it was defined.
    """
    def __init__(self, declaration: FunctionLiteral, closure: Environment, name: Optional[str] = None):
        self.declaration = declaration
        self.closure = closure
        self.name = name

    @property
    def arity(self) -> int:
        return len(self.declaration.params)

    def __repr__(self) -> str:
        return f"<function {self.name}>" if self.name else "<function>"

    def __eq__(self, other):
        if not isinstance(other, Function):
            return NotImplemented
        return self is other

    def __hash__(self):
        return id(self)


class NativeFunction(EaselCallable):
    """A built-in function implemented in Python.

    arity is None for variadic built-ins. When wants_interpreter is set the
    running Interpreter is passed as the `interpreter` keyword argument.
    """
    def __init__(self, name: str, fn: Callable[..., Any], arity: Optional[int], wants_interpreter: bool = False):
        self.name = name
        self.fn = fn
        self._arity = arity
        self.wants_interpreter = wants_interpreter

    @property
    def arity(self) -> Optional[int]:
        return self._arity

    def __repr__(self) -> str:
        return f"<native {self.name}>"


def type_name(value: Any) -> str:
    """The Easel-level name of a runtime value's type."""
    match value:
        case None:
            return "nil"
        case bool():
            return "boolean"
        case float() | int():
            return "number"
        case str():
            return "string"
        case EaselCallable():
            return "function"
    return type(value).__name__


# =================================================================
# Stage results
# =================================================================

@dataclass
class ScanResult:
    """Tokens scanned so far, plus the error that stopped the scan (if any)."""
    tokens: List[Token]
    error: Optional[LexError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ParseResult:
    """Statements completed so far, plus the error that stopped the parse (if any)."""
    statements: List[Stmt]
    error: Optional[ParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunResult:
    """The environment used for top-level bindings, plus the runtime error (if any)."""
    environment: Environment
    error: Optional[EaselRuntimeError] = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None
