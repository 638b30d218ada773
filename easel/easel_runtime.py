# easel_runtime.py

import inspect
import math
import random
import re
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Literal, Optional

from easel.easel_lexer import scan
from easel.easel_parser import parse
from easel.easel_interpreter import Interpreter
from easel.easel_printer import Printer
from easel.easel_datatypes import (
    EaselArithmeticError, EaselRuntimeError, EaselTypeError, Environment,
    LexError, NativeFunction, ParseError, Stmt, Token, type_name,
)


# ===================================================================
# 1. The Standard Library
# ===================================================================

# The number grammar the lexer accepts, with an optional sign.
NUMBER_TEXT = re.compile(r"-?[0-9]+(\.[0-9]+)?")


def _expect_number(fn_name: str, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EaselTypeError(f"{fn_name} expects a number, got {type_name(value)}")
    return value


def native_from_method(name: str, member) -> NativeFunction:
    """Wraps a bound StandardLibrary method, reading its arity from the signature."""
    params = list(inspect.signature(member).parameters.values())
    wants_interpreter = any(
        p.kind == inspect.Parameter.KEYWORD_ONLY and p.name == "interpreter" for p in params
    )
    if any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in params):
        arity = None
    else:
        arity = sum(1 for p in params if p.kind == inspect.Parameter.POSITIONAL_OR_KEYWORD)
    return NativeFunction(name, member, arity, wants_interpreter)


class StandardLibrary:
    """Contains Python implementations for all Easel built-ins.

    Every method named `_<name>` is bound into the root environment as
    `<name>`. Arity is read from the method signature; a `*args` signature
    makes the built-in variadic. A built-in that needs the running
    interpreter declares a keyword-only `interpreter` parameter.
    """
    CONSTANTS = {
        "PI": math.pi,
        "E": math.e,
    }

    def __init__(self):
        self.printer = Printer()

    @classmethod
    def root(cls) -> Environment:
        """Builds a fresh root environment holding every built-in and constant."""
        return cls().bind(Environment())

    def bind(self, env: Environment) -> Environment:
        for name, value in self.CONSTANTS.items():
            env.define(name, value)
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                easel_name = name[1:]
                env.define(easel_name, native_from_method(easel_name, member))
        return env

    # --- Output ---
    def _print(self, *values, interpreter):
        message = " ".join(self.printer.display(v) for v in values)
        interpreter.side_effects.append({'topics': ['stdout'], 'message': message})
        return None

    # --- Conversion and reflection ---
    def _str(self, value): return self.printer.display(value)
    def _type(self, value): return type_name(value)

    def _num(self, value):
        if isinstance(value, bool):
            raise EaselTypeError("num expects a string or number, got boolean")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            text = value.strip()
            if not NUMBER_TEXT.fullmatch(text):
                raise EaselTypeError(f"cannot convert {self.printer.pformat(value)} to a number")
            return float(text)
        raise EaselTypeError(f"num expects a string or number, got {type_name(value)}")

    def _len(self, value):
        if not isinstance(value, str):
            raise EaselTypeError(f"len expects a string, got {type_name(value)}")
        return float(len(value))

    # --- Math ---
    def _abs(self, x): return abs(_expect_number("abs", x))
    # inf and nan have no integral part to take; they pass through unchanged.
    def _floor(self, x):
        x = _expect_number("floor", x)
        return float(math.floor(x)) if math.isfinite(x) else x

    def _ceil(self, x):
        x = _expect_number("ceil", x)
        return float(math.ceil(x)) if math.isfinite(x) else x

    def _round(self, x):
        # Halves round away from zero, not to even.
        x = _expect_number("round", x)
        if not math.isfinite(x):
            return x
        return float(Decimal(x).to_integral_value(rounding=ROUND_HALF_UP))

    def _pow(self, b, e):
        try:
            return math.pow(_expect_number("pow", b), _expect_number("pow", e))
        except (OverflowError, ValueError) as err:
            raise EaselArithmeticError(f"pow({self.printer.pformat(b)}, {self.printer.pformat(e)}): {err}")

    def _sqrt(self, x):
        if _expect_number("sqrt", x) < 0:
            raise EaselArithmeticError("sqrt of a negative number")
        return math.sqrt(x)

    def _min(self, *values):
        if not values:
            raise EaselTypeError("min expects at least one argument")
        return min(_expect_number("min", v) for v in values)

    def _max(self, *values):
        if not values:
            raise EaselTypeError("max expects at least one argument")
        return max(_expect_number("max", v) for v in values)

    def _random(self): return random.random()
    def _clock(self): return time.time()


# ===================================================================
# 2. Script execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of running one piece of source through every stage."""
    status: Literal['success', 'error']
    value: Any = None
    tokens: List[Token] = field(default_factory=list)
    statements: List[Stmt] = field(default_factory=list)
    environment: Optional[Environment] = None
    lex_error: Optional[LexError] = None
    parse_error: Optional[ParseError] = None
    runtime_error: Optional[EaselRuntimeError] = None
    error_message: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)

    @property
    def errors(self) -> List[Exception]:
        return [e for e in (self.lex_error, self.parse_error, self.runtime_error) if e is not None]

    @property
    def incomplete(self) -> bool:
        """True when the input stopped inside a string or an unclosed statement."""
        if self.lex_error is not None:
            return self.lex_error.unterminated
        if self.parse_error is not None:
            return self.parse_error.at_eof
        return False

    def format_error(self) -> str:
        """Formats the error message with line and column if available."""
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


class ScriptRunner:
    """Scans, parses, and executes Easel code, keeping the environment between scripts."""

    def __init__(self, environment: Optional[Environment] = None,
                 max_call_depth: int = Interpreter.DEFAULT_MAX_CALL_DEPTH):
        self.environment = environment if environment is not None else StandardLibrary.root()
        self.interpreter = Interpreter(max_call_depth=max_call_depth)

    def _format_error(self, e, source: str) -> str:
        msg = f"{e.kind}: {e.message}"
        if e.line is not None:
            msg = f"Error on line {e.line}, col {e.col}: {msg}"
            context = self._source_context(source, e.line, e.col)
            if context:
                msg = f"{msg}\n{context}"
        if isinstance(e, EaselRuntimeError):
            st = self._format_stacktrace()
            if st:
                msg += "\n" + st
        return msg

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            content = lines[i - 1]
            out.append(f"{prefix} {ln} | {content}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self, limit: int = 10) -> str:
        stack = self.interpreter.call_stack
        if not stack:
            return ""
        pf = Printer().pformat
        frames = []
        for frame in stack[-limit:]:
            args_s = " ".join(pf(a) for a in frame.get('args') or [])
            frame_str = f"({frame.get('name') or '<function>'}"
            if args_s:
                frame_str += f" {args_s}"
            frames.append(frame_str + ")")
        prefix = "... " if len(stack) > limit else ""
        return "Easel stacktrace: " + prefix + " ".join(frames)

    def handle_script(self, source_code: str, *, interactive: bool = False) -> ExecutionResult:
        """The main entry point to execute a script.

        In batch mode each stage works with whatever the previous stage
        produced, so statements parsed before a syntax error still run. In
        interactive mode a lex or parse error means nothing runs for this
        input and the environment is left as it was.
        """
        self.interpreter.side_effects.clear()
        messages = []

        # 1. Scan
        scanned = scan(source_code)
        if scanned.error is not None:
            messages.append(self._format_error(scanned.error, source_code))

        # 2. Parse
        parsed = parse(scanned.tokens)
        # Running out of tokens after a lex error is not a separate syntax problem.
        if parsed.error is not None and not (scanned.error is not None and parsed.error.at_eof):
            messages.append(self._format_error(parsed.error, source_code))

        result = ExecutionResult(
            status='success',
            tokens=scanned.tokens,
            statements=parsed.statements,
            environment=self.environment,
            lex_error=scanned.error,
            parse_error=parsed.error,
        )

        # 3. Evaluate
        if not (interactive and (scanned.error or parsed.error)):
            try:
                ran = self.interpreter.run(parsed.statements, self.environment)
            except Exception as e:
                messages.append(f"InternalError: {e}")
            else:
                self.environment = ran.environment
                result.environment = ran.environment
                result.value = ran.value
                if ran.error is not None:
                    result.runtime_error = ran.error
                    messages.append(self._format_error(ran.error, source_code))

        if messages:
            result.status = 'error'
            result.error_message = "\n".join(messages)
            self.interpreter.side_effects.append({'topics': ['stderr'], 'message': result.error_message})
        result.side_effects = list(self.interpreter.side_effects)
        return result
