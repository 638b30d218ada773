"""
Builds the Easel AST from a token list.

Statements are parsed by recursive descent, dispatching on the leading
token; expressions use precedence climbing with prefix (nud) and infix (led)
handlers registered per token kind. Each completed top-level statement is
appended to `Parser.ast`, so a ParseError leaves every statement before the
failing one in place. `parse()` wraps this in a ParseResult.
"""

import enum
from typing import Callable, Dict, List, Optional

from easel.easel_datatypes import (
    Assign, Binary, Block, Call, Expr, ExpressionStmt, FunctionDecl,
    FunctionLiteral, Grouping, IfStmt, LetStmt, Literal, Logical, ParseError,
    ParseResult, ReturnStmt, Stmt, Token, TokenKind, Unary, Variable, WhileStmt,
)


class Precedence(enum.IntEnum):
    LOWEST = 0
    ASSIGNMENT = 1
    OR = 2
    AND = 3
    EQUALITY = 4
    COMPARISON = 5
    TERM = 6
    FACTOR = 7
    UNARY = 8
    CALL = 9


PRECEDENCES: Dict[TokenKind, Precedence] = {
    TokenKind.EQUAL:         Precedence.ASSIGNMENT,
    TokenKind.OR:            Precedence.OR,
    TokenKind.AND:           Precedence.AND,
    TokenKind.EQUAL_EQUAL:   Precedence.EQUALITY,
    TokenKind.BANG_EQUAL:    Precedence.EQUALITY,
    TokenKind.LESS:          Precedence.COMPARISON,
    TokenKind.LESS_EQUAL:    Precedence.COMPARISON,
    TokenKind.GREATER:       Precedence.COMPARISON,
    TokenKind.GREATER_EQUAL: Precedence.COMPARISON,
    TokenKind.PLUS:          Precedence.TERM,
    TokenKind.MINUS:         Precedence.TERM,
    TokenKind.STAR:          Precedence.FACTOR,
    TokenKind.SLASH:         Precedence.FACTOR,
    TokenKind.PERCENT:       Precedence.FACTOR,
    TokenKind.LPAREN:        Precedence.CALL,
}


class Parser:
    ParseNud = Callable[["Parser"], Expr]
    ParseLed = Callable[["Parser", Expr], Expr]

    def __init__(self, tokens: List[Token]):
        self.tokens = list(tokens)
        self.position = 0
        self.ast: List[Stmt] = []
        # Open parentheses around the current expression; inside them a line
        # break does not end the expression.
        self.paren_depth = 0

        self.parse_nud_functions: Dict[TokenKind, Parser.ParseNud] = {}
        self.parse_led_functions: Dict[TokenKind, Parser.ParseLed] = {}

        self._register_nud(TokenKind.NUMBER, Parser.parse_literal)
        self._register_nud(TokenKind.STRING, Parser.parse_literal)
        self._register_nud(TokenKind.TRUE, Parser.parse_literal)
        self._register_nud(TokenKind.FALSE, Parser.parse_literal)
        self._register_nud(TokenKind.NIL, Parser.parse_literal)
        self._register_nud(TokenKind.IDENTIFIER, Parser.parse_variable)
        self._register_nud(TokenKind.LPAREN, Parser.parse_grouping)
        self._register_nud(TokenKind.MINUS, Parser.parse_unary)
        self._register_nud(TokenKind.BANG, Parser.parse_unary)
        self._register_nud(TokenKind.FUNCTION, Parser.parse_function_literal)

        for kind in (TokenKind.PLUS, TokenKind.MINUS, TokenKind.STAR, TokenKind.SLASH,
                     TokenKind.PERCENT, TokenKind.EQUAL_EQUAL, TokenKind.BANG_EQUAL,
                     TokenKind.LESS, TokenKind.LESS_EQUAL, TokenKind.GREATER,
                     TokenKind.GREATER_EQUAL):
            self._register_led(kind, Parser.parse_binary)
        self._register_led(TokenKind.AND, Parser.parse_logical)
        self._register_led(TokenKind.OR, Parser.parse_logical)
        self._register_led(TokenKind.EQUAL, Parser.parse_assign)
        self._register_led(TokenKind.LPAREN, Parser.parse_call)

    def _register_nud(self, kind: TokenKind, parse: "Parser.ParseNud") -> None:
        self.parse_nud_functions[kind] = parse

    def _register_led(self, kind: TokenKind, parse: "Parser.ParseLed") -> None:
        self.parse_led_functions[kind] = parse

    # --- token cursor ---

    def _peek(self) -> Token:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        # A partial scan has no EOF token; synthesize one after the last token.
        if self.tokens:
            last = self.tokens[-1]
            return Token(TokenKind.EOF, "", None, last.line, last.col + len(last.lexeme))
        return Token(TokenKind.EOF, "", None, 1, 1)

    def _previous(self) -> Optional[Token]:
        if self.position == 0:
            return None
        return self.tokens[self.position - 1]

    def _is_at_end(self) -> bool:
        return self._peek().kind == TokenKind.EOF

    def _check(self, kind: TokenKind) -> bool:
        return self._peek().kind == kind

    def _advance(self) -> Token:
        token = self._peek()
        if token.kind != TokenKind.EOF:
            self.position += 1
        return token

    def _match(self, *kinds: TokenKind) -> bool:
        if self._peek().kind in kinds:
            self._advance()
            return True
        return False

    def _error(self, expected: str, token: Optional[Token] = None) -> ParseError:
        token = token or self._peek()
        return ParseError(expected, token.describe(), token.line, token.col,
                          at_eof=token.kind == TokenKind.EOF)

    def _expect(self, kind: TokenKind, expected: Optional[str] = None) -> Token:
        if self._check(kind):
            return self._advance()
        raise self._error(expected or f"'{kind.value}'")

    def _expect_terminator(self) -> None:
        """Ends a simple statement: ';', or before '}' / end of input, or at a line break."""
        if self._match(TokenKind.SEMICOLON):
            return
        if self._check(TokenKind.RBRACE) or self._is_at_end():
            return
        previous = self._previous()
        if previous is not None and self._peek().line > previous.line:
            return
        raise self._error("';'")

    def _starts_new_line(self) -> bool:
        """True when the next token begins a later line outside any parentheses."""
        if self.paren_depth:
            return False
        previous = self._previous()
        return previous is not None and self._peek().line > previous.line

    def _ends_statement(self) -> bool:
        """True when the next token cannot continue the current statement's line."""
        if self._check(TokenKind.SEMICOLON) or self._check(TokenKind.RBRACE) or self._is_at_end():
            return True
        previous = self._previous()
        return previous is not None and self._peek().line > previous.line

    # --- statements ---

    def parse(self) -> List[Stmt]:
        """Parses every statement up to end of input. Raises ParseError on the first violation."""
        while not self._is_at_end():
            self.ast.append(self.parse_statement())
        return self.ast

    def parse_statement(self) -> Stmt:
        token = self._peek()
        match token.kind:
            case TokenKind.LET:
                return self.parse_let()
            case TokenKind.FUNCTION if self._peek_kind(1) == TokenKind.IDENTIFIER:
                return self.parse_function_decl()
            case TokenKind.IF:
                return self.parse_if()
            case TokenKind.WHILE:
                return self.parse_while()
            case TokenKind.RETURN:
                return self.parse_return()
            case TokenKind.LBRACE:
                return self.parse_block()
        return self.parse_expression_statement()

    def _peek_kind(self, distance: int) -> TokenKind:
        index = self.position + distance
        if index < len(self.tokens):
            return self.tokens[index].kind
        return TokenKind.EOF

    def parse_let(self) -> LetStmt:
        keyword = self._expect(TokenKind.LET)
        name = self._expect(TokenKind.IDENTIFIER, "variable name")
        initializer = None
        if self._match(TokenKind.EQUAL):
            initializer = self.parse_expression()
        self._expect_terminator()
        return LetStmt(name.lexeme, initializer, line=keyword.line, col=keyword.col)

    def parse_function_decl(self) -> FunctionDecl:
        keyword = self._expect(TokenKind.FUNCTION)
        name = self._expect(TokenKind.IDENTIFIER, "function name")
        function = self._parse_function_rest(keyword)
        return FunctionDecl(name.lexeme, function, line=keyword.line, col=keyword.col)

    def parse_if(self) -> IfStmt:
        keyword = self._expect(TokenKind.IF)
        condition = self.parse_expression()
        then_branch = self.parse_block()
        else_branch: Optional[Stmt] = None
        if self._match(TokenKind.ELSE):
            if self._check(TokenKind.IF):
                else_branch = self.parse_if()
            else:
                else_branch = self.parse_block()
        return IfStmt(condition, then_branch, else_branch, line=keyword.line, col=keyword.col)

    def parse_while(self) -> WhileStmt:
        keyword = self._expect(TokenKind.WHILE)
        condition = self.parse_expression()
        body = self.parse_block()
        return WhileStmt(condition, body, line=keyword.line, col=keyword.col)

    def parse_return(self) -> ReturnStmt:
        keyword = self._expect(TokenKind.RETURN)
        value = None
        if not self._ends_statement():
            value = self.parse_expression()
        self._expect_terminator()
        return ReturnStmt(value, line=keyword.line, col=keyword.col)

    def parse_block(self) -> Block:
        brace = self._expect(TokenKind.LBRACE)
        # Statements in a block follow the line rules even inside a call's arguments.
        outer_depth, self.paren_depth = self.paren_depth, 0
        statements = []
        while not self._check(TokenKind.RBRACE) and not self._is_at_end():
            statements.append(self.parse_statement())
        self._expect(TokenKind.RBRACE)
        self.paren_depth = outer_depth
        return Block(tuple(statements), line=brace.line, col=brace.col)

    def parse_expression_statement(self) -> ExpressionStmt:
        start = self._peek()
        expression = self.parse_expression()
        self._expect_terminator()
        return ExpressionStmt(expression, line=start.line, col=start.col)

    # --- expressions ---

    def parse_expression(self, precedence: Precedence = Precedence.LOWEST) -> Expr:
        token = self._peek()
        parse_nud = self.parse_nud_functions.get(token.kind)
        if parse_nud is None:
            raise self._error("expression")
        expression = parse_nud(self)
        while precedence < PRECEDENCES.get(self._peek().kind, Precedence.LOWEST):
            if self._starts_new_line():
                break
            parse_led = self.parse_led_functions[self._peek().kind]
            expression = parse_led(self, expression)
        return expression

    def parse_literal(self) -> Literal:
        token = self._advance()
        return Literal(token.literal, line=token.line, col=token.col)

    def parse_variable(self) -> Variable:
        token = self._advance()
        return Variable(token.lexeme, line=token.line, col=token.col)

    def parse_grouping(self) -> Grouping:
        paren = self._expect(TokenKind.LPAREN)
        self.paren_depth += 1
        expression = self.parse_expression()
        self._expect(TokenKind.RPAREN)
        self.paren_depth -= 1
        return Grouping(expression, line=paren.line, col=paren.col)

    def parse_unary(self) -> Unary:
        operator = self._advance()
        operand = self.parse_expression(Precedence.UNARY)
        return Unary(operator.lexeme, operand, line=operator.line, col=operator.col)

    def parse_function_literal(self) -> FunctionLiteral:
        keyword = self._expect(TokenKind.FUNCTION)
        return self._parse_function_rest(keyword)

    def _parse_function_rest(self, keyword: Token) -> FunctionLiteral:
        self._expect(TokenKind.LPAREN)
        params: List[str] = []
        if not self._check(TokenKind.RPAREN):
            while True:
                params.append(self._expect(TokenKind.IDENTIFIER, "parameter name").lexeme)
                if not self._match(TokenKind.COMMA):
                    break
        self._expect(TokenKind.RPAREN)
        body = self.parse_block()
        return FunctionLiteral(tuple(params), body.statements, line=keyword.line, col=keyword.col)

    def parse_binary(self, left: Expr) -> Binary:
        operator = self._advance()
        right = self.parse_expression(PRECEDENCES[operator.kind])
        return Binary(left, operator.lexeme, right, line=left.line, col=left.col)

    def parse_logical(self, left: Expr) -> Logical:
        operator = self._advance()
        right = self.parse_expression(PRECEDENCES[operator.kind])
        return Logical(left, operator.lexeme, right, line=left.line, col=left.col)

    def parse_assign(self, left: Expr) -> Assign:
        equals = self._peek()
        if not isinstance(left, Variable):
            raise self._error("assignment target before '='", equals)
        self._advance()
        # Right-associative: a = b = c parses as a = (b = c).
        value = self.parse_expression(Precedence.LOWEST)
        return Assign(left.name, value, line=left.line, col=left.col)

    def parse_call(self, callee: Expr) -> Call:
        self._expect(TokenKind.LPAREN)
        self.paren_depth += 1
        arguments: List[Expr] = []
        if not self._check(TokenKind.RPAREN):
            while True:
                arguments.append(self.parse_expression())
                if not self._match(TokenKind.COMMA):
                    break
        self._expect(TokenKind.RPAREN, "')' after arguments")
        self.paren_depth -= 1
        return Call(callee, tuple(arguments), line=callee.line, col=callee.col)


def parse(tokens: List[Token]) -> ParseResult:
    """Parses tokens into statements, returning the completed statements even when parsing fails."""
    parser = Parser(tokens)
    try:
        parser.parse()
    except ParseError as e:
        return ParseResult(parser.ast, e)
    return ParseResult(parser.ast)
