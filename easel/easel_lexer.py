"""
Lexical analysis for Easel source text.

The Lexer is a single left-to-right pass over the source with at most one
character of lookahead. Tokens are appended to `Lexer.tokens` as they are
recognized, so when scanning stops on a malformed lexeme everything scanned
before it is still available. `scan()` wraps this in a ScanResult.
"""

from typing import List, Optional

from easel.easel_datatypes import KEYWORDS, LexError, ScanResult, Token, TokenKind


ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    '"': '"',
}

# Single-character lexemes that never start a longer one.
SINGLE_CHAR = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMICOLON,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "%": TokenKind.PERCENT,
}

# Lexemes that become a two-character operator when followed by '='.
WITH_EQUAL = {
    "!": (TokenKind.BANG, TokenKind.BANG_EQUAL),
    "=": (TokenKind.EQUAL, TokenKind.EQUAL_EQUAL),
    "<": (TokenKind.LESS, TokenKind.LESS_EQUAL),
    ">": (TokenKind.GREATER, TokenKind.GREATER_EQUAL),
}


class Lexer:
    """Converts Easel source text into a list of tokens."""
    EOF_CHAR = ""

    def __init__(self, source: str):
        self.source = source
        self.tokens: List[Token] = []
        # Offset of the first character of the lexeme being scanned and of the
        # next character to read.
        self.start = 0
        self.current = 0
        self.line = 1
        self.col = 1
        self.start_line = 1
        self.start_col = 1

    # --- character cursor ---

    def _is_at_end(self) -> bool:
        return self.current >= len(self.source)

    def _peek(self) -> str:
        if self._is_at_end():
            return Lexer.EOF_CHAR
        return self.source[self.current]

    def _peek_next(self) -> str:
        if self.current + 1 >= len(self.source):
            return Lexer.EOF_CHAR
        return self.source[self.current + 1]

    def _advance(self) -> str:
        ch = self.source[self.current]
        self.current += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _match(self, expected: str) -> bool:
        if self._peek() != expected:
            return False
        self._advance()
        return True

    def _error(self, message: str, unterminated: bool = False) -> LexError:
        return LexError(message, self.start_line, self.start_col, offset=self.start, unterminated=unterminated)

    def _add_token(self, kind: TokenKind, literal=None) -> None:
        lexeme = self.source[self.start:self.current]
        self.tokens.append(Token(kind, lexeme, literal, self.start_line, self.start_col))

    # --- scanning ---

    def scan_tokens(self) -> List[Token]:
        """Scans the whole source. Raises LexError on the first malformed lexeme."""
        while not self._is_at_end():
            self.start = self.current
            self.start_line, self.start_col = self.line, self.col
            self._scan_token()
        self.start = self.current
        self.start_line, self.start_col = self.line, self.col
        self._add_token(TokenKind.EOF)
        return self.tokens

    def _scan_token(self) -> None:
        ch = self._advance()

        if ch in " \t\r\n":
            return
        if ch in SINGLE_CHAR:
            self._add_token(SINGLE_CHAR[ch])
            return
        if ch in WITH_EQUAL:
            short, long = WITH_EQUAL[ch]
            self._add_token(long if self._match("=") else short)
            return
        if ch == "/":
            if self._match("/"):
                self._skip_line_comment()
            else:
                self._add_token(TokenKind.SLASH)
            return
        if ch == '"':
            self._scan_string()
            return
        if ch.isdigit() and ch.isascii():
            self._scan_number()
            return
        if self._is_identifier_start(ch):
            self._scan_identifier()
            return

        raise self._error(f"unexpected character {ch!r}")

    def _skip_line_comment(self) -> None:
        while self._peek() not in ("\n", Lexer.EOF_CHAR):
            self._advance()

    def _scan_string(self) -> None:
        chars = []
        while True:
            if self._is_at_end():
                raise self._error("unterminated string", unterminated=True)
            line, col, offset = self.line, self.col, self.current
            ch = self._advance()
            if ch == '"':
                break
            if ch == "\\":
                if self._is_at_end():
                    raise self._error("unterminated string", unterminated=True)
                esc = self._advance()
                if esc not in ESCAPES:
                    sequence = "\\" + esc
                    raise LexError(f"unknown escape sequence {sequence!r}", line, col, offset=offset)
                chars.append(ESCAPES[esc])
                continue
            chars.append(ch)
        self._add_token(TokenKind.STRING, "".join(chars))

    def _scan_number(self) -> None:
        while self._is_digit(self._peek()):
            self._advance()
        # A fractional part needs at least one digit after the dot.
        if self._peek() == "." and self._is_digit(self._peek_next()):
            self._advance()
            while self._is_digit(self._peek()):
                self._advance()
        text = self.source[self.start:self.current]
        self._add_token(TokenKind.NUMBER, float(text))

    def _scan_identifier(self) -> None:
        while self._is_identifier_part(self._peek()):
            self._advance()
        text = self.source[self.start:self.current]
        kind = KEYWORDS.get(text, TokenKind.IDENTIFIER)
        literal: Optional[bool] = None
        if kind == TokenKind.TRUE:
            literal = True
        elif kind == TokenKind.FALSE:
            literal = False
        self._add_token(kind, literal)

    @staticmethod
    def _is_digit(ch: str) -> bool:
        return ch != Lexer.EOF_CHAR and ch.isascii() and ch.isdigit()

    @staticmethod
    def _is_identifier_start(ch: str) -> bool:
        return ch.isascii() and (ch.isalpha() or ch == "_")

    @staticmethod
    def _is_identifier_part(ch: str) -> bool:
        return ch != Lexer.EOF_CHAR and ch.isascii() and (ch.isalnum() or ch == "_")


def scan(source: str) -> ScanResult:
    """Scans source into tokens, returning the tokens even when scanning fails."""
    lexer = Lexer(source)
    try:
        lexer.scan_tokens()
    except LexError as e:
        return ScanResult(lexer.tokens, e)
    return ScanResult(lexer.tokens)
