from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List


class MonkeyError(Exception):
    """Base class for interpreter errors."""


ILLEGAL = "ILLEGAL"
EOF = "EOF"

# Identifiers + literals
IDENT = "IDENT"
INT = "INT"
STRING = "STRING"

# Operators
ASSIGN = "="
PLUS = "+"
MINUS = "-"
BANG = "!"
ASTERISK = "*"
SLASH = "/"
LT = "<"
GT = ">"
EQ = "=="
NOT_EQ = "!="

# Delimiters
COMMA = ","
SEMICOLON = ";"
LPAREN = "("
RPAREN = ")"
LBRACE = "{"
RBRACE = "}"
LBRACKET = "["
RBRACKET = "]"
COLON = ":"

# Keywords
FUNCTION = "FUNCTION"
LET = "LET"
IF = "IF"
ELSE = "ELSE"
TRUE = "TRUE"
FALSE = "FALSE"
RETURN = "RETURN"


@dataclass(frozen=True)
class Token:
    type: str
    literal: str
    line: int
    column: int


KEYWORDS: Dict[str, str] = {
    "fn": FUNCTION,
    "let": LET,
    "if": IF,
    "else": ELSE,
    "true": TRUE,
    "false": FALSE,
    "return": RETURN,
}

SYMBOLS: Dict[str, str] = {
    "=": ASSIGN,
    "+": PLUS,
    "-": MINUS,
    "!": BANG,
    "*": ASTERISK,
    "/": SLASH,
    "<": LT,
    ">": GT,
    ",": COMMA,
    ";": SEMICOLON,
    "(": LPAREN,
    ")": RPAREN,
    "{": LBRACE,
    "}": RBRACE,
    "[": LBRACKET,
    "]": RBRACKET,
    ":": COLON,
}

# Two-character operators, keyed by their first character.
DOUBLE_SYMBOLS: Dict[str, str] = {
    "==": EQ,
    "!=": NOT_EQ,
}


def lookup_ident(word: str) -> str:
    return KEYWORDS.get(word, IDENT)


class Lexer:
    def __init__(self, text: str, filename: str = "<string>") -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        while True:
            token = self.next_token()
            tokens_append(token)
            if token.type == EOF:
                return tokens

    def next_token(self) -> Token:
        self._skip_whitespace()
        if self._eof:
            return Token(EOF, "", self.line, self.column)

        line, col = self.line, self.column
        ch = self._peek()
        pair = self.text[self.index:self.index + 2]
        if pair in DOUBLE_SYMBOLS:
            self._advance()
            self._advance()
            return Token(DOUBLE_SYMBOLS[pair], pair, line, col)
        if ch in SYMBOLS:
            self._advance()
            return Token(SYMBOLS[ch], ch, line, col)
        if ch == '"':
            return self._consume_string()
        if self._is_letter(ch):
            return self._consume_identifier()
        if self._is_digit(ch):
            return self._consume_number()
        self._advance()
        return Token(ILLEGAL, ch, line, col)

    def _skip_whitespace(self) -> None:
        text = self.text
        n = len(text)
        _advance = self._advance
        while self.index < n and text[self.index] in " \t\r\n":
            _advance()

    def _consume_identifier(self) -> Token:
        line, col = self.line, self.column
        start = self.index
        while not self._eof and self._is_letter(self._peek()):
            self._advance()
        word = self.text[start:self.index]
        return Token(lookup_ident(word), word, line, col)

    def _consume_number(self) -> Token:
        line, col = self.line, self.column
        start = self.index
        while not self._eof and self._is_digit(self._peek()):
            self._advance()
        return Token(INT, self.text[start:self.index], line, col)

    def _consume_string(self) -> Token:
        line, col = self.line, self.column
        self._advance()  # consume opening quote
        chars: List[str] = []
        while not self._eof:
            ch = self._peek()
            if ch == '"':
                self._advance()
                return Token(STRING, "".join(chars), line, col)
            chars.append(ch)
            self._advance()
        # Unterminated literal: hand the remainder to the parser as ILLEGAL.
        return Token(ILLEGAL, '"' + "".join(chars), line, col)

    def _is_letter(self, ch: str) -> bool:
        return ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch == "_"

    def _is_digit(self, ch: str) -> bool:
        return "0" <= ch <= "9"

    @property
    def _eof(self) -> bool:
        return self.index >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.index]

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1
