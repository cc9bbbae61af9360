from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from lexer import (
    ASSIGN,
    ASTERISK,
    BANG,
    COMMA,
    ELSE,
    EOF,
    EQ,
    FALSE,
    FUNCTION,
    GT,
    IDENT,
    IF,
    INT,
    LBRACE,
    LET,
    LPAREN,
    LT,
    MINUS,
    MonkeyError,
    NOT_EQ,
    PLUS,
    RBRACE,
    RETURN,
    RPAREN,
    SEMICOLON,
    SLASH,
    STRING,
    TRUE,
    Lexer,
    Token,
)


INT64_MAX = int(np.iinfo(np.int64).max)


@dataclass(frozen=True)
class Node:
    token: Token

    def token_literal(self) -> str:
        return self.token.literal


class Statement(Node):
    pass


class Expression(Node):
    pass


def _render_statements(statements: Sequence[Statement]) -> str:
    # Adjacent statements need a terminator so that, for example, `a` followed
    # by `-b` does not re-parse as `a - b`.
    parts: List[str] = []
    last = len(statements) - 1
    for i, statement in enumerate(statements):
        text = str(statement)
        if i < last and not text.endswith(";"):
            text += ";"
        parts.append(text)
    return " ".join(parts)


@dataclass(frozen=True)
class Program(Node):
    statements: Tuple[Statement, ...]

    def token_literal(self) -> str:
        if self.statements:
            return self.statements[0].token_literal()
        return ""

    def __str__(self) -> str:
        return _render_statements(self.statements)


@dataclass(frozen=True)
class Identifier(Expression):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class LetStatement(Statement):
    name: Identifier
    value: Expression

    def __str__(self) -> str:
        return f"{self.token_literal()} {self.name} = {self.value};"


@dataclass(frozen=True)
class ReturnStatement(Statement):
    value: Expression

    def __str__(self) -> str:
        return f"{self.token_literal()} {self.value};"


@dataclass(frozen=True)
class ExpressionStatement(Statement):
    expression: Expression

    def __str__(self) -> str:
        return str(self.expression)


@dataclass(frozen=True)
class BlockStatement(Statement):
    statements: Tuple[Statement, ...]

    def __str__(self) -> str:
        if not self.statements:
            return "{ }"
        return "{ " + _render_statements(self.statements) + " }"


@dataclass(frozen=True)
class IntegerLiteral(Expression):
    value: int

    def __str__(self) -> str:
        return self.token.literal


@dataclass(frozen=True)
class BooleanLiteral(Expression):
    value: bool

    def __str__(self) -> str:
        return self.token.literal


@dataclass(frozen=True)
class StringLiteral(Expression):
    value: str

    def __str__(self) -> str:
        return f'"{self.value}"'


@dataclass(frozen=True)
class PrefixExpression(Expression):
    operator: str
    operand: Expression

    def __str__(self) -> str:
        return f"({self.operator}{self.operand})"


@dataclass(frozen=True)
class InfixExpression(Expression):
    left: Expression
    operator: str
    right: Expression

    def __str__(self) -> str:
        return f"({self.left} {self.operator} {self.right})"


@dataclass(frozen=True)
class IfExpression(Expression):
    condition: Expression
    consequence: BlockStatement
    alternative: Optional[BlockStatement] = None

    def __str__(self) -> str:
        text = f"if ({self.condition}) {self.consequence}"
        if self.alternative is not None:
            text += f" else {self.alternative}"
        return text


@dataclass(frozen=True)
class FunctionLiteral(Expression):
    parameters: Tuple[Identifier, ...]
    body: BlockStatement

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.parameters)
        return f"{self.token_literal()}({params}) {self.body}"


@dataclass(frozen=True)
class CallExpression(Expression):
    function: Expression
    arguments: Tuple[Expression, ...]

    def __str__(self) -> str:
        args = ", ".join(str(a) for a in self.arguments)
        return f"{self.function}({args})"


@dataclass(frozen=True)
class ParseDiagnostic:
    message: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"


class MonkeyParseError(MonkeyError):
    """Raised by convenience entry points when a program has syntax errors."""

    def __init__(self, diagnostics: Sequence[ParseDiagnostic]) -> None:
        self.diagnostics = list(diagnostics)
        super().__init__("\n".join(str(d) for d in self.diagnostics))


# Operator precedences, lowest to highest.
LOWEST = 1
EQUALS = 2       # ==
LESSGREATER = 3  # > or <
SUM = 4          # +
PRODUCT = 5      # *
PREFIX = 6       # -X or !X
CALL = 7         # myFunction(X)

PRECEDENCES: Dict[str, int] = {
    EQ: EQUALS,
    NOT_EQ: EQUALS,
    LT: LESSGREATER,
    GT: LESSGREATER,
    PLUS: SUM,
    MINUS: SUM,
    SLASH: PRODUCT,
    ASTERISK: PRODUCT,
    LPAREN: CALL,
}

PrefixParseFn = Callable[[], Optional[Expression]]
InfixParseFn = Callable[[Expression], Optional[Expression]]


class Parser:
    """Pratt parser over a pull-based token source.

    The source only needs a ``next_token()`` method; ``Lexer`` is the usual
    one. Syntax errors never raise: they are collected in ``errors`` (plain
    messages) and ``diagnostics`` (messages with positions) while parsing
    carries on with the next statement.
    """

    def __init__(self, lexer: Lexer) -> None:
        self.lexer = lexer
        self.errors: List[str] = []
        self.diagnostics: List[ParseDiagnostic] = []

        self.prefix_parse_fns: Dict[str, PrefixParseFn] = {
            IDENT: self._parse_identifier,
            INT: self._parse_integer_literal,
            STRING: self._parse_string_literal,
            TRUE: self._parse_boolean,
            FALSE: self._parse_boolean,
            BANG: self._parse_prefix_expression,
            MINUS: self._parse_prefix_expression,
            LPAREN: self._parse_grouped_expression,
            IF: self._parse_if_expression,
            FUNCTION: self._parse_function_literal,
        }
        self.infix_parse_fns: Dict[str, InfixParseFn] = {
            PLUS: self._parse_infix_expression,
            MINUS: self._parse_infix_expression,
            SLASH: self._parse_infix_expression,
            ASTERISK: self._parse_infix_expression,
            EQ: self._parse_infix_expression,
            NOT_EQ: self._parse_infix_expression,
            LT: self._parse_infix_expression,
            GT: self._parse_infix_expression,
            LPAREN: self._parse_call_expression,
        }

        # Prime both cur_token and peek_token.
        self.cur_token: Token = Token(EOF, "", 1, 1)
        self.peek_token: Token = lexer.next_token()
        self._next_token()

    def parse_program(self) -> Program:
        start = self.cur_token
        statements: List[Statement] = []
        while not self._cur_token_is(EOF):
            statement = self._parse_statement()
            if statement is not None:
                statements.append(statement)
            else:
                self._synchronize()
            self._next_token()
        return Program(token=start, statements=tuple(statements))

    def _next_token(self) -> None:
        self.cur_token = self.peek_token
        self.peek_token = self.lexer.next_token()

    def _synchronize(self) -> None:
        while not (
            self._cur_token_is(SEMICOLON)
            or self._cur_token_is(EOF)
            or self._cur_token_is(RBRACE)
            or self._peek_token_is(RBRACE)
        ):
            self._next_token()

    def _parse_statement(self) -> Optional[Statement]:
        token_type = self.cur_token.type
        if token_type == LET:
            return self._parse_let_statement()
        if token_type == RETURN:
            return self._parse_return_statement()
        return self._parse_expression_statement()

    def _parse_let_statement(self) -> Optional[LetStatement]:
        keyword = self.cur_token
        if not self._expect_peek(IDENT):
            return None
        name = Identifier(token=self.cur_token, name=self.cur_token.literal)
        if not self._expect_peek(ASSIGN):
            return None
        self._next_token()
        value = self._parse_expression(LOWEST)
        if value is None:
            return None
        if self._peek_token_is(SEMICOLON):
            self._next_token()
        return LetStatement(token=keyword, name=name, value=value)

    def _parse_return_statement(self) -> Optional[ReturnStatement]:
        keyword = self.cur_token
        self._next_token()
        value = self._parse_expression(LOWEST)
        if value is None:
            return None
        if self._peek_token_is(SEMICOLON):
            self._next_token()
        return ReturnStatement(token=keyword, value=value)

    def _parse_expression_statement(self) -> Optional[ExpressionStatement]:
        start = self.cur_token
        expression = self._parse_expression(LOWEST)
        if expression is None:
            return None
        if self._peek_token_is(SEMICOLON):
            self._next_token()
        return ExpressionStatement(token=start, expression=expression)

    def _parse_block_statement(self) -> Optional[BlockStatement]:
        opening = self.cur_token
        statements: List[Statement] = []
        self._next_token()
        while not self._cur_token_is(RBRACE):
            if self._cur_token_is(EOF):
                self._record_error(f"expected next token to be {RBRACE}, got {EOF} instead", self.cur_token)
                return None
            statement = self._parse_statement()
            if statement is not None:
                statements.append(statement)
            else:
                self._synchronize()
                if self._cur_token_is(RBRACE):
                    break
            self._next_token()
        return BlockStatement(token=opening, statements=tuple(statements))

    def _parse_expression(self, precedence: int) -> Optional[Expression]:
        prefix = self.prefix_parse_fns.get(self.cur_token.type)
        if prefix is None:
            self._record_error(f"no prefix parse function for {self.cur_token.type} found", self.cur_token)
            return None
        left = prefix()
        if left is None:
            return None

        while not self._peek_token_is(SEMICOLON) and precedence < self._peek_precedence():
            infix = self.infix_parse_fns.get(self.peek_token.type)
            if infix is None:
                return left
            self._next_token()
            left = infix(left)
            if left is None:
                return None
        return left

    def _parse_identifier(self) -> Optional[Expression]:
        return Identifier(token=self.cur_token, name=self.cur_token.literal)

    def _parse_integer_literal(self) -> Optional[Expression]:
        literal = self.cur_token.literal
        # A leading zero makes the literal octal, so "010" is 8 and "08" is rejected.
        base = 8 if len(literal) > 1 and literal.startswith("0") else 10
        try:
            value = int(literal, base)
        except ValueError:
            value = None
        if value is None or value > INT64_MAX:
            self._record_error(f'could not parse "{literal}" as an integer', self.cur_token)
            return None
        return IntegerLiteral(token=self.cur_token, value=value)

    def _parse_string_literal(self) -> Optional[Expression]:
        return StringLiteral(token=self.cur_token, value=self.cur_token.literal)

    def _parse_boolean(self) -> Optional[Expression]:
        return BooleanLiteral(token=self.cur_token, value=self._cur_token_is(TRUE))

    def _parse_prefix_expression(self) -> Optional[Expression]:
        operator = self.cur_token
        self._next_token()
        operand = self._parse_expression(PREFIX)
        if operand is None:
            return None
        return PrefixExpression(token=operator, operator=operator.literal, operand=operand)

    def _parse_infix_expression(self, left: Expression) -> Optional[Expression]:
        operator = self.cur_token
        precedence = self._cur_precedence()
        self._next_token()
        right = self._parse_expression(precedence)
        if right is None:
            return None
        return InfixExpression(token=operator, left=left, operator=operator.literal, right=right)

    def _parse_grouped_expression(self) -> Optional[Expression]:
        self._next_token()
        expression = self._parse_expression(LOWEST)
        if expression is None or not self._expect_peek(RPAREN):
            return None
        return expression

    def _parse_if_expression(self) -> Optional[Expression]:
        keyword = self.cur_token
        if not self._expect_peek(LPAREN):
            return None
        self._next_token()
        condition = self._parse_expression(LOWEST)
        if condition is None or not self._expect_peek(RPAREN):
            return None
        if not self._expect_peek(LBRACE):
            return None
        consequence = self._parse_block_statement()
        if consequence is None:
            return None

        alternative: Optional[BlockStatement] = None
        if self._peek_token_is(ELSE):
            self._next_token()
            if not self._expect_peek(LBRACE):
                return None
            alternative = self._parse_block_statement()
            if alternative is None:
                return None
        return IfExpression(token=keyword, condition=condition, consequence=consequence, alternative=alternative)

    def _parse_function_literal(self) -> Optional[Expression]:
        keyword = self.cur_token
        if not self._expect_peek(LPAREN):
            return None
        parameters = self._parse_function_parameters()
        if parameters is None:
            return None
        if not self._expect_peek(LBRACE):
            return None
        body = self._parse_block_statement()
        if body is None:
            return None
        return FunctionLiteral(token=keyword, parameters=tuple(parameters), body=body)

    def _parse_function_parameters(self) -> Optional[List[Identifier]]:
        parameters: List[Identifier] = []
        if self._peek_token_is(RPAREN):
            self._next_token()
            return parameters
        if not self._expect_peek(IDENT):
            return None
        parameters.append(Identifier(token=self.cur_token, name=self.cur_token.literal))
        while self._peek_token_is(COMMA):
            self._next_token()
            if not self._expect_peek(IDENT):
                return None
            parameters.append(Identifier(token=self.cur_token, name=self.cur_token.literal))
        if not self._expect_peek(RPAREN):
            return None
        return parameters

    def _parse_call_expression(self, function: Expression) -> Optional[Expression]:
        opening = self.cur_token
        arguments = self._parse_expression_list(RPAREN)
        if arguments is None:
            return None
        return CallExpression(token=opening, function=function, arguments=tuple(arguments))

    def _parse_expression_list(self, end: str) -> Optional[List[Expression]]:
        items: List[Expression] = []
        if self._peek_token_is(end):
            self._next_token()
            return items
        self._next_token()
        item = self._parse_expression(LOWEST)
        if item is None:
            return None
        items.append(item)
        while self._peek_token_is(COMMA):
            self._next_token()
            self._next_token()
            item = self._parse_expression(LOWEST)
            if item is None:
                return None
            items.append(item)
        if not self._expect_peek(end):
            return None
        return items

    def _cur_token_is(self, token_type: str) -> bool:
        return self.cur_token.type == token_type

    def _peek_token_is(self, token_type: str) -> bool:
        return self.peek_token.type == token_type

    def _expect_peek(self, token_type: str) -> bool:
        if self._peek_token_is(token_type):
            self._next_token()
            return True
        self._record_error(
            f"expected next token to be {token_type}, got {self.peek_token.type} instead",
            self.peek_token,
        )
        return False

    def _peek_precedence(self) -> int:
        return PRECEDENCES.get(self.peek_token.type, LOWEST)

    def _cur_precedence(self) -> int:
        return PRECEDENCES.get(self.cur_token.type, LOWEST)

    def _record_error(self, message: str, token: Token) -> None:
        self.errors.append(message)
        self.diagnostics.append(ParseDiagnostic(message=message, line=token.line, column=token.column))


def parse(source: str, filename: str = "<string>") -> Tuple[Program, List[ParseDiagnostic]]:
    parser = Parser(Lexer(source, filename))
    program = parser.parse_program()
    return program, parser.diagnostics
