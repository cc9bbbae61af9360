"""Lexer tests: token kinds, literals and positions."""

from lexer import (
    ASSIGN,
    ASTERISK,
    BANG,
    COLON,
    COMMA,
    ELSE,
    EOF,
    EQ,
    FALSE,
    FUNCTION,
    GT,
    IDENT,
    IF,
    ILLEGAL,
    INT,
    LBRACE,
    LBRACKET,
    LET,
    LPAREN,
    LT,
    MINUS,
    NOT_EQ,
    PLUS,
    RBRACE,
    RBRACKET,
    RETURN,
    RPAREN,
    SEMICOLON,
    SLASH,
    STRING,
    TRUE,
    Lexer,
    lookup_ident,
)


def _kinds_and_literals(source):
    return [(t.type, t.literal) for t in Lexer(source).tokenize()]


class TestNextToken:
    def test_program_tokens(self):
        source = """let five = 5;
let add = fn(x, y) {
  x + y;
};
let result = add(five, 10);
!-/*5;
5 < 10 > 5;
if (5 < 10) {
    return true;
} else {
    return false;
}
10 == 10;
10 != 9;
"foobar"
"foo bar"
[1, 2];
{"foo": "bar"}
"""
        expected = [
            (LET, "let"), (IDENT, "five"), (ASSIGN, "="), (INT, "5"), (SEMICOLON, ";"),
            (LET, "let"), (IDENT, "add"), (ASSIGN, "="), (FUNCTION, "fn"), (LPAREN, "("),
            (IDENT, "x"), (COMMA, ","), (IDENT, "y"), (RPAREN, ")"), (LBRACE, "{"),
            (IDENT, "x"), (PLUS, "+"), (IDENT, "y"), (SEMICOLON, ";"), (RBRACE, "}"), (SEMICOLON, ";"),
            (LET, "let"), (IDENT, "result"), (ASSIGN, "="), (IDENT, "add"), (LPAREN, "("),
            (IDENT, "five"), (COMMA, ","), (INT, "10"), (RPAREN, ")"), (SEMICOLON, ";"),
            (BANG, "!"), (MINUS, "-"), (SLASH, "/"), (ASTERISK, "*"), (INT, "5"), (SEMICOLON, ";"),
            (INT, "5"), (LT, "<"), (INT, "10"), (GT, ">"), (INT, "5"), (SEMICOLON, ";"),
            (IF, "if"), (LPAREN, "("), (INT, "5"), (LT, "<"), (INT, "10"), (RPAREN, ")"), (LBRACE, "{"),
            (RETURN, "return"), (TRUE, "true"), (SEMICOLON, ";"),
            (RBRACE, "}"), (ELSE, "else"), (LBRACE, "{"),
            (RETURN, "return"), (FALSE, "false"), (SEMICOLON, ";"),
            (RBRACE, "}"),
            (INT, "10"), (EQ, "=="), (INT, "10"), (SEMICOLON, ";"),
            (INT, "10"), (NOT_EQ, "!="), (INT, "9"), (SEMICOLON, ";"),
            (STRING, "foobar"),
            (STRING, "foo bar"),
            (LBRACKET, "["), (INT, "1"), (COMMA, ","), (INT, "2"), (RBRACKET, "]"), (SEMICOLON, ";"),
            (LBRACE, "{"), (STRING, "foo"), (COLON, ":"), (STRING, "bar"), (RBRACE, "}"),
            (EOF, ""),
        ]
        assert _kinds_and_literals(source) == expected

    def test_eof_repeats(self):
        lexer = Lexer("x")
        assert lexer.next_token().type == IDENT
        assert lexer.next_token().type == EOF
        assert lexer.next_token().type == EOF
        assert lexer.next_token().type == EOF

    def test_empty_input(self):
        assert _kinds_and_literals("") == [(EOF, "")]
        assert _kinds_and_literals("  \n\t ") == [(EOF, "")]

    def test_identifiers_allow_underscores(self):
        assert _kinds_and_literals("some_number _x") == [(IDENT, "some_number"), (IDENT, "_x"), (EOF, "")]

    def test_identifier_stops_at_digit(self):
        assert _kinds_and_literals("x1") == [(IDENT, "x"), (INT, "1"), (EOF, "")]


class TestIllegalTokens:
    def test_unknown_character(self):
        assert _kinds_and_literals("5 @ 3") == [(INT, "5"), (ILLEGAL, "@"), (INT, "3"), (EOF, "")]

    def test_unterminated_string(self):
        assert _kinds_and_literals('"abc') == [(ILLEGAL, '"abc'), (EOF, "")]


class TestPositions:
    def test_line_and_column(self):
        tokens = Lexer("let x = 1;\n  x + 2").tokenize()
        positions = [(t.literal, t.line, t.column) for t in tokens]
        assert positions[0] == ("let", 1, 1)
        assert positions[1] == ("x", 1, 5)
        assert positions[5] == ("x", 2, 3)
        assert positions[6] == ("+", 2, 5)
        assert positions[7] == ("2", 2, 7)

    def test_string_position_is_opening_quote(self):
        token = Lexer('  "hi"').next_token()
        assert (token.type, token.literal, token.column) == (STRING, "hi", 3)


def test_lookup_ident():
    assert lookup_ident("fn") == FUNCTION
    assert lookup_ident("return") == RETURN
    assert lookup_ident("foobar") == IDENT
