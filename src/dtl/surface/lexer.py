"""Token configuration and the ply-based tokenizer built from it."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cache

import ply.lex as lex  # type: ignore[import-untyped]

from dtl.common.span import Span
from dtl.surface.sast import ParseError


@dataclass(frozen=True)
class LanguageDef:
    """Static lexical description of the language."""

    comment_line: str = "--"
    comment_start: str = "{-"
    comment_end: str = "-}"
    nested_comments: bool = True
    ident_start: str = r"[A-Za-z]"
    ident_letter: str = r"[A-Za-z0-9_']"
    op_letters: str = ":!#$%&*+./<=>?@\\^|-~"
    reserved_names: frozenset[str] = field(
        default_factory=lambda: frozenset(
            {"data", "where", "infixl", "infixr", "infix", "Set"}
        )
    )
    reserved_op_names: frozenset[str] = field(
        default_factory=lambda: frozenset({":", "=", "\\", "|", "->", "=>", "."})
    )

    def is_reserved_op(self, text: str) -> bool:
        return text in self.reserved_op_names


IDRIS_DEF = LanguageDef()

TOKENS = (
    "IDENT",
    "RESERVED",
    "NATURAL",
    "OP",
    "QUOTE",
    "HOLE",
    "LPAREN",
    "RPAREN",
    "LBRACE",
    "RBRACE",
    "LBRACKET",
    "RBRACKET",
    "COMMA",
    "SEMI",
)

# Human-readable spelling of each token kind, for error messages.
DESCRIPTIONS = {
    "IDENT": "identifier",
    "RESERVED": "reserved word",
    "NATURAL": "natural number",
    "OP": "operator",
    "QUOTE": '"!["',
    "HOLE": '"_"',
    "LPAREN": '"("',
    "RPAREN": '")"',
    "LBRACE": '"{"',
    "RBRACE": '"}"',
    "LBRACKET": '"["',
    "RBRACKET": '"]"',
    "COMMA": '","',
    "SEMI": '";"',
    "EOF": "end of input",
}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str | int
    span: Span

    @property
    def text(self) -> str:
        return str(self.value)

    def describe(self) -> str:
        if self.kind == "EOF":
            return "end of input"
        return repr(self.text)


def _build_rules(language: LanguageDef) -> type:
    ident_re = f"{language.ident_start}{language.ident_letter}*"
    op_re = "[" + re.escape(language.op_letters) + "]+"
    line_comment_re = re.escape(language.comment_line) + r"[^\n]*"
    block_comment_re = re.escape(language.comment_start)

    class Rules:
        tokens = TOKENS

        t_ignore = " \t\r\f"

        t_LPAREN = r"\("
        t_RPAREN = r"\)"
        t_LBRACE = r"\{"
        t_RBRACE = r"\}"
        t_LBRACKET = r"\["
        t_RBRACKET = r"\]"
        t_COMMA = r","
        t_SEMI = r";"

        def __init__(self, owner: Lexer) -> None:
            self.owner = owner

        @lex.TOKEN(line_comment_re)
        def t_LINE_COMMENT(self, t: lex.LexToken) -> None:
            return None

        @lex.TOKEN(block_comment_re)
        def t_BLOCK_COMMENT(self, t: lex.LexToken) -> None:
            data = t.lexer.lexdata
            start, end = language.comment_start, language.comment_end
            depth, pos = 1, t.lexer.lexpos
            while depth:
                if pos >= len(data):
                    raise self.owner.error(
                        "unterminated block comment", t.lexpos, ("end of comment",)
                    )
                if data.startswith(end, pos):
                    depth -= 1
                    pos += len(end)
                elif language.nested_comments and data.startswith(start, pos):
                    depth += 1
                    pos += len(start)
                else:
                    pos += 1
            t.lexer.lineno += data.count("\n", t.lexpos, pos)
            t.lexer.lexpos = pos
            return None

        def t_newline(self, t: lex.LexToken) -> None:
            r"\n+"
            t.lexer.lineno += len(t.value)

        def t_QUOTE(self, t: lex.LexToken) -> lex.LexToken:
            r"!\["
            return t

        def t_NATURAL(self, t: lex.LexToken) -> lex.LexToken:
            r"\d+"
            t.end = t.lexpos + len(t.value)
            t.value = int(t.value)
            return t

        @lex.TOKEN(ident_re)
        def t_IDENT(self, t: lex.LexToken) -> lex.LexToken:
            if t.value in language.reserved_names:
                t.type = "RESERVED"
            return t

        def t_HOLE(self, t: lex.LexToken) -> lex.LexToken:
            r"_"
            return t

        @lex.TOKEN(op_re)
        def t_OP(self, t: lex.LexToken) -> lex.LexToken:
            return t

        def t_error(self, t: lex.LexToken) -> None:
            raise self.owner.error(
                f"unexpected character {t.value[0]!r}", t.lexpos, ()
            )

    return Rules


class Lexer:
    """Tokenizer for one ``LanguageDef``; reusable across sources."""

    def __init__(self, language: LanguageDef = IDRIS_DEF) -> None:
        self.language = language
        self._rules = _build_rules(language)(self)
        self._lexer = lex.lex(module=self._rules)
        self._source = ""
        self._filename = "(input)"

    def error(self, message: str, pos: int, expected: tuple[str, ...]) -> ParseError:
        return ParseError(
            f"lexical error: {message}",
            Span(pos, pos + 1),
            self._source,
            expected,
            self._filename,
        )

    def tokenize(self, source: str, filename: str = "(input)") -> list[Token]:
        self._source = source
        self._filename = filename
        self._lexer.lineno = 1
        self._lexer.input(source)
        out: list[Token] = []
        while True:
            tok = self._lexer.token()
            if tok is None:
                break
            end = getattr(tok, "end", tok.lexpos + len(str(tok.value)))
            out.append(Token(tok.type, tok.value, Span(tok.lexpos, end)))
        out.append(Token("EOF", "", Span(len(source), len(source))))
        return out


@cache
def default_lexer() -> Lexer:
    return Lexer(IDRIS_DEF)
