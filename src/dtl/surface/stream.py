"""Backtracking token cursor.

Every alternative runs inside :meth:`TokenStream.attempt`, which snapshots the
input position and the :class:`ParserState` together and restores both when
the alternative fails. Fixities registered by an abandoned branch therefore
disappear along with the tokens it consumed.
"""

from __future__ import annotations

from functools import reduce
from typing import Callable, TypeVar

from dtl.surface.lexer import DESCRIPTIONS, IDRIS_DEF, LanguageDef, Token
from dtl.surface.sast import ParseError
from dtl.surface.state import ParserState

T = TypeVar("T")


class TokenStream:
    def __init__(
        self,
        tokens: list[Token],
        state: ParserState,
        source: str = "",
        filename: str = "(input)",
        language: LanguageDef = IDRIS_DEF,
    ) -> None:
        if not tokens or tokens[-1].kind != "EOF":
            raise ValueError("token list must end with EOF")
        self.tokens = tokens
        self.state = state
        self.source = source
        self.filename = filename
        self.language = language
        self.pos = 0
        self.furthest: ParseError | None = None

    # ---- primitives ----

    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        tok = self.peek()
        if tok.kind != "EOF":
            self.pos += 1
        return tok

    def at_end(self) -> bool:
        return self.peek().kind == "EOF"

    def fail(self, *expected: str, message: str | None = None) -> ParseError:
        tok = self.peek()
        err = ParseError(
            message or f"unexpected {tok.describe()}",
            tok.span,
            self.source,
            tuple(expected),
            self.filename,
        )
        self.furthest = err if self.furthest is None else self.furthest.merge(err)
        return err

    def expect(self, kind: str) -> Token:
        if self.peek().kind != kind:
            raise self.fail(DESCRIPTIONS[kind])
        return self.advance()

    def eof(self) -> None:
        if not self.at_end():
            raise self.fail("end of input")

    def reserved(self, word: str) -> Token:
        tok = self.peek()
        if tok.kind != "RESERVED" or tok.value != word:
            raise self.fail(f'"{word}"')
        return self.advance()

    def reserved_op(self, op: str) -> Token:
        tok = self.peek()
        if tok.kind != "OP" or tok.value != op:
            raise self.fail(f'"{op}"')
        return self.advance()

    def operator(self) -> Token:
        tok = self.peek()
        if tok.kind != "OP" or self.language.is_reserved_op(tok.text):
            raise self.fail("operator")
        return self.advance()

    def identifier(self) -> Token:
        return self.expect("IDENT")

    def natural(self) -> int:
        return int(self.expect("NATURAL").value)

    # ---- combinators ----

    def attempt(self, fn: Callable[[], T]) -> T:
        pos = self.pos
        snap = self.state.snapshot()
        try:
            return fn()
        except ParseError:
            self.pos = pos
            self.state.restore(snap)
            raise

    def choice(self, *alternatives: Callable[[], T]) -> T:
        if not alternatives:
            raise ValueError("choice needs at least one alternative")
        errors: list[ParseError] = []
        for alt in alternatives:
            try:
                return self.attempt(alt)
            except ParseError as exc:
                errors.append(exc)
        raise reduce(ParseError.merge, errors)

    def optional(self, fn: Callable[[], T], default: T) -> T:
        try:
            return self.attempt(fn)
        except ParseError:
            return default

    def many(self, fn: Callable[[], T]) -> list[T]:
        out: list[T] = []
        while True:
            start = self.pos
            try:
                out.append(self.attempt(fn))
            except ParseError:
                return out
            if self.pos == start:
                return out

    def many1(self, fn: Callable[[], T]) -> list[T]:
        first = fn()
        return [first, *self.many(fn)]

    def sep_by1(self, fn: Callable[[], T], sep: Callable[[], object]) -> list[T]:
        out = [fn()]

        def step() -> T:
            sep()
            return fn()

        out.extend(self.many(step))
        return out

    def error(self, exc: ParseError) -> ParseError:
        """The most informative error for a failed parse."""

        if self.furthest is None:
            return exc
        return exc.merge(self.furthest)
