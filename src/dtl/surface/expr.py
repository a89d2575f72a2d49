"""Expression grammar with a user-extensible operator table.

The operator table is not fixed: :func:`parse_expr` rebuilds it from the live
fixity list in the parser state every time it is entered, so an operator is
only recognised infix once its fixity declaration has been parsed.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import groupby
from typing import Callable, Sequence

from dtl.common.span import Span
from dtl.surface.lexer import Lexer, default_lexer
from dtl.surface.names import MachineName, Name, UserName, user_name
from dtl.surface.sast import (
    Assoc,
    FixDecl,
    ParseError,
    PApp,
    PHidden,
    PLam,
    PPi,
    PQuote,
    PRef,
    PSet,
    PTerm,
    Placeholder,
    Plicity,
)
from dtl.surface.state import ParserState
from dtl.surface.stream import TokenStream

ARROW_BINDER = MachineName(0, "X")

_ASSOC_ORDER = {Assoc.RIGHT: 0, Assoc.LEFT: 1, Assoc.NON: 2}


@dataclass(frozen=True)
class Operator:
    symbol: str
    assoc: Assoc
    build: Callable[[PTerm, PTerm], PTerm]


Level = tuple[Operator, ...]


def _join(x: PTerm, y: PTerm) -> Span | None:
    if x.span is None or y.span is None:
        return None
    return x.span.to(y.span)


def _binary_app(symbol: str) -> Callable[[PTerm, PTerm], PTerm]:
    def build(x: PTerm, y: PTerm) -> PTerm:
        return PApp(PRef(UserName((symbol,))), (), (x, y), span=_join(x, y))

    return build


def _arrow(x: PTerm, y: PTerm) -> PTerm:
    return PPi(Plicity.EXPLICIT, ARROW_BINDER, x, y, span=_join(x, y))


def build_table(fixities: Sequence[FixDecl]) -> list[Level]:
    """Precedence levels, tightest first, for the given fixity list.

    ``fixities`` is sorted ascending, so reversing it puts the tightest
    operators first. Each run of equal precedence becomes one level. The
    built-in ``=`` and ``->`` levels sit below every user level.

    Within a level right-associative operators come first, then left, then
    non-associative, so a symbol declared with two associativities at one
    precedence resolves to the first of those that it has.
    """

    levels: list[Level] = [
        tuple(
            Operator(f.op, f.fixity.assoc, _binary_app(f.op))
            for f in sorted(group, key=lambda d: _ASSOC_ORDER[d.fixity.assoc])
        )
        for _, group in groupby(reversed(fixities), key=lambda f: f.fixity.prec)
    ]
    levels.append((Operator("=", Assoc.LEFT, _binary_app("=")),))
    levels.append((Operator("->", Assoc.RIGHT, _arrow),))
    return levels


# ---- operator climbing ----


def _peek_op(stream: TokenStream, level: Level) -> Operator | None:
    tok = stream.peek()
    if tok.kind != "OP":
        return None
    for op in level:
        if op.symbol == tok.value:
            return op
    return None


def _ambiguous(stream: TokenStream, op: Operator) -> ParseError:
    kind = {Assoc.LEFT: "left", Assoc.RIGHT: "right", Assoc.NON: "non"}[op.assoc]
    return stream.fail(message=f"ambiguous use of a {kind} associative operator")


def _climb(stream: TokenStream, levels: list[Level], k: int) -> PTerm:
    if k < 0:
        return expr_inner(stream)
    level = levels[k]
    x = _climb(stream, levels, k - 1)
    op = _peek_op(stream, level)
    if op is None:
        return x
    match op.assoc:
        case Assoc.LEFT:
            while op is not None:
                if op.assoc is not Assoc.LEFT:
                    raise _ambiguous(stream, op)
                stream.advance()
                x = op.build(x, _climb(stream, levels, k - 1))
                op = _peek_op(stream, level)
            return x
        case Assoc.RIGHT:
            return _climb_right(stream, levels, k, x, op)
        case Assoc.NON:
            stream.advance()
            x = op.build(x, _climb(stream, levels, k - 1))
            nxt = _peek_op(stream, level)
            if nxt is not None:
                raise _ambiguous(stream, nxt)
            return x


def _climb_right(
    stream: TokenStream, levels: list[Level], k: int, x: PTerm, op: Operator
) -> PTerm:
    stream.advance()
    y = _climb(stream, levels, k - 1)
    nxt = _peek_op(stream, levels[k])
    if nxt is not None:
        if nxt.assoc is not Assoc.RIGHT:
            raise _ambiguous(stream, nxt)
        y = _climb_right(stream, levels, k, y, nxt)
    return op.build(x, y)


def parse_expr(stream: TokenStream) -> PTerm:
    levels = build_table(stream.state.fixities)
    return _climb(stream, levels, len(levels) - 1)


# ---- operands ----


def _span(stream: TokenStream, start: int) -> Span:
    end = stream.tokens[max(stream.pos - 1, 0)].span.end
    return Span(start, max(end, start))


def expr_inner(stream: TokenStream) -> PTerm:
    # Application first; a head with no arguments falls back to the bare atom.
    def app_or_simple() -> PTerm:
        start = stream.peek().span.start
        fn = simple_expr(stream)
        return stream.optional(lambda: application(stream, fn, start), fn)

    return stream.choice(
        app_or_simple,
        lambda: lambda_expr(stream),
        lambda: pi_expr(stream),
    )


def fn_name(stream: TokenStream) -> Name:
    def operator_name() -> Name:
        stream.expect("LPAREN")
        op = stream.operator()
        stream.expect("RPAREN")
        return UserName((op.text,))

    return stream.choice(
        lambda: user_name(stream.identifier().text),
        operator_name,
    )


def simple_expr(stream: TokenStream) -> PTerm:
    start = stream.peek().span.start

    def quote() -> PTerm:
        stream.expect("QUOTE")
        term = parse_expr(stream)
        stream.expect("RBRACKET")
        return PQuote(term, span=_span(stream, start))

    def ref() -> PTerm:
        return PRef(fn_name(stream), span=_span(stream, start))

    def hole() -> PTerm:
        stream.expect("HOLE")
        return Placeholder(span=_span(stream, start))

    def parens() -> PTerm:
        stream.expect("LPAREN")
        term = parse_expr(stream)
        stream.expect("RPAREN")
        return term

    def universe() -> PTerm:
        stream.reserved("Set")
        return PSet(span=_span(stream, start))

    return stream.choice(quote, ref, hole, parens, universe)


def hidden_simple_expr(stream: TokenStream) -> PTerm:
    start = stream.peek().span.start

    def hidden() -> PTerm:
        stream.reserved_op(".")
        term = simple_expr(stream)
        return PHidden(term, span=_span(stream, start))

    return stream.choice(lambda: simple_expr(stream), hidden)


def implicit_arg(stream: TokenStream) -> tuple[Name, PTerm]:
    stream.expect("LBRACE")
    start = stream.peek().span.start
    name = user_name(stream.identifier().text)
    default = PRef(name, span=_span(stream, start))

    def value() -> PTerm:
        stream.reserved_op("=")
        return parse_expr(stream)

    term = stream.optional(value, default)
    stream.expect("RBRACE")
    return name, term


def application(
    stream: TokenStream, fn: PTerm | None = None, start: int | None = None
) -> PTerm:
    """A head, optional ``{name = e}`` arguments, then at least one argument.

    ``fn`` is a head the caller already parsed, starting at ``start``.
    """

    if fn is None or start is None:
        start = stream.peek().span.start
        fn = simple_expr(stream)
    iargs = stream.many(lambda: implicit_arg(stream))
    args = stream.many1(lambda: simple_expr(stream))
    return PApp(fn, tuple(iargs), tuple(args), span=_span(stream, start))


def type_sig(stream: TokenStream) -> PTerm:
    stream.reserved_op(":")
    return parse_expr(stream)


def lambda_expr(stream: TokenStream) -> PTerm:
    start = stream.peek().span.start
    stream.reserved_op("\\")
    name = user_name(stream.identifier().text)
    ty = stream.optional(lambda: type_sig(stream), Placeholder())
    stream.reserved_op("=>")
    body = parse_expr(stream)
    return PLam(name, ty, body, span=_span(stream, start))


def pi_expr(stream: TokenStream) -> PTerm:
    start = stream.peek().span.start

    def bound(open_kind: str, close_kind: str, plicity: Plicity) -> PTerm:
        stream.expect(open_kind)
        name = user_name(stream.identifier().text)
        ty = type_sig(stream)
        stream.expect(close_kind)
        stream.reserved_op("->")
        body = parse_expr(stream)
        return PPi(plicity, name, ty, body, span=_span(stream, start))

    return stream.choice(
        lambda: bound("LPAREN", "RPAREN", Plicity.EXPLICIT),
        lambda: bound("LBRACE", "RBRACE", Plicity.IMPLICIT),
    )


def parse_term(
    source: str,
    state: ParserState | None = None,
    *,
    filename: str = "(input)",
    lexer: Lexer | None = None,
) -> PTerm:
    """Parse one complete expression under ``state``'s fixities."""

    lexer = lexer or default_lexer()
    state = state if state is not None else ParserState()
    tokens = lexer.tokenize(source, filename)
    stream = TokenStream(tokens, state, source, filename, lexer.language)
    try:
        term = parse_expr(stream)
        stream.eof()
    except ParseError as exc:
        raise stream.error(exc) from None
    return term
