"""Declaration parser and whole-module driver.

A module is a sequence of ``;``-terminated declarations:

    decl ::= fixity NAT op {"," op}
           | name ":" expr
           | "data" name ":" expr "where" name ":" expr {"|" name ":" expr}
           | "data" name ident* "=" name atom* {"|" name atom*}
           | name {implicit}* hatom* "=" expr
           | atom op atom "=" expr

Each declaration is elaborated for implicit arguments against the state as it
stands right after that declaration, then the whole list goes through
:func:`collect`.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from dtl.surface.collect import collect
from dtl.surface.expr import (
    fn_name,
    hidden_simple_expr,
    implicit_arg,
    parse_expr,
    simple_expr,
    type_sig,
)
from dtl.surface.implicit import add_impl, implicitise
from dtl.surface.lexer import Lexer, default_lexer
from dtl.surface.names import MachineName, Name, UserName, user_name
from dtl.surface.sast import (
    Assoc,
    Clause,
    DataDecl,
    FixDecl,
    Fixity,
    ParseError,
    PApp,
    PClauses,
    PData,
    PDecl,
    PFix,
    PPi,
    PRef,
    PSet,
    PTerm,
    PTy,
    Plicity,
    UNCOLLECTED,
    map_terms,
)
from dtl.surface.state import ParserState
from dtl.surface.stream import TokenStream

DATA_ARG_BINDER = MachineName(0, "t")

_FIXITY_WORDS = (
    ("infixl", Assoc.LEFT),
    ("infixr", Assoc.RIGHT),
    ("infix", Assoc.NON),
)


def implicit(stream: TokenStream, name: Name, ty: PTerm) -> PTerm:
    """Implicitise ``ty`` and record its implicit names under ``name``."""

    ty2, names = implicitise(stream.state, ty)
    stream.state.add_def(name, names)
    return ty2


# ---- declarations ----


def decl(stream: TokenStream) -> PDecl:
    d = decl_inner(stream)
    stream.expect("SEMI")
    state = stream.state
    return map_terms(d, lambda term: add_impl(state, term))


def decl_inner(stream: TokenStream) -> PDecl:
    return stream.choice(
        lambda: fixity_decl(stream),
        lambda: type_decl(stream),
        lambda: data_decl(stream),
        lambda: pattern_decl(stream),
    )


def fixity(stream: TokenStream) -> Assoc:
    tok = stream.peek()
    for word, assoc in _FIXITY_WORDS:
        if tok.kind == "RESERVED" and tok.value == word:
            stream.advance()
            return assoc
    raise stream.fail(*(f'"{word}"' for word, _ in _FIXITY_WORDS))


def fixity_decl(stream: TokenStream) -> PFix:
    assoc = fixity(stream)
    fix = Fixity(assoc, stream.natural())
    ops = stream.sep_by1(
        lambda: stream.operator().text, lambda: stream.expect("COMMA")
    )
    # Takes effect immediately: every later expression sees these operators.
    stream.state.add_fixities([FixDecl(fix, op) for op in ops])
    return PFix(fix, tuple(ops))


def type_decl(stream: TokenStream) -> PTy:
    name = fn_name(stream)
    ty = type_sig(stream)
    return PTy(name, implicit(stream, name, ty))


# ---- data declarations ----


def mk_app(fn: PTerm, args: list[PTerm]) -> PTerm:
    if not args:
        return fn
    return PApp(fn, (), tuple(args))


def bind_args(args: list[PTerm], result: PTerm) -> PTerm:
    """``a1 -> ... -> an -> result`` with unused binder names."""

    out = result
    for arg in reversed(args):
        out = PPi(Plicity.EXPLICIT, DATA_ARG_BINDER, arg, out)
    return out


def _bar(stream: TokenStream) -> None:
    stream.reserved_op("|")


def constructor(stream: TokenStream) -> tuple[Name, PTerm]:
    name = fn_name(stream)
    ty = type_sig(stream)
    return name, implicit(stream, name, ty)


def simple_constructor(stream: TokenStream) -> tuple[Name, list[PTerm]]:
    name = fn_name(stream)
    args = stream.many(lambda: simple_expr(stream))
    return name, args


def indexed_data(stream: TokenStream) -> PData:
    stream.reserved("data")
    name = fn_name(stream)
    ty = type_sig(stream)
    stream.reserved("where")
    ty2 = implicit(stream, name, ty)
    cons = stream.sep_by1(lambda: constructor(stream), lambda: _bar(stream))
    return PData(DataDecl(name, ty2, tuple(cons)))


def parametric_data(stream: TokenStream) -> PData:
    stream.reserved("data")
    name = fn_name(stream)
    params = stream.many(lambda: user_name(stream.identifier().text))
    stream.reserved_op("=")
    cons = stream.sep_by1(lambda: simple_constructor(stream), lambda: _bar(stream))
    result = mk_app(PRef(name), [PRef(p) for p in params])
    # Known limitation: parameter kinds are not inferred; every one is Set.
    kind = bind_args([PSet() for _ in params], PSet())
    kind2 = implicit(stream, name, kind)
    typed = [(cn, implicit(stream, cn, bind_args(cargs, result))) for cn, cargs in cons]
    return PData(DataDecl(name, kind2, tuple(typed)))


def data_decl(stream: TokenStream) -> PData:
    return stream.choice(
        lambda: indexed_data(stream),
        lambda: parametric_data(stream),
    )


# ---- pattern clauses ----


def prefix_clause(stream: TokenStream) -> Clause:
    name = fn_name(stream)
    iargs = stream.many(lambda: implicit_arg(stream))
    args = stream.many(lambda: hidden_simple_expr(stream))
    stream.reserved_op("=")
    rhs = parse_expr(stream)
    return Clause(name, PApp(PRef(name), tuple(iargs), tuple(args)), rhs)


def infix_clause(stream: TokenStream) -> Clause:
    left = simple_expr(stream)
    name = UserName((stream.operator().text,))
    right = simple_expr(stream)
    stream.reserved_op("=")
    rhs = parse_expr(stream)
    return Clause(name, PApp(PRef(name), (), (left, right)), rhs)


def clause(stream: TokenStream) -> Clause:
    return stream.choice(
        lambda: prefix_clause(stream),
        lambda: infix_clause(stream),
    )


def pattern_decl(stream: TokenStream) -> PClauses:
    # Heads are assigned when collect() groups the clauses.
    return PClauses(UNCOLLECTED, (clause(stream),))


# ---- driver ----


def _program(stream: TokenStream) -> list[PDecl]:
    decls = [decl(stream)]
    while not stream.at_end():
        decls.append(decl(stream))
    return decls


def parse_program(
    source: str,
    state: ParserState | None = None,
    *,
    filename: str = "(input)",
    lexer: Lexer | None = None,
) -> tuple[list[PDecl], ParserState]:
    """Parse a whole module into collected declarations.

    ``state`` is updated in place and returned. On any error nothing is
    returned and ``state`` is left as it was.
    """

    lexer = lexer or default_lexer()
    state = state if state is not None else ParserState()
    logger.debug("parse.start file={}", filename)
    tokens = lexer.tokenize(source, filename)
    stream = TokenStream(tokens, state, source, filename, lexer.language)
    try:
        decls = stream.attempt(lambda: _program(stream))
    except ParseError as exc:
        raise stream.error(exc) from None
    collected = collect(decls)
    logger.debug("parse.done file={} decls={}", filename, len(collected))
    return collected, state


def parse_file(
    path: str | Path,
    state: ParserState | None = None,
    *,
    lexer: Lexer | None = None,
) -> tuple[list[PDecl], ParserState]:
    source = Path(path).read_text(encoding="utf-8")
    return parse_program(source, state, filename=str(path), lexer=lexer)
