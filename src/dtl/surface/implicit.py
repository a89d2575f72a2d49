"""Implicit-argument elaboration.

``implicitise`` decides which free names of a declared type become implicit
binders; ``add_impl`` fills omitted implicit arguments in at call sites.
"""

from __future__ import annotations

from dtl.common.span import Span
from dtl.surface.names import Name, UserName
from dtl.surface.sast import (
    ImplicitError,
    PApp,
    PHidden,
    PLam,
    PPi,
    PQuote,
    PRef,
    PTerm,
    Placeholder,
    Plicity,
    PSet,
)
from dtl.surface.state import ParserState


def _implicitable(name: Name) -> bool:
    match name:
        case UserName((first, *_)):
            return bool(first) and first[0].islower()
        case _:
            return False


def _free_names(term: PTerm, bound: frozenset[Name], out: list[Name]) -> None:
    match term:
        case PRef(name):
            if name not in bound and name not in out:
                out.append(name)
        case PApp(fn, iargs, args):
            _free_names(fn, bound, out)
            for _, value in iargs:
                _free_names(value, bound, out)
            for arg in args:
                _free_names(arg, bound, out)
        case PLam(name, ty, body) | PPi(_, name, ty, body):
            _free_names(ty, bound, out)
            _free_names(body, bound | {name}, out)
        case PQuote(inner) | PHidden(inner):
            _free_names(inner, bound, out)
        case Placeholder() | PSet():
            pass
        case _:
            span = term.span or Span(0, 0)
            raise ImplicitError(f"Cannot scan {type(term).__name__}", span)


def _leading_implicits(term: PTerm) -> list[Name]:
    names: list[Name] = []
    while isinstance(term, PPi) and term.plicity is Plicity.IMPLICIT:
        names.append(term.name)
        term = term.body
    return names


def implicitise(state: ParserState, ty: PTerm) -> tuple[PTerm, list[Name]]:
    """Bind the free lowercase names of ``ty`` as leading implicit arguments.

    A name is a candidate when it is not bound inside ``ty``, starts with a
    lowercase letter and is not already a known definition in ``state``. The
    new binders are added outermost first, in order of first occurrence, and
    have placeholder types. Implicit binders the user wrote at the front of
    the type are reported too.
    """

    free: list[Name] = []
    _free_names(ty, frozenset(), free)
    new = [n for n in free if _implicitable(n) and n not in state.implicits]
    out = ty
    for name in reversed(new):
        out = PPi(Plicity.IMPLICIT, name, Placeholder(), out, span=ty.span)
    return out, new + [n for n in _leading_implicits(ty) if n not in new]


def _insert_implicits(
    declared: list[Name], given: tuple[tuple[Name, PTerm], ...]
) -> tuple[tuple[Name, PTerm], ...]:
    supplied = dict(given)
    out = [(n, supplied.get(n, Placeholder())) for n in declared]
    out.extend((n, v) for n, v in given if n not in declared)
    return tuple(out)


def add_impl(state: ParserState, term: PTerm) -> PTerm:
    """Insert omitted implicit arguments at every known application head."""

    return _add_impl(state, term, frozenset())


def _add_impl(state: ParserState, term: PTerm, env: frozenset[Name]) -> PTerm:
    match term:
        case PApp(fn, iargs, args):
            iargs2 = tuple((n, _add_impl(state, v, env)) for n, v in iargs)
            args2 = tuple(_add_impl(state, a, env) for a in args)
            if isinstance(fn, PRef) and fn.name not in env:
                declared = state.implicits_of(fn.name)
                if declared:
                    iargs2 = _insert_implicits(declared, iargs2)
            else:
                fn = _add_impl(state, fn, env)
            return PApp(fn, iargs2, args2, span=term.span)
        case PLam(name, ty, body):
            return PLam(
                name,
                _add_impl(state, ty, env),
                _add_impl(state, body, env | {name}),
                span=term.span,
            )
        case PPi(plicity, name, ty, body):
            return PPi(
                plicity,
                name,
                _add_impl(state, ty, env),
                _add_impl(state, body, env | {name}),
                span=term.span,
            )
        case PQuote(inner):
            return PQuote(_add_impl(state, inner, env), span=term.span)
        case PHidden(inner):
            return PHidden(_add_impl(state, inner, env), span=term.span)
        case _:
            return term
