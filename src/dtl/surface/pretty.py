"""Pretty-printing for surface terms and declarations."""

from __future__ import annotations

from dtl.surface.names import MachineName, Name, is_operator_name
from dtl.surface.sast import (
    PApp,
    PClauses,
    PData,
    PDecl,
    PFix,
    PHidden,
    PLam,
    PPi,
    PQuote,
    PRef,
    PSet,
    PTerm,
    PTy,
    Placeholder,
    Plicity,
)

ATOM_PREC = 3
APP_PREC = 2
OP_PREC = 1
BINDER_PREC = 0


def _maybe_paren(
    text: str, child_prec: int, parent_prec: int, *, allow_equal: bool
) -> str:
    if child_prec < parent_prec or (child_prec == parent_prec and not allow_equal):
        return f"({text})"
    return text


def _name(name: Name) -> str:
    if is_operator_name(name):
        return f"({name})"
    return str(name)


def _sub(term: PTerm, parent_prec: int, *, allow_equal: bool) -> str:
    text, prec = _render(term)
    return _maybe_paren(text, prec, parent_prec, allow_equal=allow_equal)


def _render(term: PTerm) -> tuple[str, int]:
    match term:
        case PRef(name):
            return _name(name), ATOM_PREC
        case Placeholder():
            return "_", ATOM_PREC
        case PSet():
            return "Set", ATOM_PREC
        case PQuote(inner):
            return f"![{pretty(inner)}]", ATOM_PREC
        case PHidden(inner):
            return "." + _sub(inner, ATOM_PREC, allow_equal=True), ATOM_PREC
        case PApp(PRef(name), (), (left, right)) if is_operator_name(name):
            lhs = _sub(left, OP_PREC, allow_equal=False)
            rhs = _sub(right, OP_PREC, allow_equal=False)
            return f"{lhs} {name} {rhs}", OP_PREC
        case PApp(fn, iargs, args):
            parts = [_sub(fn, APP_PREC, allow_equal=True)]
            parts.extend(f"{{{n} = {pretty(v)}}}" for n, v in iargs)
            parts.extend(_sub(a, ATOM_PREC, allow_equal=True) for a in args)
            return " ".join(parts), APP_PREC
        case PLam(name, ty, body):
            if isinstance(ty, Placeholder):
                return f"\\{name} => {pretty(body)}", BINDER_PREC
            return f"\\{name} : {pretty(ty)} => {pretty(body)}", BINDER_PREC
        case PPi(Plicity.EXPLICIT, MachineName(), ty, body):
            dom = _sub(ty, OP_PREC, allow_equal=True)
            return f"{dom} -> {pretty(body)}", BINDER_PREC
        case PPi(Plicity.EXPLICIT, name, ty, body):
            return f"({name} : {pretty(ty)}) -> {pretty(body)}", BINDER_PREC
        case PPi(Plicity.IMPLICIT, name, ty, body):
            return f"{{{name} : {pretty(ty)}}} -> {pretty(body)}", BINDER_PREC
        case _:
            raise TypeError(f"Unknown term {term!r}")


def pretty(term: PTerm) -> str:
    return _render(term)[0]


def pretty_decl(decl: PDecl) -> str:
    match decl:
        case PFix(fixity, ops):
            return f"{fixity} {', '.join(ops)}"
        case PTy(name, ty):
            return f"{_name(name)} : {pretty(ty)}"
        case PData(data):
            cons = " | ".join(f"{_name(n)} : {pretty(t)}" for n, t in data.constructors)
            return f"data {_name(data.name)} : {pretty(data.ty)} where {cons}"
        case PClauses(_, clauses):
            return "; ".join(f"{pretty(c.lhs)} = {pretty(c.rhs)}" for c in clauses)
        case _:
            raise TypeError(f"Unknown declaration {decl!r}")
