"""Surface AST: fixities, terms, declarations and surface errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from dtl.common.span import Span
from dtl.surface.names import MachineName, Name


@dataclass
class SurfaceError(Exception):
    message: str
    span: Span
    source: str | None = None

    def __str__(self) -> str:
        if self.source is None:
            return f"{self.message} @ {self.span.start}:{self.span.end}"
        snippet = self.span.extract(self.source)
        return f"{self.message} @ {self.span.start}:{self.span.end}: {snippet!r}"


@dataclass
class ParseError(SurfaceError):
    """Grammar failure at a position, with the constructs expected there."""

    expected: tuple[str, ...] = ()
    filename: str = "(input)"

    def merge(self, other: ParseError) -> ParseError:
        """Keep the error that got further; union expectations on a tie."""

        if other.span.start > self.span.start:
            return other
        if other.span.start < self.span.start:
            return self
        expected = self.expected + tuple(
            e for e in other.expected if e not in self.expected
        )
        return ParseError(
            self.message, self.span, self.source, expected, self.filename
        )

    def describe(self) -> str:
        if not self.expected:
            return self.message
        if len(self.expected) == 1:
            wanted = self.expected[0]
        else:
            wanted = ", ".join(self.expected[:-1]) + f" or {self.expected[-1]}"
        return f"{self.message}; expected {wanted}"

    def __str__(self) -> str:
        if self.source is None:
            return f"{self.filename} @ {self.span.start}: {self.describe()}"
        line, col = self.span.line_col(self.source)
        return f"{self.filename}: line {line}, column {col}: {self.describe()}"


@dataclass
class ImplicitError(SurfaceError):
    """Raised when a type cannot be prepared for implicit inference."""


# ---- fixities ----


class Assoc(Enum):
    LEFT = "infixl"
    RIGHT = "infixr"
    NON = "infix"


@dataclass(frozen=True)
class Fixity:
    assoc: Assoc
    prec: int

    def __str__(self) -> str:
        return f"{self.assoc.value} {self.prec}"


@dataclass(frozen=True)
class FixDecl:
    fixity: Fixity
    op: str

    def sort_key(self) -> tuple[int, str]:
        return self.fixity.prec, self.op


# ---- terms ----


class Plicity(Enum):
    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


@dataclass(frozen=True)
class PTerm:
    span: Span | None = field(default=None, compare=False, kw_only=True)


@dataclass(frozen=True)
class PRef(PTerm):
    name: Name


@dataclass(frozen=True)
class Placeholder(PTerm):
    pass


@dataclass(frozen=True)
class PQuote(PTerm):
    term: PTerm


@dataclass(frozen=True)
class PHidden(PTerm):
    term: PTerm


@dataclass(frozen=True)
class PApp(PTerm):
    fn: PTerm
    implicit_args: tuple[tuple[Name, PTerm], ...]
    args: tuple[PTerm, ...]


@dataclass(frozen=True)
class PLam(PTerm):
    name: Name
    ty: PTerm
    body: PTerm


@dataclass(frozen=True)
class PPi(PTerm):
    plicity: Plicity
    name: Name
    ty: PTerm
    body: PTerm


@dataclass(frozen=True)
class PSet(PTerm):
    pass


# ---- declarations ----


@dataclass(frozen=True)
class Clause:
    head: Name
    lhs: PTerm
    rhs: PTerm


@dataclass(frozen=True)
class DataDecl:
    name: Name
    ty: PTerm
    constructors: tuple[tuple[Name, PTerm], ...]


@dataclass(frozen=True)
class PDecl:
    pass


@dataclass(frozen=True)
class PFix(PDecl):
    fixity: Fixity
    ops: tuple[str, ...]


@dataclass(frozen=True)
class PTy(PDecl):
    name: Name
    ty: PTerm


@dataclass(frozen=True)
class PData(PDecl):
    decl: DataDecl


@dataclass(frozen=True)
class PClauses(PDecl):
    name: Name
    clauses: tuple[Clause, ...]


UNCOLLECTED = MachineName(0, "_")


def map_terms(decl: PDecl, fn: Callable[[PTerm], PTerm]) -> PDecl:
    """Apply ``fn`` to every term held by ``decl``."""

    match decl:
        case PFix():
            return decl
        case PTy(name, ty):
            return PTy(name, fn(ty))
        case PData(DataDecl(name, ty, cons)):
            return PData(
                DataDecl(name, fn(ty), tuple((cn, fn(cty)) for cn, cty in cons))
            )
        case PClauses(name, clauses):
            return PClauses(
                name,
                tuple(Clause(c.head, fn(c.lhs), fn(c.rhs)) for c in clauses),
            )
        case _:
            raise TypeError(f"Unknown declaration {decl!r}")
