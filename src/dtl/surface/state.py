"""Parser state threaded through every parse step."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from dtl.surface.names import Name
from dtl.surface.sast import FixDecl


@dataclass(frozen=True)
class StateSnapshot:
    fixities: tuple[FixDecl, ...]
    journal_len: int


@dataclass
class ParserState:
    """Live fixity table and implicit-argument registry.

    ``fixities`` stays sorted by ascending precedence. Conflicting declarations
    for the same operator are not rejected; they coexist in the table.

    Snapshots are constant-size: the fixity tuple is replaced, never mutated,
    and every ``add_def`` records the entry it overwrote so ``restore`` can
    undo it.
    """

    fixities: tuple[FixDecl, ...] = ()
    implicits: dict[Name, list[Name]] = field(default_factory=dict)
    _journal: list[tuple[Name, list[Name] | None]] = field(
        default_factory=list, init=False, repr=False, compare=False
    )

    def add_fixities(self, decls: list[FixDecl]) -> None:
        self.fixities = tuple(sorted([*decls, *self.fixities], key=FixDecl.sort_key))
        for decl in decls:
            logger.debug(
                "parse.fixity op={} assoc={} prec={}",
                decl.op,
                decl.fixity.assoc.value,
                decl.fixity.prec,
            )

    def add_def(self, name: Name, names: list[Name]) -> None:
        self._journal.append((name, self.implicits.get(name)))
        self.implicits[name] = list(names)
        if names:
            logger.debug(
                "parse.implicits name={} implicits={}",
                name,
                [str(n) for n in names],
            )

    def implicits_of(self, name: Name) -> list[Name]:
        return self.implicits.get(name, [])

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(self.fixities, len(self._journal))

    def restore(self, snap: StateSnapshot) -> None:
        self.fixities = snap.fixities
        while len(self._journal) > snap.journal_len:
            name, previous = self._journal.pop()
            if previous is None:
                del self.implicits[name]
            else:
                self.implicits[name] = previous
