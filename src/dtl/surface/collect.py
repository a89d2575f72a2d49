"""Group adjacent pattern clauses into multi-clause definitions."""

from __future__ import annotations

from dtl.surface.sast import Clause, PClauses, PDecl


def _single_clause(decl: PDecl) -> Clause | None:
    if isinstance(decl, PClauses) and len(decl.clauses) == 1:
        return decl.clauses[0]
    return None


def collect(decls: list[PDecl]) -> list[PDecl]:
    """Merge runs of consecutive same-name clauses, keeping source order.

    Clauses of one function separated by any other declaration stay in
    separate groups.
    """

    out: list[PDecl] = []
    i = 0
    while i < len(decls):
        clause = _single_clause(decls[i])
        if clause is None:
            out.append(decls[i])
            i += 1
            continue
        run = [clause]
        i += 1
        while i < len(decls):
            nxt = _single_clause(decls[i])
            if nxt is None or nxt.head != clause.head:
                break
            run.append(nxt)
            i += 1
        out.append(PClauses(clause.head, tuple(run)))
    return out
