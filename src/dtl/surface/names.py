"""Names for surface identifiers and synthesized binders."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UserName:
    segments: tuple[str, ...]

    def __str__(self) -> str:
        return ".".join(self.segments)


@dataclass(frozen=True)
class MachineName:
    index: int
    tag: str

    def __str__(self) -> str:
        return f"{self.tag}{self.index}"


Name = UserName | MachineName


def user_name(text: str) -> UserName:
    return UserName((text,))


def is_operator_name(name: Name) -> bool:
    """True for a single-segment user name made only of symbol characters."""

    match name:
        case UserName((text,)):
            return bool(text) and not (text[0].isalnum() or text[0] == "_")
        case _:
            return False
