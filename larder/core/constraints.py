"""Cookbook versions and version constraints.

Versions follow the Chef convention of two or three dot-separated integers
(``1.2`` is the same version as ``1.2.0``). Constraints support exact match
(``=``), not-equal (``!=``), ranges (``>``, ``<``, ``>=``, ``<=``), the
pessimistic operator (``~>``) and comma-separated conjunctions such as
``>= 1.0, < 2.0``.

``~> 1.2`` allows ``>= 1.2, < 2.0``; ``~> 1.2.3`` allows ``>= 1.2.3, < 1.3.0``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

_VERSION_RE = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?\s*$")

_ATOM_RE = re.compile(r"^\s*(?P<op>~>|>=|<=|!=|=|>|<)?\s*(?P<ver>\d+(?:\.\d+){0,2})\s*$")


@total_ordering
@dataclass(frozen=True)
class Version:
    """A comparable ``major.minor.patch`` cookbook version."""

    major: int
    minor: int
    patch: int = 0

    @classmethod
    def parse(cls, raw: str | Version) -> Version:
        """Parse ``"1.2"`` or ``"1.2.3"``.

        Raises:
            ValueError: If *raw* is not a valid cookbook version.
        """
        if isinstance(raw, Version):
            return raw
        m = _VERSION_RE.match(str(raw))
        if not m:
            raise ValueError(f"Invalid cookbook version: {raw!r}")
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3) or 0))

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class _Atom:
    op: str
    version: Version
    # Number of components the author wrote; drives ``~>`` semantics.
    precision: int

    def satisfies(self, version: Version) -> bool:
        target = self.version
        if self.op == "=":
            return version == target
        if self.op == "!=":
            return version != target
        if self.op == ">=":
            return version >= target
        if self.op == "<=":
            return version <= target
        if self.op == ">":
            return version > target
        if self.op == "<":
            return version < target
        if self.op == "~>":
            if version < target:
                return False
            if self.precision == 3:
                return (version.major, version.minor) == (target.major, target.minor)
            if self.precision == 2:
                return version.major == target.major
            return True
        raise ValueError(f"Unknown operator: {self.op!r}")  # pragma: no cover

    def __str__(self) -> str:
        parts = str(self.version).split(".")[: self.precision]
        return f"{self.op} {'.'.join(parts)}"


@dataclass(frozen=True)
class Constraint:
    """A version requirement such as ``">= 1.0"`` or ``"~> 2.1, != 2.1.3"``.

    Attributes:
        raw: The constraint string as authored.
    """

    raw: str
    atoms: tuple[_Atom, ...]

    @classmethod
    def parse(cls, raw: str | Constraint | None) -> Constraint:
        """Parse a constraint string; ``None`` or ``""`` means any version.

        A bare version (``"1.2.0"``) is an exact match.

        Raises:
            ValueError: If any comma-separated atom is malformed.
        """
        if isinstance(raw, Constraint):
            return raw
        text = (raw or "").strip()
        if not text or text == "*":
            text = ">= 0.0.0"
        atoms: list[_Atom] = []
        for piece in text.split(","):
            m = _ATOM_RE.match(piece)
            if not m:
                raise ValueError(f"Invalid version constraint: {raw!r}")
            ver = m.group("ver")
            precision = ver.count(".") + 1
            if precision == 1:
                if m.group("op") == "~>":
                    raise ValueError(f"'~>' needs at least major.minor: {raw!r}")
                ver = f"{ver}.0"
            atoms.append(_Atom(m.group("op") or "=", Version.parse(ver), precision))
        return cls(raw=text, atoms=tuple(atoms))

    def satisfies(self, version: str | Version) -> bool:
        """True if *version* satisfies every atom (conjunction)."""
        ver = Version.parse(version)
        return all(atom.satisfies(ver) for atom in self.atoms)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Constraint):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    def __str__(self) -> str:
        return ", ".join(str(a) for a in self.atoms)

    def __repr__(self) -> str:
        return f"Constraint({str(self)!r})"


def sort_versions(versions: list[str]) -> list[str]:
    """Return *versions* ordered from lowest to highest."""
    return sorted(versions, key=Version.parse)
