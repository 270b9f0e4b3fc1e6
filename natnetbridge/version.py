"""Four-part version numbers as reported by a NatNet server."""

from __future__ import annotations

import re
from dataclasses import dataclass

_INTEGER = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")


@dataclass(frozen=True, eq=False)
class Version:
    """A ``major.minor.revision.build`` version.

    Ordering follows the server protocol's convention: one version is
    greater (or smaller) than another when any single component is
    greater (or smaller), checked component by component.
    """

    major: int = 0
    minor: int = 0
    revision: int = 0
    build: int = 0

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Read up to four dot-separated integers; missing parts are zero.

        Parsing stops at the first part that is not an integer, so
        ``"2.6"`` and ``"2.6.x"`` both give ``2.6.0.0``.
        """
        parts: list[int] = []
        pos = 0
        while len(parts) < 4:
            if parts:
                if not text.startswith(".", pos):
                    break
                pos += 1
            match = _INTEGER.match(text, pos)
            if match is None:
                break
            parts.append(int(match.group(1)))
            pos = match.end()
        parts.extend([0] * (4 - len(parts)))
        return cls(*parts)

    def _parts(self) -> tuple[int, int, int, int]:
        return (self.major, self.minor, self.revision, self.build)

    def __str__(self) -> str:
        return ".".join(str(part) for part in self._parts())

    def __hash__(self) -> int:
        return hash(self._parts())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._parts() == other._parts()

    def __gt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return any(mine > theirs for mine, theirs in zip(self._parts(), other._parts()))

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return any(mine < theirs for mine, theirs in zip(self._parts(), other._parts()))

    def __ge__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self > other or self == other

    def __le__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self < other or self == other