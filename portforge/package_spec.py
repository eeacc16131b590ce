# portforge/package_spec.py
"""
PackageSpec: the (name, triplet) identity of a package build target.

String form is ``name`` or ``name:triplet``. Names are lower-cased on the
way in, so ``PackageSpec.parse(str(spec), t) == spec`` for every valid spec.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Union

from portforge.checks import PortforgeError
from portforge.triplet import Triplet, TripletError

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._+-]*$")


class ParseErrorKind(enum.Enum):
    MALFORMED = "malformed"


class ParseError(PortforgeError):
    def __init__(self, text: str, reason: str, kind: ParseErrorKind = ParseErrorKind.MALFORMED):
        super().__init__(f"malformed package spec {text!r}: {reason}")
        self.text = text
        self.reason = reason
        self.kind = kind


def _normalize_name(name: str) -> str:
    return (name or "").strip().lower()


def is_valid_name(name: str) -> bool:
    return bool(_NAME_RE.match(_normalize_name(name)))


@dataclass(frozen=True)
class PackageSpec:
    name: str
    triplet: Triplet

    @classmethod
    def from_name_and_triplet(cls, name: str, triplet: Triplet) -> "PackageSpec":
        normalized = _normalize_name(name)
        if not normalized:
            raise ParseError(name, "empty package name")
        if not _NAME_RE.match(normalized):
            raise ParseError(name, "invalid characters in package name")
        return cls(normalized, triplet)

    @classmethod
    def parse(
        cls,
        text: str,
        default_triplet: Triplet,
        available: Optional[Union[Iterable[Triplet], Mapping[str, Triplet]]] = None,
    ) -> "PackageSpec":
        """Parse ``name`` or ``name:triplet``.

        When ``available`` is given, a triplet outside it is rejected as unknown.
        """
        parts = (text or "").split(":")
        if len(parts) > 2:
            raise ParseError(text, "more than one ':'")
        triplet = default_triplet
        if len(parts) == 2:
            try:
                triplet = Triplet.from_canonical_name(parts[1])
            except TripletError as e:
                raise ParseError(text, str(e)) from e
            if available is not None:
                names = set(available.keys()) if isinstance(available, Mapping) else {str(t) for t in available}
                if triplet.canonical_name not in names:
                    raise ParseError(text, f"unknown triplet {triplet.canonical_name!r}")
        return cls.from_name_and_triplet(parts[0], triplet)

    def to_string(self) -> str:
        return f"{self.name}:{self.triplet.canonical_name}"

    def install_dir_name(self) -> str:
        # Triplet names never contain '_', so the last '_' splits name from triplet.
        return f"{self.name}_{self.triplet.canonical_name}"

    def __str__(self) -> str:
        return self.to_string()
