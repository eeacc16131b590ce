# portforge/triplet.py
"""
Target platform identifiers ("triplets").

A triplet is a canonical, lower-case name such as ``x64-windows`` or
``arm64-linux-static``: the first component is the architecture, the rest
are platform tags. Triplets compare and hash by canonical name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple, Union

from portforge.checks import PortforgeError

_TRIPLET_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)+$")

KNOWN_ARCHITECTURES = frozenset({
    "x86", "x64", "arm", "arm64", "wasm32", "ppc64le", "s390x", "riscv64",
})

KNOWN_PLATFORMS = frozenset({
    "windows", "uwp", "linux", "osx", "android", "ios", "freebsd",
    "mingw", "emscripten", "static", "dynamic", "release",
})


class TripletError(PortforgeError):
    pass


@dataclass(frozen=True)
class Triplet:
    canonical_name: str

    @classmethod
    def from_canonical_name(cls, name: str) -> "Triplet":
        normalized = (name or "").strip().lower()
        if not _TRIPLET_RE.match(normalized):
            raise TripletError(f"invalid triplet name: {name!r}")
        return cls(normalized)

    @property
    def architecture(self) -> str:
        return self.canonical_name.split("-", 1)[0]

    @property
    def platform_tags(self) -> Tuple[str, ...]:
        return tuple(self.canonical_name.split("-")[1:])

    def __str__(self) -> str:
        return self.canonical_name


def is_triplet_name(text: str) -> bool:
    return bool(_TRIPLET_RE.match(text))


def load_available_triplets(triplets_dir: Union[str, Path]) -> Dict[str, Triplet]:
    """Return the triplets that have a ``<name>.cmake`` file in ``triplets_dir``."""
    out: Dict[str, Triplet] = {}
    d = Path(triplets_dir)
    if not d.is_dir():
        return out
    for f in sorted(d.glob("*.cmake")):
        try:
            t = Triplet.from_canonical_name(f.stem)
        except TripletError:
            continue
        out[t.canonical_name] = t
    return out
