# portforge/dependencies.py
"""
Dependency expressions and platform qualifiers.

A recipe lists dependencies as ``name`` or ``name (qualifier)``. The
qualifier decides whether the dependency applies to a triplet:

    zlib (windows)              only on triplets tagged "windows"
    openssl (linux|osx)         on either
    pthreads (windows&!uwp)     windows but not uwp
    libpng (x64-windows)        exactly that triplet

A term matches when it equals the triplet name, its architecture, or one of
its platform tags. Qualifiers naming anything that is not a known
architecture, platform or well-formed triplet are unsatisfied; the
dependency is dropped instead of failing the recipe.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from portforge.checks import PortforgeError
from portforge.logging import get_logger
from portforge.triplet import KNOWN_ARCHITECTURES, KNOWN_PLATFORMS, Triplet, is_triplet_name

logger = get_logger("dependencies")

_DEP_RE = re.compile(r"^\s*([^\s()]+)\s*(?:\(\s*([^()]*?)\s*\))?\s*$")


class DependencyError(PortforgeError):
    pass


@dataclass(frozen=True)
class DependencyExpr:
    name: str
    qualifier: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "DependencyExpr":
        m = _DEP_RE.match(text or "")
        if not m:
            raise DependencyError(f"malformed dependency expression: {text!r}")
        return cls(m.group(1).lower(), m.group(2) or None)

    def __str__(self) -> str:
        return f"{self.name} ({self.qualifier})" if self.qualifier else self.name


def parse_depends(text: str) -> Tuple[DependencyExpr, ...]:
    """Parse a comma-separated ``Build-Depends`` value."""
    if not text or not text.strip():
        return ()
    return tuple(DependencyExpr.parse(part) for part in text.split(",") if part.strip())


def _is_known_term(term: str) -> bool:
    return term in KNOWN_ARCHITECTURES or term in KNOWN_PLATFORMS or is_triplet_name(term)


def _term_matches(term: str, triplet: Triplet) -> bool:
    return term == triplet.canonical_name or term == triplet.architecture or term in triplet.platform_tags


def qualifier_matches(qualifier: Optional[str], triplet: Triplet) -> bool:
    if not qualifier:
        return True
    alternatives: List[List[Tuple[bool, str]]] = []
    for alt in qualifier.lower().split("|"):
        terms: List[Tuple[bool, str]] = []
        for raw in alt.split("&"):
            raw = raw.strip()
            negated = raw.startswith("!")
            term = raw[1:].strip() if negated else raw
            if not _is_known_term(term):
                logger.warning("unknown platform predicate %r in qualifier %r; treating as unsatisfied", term, qualifier)
                return False
            terms.append((negated, term))
        alternatives.append(terms)
    return any(
        all(_term_matches(term, triplet) != negated for negated, term in terms)
        for terms in alternatives
    )


def filter_dependencies(depends: Iterable[DependencyExpr], triplet: Triplet) -> List[str]:
    """Names of the dependencies that apply to ``triplet``, in order, first occurrence wins."""
    out: List[str] = []
    seen = set()
    for dep in depends:
        if not qualifier_matches(dep.qualifier, triplet):
            continue
        name = dep.name.lower()
        if name in seen:
            continue
        seen.add(name)
        out.append(name)
    return out


def format_depends(depends: Sequence[DependencyExpr]) -> str:
    return ", ".join(str(d) for d in depends)
