# portforge/paragraphs.py
"""
paragraphs.py - typed recipe and binary-package metadata

SourceParagraph is the metadata block of a recipe's CONTROL file.
BinaryParagraph describes a built package for one triplet; it is the text
written to ``packages/<name>_<triplet>/CONTROL`` and, with a Status line,
to the status database. Both are projected from the ordered field maps
produced by portforge.control, and fail with ParagraphError when a
required field is missing instead of assuming it is there.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Tuple, Union

from portforge.checks import PortforgeError
from portforge.control import ControlParseError, normalize_value, parse_single_paragraph, serialize_fields
from portforge.dependencies import DependencyError, DependencyExpr, filter_dependencies, parse_depends
from portforge.package_spec import PackageSpec, ParseError, is_valid_name
from portforge.triplet import Triplet, TripletError


class ParagraphError(PortforgeError):
    pass


def _required(fields: Mapping[str, str], key: str) -> str:
    value = fields.get(key) or ""
    if not value.strip():
        raise ParagraphError(f"missing required field {key!r}")
    return value


def _split_names(text: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in (text or "").split(",") if p.strip())


@dataclass(frozen=True)
class SourceParagraph:
    name: str
    version: str
    description: str = ""
    maintainer: str = ""
    depends: Tuple[DependencyExpr, ...] = ()

    @classmethod
    def from_fields(cls, fields: Mapping[str, str]) -> "SourceParagraph":
        try:
            depends = parse_depends(fields.get("Build-Depends", ""))
        except DependencyError as e:
            raise ParagraphError(f"Build-Depends: {e}") from e
        name = _required(fields, "Source").lower()
        if not is_valid_name(name):
            raise ParagraphError(f"invalid Source name {name!r}")
        return cls(
            name=name,
            version=_required(fields, "Version"),
            description=(fields.get("Description") or "").strip(),
            maintainer=(fields.get("Maintainer") or "").strip(),
            depends=depends,
        )


@dataclass(frozen=True)
class BinaryParagraph:
    spec: PackageSpec
    version: str
    description: str = ""
    maintainer: str = ""
    depends: Tuple[str, ...] = ()

    def __post_init__(self):
        # keep only what the CONTROL text form can carry
        object.__setattr__(self, "version", normalize_value(self.version))
        object.__setattr__(self, "description", normalize_value(self.description))
        object.__setattr__(self, "maintainer", normalize_value(self.maintainer))
        object.__setattr__(self, "depends", tuple(n for n in (d.strip().lower() for d in self.depends) if n))

    @classmethod
    def from_source(cls, source: SourceParagraph, triplet: Triplet) -> "BinaryParagraph":
        return cls(
            spec=PackageSpec(source.name, triplet),
            version=source.version,
            description=source.description,
            maintainer=source.maintainer,
            depends=tuple(filter_dependencies(source.depends, triplet)),
        )

    @classmethod
    def from_fields(cls, fields: Mapping[str, str]) -> "BinaryParagraph":
        return cls(
            spec=spec_from_fields(fields),
            version=_required(fields, "Version"),
            description=fields.get("Description") or "",
            maintainer=fields.get("Maintainer") or "",
            depends=_split_names(fields.get("Depends", "")),
        )

    def to_fields(self) -> Dict[str, str]:
        fields = {
            "Package": self.spec.name,
            "Architecture": self.spec.triplet.canonical_name,
            "Version": self.version,
        }
        if self.description:
            fields["Description"] = self.description
        if self.maintainer:
            fields["Maintainer"] = self.maintainer
        if self.depends:
            fields["Depends"] = ", ".join(self.depends)
        return fields

    def displayname(self) -> str:
        return self.spec.to_string()

    def fullstem(self) -> str:
        return f"{self.spec.name}_{self.version}_{self.spec.triplet.canonical_name}"

    def dir(self) -> str:
        return self.spec.install_dir_name()


def spec_from_fields(fields: Mapping[str, str]) -> PackageSpec:
    """The identity carried by the Package/Architecture fields."""
    try:
        triplet = Triplet.from_canonical_name(_required(fields, "Architecture"))
        return PackageSpec.from_name_and_triplet(_required(fields, "Package"), triplet)
    except (TripletError, ParseError) as e:
        raise ParagraphError(str(e)) from e


def serialize(paragraph: BinaryParagraph) -> str:
    return serialize_fields(paragraph.to_fields())


def load_port(port_dir: Union[str, Path]) -> SourceParagraph:
    """Read and project ``<port_dir>/CONTROL``."""
    control = Path(port_dir) / "CONTROL"
    try:
        text = control.read_text(encoding="utf-8")
    except OSError as e:
        raise ParagraphError(f"cannot read {control}: {e}") from e
    try:
        return SourceParagraph.from_fields(parse_single_paragraph(text))
    except ControlParseError as e:
        raise ParagraphError(f"{control}: {e}") from e
