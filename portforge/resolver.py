# portforge/resolver.py
"""
resolver.py - shallow dependency check and install plans

Features:
- filter_dependencies: triplet-qualified dependency names, in recipe order
- compute_missing: the immediate dependencies the status database does not
  report as installed, in recipe order, without duplicates
- create_install_plan: either an ordered plan (dependencies already
  installed, then the requested spec) or the list of unmet dependencies

Only the requested spec's own dependencies are checked. Missing ones make
the build cascade; the caller installs them first and retries, so partial
progress across many packages is driven by repeated invocation rather than
by a transitive solve here.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Union

from portforge.checks import PortforgeError
from portforge.dependencies import filter_dependencies
from portforge.logging import get_logger
from portforge.package_spec import PackageSpec, ParseError
from portforge.paragraphs import SourceParagraph
from portforge.status_db import StatusDatabase
from portforge.triplet import Triplet

logger = get_logger("resolver")

__all__ = [
    "AlreadyInstalled",
    "BuildFromSource",
    "InstallPlan",
    "InstallPlanAction",
    "InstallPlanType",
    "ResolutionError",
    "ResolutionErrorKind",
    "compute_missing",
    "create_install_plan",
    "filter_dependencies",
]


class ResolutionErrorKind(enum.Enum):
    INVALID_DEPENDENCY_NAME = "invalid_dependency_name"


class ResolutionError(PortforgeError):
    def __init__(self, spec: PackageSpec, dependency: str, reason: str,
                 kind: ResolutionErrorKind = ResolutionErrorKind.INVALID_DEPENDENCY_NAME):
        super().__init__(f"{spec}: dependency {dependency!r} is not a valid package name: {reason}")
        self.spec = spec
        self.dependency = dependency
        self.kind = kind


class InstallPlanType(enum.Enum):
    ALREADY_INSTALLED = "already_installed"
    BUILD_FROM_SOURCE = "build_from_source"


@dataclass(frozen=True)
class AlreadyInstalled:
    spec: PackageSpec
    plan_type: InstallPlanType = field(default=InstallPlanType.ALREADY_INSTALLED, init=False)


@dataclass(frozen=True)
class BuildFromSource:
    spec: PackageSpec
    source: SourceParagraph
    plan_type: InstallPlanType = field(default=InstallPlanType.BUILD_FROM_SOURCE, init=False)


InstallPlanAction = Union[AlreadyInstalled, BuildFromSource]


@dataclass
class InstallPlan:
    spec: PackageSpec
    actions: List[InstallPlanAction] = field(default_factory=list)
    unmet: List[PackageSpec] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unmet

    def to_build(self) -> List[BuildFromSource]:
        return [a for a in self.actions if isinstance(a, BuildFromSource)]


def compute_missing(
    spec: PackageSpec,
    source: SourceParagraph,
    triplet: Optional[Triplet],
    status_db: StatusDatabase,
) -> List[PackageSpec]:
    """Immediate dependencies of ``source`` on ``triplet`` that are not installed."""
    triplet = triplet or spec.triplet
    missing: List[PackageSpec] = []
    for name in filter_dependencies(source.depends, triplet):
        try:
            dep = PackageSpec.from_name_and_triplet(name, triplet)
        except ParseError as e:
            raise ResolutionError(spec, name, e.reason) from e
        if status_db.find_installed(dep.name, triplet) is None and dep not in missing:
            missing.append(dep)
    if missing:
        logger.info("%s: missing dependencies: %s", spec, ", ".join(str(m) for m in missing))
    return missing


def create_install_plan(spec: PackageSpec, source: SourceParagraph, status_db: StatusDatabase) -> InstallPlan:
    plan = InstallPlan(spec=spec)
    plan.unmet = compute_missing(spec, source, spec.triplet, status_db)
    if plan.unmet:
        return plan
    for name in filter_dependencies(source.depends, spec.triplet):
        plan.actions.append(AlreadyInstalled(PackageSpec.from_name_and_triplet(name, spec.triplet)))
    if status_db.find_installed(spec.name, spec.triplet) is not None:
        plan.actions.append(AlreadyInstalled(spec))
    else:
        plan.actions.append(BuildFromSource(spec, source))
    return plan
