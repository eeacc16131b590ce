# portforge/remove.py
"""
remove.py - package removal

Features:
- check_dependents(spec): installed packages on the same triplet whose
  Depends list names spec
- remove_package(spec): refuses while dependents are installed (unless
  force), marks the spec not-installed, and with purge deletes its
  packages/<dir> tree
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import List

from portforge.checks import PortforgeError
from portforge.config import Paths
from portforge.logging import emit_event, get_logger
from portforge.package_spec import PackageSpec
from portforge.status_db import InstallState, StatusDatabase

logger = get_logger("remove")


class RemoveError(PortforgeError):
    pass


@dataclass
class RemoveResult:
    spec: PackageSpec
    removed: bool
    purged: bool = False
    dependents: List[PackageSpec] = field(default_factory=list)


def check_dependents(status_db: StatusDatabase, spec: PackageSpec) -> List[PackageSpec]:
    out: List[PackageSpec] = []
    for entry in status_db.installed():
        if entry.spec == spec or entry.spec.triplet != spec.triplet:
            continue
        if entry.paragraph is not None and spec.name in entry.paragraph.depends:
            out.append(entry.spec)
    return out


def remove_package(
    status_db: StatusDatabase,
    paths: Paths,
    spec: PackageSpec,
    *,
    purge: bool = False,
    force: bool = False,
) -> RemoveResult:
    entry = status_db.get(spec)
    dependents: List[PackageSpec] = []
    if entry is None or entry.state is InstallState.NOT_INSTALLED:
        if not purge:
            raise RemoveError(f"package {spec} is not installed")
        removed = False
    else:
        dependents = check_dependents(status_db, spec)
        if dependents and not force:
            names = ", ".join(str(d) for d in dependents)
            raise RemoveError(f"cannot remove {spec}: required by {names}")
        if dependents:
            logger.warning("removing %s although %s depend on it", spec, ", ".join(str(d) for d in dependents))
        status_db.mark_not_installed(spec)
        logger.info("Package %s marked not-installed", spec)
        removed = True

    purged = False
    if purge:
        package_dir = paths.package_dir(spec.install_dir_name())
        if package_dir.exists():
            shutil.rmtree(package_dir)
            logger.info("Purged %s", package_dir)
            purged = True
    emit_event("remove.finished", {"spec": str(spec), "removed": removed, "purged": purged})
    return RemoveResult(spec=spec, removed=removed, purged=purged, dependents=dependents)
