# portforge/lint.py
"""
Post-build checks on the layout of a built package.

PostBuildLinter looks at ``<packages>/<name>_<triplet>`` and returns the
number of problems found; each problem is logged. Checks:

  - the package directory exists
  - include/ exists and is not empty (lint.allow_empty_include)
  - debug/include does not exist
  - share/<name>/copyright exists
  - no .exe files under bin/ or debug/bin/ (lint.allow_executables)
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Protocol

from portforge.config import Config
from portforge.logging import get_logger
from portforge.package_spec import PackageSpec

logger = get_logger("lint")


class Linter(Protocol):
    def check(self, spec: PackageSpec) -> int:
        ...


class PostBuildLinter:
    def __init__(self, config: Config):
        self.config = config
        self.paths = config.paths

    def _checks(self) -> List[Callable[[PackageSpec, Path], int]]:
        return [
            self.check_include_folder,
            self.check_no_debug_include,
            self.check_copyright,
            self.check_no_executables,
        ]

    def check(self, spec: PackageSpec) -> int:
        package_dir = self.paths.package_dir(spec.install_dir_name())
        if not package_dir.is_dir():
            logger.error("%s: package directory %s was not created by the build", spec, package_dir)
            return 1
        errors = sum(check(spec, package_dir) for check in self._checks())
        if errors:
            logger.error("Found %d error(s) in %s. Please correct the portfile.", errors, spec)
        else:
            logger.info("Post-build checks passed for %s", spec)
        return errors

    def check_include_folder(self, spec: PackageSpec, package_dir: Path) -> int:
        if self.config.get("lint.allow_empty_include"):
            return 0
        include = package_dir / "include"
        if not include.is_dir() or not any(include.iterdir()):
            logger.error("%s: the folder /include is empty or missing", spec)
            return 1
        return 0

    def check_no_debug_include(self, spec: PackageSpec, package_dir: Path) -> int:
        if (package_dir / "debug" / "include").exists():
            logger.error("%s: include files should not be duplicated into /debug/include", spec)
            return 1
        return 0

    def check_copyright(self, spec: PackageSpec, package_dir: Path) -> int:
        copyright_file = package_dir / "share" / spec.name / "copyright"
        if not copyright_file.is_file():
            logger.error("%s: the software license must be available at %s", spec, copyright_file)
            return 1
        return 0

    def check_no_executables(self, spec: PackageSpec, package_dir: Path) -> int:
        if self.config.get("lint.allow_executables"):
            return 0
        exes = []
        for sub in ("bin", "debug/bin"):
            d = package_dir / sub
            if d.is_dir():
                exes.extend(p for p in d.rglob("*") if p.is_file() and p.suffix.lower() == ".exe")
        if exes:
            logger.error("%s: executables found in bin/ (move them to tools/): %s", spec, ", ".join(str(p) for p in exes))
            return 1
        return 0
