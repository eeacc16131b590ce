# portforge/build.py
# -*- coding: utf-8 -*-
"""
build.py - per-package build state machine

API:
  orch = BuildOrchestrator(config, status_db, runner, linter)
  result = orch.build(spec, source, port_dir)

States: CHECKING -> BUILDING -> LINTING -> RECORDING -> DONE

  CHECKING   spec/recipe name must agree (InvariantViolation otherwise);
             missing immediate dependencies end the attempt with
             CASCADED_DUE_TO_MISSING_DEPENDENCIES and the missing list
  BUILDING   external build; nonzero exit -> BUILD_FAILED
  LINTING    post-build checks; any error -> POST_BUILD_CHECKS_FAILED
  RECORDING  half-install, write packages/<dir>/CONTROL, mark installed

Outcomes are returned as ExtendedBuildResult values and never retried here.
The status database is only touched in RECORDING.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from portforge import __version__
from portforge.buildsystem import BuildRunner
from portforge.checks import check_invariant
from portforge.config import Config
from portforge.control import atomic_write_text
from portforge.lint import Linter
from portforge.logging import emit_event, get_logger
from portforge.package_spec import PackageSpec
from portforge.paragraphs import BinaryParagraph, SourceParagraph, serialize
from portforge.resolver import compute_missing
from portforge.status_db import StatusDatabase

logger = get_logger("build")


class BuildResult(enum.Enum):
    SUCCEEDED = "SUCCEEDED"
    BUILD_FAILED = "BUILD_FAILED"
    POST_BUILD_CHECKS_FAILED = "POST_BUILD_CHECKS_FAILED"
    CASCADED_DUE_TO_MISSING_DEPENDENCIES = "CASCADED_DUE_TO_MISSING_DEPENDENCIES"

    def __str__(self) -> str:
        return self.value


class BuildState(enum.Enum):
    CHECKING = "checking"
    BUILDING = "building"
    LINTING = "linting"
    RECORDING = "recording"
    DONE = "done"


@dataclass(frozen=True)
class ExtendedBuildResult:
    code: BuildResult
    unmet_dependencies: List[PackageSpec] = field(default_factory=list)
    elapsed: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.code is BuildResult.SUCCEEDED


def create_error_message(result: BuildResult, spec: PackageSpec) -> str:
    return f"Error: Building package {spec} failed with: {result}"


def create_user_troubleshooting_message(spec: PackageSpec) -> str:
    return (
        "Please ensure you're using the latest recipes, then\n"
        "report the failure to the recipe maintainer including:\n"
        f"  Package: {spec}\n"
        f"  portforge version: {__version__}\n"
        "\n"
        "Additionally, attach any relevant sections from the log files above."
    )


class BuildOrchestrator:
    def __init__(self, config: Config, status_db: StatusDatabase, runner: BuildRunner, linter: Linter):
        self.config = config
        self.paths = config.paths
        self.status_db = status_db
        self.runner = runner
        self.linter = linter
        self.state = BuildState.DONE

    def _enter(self, state: BuildState, spec: PackageSpec) -> None:
        logger.debug("%s: %s -> %s", spec, self.state.value, state.value)
        self.state = state

    def _done(self, spec: PackageSpec, result: ExtendedBuildResult) -> ExtendedBuildResult:
        self._enter(BuildState.DONE, spec)
        emit_event("build.finished", {"spec": str(spec), "result": str(result.code), "elapsed": result.elapsed})
        return result

    # ------------------------
    # Pipeline
    # ------------------------
    def build(self, spec: PackageSpec, source: SourceParagraph, port_dir: Optional[Path] = None) -> ExtendedBuildResult:
        self._enter(BuildState.CHECKING, spec)
        check_invariant(spec.name == source.name, "inconsistent arguments to build(): %s vs recipe %s", spec, source.name)

        missing = compute_missing(spec, source, spec.triplet, self.status_db)
        if missing:
            return self._done(spec, ExtendedBuildResult(BuildResult.CASCADED_DUE_TO_MISSING_DEPENDENCIES, missing))

        self._enter(BuildState.BUILDING, spec)
        port_dir = port_dir or self.paths.port_dir(spec.name)
        rc, elapsed = self.runner.run(source, spec, port_dir)
        emit_event("build.duration", {"spec": str(spec), "seconds": elapsed})
        if rc != 0:
            logger.error("build of %s failed with exit code %d", spec, rc)
            return self._done(spec, ExtendedBuildResult(BuildResult.BUILD_FAILED, elapsed=elapsed))

        self._enter(BuildState.LINTING, spec)
        if self.linter.check(spec) != 0:
            return self._done(spec, ExtendedBuildResult(BuildResult.POST_BUILD_CHECKS_FAILED, elapsed=elapsed))

        self._enter(BuildState.RECORDING, spec)
        self.record(spec, BinaryParagraph.from_source(source, spec.triplet))
        logger.info("Package %s is built", spec)
        return self._done(spec, ExtendedBuildResult(BuildResult.SUCCEEDED, elapsed=elapsed))

    def record(self, spec: PackageSpec, paragraph: BinaryParagraph) -> None:
        """Write the binary CONTROL file and commit the installed state."""
        previous = self.status_db.get(spec)
        self.status_db.mark_half_installed(spec, paragraph)
        try:
            self.create_binary_control_file(paragraph)
            self.status_db.mark_installed(spec, paragraph)
        except OSError:
            logger.exception("failed to record %s; rolling back status", spec)
            self.status_db.restore(spec, previous)
            raise

    def create_binary_control_file(self, paragraph: BinaryParagraph) -> Path:
        control = self.paths.package_dir(paragraph.dir()) / "CONTROL"
        atomic_write_text(control, serialize(paragraph))
        return control

    def check_only(self, spec: PackageSpec) -> int:
        """Run post-build checks on an already built package."""
        self._enter(BuildState.LINTING, spec)
        errors = self.linter.check(spec)
        self._enter(BuildState.DONE, spec)
        return errors
