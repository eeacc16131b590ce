# portforge/buildsystem.py
# -*- coding: utf-8 -*-
"""
buildsystem.py - external build capability

API:
  runner = CommandBuildRunner(config)
  rc, elapsed = runner.run(source, spec, port_dir, env_overrides=None)

The command comes from ``build.command`` (a list of template strings).
Placeholders: {port} {port_dir} {triplet} {architecture} {scripts} {root}.
``build.env`` and per-call overrides are layered over os.environ.

Behaviour:
  - blocking; returns the exit status and wall-clock seconds
  - timeout (build.timeout) -> 124, tool not runnable -> 126,
    executable not found -> 127
  - a build.command that cannot be filled raises ConfigError
  - tool output is discarded unless config.debug is set
"""

from __future__ import annotations

import os
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Tuple

from portforge.config import Config, ConfigError
from portforge.logging import get_logger
from portforge.package_spec import PackageSpec
from portforge.paragraphs import SourceParagraph

logger = get_logger("buildsystem")

EXIT_TIMEOUT = 124
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


class BuildRunner(Protocol):
    def run(
        self,
        source: SourceParagraph,
        spec: PackageSpec,
        port_dir: Path,
        env_overrides: Optional[Mapping[str, str]] = None,
    ) -> Tuple[int, float]:
        ...


class CommandBuildRunner:
    def __init__(self, config: Config):
        self.config = config
        self.paths = config.paths

    def make_command(self, source: SourceParagraph, spec: PackageSpec, port_dir: Path) -> List[str]:
        ctx = {
            "port": source.name,
            "port_dir": str(port_dir),
            "triplet": spec.triplet.canonical_name,
            "architecture": spec.triplet.architecture,
            "scripts": str(self.paths.scripts),
            "root": str(self.paths.root),
        }
        try:
            cmd = [str(part).format(**ctx) for part in self.config.get("build.command") or []]
        except (KeyError, IndexError, ValueError, AttributeError) as e:
            raise ConfigError(f"build.command: cannot fill placeholders: {e!r}") from e
        if not cmd:
            raise ConfigError("build.command is empty")
        return cmd

    def make_env(self, spec: PackageSpec, env_overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        env = dict(os.environ)
        env.update({str(k): str(v) for k, v in (self.config.get("build.env") or {}).items()})
        env.update({str(k): str(v) for k, v in (env_overrides or {}).items()})
        env["PORTFORGE_TARGET_TRIPLET"] = spec.triplet.canonical_name
        return env

    def run(
        self,
        source: SourceParagraph,
        spec: PackageSpec,
        port_dir: Path,
        env_overrides: Optional[Mapping[str, str]] = None,
    ) -> Tuple[int, float]:
        cmd = self.make_command(source, spec, port_dir)
        env = self.make_env(spec, env_overrides)
        timeout = self.config.get("build.timeout")
        output = None if self.config.debug else subprocess.DEVNULL
        buildtree = self.paths.buildtrees / spec.name
        buildtree.mkdir(parents=True, exist_ok=True)

        logger.info("Building %s", spec)
        logger.debug("RUN: %s (cwd=%s)", " ".join(cmd), buildtree)
        started = time.monotonic()
        try:
            p = subprocess.run(cmd, cwd=str(buildtree), env=env, stdout=output, stderr=output, timeout=timeout)
            rc = p.returncode
        except subprocess.TimeoutExpired:
            logger.error("build of %s timed out after %ss", spec, timeout)
            rc = EXIT_TIMEOUT
        except FileNotFoundError as e:
            logger.error("build tool not found: %s", e)
            rc = EXIT_NOT_FOUND
        except OSError as e:
            logger.error("cannot run build tool for %s: %s", spec, e)
            rc = EXIT_NOT_EXECUTABLE
        elapsed = time.monotonic() - started
        logger.debug("build of %s exited with %d after %.1fs", spec, rc, elapsed)
        return rc, elapsed
