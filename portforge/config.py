# portforge/config.py
# -*- coding: utf-8 -*-
"""
portforge configuration loader

Features:
- Read YAML config (PyYAML) from the first existing location:
  explicit path, $PORTFORGE_CONFIG, ./portforge.yaml,
  ~/.config/portforge/config.yaml, /etc/portforge/config.yaml
- Merge with authoritative DEFAULTS, normalize paths, coerce types
  (human sizes to bytes)
- Validate structure and types; warn, or raise ConfigError when fatal
- Environment overrides: PORTFORGE_ROOT, PORTFORGE_DEFAULT_TRIPLET
- Typed access via Config (dotted get) and Paths (resolved directories)

The Config object is passed explicitly to the build orchestrator and its
collaborators. get_config() is a cached convenience for the CLI.
"""

from __future__ import annotations

import os
import string
import threading
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from portforge.checks import PortforgeError
from portforge.logging import get_logger
from portforge.triplet import Triplet, TripletError

logger = get_logger("config")

# ----------------------------
# DEFAULT configuration (authoritative base)
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "root": ".",
    "default_triplet": "x64-windows",
    "debug": False,
    "paths": {
        "ports": "ports",
        "triplets": "triplets",
        "packages": "packages",
        "installed": "installed",
        "buildtrees": "buildtrees",
        "scripts": "scripts",
    },
    "build": {
        "command": [
            "cmake",
            "-DCMD=BUILD",
            "-DPORT={port}",
            "-DCURRENT_PORT_DIR={port_dir}",
            "-DTARGET_TRIPLET={triplet}",
            "-P",
            "{scripts}/ports.cmake",
        ],
        "env": {},
        "timeout": 3600,
    },
    "lint": {
        "allow_empty_include": False,
        "allow_executables": False,
    },
    "logging": {
        "level": "INFO",
        "color": True,
        "file": None,
        "max_size": "10M",
        "backups": 5,
        "jsonl": {"enabled": False, "path": None, "fsync": False},
    },
}

# placeholders CommandBuildRunner fills into build.command
BUILD_PLACEHOLDERS = ("port", "port_dir", "triplet", "architecture", "scripts", "root")


class ConfigError(PortforgeError):
    pass


# ----------------------------
# Dataclasses
# ----------------------------
@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)     # values loaded from file (if any)
    merged: Dict[str, Any] = field(default_factory=dict)  # merged with DEFAULTS
    source: Optional[Path] = None

    def get(self, path: str, default: Any = None) -> Any:
        """Dot-separated getter for merged config."""
        cur: Any = self.merged
        for p in path.split(".") if path else []:
            if isinstance(cur, dict) and p in cur:
                cur = cur[p]
            else:
                return default
        return cur

    @property
    def debug(self) -> bool:
        return bool(self.get("debug", False))

    @property
    def default_triplet(self) -> Triplet:
        try:
            return Triplet.from_canonical_name(self.get("default_triplet"))
        except TripletError as e:
            raise ConfigError(f"default_triplet: {e}") from e

    @property
    def paths(self) -> "Paths":
        return Paths.from_config(self)

    def as_dict(self) -> Dict[str, Any]:
        return deepcopy(self.merged)


@dataclass(frozen=True)
class Paths:
    root: Path
    ports: Path
    triplets: Path
    packages: Path
    installed: Path
    buildtrees: Path
    scripts: Path

    @classmethod
    def from_config(cls, cfg: Config) -> "Paths":
        root = Path(cfg.get("root") or ".").expanduser().resolve()

        def sub(key: str) -> Path:
            p = Path(cfg.get(f"paths.{key}") or key).expanduser()
            return p if p.is_absolute() else root / p

        return cls(
            root=root,
            ports=sub("ports"),
            triplets=sub("triplets"),
            packages=sub("packages"),
            installed=sub("installed"),
            buildtrees=sub("buildtrees"),
            scripts=sub("scripts"),
        )

    def port_dir(self, name: str) -> Path:
        return self.ports / name

    def package_dir(self, install_dir_name: str) -> Path:
        return self.packages / install_dir_name

    @property
    def status_file(self) -> Path:
        return self.installed / "portforge" / "status"


# ----------------------------
# Utilities
# ----------------------------
def _human_size_to_bytes(val: Union[str, int, None]) -> Optional[int]:
    if val is None:
        return None
    if isinstance(val, int):
        return val
    s = str(val).strip().upper()
    units = {"KB": 1024, "MB": 1024**2, "GB": 1024**3, "K": 1024, "M": 1024**2, "G": 1024**3}
    try:
        for suffix, mul in units.items():
            if s.endswith(suffix):
                return int(float(s[: -len(suffix)].strip()) * mul)
        return int(float(s))
    except ValueError:
        logger.warning("config: cannot parse human size '%s'", val)
        return None


def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    res = deepcopy(a)
    for k, v in b.items():
        if k in res and isinstance(res[k], dict) and isinstance(v, dict):
            res[k] = _deep_merge(res[k], v)
        else:
            res[k] = deepcopy(v)
    return res


def _find_candidates(explicit: Optional[str] = None) -> List[Path]:
    candidates: List[Path] = []
    if explicit:
        candidates.append(Path(explicit))
    env = os.environ.get("PORTFORGE_CONFIG")
    if env:
        candidates.append(Path(env))
    candidates.extend([
        Path.cwd() / "portforge.yaml",
        Path.home() / ".config" / "portforge" / "config.yaml",
        Path("/etc") / "portforge" / "config.yaml",
    ])
    return candidates


def _load_file(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must contain a mapping, got {type(data).__name__}")
    return data


def _apply_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    out = deepcopy(cfg)
    if os.environ.get("PORTFORGE_ROOT"):
        out["root"] = os.environ["PORTFORGE_ROOT"]
    if os.environ.get("PORTFORGE_DEFAULT_TRIPLET"):
        out["default_triplet"] = os.environ["PORTFORGE_DEFAULT_TRIPLET"]
    return out


def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    out = deepcopy(cfg)
    log_cfg = out.get("logging")
    if isinstance(log_cfg, dict):
        ms = _human_size_to_bytes(log_cfg.get("max_size"))
        if ms is not None:
            log_cfg["max_size_bytes"] = ms
    build = out.get("build")
    if isinstance(build, dict):
        if isinstance(build.get("command"), str):
            build["command"] = build["command"].split()
        try:
            build["timeout"] = int(build.get("timeout") or 0) or None
        except (TypeError, ValueError):
            logger.debug("config: failed to coerce build.timeout", exc_info=True)
    out["debug"] = bool(out.get("debug"))
    return out


def _placeholder_issues(part: str) -> List[str]:
    try:
        names = [f for _, f, _, _ in string.Formatter().parse(part) if f is not None]
    except ValueError as e:
        return [f"build.command entry {part!r}: {e}"]
    return [
        f"build.command entry {part!r}: unknown placeholder {{{n}}}"
        for n in names
        if n not in BUILD_PLACEHOLDERS
    ]


def _validate_structure(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    warnings: List[str] = []
    for k in cfg.keys():
        if k not in DEFAULTS:
            warnings.append(f"Unknown top-level config key: {k}")
    for section in ("paths", "build", "lint", "logging"):
        if not isinstance(cfg.get(section), dict):
            warnings.append(f"{section} must be a mapping")
    build = cfg.get("build") or {}
    cmd = build.get("command")
    if not isinstance(cmd, list) or not cmd or not all(isinstance(c, str) for c in cmd):
        warnings.append("build.command must be a non-empty list of strings")
    else:
        for part in cmd:
            warnings.extend(_placeholder_issues(part))
    if not isinstance(build.get("env") or {}, dict):
        warnings.append("build.env must be a mapping")
    try:
        Triplet.from_canonical_name(str(cfg.get("default_triplet") or ""))
    except TripletError as e:
        warnings.append(f"default_triplet: {e}")
    return (len(warnings) == 0, warnings)


# ----------------------------
# Loading
# ----------------------------
_CONFIG: Optional[Config] = None
_CONFIG_LOCK = threading.RLock()


def load(explicit_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None, fatal: bool = False) -> Config:
    """
    Load and merge config. ``overrides`` are merged last (used by tests and
    CLI flags). If fatal=True structural validation failures raise ConfigError.
    """
    if explicit_path and not Path(explicit_path).exists():
        raise ConfigError(f"config file not found: {explicit_path}")
    raw: Dict[str, Any] = {}
    source: Optional[Path] = None
    for candidate in _find_candidates(explicit_path):
        if candidate.exists():
            raw = _load_file(candidate)
            source = candidate
            break

    merged = _apply_env(_deep_merge(DEFAULTS, raw))
    if overrides:
        merged = _deep_merge(merged, overrides)
    normalized = _normalize_and_coerce(merged)
    ok, issues = _validate_structure(normalized)
    if not ok:
        msg = f"config: validation issues: {issues}"
        if fatal:
            raise ConfigError(msg)
        logger.warning(msg)
    logger.debug("config: loaded merged config (from=%s)", str(source) if source else "<defaults>")
    return Config(raw=raw, merged=normalized, source=source)


def get_config(explicit_path: Optional[str] = None) -> Config:
    global _CONFIG
    with _CONFIG_LOCK:
        if _CONFIG is None or explicit_path:
            _CONFIG = load(explicit_path)
        return _CONFIG


def reset_config() -> None:
    global _CONFIG
    with _CONFIG_LOCK:
        _CONFIG = None
