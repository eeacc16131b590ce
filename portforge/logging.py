# portforge/logging.py
# -*- coding: utf-8 -*-
"""
portforge logging

Features:
 - Console color formatter
 - Rotating file handler
 - JSONL transparency log (one object per record) and build events
   appended atomically with O_APPEND and optional fsync
 - get_logger(module) adapters that tag records with 'pf_module'
 - Thread-safe (re)configuration from a Config object
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

_ROOT_NAME = "portforge"
_lock = threading.RLock()
_handlers: List[logging.Handler] = []
_events_path: Optional[Path] = None
_events_fsync: bool = False

# ----------------------
# Formatters
# ----------------------
class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[37m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41;37m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def format(self, record):
        if not hasattr(record, "pf_module"):
            record.pf_module = record.name
        msg = super().format(record)
        if self.color:
            return f"{self.COLORS.get(record.levelno, '')}{msg}{self.RESET}"
        return msg


class JSONLineFormatter(logging.Formatter):
    def format(self, record):
        obj = {
            "timestamp": time.time(),
            "level": record.levelname,
            "module": getattr(record, "pf_module", record.name),
            "message": record.getMessage(),
        }
        if record.exc_info:
            obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False)


class _StderrHandler(logging.StreamHandler):
    """Console handler that always writes to the current sys.stderr."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


class _ModuleDefaultFilter(logging.Filter):
    """Make sure plain (non-adapter) records carry 'pf_module' too."""

    def filter(self, record):
        if not hasattr(record, "pf_module"):
            record.pf_module = record.name
        return True


# ----------------------
# Public API
# ----------------------
def get_logger(module_name: str) -> logging.LoggerAdapter:
    """Return an adapter on the 'portforge.<module>' logger that injects 'pf_module'."""
    return logging.LoggerAdapter(logging.getLogger(f"{_ROOT_NAME}.{module_name}"), {"pf_module": module_name})


def _level(name: Any, default: int = logging.INFO) -> int:
    return getattr(logging, str(name or "").upper(), default)


def configure_logging(cfg: Optional[Dict[str, Any]] = None, *, debug: bool = False) -> logging.Logger:
    """Apply the ``logging`` section of the config. Safe to call repeatedly."""
    global _events_path, _events_fsync
    cfg = cfg or {}
    root = logging.getLogger(_ROOT_NAME)
    with _lock:
        for h in _handlers:
            root.removeHandler(h)
            h.close()
        _handlers.clear()

        level = logging.DEBUG if debug else _level(cfg.get("level"), logging.INFO)
        root.setLevel(logging.DEBUG)
        root.propagate = False

        fmt = cfg.get("format") or "[%(asctime)s] [%(levelname)s] [%(pf_module)s] %(message)s"
        datefmt = cfg.get("datefmt", "%H:%M:%S")

        if cfg.get("console", True):
            ch = _StderrHandler()
            ch.setLevel(level)
            ch.setFormatter(ColorFormatter(fmt, datefmt=datefmt, color=bool(cfg.get("color", True))))
            _handlers.append(ch)

        if cfg.get("file"):
            file_path = Path(cfg["file"]).expanduser()
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.handlers.RotatingFileHandler(
                str(file_path),
                maxBytes=int(cfg.get("max_size_bytes") or 10 * 1024 * 1024),
                backupCount=int(cfg.get("backups", 5)),
                encoding="utf-8",
            )
            fh.setLevel(_level(cfg.get("file_level"), logging.DEBUG))
            fh.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
            _handlers.append(fh)

        jsonl_cfg = cfg.get("jsonl") or {}
        if jsonl_cfg.get("enabled"):
            path = Path(jsonl_cfg.get("path") or "portforge.jsonl").expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            jh = logging.FileHandler(str(path), encoding="utf-8")
            jh.setLevel(_level(jsonl_cfg.get("level"), logging.INFO))
            jh.setFormatter(JSONLineFormatter())
            _handlers.append(jh)
            _events_path = path.with_name(path.stem + ".events.jsonl")
            _events_fsync = bool(jsonl_cfg.get("fsync", False))
        else:
            _events_path = None
            _events_fsync = False

        for h in _handlers:
            h.addFilter(_ModuleDefaultFilter())
            root.addHandler(h)

    root.debug("logging configured (level=%s, handlers=%d)", logging.getLevelName(level), len(_handlers))
    return root


def emit_event(event: str, payload: Optional[Dict[str, Any]] = None) -> None:
    """Append a build event to the events log when the JSONL log is enabled."""
    get_logger("events").debug("event %s %s", event, payload or {})
    path = _events_path
    if path is None:
        return
    line = json.dumps({"timestamp": time.time(), "event": event, "payload": payload or {}}, ensure_ascii=False) + "\n"
    try:
        fd = os.open(str(path), os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o644)
        try:
            os.write(fd, line.encode("utf-8"))
            if _events_fsync:
                os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        get_logger("events").exception("failed to append event to %s", path)
