# portforge/checks.py
"""
Error base classes and invariant checks shared by every portforge module.

Recoverable problems (bad spec strings, malformed paragraphs, missing
dependencies) raise a PortforgeError subclass or are returned as values.
InvariantViolation is reserved for states the program must not continue
from: inconsistent arguments, a status database left half-installed.
"""

from __future__ import annotations

from typing import Any


class PortforgeError(Exception):
    """Base class for recoverable portforge errors."""


class InvariantViolation(RuntimeError):
    """A programmer error or corrupt durable state; callers should stop."""


def check_invariant(condition: Any, message: str, *args: Any) -> None:
    if not condition:
        raise InvariantViolation(message % args if args else message)
