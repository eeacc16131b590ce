# portforge/status_db.py
"""
Status database: which package specs are installed, and with what metadata.

Features:
- In-memory index PackageSpec -> StatusEntry, loaded in full from the
  status file (binary paragraphs plus a dpkg-style ``Status:`` line)
- Soft load: paragraphs that cannot be projected are skipped and counted;
  half-installed entries are reported, never promoted
- Transitions not_installed -> half_installed -> installed, and back to
  not_installed on removal, each committed to disk before it becomes
  visible in memory (temp file + fsync + os.replace)
- Thread-safe (RLock); find_installed() is a dict lookup
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from portforge.checks import InvariantViolation, PortforgeError, check_invariant
from portforge.control import (
    ControlParseError,
    atomic_write_text,
    parse_single_paragraph,
    serialize_fields,
    split_paragraphs,
)
from portforge.logging import get_logger
from portforge.package_spec import PackageSpec
from portforge.paragraphs import BinaryParagraph, ParagraphError, spec_from_fields
from portforge.triplet import Triplet

logger = get_logger("status_db")


class StatusDatabaseError(PortforgeError):
    pass


class InstallState(enum.Enum):
    NOT_INSTALLED = "purge ok not-installed"
    HALF_INSTALLED = "install ok half-installed"
    INSTALLED = "install ok installed"

    @classmethod
    def from_status_line(cls, text: str) -> "InstallState":
        normalized = " ".join((text or "").split())
        for state in cls:
            if state.value == normalized:
                return state
        raise ParagraphError(f"unknown Status value {text!r}")


@dataclass(frozen=True)
class StatusEntry:
    spec: PackageSpec
    state: InstallState
    paragraph: Optional[BinaryParagraph] = None

    def to_fields(self) -> Dict[str, str]:
        if self.paragraph is not None:
            fields = self.paragraph.to_fields()
        else:
            fields = {"Package": self.spec.name, "Architecture": self.spec.triplet.canonical_name}
        fields["Status"] = self.state.value
        return fields

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "StatusEntry":
        state = InstallState.from_status_line(fields.get("Status", ""))
        spec = spec_from_fields(fields)
        paragraph = None
        if fields.get("Version"):
            paragraph = BinaryParagraph.from_fields(fields)
        elif state is InstallState.INSTALLED:
            raise ParagraphError(f"{spec} is installed but has no Version")
        return cls(spec=spec, state=state, paragraph=paragraph)


@dataclass
class LoadReport:
    skipped: int = 0
    half_installed: List[PackageSpec] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.half_installed


class StatusDatabase:
    def __init__(self, path: Union[str, Path], entries: Optional[Dict[PackageSpec, StatusEntry]] = None):
        self._path = Path(path)
        self._entries: Dict[PackageSpec, StatusEntry] = dict(entries or {})
        self._lock = threading.RLock()

    # ------------------------
    # Loading
    # ------------------------
    @classmethod
    def load(cls, path: Union[str, Path]) -> Tuple["StatusDatabase", LoadReport]:
        p = Path(path)
        report = LoadReport()
        entries: Dict[PackageSpec, StatusEntry] = {}
        if not p.exists():
            logger.debug("status file %s does not exist; starting empty", p)
            return cls(p, entries), report
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StatusDatabaseError(f"cannot read status database {p}: {e}") from e

        for start, block in split_paragraphs(text):
            try:
                entry = StatusEntry.from_fields(parse_single_paragraph(block))
            except (ControlParseError, ParagraphError) as e:
                report.skipped += 1
                logger.warning("skipping malformed status entry at %s line %d: %s", p, start, e)
                continue
            # later paragraphs for the same spec supersede earlier ones
            entries[entry.spec] = entry

        for entry in entries.values():
            if entry.state is InstallState.HALF_INSTALLED:
                report.half_installed.append(entry.spec)
                logger.error("%s is half-installed; a previous operation was interrupted", entry.spec)
        logger.debug("loaded %d status entries from %s (%d skipped)", len(entries), p, report.skipped)
        return cls(p, entries), report

    @classmethod
    def load_checked(cls, path: Union[str, Path]) -> "StatusDatabase":
        """Load and refuse to continue if any entry is stuck half-installed."""
        db, report = cls.load(path)
        if not report.consistent:
            names = ", ".join(str(s) for s in report.half_installed)
            raise InvariantViolation(
                f"status database {db.path} has half-installed packages: {names}; remove them before continuing"
            )
        return db

    # ------------------------
    # Queries
    # ------------------------
    @property
    def path(self) -> Path:
        return self._path

    def find_installed(self, name: str, triplet: Triplet) -> Optional[StatusEntry]:
        with self._lock:
            entry = self._entries.get(PackageSpec(name.strip().lower(), triplet))
        if entry is not None and entry.state is InstallState.INSTALLED:
            return entry
        return None

    def get(self, spec: PackageSpec) -> Optional[StatusEntry]:
        with self._lock:
            return self._entries.get(spec)

    def entries(self) -> List[StatusEntry]:
        with self._lock:
            return list(self._entries.values())

    def installed(self) -> List[StatusEntry]:
        return [e for e in self.entries() if e.state is InstallState.INSTALLED]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------
    # Transitions
    # ------------------------
    def mark_half_installed(self, spec: PackageSpec, paragraph: Optional[BinaryParagraph] = None) -> StatusEntry:
        with self._lock:
            current = self._entries.get(spec)
            check_invariant(
                current is None or current.state is not InstallState.INSTALLED or paragraph is not None,
                "%s: half-installing an installed package requires the new paragraph", spec,
            )
            return self._commit(StatusEntry(spec, InstallState.HALF_INSTALLED, paragraph))

    def mark_installed(self, spec: PackageSpec, paragraph: BinaryParagraph) -> StatusEntry:
        check_invariant(paragraph.spec == spec, "paragraph %s does not describe %s", paragraph.spec, spec)
        with self._lock:
            current = self._entries.get(spec)
            check_invariant(
                current is not None and current.state is not InstallState.NOT_INSTALLED,
                "%s must be half-installed before it is marked installed", spec,
            )
            return self._commit(StatusEntry(spec, InstallState.INSTALLED, paragraph))

    def mark_not_installed(self, spec: PackageSpec) -> StatusEntry:
        with self._lock:
            current = self._entries.get(spec)
            paragraph = current.paragraph if current is not None else None
            return self._commit(StatusEntry(spec, InstallState.NOT_INSTALLED, paragraph))

    def restore(self, spec: PackageSpec, previous: Optional[StatusEntry]) -> None:
        """Put back ``previous`` (or drop the entry) after a failed operation."""
        with self._lock:
            updated = dict(self._entries)
            if previous is None:
                updated.pop(spec, None)
            else:
                updated[spec] = previous
            self._write(updated)
            self._entries = updated

    # ------------------------
    # Durable storage
    # ------------------------
    def _commit(self, entry: StatusEntry) -> StatusEntry:
        updated = dict(self._entries)
        updated[entry.spec] = entry
        self._write(updated)
        self._entries = updated
        logger.debug("%s -> %s", entry.spec, entry.state.name.lower())
        return entry

    def _write(self, entries: Dict[PackageSpec, StatusEntry]) -> None:
        atomic_write_text(self._path, "".join(serialize_fields(e.to_fields()) for e in entries.values()))
