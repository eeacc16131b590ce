# portforge/control.py
"""
Lexer/serializer for ``Key: Value`` control paragraphs.

Paragraphs are separated by blank lines. A line starting with whitespace
continues the previous field; its first whitespace character is dropped and
the value is joined with a newline. Continuation lines that are blank or
start with "." get a leading "." so they never read as a paragraph break.
Field order is preserved.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Tuple, Union

from portforge.checks import PortforgeError


class ControlParseError(PortforgeError):
    def __init__(self, message: str, line: int = 0):
        super().__init__(f"line {line}: {message}" if line else message)
        self.line = line


def _lines(text: str) -> List[str]:
    # only "\n" separates lines; serialize_fields writes nothing else
    return text.replace("\r\n", "\n").split("\n")


def normalize_value(value: str) -> str:
    """The form of ``value`` that survives serialize_fields + parse_paragraphs."""
    lines = str(value).replace("\r\n", "\n").replace("\r", "\n").split("\n")
    lines[0] = lines[0].strip()
    return "\n".join(lines)


def split_paragraphs(text: str) -> List[Tuple[int, str]]:
    """Raw paragraph blocks paired with the line number each one starts on."""
    blocks: List[Tuple[int, str]] = []
    current: List[str] = []
    start = 0
    for lineno, line in enumerate(_lines(text), start=1):
        if not line.strip():
            if current:
                blocks.append((start, "\n".join(current) + "\n"))
            current = []
            continue
        if not current:
            start = lineno
        current.append(line)
    if current:
        blocks.append((start, "\n".join(current) + "\n"))
    return blocks


def parse_paragraphs(text: str) -> List[Dict[str, str]]:
    paragraphs: List[Dict[str, str]] = []
    current: Dict[str, str] = {}
    last_key = None

    for lineno, line in enumerate(_lines(text), start=1):
        if not line.strip():
            if current:
                paragraphs.append(current)
            current = {}
            last_key = None
            continue
        if line[0] in " \t":
            if last_key is None:
                raise ControlParseError("continuation line before any field", lineno)
            cont = line[1:]
            if cont.startswith("."):
                cont = cont[1:]
            current[last_key] += "\n" + cont
            continue
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            raise ControlParseError(f"expected 'Key: Value', got {line!r}", lineno)
        if key in current:
            raise ControlParseError(f"duplicate field {key!r}", lineno)
        current[key] = value.strip()
        last_key = key

    if current:
        paragraphs.append(current)
    return paragraphs


def parse_single_paragraph(text: str) -> Dict[str, str]:
    paragraphs = parse_paragraphs(text)
    if len(paragraphs) != 1:
        raise ControlParseError(f"expected exactly one paragraph, found {len(paragraphs)}")
    return paragraphs[0]


def serialize_fields(fields: Mapping[str, str]) -> str:
    out: List[str] = []
    for key, value in fields.items():
        lines = str(value).split("\n")
        out.append(f"{key}: {lines[0]}".rstrip())
        for cont in lines[1:]:
            if not cont.strip() or cont.startswith("."):
                cont = "." + cont
            out.append(" " + cont)
    out.append("")
    return "\n".join(out) + "\n"


def atomic_write_text(path: Union[str, Path], text: str) -> None:
    """Write ``text`` to a temp file beside ``path``, fsync it, then rename over ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
