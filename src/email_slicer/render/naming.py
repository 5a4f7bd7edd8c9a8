from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Optional, Protocol

from src.email_slicer.models import NamedEntry

FALLBACK_STEM = "slice"
DEFAULT_POSITION_TOLERANCE = 2.0

__all__ = [
    "DEFAULT_POSITION_TOLERANCE",
    "FALLBACK_STEM",
    "INVALID_STEM_PATTERN",
    "LINK_SUFFIX_PATTERN",
    "dedupe_file_names",
    "order_by_position",
    "parse_link",
    "prepare_filename",
    "resolve_entries",
    "sanitise_file_stem",
]


LINK_SUFFIX_PATTERN = re.compile(r"\(([^)]+)\)\s*$")
INVALID_STEM_PATTERN = re.compile(r"[^a-z0-9]+")


class _PositionedNode(Protocol):
    name: str
    absolute_x: float
    absolute_y: float


def parse_link(label: str) -> tuple[str, Optional[str]]:
    """Split a trailing ``(http…)`` link off *label*, returning ``(display_name, link_url)``."""

    match = LINK_SUFFIX_PATTERN.search(label)
    if match:
        url = match.group(1).strip()
        if url.startswith(("http://", "https://")):
            return label[: match.start()].strip(), url
    return label, None


def sanitise_file_stem(name: str) -> str:
    """Return a lower-case, hyphen-separated stem safe for file names and URLs."""

    cleaned = INVALID_STEM_PATTERN.sub("-", name.lower()).strip("-")
    return cleaned or FALLBACK_STEM


def prepare_filename(display_name: str, extension: str) -> str:
    """Return the canonical image filename for *display_name*."""

    return f"{sanitise_file_stem(display_name)}.{extension.lstrip('.')}"


def dedupe_file_names(names: Iterable[str]) -> list[str]:
    """
    Suffix repeated names with ``-N`` before the extension.

    The first occurrence keeps its name; later repeats take the lowest ``stem-N.ext``
    not already emitted, so every returned name is unique.
    """

    taken: set[str] = set()
    counters: dict[str, int] = {}
    result: list[str] = []
    for name in names:
        candidate = name
        if candidate in taken:
            stem, dot, ext = name.rpartition(".")
            count = counters.get(name, 0)
            while candidate in taken:
                count += 1
                candidate = f"{stem}-{count}.{ext}" if dot else f"{name}-{count}"
            counters[name] = count
        taken.add(candidate)
        result.append(candidate)
    return result


def order_by_position(
    nodes: Iterable[_PositionedNode],
    tolerance: float = DEFAULT_POSITION_TOLERANCE,
) -> list[_PositionedNode]:
    """Sort *nodes* top to bottom, then left to right for rows within *tolerance*."""

    def _compare_key(node: _PositionedNode) -> tuple[float, float]:
        return (node.absolute_y, node.absolute_x)

    ordered = sorted(nodes, key=_compare_key)
    # rows within tolerance are ordered by x
    rows: list[list[_PositionedNode]] = []
    for node in ordered:
        if rows and abs(node.absolute_y - rows[-1][0].absolute_y) <= tolerance:
            rows[-1].append(node)
        else:
            rows.append([node])
    return [node for row in rows for node in sorted(row, key=lambda item: item.absolute_x)]


def resolve_entries(
    artifacts: Sequence[_PositionedNode],
    extension: str,
    *,
    tolerance: float = DEFAULT_POSITION_TOLERANCE,
) -> list[NamedEntry]:
    """Name every artifact from its current label, in reading order, with unique file names."""

    entries: list[NamedEntry] = []
    for artifact in order_by_position(artifacts, tolerance):
        display_name, link_url = parse_link(artifact.name)
        entries.append(
            NamedEntry(
                artifact=artifact,
                display_name=display_name,
                file_name=prepare_filename(display_name, extension),
                link_url=link_url,
            )
        )
    for entry, file_name in zip(entries, dedupe_file_names(entry.file_name for entry in entries)):
        entry.file_name = file_name
    return entries
