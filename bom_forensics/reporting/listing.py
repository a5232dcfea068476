# bom_forensics/reporting/listing.py
"""
``lsbom``-style listing of the ``Paths`` tree.
"""

from __future__ import annotations

from typing import Iterable, List

from bom_forensics.formats.bom.paths import KIND_FILE, PathEntry


def format_entry(entry: PathEntry) -> str:
    """``path<TAB>mode<TAB>uid/gid`` plus ``<TAB>size<TAB>checksum`` for regular files."""
    info = entry.info
    line = f"{entry.path}\t{info.mode:o}\t{info.user}/{info.group}"
    if info.kind == KIND_FILE:
        line += f"\t{info.size}\t{info.checksum}"
    return line


def format_listing(entries: Iterable[PathEntry]) -> List[str]:
    return [format_entry(e) for e in entries]
