# bom_forensics/formats/bom/paths.py
"""
Interpretation of the ``Paths`` tree found in installer receipts.

Leaf keys are ``parent_id (u32) || name`` and values are
``id (u32) || file_info_block (u32)``. The file-info block is a fixed
27-byte record. None of this is known to the core decoder.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from loguru import logger

from .bom import Bom, Diagnostics
from .structures import BomParseError, TraversalWarning, WarningKind

PATHS_VARIABLE = "Paths"

KIND_FILE = 1
KIND_DIRECTORY = 2
KIND_LINK = 3
KIND_DEVICE = 4

# kind, pad, arch, mode, user, group, modtime, size, pad, checksum
_FILE_INFO = struct.Struct(">BxHHIIIIxI")


@dataclass(frozen=True)
class FileInfo:
    kind: int
    architecture: int
    mode: int
    user: int
    group: int
    modtime: int
    size: int
    checksum: int


@dataclass(frozen=True)
class PathRecord:
    """One decoded ``Paths`` leaf pair."""

    parent: int
    name: str
    id: int
    file_info_index: int


@dataclass(frozen=True)
class PathEntry:
    id: int
    parent: int
    path: str  # single component until build_full_paths joins the chain
    info: FileInfo


def parse_file_info(data: memoryview) -> FileInfo:
    if len(data) < _FILE_INFO.size:
        raise BomParseError(f"File info record needs {_FILE_INFO.size} bytes, got {len(data)}")
    kind, arch, mode, user, group, modtime, size, checksum = _FILE_INFO.unpack_from(data, 0)
    return FileInfo(
        kind=kind,
        architecture=arch,
        mode=mode,
        user=user,
        group=group,
        modtime=modtime,
        size=size,
        checksum=checksum,
    )


def parse_path_record(key: memoryview, value: memoryview) -> PathRecord:
    if len(key) < 4 or len(value) < 8:
        raise BomParseError(f"Paths entry too short (key={len(key)}, value={len(value)} bytes)")
    (parent,) = struct.unpack_from(">I", key, 0)
    ident, info_index = struct.unpack_from(">II", value, 0)
    name = bytes(key[4:]).rstrip(b"\0").decode("utf-8", "replace")
    return PathRecord(parent=parent, name=name, id=ident, file_info_index=info_index)


def read_path_entries(bom: Bom, *, diagnostics: Diagnostics = None) -> Dict[int, PathEntry]:
    """Fold the ``Paths`` tree into an ``id -> PathEntry`` mapping.

    Entries whose record or file-info block cannot be decoded are skipped
    with a warning.

    Raises:
        VariableNotFoundError: If the file has no ``Paths`` variable.
    """

    root_index = bom.variables.get(PATHS_VARIABLE, 0)

    def add(acc: Dict[int, PathEntry], key: memoryview, value: memoryview):
        # Blame the tree root until the record names its file-info block.
        index = root_index
        try:
            rec = parse_path_record(key, value)
            index = rec.file_info_index
            data = bom.block_data(index)
            if data is None:
                raise BomParseError(f"file info block {index} does not resolve")
            info = parse_file_info(data)
        except BomParseError as e:
            logger.warning("Skipping Paths entry at block {index}: {error}", index=index, error=e)
            if diagnostics is not None:
                diagnostics.append(
                    TraversalWarning(kind=WarningKind.BAD_RECORD, block_index=index, message=str(e))
                )
            return acc
        acc[rec.id] = PathEntry(id=rec.id, parent=rec.parent, path=rec.name, info=info)
        return acc

    return bom.fold_tree_for_variable(PATHS_VARIABLE, {}, add, diagnostics=diagnostics)


def _full_path(entry: PathEntry, entries: Dict[int, PathEntry]) -> str:
    components = [entry.path]
    seen = {entry.id}
    parent: Optional[PathEntry] = entries.get(entry.parent)
    while parent is not None:
        if parent.id in seen:
            logger.warning(
                "Parent cycle at id {id} while resolving {name!r}", id=parent.id, name=entry.path
            )
            break
        seen.add(parent.id)
        components.append(parent.path)
        parent = entries.get(parent.parent)
    return "/".join(reversed(components))


def build_full_paths(entries: Dict[int, PathEntry]) -> List[PathEntry]:
    """Join each entry's parent chain into a full path, sorted by path."""
    resolved = [replace(e, path=_full_path(e, entries)) for e in entries.values()]
    resolved.sort(key=lambda e: e.path)
    return resolved
