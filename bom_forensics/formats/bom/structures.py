# bom_forensics/formats/bom/structures.py
"""
BOM shared structures, diagnostics and exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

BOM_SIGNATURE = b"BOMStore"
TREE_TAG = b"tree"

HEADER_SIZE = 32
POINTER_SIZE = 8
TREE_ROOT_SIZE = 21
TREE_NODE_HEADER_SIZE = 12
TREE_ENTRY_SIZE = 8


@dataclass(frozen=True)
class BomHeader:
    signature: bytes  # 8 bytes, b"BOMStore" in well-formed files
    version: int
    number_of_blocks: int
    index_offset: int
    index_length: int
    vars_offset: int
    vars_length: int

    @property
    def index_end(self) -> int:
        return self.index_offset + self.index_length


@dataclass(frozen=True)
class BlockPointer:
    """Byte range inside the file buffer, referenced by block index."""

    address: int
    length: int

    @property
    def end(self) -> int:
        return self.address + self.length


@dataclass(frozen=True)
class BomVariable:
    name: str
    block_index: int


@dataclass(frozen=True)
class TreeRoot:
    tag: bytes  # b"tree"
    version: int
    child: int
    block_size: int
    path_count: int
    reserved: int


@dataclass(frozen=True)
class TreeNode:
    is_leaf: int
    count: int
    forward: int  # sibling block index, 0 = none
    backward: int

    @property
    def leaf(self) -> bool:
        return self.is_leaf != 0


@dataclass(frozen=True)
class TreeEntryIndices:
    value_index: int
    key_index: int


class WarningKind(str, Enum):
    """Recoverable corruption conditions met while walking a tree."""

    UNRESOLVABLE_NODE = "unresolvable_node"
    UNREADABLE_NODE = "unreadable_node"
    MALFORMED_INTERNAL = "malformed_internal"
    BAD_CHILD = "bad_child"
    UNRESOLVABLE_ENTRY = "unresolvable_entry"
    EMPTY_ENTRY = "empty_entry"
    TRUNCATED_LEAF = "truncated_leaf"
    CYCLE = "cycle"
    DEPTH_LIMIT = "depth_limit"
    BAD_RECORD = "bad_record"


@dataclass(frozen=True)
class TraversalWarning:
    kind: WarningKind
    block_index: int  # node (or entry) block the condition was found at
    message: str


class BomError(Exception):
    """Base class for BOM decoding errors."""


class BomParseError(BomError):
    """Raised when a fixed-size BOM structure cannot be decoded."""


class VariableNotFoundError(BomError, KeyError):
    """Raised when a named variable (or the tree root it points to) is absent."""

    def __init__(self, name: str, reason: str = "no such variable"):
        super().__init__(name)
        self.name = name
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.name!r}: {self.reason}"
