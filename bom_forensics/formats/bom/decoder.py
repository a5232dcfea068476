# bom_forensics/formats/bom/decoder.py
"""
Big-endian decoders for the fixed-layout BOM records.

Every reader takes the whole buffer plus an absolute offset and returns the
decoded value together with the offset just past it.
"""

from __future__ import annotations

import struct
from typing import Dict, Optional, Tuple

from loguru import logger

from .structures import (
    HEADER_SIZE,
    POINTER_SIZE,
    BlockPointer,
    BomHeader,
    BomParseError,
    TreeEntryIndices,
    TreeNode,
    TreeRoot,
)

_HEADER = struct.Struct(">8sIIIIII")
_POINTER = struct.Struct(">II")
_TREE_ROOT = struct.Struct(">4sIIIIB")
_TREE_NODE = struct.Struct(">HHII")
_TREE_ENTRY = struct.Struct(">II")


def _unpack(buf: memoryview, off: int, st: struct.Struct, what: str) -> tuple[tuple, int]:
    if off < 0 or off + st.size > len(buf):
        raise BomParseError(
            f"{what} at offset {off} needs {st.size} bytes; buffer holds {len(buf)}"
        )
    return st.unpack_from(buf, off), off + st.size


def _u8(buf: memoryview, off: int) -> tuple[int, int]:
    if off >= len(buf):
        raise BomParseError("Read beyond EOF")
    return buf[off], off + 1


def _u32(buf: memoryview, off: int) -> tuple[int, int]:
    if off + 4 > len(buf):
        raise BomParseError("Read beyond EOF")
    return struct.unpack_from(">I", buf, off)[0], off + 4


def _bytes(buf: memoryview, off: int, n: int) -> tuple[bytes, int]:
    if off + n > len(buf):
        raise BomParseError("Read beyond EOF")
    return bytes(buf[off : off + n]), off + n


def parse_header(buf: memoryview) -> BomHeader:
    """Decode the 32-byte file header. The signature is not validated here."""
    if len(buf) < HEADER_SIZE:
        raise BomParseError(f"File too small for BOM header ({len(buf)} < {HEADER_SIZE} bytes)")
    (sig, version, n_blocks, idx_off, idx_len, vars_off, vars_len), _ = _unpack(
        buf, 0, _HEADER, "header"
    )
    return BomHeader(
        signature=sig,
        version=version,
        number_of_blocks=n_blocks,
        index_offset=idx_off,
        index_length=idx_len,
        vars_offset=vars_off,
        vars_length=vars_len,
    )


def parse_block_table(
    buf: memoryview, off: int, *, limit: Optional[int] = None
) -> Tuple[Tuple[BlockPointer, ...], int]:
    """Decode a ``count`` + ``count x (address, length)`` pointer table.

    Args:
        buf: Whole file buffer.
        off: Absolute offset of the table's count field.
        limit: Exclusive upper bound the table must fit below. Defaults to
            the buffer length; never allowed past it.

    Returns:
        The pointers in index order and the offset just past the table.
    """
    end_limit = len(buf) if limit is None else min(limit, len(buf))
    if off + 4 > end_limit:
        raise BomParseError(f"Pointer table count at {off} lies beyond {end_limit}")
    count, off = _u32(buf, off)
    table_end = off + count * POINTER_SIZE
    if table_end > end_limit:
        raise BomParseError(
            f"Pointer table declares {count} entries ending at {table_end}, beyond {end_limit}"
        )
    pointers = tuple(
        BlockPointer(address=a, length=n) for a, n in _POINTER.iter_unpack(buf[off:table_end])
    )
    return pointers, table_end


def parse_variables(buf: memoryview, off: int) -> Dict[str, int]:
    """Decode the variable directory into a name -> block index mapping."""
    count, off = _u32(buf, off)
    variables: Dict[str, int] = {}
    for _ in range(count):
        index, off = _u32(buf, off)
        name_len, off = _u8(buf, off)
        raw, off = _bytes(buf, off, name_len)
        try:
            name = raw.decode("utf-8", "strict")
        except UnicodeDecodeError as e:
            raise BomParseError(f"Invalid variable name {raw!r}: {e}") from e
        if name in variables:
            logger.debug(
                "Duplicate variable {name!r}: {old} replaced by {new}",
                name=name,
                old=variables[name],
                new=index,
            )
        variables[name] = index
    return variables


def parse_tree_root(buf: memoryview, block: BlockPointer) -> TreeRoot:
    (tag, version, child, block_size, path_count, reserved), _ = _unpack(
        buf, block.address, _TREE_ROOT, "tree root"
    )
    return TreeRoot(
        tag=tag,
        version=version,
        child=child,
        block_size=block_size,
        path_count=path_count,
        reserved=reserved,
    )


def parse_tree_node(buf: memoryview, block: BlockPointer) -> TreeNode:
    (is_leaf, count, forward, backward), _ = _unpack(buf, block.address, _TREE_NODE, "tree node")
    return TreeNode(is_leaf=is_leaf, count=count, forward=forward, backward=backward)


def parse_tree_entry(buf: memoryview, off: int) -> TreeEntryIndices:
    (value_index, key_index), _ = _unpack(buf, off, _TREE_ENTRY, "tree entry")
    return TreeEntryIndices(value_index=value_index, key_index=key_index)


def parse_child_index(buf: memoryview, block: BlockPointer) -> int:
    """Child pointer of an internal node, stored right after the node's block span."""
    value, _ = _u32(buf, block.end)
    return value
