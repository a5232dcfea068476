# bom_forensics/formats/bom/bom.py
"""
BOM container: owns the file buffer and the decoded tables, and walks the
on-disk trees.

Every structure is addressed by block index. All dereferences go through
:meth:`Bom.block`, so a corrupt index or a range outside the buffer is always
seen as "unusable" and never as a bad read. Corruption met during a tree walk
is logged, optionally collected into a ``diagnostics`` list, and skipped.
"""

from __future__ import annotations

import os
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Set, Tuple, TypeVar, Union

from loguru import logger

from bom_forensics.io.file_reader import LocalFileSource

from .decoder import (
    parse_block_table,
    parse_child_index,
    parse_header,
    parse_tree_entry,
    parse_tree_node,
    parse_tree_root,
    parse_variables,
)
from .structures import (
    BOM_SIGNATURE,
    TREE_ENTRY_SIZE,
    TREE_NODE_HEADER_SIZE,
    TREE_TAG,
    BlockPointer,
    BomHeader,
    BomParseError,
    TraversalWarning,
    TreeRoot,
    VariableNotFoundError,
    WarningKind,
)

A = TypeVar("A")
V = TypeVar("V")

Combine = Callable[[A, memoryview, memoryview], A]
Transform = Callable[[memoryview, memoryview], V]
Diagnostics = Optional[List[TraversalWarning]]

DEFAULT_MAX_DEPTH = 64


def _warn(diagnostics: Diagnostics, kind: WarningKind, index: int, message: str) -> None:
    logger.warning(
        "BOM tree {kind} at block {index}: {message}",
        kind=kind.value,
        index=index,
        message=message,
    )
    if diagnostics is not None:
        diagnostics.append(TraversalWarning(kind=kind, block_index=index, message=message))


class Bom:
    """A decoded BOM file.

    The buffer is snapshotted into one immutable ``bytes`` object at
    construction; key/value spans handed to fold callbacks are read-only
    ``memoryview`` slices of it.

    Args:
        buffer: The whole file contents.
        max_depth: Maximum number of internal -> child descents per walk.

    Raises:
        BomParseError: If the header, block table or variable directory
            cannot be decoded.
    """

    __slots__ = (
        "_buffer",
        "_view",
        "_header",
        "_blocks",
        "_free_blocks",
        "_free_list_dropped",
        "_variables",
        "max_depth",
    )

    def __init__(
        self, buffer: Union[bytes, bytearray, memoryview], *, max_depth: int = DEFAULT_MAX_DEPTH
    ):
        self._buffer: bytes = bytes(buffer)
        self._view = memoryview(self._buffer)
        self.max_depth = max_depth

        self._header: BomHeader = parse_header(self._view)
        if self._header.signature != BOM_SIGNATURE:
            logger.warning("Unexpected BOM signature {sig!r}", sig=self._header.signature)

        region_end = min(self._header.index_end, len(self._view))
        self._blocks, free_offset = parse_block_table(self._view, self._header.index_offset)
        self._free_list_dropped = False
        try:
            self._free_blocks, _ = parse_block_table(self._view, free_offset, limit=region_end)
        except BomParseError as e:
            logger.warning("Ignoring unreadable free block list: {error}", error=e)
            self._free_blocks = ()
            self._free_list_dropped = True

        self._variables = parse_variables(self._view, self._header.vars_offset)
        logger.debug(
            "Loaded BOM: {size} bytes, {n} blocks, {free} free, variables={names}",
            size=len(self._buffer),
            n=len(self._blocks),
            free=len(self._free_blocks),
            names=sorted(self._variables),
        )

    @classmethod
    def from_file(cls, path: Union[str, os.PathLike], **kwargs) -> "Bom":
        """Load a BOM file from disk. I/O failures propagate as ``OSError``."""
        with LocalFileSource(os.fspath(path)).open() as mf:
            return cls(mf.view, **kwargs)

    # -- tables ------------------------------------------------------------

    @property
    def buffer(self) -> bytes:
        return self._buffer

    @property
    def size(self) -> int:
        return len(self._buffer)

    @property
    def header(self) -> BomHeader:
        return self._header

    @property
    def blocks(self) -> Tuple[BlockPointer, ...]:
        return self._blocks

    @property
    def free_blocks(self) -> Tuple[BlockPointer, ...]:
        return self._free_blocks

    @property
    def free_list_dropped(self) -> bool:
        """True when the free list ran past the index region and was ignored."""
        return self._free_list_dropped

    @property
    def variables(self) -> Mapping[str, int]:
        return MappingProxyType(self._variables)

    def block(self, index: int) -> Optional[BlockPointer]:
        """Bounds-checked block lookup.

        Returns ``None`` when ``index`` is outside the block table or the
        block's range does not lie inside the buffer.
        """
        if not 0 <= index < len(self._blocks):
            return None
        block = self._blocks[index]
        if block.end > len(self._view):
            logger.debug(
                "Block {index} [{a}, {b}) runs past EOF", index=index, a=block.address, b=block.end
            )
            return None
        return block

    block_for_index = block

    def block_for_variable(self, name: str) -> Optional[BlockPointer]:
        index = self._variables.get(name)
        if index is None:
            return None
        return self.block(index)

    def block_data(self, index: int) -> Optional[memoryview]:
        """Zero-copy view over a block's bytes, or ``None`` if it does not resolve."""
        block = self.block(index)
        if block is None:
            return None
        return self._view[block.address : block.end]

    def tree_root(self, name: str) -> TreeRoot:
        """Decode the tree root record a variable points to.

        Raises:
            VariableNotFoundError: The variable is absent or its block index
                does not resolve.
            BomParseError: The root record runs past the end of the buffer.
        """
        index = self._variables.get(name)
        if index is None:
            raise VariableNotFoundError(name)
        block = self.block(index)
        if block is None:
            raise VariableNotFoundError(name, f"block index {index} does not resolve")
        root = parse_tree_root(self._view, block)
        if root.tag != TREE_TAG:
            logger.warning(
                "Variable {name!r} root has tag {tag!r}, expected 'tree'", name=name, tag=root.tag
            )
        return root

    # -- traversal ---------------------------------------------------------

    def fold_tree(
        self, index: int, initial: A, combine: Combine, *, diagnostics: Diagnostics = None
    ) -> A:
        """Fold ``combine(acc, key, value)`` over every leaf pair reachable from ``index``.

        Pairs are visited depth-first, each node's own content before its
        forward siblings. Corrupt nodes and entries are skipped and reported
        through the log and, if given, ``diagnostics``; they never abort the fold.
        """
        visited: Set[int] = set()
        return self._fold_level(index, initial, combine, visited, diagnostics, 0)

    def _fold_level(
        self,
        index: int,
        acc: A,
        combine: Combine,
        visited: Set[int],
        diagnostics: Diagnostics,
        depth: int,
    ) -> A:
        # Siblings are walked in a loop; only child descent recurses.
        while True:
            if index in visited:
                _warn(diagnostics, WarningKind.CYCLE, index, "node already visited in this walk")
                break
            visited.add(index)

            block = self.block(index)
            if block is None:
                _warn(
                    diagnostics, WarningKind.UNRESOLVABLE_NODE, index, "node block does not resolve"
                )
                break
            try:
                node = parse_tree_node(self._view, block)
            except BomParseError as e:
                _warn(diagnostics, WarningKind.UNREADABLE_NODE, index, str(e))
                break

            if node.leaf:
                acc = self._fold_leaf(index, block, node.count, acc, combine, diagnostics)
            elif node.count != 0:
                _warn(
                    diagnostics,
                    WarningKind.MALFORMED_INTERNAL,
                    index,
                    f"internal node declares {node.count} entries; children skipped",
                )
            else:
                try:
                    child = parse_child_index(self._view, block)
                except BomParseError as e:
                    _warn(diagnostics, WarningKind.BAD_CHILD, index, f"child index unreadable: {e}")
                else:
                    if depth >= self.max_depth:
                        _warn(
                            diagnostics,
                            WarningKind.DEPTH_LIMIT,
                            index,
                            f"descent deeper than {self.max_depth} levels; subtree skipped",
                        )
                    else:
                        acc = self._fold_level(child, acc, combine, visited, diagnostics, depth + 1)

            if node.forward == 0:
                break
            index = node.forward
        return acc

    def _fold_leaf(
        self,
        index: int,
        block: BlockPointer,
        count: int,
        acc: A,
        combine: Combine,
        diagnostics: Diagnostics,
    ) -> A:
        start = block.address + TREE_NODE_HEADER_SIZE
        fits = max(0, (len(self._view) - start) // TREE_ENTRY_SIZE)
        if count > fits:
            _warn(
                diagnostics,
                WarningKind.TRUNCATED_LEAF,
                index,
                f"leaf declares {count} entries but only {fits} fit in the buffer",
            )
            count = fits

        for i in range(count):
            entry = parse_tree_entry(self._view, start + i * TREE_ENTRY_SIZE)
            key_block = self.block(entry.key_index)
            value_block = self.block(entry.value_index)
            if key_block is None or value_block is None:
                _warn(
                    diagnostics,
                    WarningKind.UNRESOLVABLE_ENTRY,
                    index,
                    f"entry {i}: key {entry.key_index} / value {entry.value_index} unresolvable",
                )
                continue
            if key_block.length == 0 or value_block.length == 0:
                _warn(
                    diagnostics,
                    WarningKind.EMPTY_ENTRY,
                    index,
                    f"entry {i}: key {entry.key_index} / value {entry.value_index} is empty",
                )
                continue
            acc = combine(
                acc,
                self._view[key_block.address : key_block.end],
                self._view[value_block.address : value_block.end],
            )
        return acc

    def fold_tree_for_variable(
        self, name: str, initial: A, combine: Combine, *, diagnostics: Diagnostics = None
    ) -> A:
        """Fold over the tree a named variable points to.

        Raises:
            VariableNotFoundError: If ``name`` is not in the variable directory.
        """
        root = self.tree_root(name)
        return self.fold_tree(root.child, initial, combine, diagnostics=diagnostics)

    def collect_tree(
        self, index: int, transform: Transform, *, diagnostics: Diagnostics = None
    ) -> List[V]:
        def push(acc: List[V], key: memoryview, value: memoryview) -> List[V]:
            acc.append(transform(key, value))
            return acc

        return self.fold_tree(index, [], push, diagnostics=diagnostics)

    def collect_tree_for_variable(
        self, name: str, transform: Transform, *, diagnostics: Diagnostics = None
    ) -> List[V]:
        root = self.tree_root(name)
        return self.collect_tree(root.child, transform, diagnostics=diagnostics)

    map_tree = collect_tree
    fold_over_variable = fold_tree_for_variable
    map_over_variable = collect_tree_for_variable

    def __repr__(self) -> str:
        return (
            f"Bom(size={len(self._buffer)}, version={self._header.version}, "
            f"blocks={len(self._blocks)}, free_blocks={len(self._free_blocks)}, "
            f"variables={sorted(self._variables)})"
        )


def open_bom(source: Union[str, os.PathLike, bytes, bytearray, memoryview], **kwargs) -> Bom:
    """Open a BOM from a filesystem path or from bytes already in memory."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return Bom(source, **kwargs)
    return Bom.from_file(source, **kwargs)
