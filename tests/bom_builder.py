"""Byte-exact synthetic BOM files for the test suite."""

import struct
from typing import Dict, List, Optional, Sequence, Tuple

# kind, pad, arch, mode, user, group, modtime, size, pad, checksum
FILE_INFO = struct.Struct(">BxHHIIIIxI")


class BomBuilder:
    """Lay out blocks, variables and pointer tables the way BOMStore files do.

    Layout: 32-byte header, block data in index order, variable directory,
    then the block table immediately followed by the free list.
    Block 0 is the null block ``(0, 0)``.
    """

    def __init__(self):
        self._blocks: List[Optional[Tuple[bytes, bytes]]] = [None]
        self._variables: List[Tuple[str, int]] = []
        self.free_blocks: List[Tuple[int, int]] = []
        self.pointer_overrides: Dict[int, Tuple[int, int]] = {}
        self.signature = b"BOMStore"
        self.version = 1
        self.index_length: Optional[int] = None
        self.index_padding = 0

    # -- blocks --------------------------------------------------------------

    def reserve(self) -> int:
        self._blocks.append(None)
        return len(self._blocks) - 1

    def set_block(self, index: int, data: bytes, trailer: bytes = b"") -> int:
        """``trailer`` is written right after the block but is not part of its length."""
        self._blocks[index] = (data, trailer)
        return index

    def add_block(self, data: bytes, trailer: bytes = b"") -> int:
        return self.set_block(self.reserve(), data, trailer)

    def add_variable(self, name: str, index: int) -> None:
        self._variables.append((name, index))

    # -- trees ---------------------------------------------------------------

    def entry(self, key: bytes, value: bytes) -> Tuple[int, int]:
        """Add key and value blocks; returns the on-disk ``(value_index, key_index)`` pair."""
        key_index = self.add_block(key)
        value_index = self.add_block(value)
        return value_index, key_index

    def leaf(
        self,
        pairs: Sequence[Tuple[int, int]],
        *,
        forward: int = 0,
        backward: int = 0,
        count: Optional[int] = None,
        index: Optional[int] = None,
    ) -> int:
        n = len(pairs) if count is None else count
        data = struct.pack(">HHII", 1, n, forward, backward)
        data += b"".join(struct.pack(">II", v, k) for v, k in pairs)
        if index is None:
            return self.add_block(data)
        return self.set_block(index, data)

    def internal(
        self,
        child: int,
        *,
        forward: int = 0,
        backward: int = 0,
        count: int = 0,
        index: Optional[int] = None,
    ) -> int:
        data = struct.pack(">HHII", 0, count, forward, backward)
        trailer = struct.pack(">I", child)
        if index is None:
            return self.add_block(data, trailer)
        return self.set_block(index, data, trailer)

    def tree(self, name: str, child: int, *, path_count: int = 0, block_size: int = 4096) -> int:
        root = struct.pack(">4sIIIIB", b"tree", 1, child, block_size, path_count, 0)
        index = self.add_block(root)
        self.add_variable(name, index)
        return index

    def leaf_chain(self, pairs: Sequence[Tuple[int, int]], per_leaf: int) -> int:
        """Split ``pairs`` over forward-linked leaves; returns the first leaf's index."""
        chunks = [pairs[i : i + per_leaf] for i in range(0, len(pairs), per_leaf)] or [[]]
        indices = [self.reserve() for _ in chunks]
        for pos, (chunk, index) in enumerate(zip(chunks, indices)):
            forward = indices[pos + 1] if pos + 1 < len(indices) else 0
            backward = indices[pos - 1] if pos > 0 else 0
            self.leaf(chunk, forward=forward, backward=backward, index=index)
        return indices[0]

    # -- output --------------------------------------------------------------

    def build(self) -> bytes:
        body = bytearray(32)
        pointers: List[Tuple[int, int]] = []
        for blk in self._blocks:
            if blk is None:
                pointers.append((0, 0))
                continue
            data, trailer = blk
            pointers.append((len(body), len(data)))
            body += data + trailer
        for index, pointer in self.pointer_overrides.items():
            pointers[index] = pointer

        vars_offset = len(body)
        directory = struct.pack(">I", len(self._variables))
        for name, index in self._variables:
            raw = name.encode("utf-8")
            directory += struct.pack(">IB", index, len(raw)) + raw
        body += directory

        index_offset = len(body)
        table = struct.pack(">I", len(pointers))
        table += b"".join(struct.pack(">II", a, n) for a, n in pointers)
        table += struct.pack(">I", len(self.free_blocks))
        table += b"".join(struct.pack(">II", a, n) for a, n in self.free_blocks)
        table += bytes(self.index_padding)
        body += table

        index_length = len(table) if self.index_length is None else self.index_length
        n_blocks = sum(1 for blk in self._blocks if blk is not None)
        body[0:32] = struct.pack(
            ">8sIIIIII",
            self.signature,
            self.version,
            n_blocks,
            index_offset,
            index_length,
            vars_offset,
            len(directory),
        )
        return bytes(body)


def file_info(
    kind: int,
    mode: int,
    *,
    user: int = 0,
    group: int = 80,
    size: int = 0,
    checksum: int = 0,
    modtime: int = 1_700_000_000,
    architecture: int = 0,
) -> bytes:
    return FILE_INFO.pack(kind, architecture, mode, user, group, modtime, size, checksum)


def paths_records(n_files: int = 22) -> List[dict]:
    """``.``, ``./usr``, ``./usr/bin`` and ``n_files`` tools inside it."""
    records = [
        dict(id=1, parent=0, name=".", info=file_info(2, 0o40755)),
        dict(id=2, parent=1, name="usr", info=file_info(2, 0o40755)),
        dict(id=3, parent=2, name="bin", info=file_info(2, 0o40755)),
    ]
    for i in range(n_files):
        records.append(
            dict(
                id=4 + i,
                parent=3,
                name=f"tool{i:02d}",
                info=file_info(1, 0o100755, size=100 * (i + 1), checksum=0xC0DE0000 + i),
            )
        )
    return records


def add_paths_tree(builder: BomBuilder, records: Sequence[dict], *, per_leaf: int = 10) -> int:
    """Add a ``Paths`` tree (internal root over a leaf chain); returns the root node index."""
    pairs = []
    for rec in records:
        info_index = builder.add_block(rec["info"])
        key = struct.pack(">I", rec["parent"]) + rec["name"].encode("utf-8") + b"\0"
        value = struct.pack(">II", rec["id"], info_index)
        pairs.append(builder.entry(key, value))
    first_leaf = builder.leaf_chain(pairs, per_leaf)
    root = builder.internal(first_leaf)
    builder.tree("Paths", root, path_count=len(records))
    return root
