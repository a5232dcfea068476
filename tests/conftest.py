"""Shared fixtures: synthetic BOM files and a loguru capture sink."""

import struct

import pytest
from loguru import logger

from bom_builder import BomBuilder, add_paths_tree, paths_records

from bom_forensics import Bom


@pytest.fixture
def records():
    return paths_records()


@pytest.fixture
def paths_bom_bytes(records):
    """25-entry ``Paths`` tree over three leaves (10 + 10 + 5), plus a ``BomInfo`` blob."""
    b = BomBuilder()
    info = b.add_block(struct.pack(">II", 1, 25))
    b.add_variable("BomInfo", info)
    add_paths_tree(b, records, per_leaf=10)
    b.free_blocks = [(0, 0), (0, 0)]
    return b.build()


@pytest.fixture
def paths_bom(paths_bom_bytes):
    return Bom(paths_bom_bytes)


@pytest.fixture
def paths_bom_file(tmp_path, paths_bom_bytes):
    path = tmp_path / "test.bom"
    path.write_bytes(paths_bom_bytes)
    return path


@pytest.fixture
def log_records():
    """Records of every WARNING-or-above loguru message emitted during the test."""
    captured = []
    handler_id = logger.add(lambda m: captured.append(m.record), level="WARNING")
    yield captured
    logger.remove(handler_id)
