# bom_forensics/analysis/bom_analyzer.py
"""
BOM analyzer: structural verification of the header, pointer tables,
variable directory and every named tree.
"""

from __future__ import annotations

from typing import List

from loguru import logger

from bom_forensics.analysis.analyzer import Analyzer
from bom_forensics.analysis.base import AnalysisReport
from bom_forensics.formats.bom.bom import Bom
from bom_forensics.formats.bom.structures import (
    BOM_SIGNATURE,
    HEADER_SIZE,
    POINTER_SIZE,
    TREE_TAG,
    BomError,
    TraversalWarning,
)
from bom_forensics.observability import format_hex


def _count_entry(acc: int, _key: memoryview, _value: memoryview) -> int:
    return acc + 1


class BomAnalyzer(Analyzer):
    """Analyzer implementation for BOM / CAR files."""

    def get_format_name(self) -> str:
        return "bom"

    def _perform_analysis(self, mv: memoryview, report: AnalysisReport) -> None:
        file_size = report.file_size

        try:
            bom = Bom(mv)
        except BomError as e:
            report.add("parse", False, f"BOM parse error: {e}")
            report.add_reason("bom tables", str(e))
            return

        hdr = bom.header
        report.metadata.update(
            {
                "signature": format_hex(hdr.signature),
                "version": hdr.version,
                "number_of_blocks": hdr.number_of_blocks,
                "index_region": f"[{hdr.index_offset}, {hdr.index_end})",
                "vars_region": f"[{hdr.vars_offset}, {hdr.vars_offset + hdr.vars_length})",
                "block_table_entries": len(bom.blocks),
                "free_list_entries": len(bom.free_blocks),
                "variables": len(bom.variables),
            }
        )

        self._check_layout(bom, report, file_size)
        self._check_variables(bom, report)
        self._check_trees(bom, report)

    def _check_layout(self, bom: Bom, report: AnalysisReport, file_size: int) -> None:
        hdr = bom.header
        report.add(
            "structure:signature",
            hdr.signature == BOM_SIGNATURE,
            f"{hdr.signature!r}",
        )
        report.add(
            "structure:header",
            True,
            f"Region: [0, {HEADER_SIZE}) version={hdr.version}",
        )
        report.add(
            "structure:index_region",
            hdr.index_end <= file_size,
            f"Region: [{hdr.index_offset}, {hdr.index_end}) of {file_size}",
        )
        vars_end = hdr.vars_offset + hdr.vars_length
        report.add(
            "structure:vars_region",
            vars_end <= file_size,
            f"Region: [{hdr.vars_offset}, {vars_end}) of {file_size}",
        )

        table_end = hdr.index_offset + 4 + len(bom.blocks) * POINTER_SIZE
        free_end = table_end + 4 + len(bom.free_blocks) * POINTER_SIZE
        report.add(
            "structure:block_table",
            table_end <= hdr.index_end,
            f"Region: [{hdr.index_offset}, {table_end}) (Count: {len(bom.blocks)})",
        )
        if bom.free_list_dropped:
            report.add(
                "structure:free_list",
                False,
                f"Region: [{table_end}, ?) overruns index region ending at {hdr.index_end}",
            )
            report.add_reason("free list", "runs past the index region; ignored")
        else:
            report.add(
                "structure:free_list",
                free_end <= hdr.index_end,
                f"Region: [{table_end}, {free_end}) (Count: {len(bom.free_blocks)})",
            )

        outside = [i for i, b in enumerate(bom.blocks) if b.end > file_size]
        report.add(
            "structure:block_bounds",
            not outside,
            f"{len(outside)} block(s) extend past EOF" if outside else "all blocks lie within file",
            outside=outside[:16],
        )
        allocated = sum(1 for b in bom.blocks if b.length)
        report.add(
            "structure:block_count",
            True,
            f"header declares {hdr.number_of_blocks}, table holds {allocated} non-empty",
        )

    def _check_variables(self, bom: Bom, report: AnalysisReport) -> None:
        for name, index in sorted(bom.variables.items()):
            block = bom.block(index)
            if block is None:
                report.add(f"variable:{name}", False, f"block {index} does not resolve")
                report.add_reason(f"variable {name}", f"block index {index} out of range")
                continue
            report.add(
                f"variable:{name}",
                True,
                f"block {index} Region: [{block.address}, {block.end})",
                index=index,
                start=block.address,
                end=block.end,
            )

    def _check_trees(self, bom: Bom, report: AnalysisReport) -> None:
        for name in sorted(bom.variables):
            data = bom.block_data(bom.variables[name])
            if data is None or bytes(data[:4]) != TREE_TAG:
                continue
            diagnostics: List[TraversalWarning] = []
            try:
                root = bom.tree_root(name)
                count = bom.fold_tree(root.child, 0, _count_entry, diagnostics=diagnostics)
            except BomError as e:
                report.add(f"tree:{name}", False, f"tree root unreadable: {e}")
                report.add_reason(f"tree {name}", str(e))
                continue

            report.diagnostics.extend(diagnostics)
            logger.debug(
                "Tree {name}: {count} entries, {n} warnings",
                name=name,
                count=count,
                n=len(diagnostics),
            )
            report.add(
                f"tree:{name}",
                not diagnostics,
                f"entries={count} path_count={root.path_count} warnings={len(diagnostics)}",
                entries=count,
                path_count=root.path_count,
                block_size=root.block_size,
                warnings=len(diagnostics),
            )
            for w in diagnostics:
                report.add_reason(
                    f"tree {name}", f"{w.kind.value} @ block {w.block_index}: {w.message}"
                )
