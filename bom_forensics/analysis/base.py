# bom_forensics/analysis/base.py
"""
Base analysis models: findings, reason matrix and traversal diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from bom_forensics.formats.bom.structures import TraversalWarning


@dataclass
class Finding:
    """Single check result."""

    name: str  # "<group>:<check>", e.g. "structure:block_table_region"
    ok: bool
    details: str = ""
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReasonEntry:
    """Explains why a structure could not be decoded."""

    target: str  # e.g. "bom header", "tree Paths"
    reason: str


@dataclass
class AnalysisReport:
    """Aggregate analysis report for one BOM file."""

    file_path: str
    file_size: int
    sha256_hex: str
    format: str
    metadata: Dict[str, Any]
    findings: List[Finding] = field(default_factory=list)
    reason_matrix: List[ReasonEntry] = field(default_factory=list)
    diagnostics: List[TraversalWarning] = field(default_factory=list)
    stages_run: List[str] = field(default_factory=list)

    def add(self, name: str, ok: bool, details: str = "", **context: Any) -> None:
        self.findings.append(Finding(name=name, ok=ok, details=details, context=context))

    def add_reason(self, target: str, reason: str) -> None:
        self.reason_matrix.append(ReasonEntry(target=target, reason=reason))

    @property
    def ok(self) -> bool:
        return all(f.ok for f in self.findings) if self.findings else True
