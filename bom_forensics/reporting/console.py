# bom_forensics/reporting/console.py
"""
Console reporting functions for BOM analysis results.
"""
from __future__ import annotations

from collections import defaultdict
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bom_forensics.analysis.base import AnalysisReport, Finding

console = Console()

STATUS_STYLES = {
    True: "[green]PASS[/green]",
    False: "[bold red]FAIL[/bold red]",
}

GROUP_ORDER = ["parse", "structure", "variable", "tree"]

STRUCTURE_SORT_ORDER = [
    "signature",
    "header",
    "index_region",
    "block_table",
    "free_list",
    "block_bounds",
    "block_count",
    "vars_region",
]


def render_summary(rep: AnalysisReport) -> None:
    """Render a high-level summary table."""
    t = Table(title="BOM Forensics Summary", box=box.SIMPLE_HEAVY)
    t.add_column("Field", style="bold")
    t.add_column("Value")
    t.add_row("Path", rep.file_path)
    t.add_row("Size (bytes)", str(rep.file_size))
    t.add_row("Format", rep.format)
    t.add_row("SHA-256", rep.sha256_hex)
    for k, v in rep.metadata.items():
        t.add_row(k.replace("_", " ").title(), str(v))
    console.print(t)


def _render_group_table(
    title: str, findings: List[Finding], *, sort_order: Optional[List[str]] = None
) -> None:
    table = Table(title=title, box=box.ROUNDED, show_lines=False, title_style="bold magenta")
    table.add_column("Status", justify="center", width=8)
    table.add_column("Check", style="cyan", no_wrap=True)
    table.add_column("Details", style="white")

    if sort_order:
        sort_map = {name: i for i, name in enumerate(sort_order)}
        findings = sorted(findings, key=lambda f: sort_map.get(f.name.split(":", 1)[-1], 999))

    for f in findings:
        check = f.name.split(":", 1)[-1]
        table.add_row(STATUS_STYLES[f.ok], check, f.details)

    console.print(table)


def render_findings(rep: AnalysisReport) -> None:
    """Render findings grouped by the prefix before ':' in their name."""
    if not rep.findings:
        return

    groups = defaultdict(list)
    for f in rep.findings:
        groups[f.name.split(":", 1)[0]].append(f)

    for group in GROUP_ORDER + sorted(set(groups) - set(GROUP_ORDER)):
        if group not in groups:
            continue
        title = group.replace("_", " ").title() + " Checks"
        if group == "structure":
            _render_group_table(title, groups[group], sort_order=STRUCTURE_SORT_ORDER)
        else:
            _render_group_table(title, groups[group])


def render_diagnostics(rep: AnalysisReport) -> None:
    """Render corruption warnings collected while walking trees."""
    if not rep.diagnostics:
        return
    table = Table(title="Tree Walk Warnings", box=box.ROUNDED, title_style="bold yellow")
    table.add_column("Kind", style="yellow", no_wrap=True)
    table.add_column("Block", justify="right")
    table.add_column("Message")
    for w in rep.diagnostics:
        table.add_row(w.kind.value, str(w.block_index), w.message)
    console.print(table)


def render_reason_matrix(rep: AnalysisReport) -> None:
    """Render the reason matrix table (why structures failed to decode)."""
    if not rep.reason_matrix:
        return
    rt = Table(title="Reason Matrix", box=box.SIMPLE_HEAVY, show_lines=False)
    rt.add_column("Structure", style="bold")
    rt.add_column("Reason")
    for entry in rep.reason_matrix:
        rt.add_row(entry.target, entry.reason)
    console.print(rt)


def render_report(rep: AnalysisReport) -> None:
    """Render the full console report."""
    console.print(
        Panel(
            f"[bold]Result:[/bold] {'[green]OK[/green]' if rep.ok else '[red]FAILED[/red]'}",
            style="bold cyan",
        )
    )
    render_summary(rep)
    render_findings(rep)
    render_diagnostics(rep)
    render_reason_matrix(rep)
