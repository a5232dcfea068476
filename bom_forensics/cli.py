# bom_forensics/cli.py
"""
cli.py

Rich console CLI:
- scan:    analyze a .bom / .car file, print summary, findings, tree-walk
           warnings and reason matrix.
- ls:      list the ``Paths`` tree like macOS ``lsbom``.
- version: show the package version.
"""
from __future__ import annotations

import argparse
import os
from typing import List, Optional

from rich.console import Console

from bom_forensics import __version__
from bom_forensics.analysis.analyzer import AVAILABLE_STAGES
from bom_forensics.analysis.bom_analyzer import BomAnalyzer
from bom_forensics.formats.bom.bom import open_bom
from bom_forensics.formats.bom.paths import build_full_paths, read_path_entries
from bom_forensics.formats.bom.structures import BomError, VariableNotFoundError
from bom_forensics.logging import configure_logging
from bom_forensics.reporting import console as console_reporter
from bom_forensics.reporting.json_reporter import write_json
from bom_forensics.reporting.listing import format_listing

console = Console(stderr=True)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bomfx",
        description="BOM Forensics: inspect macOS Bill of Materials (.bom / .car) files.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = p.add_subparsers(dest="cmd", title="Available Commands", metavar="<command>")

    sp_scan = sub.add_parser("scan", help="Scan a local .bom or .car file")
    sp_scan.add_argument("path", help="Path to BOM file")
    sp_scan.add_argument("--debug", action="store_true", help="Enable debug logging")
    sp_scan.add_argument(
        "--json-out", type=str, default=None, help="Write JSON report to this path"
    )
    sp_scan.add_argument(
        "--stage",
        nargs="+",
        choices=AVAILABLE_STAGES,
        metavar="STAGE",
        help=(
            f"Run only specific analysis stages. Defaults to all stages if not provided.\n"
            f"Available stages: {', '.join(AVAILABLE_STAGES)}."
        ),
    )

    sp_ls = sub.add_parser("ls", help="List the Paths tree like lsbom")
    _add_ls_arguments(sp_ls)

    sub.add_parser("version", help="Show the version of bom-forensics")

    return p


def _add_ls_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", help="Path to BOM file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")


def _check_path(path: str) -> bool:
    if not os.path.isfile(path):
        console.print(f"[red]File not found:[/red] {path}")
        return False
    return True


def _run_scan(args: argparse.Namespace) -> int:
    if not _check_path(args.path):
        return 2

    stages_to_run = args.stage or AVAILABLE_STAGES
    console.print(f"[dim]Running stages: {', '.join(stages_to_run)}...[/dim]")
    rep = BomAnalyzer(args.path).run(stages=stages_to_run)

    console_reporter.render_report(rep)

    if args.json_out:
        write_json(rep, args.json_out)
        console.print(f"[dim]Wrote JSON report → {args.json_out}[/dim]")
    return 0


def _run_ls(args: argparse.Namespace) -> int:
    if not _check_path(args.path):
        return 2
    try:
        bom = open_bom(args.path)
        entries = read_path_entries(bom)
    except VariableNotFoundError as e:
        console.print(f"[red]No Paths tree:[/red] {e}")
        return 1
    except BomError as e:
        console.print(f"[red]BOM parse error:[/red] {e}")
        return 1

    for line in format_listing(build_full_paths(entries)):
        print(line)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "version":
        print(f"BOM Forensics Version {__version__}")
        return 0

    configure_logging(debug=args.debug)

    if args.cmd == "scan":
        return _run_scan(args)
    if args.cmd == "ls":
        return _run_ls(args)

    parser.print_help()
    return 1


def lsbom_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the standalone ``lsbom`` command."""
    p = argparse.ArgumentParser(prog="lsbom", description="List the contents of a BOM file.")
    _add_ls_arguments(p)
    args = p.parse_args(argv)
    configure_logging(debug=args.debug)
    return _run_ls(args)
