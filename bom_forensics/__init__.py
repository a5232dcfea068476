# bom_forensics/__init__.py
"""
bom_forensics
=============

Pure-Python decoder and forensic scanner for macOS Bill of Materials (BOM)
containers: installer receipts (``.bom``) and asset catalogs (``.car``).
Tree walks tolerate corrupt pointers and report them instead of failing.
"""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from bom_forensics.formats.bom.bom import Bom, open_bom
from bom_forensics.formats.bom.structures import (
    BlockPointer,
    BomError,
    BomParseError,
    TraversalWarning,
    VariableNotFoundError,
    WarningKind,
)

__all__ = [
    "__version__",
    "Bom",
    "open_bom",
    "BlockPointer",
    "BomError",
    "BomParseError",
    "TraversalWarning",
    "VariableNotFoundError",
    "WarningKind",
]

try:
    __version__: str = _pkg_version("bom-forensics")
except PackageNotFoundError:  # pragma: no cover - fallback for development environments
    __version__ = "0.0.0-dev"
