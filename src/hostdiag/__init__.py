"""Read-only host diagnostics report.

Hatch reads ``__version__`` from this module when building the package.
"""
from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.3.0"
