"""Enumerations for CLI exit codes."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Well-known exit codes enforced across the CLI.

    Probe failures never map to a non-zero code; only invalid flags, menu
    choices and configuration problems do.
    """

    OK = 0
    USAGE = 1
