"""Host tooling providers for hostdiag."""
from __future__ import annotations

from .commands import (
    CommandError,
    CommandNotFoundError,
    CommandResult,
    CommandRunner,
)
from .systemd import SystemdError, SystemdProvider, UnitState

__all__ = [
    "CommandError",
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "SystemdError",
    "SystemdProvider",
    "UnitState",
]
