"""Read-only systemd queries used by the services and logs probes."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .commands import CommandNotFoundError, CommandResult, CommandRunner


class SystemdError(RuntimeError):
    """Raised when systemd tooling is unavailable."""


@dataclass(slots=True, frozen=True)
class UnitState:
    """Enablement and activity of a single unit as reported by systemctl."""

    unit: str
    enabled: str | None
    active: str | None


@dataclass(slots=True)
class SystemdProvider:
    """Query unit state and the journal without changing anything."""

    runner: CommandRunner = field(default_factory=CommandRunner)
    systemctl_bin: str = "systemctl"
    journalctl_bin: str = "journalctl"

    def available(self) -> bool:
        """Return ``True`` when ``systemctl`` is present on the host."""
        return self.runner.exists(self.systemctl_bin)

    def journal_available(self) -> bool:
        """Return ``True`` when ``journalctl`` is present on the host."""
        return self.runner.exists(self.journalctl_bin)

    def is_enabled(self, unit: str) -> str | None:
        """Return the ``is-enabled`` state for *unit* (``None`` when unknown)."""
        return self._state("is-enabled", unit)

    def is_active(self, unit: str) -> str | None:
        """Return the ``is-active`` state for *unit* (``None`` when unknown)."""
        return self._state("is-active", unit)

    def unit_state(self, unit: str) -> UnitState:
        """Return both enablement and activity for *unit*."""
        return UnitState(unit=unit, enabled=self.is_enabled(unit), active=self.is_active(unit))

    def journal(self, *, lines: int, priority: str | None = None) -> CommandResult:
        """Return the most recent journal entries."""
        args: list[str] = []
        if priority is not None:
            args.extend(["-p", priority])
        args.extend(["-n", str(lines), "--no-pager"])
        return self._journalctl(args)

    # ------------------------------------------------------------------
    def _state(self, command: str, unit: str) -> str | None:
        # is-enabled/is-active exit non-zero for disabled or inactive units,
        # so the printed state is used regardless of the exit code.
        result = self._systemctl(command, unit)
        state = result.stdout.strip()
        return state.splitlines()[0] if state else None

    def _systemctl(self, command: str, unit: str) -> CommandResult:
        return self._run_command([self.systemctl_bin, command, unit])

    def _journalctl(self, args: Sequence[str]) -> CommandResult:
        return self._run_command([self.journalctl_bin, *args])

    def _run_command(self, args: Sequence[str]) -> CommandResult:
        try:
            return self.runner.run(args)
        except CommandNotFoundError as exc:
            raise SystemdError(str(exc)) from exc


__all__ = ["SystemdError", "SystemdProvider", "UnitState"]
