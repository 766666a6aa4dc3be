"""Data models shared by the probe registry, selector and report engine."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import AppConfig
    from ..providers.commands import CommandRunner
    from ..providers.systemd import SystemdProvider


ALL_PROBES = "all"


class SelectionError(RuntimeError):
    """Raised when a selection names probes the registry does not know."""


class UnknownProbeError(SelectionError):
    """Raised by registry lookups for an unregistered probe name."""


@dataclass(slots=True, frozen=True)
class ProbeContext:
    """Collaborators made available to every probe."""

    config: AppConfig
    runner: CommandRunner
    systemd: SystemdProvider


class OutputBuffer:
    """Append-only text collector handed to a running probe.

    Text written before a probe raises is kept, so the report can still show
    partial output for a failed section.
    """

    def __init__(self) -> None:
        """Start with no text and no recorded errors."""
        self._chunks: list[str] = []
        self._errors: list[str] = []

    def write(self, text: str) -> None:
        """Append *text* verbatim."""
        if text:
            self._chunks.append(text)

    def line(self, text: str = "") -> None:
        """Append *text* followed by a newline."""
        self._chunks.append(f"{text}\n")

    def block(self, text: str) -> None:
        """Append multi-line *text*, guaranteeing a trailing newline."""
        if not text:
            return
        self._chunks.append(text if text.endswith("\n") else f"{text}\n")

    def error(self, summary: str) -> None:
        """Record a failure summary for this probe."""
        cleaned = " ".join(summary.split())
        if cleaned:
            self._errors.append(cleaned)

    @property
    def text(self) -> str:
        """Return everything written so far."""
        return "".join(self._chunks)

    @property
    def errors(self) -> tuple[str, ...]:
        """Return the recorded error summaries in order."""
        return tuple(self._errors)


ProbeRunner = Callable[[ProbeContext, OutputBuffer], "str | None"]


@dataclass(slots=True, frozen=True)
class ProbeDefinition:
    """A named, independent diagnostic unit."""

    name: str
    title: str
    run: ProbeRunner


@dataclass(slots=True, frozen=True)
class Selection:
    """The probes requested for one invocation, plus export settings."""

    enabled: frozenset[str] = frozenset()
    export_to_file: bool = False
    output_path: Path | None = None

    @classmethod
    def from_names(
        cls,
        names: Iterable[str],
        *,
        export_to_file: bool = False,
        output_path: Path | None = None,
    ) -> Selection:
        """Build a selection from raw names, normalising case and whitespace."""
        normalised = frozenset(name.strip().lower() for name in names if name.strip())
        return cls(enabled=normalised, export_to_file=export_to_file, output_path=output_path)

    @property
    def is_empty(self) -> bool:
        """Return ``True`` when no probe was requested."""
        return not self.enabled


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """Outcome of running a single probe through the safe executor."""

    probe_name: str
    title: str
    output_text: str
    failed: bool = False
    error_summary: str | None = None
    duration_ms: int | None = None


@dataclass(slots=True, frozen=True)
class ReportSummary:
    """What a report run produced, returned once every section is emitted."""

    results: Sequence[ExecutionResult]
    output_path: Path | None = None
    sink_error: str | None = None

    @property
    def probe_names(self) -> tuple[str, ...]:
        """Return the names of the probes that ran, in report order."""
        return tuple(result.probe_name for result in self.results)

    @property
    def failed_probes(self) -> tuple[str, ...]:
        """Return the names of probes whose section carries an error."""
        return tuple(result.probe_name for result in self.results if result.failed)


__all__ = [
    "ALL_PROBES",
    "ExecutionResult",
    "OutputBuffer",
    "ProbeContext",
    "ProbeDefinition",
    "ProbeRunner",
    "ReportSummary",
    "Selection",
    "SelectionError",
    "UnknownProbeError",
]
