"""Ordered fallback chains: try tool A, then tool B, then a fixed notice.

Probes describe their best-effort behaviour as data, a tuple of steps, so
each chain can be exercised on its own with a fake runner.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..providers.commands import CommandError, CommandRunner
from .models import OutputBuffer


@dataclass(slots=True, frozen=True)
class StepResult:
    """Outcome of one attempted alternative."""

    ok: bool
    text: str = ""
    error: str | None = None


@dataclass(slots=True, frozen=True)
class ChainResult:
    """Outcome of a whole chain.

    ``source`` names the alternative that produced ``text``; it is ``None``
    when no alternative was available on the host.
    """

    text: str
    error: str | None = None
    source: str | None = None

    @property
    def available(self) -> bool:
        """Return ``True`` when at least one alternative could be attempted."""
        return self.source is not None

    @property
    def ok(self) -> bool:
        """Return ``True`` when the chain did not end in a failure."""
        return self.error is None


class Step(Protocol):
    """One alternative in a fallback chain."""

    @property
    def label(self) -> str:
        """Short human-readable name of the alternative."""

    def available(self, runner: CommandRunner) -> bool:
        """Return ``True`` when this alternative can run on the host."""

    def execute(self, runner: CommandRunner) -> StepResult:
        """Run the alternative."""


def trim_lines(text: str, *, head: int | None = None, tail: int | None = None) -> str:
    """Keep the first *head* and/or last *tail* lines of *text*."""
    if head is None and tail is None:
        return text
    lines = text.splitlines()
    if head is not None:
        lines = lines[:head]
    if tail is not None:
        lines = lines[-tail:] if tail > 0 else []
    return "\n".join(lines) + "\n" if lines else ""


@dataclass(slots=True, frozen=True)
class CommandStep:
    """Run an external utility; available when ``argv[0]`` is installed.

    With ``check`` disabled a non-zero exit still counts as an answer, for
    utilities whose exit status is itself the diagnostic (reachability tests).
    """

    argv: tuple[str, ...]
    head: int | None = None
    tail: int | None = None
    merge_stderr: bool = False
    timeout: float | None = None
    check: bool = True

    @property
    def label(self) -> str:
        """Return the command line as a label."""
        return " ".join(self.argv)

    def available(self, runner: CommandRunner) -> bool:
        """Return ``True`` when the binary is on ``PATH``."""
        return runner.exists(self.argv[0])

    def execute(self, runner: CommandRunner) -> StepResult:
        """Run the command and trim its output."""
        try:
            result = runner.run(self.argv, timeout=self.timeout, merge_stderr=self.merge_stderr)
        except CommandError as exc:
            return StepResult(ok=False, error=str(exc))
        text = trim_lines(result.stdout, head=self.head, tail=self.tail)
        if result.ok or (not self.check and not result.timed_out):
            return StepResult(ok=True, text=text)
        return StepResult(ok=False, text=text, error=result.error_summary)


@dataclass(slots=True, frozen=True)
class FileStep:
    """Read a host file; available when the file exists."""

    path: Path
    head: int | None = None
    tail: int | None = None
    pattern: str | None = None
    indent: str = ""

    @property
    def label(self) -> str:
        """Return the file path as a label."""
        return str(self.path)

    def available(self, runner: CommandRunner) -> bool:
        """Return ``True`` when the file exists."""
        return self.path.is_file()

    def execute(self, runner: CommandRunner) -> StepResult:
        """Read, filter, trim and indent the file contents."""
        try:
            content = self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            return StepResult(ok=False, error=f"Cannot read {self.path}: {exc.strerror or exc}")
        lines = content.splitlines()
        if self.pattern is not None:
            matcher = re.compile(self.pattern)
            lines = [line for line in lines if matcher.search(line)]
        text = trim_lines("\n".join(lines) + "\n" if lines else "", head=self.head, tail=self.tail)
        if self.indent:
            text = "".join(f"{self.indent}{line}\n" for line in text.splitlines())
        return StepResult(ok=True, text=text)


@dataclass(slots=True, frozen=True)
class CallableStep:
    """An in-process alternative that is always available."""

    name: str
    func: Callable[[CommandRunner], StepResult]

    @property
    def label(self) -> str:
        """Return the configured name."""
        return self.name

    def available(self, runner: CommandRunner) -> bool:
        """In-process steps never depend on host tooling."""
        return True

    def execute(self, runner: CommandRunner) -> StepResult:
        """Invoke the wrapped callable."""
        return self.func(runner)


@dataclass(slots=True, frozen=True)
class FallbackChain:
    """Ordered alternatives with a notice used when none is available.

    The first available alternative that succeeds wins. A failing
    alternative falls through to the next one; if every available
    alternative fails, the last failure is reported. When nothing is
    available the ``missing_message`` is returned as plain, non-failing text.
    """

    steps: tuple[Step, ...]
    missing_message: str = ""

    def run(self, runner: CommandRunner) -> ChainResult:
        """Walk the chain and return the first success or the last failure."""
        last: tuple[Step, StepResult] | None = None
        for step in self.steps:
            if not step.available(runner):
                continue
            outcome = step.execute(runner)
            if outcome.ok:
                return ChainResult(text=outcome.text, source=step.label)
            last = (step, outcome)
        if last is None:
            text = f"{self.missing_message}\n" if self.missing_message else ""
            return ChainResult(text=text)
        step, outcome = last
        return ChainResult(text=outcome.text, error=outcome.error, source=step.label)

    def emit(self, runner: CommandRunner, out: OutputBuffer) -> ChainResult:
        """Run the chain and write its text (and any failure) to *out*."""
        result = self.run(runner)
        out.block(result.text)
        if result.error:
            out.error(result.error)
        return result


__all__ = [
    "CallableStep",
    "ChainResult",
    "CommandStep",
    "FallbackChain",
    "FileStep",
    "Step",
    "StepResult",
    "trim_lines",
]
