"""Bounded execution of read-only host utilities."""
from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TIMEOUT = 30.0
TIMEOUT_RETURNCODE = 124


class CommandError(RuntimeError):
    """Raised when a command cannot be started."""


class CommandNotFoundError(CommandError):
    """Raised when the requested binary is not available on the host."""


@dataclass(slots=True, frozen=True)
class CommandResult:
    """Captured outcome of a single command invocation."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """Return ``True`` when the command exited cleanly."""
        return self.returncode == 0 and not self.timed_out

    @property
    def error_summary(self) -> str:
        """Return a one-line description of why the command failed."""
        if self.timed_out:
            return self.stderr.strip() or "command timed out"
        message = self.stderr.strip() or self.stdout.strip() or "no output"
        first_line = message.splitlines()[0]
        return f"{' '.join(self.argv)} failed (exit {self.returncode}): {first_line}"


@dataclass(slots=True)
class CommandRunner:
    """Run host utilities with captured output and a bounded wait."""

    timeout: float = DEFAULT_TIMEOUT

    def which(self, command: str) -> str | None:
        """Return the resolved executable path for *command*, if any."""
        path = Path(command)
        if path.is_absolute() or (path.parent and str(path.parent) not in {"", "."}):
            if path.exists() and os.access(path, os.X_OK):
                return str(path)
            return None
        resolved = shutil.which(command)
        if resolved is None or not os.access(resolved, os.X_OK):
            return None
        return resolved

    def exists(self, command: str) -> bool:
        """Return ``True`` when *command* can be executed."""
        return self.which(command) is not None

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        merge_stderr: bool = False,
    ) -> CommandResult:
        """Execute *args* and capture its output.

        Non-zero exit codes are returned, not raised; callers decide what a
        failure means. A timeout yields a result with ``timed_out`` set.
        """
        argv = tuple(str(arg) for arg in args)
        if not argv:
            raise CommandError("No command supplied.")
        effective_timeout = self.timeout if timeout is None else timeout
        try:
            completed = subprocess.run(  # noqa: S603
                list(argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
                check=False,
                timeout=effective_timeout,
            )
        except FileNotFoundError as exc:
            raise CommandNotFoundError(f"{argv[0]} not found: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            partial = exc.stdout or ""
            if isinstance(partial, bytes):
                partial = partial.decode("utf-8", errors="replace")
            return CommandResult(
                argv=argv,
                returncode=TIMEOUT_RETURNCODE,
                stdout=partial,
                stderr=f"{argv[0]} timed out after {effective_timeout:g} seconds",
                timed_out=True,
            )
        except OSError as exc:
            raise CommandError(f"{argv[0]} could not be executed: {exc}") from exc
        return CommandResult(
            argv=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


__all__ = [
    "CommandError",
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "DEFAULT_TIMEOUT",
    "TIMEOUT_RETURNCODE",
]
