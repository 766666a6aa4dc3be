"""Structured operation logging for hostdiag.

Every CLI invocation is recorded as a single JSON line in
``<logs_dir>/operations.jsonl``. The logger is strictly best effort: when the
directory cannot be created, or a write fails, it disables itself and the
command carries on. When no ``logs_dir`` is configured nothing is written at
all, keeping a default run free of filesystem side effects.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

LOGGER = logging.getLogger(__name__)

OPERATIONS_LOG_NAME = "operations.jsonl"


def _sanitize(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


@dataclass(slots=True)
class OperationScope:
    """Mutable record for a single logged operation."""

    command: str
    args: Mapping[str, object]
    target: Mapping[str, object]
    op_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: str = field(default_factory=_timestamp)
    steps: list[dict[str, object]] = field(default_factory=list)
    result: dict[str, object] | None = None
    _start: float = field(default_factory=time.perf_counter)

    def add_step(
        self,
        name: str,
        *,
        status: str = "ok",
        detail: str | None = None,
        **extra: object,
    ) -> None:
        """Record an intermediate step of the operation."""
        step: dict[str, object] = {"name": name, "status": status}
        if detail is not None:
            step["detail"] = detail
        for key, value in extra.items():
            step[key] = _sanitize(value)
        self.steps.append(step)

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._finish("success", message, changed=changed, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._finish(
            "warning",
            message,
            changed=changed,
            warnings=warnings,
            errors=errors,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        errors: Sequence[str] | None = None,
        rc: int = 1,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed."""
        self._finish(
            "error",
            message,
            errors=list(errors) if errors else [message],
            rc=rc,
            context=context,
        )

    def _finish(
        self,
        status: str,
        message: str,
        *,
        changed: int = 0,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        rc: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        payload: dict[str, object] = {
            "status": status,
            "message": message,
            "changed": changed,
            "rc": rc,
        }
        if warnings:
            payload["warnings"] = list(warnings)
        if errors:
            payload["errors"] = list(errors)
        if context:
            payload["context"] = _sanitize(context)
        self.result = payload

    def to_record(self) -> dict[str, object]:
        """Return the JSON-safe log record for this operation."""
        return {
            "op_id": self.op_id,
            "command": self.command,
            "args": _sanitize(self.args),
            "target": _sanitize(self.target),
            "started_at": self.started_at,
            "finished_at": _timestamp(),
            "duration_ms": int((time.perf_counter() - self._start) * 1000),
            "steps": list(self.steps),
            "result": self.result,
        }


class StructuredLogger:
    """Append-only JSON-lines writer for CLI operations."""

    def __init__(self, logs_dir: Path | None) -> None:
        """Prepare the log directory, disabling logging when it is unusable."""
        self._logs_dir = logs_dir
        self._enabled = logs_dir is not None
        self._operations_log_path: Path | None = None
        if logs_dir is None:
            return
        self._operations_log_path = logs_dir / OPERATIONS_LOG_NAME
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.debug("Operations log disabled; cannot create %s: %s", logs_dir, exc)
            self._enabled = False

    @property
    def enabled(self) -> bool:
        """Return ``True`` when records are being written."""
        return self._enabled

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield an :class:`OperationScope` and persist it on exit."""
        scope = OperationScope(command=command, args=dict(args or {}), target=dict(target or {}))
        try:
            yield scope
        except BaseException as exc:
            if scope.result is None:
                rc = getattr(exc, "exit_code", 1)
                if rc == 0:
                    scope.success(f"{command} exited early.")
                else:
                    scope.error(f"{command} aborted: {exc!r}", rc=rc)
            raise
        finally:
            self._write(scope)

    def _write(self, scope: OperationScope) -> None:
        if not self._enabled or self._operations_log_path is None:
            return
        if scope.result is None:
            scope.success(f"{scope.command} completed.")
        line = json.dumps(scope.to_record(), sort_keys=True)
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            LOGGER.debug("Operations log disabled after write failure: %s", exc)
            self._enabled = False


__all__ = ["OperationScope", "StructuredLogger", "OPERATIONS_LOG_NAME"]

