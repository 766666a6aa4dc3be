"""Section rendering and the console/file sinks a report is streamed to."""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import Protocol, TextIO

import typer

from .models import ExecutionResult

LOGGER = logging.getLogger(__name__)

RULE = "=" * 70


class SinkError(RuntimeError):
    """Raised when a report sink cannot be opened or written."""


def render_header(title: str) -> str:
    """Return the delimiter block that opens a section."""
    return f"\n{RULE}\n{title}\n{RULE}\n"


def render_body(result: ExecutionResult) -> str:
    """Return a section's output followed by its inline error annotation."""
    body = result.output_text
    if body and not body.endswith("\n"):
        body += "\n"
    if result.failed:
        body += f"[ERROR] {result.probe_name}: {result.error_summary or 'unknown error'}\n"
    return body


class ReportSink(Protocol):
    """Anything a rendered report can be streamed into."""

    def write(self, text: str) -> None:
        """Write *text* to the sink."""

    def flush(self) -> None:
        """Push buffered text out."""


class ConsoleSink:
    """Stream report text to standard output (or *stream* when given)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        """Bind the sink to *stream*, defaulting to stdout at write time."""
        self._stream = stream

    def write(self, text: str) -> None:
        """Echo *text* verbatim, escape sequences included, without a newline."""
        typer.echo(text, nl=False, file=self._stream, color=True)

    def flush(self) -> None:
        """Flush the explicit stream; ``typer.echo`` flushes stdout itself."""
        if self._stream is not None:
            self._stream.flush()


class FileSink:
    """Stream report text into a file, opened lazily."""

    def __init__(self, path: Path) -> None:
        """Remember *path*; nothing touches the filesystem until :meth:`open`."""
        self.path = path
        self._handle: TextIO | None = None

    def open(self) -> None:
        """Create or truncate the target file."""
        try:
            self._handle = self.path.open("w", encoding="utf-8", newline="")
        except OSError as exc:
            raise SinkError(f"Cannot open {self.path}: {exc}") from exc

    def write(self, text: str) -> None:
        """Append *text* to the file."""
        if self._handle is None:
            raise SinkError(f"{self.path} is not open.")
        try:
            self._handle.write(text)
        except OSError as exc:
            raise SinkError(f"Cannot write {self.path}: {exc}") from exc

    def flush(self) -> None:
        """Flush buffered text to disk."""
        if self._handle is None:
            return
        try:
            self._handle.flush()
        except OSError as exc:
            raise SinkError(f"Cannot write {self.path}: {exc}") from exc

    def close(self) -> None:
        """Close the file, ignoring a sink that never opened."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.close()
        except OSError as exc:
            raise SinkError(f"Cannot close {self.path}: {exc}") from exc


class TeeWriter:
    """Duplicate one text stream into the console and an optional file.

    The console always receives every chunk first. A failing file sink is
    detached and its error kept on :attr:`error`; console output carries on.
    """

    def __init__(self, console: ReportSink, file_sink: FileSink | None = None) -> None:
        """Pair the always-on *console* with an optional *file_sink*."""
        self._console = console
        self._file = file_sink
        self.error: str | None = None

    def __enter__(self) -> TeeWriter:
        if self._file is not None:
            try:
                self._file.open()
            except SinkError as exc:
                self._detach(exc)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except SinkError as close_exc:
                self._detach(close_exc)

    @property
    def file_active(self) -> bool:
        """Return ``True`` while the file copy is still being written."""
        return self._file is not None

    def write(self, text: str) -> None:
        """Write *text* to the console, then to the file."""
        self._console.write(text)
        if self._file is None:
            return
        try:
            self._file.write(text)
        except SinkError as exc:
            self._detach(exc)

    def flush(self) -> None:
        """Flush both sinks."""
        self._console.flush()
        if self._file is None:
            return
        try:
            self._file.flush()
        except SinkError as exc:
            self._detach(exc)

    def _detach(self, exc: SinkError) -> None:
        LOGGER.debug("File sink detached: %s", exc)
        if self.error is None:
            self.error = str(exc)
        sink, self._file = self._file, None
        if sink is not None:
            try:
                sink.close()
            except SinkError:
                LOGGER.debug("Ignoring close failure on detached sink %s", sink.path)


__all__ = [
    "ConsoleSink",
    "FileSink",
    "RULE",
    "ReportSink",
    "SinkError",
    "TeeWriter",
    "render_body",
    "render_header",
]
