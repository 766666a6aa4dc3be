"""Safe probe execution and report aggregation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from .models import (
    ExecutionResult,
    OutputBuffer,
    ProbeContext,
    ProbeDefinition,
    ReportSummary,
    Selection,
)
from .registry import ProbeRegistry
from .report import ConsoleSink, FileSink, ReportSink, TeeWriter, render_body, render_header
from .selector import resolve_selection

LOGGER = logging.getLogger(__name__)


def _duration_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def execute_probe(probe: ProbeDefinition, context: ProbeContext) -> ExecutionResult:
    """Run *probe* and always return a result, whatever the probe does.

    A probe signals failure by returning an error summary, by recording one on
    its buffer, or by raising. Any of these marks the result failed while
    keeping the output written before the failure.
    """
    buffer = OutputBuffer()
    start = time.perf_counter()
    try:
        returned = probe.run(context, buffer)
    except Exception as exc:
        LOGGER.debug("Probe '%s' raised an unexpected error", probe.name, exc_info=True)
        buffer.error(f"{type(exc).__name__}: {exc}")
    else:
        if returned:
            buffer.error(returned)
    duration_ms = _duration_ms(start)

    errors = buffer.errors
    if errors:
        LOGGER.debug("Probe '%s' failed: %s", probe.name, "; ".join(errors))
    return ExecutionResult(
        probe_name=probe.name,
        title=probe.title,
        output_text=buffer.text,
        failed=bool(errors),
        error_summary="; ".join(errors) if errors else None,
        duration_ms=duration_ms,
    )


class ReportAggregator:
    """Run probes in order and stream each rendered section to the sinks."""

    def __init__(
        self,
        context: ProbeContext,
        *,
        console: ReportSink | None = None,
        on_result: Callable[[ExecutionResult], None] | None = None,
    ) -> None:
        """Store the probe context, console sink and per-result callback."""
        self._context = context
        self._console = console or ConsoleSink()
        self._on_result = on_result

    def run(
        self,
        probes: Sequence[ProbeDefinition],
        *,
        output_path: Path | None = None,
    ) -> ReportSummary:
        """Execute *probes* sequentially, teeing to *output_path* when given."""
        results: list[ExecutionResult] = []
        file_sink = FileSink(output_path) if output_path is not None else None
        with TeeWriter(self._console, file_sink) as tee:
            for probe in probes:
                tee.write(render_header(probe.title))
                tee.flush()
                result = execute_probe(probe, self._context)
                tee.write(render_body(result))
                tee.flush()
                results.append(result)
                if self._on_result is not None:
                    self._on_result(result)
        return ReportSummary(
            results=tuple(results),
            output_path=output_path,
            sink_error=tee.error,
        )


def run_report(
    context: ProbeContext,
    registry: ProbeRegistry,
    selection: Selection,
    *,
    console: ReportSink | None = None,
    on_result: Callable[[ExecutionResult], None] | None = None,
) -> ReportSummary:
    """Resolve *selection* against *registry* and stream the report."""
    probes = resolve_selection(registry, selection)
    output_path: Path | None = None
    if selection.export_to_file:
        output_path = selection.output_path or context.config.default_output
    aggregator = ReportAggregator(context, console=console, on_result=on_result)
    return aggregator.run(probes, output_path=output_path)


__all__ = ["ReportAggregator", "execute_probe", "run_report"]
