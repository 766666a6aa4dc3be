"""Diagnostic report infrastructure."""

from __future__ import annotations

from .engine import ReportAggregator, execute_probe, run_report
from .fallback import CallableStep, ChainResult, CommandStep, FallbackChain, FileStep, StepResult
from .models import (
    ALL_PROBES,
    ExecutionResult,
    OutputBuffer,
    ProbeContext,
    ProbeDefinition,
    ReportSummary,
    Selection,
    SelectionError,
    UnknownProbeError,
)
from .probes import collect_probes, default_registry
from .registry import ProbeRegistry
from .report import ConsoleSink, FileSink, SinkError, TeeWriter
from .selector import expand_selection, resolve_selection

__all__ = [
    "ALL_PROBES",
    "CallableStep",
    "ChainResult",
    "CommandStep",
    "ConsoleSink",
    "ExecutionResult",
    "FallbackChain",
    "FileSink",
    "FileStep",
    "OutputBuffer",
    "ProbeContext",
    "ProbeDefinition",
    "ProbeRegistry",
    "ReportAggregator",
    "ReportSummary",
    "Selection",
    "SelectionError",
    "SinkError",
    "StepResult",
    "TeeWriter",
    "UnknownProbeError",
    "collect_probes",
    "default_registry",
    "execute_probe",
    "expand_selection",
    "resolve_selection",
    "run_report",
]
