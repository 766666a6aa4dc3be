"""Typer-powered command line front end for ``hostdiag``.

The CLI only turns flags (or a single interactive menu choice) into an
immutable :class:`~hostdiag.diagnostics.Selection`; everything after that is
handled by the diagnostics engine. Section flags are composable and their
order never changes the order of the report.
"""
from __future__ import annotations

import textwrap
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click
import typer
from rich.console import Console
from rich.markup import escape
from typer.core import TyperCommand

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .diagnostics import (
    ALL_PROBES,
    ExecutionResult,
    ProbeContext,
    Selection,
    SelectionError,
    default_registry,
    expand_selection,
    run_report,
)
from .exit_codes import ExitCode
from .logging import OperationScope, StructuredLogger
from .providers import CommandRunner, SystemdProvider

console = Console()

MENU_CHOICES: Mapping[str, str] = {
    "1": "system",
    "2": "performance",
    "3": "disk",
    "4": "network",
    "5": "connectivity",
    "6": "dns",
    "7": "services",
    "8": "logs",
    "9": "hardware",
    "A": ALL_PROBES,
}
MENU_LABELS: tuple[tuple[str, str], ...] = (
    ("1", "System"),
    ("2", "Performance"),
    ("3", "Disk"),
    ("4", "Network"),
    ("5", "Connectivity"),
    ("6", "DNS"),
    ("7", "Services"),
    ("8", "Logs"),
    ("9", "Hardware"),
    ("A", "All"),
    ("Q", "Quit"),
)

ALL_OPTION = typer.Option(False, "--all", help="Run all sections.")
SYSTEM_OPTION = typer.Option(False, "--system", help="System summary.")
PERFORMANCE_OPTION = typer.Option(False, "--performance", help="CPU/RAM + processes.")
DISK_OPTION = typer.Option(False, "--disk", help="Disk usage / devices.")
NETWORK_OPTION = typer.Option(False, "--network", help="Interfaces / routes / DNS config.")
CONNECTIVITY_OPTION = typer.Option(False, "--connectivity", help="Ping + TCP test.")
DNS_OPTION = typer.Option(False, "--dns", help="DNS diagnostics.")
SERVICES_OPTION = typer.Option(False, "--services", help="Basic service health (systemd).")
LOGS_OPTION = typer.Option(False, "--logs", help="Recent logs.")
HARDWARE_OPTION = typer.Option(False, "--hardware", help="Hardware summary.")
MENU_OPTION = typer.Option(False, "--menu", help="Interactive menu.")
EXPORT_TXT_OPTION = typer.Option(False, "--export-txt", help="Save output to a TXT file.")
OUT_OPTION = typer.Option(
    None,
    "--out",
    metavar="PATH",
    dir_okay=False,
    help="Output file path for --export-txt.",
)
CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to hostdiag's YAML config file.",
)
VERSION_OPTION = typer.Option(
    False,
    "--version",
    "-V",
    help="Show the hostdiag version and exit.",
)

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    help=textwrap.dedent(
        """
        Read-only host diagnostics report.

        Gathers system, performance, disk, network, connectivity, DNS,
        service, log and hardware information from standard utilities and
        prints it as one ordered text report.
        """
    ).strip(),
)


@dataclass(slots=True)
class RuntimeContext:
    """Collaborators shared by a single CLI invocation."""

    config: AppConfig
    logger: StructuredLogger
    runner: CommandRunner
    systemd: SystemdProvider

    def probe_context(self) -> ProbeContext:
        """Return the context handed to every probe."""
        return ProbeContext(config=self.config, runner=self.runner, systemd=self.systemd)


def _build_runtime(config_file: Path | None) -> RuntimeContext:
    config = load_config(config_file=config_file)
    runner = CommandRunner(timeout=config.command_timeout)
    systemd = SystemdProvider(
        runner=runner,
        systemctl_bin=config.services.systemctl_bin,
        journalctl_bin=config.services.journalctl_bin,
    )
    return RuntimeContext(
        config=config,
        logger=StructuredLogger(config.logs_dir),
        runner=runner,
        systemd=systemd,
    )


def _say(message: str, style: str | None = None) -> None:
    text = escape(message)
    if style:
        text = f"[{style}]{text}[/{style}]"
    console.print(text, soft_wrap=True, highlight=False)


def _usage(ctx: click.Context) -> None:
    console.print(ctx.get_help())


def _usage_error(ctx: click.Context, message: str) -> NoReturn:
    _say(message)
    _usage(ctx)
    raise typer.Exit(code=ExitCode.USAGE)


def prompt_menu() -> str:
    """Show the interactive menu and return the chosen probe name.

    ``Q`` exits successfully; anything unrecognised exits with a usage error.
    """
    console.print()
    _say("hostdiag - Menu")
    for key, label in MENU_LABELS:
        _say(f"{key}) {label}")
    console.print()
    choice = typer.prompt("Choose", default="", show_default=False).strip().upper()
    if choice == "Q":
        raise typer.Exit(code=ExitCode.OK)
    if choice not in MENU_CHOICES:
        _say("Invalid choice")
        raise typer.Exit(code=ExitCode.USAGE)
    return MENU_CHOICES[choice]


class ReportCommand(TyperCommand):
    """Report command whose parser errors share the unknown-option exit path."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as exc:
            _usage_error(ctx, exc.format_message())


def _record_result(op: OperationScope, result: ExecutionResult) -> None:
    op.add_step(
        result.probe_name,
        status="failed" if result.failed else "ok",
        detail=result.error_summary,
        duration_ms=result.duration_ms,
    )


@app.command(
    cls=ReportCommand,
    context_settings={
        "help_option_names": ["-h", "--help"],
        "ignore_unknown_options": True,
        "allow_extra_args": True,
    },
)
def report(
    ctx: typer.Context,
    all_sections: bool = ALL_OPTION,
    system: bool = SYSTEM_OPTION,
    performance: bool = PERFORMANCE_OPTION,
    disk: bool = DISK_OPTION,
    network: bool = NETWORK_OPTION,
    connectivity: bool = CONNECTIVITY_OPTION,
    dns: bool = DNS_OPTION,
    services: bool = SERVICES_OPTION,
    logs: bool = LOGS_OPTION,
    hardware: bool = HARDWARE_OPTION,
    menu: bool = MENU_OPTION,
    export_txt: bool = EXPORT_TXT_OPTION,
    out: Path | None = OUT_OPTION,
    config_file: Path | None = CONFIG_FILE_OPTION,
    version: bool = VERSION_OPTION,
) -> None:
    """Run the selected diagnostic sections and print the report."""
    if version:
        console.print(f"hostdiag {__version__}")
        raise typer.Exit(code=ExitCode.OK)

    if ctx.args:
        _usage_error(ctx, f"Unknown option: {ctx.args[0]}")

    flags = {
        "system": system,
        "performance": performance,
        "disk": disk,
        "network": network,
        "connectivity": connectivity,
        "dns": dns,
        "services": services,
        "logs": logs,
        "hardware": hardware,
    }
    if not (all_sections or menu or export_txt or out is not None or any(flags.values())):
        _usage(ctx)
        raise typer.Exit(code=ExitCode.OK)

    names = [name for name, enabled in flags.items() if enabled]
    if all_sections:
        names.append(ALL_PROBES)
    if menu:
        names.append(prompt_menu())

    try:
        runtime = _build_runtime(config_file)
    except ConfigError as exc:
        _say(str(exc), "red")
        raise typer.Exit(code=ExitCode.USAGE) from exc

    registry = default_registry()
    with runtime.logger.operation(
        "report",
        args={
            "sections": sorted(names),
            "menu": menu,
            "export_txt": export_txt,
            "out": out,
        },
        target={"kind": "host", "scope": "diagnostics"},
    ) as op:
        try:
            selection = expand_selection(
                registry,
                Selection.from_names(names, export_to_file=export_txt, output_path=out),
            )
        except SelectionError as exc:
            _say(str(exc), "red")
            op.error(str(exc), rc=ExitCode.USAGE)
            raise typer.Exit(code=ExitCode.USAGE) from exc

        summary = run_report(
            runtime.probe_context(),
            registry,
            selection,
            on_result=lambda result: _record_result(op, result),
        )

        if selection.export_to_file:
            if summary.sink_error:
                _say(f"Could not save TXT report: {summary.sink_error}", "red")
            else:
                console.print()
                _say(f"Saved TXT report to: {summary.output_path}")

        context = {
            "sections": list(summary.probe_names),
            "output_path": summary.output_path,
            "sink_error": summary.sink_error,
            "config": runtime.config.to_dict(),
        }
        if summary.failed_probes or summary.sink_error:
            op.warning(
                "Report completed with errors.",
                warnings=list(summary.failed_probes),
                errors=[summary.sink_error] if summary.sink_error else None,
                context=context,
            )
        else:
            op.success("Report completed.", context=context)


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["MENU_CHOICES", "RuntimeContext", "app", "main", "prompt_menu", "report"]
