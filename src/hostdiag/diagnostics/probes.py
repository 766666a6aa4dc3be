"""Probe registration entry point for the diagnostic report."""

from __future__ import annotations

import os
import socket
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from ..providers.commands import CommandRunner
from ..providers.systemd import SystemdProvider
from .fallback import CallableStep, CommandStep, FallbackChain, FileStep, StepResult
from .models import OutputBuffer, ProbeContext, ProbeDefinition
from .registry import ProbeRegistry


def collect_probes() -> tuple[ProbeDefinition, ...]:
    """Return every probe in canonical report order."""
    return (
        ProbeDefinition(name="system", title="SYSTEM", run=probe_system),
        ProbeDefinition(name="performance", title="PERFORMANCE", run=probe_performance),
        ProbeDefinition(name="disk", title="DISK", run=probe_disk),
        ProbeDefinition(name="network", title="NETWORK", run=probe_network),
        ProbeDefinition(name="connectivity", title="CONNECTIVITY", run=probe_connectivity),
        ProbeDefinition(name="dns", title="DNS", run=probe_dns),
        ProbeDefinition(name="services", title="SERVICES", run=probe_services),
        ProbeDefinition(name="logs", title="LOGS", run=probe_logs),
        ProbeDefinition(name="hardware", title="HARDWARE", run=probe_hardware),
    )


def default_registry() -> ProbeRegistry:
    """Return a registry holding the built-in probes."""
    return ProbeRegistry(collect_probes())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _inline(out: OutputBuffer, label: str, chain: FallbackChain, runner: CommandRunner) -> None:
    """Write ``label: value`` using the first line the chain produces."""
    result = chain.run(runner)
    lines = result.text.strip().splitlines()
    out.line(f"{label}: {lines[0] if lines else 'N/A'}")
    if result.error:
        out.error(result.error)


def _read_os_pretty_name(path: Path) -> str | None:
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    for line in content.splitlines():
        if line.startswith("PRETTY_NAME="):
            value = line.split("=", 1)[1].strip()
            return value.strip("\"'") or None
    return None


def _read_cpu_model(path: Path) -> str | None:
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    for line in content.splitlines():
        if line.startswith("model name"):
            _, _, value = line.partition(":")
            return value.strip() or None
    return None


def _ps_chain(sort_key: str) -> FallbackChain:
    return FallbackChain(
        (CommandStep(("ps", "-eo", "pid,comm,%cpu,%mem", f"--sort={sort_key}"), head=11),),
        missing_message="ps not found.",
    )


def default_gateway(runner: CommandRunner) -> str | None:
    """Return the default route's next hop as reported by ``ip route``."""
    if not runner.exists("ip"):
        return None
    result = runner.run(["ip", "route"])
    if not result.ok:
        return None
    for line in result.stdout.splitlines():
        parts = line.split()
        if parts[:1] == ["default"] and "via" in parts:
            index = parts.index("via")
            if index + 1 < len(parts):
                return parts[index + 1]
    return None


def _tcp_connect_step(host: str, port: int, timeout: float) -> Callable[[CommandRunner], StepResult]:
    def _run(_runner: CommandRunner) -> StepResult:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                pass
        except OSError:
            return StepResult(ok=True, text="TCP FAILED\n")
        return StepResult(ok=True, text="TCP OK\n")

    return _run


def _journal_step(
    systemd: SystemdProvider,
    *,
    lines: int,
    priority: str | None,
) -> Callable[[CommandRunner], StepResult]:
    def _run(_runner: CommandRunner) -> StepResult:
        result = systemd.journal(lines=lines, priority=priority)
        if result.ok:
            return StepResult(ok=True, text=result.stdout)
        return StepResult(ok=False, text=result.stdout, error=result.error_summary)

    return _run


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------


def probe_system(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Identity, OS, kernel, uptime and CPU summary."""
    runner = context.runner
    host = context.config.host

    out.line(f"Hostname: {socket.gethostname() or 'N/A'}")
    out.line(f"User: {os.environ.get('USER') or 'N/A'}")
    out.line(f"Date: {datetime.now().astimezone().isoformat(timespec='seconds')}")
    out.line()

    pretty_name = _read_os_pretty_name(host.os_release)
    if pretty_name is None:
        out.line("OS: N/A")
    else:
        out.line("OS:")
        out.line(pretty_name)

    _inline(
        out,
        "Kernel",
        FallbackChain((CommandStep(("uname", "-srmo")), CommandStep(("uname", "-a")))),
        runner,
    )
    _inline(
        out,
        "Uptime",
        FallbackChain((CommandStep(("uptime", "-p")), CommandStep(("uptime",)))),
        runner,
    )
    out.line()

    if runner.exists("lscpu"):
        out.line("CPU (lscpu):")
        FallbackChain((CommandStep(("lscpu",), head=20),)).emit(runner, out)
    else:
        out.line(f"CPU: {_read_cpu_model(host.proc_dir / 'cpuinfo') or 'N/A'}")
    return None


def probe_performance(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Load average, memory and the busiest processes."""
    runner = context.runner
    proc_dir = context.config.host.proc_dir

    out.line("Load average:")
    FallbackChain(
        (FileStep(proc_dir / "loadavg"), CommandStep(("uptime",))),
        missing_message="N/A",
    ).emit(runner, out)
    out.line()

    out.line("Memory (free -h):")
    FallbackChain(
        (CommandStep(("free", "-h")), FileStep(proc_dir / "meminfo", head=15)),
        missing_message="N/A",
    ).emit(runner, out)
    out.line()

    out.line("Top processes (CPU):")
    _ps_chain("-%cpu").emit(runner, out)
    out.line()

    out.line("Top processes (MEM):")
    _ps_chain("-%mem").emit(runner, out)
    return None


def probe_disk(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Filesystem usage and block devices."""
    runner = context.runner

    out.line("Filesystem usage (df -h):")
    FallbackChain((CommandStep(("df", "-h")),), missing_message="df not found.").emit(runner, out)
    out.line()

    out.line("Block devices (lsblk):")
    FallbackChain(
        (
            CommandStep(("lsblk", "-o", "NAME,SIZE,TYPE,FSTYPE,MOUNTPOINTS")),
            CommandStep(("lsblk",)),
        ),
        missing_message="lsblk not found.",
    ).emit(runner, out)
    return None


def probe_network(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Interfaces, routes and resolver configuration."""
    runner = context.runner
    resolv_conf = context.config.host.resolv_conf

    if runner.exists("ip"):
        out.line("Interfaces (ip -br addr):")
        FallbackChain((CommandStep(("ip", "-br", "addr")),)).emit(runner, out)
        out.line()
        out.line("Routes (ip route):")
        FallbackChain((CommandStep(("ip", "route")),)).emit(runner, out)
    else:
        out.line("ip command not found. Trying ifconfig/route...")
        FallbackChain((CommandStep(("ifconfig",)),)).emit(runner, out)
        FallbackChain((CommandStep(("route", "-n")),)).emit(runner, out)

    out.line()
    out.line(f"DNS ({resolv_conf}):")
    FallbackChain((FileStep(resolv_conf, indent="  "),), missing_message="  N/A").emit(runner, out)
    return None


def _ping(runner: CommandRunner, out: OutputBuffer, target: str, count: int, wait: int) -> None:
    # ping bounds itself through -c/-W; the runner timeout is a backstop.
    result = runner.run(
        ["ping", "-c", str(count), "-W", str(wait), target],
        timeout=float(count * (wait + 1) + 2),
    )
    out.block(result.stdout)
    out.line("OK" if result.ok else "FAILED")


def probe_connectivity(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Gateway and public reachability plus an outbound TCP check."""
    runner = context.runner
    settings = context.config.connectivity

    gateway = default_gateway(runner)
    out.line(f"Default gateway: {gateway or 'N/A'}")
    out.line()

    if runner.exists("ping"):
        if gateway:
            out.line(f"Ping gateway ({gateway}):")
            _ping(runner, out, gateway, settings.ping_count, settings.ping_timeout)
            out.line()
        out.line(f"Ping public ({settings.public_host}):")
        _ping(runner, out, settings.public_host, settings.ping_count, settings.ping_timeout)
    else:
        out.line("ping not found.")

    out.line()
    out.line(f"TCP test ({settings.tcp_host}:{settings.tcp_port}):")
    wait = max(1, int(settings.tcp_timeout))
    FallbackChain(
        (
            CommandStep(
                ("nc", "-vz", "-w", str(wait), settings.tcp_host, str(settings.tcp_port)),
                tail=2,
                merge_stderr=True,
                timeout=float(wait + 2),
                check=False,
            ),
            CallableStep(
                "socket",
                _tcp_connect_step(settings.tcp_host, settings.tcp_port, settings.tcp_timeout),
            ),
        ),
    ).emit(runner, out)
    return None


def probe_dns(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Resolver status and lookups of the configured names."""
    runner = context.runner
    resolv_conf = context.config.host.resolv_conf

    out.line("DNS servers:")
    FallbackChain(
        (
            CommandStep(("resolvectl", "status"), head=80),
            CommandStep(("systemd-resolve", "--status"), head=80),
            FileStep(resolv_conf, pattern=r"^\s*nameserver"),
        ),
        missing_message="N/A",
    ).emit(runner, out)
    out.line()

    for name in context.config.dns.names:
        out.line(f"Resolve: {name}")
        FallbackChain(
            (
                CommandStep(("dig", "+short", name), head=5),
                CommandStep(("nslookup", name), head=12),
                CommandStep(("getent", "ahosts", name), head=5),
            ),
            missing_message="No resolver tool found.",
        ).emit(runner, out)
        out.line()
    return None


def probe_services(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Enablement and activity of the configured systemd units."""
    systemd = context.systemd
    if not systemd.available():
        out.line("systemctl not found (maybe not systemd). Skipping.")
        return None

    for unit in context.config.services.units:
        state = systemd.unit_state(unit)
        out.line(f"Service: {unit}")
        out.line(f"  enabled: {state.enabled or 'n/a'}")
        out.line(f"  active:  {state.active or 'n/a'}")
        out.line()
    return None


def probe_logs(context: ProbeContext, out: OutputBuffer) -> str | None:
    """Recent warnings from the journal, or tails of classic log files."""
    runner = context.runner
    settings = context.config.logs
    systemd = context.systemd

    if systemd.journal_available():
        out.line(f"journalctl (last {settings.lines} lines, warnings+errors if possible):")
        FallbackChain(
            (
                CallableStep(
                    "journalctl -p warning",
                    _journal_step(systemd, lines=settings.lines, priority="warning"),
                ),
                CallableStep(
                    "journalctl",
                    _journal_step(systemd, lines=settings.lines, priority=None),
                ),
            ),
        ).emit(runner, out)
        return None

    out.line("journalctl not found. Showing common logs (if exist):")
    for path in settings.fallback_files:
        if not path.is_file():
            continue
        out.line(f"--- {path} (last {settings.fallback_lines}) ---")
        FallbackChain((FileStep(path, tail=settings.fallback_lines),)).emit(runner, out)
        out.line()
    return None


def probe_hardware(context: ProbeContext, out: OutputBuffer) -> str | None:
    """PCI and USB devices plus the tail of the kernel ring buffer."""
    runner = context.runner

    out.line("PCI devices (lspci):")
    FallbackChain((CommandStep(("lspci",), head=40),), missing_message="lspci not found.").emit(
        runner, out
    )
    out.line()

    out.line("USB devices (lsusb):")
    FallbackChain((CommandStep(("lsusb",), head=40),), missing_message="lsusb not found.").emit(
        runner, out
    )
    out.line()

    out.line("dmesg (last 50 lines):")
    FallbackChain((CommandStep(("dmesg",), tail=50),), missing_message="dmesg not found.").emit(
        runner, out
    )
    return None


__all__ = [
    "collect_probes",
    "default_gateway",
    "default_registry",
    "probe_connectivity",
    "probe_disk",
    "probe_dns",
    "probe_hardware",
    "probe_logs",
    "probe_network",
    "probe_performance",
    "probe_services",
    "probe_system",
]
