"""Tests for the built-in diagnostic probes."""
from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FakeRunner

from hostdiag.diagnostics import OutputBuffer, ProbeContext, default_registry, execute_probe
from hostdiag.diagnostics import probes
from hostdiag.diagnostics.probes import (
    default_gateway,
    probe_connectivity,
    probe_disk,
    probe_dns,
    probe_hardware,
    probe_logs,
    probe_network,
    probe_performance,
    probe_services,
    probe_system,
)


@pytest.fixture(autouse=True)
def _no_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the socket fallback off the real network."""

    def refuse(address: tuple[str, int], timeout: float | None = None) -> object:
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr(probes.socket, "create_connection", refuse)


def _run(probe: object, context: ProbeContext) -> OutputBuffer:
    out = OutputBuffer()
    assert probe(context, out) is None  # type: ignore[operator]
    return out


def test_bare_host_yields_informational_sections_only(probe_context: ProbeContext) -> None:
    """With no tools and no host files every section still renders without errors."""
    for probe in default_registry():
        result = execute_probe(probe, probe_context)
        assert result.failed is False, (probe.name, result.error_summary)
        assert result.output_text


def test_system_reports_identity_and_os(
    monkeypatch: pytest.MonkeyPatch,
    host_root: Path,
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """System summary reads os-release, uname, uptime and cpuinfo."""
    monkeypatch.setattr(probes.socket, "gethostname", lambda: "box01")
    monkeypatch.setenv("USER", "operator")
    (host_root / "os-release").write_text('NAME="Debian"\nPRETTY_NAME="Debian GNU/Linux 12"\n')
    (host_root / "proc" / "cpuinfo").write_text("processor : 0\nmodel name\t: Example CPU @ 2.0GHz\n")
    fake_runner.add(("uname", "-srmo"), "Linux 6.1.0 x86_64 GNU/Linux\n")
    fake_runner.add(("uptime", "-p"), "up 3 days, 2 hours\n")

    out = _run(probe_system, probe_context)

    lines = out.text.splitlines()
    assert lines[0] == "Hostname: box01"
    assert lines[1] == "User: operator"
    assert lines[2].startswith("Date: ")
    assert "OS:\nDebian GNU/Linux 12\n" in out.text
    assert "Kernel: Linux 6.1.0 x86_64 GNU/Linux\n" in out.text
    assert "Uptime: up 3 days, 2 hours\n" in out.text
    assert "CPU: Example CPU @ 2.0GHz\n" in out.text
    assert out.errors == ()


def test_system_prefers_lscpu_and_falls_back_for_kernel(
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """``uname -a`` stands in when ``-srmo`` fails; lscpu output is shown when present."""
    fake_runner.add(("uname", "-srmo"), returncode=1, stderr="invalid option -- 'o'")
    fake_runner.add(("uname", "-a"), "Linux box01 6.1.0\n")
    fake_runner.add(("lscpu",), "".join(f"row {index}\n" for index in range(30)))

    out = _run(probe_system, probe_context)

    assert "OS: N/A\n" in out.text
    assert "Kernel: Linux box01 6.1.0\n" in out.text
    assert "Uptime: N/A\n" in out.text
    assert "CPU (lscpu):\nrow 0\n" in out.text
    assert "row 19\n" in out.text
    assert "row 20\n" not in out.text
    assert out.errors == ()


def test_performance_reads_loadavg_and_processes(
    host_root: Path,
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Load, memory and both process listings are gathered."""
    (host_root / "proc" / "loadavg").write_text("0.10 0.20 0.30 1/100 1234\n")
    fake_runner.add(("free", "-h"), "Mem: 15Gi 3Gi\n")
    fake_runner.add(
        ("ps", "-eo", "pid,comm,%cpu,%mem", "--sort=-%cpu"),
        "".join(f"{pid} proc 1.0 0.1\n" for pid in range(20)),
    )
    fake_runner.add(("ps", "-eo", "pid,comm,%cpu,%mem", "--sort=-%mem"), "1 init 0.0 9.9\n")

    out = _run(probe_performance, probe_context)

    assert "Load average:\n0.10 0.20 0.30 1/100 1234\n" in out.text
    assert "Memory (free -h):\nMem: 15Gi 3Gi\n" in out.text
    assert "10 proc 1.0 0.1\n" in out.text
    assert "11 proc 1.0 0.1\n" not in out.text
    assert "Top processes (MEM):\n1 init 0.0 9.9\n" in out.text


def test_performance_without_tools(probe_context: ProbeContext, host_root: Path) -> None:
    """Missing tools produce notices rather than failures."""
    (host_root / "proc" / "meminfo").write_text("MemTotal: 1024 kB\n")

    out = _run(probe_performance, probe_context)

    assert "Load average:\nN/A\n" in out.text
    assert "Memory (free -h):\nMemTotal: 1024 kB\n" in out.text
    assert out.text.count("ps not found.") == 2
    assert out.errors == ()


def test_disk_missing_tools(probe_context: ProbeContext) -> None:
    """df and lsblk absence is reported inline."""
    out = _run(probe_disk, probe_context)

    assert "df not found." in out.text
    assert "Block devices (lsblk):\nlsblk not found.\n" in out.text
    assert out.errors == ()


def test_disk_lsblk_falls_back_to_plain_listing(
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Old lsblk builds without MOUNTPOINTS fall back to the default columns."""
    fake_runner.add(("df", "-h"), "Filesystem Size\n/dev/sda1 50G\n")
    fake_runner.add(
        ("lsblk", "-o", "NAME,SIZE,TYPE,FSTYPE,MOUNTPOINTS"),
        returncode=1,
        stderr="lsblk: unknown column: MOUNTPOINTS",
    )
    fake_runner.add(("lsblk",), "NAME MAJ:MIN\nsda 8:0\n")

    out = _run(probe_disk, probe_context)

    assert "/dev/sda1 50G\n" in out.text
    assert "sda 8:0\n" in out.text
    assert out.errors == ()


def test_disk_failing_df_is_recorded(fake_runner: FakeRunner, probe_context: ProbeContext) -> None:
    """A present tool exiting non-zero marks the section failed."""
    fake_runner.add(("df", "-h"), returncode=1, stderr="df: /mnt/nfs: Stale file handle")

    out = _run(probe_disk, probe_context)

    assert out.errors == ("df -h failed (exit 1): df: /mnt/nfs: Stale file handle",)


def test_network_with_ip(
    host_root: Path,
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Interfaces, routes and an indented resolv.conf are shown."""
    (host_root / "resolv.conf").write_text("nameserver 10.0.0.53\n")
    fake_runner.add(("ip", "-br", "addr"), "eth0 UP 10.0.0.2/24\n")
    fake_runner.add(("ip", "route"), "default via 10.0.0.1 dev eth0\n")

    out = _run(probe_network, probe_context)

    assert "Interfaces (ip -br addr):\neth0 UP 10.0.0.2/24\n" in out.text
    assert "Routes (ip route):\ndefault via 10.0.0.1 dev eth0\n" in out.text
    assert f"DNS ({host_root / 'resolv.conf'}):\n  nameserver 10.0.0.53\n" in out.text


def test_network_without_ip_uses_legacy_tools(
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Hosts without iproute2 fall back to ifconfig and route."""
    fake_runner.add(("ifconfig",), "eth0: flags=4163<UP>\n")
    fake_runner.add(("route", "-n"), "Kernel IP routing table\n")

    out = _run(probe_network, probe_context)

    assert "ip command not found. Trying ifconfig/route...\neth0: flags=4163<UP>\n" in out.text
    assert "Kernel IP routing table\n" in out.text
    assert out.text.endswith("  N/A\n")


def test_default_gateway_parsing(fake_runner: FakeRunner) -> None:
    """The gateway is the hop after ``via`` on the default route."""
    assert default_gateway(fake_runner) is None  # type: ignore[arg-type]

    fake_runner.add(("ip", "route"), "10.0.0.0/24 dev eth0\ndefault via 10.0.0.1 dev eth0\n")
    assert default_gateway(fake_runner) == "10.0.0.1"  # type: ignore[arg-type]


def test_connectivity_pings_and_tcp_fallback(
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Gateway and public pings are reported; the socket check replaces missing nc."""
    fake_runner.add(("ip", "route"), "default via 192.168.1.1 dev wlan0\n")
    fake_runner.add(("ping", "-c", "2", "-W", "2", "192.168.1.1"), "2 packets transmitted\n")
    fake_runner.add(("ping", "-c", "2", "-W", "2", "1.1.1.1"), "100% packet loss\n", returncode=1)

    out = _run(probe_connectivity, probe_context)

    assert "Default gateway: 192.168.1.1\n" in out.text
    assert "Ping gateway (192.168.1.1):\n2 packets transmitted\nOK\n" in out.text
    assert "Ping public (1.1.1.1):\n100% packet loss\nFAILED\n" in out.text
    assert "TCP test (google.com:443):\nTCP FAILED\n" in out.text
    assert out.errors == ()
    assert fake_runner.timeouts[-1] == 8.0


def test_connectivity_without_ping_uses_nc(
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """nc output is shown even when it reports a refused connection."""
    fake_runner.add(
        ("nc", "-vz", "-w", "3", "google.com", "443"),
        "Connection to google.com 443 port [tcp/https] succeeded!\n",
    )

    out = _run(probe_connectivity, probe_context)

    assert "Default gateway: N/A\n" in out.text
    assert "ping not found.\n" in out.text
    assert "succeeded!" in out.text


def test_dns_uses_resolv_conf_and_dig(
    host_root: Path,
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Nameservers come from resolv.conf when resolvectl is absent."""
    (host_root / "resolv.conf").write_text("search lan\nnameserver 10.0.0.53\n")
    fake_runner.add(("dig", "+short", "example.org"), "93.184.215.14\n")

    out = _run(probe_dns, probe_context)

    assert "DNS servers:\nnameserver 10.0.0.53\n" in out.text
    assert "Resolve: example.org\n93.184.215.14\n" in out.text


def test_dns_without_resolver_tools(probe_context: ProbeContext) -> None:
    """Lookups degrade to a notice when no resolver tool exists."""
    out = _run(probe_dns, probe_context)

    assert "DNS servers:\nN/A\n" in out.text
    assert "Resolve: example.org\nNo resolver tool found.\n" in out.text
    assert out.errors == ()


def test_services_skipped_without_systemd(probe_context: ProbeContext) -> None:
    """Non-systemd hosts get a notice."""
    out = _run(probe_services, probe_context)

    assert out.text == "systemctl not found (maybe not systemd). Skipping.\n"


def test_services_report_each_unit(fake_runner: FakeRunner, probe_context: ProbeContext) -> None:
    """Each configured unit lists its enablement and activity."""
    fake_runner.add(("systemctl", "is-enabled", "ssh"), "enabled\n")
    fake_runner.add(("systemctl", "is-active", "ssh"), "active\n")
    fake_runner.add(("systemctl", "is-enabled", "cron"), "", returncode=1)
    fake_runner.add(("systemctl", "is-active", "cron"), "inactive\n", returncode=3)

    out = _run(probe_services, probe_context)

    assert out.text == (
        "Service: ssh\n"
        "  enabled: enabled\n"
        "  active:  active\n"
        "\n"
        "Service: cron\n"
        "  enabled: n/a\n"
        "  active:  inactive\n"
        "\n"
    )
    assert out.errors == ()


def test_logs_prefers_filtered_journal(fake_runner: FakeRunner, probe_context: ProbeContext) -> None:
    """Warnings-and-above journal entries are shown when available."""
    fake_runner.add(
        ("journalctl", "-p", "warning", "-n", "50", "--no-pager"),
        "Oct 16 box01 kernel: usb 1-1: device descriptor read error\n",
    )

    out = _run(probe_logs, probe_context)

    assert out.text.startswith("journalctl (last 50 lines, warnings+errors if possible):\n")
    assert "device descriptor read error" in out.text
    assert out.errors == ()


def test_logs_falls_back_to_unfiltered_journal(
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Journals rejecting the priority filter are read unfiltered."""
    fake_runner.add(
        ("journalctl", "-p", "warning", "-n", "50", "--no-pager"),
        returncode=1,
        stderr="Failed to parse priority",
    )
    fake_runner.add(("journalctl", "-n", "50", "--no-pager"), "Oct 16 box01 cron: ok\n")

    out = _run(probe_logs, probe_context)

    assert "cron: ok" in out.text
    assert out.errors == ()


def test_logs_without_journal_tails_files(host_root: Path, probe_context: ProbeContext) -> None:
    """Classic log files are tailed; missing ones are skipped silently."""
    (host_root / "syslog").write_text("".join(f"entry {index}\n" for index in range(100)))

    out = _run(probe_logs, probe_context)

    assert out.text.startswith("journalctl not found. Showing common logs (if exist):\n")
    assert f"--- {host_root / 'syslog'} (last 40) ---\n" in out.text
    assert "entry 59\n" not in out.text
    assert "entry 60\n" in out.text
    assert "entry 99\n" in out.text
    assert "messages" not in out.text


def test_hardware_sections(fake_runner: FakeRunner, probe_context: ProbeContext) -> None:
    """PCI/USB listings and the dmesg tail are shown, missing tools noted."""
    fake_runner.add(("lspci",), "00:00.0 Host bridge\n")
    fake_runner.add(("dmesg",), "".join(f"[{index}] msg\n" for index in range(60)))

    out = _run(probe_hardware, probe_context)

    assert "PCI devices (lspci):\n00:00.0 Host bridge\n" in out.text
    assert "USB devices (lsusb):\nlsusb not found.\n" in out.text
    assert "[9] msg\n" not in out.text
    assert "[10] msg\n" in out.text
    assert out.text.endswith("[59] msg\n")


def test_hardware_dmesg_permission_failure_is_recorded(
    fake_runner: FakeRunner,
    probe_context: ProbeContext,
) -> None:
    """Restricted dmesg marks the section failed but keeps earlier output."""
    fake_runner.add(("lspci",), "00:00.0 Host bridge\n")
    fake_runner.add(
        ("dmesg",),
        returncode=1,
        stderr="dmesg: read kernel buffer failed: Operation not permitted",
    )

    result = execute_probe(default_registry().by_name("hardware"), probe_context)

    assert result.failed is True
    assert "00:00.0 Host bridge" in result.output_text
    assert result.error_summary == (
        "dmesg failed (exit 1): dmesg: read kernel buffer failed: Operation not permitted"
    )
