"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from hostdiag.config import AppConfig, load_config
from hostdiag.diagnostics import OutputBuffer, ProbeContext, ProbeDefinition
from hostdiag.providers.commands import CommandError, CommandResult
from hostdiag.providers.systemd import SystemdProvider

CANONICAL_ORDER = (
    "system",
    "performance",
    "disk",
    "network",
    "connectivity",
    "dns",
    "services",
    "logs",
    "hardware",
)


class FakeRunner:
    """In-memory stand-in for :class:`~hostdiag.providers.CommandRunner`.

    Commands are "installed" by name; responses are keyed by the full argv.
    An installed command without a registered response fails with exit 1.
    """

    def __init__(self) -> None:
        self.installed: set[str] = set()
        self.responses: dict[tuple[str, ...], CommandResult | Exception] = {}
        self.calls: list[tuple[str, ...]] = []
        self.timeouts: list[float | None] = []

    def install(self, *commands: str) -> FakeRunner:
        self.installed.update(commands)
        return self

    def add(
        self,
        argv: Sequence[str],
        stdout: str = "",
        *,
        returncode: int = 0,
        stderr: str = "",
        timed_out: bool = False,
    ) -> FakeRunner:
        key = tuple(argv)
        self.installed.add(key[0])
        self.responses[key] = CommandResult(
            argv=key,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            timed_out=timed_out,
        )
        return self

    def raise_on(self, argv: Sequence[str], exc: Exception) -> FakeRunner:
        key = tuple(argv)
        self.installed.add(key[0])
        self.responses[key] = exc
        return self

    def which(self, command: str) -> str | None:
        return f"/usr/bin/{command}" if command in self.installed else None

    def exists(self, command: str) -> bool:
        return command in self.installed

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        merge_stderr: bool = False,
    ) -> CommandResult:
        argv = tuple(str(arg) for arg in args)
        self.calls.append(argv)
        self.timeouts.append(timeout)
        if argv[0] not in self.installed:
            raise CommandError(f"{argv[0]} not installed in fake runner")
        response = self.responses.get(argv)
        if response is None:
            return CommandResult(argv=argv, returncode=1, stderr="no fake response")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Return an empty fake runner: no commands installed."""
    return FakeRunner()


@pytest.fixture
def host_root(tmp_path: Path) -> Path:
    """Return a directory standing in for the host's well-known files."""
    root = tmp_path / "host"
    (root / "proc").mkdir(parents=True)
    return root


@pytest.fixture
def app_config(tmp_path: Path, host_root: Path) -> AppConfig:
    """Return a config whose host paths all point into ``host_root``."""
    return load_config(
        config_file=tmp_path / "missing.yml",
        env={},
        overrides={
            "default_output": str(tmp_path / "report.txt"),
            "dns": {"names": ["example.org"]},
            "services": {"units": ["ssh", "cron"]},
            "logs": {"fallback_files": [str(host_root / "syslog"), str(host_root / "messages")]},
            "host": {
                "os_release": str(host_root / "os-release"),
                "resolv_conf": str(host_root / "resolv.conf"),
                "proc_dir": str(host_root / "proc"),
            },
        },
    )


@pytest.fixture
def probe_context(app_config: AppConfig, fake_runner: FakeRunner) -> ProbeContext:
    """Return a probe context wired to the fake runner."""
    return ProbeContext(
        config=app_config,
        runner=fake_runner,  # type: ignore[arg-type]
        systemd=SystemdProvider(runner=fake_runner),  # type: ignore[arg-type]
    )


ProbeFactory = Callable[..., ProbeDefinition]


@pytest.fixture
def make_probe() -> ProbeFactory:
    """Return a factory building in-memory probes that log their invocation."""

    def _factory(
        name: str,
        text: str = "",
        *,
        error: str | None = None,
        raises: Exception | None = None,
        calls: list[str] | None = None,
        title: str | None = None,
    ) -> ProbeDefinition:
        def _run(context: ProbeContext, out: OutputBuffer) -> str | None:
            if calls is not None:
                calls.append(name)
            out.write(text)
            if raises is not None:
                raise raises
            return error

        return ProbeDefinition(name=name, title=title or name.upper(), run=_run)

    return _factory


@pytest.fixture
def fake_probes(make_probe: ProbeFactory) -> tuple[ProbeDefinition, ...]:
    """Return one trivial probe per canonical section, in canonical order."""
    return tuple(make_probe(name, f"{name} body\n") for name in CANONICAL_ORDER)
