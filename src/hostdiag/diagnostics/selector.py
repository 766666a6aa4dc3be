"""Translate a :class:`Selection` into the ordered probes to execute."""

from __future__ import annotations

from dataclasses import replace

from .models import ALL_PROBES, ProbeDefinition, Selection, SelectionError
from .registry import ProbeRegistry


def expand_selection(registry: ProbeRegistry, selection: Selection) -> Selection:
    """Return *selection* with ``all`` expanded and every name validated."""
    requested = set(selection.enabled)
    if ALL_PROBES in requested:
        requested.discard(ALL_PROBES)
        requested.update(registry.names())

    unknown = sorted(name for name in requested if name not in registry)
    if unknown:
        raise SelectionError(f"Unknown probe names: {', '.join(unknown)}.")
    return replace(selection, enabled=frozenset(requested))


def resolve_selection(
    registry: ProbeRegistry,
    selection: Selection,
) -> tuple[ProbeDefinition, ...]:
    """Return the selected probes filtered from the registry's canonical order."""
    expanded = expand_selection(registry, selection)
    return tuple(probe for probe in registry.list() if probe.name in expanded.enabled)


__all__ = ["expand_selection", "resolve_selection"]
