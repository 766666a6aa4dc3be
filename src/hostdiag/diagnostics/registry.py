"""Canonical, fixed-order registry of diagnostic probes."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import ProbeDefinition, UnknownProbeError


class ProbeRegistry:
    """Immutable ordered collection of probes keyed by name.

    Registration order is the canonical report order.
    """

    def __init__(self, probes: Iterable[ProbeDefinition]) -> None:
        """Freeze *probes* in the order given, rejecting duplicate names."""
        ordered = tuple(probes)
        index: dict[str, ProbeDefinition] = {}
        for probe in ordered:
            if probe.name in index:
                raise ValueError(f"Duplicate probe name '{probe.name}'.")
            index[probe.name] = probe
        self._probes = ordered
        self._index = index

    def list(self) -> tuple[ProbeDefinition, ...]:
        """Return every probe in canonical order."""
        return self._probes

    def names(self) -> tuple[str, ...]:
        """Return every probe name in canonical order."""
        return tuple(probe.name for probe in self._probes)

    def by_name(self, name: str) -> ProbeDefinition:
        """Return the probe registered as *name*."""
        try:
            return self._index[name]
        except KeyError:
            raise UnknownProbeError(f"Unknown probe '{name}'.") from None

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[ProbeDefinition]:
        return iter(self._probes)

    def __len__(self) -> int:
        return len(self._probes)


__all__ = ["ProbeRegistry"]
