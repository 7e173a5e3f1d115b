"""Adapter registry: maps source type strings to adapter classes."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from berthwatch.ingestion.adapter import SourceAdapter
    from berthwatch.ingestion.normalize import Terminal

_REGISTRY: dict[str, type[SourceAdapter]] = {}


def register_adapter(type_name: str, cls: type[SourceAdapter]) -> None:
    """Register an adapter class for a given source type."""
    _REGISTRY[type_name.lower()] = cls


def get_adapter_class(type_name: str) -> type[SourceAdapter] | None:
    """Look up an adapter class by type name. Returns None if not found."""
    return _REGISTRY.get(type_name.lower())


def registered_types() -> list[str]:
    """Return a sorted list of all registered adapter type names."""
    return sorted(_REGISTRY)


def build_adapter(
    type_name: str,
    terminal: Terminal,
    options: dict,
    *,
    timeout: float,
    timezone: str,
) -> SourceAdapter | None:
    """Instantiate and configure the adapter for one terminal.

    Returns None for an unknown type. Configuration errors raised by the
    adapter (ValueError) propagate to the caller.
    """
    cls = get_adapter_class(type_name)
    if cls is None:
        return None
    adapter = cls(terminal, timeout=timeout, timezone=timezone)
    adapter.configure(options)
    return adapter
