"""
Adapter registry — central lookup for resource adapters.

The registry maps each resource kind to the adapter that applies it.
The planner resolves every step through it, never by importing a
concrete adapter.
"""

from __future__ import annotations

import logging
from typing import Any

from mintsetup.adapters.base import Adapter
from mintsetup.adapters.mock import MockAdapter
from mintsetup.core.errors import UnknownAdapterError
from mintsetup.core.models.resource import Resource, ResourceKind

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry for adapters, keyed by resource kind.

    Features:
        - Register/unregister adapters by kind
        - Mock mode: swap all adapters for mocks that always succeed
        - Resolve the adapter for a resource
        - Query adapter availability
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[ResourceKind, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None
        self._mocks: dict[ResourceKind, MockAdapter] = {}

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_adapter: Optional adapter used for every kind. If None,
                one MockAdapter per kind is created on demand.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        """Register an adapter for its kind."""
        kind = adapter.kind
        if kind in self._adapters:
            logger.warning("Overwriting existing adapter for %s: %s", kind, self._adapters[kind].name)
        self._adapters[kind] = adapter
        logger.debug("Registered adapter: %s (%s)", adapter.name, kind)

    def unregister(self, kind: ResourceKind | str) -> None:
        """Remove the adapter for a kind."""
        self._adapters.pop(ResourceKind(kind), None)

    def get(self, kind: ResourceKind | str) -> Adapter | None:
        """Look up the adapter for a kind (honours mock mode)."""
        kind = ResourceKind(kind)
        if self._mock_mode:
            if self._mock_adapter is not None:
                return self._mock_adapter
            if kind not in self._mocks:
                self._mocks[kind] = MockAdapter(kind, adapter_name=f"mock-{kind}")
            return self._mocks[kind]
        return self._adapters.get(kind)

    def resolve(self, resource: Resource) -> Adapter:
        """The adapter for ``resource``.

        Raises:
            UnknownAdapterError: nothing is registered for its kind.
        """
        adapter = self.get(resource.kind)
        if adapter is None:
            raise UnknownAdapterError(resource.id, str(resource.kind))
        return adapter

    def list_adapters(self) -> list[str]:
        """List all registered kinds."""
        return [str(k) for k in self._adapters]

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for kind, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[str(kind)] = {
                "name": adapter.name,
                "kind": str(kind),
                "available": available,
                "concurrency_safe": adapter.concurrency_safe,
                "type": adapter.__class__.__name__,
            }
        return status
