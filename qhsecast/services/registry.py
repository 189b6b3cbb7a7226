"""
Service Registry — shared engine instance for the application.

The engine and its store are created once on first access. Tests that
need isolated state construct their own QHSEIntelligenceEngine instead.

Usage:
    from qhsecast.services.registry import get_services
    engine = get_services().engine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ServiceRegistry:
    """Lazy singletons: result store, then the engine that uses it."""

    _store: Optional[object] = field(default=None, repr=False)
    _engine: Optional[object] = field(default=None, repr=False)

    @property
    def store(self):
        """Process-local result cache and history log."""
        if self._store is None:
            from qhsecast.config import settings
            from qhsecast.services.store import InMemoryResultStore
            self._store = InMemoryResultStore(
                default_ttl=settings.cache_ttl_seconds,
                capacity=settings.history_capacity,
            )
            logger.debug("service_initialized", service="InMemoryResultStore")
        return self._store

    @property
    def engine(self):
        """Recommendation engine bound to the shared store."""
        if self._engine is None:
            from qhsecast.engine.intelligence import QHSEIntelligenceEngine
            self._engine = QHSEIntelligenceEngine(store=self.store)
            logger.debug("service_initialized", service="QHSEIntelligenceEngine")
        return self._engine


# ── Singleton ─────────────────────────────────────────────────────────

_registry: Optional[ServiceRegistry] = None


def get_services() -> ServiceRegistry:
    """Get the global service registry (singleton)."""
    global _registry
    if _registry is None:
        _registry = ServiceRegistry()
        logger.info("service_registry_created")
    return _registry


def reset_services() -> None:
    """Reset the registry (for testing)."""
    global _registry
    _registry = None
