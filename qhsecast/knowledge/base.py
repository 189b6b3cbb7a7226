"""
Knowledge Base — lookup facade over the static module catalog.

Built once per engine. Unknown module ids fail fast with
UnknownModuleError; everything else is read-only.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import structlog

from qhsecast.errors import ConfigurationError, UnknownModuleError
from qhsecast.knowledge.schemas import (
    ModuleConnection,
    ModuleKnowledge,
    ReferenceLibrary,
)

logger = structlog.get_logger(__name__)


class KnowledgeBase:
    """Factor tables, module graph and reference library for one engine."""

    def __init__(
        self,
        modules: Iterable[ModuleKnowledge],
        connections: Iterable[ModuleConnection],
        references: ReferenceLibrary,
    ):
        module_map: dict[str, ModuleKnowledge] = {}
        for module in modules:
            if module.module_id in module_map:
                raise ConfigurationError(
                    f"Duplicate module '{module.module_id}'",
                    details={"module_id": module.module_id},
                )
            module_map[module.module_id] = module

        self._modules: Mapping[str, ModuleKnowledge] = MappingProxyType(module_map)
        self._connections: Mapping[str, ModuleConnection] = MappingProxyType(
            {c.id: c for c in connections}
        )
        self.references = references

        logger.debug(
            "knowledge_base_loaded",
            modules=len(self._modules),
            connections=len(self._connections),
        )

    @property
    def module_ids(self) -> list[str]:
        return list(self._modules)

    def module(self, module_id: str) -> ModuleKnowledge:
        """Module knowledge, or UnknownModuleError when there is no factor table."""
        try:
            return self._modules[module_id]
        except KeyError:
            raise UnknownModuleError(module_id) from None

    def connection(self, module_id: str) -> Optional[ModuleConnection]:
        return self._connections.get(module_id)


def build_default_knowledge() -> KnowledgeBase:
    """Knowledge base for the five QHSE modules."""
    from qhsecast.knowledge.catalog import (
        MODULE_CONNECTIONS,
        MODULE_KNOWLEDGE,
        REFERENCE_LIBRARY,
    )

    return KnowledgeBase(MODULE_KNOWLEDGE, MODULE_CONNECTIONS, REFERENCE_LIBRARY)
