"""Registry responsible for provisioning and supervising data-source agents."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from beacon.agents.data_source import DataSourceAgent
from beacon.agents.data_sources import get_data_source
from beacon.core.models import AgentStatus, DataSourceConfig

logger = logging.getLogger(__name__)

AgentFactory = Callable[[DataSourceConfig], DataSourceAgent]


class AgentRegistry:
    """Own one agent per configured data source, keyed by data-source id.

    Construction is best-effort: a data source whose agent cannot be built is
    logged and left out of the map rather than failing the whole registry.
    """

    def __init__(
        self,
        *,
        sources: List[DataSourceConfig],
        agent_factory: AgentFactory,
    ) -> None:
        self._sources = list(sources)
        self._agent_factory = agent_factory
        self._agents: Dict[str, DataSourceAgent] = {}
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Build an agent for every configured data source. Idempotent."""
        async with self._lock:
            if self._initialized:
                return

            logger.info("Initializing agent registry with %d data sources", len(self._sources))
            for source in self._sources:
                agent = self._build(source)
                if agent is not None:
                    self._agents[source.id] = agent

            self._initialized = True
            logger.info("Agent registry initialization complete: %d agents", len(self._agents))

    def get_agent(self, data_source_id: str) -> Optional[DataSourceAgent]:
        return self._agents.get(data_source_id)

    def get_all_agents(self) -> List[DataSourceAgent]:
        return list(self._agents.values())

    def get_agents_by_capability(self, capability: str) -> List[DataSourceAgent]:
        return [agent for agent in self._agents.values() if agent.has_capability(capability)]

    async def create_agent(self, data_source_id: str) -> Optional[DataSourceAgent]:
        """Lazily build the agent for one configured data source."""
        source = get_data_source(data_source_id, self._sources)
        if source is None:
            logger.error("Data source config not found: %s", data_source_id)
            return None

        agent = self._build(source)
        if agent is None:
            return None

        previous = self._agents.get(data_source_id)
        self._agents[data_source_id] = agent
        if previous is not None:
            await previous.dispose()
        logger.info("Dynamic agent created for data source %s (agent=%s)", data_source_id, agent.id)
        return agent

    async def remove_agent(self, data_source_id: str) -> bool:
        """Dispose and remove an agent; report whether one existed."""
        agent = self._agents.get(data_source_id)
        if agent is None:
            return False
        await agent.dispose()
        del self._agents[data_source_id]
        logger.info("Agent removed for data source: %s", data_source_id)
        return True

    def get_agent_status(self) -> Dict[str, Dict[str, Any]]:
        return {
            data_source_id: {
                "id": agent.id,
                "name": agent.name,
                "status": agent.status.value,
                "last_active": agent.last_active,
                "capabilities": [c.name for c in agent.capabilities],
            }
            for data_source_id, agent in self._agents.items()
        }

    def list_available_data_sources(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": source.id,
                "name": source.name,
                "description": source.description,
                "type": source.kind,
                "has_agent": source.id in self._agents,
            }
            for source in self._sources
        ]

    async def health_check(self) -> Dict[str, Dict[str, Any]]:
        health: Dict[str, Dict[str, Any]] = {}
        for data_source_id, agent in self._agents.items():
            try:
                status = agent.status
                health[data_source_id] = {
                    "status": status.value,
                    "healthy": status is not AgentStatus.ERROR,
                    "last_active": agent.last_active,
                }
            except Exception as exc:  # noqa: BLE001
                logger.error("Health check failed for agent %s: %s", data_source_id, exc)
                health[data_source_id] = {
                    "status": AgentStatus.ERROR.value,
                    "healthy": False,
                    "error": str(exc),
                }
        return health

    async def dispose(self) -> None:
        """Shutdown every agent currently managed by the registry."""
        async with self._lock:
            agents = list(self._agents.values())
            self._agents.clear()
            self._initialized = False
        results = await asyncio.gather(*(agent.dispose() for agent in agents), return_exceptions=True)
        for agent, result in zip(agents, results):
            if isinstance(result, Exception):
                logger.error("Failed to dispose agent %s: %s", agent.name, result)

    def _build(self, source: DataSourceConfig) -> Optional[DataSourceAgent]:
        try:
            agent = self._agent_factory(source)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to create agent for data source: %s", source.name)
            return None
        logger.info("Agent created for data source %s (agent=%s)", source.name, agent.id)
        return agent
