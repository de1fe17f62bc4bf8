from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from beacon.agents.data_source import DataSourceAgent
from beacon.agents.data_sources import DATA_SOURCES
from beacon.core.models import DataSourceConfig
from beacon.orchestration.registry import AgentRegistry
from helpers import DEFAULT_REPLY, Harness, ScriptedCompletion, StaticQueryService


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_harness() -> Callable[..., Any]:
    """Async factory for an initialised registry over scripted services."""

    async def build(
        replies: Optional[Dict[str, List[Any]]] = None,
        rows: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        sources: Optional[List[DataSourceConfig]] = None,
        agent_class: type = DataSourceAgent,
        defaults: Optional[Dict[str, str]] = None,
    ) -> Harness:
        sources = DATA_SOURCES if sources is None else sources
        completions = {
            s.id: ScriptedCompletion(
                *(replies or {}).get(s.id, []),
                default=(defaults or {}).get(s.id, DEFAULT_REPLY),
            )
            for s in sources
        }
        queries = {s.id: StaticQueryService((rows or {}).get(s.id)) for s in sources}
        registry = AgentRegistry(
            sources=sources,
            agent_factory=lambda source: agent_class(source, completions[source.id], queries[source.id]),
        )
        await registry.initialize()
        return Harness(registry=registry, completions=completions, queries=queries)

    return build
