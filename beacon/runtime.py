"""Application runtime composition helpers."""
from __future__ import annotations

from functools import lru_cache

from beacon.agents.data_source import DataSourceAgent
from beacon.agents.data_sources import DATA_SOURCES
from beacon.config import config
from beacon.core.conversation import ConversationManager
from beacon.core.models import DataSourceConfig
from beacon.orchestration.collaboration import CollaborationManager
from beacon.orchestration.registry import AgentRegistry
from beacon.orchestration.workflows import WorkflowOrchestrator
from beacon.services.llm_pool import CompletionService, LLMPool, OpenAICompletionService
from beacon.services.warehouse import build_query_service


@lru_cache
def get_llm_pool() -> LLMPool:
    pool = LLMPool()

    # Azure wins when both providers are configured
    if config.azure_openai:
        pool.register_azure_openai(config.model_name, config.azure_openai)
    elif config.openai:
        pool.register_openai(config.model_name, config.openai)

    return pool


@lru_cache
def get_completion_service() -> CompletionService:
    return OpenAICompletionService(get_llm_pool(), config.model_name)


def build_data_source_agent(source: DataSourceConfig) -> DataSourceAgent:
    return DataSourceAgent(
        source,
        get_completion_service(),
        build_query_service(source, config.warehouse),
        max_tokens=config.llm_max_tokens,
    )


@lru_cache
def get_registry() -> AgentRegistry:
    return AgentRegistry(sources=DATA_SOURCES, agent_factory=build_data_source_agent)


@lru_cache
def get_conversation_manager() -> ConversationManager:
    return ConversationManager()


@lru_cache
def get_collaboration_manager() -> CollaborationManager:
    return CollaborationManager(get_registry(), max_turns=config.collaboration_max_turns)


@lru_cache
def get_workflow_orchestrator() -> WorkflowOrchestrator:
    return WorkflowOrchestrator(
        registry=get_registry(),
        conversations=get_conversation_manager(),
    )


async def initialize_runtime() -> None:
    """Build the agents and let them answer conversation messages."""
    await get_registry().initialize()
    get_workflow_orchestrator().setup_agent_message_handlers()


async def shutdown_runtime() -> None:
    await get_conversation_manager().wait_for_pending()
    await get_registry().dispose()
    await get_llm_pool().close()
