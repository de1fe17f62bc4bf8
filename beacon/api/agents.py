"""HTTP API exposing the data-source agents held by the registry."""
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from beacon.agents.data_source import DataSourceAgent
from beacon.core.models import AgentResponse, new_id
from beacon.orchestration.registry import AgentRegistry
from beacon.runtime import get_registry

router = APIRouter(prefix="/agents", tags=["agents"])


class AgentSummary(BaseModel):
    data_source_id: str
    agent_id: str
    name: str
    description: str
    status: str
    last_active: Optional[datetime] = None
    capabilities: List[str]

    @classmethod
    def from_agent(cls, agent: DataSourceAgent) -> "AgentSummary":
        return cls(
            data_source_id=agent.data_source_id,
            agent_id=agent.id,
            name=agent.name,
            description=agent.description,
            status=agent.status.value,
            last_active=agent.last_active,
            capabilities=[c.name for c in agent.capabilities],
        )


class DataSourceSummary(BaseModel):
    id: str
    name: str
    description: str
    type: str
    has_agent: bool


class QueryRequest(BaseModel):
    query: str = Field(..., description="Natural-language question for the agent")
    conversation_id: Optional[str] = Field(default=None, description="Existing conversation to attach to")
    filters: Dict[str, Any] = Field(default_factory=dict)


class QueryResponse(BaseModel):
    agent_id: str
    content: str
    confidence: float
    sql: Optional[str] = None
    data: Optional[List[Dict[str, Any]]] = None
    suggestions: Optional[List[str]] = None
    visualization: Optional[Dict[str, Any]] = None
    reasoning: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, response: AgentResponse) -> "QueryResponse":
        return cls(
            agent_id=response.agent_id,
            content=response.content,
            confidence=response.confidence,
            sql=response.sql,
            data=response.data,
            suggestions=response.suggestions,
            visualization=asdict(response.visualization) if response.visualization else None,
            reasoning=response.reasoning,
            metadata=response.metadata,
        )


@router.get("", response_model=List[AgentSummary])
async def list_agents(registry: AgentRegistry = Depends(get_registry)) -> List[AgentSummary]:
    return [AgentSummary.from_agent(agent) for agent in registry.get_all_agents()]


@router.get("/health")
async def agents_health(registry: AgentRegistry = Depends(get_registry)) -> Dict[str, Dict[str, Any]]:
    return await registry.health_check()


@router.get("/data-sources", response_model=List[DataSourceSummary])
async def list_data_sources(registry: AgentRegistry = Depends(get_registry)) -> List[DataSourceSummary]:
    return [DataSourceSummary(**source) for source in registry.list_available_data_sources()]


@router.post("/{data_source_id}/query", response_model=QueryResponse)
async def query_agent(
    data_source_id: str,
    request: QueryRequest,
    registry: AgentRegistry = Depends(get_registry),
) -> QueryResponse:
    agent = registry.get_agent(data_source_id)
    if agent is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown agent")

    context = agent.build_context(
        request.conversation_id or new_id(),
        user_id="api",
        metadata={"filters": request.filters},
    )
    response = await agent.process_query(request.query, context)
    return QueryResponse.from_response(response)


@router.delete("/{data_source_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(data_source_id: str, registry: AgentRegistry = Depends(get_registry)) -> None:
    if not await registry.remove_agent(data_source_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown agent")
