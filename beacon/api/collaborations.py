"""Collaboration endpoints: run a lead/responder exchange and inspect it."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from beacon.core.errors import UnknownAgentError
from beacon.core.models import Collaboration, ConversationTurn
from beacon.orchestration.collaboration import CollaborationManager
from beacon.runtime import get_collaboration_manager

router = APIRouter(prefix="/collaborations", tags=["collaborations"])


class CollaborationRequest(BaseModel):
    topic: str = Field(..., description="Subject of the collaboration")
    query: str = Field(..., description="Question handed to the lead agent")
    lead_agent_id: str = Field(..., description="Data-source id of the lead agent")
    collaborating_agent_ids: List[str] = Field(default_factory=list)


class TurnResponse(BaseModel):
    id: str
    agent_id: str
    agent_name: str
    role: str
    message: str
    query: Optional[str] = None
    data: Optional[List[Dict[str, Any]]] = None
    insights: List[str]
    questions_for_others: List[Dict[str, str]]
    depth: int
    timestamp: datetime

    @classmethod
    def from_turn(cls, turn: ConversationTurn) -> "TurnResponse":
        return cls(
            id=turn.id,
            agent_id=turn.agent_id,
            agent_name=turn.agent_name,
            role=turn.role.value,
            message=turn.message,
            query=turn.query,
            data=turn.data,
            insights=turn.insights,
            questions_for_others=[
                {"agent_id": q.agent_id, "question": q.question} for q in turn.questions_for_others
            ],
            depth=turn.depth,
            timestamp=turn.timestamp,
        )


class CollaborationResponse(BaseModel):
    id: str
    topic: str
    status: str
    participant_ids: List[str]
    turns: List[TurnResponse]
    final_insights: List[str]
    recommendations: List[str]
    start_time: datetime
    end_time: Optional[datetime] = None

    @classmethod
    def from_collaboration(cls, collaboration: Collaboration) -> "CollaborationResponse":
        return cls(
            id=collaboration.id,
            topic=collaboration.topic,
            status=collaboration.status.value,
            participant_ids=collaboration.participant_ids,
            turns=[TurnResponse.from_turn(turn) for turn in collaboration.turns],
            final_insights=collaboration.final_insights,
            recommendations=collaboration.recommendations,
            start_time=collaboration.start_time,
            end_time=collaboration.end_time,
        )


@router.post("", response_model=CollaborationResponse, status_code=status.HTTP_201_CREATED)
async def start_collaboration(
    request: CollaborationRequest,
    manager: CollaborationManager = Depends(get_collaboration_manager),
) -> CollaborationResponse:
    try:
        collaboration_id = await manager.start_collaboration(
            request.topic,
            request.query,
            request.lead_agent_id,
            request.collaborating_agent_ids,
        )
    except UnknownAgentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return CollaborationResponse.from_collaboration(manager.get_collaboration(collaboration_id))


@router.get("")
async def list_collaborations(
    manager: CollaborationManager = Depends(get_collaboration_manager),
) -> List[Dict[str, Any]]:
    return [manager.get_collaboration_summary(c.id) for c in manager.get_all_collaborations()]


@router.get("/{collaboration_id}", response_model=CollaborationResponse)
async def get_collaboration(
    collaboration_id: str,
    manager: CollaborationManager = Depends(get_collaboration_manager),
) -> CollaborationResponse:
    collaboration = manager.get_collaboration(collaboration_id)
    if collaboration is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown collaboration")
    return CollaborationResponse.from_collaboration(collaboration)
