"""Conversation endpoints backed by the conversation manager."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from beacon.core.conversation import ConversationManager
from beacon.core.errors import ConversationNotFoundError, NotAParticipantError, UnknownAgentError
from beacon.core.models import Conversation, Message, MessageType
from beacon.orchestration.workflows import WorkflowOrchestrator
from beacon.runtime import get_conversation_manager, get_workflow_orchestrator

router = APIRouter(prefix="/conversations", tags=["conversations"])


class ConversationCreateRequest(BaseModel):
    query: str = Field(..., description="Opening question sent to the first secondary agent")
    primary_agent_id: str
    secondary_agent_ids: List[str] = Field(..., min_length=1)


class ConversationCreated(BaseModel):
    conversation_id: str


class MessageRequest(BaseModel):
    from_agent_id: str
    to_agent_id: str
    message_type: MessageType = MessageType.QUESTION
    content: str
    data: Optional[Any] = None
    in_reply_to: Optional[str] = None


class MessageResponse(BaseModel):
    id: str
    from_agent_id: str
    to_agent_id: str
    message_type: str
    content: str
    data: Optional[Any] = None
    in_reply_to: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            from_agent_id=message.from_agent_id,
            to_agent_id=message.to_agent_id,
            message_type=message.message_type.value,
            content=message.content,
            data=message.data,
            in_reply_to=message.in_reply_to,
            timestamp=message.timestamp,
        )


class ConversationResponse(BaseModel):
    id: str
    topic: str
    status: str
    initiated_by: str
    participant_ids: List[str]
    messages: List[MessageResponse]
    created_at: datetime
    last_activity: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationResponse":
        return cls(
            id=conversation.id,
            topic=conversation.topic,
            status=conversation.status.value,
            initiated_by=conversation.initiated_by,
            participant_ids=conversation.participant_ids,
            messages=[MessageResponse.from_message(m) for m in conversation.messages],
            created_at=conversation.created_at,
            last_activity=conversation.last_activity,
        )


@router.post("", response_model=ConversationCreated, status_code=status.HTTP_202_ACCEPTED)
async def start_conversation(
    request: ConversationCreateRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_workflow_orchestrator),
) -> ConversationCreated:
    try:
        conversation_id = await orchestrator.start_agent_conversation(
            request.query,
            request.primary_agent_id,
            request.secondary_agent_ids,
        )
    except UnknownAgentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ConversationCreated(conversation_id=conversation_id)


@router.post("/{conversation_id}/messages", status_code=status.HTTP_202_ACCEPTED)
async def send_message(
    conversation_id: str,
    request: MessageRequest,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> Dict[str, str]:
    try:
        message_id = await manager.send_message(
            conversation_id,
            request.from_agent_id,
            request.to_agent_id,
            request.message_type,
            request.content,
            data=request.data,
            in_reply_to=request.in_reply_to,
        )
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except NotAParticipantError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message_id": message_id}


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationResponse:
    conversation = manager.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown conversation")
    return ConversationResponse.from_conversation(conversation)


@router.post("/{conversation_id}/complete")
async def complete_conversation(
    conversation_id: str,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> Dict[str, Any]:
    try:
        manager.complete_conversation(conversation_id)
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return manager.get_conversation_summary(conversation_id)
