"""In-memory conversation manager delivering messages between agents."""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from .errors import ConversationNotFoundError, NotAParticipantError
from .models import (
    Conversation,
    ConversationStatus,
    Message,
    MessageType,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], Awaitable[Optional[Message]]]


class ConversationManager:
    """Append-only message logs with per-agent handler dispatch.

    Dispatch is best-effort: a missing handler or a handler that raises is
    logged and the conversation is left as it was.
    """

    def __init__(self) -> None:
        self._conversations: Dict[str, Conversation] = {}
        self._handlers: Dict[str, MessageHandler] = {}
        self._pending: Set[asyncio.Task[None]] = set()

    def register_message_handler(self, agent_id: str, handler: MessageHandler) -> None:
        self._handlers[agent_id] = handler
        logger.debug("Message handler registered for agent: %s", agent_id)

    def unregister_message_handler(self, agent_id: str) -> None:
        self._handlers.pop(agent_id, None)

    def start_conversation(
        self,
        initiator_id: str,
        target_ids: List[str],
        topic: str,
        initial_content: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Open a conversation and dispatch its first question in the background.

        Must be called from within a running event loop.
        """
        if not target_ids:
            raise ValueError("A conversation needs at least one target agent")

        conversation = Conversation(
            id=new_id(),
            participant_ids=[initiator_id, *target_ids],
            topic=topic,
            initiated_by=initiator_id,
            context=context,
        )
        message = Message(
            conversation_id=conversation.id,
            from_agent_id=initiator_id,
            to_agent_id=target_ids[0],
            message_type=MessageType.QUESTION,
            content=initial_content,
            metadata=(context or {}).get("metadata"),
        )
        conversation.messages.append(message)
        self._conversations[conversation.id] = conversation

        logger.info(
            "Conversation started: %s (topic=%r, initiator=%s, targets=%s)",
            conversation.id,
            topic,
            initiator_id,
            target_ids,
        )

        task = asyncio.get_running_loop().create_task(self._dispatch(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return conversation.id

    async def send_message(
        self,
        conversation_id: str,
        from_agent_id: str,
        to_agent_id: str,
        message_type: MessageType,
        content: str,
        data: Optional[Any] = None,
        in_reply_to: Optional[str] = None,
    ) -> str:
        conversation = self._require(conversation_id)
        for agent_id in (from_agent_id, to_agent_id):
            if agent_id not in conversation.participant_ids:
                raise NotAParticipantError(agent_id, conversation_id)

        message = Message(
            conversation_id=conversation_id,
            from_agent_id=from_agent_id,
            to_agent_id=to_agent_id,
            message_type=message_type,
            content=content,
            data=data,
            in_reply_to=in_reply_to,
        )
        conversation.messages.append(message)
        conversation.last_activity = message.timestamp
        conversation.status = ConversationStatus.WAITING_FOR_RESPONSE
        logger.info(
            "Agent communication %s -> %s [%s]: %.100s",
            from_agent_id,
            to_agent_id,
            message_type.value,
            content,
        )

        await self._dispatch(message)
        return message.id

    async def _dispatch(self, message: Message) -> None:
        handler = self._handlers.get(message.to_agent_id)
        if handler is None:
            logger.warning("No message handler found for agent: %s", message.to_agent_id)
            return

        try:
            reply = await handler(message)
        except Exception:  # noqa: BLE001
            logger.exception("Error processing message %s", message.id)
            return

        if reply is None:
            return

        conversation = self._conversations.get(message.conversation_id)
        if conversation is None:
            logger.warning("Conversation %s vanished before reply was recorded", message.conversation_id)
            return
        if (
            reply.from_agent_id not in conversation.participant_ids
            or reply.to_agent_id not in conversation.participant_ids
        ):
            logger.warning("Dropping reply %s from non-participant %s", reply.id, reply.from_agent_id)
            return

        conversation.messages.append(reply)
        conversation.last_activity = utcnow()
        conversation.status = (
            ConversationStatus.COMPLETED
            if reply.message_type is MessageType.RESPONSE
            else ConversationStatus.ACTIVE
        )
        logger.info(
            "Agent response processed in %s (%s -> %s)",
            conversation.id,
            reply.from_agent_id,
            reply.to_agent_id,
        )

    async def wait_for_pending(self) -> None:
        """Wait for every background dispatch scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self._conversations.get(conversation_id)

    def get_conversations_for_agent(self, agent_id: str) -> List[Conversation]:
        return [c for c in self._conversations.values() if agent_id in c.participant_ids]

    def get_active_conversations(self) -> List[Conversation]:
        return [
            c
            for c in self._conversations.values()
            if c.status is not ConversationStatus.COMPLETED
        ]

    def complete_conversation(self, conversation_id: str) -> None:
        conversation = self._require(conversation_id)
        conversation.status = ConversationStatus.COMPLETED
        conversation.last_activity = utcnow()
        logger.info("Conversation %s marked as completed", conversation_id)

    def get_conversation_summary(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        return {
            "id": conversation.id,
            "topic": conversation.topic,
            "status": conversation.status.value,
            "participant_count": len(conversation.participant_ids),
            "message_count": len(conversation.messages),
            "duration": (conversation.last_activity - conversation.created_at).total_seconds(),
            "last_activity": conversation.last_activity,
            "initiated_by": conversation.initiated_by,
        }

    def cleanup_old_conversations(self, max_age_hours: float = 24) -> int:
        """Delete completed conversations idle for longer than ``max_age_hours``.

        Active and waiting conversations are kept regardless of age.
        """
        cutoff = utcnow() - timedelta(hours=max_age_hours)
        stale = [
            conversation_id
            for conversation_id, conversation in self._conversations.items()
            if conversation.status is ConversationStatus.COMPLETED
            and conversation.last_activity < cutoff
        ]
        for conversation_id in stale:
            del self._conversations[conversation_id]

        if stale:
            logger.info("Cleaned up %d old conversations", len(stale))
        return len(stale)

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation
