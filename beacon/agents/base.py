"""Base agent definition used by the registry and the orchestration layers."""
from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from beacon.core.models import (
    AgentCapability,
    AgentContext,
    AgentResponse,
    AgentStatus,
    AgentType,
    SemanticModel,
    new_id,
    utcnow,
)
from beacon.services.llm_pool import CompletionService

logger = logging.getLogger(__name__)


class Agent(abc.ABC):
    """Abstract agent encapsulating identity, status and the completion call."""

    def __init__(
        self,
        *,
        name: str,
        description: str,
        agent_type: AgentType,
        capabilities: List[AgentCapability],
        completion: CompletionService,
        max_tokens: int = 4096,
    ) -> None:
        self.id = new_id()
        self.name = name
        self.description = description
        self.type = agent_type
        self.capabilities = capabilities
        self.status = AgentStatus.IDLE
        self.last_active: Optional[datetime] = None
        self._completion = completion
        self._max_tokens = max_tokens

        logger.info(
            "Agent initialized: %s (id=%s, type=%s, capabilities=%s)",
            self.name,
            self.id,
            self.type.value,
            [c.name for c in self.capabilities],
        )

    @abc.abstractmethod
    async def process_query(self, query: str, context: AgentContext) -> AgentResponse:
        """Answer a query about the agent's data. Must not raise."""

    async def dispose(self) -> None:
        """Release held resources. Safe to call more than once."""
        return None

    def update_status(self, status: AgentStatus) -> None:
        self.status = status
        self.last_active = utcnow()
        logger.debug("Agent %s status updated to %s", self.name, status.value)

    def has_capability(self, capability_name: str) -> bool:
        return any(cap.name == capability_name for cap in self.capabilities)

    def get_capability(self, capability_name: str) -> Optional[AgentCapability]:
        return next((cap for cap in self.capabilities if cap.name == capability_name), None)

    async def call_completion(
        self,
        messages: List[Dict[str, str]],
        system_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        try:
            return await self._completion.complete(
                messages, system_prompt, max_tokens or self._max_tokens
            )
        except Exception:
            logger.exception("Completion call failed in agent %s", self.name)
            raise

    def create_system_prompt(self, semantic_model: Optional[SemanticModel] = None) -> str:
        lines = [f"You are {self.name}, {self.description}", "", "Your capabilities include:"]
        lines.extend(f"- {cap.name}: {cap.description}" for cap in self.capabilities)

        if semantic_model:
            lines += [
                "",
                "Semantic Model Information:",
                f"Database: {semantic_model.name}",
                f"Description: {semantic_model.description}",
                "",
                "Available Tables:",
            ]
            for table in semantic_model.tables:
                lines.append(
                    f"- {table.schema}.{table.name}: {table.description or 'No description'}"
                )
                lines.append("  Columns:")
                lines.extend(
                    f"    - {col.name} ({col.data_type}): {col.description or 'No description'}"
                    for col in table.columns
                )

            if semantic_model.metrics:
                lines += ["", "Available Metrics:"]
                lines.extend(
                    f"- {m.name}: {m.description} ({m.formula})" for m in semantic_model.metrics
                )

            if semantic_model.dimensions:
                lines += ["", "Available Dimensions:"]
                for dim in semantic_model.dimensions:
                    entry = f"- {dim.name}: {dim.description} ({dim.table}.{dim.column})"
                    if dim.hierarchies:
                        entry += f" [drill: {' > '.join(dim.hierarchies)}]"
                    lines.append(entry)

        lines += [
            "",
            "IMPORTANT: Always provide accurate, helpful responses based on the available data.",
            "If you generate SQL queries, ensure they are valid for the warehouse dialect.",
            "Include your reasoning and confidence level in your responses.",
        ]
        return "\n".join(lines)

    def create_response(self, content: str, **options: Any) -> AgentResponse:
        return AgentResponse(agent_id=self.id, content=content, **options)

    def log_activity(self, action: str, **details: Any) -> None:
        logger.info("Agent activity: %s %s %s", self.name, action, details)
