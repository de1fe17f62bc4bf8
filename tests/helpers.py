"""Test doubles and reply builders shared by the test modules."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from beacon.agents.data_source import DataSourceAgent
from beacon.orchestration.registry import AgentRegistry

DEFAULT_REPLY = json.dumps({"message": "Nothing further to add", "insights": [], "questionsForOthers": []})


class ScriptedCompletion:
    """Return queued replies in order, then ``default`` forever."""

    def __init__(self, *replies: Any, default: str = DEFAULT_REPLY) -> None:
        self.replies = list(replies)
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system_prompt: str,
        max_tokens: int = 4096,
    ) -> str:
        self.calls.append({"messages": messages, "system_prompt": system_prompt, "max_tokens": max_tokens})
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def last_prompt(self) -> str:
        return self.calls[-1]["messages"][-1]["content"]


class StaticQueryService:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None) -> None:
        self.rows = rows or []
        self.error = error
        self.queries: List[str] = []
        self.connected = False
        self.disconnects = 0

    async def connect(self) -> None:
        self.connected = True

    async def execute(self, query: str) -> List[Dict[str, Any]]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.rows)

    async def disconnect(self) -> None:
        self.connected = False
        self.disconnects += 1


@dataclass
class Harness:
    registry: AgentRegistry
    completions: Dict[str, ScriptedCompletion]
    queries: Dict[str, StaticQueryService]

    def agent(self, data_source_id: str) -> DataSourceAgent:
        agent = self.registry.get_agent(data_source_id)
        assert agent is not None
        return agent


def plan_reply(explanation: str = "Here is the analysis", **fields: Any) -> str:
    return json.dumps({"explanation": explanation, **fields})


def turn_reply(
    message: str,
    insights: Optional[List[str]] = None,
    questions: Optional[Dict[str, str]] = None,
) -> str:
    return json.dumps(
        {
            "message": message,
            "insights": insights or [],
            "questionsForOthers": [
                {"agentId": agent_id, "question": question}
                for agent_id, question in (questions or {}).items()
            ],
        }
    )
