"""Lead/responder collaboration protocol between data-source agents.

A lead agent analyses the topic and may address follow-up questions to other
agents; each answer may raise further questions. Questions are resolved
depth-first and, by default, one at a time, so the recorded turn order is
deterministic. The exchange ends when no questions remain or the turn budget
runs out; insights and recommendations are synthesised once at the end.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from beacon.agents.data_source import DataSourceAgent
from beacon.core.errors import UnknownAgentError
from beacon.core.models import (
    Collaboration,
    CollaborationStatus,
    ConversationTurn,
    FollowUpQuestion,
    TurnRole,
    new_id,
    utcnow,
)
from beacon.core.parsing import ParsedAgentOutput
from beacon.orchestration.registry import AgentRegistry

logger = logging.getLogger(__name__)

# topic keywords -> canned recommendations
RECOMMENDATION_RULES: List[Tuple[Tuple[str, ...], Tuple[str, ...]]] = [
    (
        ("revenue", "gap"),
        (
            "Monitor revenue trends monthly and establish pipeline coverage ratios",
            "Implement cross-agent alerting when revenue gaps exceed pipeline capacity",
        ),
    ),
    (
        ("attendance",),
        (
            "Investigate correlation between attendance and performance metrics",
            "Consider flexible work arrangements for underperforming offices",
        ),
    ),
]
CLOSING_RECOMMENDATION = "Continue regular agent collaborations for comprehensive business insights"

JSON_REPLY_FORMAT = """Format your response as JSON with:
   - "message": {message_hint}
   - "insights": Array of key insights{insight_hint}
   - "questionsForOthers": Array of {{"agentId", "question"}} objects for other agents{question_hint}"""


class CollaborationManager:
    """Run and keep collaborations in memory for later retrieval by id."""

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        max_turns: int = 20,
        concurrent_fanout: bool = False,
    ) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self._registry = registry
        self._max_turns = max_turns
        self._concurrent_fanout = concurrent_fanout
        self._collaborations: Dict[str, Collaboration] = {}
        self._turns_started: Dict[str, int] = {}
        logger.info(
            "CollaborationManager initialized (max_turns=%d, concurrent_fanout=%s)",
            max_turns,
            concurrent_fanout,
        )

    async def start_collaboration(
        self,
        topic: str,
        initial_query: str,
        lead_agent_id: str,
        collaborating_agent_ids: List[str],
    ) -> str:
        lead_agent = self._resolve(lead_agent_id)
        collaborators = [self._resolve(agent_id) for agent_id in collaborating_agent_ids]

        collaboration = Collaboration(
            id=new_id(),
            topic=topic,
            participant_ids=[lead_agent_id, *collaborating_agent_ids],
        )
        self._collaborations[collaboration.id] = collaboration
        self._turns_started[collaboration.id] = 0

        logger.info(
            "Agent collaboration started: %s (topic=%r, lead=%s, collaborators=%s)",
            collaboration.id,
            topic,
            lead_agent.name,
            [agent.name for agent in collaborators],
        )

        try:
            await self._process_agent_turn(
                collaboration,
                lead_agent_id,
                lead_agent,
                TurnRole.INITIATOR,
                f"Analyze this query and determine what questions to ask other agents: {initial_query}",
            )
        finally:
            self._turns_started.pop(collaboration.id, None)

        self._complete_collaboration(collaboration)
        return collaboration.id

    async def _process_agent_turn(
        self,
        collaboration: Collaboration,
        agent_id: str,
        agent: DataSourceAgent,
        role: TurnRole,
        message: str,
        context_data: Optional[Dict[str, Any]] = None,
        depth: int = 0,
    ) -> None:
        if collaboration.status is CollaborationStatus.BUDGET_EXHAUSTED:
            return
        if self._turns_started[collaboration.id] >= self._max_turns:
            logger.warning(
                "Collaboration %s reached its budget of %d turns; dropping question for %s",
                collaboration.id,
                self._max_turns,
                agent.name,
            )
            collaboration.status = CollaborationStatus.BUDGET_EXHAUSTED
            return
        self._turns_started[collaboration.id] += 1

        logger.info(
            "Processing turn for agent %s in %s (role=%s, depth=%d): %.100s",
            agent.name,
            collaboration.id,
            role.value,
            depth,
            message,
        )

        context = agent.build_context(
            collaboration.id,
            user_id="collaboration-manager",
            history=self._build_conversation_history(collaboration),
            metadata={
                "collaboration_topic": collaboration.topic,
                "role": role.value,
                "other_agents": [a for a in collaboration.participant_ids if a != agent_id],
                "conversation_context": context_data,
            },
        )
        prompt = self._build_agent_prompt(agent_id, agent, role, message, collaboration)

        if collaboration.status is CollaborationStatus.ACTIVE:
            collaboration.status = CollaborationStatus.WAITING
        response = await agent.process_query(prompt, context)
        if collaboration.status is CollaborationStatus.WAITING:
            collaboration.status = CollaborationStatus.ACTIVE

        parsed = ParsedAgentOutput.from_text(response.content)
        turn = ConversationTurn(
            agent_id=agent_id,
            agent_name=agent.name,
            role=role,
            message=parsed.message,
            query=response.sql,
            data=response.data,
            insights=parsed.insights,
            questions_for_others=parsed.questions_for_others,
            depth=depth,
        )
        collaboration.turns.append(turn)

        logger.info(
            "Agent turn completed: %s (data=%s, questions=%d, insights=%d)",
            agent.name,
            response.data is not None,
            len(turn.questions_for_others),
            len(turn.insights),
        )

        if turn.questions_for_others:
            await self._process_questions_for_other_agents(collaboration, turn, depth + 1)

    async def _process_questions_for_other_agents(
        self,
        collaboration: Collaboration,
        asking_turn: ConversationTurn,
        depth: int,
    ) -> None:
        questions = asking_turn.questions_for_others
        if self._concurrent_fanout:
            await asyncio.gather(
                *(self._answer_question(collaboration, asking_turn, q, depth) for q in questions)
            )
            return
        for question in questions:
            await self._answer_question(collaboration, asking_turn, question, depth)

    async def _answer_question(
        self,
        collaboration: Collaboration,
        asking_turn: ConversationTurn,
        question: FollowUpQuestion,
        depth: int,
    ) -> None:
        target = self._registry.get_agent(question.agent_id)
        if target is None:
            logger.warning("Target agent %s not found for question", question.agent_id)
            return

        found = ", ".join(asking_turn.insights) or "No specific insights listed"
        contextual_question = (
            f'{asking_turn.agent_name} asks: "{question.question}"\n\n'
            f'Context: This relates to our analysis of "{collaboration.topic}".\n'
            f"{asking_turn.agent_name} found: {found}"
        )
        await self._process_agent_turn(
            collaboration,
            question.agent_id,
            target,
            TurnRole.RESPONDER,
            contextual_question,
            {
                "asking_agent": asking_turn.agent_name,
                "original_question": question.question,
                "context": asking_turn.insights,
            },
            depth,
        )

    def _build_agent_prompt(
        self,
        agent_id: str,
        agent: DataSourceAgent,
        role: TurnRole,
        message: str,
        collaboration: Collaboration,
    ) -> str:
        prompt = f"You are {agent.name}, a specialized data analysis agent. "

        if role is TurnRole.INITIATOR:
            reply_format = JSON_REPLY_FORMAT.format(
                message_hint="Your analysis and findings",
                insight_hint=" from your data",
                question_hint="",
            )
            prompt += (
                f'You\'ve been asked to lead an analysis on: "{collaboration.topic}".\n\n'
                "Your task:\n"
                f'1. Analyze the query: "{message}"\n'
                "2. Query your data source to get relevant insights\n"
                "3. Identify what questions you need to ask other agents to get a complete picture\n"
                f"4. {reply_format}\n\n"
                "Available other agents:"
            )
            for other_id in collaboration.participant_ids:
                if other_id == agent_id:
                    continue
                other = self._registry.get_agent(other_id)
                if other is not None:
                    prompt += f"\n- {other_id}: {other.name} - {other.description}"
        else:
            reply_format = JSON_REPLY_FORMAT.format(
                message_hint="Your answer and analysis",
                insight_hint="",
                question_hint=" (if any)",
            )
            prompt += (
                f'Another agent has asked you a question about "{collaboration.topic}".\n\n'
                f'Question: "{message}"\n\n'
                "Your task:\n"
                "1. Query your data source to answer this specific question\n"
                "2. Provide detailed insights based on your data\n"
                "3. If you discover patterns that need input from other agents, ask follow-up questions\n"
                f"4. {reply_format}\n\n"
                "Context from previous conversation:"
            )
            for turn in collaboration.turns:
                prompt += f"\n- {turn.agent_name}: {turn.message[:200]}..."

        prompt += (
            "\n\nIMPORTANT: Base your analysis on REAL data from your warehouse tables. "
            "Always query your data source to provide factual insights."
        )
        return prompt

    @staticmethod
    def _build_conversation_history(collaboration: Collaboration) -> List[Dict[str, str]]:
        return [
            {"role": "assistant", "content": f"{turn.agent_name}: {turn.message}"}
            for turn in collaboration.turns
        ]

    def _complete_collaboration(self, collaboration: Collaboration) -> None:
        if collaboration.end_time is not None:
            return
        if collaboration.status is not CollaborationStatus.BUDGET_EXHAUSTED:
            collaboration.status = CollaborationStatus.COMPLETED
        collaboration.end_time = utcnow()
        collaboration.final_insights = self._generate_final_insights(collaboration)
        collaboration.recommendations = self._generate_recommendations(collaboration)

        logger.info(
            "Collaboration finished: %s (status=%s, turns=%d, duration=%.2fs, insights=%d)",
            collaboration.topic,
            collaboration.status.value,
            len(collaboration.turns),
            (collaboration.end_time - collaboration.start_time).total_seconds(),
            len(collaboration.final_insights),
        )

    @staticmethod
    def _generate_final_insights(collaboration: Collaboration) -> List[str]:
        insights = [
            f"{turn.agent_name}: {insight}"
            for turn in collaboration.turns
            for insight in turn.insights
        ]
        insights.append(
            f"Collaboration Summary: {len(collaboration.turns)} agents participated in "
            f'analyzing "{collaboration.topic}"'
        )
        return insights

    @staticmethod
    def _generate_recommendations(collaboration: Collaboration) -> List[str]:
        topic = collaboration.topic.lower()
        recommendations: List[str] = []
        for keywords, advice in RECOMMENDATION_RULES:
            if any(keyword in topic for keyword in keywords):
                recommendations.extend(advice)
        recommendations.append(CLOSING_RECOMMENDATION)
        return recommendations

    def _resolve(self, agent_id: str) -> DataSourceAgent:
        agent = self._registry.get_agent(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id)
        return agent

    def get_collaboration(self, collaboration_id: str) -> Optional[Collaboration]:
        return self._collaborations.get(collaboration_id)

    def get_all_collaborations(self) -> List[Collaboration]:
        return list(self._collaborations.values())

    def get_collaboration_summary(self, collaboration_id: str) -> Optional[Dict[str, Any]]:
        collaboration = self._collaborations.get(collaboration_id)
        if collaboration is None:
            return None
        end = collaboration.end_time or utcnow()
        return {
            "id": collaboration.id,
            "topic": collaboration.topic,
            "status": collaboration.status.value,
            "participant_count": len(collaboration.participant_ids),
            "turn_count": len(collaboration.turns),
            "duration": (end - collaboration.start_time).total_seconds(),
            "insights": list(collaboration.final_insights),
            "recommendations": list(collaboration.recommendations),
        }
