"""Workflow orchestrator running canned multi-step analyses over agents."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from beacon.core.conversation import ConversationManager, MessageHandler
from beacon.core.errors import UnknownAgentError, UnknownWorkflowError, WorkflowStepError
from beacon.core.models import (
    Conversation,
    Message,
    MessageType,
    OrchestrationResult,
    OrchestrationStep,
    RunStatus,
    StepAction,
    StepResult,
    Workflow,
    new_id,
    utcnow,
)
from beacon.orchestration.registry import AgentRegistry

logger = logging.getLogger(__name__)

REVENUE_GAP_ROWS = 5
LOW_PERFORMER_ROWS = 3


def _has_rows(results: List[Optional[StepResult]]) -> bool:
    return any(result is not None and result.data for result in results)


def default_workflows() -> List[Workflow]:
    return [
        Workflow(
            id="revenue-gap-analysis",
            name="Revenue Gap Analysis",
            description="Identifies revenue gaps and checks if pipeline can fill them",
            required_agents=["ncc-financial", "pipeline-analytics"],
            steps=[
                OrchestrationStep(
                    id="identify-revenue-gaps",
                    agent_id="ncc-financial",
                    action=StepAction.ANALYZE,
                    parameters={
                        "analysisType": "revenue-gaps",
                        "timeframe": "monthly",
                        "threshold": "below-average",
                    },
                ),
                OrchestrationStep(
                    id="check-pipeline-coverage",
                    agent_id="pipeline-analytics",
                    action=StepAction.QUESTION,
                    parameters={"analysisType": "won-deals-coverage", "correlateWith": "revenue-gaps"},
                    dependencies=["identify-revenue-gaps"],
                    condition=_has_rows,
                ),
            ],
        ),
        Workflow(
            id="cross-regional-performance",
            name="Cross-Regional Performance Analysis",
            description="Compare performance across regions using NCC, attendance, and pipeline data",
            required_agents=["ncc-financial", "attendance-analytics", "pipeline-analytics"],
            steps=[
                OrchestrationStep(
                    id="ncc-by-region",
                    agent_id="ncc-financial",
                    action=StepAction.ANALYZE,
                    parameters={"groupBy": "region", "metric": "total_ncc"},
                ),
                OrchestrationStep(
                    id="attendance-by-region",
                    agent_id="attendance-analytics",
                    action=StepAction.ANALYZE,
                    parameters={"groupBy": "region", "metric": "attendance_rate"},
                ),
                OrchestrationStep(
                    id="pipeline-by-region",
                    agent_id="pipeline-analytics",
                    action=StepAction.ANALYZE,
                    parameters={"groupBy": "region", "metric": "total_value"},
                ),
            ],
        ),
        Workflow(
            id="office-investigation",
            name="Office Performance Investigation",
            description="Investigate why certain offices are underperforming",
            required_agents=["ncc-financial", "attendance-analytics"],
            steps=[
                OrchestrationStep(
                    id="identify-low-performers",
                    agent_id="ncc-financial",
                    action=StepAction.ANALYZE,
                    parameters={"analysisType": "bottom-performers", "groupBy": "office"},
                ),
                OrchestrationStep(
                    id="check-attendance-correlation",
                    agent_id="attendance-analytics",
                    action=StepAction.QUESTION,
                    parameters={
                        "analysisType": "attendance-correlation",
                        "correlateWith": "low-performing-offices",
                    },
                    dependencies=["identify-low-performers"],
                ),
            ],
        ),
    ]


# workflow id -> (conclusions, recommendations)
WORKFLOW_OUTCOMES: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "revenue-gap-analysis": (
        ("Revenue gap analysis completed with pipeline correlation check",),
        (
            "Monitor pipeline conversion rates in underperforming regions",
            "Investigate sales team performance in regions with persistent gaps",
        ),
    ),
    "cross-regional-performance": (
        ("Regional NCC, attendance and pipeline figures compared side by side",),
        ("Review regions that trail on more than one metric first",),
    ),
    "office-investigation": (
        ("Underperforming offices checked against attendance patterns",),
        ("Pair office revenue reviews with attendance reviews for the same period",),
    ),
}


def _json(value: Any) -> str:
    return json.dumps(value, default=str)


class WorkflowOrchestrator:
    """Execute registered workflows and bridge agents into conversations."""

    def __init__(
        self,
        *,
        registry: AgentRegistry,
        conversations: ConversationManager,
        workflows: Optional[List[Workflow]] = None,
    ) -> None:
        self._registry = registry
        self._conversations = conversations
        self._workflows: Dict[str, Workflow] = {}
        self._orchestrations: Dict[str, OrchestrationResult] = {}
        for workflow in default_workflows() if workflows is None else workflows:
            self.register_workflow(workflow)

    def register_workflow(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow
        logger.info("Workflow registered: %s", workflow.name)

    def get_available_workflows(self) -> List[Workflow]:
        return list(self._workflows.values())

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        return self._workflows.get(workflow_id)

    async def execute_workflow(
        self,
        workflow_id: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        workflow = self.get_workflow(workflow_id)
        if workflow is None:
            raise UnknownWorkflowError(workflow_id)

        result = OrchestrationResult(id=new_id(), workflow_id=workflow_id)
        self._orchestrations[result.id] = result
        logger.info("Starting workflow execution: %s (orchestration=%s)", workflow.name, result.id)

        try:
            step_results = await self._execute_steps(workflow, result, context or {})
        except Exception as exc:
            self._finish(result, RunStatus.FAILED)
            result.error = str(exc)
            logger.error("Workflow failed: %s (orchestration=%s): %s", workflow.name, result.id, exc)
            raise

        conclusions, recommendations = WORKFLOW_OUTCOMES.get(workflow.id, ((), ()))
        result.conclusions = [
            *conclusions,
            f"{len(step_results)} of {len(workflow.steps)} steps executed",
        ]
        result.recommendations = list(recommendations)
        self._finish(result, RunStatus.COMPLETED)
        logger.info(
            "Workflow completed: %s (orchestration=%s, %.2fs)",
            workflow.name,
            result.id,
            result.execution_time,
        )
        return result.id

    @staticmethod
    def _finish(result: OrchestrationResult, status: RunStatus) -> None:
        result.status = status
        result.end_time = utcnow()
        result.execution_time = (result.end_time - result.start_time).total_seconds()

    async def _execute_steps(
        self,
        workflow: Workflow,
        result: OrchestrationResult,
        context: Dict[str, Any],
    ) -> Dict[str, StepResult]:
        step_results: Dict[str, StepResult] = {}

        for step in workflow.steps:
            if step.dependencies and step.condition is not None:
                dependency_results = [step_results.get(dep) for dep in step.dependencies]
                if not step.condition(dependency_results):
                    logger.info("Skipping step %s due to unmet condition", step.id)
                    continue

            logger.info("Executing workflow step: %s (agent=%s, action=%s)", step.id, step.agent_id, step.action.value)
            try:
                step_result = await self._execute_step(step, step_results, context)
            except UnknownAgentError:
                raise
            except Exception as exc:
                raise WorkflowStepError(step.id, str(exc)) from exc

            step_results[step.id] = step_result
            result.results.append(step_result)
            result.agent_insights.setdefault(step.agent_id, []).append(step_result)

        return step_results

    async def _execute_step(
        self,
        step: OrchestrationStep,
        previous: Dict[str, StepResult],
        context: Dict[str, Any],
    ) -> StepResult:
        agent = self._registry.get_agent(step.agent_id)
        if agent is None:
            raise UnknownAgentError(step.agent_id)

        query = self._build_step_query(step, previous)
        agent_context = agent.build_context(
            new_id(),
            user_id="orchestrator",
            metadata={
                "workflow_step": step.id,
                "step_parameters": step.parameters,
                "previous_results": {key: value.response for key, value in previous.items()},
                "filters": context.get("filters"),
            },
        )
        response = await agent.process_query(query, agent_context)
        return StepResult(
            step_id=step.id,
            agent_id=step.agent_id,
            query=query,
            response=response.content,
            data=response.data,
            confidence=response.confidence,
            metadata=response.metadata,
        )

    def _build_step_query(self, step: OrchestrationStep, previous: Dict[str, StepResult]) -> str:
        parameters = step.parameters
        if step.action is StepAction.ANALYZE:
            return self._build_analysis_query(parameters)
        if step.action is StepAction.QUESTION:
            return self._build_question_query(parameters, previous)
        if step.action is StepAction.COMPARE:
            rows = {key: value.data for key, value in previous.items()}
            return f"Compare and correlate the following data sets: {_json(rows)}"
        if step.action is StepAction.SUMMARIZE:
            findings = "\n".join(f"- {key}: {value.response}" for key, value in previous.items())
            return f"Summarize the key findings from the previous analysis steps:\n{findings}"
        return f"Perform {step.action.value} analysis with parameters: {_json(parameters)}"

    @staticmethod
    def _build_analysis_query(parameters: Dict[str, Any]) -> str:
        analysis_type = parameters.get("analysisType")
        group_by = parameters.get("groupBy")

        if analysis_type == "revenue-gaps":
            return (
                "Identify months and regions where NCC revenue was significantly below average. "
                "Focus on the lowest performing months by region."
            )
        if group_by == "region":
            return (
                f"Analyze {parameters.get('metric', 'performance')} by region. "
                "Show top and bottom performing regions with specific numbers."
            )
        if analysis_type == "bottom-performers":
            return (
                f"Identify the bottom 20% performing {group_by or 'entities'} and provide "
                "specific metrics for why they're underperforming."
            )
        return f"Perform {analysis_type or 'general'} analysis grouped by {group_by or 'default metrics'}."

    @staticmethod
    def _build_question_query(parameters: Dict[str, Any], previous: Dict[str, StepResult]) -> str:
        analysis_type = parameters.get("analysisType")

        if analysis_type == "won-deals-coverage":
            gaps = _leading_rows(previous, "identify-revenue-gaps", REVENUE_GAP_ROWS)
            return (
                f"I've identified revenue gaps in the following regions/months: {_json(gaps)}. "
                "Can you check if there were Won pipeline deals in those same regions and months "
                "that could fill or explain these gaps? Compare the Won deal values to the revenue shortfalls."
            )
        if analysis_type == "attendance-correlation":
            offices = _leading_rows(previous, "identify-low-performers", LOW_PERFORMER_ROWS)
            return (
                f"These offices are underperforming in NCC revenue: {_json(offices)}. "
                "Is there a correlation with low attendance rates in these same offices? "
                "Show attendance patterns for these specific offices."
            )
        return f"Based on previous analysis results, please analyze: {_json(parameters)}"

    # ----- conversations ------------------------------------------------

    def setup_agent_message_handlers(self) -> None:
        """Let every registered agent answer conversation messages.

        Handlers resolve the agent on each message, so a replaced agent is
        picked up and a removed one stops answering.
        """
        for agent in self._registry.get_all_agents():
            self._conversations.register_message_handler(
                agent.data_source_id, self._create_agent_message_handler(agent.data_source_id)
            )

    def _create_agent_message_handler(self, data_source_id: str) -> MessageHandler:
        async def handle(message: Message) -> Optional[Message]:
            agent = self._registry.get_agent(data_source_id)
            if agent is None:
                logger.warning("Agent %s is no longer registered; dropping its message handler", data_source_id)
                self._conversations.unregister_message_handler(data_source_id)
                return None

            logger.info(
                "Agent %s processing %s message from %s",
                agent.name,
                message.message_type.value,
                message.from_agent_id,
            )
            try:
                context = agent.build_context(
                    message.conversation_id,
                    user_id="orchestrator",
                    metadata={**(message.metadata or {}), "conversation_context": message.content},
                )
                response = await agent.process_query(message.content, context)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Error in agent message handler for %s", agent.name)
                return Message(
                    conversation_id=message.conversation_id,
                    from_agent_id=data_source_id,
                    to_agent_id=message.from_agent_id,
                    message_type=MessageType.RESPONSE,
                    content=f"I encountered an error processing your request: {exc}",
                    in_reply_to=message.id,
                    metadata={"error": True},
                )

            return Message(
                conversation_id=message.conversation_id,
                from_agent_id=data_source_id,
                to_agent_id=message.from_agent_id,
                message_type=MessageType.RESPONSE,
                content=response.content,
                data={
                    "analysis_data": response.data,
                    "sql": response.sql,
                    "confidence": response.confidence,
                    "suggestions": response.suggestions,
                },
                in_reply_to=message.id,
                metadata={"agent_name": agent.name, "data_source_id": data_source_id},
            )

        return handle

    async def start_agent_conversation(
        self,
        query: str,
        primary_agent_id: str,
        secondary_agent_ids: List[str],
    ) -> str:
        for agent_id in (primary_agent_id, *secondary_agent_ids):
            if self._registry.get_agent(agent_id) is None:
                raise UnknownAgentError(agent_id)

        conversation_id = self._conversations.start_conversation(
            primary_agent_id,
            secondary_agent_ids,
            "User Query Discussion",
            query,
        )
        logger.info(
            "Agent conversation started: %s (primary=%s, secondary=%s)",
            conversation_id,
            primary_agent_id,
            secondary_agent_ids,
        )
        return conversation_id

    def get_conversation_result(self, conversation_id: str) -> Optional[Conversation]:
        return self._conversations.get_conversation(conversation_id)

    # ----- accessors ----------------------------------------------------

    def get_orchestration_result(self, orchestration_id: str) -> Optional[OrchestrationResult]:
        return self._orchestrations.get(orchestration_id)

    def get_all_orchestrations(self) -> List[OrchestrationResult]:
        return list(self._orchestrations.values())

    def get_orchestration_summary(self, orchestration_id: str) -> Optional[Dict[str, Any]]:
        result = self._orchestrations.get(orchestration_id)
        if result is None:
            return None
        return {
            "id": result.id,
            "workflow_id": result.workflow_id,
            "status": result.status.value,
            "step_count": len(result.results),
            "agents": list(result.agent_insights),
            "duration": result.execution_time
            if result.end_time
            else (utcnow() - result.start_time).total_seconds(),
            "conclusions": list(result.conclusions),
            "recommendations": list(result.recommendations),
            "error": result.error,
        }


def _leading_rows(previous: Dict[str, StepResult], step_id: str, limit: int) -> List[Dict[str, Any]]:
    result = previous.get(step_id)
    if result is None or not result.data:
        return []
    return result.data[:limit]
