"""LLM-powered agent bound to a single warehouse data source."""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List

from beacon.agents.base import Agent
from beacon.core.models import (
    AgentCapability,
    AgentContext,
    AgentResponse,
    AgentStatus,
    AgentType,
    DataSourceConfig,
    SemanticModel,
)
from beacon.core.parsing import AnalysisPlan

if TYPE_CHECKING:
    from beacon.services.llm_pool import CompletionService
    from beacon.services.warehouse import QueryService

logger = logging.getLogger(__name__)

DATA_SOURCE_CAPABILITIES = (
    ("query_data", "Execute SQL queries against the data source"),
    ("python_analysis", "Perform Python-based data analysis and manipulation"),
    ("generate_insights", "Generate business insights from data"),
    ("create_visualizations", "Create data visualizations"),
    ("custom_functions", "Execute custom analysis functions"),
)

RESPONSE_CONTRACT = """When responding, you can:
1. Generate SQL queries to fetch data
2. Write Python code for data analysis and manipulation
3. Create visualizations
4. Use custom functions if available
5. Provide business insights and recommendations

Always structure your response as JSON with the following format:
{
  "needsData": true/false,
  "sql": "SELECT statement if needed",
  "pythonCode": "Python code for analysis if needed",
  "analysisType": "summary|group_analysis|time_series|correlation|custom",
  "explanation": "Human-readable explanation",
  "reasoning": "Your reasoning process",
  "confidence": 0.0-1.0,
  "suggestions": ["follow-up suggestions"],
  "visualization": {
    "type": "bar|line|pie|table|scatter",
    "config": {}
  }
}"""


class DataSourceAgent(Agent):
    """Agent that plans an answer with the LLM and runs the planned SQL."""

    def __init__(
        self,
        source: DataSourceConfig,
        completion: CompletionService,
        query_service: QueryService,
        *,
        max_tokens: int = 4096,
    ) -> None:
        super().__init__(
            name=source.name,
            description=source.description,
            agent_type=AgentType.DATA_SOURCE,
            capabilities=[AgentCapability(name=n, description=d) for n, d in DATA_SOURCE_CAPABILITIES],
            completion=completion,
            max_tokens=max_tokens,
        )
        self.source = source
        self._query_service = query_service

    @property
    def data_source_id(self) -> str:
        return self.source.id

    @property
    def semantic_model(self) -> SemanticModel:
        return self.source.semantic_model

    def build_context(self, conversation_id: str, **kwargs: Any) -> AgentContext:
        """Context pre-filled with this agent's data-source binding."""
        return AgentContext(
            conversation_id=conversation_id,
            data_source_id=self.data_source_id,
            semantic_model=self.semantic_model,
            **kwargs,
        )

    async def process_query(self, query: str, context: AgentContext) -> AgentResponse:
        self.update_status(AgentStatus.ACTIVE)

        try:
            self.log_activity("processing_query", data_source_id=self.data_source_id)
            plan = await self._analyze_query(query, context)

            data = None
            if plan.needs_data and plan.sql:
                data = await self._fetch_data(plan.sql)

            response = self.create_response(
                plan.explanation,
                sql=plan.sql,
                data=data,
                confidence=plan.confidence,
                suggestions=plan.suggestions,
                visualization=plan.visualization,
                reasoning=plan.reasoning,
                metadata={
                    "data_source_id": self.data_source_id,
                    "analysis_type": plan.analysis_type,
                    "python_code": plan.python_code,
                    "structured": plan.parsed,
                },
            )
        except Exception as exc:  # noqa: BLE001
            self.update_status(AgentStatus.ERROR)
            logger.exception("Error in DataSourceAgent %s", self.name)
            return self.create_response(
                f"I encountered an error while processing your query: {exc}",
                confidence=0.0,
                metadata={"data_source_id": self.data_source_id, "error": str(exc)},
            )

        self.update_status(AgentStatus.IDLE)
        return response

    async def dispose(self) -> None:
        await self._query_service.disconnect()

    async def _analyze_query(self, query: str, context: AgentContext) -> AnalysisPlan:
        messages: List[Dict[str, str]] = [
            {"role": msg.get("role", "assistant"), "content": msg.get("content", "")}
            for msg in context.history
        ]
        messages.append({"role": "user", "content": self._build_analysis_prompt(query, context)})

        raw = await self.call_completion(messages, self._build_system_prompt())
        return AnalysisPlan.from_text(raw)

    def _build_system_prompt(self) -> str:
        sections = [
            self.create_system_prompt(self.semantic_model),
            f'You are specifically designed to work with the "{self.source.name}" data source.',
        ]
        if self.source.python_libraries:
            sections.append(
                f"Available Python libraries: {', '.join(self.source.python_libraries)}"
            )
        if self.source.custom_code:
            sections.append(f"Custom functions available:\n{self.source.custom_code.strip()}")
        sections.append(RESPONSE_CONTRACT)
        return "\n\n".join(sections)

    def _build_analysis_prompt(self, query: str, context: AgentContext) -> str:
        prompt = f'User Query: "{query}"\n\n'

        filters = context.metadata.get("filters")
        if isinstance(filters, dict) and filters:
            prompt += "Applied Filters:\n"
            for key, value in filters.items():
                prompt += f"- {key}: {json.dumps(value, default=str)}\n"
            prompt += "\n"

        prompt += (
            "Please analyze this query and determine:\n"
            "1. What data is needed from the database\n"
            "2. What analysis should be performed\n"
            "3. What Python code might be helpful\n"
            "4. What insights can be provided\n"
            "5. What visualizations would be useful\n\n"
            f'Focus on the specific capabilities of the "{self.source.name}" data source.'
        )
        return prompt

    async def _fetch_data(self, sql: str) -> List[Dict[str, Any]]:
        await self._query_service.connect()
        rows = await self._query_service.execute(sql)
        self.log_activity("data_fetched", row_count=len(rows), data_source_id=self.data_source_id)
        return rows
