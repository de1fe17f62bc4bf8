"""Tests for the data-source agent's plan, fetch and failure paths."""
from __future__ import annotations

import pytest

from beacon.agents.data_source import DataSourceAgent
from beacon.agents.data_sources import NCC_FINANCIAL
from beacon.core.models import AgentStatus
from helpers import ScriptedCompletion, StaticQueryService, plan_reply


def _agent(completion: ScriptedCompletion, query_service: StaticQueryService) -> DataSourceAgent:
    return DataSourceAgent(NCC_FINANCIAL, completion, query_service, max_tokens=512)


@pytest.mark.anyio
async def test_planned_sql_is_executed_and_rows_returned() -> None:
    rows = [{"REGION": "EMEA", "NCC": 1200}, {"REGION": "APAC", "NCC": 800}]
    completion = ScriptedCompletion(
        plan_reply(
            "NCC by region",
            needsData=True,
            sql="SELECT REGION, SUM(NCC) AS NCC FROM DATA.NCC_AGENT GROUP BY REGION",
            analysisType="group_analysis",
            confidence=0.9,
            suggestions=["Break down by sector"],
            visualization={"type": "bar", "config": {"x": "REGION"}},
        )
    )
    warehouse = StaticQueryService(rows)
    agent = _agent(completion, warehouse)

    response = await agent.process_query("NCC by region", agent.build_context("conv-1"))

    assert response.content == "NCC by region"
    assert response.data == rows
    assert response.sql.startswith("SELECT REGION")
    assert response.confidence == 0.9
    assert response.suggestions == ["Break down by sector"]
    assert response.visualization.type == "bar"
    assert response.metadata["data_source_id"] == "ncc-financial"
    assert response.metadata["analysis_type"] == "group_analysis"
    assert warehouse.queries == [response.sql]
    assert agent.status is AgentStatus.IDLE
    assert agent.last_active is not None
    assert completion.calls[0]["max_tokens"] == 512


@pytest.mark.anyio
async def test_no_query_when_plan_does_not_need_data() -> None:
    warehouse = StaticQueryService([{"x": 1}])
    agent = _agent(ScriptedCompletion(plan_reply(needsData=False, sql="SELECT 1")), warehouse)

    response = await agent.process_query("hello", agent.build_context("conv-1"))

    assert response.data is None
    assert warehouse.queries == []


@pytest.mark.anyio
async def test_unstructured_completion_falls_back() -> None:
    agent = _agent(ScriptedCompletion("Revenue looks flat this quarter."), StaticQueryService())

    response = await agent.process_query("How is revenue?", agent.build_context("conv-1"))

    assert response.content == "Revenue looks flat this quarter."
    assert response.confidence == 0.5
    assert response.suggestions == []
    assert response.metadata["structured"] is False
    assert agent.status is AgentStatus.IDLE


@pytest.mark.anyio
async def test_completion_failure_becomes_error_response() -> None:
    agent = _agent(ScriptedCompletion(RuntimeError("model unavailable")), StaticQueryService())

    response = await agent.process_query("anything", agent.build_context("conv-1"))

    assert response.confidence == 0.0
    assert response.content == "I encountered an error while processing your query: model unavailable"
    assert response.metadata["error"] == "model unavailable"
    assert agent.status is AgentStatus.ERROR


@pytest.mark.anyio
async def test_warehouse_failure_becomes_error_response() -> None:
    warehouse = StaticQueryService(error=TimeoutError("query timed out"))
    agent = _agent(ScriptedCompletion(plan_reply(needsData=True, sql="SELECT 1")), warehouse)

    response = await agent.process_query("anything", agent.build_context("conv-1"))

    assert response.confidence == 0.0
    assert "query timed out" in response.content
    assert agent.status is AgentStatus.ERROR


@pytest.mark.anyio
async def test_prompts_describe_semantic_model_and_filters() -> None:
    completion = ScriptedCompletion(plan_reply())
    agent = _agent(completion, StaticQueryService())
    context = agent.build_context("conv-1", metadata={"filters": {"region": ["EMEA"]}})

    await agent.process_query("Top sectors", context)

    system_prompt = completion.calls[0]["system_prompt"]
    assert "DATA.NCC_AGENT" in system_prompt
    assert "Total NCC: Sum of all Net Cash Collected (SUM(NCC))" in system_prompt
    assert "[drill: Year > Quarter > Month]" in system_prompt
    assert '"needsData"' in system_prompt
    assert 'User Query: "Top sectors"' in completion.last_prompt
    assert '- region: ["EMEA"]' in completion.last_prompt


def test_capabilities_are_declared() -> None:
    agent = _agent(ScriptedCompletion(), StaticQueryService())

    assert agent.has_capability("query_data")
    assert agent.get_capability("generate_insights").description == "Generate business insights from data"
    assert not agent.has_capability("send_email")


@pytest.mark.anyio
async def test_dispose_disconnects_query_service() -> None:
    warehouse = StaticQueryService()
    agent = _agent(ScriptedCompletion(), warehouse)

    await agent.dispose()

    assert warehouse.disconnects == 1
