"""Tests for the recursive lead/responder collaboration protocol."""
from __future__ import annotations

import json
from dataclasses import replace

import pytest

from beacon.agents.data_sources import NCC_FINANCIAL
from beacon.core.errors import UnknownAgentError
from beacon.core.models import CollaborationStatus, TurnRole
from beacon.core.parsing import ParsedAgentOutput
from beacon.orchestration.collaboration import CLOSING_RECOMMENDATION, CollaborationManager
from helpers import turn_reply

SOURCES = [replace(NCC_FINANCIAL, id=agent_id, name=f"Agent {agent_id.upper()}") for agent_id in ("lead", "a", "b", "c")]


@pytest.mark.anyio
async def test_collaboration_without_questions_completes_after_lead_turn(make_harness) -> None:
    harness = await make_harness(
        replies={"ncc-financial": [turn_reply("Revenue dipped in March", ["March NCC was 20% below average"])]}
    )
    manager = CollaborationManager(harness.registry)

    collaboration_id = await manager.start_collaboration(
        "Quarterly review", "How did Q1 go?", "ncc-financial", ["pipeline-analytics"]
    )

    collaboration = manager.get_collaboration(collaboration_id)
    assert collaboration.status is CollaborationStatus.COMPLETED
    assert collaboration.is_finished
    assert collaboration.end_time is not None
    assert [turn.agent_id for turn in collaboration.turns] == ["ncc-financial"]
    assert collaboration.turns[0].role is TurnRole.INITIATOR
    assert collaboration.turns[0].message == "Revenue dipped in March"
    assert collaboration.final_insights == [
        "NCC Financial Data: March NCC was 20% below average",
        'Collaboration Summary: 1 agents participated in analyzing "Quarterly review"',
    ]
    assert collaboration.participant_ids == ["ncc-financial", "pipeline-analytics"]


@pytest.mark.anyio
async def test_questions_are_answered_depth_first(make_harness) -> None:
    harness = await make_harness(
        sources=SOURCES,
        replies={
            "lead": [turn_reply("Lead findings", ["lead insight"], {"a": "What about A?", "b": "What about B?"})],
            "a": [turn_reply("A findings", ["a insight"], {"c": "C, can you confirm?"})],
        },
    )
    manager = CollaborationManager(harness.registry)

    collaboration_id = await manager.start_collaboration("Depth test", "Go", "lead", ["a", "b", "c"])

    collaboration = manager.get_collaboration(collaboration_id)
    assert [turn.agent_id for turn in collaboration.turns] == ["lead", "a", "c", "b"]
    assert [turn.depth for turn in collaboration.turns] == [0, 1, 2, 1]
    assert [turn.role for turn in collaboration.turns[1:]] == [TurnRole.RESPONDER] * 3
    assert collaboration.status is CollaborationStatus.COMPLETED

    prompt_to_c = harness.completions["c"].last_prompt
    assert 'Agent A asks: "C, can you confirm?"' in prompt_to_c


@pytest.mark.anyio
async def test_lead_prompt_lists_other_agents(make_harness) -> None:
    harness = await make_harness(sources=SOURCES)
    manager = CollaborationManager(harness.registry)

    await manager.start_collaboration("Listing", "Which regions lag?", "lead", ["a", "b"])

    prompt = harness.completions["lead"].last_prompt
    assert "Which regions lag?" in prompt
    assert "- a: Agent A" in prompt
    assert "- b: Agent B" in prompt
    assert "- c: Agent C" not in prompt


@pytest.mark.anyio
async def test_unstructured_reply_ends_the_branch(make_harness) -> None:
    harness = await make_harness(replies={"ncc-financial": ["Plain prose, no JSON here."]})
    manager = CollaborationManager(harness.registry)

    collaboration_id = await manager.start_collaboration(
        "Prose", "Explain", "ncc-financial", ["pipeline-analytics"]
    )

    collaboration = manager.get_collaboration(collaboration_id)
    turn = collaboration.turns[0]
    assert turn.message == "Plain prose, no JSON here."
    assert turn.insights == []
    assert turn.questions_for_others == []
    assert collaboration.status is CollaborationStatus.COMPLETED


@pytest.mark.anyio
async def test_unknown_agent_is_rejected_before_anything_is_recorded(make_harness) -> None:
    harness = await make_harness()
    manager = CollaborationManager(harness.registry)

    with pytest.raises(UnknownAgentError):
        await manager.start_collaboration("Bad", "Go", "ncc-financial", ["nobody"])
    with pytest.raises(UnknownAgentError):
        await manager.start_collaboration("Bad", "Go", "nobody", [])

    assert manager.get_all_collaborations() == []
    assert harness.completions["ncc-financial"].calls == []


@pytest.mark.anyio
async def test_question_for_unknown_agent_is_skipped(make_harness) -> None:
    harness = await make_harness(
        replies={"ncc-financial": [turn_reply("Lead", questions={"ghost-agent": "Are you there?"})]}
    )
    manager = CollaborationManager(harness.registry)

    collaboration_id = await manager.start_collaboration("Ghost", "Go", "ncc-financial", [])

    collaboration = manager.get_collaboration(collaboration_id)
    assert [turn.agent_id for turn in collaboration.turns] == ["ncc-financial"]
    assert collaboration.status is CollaborationStatus.COMPLETED


@pytest.mark.anyio
async def test_turn_budget_stops_endless_questioning(make_harness) -> None:
    harness = await make_harness(
        defaults={
            "ncc-financial": turn_reply("Still curious", questions={"pipeline-analytics": "And now?"}),
            "pipeline-analytics": turn_reply("Me too", questions={"ncc-financial": "Your turn?"}),
        }
    )
    manager = CollaborationManager(harness.registry, max_turns=5)

    collaboration_id = await manager.start_collaboration(
        "Loop", "Go", "ncc-financial", ["pipeline-analytics"]
    )

    collaboration = manager.get_collaboration(collaboration_id)
    assert len(collaboration.turns) == 5
    assert collaboration.status is CollaborationStatus.BUDGET_EXHAUSTED
    assert collaboration.is_finished
    assert collaboration.end_time is not None
    assert collaboration.final_insights


@pytest.mark.anyio
async def test_concurrent_fanout_answers_every_question(make_harness) -> None:
    harness = await make_harness(
        sources=SOURCES,
        replies={"lead": [turn_reply("Lead", questions={"a": "A?", "b": "B?", "c": "C?"})]},
    )
    manager = CollaborationManager(harness.registry, concurrent_fanout=True)

    collaboration_id = await manager.start_collaboration("Fan", "Go", "lead", ["a", "b", "c"])

    collaboration = manager.get_collaboration(collaboration_id)
    assert collaboration.turns[0].agent_id == "lead"
    assert sorted(turn.agent_id for turn in collaboration.turns[1:]) == ["a", "b", "c"]


@pytest.mark.anyio
async def test_recommendations_follow_topic_keywords(make_harness) -> None:
    harness = await make_harness()
    manager = CollaborationManager(harness.registry)

    revenue_id = await manager.start_collaboration("Revenue gap review", "Go", "ncc-financial", [])
    attendance_id = await manager.start_collaboration("Attendance drop", "Go", "attendance-analytics", [])
    other_id = await manager.start_collaboration("Sector mix", "Go", "pipeline-analytics", [])

    revenue = manager.get_collaboration(revenue_id).recommendations
    assert revenue[0] == "Monitor revenue trends monthly and establish pipeline coverage ratios"
    assert revenue[-1] == CLOSING_RECOMMENDATION
    assert "Consider flexible work arrangements for underperforming offices" in (
        manager.get_collaboration(attendance_id).recommendations
    )
    assert manager.get_collaboration(other_id).recommendations == [CLOSING_RECOMMENDATION]

    summary = manager.get_collaboration_summary(revenue_id)
    assert summary["status"] == "completed"
    assert summary["turn_count"] == 1
    assert len(manager.get_all_collaborations()) == 3
    assert manager.get_collaboration_summary("missing") is None


def test_max_turns_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CollaborationManager(registry=None, max_turns=0)


@pytest.mark.anyio
async def test_non_list_questions_field_ends_the_branch(make_harness) -> None:
    harness = await make_harness(
        replies={"ncc-financial": [json.dumps({"message": "m", "insights": ["i"], "questionsForOthers": 3})]}
    )
    manager = CollaborationManager(harness.registry)

    collaboration_id = await manager.start_collaboration(
        "Odd reply", "Go", "ncc-financial", ["pipeline-analytics"]
    )

    collaboration = manager.get_collaboration(collaboration_id)
    assert collaboration.status is CollaborationStatus.COMPLETED
    assert collaboration.end_time is not None
    assert collaboration.turns[0].message == "m"
    assert collaboration.turns[0].insights == ["i"]
    assert collaboration.turns[0].questions_for_others == []


@pytest.mark.parametrize("value", [0.5, True, "ask pipeline", {"agentId": "a", "question": "q"}])
def test_parsed_output_ignores_malformed_questions(value) -> None:
    parsed = ParsedAgentOutput.from_text(json.dumps({"message": "done", "questionsForOthers": value}))

    assert parsed.parsed
    assert parsed.message == "done"
    assert parsed.questions_for_others == []
