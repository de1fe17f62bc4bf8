"""HTTP API tests against scripted agents."""
from __future__ import annotations

from functools import partial

import anyio
import pytest
from fastapi.testclient import TestClient

from beacon.core.conversation import ConversationManager
from beacon.main import app
from beacon.orchestration.collaboration import CollaborationManager
from beacon.orchestration.workflows import WorkflowOrchestrator
from beacon.runtime import (
    get_collaboration_manager,
    get_conversation_manager,
    get_registry,
    get_workflow_orchestrator,
)
from helpers import plan_reply, turn_reply


@pytest.fixture
def client(make_harness):
    harness = anyio.run(
        partial(
            make_harness,
            replies={"ncc-financial": [plan_reply("NCC is up 4%", confidence=0.9)]},
            defaults={"attendance-analytics": turn_reply("Attendance is steady", ["Attendance rate 71%"])},
        )
    )
    conversations = ConversationManager()
    orchestrator = WorkflowOrchestrator(registry=harness.registry, conversations=conversations)
    orchestrator.setup_agent_message_handlers()
    collaborations = CollaborationManager(harness.registry)

    app.dependency_overrides[get_registry] = lambda: harness.registry
    app.dependency_overrides[get_conversation_manager] = lambda: conversations
    app.dependency_overrides[get_workflow_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_collaboration_manager] = lambda: collaborations
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_list_agents_and_data_sources(client: TestClient) -> None:
    agents = client.get("/agents").json()
    sources = client.get("/agents/data-sources").json()
    health = client.get("/agents/health").json()

    assert {a["data_source_id"] for a in agents} == {"ncc-financial", "attendance-analytics", "pipeline-analytics"}
    assert all("query_data" in a["capabilities"] for a in agents)
    assert all(s["has_agent"] for s in sources)
    assert health["ncc-financial"]["healthy"] is True


def test_query_agent(client: TestClient) -> None:
    response = client.post("/agents/ncc-financial/query", json={"query": "How is NCC trending?"})

    assert response.status_code == 200
    body = response.json()
    assert body["content"] == "NCC is up 4%"
    assert body["confidence"] == 0.9
    assert body["metadata"]["data_source_id"] == "ncc-financial"


def test_query_unknown_agent(client: TestClient) -> None:
    response = client.post("/agents/nope/query", json={"query": "Hello?"})

    assert response.status_code == 404


def test_delete_agent(client: TestClient) -> None:
    assert client.delete("/agents/pipeline-analytics").status_code == 204
    assert client.delete("/agents/pipeline-analytics").status_code == 404


def test_collaboration_roundtrip(client: TestClient) -> None:
    response = client.post(
        "/collaborations",
        json={
            "topic": "Attendance review",
            "query": "Is attendance affecting revenue?",
            "lead_agent_id": "attendance-analytics",
            "collaborating_agent_ids": ["ncc-financial"],
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "completed"
    assert body["turns"][0]["agent_id"] == "attendance-analytics"
    assert "Attendance Analytics: Attendance rate 71%" in body["final_insights"]

    fetched = client.get(f"/collaborations/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["id"] == body["id"]
    assert [c["id"] for c in client.get("/collaborations").json()] == [body["id"]]


def test_collaboration_errors(client: TestClient) -> None:
    response = client.post(
        "/collaborations",
        json={"topic": "x", "query": "y", "lead_agent_id": "nobody", "collaborating_agent_ids": []},
    )

    assert response.status_code == 400
    assert client.get("/collaborations/missing").status_code == 404


def test_workflow_endpoints(client: TestClient) -> None:
    workflows = client.get("/workflows").json()
    assert [w["id"] for w in workflows] == [
        "revenue-gap-analysis",
        "cross-regional-performance",
        "office-investigation",
    ]
    assert workflows[0]["steps"][1]["conditional"] is True

    response = client.post("/workflows/cross-regional-performance/runs", json={"context": {}})
    assert response.status_code == 201
    run = response.json()
    assert run["status"] == "completed"
    assert len(run["results"]) == 3

    fetched = client.get(f"/workflows/runs/{run['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["workflow_id"] == "cross-regional-performance"


def test_workflow_errors(client: TestClient) -> None:
    assert client.post("/workflows/nope/runs", json={}).status_code == 404
    assert client.get("/workflows/runs/missing").status_code == 404


def test_conversation_endpoints(client: TestClient) -> None:
    response = client.post(
        "/conversations",
        json={
            "query": "Which offices lag?",
            "primary_agent_id": "ncc-financial",
            "secondary_agent_ids": ["attendance-analytics"],
        },
    )
    assert response.status_code == 202
    conversation_id = response.json()["conversation_id"]

    conversation = client.get(f"/conversations/{conversation_id}").json()
    assert conversation["messages"][0]["content"] == "Which offices lag?"
    assert conversation["participant_ids"] == ["ncc-financial", "attendance-analytics"]

    rejected = client.post(
        f"/conversations/{conversation_id}/messages",
        json={"from_agent_id": "intruder", "to_agent_id": "ncc-financial", "content": "hi"},
    )
    assert rejected.status_code == 400

    completed = client.post(f"/conversations/{conversation_id}/complete")
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"


def test_conversation_errors(client: TestClient) -> None:
    assert client.get("/conversations/missing").status_code == 404
    assert client.post("/conversations/missing/complete").status_code == 404
    missing = client.post(
        "/conversations/missing/messages",
        json={"from_agent_id": "a", "to_agent_id": "b", "content": "hi"},
    )
    assert missing.status_code == 404
    unknown_agent = client.post(
        "/conversations",
        json={"query": "q", "primary_agent_id": "ncc-financial", "secondary_agent_ids": ["nobody"]},
    )
    assert unknown_agent.status_code == 400
