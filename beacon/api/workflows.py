"""Workflow endpoints: list canned workflows, run them, fetch run results."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from beacon.core.errors import UnknownAgentError, UnknownWorkflowError, WorkflowStepError
from beacon.core.models import OrchestrationResult, Workflow
from beacon.orchestration.workflows import WorkflowOrchestrator
from beacon.runtime import get_workflow_orchestrator

router = APIRouter(prefix="/workflows", tags=["workflows"])


class StepSummary(BaseModel):
    id: str
    agent_id: str
    action: str
    dependencies: List[str]
    conditional: bool


class WorkflowSummary(BaseModel):
    id: str
    name: str
    description: str
    required_agents: List[str]
    steps: List[StepSummary]

    @classmethod
    def from_workflow(cls, workflow: Workflow) -> "WorkflowSummary":
        return cls(
            id=workflow.id,
            name=workflow.name,
            description=workflow.description,
            required_agents=workflow.required_agents,
            steps=[
                StepSummary(
                    id=step.id,
                    agent_id=step.agent_id,
                    action=step.action.value,
                    dependencies=step.dependencies,
                    conditional=step.condition is not None,
                )
                for step in workflow.steps
            ],
        )


class RunRequest(BaseModel):
    context: Dict[str, Any] = Field(default_factory=dict, description="Run context, e.g. filters")


class StepResultResponse(BaseModel):
    step_id: str
    agent_id: str
    query: str
    response: str
    confidence: float
    data: Optional[List[Dict[str, Any]]] = None


class RunResponse(BaseModel):
    id: str
    workflow_id: str
    status: str
    results: List[StepResultResponse]
    conclusions: List[str]
    recommendations: List[str]
    start_time: datetime
    end_time: Optional[datetime] = None
    execution_time: float
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: OrchestrationResult) -> "RunResponse":
        return cls(
            id=result.id,
            workflow_id=result.workflow_id,
            status=result.status.value,
            results=[
                StepResultResponse(
                    step_id=r.step_id,
                    agent_id=r.agent_id,
                    query=r.query,
                    response=r.response,
                    confidence=r.confidence,
                    data=r.data,
                )
                for r in result.results
            ],
            conclusions=result.conclusions,
            recommendations=result.recommendations,
            start_time=result.start_time,
            end_time=result.end_time,
            execution_time=result.execution_time,
            error=result.error,
        )


@router.get("", response_model=List[WorkflowSummary])
async def list_workflows(
    orchestrator: WorkflowOrchestrator = Depends(get_workflow_orchestrator),
) -> List[WorkflowSummary]:
    return [WorkflowSummary.from_workflow(w) for w in orchestrator.get_available_workflows()]


@router.post("/{workflow_id}/runs", response_model=RunResponse, status_code=status.HTTP_201_CREATED)
async def run_workflow(
    workflow_id: str,
    request: Optional[RunRequest] = None,
    orchestrator: WorkflowOrchestrator = Depends(get_workflow_orchestrator),
) -> RunResponse:
    context = request.context if request else {}
    try:
        orchestration_id = await orchestrator.execute_workflow(workflow_id, context)
    except UnknownWorkflowError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except UnknownAgentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except WorkflowStepError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return RunResponse.from_result(orchestrator.get_orchestration_result(orchestration_id))


@router.get("/runs/{orchestration_id}", response_model=RunResponse)
async def get_run(
    orchestration_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_workflow_orchestrator),
) -> RunResponse:
    result = orchestrator.get_orchestration_result(orchestration_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown workflow run")
    return RunResponse.from_result(result)
