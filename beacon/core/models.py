"""Core data models shared across agents and orchestration components."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class AgentType(Enum):
    DATA_SOURCE = "data-source"
    ORCHESTRATOR = "orchestrator"
    ANALYZER = "analyzer"


class AgentStatus(Enum):
    """Runtime status of an agent, owned by the agent itself."""

    ACTIVE = "active"
    IDLE = "idle"
    ERROR = "error"


class MessageType(Enum):
    QUESTION = "question"
    RESPONSE = "response"
    CLARIFICATION = "clarification"
    ANALYSIS_REQUEST = "analysis_request"
    DATA_SHARING = "data_sharing"


class ConversationStatus(Enum):
    ACTIVE = "active"
    WAITING_FOR_RESPONSE = "waiting_for_response"
    COMPLETED = "completed"


class CollaborationStatus(Enum):
    ACTIVE = "active"
    WAITING = "waiting"
    COMPLETED = "completed"
    BUDGET_EXHAUSTED = "budget_exhausted"


class TurnRole(Enum):
    INITIATOR = "initiator"
    RESPONDER = "responder"
    COLLABORATOR = "collaborator"


class StepAction(Enum):
    ANALYZE = "analyze"
    QUESTION = "question"
    COMPARE = "compare"
    SUMMARIZE = "summarize"


class RunStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Semantic model and data-source binding
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class AgentCapability:
    """Named operation an agent claims to support."""

    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Column:
    name: str
    data_type: str
    description: Optional[str] = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    nullable: bool = True


@dataclass(slots=True)
class TableSchema:
    name: str
    schema: str
    columns: List[Column] = field(default_factory=list)
    description: Optional[str] = None


@dataclass(slots=True)
class Relationship:
    from_table: str
    from_column: str
    to_table: str
    to_column: str
    kind: str = "one-to-many"


@dataclass(slots=True)
class Metric:
    id: str
    name: str
    description: str
    formula: str
    data_type: str = "number"
    aggregation: str = "sum"


@dataclass(slots=True)
class Dimension:
    id: str
    name: str
    description: str
    table: str
    column: str
    data_type: str = "VARCHAR"
    hierarchies: Optional[List[str]] = None


@dataclass(slots=True)
class SemanticModel:
    """Static description of what an agent may reason about."""

    id: str
    name: str
    description: str
    tables: List[TableSchema] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    metrics: List[Metric] = field(default_factory=list)
    dimensions: List[Dimension] = field(default_factory=list)


@dataclass(slots=True)
class DataSourceConfig:
    """Configuration payload used by the registry when instantiating an agent."""

    id: str
    name: str
    description: str
    kind: str
    semantic_model: SemanticModel
    connection: Dict[str, Any] = field(default_factory=dict)
    python_libraries: List[str] = field(default_factory=list)
    custom_code: str = ""


# ---------------------------------------------------------------------------
# Agent query contract
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class AgentContext:
    """Everything an agent receives alongside a natural-language query."""

    conversation_id: str
    data_source_id: str
    semantic_model: Optional[SemanticModel] = None
    user_id: Optional[str] = None
    history: List[Dict[str, str]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Visualization:
    type: str
    config: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AgentResponse:
    """Answer produced by an agent for a single query."""

    agent_id: str
    content: str
    confidence: float = 0.8
    sql: Optional[str] = None
    data: Optional[List[Dict[str, Any]]] = None
    suggestions: Optional[List[str]] = None
    visualization: Optional[Visualization] = None
    reasoning: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Message:
    """Immutable entry in a conversation's append-only log."""

    conversation_id: str
    from_agent_id: str
    to_agent_id: str
    message_type: MessageType
    content: str
    data: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None
    in_reply_to: Optional[str] = None
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Conversation:
    id: str
    participant_ids: List[str]
    topic: str
    initiated_by: str
    status: ConversationStatus = ConversationStatus.ACTIVE
    messages: List[Message] = field(default_factory=list)
    context: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Collaborations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FollowUpQuestion:
    agent_id: str
    question: str


@dataclass(slots=True)
class ConversationTurn:
    """One recorded agent contribution within a collaboration."""

    agent_id: str
    agent_name: str
    role: TurnRole
    message: str
    query: Optional[str] = None
    data: Optional[List[Dict[str, Any]]] = None
    insights: List[str] = field(default_factory=list)
    questions_for_others: List[FollowUpQuestion] = field(default_factory=list)
    depth: int = 0
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Collaboration:
    id: str
    topic: str
    participant_ids: List[str]
    turns: List[ConversationTurn] = field(default_factory=list)
    status: CollaborationStatus = CollaborationStatus.ACTIVE
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    final_insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.status in (
            CollaborationStatus.COMPLETED,
            CollaborationStatus.BUDGET_EXHAUSTED,
        )


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class StepResult:
    step_id: str
    agent_id: str
    query: str
    response: str
    confidence: float
    data: Optional[List[Dict[str, Any]]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


StepCondition = Callable[[List[Optional[StepResult]]], bool]


@dataclass(slots=True)
class OrchestrationStep:
    id: str
    agent_id: str
    action: StepAction
    parameters: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    condition: Optional[StepCondition] = None


@dataclass(slots=True)
class Workflow:
    id: str
    name: str
    description: str
    required_agents: List[str]
    steps: List[OrchestrationStep]


@dataclass(slots=True)
class OrchestrationResult:
    id: str
    workflow_id: str
    status: RunStatus = RunStatus.RUNNING
    results: List[StepResult] = field(default_factory=list)
    agent_insights: Dict[str, List[StepResult]] = field(default_factory=dict)
    conclusions: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    execution_time: float = 0.0
    error: Optional[str] = None
