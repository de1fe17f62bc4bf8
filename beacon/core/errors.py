"""Exception types raised by the orchestration layers.

Configuration errors subclass ``KeyError`` or ``ValueError`` so callers that
only know the builtin lookup failures keep working.
"""
from __future__ import annotations


class BeaconError(Exception):
    """Base class for every error raised on purpose by this package."""

    def __str__(self) -> str:
        return self.args[0] if self.args else self.__class__.__name__


class UnknownAgentError(BeaconError, KeyError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent '{agent_id}' not found")
        self.agent_id = agent_id


class UnknownWorkflowError(BeaconError, KeyError):
    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow '{workflow_id}' not found")
        self.workflow_id = workflow_id


class ConversationNotFoundError(BeaconError, KeyError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation '{conversation_id}' not found")
        self.conversation_id = conversation_id


class NotAParticipantError(BeaconError, ValueError):
    def __init__(self, agent_id: str, conversation_id: str) -> None:
        super().__init__(
            f"Agent '{agent_id}' is not a participant in conversation '{conversation_id}'"
        )
        self.agent_id = agent_id
        self.conversation_id = conversation_id


class WorkflowStepError(BeaconError, RuntimeError):
    """A workflow step failed; the original exception is chained as ``__cause__``."""

    def __init__(self, step_id: str, detail: str) -> None:
        super().__init__(f"Workflow step '{step_id}' failed: {detail}")
        self.step_id = step_id
