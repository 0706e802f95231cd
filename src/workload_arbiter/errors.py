"""
Error taxonomy for the workload-detection-and-arbitration loop.

Two families:
  - Fatal at startup (raised): CatalogCorrupt, KnowledgeCorrupt. A component
    refuses to start rather than run on an empty or half-loaded store.
  - Recoverable (absorbed at the owning component): everything else. These
    are raised inside the agent layer and turned into structured values
    (PlanRejection, ChangeOutcome) before they leave the component.

ErrorKind carries the same names as plain strings so results can be
serialized for the presentation layer without importing exception classes.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Reason codes attached to rejections and per-change outcomes."""

    NO_MATCHING_RECIPE = "NoMatchingRecipe"
    AGENT_NOT_READY = "AgentNotReady"
    AGENT_TIMEOUT = "AgentTimeout"
    AGENT_FAULT = "AgentFault"
    RESOURCE_EXHAUSTED = "ResourceExhausted"
    AGENT_CONFLICT = "AgentConflict"
    LOW_CONFIDENCE = "LowConfidence"
    INVALID_ACTION = "InvalidAction"
    DEFERRED = "Deferred"
    ACTUATOR_FAILURE = "ActuatorFailure"
    REVERT_FAILURE = "RevertFailure"
    CANCELLED = "Cancelled"
    CATALOG_CORRUPT = "CatalogCorrupt"
    KNOWLEDGE_CORRUPT = "KnowledgeCorrupt"


class WorkloadArbiterError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind = ErrorKind.AGENT_FAULT


# =============================================================================
# FATAL (startup only)
# =============================================================================


class CatalogCorrupt(WorkloadArbiterError):
    """The recipe catalog is empty, unreadable or only partially valid."""

    kind = ErrorKind.CATALOG_CORRUPT


class KnowledgeCorrupt(WorkloadArbiterError):
    """The persisted agent knowledge cannot be trusted."""

    kind = ErrorKind.KNOWLEDGE_CORRUPT


# =============================================================================
# RECOVERABLE (agent layer)
# =============================================================================


class AgentNotReady(WorkloadArbiterError):
    """An agent was asked to work while not in a runnable state."""

    kind = ErrorKind.AGENT_NOT_READY

    def __init__(self, agent_id: str, state: str, operation: str):
        self.agent_id = agent_id
        self.state = state
        self.operation = operation
        super().__init__(f"Agent '{agent_id}' cannot {operation} while {state}")


class IllegalTransition(AgentNotReady):
    """A state change that the agent state machine does not allow."""

    def __init__(self, agent_id: str, current: str, target: str):
        self.target = target
        super().__init__(agent_id, current, f"move to {target}")


class AgentTimeout(WorkloadArbiterError):
    """An agent call exceeded its deadline."""

    kind = ErrorKind.AGENT_TIMEOUT


class AgentFault(WorkloadArbiterError):
    """An unrecoverable fault inside an agent's reasoning or execution."""

    kind = ErrorKind.AGENT_FAULT
