"""
Pydantic request models -- what clients send to the gateway.

Field bounds mirror the domain models, so a payload that passes here also
constructs a valid Snapshot or AgentFeedback.
"""

from pydantic import BaseModel, Field

from ...learning.models import FeedbackKind


# =============================================================================
# RECIPES
# =============================================================================


class MatchRequest(BaseModel):
    """Which recipes apply to this set of running processes."""

    processes: list[str] = Field(
        default_factory=list, description="Running process names (case-insensitive)"
    )


# =============================================================================
# SNAPSHOTS AND FOCUS
# =============================================================================


class SnapshotRequest(BaseModel):
    """One sensor reading, pushed by an external collector."""

    cpu_percent: float = Field(0.0, ge=0.0, le=100.0)
    gpu_percent: float = Field(0.0, ge=0.0, le=100.0)
    ram_percent: float = Field(0.0, ge=0.0, le=100.0)
    disk_percent: float = Field(0.0, ge=0.0, le=100.0)
    network_percent: float = Field(0.0, ge=0.0, le=100.0)
    cpu_temp: float | None = None
    gpu_temp: float | None = None
    running_processes: list[str] = Field(default_factory=list)
    active_window: str | None = None
    active_process: str | None = None
    keyboard_activity: float = Field(0.0, ge=0.0)
    mouse_activity: float = Field(0.0, ge=0.0)
    current_profile: str = ""
    active_optimizations: list[str] = Field(default_factory=list)


class FocusRequest(BaseModel):
    focused: bool = Field(..., description="Whether the host window has focus")


# =============================================================================
# FEEDBACK
# =============================================================================


class FeedbackRequest(BaseModel):
    """Explicit feedback on one recommended action."""

    agent_type: str = Field(..., description="Agent that recommended the action")
    action: str = Field(..., description="Action name, e.g. registry:HKLM\\...")
    kind: FeedbackKind
    scenario: str = ""
    expected_improvement: float = 0.0
    measured_improvement: float = 0.0
    comment: str = ""
    recommendation_id: str = ""
    id: str | None = Field(None, description="Idempotency key; generated when omitted")
