"""
Pydantic response models -- what the gateway returns.
"""

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "healthy"
    agents_registered: int = 0
    agents_available: int = 0
    recipes: int = 0
    active_recipe: str | None = None
    has_focus: bool = True
    uptime_seconds: float = 0.0


# =============================================================================
# RECIPES
# =============================================================================


class RecipeInfo(BaseModel):
    id: str
    name: str
    description: str = ""
    category: str = ""
    required_agents: list[str] = Field(default_factory=list)
    triggers: list[str] = Field(default_factory=list)
    specificity: int = 0
    registry_changes: dict = Field(default_factory=dict)
    service_states: dict = Field(default_factory=dict)
    resource_allocations: dict = Field(default_factory=dict)
    companion_apps: list[str] = Field(default_factory=list)


class RecipeListResponse(BaseModel):
    recipes: list[RecipeInfo]
    total: int


class MatchResponse(BaseModel):
    matches: list[str] = Field(default_factory=list, description="All matching recipes")
    best: str | None = Field(None, description="Most specific match, None if nothing matches")


# =============================================================================
# CONFIGURATION RESULTS
# =============================================================================


class ChangeOutcomeInfo(BaseModel):
    change: dict
    status: str
    reason: str = ""
    prior_value: Any = None
    error_kind: str | None = None


class ConfigurationResultResponse(BaseModel):
    success: bool
    message: str
    recipe_name: str
    changes: list[ChangeOutcomeInfo] = Field(default_factory=list)
    applied_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    error_kind: str | None = None
    timestamp: str


class ResultListResponse(BaseModel):
    results: list[ConfigurationResultResponse]
    total: int


# =============================================================================
# AGENTS AND RECOMMENDATIONS
# =============================================================================


class AgentInfo(BaseModel):
    agent_id: str
    agent_type: str
    name: str
    state: str
    confidence: float = 0.0
    consecutive_timeouts: int = 0
    allocation: dict[str, float] = Field(default_factory=dict)


class AgentListResponse(BaseModel):
    agents: list[AgentInfo]
    total: int


class RecommendationInfo(BaseModel):
    id: str
    agent_type: str
    title: str
    reasoning: str = ""
    actions: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    expected_improvement: float = 0.0
    target_metric: str = ""
    auto_apply: bool = False
    scenario: str = ""
    created_at: str


class RecommendationListResponse(BaseModel):
    recommendations: list[RecommendationInfo]
    total: int


# =============================================================================
# CONTROL LOOP
# =============================================================================


class CycleResponse(BaseModel):
    """Summary of one control-loop cycle triggered by a pushed snapshot."""

    scenario: str
    recipe_name: str | None = None
    recipe_switched: bool = False
    reverted: ConfigurationResultResponse | None = None
    recipe_result: ConfigurationResultResponse | None = None
    agent_plan: dict | None = None
    agent_result: ConfigurationResultResponse | None = None
    contributions: int = 0
    released: list[str] = Field(default_factory=list)


class FocusResponse(BaseModel):
    focused: bool


class FeedbackResponse(BaseModel):
    id: str
    agent_type: str
    action: str
    consumed: bool = Field(..., description="False when the id was already consumed")
    success_rate: float | None = None
