"""Pydantic models for API request/response contracts."""
from .requests import (
    FeedbackRequest,
    FocusRequest,
    MatchRequest,
    SnapshotRequest,
)
from .responses import (
    AgentInfo,
    AgentListResponse,
    ConfigurationResultResponse,
    CycleResponse,
    FeedbackResponse,
    FocusResponse,
    HealthResponse,
    MatchResponse,
    RecipeInfo,
    RecipeListResponse,
    RecommendationInfo,
    RecommendationListResponse,
    ResultListResponse,
)
