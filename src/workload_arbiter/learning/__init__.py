"""
Feedback-driven learning.

  - models.py: FeedbackKind, AgentFeedback, AgentKnowledge
  - feedback_learner.py: LearningRule (EMA) and FeedbackLearner
  - knowledge_store.py: SQLite persistence for knowledge and consumed feedback

Learning is bounded to success-rate counters and pattern weights. Nothing is
trained; no feedback ever deletes a learned pattern.
"""

from .models import AgentFeedback, AgentKnowledge, FeedbackKind, DEFAULT_SUCCESS_RATE
from .feedback_learner import FeedbackLearner, LearningRule
from .knowledge_store import KnowledgeStore
