"""Timed multiple-choice assessments, attempts and scoring."""

from .attempt import Attempt, AttemptCountdown, AttemptState
from .engine import AssessmentEngine, score_answers
from .models import (
    Assessment,
    AssessmentDraft,
    AssessmentResult,
    CompletedAssessment,
    Question,
    QuestionDraft,
)

__all__ = [
    "Assessment",
    "AssessmentDraft",
    "AssessmentEngine",
    "AssessmentResult",
    "Attempt",
    "AttemptCountdown",
    "AttemptState",
    "CompletedAssessment",
    "Question",
    "QuestionDraft",
    "score_answers",
]
