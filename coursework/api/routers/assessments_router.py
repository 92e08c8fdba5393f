"""
Assessment router.

Authoring for staff; attempts for students. An attempt lives in the app's
AttemptRegistry from start until it is submitted or cancelled, and its
countdown auto-submits at the deadline even if the client goes away.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from coursework.api.attempts import AttemptRegistry
from coursework.api.deps import get_attempts, get_engine, get_principal
from coursework.assessment.models import AssessmentDraft
from coursework.core.auth import Principal
from coursework.engine import LearningEngine

router = APIRouter()


# ========================================
# Request Models
# ========================================


class AnswerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_index: int = Field(..., alias="questionIndex")
    option_index: int = Field(..., alias="optionIndex")


class SubmitRequest(BaseModel):
    answers: dict[int, int] | None = Field(
        None, description="Final answers; omitted means the recorded ones"
    )


# ========================================
# Authoring
# ========================================


@router.post("", status_code=201, summary="Create assessment")
def create_assessment(
    draft: AssessmentDraft,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.assessments.create_assessment(principal, draft).to_dict()


@router.get("", summary="List assessments")
def list_assessments(
    course_id: str | None = Query(None, alias="courseId"),
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [
        a.to_dict(include_answers=principal.is_staff)
        for a in engine.assessments.list_assessments(course_id)
    ]


@router.get("/available", summary="Assessments the caller may still take")
def available_assessments(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [
        a.to_dict(include_answers=False)
        for a in engine.assessments.list_available_assessments(principal.user_id)
    ]


@router.get("/results", summary="Caller's completed assessments")
def results(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [r.to_dict() for r in engine.assessments.list_results(principal.user_id)]


# ========================================
# Attempts
# ========================================


@router.post("/{assessment_id}/attempts", status_code=201, summary="Start attempt")
def start_attempt(
    assessment_id: str,
    engine: LearningEngine = Depends(get_engine),
    attempts: AttemptRegistry = Depends(get_attempts),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    attempt = engine.assessments.start_attempt(principal, assessment_id)
    attempts.add(attempt)
    engine.assessments.start_countdown(attempt, on_expired=attempts.expired)
    return attempt.to_dict(now=engine.assessments.clock())


@router.get("/attempts/{attempt_id}", summary="Attempt state and time left")
def get_attempt(
    attempt_id: str,
    engine: LearningEngine = Depends(get_engine),
    attempts: AttemptRegistry = Depends(get_attempts),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    attempt = attempts.get(attempt_id, principal.user_id)
    return attempt.to_dict(now=engine.assessments.clock())


@router.put("/attempts/{attempt_id}/answers", summary="Record one answer")
def record_answer(
    attempt_id: str,
    body: AnswerRequest,
    engine: LearningEngine = Depends(get_engine),
    attempts: AttemptRegistry = Depends(get_attempts),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    attempt = attempts.get(attempt_id, principal.user_id)
    engine.assessments.record_answer(attempt, body.question_index, body.option_index)
    return attempt.to_dict(now=engine.assessments.clock())


@router.post("/attempts/{attempt_id}/submit", summary="Submit attempt")
def submit_attempt(
    attempt_id: str,
    body: SubmitRequest | None = None,
    engine: LearningEngine = Depends(get_engine),
    attempts: AttemptRegistry = Depends(get_attempts),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    attempt = attempts.get(attempt_id, principal.user_id)
    answers = body.answers if body is not None else None
    try:
        result = engine.assessments.submit_attempt(attempt, answers)
    finally:
        if attempt.result is not None:
            attempts.discard(attempt_id)
    return result.to_dict()


@router.delete("/attempts/{attempt_id}", status_code=204, summary="Abandon attempt")
def cancel_attempt(
    attempt_id: str,
    engine: LearningEngine = Depends(get_engine),
    attempts: AttemptRegistry = Depends(get_attempts),
    principal: Principal = Depends(get_principal),
) -> None:
    attempt = attempts.get(attempt_id, principal.user_id)
    engine.assessments.cancel_attempt(attempt)
    attempts.discard(attempt_id)


@router.get("/{assessment_id}", summary="Get assessment")
def get_assessment(
    assessment_id: str,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    assessment = engine.assessments.get_assessment(assessment_id)
    return assessment.to_dict(include_answers=principal.is_staff)
