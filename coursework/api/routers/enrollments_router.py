"""Enrollment router: requests, review decisions and progress."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from coursework.api.deps import get_engine, get_principal
from coursework.core.auth import Principal
from coursework.engine import LearningEngine
from coursework.enrollment.models import EnrollmentDecision, EnrollmentProfile

router = APIRouter()


# ========================================
# Request Models
# ========================================


class EnrollmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(..., min_length=1, alias="courseId")
    profile: EnrollmentProfile


class DecisionRequest(BaseModel):
    decision: EnrollmentDecision


class ProgressRequest(BaseModel):
    delta: int | None = Field(None, description="Percentage points; defaults to one step")


# ========================================
# Endpoints
# ========================================


@router.post("", status_code=201, summary="Request enrollment")
def request_enrollment(
    body: EnrollmentRequest,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.enrollments.request_enrollment(principal, body.course_id, body.profile).to_dict()


@router.get("", summary="List enrollments")
def list_enrollments(
    student_id: str | None = Query(None, alias="studentId"),
    status: str | None = Query(None),
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    enrollments = engine.enrollments.list_enrollments(principal, student_id=student_id, status=status)
    return [e.to_dict() for e in enrollments]


@router.get("/pending", summary="Review queue")
def pending_enrollments(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [e.to_dict() for e in engine.enrollments.list_pending_enrollments(principal)]


@router.post("/{enrollment_id}/decision", summary="Approve or reject")
def decide_enrollment(
    enrollment_id: str,
    body: DecisionRequest,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.enrollments.decide_enrollment(principal, enrollment_id, body.decision).to_dict()


@router.post("/{enrollment_id}/progress", summary="Continue learning")
def advance_progress(
    enrollment_id: str,
    body: ProgressRequest | None = None,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    delta = body.delta if body is not None else None
    return engine.enrollments.advance_progress(principal, enrollment_id, delta).to_dict()
