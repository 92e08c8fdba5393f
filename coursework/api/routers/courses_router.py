"""
Course router.

Catalog reads for everyone, creation/removal for staff, and the
student's enrolled/available views.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from coursework.api.deps import get_engine, get_principal
from coursework.catalog.models import CourseDraft
from coursework.core.auth import Principal
from coursework.engine import LearningEngine

router = APIRouter()


@router.get("", summary="List courses")
def list_courses(
    active_only: bool = Query(False, description="Only courses open for enrollment"),
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [c.to_dict() for c in engine.catalog.list_courses(active_only=active_only)]


@router.post("", status_code=201, summary="Create course")
def create_course(
    draft: CourseDraft,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.catalog.create_course(principal, draft).to_dict()


@router.get("/enrolled", summary="Courses the caller is approved for")
def enrolled_courses(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [e.to_dict() for e in engine.enrollments.list_enrolled_courses(principal.user_id)]


@router.get("/available", summary="Courses the caller has never requested")
def available_courses(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [c.to_dict() for c in engine.enrollments.list_available_courses(principal.user_id)]


@router.get("/{course_id}", summary="Get course")
def get_course(
    course_id: str,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.catalog.get_course(course_id).to_dict()


@router.delete("/{course_id}", status_code=204, summary="Remove course")
def remove_course(
    course_id: str,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> None:
    engine.catalog.remove_course(principal, course_id)
