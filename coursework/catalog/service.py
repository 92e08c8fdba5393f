"""
Course Catalog.

Read-mostly registry of course definitions. Every other component reads
courses through here; only staff create or remove them.
"""

from __future__ import annotations

import uuid
from typing import Any

from loguru import logger

from coursework.catalog.models import Course, CourseDraft
from coursework.core.auth import Principal, authorize
from coursework.core.errors import NotFound
from coursework.core.validation import parse_draft
from coursework.db.store import COURSES, SERVER_TIMESTAMP, DocumentStore


class CourseCatalog:
    """Create, read and remove courses."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def create_course(self, actor: Principal, draft: CourseDraft | dict[str, Any]) -> Course:
        authorize(actor, "create_course")
        course = parse_draft(CourseDraft, draft)
        data = {
            "title": course.title,
            "description": course.description,
            "category": course.category,
            "difficulty": course.difficulty.value,
            "durationHours": course.duration_hours,
            "materials": [
                {"id": uuid.uuid4().hex[:12], **m.model_dump(mode="json")} for m in course.materials
            ],
            "createdBy": actor.user_id,
            "createdAt": SERVER_TIMESTAMP,
            "isActive": True,
        }
        course_id = self.store.create(COURSES, data)
        logger.info("Course {} '{}' created by {}", course_id, course.title, actor.user_id)
        return self.get_course(course_id)

    def get_course(self, course_id: str) -> Course:
        return Course.from_dict(self.store.get(COURSES, course_id))

    def find_course(self, course_id: str) -> Course | None:
        """Like get_course but returns None for a missing course."""
        try:
            return self.get_course(course_id)
        except NotFound:
            return None

    def list_courses(self, active_only: bool = False) -> list[Course]:
        filters = {"isActive": True} if active_only else None
        records = self.store.list(COURSES, filters, order_by="createdAt", descending=True)
        return [Course.from_dict(r) for r in records]

    def remove_course(self, actor: Principal, course_id: str) -> None:
        """Delete a course. Records referencing it are left in place."""
        authorize(actor, "remove_course")
        self.store.delete(COURSES, course_id)
        logger.info("Course {} removed by {}", course_id, actor.user_id)
