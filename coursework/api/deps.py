"""
Request dependencies.

Authentication happens in front of this service; the caller's identity
arrives as ``X-User-Id`` / ``X-User-Role`` headers.
"""

from __future__ import annotations

from fastapi import Header, Request

from coursework.api.attempts import AttemptRegistry
from coursework.core.auth import Principal
from coursework.engine import LearningEngine


def get_engine(request: Request) -> LearningEngine:
    return request.app.state.engine


def get_attempts(request: Request) -> AttemptRegistry:
    return request.app.state.attempts


def get_principal(
    x_user_id: str = Header(..., description="Authenticated user id"),
    x_user_role: str = Header(..., description="admin, teacher or student"),
) -> Principal:
    return Principal.of(x_user_id, x_user_role.lower())
