"""Analytics router."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from coursework.api.deps import get_engine, get_principal
from coursework.core.auth import Principal
from coursework.engine import LearningEngine

router = APIRouter()


@router.get("/report", summary="Staff analytics report")
def report(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.analytics.report(principal).to_dict()


@router.get("/dashboard", summary="Role-dependent dashboard counters")
def dashboard(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.analytics.dashboard_summary(principal).to_dict()
