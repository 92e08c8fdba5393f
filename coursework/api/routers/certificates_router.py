"""Certificate router: student requests and admin review."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from coursework.api.deps import get_engine, get_principal
from coursework.core.auth import Principal, require_owner
from coursework.engine import LearningEngine

router = APIRouter()


class CertificateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(..., min_length=1, alias="courseId")


class RejectionRequest(BaseModel):
    reason: str = ""


@router.post("", status_code=201, summary="Request certificate")
def request_certificate(
    body: CertificateRequest,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.certificates.request_certificate(principal, body.course_id).to_dict()


@router.get("", summary="List certificates")
def list_certificates(
    status: str | None = Query(None),
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> list[dict[str, Any]]:
    return [c.to_dict() for c in engine.certificates.list_certificates(principal, status)]


@router.get("/stats", summary="Counts by status")
def certificate_stats(
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, int]:
    return engine.certificates.certificate_stats(principal).to_dict()


@router.post("/{certificate_id}/verify", summary="Verify and number a certificate")
def verify_certificate(
    certificate_id: str,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.certificates.verify_certificate(principal, certificate_id).to_dict()


@router.post("/{certificate_id}/reject", summary="Reject a certificate")
def reject_certificate(
    certificate_id: str,
    body: RejectionRequest,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    return engine.certificates.reject_certificate(principal, certificate_id, body.reason).to_dict()


@router.get("/{certificate_id}/render", summary="Printable data of a verified certificate")
def render_certificate(
    certificate_id: str,
    engine: LearningEngine = Depends(get_engine),
    principal: Principal = Depends(get_principal),
) -> dict[str, Any]:
    certificate = engine.certificates.get_certificate(certificate_id)
    if not principal.is_staff:
        require_owner(principal.user_id, certificate.student_id, "certificate")
    return engine.certificates.render_data(certificate_id).to_dict()
