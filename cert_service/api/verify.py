"""Public verification endpoints.

- GET  /v1/verify/{certificate_id}   verify an id
- POST /v1/verify/scan               verify the id found in scanned QR text

No credentials are needed or read.  Both routes share one per-client
token bucket.  An id that never existed and an id that was revoked get
the same 404 body.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from cert_service.api.dependencies import get_certificate_repo
from cert_service.api.errors import to_http_exception
from cert_service.api.ratelimit import VERIFY_RATE_LIMIT, require_rate_limit
from cert_service.core.errors import CertificateError
from cert_service.models.verification import VerificationResult
from cert_service.repos.certificate_repo import CertificateRepo
from cert_service.services import qr_service, verification

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/verify",
    tags=["verify"],
    dependencies=[Depends(require_rate_limit(VERIFY_RATE_LIMIT))],
)

Repo = Annotated[CertificateRepo, Depends(get_certificate_repo)]


class VerificationOut(BaseModel):
    certificate_id: str
    student_name: str
    degree: str
    field_of_study: str
    university_name: str
    graduation_date: date
    issued_at: datetime
    gpa: float | None
    honors: str | None
    status: str


class ScanIn(BaseModel):
    text: str = Field(default="", max_length=2048)


def _to_out(result: VerificationResult) -> VerificationOut:
    return VerificationOut(
        certificate_id=result.certificate_id,
        student_name=result.student_name,
        degree=result.degree,
        field_of_study=result.field_of_study,
        university_name=result.university_name,
        graduation_date=result.graduation_date,
        issued_at=result.issued_at,
        gpa=result.gpa,
        honors=result.honors,
        status=result.status,
    )


async def _verify(repo: CertificateRepo, raw_id: str) -> VerificationOut:
    try:
        result = await verification.verify(repo, raw_id)
    except CertificateError as e:
        raise to_http_exception(e) from None
    return _to_out(result)


@router.get("/{certificate_id}", response_model=VerificationOut)
async def verify_certificate(certificate_id: str, repo: Repo) -> VerificationOut:
    return await _verify(repo, certificate_id)


@router.post("/scan", response_model=VerificationOut)
async def verify_scanned(body: ScanIn, repo: Repo) -> VerificationOut:
    candidate = qr_service.extract_certificate_id(body.text)
    logger.debug("Scan resolved to candidate of length %d", len(candidate))
    return await _verify(repo, candidate)
