"""Administrative certificate endpoints.

- POST /v1/certificates                       issue (institution admin)
- GET  /v1/certificates?status=               scoped listing
- GET  /v1/certificates/search?q=&status=     scoped search
- GET  /v1/certificates/stats                 scoped statistics
- GET  /v1/certificates/{certificate_id}      full record (scoped)
- POST /v1/certificates/{certificate_id}/revoke
- POST /v1/certificates/{certificate_id}/qr   regenerate QR payload

University name and code are never read from the request body; they
come from the caller's token.  Unknown body fields are ignored, so a
client that sends ``university_code`` simply has it dropped.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from cert_service.api.dependencies import get_certificate_repo, require_caller
from cert_service.api.errors import to_http_exception
from cert_service.core.errors import CertificateError, NotFound
from cert_service.models.caller import CallerContext
from cert_service.models.certificate import (
    Certificate,
    CertificateDraft,
    CertificateStatus,
)
from cert_service.repos.certificate_repo import CertificateRepo
from cert_service.services import lifecycle, scope, stats_service
from cert_service.services.verification import normalize_certificate_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])

Caller = Annotated[CallerContext, Depends(require_caller)]
Repo = Annotated[CertificateRepo, Depends(get_certificate_repo)]
# `status` would shadow fastapi.status inside the handlers.
StatusFilter = Annotated[CertificateStatus | None, Query(alias="status")]


class CertificateIssueIn(BaseModel):
    # Empty defaults let the domain validator report every missing field
    # in one response instead of pydantic stopping at the first.
    student_name: str = ""
    student_id: str = ""
    degree: str = ""
    field_of_study: str = ""
    graduation_date: str | None = None
    gpa: float | str | None = None
    honors: str | None = None


class CertificateOut(BaseModel):
    id: str
    certificate_id: str
    student_name: str
    student_id: str
    degree: str
    field_of_study: str
    university_name: str
    university_code: str
    graduation_date: date
    gpa: float | None
    honors: str | None
    status: str
    issued_by: str
    issued_at: datetime
    updated_at: datetime
    revoked_by: str | None
    revoked_at: datetime | None
    qr_payload: str | None


class CertificateListOut(BaseModel):
    items: list[CertificateOut]
    limit: int
    offset: int


class DegreeCount(BaseModel):
    degree: str
    count: int


class MonthCount(BaseModel):
    month: str
    count: int


class CertificateStatsOut(BaseModel):
    total: int
    active: int
    revoked: int
    pending: int
    unique_students: int
    this_month: int
    by_degree: list[DegreeCount]
    monthly: list[MonthCount]


def _to_out(c: Certificate) -> CertificateOut:
    return CertificateOut(
        id=str(c.id),
        certificate_id=c.certificate_id,
        student_name=c.student_name,
        student_id=c.student_id,
        degree=c.degree,
        field_of_study=c.field_of_study,
        university_name=c.university_name,
        university_code=c.university_code,
        graduation_date=c.graduation_date,
        gpa=c.gpa,
        honors=c.honors,
        status=c.status,
        issued_by=c.issued_by,
        issued_at=c.issued_at,
        updated_at=c.updated_at,
        revoked_by=c.revoked_by,
        revoked_at=c.revoked_at,
        qr_payload=c.qr_payload,
    )


@router.post(
    "",
    response_model=CertificateOut,
    status_code=status.HTTP_201_CREATED,
)
async def issue_certificate(
    body: CertificateIssueIn,
    caller: Caller,
    repo: Repo,
) -> CertificateOut:
    draft = CertificateDraft(
        student_name=body.student_name,
        student_id=body.student_id,
        degree=body.degree,
        field_of_study=body.field_of_study,
        graduation_date=body.graduation_date,
        gpa=body.gpa,
        honors=body.honors,
    )
    try:
        certificate = await lifecycle.issue(repo, caller, draft)
    except CertificateError as e:
        logger.warning(
            "Issue rejected for user=%s: %s", caller.user_id, type(e).__name__
        )
        raise to_http_exception(e) from None
    return _to_out(certificate)


@router.get("", response_model=CertificateListOut)
async def list_certificates(
    caller: Caller,
    repo: Repo,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
    status_filter: StatusFilter = None,
) -> CertificateListOut:
    try:
        records = await scope.list_visible(
            repo, caller, limit=limit, offset=offset, status=status_filter
        )
    except CertificateError as e:
        raise to_http_exception(e) from None
    return CertificateListOut(
        items=[_to_out(c) for c in records], limit=limit, offset=offset
    )


@router.get("/search", response_model=list[CertificateOut])
async def search_certificates(
    caller: Caller,
    repo: Repo,
    q: Annotated[str, Query(max_length=100)] = "",
    status_filter: StatusFilter = None,
) -> list[CertificateOut]:
    try:
        records = await scope.search(repo, caller, q, status=status_filter)
    except CertificateError as e:
        raise to_http_exception(e) from None
    return [_to_out(c) for c in records]


@router.get("/stats", response_model=CertificateStatsOut)
async def certificate_stats(caller: Caller, repo: Repo) -> CertificateStatsOut:
    try:
        records = await scope.list_visible(repo, caller, limit=None)
    except CertificateError as e:
        raise to_http_exception(e) from None

    stats = stats_service.summarize(records, today=datetime.now(UTC).date())
    return CertificateStatsOut(
        total=stats.total,
        active=stats.active,
        revoked=stats.revoked,
        pending=stats.pending,
        unique_students=stats.unique_students,
        this_month=stats.this_month,
        by_degree=[DegreeCount(degree=d, count=n) for d, n in stats.by_degree],
        monthly=[MonthCount(month=m, count=n) for m, n in stats.monthly],
    )


@router.get("/{certificate_id}", response_model=CertificateOut)
async def get_certificate(
    certificate_id: str, caller: Caller, repo: Repo
) -> CertificateOut:
    try:
        cid = normalize_certificate_id(certificate_id)
        record = await scope.get_visible(repo, caller, cid)
    except CertificateError as e:
        raise to_http_exception(e) from None
    if record is None:
        # Out-of-scope looks exactly like absent.
        raise to_http_exception(NotFound(cid))
    return _to_out(record)


@router.post("/{certificate_id}/revoke", response_model=CertificateOut)
async def revoke_certificate(
    certificate_id: str, caller: Caller, repo: Repo
) -> CertificateOut:
    try:
        cid = normalize_certificate_id(certificate_id)
        certificate = await lifecycle.revoke(repo, caller, cid)
    except CertificateError as e:
        raise to_http_exception(e) from None
    return _to_out(certificate)


@router.post("/{certificate_id}/qr", response_model=CertificateOut)
async def regenerate_qr(
    certificate_id: str, caller: Caller, repo: Repo
) -> CertificateOut:
    try:
        cid = normalize_certificate_id(certificate_id)
        certificate = await lifecycle.regenerate_qr(repo, caller, cid)
    except CertificateError as e:
        raise to_http_exception(e) from None
    return _to_out(certificate)
