"""Public certificate verification.

Anyone can verify any id; there is no caller and no scope here.  The
identifier's entropy is the protection against enumeration, backed by
rate limiting at the HTTP layer.

Two rules shape everything in this module:

  1. Redaction.  A verifier only ever receives a VerificationResult,
     whose fields are the complete disclosure allow-list.

  2. No oracle.  An id that never existed and an id that was revoked
     produce the same NotFound, so a verifier cannot tell them apart.
"""

from __future__ import annotations

import logging

from cert_service.core.errors import InvalidInput, NotFound
from cert_service.core.metrics import VERIFICATIONS
from cert_service.models.certificate import Certificate
from cert_service.models.verification import VerificationResult
from cert_service.repos.certificate_repo import CertificateRepo
from cert_service.services.store import call_store

logger = logging.getLogger(__name__)

MAX_ID_LENGTH = 64

NOT_VALID_MESSAGE = "Certificate not found or invalid"


def normalize_certificate_id(raw: str | None) -> str:
    """Strip and uppercase a user-supplied id; reject empty or oversized input."""
    text = (raw or "").strip()
    if not text:
        raise InvalidInput("certificate id is required")
    if len(text) > MAX_ID_LENGTH:
        raise InvalidInput("certificate id is too long")
    return text.upper()


def redact(record: Certificate | None) -> VerificationResult | None:
    """Project a stored record onto its public view, or None if not valid."""
    if record is None or not record.is_active:
        return None
    return VerificationResult(
        certificate_id=record.certificate_id,
        student_name=record.student_name,
        degree=record.degree,
        field_of_study=record.field_of_study,
        university_name=record.university_name,
        graduation_date=record.graduation_date,
        issued_at=record.issued_at,
        gpa=record.gpa,
        honors=record.honors,
    )


async def verify(
    repo: CertificateRepo, raw_id: str | None, *, timeout: float | None = None
) -> VerificationResult:
    """Resolve an identifier to its public view.

    Raises InvalidInput before touching the store, NotFound for absent or
    inactive ids, TransientError when the store cannot answer.
    """
    try:
        certificate_id = normalize_certificate_id(raw_id)
    except InvalidInput:
        VERIFICATIONS.labels(result="invalid_input").inc()
        raise

    try:
        record = await call_store(
            repo.get_by_certificate_id(certificate_id), timeout=timeout
        )
    except Exception:
        VERIFICATIONS.labels(result="unavailable").inc()
        raise

    result = redact(record)
    if result is None:
        VERIFICATIONS.labels(result="not_valid").inc()
        logger.info("Verification miss")
        raise NotFound(NOT_VALID_MESSAGE)

    VERIFICATIONS.labels(result="valid").inc()
    logger.info("Verification hit id=%s", certificate_id)
    return result
