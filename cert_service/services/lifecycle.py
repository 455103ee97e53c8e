"""Certificate lifecycle: issue, revoke, QR regeneration.

States and transitions:

    (new) --issue--> active --revoke--> revoked

``pending`` exists in the status vocabulary but nothing moves a record
into or out of it; revoking a pending record is refused.  There is no
reinstate.

Every write carries the caller's identity (issued_by / revoked_by) and
emits an audit log line.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import UTC, datetime

from cert_service.core.config import SETTINGS
from cert_service.core.errors import (
    AuthorizationError,
    NotFound,
    TransientError,
    TransitionError,
)
from cert_service.core.metrics import (
    CERTIFICATES_ISSUED,
    CERTIFICATES_REVOKED,
    QR_ATTACH_FAILURES,
)
from cert_service.models.caller import CallerContext
from cert_service.models.certificate import Certificate, CertificateDraft
from cert_service.repos.certificate_repo import CertificateRepo
from cert_service.services import id_minter, qr_service, scope
from cert_service.services.store import call_store
from cert_service.services.validation import validate_issue

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


async def issue(
    repo: CertificateRepo,
    caller: CallerContext,
    draft: CertificateDraft,
    *,
    now: datetime | None = None,
    base_url: str | None = None,
    prefix: str | None = None,
    timeout: float | None = None,
) -> Certificate:
    """Validate, mint, persist as active, then try to attach a QR payload.

    The returned certificate may have ``qr_payload=None`` if attaching
    failed; issuance itself still succeeded.
    """
    if caller.is_super_admin():
        logger.warning(
            "Issue refused: super_admin user=%s has no institution", caller.user_id
        )
        raise AuthorizationError("only institution administrators can issue")

    issued_at = now or _now()
    clean = validate_issue(draft, caller, today=issued_at.date())

    def build(certificate_id: str) -> Certificate:
        return Certificate.new(
            certificate_id=certificate_id,
            student_name=clean.student_name,
            student_id=clean.student_id,
            degree=clean.degree,
            field_of_study=clean.field_of_study,
            university_name=clean.university_name,
            university_code=clean.university_code,
            graduation_date=clean.graduation_date,
            issued_by=caller.user_id,
            issued_at=issued_at,
            gpa=clean.gpa,
            honors=clean.honors,
        )

    certificate = await id_minter.mint_into(
        repo,
        build,
        prefix=prefix or SETTINGS.cert_id_prefix,
        year=issued_at.year,
        timeout=timeout,
    )
    CERTIFICATES_ISSUED.inc()
    logger.info(
        "Certificate issued id=%s by user=%s institution=%s",
        certificate.certificate_id,
        caller.user_id,
        certificate.university_code,
        extra={
            "action": "issue",
            "caller_id": caller.user_id,
            "certificate_id": certificate.certificate_id,
        },
    )

    return await _attach_qr(repo, certificate, base_url=base_url, timeout=timeout)


async def _attach_qr(
    repo: CertificateRepo,
    certificate: Certificate,
    *,
    base_url: str | None,
    timeout: float | None,
) -> Certificate:
    """Best-effort QR attachment after issuance; never raises."""
    deadline = SETTINGS.store_timeout_seconds if timeout is None else timeout
    try:
        payload = await asyncio.wait_for(
            asyncio.to_thread(
                qr_service.build_qr_payload,
                base_url or SETTINGS.verify_base_url,
                certificate.certificate_id,
            ),
            timeout=deadline,
        )
        updated_at = _now()
        await call_store(
            repo.set_qr_payload(
                certificate.certificate_id, payload, updated_at=updated_at
            ),
            timeout=timeout,
        )
    except Exception:
        QR_ATTACH_FAILURES.inc()
        logger.warning(
            "QR payload not attached for id=%s; it can be regenerated on demand",
            certificate.certificate_id,
            exc_info=True,
        )
        return certificate

    return _with_qr(certificate, payload, updated_at)


def _with_qr(
    certificate: Certificate, payload: str, updated_at: datetime
) -> Certificate:
    return replace(certificate, qr_payload=payload, updated_at=updated_at)


async def revoke(
    repo: CertificateRepo,
    caller: CallerContext,
    certificate_id: str,
    *,
    now: datetime | None = None,
    timeout: float | None = None,
) -> Certificate:
    """Move an active certificate to revoked.

    Idempotent: revoking an already-revoked certificate returns it
    unchanged, keeping the original revoker's attribution.
    """
    existing = await call_store(
        repo.get_by_certificate_id(certificate_id), timeout=timeout
    )
    if existing is None:
        raise NotFound(certificate_id)

    if not scope.visible_records(caller)(existing):
        logger.warning(
            "Revoke denied: user=%s institution=%s does not own id=%s",
            caller.user_id,
            caller.university_code,
            certificate_id,
        )
        raise AuthorizationError("only the issuing institution can revoke")

    if existing.status == "revoked":
        logger.info("Revoke no-op: id=%s already revoked", certificate_id)
        return existing
    if existing.status != "active":
        raise TransitionError(f"cannot revoke a {existing.status} certificate")

    revoked_at = now or _now()
    updated = await call_store(
        repo.mark_revoked(
            certificate_id, revoked_by=caller.user_id, revoked_at=revoked_at
        ),
        timeout=timeout,
    )
    if updated is None:
        # Lost a race with a concurrent revoke; the winner's state stands.
        current = await call_store(
            repo.get_by_certificate_id(certificate_id), timeout=timeout
        )
        if current is None or current.status != "revoked":
            raise TransientError("certificate changed during revoke")
        return current

    CERTIFICATES_REVOKED.inc()
    logger.info(
        "Certificate revoked id=%s by user=%s",
        certificate_id,
        caller.user_id,
        extra={
            "action": "revoke",
            "caller_id": caller.user_id,
            "certificate_id": certificate_id,
        },
    )
    return updated


async def regenerate_qr(
    repo: CertificateRepo,
    caller: CallerContext,
    certificate_id: str,
    *,
    base_url: str | None = None,
    timeout: float | None = None,
) -> Certificate:
    """Rebuild and store the QR payload for a certificate the caller can see."""
    existing = await scope.get_visible(repo, caller, certificate_id, timeout=timeout)
    if existing is None:
        raise NotFound(certificate_id)

    payload = await asyncio.to_thread(
        qr_service.build_qr_payload,
        base_url or SETTINGS.verify_base_url,
        certificate_id,
    )
    updated_at = _now()
    await call_store(
        repo.set_qr_payload(certificate_id, payload, updated_at=updated_at),
        timeout=timeout,
    )
    logger.info(
        "QR payload regenerated id=%s by user=%s", certificate_id, caller.user_id
    )
    return _with_qr(existing, payload, updated_at)
