"""Lifecycle manager tests: issue, revoke, QR regeneration.

Async services are driven with asyncio.run; Prometheus counters are
checked by delta because the default registry is process-global.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from datetime import UTC, datetime

import pytest
from prometheus_client import REGISTRY

from cert_service.core.errors import (
    AuthorizationError,
    NotFound,
    TransientError,
    TransitionError,
    ValidationError,
)
from cert_service.repos.certificate_repo import InMemoryCertificateRepo
from cert_service.services import lifecycle, qr_service
from cert_service.services.qr_service import DATA_URL_PREFIX
from tests.conftest import make_caller, make_draft

ID_PATTERN = re.compile(r"^[A-Z]+-\d{4}-[A-Z0-9]{6,}$")
NOW = datetime(2024, 7, 1, 9, 30, tzinfo=UTC)
BASE_URL = "https://verify.example.edu"


def _sample(name: str) -> float:
    value = REGISTRY.get_sample_value(name)
    return value if value is not None else 0.0


def _issue(repo, caller=None, draft=None, **kwargs):
    return asyncio.run(
        lifecycle.issue(
            repo,
            caller or make_caller(),
            draft or make_draft(),
            now=NOW,
            base_url=BASE_URL,
            **kwargs,
        )
    )


# ---- issue ----


def test_issue_creates_active_record_with_caller_institution() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)

    assert ID_PATTERN.match(cert.certificate_id)
    assert cert.certificate_id.startswith("CERT-2024-")
    assert cert.status == "active"
    assert cert.university_code == "AAU"
    assert cert.university_name == "Addis Ababa University"
    assert cert.issued_by == "registrar-aau"
    assert cert.issued_at == NOW
    assert cert.gpa == 3.8
    assert cert.honors == "Magna Cum Laude"


def test_issue_attaches_qr_payload() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)

    assert cert.qr_payload is not None
    assert cert.qr_payload.startswith(DATA_URL_PREFIX)
    stored = asyncio.run(repo.get_by_certificate_id(cert.certificate_id))
    assert stored is not None
    assert stored.qr_payload == cert.qr_payload


def test_issue_uses_configured_prefix() -> None:
    cert = _issue(InMemoryCertificateRepo(), prefix="AAU")
    assert cert.certificate_id.startswith("AAU-2024-")


def test_issue_increments_issued_counter() -> None:
    before = _sample("certificates_issued_total")
    _issue(InMemoryCertificateRepo())
    assert _sample("certificates_issued_total") - before == 1


def test_issue_by_super_admin_is_refused() -> None:
    repo = InMemoryCertificateRepo()
    caller = make_caller(
        user_id="ops-root",
        role="super_admin",
        university_name=None,
        university_code=None,
    )
    with pytest.raises(AuthorizationError):
        _issue(repo, caller=caller)
    assert repo._by_certificate_id == {}


def test_invalid_issue_writes_nothing() -> None:
    repo = InMemoryCertificateRepo()
    with pytest.raises(ValidationError) as exc_info:
        _issue(repo, draft=make_draft(gpa=5.0, graduation_date="2030-01-01"))
    assert len(exc_info.value.violations) == 2
    assert repo._by_certificate_id == {}


def test_qr_failure_does_not_undo_issuance(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(base_url: str, certificate_id: str) -> str:
        raise RuntimeError("renderer down")

    monkeypatch.setattr(qr_service, "build_qr_payload", boom)
    repo = InMemoryCertificateRepo()
    before = _sample("qr_attach_failures_total")

    cert = _issue(repo)

    assert cert.qr_payload is None
    assert cert.status == "active"
    stored = asyncio.run(repo.get_by_certificate_id(cert.certificate_id))
    assert stored is not None
    assert _sample("qr_attach_failures_total") - before == 1


def test_issue_logs_audit_line(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="cert_service.services.lifecycle"):
        cert = _issue(InMemoryCertificateRepo())

    audit = [r for r in caplog.records if getattr(r, "action", None) == "issue"]
    assert len(audit) == 1
    assert audit[0].caller_id == "registrar-aau"  # type: ignore[attr-defined]
    assert audit[0].certificate_id == cert.certificate_id  # type: ignore[attr-defined]


# ---- revoke ----


def test_revoke_active_certificate() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)
    later = datetime(2024, 8, 1, tzinfo=UTC)

    revoked = asyncio.run(
        lifecycle.revoke(repo, make_caller(), cert.certificate_id, now=later)
    )

    assert revoked.status == "revoked"
    assert revoked.revoked_by == "registrar-aau"
    assert revoked.revoked_at == later
    assert revoked.updated_at == later


def test_revoke_twice_keeps_first_attribution() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)
    first = asyncio.run(lifecycle.revoke(repo, make_caller(), cert.certificate_id))

    ops = make_caller(
        user_id="ops-root",
        role="super_admin",
        university_name=None,
        university_code=None,
    )
    second = asyncio.run(lifecycle.revoke(repo, ops, cert.certificate_id))

    assert second.status == "revoked"
    assert second.revoked_by == first.revoked_by == "registrar-aau"
    assert second.revoked_at == first.revoked_at


def test_revoke_counter_counts_transitions_only() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)
    before = _sample("certificates_revoked_total")

    asyncio.run(lifecycle.revoke(repo, make_caller(), cert.certificate_id))
    asyncio.run(lifecycle.revoke(repo, make_caller(), cert.certificate_id))

    assert _sample("certificates_revoked_total") - before == 1


def test_revoke_unknown_id_raises_not_found() -> None:
    with pytest.raises(NotFound):
        asyncio.run(
            lifecycle.revoke(
                InMemoryCertificateRepo(), make_caller(), "CERT-2024-NOPE0000"
            )
        )


def test_revoke_by_other_institution_is_refused() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)
    other = make_caller(
        user_id="registrar-abc",
        university_name="ABC University",
        university_code="ABC123",
    )

    with pytest.raises(AuthorizationError):
        asyncio.run(lifecycle.revoke(repo, other, cert.certificate_id))

    stored = asyncio.run(repo.get_by_certificate_id(cert.certificate_id))
    assert stored is not None
    assert stored.status == "active"


def test_super_admin_can_revoke_any_institution() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)
    ops = make_caller(
        user_id="ops-root",
        role="super_admin",
        university_name=None,
        university_code=None,
    )
    revoked = asyncio.run(lifecycle.revoke(repo, ops, cert.certificate_id))
    assert revoked.revoked_by == "ops-root"


def test_revoke_pending_raises_transition_error() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)
    repo._by_certificate_id[cert.certificate_id] = replace(cert, status="pending")

    with pytest.raises(TransitionError):
        asyncio.run(lifecycle.revoke(repo, make_caller(), cert.certificate_id))


def test_concurrent_revokes_converge() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)

    async def both():
        return await asyncio.gather(
            lifecycle.revoke(repo, make_caller(), cert.certificate_id),
            lifecycle.revoke(repo, make_caller(), cert.certificate_id),
        )

    a, b = asyncio.run(both())
    assert a.status == b.status == "revoked"
    assert a.revoked_at == b.revoked_at


class _HangingRepo(InMemoryCertificateRepo):
    async def get_by_certificate_id(self, certificate_id: str):
        await asyncio.sleep(1)
        return None


def test_store_timeout_surfaces_as_transient() -> None:
    with pytest.raises(TransientError):
        asyncio.run(
            lifecycle.revoke(
                _HangingRepo(), make_caller(), "CERT-2024-SLOW0000", timeout=0.01
            )
        )


# ---- regenerate_qr ----


def test_regenerate_qr_restores_missing_payload(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    repo = InMemoryCertificateRepo()
    original = qr_service.build_qr_payload

    def boom(base_url: str, certificate_id: str) -> str:
        raise RuntimeError("renderer down")

    monkeypatch.setattr(qr_service, "build_qr_payload", boom)
    cert = _issue(repo)
    assert cert.qr_payload is None

    monkeypatch.setattr(qr_service, "build_qr_payload", original)
    updated = asyncio.run(
        lifecycle.regenerate_qr(
            repo, make_caller(), cert.certificate_id, base_url=BASE_URL
        )
    )

    assert updated.qr_payload == qr_service.build_qr_payload(
        BASE_URL, cert.certificate_id
    )
    stored = asyncio.run(repo.get_by_certificate_id(cert.certificate_id))
    assert stored is not None
    assert stored.qr_payload == updated.qr_payload


def test_regenerate_qr_out_of_scope_is_not_found() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issue(repo)
    other = make_caller(
        user_id="registrar-abc",
        university_name="ABC University",
        university_code="ABC123",
    )
    with pytest.raises(NotFound):
        asyncio.run(lifecycle.regenerate_qr(repo, other, cert.certificate_id))
