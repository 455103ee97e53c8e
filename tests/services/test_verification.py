"""Verification gateway: redaction and the no-oracle rule."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import UTC, datetime

import pytest
from prometheus_client import REGISTRY

from cert_service.core.errors import InvalidInput, NotFound, TransientError
from cert_service.models.verification import VerificationResult
from cert_service.repos.certificate_repo import InMemoryCertificateRepo
from cert_service.services import lifecycle, verification
from tests.conftest import make_caller, make_draft

NOW = datetime(2024, 7, 1, tzinfo=UTC)

ALLOWED_FIELDS = {
    "certificate_id",
    "student_name",
    "degree",
    "field_of_study",
    "university_name",
    "graduation_date",
    "issued_at",
    "gpa",
    "honors",
    "status",
}


def _sample(result: str) -> float:
    value = REGISTRY.get_sample_value(
        "certificate_verifications_total", {"result": result}
    )
    return value if value is not None else 0.0


def _issued(repo):
    return asyncio.run(lifecycle.issue(repo, make_caller(), make_draft(), now=NOW))


def test_verify_active_certificate_returns_redacted_view() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issued(repo)

    result = asyncio.run(verification.verify(repo, cert.certificate_id))

    assert result.status == "valid"
    assert result.student_name == "Abebe Kebede"
    assert result.university_name == "Addis Ababa University"
    assert {f.name for f in dataclasses.fields(result)} == ALLOWED_FIELDS


def test_verification_result_has_no_private_fields() -> None:
    names = {f.name for f in dataclasses.fields(VerificationResult)}
    for private in ("student_id", "university_code", "issued_by", "id", "qr_payload"):
        assert private not in names


def test_verify_normalizes_case_and_whitespace() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issued(repo)

    result = asyncio.run(
        verification.verify(repo, f"  {cert.certificate_id.lower()}\n")
    )
    assert result.certificate_id == cert.certificate_id


def test_revoked_and_never_issued_are_indistinguishable() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issued(repo)
    asyncio.run(lifecycle.revoke(repo, make_caller(), cert.certificate_id))

    with pytest.raises(NotFound) as revoked:
        asyncio.run(verification.verify(repo, cert.certificate_id))
    with pytest.raises(NotFound) as absent:
        asyncio.run(verification.verify(repo, "CERT-2024-ZZZZZZZZ"))

    assert str(revoked.value) == str(absent.value) == verification.NOT_VALID_MESSAGE


def test_pending_certificate_is_not_valid() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issued(repo)
    repo._by_certificate_id[cert.certificate_id] = dataclasses.replace(
        cert, status="pending"
    )
    assert verification.redact(repo._by_certificate_id[cert.certificate_id]) is None
    with pytest.raises(NotFound):
        asyncio.run(verification.verify(repo, cert.certificate_id))


@pytest.mark.parametrize("raw", ["", "   ", None, "X" * 65])
def test_bad_input_is_rejected_before_store(raw) -> None:
    class _ExplodingRepo(InMemoryCertificateRepo):
        async def get_by_certificate_id(self, certificate_id: str):
            raise AssertionError("store must not be touched")

    before = _sample("invalid_input")
    with pytest.raises(InvalidInput):
        asyncio.run(verification.verify(_ExplodingRepo(), raw))
    assert _sample("invalid_input") - before == 1


def test_store_failure_is_transient_not_not_found() -> None:
    class _DownRepo(InMemoryCertificateRepo):
        async def get_by_certificate_id(self, certificate_id: str):
            raise ConnectionRefusedError("connection refused")

    before = _sample("unavailable")
    with pytest.raises(TransientError):
        asyncio.run(verification.verify(_DownRepo(), "CERT-2024-ABCDEF12"))
    assert _sample("unavailable") - before == 1


def test_verification_outcomes_are_counted() -> None:
    repo = InMemoryCertificateRepo()
    cert = _issued(repo)
    valid_before = _sample("valid")
    miss_before = _sample("not_valid")

    asyncio.run(verification.verify(repo, cert.certificate_id))
    with pytest.raises(NotFound):
        asyncio.run(verification.verify(repo, "CERT-2024-00000000"))

    assert _sample("valid") - valid_before == 1
    assert _sample("not_valid") - miss_before == 1


def test_normalize_accepts_max_length() -> None:
    raw = "A" * verification.MAX_ID_LENGTH
    assert verification.normalize_certificate_id(raw) == raw
