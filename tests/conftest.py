from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from cert_service.api.dependencies import memory_repo
from cert_service.api.ratelimit import _rate_limiter
from cert_service.main import app
from cert_service.models.caller import CallerContext
from cert_service.models.certificate import CertificateDraft
from cert_service.services import token_service

# Ensure repo root is on sys.path so `import cert_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_certificate_store() -> None:
    memory_repo._by_certificate_id.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    if hasattr(_rate_limiter, "_buckets"):
        _rate_limiter._buckets.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "registrar-aau",
    role: str = "university_admin",
    university_name: str | None = "Addis Ababa University",
    university_code: str | None = "AAU",
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(
        sub=username,
        role=role,
        university_name=university_name,
        university_code=university_code,
    )


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def aau_token() -> str:
    return mint_token()


@pytest.fixture
def super_token() -> str:
    return mint_token(
        username="ops-root",
        role="super_admin",
        university_name=None,
        university_code=None,
    )


def make_caller(
    user_id: str = "registrar-aau",
    role: str = "university_admin",
    university_name: str | None = "Addis Ababa University",
    university_code: str | None = "AAU",
) -> CallerContext:
    return CallerContext(
        user_id=user_id,
        role=role,  # type: ignore[arg-type]
        university_name=university_name,
        university_code=university_code,
    )


def make_draft(**overrides) -> CertificateDraft:
    fields = {
        "student_name": "Abebe Kebede",
        "student_id": "ETH-2024-001",
        "degree": "Bachelor of Science",
        "field_of_study": "Computer Science",
        "graduation_date": "2024-06-15",
        "gpa": 3.8,
        "honors": "Magna Cum Laude",
    }
    fields.update(overrides)
    return CertificateDraft(**fields)


def issue_body(**overrides) -> dict:
    body = {
        "student_name": "Abebe Kebede",
        "student_id": "ETH-2024-001",
        "degree": "Bachelor of Science",
        "field_of_study": "Computer Science",
        "graduation_date": "2024-06-15",
        "gpa": 3.8,
        "honors": "Magna Cum Laude",
    }
    body.update(overrides)
    return body
