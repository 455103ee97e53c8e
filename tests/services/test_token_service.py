from __future__ import annotations

import jwt
import pytest

from cert_service.services import token_service


def test_round_trip_carries_institution_claims() -> None:
    token = token_service.create_access_token(
        sub="registrar-aau",
        role="university_admin",
        university_name="Addis Ababa University",
        university_code="AAU",
    )
    claims = token_service.decode_access_token(token)
    assert claims["sub"] == "registrar-aau"
    assert claims["role"] == "university_admin"
    assert claims["university_code"] == "AAU"
    assert claims["iss"] == token_service.ISSUER
    assert claims["aud"] == token_service.AUDIENCE


def test_super_admin_token_has_no_institution() -> None:
    token = token_service.create_access_token(sub="ops-root", role="super_admin")
    claims = token_service.decode_access_token(token)
    assert "university_code" not in claims
    assert "university_name" not in claims


def test_wrong_audience_is_rejected() -> None:
    token = jwt.encode(
        {"sub": "x", "aud": "other-service", "iss": token_service.ISSUER},
        token_service._private_key,
        algorithm=token_service.ALGORITHM,
    )
    with pytest.raises(jwt.InvalidTokenError):
        token_service.decode_access_token(token)


def test_unsigned_token_is_rejected() -> None:
    token = jwt.encode({"sub": "x", "role": "super_admin"}, "", algorithm="none")
    with pytest.raises(jwt.InvalidTokenError):
        token_service.decode_access_token(token)
