"""Identity-provider bearer tokens (ES256 JWT).

Sessions and credential issuance belong to the external identity
provider.  This service only verifies the access tokens it presents and
reads the caller profile out of the claims:

    sub              user id
    role             super_admin | university_admin
    university_name  institution display name (university_admin only)
    university_code  institution code (university_admin only)

``create_access_token`` exists for local development and tests, where
there is no real provider; it signs with the same ephemeral key that
``decode_access_token`` verifies against.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# Dev/test: an ephemeral EC key pair generated on import.
# Production: load the provider's public key (not implemented yet).
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "identity-provider"
AUDIENCE = "cert-service"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *,
    sub: str,
    role: str = "university_admin",
    university_name: str | None = None,
    university_code: str | None = None,
) -> str:
    """Build and sign an access token carrying a caller profile."""
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "role": role,
    }
    if university_name is not None:
        payload["university_name"] = university_name
    if university_code is not None:
        payload["university_code"] = university_code
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 to prevent alg:none and alg-switching
    attacks.  Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti", "role"]},
    )
