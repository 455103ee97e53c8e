from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from cert_service.db.engine import async_session_factory
from cert_service.models.caller import ROLES, CallerContext
from cert_service.repos.certificate_repo import CertificateRepo, InMemoryCertificateRepo
from cert_service.repos.pg_certificate_repo import PgCertificateRepo
from cert_service.services import token_service

logger = logging.getLogger(__name__)

# Tokens are issued by the external identity provider; tokenUrl only
# feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# Used whenever DATABASE_URL is unset (local dev, tests).
memory_repo = InMemoryCertificateRepo()


async def get_certificate_repo() -> AsyncGenerator[CertificateRepo, None]:
    """Request-scoped certificate repository.

    With a database: a PgCertificateRepo bound to a session that commits
    on success and rolls back on error.  Without one: the process-wide
    in-memory repo.
    """
    if async_session_factory is None:
        yield memory_repo
        return

    async with async_session_factory() as session:
        try:
            yield PgCertificateRepo(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def require_caller(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> CallerContext:
    """Validate the bearer token and return the caller profile."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    role = claims.get("role")
    if role not in ROLES:
        logger.warning("Access denied: user=%s unknown role=%r", claims["sub"], role)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )

    caller = CallerContext(
        user_id=claims["sub"],
        role=role,
        university_name=claims.get("university_name"),
        university_code=claims.get("university_code"),
    )
    logger.debug(
        "Token validated for user=%s role=%s institution=%s",
        caller.user_id,
        caller.role,
        caller.university_code,
    )
    return caller
