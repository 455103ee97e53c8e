"""Scope filter: which certificate records a caller may list or search.

super_admin       -> every record
university_admin  -> records whose university_code equals the caller's

A university admin whose profile has no code sees nothing rather than
everything.  Verification never goes through here; it is scope-free.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from cert_service.models.caller import CallerContext
from cert_service.models.certificate import Certificate, CertificateStatus
from cert_service.models.scope import Scope
from cert_service.repos.certificate_repo import CertificateRepo
from cert_service.services.store import call_store

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def scope_for(caller: CallerContext) -> Scope:
    if caller.is_super_admin():
        return Scope()
    if not caller.university_code:
        return Scope(deny_all=True)
    return Scope(university_code=caller.university_code)


def visible_records(caller: CallerContext) -> Callable[[Certificate], bool]:
    """Predicate over certificates that the caller is allowed to see."""
    return scope_for(caller).matches


async def get_visible(
    repo: CertificateRepo,
    caller: CallerContext,
    certificate_id: str,
    *,
    timeout: float | None = None,
) -> Certificate | None:
    """Fetch one record, or None when it is absent or outside the caller's scope."""
    record = await call_store(
        repo.get_by_certificate_id(certificate_id), timeout=timeout
    )
    if record is None or not visible_records(caller)(record):
        return None
    return record


async def list_visible(
    repo: CertificateRepo,
    caller: CallerContext,
    *,
    limit: int | None = 100,
    offset: int = 0,
    status: CertificateStatus | None = None,
    timeout: float | None = None,
) -> list[Certificate]:
    return await call_store(
        repo.list_scoped(
            scope_for(caller), limit=limit, offset=offset, status=status
        ),
        timeout=timeout,
    )


async def search(
    repo: CertificateRepo,
    caller: CallerContext,
    text: str,
    *,
    limit: int = SEARCH_LIMIT,
    status: CertificateStatus | None = None,
    timeout: float | None = None,
) -> list[Certificate]:
    """Case-insensitive substring search over name, student id and certificate id.

    The scope travels into the repository together with the text and the
    optional status; the repository applies scope first, so results only
    ever reflect the caller's own records.
    """
    needle = text.strip()
    scope = scope_for(caller)
    if not needle:
        return await call_store(
            repo.list_scoped(scope, limit=limit, offset=0, status=status),
            timeout=timeout,
        )
    logger.debug("Scoped search caller=%s scope=%s", caller.user_id, scope)
    return await call_store(
        repo.search_scoped(scope, needle, limit=limit, status=status),
        timeout=timeout,
    )
