"""Certificate identifier minting.

Format: ``<PREFIX>-<YYYY>-<TOKEN>``, e.g. ``CERT-2024-7K2M9QXA``.

The token is drawn from a CSPRNG and never from record content.  The id
doubles as the capability that unlocks public verification, so being
unguessable is the whole point: 36**8 ≈ 2.8e12 tokens per prefix-year.

Uniqueness is the record store's job.  We insert, let the store reject a
duplicate, and retry with a fresh token.  No application-level lock is
needed, which keeps this correct with any number of API processes.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable

from cert_service.core.errors import DuplicateCertificateIdError, ExhaustionError
from cert_service.models.certificate import Certificate
from cert_service.repos.certificate_repo import CertificateRepo
from cert_service.services.store import call_store

logger = logging.getLogger(__name__)

ALPHABET = string.digits + string.ascii_uppercase  # base36
TOKEN_LENGTH = 8
MAX_ATTEMPTS = 5


def new_certificate_id(prefix: str, year: int, *, length: int = TOKEN_LENGTH) -> str:
    token = "".join(secrets.choice(ALPHABET) for _ in range(length))
    return f"{prefix}-{year:04d}-{token}"


async def mint_into(
    repo: CertificateRepo,
    build: Callable[[str], Certificate],
    *,
    prefix: str,
    year: int,
    max_attempts: int = MAX_ATTEMPTS,
    timeout: float | None = None,
) -> Certificate:
    """Mint an id, build the record around it, and insert it.

    ``build`` receives each candidate id and returns the record to store.
    Raises ExhaustionError after ``max_attempts`` consecutive collisions.
    """
    for attempt in range(1, max_attempts + 1):
        candidate = new_certificate_id(prefix, year)
        record = build(candidate)
        try:
            await call_store(repo.add(record), timeout=timeout)
        except DuplicateCertificateIdError:
            logger.warning(
                "Certificate id collision attempt=%d/%d", attempt, max_attempts
            )
            continue
        return record

    logger.error("Certificate id space exhausted after %d attempts", max_attempts)
    raise ExhaustionError(f"no free certificate id after {max_attempts} attempts")
