from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol

from cert_service.core.errors import DuplicateCertificateIdError
from cert_service.models.certificate import Certificate, CertificateStatus
from cert_service.models.scope import Scope


class CertificateRepo(Protocol):
    async def add(self, certificate: Certificate) -> None: ...
    async def get_by_certificate_id(self, certificate_id: str) -> Certificate | None: ...
    async def mark_revoked(
        self, certificate_id: str, *, revoked_by: str, revoked_at: datetime
    ) -> Certificate | None: ...
    async def set_qr_payload(
        self, certificate_id: str, payload: str, *, updated_at: datetime
    ) -> None: ...
    async def list_scoped(
        self,
        scope: Scope,
        *,
        limit: int | None = None,
        offset: int = 0,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]: ...
    async def search_scoped(
        self,
        scope: Scope,
        text: str,
        *,
        limit: int,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]: ...


class InMemoryCertificateRepo:
    """Dict-backed store for dev and tests.

    Mirrors the database contract: certificate_id is unique, and
    mark_revoked only transitions rows that are currently active.
    """

    def __init__(self) -> None:
        self._by_certificate_id: dict[str, Certificate] = {}

    async def add(self, certificate: Certificate) -> None:
        if certificate.certificate_id in self._by_certificate_id:
            raise DuplicateCertificateIdError(certificate.certificate_id)
        self._by_certificate_id[certificate.certificate_id] = certificate

    async def get_by_certificate_id(self, certificate_id: str) -> Certificate | None:
        return self._by_certificate_id.get(certificate_id)

    async def mark_revoked(
        self, certificate_id: str, *, revoked_by: str, revoked_at: datetime
    ) -> Certificate | None:
        c = self._by_certificate_id.get(certificate_id)
        if c is None or c.status != "active":
            return None

        updated = replace(
            c,
            status="revoked",
            revoked_by=revoked_by,
            revoked_at=revoked_at,
            updated_at=revoked_at,
        )
        self._by_certificate_id[certificate_id] = updated
        return updated

    async def set_qr_payload(
        self, certificate_id: str, payload: str, *, updated_at: datetime
    ) -> None:
        c = self._by_certificate_id.get(certificate_id)
        if c is None:
            raise KeyError("certificate not found")
        self._by_certificate_id[certificate_id] = replace(
            c, qr_payload=payload, updated_at=updated_at
        )

    async def list_scoped(
        self,
        scope: Scope,
        *,
        limit: int | None = None,
        offset: int = 0,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]:
        visible = self._visible(scope, status)
        end = None if limit is None else offset + limit
        return visible[offset:end]

    async def search_scoped(
        self,
        scope: Scope,
        text: str,
        *,
        limit: int,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]:
        needle = text.lower()
        # Scope first, then status, then text.
        visible = self._visible(scope, status)
        hits = [
            c
            for c in visible
            if needle in c.student_name.lower()
            or needle in c.student_id.lower()
            or needle in c.certificate_id.lower()
        ]
        return hits[:limit]

    def _visible(
        self, scope: Scope, status: CertificateStatus | None
    ) -> list[Certificate]:
        return [
            c
            for c in self._newest_first()
            if scope.matches(c) and (status is None or c.status == status)
        ]

    def _newest_first(self) -> list[Certificate]:
        return sorted(
            self._by_certificate_id.values(),
            key=lambda c: c.issued_at,
            reverse=True,
        )
