"""PostgreSQL implementation of CertificateRepo."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import Select, false, or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from cert_service.core.errors import DuplicateCertificateIdError, TransientError
from cert_service.db.tables import UNIQUE_CERTIFICATE_ID, CertificateRow
from cert_service.models.certificate import Certificate, CertificateStatus
from cert_service.models.scope import Scope

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _store_errors() -> AsyncIterator[None]:
    """Translate connection-level driver failures into TransientError.

    Driver messages can name hosts and tables; they go to the log, never
    into the raised error.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.warning("Certificate store unavailable: %s", e.__class__.__name__)
        raise TransientError("record store unavailable") from e


class PgCertificateRepo:
    """Satisfies the CertificateRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, certificate: Certificate) -> None:
        row = CertificateRow(
            id=certificate.id,
            certificate_id=certificate.certificate_id,
            student_name=certificate.student_name,
            student_id=certificate.student_id,
            degree=certificate.degree,
            field_of_study=certificate.field_of_study,
            university_name=certificate.university_name,
            university_code=certificate.university_code,
            graduation_date=certificate.graduation_date,
            gpa=certificate.gpa,
            honors=certificate.honors,
            status=certificate.status,
            issued_by=certificate.issued_by,
            issued_at=certificate.issued_at,
            updated_at=certificate.updated_at,
        )
        async with _store_errors():
            try:
                # SAVEPOINT so a unique-id conflict can be retried inside
                # the same request transaction.
                async with self._session.begin_nested():
                    self._session.add(row)
                    await self._session.flush()
            except IntegrityError as e:
                if UNIQUE_CERTIFICATE_ID in str(e.orig):
                    raise DuplicateCertificateIdError(
                        certificate.certificate_id
                    ) from None
                raise

    async def get_by_certificate_id(self, certificate_id: str) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.certificate_id == certificate_id
        )
        async with _store_errors():
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def mark_revoked(
        self, certificate_id: str, *, revoked_by: str, revoked_at: datetime
    ) -> Certificate | None:
        # Conditional on status so concurrent revokes have exactly one winner.
        stmt = (
            update(CertificateRow)
            .where(CertificateRow.certificate_id == certificate_id)
            .where(CertificateRow.status == "active")
            .values(
                status="revoked",
                revoked_by=revoked_by,
                revoked_at=revoked_at,
                updated_at=revoked_at,
            )
            .returning(CertificateRow)
            .execution_options(populate_existing=True)
        )
        async with _store_errors():
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def set_qr_payload(
        self, certificate_id: str, payload: str, *, updated_at: datetime
    ) -> None:
        stmt = (
            update(CertificateRow)
            .where(CertificateRow.certificate_id == certificate_id)
            .values(qr_payload=payload, updated_at=updated_at)
        )
        async with _store_errors():
            # Isolated in a SAVEPOINT: a failure here must not abort the
            # transaction that inserted the certificate.
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("certificate not found")

    async def list_scoped(
        self,
        scope: Scope,
        *,
        limit: int | None = None,
        offset: int = 0,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]:
        stmt = _scoped_select(scope, status).order_by(
            CertificateRow.issued_at.desc()
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with _store_errors():
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def search_scoped(
        self,
        scope: Scope,
        text: str,
        *,
        limit: int,
        status: CertificateStatus | None = None,
    ) -> list[Certificate]:
        pattern = f"%{_escape_like(text)}%"
        stmt = (
            _scoped_select(scope, status)
            .where(
                or_(
                    CertificateRow.student_name.ilike(pattern, escape="\\"),
                    CertificateRow.student_id.ilike(pattern, escape="\\"),
                    CertificateRow.certificate_id.ilike(pattern, escape="\\"),
                )
            )
            .order_by(CertificateRow.issued_at.desc())
            .limit(limit)
        )
        async with _store_errors():
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]


def _scoped_select(
    scope: Scope, status: CertificateStatus | None = None
) -> Select[tuple[CertificateRow]]:
    """Base query with the caller's scope already applied.

    Every listing and search starts from here, so status and text filters
    can only narrow an already-scoped set.
    """
    stmt = select(CertificateRow)
    if scope.deny_all:
        return stmt.where(false())
    if not scope.unrestricted:
        stmt = stmt.where(CertificateRow.university_code == scope.university_code)
    if status is not None:
        stmt = stmt.where(CertificateRow.status == status)
    return stmt


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        certificate_id=row.certificate_id,
        student_name=row.student_name,
        student_id=row.student_id,
        degree=row.degree,
        field_of_study=row.field_of_study,
        university_name=row.university_name,
        university_code=row.university_code,
        graduation_date=row.graduation_date,
        issued_by=row.issued_by,
        issued_at=row.issued_at,
        updated_at=row.updated_at,
        status=row.status,  # type: ignore[arg-type]
        gpa=row.gpa,
        honors=row.honors,
        revoked_by=row.revoked_by,
        revoked_at=row.revoked_at,
        qr_payload=row.qr_payload,
    )
