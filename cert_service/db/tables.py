"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in cert_service/models/.
Repos convert between SQLAlchemy rows and domain dataclasses.
"""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from cert_service.db.engine import Base

UNIQUE_CERTIFICATE_ID = "uq_certificates_certificate_id"


class CertificateRow(Base):
    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # The public identifier.  Uniqueness is enforced here, not in Python:
    # the minter retries when an insert hits this constraint.
    certificate_id: Mapped[str] = mapped_column(String(64), nullable=False)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_id: Mapped[str] = mapped_column(String(128), nullable=False)
    degree: Mapped[str] = mapped_column(String(255), nullable=False)
    field_of_study: Mapped[str] = mapped_column(String(255), nullable=False)
    university_name: Mapped[str] = mapped_column(String(255), nullable=False)
    university_code: Mapped[str] = mapped_column(String(10), nullable=False)
    graduation_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    gpa: Mapped[float | None] = mapped_column(Float, nullable=True)
    honors: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="active"
    )  # active|revoked|pending
    issued_by: Mapped[str] = mapped_column(String(255), nullable=False)
    issued_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    revoked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    revoked_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    qr_payload: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("certificate_id", name=UNIQUE_CERTIFICATE_ID),
        CheckConstraint(
            "status IN ('active', 'revoked', 'pending')", name="ck_certificates_status"
        ),
        CheckConstraint(
            "gpa IS NULL OR (gpa >= 0 AND gpa <= 4)", name="ck_certificates_gpa"
        ),
        Index(
            "ix_certificates_university_code_issued_at",
            "university_code",
            "issued_at",
        ),
    )
