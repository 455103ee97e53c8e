from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal
from uuid import UUID, uuid4

CertificateStatus = Literal["active", "revoked", "pending"]

# Degree titles accepted at issuance.  Stored as plain text so the
# vocabulary can grow without a schema change.
DEGREES: tuple[str, ...] = (
    "Bachelor of Science",
    "Bachelor of Arts",
    "Bachelor of Engineering",
    "Master of Science",
    "Master of Arts",
    "Master of Business Administration",
    "Doctor of Philosophy",
    "Doctor of Medicine",
    "Doctor of Engineering",
)


@dataclass(frozen=True, slots=True)
class CertificateDraft:
    """Issue input as submitted by an institution admin.

    Fields are kept loosely typed (graduation_date and gpa may still be
    strings) because validation reports every problem at once rather than
    failing on the first unparseable value.  University fields are absent
    on purpose: they come from the caller, never from the request.
    """

    student_name: str
    student_id: str
    degree: str
    field_of_study: str
    graduation_date: date | str | None
    gpa: float | str | None = None
    honors: str | None = None


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued academic certificate."""

    id: UUID
    certificate_id: str
    student_name: str
    student_id: str
    degree: str
    field_of_study: str
    university_name: str
    university_code: str
    graduation_date: date
    issued_by: str
    issued_at: datetime
    updated_at: datetime
    status: CertificateStatus = "active"
    gpa: float | None = None
    honors: str | None = None
    revoked_by: str | None = None
    revoked_at: datetime | None = None
    qr_payload: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @staticmethod
    def new(
        *,
        certificate_id: str,
        student_name: str,
        student_id: str,
        degree: str,
        field_of_study: str,
        university_name: str,
        university_code: str,
        graduation_date: date,
        issued_by: str,
        issued_at: datetime,
        gpa: float | None = None,
        honors: str | None = None,
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            certificate_id=certificate_id,
            student_name=student_name,
            student_id=student_id,
            degree=degree,
            field_of_study=field_of_study,
            university_name=university_name,
            university_code=university_code,
            graduation_date=graduation_date,
            issued_by=issued_by,
            issued_at=issued_at,
            updated_at=issued_at,
            status="active",
            gpa=gpa,
            honors=honors,
        )
