from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Public view of an active certificate.

    This is the complete disclosure allow-list.  Student ids, the
    institution code, internal ids and issuer identity have no field
    here, so they cannot leak through a verification response.
    """

    certificate_id: str
    student_name: str
    degree: str
    field_of_study: str
    university_name: str
    graduation_date: date
    issued_at: datetime
    gpa: float | None = None
    honors: str | None = None
    status: Literal["valid"] = "valid"
