"""Issue-input validation.

Every rule runs on every call and all violations are collected, so an
admin fixing a form sees the whole list in one round trip.  Nothing is
written until the list is empty.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date

from cert_service.core.errors import ValidationError
from cert_service.models.caller import CallerContext
from cert_service.models.certificate import DEGREES, CertificateDraft

_NAME_RE = re.compile(r"^[A-Za-z \-'.]+$")
_STUDENT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_UNIVERSITY_CODE_RE = re.compile(r"^[A-Z0-9]{1,10}$")

MAX_NAME_LENGTH = 255
MAX_STUDENT_ID_LENGTH = 128


@dataclass(frozen=True, slots=True)
class CleanIssue:
    """Validated, normalized issue input plus the caller's institution."""

    student_name: str
    student_id: str
    degree: str
    field_of_study: str
    graduation_date: date
    university_name: str
    university_code: str
    gpa: float | None
    honors: str | None


def _parse_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValueError(text) from None


def _parse_gpa(value: float | str | None) -> float | None:
    if value is None:
        return None
    if isinstance(value, float | int):
        return float(value)
    text = value.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        raise ValueError(text) from None


def validate_issue(
    draft: CertificateDraft, caller: CallerContext, *, today: date
) -> CleanIssue:
    """Check ``draft`` against every issuance rule.

    Raises ValidationError listing all violations.  ``today`` is the
    issuance date; a graduation on that same day is accepted.
    """
    errors: list[str] = []

    student_name = (draft.student_name or "").strip()
    student_id = (draft.student_id or "").strip()
    degree = (draft.degree or "").strip()
    field_of_study = (draft.field_of_study or "").strip()
    honors = (draft.honors or "").strip() or None

    if not student_name:
        errors.append("Student name is required")
    elif not _NAME_RE.match(student_name):
        errors.append("Student name contains invalid characters")
    elif len(student_name) > MAX_NAME_LENGTH:
        errors.append(f"Student name must be at most {MAX_NAME_LENGTH} characters")

    if not student_id:
        errors.append("Student ID is required")
    elif not _STUDENT_ID_RE.match(student_id):
        errors.append("Student ID contains invalid characters")
    elif len(student_id) > MAX_STUDENT_ID_LENGTH:
        errors.append(f"Student ID must be at most {MAX_STUDENT_ID_LENGTH} characters")

    if not degree:
        errors.append("Degree is required")
    elif degree not in DEGREES:
        errors.append("Degree is not a recognized degree title")

    if not field_of_study:
        errors.append("Field of study is required")
    elif len(field_of_study) > MAX_NAME_LENGTH:
        errors.append(f"Field of study must be at most {MAX_NAME_LENGTH} characters")

    graduation_date: date | None = None
    try:
        graduation_date = _parse_date(draft.graduation_date)
    except ValueError:
        errors.append("Graduation date must be a date in YYYY-MM-DD format")
    else:
        if graduation_date is None:
            errors.append("Graduation date is required")
        elif graduation_date > today:
            errors.append("Graduation date cannot be in the future")

    gpa: float | None = None
    try:
        gpa = _parse_gpa(draft.gpa)
    except ValueError:
        errors.append("GPA must be a number")
    else:
        if gpa is not None and (not math.isfinite(gpa) or gpa < 0 or gpa > 4):
            errors.append("GPA must be a number between 0 and 4")

    university_name = (caller.university_name or "").strip()
    university_code = (caller.university_code or "").strip()
    if not university_name or not university_code:
        errors.append("Institution profile is incomplete")
    elif not _UNIVERSITY_CODE_RE.match(university_code):
        errors.append(
            "Institution code must be uppercase letters or digits, at most 10"
        )

    # graduation_date is only None when a violation was already recorded.
    if errors or graduation_date is None:
        raise ValidationError(errors)

    return CleanIssue(
        student_name=student_name,
        student_id=student_id,
        degree=degree,
        field_of_study=field_of_study,
        graduation_date=graduation_date,
        university_name=university_name,
        university_code=university_code,
        gpa=gpa,
        honors=honors,
    )
