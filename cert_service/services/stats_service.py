"""Issuance statistics over a caller's visible certificates.

Pure functions: the router loads the scoped records and hands them in.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from cert_service.models.certificate import Certificate

TOP_DEGREES = 5
MONTHS_SHOWN = 6


@dataclass(frozen=True, slots=True)
class CertificateStats:
    total: int = 0
    active: int = 0
    revoked: int = 0
    pending: int = 0
    unique_students: int = 0
    this_month: int = 0
    by_degree: list[tuple[str, int]] = field(default_factory=list)
    monthly: list[tuple[str, int]] = field(default_factory=list)


def summarize(records: Iterable[Certificate], *, today: date) -> CertificateStats:
    records = list(records)
    by_status = Counter(c.status for c in records)
    by_degree = Counter(c.degree for c in records)
    by_month = Counter(c.issued_at.strftime("%Y-%m") for c in records)

    this_month = sum(
        1
        for c in records
        if c.issued_at.year == today.year and c.issued_at.month == today.month
    )

    # "YYYY-MM" sorts chronologically as text.
    monthly = sorted(by_month.items())[-MONTHS_SHOWN:]

    return CertificateStats(
        total=len(records),
        active=by_status.get("active", 0),
        revoked=by_status.get("revoked", 0),
        pending=by_status.get("pending", 0),
        unique_students=len({c.student_id for c in records}),
        this_month=this_month,
        by_degree=by_degree.most_common(TOP_DEGREES),
        monthly=monthly,
    )
