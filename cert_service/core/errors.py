"""Domain error taxonomy.

Services raise these; routers translate them into HTTP responses.
None of them carries store-specific error text, so a message can be
shown to an unauthenticated caller without leaking internals.
"""

from __future__ import annotations


class CertificateError(Exception):
    """Base class for every domain error raised by cert-service."""


class ValidationError(CertificateError):
    """Issue input broke one or more rules.

    Carries every violation, not just the first, so a form can show
    them all at once.
    """

    def __init__(self, violations: list[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = list(violations)


class InvalidInput(CertificateError):
    """A certificate identifier was empty or malformed."""


class NotFound(CertificateError):
    """No visible certificate matches.

    Deliberately ambiguous: raised for ids that never existed, ids that
    are no longer active (on verification) and ids outside the caller's
    scope.
    """


class TransientError(CertificateError):
    """The record store is unreachable or timed out. Safe to retry."""


class ExhaustionError(CertificateError):
    """Repeated identifier collisions; the id space is too small."""


class AuthorizationError(CertificateError):
    """The caller lacks rights for this operation."""


class TransitionError(CertificateError):
    """No lifecycle transition is defined from the record's state."""


class DuplicateCertificateIdError(CertificateError):
    """The store rejected an insert because the certificate_id exists."""
