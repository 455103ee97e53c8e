from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

CallerRole = Literal["super_admin", "university_admin"]

ROLES: frozenset[str] = frozenset({"super_admin", "university_admin"})


@dataclass(frozen=True, slots=True)
class CallerContext:
    """Authenticated caller profile extracted from a validated bearer token.

    Passed explicitly into every lifecycle and scope operation instead
    of being read from ambient session state.

        user_id: subject from the identity provider
        role: super_admin | university_admin
        university_name / university_code: the caller's institution;
            None for super admins and for incomplete profiles
    """

    user_id: str
    role: CallerRole
    university_name: str | None = None
    university_code: str | None = None

    def is_super_admin(self) -> bool:
        return self.role == "super_admin"
