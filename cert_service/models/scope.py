from __future__ import annotations

from dataclasses import dataclass

from cert_service.models.certificate import Certificate


@dataclass(frozen=True, slots=True)
class Scope:
    """A caller's visibility, in a form both Python and SQL can apply.

    university_code=None with deny_all=False means unrestricted.
    """

    university_code: str | None = None
    deny_all: bool = False

    @property
    def unrestricted(self) -> bool:
        return self.university_code is None and not self.deny_all

    def matches(self, record: Certificate) -> bool:
        if self.deny_all:
            return False
        if self.university_code is None:
            return True
        return record.university_code == self.university_code
