from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity taken from a verified bearer token.

    Route handlers receive this through FastAPI dependencies instead of
    reading the token themselves.

        user_id: the token's ``sub`` claim (profile id)
        roles:   platform roles (student, instructor, admin)
    """

    user_id: str
    roles: frozenset[str]

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return "admin" in self.roles
