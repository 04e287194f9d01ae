from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel

from overtime.models.enums import Role

_EXACT_ROLES: dict[str, Role] = {
    "admin": Role.ADMIN,
    "hr": Role.HR,
    "plant-manager": Role.PLANT_MANAGER,
    "plant_manager": Role.PLANT_MANAGER,
    "external-overtime-user": Role.EXTERNAL_OVERTIME_USER,
}


def parse_roles(raw_roles: Iterable[str]) -> frozenset[Role]:
    """Map identity-provider role names onto the closed ``Role`` set.

    Department roles such as ``logistics-manager`` or ``group-leader`` collapse
    into ``MANAGER`` and ``LEADER``. Unknown roles are dropped.
    """
    roles: set[Role] = set()
    for raw in raw_roles:
        name = raw.strip().lower()
        if not name:
            continue
        if name in _EXACT_ROLES:
            roles.add(_EXACT_ROLES[name])
        elif "manager" in name:
            roles.add(Role.MANAGER)
        elif "leader" in name:
            roles.add(Role.LEADER)
    return frozenset(roles)


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    identity: str
    roles: frozenset[Role] = frozenset()

    def has(self, *roles: Role) -> bool:
        """True when the caller holds any of ``roles``."""
        return any(role in self.roles for role in roles)
