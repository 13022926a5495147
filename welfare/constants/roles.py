# welfare/constants/roles.py
from __future__ import annotations

import enum


class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    STATE_ADMIN = "state_admin"
    DISTRICT_ADMIN = "district_admin"
    AREA_ADMIN = "area_admin"
    UNIT_ADMIN = "unit_admin"
    PROJECT_COORDINATOR = "project_coordinator"
    SCHEME_COORDINATOR = "scheme_coordinator"
    BENEFICIARY = "beneficiary"

    @classmethod
    def parse(cls, value) -> "Role | None":
        """Lenient lookup: accepts Role, 'Unit_Admin', ' unit_admin ', None."""
        if isinstance(value, cls):
            return value
        key = (str(value or "")).strip().lower()
        try:
            return cls(key)
        except ValueError:
            return None


# Display labels
ROLES = {
    Role.SUPER_ADMIN.value: "Super Admin",
    Role.STATE_ADMIN.value: "State Admin",
    Role.DISTRICT_ADMIN.value: "District Admin",
    Role.AREA_ADMIN.value: "Area Admin",
    Role.UNIT_ADMIN.value: "Unit Admin",
    Role.PROJECT_COORDINATOR.value: "Project Coordinator",
    Role.SCHEME_COORDINATOR.value: "Scheme Coordinator",
    Role.BENEFICIARY.value: "Beneficiary",
}

# Implicitly "all regions"; the region list is never consulted.
GLOBAL_ROLES = frozenset({Role.SUPER_ADMIN, Role.STATE_ADMIN})

# role -> the region level its scope is expressed at
REGIONAL_ROLE_LEVELS = {
    Role.DISTRICT_ADMIN: "district",
    Role.AREA_ADMIN: "area",
    Role.UNIT_ADMIN: "unit",
}

# role -> the record attribute its scope is expressed on
COORDINATOR_ROLE_TARGETS = {
    Role.PROJECT_COORDINATOR: "project",
    Role.SCHEME_COORDINATOR: "scheme",
}
