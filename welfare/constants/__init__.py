from .roles import (
    COORDINATOR_ROLE_TARGETS,
    GLOBAL_ROLES,
    REGIONAL_ROLE_LEVELS,
    ROLES,
    Role,
)
from .permissions import PERMISSIONS, ROLE_CREATION_RULES, SYSTEM_ROLE_PERMISSIONS

__all__ = [
    "COORDINATOR_ROLE_TARGETS",
    "GLOBAL_ROLES",
    "PERMISSIONS",
    "REGIONAL_ROLE_LEVELS",
    "ROLES",
    "ROLE_CREATION_RULES",
    "Role",
    "SYSTEM_ROLE_PERMISSIONS",
]
