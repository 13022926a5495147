# welfare/constants/permissions.py
from __future__ import annotations

from .roles import Role

# name -> (module, description)
PERMISSIONS = {
    "applications.read": ("applications", "View applications in scope"),
    "applications.update": ("applications", "Update applications in scope"),
    "applications.approve": ("applications", "Approve or reject applications"),
    "interviews.read": ("interviews", "View interviews in scope"),
    "interviews.complete": ("interviews", "Record interview results"),
    "payments.read": ("payments", "View payments in scope"),
    "payments.process": ("payments", "Record disbursements"),
    "recurring_payments.read": ("recurring_payments", "View installment schedules"),
    "recurring_payments.create": ("recurring_payments", "Generate installment schedules"),
    "recurring_payments.update": ("recurring_payments", "Reschedule or amend installments"),
    "recurring_payments.cancel": ("recurring_payments", "Cancel or skip installments"),
    "budget.read": ("budget", "View the disbursement forecast"),
    "regions.manage": ("regions", "Create and deactivate regions"),
    "users.manage": ("users", "Create users and assign roles"),
    "reports.create": ("reports", "Create reports"),
}

_READ_ONLY = {
    "applications.read",
    "interviews.read",
    "payments.read",
    "recurring_payments.read",
    "budget.read",
}

_REGIONAL_ADMIN = _READ_ONLY | {
    "applications.update",
    "interviews.complete",
    "payments.process",
    "recurring_payments.update",
    "reports.create",
}

# System role catalogue seeded into the RBAC tables.
# Global roles are not listed: they hold every permission implicitly.
SYSTEM_ROLE_PERMISSIONS = {
    Role.DISTRICT_ADMIN.value: _REGIONAL_ADMIN
    | {
        "applications.approve",
        "recurring_payments.create",
        "recurring_payments.cancel",
        "regions.manage",
        "users.manage",
    },
    Role.AREA_ADMIN.value: _REGIONAL_ADMIN | {"applications.approve", "users.manage"},
    Role.UNIT_ADMIN.value: set(_REGIONAL_ADMIN),
    Role.PROJECT_COORDINATOR.value: _READ_ONLY | {"reports.create"},
    Role.SCHEME_COORDINATOR.value: _READ_ONLY | {"reports.create"},
    Role.BENEFICIARY.value: set(),
}

# Which roles a user may hand out (role assignment is top-down only).
ROLE_CREATION_RULES = {
    Role.SUPER_ADMIN.value: [r.value for r in Role],
    Role.STATE_ADMIN.value: [
        Role.DISTRICT_ADMIN.value,
        Role.AREA_ADMIN.value,
        Role.UNIT_ADMIN.value,
        Role.PROJECT_COORDINATOR.value,
        Role.SCHEME_COORDINATOR.value,
        Role.BENEFICIARY.value,
    ],
    Role.DISTRICT_ADMIN.value: [Role.AREA_ADMIN.value, Role.UNIT_ADMIN.value, Role.BENEFICIARY.value],
    Role.AREA_ADMIN.value: [Role.UNIT_ADMIN.value, Role.BENEFICIARY.value],
    Role.UNIT_ADMIN.value: [Role.BENEFICIARY.value],
}
