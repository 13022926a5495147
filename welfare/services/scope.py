# welfare/services/scope.py
"""
Scope resolution: which applications / payments / interviews an admin may touch.

Two questions:
  resolve_scope(user)        -> the user's concrete region/project/scheme sets
  can_access(user, record)   -> is this record inside that scope

Both fail closed. A missing user, an unknown role, an inactive account, a
malformed scope or a store failure all resolve to "no access"; only the global
roles (super_admin, state_admin) see everything. Nothing here raises: "can this
user see this" is a routine branch for the caller, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from welfare.constants.roles import COORDINATOR_ROLE_TARGETS, GLOBAL_ROLES, REGIONAL_ROLE_LEVELS, Role
from welfare.errors import StoreError
from welfare.extensions import db
from welfare.models import Region, User
from welfare.services.regions import descendant_ids


@dataclass(frozen=True)
class ScopeSet:
    region_ids: frozenset = field(default_factory=frozenset)
    project_ids: frozenset = field(default_factory=frozenset)
    scheme_ids: frozenset = field(default_factory=frozenset)
    is_global: bool = False

    @property
    def kind(self) -> str:
        if self.is_global:
            return "global"
        if self.region_ids:
            return "regions"
        if self.project_ids:
            return "projects"
        if self.scheme_ids:
            return "schemes"
        return "none"

    @property
    def is_empty(self) -> bool:
        return self.kind == "none"


GLOBAL_SCOPE = ScopeSet(is_global=True)
NO_SCOPE = ScopeSet()


# ======================
# Helpers
# ======================
def _role_of(user) -> Role | None:
    return Role.parse(getattr(user, "role", None))


def _ids(items) -> set:
    """Ids from a list of models or raw ids; silently drops junk."""
    out = set()
    for item in items or ():
        value = getattr(item, "id", item)
        if isinstance(value, int) and not isinstance(value, bool):
            out.add(value)
    return out


def _legacy_region_id(user, level: str):
    value = getattr(user, f"scope_{level}_id", None)
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _include_descendants(flag: bool | None) -> bool:
    if flag is not None:
        return flag
    return bool(current_app.config.get("REGION_SCOPE_INCLUDE_DESCENDANTS", False))


# ======================
# resolve_scope
# ======================
def resolve_scope(user, *, include_descendants: bool | None = None) -> ScopeSet:
    if user is None or not getattr(user, "is_active", False):
        return NO_SCOPE

    role = _role_of(user)
    if role is None:
        return NO_SCOPE

    if role in GLOBAL_ROLES:
        return GLOBAL_SCOPE

    try:
        if role in REGIONAL_ROLE_LEVELS:
            # Older accounts carry the single field, newer ones the list; honour both.
            region_ids = _ids(getattr(user, "scope_regions", None))
            legacy = _legacy_region_id(user, REGIONAL_ROLE_LEVELS[role])
            if legacy is not None:
                region_ids.add(legacy)

            if region_ids and _include_descendants(include_descendants):
                region_ids = descendant_ids(region_ids)

            return ScopeSet(region_ids=frozenset(region_ids))

        if role == Role.PROJECT_COORDINATOR:
            return ScopeSet(project_ids=frozenset(_ids(getattr(user, "scope_projects", None))))

        if role == Role.SCHEME_COORDINATOR:
            return ScopeSet(scheme_ids=frozenset(_ids(getattr(user, "scope_schemes", None))))

    except SQLAlchemyError:
        current_app.logger.exception("Scope resolution failed for user %s; denying", getattr(user, "id", None))
        return NO_SCOPE

    # beneficiary: no administrative scope
    return NO_SCOPE


# ======================
# can_access
# ======================
def can_access(user, record, *, scope: ScopeSet | None = None) -> bool:
    if record is None:
        return False

    scope = scope if scope is not None else resolve_scope(user)
    if scope.is_global:
        return True
    if scope.is_empty:
        return False

    role = _role_of(user)

    if role in REGIONAL_ROLE_LEVELS:
        level = REGIONAL_ROLE_LEVELS[role]
        record_region = getattr(record, f"{level}_id", None)
        return record_region is not None and record_region in scope.region_ids

    if role in COORDINATOR_ROLE_TARGETS:
        target = COORDINATOR_ROLE_TARGETS[role]
        record_ref = getattr(record, f"{target}_id", None)
        if record_ref is None:
            return False
        allowed = scope.project_ids if target == "project" else scope.scheme_ids
        return record_ref in allowed

    return False


# ======================
# scope_filter (list queries)
# ======================
def scope_filter(user, model, *, scope: ScopeSet | None = None):
    """
    SQLAlchemy criterion limiting `model` rows to the user's scope:

        Application.query.filter(scope_filter(current_user, Application))

    `model` must carry the denormalised *_id columns (Application,
    RecurringPayment, Beneficiary, ...).
    """
    scope = scope if scope is not None else resolve_scope(user)
    if scope.is_global:
        return sa.true()
    if scope.is_empty:
        return sa.false()

    role = _role_of(user)

    if role in REGIONAL_ROLE_LEVELS:
        level = REGIONAL_ROLE_LEVELS[role]
        column = getattr(model, f"{level}_id", None)
        if column is None or not scope.region_ids:
            return sa.false()
        return column.in_(scope.region_ids)

    if role in COORDINATOR_ROLE_TARGETS:
        target = COORDINATOR_ROLE_TARGETS[role]
        column = getattr(model, f"{target}_id", None)
        ids = scope.project_ids if target == "project" else scope.scheme_ids
        if column is None or not ids:
            return sa.false()
        return column.in_(ids)

    return sa.false()


# ======================
# Legacy scope normalisation
# ======================
def normalize_admin_scope(user: User) -> bool:
    """
    Copy a legacy single-field scope into the region list.
    Returns True when the user was changed. Caller commits.
    """
    role = _role_of(user)
    if role not in REGIONAL_ROLE_LEVELS:
        return False

    legacy = _legacy_region_id(user, REGIONAL_ROLE_LEVELS[role])
    if legacy is None or legacy in _ids(user.scope_regions):
        return False

    region = db.session.get(Region, legacy)
    if region is None:
        current_app.logger.warning("User %s points at missing region %s; left as is", user.id, legacy)
        return False

    user.scope_regions.append(region)
    return True


def normalize_all_admin_scopes() -> int:
    regional_roles = [r.value for r in REGIONAL_ROLE_LEVELS]
    changed = 0
    for user in User.query.filter(User.role.in_(regional_roles)).order_by(User.id).all():
        if normalize_admin_scope(user):
            changed += 1

    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Scope normalisation failed")
        raise StoreError("Scope normalisation")

    current_app.logger.info("Normalised admin scope for %s user(s)", changed)
    return changed
