# welfare/services/rbac.py
"""
Coarse-grained action permissions ("reports.create", "payments.process", ...).

This layer answers "may this user perform this kind of action at all". It is
independent of region scope; a request is authorised only when both this check
and scope.can_access pass (see utils/guards.py).
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from welfare.constants.permissions import PERMISSIONS, ROLE_CREATION_RULES, SYSTEM_ROLE_PERMISSIONS
from welfare.constants.roles import GLOBAL_ROLES, ROLES, Role
from welfare.errors import AccessDeniedError, NotFoundError, StoreError, ValidationError
from welfare.extensions import db
from welfare.models import Permission, RbacRole, User, UserRoleAssignment, utcnow_naive


def get_user_permissions(user_id: int, now: datetime | None = None) -> set[str]:
    now = now or utcnow_naive()

    assignments = (
        UserRoleAssignment.query.join(RbacRole, RbacRole.id == UserRoleAssignment.role_id)
        .filter(
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.is_active.is_(True),
            UserRoleAssignment.valid_from <= now,
            or_(UserRoleAssignment.valid_until.is_(None), UserRoleAssignment.valid_until > now),
            RbacRole.is_active.is_(True),
        )
        .all()
    )

    names: set[str] = set()
    for assignment in assignments:
        names.update(p.name for p in assignment.role.permissions)
    return names


def has_permission(user_id: int, permission_name: str, context: dict | None = None) -> bool:
    """
    context may carry "now" (datetime) to evaluate assignment validity at a
    point in time; anything else in it is informational.
    """
    context = context or {}
    if not permission_name:
        return False

    try:
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            return False

        if Role.parse(user.role) in GLOBAL_ROLES:
            return True

        return permission_name in get_user_permissions(user.id, now=context.get("now"))
    except SQLAlchemyError:
        current_app.logger.exception("Permission lookup failed for user %s", user_id)
        return False


def can_assign_role(assigner: User | None, role_name: str) -> bool:
    if assigner is None:
        return False
    allowed = ROLE_CREATION_RULES.get((assigner.role or "").strip().lower(), [])
    return role_name in allowed


def assign_role(
    user_id: int,
    role_name: str,
    *,
    assigned_by_id: int | None = None,
    valid_until: datetime | None = None,
    commit: bool = True,
) -> UserRoleAssignment:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User")

    role = RbacRole.query.filter_by(name=(role_name or "").strip().lower()).first()
    if role is None:
        raise ValidationError({"role": "Unknown role."})

    if assigned_by_id is not None:
        assigner = db.session.get(User, assigned_by_id)
        if not can_assign_role(assigner, role.name):
            current_app.logger.warning(
                "User %s tried to assign role %s to user %s", assigned_by_id, role.name, user_id
            )
            raise AccessDeniedError()

    assignment = UserRoleAssignment.query.filter_by(user_id=user.id, role_id=role.id).first()
    if assignment is None:
        assignment = UserRoleAssignment(user_id=user.id, role_id=role.id)
        db.session.add(assignment)

    assignment.is_active = True
    assignment.valid_from = utcnow_naive()
    assignment.valid_until = valid_until
    assignment.assigned_by_id = assigned_by_id
    assignment.assigned_at = utcnow_naive()

    if commit:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Assign role %s to user %s failed", role.name, user_id)
            raise StoreError("Assign role")

    return assignment


def seed_system_roles(*, commit: bool = True) -> dict[str, int]:
    """Create missing permissions and system roles. Safe to run repeatedly."""
    created = {"permissions": 0, "roles": 0}

    by_name = {p.name: p for p in Permission.query.all()}
    for name, (module, description) in PERMISSIONS.items():
        if name not in by_name:
            perm = Permission(name=name, module=module, description=description)
            db.session.add(perm)
            by_name[name] = perm
            created["permissions"] += 1

    for role_name, perm_names in SYSTEM_ROLE_PERMISSIONS.items():
        role = RbacRole.query.filter_by(name=role_name).first()
        if role is None:
            role = RbacRole(name=role_name, display_name=ROLES.get(role_name, role_name), is_system=True)
            db.session.add(role)
            created["roles"] += 1
        role.permissions = [by_name[n] for n in sorted(perm_names)]

    if commit:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Seeding RBAC catalogue failed")
            raise StoreError("Seed RBAC catalogue")

    current_app.logger.info(
        "RBAC catalogue seeded (%s new permissions, %s new roles)", created["permissions"], created["roles"]
    )
    return created
