# welfare/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import abort, current_app
from flask_login import current_user, login_required

from welfare.constants.roles import Role
from welfare.services.rbac import has_permission
from welfare.services.scope import can_access


def _deny(reason: str, *args) -> None:
    # The response stays generic; the log keeps the detail.
    current_app.logger.warning("Access denied for user %s: " + reason, getattr(current_user, "id", None), *args)
    abort(403)


def role_required(*allowed_roles: Role | str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Generic role gate:
        @role_required(Role.SUPER_ADMIN, Role.STATE_ADMIN)
        def view(): ...
    """
    allowed = {Role.parse(r) for r in allowed_roles} - {None}

    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if not getattr(current_user, "is_active", False) or Role.parse(current_user.role) not in allowed:
                _deny("role %s not in %s", getattr(current_user, "role", None), sorted(r.value for r in allowed))
            return view(*args, **kwargs)
        return wrapped
    return decorator


def permission_required(permission_name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Coarse action check only. Use scoped_permission_required for record views."""
    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if not has_permission(current_user.id, permission_name):
                _deny("missing permission %s", permission_name)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def scoped_permission_required(
    permission_name: str,
    load_record: Callable[..., Any],
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Permission first, then region/programme scope of the target record:

        @scoped_permission_required("payments.process", lambda payment_id: RecurringPayment.query.get(payment_id))
        def record(payment_id, record): ...

    load_record receives the view kwargs. The loaded record is passed to the
    view as `record`. A missing record is a 404, an out-of-scope one a 403.
    """
    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if not has_permission(current_user.id, permission_name):
                _deny("missing permission %s", permission_name)

            record = load_record(**kwargs)
            if record is None:
                abort(404)
            if not can_access(current_user, record):
                _deny("record %s outside scope", getattr(record, "id", None))

            return view(*args, record=record, **kwargs)
        return wrapped
    return decorator
