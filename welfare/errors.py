# welfare/errors.py
"""
Error taxonomy shared by the services.

Every error is a werkzeug HTTPException, so a view (or the JSON handlers
registered in the app factory) can let it propagate and Flask answers with
the right status code.

- ValidationError    400  bad input shape/range, carries field -> message
- NotFoundError      404  unknown id (message never says why)
- InvalidStateError  409  operation not legal for the current status
- AccessDeniedError  403  scope/permission failure (never names the permission)
- StoreError         500  persistence failure, safe for the caller to retry
"""

from __future__ import annotations

from werkzeug.exceptions import BadRequest, Conflict, Forbidden, InternalServerError, NotFound


class WelfareError(Exception):
    """Marker base for domain errors."""

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.description}


class ValidationError(WelfareError, BadRequest):
    def __init__(self, errors: dict[str, str] | str):
        if isinstance(errors, str):
            errors = {"__all__": errors}
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(description=summary or "Invalid input.")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NotFoundError(WelfareError, NotFound):
    def __init__(self, what: str = "Record"):
        self.what = what
        super().__init__(description=f"{what} not found.")


class InvalidStateError(WelfareError, Conflict):
    def __init__(self, message: str, current_status: str | None = None):
        self.current_status = current_status
        super().__init__(description=message)


class AccessDeniedError(WelfareError, Forbidden):
    def __init__(self):
        super().__init__(description="Access denied.")


class StoreError(WelfareError, InternalServerError):
    def __init__(self, action: str = "Operation"):
        self.action = action
        super().__init__(description=f"{action} failed. Please try again.")
