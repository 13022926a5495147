# welfare/services/workflows.py
"""
Approval workflows that end in money moving.

Each workflow runs in two steps:

1. The decision (interview result / committee approval and the application
   status change) commits on its own.
2. Disbursement records (beneficiary + pending Payment rows) are staged in a
   second transaction. A failure there is rolled back and logged; the decision
   stands. Step 2 is idempotent and can be replayed with
   materialize_disbursement().
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from welfare.errors import InvalidStateError, NotFoundError, StoreError, ValidationError, WelfareError
from welfare.extensions import db
from welfare.models import (
    APPLICATION_TRANSITIONS,
    INTERVIEW_RESULTS,
    Application,
    Beneficiary,
    Interview,
    Payment,
    can_transition,
    utcnow_naive,
)
from welfare.services.payments import create_disbursement_payments
from welfare.utils.parsers import parse_date, parse_money, pick


# ======================
# Helpers
# ======================
def _get_application(application_id: int) -> Application:
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application")
    return application


def _commit_or_rollback(action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise StoreError(action)


def normalize_timeline(timeline) -> list[dict]:
    """
    Validate a distribution timeline and return it in stored (JSON) form:
    [{"description": str, "amount": float, "expectedDate": "YYYY-MM-DD"}, ...]
    """
    if timeline is None:
        return []
    if not isinstance(timeline, list):
        raise ValidationError({"distributionTimeline": "Must be a list of phases."})

    errors: dict[str, str] = {}
    phases = []
    for index, phase in enumerate(timeline):
        field = f"distributionTimeline[{index}]"
        if not isinstance(phase, dict):
            errors[field] = "Must be an object."
            continue
        try:
            amount = parse_money(phase.get("amount"), f"{field}.amount")
            when = parse_date(pick(phase, "expectedDate", "expected_date"), f"{field}.expectedDate")
        except ValidationError as exc:
            errors.update(exc.errors)
            continue
        phases.append(
            {
                "description": (phase.get("description") or "").strip() or f"Phase {index + 1}",
                "amount": float(amount),
                "expectedDate": when.isoformat(),
            }
        )

    if errors:
        raise ValidationError(errors)
    return phases


def timeline_total(phases: list[dict]) -> Decimal:
    return sum((Decimal(str(p["amount"])) for p in phases), Decimal("0.00"))


def transition_application(application: Application, target: str) -> Application:
    """Status change through the transition table. Caller commits."""
    if not can_transition(application.status, target, APPLICATION_TRANSITIONS):
        raise InvalidStateError(
            f"Application cannot move from {application.status} to {target}.",
            current_status=application.status,
        )
    application.status = target
    return application


# ======================
# Disbursement (step 2)
# ======================
def ensure_beneficiary(application: Application) -> Beneficiary:
    """Link the application to a beneficiary, reusing one with the same phone. Caller commits."""
    if application.beneficiary is not None:
        return application.beneficiary

    beneficiary = Beneficiary.query.filter_by(phone=application.applicant_phone).first()
    if beneficiary is None:
        beneficiary = Beneficiary(
            name=application.applicant_name,
            phone=application.applicant_phone,
            state_id=application.state_id,
            district_id=application.district_id,
            area_id=application.area_id,
            unit_id=application.unit_id,
        )
        db.session.add(beneficiary)
        db.session.flush()
        current_app.logger.info(
            "Beneficiary %s created for application %s", beneficiary.id, application.application_number
        )

    application.beneficiary = beneficiary
    return beneficiary


def _stage_disbursement(application: Application, initiated_by_id: int | None) -> list[Payment]:
    ensure_beneficiary(application)
    return create_disbursement_payments(
        application,
        initiated_by_id=initiated_by_id,
        notes=f"Auto-created on approval of {application.application_number}",
    )


def _disburse_best_effort(application: Application, initiated_by_id: int | None) -> list[Payment]:
    try:
        payments = _stage_disbursement(application, initiated_by_id)
        db.session.commit()
    except (SQLAlchemyError, WelfareError):
        db.session.rollback()
        current_app.logger.warning(
            "Disbursement records for application %s were not created; the approval stands",
            application.id,
            exc_info=True,
        )
        return []

    current_app.logger.info(
        "Created %s disbursement payment(s) for application %s",
        len(payments),
        application.application_number,
    )
    return payments


def materialize_disbursement(application_id: int, *, initiated_by_id: int | None = None) -> list[Payment]:
    """Replay step 2 for an approved application. Existing rows are left alone."""
    application = _get_application(application_id)
    if application.status != "approved":
        raise InvalidStateError(
            "Only approved applications can be disbursed.", current_status=application.status
        )

    payments = _stage_disbursement(application, initiated_by_id)
    _commit_or_rollback("Create disbursement")
    return payments


# ======================
# Interview completion
# ======================
def complete_interview(
    interview_id: int,
    result: str,
    *,
    completed_by_id: int | None = None,
    notes: str | None = None,
    distribution_timeline=None,
    approved_amount=None,
) -> Interview:
    interview = db.session.get(Interview, interview_id)
    if interview is None:
        raise NotFoundError("Interview")

    result = (result or "").strip().lower()
    if result not in INTERVIEW_RESULTS:
        raise ValidationError({"result": f"Result must be one of: {', '.join(sorted(INTERVIEW_RESULTS))}."})

    if interview.status == "completed":
        # Re-entry only corrects the record; the decision itself is final.
        if interview.result != result:
            raise InvalidStateError(
                f"Interview already completed as {interview.result}.", current_status=interview.status
            )
        if notes is not None:
            interview.notes = notes
            _commit_or_rollback("Update interview")
        return interview

    if interview.status != "scheduled":
        raise InvalidStateError(f"Interview is {interview.status}.", current_status=interview.status)

    application = interview.application
    phases: list[dict] = []
    amount = None
    if result == "passed":
        # Validate the whole payload before touching either record.
        phases = normalize_timeline(distribution_timeline)
        if approved_amount is not None:
            amount = parse_money(approved_amount, "approvedAmount")
        elif phases:
            amount = timeline_total(phases)

    transition_application(application, "approved" if result == "passed" else "rejected")

    now = utcnow_naive()
    interview.status = "completed"
    interview.result = result
    interview.completed_at = now
    interview.completed_by_id = completed_by_id
    if notes is not None:
        interview.notes = notes

    if result == "passed":
        if phases:
            application.distribution_timeline = phases
        if amount is not None:
            application.approved_amount = amount
        application.approved_by_id = completed_by_id
        application.approved_at = now

    _commit_or_rollback("Complete interview")
    current_app.logger.info(
        "Interview %s completed (%s); application %s is %s",
        interview.id,
        result,
        application.application_number,
        application.status,
    )

    if result == "passed":
        _disburse_best_effort(application, completed_by_id)

    return interview


# ======================
# Committee
# ======================
def committee_approve(
    application_id: int,
    *,
    approved_by_id: int | None = None,
    approved_amount=None,
    distribution_timeline=None,
    comments: str | None = None,
) -> Application:
    application = _get_application(application_id)

    if application.status != "pending_committee_approval":
        raise InvalidStateError(
            "Application is not awaiting committee approval.", current_status=application.status
        )

    amount = parse_money(approved_amount, "approvedAmount")
    phases = normalize_timeline(distribution_timeline)
    if phases and timeline_total(phases) != amount:
        raise ValidationError(
            {"distributionTimeline": f"Phase amounts add up to {timeline_total(phases)}, expected {amount}."}
        )

    transition_application(application, "approved")
    application.approved_amount = amount
    application.approved_by_id = approved_by_id
    application.approved_at = utcnow_naive()
    application.review_comments = comments
    if phases:
        application.distribution_timeline = phases

    _commit_or_rollback("Committee approval")
    current_app.logger.info(
        "Application %s approved by committee (user %s)", application.application_number, approved_by_id
    )

    _disburse_best_effort(application, approved_by_id)
    return application


def committee_reject(application_id: int, *, rejected_by_id: int | None = None, comments: str | None = None) -> Application:
    application = _get_application(application_id)

    if application.status != "pending_committee_approval":
        raise InvalidStateError(
            "Application is not awaiting committee approval.", current_status=application.status
        )

    transition_application(application, "rejected")
    application.review_comments = comments
    _commit_or_rollback("Committee rejection")

    current_app.logger.info(
        "Application %s rejected by committee (user %s)", application.application_number, rejected_by_id
    )
    return application
