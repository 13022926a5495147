# welfare/services/recurring_payments.py
"""
Recurring disbursement plans.

A plan is one RecurringSchedule header plus N RecurringPayment rows, created
together in a single transaction. Each row then moves on its own:

    scheduled -> due -> overdue -> (processing) -> completed
                                   +-> failed / skipped / cancelled

Completed, failed, skipped and cancelled rows are frozen. The only backwards
move is an explicit reschedule of a due/overdue row to a future date.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal

import sqlalchemy as sa
from dateutil.relativedelta import relativedelta
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from welfare.errors import InvalidStateError, NotFoundError, StoreError, ValidationError
from welfare.extensions import db
from welfare.models import (
    PAYMENT_METHODS,
    RECURRING_PAYMENT_TERMINAL,
    RECURRING_PAYMENT_TRANSITIONS,
    RECURRING_PERIOD_MONTHS,
    SCHEDULABLE_APPLICATION_STATUSES,
    SCHEDULE_STATUSES,
    Application,
    Payment,
    RecurringPayment,
    RecurringSchedule,
    can_transition,
    utcnow_naive,
)
from welfare.services.payments import next_payment_number
from welfare.services.scope import scope_filter
from welfare.utils.parsers import parse_date, parse_int, parse_money, pick

# Rows still owed to the beneficiary.
PENDING_STATUSES = ("scheduled", "due", "overdue", "processing")

# Region/programme columns a caller may filter on.
FILTER_COLUMNS = ("application_id", "scheme_id", "project_id", "state_id", "district_id", "area_id", "unit_id")

MAX_FORECAST_MONTHS = 120


# ======================
# Helpers
# ======================
def _today(today: date | None) -> date:
    return today or utcnow_naive().date()


def _clean_str(value) -> str:
    return "" if value is None else str(value).strip()


def _get_payment(payment_id: int) -> RecurringPayment:
    rp = db.session.get(RecurringPayment, payment_id)
    if rp is None:
        raise NotFoundError("Payment")
    return rp


def _commit(action: str) -> None:
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise InvalidStateError("Payment was changed by another request. Reload and try again.")
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise StoreError(action)


def _apply_filters(query, filters: dict | None, model=RecurringPayment):
    filters = filters or {}
    for name in FILTER_COLUMNS:
        value = filters.get(name)
        if value is not None:
            column = model.id if name == "application_id" and model is Application else getattr(model, name)
            query = query.filter(column == value)

    # Requesting admin: restrict to their scope.
    user = filters.get("user")
    if user is not None:
        query = query.filter(scope_filter(user, model))
    return query


def _refresh_schedule(schedule: RecurringSchedule, paid_on: date | None = None) -> None:
    """Recompute header counters from the rows. Reads the identity map, no query."""
    pending = [p for p in schedule.payments if p.status in PENDING_STATUSES]
    schedule.completed_payments = sum(1 for p in schedule.payments if p.status == "completed")
    schedule.next_payment_date = min((p.scheduled_date for p in pending), default=None)
    if paid_on is not None:
        schedule.last_payment_date = max(filter(None, [schedule.last_payment_date, paid_on]))
    if not pending and schedule.status == "active":
        schedule.status = "completed"


def _describe_status_error(rp: RecurringPayment, verb: str) -> InvalidStateError:
    return InvalidStateError(f"Cannot {verb} a payment that is {rp.status}.", current_status=rp.status)


# ======================
# Schedule generation
# ======================
def _read_config(config: dict, *, has_timeline: bool) -> dict:
    """Validate the plan config. Collects every field error before raising."""
    config = config or {}
    errors: dict[str, str] = {}
    plan: dict = {}

    period = _clean_str(pick(config, "period")).lower()
    if period not in RECURRING_PERIOD_MONTHS:
        errors["period"] = f"Period must be one of: {', '.join(RECURRING_PERIOD_MONTHS)}."
    plan["period"] = period

    max_installments = current_app.config.get("MAX_INSTALLMENTS", 60)
    try:
        plan["count"] = parse_int(
            pick(config, "numberOfPayments", "number_of_payments"),
            "numberOfPayments",
            minimum=1,
            maximum=max_installments,
        )
    except ValidationError as exc:
        errors.update(exc.errors)

    raw_amount = pick(config, "amountPerPayment", "amount_per_payment")
    plan["amount"] = None
    if raw_amount is not None or not has_timeline:
        try:
            plan["amount"] = parse_money(raw_amount, "amountPerPayment")
        except ValidationError as exc:
            errors.update(exc.errors)

    try:
        plan["start"] = parse_date(pick(config, "startDate", "start_date"), "startDate")
    except ValidationError as exc:
        errors.update(exc.errors)

    custom: dict[int, dict] = {}
    for index, item in enumerate(pick(config, "customAmounts", "custom_amounts", default=None) or []):
        field = f"customAmounts[{index}]"
        if not isinstance(item, dict):
            errors[field] = "Must be an object."
            continue
        try:
            number = parse_int(pick(item, "paymentNumber", "payment_number"), f"{field}.paymentNumber", minimum=1)
            custom[number] = {
                "amount": parse_money(item.get("amount"), f"{field}.amount"),
                "description": _clean_str(item.get("description")) or None,
            }
        except ValidationError as exc:
            errors.update(exc.errors)
    plan["custom"] = custom

    if errors:
        raise ValidationError(errors)

    out_of_range = sorted(n for n in custom if n > plan["count"])
    if out_of_range and not has_timeline:
        raise ValidationError({"customAmounts": f"Payment number {out_of_range[0]} is beyond numberOfPayments."})

    return plan


def _read_timeline(timeline: list) -> list[dict]:
    errors: dict[str, str] = {}
    phases = []
    for index, phase in enumerate(timeline or []):
        field = f"distributionTimeline[{index}]"
        if not isinstance(phase, dict):
            errors[field] = "Must be an object."
            continue
        try:
            phases.append(
                {
                    "description": _clean_str(phase.get("description")) or f"Phase {index + 1}",
                    "amount": parse_money(phase.get("amount"), f"{field}.amount"),
                    "date": parse_date(pick(phase, "expectedDate", "expected_date"), f"{field}.expectedDate"),
                }
            )
        except ValidationError as exc:
            errors.update(exc.errors)
    if errors:
        raise ValidationError(errors)
    return phases


def _uniform_rows(plan: dict) -> list[dict]:
    months = RECURRING_PERIOD_MONTHS[plan["period"]]
    count = plan["count"]
    rows = []
    for i in range(count):
        number = i + 1
        # Offset from the start date, not the previous row: Jan 31 -> Feb 29 -> Mar 31.
        when = plan["start"] + relativedelta(months=months * i)
        custom = plan["custom"].get(number, {})
        rows.append(
            {
                "payment_number": number,
                "scheduled_date": when,
                "amount": custom.get("amount") or plan["amount"],
                "description": custom.get("description")
                or f"Payment {number} of {count} ({plan['period'].replace('_', '-')})",
            }
        )
    return rows


def _timeline_rows(plan: dict, phases: list[dict]) -> list[dict]:
    months = RECURRING_PERIOD_MONTHS[plan["period"]]
    cycles = plan["count"]
    rows = []
    for cycle in range(cycles):
        shift = relativedelta(months=months * cycle)
        for p_index, phase in enumerate(phases):
            row = {
                "payment_number": len(rows) + 1,
                "scheduled_date": phase["date"] + shift,
                "amount": phase["amount"],
                "description": phase["description"],
            }
            if cycles > 1:
                row.update(
                    cycle_number=cycle + 1,
                    total_cycles=cycles,
                    phase_number=p_index + 1,
                    total_phases=len(phases),
                    description=f"Cycle {cycle + 1}/{cycles} - {phase['description']}",
                )
            rows.append(row)
    return rows


def generate_schedule(application_id: int, config: dict, *, created_by_id: int | None = None) -> list[RecurringPayment]:
    """
    Materialise a disbursement plan for an approved application.

    config: period, numberOfPayments, amountPerPayment, startDate and
    optional customAmounts [{paymentNumber, amount, description}].

    When the application carries a distribution timeline, its phases replace
    the uniform cadence; numberOfPayments then counts cycles of those phases.
    """
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application")

    timeline = list(application.distribution_timeline or [])
    plan = _read_config(config, has_timeline=bool(timeline))

    if application.status not in SCHEDULABLE_APPLICATION_STATUSES:
        raise InvalidStateError(
            f"Only approved applications can be scheduled (status is {application.status}).",
            current_status=application.status,
        )

    active = RecurringSchedule.query.filter_by(application_id=application.id, status="active").first()
    if active is not None:
        raise InvalidStateError("This application already has an active payment schedule.")

    rows = _timeline_rows(plan, _read_timeline(timeline)) if timeline else _uniform_rows(plan)
    if len(rows) > current_app.config.get("MAX_INSTALLMENTS", 60):
        raise ValidationError({"numberOfPayments": "Too many installments for this timeline."})

    currency = current_app.config.get("DEFAULT_CURRENCY", "INR")
    schedule = RecurringSchedule(
        application_id=application.id,
        period=plan["period"],
        number_of_payments=len(rows),
        amount_per_payment=plan["amount"],
        start_date=plan["start"],
        status="active",
        completed_payments=0,
        next_payment_date=min(r["scheduled_date"] for r in rows),
        created_by_id=created_by_id,
    )
    db.session.add(schedule)

    payments = []
    for row in rows:
        rp = RecurringPayment(
            schedule=schedule,
            application_id=application.id,
            beneficiary_id=application.beneficiary_id,
            scheme_id=application.scheme_id,
            project_id=application.project_id,
            state_id=application.state_id,
            district_id=application.district_id,
            area_id=application.area_id,
            unit_id=application.unit_id,
            total_payments=len(rows),
            due_date=row["scheduled_date"],
            currency=currency,
            status="scheduled",
            created_by_id=created_by_id,
            **row,
        )
        db.session.add(rp)
        payments.append(rp)

    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race against a concurrent generate for the same application.
        db.session.rollback()
        raise InvalidStateError("This application already has an active payment schedule.")
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Generate schedule for application %s failed", application_id)
        raise StoreError("Generate schedule")

    current_app.logger.info(
        "Generated %s %s payment(s) for application %s",
        len(payments),
        plan["period"],
        application.application_number,
    )
    return payments


# ======================
# Recording payments
# ======================
def record_payment(payment_id: int, data: dict, *, processed_by_id: int | None = None) -> RecurringPayment:
    """
    data: method (required), amount, transactionReference, paymentDate, notes.

    amount overrides what was actually paid (paid_amount); the scheduled
    amount stays as the original obligation.
    """
    rp = _get_payment(payment_id)
    data = data or {}

    if not can_transition(rp.status, "completed", RECURRING_PAYMENT_TRANSITIONS):
        raise _describe_status_error(rp, "record")

    errors: dict[str, str] = {}
    method = _clean_str(pick(data, "method", "paymentMethod", "payment_method")).lower()
    if method not in PAYMENT_METHODS:
        errors["method"] = f"Method must be one of: {', '.join(sorted(PAYMENT_METHODS))}."

    paid_amount = rp.amount
    raw_amount = pick(data, "amount")
    if raw_amount is not None:
        try:
            paid_amount = parse_money(raw_amount, "amount")
        except ValidationError as exc:
            errors.update(exc.errors)

    paid_on = utcnow_naive().date()
    raw_date = pick(data, "paymentDate", "payment_date")
    if raw_date is not None:
        try:
            paid_on = parse_date(raw_date, "paymentDate")
        except ValidationError as exc:
            errors.update(exc.errors)

    if errors:
        raise ValidationError(errors)

    # Taken before touching rp: numbering flushes the session.
    number = next_payment_number(paid_on.year)
    now = utcnow_naive()
    reference = _clean_str(pick(data, "transactionReference", "transaction_reference")) or None
    notes = _clean_str(data.get("notes")) or rp.notes

    rp.status = "completed"
    rp.paid_amount = paid_amount
    rp.payment_method = method
    rp.transaction_reference = reference
    rp.actual_payment_date = paid_on
    rp.processed_by_id = processed_by_id
    rp.processed_at = now
    rp.updated_by_id = processed_by_id
    rp.notes = notes

    db.session.add(
        Payment(
            payment_number=number,
            application_id=rp.application_id,
            beneficiary_id=rp.beneficiary_id,
            scheme_id=rp.scheme_id,
            project_id=rp.project_id,
            recurring_payment=rp,
            amount=paid_amount,
            currency=rp.currency,
            type="installment",
            method=method,
            status="completed",
            installment_number=rp.payment_number,
            total_installments=rp.total_payments,
            description=rp.description,
            expected_date=rp.due_date,
            completed_at=now,
            transaction_reference=reference,
            notes=notes,
            initiated_by_id=processed_by_id,
        )
    )

    _refresh_schedule(rp.schedule, paid_on=paid_on)
    _commit("Record payment")

    current_app.logger.info(
        "Recurring payment %s (%s/%s) recorded by user %s",
        rp.id,
        rp.payment_number,
        rp.total_payments,
        processed_by_id,
    )
    return rp


def correct_payment_details(payment_id: int, data: dict, *, updated_by_id: int | None = None) -> RecurringPayment:
    """Metadata fix-ups on a completed payment. Status, amounts and dates stay put."""
    rp = _get_payment(payment_id)
    data = data or {}

    if rp.status != "completed":
        raise InvalidStateError("Only completed payments can be corrected.", current_status=rp.status)

    frozen = {"amount", "paymentDate", "payment_date", "scheduledDate", "dueDate", "status"} & set(data)
    if frozen:
        raise InvalidStateError("Amount, dates and status of a completed payment cannot be changed.")

    if "method" in data:
        method = _clean_str(data.get("method")).lower()
        if method not in PAYMENT_METHODS:
            raise ValidationError({"method": f"Method must be one of: {', '.join(sorted(PAYMENT_METHODS))}."})
        rp.payment_method = method
        if rp.payment is not None:
            rp.payment.method = method

    if "transactionReference" in data:
        rp.transaction_reference = _clean_str(data.get("transactionReference")) or None
        if rp.payment is not None:
            rp.payment.transaction_reference = rp.transaction_reference

    if "notes" in data:
        rp.notes = _clean_str(data.get("notes")) or None

    rp.updated_by_id = updated_by_id
    _commit("Correct payment")
    return rp


def begin_processing(payment_id: int, *, updated_by_id: int | None = None) -> RecurringPayment:
    rp = _get_payment(payment_id)
    if not can_transition(rp.status, "processing", RECURRING_PAYMENT_TRANSITIONS):
        raise _describe_status_error(rp, "process")

    rp.status = "processing"
    rp.updated_by_id = updated_by_id
    _commit("Start processing")
    return rp


def mark_payment_failed(payment_id: int, reason: str, *, updated_by_id: int | None = None) -> RecurringPayment:
    reason = _clean_str(reason)
    if not reason:
        raise ValidationError({"reason": "A failure reason is required."})

    rp = _get_payment(payment_id)
    if not can_transition(rp.status, "failed", RECURRING_PAYMENT_TRANSITIONS):
        raise _describe_status_error(rp, "fail")

    rp.status = "failed"
    rp.notes = reason
    rp.updated_by_id = updated_by_id
    _refresh_schedule(rp.schedule)
    _commit("Mark payment failed")

    current_app.logger.warning("Recurring payment %s marked failed: %s", rp.id, reason)
    return rp


# ======================
# Edits
# ======================
def update_recurring_payment(
    payment_id: int,
    patch: dict,
    *,
    updated_by_id: int | None = None,
    today: date | None = None,
) -> RecurringPayment:
    """
    patch: scheduledDate, dueDate, amount, description, notes. Unknown keys are ignored.

    Moving only scheduledDate shifts dueDate by the same number of days.
    A due/overdue row whose new due date is today or later goes back to scheduled;
    the next sweep promotes it again when it gets close.
    """
    rp = _get_payment(payment_id)
    patch = patch or {}
    today = _today(today)

    if rp.status in RECURRING_PAYMENT_TERMINAL or rp.status == "processing":
        raise _describe_status_error(rp, "edit")

    errors: dict[str, str] = {}
    scheduled = rp.scheduled_date
    due = rp.due_date

    raw_scheduled = pick(patch, "scheduledDate", "scheduled_date")
    raw_due = pick(patch, "dueDate", "due_date")
    try:
        if raw_scheduled is not None:
            scheduled = parse_date(raw_scheduled, "scheduledDate")
            if raw_due is None:
                due = rp.due_date + (scheduled - rp.scheduled_date)
        if raw_due is not None:
            due = parse_date(raw_due, "dueDate")
    except ValidationError as exc:
        errors.update(exc.errors)

    if not errors and due < scheduled:
        errors["dueDate"] = "Due date cannot be before the scheduled date."

    amount = rp.amount
    if "amount" in patch:
        try:
            amount = parse_money(patch.get("amount"), "amount")
        except ValidationError as exc:
            errors.update(exc.errors)

    if errors:
        raise ValidationError(errors)

    dates_moved = (scheduled, due) != (rp.scheduled_date, rp.due_date)

    rp.scheduled_date = scheduled
    rp.due_date = due
    rp.amount = amount
    if "description" in patch:
        rp.description = _clean_str(patch.get("description")) or None
    if "notes" in patch:
        rp.notes = _clean_str(patch.get("notes")) or None
    rp.updated_by_id = updated_by_id

    if dates_moved and rp.status in ("due", "overdue") and due >= today:
        rp.status = "scheduled"

    _refresh_schedule(rp.schedule)
    _commit("Update payment")
    return rp


def cancel_recurring_payment(payment_id: int, reason: str, *, cancelled_by_id: int | None = None) -> None:
    reason = _clean_str(reason)
    if not reason:
        raise ValidationError({"reason": "A cancellation reason is required."})

    rp = _get_payment(payment_id)
    if not can_transition(rp.status, "cancelled", RECURRING_PAYMENT_TRANSITIONS):
        raise _describe_status_error(rp, "cancel")

    rp.status = "cancelled"
    rp.cancellation_reason = reason
    rp.cancelled_by_id = cancelled_by_id
    rp.cancelled_at = utcnow_naive()
    rp.updated_by_id = cancelled_by_id

    _refresh_schedule(rp.schedule)
    _commit("Cancel payment")

    current_app.logger.info("Recurring payment %s cancelled by user %s", rp.id, cancelled_by_id)


def skip_recurring_payment(payment_id: int, reason: str, *, skipped_by_id: int | None = None) -> RecurringPayment:
    reason = _clean_str(reason)
    if not reason:
        raise ValidationError({"reason": "A reason is required to skip a payment."})

    rp = _get_payment(payment_id)
    if not can_transition(rp.status, "skipped", RECURRING_PAYMENT_TRANSITIONS):
        raise _describe_status_error(rp, "skip")

    rp.status = "skipped"
    rp.cancellation_reason = reason
    rp.updated_by_id = skipped_by_id

    _refresh_schedule(rp.schedule)
    _commit("Skip payment")
    return rp


def cancel_schedule(application_id: int, reason: str, *, cancelled_by_id: int | None = None) -> int:
    """Cancel what is left of the active plan. Completed rows are untouched."""
    reason = _clean_str(reason)
    if not reason:
        raise ValidationError({"reason": "A cancellation reason is required."})

    schedule = RecurringSchedule.query.filter_by(application_id=application_id, status="active").first()
    if schedule is None:
        raise NotFoundError("Payment schedule")

    now = utcnow_naive()
    cancelled = 0
    for rp in schedule.payments:
        if not can_transition(rp.status, "cancelled", RECURRING_PAYMENT_TRANSITIONS):
            continue
        rp.status = "cancelled"
        rp.cancellation_reason = reason
        rp.cancelled_by_id = cancelled_by_id
        rp.cancelled_at = now
        cancelled += 1

    schedule.status = "cancelled"
    schedule.cancellation_reason = reason
    schedule.cancelled_at = now
    schedule.next_payment_date = None

    _commit("Cancel schedule")

    current_app.logger.info(
        "Schedule %s for application %s cancelled (%s payment(s))", schedule.id, application_id, cancelled
    )
    return cancelled


# ======================
# Sweep
# ======================
def compute_overdue_statuses(today: date | None = None) -> dict[str, int]:
    """
    Periodic status sweep. Every update is guarded on the prior status, so
    concurrent runs and re-runs converge on the same state.
    """
    today = _today(today)
    window = current_app.config.get("DUE_SOON_WINDOW_DAYS", 7)
    now = utcnow_naive()
    t = RecurringPayment.__table__

    to_overdue = (
        sa.update(t)
        .where(t.c.status.in_(("scheduled", "due")), t.c.due_date < today)
        .values(status="overdue", version=t.c.version + 1, updated_at=now)
    )
    to_due = (
        sa.update(t)
        .where(
            t.c.status == "scheduled",
            t.c.due_date >= today,
            t.c.due_date <= today + timedelta(days=window),
        )
        .values(status="due", version=t.c.version + 1, updated_at=now)
    )

    try:
        overdue = db.session.execute(to_overdue).rowcount
        due = db.session.execute(to_due).rowcount
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Overdue sweep failed")
        raise StoreError("Overdue sweep")

    # Bulk statements bypass the identity map.
    db.session.expire_all()

    if overdue or due:
        current_app.logger.info("Overdue sweep: %s overdue, %s due (as of %s)", overdue, due, today)
    return {"updated_count": overdue + due}


# ======================
# Read side
# ======================
def get_budget_forecast(months: int, filters: dict | None = None, *, today: date | None = None) -> list[dict]:
    """
    One entry per calendar month, starting with the current one, including
    months with nothing scheduled:

        {"month": "2024-03", "total_amount": Decimal("600.00"),
         "payment_count": 3, "overdue_count": 0}
    """
    months = parse_int(months, "months", minimum=1, maximum=MAX_FORECAST_MONTHS)
    start = _today(today).replace(day=1)
    end = start + relativedelta(months=months)

    buckets: OrderedDict[str, dict] = OrderedDict()
    for i in range(months):
        key = (start + relativedelta(months=i)).strftime("%Y-%m")
        buckets[key] = {"month": key, "total_amount": Decimal("0.00"), "payment_count": 0, "overdue_count": 0}

    query = RecurringPayment.query.filter(
        RecurringPayment.status.in_(PENDING_STATUSES),
        RecurringPayment.scheduled_date >= start,
        RecurringPayment.scheduled_date < end,
    )
    for rp in _apply_filters(query, filters).all():
        bucket = buckets[rp.scheduled_date.strftime("%Y-%m")]
        bucket["total_amount"] += Decimal(rp.amount)
        bucket["payment_count"] += 1
        if rp.status == "overdue":
            bucket["overdue_count"] += 1

    return list(buckets.values())


def get_payment_schedule(application_id: int) -> list[RecurringPayment]:
    if db.session.get(Application, application_id) is None:
        raise NotFoundError("Application")

    return (
        RecurringPayment.query.filter_by(application_id=application_id)
        .order_by(RecurringPayment.schedule_id.asc(), RecurringPayment.payment_number.asc())
        .all()
    )


def get_upcoming_payments(days: int = 30, filters: dict | None = None, *, today: date | None = None):
    days = parse_int(days, "days", minimum=1, maximum=366)
    today = _today(today)
    query = RecurringPayment.query.filter(
        RecurringPayment.status.in_(("scheduled", "due")),
        RecurringPayment.scheduled_date >= today,
        RecurringPayment.scheduled_date <= today + timedelta(days=days),
    )
    return _apply_filters(query, filters).order_by(RecurringPayment.scheduled_date.asc()).all()


def get_overdue_payments(filters: dict | None = None, *, today: date | None = None):
    """Rows past their due date, whether or not the sweep has labelled them yet."""
    today = _today(today)
    query = RecurringPayment.query.filter(
        RecurringPayment.status.in_(("scheduled", "due", "overdue")),
        RecurringPayment.due_date < today,
    )
    return _apply_filters(query, filters).order_by(RecurringPayment.due_date.asc()).all()


def get_dashboard_stats(filters: dict | None = None, *, today: date | None = None) -> dict:
    today = _today(today)
    rows = _apply_filters(RecurringPayment.query, filters).all()

    by_status = {status: 0 for status in RECURRING_PAYMENT_TRANSITIONS}
    total = paid = pending = Decimal("0.00")
    due_this_week = due_this_month = 0
    for rp in rows:
        by_status[rp.status] = by_status.get(rp.status, 0) + 1
        if rp.status == "cancelled":
            continue
        total += Decimal(rp.amount)
        if rp.status == "completed":
            paid += Decimal(rp.paid_amount if rp.paid_amount is not None else rp.amount)
        elif rp.status in PENDING_STATUSES:
            pending += Decimal(rp.amount)
            if today <= rp.scheduled_date <= today + timedelta(days=7):
                due_this_week += 1
            if today <= rp.scheduled_date <= today + timedelta(days=30):
                due_this_month += 1

    return {
        "total_payments": len(rows),
        "by_status": by_status,
        "total_amount": total,
        "paid_amount": paid,
        "pending_amount": pending,
        "due_this_week": due_this_week,
        "due_this_month": due_this_month,
        "active_schedules": _active_schedule_count(filters),
    }


def _active_schedule_count(filters: dict | None) -> int:
    query = (
        db.session.query(sa.func.count(sa.distinct(RecurringPayment.schedule_id)))
        .select_from(RecurringPayment)
        .join(RecurringSchedule, RecurringSchedule.id == RecurringPayment.schedule_id)
        .filter(RecurringSchedule.status == "active")
    )
    return _apply_filters(query, filters).scalar() or 0


def get_recurring_applications(filters: dict | None = None) -> list[RecurringSchedule]:
    """
    Applications on a recurring plan, one schedule header each (the application
    is loaded with it), soonest next payment first.

    Accepts the forecast filters plus `status` on the schedule header.
    """
    filters = filters or {}
    query = RecurringSchedule.query.join(Application, Application.id == RecurringSchedule.application_id)

    status = filters.get("status")
    if status is not None:
        if status not in SCHEDULE_STATUSES:
            raise ValidationError({"status": f"Status must be one of: {', '.join(sorted(SCHEDULE_STATUSES))}."})
        query = query.filter(RecurringSchedule.status == status)

    query = _apply_filters(query, filters, model=Application)
    return query.order_by(
        RecurringSchedule.next_payment_date.is_(None),
        RecurringSchedule.next_payment_date.asc(),
        RecurringSchedule.id.asc(),
    ).all()
