# welfare/services/payments.py
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from flask import current_app

from welfare.extensions import db
from welfare.models import Application, Payment, utcnow_naive
from welfare.utils.parsers import parse_date, parse_money

# Single-shot disbursements fall due a week after approval.
DEFAULT_DISBURSEMENT_DAYS = 7


def next_payment_number(year: int | None = None) -> str:
    """
    Example: PAY2024000042

    Counts rows already flushed for the year, so several numbers can be taken
    inside one transaction as long as each Payment is added before the next call.
    """
    prefix = current_app.config.get("PAYMENT_NUMBER_PREFIX", "PAY")
    year = year or utcnow_naive().year
    stem = f"{prefix}{year}"
    db.session.flush()
    taken = Payment.query.filter(Payment.payment_number.like(f"{stem}%")).count()
    return f"{stem}{taken + 1:06d}"


def create_disbursement_payments(
    application: Application,
    *,
    initiated_by_id: int | None = None,
    notes: str | None = None,
    today: date | None = None,
) -> list[Payment]:
    """
    Stage the pending Payment rows for a freshly approved application:
    one installment per distribution-timeline phase, or a single full payment.

    Does not commit. Returns [] when the application already has
    disbursement rows or carries no amount to pay.
    """
    existing = Payment.query.filter(
        Payment.application_id == application.id,
        Payment.recurring_payment_id.is_(None),
    ).count()
    if existing:
        current_app.logger.info(
            "Application %s already has %s disbursement payment(s); skipping",
            application.application_number,
            existing,
        )
        return []

    today = today or utcnow_naive().date()
    currency = current_app.config.get("DEFAULT_CURRENCY", "INR")
    now = utcnow_naive()
    created: list[Payment] = []

    timeline = list(application.distribution_timeline or [])
    if timeline:
        for index, phase in enumerate(timeline, start=1):
            payment = Payment(
                payment_number=next_payment_number(),
                application_id=application.id,
                beneficiary_id=application.beneficiary_id,
                scheme_id=application.scheme_id,
                project_id=application.project_id,
                amount=parse_money(phase.get("amount"), "amount"),
                currency=currency,
                type="installment",
                method="bank_transfer",
                status="pending",
                installment_number=index,
                total_installments=len(timeline),
                description=(phase.get("description") or f"Phase {index}"),
                expected_date=parse_date(phase.get("expectedDate"), "expectedDate"),
                notes=notes,
                initiated_by_id=initiated_by_id,
                created_at=now,
            )
            db.session.add(payment)
            created.append(payment)
        return created

    amount = application.approved_amount or application.requested_amount
    if amount is None or Decimal(amount) <= 0:
        return []

    payment = Payment(
        payment_number=next_payment_number(),
        application_id=application.id,
        beneficiary_id=application.beneficiary_id,
        scheme_id=application.scheme_id,
        project_id=application.project_id,
        amount=amount,
        currency=currency,
        type="full_payment",
        method="bank_transfer",
        status="pending",
        expected_date=today + timedelta(days=DEFAULT_DISBURSEMENT_DAYS),
        notes=notes,
        initiated_by_id=initiated_by_id,
        created_at=now,
    )
    db.session.add(payment)
    created.append(payment)
    return created
