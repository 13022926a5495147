import unittest
from datetime import date
from decimal import Decimal

from tests.base import AppTestCase
from welfare.errors import InvalidStateError, NotFoundError, ValidationError
from welfare.extensions import db
from welfare.models import Payment, RecurringPayment, RecurringSchedule
from welfare.services.recurring_payments import (
    begin_processing,
    cancel_recurring_payment,
    cancel_schedule,
    correct_payment_details,
    generate_schedule,
    get_payment_schedule,
    mark_payment_failed,
    record_payment,
    skip_recurring_payment,
    update_recurring_payment,
)


class LifecycleTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.make_user("super_admin")
        self.application = self.make_application()
        self.payments = generate_schedule(
            self.application.id,
            {"period": "monthly", "numberOfPayments": 3, "amountPerPayment": 1000, "startDate": "2024-01-01"},
        )
        self.p1, self.p2, self.p3 = self.payments


class RecordPaymentTests(LifecycleTestCase):
    def test_marks_completed_and_stamps(self):
        rp = record_payment(
            self.p1.id,
            {"method": "bank_transfer", "transactionReference": "UTR123", "paymentDate": "2024-01-03"},
            processed_by_id=self.admin.id,
        )

        self.assertEqual(rp.status, "completed")
        self.assertEqual(rp.actual_payment_date, date(2024, 1, 3))
        self.assertEqual(rp.processed_by_id, self.admin.id)
        self.assertIsNotNone(rp.processed_at)
        self.assertEqual(rp.paid_amount, Decimal("1000"))
        self.assertEqual(rp.transaction_reference, "UTR123")

    def test_creates_linked_payment(self):
        rp = record_payment(self.p1.id, {"method": "upi", "paymentDate": "2024-01-03"})

        payment = Payment.query.filter_by(recurring_payment_id=rp.id).one()
        self.assertEqual(payment.status, "completed")
        self.assertEqual(payment.type, "installment")
        self.assertEqual(payment.installment_number, 1)
        self.assertEqual(payment.payment_number, "PAY2024000001")

    def test_payment_numbers_increase(self):
        record_payment(self.p1.id, {"method": "cash", "paymentDate": "2024-01-03"})
        record_payment(self.p2.id, {"method": "cash", "paymentDate": "2024-02-03"})

        numbers = [p.payment_number for p in Payment.query.order_by(Payment.id).all()]
        self.assertEqual(numbers, ["PAY2024000001", "PAY2024000002"])

    def test_amount_override_keeps_obligation(self):
        rp = record_payment(self.p1.id, {"method": "cheque", "amount": "900"})
        self.assertEqual(rp.paid_amount, Decimal("900"))
        self.assertEqual(rp.amount, Decimal("1000"))

    def test_advances_schedule_header(self):
        record_payment(self.p1.id, {"method": "cash", "paymentDate": "2024-01-02"})
        schedule = RecurringSchedule.query.one()

        self.assertEqual(schedule.completed_payments, 1)
        self.assertEqual(schedule.next_payment_date, date(2024, 2, 1))
        self.assertEqual(schedule.last_payment_date, date(2024, 1, 2))

    def test_last_payment_completes_schedule(self):
        for rp in self.payments:
            record_payment(rp.id, {"method": "cash"})
        schedule = RecurringSchedule.query.one()
        self.assertEqual(schedule.status, "completed")
        self.assertIsNone(schedule.next_payment_date)

    def test_no_double_completion(self):
        record_payment(self.p1.id, {"method": "cash"})
        with self.assertRaises(InvalidStateError):
            record_payment(self.p1.id, {"method": "cash"})
        self.assertEqual(Payment.query.count(), 1)

    def test_cancelled_cannot_be_recorded(self):
        cancel_recurring_payment(self.p1.id, "duplicate")
        with self.assertRaises(InvalidStateError):
            record_payment(self.p1.id, {"method": "cash"})

    def test_method_required(self):
        with self.assertRaises(ValidationError) as ctx:
            record_payment(self.p1.id, {"amount": 100})
        self.assertIn("method", ctx.exception.errors)
        self.assertEqual(db.session.get(RecurringPayment, self.p1.id).status, "scheduled")

    def test_unknown_payment(self):
        with self.assertRaises(NotFoundError):
            record_payment(9999, {"method": "cash"})

    def test_processing_then_completed(self):
        begin_processing(self.p1.id)
        rp = record_payment(self.p1.id, {"method": "bank_transfer"})
        self.assertEqual(rp.status, "completed")


class CorrectionTests(LifecycleTestCase):
    def test_metadata_can_be_corrected(self):
        record_payment(self.p1.id, {"method": "cash", "transactionReference": "OLD"})
        rp = correct_payment_details(self.p1.id, {"transactionReference": "NEW", "notes": "typo fixed"})

        self.assertEqual(rp.status, "completed")
        self.assertEqual(rp.transaction_reference, "NEW")
        self.assertEqual(rp.payment.transaction_reference, "NEW")
        self.assertEqual(rp.notes, "typo fixed")

    def test_amount_cannot_be_corrected(self):
        record_payment(self.p1.id, {"method": "cash"})
        with self.assertRaises(InvalidStateError):
            correct_payment_details(self.p1.id, {"amount": 1})

    def test_only_completed(self):
        with self.assertRaises(InvalidStateError):
            correct_payment_details(self.p1.id, {"notes": "x"})


class UpdateTests(LifecycleTestCase):
    def test_completed_is_immutable(self):
        record_payment(self.p1.id, {"method": "cash"})
        with self.assertRaises(InvalidStateError):
            update_recurring_payment(self.p1.id, {"amount": 999})

        self.assertEqual(db.session.get(RecurringPayment, self.p1.id).amount, Decimal("1000"))

    def test_cancelled_is_immutable(self):
        cancel_recurring_payment(self.p2.id, "duplicate")
        with self.assertRaises(InvalidStateError):
            update_recurring_payment(self.p2.id, {"notes": "late"})

    def test_amount_and_description(self):
        rp = update_recurring_payment(self.p2.id, {"amount": "1250.75", "description": "Top-up"})
        self.assertEqual(rp.amount, Decimal("1250.75"))
        self.assertEqual(rp.description, "Top-up")

    def test_moving_scheduled_date_shifts_due_date(self):
        rp = update_recurring_payment(self.p2.id, {"scheduledDate": "2024-02-10"})
        self.assertEqual(rp.scheduled_date, date(2024, 2, 10))
        self.assertEqual(rp.due_date, date(2024, 2, 10))

    def test_due_before_scheduled_rejected(self):
        with self.assertRaises(ValidationError):
            update_recurring_payment(self.p2.id, {"dueDate": "2024-01-15"})

    def test_reschedule_returns_overdue_to_scheduled(self):
        self.p1.status = "overdue"
        db.session.commit()

        rp = update_recurring_payment(self.p1.id, {"scheduledDate": "2024-03-01"}, today=date(2024, 2, 1))
        self.assertEqual(rp.status, "scheduled")

    def test_reschedule_into_the_past_keeps_status(self):
        self.p1.status = "overdue"
        db.session.commit()

        rp = update_recurring_payment(self.p1.id, {"scheduledDate": "2024-01-05"}, today=date(2024, 2, 1))
        self.assertEqual(rp.status, "overdue")

    def test_unknown_keys_ignored(self):
        rp = update_recurring_payment(self.p2.id, {"status": "completed", "notes": "call first"})
        self.assertEqual(rp.status, "scheduled")
        self.assertEqual(rp.notes, "call first")

    def test_next_payment_date_follows_edit(self):
        update_recurring_payment(self.p1.id, {"scheduledDate": "2024-03-20"})
        self.assertEqual(RecurringSchedule.query.one().next_payment_date, date(2024, 2, 1))


class CancelTests(LifecycleTestCase):
    def test_reason_required(self):
        for reason in ("", "   ", None):
            with self.assertRaises(ValidationError):
                cancel_recurring_payment(self.p1.id, reason)
        self.assertEqual(db.session.get(RecurringPayment, self.p1.id).status, "scheduled")

    def test_cancel_keeps_record(self):
        self.assertIsNone(cancel_recurring_payment(self.p1.id, "duplicate", cancelled_by_id=self.admin.id))

        rp = db.session.get(RecurringPayment, self.p1.id)
        self.assertEqual(rp.status, "cancelled")
        self.assertEqual(rp.cancellation_reason, "duplicate")
        self.assertEqual(rp.scheduled_date, date(2024, 1, 1))
        self.assertEqual(rp.amount, Decimal("1000"))
        self.assertIsNotNone(rp.cancelled_at)

    def test_completed_cannot_be_cancelled(self):
        record_payment(self.p1.id, {"method": "cash"})
        with self.assertRaises(InvalidStateError):
            cancel_recurring_payment(self.p1.id, "oops")

    def test_skip_and_fail_are_terminal(self):
        skip_recurring_payment(self.p1.id, "beneficiary travelling")
        mark_payment_failed(self.p2.id, "bank rejected")

        for rp_id in (self.p1.id, self.p2.id):
            with self.assertRaises(InvalidStateError):
                update_recurring_payment(rp_id, {"notes": "retry"})

    def test_cancel_schedule_leaves_completed(self):
        record_payment(self.p1.id, {"method": "cash"})
        cancelled = cancel_schedule(self.application.id, "scheme closed")

        self.assertEqual(cancelled, 2)
        statuses = [rp.status for rp in get_payment_schedule(self.application.id)]
        self.assertEqual(statuses, ["completed", "cancelled", "cancelled"])
        self.assertEqual(RecurringSchedule.query.one().status, "cancelled")

    def test_new_schedule_after_cancel(self):
        cancel_schedule(self.application.id, "replan")
        payments = generate_schedule(
            self.application.id,
            {"period": "quarterly", "numberOfPayments": 2, "amountPerPayment": 500, "startDate": "2024-06-01"},
        )
        self.assertEqual(len(payments), 2)
        self.assertEqual(len(get_payment_schedule(self.application.id)), 5)

    def test_cancel_schedule_without_active_plan(self):
        other = self.make_application()
        with self.assertRaises(NotFoundError):
            cancel_schedule(other.id, "nothing to cancel")


if __name__ == "__main__":
    unittest.main()
