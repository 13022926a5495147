# welfare/models.py
from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from flask_login import UserMixin
from sqlalchemy.ext.mutable import MutableList

from .extensions import db


# Naive UTC everywhere: columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def can_transition(current: str, target: str, transitions: dict[str, set[str]]) -> bool:
    return target in transitions.get(current, set())


# =========================================================
# Geography: state -> district -> area -> unit
# =========================================================
REGION_TYPES = ("state", "district", "area", "unit")

# child type -> required parent type
REGION_PARENT_TYPE = {
    "state": None,
    "district": "state",
    "area": "district",
    "unit": "area",
}


class Region(db.Model):
    __tablename__ = "region"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(40), nullable=False)
    type = db.Column(db.String(20), nullable=False, index=True)

    parent_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    parent = db.relationship("Region", remote_side=[id], back_populates="children")
    children = db.relationship("Region", back_populates="parent", lazy="select")

    # Soft delete only: applications reference regions permanently.
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("parent_id", "code", name="uq_region_parent_code"),
        db.CheckConstraint(
            "type in ('state','district','area','unit')",
            name="ck_region_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<Region {self.id} {self.type}:{self.code}>"


# =========================================================
# Programme reference data
# =========================================================
class Project(db.Model):
    __tablename__ = "project"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    code = db.Column(db.String(40), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Project {self.id} {self.code}>"


class Scheme(db.Model):
    __tablename__ = "scheme"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    code = db.Column(db.String(40), unique=True, nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Scheme {self.id} {self.code}>"


# =========================================================
# Admin scope association tables (many-to-many)
# =========================================================
user_scope_regions = db.Table(
    "user_scope_regions",
    db.Column("user_id", db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
    db.Column("region_id", db.Integer, db.ForeignKey("region.id"), primary_key=True),
)

user_scope_projects = db.Table(
    "user_scope_projects",
    db.Column("user_id", db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
    db.Column("project_id", db.Integer, db.ForeignKey("project.id"), primary_key=True),
)

user_scope_schemes = db.Table(
    "user_scope_schemes",
    db.Column("user_id", db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
    db.Column("scheme_id", db.Integer, db.ForeignKey("scheme.id"), primary_key=True),
)


# =========================================================
# User model (Authentication + Roles + Admin scope)
# =========================================================
class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)

    # Identity
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    phone = db.Column(db.String(30), unique=True, nullable=True)

    # super_admin/state_admin/district_admin/area_admin/unit_admin/
    # project_coordinator/scheme_coordinator/beneficiary
    role = db.Column(db.String(30), nullable=False, default="beneficiary")

    # Deactivated, never deleted
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Admin scope: explicit region list (current shape)
    scope_regions = db.relationship("Region", secondary=user_scope_regions, lazy="select")

    # Admin scope: legacy single-region fields (older accounts)
    scope_district_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True)
    scope_area_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True)
    scope_unit_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True)

    # Coordinator scope
    scope_projects = db.relationship("Project", secondary=user_scope_projects, lazy="select")
    scope_schemes = db.relationship("Scheme", secondary=user_scope_schemes, lazy="select")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.role}>"


# =========================================================
# RBAC catalogue
# =========================================================
rbac_role_permissions = db.Table(
    "rbac_role_permissions",
    db.Column("role_id", db.Integer, db.ForeignKey("rbac_role.id", ondelete="CASCADE"), primary_key=True),
    db.Column("permission_id", db.Integer, db.ForeignKey("permission.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(db.Model):
    __tablename__ = "permission"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)  # e.g. reports.create
    module = db.Column(db.String(40), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Permission {self.name}>"


class RbacRole(db.Model):
    __tablename__ = "rbac_role"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(40), unique=True, nullable=False)
    display_name = db.Column(db.String(80), nullable=False)
    is_system = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    permissions = db.relationship("Permission", secondary=rbac_role_permissions, lazy="select")

    def __repr__(self) -> str:
        return f"<RbacRole {self.name}>"


class UserRoleAssignment(db.Model):
    __tablename__ = "user_role_assignment"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    user = db.relationship("User", foreign_keys=[user_id])

    role_id = db.Column(db.Integer, db.ForeignKey("rbac_role.id"), nullable=False, index=True)
    role = db.relationship("RbacRole", lazy="joined")

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    valid_from = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    valid_until = db.Column(db.DateTime, nullable=True)

    assigned_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    assigned_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("user_id", "role_id", name="uq_user_role_assignment"),
    )


# =========================================================
# Beneficiary
# =========================================================
class Beneficiary(db.Model):
    __tablename__ = "beneficiary"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    phone = db.Column(db.String(30), unique=True, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)

    state_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    district_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    area_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Beneficiary {self.id} {self.phone}>"


# =========================================================
# Application
# =========================================================
APPLICATION_STATUSES = {
    "pending",
    "under_review",
    "interview_scheduled",
    "pending_committee_approval",
    "approved",
    "rejected",
    "completed",
    "cancelled",
}

APPLICATION_TRANSITIONS = {
    "pending": {"under_review", "rejected", "cancelled"},
    "under_review": {"interview_scheduled", "pending_committee_approval", "approved", "rejected", "cancelled"},
    "interview_scheduled": {"approved", "rejected", "pending_committee_approval", "cancelled"},
    "pending_committee_approval": {"approved", "rejected"},
    "approved": {"completed", "cancelled"},
    "rejected": set(),
    "completed": set(),
    "cancelled": set(),
}

# A disbursement plan may only be drawn up for these.
SCHEDULABLE_APPLICATION_STATUSES = {"approved"}


class Application(db.Model):
    __tablename__ = "application"

    id = db.Column(db.Integer, primary_key=True)
    application_number = db.Column(db.String(40), unique=True, nullable=False)

    applicant_name = db.Column(db.String(160), nullable=False)
    applicant_phone = db.Column(db.String(30), nullable=False, index=True)

    beneficiary_id = db.Column(db.Integer, db.ForeignKey("beneficiary.id"), nullable=True, index=True)
    beneficiary = db.relationship("Beneficiary", foreign_keys=[beneficiary_id])

    scheme_id = db.Column(db.Integer, db.ForeignKey("scheme.id"), nullable=True, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)

    # Region refs copied at creation time so scope filters need no joins
    state_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    district_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    area_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)

    status = db.Column(db.String(40), nullable=False, default="pending", index=True)

    requested_amount = db.Column(db.Numeric(12, 2), nullable=True)
    approved_amount = db.Column(db.Numeric(12, 2), nullable=True)

    # [{"description": str, "amount": number, "expectedDate": "YYYY-MM-DD"}, ...]
    distribution_timeline = db.Column(MutableList.as_mutable(db.JSON), nullable=True)

    approved_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    review_comments = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (
        db.CheckConstraint(
            "status in ('pending','under_review','interview_scheduled','pending_committee_approval',"
            "'approved','rejected','completed','cancelled')",
            name="ck_application_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Application {self.id} {self.application_number} {self.status}>"


# =========================================================
# Interview
# =========================================================
INTERVIEW_STATUSES = {"scheduled", "completed", "cancelled"}
INTERVIEW_RESULTS = {"passed", "failed"}


class Interview(db.Model):
    __tablename__ = "interview"

    id = db.Column(db.Integer, primary_key=True)

    application_id = db.Column(db.Integer, db.ForeignKey("application.id", ondelete="CASCADE"), nullable=False, index=True)
    application = db.relationship("Application", lazy="joined")

    status = db.Column(db.String(20), nullable=False, default="scheduled")
    result = db.Column(db.String(20), nullable=True)

    scheduled_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    completed_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Interview {self.id} {self.status} {self.result}>"


# =========================================================
# Recurring disbursement schedule (one batch per plan)
# =========================================================
RECURRING_PERIOD_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "semi_annually": 6,
    "annually": 12,
}

SCHEDULE_STATUSES = {"active", "completed", "cancelled"}


class RecurringSchedule(db.Model):
    __tablename__ = "recurring_schedule"

    id = db.Column(db.Integer, primary_key=True)

    application_id = db.Column(db.Integer, db.ForeignKey("application.id"), nullable=False, index=True)
    application = db.relationship("Application", lazy="joined")

    period = db.Column(db.String(20), nullable=False)
    number_of_payments = db.Column(db.Integer, nullable=False)
    amount_per_payment = db.Column(db.Numeric(12, 2), nullable=True)
    start_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="active")
    completed_payments = db.Column(db.Integer, nullable=False, default=0)
    next_payment_date = db.Column(db.Date, nullable=True)
    last_payment_date = db.Column(db.Date, nullable=True)

    cancellation_reason = db.Column(db.String(500), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    payments = db.relationship(
        "RecurringPayment",
        back_populates="schedule",
        order_by="RecurringPayment.payment_number",
        lazy="select",
    )

    __table_args__ = (
        # At most one live plan per application.
        db.Index(
            "uq_recurring_schedule_active_application",
            "application_id",
            unique=True,
            postgresql_where=sa.text("status = 'active'"),
            sqlite_where=sa.text("status = 'active'"),
        ),
        db.CheckConstraint(
            "status in ('active','completed','cancelled')",
            name="ck_recurring_schedule_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<RecurringSchedule {self.id} app={self.application_id} {self.status}>"


# =========================================================
# Recurring payment (one installment obligation)
# =========================================================
RECURRING_PAYMENT_STATUSES = {
    "scheduled",
    "due",
    "overdue",
    "processing",
    "completed",
    "failed",
    "skipped",
    "cancelled",
}

RECURRING_PAYMENT_TRANSITIONS = {
    # "due"/"overdue" -> "scheduled" is the explicit reschedule path only.
    "scheduled": {"due", "overdue", "processing", "completed", "failed", "skipped", "cancelled"},
    "due": {"scheduled", "overdue", "processing", "completed", "failed", "skipped", "cancelled"},
    "overdue": {"scheduled", "processing", "completed", "failed", "skipped", "cancelled"},
    "processing": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
    "skipped": set(),
    "cancelled": set(),
}

RECURRING_PAYMENT_TERMINAL = {"completed", "failed", "skipped", "cancelled"}

PAYMENT_METHODS = {"bank_transfer", "cheque", "cash", "digital_wallet", "upi"}


class RecurringPayment(db.Model):
    __tablename__ = "recurring_payment"

    id = db.Column(db.Integer, primary_key=True)

    schedule_id = db.Column(db.Integer, db.ForeignKey("recurring_schedule.id"), nullable=False, index=True)
    schedule = db.relationship("RecurringSchedule", back_populates="payments")

    # Denormalised for filtering and reporting
    application_id = db.Column(db.Integer, db.ForeignKey("application.id"), nullable=False, index=True)
    beneficiary_id = db.Column(db.Integer, db.ForeignKey("beneficiary.id"), nullable=True, index=True)
    scheme_id = db.Column(db.Integer, db.ForeignKey("scheme.id"), nullable=True, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)
    state_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    district_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    area_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("region.id"), nullable=True, index=True)

    # Position in the batch
    payment_number = db.Column(db.Integer, nullable=False)
    total_payments = db.Column(db.Integer, nullable=False)

    # Timeline + recurrence addressing (display only)
    cycle_number = db.Column(db.Integer, nullable=True)
    total_cycles = db.Column(db.Integer, nullable=True)
    phase_number = db.Column(db.Integer, nullable=True)
    total_phases = db.Column(db.Integer, nullable=True)

    scheduled_date = db.Column(db.Date, nullable=False, index=True)
    due_date = db.Column(db.Date, nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="INR")
    description = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.String(1000), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="scheduled", index=True)

    # Filled in when paid
    actual_payment_date = db.Column(db.Date, nullable=True)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=True)
    payment_method = db.Column(db.String(30), nullable=True)
    transaction_reference = db.Column(db.String(120), nullable=True)
    processed_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)

    # Cancellation / skip
    cancellation_reason = db.Column(db.String(500), nullable=True)
    cancelled_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    payment = db.relationship("Payment", back_populates="recurring_payment", uselist=False)

    # Optimistic concurrency: every write bumps this
    version = db.Column(db.Integer, nullable=False)

    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.UniqueConstraint("schedule_id", "payment_number", name="uq_recurring_payment_schedule_number"),
        db.Index("ix_recurring_payment_status_due", "status", "due_date"),
        db.Index("ix_recurring_payment_status_scheduled", "status", "scheduled_date"),
        db.CheckConstraint(
            "status in ('scheduled','due','overdue','processing','completed','failed','skipped','cancelled')",
            name="ck_recurring_payment_status",
        ),
        db.CheckConstraint("amount >= 0", name="ck_recurring_payment_amount"),
    )

    def __repr__(self) -> str:
        return f"<RecurringPayment {self.id} {self.payment_number}/{self.total_payments} {self.status}>"


# =========================================================
# Payment (single-shot / manually tracked disbursement)
# =========================================================
PAYMENT_TYPES = {"full_payment", "installment"}
PAYMENT_STATUSES = {"pending", "approved", "processing", "completed", "failed", "cancelled"}


class Payment(db.Model):
    __tablename__ = "payment"

    id = db.Column(db.Integer, primary_key=True)
    payment_number = db.Column(db.String(40), unique=True, nullable=False)

    application_id = db.Column(db.Integer, db.ForeignKey("application.id"), nullable=False, index=True)
    beneficiary_id = db.Column(db.Integer, db.ForeignKey("beneficiary.id"), nullable=True, index=True)
    scheme_id = db.Column(db.Integer, db.ForeignKey("scheme.id"), nullable=True)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True)

    recurring_payment_id = db.Column(
        db.Integer, db.ForeignKey("recurring_payment.id"), unique=True, nullable=True
    )
    recurring_payment = db.relationship("RecurringPayment", back_populates="payment")

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="INR")
    type = db.Column(db.String(20), nullable=False, default="full_payment")
    method = db.Column(db.String(30), nullable=False, default="bank_transfer")
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    installment_number = db.Column(db.Integer, nullable=True)
    total_installments = db.Column(db.Integer, nullable=True)
    description = db.Column(db.String(500), nullable=True)

    expected_date = db.Column(db.Date, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    transaction_reference = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    initiated_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.payment_number} {self.status}>"
