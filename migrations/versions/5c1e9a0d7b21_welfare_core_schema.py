"""welfare_core_schema

Revision ID: 5c1e9a0d7b21
Revises:
Create Date: 2026-10-16 09:12:44.018301

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1e9a0d7b21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # =========================
    # region (state -> district -> area -> unit)
    # =========================
    op.create_table(
        "region",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("code", sa.String(length=40), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["parent_id"], ["region.id"], name="fk_region_parent"),
        sa.UniqueConstraint("parent_id", "code", name="uq_region_parent_code"),
        sa.CheckConstraint("type in ('state','district','area','unit')", name="ck_region_type"),
    )
    op.create_index("ix_region_type", "region", ["type"])
    op.create_index("ix_region_parent_id", "region", ["parent_id"])

    # =========================
    # project / scheme
    # =========================
    op.create_table(
        "project",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("code", sa.String(length=40), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "scheme",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("code", sa.String(length=40), nullable=False, unique=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["project_id"], ["project.id"], name="fk_scheme_project"),
    )
    op.create_index("ix_scheme_project_id", "scheme", ["project_id"])

    # =========================
    # user + admin scope
    # =========================
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=True, unique=True),
        sa.Column("phone", sa.String(length=30), nullable=True, unique=True),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="beneficiary"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("scope_district_id", sa.Integer(), nullable=True),
        sa.Column("scope_area_id", sa.Integer(), nullable=True),
        sa.Column("scope_unit_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["scope_district_id"], ["region.id"], name="fk_user_scope_district"),
        sa.ForeignKeyConstraint(["scope_area_id"], ["region.id"], name="fk_user_scope_area"),
        sa.ForeignKeyConstraint(["scope_unit_id"], ["region.id"], name="fk_user_scope_unit"),
    )

    for target in ("region", "project", "scheme"):
        op.create_table(
            f"user_scope_{target}s",
            sa.Column("user_id", sa.Integer(), primary_key=True),
            sa.Column(f"{target}_id", sa.Integer(), primary_key=True),
            sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint([f"{target}_id"], [f"{target}.id"]),
        )

    # =========================
    # RBAC catalogue
    # =========================
    op.create_table(
        "permission",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=80), nullable=False, unique=True),
        sa.Column("module", sa.String(length=40), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
    )

    op.create_table(
        "rbac_role",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=40), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=80), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "rbac_role_permissions",
        sa.Column("role_id", sa.Integer(), primary_key=True),
        sa.Column("permission_id", sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(["role_id"], ["rbac_role.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permission.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "user_role_assignment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("valid_from", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("valid_until", sa.DateTime(), nullable=True),
        sa.Column("assigned_by_id", sa.Integer(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["rbac_role.id"]),
        sa.ForeignKeyConstraint(["assigned_by_id"], ["user.id"]),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_role_assignment"),
    )
    op.create_index("ix_user_role_assignment_user_id", "user_role_assignment", ["user_id"])
    op.create_index("ix_user_role_assignment_role_id", "user_role_assignment", ["role_id"])

    # =========================
    # beneficiary
    # =========================
    op.create_table(
        "beneficiary",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("state_id", sa.Integer(), nullable=True),
        sa.Column("district_id", sa.Integer(), nullable=True),
        sa.Column("area_id", sa.Integer(), nullable=True),
        sa.Column("unit_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["state_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["district_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["area_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["region.id"]),
    )
    for level in ("state", "district", "area", "unit"):
        op.create_index(f"ix_beneficiary_{level}_id", "beneficiary", [f"{level}_id"])

    # =========================
    # application
    # =========================
    op.create_table(
        "application",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("application_number", sa.String(length=40), nullable=False, unique=True),
        sa.Column("applicant_name", sa.String(length=160), nullable=False),
        sa.Column("applicant_phone", sa.String(length=30), nullable=False),
        sa.Column("beneficiary_id", sa.Integer(), nullable=True),
        sa.Column("scheme_id", sa.Integer(), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("state_id", sa.Integer(), nullable=True),
        sa.Column("district_id", sa.Integer(), nullable=True),
        sa.Column("area_id", sa.Integer(), nullable=True),
        sa.Column("unit_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="pending"),
        sa.Column("requested_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("approved_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("distribution_timeline", sa.JSON(), nullable=True),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("review_comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["beneficiary_id"], ["beneficiary.id"]),
        sa.ForeignKeyConstraint(["scheme_id"], ["scheme.id"]),
        sa.ForeignKeyConstraint(["project_id"], ["project.id"]),
        sa.ForeignKeyConstraint(["state_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["district_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["area_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["approved_by_id"], ["user.id"]),
        sa.CheckConstraint(
            "status in ('pending','under_review','interview_scheduled','pending_committee_approval',"
            "'approved','rejected','completed','cancelled')",
            name="ck_application_status",
        ),
    )
    for col in (
        "applicant_phone",
        "beneficiary_id",
        "scheme_id",
        "project_id",
        "state_id",
        "district_id",
        "area_id",
        "unit_id",
        "status",
    ):
        op.create_index(f"ix_application_{col}", "application", [col])

    # =========================
    # interview
    # =========================
    op.create_table(
        "interview",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("application_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("result", sa.String(length=20), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_by_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["application_id"], ["application.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["completed_by_id"], ["user.id"]),
    )
    op.create_index("ix_interview_application_id", "interview", ["application_id"])

    # =========================
    # recurring_schedule
    # at most one active per application
    # =========================
    op.create_table(
        "recurring_schedule",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("application_id", sa.Integer(), nullable=False),
        sa.Column("period", sa.String(length=20), nullable=False),
        sa.Column("number_of_payments", sa.Integer(), nullable=False),
        sa.Column("amount_per_payment", sa.Numeric(12, 2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("completed_payments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_payment_date", sa.Date(), nullable=True),
        sa.Column("last_payment_date", sa.Date(), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["application_id"], ["application.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["user.id"]),
        sa.CheckConstraint("status in ('active','completed','cancelled')", name="ck_recurring_schedule_status"),
    )
    op.create_index("ix_recurring_schedule_application_id", "recurring_schedule", ["application_id"])
    op.create_index(
        "uq_recurring_schedule_active_application",
        "recurring_schedule",
        ["application_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    # =========================
    # recurring_payment
    # =========================
    op.create_table(
        "recurring_payment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("schedule_id", sa.Integer(), nullable=False),
        sa.Column("application_id", sa.Integer(), nullable=False),
        sa.Column("beneficiary_id", sa.Integer(), nullable=True),
        sa.Column("scheme_id", sa.Integer(), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("state_id", sa.Integer(), nullable=True),
        sa.Column("district_id", sa.Integer(), nullable=True),
        sa.Column("area_id", sa.Integer(), nullable=True),
        sa.Column("unit_id", sa.Integer(), nullable=True),
        sa.Column("payment_number", sa.Integer(), nullable=False),
        sa.Column("total_payments", sa.Integer(), nullable=False),
        sa.Column("cycle_number", sa.Integer(), nullable=True),
        sa.Column("total_cycles", sa.Integer(), nullable=True),
        sa.Column("phase_number", sa.Integer(), nullable=True),
        sa.Column("total_phases", sa.Integer(), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("actual_payment_date", sa.Date(), nullable=True),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("payment_method", sa.String(length=30), nullable=True),
        sa.Column("transaction_reference", sa.String(length=120), nullable=True),
        sa.Column("processed_by_id", sa.Integer(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("cancelled_by_id", sa.Integer(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("updated_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["schedule_id"], ["recurring_schedule.id"]),
        sa.ForeignKeyConstraint(["application_id"], ["application.id"]),
        sa.ForeignKeyConstraint(["beneficiary_id"], ["beneficiary.id"]),
        sa.ForeignKeyConstraint(["scheme_id"], ["scheme.id"]),
        sa.ForeignKeyConstraint(["project_id"], ["project.id"]),
        sa.ForeignKeyConstraint(["state_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["district_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["area_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["region.id"]),
        sa.ForeignKeyConstraint(["processed_by_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["cancelled_by_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["updated_by_id"], ["user.id"]),
        sa.UniqueConstraint("schedule_id", "payment_number", name="uq_recurring_payment_schedule_number"),
        sa.CheckConstraint(
            "status in ('scheduled','due','overdue','processing','completed','failed','skipped','cancelled')",
            name="ck_recurring_payment_status",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_recurring_payment_amount"),
    )
    for col in (
        "schedule_id",
        "application_id",
        "beneficiary_id",
        "scheme_id",
        "project_id",
        "state_id",
        "district_id",
        "area_id",
        "unit_id",
        "scheduled_date",
        "due_date",
        "status",
    ):
        op.create_index(f"ix_recurring_payment_{col}", "recurring_payment", [col])
    op.create_index("ix_recurring_payment_status_due", "recurring_payment", ["status", "due_date"])
    op.create_index("ix_recurring_payment_status_scheduled", "recurring_payment", ["status", "scheduled_date"])

    # =========================
    # payment
    # =========================
    op.create_table(
        "payment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payment_number", sa.String(length=40), nullable=False, unique=True),
        sa.Column("application_id", sa.Integer(), nullable=False),
        sa.Column("beneficiary_id", sa.Integer(), nullable=True),
        sa.Column("scheme_id", sa.Integer(), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("recurring_payment_id", sa.Integer(), nullable=True, unique=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="full_payment"),
        sa.Column("method", sa.String(length=30), nullable=False, server_default="bank_transfer"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("installment_number", sa.Integer(), nullable=True),
        sa.Column("total_installments", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("expected_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("transaction_reference", sa.String(length=120), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("initiated_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["application_id"], ["application.id"]),
        sa.ForeignKeyConstraint(["beneficiary_id"], ["beneficiary.id"]),
        sa.ForeignKeyConstraint(["scheme_id"], ["scheme.id"]),
        sa.ForeignKeyConstraint(["project_id"], ["project.id"]),
        sa.ForeignKeyConstraint(["recurring_payment_id"], ["recurring_payment.id"]),
        sa.ForeignKeyConstraint(["initiated_by_id"], ["user.id"]),
    )
    op.create_index("ix_payment_application_id", "payment", ["application_id"])
    op.create_index("ix_payment_beneficiary_id", "payment", ["beneficiary_id"])
    op.create_index("ix_payment_status", "payment", ["status"])


def downgrade():
    op.drop_table("payment")
    op.drop_table("recurring_payment")
    op.drop_index("uq_recurring_schedule_active_application", table_name="recurring_schedule")
    op.drop_table("recurring_schedule")
    op.drop_table("interview")
    op.drop_table("application")
    op.drop_table("beneficiary")
    op.drop_table("user_role_assignment")
    op.drop_table("rbac_role_permissions")
    op.drop_table("rbac_role")
    op.drop_table("permission")
    for target in ("scheme", "project", "region"):
        op.drop_table(f"user_scope_{target}s")
    op.drop_table("user")
    op.drop_table("scheme")
    op.drop_table("project")
    op.drop_table("region")
