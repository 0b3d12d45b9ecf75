"""create_ledger_tables

Revision ID: create_ledger_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "create_ledger_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        )
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.text("CURRENT_TIMESTAMP"),
                nullable=False,
            )
        )
    return cols


def upgrade() -> None:
    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("allergies", sa.JSON(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("physician_id", sa.String(length=50), nullable=True),
        sa.Column(
            "consultation_type",
            sa.Enum("OPD", "Specialist", "Emergency", "FollowUp", name="consultation_type_enum"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED", name="appointment_status_enum"),
            nullable=False,
        ),
        sa.Column("consultation_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_patient_id"), "appointments", ["patient_id"])

    op.create_table(
        "soap_notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("physician_id", sa.String(length=50), nullable=True),
        sa.Column("subjective", sa.Text(), nullable=True),
        sa.Column("objective", sa.Text(), nullable=True),
        sa.Column("assessment", sa.Text(), nullable=True),
        sa.Column("plan", sa.Text(), nullable=True),
        sa.Column("is_draft", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_soap_notes_appointment_id"), "soap_notes", ["appointment_id"])

    op.create_table(
        "service_catalogue",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column(
            "category",
            sa.Enum(
                "consultation",
                "lab_test",
                "imaging",
                "procedure",
                "medication",
                "bed_charge",
                "nursing",
                "other",
                name="service_category_enum",
            ),
            nullable=False,
        ),
        sa.Column("unit_price", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_billable", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index(op.f("ix_service_catalogue_category"), "service_catalogue", ["category"])

    op.create_table(
        "drugs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("generic_name", sa.String(length=255), nullable=True),
        sa.Column("therapeutic_class", sa.String(length=100), nullable=True),
        sa.Column("contraindications", sa.JSON(), nullable=True),
        sa.Column("strength", sa.String(length=50), nullable=True),
        sa.Column("form", sa.String(length=50), nullable=True),
        sa.Column("stock_quantity", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("reorder_level", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("stock_quantity >= 0", name="ck_drugs_stock_quantity_non_negative"),
        sa.CheckConstraint("reorder_level >= 0", name="ck_drugs_reorder_level_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "test_catalogue",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("turnaround_time", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "prescriptions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("encounter_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("physician_id", sa.String(length=50), nullable=True),
        sa.Column("drug_id", sa.Integer(), nullable=True),
        sa.Column("drug_name", sa.String(length=255), nullable=False),
        sa.Column("dosage", sa.String(length=100), nullable=True),
        sa.Column("frequency", sa.String(length=100), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("instructions", sa.String(length=500), nullable=True),
        sa.Column("instant_dispensing", sa.Boolean(), nullable=False),
        sa.Column("stock_reserved", sa.Boolean(), nullable=False),
        sa.Column("stock_reserved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "dispensed", "cancelled", name="prescription_status_enum"),
            nullable=False,
        ),
        sa.Column("interaction_warnings", sa.JSON(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["encounter_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["drug_id"], ["drugs.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_prescriptions_encounter_id"), "prescriptions", ["encounter_id"])
    op.create_index(op.f("ix_prescriptions_patient_id"), "prescriptions", ["patient_id"])
    op.create_index(op.f("ix_prescriptions_drug_id"), "prescriptions", ["drug_id"])

    op.create_table(
        "dispensations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("prescription_id", sa.Integer(), nullable=False),
        sa.Column("quantity_dispensed", sa.Integer(), nullable=False),
        sa.Column("dispensed_by", sa.Integer(), nullable=True),
        sa.Column("dispensed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["prescription_id"], ["prescriptions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_dispensations_prescription_id"), "dispensations", ["prescription_id"])

    op.create_table(
        "lab_orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("encounter_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("test_id", sa.Integer(), nullable=True),
        sa.Column("test_name", sa.String(length=255), nullable=False),
        sa.Column(
            "priority",
            sa.Enum("urgent", "fast", "normal", name="lab_order_priority_enum"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("pending", "in_progress", "completed", "cancelled", name="lab_order_status_enum"),
            nullable=False,
        ),
        sa.Column("clinical_notes", sa.String(length=1000), nullable=True),
        sa.Column("ordered_by", sa.Integer(), nullable=True),
        sa.Column("expected_completion_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["encounter_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["test_id"], ["test_catalogue.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_lab_orders_encounter_id"), "lab_orders", ["encounter_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("drug_id", sa.Integer(), nullable=False),
        sa.Column(
            "movement_type",
            sa.Enum("RESERVATION", "RETURN", name="stock_movement_type_enum"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reference_no", sa.String(length=100), nullable=False),
        sa.Column("prescription_id", sa.Integer(), nullable=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("remarks", sa.String(length=500), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["drug_id"], ["drugs.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stock_movements_drug_id"), "stock_movements", ["drug_id"])
    op.create_index(op.f("ix_stock_movements_prescription_id"), "stock_movements", ["prescription_id"])

    op.create_table(
        "billing_accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("encounter_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("account_no", sa.String(length=50), nullable=False),
        sa.Column(
            "status",
            sa.Enum("open", "closed", name="billing_account_status_enum"),
            nullable=False,
        ),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["encounter_id"], ["appointments.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("encounter_id"),
        sa.UniqueConstraint("account_no"),
    )
    op.create_index(op.f("ix_billing_accounts_patient_id"), "billing_accounts", ["patient_id"])

    op.create_table(
        "billing_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("encounter_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column(
            "item_type",
            sa.Enum(
                "consultation",
                "lab_test",
                "imaging",
                "procedure",
                "pharmacy",
                "bed_charge",
                name="billing_item_type_enum",
            ),
            nullable=False,
        ),
        sa.Column("service_id", sa.Integer(), nullable=True),
        sa.Column("service_code", sa.String(length=50), nullable=True),
        sa.Column("reference_type", sa.String(length=50), nullable=True),
        sa.Column("reference_id", sa.String(length=50), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("unpaid", "paid", "cancelled", name="billing_item_status_enum"),
            nullable=False,
        ),
        sa.Column("posted_by", sa.Integer(), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["encounter_id"], ["appointments.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["account_id"], ["billing_accounts.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["service_id"], ["service_catalogue.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_billing_items_account_id"), "billing_items", ["account_id"])
    op.create_index("ix_billing_items_encounter_type", "billing_items", ["encounter_id", "item_type"])

    # At most one live consultation charge per encounter.
    op.create_index(
        "uq_billing_items_one_consultation_per_encounter",
        "billing_items",
        ["encounter_id"],
        unique=True,
        postgresql_where=sa.text("item_type = 'consultation' AND status <> 'cancelled'"),
        sqlite_where=sa.text("item_type = 'consultation' AND status <> 'cancelled'"),
    )


def downgrade() -> None:
    op.drop_index("uq_billing_items_one_consultation_per_encounter", table_name="billing_items")
    op.drop_index("ix_billing_items_encounter_type", table_name="billing_items")
    op.drop_index(op.f("ix_billing_items_account_id"), table_name="billing_items")
    op.drop_table("billing_items")

    op.drop_index(op.f("ix_billing_accounts_patient_id"), table_name="billing_accounts")
    op.drop_table("billing_accounts")

    op.drop_index(op.f("ix_stock_movements_prescription_id"), table_name="stock_movements")
    op.drop_index(op.f("ix_stock_movements_drug_id"), table_name="stock_movements")
    op.drop_table("stock_movements")

    op.drop_index(op.f("ix_lab_orders_encounter_id"), table_name="lab_orders")
    op.drop_table("lab_orders")

    op.drop_index(op.f("ix_dispensations_prescription_id"), table_name="dispensations")
    op.drop_table("dispensations")

    op.drop_index(op.f("ix_prescriptions_drug_id"), table_name="prescriptions")
    op.drop_index(op.f("ix_prescriptions_patient_id"), table_name="prescriptions")
    op.drop_index(op.f("ix_prescriptions_encounter_id"), table_name="prescriptions")
    op.drop_table("prescriptions")

    op.drop_table("test_catalogue")
    op.drop_table("drugs")

    op.drop_index(op.f("ix_service_catalogue_category"), table_name="service_catalogue")
    op.drop_table("service_catalogue")

    op.drop_index(op.f("ix_soap_notes_appointment_id"), table_name="soap_notes")
    op.drop_table("soap_notes")

    op.drop_index(op.f("ix_appointments_patient_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("patients")

    for enum_name in (
        "billing_item_status_enum",
        "billing_item_type_enum",
        "billing_account_status_enum",
        "stock_movement_type_enum",
        "lab_order_status_enum",
        "lab_order_priority_enum",
        "prescription_status_enum",
        "service_category_enum",
        "appointment_status_enum",
        "consultation_type_enum",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
