"""create deal lifecycle tables

Revision ID: 202610170001
Revises:
Create Date: 2026-10-17 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610170001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _money(name: str, nullable: bool = True, server_default: str | None = None) -> sa.Column:
    return sa.Column(name, sa.Numeric(18, 2), nullable=nullable, server_default=server_default)


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _flag(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false())


_MILESTONE_COLUMNS = (
    "lead_date",
    "inspection_scheduled_date",
    "claim_filed_date",
    "adjuster_met_date",
    "approved_date",
    "collect_acv_date",
    "collect_deductible_date",
    "materials_selected_date",
    "install_scheduled_date",
    "installed_date",
    "invoice_sent_at",
    "depreciation_collected_date",
    "complete_date",
    "paid_date",
    "awaiting_approval_date",
    "acv_collected_date",
    "deductible_collected_date",
    "completion_signed_date",
)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        _ts("created_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "reps",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("commission_level", sa.String(length=16), nullable=False, server_default="junior"),
        sa.Column("default_commission_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("can_self_gen", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("manager_id", sa.Uuid(), sa.ForeignKey("reps.id", ondelete="SET NULL"), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _flag("training_completed"),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "deals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="lead"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("homeowner_name", sa.Text(), nullable=False),
        sa.Column("homeowner_phone", sa.String(length=64), nullable=True),
        sa.Column("homeowner_email", sa.String(length=320), nullable=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=32), nullable=True),
        sa.Column("zip_code", sa.String(length=16), nullable=True),
        sa.Column("roof_type", sa.String(length=32), nullable=True),
        sa.Column("roof_squares", sa.Numeric(10, 2), nullable=True),
        sa.Column("roof_squares_with_waste", sa.Numeric(10, 2), nullable=True),
        sa.Column("stories", sa.Integer(), nullable=True),
        sa.Column("roofing_system_type", sa.String(length=64), nullable=True),
        sa.Column("material_category", sa.String(length=64), nullable=True),
        sa.Column("material_type", sa.String(length=64), nullable=True),
        sa.Column("material_color", sa.String(length=64), nullable=True),
        sa.Column("drip_edge", sa.String(length=64), nullable=True),
        sa.Column("vent_color", sa.String(length=64), nullable=True),
        sa.Column("insurance_company", sa.Text(), nullable=True),
        sa.Column("policy_number", sa.String(length=128), nullable=True),
        sa.Column("claim_number", sa.String(length=128), nullable=True),
        sa.Column("date_of_loss", sa.Date(), nullable=True),
        sa.Column("date_type", sa.String(length=32), nullable=True),
        _ts("inspection_date"),
        _money("rcv"),
        _money("acv"),
        _money("depreciation"),
        _money("deductible"),
        _money("sales_tax"),
        sa.Column("sales_tax_rate", sa.Numeric(6, 4), nullable=True),
        _money("total_price", nullable=False, server_default="0"),
        _money("total_contract_value", nullable=False, server_default="0"),
        sa.Column("approval_type", sa.String(length=32), nullable=True),
        sa.Column("adjuster_name", sa.Text(), nullable=True),
        sa.Column("adjuster_phone", sa.String(length=64), nullable=True),
        sa.Column("adjuster_email", sa.String(length=320), nullable=True),
        _ts("adjuster_meeting_date"),
        _flag("adjuster_not_assigned"),
        sa.Column("adjuster_notes", sa.Text(), nullable=True),
        _flag("contract_signed"),
        _ts("signed_date"),
        sa.Column("agreement_document_url", sa.Text(), nullable=True),
        sa.Column("signature_url", sa.Text(), nullable=True),
        _ts("signature_date"),
        sa.Column("insurance_agreement_url", sa.Text(), nullable=True),
        sa.Column("lost_statement_url", sa.Text(), nullable=True),
        sa.Column("permit_file_url", sa.Text(), nullable=True),
        _flag("acv_check_collected"),
        _money("acv_check_amount"),
        sa.Column("acv_check_date", sa.Date(), nullable=True),
        sa.Column("acv_receipt_url", sa.Text(), nullable=True),
        sa.Column("deductible_receipt_url", sa.Text(), nullable=True),
        sa.Column("materials_ordered_date", sa.Date(), nullable=True),
        sa.Column("materials_delivered_date", sa.Date(), nullable=True),
        sa.Column("install_date", sa.Date(), nullable=True),
        sa.Column("install_time", sa.String(length=32), nullable=True),
        sa.Column("install_request_date", sa.Date(), nullable=True),
        sa.Column("install_request_notes", sa.Text(), nullable=True),
        sa.Column("crew_assignment", sa.Text(), nullable=True),
        sa.Column("completion_date", sa.Date(), nullable=True),
        sa.Column("inspection_images", sa.JSON(), nullable=False),
        sa.Column("install_images", sa.JSON(), nullable=False),
        sa.Column("completion_images", sa.JSON(), nullable=False),
        sa.Column("completion_form_url", sa.Text(), nullable=True),
        sa.Column("completion_form_signature_url", sa.Text(), nullable=True),
        sa.Column("homeowner_completion_signature_url", sa.Text(), nullable=True),
        sa.Column("invoice_sent_date", sa.Date(), nullable=True),
        _money("invoice_amount"),
        sa.Column("invoice_items", sa.JSON(), nullable=False),
        _money("invoice_total"),
        _ts("invoice_created_at"),
        sa.Column("invoice_url", sa.Text(), nullable=True),
        _flag("depreciation_check_collected"),
        _money("depreciation_check_amount"),
        sa.Column("depreciation_check_date", sa.Date(), nullable=True),
        sa.Column("depreciation_receipt_url", sa.Text(), nullable=True),
        _money("supplement_amount", nullable=False, server_default="0"),
        _flag("supplement_approved"),
        sa.Column("supplement_notes", sa.Text(), nullable=True),
        _flag("payment_requested"),
        _ts("payment_request_date"),
        _flag("commission_paid"),
        _ts("commission_paid_date"),
        _money("commission_override_amount"),
        sa.Column("commission_override_reason", sa.Text(), nullable=True),
        _ts("commission_override_date"),
        *[_ts(name) for name in _MILESTONE_COLUMNS],
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deals_status", "deals", ["status"], unique=False)

    op.create_table(
        "deal_commissions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rep_id", sa.Uuid(), sa.ForeignKey("reps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("commission_type", sa.String(length=16), nullable=False),
        sa.Column("commission_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        _money("commission_amount", nullable=False, server_default="0"),
        _flag("paid"),
        sa.Column("paid_date", sa.Date(), nullable=True),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("deal_id", "rep_id", "commission_type", name="uq_deal_commissions_deal_rep_type"),
    )
    op.create_index("ix_deal_commissions_rep_id", "deal_commissions", ["rep_id"], unique=False)

    op.create_table(
        "deal_documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("document_type", sa.String(length=64), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_type", sa.String(length=128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("uploaded_by", sa.String(length=128), nullable=True),
        _ts("created_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deal_documents_deal_id", "deal_documents", ["deal_id"], unique=False)

    op.create_table(
        "rep_pins",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("rep_id", sa.Uuid(), sa.ForeignKey("reps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assigned_closer_id", sa.Uuid(), sa.ForeignKey("reps.id", ondelete="SET NULL"), nullable=True),
        sa.Column("deal_id", sa.Uuid(), sa.ForeignKey("deals.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="lead"),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=False),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=False),
        sa.Column("homeowner_name", sa.Text(), nullable=True),
        sa.Column("homeowner_phone", sa.String(length=64), nullable=True),
        sa.Column("homeowner_email", sa.String(length=320), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=32), nullable=True),
        sa.Column("zip_code", sa.String(length=16), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("appointment_date"),
        _ts("appointment_end_date"),
        sa.Column("appointment_all_day", sa.Boolean(), nullable=True),
        sa.Column("outcome", sa.String(length=64), nullable=True),
        sa.Column("outcome_notes", sa.Text(), nullable=True),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        sa.Column("document_url", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("utility_url", sa.Text(), nullable=True),
        sa.Column("contract_url", sa.Text(), nullable=True),
        sa.Column("inspection_images", sa.JSON(), nullable=False),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("deal_id"),
    )
    op.create_index("ix_rep_pins_rep_id", "rep_pins", ["rep_id"], unique=False)
    op.create_index("ix_rep_pins_assigned_closer_id", "rep_pins", ["assigned_closer_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_rep_pins_assigned_closer_id", table_name="rep_pins")
    op.drop_index("ix_rep_pins_rep_id", table_name="rep_pins")
    op.drop_table("rep_pins")

    op.drop_index("ix_deal_documents_deal_id", table_name="deal_documents")
    op.drop_table("deal_documents")

    op.drop_index("ix_deal_commissions_rep_id", table_name="deal_commissions")
    op.drop_table("deal_commissions")

    op.drop_index("ix_deals_status", table_name="deals")
    op.drop_table("deals")

    op.drop_table("reps")
    op.drop_table("user_roles")
    op.drop_table("profiles")
