"""Create payment and booking tables

Revision ID: 5d2a7c41e9b3
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5d2a7c41e9b3"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "merchants",
        *_base_columns(),
        sa.Column("customer_id", sa.Uuid(), nullable=False),
        sa.Column("merchant_name", sa.String(255), nullable=False),
        sa.Column("subcategory", sa.String(100), nullable=True),
        sa.Column("processor_merchant_id", sa.String(100), nullable=True),
    )
    op.create_index("idx_merchants_customer_id", "merchants", ["customer_id"])

    op.create_table(
        "merchant_fee_profiles",
        *_base_columns(),
        sa.Column("merchant_id", sa.Uuid(), sa.ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("card_basis_points", sa.Integer(), nullable=False, server_default="300"),
        sa.Column("card_fixed_fee_cents", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("ach_basis_points", sa.Integer(), nullable=False, server_default="150"),
        sa.Column("ach_fixed_fee_cents", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("ach_basis_points_fee_limit_cents", sa.Integer(), nullable=True),
        sa.Column("processor_fee_profile_id", sa.String(100), nullable=True),
    )

    op.create_table(
        "user_payment_instruments",
        *_base_columns(),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("processor_instrument_id", sa.String(100), nullable=False),
        sa.Column("instrument_type", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("idx_payment_instruments_user_id", "user_payment_instruments", ["user_id"])

    op.create_table(
        "municipal_service_tiles",
        *_base_columns(),
        sa.Column("customer_id", sa.Uuid(), nullable=False),
        sa.Column("merchant_id", sa.Uuid(), sa.ForeignKey("merchants.id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=True),
        sa.Column("has_time_slots", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("idx_service_tiles_customer_id", "municipal_service_tiles", ["customer_id"])

    op.create_table(
        "municipal_service_applications",
        *_base_columns(),
        sa.Column("tile_id", sa.Uuid(), sa.ForeignKey("municipal_service_tiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("customer_id", sa.Uuid(), nullable=False),
        sa.Column("applicant_name", sa.String(255), nullable=True),
        sa.Column("applicant_email", sa.String(255), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=True),
        sa.Column("booking_start_time", sa.String(8), nullable=True),
        sa.Column("booking_end_time", sa.String(8), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("payment_status", sa.String(20), nullable=True),
        sa.Column("base_amount_cents", sa.Integer(), nullable=True),
        sa.Column("service_fee_cents", sa.Integer(), nullable=True),
        sa.Column("total_amount_cents", sa.Integer(), nullable=True),
        sa.Column("processor_transfer_id", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("idx_applications_tile_date", "municipal_service_applications", ["tile_id", "booking_date"])
    op.create_index("idx_applications_status_created", "municipal_service_applications", ["status", "created_at"])
    op.create_index("idx_applications_user_id", "municipal_service_applications", ["user_id"])

    op.create_table(
        "application_status_history",
        *_base_columns(),
        sa.Column("application_id", sa.Uuid(), sa.ForeignKey("municipal_service_applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("changed_by", sa.Uuid(), nullable=True),
        sa.Column("from_status", sa.String(20), nullable=True),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("application_status_history")
    op.drop_index("idx_applications_user_id", "municipal_service_applications")
    op.drop_index("idx_applications_status_created", "municipal_service_applications")
    op.drop_index("idx_applications_tile_date", "municipal_service_applications")
    op.drop_table("municipal_service_applications")
    op.drop_index("idx_service_tiles_customer_id", "municipal_service_tiles")
    op.drop_table("municipal_service_tiles")
    op.drop_index("idx_payment_instruments_user_id", "user_payment_instruments")
    op.drop_table("user_payment_instruments")
    op.drop_table("merchant_fee_profiles")
    op.drop_index("idx_merchants_customer_id", "merchants")
    op.drop_table("merchants")
