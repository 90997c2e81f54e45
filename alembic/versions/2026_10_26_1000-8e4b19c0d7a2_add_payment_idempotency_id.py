"""Add payment idempotency id to applications

Revision ID: 8e4b19c0d7a2
Revises: 5d2a7c41e9b3
Create Date: 2026-10-26 10:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8e4b19c0d7a2"
down_revision: Union[str, None] = "5d2a7c41e9b3"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column(
        "municipal_service_applications",
        sa.Column("payment_idempotency_id", sa.String(100), nullable=True),
    )
    op.create_index(
        "idx_applications_payment_idempotency_id",
        "municipal_service_applications",
        ["payment_idempotency_id"],
        unique=True,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_applications_payment_idempotency_id", "municipal_service_applications")
    op.drop_column("municipal_service_applications", "payment_idempotency_id")
