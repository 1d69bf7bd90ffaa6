"""create payment_requests table

Revision ID: 7a4e2d91c5b3
Revises: 3f1c9a2b7d10
Create Date: 2026-10-01 09:10:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "7a4e2d91c5b3"
down_revision = "3f1c9a2b7d10"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "payment_requests",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("store_id", sa.String(length=36), nullable=False),
        sa.Column("archived", sa.Boolean(), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("blob", sa.JSON(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_payment_requests_store_id"), "payment_requests", ["store_id"], unique=False
    )
    op.create_index(
        op.f("ix_payment_requests_archived"), "payment_requests", ["archived"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_payment_requests_archived"), table_name="payment_requests")
    op.drop_index(op.f("ix_payment_requests_store_id"), table_name="payment_requests")
    op.drop_table("payment_requests")
