"""create prize_tokens and winners

Revision ID: 0001
Revises:
Create Date: 2025-09-14 10:12:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "winners",
        sa.Column("device_id", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("device_id", name="winners_pkey"),
    )
    op.create_table(
        "prize_tokens",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("claimed_by", sa.Text(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(claimed_by IS NULL AND claimed_at IS NULL)"
            " OR (claimed_by IS NOT NULL AND claimed_at IS NOT NULL)",
            name="ck_prize_tokens_claim_pair",
        ),
        sa.PrimaryKeyConstraint("id", name="prize_tokens_pkey"),
    )
    op.create_index(
        "ix_prize_tokens_free",
        "prize_tokens",
        ["id"],
        postgresql_where=sa.text("claimed_by IS NULL"),
        sqlite_where=sa.text("claimed_by IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("ix_prize_tokens_free", table_name="prize_tokens")
    op.drop_table("prize_tokens")
    op.drop_table("winners")
