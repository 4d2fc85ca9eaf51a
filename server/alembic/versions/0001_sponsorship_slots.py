"""Sponsorship requests and slot grants.

Revision ID: 0001_sponsorship_slots
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_sponsorship_slots"
down_revision = None
branch_labels = None
depends_on = None

PLACEMENT_CHECK = "placement IN ('home_top', 'home_right')"


def upgrade() -> None:
    request_status = sa.Enum("pending", "processed", "rejected", name="sponsorship_request_status")
    grant_source = sa.Enum("manual", "checkout", name="sponsorship_grant_source")

    op.create_table(
        "sponsorship_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("requester_email", sa.String(length=255), nullable=False),
        sa.Column("product_ref", sa.String(length=500), nullable=False),
        sa.Column("placement", sa.String(length=20), nullable=False),
        sa.Column("slot_index", sa.Integer(), nullable=True),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("status", request_status, nullable=False, server_default="pending"),
        sa.Column("processed_grant_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint(PLACEMENT_CHECK, name="ck_sponsorship_requests_placement"),
        sa.CheckConstraint("duration_days > 0", name="ck_sponsorship_requests_duration"),
    )
    op.create_index("ix_sponsorship_requests_requester_email", "sponsorship_requests", ["requester_email"])
    op.create_index("ix_sponsorship_requests_status", "sponsorship_requests", ["status"])
    op.create_index("ix_sponsorship_requests_created_at", "sponsorship_requests", ["created_at"])

    op.create_table(
        "sponsorship_grants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("placement", sa.String(length=20), nullable=False),
        sa.Column("slot_index", sa.Integer(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", grant_source, nullable=False, server_default="manual"),
        sa.Column("amount_usd_cents", sa.Integer(), nullable=True),
        sa.Column("order_id", sa.String(length=64), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint(PLACEMENT_CHECK, name="ck_sponsorship_grants_placement"),
        sa.CheckConstraint("ends_at > starts_at", name="ck_sponsorship_grants_window"),
        sa.CheckConstraint("slot_index >= 0", name="ck_sponsorship_grants_slot_index"),
    )
    op.create_index("ix_sponsorship_grants_product_id", "sponsorship_grants", ["product_id"])
    op.create_index(
        "ix_sponsorship_grants_slot_window",
        "sponsorship_grants",
        ["placement", "slot_index", "starts_at"],
    )

    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            "ALTER TABLE sponsorship_grants ADD CONSTRAINT ex_sponsorship_grants_slot_window "
            "EXCLUDE USING gist (placement WITH =, slot_index WITH =, tstzrange(starts_at, ends_at, '[)') WITH &&)"
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute("ALTER TABLE sponsorship_grants DROP CONSTRAINT IF EXISTS ex_sponsorship_grants_slot_window")
    op.drop_index("ix_sponsorship_grants_slot_window", table_name="sponsorship_grants")
    op.drop_index("ix_sponsorship_grants_product_id", table_name="sponsorship_grants")
    op.drop_table("sponsorship_grants")
    op.drop_index("ix_sponsorship_requests_created_at", table_name="sponsorship_requests")
    op.drop_index("ix_sponsorship_requests_status", table_name="sponsorship_requests")
    op.drop_index("ix_sponsorship_requests_requester_email", table_name="sponsorship_requests")
    op.drop_table("sponsorship_requests")
    sa.Enum(name="sponsorship_grant_source").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="sponsorship_request_status").drop(op.get_bind(), checkfirst=True)
