"""create supporter360 schema

Revision ID: 0a1f3c2d9e01
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1f3c2d9e01"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create supporter, alias, event, membership and integration tables."""
    op.create_table(
        "supporter",
        sa.Column("supporter_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("primary_email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("supporter_type", sa.String(length=50), nullable=False, server_default="Unknown"),
        sa.Column("supporter_type_source", sa.String(length=20), nullable=False, server_default="auto"),
        sa.Column("linked_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"),
        sa.Column("flags", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("supporter_id"),
    )
    op.create_index(op.f("ix_supporter_primary_email"), "supporter", ["primary_email"], unique=False)
    op.create_index(op.f("ix_supporter_created_at"), "supporter", ["created_at"], unique=False)
    op.create_index("ix_supporter_linked_ids", "supporter", ["linked_ids"], postgresql_using="gin")

    op.create_table(
        "email_alias",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("supporter_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("is_shared", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["supporter_id"], ["supporter.supporter_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", "supporter_id", name="uq_email_alias_email_supporter"),
    )
    op.create_index(op.f("ix_email_alias_email"), "email_alias", ["email"], unique=False)
    op.create_index(op.f("ix_email_alias_supporter_id"), "email_alias", ["supporter_id"], unique=False)

    op.create_table(
        "event",
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("supporter_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_system", sa.String(length=32), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("event_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"),
        sa.Column("raw_payload_ref", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["supporter_id"], ["supporter.supporter_id"]),
        sa.PrimaryKeyConstraint("event_id"),
        sa.UniqueConstraint("source_system", "external_id", name="uq_event_source_external"),
    )
    op.create_index(op.f("ix_event_supporter_id"), "event", ["supporter_id"], unique=False)
    op.create_index(op.f("ix_event_event_time"), "event", ["event_time"], unique=False)

    op.create_table(
        "membership",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("supporter_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tier", sa.String(length=20), nullable=True),
        sa.Column("cadence", sa.String(length=20), nullable=True),
        sa.Column("billing_method", sa.String(length=20), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Unknown"),
        sa.Column("last_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["supporter_id"], ["supporter.supporter_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("supporter_id"),
    )

    op.create_table(
        "supporter_mailchimp_aggregate",
        sa.Column("supporter_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("click_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_click_date", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["supporter_id"], ["supporter.supporter_id"]),
        sa.PrimaryKeyConstraint("supporter_id"),
    )

    op.create_table(
        "future_ticketing_product_mapping",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=True),
        sa.Column("category_id", sa.String(length=64), nullable=True),
        sa.Column("meaning", sa.String(length=100), nullable=False),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_future_ticketing_product_mapping_product_id"),
        "future_ticketing_product_mapping",
        ["product_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_future_ticketing_product_mapping_category_id"),
        "future_ticketing_product_mapping",
        ["category_id"],
        unique=False,
    )

    op.create_table(
        "integration_checkpoint",
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("value", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("name"),
    )


def downgrade() -> None:
    """Drop all supporter360 tables."""
    op.drop_table("integration_checkpoint")
    op.drop_index(
        op.f("ix_future_ticketing_product_mapping_category_id"), table_name="future_ticketing_product_mapping"
    )
    op.drop_index(
        op.f("ix_future_ticketing_product_mapping_product_id"), table_name="future_ticketing_product_mapping"
    )
    op.drop_table("future_ticketing_product_mapping")
    op.drop_table("supporter_mailchimp_aggregate")
    op.drop_table("membership")
    op.drop_index(op.f("ix_event_event_time"), table_name="event")
    op.drop_index(op.f("ix_event_supporter_id"), table_name="event")
    op.drop_table("event")
    op.drop_index(op.f("ix_email_alias_supporter_id"), table_name="email_alias")
    op.drop_index(op.f("ix_email_alias_email"), table_name="email_alias")
    op.drop_table("email_alias")
    op.drop_index("ix_supporter_linked_ids", table_name="supporter")
    op.drop_index(op.f("ix_supporter_created_at"), table_name="supporter")
    op.drop_index(op.f("ix_supporter_primary_email"), table_name="supporter")
    op.drop_table("supporter")
