"""Initial schema: invitees, message history and scheduled messages.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "invitees",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("rsvp_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("additional_info", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_invitees_phone_number", "invitees", ["phone_number"], unique=False)

    op.create_table(
        "message_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("invitee_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("template_id", sa.String(length=64), nullable=True),
        sa.Column("message_body", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="sent"),
        sa.Column("response_received", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("response_text", sa.Text(), nullable=True),
        sa.Column("response_received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("whatsapp_message_id", sa.String(length=128), nullable=True),
        sa.Column("status_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_code", sa.Integer(), nullable=True),
        sa.Column("error_title", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["invitee_id"], ["invitees.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_message_history_invitee_id", "message_history", ["invitee_id"], unique=False)
    op.create_index(
        "ix_message_history_whatsapp_message_id", "message_history", ["whatsapp_message_id"], unique=False
    )

    op.create_table(
        "scheduled_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("to", sa.String(length=32), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("invitee_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("template_id", sa.String(length=64), nullable=True),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["invitee_id"], ["invitees.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_scheduled_messages_scheduled_date", "scheduled_messages", ["scheduled_date"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_scheduled_messages_scheduled_date", table_name="scheduled_messages")
    op.drop_table("scheduled_messages")
    op.drop_index("ix_message_history_whatsapp_message_id", table_name="message_history")
    op.drop_index("ix_message_history_invitee_id", table_name="message_history")
    op.drop_table("message_history")
    op.drop_index("ix_invitees_phone_number", table_name="invitees")
    op.drop_table("invitees")
