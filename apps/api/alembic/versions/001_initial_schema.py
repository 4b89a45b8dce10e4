"""initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = postgresql.JSONB(astext_type=sa.Text())


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("settings", JSONB, nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
        sa.UniqueConstraint("domain"),
    )

    op.create_table(
        "voice_applications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cxml_definition", sa.Text(), nullable=False),
        sa.Column("settings", JSONB, nullable=True),
        sa.Column("provider_app_id", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_voice_applications_tenant_id", "voice_applications", ["tenant_id"], unique=False
    )
    op.create_index(
        "ix_voice_applications_provider_app_id",
        "voice_applications",
        ["provider_app_id"],
        unique=False,
    )

    op.create_table(
        "call_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.String(length=255), nullable=False),
        sa.Column("token", sa.String(length=255), nullable=True),
        sa.Column("call_id", sa.String(length=255), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("caller_id", sa.String(length=255), nullable=True),
        sa.Column("destination", sa.String(length=255), nullable=True),
        sa.Column("direction", sa.String(length=20), nullable=False, server_default="inbound"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="ringing"),
        sa.Column("vapp_server", sa.String(length=255), nullable=True),
        sa.Column("call_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("call_answer_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("answer_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("webhook_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("webhook_modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("state", JSONB, nullable=True),
        sa.Column("call_metadata", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", name="uq_call_sessions_session_id"),
        sa.UniqueConstraint("token", name="uq_call_sessions_token"),
    )
    op.create_index("ix_call_sessions_domain", "call_sessions", ["domain"], unique=False)
    op.create_index(
        "ix_call_sessions_call_start_time", "call_sessions", ["call_start_time"], unique=False
    )
    op.create_index(
        "ix_call_sessions_tenant_status", "call_sessions", ["tenant_id", "status"], unique=False
    )

    op.create_table(
        "call_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("call_session_id", sa.Uuid(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("payload", JSONB, nullable=False),
        sa.Column("headers", JSONB, nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "processing_status", sa.String(length=20), nullable=False, server_default="pending"
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["call_session_id"], ["call_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "event_id", name="uq_call_events_tenant_event"),
        sa.UniqueConstraint("call_session_id", "sequence", name="uq_call_events_session_seq"),
    )
    op.create_index(
        "ix_call_events_tenant_status",
        "call_events",
        ["tenant_id", "processing_status"],
        unique=False,
    )
    op.create_index(
        "ix_call_events_session_type",
        "call_events",
        ["call_session_id", "event_type"],
        unique=False,
    )

    op.create_table(
        "cdr_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("call_id", sa.String(length=255), nullable=False),
        sa.Column("session_token", sa.String(length=255), nullable=True),
        sa.Column("from_number", sa.String(length=255), nullable=True),
        sa.Column("to_number", sa.String(length=255), nullable=True),
        sa.Column("direction", sa.String(length=10), nullable=False),
        sa.Column("disposition", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("answer_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("billsec", sa.Integer(), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("subscriber", sa.String(length=255), nullable=True),
        sa.Column("cx_trunk_id", sa.String(length=255), nullable=True),
        sa.Column("application", sa.String(length=255), nullable=True),
        sa.Column("route", sa.String(length=255), nullable=True),
        sa.Column("vapp_server", sa.String(length=255), nullable=True),
        sa.Column("raw_cdr", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "call_id", name="uq_cdr_logs_tenant_call"),
    )
    op.create_index("ix_cdr_logs_session_token", "cdr_logs", ["session_token"], unique=False)
    op.create_index("ix_cdr_logs_domain", "cdr_logs", ["domain"], unique=False)
    op.create_index(
        "ix_cdr_logs_tenant_disposition", "cdr_logs", ["tenant_id", "disposition"], unique=False
    )
    op.create_index(
        "ix_cdr_logs_tenant_start_time", "cdr_logs", ["tenant_id", "start_time"], unique=False
    )
    op.create_index(
        "ix_cdr_logs_tenant_from_to",
        "cdr_logs",
        ["tenant_id", "from_number", "to_number"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_cdr_logs_tenant_from_to", table_name="cdr_logs")
    op.drop_index("ix_cdr_logs_tenant_start_time", table_name="cdr_logs")
    op.drop_index("ix_cdr_logs_tenant_disposition", table_name="cdr_logs")
    op.drop_index("ix_cdr_logs_domain", table_name="cdr_logs")
    op.drop_index("ix_cdr_logs_session_token", table_name="cdr_logs")
    op.drop_table("cdr_logs")
    op.drop_index("ix_call_events_session_type", table_name="call_events")
    op.drop_index("ix_call_events_tenant_status", table_name="call_events")
    op.drop_table("call_events")
    op.drop_index("ix_call_sessions_tenant_status", table_name="call_sessions")
    op.drop_index("ix_call_sessions_call_start_time", table_name="call_sessions")
    op.drop_index("ix_call_sessions_domain", table_name="call_sessions")
    op.drop_table("call_sessions")
    op.drop_index("ix_voice_applications_provider_app_id", table_name="voice_applications")
    op.drop_index("ix_voice_applications_tenant_id", table_name="voice_applications")
    op.drop_table("voice_applications")
    op.drop_table("tenants")
