from __future__ import annotations

"""init schema"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Extensions
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "users",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=100)),
        sa.Column("avatar_url", sa.String(length=500)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    # Deleting a thread removes its messages explicitly, so no cascades here
    op.create_table(
        "threads",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.dialects.postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("thread_title", sa.String(length=200), nullable=False, server_default="New Chat"),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index("idx_threads_user_updated", "threads", ["user_id", "updated_at"])

    op.create_table(
        "messages",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("seq", sa.BigInteger, sa.Identity(always=True), nullable=False),
        sa.Column("thread_id", sa.dialects.postgresql.UUID(as_uuid=True), sa.ForeignKey("threads.id"), nullable=False),
        # Author uid for user messages, 'ai-assistant' for replies
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("is_failed", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint("role IN ('user', 'assistant', 'system')", name="ck_messages_role"),
    )
    op.create_index("idx_messages_thread_order", "messages", ["thread_id", "created_at", "seq"])

    # Change notifications consumed by the subscription hub
    op.execute(
        """
        CREATE OR REPLACE FUNCTION notify_thread_change() RETURNS trigger AS $$
        DECLARE
            row_data threads%ROWTYPE;
        BEGIN
            IF TG_OP = 'DELETE' THEN
                row_data := OLD;
            ELSE
                row_data := NEW;
            END IF;
            PERFORM pg_notify(
                'thread_changes',
                json_build_object('op', TG_OP, 'thread_id', row_data.id, 'user_id', row_data.user_id)::text
            );
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER threads_notify
        AFTER INSERT OR UPDATE OR DELETE ON threads
        FOR EACH ROW EXECUTE FUNCTION notify_thread_change();
        """
    )

    # Statement-level so bulk truncation emits one notification per statement
    op.execute(
        """
        CREATE OR REPLACE FUNCTION notify_message_change() RETURNS trigger AS $$
        DECLARE
            changed_thread UUID;
        BEGIN
            IF TG_OP = 'DELETE' THEN
                FOR changed_thread IN SELECT DISTINCT thread_id FROM old_rows LOOP
                    PERFORM pg_notify(
                        'message_changes',
                        json_build_object('op', TG_OP, 'thread_id', changed_thread)::text
                    );
                END LOOP;
            ELSE
                FOR changed_thread IN SELECT DISTINCT thread_id FROM new_rows LOOP
                    PERFORM pg_notify(
                        'message_changes',
                        json_build_object('op', TG_OP, 'thread_id', changed_thread)::text
                    );
                END LOOP;
            END IF;
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER messages_notify_insert
        AFTER INSERT ON messages
        REFERENCING NEW TABLE AS new_rows
        FOR EACH STATEMENT EXECUTE FUNCTION notify_message_change();
        """
    )
    op.execute(
        """
        CREATE TRIGGER messages_notify_update
        AFTER UPDATE ON messages
        REFERENCING NEW TABLE AS new_rows
        FOR EACH STATEMENT EXECUTE FUNCTION notify_message_change();
        """
    )
    op.execute(
        """
        CREATE TRIGGER messages_notify_delete
        AFTER DELETE ON messages
        REFERENCING OLD TABLE AS old_rows
        FOR EACH STATEMENT EXECUTE FUNCTION notify_message_change();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS messages_notify_delete ON messages;")
    op.execute("DROP TRIGGER IF EXISTS messages_notify_update ON messages;")
    op.execute("DROP TRIGGER IF EXISTS messages_notify_insert ON messages;")
    op.execute("DROP FUNCTION IF EXISTS notify_message_change();")
    op.execute("DROP TRIGGER IF EXISTS threads_notify ON threads;")
    op.execute("DROP FUNCTION IF EXISTS notify_thread_change();")

    op.drop_index("idx_messages_thread_order", table_name="messages")
    op.drop_table("messages")

    op.drop_index("idx_threads_user_updated", table_name="threads")
    op.drop_table("threads")

    op.drop_table("users")
