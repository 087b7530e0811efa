"""create_triage_tables

Revision ID: 3b7d9e2c41a0
Revises:
Create Date: 2026-10-19 09:12:44.508311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7d9e2c41a0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'emails',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('external_message_id', sa.String(255), nullable=False, unique=True),
        sa.Column('thread_id', sa.String(255), nullable=False),
        sa.Column('sender', sa.String(255), nullable=False),
        sa.Column('sender_name', sa.String(255)),
        sa.Column('recipients', sa.JSON(), nullable=False),
        sa.Column('subject', sa.Text(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('body_html', sa.Text(), nullable=False),
        sa.Column('received_at', sa.DateTime(), nullable=False),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('intent', sa.String(32), nullable=False),
        sa.Column('urgency', sa.String(32), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False, server_default='0.0'),
        sa.Column('reasoning', sa.Text(), nullable=False),
        sa.Column('suggested_actions', sa.JSON(), nullable=False),
        sa.Column('draft_reply', sa.Text()),
        sa.Column('signal_score', sa.Integer()),
        sa.Column('model_version', sa.String(100)),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text()),
        sa.Column('processed_at', sa.DateTime()),
        sa.Column('user_action', sa.String(32), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_surfaced_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_emails_user_id', 'emails', ['user_id'])
    op.create_index('ix_emails_received_at', 'emails', ['received_at'])
    op.create_index('ix_emails_urgency', 'emails', ['urgency'])
    op.create_index('ix_emails_is_read', 'emails', ['is_read'])
    op.create_index('ix_emails_user_received', 'emails', ['user_id', 'received_at'])
    op.create_index('ix_emails_user_urgency', 'emails', ['user_id', 'urgency'])

    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(32), nullable=False),
        sa.Column('due_date', sa.DateTime()),
        sa.Column('source_email_id', sa.Uuid()),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('created_by', sa.String(16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime()),
    )
    op.create_index('ix_tasks_user_id', 'tasks', ['user_id'])

    op.create_table(
        'decisions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('email_id', sa.Uuid(), nullable=False),
        sa.Column('task_id', sa.Uuid()),
        sa.Column('reminder_id', sa.Uuid()),
        sa.Column('decision_type', sa.String(32), nullable=False),
        sa.Column('decision_text', sa.Text(), nullable=False),
        sa.Column('source', sa.String(16), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('follow_up_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('snooze_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_to_complete', sa.Integer()),
    )
    op.create_index('ix_decisions_user_id', 'decisions', ['user_id'])
    op.create_index('ix_decisions_follow_up_at', 'decisions', ['follow_up_at'])
    op.create_index('ix_decisions_user_status_follow_up', 'decisions', ['user_id', 'status', 'follow_up_at'])

    op.create_table(
        'email_reminders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('email_id', sa.Uuid(), nullable=False),
        sa.Column('remind_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('reason', sa.Text()),
        sa.Column('triggered_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_email_reminders_user_id', 'email_reminders', ['user_id'])
    op.create_index('ix_email_reminders_email_id', 'email_reminders', ['email_id'])
    op.create_index('ix_email_reminders_due', 'email_reminders', ['remind_at', 'status'])
    # At most one pending reminder per email
    op.create_index(
        'uq_email_reminders_pending',
        'email_reminders',
        ['email_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'notification_state',
        sa.Column('user_id', sa.String(255), primary_key=True),
        sa.Column('push_token', sa.String(255)),
        sa.Column('reminders', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('decision_follow_ups', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('urgent_emails', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notifications_sent_today', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_notification_sent_at', sa.DateTime()),
    )

    op.create_table(
        'brief_cache',
        sa.Column('user_id', sa.String(255), primary_key=True),
        sa.Column('time_of_day', sa.String(16), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('generated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'user_action_log',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('email_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('ai_suggestion', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_user_action_log_user_id', 'user_action_log', ['user_id'])


def downgrade() -> None:
    op.drop_table('user_action_log')
    op.drop_table('brief_cache')
    op.drop_table('notification_state')
    op.drop_index('uq_email_reminders_pending', table_name='email_reminders')
    op.drop_table('email_reminders')
    op.drop_table('decisions')
    op.drop_table('tasks')
    op.drop_table('emails')
