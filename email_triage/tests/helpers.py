"""Shared fixtures for the test suite."""
from datetime import datetime
from uuid import uuid4

import pytz

from ..database import DatabaseManager, Email, ProcessingStatus

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=pytz.UTC)


def make_db() -> DatabaseManager:
    """Fresh in-memory database with all tables."""
    db = DatabaseManager(database_url='sqlite://')
    db.create_tables()
    return db


def add_email(db: DatabaseManager, user_id: str = 'user-1', **fields) -> Email:
    values = {
        'external_message_id': f"msg-{uuid4().hex[:12]}",
        'thread_id': 'thread-1',
        'sender': 'alice@example.com',
        'sender_name': 'Alice',
        'subject': 'Hello',
        'body': 'Just checking in.',
        'received_at': NOW,
        'status': ProcessingStatus.COMPLETED,
    }
    values.update(fields)
    return db.insert_email(Email(user_id=user_id, **values))


def enable_push(db: DatabaseManager, user_id: str = 'user-1', **fields):
    fields.setdefault('push_token', 'ExponentPushToken[abc123]')
    return db.upsert_notification_state(user_id, **fields)
