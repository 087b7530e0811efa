"""
Request bodies and response serializers for the HTTP surface.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database import Decision, Email, EmailReminder, NotificationState, Task


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SyncRequest(_Body):
    max_results: int = Field(10, alias='maxResults', ge=1, le=100)


class ActionRequest(_Body):
    action: str


class ResolveRequest(_Body):
    resolution: str


class ReminderCreate(_Body):
    email_id: UUID = Field(alias='emailId')
    remind_at: datetime = Field(alias='remindAt')
    reason: Optional[str] = None


class TaskCreate(_Body):
    title: str
    description: str = ''
    priority: str = 'MEDIUM'
    due_date: Optional[datetime] = Field(None, alias='dueDate')


class TaskUpdate(_Body):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = Field(None, alias='dueDate')


class PushTokenRequest(_Body):
    push_token: str = Field(alias='pushToken')


class NotificationSettingsUpdate(_Body):
    reminders: Optional[bool] = None
    decision_follow_ups: Optional[bool] = Field(None, alias='decisionFollowUps')
    urgent_emails: Optional[bool] = Field(None, alias='urgentEmails')


def email_to_dict(email: Email) -> dict:
    return {
        'id': str(email.id),
        'externalMessageId': email.external_message_id,
        'threadId': email.thread_id,
        'from': {'email': email.sender, 'name': email.sender_name},
        'to': email.recipients,
        'subject': email.subject,
        'body': email.body,
        'receivedAt': email.received_at,
        'attachments': email.attachments,
        'aiAnalysis': {
            'intent': str(email.intent),
            'urgency': str(email.urgency),
            'summary': email.summary,
            'confidenceScore': email.confidence_score,
            'reasoning': email.reasoning,
            'suggestedActions': email.suggested_actions,
            'draftReply': email.draft_reply,
        },
        'aiProcessingStatus': str(email.status),
        'aiRetryCount': email.retry_count,
        'aiLastError': email.last_error,
        'userAction': str(email.user_action),
        'isRead': email.is_read,
        'lastSurfacedAt': email.last_surfaced_at,
    }


def decision_to_dict(decision: Decision) -> dict:
    return {
        'id': str(decision.id),
        'emailId': str(decision.email_id),
        'taskId': str(decision.task_id) if decision.task_id else None,
        'decisionType': str(decision.decision_type),
        'decisionText': decision.decision_text,
        'status': str(decision.status),
        'createdAt': decision.created_at,
        'followUpAt': decision.follow_up_at,
        'completedAt': decision.completed_at,
        'snoozeCount': decision.snooze_count,
        'timeToComplete': decision.time_to_complete,
    }


def reminder_to_dict(reminder: EmailReminder, email: Optional[Email] = None) -> dict:
    data = {
        'id': str(reminder.id),
        'emailId': str(reminder.email_id),
        'remindAt': reminder.remind_at,
        'status': str(reminder.status),
        'reason': reminder.reason,
        'triggeredAt': reminder.triggered_at,
        'createdAt': reminder.created_at,
    }
    if email is not None:
        data['email'] = {'subject': email.subject, 'sender': email.sender, 'receivedAt': email.received_at}
    return data


def task_to_dict(task: Task) -> dict:
    return {
        'id': str(task.id),
        'title': task.title,
        'description': task.description,
        'priority': str(task.priority),
        'dueDate': task.due_date,
        'sourceEmailId': str(task.source_email_id) if task.source_email_id else None,
        'status': str(task.status),
        'createdBy': task.created_by,
        'createdAt': task.created_at,
        'completedAt': task.completed_at,
    }


def settings_to_dict(state: Optional[NotificationState]) -> dict:
    if state is None:
        return {'pushToken': None, 'reminders': True, 'decisionFollowUps': True, 'urgentEmails': True}
    return {
        'pushToken': state.push_token,
        'reminders': state.reminders,
        'decisionFollowUps': state.decision_follow_ups,
        'urgentEmails': state.urgent_emails,
    }
