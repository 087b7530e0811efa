from .models import (
    ActionType, BriefCache, Decision, DecisionStatus, DecisionType, Email, EmailReminder, Intent,
    NotificationState, ProcessingStatus, ReminderStatus, Task, TaskStatus, Urgency, UserAction,
    UserActionLog
)
from .manager import DatabaseManager

__all__ = [
    'ActionType',
    'BriefCache',
    'Decision',
    'DecisionStatus',
    'DecisionType',
    'Email',
    'EmailReminder',
    'Intent',
    'NotificationState',
    'ProcessingStatus',
    'ReminderStatus',
    'Task',
    'TaskStatus',
    'Urgency',
    'UserAction',
    'UserActionLog',
    'DatabaseManager'
]
