"""
Allowed state transitions for each stateful entity.

Every status change goes through ``transition`` so that no caller can set an
arbitrary status field directly.
"""
from types import MappingProxyType

from ..errors import IllegalTransitionError
from .models import DecisionStatus, ProcessingStatus, ReminderStatus, TaskStatus, UserAction

PROCESSING_TRANSITIONS = MappingProxyType({
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.PROCESSING: frozenset({ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.COMPLETED: frozenset(),
})

USER_ACTION_TRANSITIONS = MappingProxyType({
    UserAction.PENDING: frozenset({UserAction.APPROVED, UserAction.REJECTED, UserAction.IGNORED}),
    UserAction.IGNORED: frozenset({UserAction.APPROVED, UserAction.REJECTED}),
    UserAction.APPROVED: frozenset(),
    UserAction.REJECTED: frozenset(),
})

REMINDER_TRANSITIONS = MappingProxyType({
    ReminderStatus.PENDING: frozenset({ReminderStatus.TRIGGERED, ReminderStatus.CANCELLED}),
    ReminderStatus.TRIGGERED: frozenset(),
    ReminderStatus.CANCELLED: frozenset(),
})

# SNOOZED is accepted as a legacy resting state and behaves like PENDING
DECISION_TRANSITIONS = MappingProxyType({
    DecisionStatus.PENDING: frozenset({DecisionStatus.COMPLETED, DecisionStatus.ABANDONED}),
    DecisionStatus.SNOOZED: frozenset({DecisionStatus.COMPLETED, DecisionStatus.ABANDONED}),
    DecisionStatus.COMPLETED: frozenset(),
    DecisionStatus.ABANDONED: frozenset(),
})

TASK_TRANSITIONS = MappingProxyType({
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
})

_TABLES = {
    'email_status': PROCESSING_TRANSITIONS,
    'user_action': USER_ACTION_TRANSITIONS,
    'reminder': REMINDER_TRANSITIONS,
    'decision': DECISION_TRANSITIONS,
    'task': TASK_TRANSITIONS,
}


def can_transition(entity: str, current, target) -> bool:
    """Return True if ``entity`` may move from ``current`` to ``target``."""
    table = _TABLES[entity]
    return target in table.get(current, frozenset())


def transition(entity: str, current, target):
    """Validate a transition and return the target state.

    Raises:
        IllegalTransitionError: If the table does not allow the move
    """
    if not can_transition(entity, current, target):
        raise IllegalTransitionError(entity, current, target)
    return target
