"""
Decision follow-through: turns approved suggested actions into tracked
commitments and resolves them later.
"""
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import List, Optional, Tuple, Union
from uuid import UUID

from email_triage.analyzer.models import SuggestedAction
from email_triage.config import config
from email_triage.database import (
    ActionType, DatabaseManager, Decision, DecisionStatus, DecisionType, Email, TaskStatus, UserAction
)
from email_triage.database.models import utcnow
from email_triage.errors import IllegalTransitionError, ValidationError
from email_triage.logger import get_logger

logger = get_logger(__name__)

FOLLOW_UP_DELAY = timedelta(hours=24)

# Only actions that imply future work become decisions
DECISION_TYPES = MappingProxyType({
    ActionType.REPLY: DecisionType.REPLY,
    ActionType.CREATE_TASK: DecisionType.TASK,
    ActionType.SCHEDULE_MEETING: DecisionType.REPLY,
    ActionType.FOLLOW_UP: DecisionType.REMINDER,
})

RESOLUTIONS = frozenset({DecisionStatus.COMPLETED, DecisionStatus.SNOOZED, DecisionStatus.ABANDONED})


def elapsed_ms(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() * 1000))


def _as_action(action: Union[SuggestedAction, dict, None]) -> Optional[SuggestedAction]:
    if action is None or isinstance(action, SuggestedAction):
        return action
    return SuggestedAction(
        type=str(action.get('type', '')),
        description=action.get('description') or '',
        priority=action.get('priority', 1),
    )


class DecisionEngine:
    """Creates, reconciles and resolves decisions."""

    def __init__(self, db: DatabaseManager, reconcile_batch: Optional[int] = None):
        self.db = db
        self.reconcile_batch = reconcile_batch or config.scheduler.reconcile_batch

    def create_from_approved_action(self, email: Email, action=None,
                                    now: Optional[datetime] = None) -> Optional[Decision]:
        """Create a decision for an approved email's primary suggested action.

        Args:
            email: The approved email
            action: Suggested action to track; defaults to the email's primary action
            now: Creation time

        Returns:
            The new Decision, or None when the action implies no future work
        """
        if email.user_action != UserAction.APPROVED:
            return None

        action = _as_action(action if action is not None else email.primary_action)
        if action is None or action.action_type not in DECISION_TYPES:
            return None

        now = now or utcnow()
        # An email deleted before the decision is written yields a dead decision
        status = DecisionStatus.PENDING if self.db.email_exists(email.id) else DecisionStatus.ABANDONED

        decision = self.db.insert_decision(Decision(
            user_id=email.user_id,
            email_id=email.id,
            decision_type=DECISION_TYPES[action.action_type],
            decision_text=action.description or email.subject,
            source='EMAIL',
            status=status,
            created_at=now,
            follow_up_at=now + FOLLOW_UP_DELAY,
            snooze_count=0,
        ))
        logger.info(f"Created decision {decision.id} ({decision.decision_type}, {status}): {decision.decision_text}")
        return decision

    def apply_user_action(self, user_id: str, email_id: UUID, action,
                          now: Optional[datetime] = None) -> Tuple[Email, Optional[Decision]]:
        """Record the user's disposition on an email and derive a decision from it.

        Raises:
            ValidationError: If ``action`` is not approved, rejected or ignored
            NotFoundError: If the email does not belong to the user
            IllegalTransitionError: If the email was already approved or rejected
        """
        try:
            action = UserAction(action)
        except ValueError:
            raise ValidationError("Invalid action. Must be: approved, rejected, or ignored")
        if action == UserAction.PENDING:
            raise ValidationError("Invalid action. Must be: approved, rejected, or ignored")

        self.db.get_email(email_id, user_id=user_id)
        email = self.db.update_email(email_id, user_action=action)
        self.db.add_user_action_log(user_id, email, action)

        decision = None
        if action == UserAction.APPROVED:
            decision = self.create_from_approved_action(email, now=now)
        return email, decision

    def auto_complete_from_tasks(self, user_id: Optional[str] = None,
                                 now: Optional[datetime] = None) -> int:
        """Complete PENDING decisions whose linked task is completed.

        Processes at most ``reconcile_batch`` decisions, oldest first.

        Returns:
            Number of decisions completed
        """
        now = now or utcnow()
        completed = 0
        for decision in self.db.list_task_linked_decisions(user_id=user_id, limit=self.reconcile_batch):
            try:
                task = self.db.get_task(decision.task_id)
                if task is None or task.status != TaskStatus.COMPLETED:
                    continue
                completed_at = task.completed_at or now
                self.db.update_decision(
                    decision.id,
                    status=DecisionStatus.COMPLETED,
                    completed_at=completed_at,
                    time_to_complete=elapsed_ms(decision.created_at, completed_at),
                )
                completed += 1
                logger.info(f"Auto-completed decision {decision.id} from task {task.id}")
            except Exception as e:
                logger.error(f"Error auto-completing decision {decision.id}: {e}")
        return completed

    def resolve(self, user_id: str, decision_id: UUID, resolution,
                now: Optional[datetime] = None) -> Decision:
        """Apply exactly one resolution to a decision.

        COMPLETED stamps completion time. SNOOZED pushes the follow-up 24 hours
        past the later of its current value and ``now``; the decision stays
        PENDING. ABANDONED is terminal.

        Raises:
            ValidationError: If the resolution is not one of the three above
            NotFoundError: If the decision does not belong to the user
            IllegalTransitionError: If the decision is already resolved
        """
        try:
            resolution = DecisionStatus(resolution)
        except ValueError:
            resolution = None
        if resolution not in RESOLUTIONS:
            raise ValidationError("Invalid resolution. Must be: COMPLETED, SNOOZED, or ABANDONED")

        now = now or utcnow()
        decision = self.db.get_decision(decision_id, user_id=user_id)

        if resolution == DecisionStatus.COMPLETED:
            decision = self.db.update_decision(
                decision.id,
                status=DecisionStatus.COMPLETED,
                completed_at=now,
                time_to_complete=elapsed_ms(decision.created_at, now),
            )
        elif resolution == DecisionStatus.SNOOZED:
            if decision.status not in (DecisionStatus.PENDING, DecisionStatus.SNOOZED):
                raise IllegalTransitionError('decision', decision.status, resolution)
            decision = self.db.update_decision(
                decision.id,
                snooze_count=decision.snooze_count + 1,
                follow_up_at=max(decision.follow_up_at, now) + FOLLOW_UP_DELAY,
            )
        else:
            decision = self.db.update_decision(decision.id, status=DecisionStatus.ABANDONED)

        logger.info(f"Decision {decision.id} resolved as {resolution}")
        return decision

    def list_pending(self, user_id: str, now: Optional[datetime] = None, limit: int = 3) -> List[Decision]:
        """Due PENDING decisions for a user, after reconciling task-linked ones."""
        now = now or utcnow()
        self.auto_complete_from_tasks(user_id=user_id, now=now)
        return self.db.list_due_decisions(now, limit=limit, user_id=user_id)
