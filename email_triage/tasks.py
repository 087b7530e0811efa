"""
Task service: manual tasks and tasks created from emails.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from email_triage.database import DatabaseManager, DecisionType, Task, TaskStatus, Urgency
from email_triage.database.models import utcnow
from email_triage.errors import NotFoundError, ValidationError
from email_triage.logger import get_logger

logger = get_logger(__name__)


def _parse_status(status) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid task status: {status}")


def _parse_priority(priority) -> Urgency:
    try:
        return Urgency(str(priority).upper())
    except ValueError:
        raise ValidationError(f"Invalid task priority: {priority}")


class TaskService:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def create(self, user_id: str, title: str, description: str = '', priority=Urgency.MEDIUM,
               due_date: Optional[datetime] = None) -> Task:
        if not title:
            raise ValidationError("Task title is required")
        return self.db.insert_task(Task(
            user_id=user_id,
            title=title,
            description=description or '',
            priority=_parse_priority(priority),
            due_date=due_date,
            created_by='user',
        ))

    def create_from_email(self, user_id: str, email_id: UUID) -> Task:
        """Create a task from an email and link it to the email's pending TASK decision."""
        email = self.db.get_email(email_id, user_id=user_id)
        action = email.primary_action or {}

        task = self.db.insert_task(Task(
            user_id=user_id,
            title=action.get('description') or email.subject or 'Task from email',
            description=f"From email: {email.subject}\n\nFrom: {email.sender}",
            priority=email.urgency or Urgency.MEDIUM,
            source_email_id=email.id,
            created_by='ai' if email.suggested_actions else 'user',
        ))

        decision = self.db.find_pending_decision_for_email(email.id, decision_type=DecisionType.TASK)
        if decision is not None:
            self.db.update_decision(decision.id, task_id=task.id)
            logger.info(f"Linked task {task.id} to decision {decision.id}")
        return task

    def update(self, user_id: str, task_id: UUID, status=None, title: Optional[str] = None,
               description: Optional[str] = None, priority=None,
               due_date: Optional[datetime] = None, now: Optional[datetime] = None) -> Task:
        """Update a task. Status changes follow the task transition table."""
        task = self.db.get_task(task_id, user_id=user_id)
        if task is None:
            raise NotFoundError('Task', task_id)

        fields = {}
        if title:
            fields['title'] = title
        if description:
            fields['description'] = description
        if priority:
            fields['priority'] = _parse_priority(priority)
        if due_date:
            fields['due_date'] = due_date
        if status is not None:
            status = _parse_status(status)
            if status != task.status:
                fields['status'] = status
                if status == TaskStatus.COMPLETED:
                    fields['completed_at'] = now or utcnow()

        if not fields:
            return task
        return self.db.update_task(task.id, **fields)

    def update_status(self, user_id: str, task_id: UUID, status, now: Optional[datetime] = None) -> Task:
        return self.update(user_id, task_id, status=status, now=now)

    def list(self, user_id: str, status=None, limit: int = 50) -> List[Task]:
        statuses = [_parse_status(status)] if status else None
        return self.db.list_tasks(user_id, statuses=statuses, limit=limit)
