"""
Service container and request dependencies for the HTTP surface.
"""
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import HTTPException, Request, status

from ..brief import BriefService
from ..database import DatabaseManager
from ..decisions import DecisionEngine
from ..drafts import DraftReplyService
from ..notifications import NotificationDispatcher
from ..pipeline import IngestionPipeline
from ..reminders import ReminderEngine
from ..tasks import TaskService

USER_ID_HEADER = 'X-User-Id'


@dataclass
class Services:
    """Everything the routes need, wired once per application."""
    db: DatabaseManager
    pipeline: IngestionPipeline
    decisions: DecisionEngine
    reminders: ReminderEngine
    tasks: TaskService
    briefs: BriefService
    drafts: DraftReplyService
    dispatcher: Optional[NotificationDispatcher] = None

    @classmethod
    def build(cls, db: DatabaseManager, classifier=None, notifier=None, mail_source=None,
              ai_enabled: Optional[bool] = None, sleep=None) -> 'Services':
        dispatcher = NotificationDispatcher(db, notifier) if notifier is not None else None
        pipeline_kwargs = {'sleep': sleep} if sleep is not None else {}
        return cls(
            db=db,
            pipeline=IngestionPipeline(
                db, classifier, dispatcher=dispatcher, mail_source=mail_source,
                ai_enabled=ai_enabled, **pipeline_kwargs
            ),
            decisions=DecisionEngine(db),
            reminders=ReminderEngine(db),
            tasks=TaskService(db),
            briefs=BriefService(db, classifier=classifier, ai_enabled=ai_enabled),
            drafts=DraftReplyService(db, classifier, mail_source=mail_source, ai_enabled=ai_enabled),
            dispatcher=dispatcher,
        )


def header_user_resolver(request: Request) -> str:
    """Resolve the caller from the identity header set by the auth gateway."""
    user_id = request.headers.get(USER_ID_HEADER)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user_id


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_user(request: Request) -> str:
    resolver: Callable[[Request], str] = request.app.state.auth_resolver
    return resolver(request)
