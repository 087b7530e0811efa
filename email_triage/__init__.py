from email_triage.analyzer import EmailClassifier
from email_triage.brief import BriefGenerator, BriefService
from email_triage.database import DatabaseManager
from email_triage.decisions import DecisionEngine
from email_triage.models import IngestResult, NotificationResult, RawMessage
from email_triage.notifications import ExpoNotifier, NotificationDispatcher
from email_triage.pipeline import IngestionPipeline
from email_triage.reminders import ReminderEngine
from email_triage.scheduler import Scheduler, Ticker
from email_triage.tasks import TaskService

__all__ = [
    'EmailClassifier',
    'BriefGenerator',
    'BriefService',
    'DatabaseManager',
    'DecisionEngine',
    'IngestResult',
    'NotificationResult',
    'RawMessage',
    'ExpoNotifier',
    'NotificationDispatcher',
    'IngestionPipeline',
    'ReminderEngine',
    'Scheduler',
    'Ticker',
    'TaskService'
]
