"""Main entry point for the email triage service."""

import argparse
import sys
import time
from typing import Optional

from email_triage.config import config
from email_triage.database import DatabaseManager
from email_triage.logger import get_logger

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Email triage - AI classification with follow-through reminders'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('init-db', help='Create database tables')

    sync = subparsers.add_parser('sync', help='Fetch and classify new mail for one user')
    sync.add_argument('--user', required=True, help='User id that owns the mailbox')
    sync.add_argument(
        '--max-results',
        type=int,
        default=10,
        help='Number of emails to fetch (default: 10)'
    )

    retry = subparsers.add_parser('retry', help='Re-classify failed emails for one user')
    retry.add_argument('--user', required=True, help='User id')

    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=8000)
    serve.add_argument('--with-scheduler', action='store_true', help='Also run the periodic jobs')

    subparsers.add_parser('scheduler', help='Run the reminder and decision jobs until interrupted')

    disconnect = subparsers.add_parser('disconnect', help="Delete a user's emails and reminders")
    disconnect.add_argument('--user', required=True, help='User id')

    tick = subparsers.add_parser('tick', help='Run one job tick now')
    tick.add_argument('job', choices=['reminders', 'decisions'])

    return parser.parse_args(argv)


def _classifier():
    if not config.claude.enabled:
        logger.warning("AI disabled (AI_ENABLED=false); using fallback classification")
        return None
    from email_triage.analyzer import EmailClassifier
    return EmailClassifier()


def _mail_source(required: bool):
    if not config.gmail.credentials_file:
        if required:
            raise SystemExit("GMAIL_CREDENTIALS_FILE is not configured")
        return None
    from email_triage.gmail import GmailService
    return GmailService()


def _scheduler(db: DatabaseManager):
    from email_triage.decisions import DecisionEngine
    from email_triage.notifications import ExpoNotifier, NotificationDispatcher
    from email_triage.scheduler import Scheduler
    dispatcher = NotificationDispatcher(db, ExpoNotifier())
    return Scheduler(db, dispatcher, decisions=DecisionEngine(db))


def main(argv=None) -> Optional[int]:
    """Main entry point for the application."""
    args = parse_args(argv)
    try:
        db_manager = DatabaseManager()
        if args.command == 'init-db':
            db_manager.create_tables()
            return 0

        if not db_manager.check_tables_exist():
            logger.error("""
Database tables do not exist. Please run database migrations first:

    alembic upgrade head

For development setup, you can also use:

    python -m email_triage init-db
            """)
            return 1

        if args.command in ('sync', 'retry'):
            from email_triage.api import Services
            from email_triage.notifications import ExpoNotifier
            services = Services.build(
                db_manager,
                classifier=_classifier(),
                notifier=ExpoNotifier(),
                mail_source=_mail_source(required=args.command == 'sync'),
            )
            if args.command == 'sync':
                result = services.pipeline.sync(args.user, max_results=args.max_results)
            else:
                result = services.pipeline.retry_failed(args.user)
            logger.info(f"Done: {result.to_dict()}")
            return 0 if not result.failed else 2

        if args.command == 'disconnect':
            deleted = db_manager.disconnect_account(args.user)
            logger.info(f"Deleted {deleted} emails for {args.user}")
            return 0

        if args.command == 'tick':
            scheduler = _scheduler(db_manager)
            if args.job == 'reminders':
                count = scheduler.reminder_ticker.run_once()
            else:
                count = scheduler.decision_ticker.run_once()
            logger.info(f"{args.job} tick handled {count} items")
            return 0

        if args.command == 'scheduler':
            scheduler = _scheduler(db_manager)
            scheduler.start()
            try:
                while True:
                    time.sleep(1)
            except KeyboardInterrupt:
                scheduler.stop()
            return 0

        if args.command == 'serve':
            import uvicorn
            from email_triage.api import Services, create_app
            from email_triage.notifications import ExpoNotifier
            services = Services.build(
                db_manager,
                classifier=_classifier(),
                notifier=ExpoNotifier(),
                mail_source=_mail_source(required=False),
            )
            scheduler = _scheduler(db_manager) if args.with_scheduler else None
            if scheduler is not None:
                scheduler.start()
            try:
                uvicorn.run(create_app(services), host=args.host, port=args.port)
            finally:
                if scheduler is not None:
                    scheduler.stop()
            return 0

        return 1

    except Exception as e:
        logger.error(f"Error running email triage: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
