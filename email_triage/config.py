"""
Configuration management for the email triage service.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ('0', 'false', 'no', 'off')


@dataclass
class GmailConfig:
    """Gmail-related configuration settings."""
    credentials_file: Optional[str]
    token_file: Optional[str]
    user_email: Optional[str]
    scopes: list[str] = None

    def __post_init__(self):
        if self.scopes is None:
            self.scopes = [
                'https://www.googleapis.com/auth/gmail.modify',
                'https://www.googleapis.com/auth/gmail.compose'
            ]


@dataclass
class DatabaseConfig:
    """Database connection configuration."""
    host: str
    port: int
    name: Optional[str]
    user: Optional[str]
    password: Optional[str]
    url: Optional[str] = None

    @property
    def connection_string(self) -> str:
        """Generate SQLAlchemy connection string, preferring an explicit DATABASE_URL."""
        if self.url:
            return self.url
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


@dataclass
class ClaudeConfig:
    """Claude AI configuration."""
    api_key: Optional[str]
    model: Optional[str]
    max_tokens: int = 1000
    enabled: bool = True


@dataclass
class PipelineConfig:
    """Ingestion pipeline pacing and retry settings."""
    # Provider allows 15 requests/minute
    inter_message_delay: float = 4.0
    retry_attempts: int = 3
    retry_initial_delay: float = 2.0
    max_ai_retries: int = 3


@dataclass
class NotificationConfig:
    """Push notification settings."""
    expo_push_url: str = 'https://exp.host/--/api/v2/push/send'
    daily_cap: int = 4
    timezone: str = 'UTC'
    request_timeout: float = 10.0


@dataclass
class SchedulerConfig:
    """Periodic job intervals (seconds) and batch limits."""
    reminder_interval: float = 300.0
    decision_interval: float = 3600.0
    reminder_batch: int = 100
    decision_batch: int = 50
    reconcile_batch: int = 200


@dataclass
class BriefConfig:
    """Daily brief cache settings."""
    cache_ttl: int = 900


@dataclass
class Config:
    """Main application configuration."""
    # Application paths
    base_dir: Path
    logs_dir: Optional[Path]
    log_level: str

    # Component configurations
    gmail: GmailConfig
    db: DatabaseConfig
    claude: ClaudeConfig
    pipeline: PipelineConfig
    notifications: NotificationConfig
    scheduler: SchedulerConfig
    brief: BriefConfig

    @classmethod
    def load(cls) -> 'Config':
        """Load configuration from environment variables."""
        base_dir = Path(__file__).parent.parent
        logs_dir = os.getenv('LOG_DIR')

        return cls(
            base_dir=base_dir,
            logs_dir=Path(logs_dir) if logs_dir else None,
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),

            gmail=GmailConfig(
                credentials_file=os.getenv('GMAIL_CREDENTIALS_FILE'),
                token_file=os.getenv('GMAIL_TOKEN_FILE'),
                user_email=os.getenv('GMAIL_USER_EMAIL')
            ),

            db=DatabaseConfig(
                host=os.getenv('DB_HOST', 'localhost'),
                port=int(os.getenv('DB_PORT', '5432')),
                name=os.getenv('DB_NAME'),
                user=os.getenv('DB_USER'),
                password=os.getenv('DB_PASSWORD'),
                url=os.getenv('DATABASE_URL')
            ),

            claude=ClaudeConfig(
                api_key=os.getenv('ANTHROPIC_API_KEY'),
                model=os.getenv('CLAUDE_MODEL'),
                max_tokens=int(os.getenv('CLAUDE_MAX_TOKENS', '1000')),
                enabled=_env_bool('AI_ENABLED', True)
            ),

            pipeline=PipelineConfig(
                inter_message_delay=float(os.getenv('PIPELINE_MESSAGE_DELAY', '4.0')),
                retry_attempts=int(os.getenv('PIPELINE_RETRY_ATTEMPTS', '3')),
                retry_initial_delay=float(os.getenv('PIPELINE_RETRY_DELAY', '2.0')),
                max_ai_retries=int(os.getenv('PIPELINE_MAX_AI_RETRIES', '3'))
            ),

            notifications=NotificationConfig(
                expo_push_url=os.getenv('EXPO_PUSH_URL', 'https://exp.host/--/api/v2/push/send'),
                daily_cap=int(os.getenv('NOTIFICATION_DAILY_CAP', '4')),
                timezone=os.getenv('NOTIFICATION_TIMEZONE', 'UTC'),
                request_timeout=float(os.getenv('EXPO_REQUEST_TIMEOUT', '10'))
            ),

            scheduler=SchedulerConfig(
                reminder_interval=float(os.getenv('REMINDER_TICK_SECONDS', '300')),
                decision_interval=float(os.getenv('DECISION_TICK_SECONDS', '3600'))
            ),

            brief=BriefConfig(
                cache_ttl=int(os.getenv('BRIEF_CACHE_TTL', '900'))
            )
        )

    @property
    def ANTHROPIC_API_KEY(self) -> Optional[str]:
        """Getter for Claude API key to maintain compatibility."""
        return self.claude.api_key

    @property
    def CLAUDE_MODEL(self) -> Optional[str]:
        """Getter for Claude model name to maintain compatibility."""
        return self.claude.model

# Global configuration instance
config = Config.load()
