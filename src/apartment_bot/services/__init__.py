from .session import SessionManager
from .seen_store import PostgresSeenStore, SeenStore, SqliteSeenStore, create_seen_store
from .application import Applicant, ApplicationService
from .notifier import TelegramNotifier
from .pipeline import ListingPipeline, PipelineResult

__all__ = [
    "SessionManager",
    "SeenStore",
    "SqliteSeenStore",
    "PostgresSeenStore",
    "create_seen_store",
    "Applicant",
    "ApplicationService",
    "TelegramNotifier",
    "ListingPipeline",
    "PipelineResult",
]
