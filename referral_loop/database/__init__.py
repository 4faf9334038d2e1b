from .connection import get_connection, init_database, reset_database
from .consent_repository import ConsentRepository
from .directory_repository import DirectoryRepository
from .encounter_repository import EncounterRepository
from .referral_repository import ReferralRepository
from .routed_event_repository import RoutedEventRepository
from .session_repository import SessionRepository

__all__ = [
    "get_connection",
    "init_database",
    "reset_database",
    "ConsentRepository",
    "DirectoryRepository",
    "EncounterRepository",
    "ReferralRepository",
    "RoutedEventRepository",
    "SessionRepository",
]
