import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict

from sqlalchemy.orm import sessionmaker

from paddle_tournaments.models import notification as notification_model

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    TOURNAMENT_REGISTRATION = "tournament_registration"
    TOURNAMENT_STARTED = "tournament_started"
    TOURNAMENT_WON = "tournament_won"
    TOURNAMENT_CANCELLED = "tournament_cancelled"


class Notifier(ABC):
    """Fire-and-forget delivery to a user. Implementations may raise; callers go through notify_safely."""

    @abstractmethod
    def notify(self, user_id: str, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotifier(Notifier):

    def notify(self, user_id: str, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        logger.info("Notify %s: %s %s", user_id, event.value, payload)


class SqlNotifier(Notifier):
    """Stores notifications in the platform's ``notifications`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def notify(self, user_id: str, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        db = self._session_factory()
        try:
            db.add(notification_model.Notification(
                user_id=user_id,
                type=event.value,
                payload=dict(payload),
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def notify_safely(notifier: Notifier, user_id: str, event: NotificationEvent, payload: Dict[str, Any]) -> bool:
    """Deliver one notification; a failure is logged and reported as False, never raised."""
    try:
        notifier.notify(user_id, event, payload)
    except Exception:
        logger.warning("Could not deliver %s to user %s", event.value, user_id, exc_info=True)
        return False
    return True
