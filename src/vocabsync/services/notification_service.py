"""Service for notifying users about sync and streak events."""
import logging
from typing import Optional, Protocol

from vocabsync.models.sync_models import SyncReport

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Delivery channel for user notifications (push, SMS, e-mail)."""

    def send(self, user_id: int, message: str) -> None:
        ...


class LoggingNotificationSender:
    """Sender that only writes notifications to the log."""

    def send(self, user_id: int, message: str) -> None:
        logger.info("Notification for user %s: %s", user_id, message)


class NotificationService:
    """Build notification messages and hand them to a sender."""

    def __init__(self, sender: Optional[NotificationSender] = None):
        """Initialize the service with a delivery channel."""
        self.sender = sender or LoggingNotificationSender()

    def get_sync_conflicts_message(self, report: SyncReport) -> Optional[str]:
        """Generate a message summarising the conflicts of a sync batch."""
        if not report.conflicts:
            return None

        kept_server = sum(1 for c in report.conflicts if c.resolution.value.startswith("server_"))
        taken_client = len(report.conflicts) - kept_server
        message = (
            f"Synced {report.synced_count} words. "
            f"{len(report.conflicts)} had different progress on another device: "
            f"{taken_client} updated from this device, {kept_server} kept from the server."
        )
        return message

    def get_streak_broken_message(self, previous_streak: int) -> Optional[str]:
        """Generate a message for a streak that has just been reset."""
        if previous_streak <= 0:
            return None
        day_word = "day" if previous_streak == 1 else "days"
        return (
            f"Your {previous_streak} {day_word} learning streak has ended. "
            "Learn a word today to start a new one!"
        )

    def notify_sync_conflicts(self, user_id: int, report: SyncReport) -> bool:
        """Tell the user that some of their progress was reconciled."""
        return self._dispatch(user_id, self.get_sync_conflicts_message(report))

    def notify_streak_broken(self, user_id: int, previous_streak: int) -> bool:
        """Tell the user that their streak was reset."""
        return self._dispatch(user_id, self.get_streak_broken_message(previous_streak))

    def _dispatch(self, user_id: int, message: Optional[str]) -> bool:
        if not message:
            return False
        try:
            self.sender.send(user_id, message)
        except Exception as e:
            logger.error("Error sending notification to user %s: %s", user_id, str(e))
            return False
        return True
