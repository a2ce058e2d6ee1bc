"""
Notification delivery for lifecycle events.
Best-effort: runs after the triggering transaction commits and never raises.
"""
from typing import Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import Notification


logger = structlog.get_logger(__name__)


def notify(db: Session, user_ids: Iterable[Optional[int]], message: str, event: str, **context) -> List[Notification]:
    """
    Create one notification per distinct recipient.

    Args:
        db: Database session (the triggering transaction must already be committed)
        user_ids: Recipients; ``None`` entries are skipped
        message: Human readable message
        event: Lifecycle event name, used for logging only
        context: Extra fields for the log entry

    Returns:
        Created notifications, or an empty list when delivery failed
    """
    recipients = [uid for uid in dict.fromkeys(user_ids) if uid is not None]
    if not recipients:
        return []
    try:
        rows = [Notification(user_id=uid, message=message) for uid in recipients]
        db.add_all(rows)
        db.commit()
        logger.info("notification_delivered", lifecycle_event=event, recipients=recipients, **context)
    except Exception as e:
        db.rollback()
        logger.warning("notification_delivery_failed", lifecycle_event=event, recipients=recipients, error=str(e), **context)
        return []
    return rows
