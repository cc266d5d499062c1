import logging
from typing import Optional

from sqlalchemy.orm import Session

from vx_academy.models.activity_log import UserActivityLog

logger = logging.getLogger(__name__)


def log_activity(db: Session, user_id: int, activity: str, data: Optional[dict] = None) -> UserActivityLog:
    """Add an activity entry to the current transaction"""
    activity = getattr(activity, "value", activity)
    entry = UserActivityLog(user_id=user_id, activity=activity, data=data or {})
    db.add(entry)
    logger.debug(f"Activity '{activity}' recorded for user {user_id}")
    return entry
