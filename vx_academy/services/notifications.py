import logging
from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from vx_academy.exceptions import NotFoundError
from vx_academy.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    """In-app notifications: storage plus the event triggers that create them"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: int,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=getattr(notification_type, "value", notification_type),
            title=title,
            message=message,
            read=False,
            data=data,
        )
        self.db.add(notification)
        self.db.flush()
        logger.info(f"Notification '{notification.type}' created for user {user_id}")
        return notification

    def list_for_user(self, user_id: int, limit: int = 20) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(and_(Notification.user_id == user_id, Notification.read.is_(False)))
            .count()
        )

    def _get_owned(self, notification_id: int, user_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            and_(Notification.id == notification_id, Notification.user_id == user_id)
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    def mark_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self._get_owned(notification_id, user_id)
        notification.read = True
        return notification

    def mark_all_read(self, user_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(and_(Notification.user_id == user_id, Notification.read.is_(False)))
            .update({Notification.read: True}, synchronize_session=False)
        )

    def delete(self, notification_id: int, user_id: int) -> None:
        notification = self._get_owned(notification_id, user_id)
        self.db.delete(notification)

    # Event triggers

    def on_course_assigned(self, user_id: int, course) -> Notification:
        return self.create(
            user_id,
            NotificationType.COURSE_ASSIGNED,
            "New Course Assigned",
            f'You have been enrolled in "{course.name}".',
            {"course_id": course.id},
        )

    def on_badge_earned(self, user_id: int, badge) -> Notification:
        return self.create(
            user_id,
            NotificationType.BADGE_EARNED,
            "Badge Earned!",
            f'You earned the "{badge.name}" badge and {badge.xp_points} XP.',
            {"badge_id": badge.id, "xp_points": badge.xp_points},
        )

    def on_course_reminder(self, user_id: int, course, percent_complete: int = 0) -> Notification:
        return self.create(
            user_id,
            NotificationType.COURSE_REMINDER,
            "Course Reminder",
            f'"{course.name}" is mandatory for your role and is {percent_complete}% complete.',
            {"course_id": course.id, "percent_complete": percent_complete},
        )

    def on_certificate_earned(self, user_id: int, course, certificate) -> Notification:
        return self.create(
            user_id,
            NotificationType.CERTIFICATE_EARNED,
            "Certificate Earned!",
            f'Congratulations! You\'ve earned a certificate for completing "{course.name}".',
            {"course_id": course.id, "certificate_id": certificate.id},
        )

    def on_assessment_passed(self, user_id: int, assessment, score: int) -> Notification:
        return self.create(
            user_id,
            NotificationType.ASSESSMENT_PASSED,
            "Assessment Passed!",
            f'You successfully passed "{assessment.title}" with a score of {score}%.',
            {"assessment_id": assessment.id, "score": score},
        )

    def on_assessment_failed(self, user_id: int, assessment, score: int, attempts_remaining: int) -> Notification:
        if attempts_remaining > 0:
            remaining = f"You have {attempts_remaining} attempts remaining."
        else:
            remaining = "No attempts remaining."
        return self.create(
            user_id,
            NotificationType.ASSESSMENT_FAILED,
            "Assessment Not Passed",
            f'You scored {score}% on "{assessment.title}". {remaining}',
            {"assessment_id": assessment.id, "score": score, "attempts_remaining": attempts_remaining},
        )
