import logging
from typing import List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from vx_academy.models.activity_log import ActivityType
from vx_academy.models.assessment import AssessmentAttempt
from vx_academy.models.badge import Badge, BadgeType, UserBadge
from vx_academy.models.certificate import Certificate
from vx_academy.models.course import Course
from vx_academy.models.user import User
from vx_academy.models.user_progress import UserBlockProgress, UserProgress
from vx_academy.services.activity import log_activity
from vx_academy.services.notifications import NotificationService

logger = logging.getLogger(__name__)

MASTER_SCORE = 90
MASTER_PASSES = 10
EXPLORER_COURSES = 5
BLOCKS_COMPLETED = 50
CERTIFICATES_EARNED = 5


class BadgeService:
    """Awards badges and their XP when a learner reaches a milestone"""

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def _badges_of_type(self, badge_type: BadgeType) -> List[Badge]:
        return self.db.query(Badge).filter(Badge.type == badge_type.value).order_by(Badge.id).all()

    def has_badge(self, user_id: int, badge_id: int) -> bool:
        return self.db.query(UserBadge).filter(
            and_(UserBadge.user_id == user_id, UserBadge.badge_id == badge_id)
        ).first() is not None

    def award_badge(self, user: User, badge: Badge) -> Optional[UserBadge]:
        """Give a badge once; adds its XP and notifies the learner"""
        if self.has_badge(user.id, badge.id):
            return None
        user_badge = UserBadge(user_id=user.id, badge_id=badge.id)
        self.db.add(user_badge)
        user.add_xp(badge.xp_points)
        self.db.flush()
        log_activity(self.db, user.id, ActivityType.BADGE_EARNED, {"badge_id": badge.id})
        self.notifications.on_badge_earned(user.id, badge)
        logger.info(f"Badge '{badge.name}' awarded to user {user.id}")
        return user_badge

    def _award_type(self, user: User, badge_type: BadgeType) -> List[UserBadge]:
        awarded = []
        for badge in self._badges_of_type(badge_type):
            user_badge = self.award_badge(user, badge)
            if user_badge:
                awarded.append(user_badge)
        return awarded

    # Milestone counters

    def passed_attempts(self, user_id: int, min_score: int = 0) -> int:
        return self.db.query(AssessmentAttempt).filter(
            and_(
                AssessmentAttempt.user_id == user_id,
                AssessmentAttempt.passed.is_(True),
                AssessmentAttempt.score >= min_score,
            )
        ).count()

    def perfect_attempts(self, user_id: int) -> int:
        return self.db.query(AssessmentAttempt).filter(
            and_(
                AssessmentAttempt.user_id == user_id,
                AssessmentAttempt.passed.is_(True),
                AssessmentAttempt.score == 100,
            )
        ).count()

    def started_courses(self, user_id: int) -> int:
        return self.db.query(UserProgress).filter(
            and_(UserProgress.user_id == user_id, UserProgress.percent_complete > 0)
        ).count()

    def completed_blocks(self, user_id: int) -> int:
        # A block shared by two courses still counts once
        return (
            self.db.query(func.count(func.distinct(UserBlockProgress.block_id)))
            .filter(and_(UserBlockProgress.user_id == user_id, UserBlockProgress.is_completed.is_(True)))
            .scalar()
            or 0
        )

    def certificate_count(self, user_id: int) -> int:
        return self.db.query(Certificate).filter(Certificate.user_id == user_id).count()

    def completed_area(self, user_id: int, training_area_id: int) -> bool:
        area_course_ids = {
            c.id for c in self.db.query(Course.id).filter(Course.training_area_id == training_area_id).all()
        }
        if not area_course_ids:
            return False
        completed_ids = {
            p.course_id for p in self.db.query(UserProgress.course_id).filter(
                and_(
                    UserProgress.user_id == user_id,
                    UserProgress.completed.is_(True),
                    UserProgress.course_id.in_(area_course_ids),
                )
            ).all()
        }
        return completed_ids == area_course_ids

    # Checks run after learner events

    def check_assessment_badges(self, user: User, score: int, passed: bool) -> List[UserBadge]:
        if not passed:
            return []
        awarded = []
        if self.passed_attempts(user.id) >= 1:
            awarded += self._award_type(user, BadgeType.ASSESSMENT)
        if score == 100:
            awarded += self._award_type(user, BadgeType.ASSESSMENT_PERFECT)
        if self.passed_attempts(user.id, MASTER_SCORE) >= MASTER_PASSES:
            awarded += self._award_type(user, BadgeType.ASSESSMENT_MASTER)
        awarded += self.check_certificate_badges(user)
        return awarded

    def check_certificate_badges(self, user: User) -> List[UserBadge]:
        if self.certificate_count(user.id) >= CERTIFICATES_EARNED:
            return self._award_type(user, BadgeType.CERTIFICATES)
        return []

    def check_course_completion_badges(self, user: User, course: Course) -> List[UserBadge]:
        awarded = self._award_type(user, BadgeType.COURSE_COMPLETION)
        if self.completed_area(user.id, course.training_area_id):
            awarded += self._award_type(user, BadgeType.AREA_COMPLETION)
        return awarded

    def check_activity_badges(self, user: User) -> List[UserBadge]:
        awarded = []
        if self.started_courses(user.id) >= EXPLORER_COURSES:
            awarded += self._award_type(user, BadgeType.EXPLORER)
        if self.completed_blocks(user.id) >= BLOCKS_COMPLETED:
            awarded += self._award_type(user, BadgeType.BLOCKS)
        return awarded

    def check_all_badges(self, user: User) -> List[UserBadge]:
        """Re-evaluate every milestone, used after data repairs"""
        awarded = []
        if self.passed_attempts(user.id) >= 1:
            awarded += self._award_type(user, BadgeType.ASSESSMENT)
        if self.perfect_attempts(user.id) > 0:
            awarded += self._award_type(user, BadgeType.ASSESSMENT_PERFECT)
        if self.passed_attempts(user.id, MASTER_SCORE) >= MASTER_PASSES:
            awarded += self._award_type(user, BadgeType.ASSESSMENT_MASTER)
        if self.certificate_count(user.id) >= CERTIFICATES_EARNED:
            awarded += self._award_type(user, BadgeType.CERTIFICATES)

        completed = self.db.query(UserProgress).filter(
            and_(UserProgress.user_id == user.id, UserProgress.completed.is_(True))
        ).all()
        if completed:
            awarded += self._award_type(user, BadgeType.COURSE_COMPLETION)
            area_ids = {p.course.training_area_id for p in completed if p.course}
            if any(self.completed_area(user.id, area_id) for area_id in area_ids):
                awarded += self._award_type(user, BadgeType.AREA_COMPLETION)

        awarded += self.check_activity_badges(user)
        return awarded
