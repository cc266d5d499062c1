import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from vx_academy.config import settings
from vx_academy.exceptions import AcademyError, AttemptsExhaustedError, NotFoundError
from vx_academy.models.activity_log import ActivityType
from vx_academy.models.assessment import Assessment, AssessmentAttempt, Question
from vx_academy.models.course import Course
from vx_academy.models.user import User
from vx_academy.services.activity import log_activity
from vx_academy.services.assessment_flow import AttemptAllowance
from vx_academy.services.badges import BadgeService
from vx_academy.services.certificates import CertificateService
from vx_academy.services.notifications import NotificationService
from vx_academy.services.progress import ProgressService, round_half_up

logger = logging.getLogger(__name__)


def score_answers(questions: List[Question], answers: Dict[str, Any]) -> Tuple[int, int, int]:
    """Grade answers keyed by question id. Returns (correct, total, score)."""
    total = len(questions)
    correct = sum(1 for q in questions if q.is_correct(answers.get(str(q.id))))
    score = round_half_up(correct / total * 100) if total else 0
    return correct, total, score


class AssessmentService:
    def __init__(self, db: Session):
        self.db = db
        self.progress = ProgressService(db)
        self.notifications = NotificationService(db)

    def get_assessment(self, assessment_id: int) -> Assessment:
        assessment = self.db.query(Assessment).filter(Assessment.id == assessment_id).first()
        if not assessment:
            raise NotFoundError("Assessment not found")
        return assessment

    def get_attempts(self, user_id: int, assessment_id: int) -> List[AssessmentAttempt]:
        return (
            self.db.query(AssessmentAttempt)
            .filter(and_(AssessmentAttempt.user_id == user_id, AssessmentAttempt.assessment_id == assessment_id))
            .order_by(AssessmentAttempt.started_at, AssessmentAttempt.id)
            .all()
        )

    def get_allowance(self, user_id: int, assessment: Assessment) -> AttemptAllowance:
        used = self.db.query(AssessmentAttempt).filter(
            and_(AssessmentAttempt.user_id == user_id, AssessmentAttempt.assessment_id == assessment.id)
        ).count()
        return AttemptAllowance(assessment.max_retakes, used)

    def attempt_status(self, user_id: int, assessment_id: int) -> dict:
        assessment = self.get_assessment(assessment_id)
        attempts = self.get_attempts(user_id, assessment_id)
        allowance = AttemptAllowance(assessment.max_retakes, len(attempts))
        return {
            "assessment_id": assessment.id,
            "max_retakes": assessment.max_retakes,
            "attempts_used": allowance.attempts_used,
            "attempts_remaining": allowance.attempts_remaining,
            "can_start": allowance.can_start,
            "best_score": max((a.score for a in attempts), default=None),
            "passed": any(a.passed for a in attempts),
            "time_limit_seconds": assessment.time_limit_seconds,
        }

    def resolve_course(self, assessment: Assessment) -> Optional[Course]:
        """Owning course, falling back to the first course using the assessment's unit"""
        if assessment.course_id:
            return self.db.query(Course).filter(Course.id == assessment.course_id).first()
        if assessment.unit_id:
            courses = self.progress.get_courses_for_unit(assessment.unit_id)
            return courses[0] if courses else None
        return None

    def passing_score(self, assessment: Assessment) -> int:
        if not assessment.passing_score:
            return settings.default_passing_score
        return assessment.passing_score

    def submit(self, user: User, assessment_id: int, answers: Dict[str, Any], time_expired: bool = False) -> dict:
        """
        Grade and record an attempt, then apply its rewards.

        Scoring always happens here; any client-side score is ignored.
        """
        assessment = self.get_assessment(assessment_id)

        allowance = self.get_allowance(user.id, assessment)
        if not allowance.can_start:
            raise AttemptsExhaustedError("No attempts remaining")

        questions = list(assessment.questions)
        if not questions:
            raise AcademyError("No questions found for assessment")

        correct, total, score = score_answers(questions, answers)
        passed = score >= self.passing_score(assessment) if assessment.is_graded else True
        attempts_remaining = AttemptAllowance(assessment.max_retakes, allowance.attempts_used + 1).attempts_remaining

        attempt = AssessmentAttempt(
            user_id=user.id,
            assessment_id=assessment.id,
            score=score,
            passed=passed,
            answers=answers,
            time_expired=time_expired,
            completed_at=datetime.utcnow(),
        )
        self.db.add(attempt)
        self.db.flush()

        log_activity(self.db, user.id, ActivityType.ASSESSMENT_SUBMITTED, {
            "assessment_id": assessment.id,
            "assessment_title": assessment.title,
            "score": score,
            "passed": passed,
            "total_questions": total,
            "correct_answers": correct,
        })
        logger.info(f"User {user.id} scored {score} on assessment {assessment.id} (passed={passed})")

        certificate_generated = False
        if passed:
            user.add_xp(assessment.xp_points)
            course = self.resolve_course(assessment)
            course_completed = False
            if course:
                self.progress.mark_assessment_progress(user.id, course.id, assessment.unit_id, assessment.id)
                _, course_completed = self.progress.refresh_course_progress(user.id, course.id)
                if assessment.has_certificate:
                    certificate_generated = self._issue_certificate(user, course)

            self.notifications.on_assessment_passed(user.id, assessment, score)
            self._check_badges(user, score, course if course_completed else None)
        else:
            self.notifications.on_assessment_failed(user.id, assessment, score, attempts_remaining)

        return {
            "success": True,
            "attempt_id": attempt.id,
            "score": score,
            "passed": passed,
            "correct_answers": correct,
            "total_questions": total,
            "certificate_generated": certificate_generated,
            "attempts_remaining": attempts_remaining,
            "time_expired": time_expired,
        }

    def _issue_certificate(self, user: User, course: Course) -> bool:
        certificates = CertificateService(self.db)
        if certificates.find(user.id, course.id):
            return False
        try:
            # A savepoint keeps the recorded attempt when issuing fails
            with self.db.begin_nested():
                expiry = datetime.utcnow() + timedelta(days=settings.certificate_validity_days)
                certificate = certificates.issue(user, course, expiry_date=expiry)
                self.notifications.on_certificate_earned(user.id, course, certificate)
            return True
        except Exception as e:
            logger.error(f"Error generating certificate for user {user.id}, course {course.id}: {str(e)}")
            return False

    def _check_badges(self, user: User, score: int, completed_course: Optional[Course]) -> None:
        badges = BadgeService(self.db)
        try:
            with self.db.begin_nested():
                badges.check_assessment_badges(user, score, True)
                if completed_course:
                    badges.check_course_completion_badges(user, completed_course)
                badges.check_activity_badges(user)
        except Exception as e:
            logger.error(f"Error checking badges for user {user.id}: {str(e)}")
