import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from vx_academy.exceptions import AcademyError, NotFoundError
from vx_academy.models.course import Course
from vx_academy.models.role import Role, RoleMandatoryCourse
from vx_academy.models.user import User
from vx_academy.services.notifications import NotificationService
from vx_academy.services.progress import ProgressService, round_half_up

logger = logging.getLogger(__name__)


class RoleService:
    """Organisational roles and the mandatory courses they carry"""

    def __init__(self, db: Session):
        self.db = db
        self.progress = ProgressService(db)
        self.notifications = NotificationService(db)

    def get_role(self, role_id: int) -> Role:
        role = self.db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise NotFoundError("Role not found")
        return role

    def mandatory_courses(self, role_id: Optional[int]) -> List[Course]:
        if role_id is None:
            return []
        return (
            self.db.query(Course)
            .join(RoleMandatoryCourse, RoleMandatoryCourse.course_id == Course.id)
            .filter(RoleMandatoryCourse.role_id == role_id)
            .order_by(Course.id)
            .all()
        )

    def enroll_in_mandatory_courses(self, user: User) -> List[Course]:
        """Enroll a user in every mandatory course of their role; returns the new enrollments"""
        enrolled = []
        for course in self.mandatory_courses(user.role_id):
            _, created = self.progress.enroll(user, course.id)
            if created:
                self.notifications.on_course_assigned(user.id, course)
                enrolled.append(course)
        if enrolled:
            logger.info(f"User {user.id} enrolled in {len(enrolled)} mandatory courses")
        return enrolled

    def assign_role(self, user: User, role_id: Optional[int]) -> List[Course]:
        if role_id is not None:
            self.get_role(role_id)
        user.role_id = role_id
        self.db.flush()
        return self.enroll_in_mandatory_courses(user)

    def add_mandatory_course(self, role_id: int, course_id: int) -> Tuple[RoleMandatoryCourse, bool]:
        """Make a course mandatory for a role and enroll the role's users. Returns (link, created)."""
        role = self.get_role(role_id)
        if not self.db.query(Course).filter(Course.id == course_id).first():
            raise NotFoundError("Course not found")

        link = self.db.query(RoleMandatoryCourse).filter(
            and_(RoleMandatoryCourse.role_id == role_id, RoleMandatoryCourse.course_id == course_id)
        ).first()
        if link:
            return link, False

        link = RoleMandatoryCourse(role_id=role_id, course_id=course_id)
        self.db.add(link)
        self.db.flush()
        for user in role.users:
            self.enroll_in_mandatory_courses(user)
        return link, True

    def assign_units(self, role_id: int, unit_ids: List[int]) -> int:
        """Make every course containing one of the units mandatory for the role"""
        if not unit_ids:
            raise AcademyError("Unit IDs must be a non-empty list")
        self.get_role(role_id)
        created_count = 0
        for unit_id in unit_ids:
            for course in self.progress.get_courses_for_unit(unit_id):
                _, created = self.add_mandatory_course(role_id, course.id)
                if created:
                    created_count += 1
        return created_count

    def remove_mandatory_course(self, role_id: int, course_id: int) -> None:
        link = self.db.query(RoleMandatoryCourse).filter(
            and_(RoleMandatoryCourse.role_id == role_id, RoleMandatoryCourse.course_id == course_id)
        ).first()
        if not link:
            raise NotFoundError("Mandatory course not found for this role")
        self.db.delete(link)

    def courses_with_progress(self, user: User) -> List[dict]:
        """Mandatory courses of the user's role with the stored progress snapshot"""
        result = []
        for course in self.mandatory_courses(user.role_id):
            progress = self.progress.get_user_progress(user.id, course.id)
            result.append({
                "course": course,
                "is_completed": bool(progress and progress.completed),
                "percent_complete": progress.percent_complete if progress else 0,
                "last_accessed": progress.last_accessed if progress else None,
            })
        return result

    def mandatory_progress(self, user: User) -> int:
        """Share of mandatory courses completed, 0 when the role has none"""
        courses = self.courses_with_progress(user)
        if not courses:
            return 0
        completed = sum(1 for c in courses if c["is_completed"])
        return round_half_up(completed / len(courses) * 100)
