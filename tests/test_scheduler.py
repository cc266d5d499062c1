import asyncio

from vx_academy.models.notification import Notification
from vx_academy.models.role import Role
from vx_academy.models.user_progress import UserProgress
from vx_academy.scheduler.course_reminder_scheduler import (
    CourseReminderScheduler,
    send_mandatory_course_reminders,
)
from vx_academy.services.roles import RoleService

from tests.conftest import make_user


def _role_with_course(db, course):
    role = Role(name="Receptionist")
    db.add(role)
    db.commit()
    RoleService(db).add_mandatory_course(role.id, course.id)
    db.commit()
    return role


def test_reminds_only_incomplete_mandatory_courses(db, course):
    role = _role_with_course(db, course)
    pending = make_user(db, "pending", role_id=role.id)
    finished = make_user(db, "finished", role_id=role.id)
    make_user(db, "no_role")
    db.add_all([
        UserProgress(user_id=pending.id, course_id=course.id, percent_complete=40),
        UserProgress(user_id=finished.id, course_id=course.id, percent_complete=100, completed=True),
    ])
    db.commit()

    stats = send_mandatory_course_reminders(db)

    assert stats == {"users": 1, "reminders": 1}
    reminder = db.query(Notification).filter_by(type="course_reminder").one()
    assert reminder.user_id == pending.id
    assert reminder.data == {"course_id": course.id, "percent_complete": 40}


def test_inactive_users_are_skipped(db, course):
    role = _role_with_course(db, course)
    make_user(db, "gone", role_id=role.id, is_active=False)
    assert send_mandatory_course_reminders(db) == {"users": 0, "reminders": 0}


def test_mandatory_progress_percentage(db, course):
    role = _role_with_course(db, course)
    user = make_user(db, "pending", role_id=role.id)
    service = RoleService(db)
    assert service.mandatory_progress(user) == 0

    db.add(UserProgress(user_id=user.id, course_id=course.id, percent_complete=100, completed=True))
    db.commit()
    assert service.mandatory_progress(user) == 100


def test_scheduler_start_and_stop():
    async def cycle():
        scheduler = CourseReminderScheduler()
        scheduler.start()
        status = scheduler.status()
        scheduler.stop()
        return status, scheduler.is_running

    status, running_after_stop = asyncio.run(cycle())
    assert status["running"] is True
    assert [job["id"] for job in status["jobs"]] == ["daily_course_reminders"]
    assert running_after_stop is False
