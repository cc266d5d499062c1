from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session
import logging
import asyncio

from vx_academy.config import settings
from vx_academy.database import get_db
from vx_academy.models.user import User
from vx_academy.services.notifications import NotificationService
from vx_academy.services.roles import RoleService

logger = logging.getLogger(__name__)


def send_mandatory_course_reminders(db: Session) -> dict:
    """Notify every active user about the mandatory courses they have not finished"""
    roles = RoleService(db)
    notifications = NotificationService(db)
    users = db.query(User).filter(User.is_active.is_(True), User.role_id.isnot(None)).all()

    stats = {"users": 0, "reminders": 0}
    for user in users:
        pending = [c for c in roles.courses_with_progress(user) if not c["is_completed"]]
        if not pending:
            continue
        stats["users"] += 1
        for entry in pending:
            notifications.on_course_reminder(user.id, entry["course"], entry["percent_complete"])
            stats["reminders"] += 1
    db.commit()
    return stats


class CourseReminderScheduler:
    """Daily reminders for incomplete mandatory courses"""

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self.is_running = False

    async def daily_course_reminder_task(self):
        try:
            logger.info("Starting daily course reminder task")

            db = next(get_db())
            try:
                loop = asyncio.get_event_loop()
                stats = await loop.run_in_executor(None, send_mandatory_course_reminders, db)
                logger.info(f"Daily course reminders finished: {stats}")
                return stats
            finally:
                db.close()

        except Exception as e:
            logger.error(f"Error in daily course reminder task: {str(e)}")
            return {"status": "error", "message": str(e)}

    def start(self):
        if self.is_running:
            return

        try:
            self.scheduler.add_job(
                self.daily_course_reminder_task,
                trigger=CronTrigger(hour=settings.course_reminder_hour, minute=0),
                id="daily_course_reminders",
                name="Daily mandatory course reminders",
                replace_existing=True,
                max_instances=1
            )

            self.scheduler.start()
            self.is_running = True
            logger.info("Course reminder scheduler started")

        except Exception as e:
            logger.error(f"Error starting course reminder scheduler: {str(e)}")

    def stop(self):
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown()
            self.is_running = False
            logger.info("Course reminder scheduler stopped")
        except Exception as e:
            logger.error(f"Error stopping course reminder scheduler: {str(e)}")

    def status(self) -> dict:
        jobs = []
        if self.is_running:
            for job in self.scheduler.get_jobs():
                jobs.append({
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                })
        return {"running": self.is_running, "jobs": jobs}


# Global instance
course_reminder_scheduler = CourseReminderScheduler()


def start_scheduler():
    course_reminder_scheduler.start()


def stop_scheduler():
    course_reminder_scheduler.stop()


def get_scheduler_status() -> dict:
    return course_reminder_scheduler.status()
