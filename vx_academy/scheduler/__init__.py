from .course_reminder_scheduler import (
    course_reminder_scheduler,
    start_scheduler,
    stop_scheduler,
    get_scheduler_status,
)

__all__ = [
    "course_reminder_scheduler",
    "start_scheduler",
    "stop_scheduler",
    "get_scheduler_status",
]
