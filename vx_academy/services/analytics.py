"""
Admin dashboard figures: headline stats, time-ranged analytics, a daily or
weekly time series and the spreadsheet export of the same data.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from io import BytesIO
from typing import List, Optional, Tuple

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from vx_academy.models.activity_log import ActivityType, UserActivityLog
from vx_academy.models.assessment import AssessmentAttempt
from vx_academy.models.badge import UserBadge
from vx_academy.models.course import Course, Module
from vx_academy.models.user import User
from vx_academy.models.user_progress import UserProgress
from vx_academy.services.progress import round_half_up

logger = logging.getLogger(__name__)

TIME_RANGE_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}

# (periods, days per period) for the time series
TIME_SERIES_PERIODS = {"week": (7, 1), "month": (30, 1), "quarter": (12, 7), "year": (12, 30)}

XP_BUCKETS = [
    ("Beginner (0-500 XP)", 500),
    ("Intermediate (501-1500 XP)", 1500),
    ("Advanced (1501-3000 XP)", 3000),
    ("Expert (3000+ XP)", None),
]


def resolve_time_range(time_range: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime, str]:
    """Unknown ranges fall back to the last 30 days"""
    if time_range not in TIME_RANGE_DAYS:
        time_range = "month"
    end = now or datetime.utcnow()
    return end - timedelta(days=TIME_RANGE_DAYS[time_range]), end, time_range


def xp_bucket(xp: int) -> str:
    for name, ceiling in XP_BUCKETS:
        if ceiling is None or xp <= ceiling:
            return name
    return XP_BUCKETS[-1][0]


def _percent(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole else 0


def _role_name(role) -> str:
    return getattr(role, "value", role) or "user"


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    # Windowed counters

    def active_users(self, start: datetime, end: datetime) -> int:
        return (
            self.db.query(func.count(func.distinct(UserActivityLog.user_id)))
            .filter(
                and_(
                    UserActivityLog.activity == ActivityType.LOGIN.value,
                    UserActivityLog.created_at >= start,
                    UserActivityLog.created_at <= end,
                )
            )
            .scalar()
            or 0
        )

    def new_users(self, start: datetime, end: datetime) -> int:
        return self.db.query(User).filter(and_(User.created_at >= start, User.created_at <= end)).count()

    def course_completions(self, start: datetime, end: datetime) -> int:
        return self.db.query(UserProgress).filter(
            and_(
                UserProgress.completed.is_(True),
                UserProgress.completed_at >= start,
                UserProgress.completed_at <= end,
            )
        ).count()

    def enrollments(self, start: datetime, end: datetime) -> int:
        return self.db.query(UserProgress).filter(
            and_(UserProgress.created_at >= start, UserProgress.created_at <= end)
        ).count()

    def assessment_attempts(self, start: datetime, end: datetime) -> int:
        return self.db.query(AssessmentAttempt).filter(
            and_(AssessmentAttempt.started_at >= start, AssessmentAttempt.started_at <= end)
        ).count()

    # Reports

    def course_completion(self) -> List[dict]:
        """Per-course completion rate among enrolled learners, best first"""
        progress = self.db.query(UserProgress.course_id, UserProgress.completed).all()
        enrolled = Counter(p.course_id for p in progress)
        completed = Counter(p.course_id for p in progress if p.completed)

        rows = []
        for course in self.db.query(Course).order_by(Course.id).all():
            rows.append({
                "name": course.name,
                "completionRate": _percent(completed[course.id], enrolled[course.id]),
                "totalEnrolled": enrolled[course.id],
                "completedCount": completed[course.id],
            })
        # Stable sort keeps course id order among equal rates
        return sorted(rows, key=lambda row: row["completionRate"], reverse=True)

    def overview(self, time_range: str = "month") -> dict:
        start, end, period = resolve_time_range(time_range)

        users = self.db.query(User).all()
        progress = self.db.query(UserProgress.completed).all()
        attempts = self.db.query(AssessmentAttempt.score, AssessmentAttempt.passed).all()

        completed = sum(1 for p in progress if p.completed)
        passed = sum(1 for a in attempts if a.passed)
        total_score = sum(a.score for a in attempts)

        role_distribution = Counter(_role_name(u.role) for u in users)
        xp_distribution = Counter(xp_bucket(u.xp_points or 0) for u in users)

        return {
            "summary": {
                "totalUsers": len(users),
                "activeUsers": self.active_users(start, end),
                "newUsers": self.new_users(start, end),
                "courseCompletions": self.course_completions(start, end),
                "avgCompletionRate": _percent(completed, len(progress)),
                "assessmentAttempts": self.assessment_attempts(start, end),
                "avgAssessmentScore": round_half_up(total_score / len(attempts)) if attempts else 0,
                "passRate": _percent(passed, len(attempts)),
            },
            "roleDistribution": [{"name": k, "value": v} for k, v in role_distribution.items()],
            "courseCompletion": self.course_completion(),
            "xpDistribution": [{"name": k, "value": v} for k, v in xp_distribution.items()],
            "timeRange": {"start": start, "end": end, "period": period},
            "enrollments": self.enrollments(start, end),
        }

    def time_series(self, time_range: str = "month") -> dict:
        if time_range not in TIME_SERIES_PERIODS:
            time_range = "month"
        period_count, period_days = TIME_SERIES_PERIODS[time_range]
        today = datetime.utcnow().replace(hour=23, minute=59, second=59, microsecond=999999)

        data = []
        for i in range(period_count - 1, -1, -1):
            period_end = today - timedelta(days=i * period_days)
            period_start = (period_end - timedelta(days=period_days - 1)).replace(
                hour=0, minute=0, second=0, microsecond=0
            )
            label = period_end.strftime("%b") if time_range == "year" else f"{period_end.strftime('%b')} {period_end.day}"
            data.append({
                "date": label,
                "activeUsers": self.active_users(period_start, period_end),
                "newUsers": self.new_users(period_start, period_end),
                "enrollments": self.enrollments(period_start, period_end),
                "completions": self.course_completions(period_start, period_end),
            })
        return {"data": data, "timeRange": time_range}

    def admin_stats(self) -> dict:
        users = self.db.query(User).all()
        by_role = Counter(_role_name(u.role) for u in users)

        modules = {m.id: m.name for m in self.db.query(Module).all()}
        courses = self.db.query(Course).order_by(Course.id).all()
        by_module = Counter(modules.get(c.module_id, f"Module {c.module_id}") for c in courses)

        completion = self.course_completion()
        enrolled = sum(row["totalEnrolled"] for row in completion)
        completions = sum(row["completedCount"] for row in completion)
        top_courses = sorted(completion, key=lambda row: row["completedCount"], reverse=True)[:5]

        return {
            "users": {
                "total": len(users),
                "byRole": [{"role": k, "count": v} for k, v in by_role.items()],
            },
            "courses": {
                "total": len(courses),
                "byModule": [{"moduleName": k, "count": v} for k, v in by_module.items()],
            },
            "progress": {
                "totalCompletions": completions,
                "completionRate": _percent(completions, enrolled),
                "topCourses": [
                    {"courseName": row["name"], "completions": row["completedCount"]} for row in top_courses
                ],
            },
            "badges": {"totalAwarded": self.db.query(UserBadge).count()},
        }

    # Export

    def export_workbook(self, time_range: str = "month") -> BytesIO:
        """Analytics as an xlsx workbook: Summary, Courses and Users sheets"""
        data = self.overview(time_range)
        workbook = openpyxl.Workbook()

        summary = workbook.active
        summary.title = "Summary"
        period = data["timeRange"]
        summary_rows = [
            ("Period", period["period"]),
            ("From", period["start"].strftime("%Y-%m-%d %H:%M:%S")),
            ("To", period["end"].strftime("%Y-%m-%d %H:%M:%S")),
        ]
        summary_rows += [(key, value) for key, value in data["summary"].items()]
        summary_rows.append(("enrollments", data["enrollments"]))
        self._write_sheet(summary, ["Metric", "Value"], summary_rows)

        courses = workbook.create_sheet("Courses")
        self._write_sheet(
            courses,
            ["Course", "Completion Rate (%)", "Enrolled", "Completed"],
            [(r["name"], r["completionRate"], r["totalEnrolled"], r["completedCount"]) for r in data["courseCompletion"]],
        )

        users = workbook.create_sheet("Users")
        user_rows = []
        for user in self.db.query(User).order_by(User.xp_points.desc(), User.id).all():
            user_rows.append((
                user.id,
                user.username,
                user.name,
                user.email,
                _role_name(user.role),
                user.xp_points or 0,
                xp_bucket(user.xp_points or 0),
                "Active" if user.is_active else "Inactive",
                user.last_login.strftime("%Y-%m-%d %H:%M:%S") if user.last_login else "",
            ))
        self._write_sheet(
            users,
            ["ID", "Username", "Name", "Email", "Role", "XP", "XP Level", "Status", "Last Login"],
            user_rows,
        )

        buffer = BytesIO()
        workbook.save(buffer)
        buffer.seek(0)
        logger.info(f"Analytics workbook exported for period '{period['period']}'")
        return buffer

    def _write_sheet(self, worksheet, headers, rows) -> None:
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        header_alignment = Alignment(horizontal="center", vertical="center")

        for col, header in enumerate(headers, 1):
            cell = worksheet.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment

        for row, values in enumerate(rows, 2):
            for col, value in enumerate(values, 1):
                worksheet.cell(row=row, column=col, value=value)

        for column in worksheet.columns:
            max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
            worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)
