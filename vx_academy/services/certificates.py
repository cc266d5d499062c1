import logging
import os
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

import jinja2
from sqlalchemy import and_
from sqlalchemy.orm import Session

from vx_academy.config import settings
from vx_academy.exceptions import AcademyError, NotFoundError, PermissionDeniedError
from vx_academy.models.activity_log import ActivityType
from vx_academy.models.assessment import Assessment
from vx_academy.models.certificate import Certificate, CertificateStatus
from vx_academy.models.course import Course
from vx_academy.models.user import User
from vx_academy.models.user_progress import UserProgress
from vx_academy.services.activity import log_activity
from vx_academy.services.badges import BadgeService
from vx_academy.services.certificate_pdf import CertificateData, certificate_pdf_service
from vx_academy.services.notifications import NotificationService

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(Path(__file__).resolve().parent.parent, "templates")

_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(TEMPLATE_DIR),
    autoescape=jinja2.select_autoescape(["html", "xml"]),
)


def build_certificate_number(user_id: int, course_id: int) -> str:
    return f"CERT-{user_id}-{course_id}-{int(time.time() * 1000)}"


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%B %d, %Y") if value else ""


class CertificateService:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: int) -> List[Certificate]:
        return (
            self.db.query(Certificate)
            .filter(Certificate.user_id == user_id)
            .order_by(Certificate.issue_date.desc())
            .all()
        )

    def find(self, user_id: int, course_id: int) -> Optional[Certificate]:
        return self.db.query(Certificate).filter(
            and_(Certificate.user_id == user_id, Certificate.course_id == course_id)
        ).first()

    def get_for_user(self, certificate_id: int, user: User) -> Certificate:
        """Owners and admins may read a certificate"""
        certificate = self.db.query(Certificate).filter(Certificate.id == certificate_id).first()
        if not certificate:
            raise NotFoundError("Certificate not found")
        if certificate.user_id != user.id and not user.is_admin():
            raise PermissionDeniedError("Not authorized to view this certificate")
        return certificate

    def issue(self, user: User, course: Course, expiry_date: Optional[datetime] = None) -> Certificate:
        certificate = Certificate(
            user_id=user.id,
            course_id=course.id,
            certificate_number=build_certificate_number(user.id, course.id),
            status=CertificateStatus.ACTIVE,
            issue_date=datetime.utcnow(),
            expiry_date=expiry_date,
        )
        self.db.add(certificate)
        self.db.flush()
        log_activity(self.db, user.id, ActivityType.CERTIFICATE_ISSUED, {
            "course_id": course.id,
            "certificate_id": certificate.id,
        })
        logger.info(f"Certificate {certificate.certificate_number} issued to user {user.id}")
        return certificate

    def generate_for_course(self, user: User, course_id: int) -> Tuple[Certificate, bool]:
        """
        Issue a certificate for a completed course.

        Returns the existing certificate when there is one. Returns
        (certificate, created).
        """
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found")

        progress = self.db.query(UserProgress).filter(
            and_(UserProgress.user_id == user.id, UserProgress.course_id == course_id)
        ).first()
        if not progress or not progress.completed:
            raise AcademyError("Course must be completed to generate certificate")

        existing = self.find(user.id, course_id)
        if existing:
            return existing, False

        expiry = datetime.utcnow() + timedelta(days=settings.certificate_validity_days)
        certificate = self.issue(user, course, expiry_date=expiry)
        NotificationService(self.db).on_certificate_earned(user.id, course, certificate)
        self._check_badges(user)
        return certificate, True

    def _check_badges(self, user: User) -> None:
        try:
            with self.db.begin_nested():
                BadgeService(self.db).check_certificate_badges(user)
        except Exception as e:
            logger.error(f"Error checking certificate badges for user {user.id}: {str(e)}")

    def template_for_course(self, course_id: int) -> Optional[str]:
        """Template of the course's certificate-bearing assessment, if any"""
        assessment = (
            self.db.query(Assessment)
            .filter(
                and_(
                    Assessment.course_id == course_id,
                    Assessment.has_certificate.is_(True),
                    Assessment.certificate_template.isnot(None),
                )
            )
            .order_by(Assessment.id)
            .first()
        )
        return assessment.certificate_template if assessment else None

    def _certificate_data(self, certificate: Certificate) -> CertificateData:
        user = certificate.user
        course = certificate.course
        issued = _format_date(certificate.issue_date)
        return CertificateData(
            user_name=user.name if user else "",
            course_name=course.name if course else "",
            date=issued,
            certificate_id=certificate.certificate_number,
            issue_date=issued,
            expiry_date=_format_date(certificate.expiry_date),
            completion_date=issued,
        )

    def render_html(self, certificate: Certificate) -> str:
        data = self._certificate_data(certificate)
        template = _env.get_template("certificate.html")
        return template.render(
            user_name=data.user_name,
            course_name=data.course_name,
            issue_date=data.issue_date,
            expiry_date=data.expiry_date,
            certificate_number=data.certificate_id,
            status=getattr(certificate.status, "value", certificate.status),
            is_valid=certificate.is_valid,
        )

    def render_pdf(self, certificate: Certificate) -> bytes:
        template = self.template_for_course(certificate.course_id)
        pdf_bytes = certificate_pdf_service.generate(self._certificate_data(certificate), template)

        os.makedirs(settings.certificate_output_dir, exist_ok=True)
        file_path = os.path.join(settings.certificate_output_dir, f"certificate_{certificate.certificate_number}.pdf")
        with open(file_path, "wb") as f:
            f.write(pdf_bytes)
        certificate.file_path = file_path
        return pdf_bytes
