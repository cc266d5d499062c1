from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from vx_academy.database import Base


class CertificateStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    certificate_number = Column(String(100), unique=True, nullable=False)
    issue_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    expiry_date = Column(DateTime)
    status = Column(SQLEnum(CertificateStatus), default=CertificateStatus.ACTIVE, nullable=False)
    file_path = Column(String(500))  # Last rendered PDF
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="certificates")
    course = relationship("Course")

    def __repr__(self):
        return f"<Certificate(id={self.id}, number='{self.certificate_number}', status='{self.status}')>"

    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < datetime.utcnow()

    @property
    def is_valid(self) -> bool:
        return self.status == CertificateStatus.ACTIVE and not self.is_expired
