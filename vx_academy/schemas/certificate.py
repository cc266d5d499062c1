from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from vx_academy.models.certificate import CertificateStatus


class CertificateGenerate(BaseModel):
    course_id: int


class CertificateResponse(BaseModel):
    id: int
    user_id: int
    course_id: int
    certificate_number: str
    issue_date: datetime
    expiry_date: Optional[datetime] = None
    status: CertificateStatus
    course_name: Optional[str] = None

    class Config:
        from_attributes = True
