from typing import Any, List

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import get_current_active_user
from vx_academy.models.certificate import Certificate
from vx_academy.models.user import User
from vx_academy.schemas.certificate import CertificateGenerate, CertificateResponse
from vx_academy.services.certificates import CertificateService

router = APIRouter()


def _to_response(certificate: Certificate) -> CertificateResponse:
    response = CertificateResponse.model_validate(certificate)
    response.course_name = certificate.course.name if certificate.course else None
    return response


@router.get("", response_model=List[CertificateResponse])
async def get_my_certificates(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return [_to_response(c) for c in CertificateService(db).list_for_user(current_user.id)]


@router.post("/generate", response_model=CertificateResponse)
async def generate_certificate(
    request: CertificateGenerate,
    response: Response,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    """
    Issue a certificate for a completed course, or return the one already issued
    """
    certificate, created = CertificateService(db).generate_for_course(current_user, request.course_id)
    db.commit()
    db.refresh(certificate)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return _to_response(certificate)


@router.get("/{certificate_id}", response_model=CertificateResponse)
async def get_certificate(
    certificate_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return _to_response(CertificateService(db).get_for_user(certificate_id, current_user))


@router.get("/{certificate_id}/html", response_class=HTMLResponse)
async def get_certificate_html(
    certificate_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    service = CertificateService(db)
    certificate = service.get_for_user(certificate_id, current_user)
    return HTMLResponse(content=service.render_html(certificate))


@router.get("/{certificate_id}/pdf")
async def download_certificate_pdf(
    certificate_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    service = CertificateService(db)
    certificate = service.get_for_user(certificate_id, current_user)
    pdf_bytes = service.render_pdf(certificate)
    db.commit()
    filename = f"certificate_{certificate.certificate_number}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
