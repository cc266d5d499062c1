"""
Certificate PDF rendering.

Uploaded certificate templates are PDFs. When a template has text form
fields they are filled by placeholder or field-name matching and flattened;
a template without fields gets the learner's details drawn onto its first
page with reportlab. Without any template a default certificate is drawn
from scratch.
"""
import io
import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Optional

from pypdf import PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from vx_academy.config import settings
from vx_academy.exceptions import CertificateTemplateError

logger = logging.getLogger(__name__)


@dataclass
class CertificateData:
    user_name: str
    course_name: str
    date: str
    certificate_id: str
    issue_date: Optional[str] = None
    expiry_date: Optional[str] = None
    completion_date: Optional[str] = None


def create_placeholder_map(data: CertificateData) -> Dict[str, str]:
    """Every placeholder spelling accepted in templates, mapped to its value"""
    issue_date = data.issue_date or data.date
    completion_date = data.completion_date or data.date
    expiry_date = data.expiry_date or ""
    return {
        "{{USER_NAME}}": data.user_name,
        "{{COURSE_NAME}}": data.course_name,
        "{{DATE}}": data.date,
        "{{CERTIFICATE_ID}}": data.certificate_id,
        "{{ISSUE_DATE}}": issue_date,
        "{{EXPIRY_DATE}}": expiry_date,
        "{{COMPLETION_DATE}}": completion_date,
        "{{USER NAME}}": data.user_name,
        "{{COURSE NAME}}": data.course_name,
        "{{CERTIFICATE ID}}": data.certificate_id,
        "{{ISSUE DATE}}": issue_date,
        "{{EXPIRY DATE}}": expiry_date,
        "{{COMPLETION DATE}}": completion_date,
        "[USER_NAME]": data.user_name,
        "[COURSE_NAME]": data.course_name,
        "[DATE]": data.date,
        "[CERTIFICATE_ID]": data.certificate_id,
        "{USER_NAME}": data.user_name,
        "{COURSE_NAME}": data.course_name,
        "{DATE}": data.date,
        "{CERTIFICATE_ID}": data.certificate_id,
    }


def match_field_value(field_name: str, placeholders: Dict[str, str]) -> Optional[str]:
    """
    Pick the value for a template form field.

    An exact placeholder match (ignoring braces and case) wins; otherwise the
    letters of the field name are matched against known patterns.
    """
    lowered = field_name.lower()
    for placeholder, value in placeholders.items():
        if lowered == re.sub(r"[{}\[\]]", "", placeholder).lower():
            return value

    normalized = re.sub(r"[^a-z]", "", lowered)
    # "coursename" also contains "name", so courses are matched first
    if "course" in normalized:
        return placeholders["{{COURSE_NAME}}"]
    if "name" in normalized:
        return placeholders["{{USER_NAME}}"]
    if "expiry" in normalized:
        return placeholders["{{EXPIRY_DATE}}"]
    if "date" in normalized or "completion" in normalized:
        return placeholders["{{DATE}}"]
    if "certificateid" in normalized or "id" in normalized:
        return placeholders["{{CERTIFICATE_ID}}"]
    return None


def resolve_template_path(template: str) -> str:
    if template.startswith("http://") or template.startswith("https://"):
        raise CertificateTemplateError("External template URLs are not supported")
    return settings.get_certificate_template_path(template)


class CertificatePDFService:
    # (placeholder, x, y as page fractions, font, size, centred, colour)
    OVERLAYS = [
        ("{{USER_NAME}}", "{}", 0.5, 0.7, "Helvetica-Bold", 28, True, colors.Color(0.1, 0.1, 0.5)),
        ("{{COURSE_NAME}}", "{}", 0.5, 0.55, "Helvetica", 20, True, colors.Color(0.2, 0.2, 0.2)),
        ("{{DATE}}", "Completed: {}", 0.1, 0.15, "Helvetica", 14, False, colors.black),
        ("{{CERTIFICATE_ID}}", "Certificate ID: {}", 0.9, 0.1, "Helvetica", 12, True, colors.black),
    ]

    def generate(self, data: CertificateData, template: Optional[str] = None) -> bytes:
        """Render a certificate, from the template when one is configured"""
        if template:
            return self.generate_from_template(resolve_template_path(template), data)
        return self.generate_default(data)

    def generate_from_template(self, template_path: str, data: CertificateData) -> bytes:
        if not os.path.exists(template_path):
            raise CertificateTemplateError(f"Certificate template not found: {template_path}")

        placeholders = create_placeholder_map(data)
        try:
            reader = PdfReader(template_path)
            writer = PdfWriter()
            writer.append(reader)

            fields = reader.get_fields() or {}
            text_fields = [name for name, field in fields.items() if field.get("/FT") == "/Tx"]

            if text_fields:
                self._fill_form_fields(writer, text_fields, placeholders)
            else:
                self._overlay_text(writer, placeholders)

            buffer = io.BytesIO()
            writer.write(buffer)
        except CertificateTemplateError:
            raise
        except Exception as e:
            logger.error(f"Error generating certificate from {template_path}: {str(e)}")
            raise CertificateTemplateError(f"Failed to generate certificate: {str(e)}")

        pdf_bytes = buffer.getvalue()
        logger.info(f"Certificate generated from template, size: {len(pdf_bytes)} bytes")
        return pdf_bytes

    def _fill_form_fields(self, writer: PdfWriter, field_names, placeholders: Dict[str, str]) -> None:
        values = {}
        for name in field_names:
            value = match_field_value(name, placeholders)
            if value:
                values[name] = value
            else:
                logger.debug(f"No value matched for form field '{name}'")

        for page in writer.pages:
            writer.update_page_form_field_values(page, values, auto_regenerate=False, flatten=True)
        # Drop the widgets so the flattened text is no longer editable
        writer.remove_annotations(subtypes="/Widget")
        if "/AcroForm" in writer._root_object:
            del writer._root_object["/AcroForm"]
        logger.info(f"Filled {len(values)}/{len(field_names)} certificate form fields")

    def _overlay_text(self, writer: PdfWriter, placeholders: Dict[str, str]) -> None:
        if not writer.pages:
            return
        page = writer.pages[0]
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)

        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(width, height))
        for key, fmt, fx, fy, font, size, centred, colour in self.OVERLAYS:
            value = placeholders.get(key)
            if not value or not value.strip():
                continue
            text = fmt.format(value)
            text_width = stringWidth(text, font, size)
            x = width * fx - text_width / 2 if centred else width * fx
            y = height * fy
            # White backing box keeps the text readable over artwork
            padding = 8
            c.setFillColor(colors.white)
            c.setStrokeColor(colors.Color(0.8, 0.8, 0.8))
            c.rect(x - padding, y - padding, text_width + padding * 2, size * 1.2 + padding, stroke=1, fill=1)
            c.setFillColor(colour)
            c.setFont(font, size)
            c.drawString(x, y, text)
        c.save()

        overlay = PdfReader(io.BytesIO(buffer.getvalue())).pages[0]
        page.merge_page(overlay)

    def generate_default(self, data: CertificateData) -> bytes:
        """Plain landscape certificate for courses without a template"""
        buffer = io.BytesIO()
        width, height = landscape(A4)
        c = canvas.Canvas(buffer, pagesize=(width, height))

        c.setStrokeColor(colors.Color(0.1, 0.1, 0.5))
        c.setLineWidth(4)
        c.rect(30, 30, width - 60, height - 60)

        c.setFillColor(colors.Color(0.1, 0.1, 0.5))
        c.setFont("Helvetica-Bold", 36)
        c.drawCentredString(width / 2, height * 0.78, "Certificate of Completion")

        c.setFillColor(colors.black)
        c.setFont("Helvetica", 16)
        c.drawCentredString(width / 2, height * 0.68, "This certifies that")
        c.setFont("Helvetica-Bold", 28)
        c.drawCentredString(width / 2, height * 0.59, data.user_name)
        c.setFont("Helvetica", 16)
        c.drawCentredString(width / 2, height * 0.50, "has successfully completed")
        c.setFont("Helvetica-Bold", 22)
        c.drawCentredString(width / 2, height * 0.42, data.course_name)

        c.setFont("Helvetica", 12)
        c.drawString(width * 0.1, height * 0.15, f"Completed: {data.completion_date or data.date}")
        if data.expiry_date:
            c.drawString(width * 0.1, height * 0.11, f"Valid until: {data.expiry_date}")
        c.drawRightString(width * 0.9, height * 0.15, f"Certificate ID: {data.certificate_id}")
        c.showPage()
        c.save()
        return buffer.getvalue()


certificate_pdf_service = CertificatePDFService()
