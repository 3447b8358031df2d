import io
import os
import logging
from datetime import datetime
from typing import Optional, Tuple
from PIL import Image, ImageDraw, ImageFont
from app.config import CERTIFICATE_DIR, INSTITUTE_NAME
from app.qr_codes import make_qr_image
from app.certificates.certificate_models import certificate_verification_url

logger = logging.getLogger(__name__)

WIDTH, HEIGHT = 1754, 1240  # A4 landscape at 150 dpi

PRIMARY = (26, 43, 76)
GOLD = (191, 155, 48)
LIGHT_GOLD = (212, 175, 55)
GREY = (102, 102, 102)
LIGHT_GREY = (153, 153, 153)

FONT_DIR = "/usr/share/fonts/truetype/dejavu"


def _font(name: str, size: int):
    try:
        return ImageFont.truetype(os.path.join(FONT_DIR, name), size)
    except OSError:
        return ImageFont.load_default()


def grade_line(grade: Optional[str], percentage: Optional[float]) -> str:
    parts = []
    if grade:
        parts.append(f"Grade: {grade}")
    if percentage is not None:
        parts.append(f"Score: {percentage}%")
    return "  |  ".join(parts)


def render_course_certificate(
    student_name: str,
    course_name: str,
    certificate_id: str,
    issue_date: Optional[datetime] = None,
    grade: Optional[str] = None,
    percentage: Optional[float] = None,
    duration: Optional[str] = None,
    instructor_name: str = "Academic Director"
) -> bytes:
    """Draw a landscape course completion certificate and return it as PDF bytes"""
    issue_date = issue_date or datetime.utcnow()

    img = Image.new("RGB", (WIDTH, HEIGHT), color="white")
    draw = ImageDraw.Draw(img)

    draw.rectangle([40, 40, WIDTH - 40, HEIGHT - 40], outline=GOLD, width=6)
    draw.rectangle([60, 60, WIDTH - 60, HEIGHT - 60], outline=LIGHT_GOLD, width=2)

    institute_font = _font("DejaVuSerif-Bold.ttf", 44)
    title_font = _font("DejaVuSerif-Bold.ttf", 84)
    subtitle_font = _font("DejaVuSerif-Bold.ttf", 56)
    name_font = _font("DejaVuSerif-Bold.ttf", 80)
    course_font = _font("DejaVuSans-Bold.ttf", 52)
    text_font = _font("DejaVuSans.ttf", 32)
    small_font = _font("DejaVuSans.ttf", 24)

    def centered(text, font, y, fill):
        bbox = draw.textbbox((0, 0), text, font=font)
        draw.text(((WIDTH - (bbox[2] - bbox[0])) / 2, y), text, fill=fill, font=font)
        return bbox[2] - bbox[0]

    centered(INSTITUTE_NAME, institute_font, 110, PRIMARY)
    centered("CERTIFICATE", title_font, 210, PRIMARY)
    centered("OF COMPLETION", subtitle_font, 310, GOLD)
    centered("THIS IS TO CERTIFY THAT", text_font, 410, GREY)

    name_width = centered(student_name, name_font, 470, PRIMARY)
    draw.line([((WIDTH - name_width) / 2, 580), ((WIDTH + name_width) / 2, 580)], fill=LIGHT_GOLD, width=3)

    centered("has successfully completed", text_font, 610, GREY)
    centered(course_name, course_font, 665, PRIMARY)

    y = 750
    if duration:
        centered(f"Course Duration: {duration}", text_font, y, GREY)
        y += 50
    line = grade_line(grade, percentage)
    if line:
        centered(line, text_font, y, GREY)
        y += 50
    centered(f"Issued on {issue_date.strftime('%B %d, %Y')}", small_font, y + 10, LIGHT_GREY)

    signature_y = 1000
    for left, name, title in (
        (WIDTH // 2 - 500, instructor_name, "Academic Director"),
        (WIDTH // 2 + 100, INSTITUTE_NAME, "Dean of Academics"),
    ):
        draw.line([(left, signature_y), (left + 400, signature_y)], fill=GOLD, width=2)
        for text, font, offset, fill in ((name, small_font, 12, GREY), (title, small_font, 44, LIGHT_GREY)):
            bbox = draw.textbbox((0, 0), text, font=font)
            draw.text((left + (400 - (bbox[2] - bbox[0])) / 2, signature_y + offset), text, fill=fill, font=font)

    qr = make_qr_image(certificate_verification_url(certificate_id), box_size=4).resize((170, 170))
    img.paste(qr, (100, HEIGHT - 330))
    draw.text((110, HEIGHT - 150), "Scan to verify", fill=LIGHT_GREY, font=small_font)
    draw.text((100, HEIGHT - 110), f"ID: {certificate_id}", fill=LIGHT_GREY, font=small_font)

    buf = io.BytesIO()
    img.save(buf, format="PDF", resolution=150.0)
    return buf.getvalue()


def certificate_path(certificate_id: str, directory: str = CERTIFICATE_DIR) -> str:
    return os.path.join(directory, f"{certificate_id}.pdf")


def write_course_certificate(certificate_id: str, directory: str = CERTIFICATE_DIR, **details) -> Tuple[str, str]:
    """
    Render and store a certificate PDF

    Returns:
        (public url, file path)
    """
    os.makedirs(directory, exist_ok=True)
    filepath = certificate_path(certificate_id, directory)
    with open(filepath, "wb") as f:
        f.write(render_course_certificate(certificate_id=certificate_id, **details))
    logger.info("Certificate PDF written: %s", filepath)
    return f"/uploads/certificates/{certificate_id}.pdf", filepath
