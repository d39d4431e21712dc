from __future__ import annotations

import io
import math
import re
from dataclasses import dataclass
from datetime import date

from PIL import Image
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas


_UNSAFE_NAME_CHARS = re.compile(r'[^A-Za-z0-9]')

# Guards against a sliver page caused by float error when the image height
# is an exact multiple of the page height.
_EPSILON_MM = 1e-6


@dataclass(frozen=True)
class SlicePlan:
    page_width: float
    page_height: float
    image_height: float
    offsets: list[float]

    @property
    def page_count(self) -> int:
        return len(self.offsets)


def plan_slices(
    bitmap_width: int,
    bitmap_height: int,
    *,
    page_width: float,
    page_height: float,
) -> SlicePlan:
    if bitmap_width <= 0 or bitmap_height <= 0:
        raise ValueError(f'invalid bitmap size {bitmap_width}x{bitmap_height}')
    if page_width <= 0 or page_height <= 0:
        raise ValueError(f'invalid page size {page_width}x{page_height}')

    image_height = bitmap_height * page_width / bitmap_width
    offsets = [0.0]
    height_left = image_height - page_height
    while height_left > _EPSILON_MM:
        offsets.append(image_height - height_left)
        height_left -= page_height

    return SlicePlan(
        page_width=page_width,
        page_height=page_height,
        image_height=image_height,
        offsets=offsets,
    )


def expected_page_count(image_height: float, page_height: float) -> int:
    return max(1, math.ceil(image_height / page_height - _EPSILON_MM))


def encode_jpeg(bitmap: Image.Image, *, quality: int) -> bytes:
    buffer = io.BytesIO()
    bitmap.convert('RGB').save(buffer, format='JPEG', quality=int(quality))
    return buffer.getvalue()


def write_sliced_pdf(
    bitmap: Image.Image,
    *,
    page_width_mm: float = 210.0,
    page_height_mm: float = 297.0,
    jpeg_quality: int = 95,
    title: str | None = None,
    author: str | None = None,
) -> tuple[bytes, SlicePlan]:
    """Lay the same tall image on consecutive A4 pages, shifted up by one page each time."""
    plan = plan_slices(
        bitmap.width,
        bitmap.height,
        page_width=page_width_mm,
        page_height=page_height_mm,
    )
    image = ImageReader(io.BytesIO(encode_jpeg(bitmap, quality=jpeg_quality)))

    page_w = page_width_mm * mm
    page_h = page_height_mm * mm
    image_h = plan.image_height * mm

    buffer = io.BytesIO()
    pdf = pdf_canvas.Canvas(buffer, pagesize=(page_w, page_h), pageCompression=1)
    if title:
        pdf.setTitle(title)
    if author:
        pdf.setAuthor(author)

    for page_number, offset in enumerate(plan.offsets):
        if page_number:
            pdf.showPage()
        # PDF origin is bottom-left: the image top sits at page_h + offset.
        bottom = page_h + offset * mm - image_h
        pdf.drawImage(image, 0, bottom, width=page_w, height=image_h)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue(), plan


def safe_name_token(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub('_', str(name or '')).lower()


def export_filename(subject_name: str, *, on_date: date | None = None) -> str:
    token = safe_name_token(subject_name)
    if on_date is None:
        return f'Relatorio_{token}.pdf'
    return f'Relatorio_{token}_{on_date.strftime("%d-%m-%Y")}.pdf'
