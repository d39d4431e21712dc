from __future__ import annotations

import asyncio
import io
import logging
import math

import pymupdf as fitz
from PIL import Image
from reportlab.pdfgen import canvas as pdf_canvas

from .errors import CaptureFailure
from .measure import LayoutSurface


logger = logging.getLogger(__name__)


def _render_tall_page(surface: LayoutSurface, height: int) -> bytes:
    buffer = io.BytesIO()
    pdf = pdf_canvas.Canvas(buffer, pagesize=(surface.staged.width, height))
    surface.draw(pdf, height)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def _rasterize(pdf_bytes: bytes, scale: float) -> Image.Image:
    document = fitz.open(stream=pdf_bytes, filetype='pdf')
    try:
        page = document.load_page(0)
        pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return Image.frombytes('RGB', (pixmap.width, pixmap.height), pixmap.samples)
    finally:
        document.close()


def capture_sync(surface: LayoutSurface, *, height: float, scale: float) -> Image.Image:
    page_height = max(1, int(math.ceil(height)))
    try:
        pdf_bytes = _render_tall_page(surface, page_height)
        bitmap = _rasterize(pdf_bytes, scale)
    except Exception as exc:
        raise CaptureFailure(f'rasterization failed: {exc}') from exc
    logger.info(
        'Captured %dx%d bitmap (document %dx%d px, scale %.2f)',
        bitmap.width,
        bitmap.height,
        surface.staged.width,
        page_height,
        scale,
    )
    return bitmap


async def capture(
    surface: LayoutSurface,
    *,
    scale: float,
    settle_timeout: float,
) -> Image.Image:
    """Rasterize the staged document once its pending reflow has settled.

    The bitmap is ``width * scale`` wide and ``ceil(scroll_height) * scale`` tall.
    """
    if scale <= 0:
        raise CaptureFailure(f'invalid capture scale: {scale}')
    await surface.wait_until_ready(settle_timeout)
    height = surface.scroll_height()
    return await asyncio.to_thread(capture_sync, surface, height=height, scale=scale)
