from __future__ import annotations

import logging
import math
import traceback
from datetime import date
from pathlib import Path

from ..adapters.images import ImageLoader, ImageLoaderConfig, ImageLoadError, LoadedImage
from ..config import Settings, get_settings
from ..state import ExportGate
from ..storage import append_event, exports_root, staging_root, write_bytes_atomic
from ..types import ExportResult, ReportInput
from .capture import capture
from .document import build_student_report
from .errors import CaptureFailure, ExportFailed
from .measure import LayoutSurface, SurfaceFonts, measure_blocks
from .pagination import PageGeometry, PaginationResult, paginate
from .slicer import export_filename, write_sliced_pdf
from .staging import StagedReport, stage_report
from .tree import ReportNode


logger = logging.getLogger(__name__)

EXPORT_FAILED_MESSAGE = 'Erro ao gerar PDF. Tente novamente.'


def _image_sources(root: ReportNode) -> list[str]:
    return [node.source for node in root.walk() if node.kind == 'image' and node.source]


class ReportExporter:
    """Turns a live report tree into a paginated A4 PDF.

    Stages run in order: staging, measurement, page-break insertion, settle,
    capture, slicing. Any failure leaves no output file behind and surfaces as
    one ``ExportFailed``.
    """

    def __init__(self, settings: Settings | None = None, *, gate: ExportGate | None = None):
        self.settings = settings or get_settings()
        self.gate = gate or ExportGate()

    @property
    def geometry(self) -> PageGeometry:
        s = self.settings
        return PageGeometry(
            page_height=float(s.page_height_px),
            bottom_margin=float(s.page_bottom_margin_px),
            top_pad=float(s.push_top_pad_px),
        )

    def _record(self, event: str, **extra) -> None:
        try:
            append_event(event, settings=self.settings, **extra)
        except OSError as exc:
            logger.warning('Could not record %s event: %s', event, exc)

    def _fonts(self) -> SurfaceFonts:
        s = self.settings
        return SurfaceFonts(
            body=s.pdf_font_name,
            bold=s.pdf_bold_font_name,
            body_size=s.pdf_body_font_size,
            title_size=s.pdf_title_font_size,
        )

    async def _load_images(self, staged: StagedReport) -> dict[str, LoadedImage]:
        sources = _image_sources(staged.root)
        if not sources:
            return {}
        loader = ImageLoader(ImageLoaderConfig(timeout_seconds=self.settings.image_fetch_timeout_seconds))
        try:
            return await loader.load_all(sources, staged.workspace / 'images')
        except ImageLoadError as exc:
            raise CaptureFailure(str(exc)) from exc

    async def _apply_page_breaks(self, surface: LayoutSurface) -> PaginationResult:
        lead_height, metrics = await measure_blocks(surface)
        result = paginate(metrics, self.geometry, start_y=lead_height)
        for placement in result.pushed:
            surface.set_margin_top(placement.index, placement.margin_top)
        if result.pushed:
            logger.info('Pushed %d of %d blocks to the next page', len(result.pushed), len(metrics))
        return result

    async def _render(self, root: ReportNode, title: str) -> tuple[bytes, dict]:
        s = self.settings
        with stage_report(root, staging_dir=staging_root(s), width=s.export_width_px) as staged:
            images = await self._load_images(staged)
            surface = LayoutSurface(
                staged,
                padding=s.content_padding_px,
                fonts=self._fonts(),
                images=images,
            )
            pagination = await self._apply_page_breaks(surface)
            bitmap = await capture(
                surface,
                scale=s.capture_scale,
                settle_timeout=s.layout_settle_timeout_seconds,
            )
            pdf_bytes, plan = write_sliced_pdf(
                bitmap,
                page_width_mm=s.page_width_mm,
                page_height_mm=s.page_height_mm,
                jpeg_quality=s.jpeg_quality,
                title=title,
                author=s.app_name,
            )
            stats = {
                'page_count': plan.page_count,
                'block_count': len(pagination.placements),
                'pushed_blocks': len(pagination.pushed),
                'oversized_blocks': len(pagination.oversized),
                'document_height_px': int(math.ceil(surface.scroll_height())),
                'bitmap_size': [bitmap.width, bitmap.height],
                'image_count': len(images),
            }
        return pdf_bytes, stats

    async def export(
        self,
        root: ReportNode,
        subject_name: str,
        *,
        dated: bool = False,
        on_date: date | None = None,
        output_dir: Path | None = None,
    ) -> ExportResult:
        filename = export_filename(subject_name, on_date=(on_date or date.today()) if dated else None)
        self.gate.begin()
        try:
            self._record('export_started', filename=filename)
            target_dir = Path(output_dir) if output_dir is not None else exports_root(self.settings)
            target = target_dir / filename
            pdf_bytes, stats = await self._render(root, title=f'Relatório {subject_name}')
            write_bytes_atomic(target, pdf_bytes)
        except Exception as exc:
            logger.exception('Export of %s failed', filename)
            detail = ''.join(traceback.format_exception_only(type(exc), exc)).strip()
            self._record('export_failed', filename=filename, error=detail)
            self.gate.fail(EXPORT_FAILED_MESSAGE)
            raise ExportFailed(EXPORT_FAILED_MESSAGE) from exc
        finally:
            self.gate.finish()

        self._record('export_completed', filename=filename, output=str(target), **stats)
        logger.info('Wrote %s (%d pages)', target, stats['page_count'])
        return ExportResult(
            output_path=str(target),
            filename=filename,
            page_count=stats['page_count'],
            block_count=stats['block_count'],
            pushed_blocks=stats['pushed_blocks'],
            oversized_blocks=stats['oversized_blocks'],
            document_height_px=stats['document_height_px'],
            metadata={
                'bitmap_size': stats['bitmap_size'],
                'image_count': stats['image_count'],
            },
        )

    async def export_report(
        self,
        report: ReportInput,
        *,
        theme: str = 'light',
        dated: bool = False,
        on_date: date | None = None,
        output_dir: Path | None = None,
    ) -> ExportResult:
        """Build the student's report tree and export it."""
        s = self.settings
        root = build_student_report(
            report.student,
            report.assessments,
            narrative_markdown=report.report_markdown,
            theme=theme,
            generated_on=on_date,
            chart_width=float(s.export_width_px - 2 * s.content_padding_px),
        )
        return await self.export(
            root,
            report.student.name,
            dated=dated,
            on_date=on_date,
            output_dir=output_dir,
        )
