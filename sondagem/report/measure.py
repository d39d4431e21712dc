from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from reportlab.graphics.shapes import Drawing, Group
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT
from reportlab.lib.styles import ParagraphStyle, StyleSheet1, getSampleStyleSheet
from reportlab.platypus import Flowable, Image, Paragraph, Table, TableStyle

from ..adapters.images import LoadedImage
from .errors import CaptureFailure
from .pagination import BlockMetrics
from .staging import StagedReport
from .tree import ReportNode


logger = logging.getLogger(__name__)

_UNBOUNDED = 1e7
_ALIGNMENTS = {'left': TA_LEFT, 'center': TA_CENTER, 'justify': TA_JUSTIFY}
_MAX_IMAGE_WIDTH = 420.0

RENDERABLE_KINDS = frozenset({'header', 'heading', 'paragraph', 'list', 'chart', 'image'})


@dataclass(frozen=True)
class SurfaceFonts:
    body: str = 'Helvetica'
    bold: str = 'Helvetica-Bold'
    body_size: int = 14
    title_size: int = 20


@dataclass
class LaidOutNode:
    node: ReportNode
    flowable: Flowable
    natural_height: float

    @property
    def height(self) -> float:
        limit = self.node.style.max_height
        if limit is not None and self.node.style.overflow != 'visible':
            return min(self.natural_height, float(limit))
        return self.natural_height

    @property
    def clipped(self) -> bool:
        return self.height < self.natural_height

    @property
    def outer_height(self) -> float:
        return self.node.style.margin_top + self.height + self.node.style.margin_bottom

    def metrics(self) -> BlockMetrics:
        return BlockMetrics(
            height=self.height,
            margin_top=self.node.style.margin_top,
            margin_bottom=self.node.style.margin_bottom,
        )


def build_styles(fonts: SurfaceFonts) -> StyleSheet1:
    styles = getSampleStyleSheet()
    body = fonts.body_size
    styles.add(
        ParagraphStyle(
            name='ReportBody',
            parent=styles['Normal'],
            fontName=fonts.body,
            fontSize=body,
            leading=round(body * 1.375, 1),
            firstLineIndent=32,
            alignment=TA_JUSTIFY,
        )
    )
    styles.add(
        ParagraphStyle(
            name='ReportBullet',
            parent=styles['ReportBody'],
            firstLineIndent=0,
            leftIndent=24,
            bulletIndent=10,
            bulletFontName=fonts.body,
        )
    )
    styles.add(
        ParagraphStyle(
            name='ReportH1',
            parent=styles['Heading1'],
            fontName=fonts.bold,
            fontSize=fonts.title_size,
            leading=round(fonts.title_size * 1.4, 1),
            alignment=TA_CENTER,
            spaceBefore=0,
            spaceAfter=0,
        )
    )
    styles.add(
        ParagraphStyle(
            name='ReportH2',
            parent=styles['Heading2'],
            fontName=fonts.bold,
            fontSize=body + 2,
            leading=round((body + 2) * 1.5, 1),
            borderPadding=(4, 6, 4, 12),
            leftIndent=12,
            spaceBefore=0,
            spaceAfter=0,
        )
    )
    styles.add(
        ParagraphStyle(
            name='ReportH3',
            parent=styles['Heading3'],
            fontName=fonts.bold,
            fontSize=body,
            leading=round(body * 1.4, 1),
            spaceBefore=0,
            spaceAfter=0,
        )
    )
    styles.add(
        ParagraphStyle(
            name='ReportTitle',
            parent=styles['Title'],
            fontName=fonts.bold,
            fontSize=fonts.title_size + 4,
            leading=round((fonts.title_size + 4) * 1.3, 1),
            spaceBefore=0,
            spaceAfter=4,
        )
    )
    styles.add(
        ParagraphStyle(
            name='ReportMeta',
            parent=styles['Normal'],
            fontName=fonts.body,
            fontSize=body - 2,
            leading=round((body - 2) * 1.4, 1),
            alignment=TA_CENTER,
            textColor=colors.HexColor('#4B5563'),
        )
    )
    styles.add(
        ParagraphStyle(
            name='ReportCaption',
            parent=styles['ReportMeta'],
            fontSize=body - 3,
        )
    )
    return styles


def _color(value: str | None) -> Any:
    if not value:
        return None
    try:
        return colors.toColor(value)
    except (ValueError, TypeError):
        logger.debug('Ignoring unparseable color %r', value)
        return None


class LayoutSurface:
    """Lays a staged report out with reportlab flowables at a fixed width.

    ``ready`` is set once the current geometry can be trusted; any style
    mutation clears it until the next reflow completes.
    """

    def __init__(
        self,
        staged: StagedReport,
        *,
        padding: float,
        fonts: SurfaceFonts | None = None,
        images: Mapping[str, LoadedImage] | None = None,
    ):
        self.staged = staged
        self.padding = float(padding)
        self.content_width = float(staged.width) - 2 * self.padding
        if self.content_width <= 0:
            raise CaptureFailure(f'staging width {staged.width} leaves no room for content')
        self.fonts = fonts or SurfaceFonts()
        self.images = dict(images or {})
        self.styles = build_styles(self.fonts)
        self.ready = asyncio.Event()
        self._items: list[LaidOutNode] = []
        self._blocks: list[LaidOutNode] = []
        self._reflow: asyncio.Task | None = None

    # -- layout -----------------------------------------------------------

    def _paragraph_style(self, name: str, node: ReportNode, color: str | None) -> ParagraphStyle:
        base = self.styles[name]
        overrides: dict[str, Any] = {}
        text_color = _color(color)
        if text_color is not None:
            overrides['textColor'] = text_color
        back_color = _color(node.style.background)
        if back_color is not None and node.kind == 'heading':
            overrides['backColor'] = back_color
        if node.kind != 'heading' or node.level != 1:
            overrides['alignment'] = _ALIGNMENTS.get(node.style.align, base.alignment)
        if not overrides:
            return base
        return ParagraphStyle(name=f'{name}-{id(node)}', parent=base, **overrides)

    def _image_flowable(self, node: ReportNode) -> Flowable:
        loaded = self.images.get(node.source or '')
        if loaded is None:
            raise CaptureFailure(f'image was not loaded: {node.source}')
        width = min(self.content_width, _MAX_IMAGE_WIDTH, float(loaded.width))
        height = width * loaded.height / loaded.width
        rows: list[list[Flowable]] = [[Image(str(loaded.path), width=width, height=height)]]
        if node.caption:
            rows.append([Paragraph(node.caption, self.styles['ReportCaption'])])
        table = Table(rows, colWidths=[self.content_width])
        table.setStyle(
            TableStyle(
                [
                    ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
                    ('LEFTPADDING', (0, 0), (-1, -1), 0),
                    ('RIGHTPADDING', (0, 0), (-1, -1), 0),
                    ('TOPPADDING', (0, 0), (-1, -1), 0),
                    ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
                ]
            )
        )
        return table

    def _chart_flowable(self, node: ReportNode) -> Flowable:
        drawing = node.payload
        if drawing is None:
            raise CaptureFailure('chart block without a drawing')
        if drawing.width <= self.content_width:
            return drawing
        factor = self.content_width / drawing.width
        scaled = Group(*drawing.contents)
        scaled.scale(factor, factor)
        fitted = Drawing(drawing.width * factor, drawing.height * factor)
        fitted.add(scaled)
        return fitted

    def _list_flowable(self, node: ReportNode, color: str | None) -> Flowable:
        style = self._paragraph_style('ReportBullet', node, color)
        rows = [[Paragraph(item, style, bulletText='•')] for item in node.items] or [['']]
        table = Table(rows, colWidths=[self.content_width])
        table.setStyle(
            TableStyle(
                [
                    ('LEFTPADDING', (0, 0), (-1, -1), 0),
                    ('RIGHTPADDING', (0, 0), (-1, -1), 0),
                    ('TOPPADDING', (0, 0), (-1, -1), 0),
                    ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
                ]
            )
        )
        return table

    def _header_flowable(self, node: ReportNode, color: str | None) -> Flowable:
        title_style = self.styles['ReportTitle']
        text_color = _color(color)
        if text_color is not None:
            title_style = ParagraphStyle(name='ReportTitleRuntime', parent=title_style, textColor=text_color)
        rows = [[Paragraph(node.text, title_style)]]
        if node.caption:
            rows.append([Paragraph(node.caption, self.styles['ReportMeta'])])
        table = Table(rows, colWidths=[self.content_width])
        table.setStyle(
            TableStyle(
                [
                    ('LINEBELOW', (0, -1), (-1, -1), 1.5, colors.HexColor('#4F46E5')),
                    ('BOTTOMPADDING', (0, -1), (-1, -1), 10),
                ]
            )
        )
        return table

    def flowable_for(self, node: ReportNode, color: str | None) -> Flowable:
        if node.kind == 'header':
            return self._header_flowable(node, color)
        if node.kind == 'heading':
            level = max(1, min(3, node.level or 3))
            return Paragraph(node.text, self._paragraph_style(f'ReportH{level}', node, color))
        if node.kind == 'paragraph':
            return Paragraph(node.text, self._paragraph_style('ReportBody', node, color))
        if node.kind == 'list':
            return self._list_flowable(node, color)
        if node.kind == 'chart':
            return self._chart_flowable(node)
        if node.kind == 'image':
            return self._image_flowable(node)
        raise CaptureFailure(f'unsupported content block kind: {node.kind}')

    def _lay_out_node(self, node: ReportNode, color: str | None) -> LaidOutNode:
        flowable = self.flowable_for(node, color)
        _, height = flowable.wrap(self.content_width, _UNBOUNDED)
        return LaidOutNode(node=node, flowable=flowable, natural_height=float(height))

    def _renderables(self, node: ReportNode, inherited: str | None = None):
        """Yield drawable nodes in document order; a drawn node's children are not visited."""
        color = node.style.color or inherited
        if node.is_header or node.is_block or node.kind in RENDERABLE_KINDS:
            yield node, color
            return
        for child in node.children:
            yield from self._renderables(child, color)

    def _layout(self) -> None:
        items = [self._lay_out_node(node, color) for node, color in self._renderables(self.staged.root)]
        self._items = items
        self._blocks = [item for item in items if item.node.is_block]

    async def layout(self) -> None:
        self.ready.clear()
        try:
            await asyncio.to_thread(self._layout)
        except CaptureFailure:
            raise
        except Exception as exc:
            raise CaptureFailure(f'layout failed: {exc}') from exc
        self.ready.set()

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        """Lay out if needed and wait for it.

        With a ``timeout`` the wait is bounded: on expiry the reflow keeps running
        in the background and the caller proceeds with the last known geometry.
        """
        if self.ready.is_set():
            return True
        if self._reflow is None or self._reflow.done():
            self._reflow = asyncio.create_task(self.layout())
        if timeout is None:
            await self._reflow
            return True
        try:
            await asyncio.wait_for(asyncio.shield(self._reflow), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning('Layout did not settle within %.2fs; using last known geometry', timeout)
            return False
        return True

    # -- geometry ---------------------------------------------------------

    @property
    def lead_height(self) -> float:
        """Height of everything above the first block (header included)."""
        lead = 0.0
        for item in self._items:
            if item.node.is_block:
                break
            lead += item.outer_height
        return lead

    @property
    def items(self) -> list[LaidOutNode]:
        return list(self._items)

    @property
    def blocks(self) -> list[LaidOutNode]:
        return list(self._blocks)

    def metrics(self) -> list[BlockMetrics]:
        """Block geometry; unmarked content below a block counts as its bottom margin."""
        metrics: list[BlockMetrics] = []
        for item in self._items:
            if item.node.is_block:
                metrics.append(item.metrics())
            elif metrics:
                last = metrics[-1]
                metrics[-1] = BlockMetrics(
                    height=last.height,
                    margin_top=last.margin_top,
                    margin_bottom=last.margin_bottom + item.outer_height,
                )
        return metrics

    def scroll_height(self) -> float:
        return sum(item.outer_height for item in self._items)

    def set_margin_top(self, index: int, value: float) -> None:
        self._blocks[index].node.style.margin_top = float(value)
        self.ready.clear()

    # -- drawing ----------------------------------------------------------

    def draw(self, pdf, page_height: float) -> None:
        """Draw every laid-out node top-down on a canvas ``page_height`` tall."""
        background = _color(self.staged.root.style.background) or colors.white
        pdf.setFillColor(background)
        pdf.rect(0, 0, self.staged.width, page_height, stroke=0, fill=1)

        cursor = 0.0
        for item in self._items:
            cursor += item.node.style.margin_top
            top = page_height - cursor
            if item.clipped:
                pdf.saveState()
                clip = pdf.beginPath()
                clip.rect(0, top - item.height, self.staged.width, item.height)
                pdf.clipPath(clip, stroke=0, fill=0)
                item.flowable.drawOn(pdf, self.padding, top - item.natural_height)
                pdf.restoreState()
            else:
                item.flowable.drawOn(pdf, self.padding, top - item.natural_height)
            cursor += item.height + item.node.style.margin_bottom


async def measure_blocks(surface: LayoutSurface) -> tuple[float, list[BlockMetrics]]:
    """Return the offset of the first block and ``(height, margin_top, margin_bottom)`` per block.

    Waits for the surface to finish laying out before reading any geometry.
    """
    await surface.wait_until_ready()
    return surface.lead_height, surface.metrics()
