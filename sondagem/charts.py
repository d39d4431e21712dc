from __future__ import annotations

from typing import Sequence

from reportlab.graphics.charts.barcharts import VerticalBarChart
from reportlab.graphics.charts.linecharts import HorizontalLineChart
from reportlab.graphics.shapes import Drawing, String
from reportlab.graphics.widgets.markers import makeMarker
from reportlab.lib import colors


TITLE_COLOR = colors.HexColor('#1E1B4B')
AXIS_COLOR = colors.HexColor('#6B7280')
GRID_COLOR = colors.HexColor('#E5E7EB')

_TITLE_BAND = 28
_PADDING_LEFT = 40
_PADDING_BOTTOM = 56


def _frame(width: float, height: float, title: str) -> Drawing:
    drawing = Drawing(width, height)
    drawing.add(
        String(
            0,
            height - 16,
            title,
            fontName='Helvetica-Bold',
            fontSize=13,
            fillColor=TITLE_COLOR,
        )
    )
    return drawing


def _style_axes(chart, value_max: float | None) -> None:
    chart.valueAxis.valueMin = 0
    if value_max is not None:
        chart.valueAxis.valueMax = value_max
    chart.valueAxis.labels.fontName = 'Helvetica'
    chart.valueAxis.labels.fontSize = 9
    chart.valueAxis.labels.fillColor = AXIS_COLOR
    chart.valueAxis.strokeColor = AXIS_COLOR
    chart.valueAxis.visibleGrid = True
    chart.valueAxis.gridStrokeColor = GRID_COLOR
    chart.categoryAxis.labels.fontName = 'Helvetica'
    chart.categoryAxis.labels.fontSize = 9
    chart.categoryAxis.labels.fillColor = AXIS_COLOR
    chart.categoryAxis.strokeColor = AXIS_COLOR


def line_chart(
    series: Sequence[tuple[str, float]],
    *,
    title: str,
    width: float = 640,
    height: float = 240,
    value_max: float | None = 10,
    color: str = '#4F46E5',
) -> Drawing:
    drawing = _frame(width, height, title)
    chart = HorizontalLineChart()
    chart.x = _PADDING_LEFT
    chart.y = _PADDING_BOTTOM - 24
    chart.width = width - _PADDING_LEFT - 16
    chart.height = height - _TITLE_BAND - chart.y - 8
    chart.data = [tuple(value for _, value in series)]
    chart.categoryAxis.categoryNames = [label for label, _ in series]
    chart.lines[0].strokeColor = colors.HexColor(color)
    chart.lines[0].strokeWidth = 2
    chart.lines[0].symbol = makeMarker('FilledCircle')
    _style_axes(chart, value_max)
    drawing.add(chart)
    return drawing


def bar_chart(
    series: Sequence[tuple[str, float]],
    *,
    title: str,
    width: float = 640,
    height: float = 260,
    value_max: float | None = None,
    color: str = '#F97316',
) -> Drawing:
    drawing = _frame(width, height, title)
    chart = VerticalBarChart()
    chart.x = _PADDING_LEFT
    chart.y = _PADDING_BOTTOM
    chart.width = width - _PADDING_LEFT - 16
    chart.height = height - _TITLE_BAND - chart.y - 8
    chart.data = [tuple(value for _, value in series)]
    chart.categoryAxis.categoryNames = [label for label, _ in series]
    chart.categoryAxis.labels.angle = 30
    chart.categoryAxis.labels.boxAnchor = 'ne'
    chart.bars[0].fillColor = colors.HexColor(color)
    chart.bars[0].strokeColor = None
    chart.barSpacing = 2
    _style_axes(chart, value_max)
    drawing.add(chart)
    return drawing
