from __future__ import annotations

import html
from datetime import date
from typing import Iterable

from .. import aggregation
from ..charts import bar_chart, line_chart
from ..types import AssessmentResult, AssessmentType, Student
from .markup import render_narrative
from .tree import BLOCK, HEADER, NO_PRINT, NodeStyle, ReportNode


THEMES: dict[str, dict[str, str]] = {
    'light': {
        'background': '#FFFFFF',
        'text': '#1F2937',
        'heading': '#111827',
        'accent': '#312E81',
        'accent_background': '#EEF2FF',
    },
    'dark': {
        'background': '#111827',
        'text': '#FFFFFF',
        'heading': '#FFFFFF',
        'accent': '#A5B4FC',
        'accent_background': '#1E1B4B',
    },
}

TYPE_LABELS: dict[AssessmentType, str] = {
    AssessmentType.drawing: 'Desenho',
    AssessmentType.writing: 'Escrita',
    AssessmentType.reading: 'Leitura',
    AssessmentType.math: 'Matemática',
    AssessmentType.phonological: 'Consciência Fonológica',
    AssessmentType.memory: 'Memória de Trabalho',
}

HISTORY_PANEL_MAX_HEIGHT = 160.0
GALLERY_LIMIT = 3


def _esc(value: object) -> str:
    return html.escape(str(value or ''), quote=False)


def _block(kind: str, margins: tuple[float, float], **fields) -> ReportNode:
    return ReportNode(
        kind=kind,
        markers={BLOCK},
        style=NodeStyle(margin_top=margins[0], margin_bottom=margins[1]),
        **fields,
    )


def _describe(a: AssessmentResult) -> str:
    if a.phase:
        return a.phase
    if a.score is not None:
        if a.max_score:
            return f'{a.score:g}/{a.max_score:g}'
        return f'{a.score:g}'
    return 'Registrado'


def _header(student: Student, generated_on: date) -> ReportNode:
    details = [_esc(student.name)]
    if student.grade:
        details.append(_esc(student.grade))
    if student.age is not None:
        details.append(f'{student.age} anos')
    details.append(generated_on.strftime('%d/%m/%Y'))
    return ReportNode(
        kind='header',
        text='Relatório Pedagógico',
        caption=' · '.join(details),
        markers={HEADER},
        style=NodeStyle(margin_top=32.0, margin_bottom=16.0),
    )


def _summary_blocks(student: Student, assessments: list[AssessmentResult]) -> list[ReportNode]:
    items: list[str] = []
    for kind, label in TYPE_LABELS.items():
        current = aggregation.latest(assessments, student.id, kind)
        if current is None:
            continue
        line = f'<b>{_esc(label)}:</b> {_esc(_describe(current))}'
        movement = aggregation.trend(assessments, student.id, kind)
        if movement is not None:
            line += f' ({_esc(movement.label)})'
        items.append(line)
    if not items:
        return [_block('paragraph', (0.0, 8.0), text='Nenhuma sondagem registrada.')]
    return [
        _block('heading', (16.0, 8.0), text='Resumo das Sondagens', level=2),
        _block('list', (0.0, 8.0), items=items),
    ]


def _history_block(student: Student, assessments: list[AssessmentResult]) -> ReportNode | None:
    rows = sorted(
        (a for a in assessments if a.student_id == student.id),
        key=lambda a: a.date,
        reverse=True,
    )
    if not rows:
        return None
    items = [
        f'{a.date.strftime("%d/%m/%Y")} · {_esc(TYPE_LABELS.get(a.type, a.type.value))} · {_esc(_describe(a))}'
        for a in rows
    ]
    node = _block('list', (0.0, 8.0), items=items)
    # Scroll panel in the live view; staging expands it.
    node.style.max_height = HISTORY_PANEL_MAX_HEIGHT
    node.style.overflow = 'auto'
    return node


def _chart_blocks(student: Student, assessments: list[AssessmentResult], width: float) -> list[ReportNode]:
    blocks: list[ReportNode] = []
    series = aggregation.math_series(assessments, student.id)
    if series:
        blocks.append(
            _block(
                'chart',
                (8.0, 16.0),
                payload=line_chart(series, title='Evolução em Matemática', width=width),
            )
        )
    skills = aggregation.math_skills(assessments, student.id)
    if skills:
        blocks.append(
            _block(
                'chart',
                (8.0, 16.0),
                payload=bar_chart(
                    list(skills.items()),
                    title='Habilidades Matemáticas (última sondagem)',
                    width=width,
                    value_max=10,
                ),
            )
        )
    reading = aggregation.reading_scores(assessments, student.id)
    if reading:
        blocks.append(
            _block(
                'chart',
                (8.0, 16.0),
                payload=bar_chart(
                    list(reading.items()),
                    title='Leitura (0-10)',
                    width=width,
                    value_max=10,
                    color='#0891B2',
                ),
            )
        )
    return blocks


def _gallery_blocks(student: Student, assessments: list[AssessmentResult]) -> list[ReportNode]:
    drawings = [a for a in aggregation.history(assessments, student.id, AssessmentType.drawing) if a.image_url]
    blocks: list[ReportNode] = []
    for a in drawings[:GALLERY_LIMIT]:
        caption = a.date.strftime('%d/%m/%Y')
        if a.phase:
            caption += f' · {a.phase}'
        blocks.append(_block('image', (8.0, 16.0), source=a.image_url, caption=caption))
    return blocks


def _apply_theme(nodes: Iterable[ReportNode], palette: dict[str, str]) -> None:
    for node in nodes:
        if node.kind == 'heading':
            if node.level == 2:
                node.style.color = palette['accent']
                node.style.background = palette['accent_background']
            else:
                node.style.color = palette['heading']
            if node.level == 1:
                node.style.align = 'center'
        elif node.kind in {'paragraph', 'list'}:
            node.style.align = 'justify'


def build_student_report(
    student: Student,
    assessments: Iterable[AssessmentResult],
    *,
    narrative_markdown: str | None,
    theme: str = 'light',
    generated_on: date | None = None,
    chart_width: float = 640.0,
) -> ReportNode:
    """Assemble the on-screen report for one student as a node tree."""
    palette = THEMES.get(theme)
    if palette is None:
        raise ValueError(f'unknown theme: {theme}')
    rows = [a for a in assessments if a.student_id == student.id]
    generated_on = generated_on or date.today()

    root = ReportNode(
        kind='root',
        style=NodeStyle(color=palette['text'], background=palette['background']),
    )
    toolbar = ReportNode(kind='container', markers={NO_PRINT}).add(
        ReportNode(kind='control', text='Voltar'),
        ReportNode(kind='control', text='Baixar PDF'),
    )
    summary = ReportNode(kind='container').add(*_summary_blocks(student, rows))
    history_block = _history_block(student, rows)
    if history_block is not None:
        summary.add(
            _block('heading', (12.0, 4.0), text='Histórico', level=3),
            history_block,
        )
    charts = ReportNode(kind='container').add(*_chart_blocks(student, rows, chart_width))
    gallery_blocks = _gallery_blocks(student, rows)
    gallery = ReportNode(kind='container')
    if gallery_blocks:
        gallery.add(_block('heading', (16.0, 8.0), text='Galeria de Desenhos', level=2), *gallery_blocks)
    narrative = ReportNode(kind='container').add(*render_narrative(narrative_markdown or ''))

    root.add(_header(student, generated_on), toolbar, summary, charts, gallery, narrative)
    _apply_theme(root.walk(), palette)
    return root
