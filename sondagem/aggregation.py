from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from .types import AssessmentResult, AssessmentType, DrawingPhase, WritingPhase


DRAWING_ORDER = [phase.value for phase in DrawingPhase]
WRITING_ORDER = [phase.value for phase in WritingPhase]
PHASE_ORDER = DRAWING_ORDER + WRITING_ORDER

_PHASE_ORDERS: dict[AssessmentType, list[str]] = {
    AssessmentType.drawing: DRAWING_ORDER,
    AssessmentType.writing: WRITING_ORDER,
}
_SCORED_TYPES = {AssessmentType.math, AssessmentType.reading}

_READING_SCORE_PATTERNS = {
    'Fluência': re.compile(r'Fluência:\s*(\d+(?:[.,]\d+)?)'),
    'Decodificação': re.compile(r'Decodificação:\s*(\d+(?:[.,]\d+)?)'),
    'Compreensão': re.compile(r'Compreensão:\s*(\d+(?:[.,]\d+)?)'),
}


@dataclass(frozen=True)
class Trend:
    direction: str  # up | down | flat
    label: str


def history(
    assessments: Iterable[AssessmentResult],
    student_id: str,
    kind: AssessmentType,
) -> list[AssessmentResult]:
    """Assessments of one type for one student, newest first."""
    rows = [a for a in assessments if a.student_id == student_id and a.type == kind]
    return sorted(rows, key=lambda a: a.date, reverse=True)


def latest(
    assessments: Iterable[AssessmentResult],
    student_id: str,
    kind: AssessmentType,
) -> AssessmentResult | None:
    rows = history(assessments, student_id, kind)
    return rows[0] if rows else None


def trend(
    assessments: Iterable[AssessmentResult],
    student_id: str,
    kind: AssessmentType,
) -> Trend | None:
    rows = history(assessments, student_id, kind)
    if len(rows) < 2:
        return None
    current, previous = rows[0], rows[1]

    order = _PHASE_ORDERS.get(kind)
    if order is not None:
        current_idx = order.index(current.phase) if current.phase in order else -1
        previous_idx = order.index(previous.phase) if previous.phase in order else -1
        if current_idx > previous_idx:
            return Trend('up', 'Evoluiu de Fase' if kind == AssessmentType.drawing else 'Avançou na Escrita')
        if current_idx < previous_idx:
            return Trend('down', 'Regressão')
        return Trend('flat', 'Estável')

    if kind in _SCORED_TYPES:
        diff = (current.score or 0) - (previous.score or 0)
        if diff > 0:
            return Trend('up', f'+{diff:g} pontos')
        if diff < 0:
            return Trend('down', f'{diff:g} pontos')
        return Trend('flat', 'Mantido')

    return None


def math_series(assessments: Iterable[AssessmentResult], student_id: str) -> list[tuple[str, float]]:
    """Math scores in chronological order as ``(dd/mm, score)`` points."""
    rows = reversed(history(assessments, student_id, AssessmentType.math))
    return [(a.date.strftime('%d/%m'), float(a.score or 0)) for a in rows if a.score is not None]


def parse_skill_notes(notes: str | None) -> dict[str, float]:
    """Parse ``"Contagem: 3; Números: 2"`` style notes into numeric skill levels."""
    skills: dict[str, float] = {}
    for part in re.split(r'[;,]\s*', str(notes or '')):
        label, sep, raw = part.partition(':')
        if not sep:
            continue
        try:
            skills[label.strip()] = float(raw.strip().replace(',', '.'))
        except ValueError:
            continue
    return skills


def math_skills(assessments: Iterable[AssessmentResult], student_id: str) -> dict[str, float]:
    current = latest(assessments, student_id, AssessmentType.math)
    return parse_skill_notes(current.notes) if current is not None else {}


def reading_scores(assessments: Iterable[AssessmentResult], student_id: str) -> dict[str, float]:
    current = latest(assessments, student_id, AssessmentType.reading)
    if current is None or not current.ai_analysis:
        return {}
    scores: dict[str, float] = {}
    for label, pattern in _READING_SCORE_PATTERNS.items():
        match = pattern.search(current.ai_analysis)
        if match:
            scores[label] = float(match.group(1).replace(',', '.'))
    return scores


def latest_per_student(
    assessments: Iterable[AssessmentResult],
    kinds: Iterable[AssessmentType],
) -> list[AssessmentResult]:
    wanted = set(kinds)
    newest: dict[tuple[str, AssessmentType], AssessmentResult] = {}
    for a in assessments:
        if a.type not in wanted:
            continue
        key = (a.student_id, a.type)
        existing = newest.get(key)
        if existing is None or a.date > existing.date:
            newest[key] = a
    return list(newest.values())


def phase_distribution(assessments: Iterable[AssessmentResult]) -> list[tuple[str, int]]:
    """Count of students per current drawing/writing phase, in phase order, zero counts dropped."""
    counts: dict[str, int] = {}
    for a in latest_per_student(assessments, (AssessmentType.drawing, AssessmentType.writing)):
        if a.phase:
            counts[a.phase] = counts.get(a.phase, 0) + 1
    return [(phase, counts[phase]) for phase in PHASE_ORDER if counts.get(phase)]
