from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssessmentType(str, Enum):
    drawing = 'DESENHO'
    writing = 'ESCRITA'
    phonological = 'FONOLOGICA'
    memory = 'MEMORIA'
    math = 'MATEMATICA'
    reading = 'LEITURA'


class DrawingPhase(str, Enum):
    garatuja_desordenada = 'Garatuja Desordenada'
    garatuja_ordenada = 'Garatuja Ordenada'
    pre_esquematismo = 'Pré-Esquematismo'
    esquematismo = 'Esquematismo'
    realismo = 'Realismo'
    pseudo_naturalismo = 'Pseudo-Naturalismo'


class WritingPhase(str, Enum):
    pre_alfabetica = 'Pré-Alfabética'
    alfabetica_parcial = 'Alfabética Parcial'
    alfabetica_completa = 'Alfabética Completa'
    alfabetica_consolidada = 'Alfabética Consolidada'


class Student(BaseModel):
    id: str
    name: str
    age: int | None = None
    grade: str = ''


class AssessmentResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    student_id: str = Field(validation_alias=AliasChoices('student_id', 'studentId'))
    date: dt.date
    type: AssessmentType
    phase: str | None = None
    score: float | None = None
    max_score: float | None = Field(default=None, validation_alias=AliasChoices('max_score', 'maxScore'))
    notes: str | None = None
    image_url: str | None = Field(default=None, validation_alias=AliasChoices('image_url', 'imageUrl'))
    ai_analysis: str | None = Field(default=None, validation_alias=AliasChoices('ai_analysis', 'aiAnalysis'))


class ReportInput(BaseModel):
    """Payload accepted by the CLI: one student, their assessments, optional narrative."""

    model_config = ConfigDict(populate_by_name=True)

    student: Student
    assessments: list[AssessmentResult] = Field(default_factory=list)
    report_markdown: str | None = Field(
        default=None,
        validation_alias=AliasChoices('report_markdown', 'reportMarkdown', 'report'),
    )


class ClassInput(BaseModel):
    """Payload for class-level summaries: the roster and every assessment recorded."""

    students: list[Student] = Field(default_factory=list)
    assessments: list[AssessmentResult] = Field(default_factory=list)


class ExportStatus(str, Enum):
    idle = 'idle'
    exporting = 'exporting'
    failed = 'failed'


class ExportResult(BaseModel):
    output_path: str
    filename: str
    page_count: int
    block_count: int
    pushed_blocks: int
    oversized_blocks: int
    document_height_px: int
    finished_at: datetime = Field(default_factory=utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)
