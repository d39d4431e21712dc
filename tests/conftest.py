from __future__ import annotations

from datetime import date

import pytest

from sondagem.config import Settings, get_settings
from sondagem.types import AssessmentResult, AssessmentType, Student


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / 'data', _env_file=None)


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Point the cached process settings at a temporary data dir."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv('DATA_DIR', str(tmp_path / 'data'))
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def student():
    return Student(id='s1', name='Ana Souza', age=7, grade='2º Ano')


@pytest.fixture
def assessments():
    return [
        AssessmentResult(
            id='a1',
            student_id='s1',
            date=date(2024, 3, 1),
            type=AssessmentType.math,
            score=4,
            max_score=10,
            notes='Contagem: 3; Números: 2',
        ),
        AssessmentResult(
            id='a2',
            student_id='s1',
            date=date(2024, 6, 1),
            type=AssessmentType.math,
            score=7,
            max_score=10,
            notes='Contagem: 5; Números: 4; Operações: 3',
        ),
        AssessmentResult(
            id='a3',
            student_id='s1',
            date=date(2024, 3, 2),
            type=AssessmentType.drawing,
            phase='Garatuja Ordenada',
        ),
        AssessmentResult(
            id='a4',
            student_id='s1',
            date=date(2024, 6, 2),
            type=AssessmentType.drawing,
            phase='Pré-Esquematismo',
        ),
        AssessmentResult(
            id='a5',
            student_id='s1',
            date=date(2024, 6, 3),
            type=AssessmentType.reading,
            score=6,
            ai_analysis='Fluência: 6, Decodificação: 7.5, Compreensão: 5',
        ),
        AssessmentResult(
            id='a6',
            student_id='s2',
            date=date(2024, 6, 3),
            type=AssessmentType.writing,
            phase='Alfabética Parcial',
        ),
    ]
