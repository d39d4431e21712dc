from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable

from openai import AsyncOpenAI

from ..config import Settings
from ..types import AssessmentResult, Student


SYSTEM_INSTRUCTION = """
Você é uma Especialista Sênior em Psicopedagogia e Neurociência da Alfabetização.
Analise produções infantis (desenhos, escrita, leitura) com precisão clínica e pedagógica.

DIRETRIZES DE FORMATAÇÃO:
1. Use Markdown padrão.
2. Escreva parágrafos longos e coesos, sem quebras de linha dentro do parágrafo.
3. Em listas, use marcadores (*).
4. Tom formal, técnico, empático e assertivo, no estilo "Parecer Descritivo".
""".strip()

REPORT_STRUCTURE = """
# PARECER PEDAGÓGICO DESCRITIVO

## 1. INTRODUÇÃO
Análise global do perfil e engajamento.

## 2. DESENVOLVIMENTO DA LINGUAGEM ESCRITA E LEITURA
Integre fases de escrita e leitura. Use termos técnicos em negrito. Prefira prosa a listas.

## 3. EXPRESSÃO GRÁFICA E COGNIÇÃO
Análise do desenho.

## 4. PENSAMENTO LÓGICO-MATEMÁTICO
Destaque conquistas numéricas.

## 5. PLANO DE INTERVENÇÃO
Sugestões práticas (Rotina 20/20/20). Aqui você pode usar marcadores (*).
""".strip()

EMPTY_REPORT_TEXT = 'Erro ao gerar relatório.'


@dataclass
class BasicLLMConfig:
    base_url: str | None
    api_key: str | None
    model: str
    timeout_seconds: int
    temperature: float = 0.4
    max_tokens: int = 8192

    @classmethod
    def from_settings(cls, settings: Settings) -> BasicLLMConfig:
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.report_model,
            timeout_seconds=settings.report_timeout_seconds,
            temperature=settings.report_temperature,
            max_tokens=settings.report_max_tokens,
        )


class BasicLLMClient:
    """Lazily built ``AsyncOpenAI`` client for the narrative report endpoint.

    Any OpenAI-compatible base URL works; nothing is created until the
    first request, so an unconfigured key only fails when a narrative is asked for.
    """

    def __init__(self, cfg: BasicLLMConfig):
        self.cfg = cfg
        self._client: AsyncOpenAI | None = None

    @property
    def configured(self) -> bool:
        return bool(self.cfg.api_key)

    def client(self) -> AsyncOpenAI:
        if not self.configured:
            raise RuntimeError('LLM client is not configured')
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.cfg.api_key,
                base_url=self.cfg.base_url,
                timeout=max(30, int(self.cfg.timeout_seconds)),
            )
        return self._client


def build_report_prompt(student: Student, assessments: Iterable[AssessmentResult]) -> str:
    rows = [
        a.model_dump(mode='json', exclude_none=True)
        for a in assessments
        if a.student_id == student.id
    ]
    payload = json.dumps(rows, ensure_ascii=False, indent=2)
    return (
        f'Escreva um RELATÓRIO DE AVALIAÇÃO DIAGNÓSTICA formal para o aluno {student.name}.\n\n'
        f'DADOS: {payload}\n\n'
        f'ESTRUTURA OBRIGATÓRIA (MARKDOWN):\n{REPORT_STRUCTURE}\n'
    )


class NarrativeReportWriter:
    def __init__(self, llm: BasicLLMClient):
        self.llm = llm

    async def generate(self, student: Student, assessments: Iterable[AssessmentResult]) -> str:
        response = await self.llm.client().chat.completions.create(
            model=self.llm.cfg.model,
            temperature=self.llm.cfg.temperature,
            max_tokens=self.llm.cfg.max_tokens,
            messages=[
                {'role': 'system', 'content': SYSTEM_INSTRUCTION},
                {'role': 'user', 'content': build_report_prompt(student, assessments)},
            ],
        )
        if not response.choices:
            return EMPTY_REPORT_TEXT
        text = (response.choices[0].message.content or '').strip()
        return text or EMPTY_REPORT_TEXT
