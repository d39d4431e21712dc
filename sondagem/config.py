from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = 'Sondagem Report Export'
    log_level: str = 'INFO'

    data_dir: Path = Field(default=Path('./data'))
    export_dir: Path | None = None

    # Narrative report service (OpenAI-compatible endpoint)
    llm_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices('LLM_API_KEY', 'OPENAI_API_KEY', 'API_KEY'),
    )
    llm_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices('LLM_BASE_URL', 'OPENAI_BASE_URL', 'BASE_URL'),
    )
    report_model: str = 'gemini-2.5-pro'
    report_temperature: float = 0.4
    report_max_tokens: int = 8192
    report_timeout_seconds: int = 120

    # Staging / layout, in CSS pixels at 96 DPI
    export_width_px: int = 794
    content_padding_px: int = 48
    page_height_px: int = 1123
    page_bottom_margin_px: int = 60
    push_top_pad_px: int = 40

    # Capture
    capture_scale: float = 2.0
    jpeg_quality: int = 95
    layout_settle_timeout_seconds: float = 0.5
    image_fetch_timeout_seconds: int = 20

    # Output page (A4 portrait)
    page_width_mm: float = 210.0
    page_height_mm: float = 297.0

    # Fonts
    pdf_font_name: str = 'Helvetica'
    pdf_bold_font_name: str = 'Helvetica-Bold'
    pdf_body_font_size: int = 14
    pdf_title_font_size: int = 20

    def resolved_export_dir(self) -> Path:
        return self.export_dir or (self.data_dir / 'exports')


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.resolved_export_dir().mkdir(parents=True, exist_ok=True)
    return settings
