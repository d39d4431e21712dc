from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import Settings, get_settings


def exports_root(settings: Settings | None = None) -> Path:
    root = (settings or get_settings()).resolved_export_dir()
    root.mkdir(parents=True, exist_ok=True)
    return root


def staging_root(settings: Settings | None = None) -> Path:
    root = (settings or get_settings()).data_dir / 'staging'
    root.mkdir(parents=True, exist_ok=True)
    return root


def events_path(settings: Settings | None = None) -> Path:
    return (settings or get_settings()).data_dir / 'events.jsonl'


def write_bytes_atomic(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    try:
        tmp.write_bytes(payload)
        tmp.replace(path)
    finally:
        if tmp.exists():
            tmp.unlink()


def write_text_atomic(path: Path, content: str) -> None:
    write_bytes_atomic(path, content.encode('utf-8'))


def read_json(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding='utf-8'))


def append_event(event: str, *, settings: Settings | None = None, **extra: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    row = {
        'ts': now,
        'event': event,
        **extra,
    }
    events_file = events_path(settings)
    events_file.parent.mkdir(parents=True, exist_ok=True)
    with events_file.open('a', encoding='utf-8') as f:
        f.write(json.dumps(row, ensure_ascii=False, default=str) + '\n')
