from __future__ import annotations

import copy
import logging
import re
import shutil
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator
from uuid import uuid4

from reportlab.lib import colors

from .errors import StagingFailure
from .tree import WHITE_TEXT_REPLACEMENT, ReportNode


logger = logging.getLogger(__name__)

STAGING_BACKGROUND = '#FFFFFF'
_SHORT_HEX = re.compile(r'#[0-9a-f]{3}')

# Stages currently attached, keyed by id.
_ACTIVE_STAGES: dict[str, Path] = {}
_STAGES_LOCK = threading.Lock()


@dataclass
class StagedReport:
    stage_id: str
    root: ReportNode
    workspace: Path
    width: int


def active_stages() -> dict[str, Path]:
    with _STAGES_LOCK:
        return dict(_ACTIVE_STAGES)


def is_pure_white(value: str | None) -> bool:
    if not value:
        return False
    token = value.strip().lower()
    if _SHORT_HEX.fullmatch(token):
        token = '#' + ''.join(ch * 2 for ch in token[1:])
    try:
        color = colors.toColor(token)
    except (ValueError, TypeError):
        return False
    if getattr(color, 'alpha', 1) == 0:
        return False
    return all(abs(channel - 1.0) < 1e-3 for channel in color.rgb())


def strip_no_print(node: ReportNode) -> None:
    node.children = [child for child in node.children if child.printable]
    for child in node.children:
        strip_no_print(child)


def normalize_layout(root: ReportNode) -> None:
    for node in root.walk():
        node.style.max_height = None
        node.style.overflow = 'visible'
    root.style.background = STAGING_BACKGROUND


def fix_white_text(root: ReportNode) -> int:
    """Give every node that would render pure white text an explicit dark color."""
    fixed = 0
    # Materialize first: rewriting a parent changes what its children inherit.
    for node, computed in list(root.walk_with_color()):
        if is_pure_white(computed):
            node.style.color = WHITE_TEXT_REPLACEMENT
            fixed += 1
    return fixed


def prepare_clone(root: ReportNode) -> ReportNode:
    clone = copy.deepcopy(root)
    if not clone.printable:
        raise StagingFailure('report root is marked as non-printable')
    strip_no_print(clone)
    normalize_layout(clone)
    fixed = fix_white_text(clone)
    if fixed:
        logger.debug('Rewrote white text on %d staged nodes', fixed)
    return clone


@contextmanager
def stage_report(root: ReportNode, *, staging_dir: Path, width: int) -> Iterator[StagedReport]:
    """Attach an isolated copy of ``root`` and detach it on every exit path."""
    stage_id = uuid4().hex
    workspace = staging_dir / stage_id
    try:
        workspace.mkdir(parents=True, exist_ok=False)
        with _STAGES_LOCK:
            _ACTIVE_STAGES[stage_id] = workspace
        staged = StagedReport(
            stage_id=stage_id,
            root=prepare_clone(root),
            workspace=workspace,
            width=int(width),
        )
    except StagingFailure:
        _detach(stage_id, workspace)
        raise
    except Exception as exc:
        _detach(stage_id, workspace)
        raise StagingFailure(f'could not stage report: {exc}') from exc

    try:
        yield staged
    finally:
        _detach(stage_id, workspace)


def _detach(stage_id: str, workspace: Path) -> None:
    with _STAGES_LOCK:
        _ACTIVE_STAGES.pop(stage_id, None)
    shutil.rmtree(workspace, ignore_errors=True)
