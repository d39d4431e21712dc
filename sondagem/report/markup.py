from __future__ import annotations

import html
import re
from typing import Any

from markdown_it import MarkdownIt

from .tree import BLOCK, NodeStyle, ReportNode


_SINGLE_NEWLINE = re.compile(r'([^\n])\n(?!\n)')
_EXCESS_BLANK_LINES = re.compile(r'\n{3,}')
_DOUBLE_SPACES = re.compile(r' {2,}')
_HEADING_WITHOUT_SPACE = re.compile(r'^(#{1,6})(?=[^#\s])', re.MULTILINE)
_BLOCK_START = re.compile(r'\s*(#{1,6}\s|[*\-+]\s|\d+[.)]\s)')

# (margin_top, margin_bottom) in px
_BLOCK_SPACING: dict[str, tuple[float, float]] = {
    'h1': (24.0, 16.0),
    'h2': (16.0, 8.0),
    'h3': (12.0, 4.0),
    'list': (0.0, 8.0),
    'paragraph': (0.0, 8.0),
}

_MARKDOWN_PARSER: MarkdownIt | None = None


def _markdown_parser() -> MarkdownIt:
    global _MARKDOWN_PARSER
    if _MARKDOWN_PARSER is None:
        _MARKDOWN_PARSER = MarkdownIt('commonmark', {'html': False, 'typographer': False})
    return _MARKDOWN_PARSER


def normalize_markdown(text: str) -> str:
    """Join hard-wrapped lines inside a paragraph and squeeze blank lines and spaces.

    A single newline is kept when the next line opens a heading or a list item,
    or when the current line is a heading.
    """
    if not text:
        return ''
    value = str(text).replace('\r\n', '\n').replace('\r', '\n')
    value = _HEADING_WITHOUT_SPACE.sub(r'\1 ', value)

    def _join(match: re.Match[str]) -> str:
        head = match.group(1)
        line_start = value.rfind('\n', 0, match.start(1)) + 1
        current_line = value[line_start:match.end(1)]
        rest = value[match.end():]
        if current_line.lstrip().startswith('#') or _BLOCK_START.match(rest):
            return head + '\n'
        return head + ' '

    value = _SINGLE_NEWLINE.sub(_join, value)
    value = _EXCESS_BLANK_LINES.sub('\n\n', value)
    value = _DOUBLE_SPACES.sub(' ', value)
    return value.strip()


def _render_inline(token: Any) -> str:
    parts: list[str] = []
    for child in token.children or []:
        kind = child.type
        if kind == 'strong_open':
            parts.append('<b>')
        elif kind == 'strong_close':
            parts.append('</b>')
        elif kind == 'em_open':
            parts.append('<i>')
        elif kind == 'em_close':
            parts.append('</i>')
        elif kind in {'softbreak', 'hardbreak'}:
            parts.append(' ')
        elif child.content:
            parts.append(html.escape(child.content, quote=False))
    return ''.join(parts).strip()


def _block(kind: str, *, spacing: str, **fields: Any) -> ReportNode:
    margin_top, margin_bottom = _BLOCK_SPACING[spacing]
    return ReportNode(
        kind=kind,
        markers={BLOCK},
        style=NodeStyle(margin_top=margin_top, margin_bottom=margin_bottom),
        **fields,
    )


def render_narrative(text: str) -> list[ReportNode]:
    """Turn narrative markdown into content blocks, one per heading, paragraph or list."""
    clean = normalize_markdown(text)
    if not clean:
        return []

    tokens = _markdown_parser().parse(clean)
    blocks: list[ReportNode] = []
    list_depth = 0
    list_items: list[str] = []
    heading_level = 0

    for index, token in enumerate(tokens):
        kind = token.type
        if kind in {'bullet_list_open', 'ordered_list_open'}:
            list_depth += 1
            continue
        if kind in {'bullet_list_close', 'ordered_list_close'}:
            list_depth -= 1
            if list_depth == 0 and list_items:
                blocks.append(_block('list', spacing='list', items=list(list_items)))
                list_items.clear()
            continue
        if kind == 'heading_open':
            heading_level = min(3, int(token.tag[1:]))
            continue
        if kind == 'heading_close':
            heading_level = 0
            continue
        if kind in {'fence', 'code_block'}:
            content = html.escape(token.content.strip(), quote=False)
            if content:
                blocks.append(_block('paragraph', spacing='paragraph', text=content))
            continue
        if kind != 'inline':
            continue

        content = _render_inline(token)
        if not content:
            continue
        if list_depth:
            list_items.append(content)
        elif heading_level:
            blocks.append(
                _block('heading', spacing=f'h{heading_level}', text=content, level=heading_level)
            )
        else:
            blocks.append(_block('paragraph', spacing='paragraph', text=content))

    return blocks
