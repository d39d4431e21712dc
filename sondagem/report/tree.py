from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Iterator


# Marker flags carried by nodes of a rendered report.
BLOCK = 'pdf-item'
NO_PRINT = 'no-print'
HEADER = 'report-header'

WHITE_TEXT_REPLACEMENT = '#111827'


@dataclass
class NodeStyle:
    color: str | None = None
    background: str | None = None
    margin_top: float = 0.0
    margin_bottom: float = 0.0
    max_height: float | None = None
    overflow: str = 'visible'
    align: str = 'left'


@dataclass
class ReportNode:
    """One node of a rendered report.

    ``kind`` is one of ``root``, ``container``, ``header``, ``heading``,
    ``paragraph``, ``list``, ``chart``, ``image`` or ``control``. Leaf text
    lives in ``text`` (inline ``<b>`` markup allowed) or ``items`` for lists.
    Charts carry a reportlab ``Drawing`` in ``payload``; images carry their
    source URL/path in ``source``.
    """

    kind: str
    text: str = ''
    level: int = 0
    items: list[str] = field(default_factory=list)
    source: str | None = None
    caption: str = ''
    payload: Any = None
    markers: set[str] = field(default_factory=set)
    style: NodeStyle = field(default_factory=NodeStyle)
    children: list[ReportNode] = field(default_factory=list)

    @property
    def is_block(self) -> bool:
        return BLOCK in self.markers

    @property
    def is_header(self) -> bool:
        return HEADER in self.markers

    @property
    def printable(self) -> bool:
        return NO_PRINT not in self.markers

    def __deepcopy__(self, memo: dict) -> ReportNode:
        # Drawings are shared; reportlab charts cannot be deep-copied.
        clone = ReportNode(
            kind=self.kind,
            text=self.text,
            level=self.level,
            items=list(self.items),
            source=self.source,
            caption=self.caption,
            payload=self.payload,
            markers=set(self.markers),
            style=replace(self.style),
        )
        memo[id(self)] = clone
        clone.children = [copy.deepcopy(child, memo) for child in self.children]
        return clone

    def add(self, *nodes: ReportNode) -> ReportNode:
        self.children.extend(nodes)
        return self

    def walk(self) -> Iterator[ReportNode]:
        yield self
        for child in self.children:
            yield from child.walk()

    def walk_with_color(self, inherited: str | None = None) -> Iterator[tuple[ReportNode, str | None]]:
        """Yield every node with its computed (inherited) text color."""
        color = self.style.color or inherited
        yield self, color
        for child in self.children:
            yield from child.walk_with_color(color)

    def blocks(self) -> list[ReportNode]:
        return [node for node in self.walk() if node.is_block]

    def header(self) -> ReportNode | None:
        for node in self.walk():
            if node.is_header:
                return node
        return None
