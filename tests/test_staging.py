from __future__ import annotations

import pytest

from sondagem.charts import line_chart
from sondagem.report.errors import StagingFailure
from sondagem.report.staging import active_stages, is_pure_white, prepare_clone, stage_report
from sondagem.report.tree import BLOCK, NO_PRINT, WHITE_TEXT_REPLACEMENT, NodeStyle, ReportNode


def _live_tree() -> ReportNode:
    root = ReportNode(kind='root', style=NodeStyle(color='#FFFFFF', background='#111827'))
    toolbar = ReportNode(kind='container', markers={NO_PRINT}).add(
        ReportNode(kind='control', text='Baixar PDF'),
    )
    body = ReportNode(kind='container').add(
        ReportNode(kind='paragraph', text='herdado', markers={BLOCK}),
        ReportNode(kind='paragraph', text='explícito', markers={BLOCK}, style=NodeStyle(color='#fff')),
        ReportNode(kind='paragraph', text='escuro', markers={BLOCK}, style=NodeStyle(color='#333333')),
        ReportNode(
            kind='list',
            items=['a', 'b'],
            markers={BLOCK},
            style=NodeStyle(max_height=50, overflow='auto'),
        ),
    )
    return root.add(toolbar, body)


@pytest.mark.parametrize('value', ['#FFFFFF', '#fff', 'white', '#ffffff'])
def test_pure_white_values(value):
    assert is_pure_white(value)


@pytest.mark.parametrize('value', [None, '', '#fefefe', '#111827', 'not-a-color'])
def test_non_white_values(value):
    assert not is_pure_white(value)


def test_clone_strips_ui_only_nodes_and_fixes_white_text():
    live = _live_tree()

    clone = prepare_clone(live)

    assert all(node.printable for node in clone.walk())
    assert all(not is_pure_white(color) for _, color in clone.walk_with_color())
    texts = {node.text: node.style.color for node in clone.walk() if node.kind == 'paragraph'}
    assert texts['herdado'] in {None, WHITE_TEXT_REPLACEMENT}
    assert texts['explícito'] == WHITE_TEXT_REPLACEMENT
    assert texts['escuro'] == '#333333'
    assert clone.style.background == '#FFFFFF'


def test_clone_expands_scroll_panels():
    clone = prepare_clone(_live_tree())

    panel = next(node for node in clone.walk() if node.kind == 'list')
    assert panel.style.max_height is None
    assert panel.style.overflow == 'visible'


def test_live_tree_is_untouched():
    live = _live_tree()

    prepare_clone(live)

    assert live.style.color == '#FFFFFF'
    assert any(not node.printable for node in live.walk())
    panel = next(node for node in live.walk() if node.kind == 'list')
    assert panel.style.max_height == 50


def test_non_printable_root_cannot_be_staged(tmp_path):
    root = ReportNode(kind='root', markers={NO_PRINT})

    with pytest.raises(StagingFailure):
        with stage_report(root, staging_dir=tmp_path, width=794):
            pass
    assert list(tmp_path.iterdir()) == []
    assert active_stages() == {}


def test_stage_is_detached_after_use(tmp_path):
    with stage_report(_live_tree(), staging_dir=tmp_path, width=794) as staged:
        assert staged.workspace.is_dir()
        assert staged.stage_id in active_stages()
        assert staged.width == 794

    assert not staged.workspace.exists()
    assert staged.stage_id not in active_stages()


def test_stage_is_detached_on_error(tmp_path):
    with pytest.raises(RuntimeError, match='boom'):
        with stage_report(_live_tree(), staging_dir=tmp_path, width=794) as staged:
            (staged.workspace / 'partial.png').write_bytes(b'x')
            raise RuntimeError('boom')

    assert list(tmp_path.iterdir()) == []
    assert active_stages() == {}


def test_clone_shares_chart_drawings():
    drawing = line_chart([('01/03', 4.0), ('01/06', 7.0)], title='Matemática')
    live = ReportNode(kind='root').add(ReportNode(kind='chart', payload=drawing, markers={BLOCK}))

    clone = prepare_clone(live)

    chart = clone.children[0]
    assert chart is not live.children[0]
    assert chart.payload is drawing
    assert chart.style is not live.children[0].style
