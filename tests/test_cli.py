from __future__ import annotations

import json

from pypdf import PdfReader

import main


def _run(capsys, *argv: str) -> tuple[int, dict]:
    code = main.main(list(argv))
    return code, json.loads(capsys.readouterr().out)


def _write_input(tmp_path, assessments: list[dict]):
    path = tmp_path / 'input.json'
    path.write_text(
        json.dumps(
            {
                'student': {'id': 's1', 'name': 'Bruno Lima', 'age': 8, 'grade': '3º Ano'},
                'assessments': assessments,
            },
            ensure_ascii=False,
        ),
        encoding='utf-8',
    )
    return path


def test_filename_command(capsys, isolated_settings):
    code, payload = _run(capsys, 'filename', '--name', "João D'Ávila Jr.")

    assert code == 0
    assert payload == {'filename': 'Relatorio_jo_o_d__vila_jr_.pdf'}


def test_export_command_with_narrative_file(capsys, isolated_settings, tmp_path):
    input_path = _write_input(
        tmp_path,
        [
            {'id': 'm1', 'studentId': 's1', 'date': '2024-04-10', 'type': 'MATEMATICA', 'score': 5, 'maxScore': 10},
            {'id': 'm2', 'studentId': 's1', 'date': '2024-08-10', 'type': 'MATEMATICA', 'score': 8, 'maxScore': 10},
        ],
    )
    narrative = tmp_path / 'parecer.md'
    narrative.write_text('# Parecer\n\nBruno evoluiu\nem matemática.', encoding='utf-8')
    out_dir = tmp_path / 'pdfs'

    code, payload = _run(
        capsys,
        'export',
        '--input',
        str(input_path),
        '--narrative',
        str(narrative),
        '--output-dir',
        str(out_dir),
    )

    assert code == 0
    assert payload['status'] == 'ok'
    assert payload['filename'] == 'Relatorio_bruno_lima.pdf'
    assert len(PdfReader(payload['output_path']).pages) == payload['page_count']


def test_generate_requires_assessments(capsys, isolated_settings, tmp_path):
    input_path = _write_input(tmp_path, [])

    code, payload = _run(capsys, 'export', '--input', str(input_path), '--generate')

    assert code == 2
    assert payload['message'] == main.NO_ASSESSMENTS_MESSAGE


def test_missing_input(capsys, isolated_settings, tmp_path):
    code, payload = _run(capsys, 'narrative', '--input', str(tmp_path / 'nope.json'))

    assert code == 2
    assert payload['status'] == 'error'


def test_narrative_command_saves_markdown(capsys, isolated_settings, tmp_path, monkeypatch):
    class _Writer:
        async def generate(self, student, assessments):
            return f'# Parecer de {student.name}'

    monkeypatch.setattr(main, '_build_writer', lambda settings: _Writer())
    input_path = _write_input(
        tmp_path,
        [{'id': 'd1', 'studentId': 's1', 'date': '2024-04-10', 'type': 'DESENHO', 'phase': 'Realismo'}],
    )
    target = tmp_path / 'parecer.md'

    code, payload = _run(capsys, 'narrative', '--input', str(input_path), '--output', str(target))

    assert code == 0
    assert payload['report_markdown'] == '# Parecer de Bruno Lima'
    assert target.read_text(encoding='utf-8') == '# Parecer de Bruno Lima'
    assert payload['output_path'] == str(target.resolve())


def test_distribution_command_counts_current_phase_per_student(capsys, isolated_settings, tmp_path):
    path = tmp_path / 'turma.json'
    path.write_text(
        json.dumps(
            {
                'students': [{'id': 's1', 'name': 'Ana'}, {'id': 's2', 'name': 'Bruno'}],
                'assessments': [
                    {'id': 'd1', 'studentId': 's1', 'date': '2024-03-01', 'type': 'DESENHO', 'phase': 'Garatuja Ordenada'},
                    {'id': 'd2', 'studentId': 's1', 'date': '2024-06-01', 'type': 'DESENHO', 'phase': 'Realismo'},
                    {'id': 'd3', 'studentId': 's2', 'date': '2024-06-02', 'type': 'DESENHO', 'phase': 'Realismo'},
                    {'id': 'w1', 'studentId': 's2', 'date': '2024-06-02', 'type': 'ESCRITA', 'phase': 'Pré-Alfabética'},
                    {'id': 'm1', 'studentId': 's2', 'date': '2024-06-02', 'type': 'MATEMATICA', 'score': 5},
                ],
            },
            ensure_ascii=False,
        ),
        encoding='utf-8',
    )

    code, payload = _run(capsys, 'distribution', '--input', str(path))

    assert code == 0
    assert payload == {
        'status': 'ok',
        'students': 2,
        'distribution': [
            {'phase': 'Realismo', 'count': 2},
            {'phase': 'Pré-Alfabética', 'count': 1},
        ],
    }
