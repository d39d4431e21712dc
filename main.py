from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from sondagem.adapters.llm import BasicLLMClient, BasicLLMConfig, NarrativeReportWriter
from sondagem.aggregation import phase_distribution
from sondagem.config import Settings, get_settings
from sondagem.report.errors import ExportFailed
from sondagem.report.exporter import ReportExporter
from sondagem.report.slicer import export_filename
from sondagem.storage import append_event, read_json, write_text_atomic
from sondagem.types import ClassInput, ReportInput


NO_ASSESSMENTS_MESSAGE = 'É necessário realizar sondagens antes de gerar o relatório.'


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _load_input(path_arg: str, model: type[BaseModel] = ReportInput) -> Any:
    path = Path(path_arg).expanduser().resolve()
    if not path.is_file():
        _print_json({'status': 'error', 'message': f'Input not found: {path}'})
        return None
    try:
        return model.model_validate(read_json(path))
    except (ValueError, ValidationError) as exc:
        _print_json({'status': 'error', 'message': f'Invalid input {path}: {exc}'})
        return None


def _build_writer(settings: Settings) -> NarrativeReportWriter:
    return NarrativeReportWriter(BasicLLMClient(BasicLLMConfig.from_settings(settings)))


async def _generate_narrative(report: ReportInput, settings: Settings) -> str:
    writer = _build_writer(settings)
    text = await writer.generate(report.student, report.assessments)
    append_event('narrative_generated', settings=settings, student_id=report.student.id, chars=len(text))
    return text


def cmd_export(args: argparse.Namespace) -> int:
    settings = get_settings()
    report = _load_input(args.input)
    if report is None:
        return 2

    if args.narrative:
        narrative_path = Path(args.narrative).expanduser().resolve()
        if not narrative_path.is_file():
            _print_json({'status': 'error', 'message': f'Narrative not found: {narrative_path}'})
            return 2
        report.report_markdown = narrative_path.read_text(encoding='utf-8')
    elif args.generate:
        if not report.assessments:
            _print_json({'status': 'error', 'message': NO_ASSESSMENTS_MESSAGE})
            return 2
        try:
            report.report_markdown = asyncio.run(_generate_narrative(report, settings))
        except Exception as exc:
            logging.getLogger(__name__).exception('Narrative generation failed')
            _print_json({'status': 'error', 'message': f'Erro ao gerar relatório: {exc}'})
            return 2

    exporter = ReportExporter(settings)
    output_dir = Path(args.output_dir).expanduser().resolve() if args.output_dir else None
    try:
        result = asyncio.run(
            exporter.export_report(
                report,
                theme=args.theme,
                dated=args.dated,
                output_dir=output_dir,
            )
        )
    except ExportFailed as exc:
        _print_json({'status': 'error', 'message': str(exc), 'export_status': exporter.gate.status.value})
        return 2

    _print_json({'status': 'ok', **result.model_dump(mode='json')})
    return 0


def cmd_narrative(args: argparse.Namespace) -> int:
    settings = get_settings()
    report = _load_input(args.input)
    if report is None:
        return 2
    if not report.assessments:
        _print_json({'status': 'error', 'message': NO_ASSESSMENTS_MESSAGE})
        return 2
    try:
        text = asyncio.run(_generate_narrative(report, settings))
    except Exception as exc:
        logging.getLogger(__name__).exception('Narrative generation failed')
        _print_json({'status': 'error', 'message': f'Erro ao gerar relatório: {exc}'})
        return 2

    output_path = None
    if args.output:
        output_path = Path(args.output).expanduser().resolve()
        write_text_atomic(output_path, text)

    if args.format == 'md':
        print(text)
        return 0
    payload = {'status': 'ok', 'student_id': report.student.id, 'report_markdown': text}
    if output_path is not None:
        payload['output_path'] = str(output_path)
    _print_json(payload)
    return 0


def cmd_distribution(args: argparse.Namespace) -> int:
    roster = _load_input(args.input, ClassInput)
    if roster is None:
        return 2
    counts = phase_distribution(roster.assessments)
    _print_json(
        {
            'status': 'ok',
            'students': len(roster.students),
            'distribution': [{'phase': phase, 'count': count} for phase, count in counts],
        }
    )
    return 0


def cmd_filename(args: argparse.Namespace) -> int:
    on_date = date.today() if args.dated else None
    _print_json({'filename': export_filename(args.name, on_date=on_date)})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Sondagem report export CLI')
    parser.add_argument('--log-level', required=False, help='Override LOG_LEVEL from settings')
    sub = parser.add_subparsers(dest='command', required=True)

    export = sub.add_parser('export', help='Export a student report as a paginated PDF')
    export.add_argument('--input', required=True, help='JSON file with student and assessments')
    source = export.add_mutually_exclusive_group()
    source.add_argument('--narrative', required=False, help='Markdown file with the narrative report')
    source.add_argument('--generate', action='store_true', help='Generate the narrative with the LLM first')
    export.add_argument('--dated', action='store_true', help='Append the current date to the filename')
    export.add_argument('--theme', choices=['light', 'dark'], default='light')
    export.add_argument('--output-dir', required=False, help='Directory for the PDF (default: export dir)')
    export.set_defaults(func=cmd_export)

    narrative = sub.add_parser('narrative', help='Generate the narrative report text')
    narrative.add_argument('--input', required=True, help='JSON file with student and assessments')
    narrative.add_argument('--format', choices=['md', 'json'], default='json')
    narrative.add_argument('--output', required=False, help='Also save the markdown to this file')
    narrative.set_defaults(func=cmd_narrative)

    distribution = sub.add_parser('distribution', help='Count students per current drawing/writing phase')
    distribution.add_argument('--input', required=True, help='JSON file with students and assessments')
    distribution.set_defaults(func=cmd_distribution)

    filename = sub.add_parser('filename', help='Print the export filename for a student name')
    filename.add_argument('--name', required=True)
    filename.add_argument('--dated', action='store_true')
    filename.set_defaults(func=cmd_filename)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = (args.log_level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
