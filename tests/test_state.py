from __future__ import annotations

import pytest

from sondagem.state import ExportBusyError, ExportGate
from sondagem.types import ExportStatus


def test_success_cycle():
    gate = ExportGate()
    assert gate.can_start

    gate.begin()
    assert gate.status == ExportStatus.exporting
    assert not gate.can_start

    gate.finish()
    assert gate.status == ExportStatus.idle


def test_failure_holds_message_until_dismissed():
    gate = ExportGate()
    gate.begin()
    gate.fail('Erro ao gerar PDF.')
    gate.finish()

    assert gate.status == ExportStatus.failed
    assert gate.message == 'Erro ao gerar PDF.'
    with pytest.raises(ExportBusyError):
        gate.begin()

    gate.dismiss()
    assert gate.status == ExportStatus.idle
    assert gate.message is None


def test_cannot_start_twice():
    gate = ExportGate()
    gate.begin()

    with pytest.raises(ExportBusyError):
        gate.begin()


def test_dismiss_is_noop_unless_failed():
    gate = ExportGate()
    gate.begin()
    gate.dismiss()

    assert gate.status == ExportStatus.exporting
