import pytest

from damage_capture import main as app
from damage_capture.config.settings import PathConfig
from damage_capture.core.models import DamageCategory


@pytest.fixture
def system(tmp_path, monkeypatch):
    monkeypatch.setattr(PathConfig, "DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(PathConfig, "LOG_DIR", str(tmp_path / "logs"))
    system = app.DamageCaptureSystem()
    return system


def test_scan_and_edit_commands(system, capsys):
    ledger = system.coordinator.ledger
    assert system.handle_line("AB123456789012\n") is True
    assert system.handle_line(":manual 654321") is True
    assert system.handle_line(":toggle 789012 b") is True
    assert system.handle_line(":sig 789012") is True
    assert system.handle_line(":obs 654321 torn strap") is True

    assert ledger.get("789012").categories == {DamageCategory.B}
    assert ledger.get("789012").has_signature is False
    assert ledger.get("654321").observation == "torn strap"

    system.handle_line(":list strap")
    out = capsys.readouterr().out
    assert "Bag registered: 789012" in out
    assert "654321" in out.splitlines()[-1]


def test_delete_and_clear(system, capsys):
    system.handle_line(":manual 111111")
    system.handle_line(":manual 222222")
    system.handle_line(":del 111111")
    assert not system.coordinator.ledger.has("111111")
    system.handle_line(":clear")
    assert system.coordinator.ledger.count() == 0
    assert "1 records deleted" in capsys.readouterr().out


def test_records_survive_restart(system, tmp_path):
    system.handle_line(":manual 111111")
    restarted = app.DamageCaptureSystem()
    assert restarted.coordinator.restore() == 1
    assert restarted.coordinator.ledger.has("111111")


def test_unknown_command_prints_help(system, capsys):
    system.handle_line(":bogus")
    assert ":finalize OPERATOR" in capsys.readouterr().out


def test_finalize_rejects_unknown_shift(system, capsys):
    system.handle_line(":manual 111111")
    system.handle_line(":finalize Rosa LATAM NIGHT")
    assert "NIGHT" in capsys.readouterr().out
    assert not system.coordinator.is_submitting


def test_quit_and_blank_lines(system):
    assert system.handle_line("   ") is True
    assert system.handle_line(":quit") is False


def test_run_reads_until_quit(system):
    system.run(iter(["111111\n", ":quit\n", "222222\n"]))
    assert system.coordinator.ledger.has("111111")
    assert not system.coordinator.ledger.has("222222")


def test_back_to_back_line_scans_with_default_delay(system, capsys):
    system.handle_line("TAG111111")
    system.handle_line("TAG222222")
    system.handle_line("TAG222222")

    assert sorted(r.id for r in system.coordinator.ledger.all()) == ["111111", "222222"]
    out = capsys.readouterr().out
    assert "Bag registered: 111111" in out
    assert "Bag registered: 222222" in out
    assert "[ignored] Bag 222222 read again too quickly" in out
