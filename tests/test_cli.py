"""CLI tests using typer's CliRunner."""

from pathlib import Path

from typer.testing import CliRunner

from monitor_cli import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_parse_hex_target():
    result = runner.invoke(app, ["parse", "WFF"])
    assert result.exit_code == 0
    assert "key=W addr=255" in result.output


def test_parse_invalid():
    result = runner.invoke(app, ["parse", "123"])
    assert result.exit_code == 1


def test_render_u16():
    result = runner.invoke(app, ["render", "0x8001", "5"])
    assert result.exit_code == 0
    assert "32769" in result.output
    assert "D1" in result.output


def test_render_f32_pair():
    result = runner.invoke(app, ["render", "0", "0x3FC0", "--format", "f32"])
    assert result.exit_code == 0
    assert "1.5" in result.output
    assert "0x3FC00000" in result.output


def test_render_bad_format():
    result = runner.invoke(app, ["render", "1", "--format", "f64"])
    assert result.exit_code != 0


def test_encode_i32_at_odd_address():
    result = runner.invoke(app, ["encode", "--format", "I32", "--at", "D11", "--", "-1"])
    assert result.exit_code == 0
    assert "D10" in result.output
    assert "65535" in result.output


def test_encode_rejects_bad_literal():
    result = runner.invoke(app, ["encode", "xyz", "--format", "U16"])
    assert result.exit_code == 1


def test_prefs_set_and_show(tmp_path: Path):
    path = tmp_path / "prefs.json"
    result = runner.invoke(app, ["prefs", "set", "--path", str(path), "--format", "hex", "--auto-start"])
    assert result.exit_code == 0
    result = runner.invoke(app, ["prefs", "show", "--path", str(path)])
    assert result.exit_code == 0
    assert "HEX" in result.output
    assert "yes" in result.output


def test_watch_polling(tmp_path: Path):
    cfg = tmp_path / "monitor.yaml"
    cfg.write_text("interval_ms: 20\nrow_count: 4\n", encoding="utf-8")
    result = runner.invoke(app, ["watch", "--config", str(cfg), "--poll", "--duration", "0.1", "--target", "D10"])
    assert result.exit_code == 0, result.output
    assert "Monitoring D10 via polling channel" in result.output
