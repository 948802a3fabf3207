import json
from pathlib import Path
import textwrap

from click.testing import CliRunner

from automator.cli import cli
from automator.utils.config import get_settings


def write_multi_doc_yaml(tmp_path: Path) -> Path:
    y = textwrap.dedent(
        """
        version: "1"
        name: alpha
        iterations: 2
        actions: [ax2, 1, enter]
        ---
        version: "1"
        name: beta
        actions: [tab, null, esc]
        """
    )
    p = tmp_path / "demo.yaml"
    p.write_text(y, encoding="utf-8")
    return p


def test_cli_expand_prints_json():
    runner = CliRunner()
    result = runner.invoke(cli, ["expand", "tabx3", "500", "null", "enter"])
    assert result.exit_code == 0
    start = result.output.index("[")
    assert json.loads(result.output[start:]) == ["tab", "tab", "tab", 500, None, "enter"]


def test_cli_keys_lists_token_table():
    runner = CliRunner()
    result = runner.invoke(cli, ["keys"])
    assert result.exit_code == 0
    assert "enter" in result.output and "13" in result.output
    assert "ArrowLeft" in result.output


def test_cli_list_with_multi_doc(tmp_path: Path):
    write_multi_doc_yaml(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["list", "--dir", str(tmp_path), "--no-recursive"])
    assert result.exit_code == 0
    assert "Found 2 sequence(s)" in result.output


def test_cli_validate_with_dir(tmp_path: Path):
    write_multi_doc_yaml(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["validate", "--dir", str(tmp_path), "--no-recursive"])
    assert result.exit_code == 0
    assert result.output.count("OK  ") == 2


def test_cli_validate_reports_invalid_file(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("name: bad\nactions: [true]\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["validate", str(bad)])
    assert result.exit_code == 1
    assert "ERR " in result.output


def test_cli_run_without_browser(tmp_path: Path):
    wf = write_multi_doc_yaml(tmp_path)
    out = tmp_path / "summary.json"
    runner = CliRunner()
    result = runner.invoke(cli, ["run", str(wf), "--step-delay", "1", "--json-out", str(out)])
    assert result.exit_code == 0, result.output
    assert "OK=2" in result.output

    summary = json.loads(out.read_text(encoding="utf-8"))["results"]
    alpha, beta = summary
    assert alpha["sequence"] == "alpha" and alpha["iterations"] == 2
    assert alpha["elapsed"].endswith((" ms", " s"))
    assert f"in {alpha['elapsed']}" in result.output
    assert alpha["keys"] == ["a", "a", "enter", "a", "a", "enter"]
    assert beta["keys"] == ["tab", "esc"]


def test_cli_run_iterations_override(tmp_path: Path):
    seq = tmp_path / "one.yaml"
    seq.write_text("name: one\nactions: [space]\n", encoding="utf-8")
    out = tmp_path / "summary.json"
    runner = CliRunner()
    result = runner.invoke(cli, ["run", str(seq), "--iterations", "3", "--json-out", str(out)])
    assert result.exit_code == 0, result.output
    (res,) = json.loads(out.read_text(encoding="utf-8"))["results"]
    assert res["iterations"] == 3
    assert res["keys"] == ["space"] * 3


def test_cli_run_falls_back_to_default_iterations(tmp_path: Path, monkeypatch):
    seq = tmp_path / "one.yaml"
    seq.write_text("name: one\nactions: [space]\n", encoding="utf-8")
    out = tmp_path / "summary.json"
    monkeypatch.setenv("DEFAULT_ITERATIONS", "3")
    get_settings.cache_clear()
    try:
        runner = CliRunner()
        result = runner.invoke(cli, ["run", str(seq), "--json-out", str(out)])
    finally:
        monkeypatch.delenv("DEFAULT_ITERATIONS")
        get_settings.cache_clear()
    assert result.exit_code == 0, result.output
    (res,) = json.loads(out.read_text(encoding="utf-8"))["results"]
    assert res["iterations"] == 3
    assert res["keys"] == ["space"] * 3


def test_cli_list_shows_default_iterations(tmp_path: Path, monkeypatch):
    write_multi_doc_yaml(tmp_path)
    monkeypatch.setenv("DEFAULT_ITERATIONS", "4")
    get_settings.cache_clear()
    try:
        result = CliRunner().invoke(cli, ["list", "--dir", str(tmp_path), "--no-recursive"])
    finally:
        monkeypatch.delenv("DEFAULT_ITERATIONS")
        get_settings.cache_clear()
    assert result.exit_code == 0
    assert "alpha  (4 actions x 2)" in result.output
    assert "beta  (3 actions x 4)" in result.output
