from pathlib import Path
import textwrap

import pytest

from automator.core.sequence_loader import load_sequence, load_sequences_file


def test_load_sequences_file_multiple_docs(tmp_path: Path):
    yml = textwrap.dedent(
        """
        version: "1"
        name: menu
        iterations: 2
        step_delay_ms: 100
        actions: [downx3, 250, enter]
        ---
        version: "1"
        name: close
        actions:
          - esc
          - null
          - 0.5
        """
    )
    f = tmp_path / "multi.yaml"
    f.write_text(yml, encoding="utf-8")

    sequences = load_sequences_file(f)
    assert [s.name for s in sequences] == ["menu", "close"]
    assert sequences[0].iterations == 2 and sequences[0].step_delay_ms == 100
    assert sequences[0].expanded() == ["down", "down", "down", 250, "enter"]
    assert sequences[1].actions == ["esc", None, 0.5]
    assert sequences[1].iterations is None


def test_single_document_name_defaults_to_file_stem(tmp_path: Path):
    f = tmp_path / "konami.yaml"
    f.write_text("actions: [upx2, downx2, left, right, left, right, b, a]\n", encoding="utf-8")
    seq = load_sequence(f)
    assert seq.name == "konami"
    assert len(seq.expanded()) == 10


def test_env_substitution(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CONFIRM_KEY", "enter")
    f = tmp_path / "env.yaml"
    f.write_text('name: env\nactions: ["${CONFIRM_KEY}", "${NOT_SET_ANYWHERE}"]\n', encoding="utf-8")
    seq = load_sequence(f)
    assert seq.actions == ["enter", "${NOT_SET_ANYWHERE}"]


@pytest.mark.parametrize(
    "body",
    [
        "name: bad\nactions: [true]\n",
        "name: bad\nactions: [[a, b]]\n",
        "name: bad\nactions: [{key: a}]\n",
        "name: bad\niterations: 0\nactions: [a]\n",
        "name: bad\nurl: example.com\nactions: [a]\n",
        "name: '  '\nactions: [a]\n",
    ],
)
def test_invalid_documents_raise_value_error(tmp_path: Path, body: str):
    f = tmp_path / "bad.yaml"
    f.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid sequence"):
        load_sequence(f)


def test_yaml_syntax_error(tmp_path: Path):
    f = tmp_path / "broken.yaml"
    f.write_text("actions: [a, b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="YAML parse error"):
        load_sequences_file(f)


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_sequence(tmp_path / "nope.yaml")
