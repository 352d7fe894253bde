"""Tests for the external transformer wrapper."""

import json
import sys
from pathlib import Path

import pytest

from history_mirror.config import TransformerConfig
from history_mirror.exceptions import ExecutionError, PreconditionError
from history_mirror.services.transformer import Transformer
from history_mirror.utils.exception_logger import ExceptionLogger


def test_empty_command_is_rejected():
    with pytest.raises(PreconditionError):
        Transformer(TransformerConfig(command=[]))


def test_placeholders_are_substituted():
    transformer = Transformer(
        TransformerConfig(command=["render", "--in={source}", "--out", "{output}"])
    )

    cmd = transformer.build_command(Path("/src"), Path("/out"))

    assert cmd == ["render", "--in=/src", "--out", "/out"]


def test_run_writes_output(tmp_path, transformer_command):
    source = tmp_path / "src"
    output = tmp_path / "out"
    source.mkdir()
    output.mkdir()
    (source / "db.conf").write_text("host=db")

    Transformer(TransformerConfig(command=transformer_command)).run(source, output)

    assert (output / "db.out").read_text() == "HOST=DB"


def test_environment_and_working_directory(tmp_path):
    script = tmp_path / "dump_env.py"
    script.write_text(
        "import json, os, pathlib, sys\n"
        "pathlib.Path(os.environ['HISTORY_MIRROR_OUTPUT'], 'env.json').write_text(\n"
        "    json.dumps({'cwd': os.getcwd(),\n"
        "                'source': os.environ['HISTORY_MIRROR_SOURCE'],\n"
        "                'flavor': os.environ['FLAVOR']}))\n"
    )
    source = tmp_path / "src"
    output = tmp_path / "out"
    source.mkdir()
    output.mkdir()
    settings = TransformerConfig(
        command=[sys.executable, str(script)], env={"FLAVOR": "prod"}
    )

    Transformer(settings).run(source, output)

    recorded = json.loads((output / "env.json").read_text())
    assert Path(recorded["cwd"]).resolve() == source.resolve()
    assert recorded["source"] == str(source)
    assert recorded["flavor"] == "prod"


def test_non_zero_exit_raises_and_is_journaled(tmp_path, transformer_command):
    journal = ExceptionLogger.initialize(tmp_path / "state")
    source = tmp_path / "src"
    output = tmp_path / "out"
    source.mkdir()
    output.mkdir()
    (source / "FAIL").write_text("")

    with pytest.raises(ExecutionError) as exc_info:
        Transformer(TransformerConfig(command=transformer_command)).run(source, output)

    assert exc_info.value.exit_code == 3
    assert "refusing to transform" in exc_info.value.stderr
    assert "refusing to transform" in journal.log_file_path.read_text()


def test_missing_executable_is_execution_error(tmp_path):
    transformer = Transformer(
        TransformerConfig(command=[str(tmp_path / "no-such-transformer")])
    )

    with pytest.raises(ExecutionError) as exc_info:
        transformer.run(tmp_path, tmp_path)

    assert exc_info.value.exit_code == 127
