"""Tests for CLI commands."""

import io
import json
from pathlib import Path

import pytest

from pinto.cli import main


@pytest.fixture
def dsl_file(tmp_path: Path) -> Path:
    path = tmp_path / "flow.pinto"
    path.write_text('start(circle): "Start"\nstart -> work -> done\n')
    return path


def run(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    out = capsys.readouterr().out
    return excinfo.value.code, out


class TestParseCommand:
    def test_parse_file(self, dsl_file, capsys):
        code, out = run(["parse", str(dsl_file)], capsys)
        assert code == 0
        data = json.loads(out)
        assert data["success"] is True
        assert len(data["document"]["statements"]) == 5

    def test_parse_errors_exit_1(self, tmp_path, capsys):
        path = tmp_path / "bad.pinto"
        path.write_text("a -> (")
        code, out = run(["parse", str(path)], capsys)
        assert code == 1
        assert json.loads(out)["success"] is False

    def test_missing_file(self, tmp_path, capsys):
        code, out = run(["parse", str(tmp_path / "nope.pinto")], capsys)
        assert code == 1
        assert json.loads(out)["status"] == "error"

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("a -> b"))
        code, out = run(["parse", "-"], capsys)
        assert code == 0
        assert len(json.loads(out)["document"]["statements"]) == 3


class TestCompileCommand:
    def test_compile(self, dsl_file, capsys):
        code, out = run(["compile", str(dsl_file), "--algorithm", "layered", "--direction", "RIGHT"], capsys)
        assert code == 0
        shapes = json.loads(out)["shapes"]
        assert [s["type"] for s in shapes].count("arrow") == 2
        assert [s["type"] for s in shapes].count("ellipse") == 1

    def test_invalid_spacing(self, dsl_file, capsys):
        code, out = run(["compile", str(dsl_file), "--node-spacing", "-5"], capsys)
        assert code == 1
        assert json.loads(out)["status"] == "error"


class TestDecompileCommand:
    def test_decompile_compile_output(self, dsl_file, tmp_path, capsys):
        _, out = run(["compile", str(dsl_file)], capsys)
        shapes_file = tmp_path / "shapes.json"
        shapes_file.write_text(out)

        code, out = run(["decompile", str(shapes_file), "--no-positions", "--raw"], capsys)
        assert code == 0
        lines = out.strip().splitlines()
        assert sum("->" in line for line in lines) == 2
        assert 'circle' in out

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "shapes.json"
        path.write_text("not json")
        code, out = run(["decompile", str(path)], capsys)
        assert code == 1
        assert json.loads(out)["error"].startswith("Invalid JSON")


class TestCheckCommand:
    def test_check_clean(self, dsl_file, capsys):
        code, out = run(["check", str(dsl_file)], capsys)
        assert code == 0
        assert json.loads(out)["summary"]["valid"] is True

    def test_check_with_errors(self, tmp_path, capsys):
        path = tmp_path / "bad.pinto"
        path.write_text("a -> (")
        code, out = run(["check", str(path)], capsys)
        assert code == 1
        assert json.loads(out)["summary"]["errors"] == 1
