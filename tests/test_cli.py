# tests/test_cli.py
"""
Tests for the command-line interface (python -m interdataflow).
"""

import io
import json

import pytest

from interdataflow.__main__ import build_parser, main
from tests.conftest import ID_PROG, UNRESOLVED_PROG


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


# ── Parser ───────────────────────────────────────────────────────

class TestArgumentParser:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage:" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "interdataflow" in capsys.readouterr().out

    def test_defaults(self):
        args = build_parser().parse_args(["analyze", "prog.ir"])
        assert args.format == "text"
        assert args.entry is None
        assert args.strategy is None
        assert args.show_temps is False

    def test_repeatable_options(self):
        args = build_parser().parse_args(
            ["analyze", "prog.ir", "-e", "main", "-e", "start", "-m", "id"]
        )
        assert args.entry == ["main", "start"]
        assert args.method == ["id"]


# ── analyze ──────────────────────────────────────────────────────

class TestAnalyzeCommand:
    def test_text_output(self, ir_file, capsys):
        assert main(["analyze", str(ir_file)]) == 0
        out = capsys.readouterr().out
        assert "=== inter-constprop ===" in out
        assert "{a=10, b=10}" in out

    def test_json_output(self, ir_file, capsys):
        assert main(["analyze", str(ir_file), "--format", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["converged"] is True
        assert data["methods"]["main"][3]["in"] == {"a": 10, "b": 10}

    def test_method_filter(self, ir_file, capsys):
        assert main(["analyze", str(ir_file), "-f", "json", "-m", "id"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert list(data["methods"]) == ["id"]

    def test_unknown_method_filter(self, ir_file, capsys):
        assert main(["analyze", str(ir_file), "-m", "nope"]) == 1
        assert "not a reachable method: nope" in capsys.readouterr().err

    def test_lifo_strategy(self, ir_file, capsys):
        assert main(["analyze", str(ir_file), "--strategy", "lifo", "-f", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["methods"]["id"][1]["in"] == {"x": 10}

    def test_entry_option(self, ir_file, capsys):
        assert main(["analyze", str(ir_file), "-e", "id", "-f", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert list(data["methods"]) == ["id"]
        assert data["methods"]["id"][0]["out"] == {"x": "NAC"}

    def test_show_temps(self, tmp_path, capsys):
        path = _write(tmp_path, "t.ir", "method main() { a = b + 1; return a; }")
        assert main(["analyze", path, "-f", "json", "--show-temps"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["methods"]["main"][1]["out"] == {"%intconst0": 1}

    def test_config_file(self, ir_file, tmp_path, capsys):
        config = _write(tmp_path, "c.json", json.dumps({"entry_methods": ["id"]}))
        assert main(["analyze", str(ir_file), "--config", config, "-f", "json"]) == 0
        assert list(json.loads(capsys.readouterr().out)["methods"]) == ["id"]

    def test_command_line_overrides_config(self, ir_file, tmp_path, capsys):
        config = _write(tmp_path, "c.json", json.dumps({"entry_methods": ["id"]}))
        assert main(["analyze", str(ir_file), "-c", config, "-e", "main", "-f", "json"]) == 0
        assert list(json.loads(capsys.readouterr().out)["methods"]) == ["main", "id"]

    def test_bad_config_file(self, ir_file, tmp_path, capsys):
        config = _write(tmp_path, "c.json", json.dumps({"bogus": True}))
        assert main(["analyze", str(ir_file), "-c", config]) == 1
        assert "unknown configuration keys" in capsys.readouterr().err

    def test_iteration_bound(self, ir_file, capsys):
        assert main(["analyze", str(ir_file), "--max-iterations", "1"]) == 1
        assert "did not reach a fixpoint" in capsys.readouterr().err

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(ID_PROG))
        assert main(["analyze", "-", "-f", "json"]) == 0
        assert "main" in json.loads(capsys.readouterr().out)["methods"]


# ── check ────────────────────────────────────────────────────────

class TestCheckCommand:
    def test_summary(self, ir_file, capsys):
        assert main(["check", str(ir_file)]) == 0
        err = capsys.readouterr().err
        assert "2 method(s), 2 reachable, 8 ICFG node(s), 8 edge(s)" in err

    def test_quiet(self, ir_file, capsys):
        assert main(["check", "-q", str(ir_file)]) == 0
        assert "method(s)" not in capsys.readouterr().err

    def test_unresolved_call_is_not_an_error(self, tmp_path):
        path = _write(tmp_path, "u.ir", UNRESOLVED_PROG)
        assert main(["check", "-q", path]) == 0


# ── dump-icfg ────────────────────────────────────────────────────

class TestDumpCommand:
    def test_stdout(self, ir_file, capsys):
        assert main(["dump-icfg", str(ir_file)]) == 0
        assert capsys.readouterr().out.startswith('digraph "prog.ir" {')

    def test_output_file(self, ir_file, tmp_path):
        target = tmp_path / "out.dot"
        assert main(["dump-icfg", str(ir_file), "-o", str(target)]) == 0
        assert "[color=blue]" in target.read_text(encoding="utf-8")


# ── Errors ───────────────────────────────────────────────────────

class TestErrors:
    def test_missing_file(self, tmp_path, capsys):
        assert main(["analyze", str(tmp_path / "absent.ir")]) == 1
        assert "error:" in capsys.readouterr().err

    def test_syntax_error(self, tmp_path, capsys):
        path = _write(tmp_path, "bad.ir", "method main() {\n  a = ;\n}\n")
        assert main(["check", path]) == 1
        assert "bad.ir:2:" in capsys.readouterr().err

    def test_unknown_entry(self, ir_file, capsys):
        assert main(["check", str(ir_file), "-e", "nope"]) == 1
        assert "entry method 'nope' is not defined" in capsys.readouterr().err
