import json
from pathlib import Path

import pytest

from ucl.cli import main

FACTORIAL = [
    {
        "actor": "coder",
        "op": "DefineFunction",
        "target": "fact",
        "params": {
            "args": ["n"],
            "body": [
                {
                    "actor": "coder",
                    "op": "If",
                    "target": "base",
                    "condition": {"op": "<=", "left": {"var": "n"}, "right": 1},
                    "then": [{"actor": "coder", "op": "Return", "target": "one", "params": {"value": 1}}],
                    "else": [
                        {
                            "actor": "coder",
                            "op": "Return",
                            "target": "rec",
                            "params": {
                                "value": {
                                    "op": "*",
                                    "left": {"var": "n"},
                                    "right": {"call": "fact", "args": {"n": {"op": "-", "left": {"var": "n"}, "right": 1}}},
                                }
                            },
                        }
                    ],
                }
            ],
        },
    },
    {"actor": "coder", "op": "Call", "target": "fact", "params": {"n": 5, "out": "result"}},
    {"actor": "coder", "op": "Return", "target": "result", "params": {"value": {"var": "result"}}},
]


def write_program(tmp_path: Path, actions) -> Path:
    path = tmp_path / "program.json"
    path.write_text(json.dumps({"actions": actions}), encoding="utf-8")
    return path


def test_cli_validate_reports_ok(tmp_path, capsys):
    main(["validate", str(write_program(tmp_path, FACTORIAL))])
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is True
    assert payload["actors"] == ["coder"]


def test_cli_validate_fails_on_structural_error(tmp_path, capsys):
    path = write_program(tmp_path, [{"actor": "p", "op": "While", "target": "w"}])
    with pytest.raises(SystemExit) as excinfo:
        main(["validate", str(path)])
    assert excinfo.value.code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is False
    assert payload["diagnostics"][0]["location"] == "actions[0]"


def test_cli_validate_rejects_malformed_function_definition(tmp_path, capsys):
    path = write_program(tmp_path, [{"actor": "p", "op": "DefineFunction", "target": "f", "params": {"args": "num"}}])
    with pytest.raises(SystemExit) as excinfo:
        main(["validate", str(path)])
    assert excinfo.value.code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["error"]["kind"] == "StructuralError"


def test_cli_compile_prints_ruby(tmp_path, capsys):
    main(["compile", str(write_program(tmp_path, FACTORIAL))])
    out = capsys.readouterr().out
    assert out.startswith("# Generated from UCL")
    assert "def fact(n)" in out
    assert "result = fact(5)" in out


def test_cli_compile_writes_file(tmp_path, capsys):
    target = tmp_path / "out.rb"
    main(["compile", str(write_program(tmp_path, FACTORIAL)), "--out", str(target)])
    assert json.loads(capsys.readouterr().out)["status"] == "ok"
    assert "def fact(n)" in target.read_text(encoding="utf-8")


def test_cli_run_on_brain(tmp_path, capsys):
    main(["run", str(write_program(tmp_path, FACTORIAL)), "--substrate", "brain"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["result"]["status"] == "completed"
    assert payload["result"]["value"] == 120
    assert payload["snapshot"]["kind"] == "brain"


def test_cli_run_abort_exits_with_two(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("UCL_MAX_CALL_DEPTH", "3")
    with pytest.raises(SystemExit) as excinfo:
        main(["run", str(write_program(tmp_path, FACTORIAL))])
    assert excinfo.value.code == 2
    payload = json.loads(capsys.readouterr().out)
    assert payload["result"]["failure"]["kind"] == "RecursionLimitExceeded"


def test_cli_coordinate_with_assignments(tmp_path, capsys):
    actions = [
        {"actor": "a", "op": "Send", "target": "m", "params": {"value": 7, "channel": "c", "destination": "b"}},
        {"actor": "b", "op": "Receive", "target": "v", "params": {"channel": "c", "source": "a"}},
        {"actor": "b", "op": "Bind", "target": "copy", "params": {"value": {"var": "v"}}},
    ]
    main(["coordinate", str(write_program(tmp_path, actions)), "--assign", "b=robot"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is True
    assert payload["actors"]["b"]["kind"] == "robot"
    assert payload["actors"]["b"]["snapshot"]["variables"] == {"v": 7, "copy": 7}
    assert [e["event"] for e in payload["events"]] == ["send", "receive"]


def test_cli_rejects_bad_assignment(tmp_path):
    with pytest.raises(SystemExit):
        main(["coordinate", str(write_program(tmp_path, FACTORIAL)), "--assign", "nonsense"])


def test_cli_serve_dry_run(capsys):
    main(["serve", "--dry-run", "--port", "9001"])
    payload = json.loads(capsys.readouterr().out)
    assert payload == {"status": "ready", "host": "127.0.0.1", "port": 9001}
