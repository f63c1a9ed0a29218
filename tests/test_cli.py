"""Unit tests for the regscript command line interface."""

import json
from pathlib import Path

import pytest

from regscript.cli import (
    EXIT_FAILED,
    EXIT_INPUT_ERROR,
    EXIT_OK,
    CLIError,
    _parse_params,
    _slug,
    build_parser,
    cmd_list_templates,
    cmd_run,
    main,
)
from regscript.engines import ScriptEngine, TemplateCatalog
from tests.utils.fake_node import FakeBitcoinNode


class TestParseParams:
    def test_json_values(self) -> None:
        assert _parse_params(["amount=2.5", "rbf=true", "name=alice", 'outputs=[{"bob": 1}]']) == {
            "amount": 2.5,
            "rbf": True,
            "name": "alice",
            "outputs": [{"bob": 1}],
        }

    def test_value_may_contain_equals(self) -> None:
        assert _parse_params(["note=a=b"]) == {"note": "a=b"}

    def test_rejects_missing_separator(self) -> None:
        with pytest.raises(CLIError, match="KEY=VALUE"):
            _parse_params(["amount"])

    def test_none(self) -> None:
        assert _parse_params(None) == {}


class TestParser:
    def test_run_requires_a_source(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run"])

    def test_run_flags(self) -> None:
        args = build_parser().parse_args(
            ["run", "-t", "Two Wallet Send", "--dry-run", "-v", "-i", "-p", "amount=1", "-p", "x=2"]
        )
        assert args.template == "Two Wallet Send"
        assert args.dry_run and args.verbose and args.interactive
        assert args.param == ["amount=1", "x=2"]

    def test_slug(self) -> None:
        assert _slug("My RBF Scenario!") == "my_rbf_scenario"
        assert _slug("!!!") == "script"


class TestRunCommand:
    def test_template_json_report(
        self, engine: ScriptEngine, node: FakeBitcoinNode, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = build_parser().parse_args(["run", "--template", "Two Wallet Send", "--json"])
        assert cmd_run(args, engine=engine) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["success"] is True
        assert len(data["steps"]) == 7
        assert data["transactions"]["payment"]["status"] == "broadcasted"

    def test_dry_run_prints_summary(self, engine: ScriptEngine, capsys: pytest.CaptureFixture[str]) -> None:
        args = build_parser().parse_args(["run", "--template", "two wallet send", "--dry-run"])
        assert cmd_run(args, engine=engine) == EXIT_OK
        out = capsys.readouterr().out
        assert "Dry run - script would do the following:" in out
        assert "Contains 7 steps:" in out
        assert "SUCCESS (dry run)" in out

    def test_failed_report_exits_one(
        self, engine: ScriptEngine, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "fail.json"
        path.write_text(
            json.dumps(
                {
                    "name": "Fails",
                    "steps": [
                        {"action": "CREATE_WALLET", "params": {"name": "alice"}},
                        {"action": "ASSERT", "params": {"condition": "false", "message": "always fails"}},
                    ],
                }
            ),
            encoding="utf-8",
        )
        args = build_parser().parse_args(["run", "--file", str(path)])
        assert cmd_run(args, engine=engine) == EXIT_FAILED
        out = capsys.readouterr().out
        assert "FAILED" in out
        assert "always fails" in out

    def test_missing_file_exits_two(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["run", "--file", str(tmp_path / "missing.json")]) == EXIT_INPUT_ERROR
        assert "not found" in capsys.readouterr().err

    def test_unknown_template_exits_two(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["run", "--template", "Nope"]) == EXIT_INPUT_ERROR
        err = capsys.readouterr().err
        assert "Template not found: Nope" in err
        assert "Two Wallet Send" in err

    def test_bad_param_exits_two(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["run", "--template", "Two Wallet Send", "--param", "oops"]) == EXIT_INPUT_ERROR


class TestOtherCommands:
    def test_list_templates(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert cmd_list_templates(TemplateCatalog()) == EXIT_OK
        out = capsys.readouterr().out
        assert "Two Wallet Send (declarative, v1.0.0)" in out
        assert "Multisig CPFP Test (imperative, v1.0.0)" in out

    def test_validate_ok_and_invalid(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        good = tmp_path / "good.json"
        good.write_text(
            json.dumps({"name": "Good", "steps": [{"action": "GET_BALANCE", "params": {"wallet": "a"}}]}),
            encoding="utf-8",
        )
        bad = tmp_path / "bad.json"
        bad.write_text(
            json.dumps({"name": "Bad", "steps": [{"action": "TELEPORT"}, {"action": "WAIT", "params": {}}]}),
            encoding="utf-8",
        )
        assert main(["validate", str(good)]) == EXIT_OK
        assert main(["validate", str(bad)]) == EXIT_FAILED
        assert "2 problem(s)" in capsys.readouterr().out

    @pytest.mark.parametrize("kind", ["json", "py"])
    def test_create_writes_a_valid_skeleton(self, tmp_path: Path, kind: str) -> None:
        path = tmp_path / f"new.{kind}"
        assert main(["create", "New Scenario", "--type", kind, "-o", str(path)]) == EXIT_OK
        assert main(["validate", str(path)]) == EXIT_OK

    def test_create_refuses_to_overwrite(self, tmp_path: Path) -> None:
        path = tmp_path / "exists.json"
        path.write_text("{}", encoding="utf-8")
        assert main(["create", "X", "-o", str(path)]) == EXIT_INPUT_ERROR
        assert path.read_text(encoding="utf-8") == "{}"
