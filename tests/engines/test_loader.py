"""Unit tests for engines.loader (parsing and validation of scripts)."""

import json
from pathlib import Path

import pytest

from regscript.engines.errors import (
    ParamValidationError,
    ScriptFormatError,
    ScriptNotFoundError,
    ScriptValidationError,
    UnknownActionError,
)
from regscript.engines.loader import (
    detect_kind,
    load_script_file,
    parse_docstring_tags,
    parse_script,
    validate_script,
)
from regscript.models import Script, ScriptKind, Step


def _doc(steps: list, **extra) -> str:
    return json.dumps({"name": "Test", "steps": steps, **extra})


class TestDetectKind:
    def test_by_suffix(self) -> None:
        assert detect_kind("x = 1", "a.json") == ScriptKind.DECLARATIVE
        assert detect_kind("{}", "a.py") == ScriptKind.IMPERATIVE

    def test_by_content(self) -> None:
        assert detect_kind('  {"name": "x"}') == ScriptKind.DECLARATIVE
        assert detect_kind("def run():\n    pass\n") == ScriptKind.IMPERATIVE


class TestParseDeclarative:
    def test_valid_script(self) -> None:
        script = parse_script(
            _doc(
                [
                    {"action": "CREATE_WALLET", "params": {"name": "alice"}, "description": "make alice"},
                    {"action": "MINE_BLOCKS", "params": {"count": 101, "toWallet": "alice"}},
                ],
                version="2.0.0",
                description="demo",
            ),
            filename="demo.json",
        )
        assert script.kind == ScriptKind.DECLARATIVE
        assert script.name == "Test"
        assert script.version == "2.0.0"
        assert [s.action for s in script.steps] == ["CREATE_WALLET", "MINE_BLOCKS"]
        assert script.steps[0].description == "make alice"

    def test_aliases_and_case(self) -> None:
        content = json.dumps({"name": "Alias", "actions": [{"type": "create_wallet", "params": {"name": "a"}}]})
        script = parse_script(content, filename="a.json")
        assert script.steps[0].action == "CREATE_WALLET"

    def test_invalid_json(self) -> None:
        with pytest.raises(ScriptValidationError) as exc_info:
            parse_script("{not json", filename="bad.json")
        assert isinstance(exc_info.value.errors[0], ScriptFormatError)
        assert "Invalid JSON" in exc_info.value.messages[0]

    def test_missing_name_and_steps(self) -> None:
        with pytest.raises(ScriptValidationError) as exc_info:
            parse_script(json.dumps({"steps": []}), filename="bad.json")
        kinds = {type(e) for e in exc_info.value.errors}
        assert kinds == {ScriptFormatError}
        assert len(exc_info.value.errors) == 2

    def test_malformed_steps(self) -> None:
        content = _doc(["oops", {"action": "", "params": []}])
        with pytest.raises(ScriptValidationError) as exc_info:
            parse_script(content, filename="bad.json")
        assert [e.step_index for e in exc_info.value.errors] == [0, 1, 1]

    def test_collects_every_step_problem(self) -> None:
        content = _doc(
            [
                {"action": "MINE_BLOCKS", "params": {"count": -1, "toWallet": "alice"}},
                {"action": "TELEPORT", "params": {}},
                {"action": "SIGN_TRANSACTION", "params": {"txId": "tx-1"}},
            ]
        )
        with pytest.raises(ScriptValidationError) as exc_info:
            parse_script(content, filename="bad.json")
        errors = exc_info.value.errors
        assert len(errors) == 3
        assert isinstance(errors[0], ParamValidationError)
        assert isinstance(errors[1], UnknownActionError)
        assert isinstance(errors[2], ParamValidationError)
        assert "signerWallet" in str(errors[2])
        assert [e.step_index for e in errors] == [0, 1, 2]

    def test_undefined_reference(self) -> None:
        content = _doc([{"action": "WAIT", "params": {"milliseconds": "{{ delay }}"}}])
        with pytest.raises(ScriptValidationError, match="1 error") as exc_info:
            parse_script(content, filename="s.json")
        assert "undefined variable 'delay'" in exc_info.value.messages[0]

    def test_reference_to_script_variable(self) -> None:
        content = _doc([{"action": "WAIT", "params": {"milliseconds": "{{ delay }}"}}], variables={"delay": 10})
        assert parse_script(content, filename="s.json").variables == {"delay": 10}

    def test_reference_to_known_variable(self) -> None:
        content = _doc([{"action": "WAIT", "params": {"milliseconds": "{{ delay }}"}}])
        script = parse_script(content, filename="s.json", known_variables=["delay"])
        assert len(script.steps) == 1

    def test_variable_name_only_visible_to_later_steps(self) -> None:
        content = _doc(
            [
                {"action": "ASSERT", "params": {"condition": "balance > 1", "message": "poor"}},
                {"action": "GET_BALANCE", "params": {"wallet": "alice", "variableName": "balance"}},
                {"action": "ASSERT", "params": {"condition": "balance > 1", "message": "poor"}},
            ]
        )
        with pytest.raises(ScriptValidationError) as exc_info:
            parse_script(content, filename="s.json")
        assert [e.step_index for e in exc_info.value.errors] == [0]

    def test_builtin_names_are_defined(self) -> None:
        content = _doc(
            [{"action": "ASSERT", "params": {"condition": "blocks | length >= 0 and not dry_run", "message": "m"}}]
        )
        parse_script(content, filename="s.json")

    def test_custom_code_syntax_error(self) -> None:
        content = _doc([{"action": "CUSTOM", "params": {"code": "def f(:"}}])
        with pytest.raises(ScriptValidationError, match="1 error"):
            parse_script(content, filename="s.json")


class TestParseImperative:
    def test_docstring_tags(self) -> None:
        source = '"""\n@name Demo Program\n@description Does things\n@version 1.2.3\n"""\n\ndef run():\n    return 1\n'
        script = parse_script(source, filename="demo.py", path="/tmp/demo.py")
        assert script.kind == ScriptKind.IMPERATIVE
        assert script.name == "Demo Program"
        assert script.description == "Does things"
        assert script.version == "1.2.3"
        assert script.source == source
        assert script.path == "/tmp/demo.py"

    def test_defaults_from_filename(self) -> None:
        script = parse_script("result = 1\n", filename="quick_check.py")
        assert script.name == "quick_check"
        assert script.version == "1.0.0"

    def test_plain_docstring_description(self) -> None:
        tags = parse_docstring_tags('"""Send coins around.\n\nMore text."""\n')
        assert tags == {"description": "Send coins around."}

    def test_syntax_error(self) -> None:
        with pytest.raises(ScriptValidationError) as exc_info:
            parse_script("def run(:\n", filename="broken.py")
        assert isinstance(exc_info.value.errors[0], ScriptFormatError)


class TestValidateScript:
    def test_empty_declarative_script(self) -> None:
        script = Script(name="empty", kind=ScriptKind.DECLARATIVE)
        with pytest.raises(ScriptValidationError):
            validate_script(script)

    def test_valid_model(self) -> None:
        script = Script(
            name="ok",
            kind=ScriptKind.DECLARATIVE,
            steps=(Step(action="GET_BALANCE", params={"wallet": "alice"}),),
        )
        validate_script(script)

    def test_known_variables(self) -> None:
        script = Script(
            name="p",
            kind=ScriptKind.DECLARATIVE,
            steps=(Step(action="GET_BALANCE", params={"wallet": "{{ who }}"}),),
        )
        with pytest.raises(ScriptValidationError):
            validate_script(script)
        validate_script(script, known_variables={"who": "alice"})


class TestLoadScriptFile:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ScriptNotFoundError):
            load_script_file(tmp_path / "nope.json")

    def test_loads_json(self, tmp_path: Path) -> None:
        path = tmp_path / "s.json"
        path.write_text(_doc([{"action": "GET_BALANCE", "params": {"wallet": "alice"}}]), encoding="utf-8")
        script = load_script_file(path)
        assert script.path == str(path)
        assert script.kind == ScriptKind.DECLARATIVE
