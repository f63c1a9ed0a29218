"""
Script loading and validation.

Declarative scripts are JSON documents::

    {"name": "...", "description": "...", "version": "1.0.0",
     "variables": {...},
     "steps": [{"action": "CREATE_WALLET", "params": {"name": "alice"}}, ...]}

(``actions`` / ``type`` are accepted in place of ``steps`` / ``action``.)

Imperative scripts are Python programs; metadata comes from ``@name``,
``@description`` and ``@version`` tags in the module docstring.

Validation collects every problem it finds and raises one
ScriptValidationError; nothing runs when a script is invalid.
"""

import ast
import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import TemplateSyntaxError

from regscript.models import Script, ScriptKind, Step

from .actions import ACTION_REGISTRY, ActionSpec
from .errors import (
    ParamValidationError,
    ScriptError,
    ScriptFormatError,
    ScriptNotFoundError,
    ScriptValidationError,
    UnknownActionError,
)
from .params import BUILTIN_NAMES, expression_references, find_references
from .script import compile_script

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"^\s*@(name|description|version)\s*:?\s+(.+?)\s*$", re.MULTILINE)

DECLARATIVE_SUFFIXES = (".json",)
IMPERATIVE_SUFFIXES = (".py",)


def detect_kind(content: str, filename: str | None = None) -> ScriptKind:
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix in DECLARATIVE_SUFFIXES:
            return ScriptKind.DECLARATIVE
        if suffix in IMPERATIVE_SUFFIXES:
            return ScriptKind.IMPERATIVE
    if content.lstrip().startswith("{"):
        return ScriptKind.DECLARATIVE
    return ScriptKind.IMPERATIVE


# ---------------------------------------------------------------------------
# Imperative
# ---------------------------------------------------------------------------


def parse_docstring_tags(source: str) -> dict[str, str]:
    """Read @name / @description / @version from the module docstring (if any)."""
    try:
        docstring = ast.get_docstring(ast.parse(source)) or ""
    except SyntaxError:
        return {}
    tags = {m.group(1): m.group(2) for m in _TAG_RE.finditer(docstring)}
    if "description" not in tags:
        plain = [ln.strip() for ln in docstring.splitlines() if ln.strip() and not ln.strip().startswith("@")]
        if plain:
            tags["description"] = plain[0]
    return tags


def _parse_imperative(source: str, filename: str | None, path: str | None) -> Script:
    try:
        compile_script(source, filename or "<script>")
    except SyntaxError as e:
        raise ScriptValidationError([ScriptFormatError(f"Script does not compile: {e}")]) from e
    tags = parse_docstring_tags(source)
    default_name = Path(filename).stem if filename else "Untitled script"
    return Script(
        name=tags.get("name", default_name),
        description=tags.get("description", ""),
        version=tags.get("version", "1.0.0"),
        kind=ScriptKind.IMPERATIVE,
        source=source,
        path=path,
    )


# ---------------------------------------------------------------------------
# Declarative
# ---------------------------------------------------------------------------


def _parse_steps(raw_steps: list[Any], errors: list[ScriptError]) -> list[tuple[int, Step]]:
    """Turn raw step objects into Steps; malformed entries become ScriptFormatErrors."""
    steps: list[tuple[int, Step]] = []
    for index, raw in enumerate(raw_steps):
        if not isinstance(raw, dict):
            errors.append(ScriptFormatError(f"Step {index}: must be an object", step_index=index))
            continue
        action = raw.get("action", raw.get("type"))
        params = raw.get("params", {})
        problems = []
        if not isinstance(action, str) or not action.strip():
            problems.append("action must be a non-empty string")
        if not isinstance(params, dict):
            problems.append("params must be an object")
        description = raw.get("description")
        if description is not None and not isinstance(description, str):
            problems.append("description must be a string")
        if problems:
            for problem in problems:
                errors.append(
                    ScriptFormatError(
                        f"Step {index}: {problem}",
                        step_index=index,
                        action=action if isinstance(action, str) else None,
                    )
                )
            continue
        steps.append((index, Step(action=action.strip().upper(), params=params, description=description)))
    return steps


def _parse_declarative(
    content: str, path: str | None, errors: list[ScriptError]
) -> tuple[Script | None, list[tuple[int, Step]], dict[str, Any]]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        errors.append(ScriptFormatError(f"Invalid JSON: {e}"))
        return None, [], {}
    if not isinstance(data, dict):
        errors.append(ScriptFormatError("Script must be a JSON object"))
        return None, [], {}

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(ScriptFormatError("Script must have a non-empty name"))
    raw_steps = data.get("steps", data.get("actions"))
    if not isinstance(raw_steps, list) or not raw_steps:
        errors.append(ScriptFormatError("Script must have a non-empty steps list"))
        raw_steps = []
    variables = data.get("variables") or {}
    if not isinstance(variables, dict):
        errors.append(ScriptFormatError("variables must be an object"))
        variables = {}
    description = data.get("description") or ""
    if not isinstance(description, str):
        errors.append(ScriptFormatError("description must be a string"))
        description = ""

    indexed = _parse_steps(raw_steps, errors)
    if errors:
        return None, indexed, variables
    script = Script(
        name=name.strip(),
        description=description,
        version=str(data.get("version") or "1.0.0"),
        kind=ScriptKind.DECLARATIVE,
        steps=tuple(step for _, step in indexed),
        variables=variables,
        path=path,
    )
    return script, indexed, variables


def _step_errors(index: int, step: Step, spec: ActionSpec) -> list[ScriptError]:
    errors: list[ScriptError] = []
    missing = sorted(spec.required_params - step.params.keys())
    for key in missing:
        errors.append(
            ParamValidationError(
                f"Step {index} ({step.action}): missing required param '{key}'",
                step_index=index,
                action=step.action,
            )
        )
    for problem in spec.validate(step.params):
        errors.append(
            ParamValidationError(f"Step {index} ({step.action}): {problem}", step_index=index, action=step.action)
        )
    variable_name = step.params.get("variableName")
    if variable_name is not None and not isinstance(variable_name, str):
        errors.append(
            ParamValidationError(
                f"Step {index} ({step.action}): variableName must be a string",
                step_index=index,
                action=step.action,
            )
        )
    return errors


def _reference_errors(index: int, step: Step, defined: set[str]) -> list[ScriptError]:
    params = {k: v for k, v in step.params.items() if k != "variableName"}
    try:
        if step.action == "ASSERT" and isinstance(params.get("condition"), str):
            condition = params.pop("condition")
            names = expression_references(condition) | find_references(params)
        else:
            names = find_references(params)
    except TemplateSyntaxError as e:
        return [
            ParamValidationError(
                f"Step {index} ({step.action}): invalid template: {e}", step_index=index, action=step.action
            )
        ]
    return [
        ParamValidationError(
            f"Step {index} ({step.action}): reference to undefined variable '{name}'",
            step_index=index,
            action=step.action,
        )
        for name in sorted(names - defined)
    ]


def _validate_steps(
    indexed: Iterable[tuple[int, Step]],
    variables: Iterable[str],
    registry: dict[str, ActionSpec],
) -> list[ScriptError]:
    errors: list[ScriptError] = []
    defined = set(BUILTIN_NAMES) | set(variables)
    for index, step in indexed:
        spec = registry.get(step.action)
        if spec is None:
            errors.append(
                UnknownActionError(
                    f"Step {index}: unknown action {step.action}", step_index=index, action=step.action
                )
            )
        else:
            errors.extend(_step_errors(index, step, spec))
        errors.extend(_reference_errors(index, step, defined))
        variable_name = step.params.get("variableName")
        if isinstance(variable_name, str):
            defined.add(variable_name)
    return errors


def validate_script(
    script: Script,
    *,
    known_variables: Iterable[str] = (),
    registry: dict[str, ActionSpec] | None = None,
) -> None:
    """
    Check a script before it runs. Declarative: every step against the
    action registry plus variable references. Imperative: compiles.
    Raises ScriptValidationError listing every problem.
    """
    if not script.is_declarative:
        try:
            compile_script(script.source or "", script.path or "<script>")
        except SyntaxError as e:
            raise ScriptValidationError([ScriptFormatError(f"Script does not compile: {e}")]) from e
        return
    if not script.steps:
        raise ScriptValidationError([ScriptFormatError("Script must have a non-empty steps list")])
    errors = _validate_steps(
        enumerate(script.steps),
        [*script.variables, *known_variables],
        registry if registry is not None else ACTION_REGISTRY,
    )
    if errors:
        raise ScriptValidationError(errors)


def parse_script(
    content: str,
    *,
    filename: str | None = None,
    path: str | None = None,
    known_variables: Iterable[str] = (),
) -> Script:
    """
    Parse and validate script source. Raises ScriptValidationError carrying
    every format, action and param problem found.
    """
    kind = detect_kind(content, filename)
    if kind == ScriptKind.IMPERATIVE:
        return _parse_imperative(content, filename, path)

    errors: list[ScriptError] = []
    script, indexed, variables = _parse_declarative(content, path, errors)
    errors.extend(_validate_steps(indexed, [*variables, *known_variables], ACTION_REGISTRY))
    if errors or script is None:
        raise ScriptValidationError(errors)
    return script


def load_script_file(path: str | Path, *, known_variables: Iterable[str] = ()) -> Script:
    """Read and parse a script file. A missing file is ScriptNotFoundError."""
    p = Path(path)
    if not p.is_file():
        raise ScriptNotFoundError(f"Script file not found: {p}")
    content = p.read_text(encoding="utf-8")
    logger.debug("loaded script file %s (%d bytes)", p, len(content))
    return parse_script(content, filename=p.name, path=str(p), known_variables=known_variables)
