"""
Script engine: loader, action registry, step interpreter, sandboxed program
runner, reporter, and the ScriptEngine facade tying them together.
"""

from regscript.engines.actions import ACTION_REGISTRY, ActionSpec
from regscript.engines.context import ExecutionContext, Services, build_context
from regscript.engines.errors import (
    AbortedByUser,
    ActionExecutionError,
    ParamValidationError,
    ScriptError,
    ScriptFormatError,
    ScriptNotFoundError,
    ScriptValidationError,
    TemplateNotFoundError,
    UnknownActionError,
)
from regscript.engines.executor import ScriptEngine
from regscript.engines.interpreter import StepInterpreter
from regscript.engines.loader import load_script_file, parse_script, validate_script
from regscript.engines.reporter import ExecutionReporter
from regscript.engines.summary import generate_script_summary
from regscript.engines.templates import TemplateCatalog

__all__ = [
    "ACTION_REGISTRY",
    "AbortedByUser",
    "ActionExecutionError",
    "ActionSpec",
    "ExecutionContext",
    "ExecutionReporter",
    "ParamValidationError",
    "ScriptEngine",
    "ScriptError",
    "ScriptFormatError",
    "ScriptNotFoundError",
    "ScriptValidationError",
    "Services",
    "StepInterpreter",
    "TemplateCatalog",
    "TemplateNotFoundError",
    "UnknownActionError",
    "build_context",
    "generate_script_summary",
    "load_script_file",
    "parse_script",
    "validate_script",
]
