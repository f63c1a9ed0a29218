"""
Script engine error taxonomy.

Validation-time errors (ScriptFormatError, UnknownActionError,
ParamValidationError) are collected into one ScriptValidationError before
anything runs. Execution-time errors (ActionExecutionError, AbortedByUser)
stop the run at the current step.
"""

from typing import Any


class ScriptError(Exception):
    """Base class for every error the engine reports."""

    def __init__(self, message: str, *, step_index: int | None = None, action: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.step_index = step_index
        self.action = action

    @property
    def kind(self) -> str:
        return type(self).__name__


class ScriptFormatError(ScriptError):
    """Malformed script: bad declarative schema or unparsable program."""

    pass


class UnknownActionError(ScriptError):
    """A declarative step names an action that is not registered."""

    pass


class ParamValidationError(ScriptError):
    """A step's params miss a required field, have the wrong shape, or reference an unknown variable."""

    pass


class ScriptValidationError(ScriptError):
    """All validation problems found in one script."""

    def __init__(self, errors: list[ScriptError]) -> None:
        self.errors = list(errors)
        summary = f"Script validation failed with {len(self.errors)} error(s)"
        super().__init__(summary)

    @property
    def messages(self) -> list[str]:
        return [str(e) for e in self.errors]


class ActionExecutionError(ScriptError):
    """A handler (or imperative program) raised while running."""

    def __init__(
        self,
        message: str,
        *,
        step_index: int | None = None,
        action: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, step_index=step_index, action=action)
        self.cause = cause

    @property
    def cause_kind(self) -> str | None:
        return type(self.cause).__name__ if self.cause is not None else None

    def __str__(self) -> str:
        if self.step_index is None:
            return self.message
        return f"Step {self.step_index} ({self.action}) failed: {self.message}"


class AbortedByUser(ScriptError):
    """Interactive mode abort. A user decision, not a defect."""

    pass


class ScriptNotFoundError(ScriptError):
    """Script file does not exist."""

    pass


class TemplateNotFoundError(ScriptError):
    """No built-in or user template has the requested name."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = list(available or [])
        super().__init__(f"Template not found: {name}")


def describe(error: BaseException) -> dict[str, Any]:
    """Plain-dict description of any error, for ErrorInfo."""
    if isinstance(error, ScriptValidationError):
        return {"kind": error.kind, "message": str(error), "details": error.messages}
    if isinstance(error, ScriptError):
        return {
            "kind": error.kind,
            "message": str(error),
            "step_index": error.step_index,
            "action": error.action,
            "details": [],
        }
    return {"kind": type(error).__name__, "message": str(error), "details": []}
