"""
StepInterpreter: drive a declarative script through the action registry.

Per step: optional confirmation (interactive), param interpolation, handler,
outcome. Steps run strictly in order. The first failure halts the run and
an abort ends it without recording an outcome for the aborted step.
"""

import logging
from typing import Any

from regscript.models import Script
from regscript.schemas import Decision

from .actions import ACTION_REGISTRY, ActionSpec
from .errors import AbortedByUser, ActionExecutionError, UnknownActionError
from .params import render_params
from .reporter import ExecutionReporter

logger = logging.getLogger(__name__)


class StepInterpreter:
    def __init__(self, registry: dict[str, ActionSpec] | None = None) -> None:
        self.registry = registry if registry is not None else ACTION_REGISTRY

    def _confirm(self, index: int, total: int, script: Script, context: Any) -> Decision:
        prompter = context.prompter
        if prompter is None:
            raise RuntimeError("Interactive run has no prompter")
        return Decision(prompter.confirm_step(index, total, script.steps[index]))

    def run(self, script: Script, context: Any, reporter: ExecutionReporter) -> None:
        """
        Execute every step of ``script`` against ``context``. Raises
        ActionExecutionError (after recording the failed outcome) or
        AbortedByUser; returns normally when all steps complete.
        """
        for name, value in script.variables.items():
            context.variables.setdefault(name, value)

        total = len(script.steps)
        for index, step in enumerate(script.steps):
            spec = self.registry.get(step.action)
            if spec is None:
                raise UnknownActionError(
                    f"Unknown action {step.action}", step_index=index, action=step.action
                )

            if context.options.interactive:
                decision = self._confirm(index, total, script, context)
                if decision == Decision.SKIP:
                    context.log.info("Step %d (%s) skipped", index, step.action)
                    reporter.skipped(index, step.action)
                    continue
                if decision == Decision.ABORT:
                    raise AbortedByUser(
                        f"Aborted by user at step {index} ({step.action})",
                        step_index=index,
                        action=step.action,
                    )

            context.log.debug("Step %d/%d: %s", index + 1, total, step.description or step.action)
            try:
                params = render_params(step.params, context.template_variables())
                output = spec.handler(params, context)
            except Exception as e:
                error = ActionExecutionError(str(e), step_index=index, action=step.action, cause=e)
                logger.debug("step %d failed", index, exc_info=True)
                context.log.error(str(error))
                reporter.failed(index, step.action, error)
                raise error from e

            variable_name = params.get("variableName")
            if variable_name:
                context.variables[variable_name] = output
            context.log.debug("Completed step %d: %s", index, step.action)
            reporter.ok(index, step.action, output)
