"""
ScriptEngine: the single entry point that runs a script and returns an
ExecutionReport.

Dispatches once on ScriptKind: DECLARATIVE goes through the StepInterpreter,
IMPERATIVE through the sandboxed ProgramRunner. Both share the same
ExecutionContext and ExecutionReporter.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from regscript.core.config import settings as default_settings
from regscript.models import Script, ScriptKind
from regscript.schemas import ExecutionOptions, ExecutionReport

from .context import ExecutionContext, Services, build_context
from .errors import AbortedByUser, ActionExecutionError, ScriptError, ScriptValidationError
from .interpreter import StepInterpreter
from .loader import load_script_file, validate_script
from .prompter import ConsolePrompter, Prompter
from .reporter import ExecutionReporter
from .script import ProgramRunner
from .summary import generate_script_summary
from .templates import TemplateCatalog

_log = logging.getLogger(__name__)

# Action name of the single outcome an imperative run produces
PROGRAM_ACTION = "PROGRAM"


class ScriptEngine:
    """
    execute(script, options, prompter=None) -> ExecutionReport

    Never raises for script problems: validation failures, handler errors
    and aborts all come back as a failed report. Only input errors
    (missing file, unknown template) raise.
    """

    def __init__(
        self,
        services: Services | None = None,
        *,
        settings: Any = None,
        catalog: TemplateCatalog | None = None,
        interpreter: StepInterpreter | None = None,
        runner: ProgramRunner | None = None,
        sleep: Callable[[float], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings if settings is not None else default_settings
        self.services = services if services is not None else Services.from_settings(self.settings)
        self.catalog = catalog if catalog is not None else TemplateCatalog.from_settings(self.settings)
        self.interpreter = interpreter or StepInterpreter()
        self.runner = runner or ProgramRunner()
        self.sleep = sleep
        self.logger = logger

    def close(self) -> None:
        self.services.rpc_client.close()

    def _run_program(self, script: Script, context: ExecutionContext, reporter: ExecutionReporter) -> None:
        if context.options.interactive:
            if not context.prompter.confirm_program(script, generate_script_summary(script)):
                raise AbortedByUser("Script execution aborted by user", step_index=0, action=PROGRAM_ACTION)
        try:
            output = self.runner.run(script.source or "", context, filename=script.path or f"<{script.name}>")
            context.check_registries()
        except Exception as e:
            error = ActionExecutionError(
                str(e) or type(e).__name__, step_index=0, action=PROGRAM_ACTION, cause=e
            )
            _log.error("Script %s failed: %s", script.name, e, exc_info=True)
            context.log.error(str(error))
            reporter.failed(0, PROGRAM_ACTION, error)
            raise error from e
        reporter.ok(0, PROGRAM_ACTION, output)

    def execute(
        self,
        script: Script,
        options: ExecutionOptions | None = None,
        *,
        prompter: Prompter | None = None,
    ) -> ExecutionReport:
        opts = options or ExecutionOptions()
        try:
            validate_script(script, known_variables=opts.params)
        except ScriptValidationError as e:
            _log.warning("Script %s is invalid: %s", script.name, "; ".join(e.messages))
            return ExecutionReporter(script.name, kind=script.kind, dry_run=opts.dry_run).finalize(error=e)
        return self._run(script, opts, prompter)

    def _run(self, script: Script, opts: ExecutionOptions, prompter: Prompter | None) -> ExecutionReport:
        """Run an already validated script."""
        reporter = ExecutionReporter(script.name, kind=script.kind, dry_run=opts.dry_run)
        if opts.interactive and prompter is None:
            prompter = ConsolePrompter()
        context = build_context(
            opts,
            self.services,
            settings=self.settings,
            logger=self.logger,
            prompter=prompter,
            sleep=self.sleep,
        )
        _log.info(
            "Running %s script %s (dry_run=%s, interactive=%s)",
            script.kind.value,
            script.name,
            opts.dry_run,
            opts.interactive,
        )
        try:
            if script.kind == ScriptKind.DECLARATIVE:
                self.interpreter.run(script, context, reporter)
            else:
                self._run_program(script, context, reporter)
        except ScriptError as e:
            _log.warning("Script %s stopped: %s", script.name, e)
            return reporter.finalize(context=context, error=e)
        return reporter.finalize(context=context)

    def run_file(
        self,
        path: str | Path,
        options: ExecutionOptions | None = None,
        *,
        prompter: Prompter | None = None,
    ) -> ExecutionReport:
        """Load and run a script file. Missing files raise ScriptNotFoundError."""
        opts = options or ExecutionOptions()
        try:
            script = load_script_file(path, known_variables=opts.params)
        except ScriptValidationError as e:
            _log.warning("Script file %s is invalid: %s", path, "; ".join(e.messages))
            return ExecutionReporter(Path(path).name, dry_run=opts.dry_run).finalize(error=e)
        return self._run(script, opts, prompter)

    def run_template(
        self,
        name: str,
        options: ExecutionOptions | None = None,
        *,
        prompter: Prompter | None = None,
    ) -> ExecutionReport:
        """Run a built-in or user template. Unknown names raise TemplateNotFoundError."""
        return self.execute(self.catalog.get(name), options, prompter=prompter)
