"""
ProgramRunner: run an imperative script (or a CUSTOM snippet) in the sandbox.

Compiles with RestrictedPython, executes with only the context bindings, then
calls ``run()`` if the program defines one. The return value of ``run()``
(or the global ``result`` when there is no ``run``) is the program output.
"""

import logging
from typing import Any

from .sandbox import build_restricted_globals, compile_script

logger = logging.getLogger(__name__)


class ProgramRunner:
    """
    Run Python source in a RestrictedPython sandbox against an
    ExecutionContext's bindings.
    """

    def run(
        self,
        source: str,
        context: Any,
        *,
        filename: str = "<script>",
        extra_bindings: dict[str, Any] | None = None,
    ) -> Any:
        """
        Compile and exec ``source``. Returns ``run()``'s value, else the global
        ``result``, else None. Exceptions from the program propagate unchanged;
        the caller classifies them.
        """
        code = compile_script(source, filename)
        bindings = context.bindings()
        if extra_bindings:
            bindings.update(extra_bindings)
        g = build_restricted_globals(bindings, print_sink=context.log)

        logger.debug("Executing %s with bindings %s", filename, sorted(bindings))
        exec(code, g)
        run_fn = g.get("run")
        if callable(run_fn):
            return run_fn()
        return g.get("result")
