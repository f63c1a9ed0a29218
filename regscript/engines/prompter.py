"""
Interactive confirmation for ``interactive`` runs.

Declarative scripts ask once per step (proceed / skip / abort); imperative
scripts ask a single go/no-go question before the program starts.
"""

import json
from collections.abc import Callable
from typing import Protocol

from regscript.models import Script, Step
from regscript.schemas import Decision

_ANSWERS = {
    "": Decision.PROCEED,
    "y": Decision.PROCEED,
    "yes": Decision.PROCEED,
    "p": Decision.PROCEED,
    "proceed": Decision.PROCEED,
    "s": Decision.SKIP,
    "skip": Decision.SKIP,
    "a": Decision.ABORT,
    "abort": Decision.ABORT,
    "q": Decision.ABORT,
}


class Prompter(Protocol):
    def confirm_step(self, index: int, total: int, step: Step) -> Decision: ...

    def confirm_program(self, script: Script, summary: str) -> bool: ...


class ConsolePrompter:
    """Prompter reading answers from stdin."""

    def __init__(
        self,
        *,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        self._input = input_fn
        self._output = output_fn

    def confirm_step(self, index: int, total: int, step: Step) -> Decision:
        self._output(f"\nStep {index + 1}/{total}: {step.action}")
        if step.description:
            self._output(f"  {step.description}")
        self._output(json.dumps(step.params, indent=2, default=str))
        while True:
            try:
                answer = self._input("[P]roceed, [s]kip or [a]bort? ").strip().lower()
            except EOFError:
                return Decision.ABORT
            decision = _ANSWERS.get(answer)
            if decision is not None:
                return decision
            self._output(f"Unrecognized answer: {answer!r}")

    def confirm_program(self, script: Script, summary: str) -> bool:
        self._output(summary)
        try:
            answer = self._input("Do you want to execute this script? [y/N] ").strip().lower()
        except EOFError:
            return False
        return answer in ("y", "yes")
