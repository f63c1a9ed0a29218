"""
ExecutionReporter: collects step outcomes and finalizes the ExecutionReport.

The reporter is the only channel results reach callers through. It does no
formatting; presentation belongs to the CLI.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from regscript.models import ScriptKind, TxRecord, WalletRef
from regscript.schemas import ErrorInfo, ExecutionReport, StepOutcome, StepStatus

from .errors import describe


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _records(registry: dict[Any, Any], record_type: type) -> dict[str, Any]:
    # Script code can write anything into a registry; only real records are reported
    return {
        k: v.model_copy(deep=True)
        for k, v in registry.items()
        if isinstance(k, str) and isinstance(v, record_type)
    }


class ExecutionReporter:
    def __init__(
        self,
        script_name: str,
        *,
        kind: ScriptKind | None = None,
        dry_run: bool = False,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.script_name = script_name
        self.kind = kind
        self.dry_run = dry_run
        self._clock = clock
        self.started_at = clock()
        self._steps: list[StepOutcome] = []

    @property
    def steps(self) -> list[StepOutcome]:
        return list(self._steps)

    def record(self, outcome: StepOutcome) -> None:
        if self._steps and self._steps[-1].status == StepStatus.FAILED:
            raise RuntimeError("No outcome may follow a failed step")
        self._steps.append(outcome)

    def ok(self, index: int, action: str, output: Any = None) -> None:
        self.record(StepOutcome(index=index, action=action, status=StepStatus.OK, output=output))

    def skipped(self, index: int, action: str) -> None:
        self.record(StepOutcome(index=index, action=action, status=StepStatus.SKIPPED))

    def failed(self, index: int, action: str, error: BaseException) -> None:
        self.record(
            StepOutcome(
                index=index,
                action=action,
                status=StepStatus.FAILED,
                error=ErrorInfo(**describe(error)),
            )
        )

    def finalize(self, *, context: Any = None, error: BaseException | None = None) -> ExecutionReport:
        """
        Freeze the run into an ExecutionReport. Registries are copied from
        ``context`` (even on failure); ``error`` marks the run failed.
        """
        failed = any(s.status == StepStatus.FAILED for s in self._steps)
        report: dict[str, Any] = {
            "script_name": self.script_name,
            "kind": self.kind,
            "success": error is None and not failed,
            "dry_run": self.dry_run,
            "steps": list(self._steps),
            "error": ErrorInfo(**describe(error)) if error is not None else None,
            "started_at": self.started_at,
            "finished_at": self._clock(),
        }
        if context is not None:
            report["logs"] = [str(line) for line in context.logs]
            report["wallets"] = _records(context.wallets, WalletRef)
            report["transactions"] = _records(context.transactions, TxRecord)
            report["blocks"] = [h for h in context.blocks if isinstance(h, str)]
        return ExecutionReport(**report)
