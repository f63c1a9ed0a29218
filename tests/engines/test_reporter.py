"""Unit tests for engines.reporter.ExecutionReporter."""

from datetime import datetime, timedelta, timezone

import pytest

from regscript.engines.errors import ActionExecutionError, ScriptFormatError, ScriptValidationError
from regscript.engines.reporter import ExecutionReporter
from regscript.models import ScriptKind, WalletRef
from regscript.schemas import StepStatus


class TickClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(milliseconds=250)
        return current


class TestExecutionReporter:
    def test_success_report(self) -> None:
        reporter = ExecutionReporter("demo", kind=ScriptKind.DECLARATIVE, clock=TickClock())
        reporter.ok(0, "CREATE_WALLET", {"name": "alice"})
        reporter.skipped(1, "WAIT")
        report = reporter.finalize()
        assert report.success is True
        assert report.exit_code == 0
        assert report.duration_ms == 250
        assert [s.status for s in report.steps] == [StepStatus.OK, StepStatus.SKIPPED]

    def test_failed_step_fails_report(self) -> None:
        reporter = ExecutionReporter("demo")
        error = ActionExecutionError("boom", step_index=0, action="MINE_BLOCKS")
        reporter.failed(0, "MINE_BLOCKS", error)
        report = reporter.finalize(error=error)
        assert report.success is False
        assert report.exit_code == 1
        assert report.error.kind == "ActionExecutionError"
        assert report.error.step_index == 0
        assert report.steps[0].error.message == "Step 0 (MINE_BLOCKS) failed: boom"

    def test_nothing_follows_a_failure(self) -> None:
        reporter = ExecutionReporter("demo")
        reporter.failed(0, "WAIT", RuntimeError("x"))
        with pytest.raises(RuntimeError, match="failed step"):
            reporter.ok(1, "WAIT")

    def test_validation_error_details(self) -> None:
        error = ScriptValidationError([ScriptFormatError("a"), ScriptFormatError("b")])
        report = ExecutionReporter("demo").finalize(error=error)
        assert report.steps == []
        assert report.error.kind == "ScriptValidationError"
        assert report.error.details == ["a", "b"]

    def test_registries_are_copied(self, make_context) -> None:
        ctx = make_context()
        ctx.state.wallets["alice"] = WalletRef(name="alice", address="bcrt1qa")
        ctx.state.blocks.append("h1")
        ctx.log.info("hello")
        report = ExecutionReporter("demo").finalize(context=ctx)
        ctx.state.wallets["alice"].address = "changed"
        ctx.state.blocks.append("h2")
        assert report.wallets["alice"].address == "bcrt1qa"
        assert report.blocks == ["h1"]
        assert report.logs == ["hello"]

    def test_invalid_registry_entries_are_dropped(self, make_context) -> None:
        ctx = make_context()
        ctx.state.wallets["alice"] = WalletRef(name="alice")
        ctx.state.wallets["x"] = "oops"
        ctx.state.transactions["t"] = {"id": "t"}
        ctx.state.blocks.extend(["h1", 123])
        report = ExecutionReporter("demo").finalize(context=ctx, error=ValueError("boom"))
        assert list(report.wallets) == ["alice"]
        assert report.transactions == {}
        assert report.blocks == ["h1"]
