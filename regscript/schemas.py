"""
Execution options and report schemas returned to callers (CLI, template runner).
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from regscript.models import ScriptKind, TxRecord, WalletRef


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


class Decision(str, Enum):
    """Answer to an interactive per-step confirmation."""

    PROCEED = "proceed"
    SKIP = "skip"
    ABORT = "abort"


class ExecutionOptions(BaseModel):
    """Orthogonal run flags; any combination is legal."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    verbose: bool = False
    interactive: bool = False
    params: dict[str, Any] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    kind: str
    message: str
    step_index: int | None = None
    action: str | None = None
    details: list[str] = Field(default_factory=list)


class StepOutcome(BaseModel):
    index: int
    action: str
    status: StepStatus
    output: Any = None
    error: ErrorInfo | None = None


class ExecutionReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    script_name: str
    kind: ScriptKind | None = None
    success: bool
    dry_run: bool = False
    steps: list[StepOutcome] = Field(default_factory=list)
    error: ErrorInfo | None = None
    started_at: datetime
    finished_at: datetime
    logs: list[str] = Field(default_factory=list)
    wallets: dict[str, WalletRef] = Field(default_factory=dict)
    transactions: dict[str, TxRecord] = Field(default_factory=dict)
    blocks: list[str] = Field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
