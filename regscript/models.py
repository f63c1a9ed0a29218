"""
Domain models: scripts, steps, and the records a run creates.

Script and Step are immutable once loaded. WalletRef and TxRecord live in the
per-run registries of an ExecutionContext and are never persisted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ScriptKind(str, Enum):
    """Script format: declarative step list (JSON) or imperative program (Python)."""

    DECLARATIVE = "declarative"
    IMPERATIVE = "imperative"


class TxStatus(str, Enum):
    """Lifecycle of a TxRecord. FAILED is terminal."""

    CREATED = "created"
    SIGNED = "signed"
    BROADCASTED = "broadcasted"
    FAILED = "failed"


_TX_STATUS_ORDER = {
    TxStatus.CREATED: 0,
    TxStatus.SIGNED: 1,
    TxStatus.BROADCASTED: 2,
}


# ---------------------------------------------------------------------------
# Script model
# ---------------------------------------------------------------------------


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    params: dict[str, Any] = Field(default_factory=dict)
    description: str | None = None


class Script(BaseModel):
    """A loaded script. ``steps`` is used for DECLARATIVE, ``source`` for IMPERATIVE."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    version: str = "1.0.0"
    kind: ScriptKind
    steps: tuple[Step, ...] = ()
    source: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)
    path: str | None = None

    @property
    def is_declarative(self) -> bool:
        return self.kind == ScriptKind.DECLARATIVE


# ---------------------------------------------------------------------------
# Registry records
# ---------------------------------------------------------------------------


class WalletRef(BaseModel):
    name: str
    address: str | None = None
    disable_private_keys: bool = False
    simulated: bool = False
    signers: list[str] = Field(default_factory=list)
    required_signers: int | None = None


class TxRecord(BaseModel):
    id: str
    from_wallet: str
    outputs: list[dict[str, float]]
    status: TxStatus = TxStatus.CREATED
    psbt: str | None = None
    hex: str | None = None
    broadcast_txid: str | None = None
    fee_rate: float | None = None
    rbf: bool = False
    complete: bool = False
    signed_by: list[str] = Field(default_factory=list)
    simulated: bool = False
    replaces: str | None = None
    replaced_by: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)

    def advance(self, status: TxStatus) -> None:
        """
        Move to ``status``. Forward moves only; FAILED may follow any
        non-terminal state and nothing follows FAILED.
        """
        if self.status == TxStatus.FAILED:
            raise ValueError(f"Transaction {self.id} has failed; cannot move to {status.value}")
        if status == TxStatus.FAILED:
            self.status = status
            return
        if _TX_STATUS_ORDER[status] < _TX_STATUS_ORDER[self.status]:
            raise ValueError(
                f"Transaction {self.id} cannot move from {self.status.value} back to {status.value}"
            )
        self.status = status

    def fail(self, message: str) -> None:
        if self.status != TxStatus.FAILED:
            self.advance(TxStatus.FAILED)
        self.error = message


class RunState:
    """The three per-run registries. Populated only by successful operations."""

    __slots__ = ("wallets", "transactions", "blocks", "_tx_seq")

    def __init__(self) -> None:
        self.wallets: dict[str, WalletRef] = {}
        self.transactions: dict[str, TxRecord] = {}
        self.blocks: list[str] = []
        self._tx_seq = 0

    def next_tx_id(self) -> str:
        self._tx_seq += 1
        tx_id = f"tx-{self._tx_seq}"
        while tx_id in self.transactions:
            self._tx_seq += 1
            tx_id = f"tx-{self._tx_seq}"
        return tx_id
