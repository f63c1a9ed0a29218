"""
Transaction service: PSBT create / sign / finalize / broadcast, RBF bumps.

Every transaction a run creates is tracked as a TxRecord in the run's
``transactions`` registry, keyed by a local id (``tx-1``, ``tx-2`` ... or a
caller-chosen id). Status only moves forward; any RPC failure marks the
record FAILED before the error propagates.
"""

import logging
from collections.abc import Callable
from typing import Any

from regscript.core.poll import wait_until
from regscript.core.rpc import RPC_INVALID_ADDRESS_OR_KEY, BitcoinRpcClient, RpcError
from regscript.models import RunState, TxRecord, TxStatus

logger = logging.getLogger(__name__)


class TransactionNotSignedError(ValueError):
    """Broadcast was requested for a transaction that is not fully signed."""

    pass


class TransactionService:
    def __init__(
        self,
        rpc: BitcoinRpcClient,
        *,
        state: RunState | None = None,
        dry_run: bool = False,
        poll_interval_ms: int = 250,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.rpc = rpc
        self.state = state if state is not None else RunState()
        self.dry_run = dry_run
        self.poll_interval_ms = poll_interval_ms
        self._sleep = sleep

    def bind(
        self,
        *,
        state: RunState,
        dry_run: bool,
        sleep: Callable[[float], None] | None = None,
    ) -> "TransactionService":
        return TransactionService(
            self.rpc.bind(dry_run=dry_run),
            state=state,
            dry_run=dry_run,
            poll_interval_ms=self.poll_interval_ms,
            sleep=sleep or self._sleep,
        )

    def get(self, tx_id: str) -> TxRecord:
        try:
            return self.state.transactions[tx_id]
        except KeyError:
            raise ValueError(f"Unknown transaction: {tx_id}") from None

    def create_transaction(
        self,
        from_wallet: str,
        outputs: list[dict[str, float]],
        *,
        tx_id: str | None = None,
        fee_rate: float | None = None,
        rbf: bool = False,
        include_unsafe: bool = False,
    ) -> TxRecord:
        """
        Fund a PSBT from ``from_wallet`` paying ``outputs`` ([{address: btc}, ...]).
        ``include_unsafe`` lets coin selection spend unconfirmed outputs received
        from other wallets (needed for CPFP children).
        """
        if tx_id is not None and tx_id in self.state.transactions:
            raise ValueError(f"Transaction id already in use: {tx_id}")
        record = TxRecord(
            id=tx_id or self.state.next_tx_id(),
            from_wallet=from_wallet,
            outputs=[dict(o) for o in outputs],
            fee_rate=fee_rate,
            rbf=rbf,
            simulated=self.dry_run,
        )
        if not self.dry_run:
            options: dict[str, Any] = {}
            if fee_rate is not None:
                options["fee_rate"] = fee_rate
            if rbf:
                options["replaceable"] = True
            if include_unsafe:
                options["include_unsafe"] = True
            result = self.rpc.wallet_create_funded_psbt(from_wallet, record.outputs, options)
            record.psbt = result["psbt"]
        self.state.transactions[record.id] = record
        logger.info("created transaction %s from %s", record.id, from_wallet)
        return record

    def _required_signatures(self, record: TxRecord) -> int:
        wallet = self.state.wallets.get(record.from_wallet)
        if wallet is None or not wallet.required_signers:
            return 1
        return wallet.required_signers

    def sign_transaction(self, tx_id: str, signer_wallet: str) -> TxRecord:
        """Add ``signer_wallet``'s signatures; finalize once the PSBT is complete."""
        record = self.get(tx_id)
        if record.status in (TxStatus.BROADCASTED, TxStatus.FAILED):
            raise ValueError(f"Transaction {tx_id} is {record.status.value}; cannot sign")
        if self.dry_run:
            if signer_wallet not in record.signed_by:
                record.signed_by.append(signer_wallet)
            required = self._required_signatures(record)
            record.complete = len(record.signed_by) >= required
            if record.complete:
                record.advance(TxStatus.SIGNED)
            logger.info("dry-run: %s signed %s (%d of %d)", signer_wallet, tx_id, len(record.signed_by), required)
            return record
        try:
            processed = self.rpc.wallet_process_psbt(signer_wallet, record.psbt or "")
            record.psbt = processed["psbt"]
            if signer_wallet not in record.signed_by:
                record.signed_by.append(signer_wallet)
            if processed.get("complete"):
                finalized = self.rpc.finalize_psbt(record.psbt)
                if finalized.get("complete"):
                    record.hex = finalized["hex"]
                    record.complete = True
                    record.advance(TxStatus.SIGNED)
        except RpcError as e:
            record.fail(str(e))
            raise
        logger.info(
            "signed transaction %s with %s (complete=%s)", tx_id, signer_wallet, record.complete
        )
        return record

    def broadcast_transaction(self, tx_id: str) -> TxRecord:
        record = self.get(tx_id)
        if record.status == TxStatus.BROADCASTED:
            raise ValueError(f"Transaction {tx_id} was already broadcast")
        if not record.complete:
            message = f"Transaction {tx_id} is not fully signed"
            record.fail(message)
            raise TransactionNotSignedError(message)
        if self.dry_run:
            logger.info("dry-run: would broadcast transaction %s", tx_id)
            return record
        try:
            txid = self.rpc.send_raw_transaction(record.hex or "")
        except RpcError as e:
            record.fail(str(e))
            raise
        record.broadcast_txid = txid
        record.advance(TxStatus.BROADCASTED)
        logger.info("broadcast transaction %s as %s", tx_id, txid)
        return record

    def replace_transaction(
        self,
        tx_id: str,
        *,
        new_fee_rate: float | None = None,
        new_tx_id: str | None = None,
    ) -> TxRecord:
        """Fee-bump a broadcast RBF transaction; the replacement gets its own record."""
        original = self.get(tx_id)
        if new_tx_id is not None and new_tx_id in self.state.transactions:
            raise ValueError(f"Transaction id already in use: {new_tx_id}")
        replacement = TxRecord(
            id=new_tx_id or self.state.next_tx_id(),
            from_wallet=original.from_wallet,
            outputs=list(original.outputs),
            fee_rate=new_fee_rate,
            rbf=True,
            simulated=self.dry_run,
            replaces=original.id,
        )
        if self.dry_run:
            if original.status == TxStatus.FAILED:
                raise ValueError(f"Transaction {tx_id} has failed; cannot replace it")
        else:
            if original.status != TxStatus.BROADCASTED or not original.broadcast_txid:
                raise ValueError(f"Transaction {tx_id} must be broadcast before it can be replaced")
            wallet = self.state.wallets.get(original.from_wallet)
            if wallet is not None and wallet.disable_private_keys:
                # watch-only (multisig) wallets get an unsigned PSBT to sign and broadcast
                result = self.rpc.psbt_bump_fee(original.from_wallet, original.broadcast_txid, new_fee_rate)
                replacement.psbt = result["psbt"]
            else:
                result = self.rpc.bump_fee(original.from_wallet, original.broadcast_txid, new_fee_rate)
                replacement.broadcast_txid = result["txid"]
                replacement.complete = True
                replacement.advance(TxStatus.BROADCASTED)
        original.replaced_by = replacement.id
        self.state.transactions[replacement.id] = replacement
        logger.info("replaced transaction %s with %s", tx_id, replacement.id)
        return replacement

    def decode(self, tx_id: str) -> dict[str, Any]:
        record = self.get(tx_id)
        if record.psbt is None:
            return {"simulated": True, "id": tx_id}
        return self.rpc.decode_psbt(record.psbt)

    def is_in_mempool(self, tx_id_or_txid: str) -> bool:
        record = self.state.transactions.get(tx_id_or_txid)
        txid = record.broadcast_txid if record is not None else tx_id_or_txid
        if not txid:
            return False
        try:
            self.rpc.get_mempool_entry(txid)
        except RpcError as e:
            if e.code == RPC_INVALID_ADDRESS_OR_KEY:
                return False
            raise
        return True

    def wait_for_mempool(self, tx_id: str, *, timeout_ms: int) -> bool:
        """Poll until the transaction is visible in the node's mempool."""
        if self.dry_run:
            return True
        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return wait_until(
            lambda: self.is_in_mempool(tx_id),
            timeout_ms=timeout_ms,
            interval_ms=self.poll_interval_ms,
            description=f"transaction {tx_id} in mempool",
            **kwargs,
        )
