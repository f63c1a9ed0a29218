"""
Wallet service: create wallets, derive addresses, mine, read balances.

A service instance is bound to one run (``bind``): it records created
wallets and mined blocks into that run's RunState and, under dry-run,
synthesizes previews instead of mutating the node.
"""

import logging
from collections.abc import Callable
from typing import Any

from regscript.core.poll import wait_until
from regscript.core.rpc import BitcoinRpcClient, RpcError
from regscript.models import RunState, WalletRef

logger = logging.getLogger(__name__)

SIMULATED_ADDRESS_PREFIX = "bcrt1q-simulated-"


class WalletService:
    def __init__(
        self,
        rpc: BitcoinRpcClient,
        *,
        state: RunState | None = None,
        dry_run: bool = False,
        address_type: str = "bech32",
        poll_interval_ms: int = 250,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.rpc = rpc
        self.state = state if state is not None else RunState()
        self.dry_run = dry_run
        self.address_type = address_type
        self.poll_interval_ms = poll_interval_ms
        self._sleep = sleep

    def bind(
        self,
        *,
        state: RunState,
        dry_run: bool,
        sleep: Callable[[float], None] | None = None,
    ) -> "WalletService":
        return WalletService(
            self.rpc.bind(dry_run=dry_run),
            state=state,
            dry_run=dry_run,
            address_type=self.address_type,
            poll_interval_ms=self.poll_interval_ms,
            sleep=sleep or self._sleep,
        )

    def _is_simulated(self, name: str) -> bool:
        ref = self.state.wallets.get(name)
        return ref is not None and ref.simulated

    def list_wallets(self) -> list[str]:
        return self.rpc.list_wallets()

    def create_wallet(
        self,
        name: str,
        *,
        disable_private_keys: bool = False,
        blank: bool = False,
        descriptors: bool = True,
        with_address: bool = True,
    ) -> WalletRef:
        """Create (or load, if it already exists) a wallet and register it."""
        if self.dry_run:
            ref = WalletRef(
                name=name,
                address=f"{SIMULATED_ADDRESS_PREFIX}{name}" if with_address else None,
                disable_private_keys=disable_private_keys,
                simulated=True,
            )
            self.state.wallets[name] = ref
            return ref

        if name in self.rpc.list_wallets():
            logger.info("wallet %s already loaded; reusing it", name)
        else:
            try:
                self.rpc.create_wallet(
                    name,
                    disable_private_keys=disable_private_keys,
                    blank=blank,
                    descriptors=descriptors,
                )
            except RpcError as e:
                # -4: database already exists on disk but is not loaded
                if e.code != -4:
                    raise
                logger.info("wallet %s exists on disk; loading it", name)
                self.rpc.load_wallet(name)

        address = None
        if with_address and not (disable_private_keys and blank):
            address = self.rpc.get_new_address(name, "", self.address_type)
        ref = WalletRef(name=name, address=address, disable_private_keys=disable_private_keys)
        self.state.wallets[name] = ref
        return ref

    def get_new_address(self, name: str, label: str = "") -> str:
        if self.dry_run:
            return f"{SIMULATED_ADDRESS_PREFIX}{name}"
        return self.rpc.get_new_address(name, label, self.address_type)

    def get_wallet_info(self, name: str) -> dict[str, Any]:
        if self._is_simulated(name):
            return {"walletname": name, "balance": 0.0, "simulated": True}
        return self.rpc.get_wallet_info(name)

    def get_balance(self, name: str) -> float:
        if self._is_simulated(name):
            return 0.0
        return float(self.rpc.get_balance(name))

    def send_to_address(self, name: str, address: str, amount: float) -> str | dict[str, Any]:
        if self.dry_run:
            return {"simulated": True, "from": name, "to": address, "amount": amount}
        return self.rpc.send_to_address(name, address, amount)

    def resolve_address(self, wallet_or_address: str) -> str:
        """Map a registered wallet name to its receive address; pass addresses through."""
        ref = self.state.wallets.get(wallet_or_address)
        if ref is None:
            return wallet_or_address
        if ref.address is None:
            ref.address = self.get_new_address(ref.name)
        return ref.address

    def mine_blocks(
        self,
        count: int,
        *,
        to_wallet: str | None = None,
        to_address: str | None = None,
    ) -> list[str] | dict[str, Any]:
        """Mine ``count`` blocks to a wallet (fresh address) or an explicit address."""
        if count <= 0:
            raise ValueError("count must be a positive integer")
        if not to_wallet and not to_address:
            raise ValueError("mine_blocks requires to_wallet or to_address")
        if self.dry_run:
            return {"simulated": True, "count": count, "to": to_wallet or to_address}
        address = to_address or self.get_new_address(to_wallet)  # type: ignore[arg-type]
        hashes = self.rpc.generate_to_address(count, address)
        self.state.blocks.extend(hashes)
        logger.info("mined %d block(s) to %s", len(hashes), to_wallet or address)
        return hashes

    def wait_for_balance(self, name: str, minimum: float, *, timeout_ms: int) -> float:
        """Poll until the wallet sees at least ``minimum`` BTC."""
        if self.dry_run:
            return minimum
        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        seen: list[float] = []

        def _reached() -> bool:
            seen.append(self.get_balance(name))
            return seen[-1] >= minimum

        wait_until(
            _reached,
            timeout_ms=timeout_ms,
            interval_ms=self.poll_interval_ms,
            description=f"wallet {name} balance >= {minimum}",
            **kwargs,
        )
        return seen[-1]
