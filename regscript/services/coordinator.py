"""
Multisig coordinator: builds an m-of-n watch-only wallet from fresh signer wallets.

Each signer is a descriptor wallet; its external key origin and xpub are
read from ``listdescriptors`` and combined into ``sortedmulti`` descriptors
that are imported into a blank watcher wallet. Each signer also imports the
same multisig descriptor with its own private key so ``walletprocesspsbt``
can sign spends from the watcher.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from regscript.core.rpc import BitcoinRpcClient
from regscript.models import RunState, WalletRef
from regscript.services.wallet import WalletService

logger = logging.getLogger(__name__)

ADDRESS_TYPES = ("P2SH", "P2WSH", "P2SH-P2WSH")

_ADDRESS_TYPE_TO_OUTPUT = {
    "P2SH": "legacy",
    "P2WSH": "bech32",
    "P2SH-P2WSH": "p2sh-segwit",
}

# [fingerprint/origin/path]key/0/*
_KEY_ORIGIN_RE = re.compile(r"\[([0-9a-fA-F]{8})([^\]]*)\]([1-9A-HJ-NP-Za-km-z]+)")

DESCRIPTOR_RANGE = [0, 1000]


class SignerKey:
    __slots__ = ("wallet", "fingerprint", "origin", "xpub", "xprv")

    def __init__(self, wallet: str, fingerprint: str, origin: str, xpub: str, xprv: str | None) -> None:
        self.wallet = wallet
        self.fingerprint = fingerprint
        self.origin = origin
        self.xpub = xpub
        self.xprv = xprv

    def expression(self, branch: int, *, private: bool = False) -> str:
        key = self.xprv if private and self.xprv else self.xpub
        return f"[{self.fingerprint}{self.origin}]{key}/{branch}/*"


def parse_key_origin(descriptor: str) -> tuple[str, str, str]:
    """Return (fingerprint, origin path, extended key) from a single-key descriptor."""
    match = _KEY_ORIGIN_RE.search(descriptor)
    if not match:
        raise ValueError(f"Cannot parse key origin from descriptor: {descriptor}")
    return match.group(1), match.group(2), match.group(3)


def wrap_multisig(address_type: str, required: int, keys: list[str]) -> str:
    inner = f"sortedmulti({required},{','.join(keys)})"
    if address_type == "P2WSH":
        return f"wsh({inner})"
    if address_type == "P2SH":
        return f"sh({inner})"
    if address_type == "P2SH-P2WSH":
        return f"sh(wsh({inner}))"
    raise ValueError(f"addressType must be one of: {', '.join(ADDRESS_TYPES)}")


class CoordinatorService:
    def __init__(
        self,
        rpc: BitcoinRpcClient,
        wallet_service: WalletService,
        *,
        state: RunState | None = None,
        dry_run: bool = False,
    ) -> None:
        self.rpc = rpc
        self.wallet_service = wallet_service
        self.state = state if state is not None else wallet_service.state
        self.dry_run = dry_run

    def bind(
        self,
        *,
        state: RunState,
        dry_run: bool,
        sleep: Callable[[float], None] | None = None,
        wallet_service: WalletService | None = None,
    ) -> "CoordinatorService":
        ws = wallet_service or self.wallet_service.bind(state=state, dry_run=dry_run, sleep=sleep)
        return CoordinatorService(self.rpc.bind(dry_run=dry_run), ws, state=state, dry_run=dry_run)

    def _signer_key(self, wallet: str) -> SignerKey:
        public = self.rpc.list_descriptors(wallet, False)["descriptors"]
        external = [d for d in public if not d.get("internal") and d["desc"].startswith("wpkh(")]
        if not external:
            external = [d for d in public if not d.get("internal")]
        if not external:
            raise ValueError(f"Wallet {wallet} has no external descriptor")
        fingerprint, origin, xpub = parse_key_origin(external[0]["desc"])

        xprv = None
        for d in self.rpc.list_descriptors(wallet, True)["descriptors"]:
            fp, org, key = parse_key_origin(d["desc"])
            if fp == fingerprint and org == origin and not d.get("internal"):
                xprv = key
                break
        return SignerKey(wallet, fingerprint, origin, xpub, xprv)

    def _import(self, wallet: str, descriptor: str, *, internal: bool, active: bool) -> None:
        info = self.rpc.get_descriptor_info(descriptor)
        desc = descriptor.split("#")[0] + "#" + info["checksum"]
        results = self.rpc.import_descriptors(
            wallet,
            [
                {
                    "desc": desc,
                    "active": active,
                    "internal": internal,
                    "range": DESCRIPTOR_RANGE,
                    "timestamp": "now",
                }
            ],
        )
        failed = [r for r in results if not r.get("success")]
        if failed:
            raise ValueError(f"importdescriptors into {wallet} failed: {failed[0].get('error')}")

    def create_multisig_wallet(
        self,
        name: str,
        required_signers: int,
        total_signers: int,
        *,
        address_type: str = "P2WSH",
    ) -> WalletRef:
        """Create ``total_signers`` signer wallets and an m-of-n watcher named ``name``."""
        if address_type not in ADDRESS_TYPES:
            raise ValueError(f"addressType must be one of: {', '.join(ADDRESS_TYPES)}")
        if required_signers <= 0 or total_signers <= 0:
            raise ValueError("requiredSigners and totalSigners must be positive")
        if required_signers > total_signers:
            raise ValueError("requiredSigners cannot be greater than totalSigners")

        signer_names = [f"{name}_signer_{i}" for i in range(1, total_signers + 1)]
        if self.dry_run:
            for signer in signer_names:
                self.wallet_service.create_wallet(signer)
            ref = WalletRef(
                name=name,
                address=f"bcrt1q-simulated-{name}",
                disable_private_keys=True,
                simulated=True,
                signers=signer_names,
                required_signers=required_signers,
            )
            self.state.wallets[name] = ref
            return ref

        keys: list[SignerKey] = []
        for signer in signer_names:
            self.wallet_service.create_wallet(signer, with_address=False)
            keys.append(self._signer_key(signer))

        self.wallet_service.create_wallet(
            name, disable_private_keys=True, blank=True, with_address=False
        )
        for branch in (0, 1):
            desc = wrap_multisig(address_type, required_signers, [k.expression(branch) for k in keys])
            self._import(name, desc, internal=branch == 1, active=True)

        for key in keys:
            if key.xprv is None:
                logger.warning("signer %s exposed no private descriptor; it cannot sign", key.wallet)
                continue
            for branch in (0, 1):
                exprs = [
                    k.expression(branch, private=k is key) for k in keys
                ]
                desc = wrap_multisig(address_type, required_signers, exprs)
                self._import(key.wallet, desc, internal=branch == 1, active=False)

        address = self.rpc.get_new_address(name, "", _ADDRESS_TYPE_TO_OUTPUT[address_type])
        ref = WalletRef(
            name=name,
            address=address,
            disable_private_keys=True,
            signers=signer_names,
            required_signers=required_signers,
        )
        self.state.wallets[name] = ref
        logger.info(
            "created %d-of-%d %s multisig wallet %s", required_signers, total_signers, address_type, name
        )
        return ref

    def describe(self, name: str) -> dict[str, Any]:
        ref = self.state.wallets.get(name)
        if ref is None or not ref.signers:
            raise ValueError(f"{name} is not a multisig wallet created in this run")
        return {
            "name": ref.name,
            "quorum": {"requiredSigners": ref.required_signers, "totalSigners": len(ref.signers)},
            "signers": list(ref.signers),
            "address": ref.address,
        }
