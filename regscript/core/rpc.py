"""
Bitcoin Core JSON-RPC client.

Uses a single ``httpx.Client`` for the lifetime of the client so repeated
calls reuse the connection. Wallet-scoped calls go to ``/wallet/<name>``.

``bind(dry_run=True)`` returns a guarded view that only forwards read-only
methods; everything else is answered with a simulated placeholder so
previews never touch the ledger.
"""

import itertools
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RPC_TIMEOUT = 30.0

# Methods that never change node, wallet or ledger state.
READ_ONLY_METHODS = frozenset({
    "decodepsbt",
    "decoderawtransaction",
    "deriveaddresses",
    "estimatesmartfee",
    "getaddressinfo",
    "getbalance",
    "getbalances",
    "getblock",
    "getblockchaininfo",
    "getblockcount",
    "getblockhash",
    "getdescriptorinfo",
    "getmempoolentry",
    "getmempoolinfo",
    "getrawmempool",
    "getrawtransaction",
    "gettransaction",
    "getwalletinfo",
    "listdescriptors",
    "listtransactions",
    "listunspent",
    "listwallets",
    "testmempoolaccept",
})

RPC_WALLET_NOT_FOUND = -18
RPC_INVALID_ADDRESS_OR_KEY = -5
RPC_WALLET_ERROR = -4


class RpcError(Exception):
    """Error object returned by bitcoind (or a transport failure, code None)."""

    def __init__(self, message: str, *, code: int | None = None, method: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.method = method

    def __str__(self) -> str:
        base = super().__str__()
        if self.code is None:
            return base
        return f"{base} (code {self.code})"


class BitcoinRpcClient:
    """JSON-RPC 1.0 client for a regtest bitcoind."""

    dry_run = False

    def __init__(
        self,
        url: str,
        *,
        user: str,
        password: str,
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ) -> None:
        self._url = url.rstrip("/")
        self._auth = (user, password)
        self._timeout = timeout
        self._client: httpx.Client | None = None
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: Any) -> "BitcoinRpcClient":
        return cls(
            settings.rpc_url,
            user=settings.BITCOIN_RPC_USER,
            password=settings.BITCOIN_RPC_PASSWORD,
            timeout=settings.BITCOIN_RPC_TIMEOUT,
        )

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, auth=self._auth)
        return self._client

    def call(self, method: str, params: list[Any] | None = None, wallet: str | None = None) -> Any:
        """POST one JSON-RPC request and return its ``result``; raise RpcError on error."""
        url = f"{self._url}/wallet/{wallet}" if wallet else self._url
        payload = {
            "jsonrpc": "1.0",
            "id": f"regscript-{next(self._ids)}",
            "method": method,
            "params": params or [],
        }
        logger.debug("rpc %s wallet=%s params=%s", method, wallet, payload["params"])
        try:
            resp = self._get_client().post(url, json=payload)
        except httpx.HTTPError as e:
            raise RpcError(f"RPC transport error calling {method}: {e}", method=method) from e

        # bitcoind answers RPC errors with HTTP 500 and a JSON body
        try:
            body = resp.json()
        except ValueError as e:
            raise RpcError(
                f"RPC {method} failed with HTTP {resp.status_code}: {resp.text[:200]}",
                method=method,
            ) from e
        error = body.get("error") if isinstance(body, dict) else None
        if error:
            raise RpcError(
                str(error.get("message", error)),
                code=error.get("code"),
                method=method,
            )
        if resp.status_code >= 400:
            raise RpcError(f"RPC {method} failed with HTTP {resp.status_code}", method=method)
        return body.get("result")

    def bind(self, *, dry_run: bool) -> "BitcoinRpcClient":
        """Return the client itself, or a read-only guarded view for dry runs."""
        if not dry_run:
            return self
        return DryRunRpcClient(self)

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None

    # ---- wallet -------------------------------------------------------

    def list_wallets(self) -> list[str]:
        return self.call("listwallets")

    def create_wallet(
        self,
        name: str,
        *,
        disable_private_keys: bool = False,
        blank: bool = False,
        descriptors: bool = True,
    ) -> dict[str, Any]:
        # name, disable_private_keys, blank, passphrase, avoid_reuse, descriptors, load_on_startup
        return self.call(
            "createwallet",
            [name, disable_private_keys, blank, "", False, descriptors, True],
        )

    def load_wallet(self, name: str) -> dict[str, Any]:
        return self.call("loadwallet", [name])

    def get_wallet_info(self, wallet: str) -> dict[str, Any]:
        return self.call("getwalletinfo", [], wallet)

    def get_balance(self, wallet: str) -> float:
        return self.call("getbalance", [], wallet)

    def get_new_address(self, wallet: str, label: str = "", address_type: str = "bech32") -> str:
        return self.call("getnewaddress", [label, address_type], wallet)

    def list_unspent(self, wallet: str, min_conf: int = 0, max_conf: int = 9999999) -> list[dict[str, Any]]:
        return self.call("listunspent", [min_conf, max_conf], wallet)

    def list_descriptors(self, wallet: str, private: bool = False) -> dict[str, Any]:
        return self.call("listdescriptors", [private], wallet)

    def import_descriptors(self, wallet: str, descriptors: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return self.call("importdescriptors", [descriptors], wallet)

    def get_descriptor_info(self, descriptor: str) -> dict[str, Any]:
        return self.call("getdescriptorinfo", [descriptor])

    def derive_addresses(self, descriptor: str, range_: list[int] | None = None) -> list[str]:
        params: list[Any] = [descriptor]
        if range_ is not None:
            params.append(range_)
        return self.call("deriveaddresses", params)

    def send_to_address(self, wallet: str, address: str, amount: float) -> str:
        return self.call("sendtoaddress", [address, amount], wallet)

    # ---- transactions -------------------------------------------------

    def wallet_create_funded_psbt(
        self,
        wallet: str,
        outputs: list[dict[str, float]],
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        opts = {"includeWatching": True}
        opts.update(options or {})
        return self.call("walletcreatefundedpsbt", [[], outputs, 0, opts], wallet)

    def wallet_process_psbt(self, wallet: str, psbt: str) -> dict[str, Any]:
        return self.call("walletprocesspsbt", [psbt], wallet)

    def decode_psbt(self, psbt: str) -> dict[str, Any]:
        return self.call("decodepsbt", [psbt])

    def finalize_psbt(self, psbt: str) -> dict[str, Any]:
        return self.call("finalizepsbt", [psbt])

    def send_raw_transaction(self, hexstring: str) -> str:
        return self.call("sendrawtransaction", [hexstring])

    def bump_fee(self, wallet: str, txid: str, fee_rate: float | None = None) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if fee_rate is not None:
            options["fee_rate"] = fee_rate
        return self.call("bumpfee", [txid, options], wallet)

    def psbt_bump_fee(self, wallet: str, txid: str, fee_rate: float | None = None) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if fee_rate is not None:
            options["fee_rate"] = fee_rate
        return self.call("psbtbumpfee", [txid, options], wallet)

    def get_mempool_entry(self, txid: str) -> dict[str, Any]:
        return self.call("getmempoolentry", [txid])

    def get_transaction(self, wallet: str, txid: str) -> dict[str, Any]:
        return self.call("gettransaction", [txid], wallet)

    # ---- chain --------------------------------------------------------

    def get_blockchain_info(self) -> dict[str, Any]:
        return self.call("getblockchaininfo")

    def generate_to_address(self, blocks: int, address: str) -> list[str]:
        return self.call("generatetoaddress", [blocks, address])

    def estimate_smart_fee(self, blocks: int = 6) -> dict[str, Any]:
        return self.call("estimatesmartfee", [blocks])

    def get_block(self, blockhash: str, verbosity: int = 1) -> Any:
        return self.call("getblock", [blockhash, verbosity])


class DryRunRpcClient(BitcoinRpcClient):
    """Forwards read-only calls to the wrapped client; simulates everything else."""

    dry_run = True

    def __init__(self, inner: BitcoinRpcClient) -> None:
        self._inner = inner

    def call(self, method: str, params: list[Any] | None = None, wallet: str | None = None) -> Any:
        if method in READ_ONLY_METHODS:
            return self._inner.call(method, params, wallet)
        logger.info("dry-run: skipped rpc %s (wallet=%s)", method, wallet)
        return {"simulated": True, "method": method, "params": list(params or []), "wallet": wallet}

    def bind(self, *, dry_run: bool) -> BitcoinRpcClient:
        return self if dry_run else self._inner

    def close(self) -> None:
        self._inner.close()
