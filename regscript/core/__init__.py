"""
Core plumbing: settings, Bitcoin Core RPC client, polling.
"""

from regscript.core.poll import WaitTimeoutError, wait_until
from regscript.core.rpc import BitcoinRpcClient, DryRunRpcClient, RpcError

__all__ = [
    "BitcoinRpcClient",
    "DryRunRpcClient",
    "RpcError",
    "WaitTimeoutError",
    "wait_until",
]
