"""
`config` binding for scripts: a read-only view of the run's node settings.

Only the fields a scenario needs to make decisions are copied out of
Settings; RPC credentials never reach a script.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class ScriptConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    network: str = "regtest"
    rpc_host: str = "127.0.0.1"
    rpc_port: int = 18443
    address_type: str = "bech32"
    poll_interval_ms: int = 250
    environment: str = "local"

    @property
    def is_regtest(self) -> bool:
        return self.network == "regtest"


def make_config_module(*, settings: Any = None) -> ScriptConfig:
    """Build the `config` object from a Settings instance (defaults when None)."""
    if settings is None:
        return ScriptConfig()
    return ScriptConfig(
        network=settings.BITCOIN_NETWORK,
        rpc_host=settings.BITCOIN_RPC_HOST,
        rpc_port=settings.BITCOIN_RPC_PORT,
        address_type=settings.DEFAULT_ADDRESS_TYPE,
        poll_interval_ms=settings.WAIT_POLL_INTERVAL_MS,
        environment=settings.ENVIRONMENT,
    )
