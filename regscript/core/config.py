"""
Application settings (pydantic-settings).

Values come from the environment or a local ``.env`` file. Field names are
upper-case so they match the environment variable names one to one.
"""

from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "regscript"
    ENVIRONMENT: Literal["local", "ci"] = "local"
    LOG_LEVEL: str = "INFO"

    # Bitcoin Core regtest node
    BITCOIN_RPC_PROTOCOL: Literal["http", "https"] = "http"
    BITCOIN_RPC_HOST: str = "127.0.0.1"
    BITCOIN_RPC_PORT: int = 18443
    BITCOIN_RPC_USER: str = "user"
    BITCOIN_RPC_PASSWORD: str = "pass"
    BITCOIN_RPC_TIMEOUT: float = 30.0
    BITCOIN_NETWORK: str = "regtest"

    # Script engine
    REGSCRIPT_TEMPLATES_DIR: Path | None = None
    WAIT_POLL_INTERVAL_MS: int = 250
    DEFAULT_ADDRESS_TYPE: str = "bech32"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def rpc_url(self) -> str:
        return f"{self.BITCOIN_RPC_PROTOCOL}://{self.BITCOIN_RPC_HOST}:{self.BITCOIN_RPC_PORT}"


settings = Settings()  # type: ignore
