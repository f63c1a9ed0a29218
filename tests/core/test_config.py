"""Unit tests for core.config.Settings."""

import pytest

from regscript.core.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in ("BITCOIN_RPC_HOST", "BITCOIN_RPC_PORT", "BITCOIN_RPC_PROTOCOL"):
            monkeypatch.delenv(key, raising=False)
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.rpc_url == "http://127.0.0.1:18443"
        assert s.BITCOIN_NETWORK == "regtest"
        assert s.WAIT_POLL_INTERVAL_MS == 250

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BITCOIN_RPC_HOST", "bitcoind")
        monkeypatch.setenv("BITCOIN_RPC_PORT", "28443")
        monkeypatch.setenv("BITCOIN_RPC_PROTOCOL", "https")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.rpc_url == "https://bitcoind:28443"

    def test_empty_env_value_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BITCOIN_RPC_USER", "")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.BITCOIN_RPC_USER == "user"
