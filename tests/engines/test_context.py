"""Unit tests for engines.context.ExecutionContext."""

import pytest
from pydantic import ValidationError

from regscript.core.rpc import DryRunRpcClient
from regscript.engines.script import ProgramRunner
from regscript.engines.script.modules import make_config_module, make_log_module


class TestExecutionContext:
    def test_bindings(self, make_context) -> None:
        ctx = make_context(params={"amount": 1})
        assert set(ctx.bindings()) == {
            "wallet_service",
            "transaction_service",
            "rpc_client",
            "coordinator_service",
            "config",
            "wallets",
            "transactions",
            "blocks",
            "log",
            "params",
            "dry_run",
            "wait",
            "wait_until",
        }
        assert ctx.bindings()["params"] == {"amount": 1}

    def test_services_share_the_run_registries(self, make_context) -> None:
        ctx = make_context()
        assert ctx.wallet_service.state is ctx.state
        assert ctx.transaction_service.state is ctx.state
        assert ctx.coordinator_service.state is ctx.state
        assert ctx.coordinator_service.wallet_service is ctx.wallet_service

    def test_contexts_are_isolated(self, make_context) -> None:
        a, b = make_context(), make_context()
        a.blocks.append("h")
        assert b.blocks == []
        assert a.wallets is not b.wallets

    def test_dry_run_binding(self, make_context) -> None:
        ctx = make_context(dry_run=True)
        assert ctx.dry_run is True
        assert isinstance(ctx.rpc_client, DryRunRpcClient)
        assert ctx.wallet_service.dry_run is True

    def test_wait_sleeps_unless_dry_run(self, make_context) -> None:
        ctx = make_context()
        ctx.wait(1500)
        ctx._sleep.assert_called_once_with(1.5)

        dry = make_context(dry_run=True)
        dry.wait(1500)
        dry._sleep.assert_not_called()

    def test_template_variables(self, make_context) -> None:
        ctx = make_context(params={"amount": 2})
        names = ctx.template_variables()
        assert names["amount"] == 2
        assert names["dry_run"] is False
        assert names["wallets"] is ctx.wallets

    def test_verbose_gates_debug_lines(self, make_context) -> None:
        quiet = make_context()
        quiet.log.debug("hidden")
        quiet.log.info("shown")
        assert quiet.logs == ["shown"]

        loud = make_context(verbose=True)
        loud.log.debug("detail")
        assert loud.logs == ["DEBUG: detail"]


class TestScriptModules:
    def test_config_from_settings(self, test_settings) -> None:
        config = make_config_module(settings=test_settings)
        assert config.network == "regtest"
        assert config.rpc_port == test_settings.BITCOIN_RPC_PORT
        assert config.poll_interval_ms == 1
        assert config.is_regtest is True

    def test_config_has_no_credentials(self, test_settings) -> None:
        config = make_config_module(settings=test_settings)
        dumped = config.model_dump()
        assert test_settings.BITCOIN_RPC_PASSWORD not in dumped.values()
        assert not any("password" in k or "user" in k for k in dumped)

    def test_config_is_read_only(self) -> None:
        config = make_config_module()
        with pytest.raises(ValidationError):
            config.network = "mainnet"

    def test_config_visible_to_programs(self, make_context) -> None:
        ctx = make_context()
        out = ProgramRunner().run("result = (config.network, config.address_type)", ctx)
        assert out == ("regtest", "bech32")

    def test_log_formats_args(self) -> None:
        lines: list[str] = []
        log = make_log_module(captured=lines)
        log.info("sent %s BTC", 1.5)
        log.warn("low fee")
        assert lines == ["sent 1.5 BTC", "WARNING: low fee"]


class TestCheckRegistries:
    def test_clean_registries_pass(self, make_context) -> None:
        ctx = make_context()
        ctx.state.blocks.append("h1")
        ctx.check_registries()

    def test_reports_every_bad_entry(self, make_context) -> None:
        ctx = make_context()
        ctx.state.wallets["x"] = "oops"
        ctx.state.blocks.append(123)
        with pytest.raises(TypeError, match=r"wallets\['x'\] is str, blocks\[0\] is int"):
            ctx.check_registries()
