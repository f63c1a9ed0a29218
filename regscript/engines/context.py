"""
ExecutionContext: per-run bindings for declarative handlers and imperative scripts.

A context owns fresh wallets / transactions / blocks registries, service
views bound to those registries and to the run's dry-run flag, a log sink
gated by ``verbose``, and the run's variables. Building one performs no I/O
and contexts are never shared between runs.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from regscript.core.poll import wait_until
from regscript.core.rpc import BitcoinRpcClient
from regscript.models import RunState, TxRecord, WalletRef
from regscript.schemas import ExecutionOptions
from regscript.services import CoordinatorService, TransactionService, WalletService

from .script.modules import make_config_module, make_log_module

_log = logging.getLogger(__name__)


class Services:
    """Handles to the external collaborators, shared by every run of an engine."""

    __slots__ = ("rpc_client", "wallet_service", "transaction_service", "coordinator_service")

    def __init__(
        self,
        *,
        rpc_client: BitcoinRpcClient,
        wallet_service: WalletService | None = None,
        transaction_service: TransactionService | None = None,
        coordinator_service: CoordinatorService | None = None,
        address_type: str = "bech32",
        poll_interval_ms: int = 250,
    ) -> None:
        self.rpc_client = rpc_client
        self.wallet_service = wallet_service or WalletService(
            rpc_client, address_type=address_type, poll_interval_ms=poll_interval_ms
        )
        self.transaction_service = transaction_service or TransactionService(
            rpc_client, poll_interval_ms=poll_interval_ms
        )
        self.coordinator_service = coordinator_service or CoordinatorService(
            rpc_client, self.wallet_service
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "Services":
        return cls(
            rpc_client=BitcoinRpcClient.from_settings(settings),
            address_type=settings.DEFAULT_ADDRESS_TYPE,
            poll_interval_ms=settings.WAIT_POLL_INTERVAL_MS,
        )


class ExecutionContext:
    """
    Everything a running script may touch. ``bindings()`` is the complete
    namespace handed to imperative programs.
    """

    def __init__(
        self,
        *,
        options: ExecutionOptions,
        services: Services,
        settings: Any = None,
        logger: logging.Logger | None = None,
        prompter: Any = None,
        sleep: Callable[[float], None] | None = None,
        poll_interval_ms: int = 250,
    ) -> None:
        self.options = options
        self.state = RunState()
        self.prompter = prompter
        self.poll_interval_ms = poll_interval_ms
        self._sleep = sleep or time.sleep

        dry_run = options.dry_run
        self.rpc_client = services.rpc_client.bind(dry_run=dry_run)
        self.wallet_service = services.wallet_service.bind(
            state=self.state, dry_run=dry_run, sleep=sleep
        )
        self.transaction_service = services.transaction_service.bind(
            state=self.state, dry_run=dry_run, sleep=sleep
        )
        self.coordinator_service = services.coordinator_service.bind(
            state=self.state, dry_run=dry_run, sleep=sleep, wallet_service=self.wallet_service
        )

        self.logs: list[str] = []
        self.log = make_log_module(
            logger_instance=logger or _log,
            verbose=options.verbose,
            captured=self.logs,
        )
        self.config = make_config_module(settings=settings)
        self.variables: dict[str, Any] = dict(options.params)

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    @property
    def wallets(self) -> dict[str, WalletRef]:
        return self.state.wallets

    @property
    def transactions(self) -> dict[str, TxRecord]:
        return self.state.transactions

    @property
    def blocks(self) -> list[str]:
        return self.state.blocks

    def wait(self, milliseconds: int) -> None:
        """Fixed delay. Skipped under dry-run."""
        if self.dry_run:
            self.log.debug("dry-run: skipping wait of %sms", milliseconds)
            return
        self._sleep(milliseconds / 1000.0)

    def wait_until(
        self,
        condition: Callable[[], Any],
        timeout_ms: int = 30000,
        interval_ms: int | None = None,
        description: str = "condition",
    ) -> Any:
        return wait_until(
            condition,
            timeout_ms=timeout_ms,
            interval_ms=interval_ms or self.poll_interval_ms,
            description=description,
            sleep=self._sleep,
        )

    def check_registries(self) -> None:
        """
        Raise TypeError if script code put anything other than WalletRef,
        TxRecord or block-hash strings into the run's registries.
        """
        problems = [
            f"wallets[{k!r}] is {type(v).__name__}"
            for k, v in self.state.wallets.items()
            if not isinstance(k, str) or not isinstance(v, WalletRef)
        ]
        problems += [
            f"transactions[{k!r}] is {type(v).__name__}"
            for k, v in self.state.transactions.items()
            if not isinstance(k, str) or not isinstance(v, TxRecord)
        ]
        problems += [
            f"blocks[{i}] is {type(h).__name__}" for i, h in enumerate(self.state.blocks) if not isinstance(h, str)
        ]
        if problems:
            raise TypeError("Invalid registry entries: " + ", ".join(problems))

    def template_variables(self) -> dict[str, Any]:
        """Names visible to ``{{ }}`` interpolation and ASSERT conditions."""
        names: dict[str, Any] = {
            "wallets": self.state.wallets,
            "transactions": self.state.transactions,
            "blocks": self.state.blocks,
            "dry_run": self.dry_run,
        }
        names.update(self.variables)
        return names

    def bindings(self) -> dict[str, Any]:
        """The exact namespace an imperative script runs with."""
        return {
            "wallet_service": self.wallet_service,
            "transaction_service": self.transaction_service,
            "rpc_client": self.rpc_client,
            "coordinator_service": self.coordinator_service,
            "config": self.config,
            "wallets": self.state.wallets,
            "transactions": self.state.transactions,
            "blocks": self.state.blocks,
            "log": self.log,
            "params": self.variables,
            "dry_run": self.dry_run,
            "wait": self.wait,
            "wait_until": self.wait_until,
        }


def build_context(
    options: ExecutionOptions,
    services: Services,
    *,
    settings: Any = None,
    logger: logging.Logger | None = None,
    prompter: Any = None,
    sleep: Callable[[float], None] | None = None,
) -> ExecutionContext:
    """Fresh context for one run; no I/O."""
    poll_interval_ms = getattr(settings, "WAIT_POLL_INTERVAL_MS", 250) if settings is not None else 250
    return ExecutionContext(
        options=options,
        services=services,
        settings=settings,
        logger=logger,
        prompter=prompter,
        sleep=sleep,
        poll_interval_ms=poll_interval_ms,
    )
