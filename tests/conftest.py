from unittest.mock import MagicMock

import pytest

from regscript.core.config import Settings
from regscript.engines import ScriptEngine, Services, TemplateCatalog, build_context
from regscript.engines.context import ExecutionContext
from regscript.schemas import ExecutionOptions
from tests.utils.fake_node import FakeBitcoinNode


@pytest.fixture
def node() -> FakeBitcoinNode:
    return FakeBitcoinNode()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, WAIT_POLL_INTERVAL_MS=1, REGSCRIPT_TEMPLATES_DIR=None)  # type: ignore[call-arg]


@pytest.fixture
def services(node: FakeBitcoinNode) -> Services:
    return Services(rpc_client=node, poll_interval_ms=1)


@pytest.fixture
def engine(services: Services, test_settings: Settings) -> ScriptEngine:
    return ScriptEngine(
        services,
        settings=test_settings,
        catalog=TemplateCatalog(),
        sleep=MagicMock(),
    )


@pytest.fixture
def make_context(services: Services, test_settings: Settings):
    def _make(**option_kwargs) -> ExecutionContext:
        return build_context(
            ExecutionOptions(**option_kwargs),
            services,
            settings=test_settings,
            sleep=MagicMock(),
        )

    return _make
