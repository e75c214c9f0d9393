"""
Configuration Tests
Defaults, HARNESS_* environment overrides, validation

Run: python -m pytest harness/tests/test_config.py -v
"""

import pytest

import infrastructure.config as config_module
from infrastructure.config import ONE_DAY, HarnessConfig, LedgerBackend


@pytest.fixture
def clean_env(monkeypatch):
    for name in [
        "HARNESS_BACKEND",
        "HARNESS_RPC_URL",
        "HARNESS_REWARD_DELAY_SECONDS",
        "HARNESS_BASKET_SPEND",
        "HARNESS_LIQ_PATH_SECONDS",
        "HARNESS_BASE_AMOUNT",
        "HARNESS_TARGET_TOKEN_INDEX",
        "HARNESS_LOOP_CYCLES",
        "HARNESS_SECONDS_PER_CYCLE",
        "HARNESS_ROUNDING_TOLERANCE",
        "HARNESS_LOG_LEVEL",
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:

    def test_defaults(self, clean_env):
        cfg = HarnessConfig.from_env()

        assert cfg.ledger.backend == LedgerBackend.SIMULATOR
        assert cfg.core.reward_delay_seconds == 28 * ONE_DAY
        assert cfg.bootstrap.base_amount_quote == 10_000
        assert cfg.bootstrap.target_token_index == 1
        assert cfg.loop.cycles == 3
        assert cfg.loop.seconds_per_cycle == 60


class TestEnvironment:
    """HARNESS_* overrides"""

    def test_overrides(self, clean_env):
        clean_env.setenv("HARNESS_BACKEND", "RPC")
        clean_env.setenv("HARNESS_RPC_URL", "http://node:8545")
        clean_env.setenv("HARNESS_BASE_AMOUNT", "25_000")
        clean_env.setenv("HARNESS_LOOP_CYCLES", "5")
        clean_env.setenv("HARNESS_LOG_LEVEL", "debug")

        cfg = HarnessConfig.from_env()

        assert cfg.ledger.backend == LedgerBackend.RPC
        assert cfg.ledger.rpc_url == "http://node:8545"
        assert cfg.bootstrap.base_amount_quote == 25_000
        assert cfg.loop.cycles == 5
        assert cfg.monitoring.log_level == "DEBUG"

    def test_unknown_backend(self, clean_env):
        clean_env.setenv("HARNESS_BACKEND", "ganache")

        with pytest.raises(ValueError):
            HarnessConfig.from_env()

    def test_non_integer(self, clean_env):
        clean_env.setenv("HARNESS_SECONDS_PER_CYCLE", "a minute")

        with pytest.raises(ValueError) as exc_info:
            HarnessConfig.from_env()
        assert "HARNESS_SECONDS_PER_CYCLE" in str(exc_info.value)

    def test_reload(self, clean_env):
        original = config_module.config
        clean_env.setattr(config_module, "config", original)
        clean_env.setenv("HARNESS_ROUNDING_TOLERANCE", "7")

        reloaded = config_module.reload_config()

        assert reloaded.verifier.rounding_tolerance == 7
        assert config_module.get_config() is reloaded


class TestSerialization:

    def test_to_dict(self):
        data = HarnessConfig().to_dict()

        assert data["ledger"]["backend"] == "simulator"
        assert data["verifier"]["rounding_tolerance"] == 1_000_000
        assert set(data) == {"ledger", "core", "bootstrap", "loop", "verifier", "monitoring"}
