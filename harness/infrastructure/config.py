"""
Configuration Management for the Strategy Harvest Harness
Environment-based configuration for ledger backend, bootstrap sizing and checks

Features:
- Environment-based config (.env supported)
- Ledger backend selection (in-process simulator or RPC node)
- Bootstrap / harvest loop / verifier knobs
- Dynamic reload
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

logging.basicConfig(
    level=os.environ.get("HARNESS_LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("Config")

ONE_DAY = 60 * 60 * 24


class LedgerBackend(str, Enum):
    SIMULATOR = "simulator"
    RPC = "rpc"


@dataclass
class LedgerConfig:
    """Ledger backend configuration"""
    backend: LedgerBackend = LedgerBackend.SIMULATOR
    rpc_url: str = "http://127.0.0.1:8545"
    artifacts_dir: str = "artifacts"
    receipt_timeout: int = 120


@dataclass
class CoreConfig:
    """Protocol core deployment parameters"""
    reward_delay_seconds: int = ONE_DAY * 28
    profit_share_numerator: int = 1


@dataclass
class BootstrapConfig:
    """Liquidity bootstrap sizing"""
    base_amount_quote: int = 10_000
    target_token_index: int = 1
    # Whole funding-token units spent on each basket token
    basket_spend: int = 100_000


@dataclass
class LoopConfig:
    """Harvest loop defaults"""
    cycles: int = 3
    seconds_per_cycle: int = 60
    liq_path_seconds: int = ONE_DAY


@dataclass
class VerifierConfig:
    """Invariant check tolerances"""
    # Smallest units of the underlying asset
    rounding_tolerance: int = 1_000_000


@dataclass
class MonitoringConfig:
    """Monitoring configuration"""
    log_level: str = "INFO"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class HarnessConfig:
    """Main harness configuration"""
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    core: CoreConfig = field(default_factory=CoreConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    verifier: VerifierConfig = field(default_factory=VerifierConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Create configuration from environment variables"""
        backend = os.environ.get("HARNESS_BACKEND", "simulator").lower()
        if backend not in [b.value for b in LedgerBackend]:
            raise ValueError(f"HARNESS_BACKEND must be one of {[b.value for b in LedgerBackend]}, got {backend!r}")

        config = cls()

        config.ledger = LedgerConfig(
            backend=LedgerBackend(backend),
            rpc_url=os.environ.get("HARNESS_RPC_URL", "http://127.0.0.1:8545"),
            artifacts_dir=os.environ.get("HARNESS_ARTIFACTS_DIR", "artifacts"),
            receipt_timeout=_env_int("HARNESS_RECEIPT_TIMEOUT", 120),
        )

        config.core = CoreConfig(
            reward_delay_seconds=_env_int("HARNESS_REWARD_DELAY_SECONDS", ONE_DAY * 28),
            profit_share_numerator=_env_int("HARNESS_PROFIT_SHARE_NUMERATOR", 1),
        )

        config.bootstrap = BootstrapConfig(
            base_amount_quote=_env_int("HARNESS_BASE_AMOUNT", 10_000),
            target_token_index=_env_int("HARNESS_TARGET_TOKEN_INDEX", 1),
            basket_spend=_env_int("HARNESS_BASKET_SPEND", 100_000),
        )

        config.loop = LoopConfig(
            cycles=_env_int("HARNESS_LOOP_CYCLES", 3),
            seconds_per_cycle=_env_int("HARNESS_SECONDS_PER_CYCLE", 60),
            liq_path_seconds=_env_int("HARNESS_LIQ_PATH_SECONDS", ONE_DAY),
        )

        config.verifier = VerifierConfig(
            rounding_tolerance=_env_int("HARNESS_ROUNDING_TOLERANCE", 1_000_000),
        )

        config.monitoring = MonitoringConfig(
            log_level=os.environ.get("HARNESS_LOG_LEVEL", "INFO").upper(),
        )

        return config

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging"""
        def sanitize(obj):
            if isinstance(obj, dict):
                return {k: sanitize(v) for k, v in obj.items()}
            elif hasattr(obj, '__dataclass_fields__'):
                return sanitize({k: getattr(obj, k) for k in obj.__dataclass_fields__})
            elif isinstance(obj, Enum):
                return obj.value
            else:
                return obj

        return sanitize(self)


# ============================================
# GLOBAL INSTANCE
# ============================================

# Load configuration on module import
config = HarnessConfig.from_env()

logger.info(f"Configuration loaded for backend: {config.ledger.backend.value}")


def get_config() -> HarnessConfig:
    """Get the global configuration"""
    return config


def reload_config() -> HarnessConfig:
    """Reload configuration from environment"""
    global config
    config = HarnessConfig.from_env()
    logger.info("Configuration reloaded")
    return config
