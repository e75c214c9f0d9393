"""
Harness Infrastructure Module
Configuration, errors, ledger contracts and the RPC backend
"""

from .errors import (
    HarnessError,
    SnapshotFailure,
    InvalidHandle,
    NoLiquidityFound,
    LiquidityAddRejected,
    BootstrapError,
    RouteValidationError,
    DeploymentError,
    TransactionReverted,
    InvariantViolation,
    BasketFundingShortfall,
    BootstrapStage,
    ErrorCode,
    ErrorTracker,
)

from .config import (
    HarnessConfig,
    LedgerBackend,
    get_config,
    reload_config,
)

from .ledger import (
    Actor,
    CoreContracts,
    Ledger,
    ContractFactory,
    CoreDeployer,
    ZERO_ADDRESS,
    address_of,
)

__all__ = [
    # Errors
    "HarnessError",
    "SnapshotFailure",
    "InvalidHandle",
    "NoLiquidityFound",
    "LiquidityAddRejected",
    "BootstrapError",
    "RouteValidationError",
    "DeploymentError",
    "TransactionReverted",
    "InvariantViolation",
    "BasketFundingShortfall",
    "BootstrapStage",
    "ErrorCode",
    "ErrorTracker",

    # Config
    "HarnessConfig",
    "LedgerBackend",
    "get_config",
    "reload_config",

    # Ledger
    "Actor",
    "CoreContracts",
    "Ledger",
    "ContractFactory",
    "CoreDeployer",
    "ZERO_ADDRESS",
    "address_of",
]
