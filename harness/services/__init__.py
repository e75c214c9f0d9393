"""
Harness Services
State scopes, price discovery, bootstrap, harvest loop and invariant checks
"""

from .state_scope import ScopeHandle, StateScope
from .price_oracle import PoolRoute, PriceOracleAdapter
from .swap_executor import SwapExecutor, SwapResult
from .conversion_routes import ConversionRoute, VenueBook, long_route, short_route, register_routes
from .liquidity_bootstrap import BootstrapReport, FundingBasket, LiquidityBootstrap, LiquidityPlan
from .harness_builder import ConversionTargets, HarnessBuilder, StrategyDescriptor, StrategyHarness
from .harvest_loop import HarvestCycleResult, HarvestLoopExecutor, summarize
from .invariant_verifier import InvariantVerifier
from .strategy_suite import CaseResult, StrategySuite, SuiteReport

__all__ = [
    # State
    "ScopeHandle",
    "StateScope",

    # Prices and trades
    "PoolRoute",
    "PriceOracleAdapter",
    "SwapExecutor",
    "SwapResult",

    # Routes
    "ConversionRoute",
    "VenueBook",
    "long_route",
    "short_route",
    "register_routes",

    # Bootstrap
    "BootstrapReport",
    "FundingBasket",
    "LiquidityBootstrap",
    "LiquidityPlan",

    # Harness
    "ConversionTargets",
    "HarnessBuilder",
    "StrategyDescriptor",
    "StrategyHarness",

    # Loop and checks
    "HarvestCycleResult",
    "HarvestLoopExecutor",
    "summarize",
    "InvariantVerifier",

    # Suite
    "CaseResult",
    "StrategySuite",
    "SuiteReport",
]
