"""
Pytest Configuration for Strategy Harness Tests

Run all tests: python -m pytest harness/tests/ -v
Run unit tests only: python -m pytest harness/tests/ -v -m "not integration"
Run full harness builds: python -m pytest harness/tests/ -v -m integration
"""

import pytest
import pytest_asyncio
import sys
from pathlib import Path

# Add harness source root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from infrastructure.config import HarnessConfig
from integrations.chain_simulator import ChainSimulator, SimulatedLedger
from integrations.sim_deployer import (
    SimulatedDeployer,
    build_polygon_fork,
    funding_basket,
    iron_swap_descriptor,
    iron_swap_targets,
)
from services.conversion_routes import VenueBook
from services.harness_builder import HarnessBuilder


# =============================================================================
# FIXTURES - Shared across all test files
# =============================================================================

@pytest.fixture
def harness_config():
    """Default knobs, independent of the developer's .env"""
    return HarnessConfig()


@pytest.fixture
def chain():
    """Fresh in-process ledger"""
    return ChainSimulator()


@pytest.fixture
def ledger(chain):
    return SimulatedLedger(chain)


@pytest_asyncio.fixture
async def fork(chain):
    """Genesis market: tokens, venues, IRON pool and farm"""
    return await build_polygon_fork(chain)


@pytest.fixture
def deployer(chain, fork):
    return SimulatedDeployer(chain, fork)


@pytest.fixture
def venues(fork):
    return VenueBook(fork.routers_by_factory)


@pytest.fixture
def descriptor(fork):
    return iron_swap_descriptor(fork)


@pytest.fixture
def builder(ledger, deployer, venues, fork, harness_config):
    return HarnessBuilder(
        ledger,
        deployer,
        deployer,
        venues,
        basket=funding_basket(fork, harness_config.bootstrap.basket_spend),
        config=harness_config,
    )


@pytest_asyncio.fixture
async def harness(builder, descriptor, fork):
    """Fully built IronSwap harness with the user bootstrapped"""
    return await builder.build(descriptor, [fork.ice], iron_swap_targets(fork))


# =============================================================================
# MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (full harness build)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
