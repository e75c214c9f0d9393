"""
Strategy Harness - Entry Point
Builds the simulated Polygon fork and runs the IronSwap strategy suite
"""

import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from infrastructure.config import LedgerBackend, get_config
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
from services.strategy_suite import StrategySuite

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("RunHarness")


async def main() -> int:
    """
    Main entry point
    """
    config = get_config()
    if config.ledger.backend != LedgerBackend.SIMULATOR:
        logger.error(
            "run_harness.py drives the chain simulator only. "
            "For a dev node, pass a CoreDeployer for the deployed protocol to StrategySuite."
        )
        return 1

    logger.info(f"🧪 Harness config: {json.dumps(config.to_dict())}")

    chain = ChainSimulator()
    ledger = SimulatedLedger(chain)
    fork = await build_polygon_fork(chain)
    deployer = SimulatedDeployer(chain, fork)

    builder = HarnessBuilder(
        ledger,
        deployer,
        deployer,
        VenueBook(fork.routers_by_factory),
        basket=funding_basket(fork, config.bootstrap.basket_spend),
        config=config,
    )
    suite = StrategySuite(
        ledger,
        builder,
        iron_swap_descriptor(fork),
        [fork.ice],
        iron_swap_targets(fork),
        config=config,
    )

    report = await suite.run_all()
    logger.info(json.dumps(report.to_dict(), indent=2))

    if not report.passed:
        logger.error(f"❌ {len(report.failures)} case(s) failed")
        return 1
    logger.info("✅ All cases passed")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n👋 Harness stopped")
