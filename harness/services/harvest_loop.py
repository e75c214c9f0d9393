"""
Harvest Loop Executor
Advance time -> harvest -> record, N times.

A failed harvest aborts the whole run; results are materialized before
returning and are never resumed.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from infrastructure.ledger import Ledger

logger = logging.getLogger("HarvestLoop")


@dataclass(frozen=True)
class HarvestCycleResult:
    """One harvest cycle as observed from outside the strategy"""
    cycle: int
    timestamp: int
    elapsed_seconds: int
    ready_to_claim_before: int
    ready_to_claim_after: int
    user_balance_before: int
    user_balance_after: int
    user_total_value: int

    @property
    def reward_delta(self) -> int:
        return self.ready_to_claim_after - self.ready_to_claim_before


class HarvestLoopExecutor:
    """
    Usage:
        loop = HarvestLoopExecutor(ledger)
        results = await loop.run(harness, start_balance, cycles=3, seconds_per_cycle=60)
    """

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    async def _user_total_value(self, harness, vault, token) -> int:
        shares = await vault.balance_of(harness.user.address)
        supply = await vault.total_supply()
        wallet = await token.balance_of(harness.user.address)
        if supply == 0:
            return wallet
        return wallet + shares * await vault.underlying_balance_with_investment() // supply

    async def run(self, harness, user_balance_at_start: int, cycles: int,
                  seconds_per_cycle: int) -> List[HarvestCycleResult]:
        if cycles < 1:
            raise ValueError(f"cycles must be >= 1, got {cycles}")
        if seconds_per_cycle < 0:
            raise ValueError(f"seconds_per_cycle must be >= 0, got {seconds_per_cycle}")

        token = await harness.underlying_token()
        vault = harness.vault.connect(harness.user)
        strategy = harness.strategy

        user_balance_at_start = int(user_balance_at_start)
        if user_balance_at_start > 0:
            await token.approve(vault.address, user_balance_at_start)
            await vault.deposit(user_balance_at_start)
            logger.info(f"Deposited {user_balance_at_start} into {vault.address}")

        start = await self.ledger.timestamp()
        results = []
        for cycle in range(cycles):
            await self.ledger.advance_time(seconds_per_cycle)

            ready_before = await strategy.ready_to_claim()
            balance_before = await token.balance_of(harness.user.address)

            await strategy.harvest()

            ready_after = await strategy.ready_to_claim()
            balance_after = await token.balance_of(harness.user.address)
            now = await self.ledger.timestamp()

            result = HarvestCycleResult(
                cycle=cycle,
                timestamp=now,
                elapsed_seconds=now - start,
                ready_to_claim_before=ready_before,
                ready_to_claim_after=ready_after,
                user_balance_before=balance_before,
                user_balance_after=balance_after,
                user_total_value=await self._user_total_value(harness, vault, token),
            )
            results.append(result)
            logger.info(
                f"cycle {cycle + 1}/{cycles}: readyToClaim {ready_before} -> {ready_after}, "
                f"t+{result.elapsed_seconds}s"
            )

        return results


def summarize(results: List[HarvestCycleResult]) -> Dict:
    """Totals over a finished run"""
    if not results:
        return {"cycles": 0, "elapsed_seconds": 0, "reward_growth": 0, "final_user_value": 0}
    return {
        "cycles": len(results),
        "elapsed_seconds": results[-1].elapsed_seconds,
        "reward_growth": results[-1].ready_to_claim_after - results[0].ready_to_claim_before,
        "final_user_value": results[-1].user_total_value,
    }
