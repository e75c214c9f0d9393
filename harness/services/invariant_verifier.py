"""
Invariant Verifier
Post-condition checks run against a built harness, each inside its own
inner state scope.

Checks:
- common_tests: wiring, non-negative investable balance, deposit/withdraw round trip
- check_emergency_exit: position unwound into the vault, nothing lost
- do_hard_work_with_liq_path: one harvest keeps readyToClaim and principal

Every failure raises InvariantViolation (an AssertionError). Nothing here
catches it.
"""

import logging
from typing import Awaitable, Callable, Optional

from infrastructure.config import HarnessConfig, get_config
from infrastructure.errors import InvariantViolation
from infrastructure.ledger import Ledger

from services.harvest_loop import HarvestLoopExecutor

logger = logging.getLogger("InvariantVerifier")


def ensure(condition: bool, invariant: str, observed, expected, note: str = ""):
    if not condition:
        raise InvariantViolation(invariant, observed, expected, note)


class InvariantVerifier:
    """
    Usage:
        verifier = InvariantVerifier(ledger)
        await verifier.common_tests(harness)
    """

    def __init__(self, ledger: Ledger, config: Optional[HarnessConfig] = None):
        self.ledger = ledger
        self.config = config or get_config()
        self.loop = HarvestLoopExecutor(ledger)

    @property
    def tolerance(self) -> int:
        return self.config.verifier.rounding_tolerance

    async def _user_position(self, harness, vault) -> int:
        shares = await vault.balance_of(harness.user.address)
        if shares == 0:
            return 0
        return shares * await vault.underlying_balance_with_investment() // await vault.total_supply()

    async def _withdraw_everything(self, harness, vault, token) -> int:
        before = await token.balance_of(harness.user.address)
        if await vault.balance_of(harness.user.address) > 0:
            await vault.withdraw_all()
        return await token.balance_of(harness.user.address) - before

    async def common_tests(self, harness):
        token = await harness.underlying_token()
        vault = harness.vault.connect(harness.user)
        strategy = harness.strategy

        vault_strategy = await vault.strategy()
        ensure(vault_strategy == strategy.address, "vault strategy", vault_strategy, strategy.address)
        vault_underlying = await vault.underlying()
        ensure(vault_underlying == harness.underlying, "vault underlying", vault_underlying, harness.underlying)
        strategy_underlying = await strategy.underlying()
        ensure(strategy_underlying == harness.underlying, "strategy underlying",
               strategy_underlying, harness.underlying)

        invested = await strategy.invested_underlying_balance()
        ensure(invested >= 0, "investable balance non-negative", invested, ">= 0")

        amount = await token.balance_of(harness.user.address)
        ensure(amount > 0, "user funded", amount, "> 0", "bootstrap left the user without underlying")

        await token.approve(vault.address, amount)
        await vault.deposit(amount)
        received = await self._withdraw_everything(harness, vault, token)

        ensure(received >= amount - self.tolerance, "deposit/withdraw round trip",
               received, f">= {amount - self.tolerance}")

        invested = await strategy.invested_underlying_balance()
        ensure(invested >= 0, "investable balance non-negative", invested, ">= 0")
        logger.info(f"common tests ok: deposited {amount}, withdrew {received}")

    async def check_emergency_exit(self, harness):
        token = await harness.underlying_token()
        vault = harness.vault.connect(harness.user)
        strategy = harness.strategy

        wallet = await token.balance_of(harness.user.address)
        if wallet > 0:
            await token.approve(vault.address, wallet)
            await vault.deposit(wallet)
        principal = await self._user_position(harness, vault)

        value_before = await vault.underlying_balance_with_investment()
        await strategy.emergency_exit()

        invested = await strategy.invested_underlying_balance()
        ensure(invested <= self.tolerance, "strategy position unwound", invested, f"<= {self.tolerance}")

        retained = await token.balance_of(strategy.address)
        ensure(retained == 0, "strategy holds no underlying", retained, 0)

        value_after = await vault.underlying_balance_with_investment()
        ensure(abs(value_after - value_before) <= self.tolerance, "vault value unchanged",
               value_after, f"{value_before} +- {self.tolerance}")

        in_vault = await vault.underlying_balance_in_vault()
        ensure(in_vault >= value_before - self.tolerance, "funds moved to vault",
               in_vault, f">= {value_before - self.tolerance}")

        received = await self._withdraw_everything(harness, vault, token)
        ensure(received >= principal - self.tolerance, "principal withdrawable after exit",
               received, f">= {principal - self.tolerance}")
        logger.info(f"emergency exit ok: {value_before} moved to vault, user withdrew {received}")

    async def do_hard_work_with_liq_path(
        self,
        harness,
        user_balance_at_start: int,
        ready_to_claim: Optional[Callable[[], Awaitable[int]]] = None,
    ):
        ready_to_claim = ready_to_claim or harness.strategy.ready_to_claim
        token = await harness.underlying_token()
        vault = harness.vault.connect(harness.user)
        user_balance_at_start = int(user_balance_at_start)

        if user_balance_at_start > 0:
            await token.approve(vault.address, user_balance_at_start)
            await vault.deposit(user_balance_at_start)

        await self.ledger.advance_time(self.config.loop.liq_path_seconds)
        before = await ready_to_claim()
        await harness.strategy.harvest()
        after = await ready_to_claim()
        ensure(after >= before, "readyToClaim non-decreasing across harvest", after, f">= {before}")

        received = await self._withdraw_everything(harness, vault, token)
        ensure(received >= user_balance_at_start - self.tolerance, "user principal preserved",
               received, f">= {user_balance_at_start - self.tolerance}")
        logger.info(f"liq path ok: readyToClaim {before} -> {after}, user withdrew {received}")

    async def do_hard_work_loop(self, harness, user_balance_at_start: int, cycles: int, seconds_per_cycle: int):
        """Harvest loop plus the per-cycle and principal checks."""
        results = await self.loop.run(harness, user_balance_at_start, cycles, seconds_per_cycle)
        ensure(len(results) == cycles, "cycle count", len(results), cycles)

        previous = None
        for result in results:
            ensure(result.ready_to_claim_after >= result.ready_to_claim_before,
                   f"readyToClaim non-decreasing in cycle {result.cycle}",
                   result.ready_to_claim_after, f">= {result.ready_to_claim_before}")
            if previous is not None:
                ensure(result.timestamp >= previous.timestamp, "cycle timestamps ordered",
                       result.timestamp, f">= {previous.timestamp}")
            previous = result

        vault = harness.vault.connect(harness.user)
        token = await harness.underlying_token()
        received = await self._withdraw_everything(harness, vault, token)
        ensure(received >= int(user_balance_at_start) - self.tolerance, "user principal preserved",
               received, f">= {int(user_balance_at_start) - self.tolerance}")
        return results
