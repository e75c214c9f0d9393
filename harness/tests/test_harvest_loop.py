"""
Harvest Loop Tests
Cycle ordering, readyToClaim monotonicity, argument validation

Run: python -m pytest harness/tests/test_harvest_loop.py -v
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from infrastructure.errors import TransactionReverted
from services.harvest_loop import HarvestCycleResult, HarvestLoopExecutor, summarize


def make_result(cycle, timestamp, before, after, value=100):
    return HarvestCycleResult(
        cycle=cycle,
        timestamp=timestamp,
        elapsed_seconds=timestamp - 1000,
        ready_to_claim_before=before,
        ready_to_claim_after=after,
        user_balance_before=0,
        user_balance_after=0,
        user_total_value=value,
    )


# =============================================================================
# TEST: Loop over a built harness
# =============================================================================

@pytest.mark.integration
class TestHarvestLoop:
    """3 cycles x 60s against the IronSwap strategy"""

    @pytest.mark.asyncio
    async def test_three_cycles(self, harness, ledger):
        balance = await harness.user_underlying_balance()
        results = await HarvestLoopExecutor(ledger).run(harness, balance, cycles=3, seconds_per_cycle=60)

        assert [r.cycle for r in results] == [0, 1, 2]
        for previous, current in zip(results, results[1:]):
            assert current.timestamp > previous.timestamp
        print(f"✅ Cycles at {[r.timestamp for r in results]}")

    @pytest.mark.asyncio
    async def test_ready_to_claim_never_drops(self, harness, ledger):
        balance = await harness.user_underlying_balance()
        results = await HarvestLoopExecutor(ledger).run(harness, balance, cycles=3, seconds_per_cycle=60)

        for r in results:
            assert r.ready_to_claim_after >= r.ready_to_claim_before
        assert results[-1].ready_to_claim_after > 0

    @pytest.mark.asyncio
    async def test_elapsed_covers_advanced_time(self, harness, ledger):
        balance = await harness.user_underlying_balance()
        results = await HarvestLoopExecutor(ledger).run(harness, balance, cycles=3, seconds_per_cycle=60)

        assert results[-1].elapsed_seconds >= 3 * 60

    @pytest.mark.asyncio
    async def test_start_balance_deposited(self, harness, ledger, harness_config):
        balance = await harness.user_underlying_balance()
        results = await HarvestLoopExecutor(ledger).run(harness, balance, cycles=1, seconds_per_cycle=60)

        assert results[0].user_balance_before == 0
        assert await harness.vault.balance_of(harness.user) == balance
        assert results[0].user_total_value >= balance - harness_config.verifier.rounding_tolerance

    @pytest.mark.asyncio
    async def test_zero_seconds_per_cycle(self, harness, ledger):
        results = await HarvestLoopExecutor(ledger).run(harness, 0, cycles=2, seconds_per_cycle=0)

        assert len(results) == 2
        assert results[1].timestamp > results[0].timestamp


# =============================================================================
# TEST: Arguments
# =============================================================================

class TestArguments:
    """Invalid loop parameters fail before touching the ledger"""

    @pytest.mark.asyncio
    async def test_zero_cycles(self):
        ledger = MagicMock()
        with pytest.raises(ValueError):
            await HarvestLoopExecutor(ledger).run(MagicMock(), 0, cycles=0, seconds_per_cycle=60)
        ledger.advance_time.assert_not_called()

    @pytest.mark.asyncio
    async def test_negative_seconds(self):
        with pytest.raises(ValueError):
            await HarvestLoopExecutor(MagicMock()).run(MagicMock(), 0, cycles=1, seconds_per_cycle=-1)


# =============================================================================
# TEST: Summary
# =============================================================================

class TestSummarize:

    def test_totals(self):
        results = [make_result(0, 1061, 10, 15), make_result(1, 1122, 15, 40, value=120)]
        summary = summarize(results)

        assert summary["cycles"] == 2
        assert summary["elapsed_seconds"] == 122
        assert summary["reward_growth"] == 30
        assert summary["final_user_value"] == 120

    def test_empty(self):
        assert summarize([])["cycles"] == 0

    def test_reward_delta(self):
        assert make_result(0, 1061, 10, 15).reward_delta == 5


# =============================================================================
# TEST: Failure policy
# =============================================================================

class TestHarvestFailure:
    """A failed harvest ends the run"""

    @pytest.mark.asyncio
    async def test_failed_harvest_aborts_run(self):
        ledger = MagicMock()
        ledger.advance_time = AsyncMock()
        ledger.timestamp = AsyncMock(side_effect=[1000, 1060, 1120, 1180])

        vault = MagicMock()
        vault.address = "0xVault"
        vault.balance_of = AsyncMock(return_value=0)
        vault.total_supply = AsyncMock(return_value=0)
        token = MagicMock()
        token.balance_of = AsyncMock(return_value=0)

        harness = MagicMock()
        harness.underlying_token = AsyncMock(return_value=token)
        harness.vault.connect.return_value = vault
        harness.strategy.ready_to_claim = AsyncMock(return_value=0)
        reverted = TransactionReverted("StrategyIronSwap", "harvest", "No rewards")
        harness.strategy.harvest = AsyncMock(side_effect=[None, reverted, None])

        results = None
        with pytest.raises(TransactionReverted):
            results = await HarvestLoopExecutor(ledger).run(harness, 0, cycles=3, seconds_per_cycle=60)

        assert results is None
        assert harness.strategy.harvest.await_count == 2
        assert ledger.advance_time.await_count == 2
