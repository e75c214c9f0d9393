"""
Chain Simulator Tests
Snapshot ids, atomic transactions, block time, simulated contract views

Run: python -m pytest harness/tests/test_chain_simulator.py -v
"""

import pytest

from infrastructure.errors import DeploymentError, TransactionReverted


# =============================================================================
# TEST: Ledger mechanics
# =============================================================================

class TestSnapshots:
    """evm_snapshot / evm_revert semantics"""

    def test_revert_drops_later_snapshots(self, chain):
        first = chain.snapshot()
        second = chain.snapshot()

        assert chain.revert(first) is True
        assert chain.revert(second) is False
        assert chain.revert(first) is False

    def test_unknown_id(self, chain):
        assert chain.revert("not-an-id") is False
        assert chain.revert("0x99") is False

    def test_advance_time(self, chain):
        start = chain.timestamp
        block = chain.block_number

        chain.advance_time(3600)

        assert chain.timestamp == start + 3600
        assert chain.block_number == block + 1
        with pytest.raises(ValueError):
            chain.advance_time(-1)


class TestTransactions:
    """One block per transaction, no partial state on revert"""

    @pytest.mark.asyncio
    async def test_transaction_mines_block(self, chain, fork, deployer):
        user = chain.actors[1]
        wmatic = await deployer.connect(user, "IERC20", fork.network_token)
        block, start = chain.block_number, chain.timestamp

        await wmatic.transfer(chain.actors[2], 10 ** 18)

        assert chain.block_number == block + 1
        assert chain.timestamp == start + 1

    @pytest.mark.asyncio
    async def test_revert_leaves_no_trace(self, chain, fork, deployer):
        user = chain.actors[1]
        wmatic = await deployer.connect(user, "IERC20", fork.network_token)
        balance = await wmatic.balance_of(user)
        block = chain.block_number

        with pytest.raises(TransactionReverted) as exc_info:
            await wmatic.transfer(chain.actors[2], balance + 1)

        assert "exceeds balance" in exc_info.value.reason
        assert await wmatic.balance_of(user) == balance
        assert chain.block_number == block

    @pytest.mark.asyncio
    async def test_views_do_not_mine(self, chain, fork, deployer):
        wmatic = await deployer.connect(chain.actors[1], "IERC20", fork.network_token)
        block = chain.block_number

        await wmatic.balance_of(chain.actors[1])

        assert chain.block_number == block

    @pytest.mark.asyncio
    async def test_connect_without_code(self, chain, fork, deployer):
        with pytest.raises(DeploymentError):
            await deployer.connect(chain.actors[1], "IERC20", chain.actors[2].address)


# =============================================================================
# TEST: Venues
# =============================================================================

class TestRouter:
    """Constant-product pairs keyed by venue"""

    @pytest.mark.asyncio
    async def test_quote_matches_swap(self, chain, fork, deployer):
        user = chain.actors[1]
        quick = await deployer.connect(user, "IUniswapV2Router02", fork.quick_router)
        wmatic = await deployer.connect(user, "IERC20", fork.network_token)
        usdc = await deployer.connect(user, "IERC20", fork.usdc)
        amount = 1_000 * 10 ** 18
        path = [fork.network_token, fork.usdc]

        quoted = await quick.get_amounts_out(amount, path)
        reserves_before = await quick.get_reserves(fork.network_token, fork.usdc)
        await wmatic.approve(quick, amount)
        await quick.swap_exact_input(amount, 0, path, user, chain.timestamp + 60)

        assert await usdc.balance_of(user) == quoted[-1]
        reserves_after = await quick.get_reserves(fork.network_token, fork.usdc)
        assert reserves_after == (reserves_before[0] + amount, reserves_before[1] - quoted[-1])

    @pytest.mark.asyncio
    async def test_expired_deadline(self, chain, fork, deployer):
        user = chain.actors[1]
        quick = await deployer.connect(user, "IUniswapV2Router02", fork.quick_router)
        wmatic = await deployer.connect(user, "IERC20", fork.network_token)
        await wmatic.approve(quick, 10 ** 18)

        with pytest.raises(TransactionReverted) as exc_info:
            await quick.swap_exact_input(10 ** 18, 0, [fork.network_token, fork.usdc], user, chain.timestamp)
        assert exc_info.value.reason == "UniswapV2Router: EXPIRED"

    @pytest.mark.asyncio
    async def test_min_output(self, chain, fork, deployer):
        user = chain.actors[1]
        quick = await deployer.connect(user, "IUniswapV2Router02", fork.quick_router)
        wmatic = await deployer.connect(user, "IERC20", fork.network_token)
        await wmatic.approve(quick, 10 ** 18)

        with pytest.raises(TransactionReverted):
            await quick.swap_exact_input(
                10 ** 18, 10 ** 30, [fork.network_token, fork.usdc], user, chain.timestamp + 60
            )


# =============================================================================
# TEST: Vault accounting after a harvest
# =============================================================================

@pytest.mark.integration
class TestVaultViews:
    """Rewards stream into the vault, share price stays put"""

    @pytest.mark.asyncio
    async def test_rewards_stream_after_harvest(self, harness, chain):
        token = await harness.underlying_token()
        vault = harness.vault.connect(harness.user)
        amount = await token.balance_of(harness.user)
        await token.approve(vault, amount)
        await vault.deposit(amount)

        chain.advance_time(24 * 3600)
        await harness.strategy.harvest()
        chain.advance_time(3600)

        assert await vault.reward_token() is not None
        assert await vault.released_rewards() > 0
        assert await vault.earned(harness.user) > 0
        assert await vault.get_price_per_full_share() == 10 ** 18

    @pytest.mark.asyncio
    async def test_strategy_stakes_in_farm(self, harness, fork, deployer):
        token = await harness.underlying_token()
        vault = harness.vault.connect(harness.user)
        amount = await token.balance_of(harness.user)
        await token.approve(vault, amount)
        await vault.deposit(amount)

        farm = await deployer.connect(harness.signer, "IIronChef", fork.iron_chef)
        staked, _ = await farm.user_info(fork.iron_pool_id, harness.strategy)

        assert staked == amount
        assert await harness.core.controller.strategy_of(harness.vault) == harness.strategy.address

    @pytest.mark.asyncio
    async def test_harvest_requires_vault_or_governance(self, harness):
        with pytest.raises(TransactionReverted) as exc_info:
            await harness.strategy.connect(harness.user).harvest()
        assert exc_info.value.reason == "Not vault or governance"
