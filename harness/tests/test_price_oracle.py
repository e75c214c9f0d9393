"""
Price Oracle Tests
Largest pool selection, round-down pricing, no-liquidity failures

Run: python -m pytest harness/tests/test_price_oracle.py -v
"""

import pytest
import pytest_asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from infrastructure.errors import NoLiquidityFound
from infrastructure.ledger import ZERO_ADDRESS
from services.price_oracle import PriceOracleAdapter


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def mock_calculator():
    """Calculator returning fixed answers"""
    calc = MagicMock()
    calc.get_largest_pool = AsyncMock(return_value=("0xC0unterpart", 2, 10 ** 24))
    calc.swap_factories = AsyncMock(return_value="0xFactory")
    calc.get_price_with_default_output = AsyncMock(return_value=3 * 10 ** 18 // 7)
    return calc


@pytest.fixture
def mock_contracts():
    """ContractFactory whose tokens report 6 decimals"""
    token = MagicMock()
    token.decimals = AsyncMock(return_value=6)
    token.symbol = AsyncMock(return_value="USDC")
    contracts = MagicMock()
    contracts.connect = AsyncMock(return_value=token)
    return contracts


@pytest_asyncio.fixture
async def sim_oracle(chain, fork, deployer):
    signer = chain.actors[0]
    core = await deployer.deploy_core(signer, 60, 1)
    calculator = (await deployer.deploy_price_discovery(signer, core.controller))[0]
    return PriceOracleAdapter(calculator, deployer, chain.actors[1])


# =============================================================================
# TEST: Numeric semantics (mocked calculator)
# =============================================================================

class TestRounding:
    """Prices and sizes never round up"""

    @pytest.mark.asyncio
    async def test_price_rounds_down(self, mock_calculator, mock_contracts):
        oracle = PriceOracleAdapter(mock_calculator, mock_contracts, MagicMock())
        price = await oracle.price("0xToken")

        assert price == Decimal("0.428571428571428571")
        assert price * 7 < 3

    @pytest.mark.asyncio
    async def test_amount_for_quote_rounds_down(self, mock_calculator, mock_contracts):
        oracle = PriceOracleAdapter(mock_calculator, mock_contracts, MagicMock())
        amount = await oracle.amount_for_quote("0xToken", 10_000)

        # 10_000 / 0.428571428571428571 = 23333.33333333333335...
        assert amount == 23_333_333_333
        print(f"✅ 10_000 quote -> {amount} units")

    @pytest.mark.asyncio
    async def test_zero_price_is_no_liquidity(self, mock_calculator, mock_contracts):
        mock_calculator.get_price_with_default_output = AsyncMock(return_value=0)
        oracle = PriceOracleAdapter(mock_calculator, mock_contracts, MagicMock())

        with pytest.raises(NoLiquidityFound):
            await oracle.price("0xToken")

    @pytest.mark.asyncio
    async def test_decimals_cached(self, mock_calculator, mock_contracts):
        oracle = PriceOracleAdapter(mock_calculator, mock_contracts, MagicMock())
        await oracle.decimals("0xToken")
        await oracle.decimals("0xToken")

        assert mock_contracts.connect.await_count == 1


# =============================================================================
# TEST: Venue selection
# =============================================================================

class TestLargestPool:
    """Deepest pair wins, exclusions respected"""

    @pytest.mark.asyncio
    async def test_route_from_calculator(self, mock_calculator, mock_contracts):
        oracle = PriceOracleAdapter(mock_calculator, mock_contracts, MagicMock())
        route = await oracle.largest_pool("0xToken", excluded=["0xOther"])

        assert route.counterpart == "0xC0unterpart"
        assert route.venue_index == 2
        assert route.factory == "0xFactory"
        mock_calculator.get_largest_pool.assert_awaited_once_with("0xToken", ["0xOther"])

    @pytest.mark.asyncio
    async def test_no_pool_raises(self, mock_calculator, mock_contracts):
        mock_calculator.get_largest_pool = AsyncMock(return_value=(ZERO_ADDRESS, 0, 0))
        oracle = PriceOracleAdapter(mock_calculator, mock_contracts, MagicMock())

        with pytest.raises(NoLiquidityFound):
            await oracle.largest_pool("0xToken")

    @pytest.mark.asyncio
    async def test_usdt_pairs_with_usdc_on_quick(self, sim_oracle, fork):
        route = await sim_oracle.largest_pool(fork.usdt)

        assert route.counterpart == fork.usdc
        assert route.factory == fork.quick_factory

    @pytest.mark.asyncio
    async def test_excluding_quick_moves_to_sushi(self, sim_oracle, fork):
        route = await sim_oracle.largest_pool(fork.usdt, excluded=[fork.quick_factory])

        assert route.counterpart == fork.usdc
        assert route.factory == fork.sushi_factory

    @pytest.mark.asyncio
    async def test_token_without_pairs(self, sim_oracle, fork):
        with pytest.raises(NoLiquidityFound):
            await sim_oracle.largest_pool(fork.link)


# =============================================================================
# TEST: Prices on the simulated fork
# =============================================================================

class TestSimulatedPrices:
    """Default quote is USDC"""

    @pytest.mark.asyncio
    async def test_quote_token_is_one(self, sim_oracle, fork):
        assert await sim_oracle.price(fork.usdc) == Decimal(1)

    @pytest.mark.asyncio
    async def test_ice_priced_through_usdc(self, sim_oracle, fork):
        # 2M ICE / 1M USDC on dfyn
        assert await sim_oracle.price(fork.ice) == Decimal("0.5")

    @pytest.mark.asyncio
    async def test_symbols(self, sim_oracle, fork):
        assert await sim_oracle.symbol(fork.usdt) == "USDT"
        assert await sim_oracle.decimals(fork.usdt) == 6
