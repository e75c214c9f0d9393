"""
Liquidity Bootstrap
Funds a test actor and opens a single-sided position in the strategy's pool.

Stages:
1. fund           buy a basket of big tokens with the network token (soft)
2. resolve        counterpart + venue for the target token via price discovery
3. trade          spend base_amount / price(counterpart) of the counterpart
4. add_liquidity  whole target balance at the target index, zero elsewhere

Only stage 1 is best-effort: every basket miss becomes a
BasketFundingShortfall warning. Anything failing in stages 2-4 propagates
with details["stage"] set.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from infrastructure.errors import (
    BasketFundingShortfall,
    BootstrapError,
    BootstrapStage,
    HarnessError,
)
from infrastructure.ledger import Actor, ContractFactory, Ledger, address_of

from services.conversion_routes import VenueBook
from services.price_oracle import PriceOracleAdapter
from services.swap_executor import SwapExecutor

logger = logging.getLogger("LiquidityBootstrap")


@dataclass
class FundingBasket:
    """Tokens bought with the network token before the bootstrap trade"""
    funding_token: str
    router: str
    tokens: List[str] = field(default_factory=list)
    # Whole funding-token units per basket token
    spend_per_token: int = 100_000


@dataclass
class LiquidityPlan:
    """The computed bootstrap trade and liquidity add"""
    target_index: int
    target_token: str
    counterpart: str
    venue_index: int
    router: str
    base_amount_quote: int
    amount_for_sell: int
    amounts: List[int] = field(default_factory=list)

    @property
    def target_amount(self) -> int:
        return self.amounts[self.target_index]


@dataclass
class BootstrapReport:
    """Hard result (plan) plus the soft warnings collected on the way"""
    plan: LiquidityPlan
    lp_minted: int
    warnings: List[BasketFundingShortfall] = field(default_factory=list)

    @property
    def fully_funded(self) -> bool:
        return not self.warnings


@asynccontextmanager
async def _stage(stage: BootstrapStage):
    """Tag failures with the bootstrap stage they happened in."""
    logger.info(f"bootstrap stage: {stage.value}")
    try:
        yield
    except HarnessError as e:
        e.details.setdefault("stage", stage.value)
        raise
    except Exception as e:
        raise BootstrapError(stage.value, f"Bootstrap failed during {stage.value}: {e}", original_error=e)


class LiquidityBootstrap:
    """
    Usage:
        bootstrap = LiquidityBootstrap(ledger, factory, oracle, venues, pool, basket, target_index=1)
        report = await bootstrap.bootstrap(user, usdt, 10_000)
        report.plan.amounts      # [0, 9987123456, 0, 0]
    """

    def __init__(
        self,
        ledger: Ledger,
        contracts: ContractFactory,
        oracle: PriceOracleAdapter,
        venues: VenueBook,
        pool: str,
        basket: Optional[FundingBasket] = None,
        target_index: int = 1,
        swaps: Optional[SwapExecutor] = None,
    ):
        self.ledger = ledger
        self.contracts = contracts
        self.oracle = oracle
        self.venues = venues
        self.pool = address_of(pool)
        self.basket = basket
        self.target_index = target_index
        self.swaps = swaps or SwapExecutor(ledger, contracts)

    async def fund_basket(self, actor: Actor) -> List[BasketFundingShortfall]:
        """Best-effort purchase of every basket token. Never raises for a single token."""
        if self.basket is None:
            return []

        funding_decimals = await self.oracle.decimals(self.basket.funding_token)
        spend = self.basket.spend_per_token * 10 ** funding_decimals
        shortfalls = []

        for token in self.basket.tokens:
            try:
                result = await self.swaps.buy_token(
                    actor, self.basket.router, token, spend, self.basket.funding_token
                )
                if result.amount_out == 0:
                    raise BootstrapError(BootstrapStage.FUND.value, "swap returned nothing")
            except Exception as e:
                symbol = await self._symbol_or_address(token)
                shortfall = BasketFundingShortfall(token=token, symbol=symbol, reason=str(e))
                logger.warning(f"Basket token {symbol} not acquired: {e}")
                shortfalls.append(shortfall)
        return shortfalls

    async def _symbol_or_address(self, token: str) -> str:
        try:
            return await self.oracle.symbol(token)
        except HarnessError:
            return token

    async def bootstrap(self, actor: Actor, target_token, base_amount_quote: int) -> BootstrapReport:
        target_token = address_of(target_token)

        async with _stage(BootstrapStage.FUND):
            warnings = await self.fund_basket(actor)

        async with _stage(BootstrapStage.RESOLVE):
            route = await self.oracle.largest_pool(target_token, excluded=[])
            router = self.venues.router_for(route.factory)
            pool_ref = await self.contracts.connect(actor, "IIronSwap", self.pool)
            pool_tokens = await pool_ref.get_tokens()
            if not 0 <= self.target_index < len(pool_tokens):
                raise BootstrapError(
                    BootstrapStage.RESOLVE.value,
                    f"Target index {self.target_index} outside pool of {len(pool_tokens)} tokens",
                )
            if pool_tokens[self.target_index] != target_token:
                raise BootstrapError(
                    BootstrapStage.RESOLVE.value,
                    f"Pool token #{self.target_index} is {pool_tokens[self.target_index]}, not {target_token}",
                )
            amount_for_sell = await self.oracle.amount_for_quote(route.counterpart, base_amount_quote)
            counterpart_symbol = await self.oracle.symbol(route.counterpart)
            logger.info(
                f"Selling {amount_for_sell} {counterpart_symbol} "
                f"(~{base_amount_quote} quote) for {target_token} on venue {route.venue_index}"
            )

        async with _stage(BootstrapStage.TRADE):
            if amount_for_sell <= 0:
                raise BootstrapError(BootstrapStage.TRADE.value, "Computed trade size is zero")
            await self.swaps.buy_token(actor, router, target_token, amount_for_sell, route.counterpart)

        async with _stage(BootstrapStage.ADD_LIQUIDITY):
            available = await self.swaps.balance_of(actor, target_token)
            if available <= 0:
                raise BootstrapError(BootstrapStage.ADD_LIQUIDITY.value, f"Actor holds no {target_token}")
            amounts = [0] * len(pool_tokens)
            amounts[self.target_index] = available

            plan = LiquidityPlan(
                target_index=self.target_index,
                target_token=target_token,
                counterpart=route.counterpart,
                venue_index=route.venue_index,
                router=router,
                base_amount_quote=base_amount_quote,
                amount_for_sell=amount_for_sell,
                amounts=amounts,
            )
            lp_minted = await self.swaps.add_liquidity(actor, self.pool, target_token, amounts, 0)

        logger.info(f"Bootstrap done: {amounts} -> {lp_minted} LP, {len(warnings)} basket shortfall(s)")
        return BootstrapReport(plan=plan, lp_minted=lp_minted, warnings=warnings)
