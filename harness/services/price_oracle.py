"""
Price Oracle Adapter
Venue and price discovery through the protocol's on-chain price calculator.

Features:
- largest_pool(): deepest venue/pair for a token, with venue exclusion
- price(): default-quote price as Decimal, rounded down
- amount_for_quote(): quote-currency notional -> token smallest units
- decimals/symbol cache per token

Prices come back as 18-decimal integers and are never rounded up.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Any, Dict, Iterable, Optional

from infrastructure.errors import NoLiquidityFound
from infrastructure.ledger import Actor, ContractFactory, ZERO_ADDRESS, address_of

logger = logging.getLogger("PriceOracle")

PRICE_DECIMALS = 18
# Digits kept when converting an integer price to Decimal
PRICE_PRECISION = Decimal(10) ** -PRICE_DECIMALS


@dataclass(frozen=True)
class PoolRoute:
    """Best venue for a token"""
    counterpart: str
    venue_index: int
    factory: str
    reserve: int = 0


class PriceOracleAdapter:
    """
    Wraps a price calculator contract.

    Usage:
        oracle = PriceOracleAdapter(calculator, factory, actor)
        route = await oracle.largest_pool(usdt)
        price = await oracle.price(route.counterpart)     # Decimal("0.9987...")
    """

    def __init__(self, calculator: Any, contracts: ContractFactory, actor: Actor):
        self.calculator = calculator
        self.contracts = contracts
        self.actor = actor
        self._decimals: Dict[str, int] = {}
        self._symbols: Dict[str, str] = {}

    async def _token(self, token: str):
        return await self.contracts.connect(self.actor, "IERC20", token)

    async def decimals(self, token) -> int:
        token = address_of(token)
        if token not in self._decimals:
            self._decimals[token] = await (await self._token(token)).decimals()
        return self._decimals[token]

    async def symbol(self, token) -> str:
        token = address_of(token)
        if token not in self._symbols:
            self._symbols[token] = await (await self._token(token)).symbol()
        return self._symbols[token]

    async def largest_pool(self, token, excluded: Optional[Iterable[str]] = None) -> PoolRoute:
        """Deepest pair for `token`, skipping venues in `excluded`."""
        token = address_of(token)
        excluded = [address_of(v) for v in (excluded or [])]

        counterpart, venue_index, reserve = await self.calculator.get_largest_pool(token, excluded)
        if not counterpart or counterpart == ZERO_ADDRESS or counterpart == token:
            raise NoLiquidityFound(token, excluded)

        factory = await self.calculator.swap_factories(venue_index)
        logger.debug(f"largest pool for {token}: {counterpart} on venue {venue_index} ({factory})")
        return PoolRoute(counterpart=counterpart, venue_index=venue_index, factory=factory, reserve=reserve)

    async def price(self, token) -> Decimal:
        token = address_of(token)
        raw = await self.calculator.get_price_with_default_output(token)
        if raw <= 0:
            raise NoLiquidityFound(token)

        with localcontext() as ctx:
            ctx.rounding = ROUND_DOWN
            ctx.prec = 60
            price = (Decimal(raw) / Decimal(10) ** PRICE_DECIMALS).quantize(PRICE_PRECISION)
        return price

    async def amount_for_quote(self, token, quote_amount) -> int:
        """How many smallest units of `token` are worth `quote_amount`, rounded down."""
        price = await self.price(token)
        decimals = await self.decimals(token)

        with localcontext() as ctx:
            ctx.rounding = ROUND_DOWN
            ctx.prec = 60
            whole = (Decimal(quote_amount) / price).quantize(Decimal(10) ** -decimals)
            return int(whole * (Decimal(10) ** decimals))
