"""
Swap Executor
Approve / swap / add-liquidity calls against the harness venues.

Features:
- Approve a spender (skipped when the allowance already covers the amount)
- Exact-input market buy through a router, deadline = ledger time + 20 min
- Single call liquidity add; any revert becomes LiquidityAddRejected

All calls go out from the given actor through the ContractFactory, so the
same code drives the chain simulator and a forked node.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from infrastructure.errors import LiquidityAddRejected, TransactionReverted
from infrastructure.ledger import Actor, ContractFactory, Ledger, address_of

logger = logging.getLogger("SwapExecutor")

SWAP_DEADLINE_SECONDS = 20 * 60


@dataclass
class SwapResult:
    """Result of a market buy"""
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    path: List[str] = field(default_factory=list)


class SwapExecutor:
    """
    Venue calls on behalf of a test actor.

    Usage:
        swaps = SwapExecutor(ledger, factory)
        await swaps.buy_token(user, router, usdt, 10_000 * 10**6, usdc)
        await swaps.add_liquidity(user, pool, usdt, [0, bal, 0, 0], 0, deadline)
    """

    def __init__(self, ledger: Ledger, contracts: ContractFactory):
        self.ledger = ledger
        self.contracts = contracts

    async def approve_token(self, actor: Actor, token: str, spender: str, amount: int) -> bool:
        """Approve spender to move actor's tokens"""
        erc20 = await self.contracts.connect(actor, "IERC20", address_of(token))

        current_allowance = await erc20.allowance(actor.address, address_of(spender))
        if current_allowance >= amount:
            logger.debug(f"Already approved: {current_allowance}")
            return True

        await erc20.approve(address_of(spender), amount)
        return True

    async def balance_of(self, actor: Actor, token: str) -> int:
        erc20 = await self.contracts.connect(actor, "IERC20", address_of(token))
        return await erc20.balance_of(actor.address)

    async def buy_token(
        self,
        actor: Actor,
        router: str,
        token_out: str,
        amount_in: int,
        token_in: str,
        amount_out_min: int = 0,
    ) -> SwapResult:
        """
        Market buy of token_out paying exactly amount_in of token_in.

        Args:
            router: router address of the venue holding the pair
            amount_in: smallest units of token_in

        Returns:
            SwapResult with the received amount (balance delta)
        """
        token_in = address_of(token_in)
        token_out = address_of(token_out)
        router = address_of(router)

        await self.approve_token(actor, token_in, router, amount_in)

        before = await self.balance_of(actor, token_out)
        router_ref = await self.contracts.connect(actor, "IUniswapV2Router02", router)
        deadline = await self.ledger.timestamp() + SWAP_DEADLINE_SECONDS
        path = [token_in, token_out]
        await router_ref.swap_exact_input(amount_in, amount_out_min, path, actor.address, deadline)
        received = await self.balance_of(actor, token_out) - before

        logger.info(f"Bought {received} of {token_out} for {amount_in} of {token_in} via {router}")
        return SwapResult(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=received,
            path=path,
        )

    async def add_liquidity(
        self,
        actor: Actor,
        pool: str,
        token: str,
        amounts: List[int],
        min_to_mint: int,
        deadline: Optional[int] = None,
    ) -> int:
        """
        Approve the pool for the non-zero amount of `token`, then add liquidity.

        Returns:
            LP tokens minted to the actor
        """
        pool = address_of(pool)
        pool_ref = await self.contracts.connect(actor, "IIronSwap", pool)
        lp_token = await pool_ref.get_lp_token()

        try:
            await self.approve_token(actor, token, pool, sum(amounts))
            lp_before = await self.balance_of(actor, lp_token)
            if deadline is None:
                # Next block, one transaction per block
                deadline = await self.ledger.timestamp() + 1
            await pool_ref.add_liquidity(amounts, min_to_mint, deadline)
        except TransactionReverted as e:
            raise LiquidityAddRejected(pool, e.reason)

        minted = await self.balance_of(actor, lp_token) - lp_before
        logger.info(f"Added liquidity {amounts} to {pool}: minted {minted} LP")
        return minted
