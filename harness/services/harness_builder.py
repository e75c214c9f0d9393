"""
Harness Builder
Deploys and wires everything a strategy test needs, then funds the user.

Build order:
1. protocol core (controller, forwarder, reward token, bookkeeper)
2. price calculator
3. long + short conversion path per reward token
4. vault + strategy, registered with the controller
5. liquidity bootstrap for the user against the target pool token

Any failure propagates: a half-built harness is never returned.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional

from infrastructure.config import HarnessConfig, get_config
from infrastructure.errors import DeploymentError
from infrastructure.ledger import Actor, ContractFactory, CoreContracts, CoreDeployer, Ledger, address_of

from services.conversion_routes import ConversionRoute, VenueBook, long_route, register_routes, short_route
from services.liquidity_bootstrap import BootstrapReport, FundingBasket, LiquidityBootstrap
from services.price_oracle import PriceOracleAdapter

logger = logging.getLogger("HarnessBuilder")


@dataclass
class StrategyDescriptor:
    """What to deploy and which pool token to bootstrap"""
    strategy_name: str
    underlying: str
    tokens: List[str]
    token_names: str
    factory: str
    platform_pool_id: Any
    target_index: Optional[int] = None
    base_amount_quote: Optional[int] = None
    vault_name: Optional[str] = None

    @property
    def target_token(self) -> str:
        return self.tokens[self.target_index]


@dataclass
class ConversionTargets:
    """Where reward tokens are liquidated to"""
    quote_token: str
    default_router: str


@dataclass
class StrategyHarness:
    """Everything a check needs. Valid until the outer scope rolls back."""
    underlying: str
    signer: Actor
    user: Actor
    core: CoreContracts
    vault: Any
    strategy: Any
    lp_for_target_token: Any
    calculator: Any
    oracle: PriceOracleAdapter
    liquidity: LiquidityBootstrap
    bootstrap: BootstrapReport
    descriptor: StrategyDescriptor
    routes: List[ConversionRoute] = field(default_factory=list)

    @property
    def warnings(self):
        return self.bootstrap.warnings

    async def underlying_token(self, actor: Actor = None):
        return await self.liquidity.contracts.connect(actor or self.user, "IERC20", self.underlying)

    async def user_underlying_balance(self) -> int:
        return await (await self.underlying_token()).balance_of(self.user.address)


class HarnessBuilder:
    """
    Usage:
        builder = HarnessBuilder(ledger, deployer, deployer, venues, basket)
        harness = await builder.build(descriptor, [fork.ice], ConversionTargets(usdc, quick_router))
    """

    def __init__(
        self,
        ledger: Ledger,
        core_deployer: CoreDeployer,
        contracts: ContractFactory,
        venues: VenueBook,
        basket: Optional[FundingBasket] = None,
        config: Optional[HarnessConfig] = None,
    ):
        self.ledger = ledger
        self.core_deployer = core_deployer
        self.contracts = contracts
        self.venues = venues
        self.basket = basket
        self.config = config or get_config()

    async def _actors(self):
        actors = await self.ledger.get_actors()
        if len(actors) < 2:
            raise DeploymentError("actors", f"Ledger exposes {len(actors)} actor(s), need a signer and a user")
        return actors[0], actors[1]

    async def register_conversion_routes(
        self,
        core: CoreContracts,
        descriptor: StrategyDescriptor,
        reward_tokens: List[str],
        targets: ConversionTargets,
    ) -> List[ConversionRoute]:
        routes = []
        for reward_token in reward_tokens:
            routes.append(long_route(
                reward_token, targets.quote_token, core.reward_token,
                self.venues, descriptor.factory, targets.default_router,
            ))
            routes.append(short_route(reward_token, targets.quote_token, self.venues, descriptor.factory))
        await register_routes(core.fee_reward_forwarder, routes)
        return routes

    async def deploy_vault_and_strategy(self, signer: Actor, core: CoreContracts, descriptor: StrategyDescriptor):
        vault_name = descriptor.vault_name or f"TETU_{descriptor.token_names}"
        vault = await self.contracts.deploy_contract(
            signer,
            "SmartVault",
            vault_name,
            core.controller,
            descriptor.underlying,
            self.config.core.reward_delay_seconds,
        )
        strategy = await self.contracts.deploy_contract(
            signer,
            descriptor.strategy_name,
            core.controller,
            vault,
            descriptor.underlying,
            descriptor.tokens,
            descriptor.platform_pool_id,
        )
        await core.controller.add_vault_and_strategy(vault.address, strategy.address)
        logger.info(f"Vault {vault_name} at {vault.address} runs {descriptor.strategy_name} at {strategy.address}")
        return vault, strategy

    async def build(
        self,
        descriptor: StrategyDescriptor,
        reward_tokens: List[str],
        conversion_targets: ConversionTargets,
    ) -> StrategyHarness:
        bootstrap_config = self.config.bootstrap
        descriptor = replace(
            descriptor,
            target_index=bootstrap_config.target_token_index if descriptor.target_index is None else descriptor.target_index,
            base_amount_quote=descriptor.base_amount_quote or bootstrap_config.base_amount_quote,
        )
        reward_tokens = [address_of(t) for t in reward_tokens]

        signer, user = await self._actors()
        logger.info(f"Building harness for {descriptor.strategy_name} {descriptor.token_names}")

        core = await self.core_deployer.deploy_core(
            signer,
            self.config.core.reward_delay_seconds,
            self.config.core.profit_share_numerator,
        )
        calculator = (await self.core_deployer.deploy_price_discovery(signer, core.controller))[0]

        routes = await self.register_conversion_routes(core, descriptor, reward_tokens, conversion_targets)
        vault, strategy = await self.deploy_vault_and_strategy(signer, core, descriptor)

        lp_for_target_token = await self.contracts.connect(signer, "IIronLpToken", descriptor.underlying)
        pool = await lp_for_target_token.swap()

        oracle = PriceOracleAdapter(calculator, self.contracts, user)
        liquidity = LiquidityBootstrap(
            self.ledger,
            self.contracts,
            oracle,
            self.venues,
            pool,
            basket=self.basket,
            target_index=descriptor.target_index,
        )
        report = await liquidity.bootstrap(user, descriptor.target_token, descriptor.base_amount_quote)

        logger.info("Preparations completed")
        return StrategyHarness(
            underlying=descriptor.underlying,
            signer=signer,
            user=user,
            core=core,
            vault=vault,
            strategy=strategy,
            lp_for_target_token=lp_for_target_token,
            calculator=calculator,
            oracle=oracle,
            liquidity=liquidity,
            bootstrap=report,
            descriptor=descriptor,
            routes=routes,
        )
