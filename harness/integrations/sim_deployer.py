"""
Simulated Deployment Surface
Genesis market for the chain simulator plus the deploy/connect surface the
harness drives.

Features:
- build_polygon_fork(): tokens, three swap venues with seeded pairs, the
  IRON 4-token stable pool, its reward farm and reward liquidity
- ForkAddresses: address book of everything laid down at genesis
- SimulatedDeployer: ContractFactory + CoreDeployer over the simulator

Usage:
    chain = ChainSimulator()
    fork = await build_polygon_fork(chain)
    deployer = SimulatedDeployer(chain, fork)
    core = await deployer.deploy_core(admin, 28 * 24 * 3600, 1)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from infrastructure.errors import DeploymentError, TransactionReverted
from infrastructure.ledger import Actor, ContractFactory, CoreContracts, CoreDeployer

from integrations.chain_simulator import ChainSimulator, SimContract
from integrations.sim_contracts import (
    MAX_UINT,
    SimBookkeeper,
    SimController,
    SimFeeRewardForwarder,
    SimPriceCalculator,
    SimRewardFarm,
    SimStableSwap,
    SimSwapRouter,
    SimToken,
    register_sim_contracts,
)

from services.harness_builder import ConversionTargets, StrategyDescriptor
from services.liquidity_bootstrap import FundingBasket

logger = logging.getLogger("SimDeployer")

# Whole-token balances laid down at genesis
ACTOR_NETWORK_BALANCE = 10_000_000
STABLE_POOL_SEED = 1_000_000
FARM_REWARD_PER_SECOND = 10 ** 18


@dataclass
class ForkAddresses:
    """Address book of the simulated fork"""
    network_token: str
    usdc: str
    usdt: str
    dai: str
    weth: str
    mai: str
    link: str
    ice: str
    quick_factory: str
    quick_router: str
    sushi_factory: str
    sushi_router: str
    dfyn_factory: str
    dfyn_router: str
    iron_swap: str
    iron_lp: str
    iron_chef: str
    iron_pool_id: int = 0
    genesis: str = ""
    stable_pool_tokens: List[str] = field(default_factory=list)

    @property
    def routers_by_factory(self) -> Dict[str, str]:
        return {
            self.quick_factory: self.quick_router,
            self.sushi_factory: self.sushi_router,
            self.dfyn_factory: self.dfyn_router,
        }

    @property
    def factories(self) -> List[str]:
        return [self.quick_factory, self.sushi_factory, self.dfyn_factory]

    @property
    def routers(self) -> List[str]:
        return [self.quick_router, self.sushi_router, self.dfyn_router]

    @property
    def basket(self) -> List[str]:
        """Big tokens a test actor buys with the network token"""
        return [self.usdc, self.usdt, self.dai, self.weth, self.link]


async def _deploy_token(chain, genesis, name, symbol, decimals) -> SimToken:
    return await chain.deploy(SimToken, genesis, name, symbol, decimals, genesis.address)


async def _seed_pair(genesis: Actor, router: SimSwapRouter, token_a: SimToken, whole_a: int,
                     token_b: SimToken, whole_b: int):
    amount_a = whole_a * 10 ** await token_a.decimals()
    amount_b = whole_b * 10 ** await token_b.decimals()
    await token_a.connect(genesis).mint(router.address, amount_a)
    await token_b.connect(genesis).mint(router.address, amount_b)
    router.seed_pair(token_a.address, token_b.address, amount_a, amount_b)


async def build_polygon_fork(chain: ChainSimulator) -> ForkAddresses:
    """Lay down the genesis market every harness run starts from."""
    register_sim_contracts(chain)
    genesis = Actor(address=chain.new_address("genesis"), index=-1)

    wmatic = await _deploy_token(chain, genesis, "Wrapped Matic", "WMATIC", 18)
    usdc = await _deploy_token(chain, genesis, "USD Coin", "USDC", 6)
    usdt = await _deploy_token(chain, genesis, "Tether USD", "USDT", 6)
    dai = await _deploy_token(chain, genesis, "Dai Stablecoin", "DAI", 18)
    weth = await _deploy_token(chain, genesis, "Wrapped Ether", "WETH", 18)
    mai = await _deploy_token(chain, genesis, "miMATIC", "MAI", 18)
    link = await _deploy_token(chain, genesis, "ChainLink Token", "LINK", 18)
    ice = await _deploy_token(chain, genesis, "IceToken", "ICE", 18)

    quick_factory = chain.new_address("QuickswapFactory")
    sushi_factory = chain.new_address("SushiswapFactory")
    dfyn_factory = chain.new_address("DfynFactory")
    quick = await chain.deploy(SimSwapRouter, genesis, quick_factory)
    sushi = await chain.deploy(SimSwapRouter, genesis, sushi_factory)
    dfyn = await chain.deploy(SimSwapRouter, genesis, dfyn_factory)

    await _seed_pair(genesis, quick, wmatic, 50_000_000, usdc, 40_000_000)
    await _seed_pair(genesis, quick, wmatic, 10_000_000, usdt, 8_000_000)
    await _seed_pair(genesis, quick, wmatic, 10_000_000, dai, 8_000_000)
    await _seed_pair(genesis, quick, wmatic, 20_000_000, weth, 5_000)
    await _seed_pair(genesis, quick, usdc, 30_000_000, usdt, 30_000_000)
    await _seed_pair(genesis, quick, usdc, 20_000_000, dai, 20_000_000)
    await _seed_pair(genesis, quick, usdc, 5_000_000, mai, 5_000_000)
    await _seed_pair(genesis, sushi, wmatic, 5_000_000, usdc, 4_000_000)
    await _seed_pair(genesis, sushi, usdc, 5_000_000, usdt, 5_000_000)
    await _seed_pair(genesis, dfyn, ice, 2_000_000, usdc, 1_000_000)

    for actor in chain.actors:
        await wmatic.connect(genesis).mint(actor.address, ACTOR_NETWORK_BALANCE * 10 ** 18)

    pool_tokens = [usdc, usdt, dai, mai]
    pool = await chain.deploy(
        SimStableSwap, genesis, [t.address for t in pool_tokens], "IRON Stableswap 4pool", "IS4USD"
    )
    seed = []
    for token in pool_tokens:
        amount = STABLE_POOL_SEED * 10 ** await token.decimals()
        await token.connect(genesis).mint(genesis.address, amount)
        await token.connect(genesis).approve(pool.address, amount)
        seed.append(amount)
    await pool.connect(genesis).add_liquidity(seed, 0, chain.timestamp + 60)
    lp_address = await pool.get_lp_token()

    farm = await chain.deploy(SimRewardFarm, genesis, ice.address)
    await ice.connect(genesis).set_minter(farm.address)
    pool_id = await farm.connect(genesis).add_pool(lp_address, FARM_REWARD_PER_SECOND)
    chain.register_name(SimRewardFarm.NAME, farm.address)

    lp = chain.at(lp_address, sender=genesis.address)
    staked = await lp.balance_of(genesis) // 2
    await lp.approve(farm.address, MAX_UINT)
    await farm.connect(genesis).deposit(pool_id, staked)

    logger.info(f"Genesis market ready at block {chain.block_number}: pool {pool.address}, farm {farm.address}")

    return ForkAddresses(
        network_token=wmatic.address,
        usdc=usdc.address,
        usdt=usdt.address,
        dai=dai.address,
        weth=weth.address,
        mai=mai.address,
        link=link.address,
        ice=ice.address,
        quick_factory=quick_factory,
        quick_router=quick.address,
        sushi_factory=sushi_factory,
        sushi_router=sushi.address,
        dfyn_factory=dfyn_factory,
        dfyn_router=dfyn.address,
        iron_swap=pool.address,
        iron_lp=lp_address,
        iron_chef=farm.address,
        iron_pool_id=pool_id,
        genesis=genesis.address,
        stable_pool_tokens=[t.address for t in pool_tokens],
    )


class SimulatedDeployer(ContractFactory, CoreDeployer):
    """Deployment surface over the chain simulator"""

    def __init__(self, chain: ChainSimulator, fork: ForkAddresses):
        self.chain = chain
        self.fork = fork
        register_sim_contracts(chain)

    async def deploy_contract(self, actor: Actor, name: str, *args) -> SimContract:
        cls = self.chain.contract_types.get(name)
        if cls is None:
            raise DeploymentError(name, f"Unknown contract {name}")
        try:
            contract = await self.chain.deploy(cls, actor, *args)
        except TransactionReverted as e:
            raise DeploymentError(name, f"Constructor of {name} reverted: {e.reason}", original_error=e)
        logger.info(f"Deployed {name} at {contract.address}")
        return contract

    async def connect(self, actor: Actor, interface_name: str, address: str) -> SimContract:
        if self.chain.code_at(address) is None:
            raise DeploymentError(interface_name, f"No contract at {address}")
        return self.chain.at(address, sender=actor.address)

    async def deploy_core(self, admin: Actor, reward_delay_seconds: int,
                          profit_share_numerator: int) -> CoreContracts:
        controller = await self.deploy_contract(admin, SimController.NAME, reward_delay_seconds, profit_share_numerator)
        reward_token = await self.deploy_contract(admin, SimToken.NAME, "TETU Reward Token", "TETU", 18, admin.address)
        forwarder = await self.deploy_contract(admin, SimFeeRewardForwarder.NAME, controller.address)
        bookkeeper = await self.deploy_contract(admin, SimBookkeeper.NAME, controller.address)

        try:
            await controller.set_fee_reward_forwarder(forwarder.address)
            await controller.set_bookkeeper(bookkeeper.address)
            await controller.set_reward_token(reward_token.address)
        except TransactionReverted as e:
            raise DeploymentError(SimController.NAME, f"Core wiring failed: {e.reason}", original_error=e)

        return CoreContracts(
            controller=controller,
            fee_reward_forwarder=forwarder,
            reward_token=reward_token,
            bookkeeper=bookkeeper,
        )

    async def deploy_price_discovery(self, admin: Actor, controller) -> List[SimContract]:
        calculator = await self.deploy_contract(
            admin,
            SimPriceCalculator.NAME,
            controller,
            self.fork.usdc,
            self.fork.factories,
            self.fork.routers,
        )
        return [calculator]


# ============================================
# IRON SWAP TEST FIXTURE
# ============================================

def iron_swap_descriptor(fork: ForkAddresses) -> StrategyDescriptor:
    """The IS4USD farming strategy as the harness should build it"""
    return StrategyDescriptor(
        strategy_name="StrategyIronSwap",
        underlying=fork.iron_lp,
        tokens=list(fork.stable_pool_tokens),
        token_names="USDC_USDT_DAI_MAI",
        factory=fork.dfyn_factory,
        platform_pool_id=fork.iron_pool_id,
    )


def iron_swap_targets(fork: ForkAddresses) -> ConversionTargets:
    return ConversionTargets(quote_token=fork.usdc, default_router=fork.quick_router)


def funding_basket(fork: ForkAddresses, spend_per_token: int) -> FundingBasket:
    return FundingBasket(
        funding_token=fork.network_token,
        router=fork.quick_router,
        tokens=fork.basket,
        spend_per_token=spend_per_token,
    )
