"""
Ledger Capability Contracts
What the harness needs from a ledger environment and its contracts.

Two backends implement these:
- integrations.chain_simulator (in-process, deterministic)
- infrastructure.rpc + integrations.web3_contracts (hardhat/anvil node)

Contract references are duck-typed. Every method is awaitable and uses
snake_case names; the web3 backend maps them onto camelCase ABI functions.

    strategy: harvest, emergency_exit, ready_to_claim,
              invested_underlying_balance, underlying, vault
    vault:    deposit, withdraw, withdraw_all, underlying_balance_in_vault,
              underlying_balance_with_investment, balance_of, strategy, underlying
    token:    balance_of, approve, decimals, symbol, total_supply
    venue:    swap_exact_input, add_liquidity
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class Actor:
    """Account able to send transactions on the ledger"""
    address: str
    index: int = 0

    def __str__(self) -> str:
        return self.address


@dataclass
class CoreContracts:
    """Handles returned by a protocol core deployment"""
    controller: Any
    fee_reward_forwarder: Any
    reward_token: Any
    bookkeeper: Any


class Ledger(ABC):
    """Simulated ledger: accounts, checkpoints and block time"""

    @abstractmethod
    async def get_actors(self) -> List[Actor]:
        """Ordered actors; index 0 is the deployer/admin."""

    @abstractmethod
    async def snapshot(self) -> str:
        """Checkpoint the whole ledger state, returning the backend id."""

    @abstractmethod
    async def revert(self, snapshot_id: str) -> bool:
        """Restore a checkpoint. Later checkpoints become unusable."""

    @abstractmethod
    async def advance_time(self, seconds: int) -> None:
        """Move block time forward and mine a block."""

    @abstractmethod
    async def timestamp(self) -> int:
        """Timestamp of the latest block."""


class ContractFactory(ABC):
    """Deploys contracts and binds references to an actor"""

    @abstractmethod
    async def deploy_contract(self, actor: Actor, name: str, *args) -> Any:
        ...

    @abstractmethod
    async def connect(self, actor: Actor, interface_name: str, address: str) -> Any:
        ...


class CoreDeployer(ABC):
    """Protocol deployment surface"""

    @abstractmethod
    async def deploy_core(
        self,
        admin: Actor,
        reward_delay_seconds: int,
        profit_share_numerator: int
    ) -> CoreContracts:
        ...

    @abstractmethod
    async def deploy_price_discovery(self, admin: Actor, controller: Any) -> List[Any]:
        ...


def address_of(target: Any) -> str:
    """Address of a contract reference, actor or plain address string"""
    if isinstance(target, str):
        return target
    return target.address
