"""
Chain Simulator
Deterministic in-process ledger for running the harness without a node.

Features:
- Whole-ledger state tree (contract storage, block number, timestamp, nonce)
- evm_snapshot / evm_revert semantics (reverting id N drops N and later ids)
- One block per transaction, timestamp +1s, like hardhat automine
- Atomic transactions: a revert leaves no partial state behind
- Deterministic actors from eth_account keys

Contracts live in integrations.sim_contracts; the deployment surface and
the genesis market live in integrations.sim_deployer.
"""

import copy
import functools
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Type

from eth_account import Account
from web3 import Web3

from infrastructure.errors import DeploymentError, TransactionReverted
from infrastructure.ledger import Actor, Ledger, address_of

logger = logging.getLogger("ChainSimulator")

GENESIS_TIMESTAMP = 1_700_000_000
DEFAULT_ACTORS = 10


class ChainSimulator:
    """
    In-memory ledger state plus snapshot bookkeeping.

    Usage:
        chain = ChainSimulator()
        snap = chain.snapshot()
        ...                      # transactions
        chain.revert(snap)       # back to the checkpoint
    """

    def __init__(self, n_actors: int = DEFAULT_ACTORS, chain_id: int = 137):
        self.chain_id = chain_id
        self.state: Dict[str, Any] = {
            "block": 0,
            "timestamp": GENESIS_TIMESTAMP,
            "nonce": 0,
            "code": {},
            "storage": {},
            "names": {},
        }
        self._snapshots: Dict[int, Dict[str, Any]] = {}
        self._snapshot_counter = 0
        self._tx_depth = 0
        self._current_call: Optional[str] = None
        self.contract_types: Dict[str, Type["SimContract"]] = {}

        self.actors: List[Actor] = []
        for i in range(n_actors):
            account = Account.from_key(Web3.keccak(text=f"harness-actor-{i}"))
            self.actors.append(Actor(address=account.address, index=i))

    # ------------------------------------------------------------------
    # Blocks and time
    # ------------------------------------------------------------------

    @property
    def timestamp(self) -> int:
        return self.state["timestamp"]

    @property
    def block_number(self) -> int:
        return self.state["block"]

    def mine(self, seconds: int = 1):
        self.state["block"] += 1
        self.state["timestamp"] += seconds

    def advance_time(self, seconds: int):
        if seconds < 0:
            raise ValueError("Cannot move block time backwards")
        self.mine(seconds)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> str:
        self._snapshot_counter += 1
        self._snapshots[self._snapshot_counter] = copy.deepcopy(self.state)
        return hex(self._snapshot_counter)

    def revert(self, snapshot_id: str) -> bool:
        try:
            key = int(snapshot_id, 16)
        except (TypeError, ValueError):
            return False
        if key not in self._snapshots:
            return False

        self.state = self._snapshots[key]
        for later in [k for k in self._snapshots if k >= key]:
            del self._snapshots[later]
        return True

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self, label: str):
        """One transaction: mines a block, rolls back everything on failure."""
        if self._tx_depth:
            yield
            return

        checkpoint = copy.deepcopy(self.state)
        self._tx_depth += 1
        self._current_call = label
        try:
            self.mine()
            yield
        except Exception:
            self.state = checkpoint
            raise
        finally:
            self._tx_depth -= 1
            self._current_call = None

    # ------------------------------------------------------------------
    # Accounts and code
    # ------------------------------------------------------------------

    def new_address(self, label: str) -> str:
        self.state["nonce"] += 1
        digest = Web3.keccak(text=f"sim:{label}:{self.state['nonce']}").hex()
        return Web3.to_checksum_address("0x" + digest[-40:])

    def code_at(self, address: str) -> Optional[str]:
        return self.state["code"].get(address)

    def register_name(self, name: str, address: str):
        self.state["names"][name] = address

    def named(self, name: str) -> str:
        if name not in self.state["names"]:
            raise DeploymentError(name, f"No well-known contract named {name}")
        return self.state["names"][name]

    def register_contract_type(self, cls: Type["SimContract"], *aliases: str):
        for name in (cls.NAME,) + aliases:
            self.contract_types[name] = cls

    async def deploy(self, cls: Type["SimContract"], deployer: Actor, *args) -> "SimContract":
        args = tuple(_normalize(a) for a in args)
        with self.atomic(f"deploy {cls.NAME}"):
            address = self.new_address(cls.NAME)
            self.state["code"][address] = cls.NAME
            self.state["storage"][address] = {}
            contract = cls(self, address, sender=deployer.address)
            await contract.construct(*args)
        logger.debug(f"Deployed {cls.NAME} at {address}")
        return contract

    def at(self, address: str, sender: Optional[str] = None) -> "SimContract":
        name = self.code_at(address)
        if name is None:
            raise DeploymentError("unknown", f"No contract at {address}")
        return self.contract_types[name](self, address, sender=sender)


class SimulatedLedger(Ledger):
    """Ledger capability over a ChainSimulator"""

    def __init__(self, chain: ChainSimulator):
        self.chain = chain

    async def get_actors(self) -> List[Actor]:
        return list(self.chain.actors)

    async def snapshot(self) -> str:
        return self.chain.snapshot()

    async def revert(self, snapshot_id: str) -> bool:
        return self.chain.revert(snapshot_id)

    async def advance_time(self, seconds: int) -> None:
        self.chain.advance_time(seconds)

    async def timestamp(self) -> int:
        return self.chain.timestamp


# ============================================
# CONTRACT BASE
# ============================================

def transaction(method):
    """Mark a contract method as state-changing (atomic, mines a block)."""
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        args = tuple(_normalize(a) for a in args)
        with self.chain.atomic(f"{self.NAME}.{method.__name__}"):
            return await method(self, *args, **kwargs)
    return wrapper


def _normalize(value):
    if isinstance(value, (Actor, SimContract)):
        return address_of(value)
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


class SimContract:
    """Contract whose storage lives in the chain state tree"""

    NAME = "Contract"

    def __init__(self, chain: ChainSimulator, address: str, sender: Optional[str] = None):
        self.chain = chain
        self.address = address
        self.sender = sender

    def __repr__(self) -> str:
        return f"<{self.NAME} {self.address}>"

    @property
    def store(self) -> Dict[str, Any]:
        return self.chain.state["storage"][self.address]

    @property
    def now(self) -> int:
        return self.chain.timestamp

    async def construct(self, *args):
        """Constructor body, runs inside the deploy transaction."""

    def connect(self, actor) -> "SimContract":
        return type(self)(self.chain, self.address, sender=address_of(actor))

    def call(self, cls: Type["SimContract"], address: str) -> "SimContract":
        """Reference another contract with this contract as msg.sender."""
        return cls(self.chain, address, sender=self.address)

    def require(self, condition: bool, reason: str):
        if not condition:
            method = self.chain._current_call or self.NAME
            raise TransactionReverted(f"{self.NAME}({self.address})", method, reason)
