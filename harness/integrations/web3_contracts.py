"""
Web3 Contract Factory
Deploys and connects contracts on a development node from hardhat artifacts.

Features:
- Artifact lookup by contract or interface name (abi + bytecode)
- snake_case method access mapped onto camelCase ABI functions
- View calls vs transactions chosen from the ABI stateMutability
- Reverts surfaced as TransactionReverted
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from web3 import Web3
from web3.exceptions import ContractLogicError

from infrastructure.config import get_config
from infrastructure.errors import DeploymentError, TransactionReverted
from infrastructure.ledger import Actor, ContractFactory, address_of
from infrastructure.rpc import get_w3

logger = logging.getLogger("Web3Contracts")

# Capability names whose ABI function does not follow the camelCase rule
METHOD_ALIASES = {
    "swap_exact_input": "swapExactTokensForTokens",
    "get_price_per_full_share": "getPricePerFullShare",
}

READ_ONLY = ("view", "pure")


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class ArtifactStore:
    """Hardhat artifact lookup"""

    def __init__(self, artifacts_dir: str = None):
        self.root = Path(artifacts_dir or get_config().ledger.artifacts_dir)
        self._cache: Dict[str, Dict] = {}

    def load(self, name: str) -> Dict:
        if name in self._cache:
            return self._cache[name]

        matches = [
            p for p in self.root.rglob(f"{name}.json")
            if not p.name.endswith(".dbg.json")
        ]
        if not matches:
            raise DeploymentError(name, f"No artifact named {name} under {self.root}")

        with open(matches[0], "r", encoding="utf8") as f:
            artifact = json.load(f)

        self._cache[name] = artifact
        return artifact


class Web3ContractRef:
    """
    web3 contract bound to an actor.

    Usage:
        strategy = await factory.connect(signer, "IStrategy", address)
        await strategy.ready_to_claim()      # readyToClaim().call()
        await strategy.emergency_exit()      # emergencyExit().transact()
    """

    def __init__(self, w3: Web3, contract, actor: Actor, name: str, receipt_timeout: int = 120):
        self._w3 = w3
        self._contract = contract
        self._actor = actor
        self._name = name
        self._receipt_timeout = receipt_timeout
        self._functions = {
            entry["name"]: entry
            for entry in contract.abi
            if entry.get("type") == "function"
        }

    @property
    def address(self) -> str:
        return self._contract.address

    def connect(self, actor: Actor) -> "Web3ContractRef":
        return Web3ContractRef(self._w3, self._contract, actor, self._name, self._receipt_timeout)

    def __getattr__(self, attr: str):
        if attr.startswith("_"):
            raise AttributeError(attr)

        fn_name = METHOD_ALIASES.get(attr, _to_camel(attr))
        entry = self._functions.get(fn_name)
        if entry is None:
            raise AttributeError(f"{self._name} has no function {fn_name}")

        async def invoke(*args):
            return await self._invoke(fn_name, entry, *args)

        invoke.__name__ = attr
        return invoke

    async def _invoke(self, fn_name: str, entry: Dict, *args) -> Any:
        args = [address_of(a) if isinstance(a, (Actor, Web3ContractRef)) else a for a in args]
        fn = getattr(self._contract.functions, fn_name)(*args)
        sender = {"from": self._actor.address}

        if entry.get("stateMutability") in READ_ONLY:
            return fn.call(sender)

        try:
            tx_hash = fn.transact(sender)
        except ContractLogicError as e:
            raise TransactionReverted(self._name, fn_name, str(e))

        receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        if receipt.status != 1:
            raise TransactionReverted(self._name, fn_name, "status 0", tx_hash=tx_hash.hex())
        return receipt


class Web3ContractFactory(ContractFactory):
    """ContractFactory over a development node"""

    def __init__(self, w3: Web3 = None, store: ArtifactStore = None):
        self.w3 = w3 or get_w3()
        self.store = store or ArtifactStore()
        self.receipt_timeout = get_config().ledger.receipt_timeout

    async def deploy_contract(self, actor: Actor, name: str, *args) -> Web3ContractRef:
        artifact = self.store.load(name)
        factory = self.w3.eth.contract(abi=artifact["abi"], bytecode=artifact["bytecode"])
        args = [address_of(a) if isinstance(a, (Actor, Web3ContractRef)) else a for a in args]

        try:
            tx_hash = factory.constructor(*args).transact({"from": actor.address})
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except ContractLogicError as e:
            raise DeploymentError(name, f"Constructor of {name} reverted", original_error=e)

        if receipt.status != 1 or not receipt.contractAddress:
            raise DeploymentError(name, f"Deployment of {name} failed in tx {tx_hash.hex()}")

        logger.info(f"Deployed {name} at {receipt.contractAddress}")
        return await self.connect(actor, name, receipt.contractAddress)

    async def connect(self, actor: Actor, interface_name: str, address: str) -> Web3ContractRef:
        artifact = self.store.load(interface_name)
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=artifact["abi"],
            decode_tuples=True
        )
        return Web3ContractRef(self.w3, contract, actor, interface_name, self.receipt_timeout)
