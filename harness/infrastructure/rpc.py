# infrastructure/rpc.py
"""
RPC ledger backend for the harness.
Drives a hardhat/anvil style development node (local or forked) through
its evm_* debugging methods.
"""
import logging
from typing import List, Optional

from web3 import Web3

from infrastructure.config import get_config
from infrastructure.errors import SnapshotFailure
from infrastructure.ledger import Actor, Ledger

logger = logging.getLogger("RPC")


def get_rpc_url() -> str:
    """Get the development node RPC URL from config."""
    return get_config().ledger.rpc_url


def get_web3(rpc_url: Optional[str] = None) -> Web3:
    """Get a Web3 instance connected to the development node."""
    url = rpc_url or get_rpc_url()
    return Web3(Web3.HTTPProvider(url))


# Pre-configured instance for quick imports
w3 = None


def get_w3() -> Web3:
    """Get cached Web3 instance (lazy initialization)."""
    global w3
    if w3 is None:
        w3 = get_web3()
    return w3


class Web3Ledger(Ledger):
    """
    Ledger over a development node.

    Usage:
        ledger = Web3Ledger(get_w3())
        snapshot_id = await ledger.snapshot()
        await ledger.advance_time(60)
        await ledger.revert(snapshot_id)
    """

    def __init__(self, web3: Web3 = None):
        self.w3 = web3 or get_w3()

    def _rpc(self, method: str, params: list = None):
        response = self.w3.provider.make_request(method, params or [])
        if "error" in response:
            raise SnapshotFailure(f"{method} failed: {response['error']}")
        return response["result"]

    async def get_actors(self) -> List[Actor]:
        accounts = self.w3.eth.accounts
        return [Actor(address=Web3.to_checksum_address(a), index=i) for i, a in enumerate(accounts)]

    async def snapshot(self) -> str:
        try:
            snapshot_id = self._rpc("evm_snapshot")
        except SnapshotFailure:
            raise
        except Exception as e:
            raise SnapshotFailure("evm_snapshot unavailable on this node", original_error=e)
        logger.debug(f"evm_snapshot -> {snapshot_id}")
        return snapshot_id

    async def revert(self, snapshot_id: str) -> bool:
        try:
            reverted = self._rpc("evm_revert", [snapshot_id])
        except SnapshotFailure:
            raise
        except Exception as e:
            raise SnapshotFailure(f"evm_revert({snapshot_id}) failed", original_error=e)
        logger.debug(f"evm_revert({snapshot_id}) -> {reverted}")
        return bool(reverted)

    async def advance_time(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("Cannot move block time backwards")
        self._rpc("evm_increaseTime", [seconds])
        self._rpc("evm_mine")

    async def timestamp(self) -> int:
        return self.w3.eth.get_block('latest')['timestamp']
