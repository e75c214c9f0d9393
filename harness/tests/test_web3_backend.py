"""
Web3 Backend Tests
Dev-node ledger RPC calls, artifact lookup, contract method mapping

Run: python -m pytest harness/tests/test_web3_backend.py -v
"""

import json

import pytest
from unittest.mock import MagicMock
from web3 import Web3
from web3.exceptions import ContractLogicError

from infrastructure.errors import DeploymentError, SnapshotFailure, TransactionReverted
from infrastructure.ledger import Actor
from infrastructure.rpc import Web3Ledger
from integrations.web3_contracts import ArtifactStore, Web3ContractFactory, Web3ContractRef, _to_camel

SIGNER = Actor(address="0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", index=0)

STRATEGY_ABI = [
    {"type": "function", "name": "readyToClaim", "stateMutability": "view"},
    {"type": "function", "name": "emergencyExit", "stateMutability": "nonpayable"},
    {"type": "function", "name": "swapExactTokensForTokens", "stateMutability": "nonpayable"},
    {"type": "event", "name": "Harvested"},
]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def mock_w3():
    w3 = MagicMock()
    w3.provider.make_request.return_value = {"jsonrpc": "2.0", "id": 1, "result": "0x1"}
    return w3


@pytest.fixture
def contract():
    c = MagicMock()
    c.abi = STRATEGY_ABI
    c.address = "0x4A81f8796e0c6Ad4877A51C86693B0dE8093F2ef"
    return c


@pytest.fixture
def artifacts_dir(tmp_path):
    folder = tmp_path / "artifacts" / "contracts" / "StrategyIronSwap.sol"
    folder.mkdir(parents=True)
    (folder / "StrategyIronSwap.json").write_text(json.dumps({"abi": STRATEGY_ABI, "bytecode": "0x6080"}))
    (folder / "StrategyIronSwap.dbg.json").write_text(json.dumps({"buildInfo": "x"}))
    return tmp_path / "artifacts"


# =============================================================================
# TEST: Web3Ledger
# =============================================================================

class TestWeb3Ledger:
    """evm_* calls against a development node"""

    @pytest.mark.asyncio
    async def test_snapshot(self, mock_w3):
        ledger = Web3Ledger(mock_w3)

        assert await ledger.snapshot() == "0x1"
        mock_w3.provider.make_request.assert_called_with("evm_snapshot", [])

    @pytest.mark.asyncio
    async def test_revert(self, mock_w3):
        mock_w3.provider.make_request.return_value = {"result": True}
        ledger = Web3Ledger(mock_w3)

        assert await ledger.revert("0x1") is True
        mock_w3.provider.make_request.assert_called_with("evm_revert", ["0x1"])

    @pytest.mark.asyncio
    async def test_rpc_error_is_snapshot_failure(self, mock_w3):
        mock_w3.provider.make_request.return_value = {"error": {"code": -32601, "message": "method not found"}}

        with pytest.raises(SnapshotFailure):
            await Web3Ledger(mock_w3).snapshot()

    @pytest.mark.asyncio
    async def test_transport_error_is_snapshot_failure(self, mock_w3):
        mock_w3.provider.make_request.side_effect = ConnectionError("refused")

        with pytest.raises(SnapshotFailure):
            await Web3Ledger(mock_w3).snapshot()

    @pytest.mark.asyncio
    async def test_advance_time_mines(self, mock_w3):
        await Web3Ledger(mock_w3).advance_time(60)

        methods = [c.args[0] for c in mock_w3.provider.make_request.call_args_list]
        assert methods == ["evm_increaseTime", "evm_mine"]
        assert mock_w3.provider.make_request.call_args_list[0].args[1] == [60]

    @pytest.mark.asyncio
    async def test_negative_advance(self, mock_w3):
        with pytest.raises(ValueError):
            await Web3Ledger(mock_w3).advance_time(-1)

    @pytest.mark.asyncio
    async def test_actors_checksummed(self, mock_w3):
        mock_w3.eth.accounts = ["0x2791bca1f2de4661ed88a30c99a7a9449aa84174"]

        actors = await Web3Ledger(mock_w3).get_actors()
        assert actors[0].address == Web3.to_checksum_address(mock_w3.eth.accounts[0])
        assert actors[0].index == 0

    @pytest.mark.asyncio
    async def test_timestamp(self, mock_w3):
        mock_w3.eth.get_block.return_value = {"timestamp": 1_700_000_123}

        assert await Web3Ledger(mock_w3).timestamp() == 1_700_000_123
        mock_w3.eth.get_block.assert_called_with('latest')


# =============================================================================
# TEST: Contract references
# =============================================================================

class TestContractRef:
    """snake_case capability names onto ABI functions"""

    def test_camel_case(self):
        assert _to_camel("balance_of") == "balanceOf"
        assert _to_camel("get_largest_pool") == "getLargestPool"
        assert _to_camel("harvest") == "harvest"

    @pytest.mark.asyncio
    async def test_view_is_call(self, mock_w3, contract):
        contract.functions.readyToClaim.return_value.call.return_value = 42
        ref = Web3ContractRef(mock_w3, contract, SIGNER, "IStrategy")

        assert await ref.ready_to_claim() == 42
        contract.functions.readyToClaim.return_value.call.assert_called_once_with({"from": SIGNER.address})

    @pytest.mark.asyncio
    async def test_write_is_transaction(self, mock_w3, contract):
        contract.functions.emergencyExit.return_value.transact.return_value = b"\x01" * 32
        mock_w3.eth.wait_for_transaction_receipt.return_value = MagicMock(status=1)
        ref = Web3ContractRef(mock_w3, contract, SIGNER, "IStrategy")

        receipt = await ref.emergency_exit()

        assert receipt.status == 1
        contract.functions.emergencyExit.return_value.transact.assert_called_once_with({"from": SIGNER.address})

    @pytest.mark.asyncio
    async def test_failed_receipt(self, mock_w3, contract):
        contract.functions.emergencyExit.return_value.transact.return_value = b"\x01" * 32
        mock_w3.eth.wait_for_transaction_receipt.return_value = MagicMock(status=0)
        ref = Web3ContractRef(mock_w3, contract, SIGNER, "IStrategy")

        with pytest.raises(TransactionReverted) as exc_info:
            await ref.emergency_exit()
        assert exc_info.value.details["tx_hash"] == (b"\x01" * 32).hex()

    @pytest.mark.asyncio
    async def test_logic_error(self, mock_w3, contract):
        contract.functions.emergencyExit.return_value.transact.side_effect = ContractLogicError(
            "execution reverted: Not governance"
        )
        ref = Web3ContractRef(mock_w3, contract, SIGNER, "IStrategy")

        with pytest.raises(TransactionReverted) as exc_info:
            await ref.emergency_exit()
        assert "Not governance" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_alias_and_actor_args(self, mock_w3, contract):
        contract.functions.swapExactTokensForTokens.return_value.transact.return_value = b"\x02" * 32
        mock_w3.eth.wait_for_transaction_receipt.return_value = MagicMock(status=1)
        ref = Web3ContractRef(mock_w3, contract, SIGNER, "IUniswapV2Router02")

        await ref.swap_exact_input(10, 0, ["0xA", "0xB"], SIGNER, 123)

        contract.functions.swapExactTokensForTokens.assert_called_once_with(
            10, 0, ["0xA", "0xB"], SIGNER.address, 123
        )

    def test_unknown_function(self, mock_w3, contract):
        ref = Web3ContractRef(mock_w3, contract, SIGNER, "IStrategy")

        with pytest.raises(AttributeError):
            ref.harvested

    def test_connect_rebinds_actor(self, mock_w3, contract):
        other = Actor(address="0x4A81f8796e0c6Ad4877A51C86693B0dE8093F2ef", index=1)
        ref = Web3ContractRef(mock_w3, contract, SIGNER, "IStrategy").connect(other)

        assert ref._actor == other
        assert ref.address == contract.address


# =============================================================================
# TEST: Artifacts
# =============================================================================

class TestArtifacts:

    def test_load_skips_debug_file(self, artifacts_dir):
        store = ArtifactStore(str(artifacts_dir))

        artifact = store.load("StrategyIronSwap")
        assert artifact["bytecode"] == "0x6080"
        assert store.load("StrategyIronSwap") is artifact

    def test_missing_artifact(self, artifacts_dir):
        with pytest.raises(DeploymentError):
            ArtifactStore(str(artifacts_dir)).load("SmartVault")

    @pytest.mark.asyncio
    async def test_factory_connect(self, mock_w3, artifacts_dir):
        factory = Web3ContractFactory(mock_w3, ArtifactStore(str(artifacts_dir)))

        ref = await factory.connect(SIGNER, "StrategyIronSwap", "0x4a81f8796e0c6ad4877a51c86693b0de8093f2ef")

        kwargs = mock_w3.eth.contract.call_args.kwargs
        assert kwargs["address"] == Web3.to_checksum_address("0x4a81f8796e0c6ad4877a51c86693b0de8093f2ef")
        assert kwargs["decode_tuples"] is True
        assert isinstance(ref, Web3ContractRef)
