"""
Download Names
Exports vault names and asset symbols of every vault in the bookkeeper.

Writes two flat JSON maps into the scratch directory:
- assets_names.json   lower-cased asset address -> symbol
- vaults_names.json   lower-cased vault address -> vault name

Usage:
    HARNESS_BOOKKEEPER=0x... HARNESS_CONTRACT_READER=0x... \
        python harness/scripts/download_names.py
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Tuple

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from infrastructure.ledger import Actor, ContractFactory

logger = logging.getLogger("DownloadNames")

DEFAULT_OUT_DIR = "./tmp"


async def download_names(
    contracts: ContractFactory,
    actor: Actor,
    bookkeeper_address: str,
    reader_address: str,
    out_dir: str = DEFAULT_OUT_DIR,
) -> Tuple[Dict[str, str], Dict[str, str]]:
    bookkeeper = await contracts.connect(actor, "Bookkeeper", bookkeeper_address)
    reader = await contracts.connect(actor, "ContractReader", reader_address)

    vaults = await bookkeeper.vaults()
    logger.info(f"vaults {len(vaults)}")

    assets_names: Dict[str, str] = {}
    vaults_names: Dict[str, str] = {}
    for vault in vaults:
        info = await reader.vault_info(vault)
        logger.info(f"vault {info.name}")
        vaults_names[vault.lower()] = info.name

        for asset in info.assets:
            token = await contracts.connect(actor, "IERC20", asset)
            assets_names[asset.lower()] = await token.symbol()

    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    with open(out / "assets_names.json", "w", encoding="utf8") as f:
        json.dump(assets_names, f)
    with open(out / "vaults_names.json", "w", encoding="utf8") as f:
        json.dump(vaults_names, f)

    logger.info(f"done: {len(assets_names)} assets, {len(vaults_names)} vaults -> {out}")
    return assets_names, vaults_names


async def main():
    from infrastructure.rpc import Web3Ledger
    from integrations.web3_contracts import Web3ContractFactory

    bookkeeper = os.getenv("HARNESS_BOOKKEEPER")
    reader = os.getenv("HARNESS_CONTRACT_READER")
    if not bookkeeper or not reader:
        logger.error("HARNESS_BOOKKEEPER and HARNESS_CONTRACT_READER must be set")
        return 1

    ledger = Web3Ledger()
    signer = (await ledger.get_actors())[0]
    await download_names(Web3ContractFactory(ledger.w3), signer, bookkeeper, reader,
                         os.getenv("HARNESS_NAMES_DIR", DEFAULT_OUT_DIR))
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    sys.exit(asyncio.run(main()))
