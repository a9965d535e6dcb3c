"""
JSON wallet snapshots.

A snapshot is what the UTXO tracking layer hands to selection: the spendable
coins plus the cluster assignment of their scripts.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from privwallet.wallet.clustering import ClusterRegistry, ClusterSnapshot
from privwallet.wallet.models import Coin


class ClusterEntry(BaseModel):
    members: list[str] = Field(..., min_length=1)
    labels: list[str] = Field(default_factory=list)


class WalletSnapshot(BaseModel):
    coins: list[Coin] = Field(default_factory=list)
    clusters: list[ClusterEntry] = Field(default_factory=list)

    def cluster_snapshot(self) -> ClusterSnapshot:
        registry = ClusterRegistry()
        for entry in self.clusters:
            for script in entry.members:
                registry.add_key(script, entry.labels)
            registry.link(*entry.members)
        return registry.snapshot()

    def find_coin(self, outpoint: str) -> Coin:
        """Look up a coin by 'txid:vout'"""
        txid, sep, vout = outpoint.rpartition(":")
        if not sep or not vout.isdigit():
            raise ValueError(f"Invalid outpoint (expected txid:vout): {outpoint}")

        for coin in self.coins:
            if coin.outpoint == (txid, int(vout)):
                return coin
        raise ValueError(f"Coin not found in snapshot: {outpoint}")


def load_snapshot(path: Path) -> WalletSnapshot:
    """
    Load a wallet snapshot from a JSON file.

    Raises:
        ValueError: If the file is missing, not JSON, or fails validation
    """
    if not path.exists():
        raise ValueError(f"Snapshot file not found: {path}")

    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Snapshot is not valid JSON: {e}") from e

    try:
        return WalletSnapshot.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid snapshot: {e}") from e
