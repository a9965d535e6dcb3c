"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, Field

from privwallet.constants import BTC_QUANTUM, SATS_PER_BTC


class Coin(BaseModel):
    """Spendable output tracked by the wallet"""

    txid: str = Field(..., pattern=r"^[0-9a-f]{64}$")
    vout: int = Field(..., ge=0)
    amount: int = Field(..., gt=0, description="Value in satoshis")
    script: str = Field(..., min_length=1, description="Owning key/script identity")
    anonymity_score: float = Field(default=1.0, ge=1.0)

    model_config = {"frozen": True}

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.txid, self.vout)

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout} ({self.amount:,} sats)"


@dataclass(frozen=True)
class Cluster:
    """Key identities the wallet believes are linked to each other"""

    cluster_id: str
    members: frozenset[str]
    labels: frozenset[str] = frozenset()

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def label_text(self) -> str:
        return ", ".join(sorted(self.labels))

    @classmethod
    def singleton(cls, script: str) -> Cluster:
        return cls(cluster_id=script, members=frozenset({script}))


def btc_to_sats(value: Decimal | str | int) -> int:
    """
    Convert a BTC amount to integer satoshis.

    Args:
        value: BTC amount as Decimal, decimal string or whole-BTC int

    Returns:
        Amount in satoshis

    Raises:
        TypeError: If value is a float (binary floats cannot hold exact amounts)
        ValueError: If value is not a number or has sub-satoshi precision
    """
    if isinstance(value, float):
        raise TypeError("BTC amounts must be Decimal or str, not float")

    try:
        btc = Decimal(value)
        quantized = btc.quantize(BTC_QUANTUM)
    except InvalidOperation:
        raise ValueError(f"Invalid BTC amount: {value!r}") from None

    if btc.is_nan():
        raise ValueError(f"Invalid BTC amount: {value!r}")
    if btc != quantized:
        raise ValueError(f"BTC amount has sub-satoshi precision: {value}")

    return int(btc * SATS_PER_BTC)


def format_sats(amount: int) -> str:
    """Render an amount as 'N sats (X.XXXXXXXX BTC)'"""
    btc = Decimal(amount) / SATS_PER_BTC
    return f"{amount:,} sats ({btc:.8f} BTC)"
