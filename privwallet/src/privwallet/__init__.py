"""
privwallet - Privacy-aware coin selection for a coinjoin wallet

Provides cluster tracking, pockets and the coin selection engine.
"""

__version__ = "0.1.0"

from privwallet.wallet.clustering import ClusterRegistry, ClusterSnapshot
from privwallet.wallet.coin_selection import (
    CoinSelectionError,
    InsufficientFundsError,
    SelectionScore,
    SmartCoinSelector,
)
from privwallet.wallet.models import Cluster, Coin, btc_to_sats, format_sats
from privwallet.wallet.pockets import Pocket, PrivacyControl, get_pockets

__all__ = [
    "Cluster",
    "ClusterRegistry",
    "ClusterSnapshot",
    "Coin",
    "CoinSelectionError",
    "InsufficientFundsError",
    "Pocket",
    "PrivacyControl",
    "SelectionScore",
    "SmartCoinSelector",
    "btc_to_sats",
    "format_sats",
    "get_pockets",
]
