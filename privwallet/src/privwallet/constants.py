"""
Wallet units and coin selection limits.

Amounts are always integer satoshis. BTC values only appear at the edges
(CLI input, human-readable output) and are converted with Decimal.
"""

from __future__ import annotations

from decimal import Decimal

# 1 BTC = 100,000,000 satoshis
SATS_PER_BTC = 100_000_000
BTC_QUANTUM = Decimal("0.00000001")

# Largest subset size the selector enumerates before falling back to
# largest-amount-first. Typical payments are covered by 1-3 coins.
DEFAULT_MAX_SUBSET_SIZE = 8

# Upper bound on covering subsets scored in a single selection
DEFAULT_MAX_ENUMERATED_SUBSETS = 50_000

# Anonymity score at which a coin counts as private (goes to the private pocket)
DEFAULT_ANON_SCORE_TARGET = 5

PRIVATE_POCKET_LABEL = "Private"
