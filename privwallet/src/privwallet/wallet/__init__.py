"""
Wallet models, clustering and coin selection.
"""
