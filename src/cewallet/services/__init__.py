"""
Services package - Support services for cewallet.

Contains:
- BalanceFetcher: native and ERC-20 balances over JSON-RPC
- Logging configuration and log retention
"""

from .balances import Balance, BalanceFetcher, fetch_active_balances

__all__ = [
    "Balance",
    "BalanceFetcher",
    "fetch_active_balances",
]
