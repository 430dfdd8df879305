"""
cewallet - Password-protected local store for wallets, networks and tokens.

Usage:
    from cewallet import Store, WalletManager

    session = Store("wallets.json").unlock("password")
    wallet, mnemonic = WalletManager(session).create_hd_wallet("Main")
"""

from .errors import StoreError
from .models import Store, Session, SessionState, StoreDocument, Token
from .wallet import WalletManager
from .networks import NetworkManager, TokenManager
from .app import open_store

__version__ = "0.1.0"

__all__ = [
    "StoreError",
    "Store",
    "Session",
    "SessionState",
    "StoreDocument",
    "Token",
    "WalletManager",
    "NetworkManager",
    "TokenManager",
    "open_store",
]
