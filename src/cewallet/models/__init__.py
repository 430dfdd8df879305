"""
Models package - Data models for cewallet.

Contains:
- Wallet, Account: identities and their key sources
- Network, Token: chain configuration and tracked tokens
- StoreDocument: the persisted root document
- Store, Session: encrypted persistence and the unlocked handle
"""

from .wallet import (
    Wallet,
    Account,
    DerivedKey,
    ImportedKey,
    RawKey,
    Derived,
    SigningIdentity,
    WALLET_TYPE_HD,
    WALLET_TYPE_SIMPLE,
)
from .network import (
    Network,
    Token,
    SEPOLIA_ID,
    ANVIL_ID,
    BUILTIN_NETWORK_IDS,
    default_networks,
)
from .document import StoreDocument, migrate
from .store import Store, Session, SessionState

__all__ = [
    "Wallet",
    "Account",
    "DerivedKey",
    "ImportedKey",
    "RawKey",
    "Derived",
    "SigningIdentity",
    "WALLET_TYPE_HD",
    "WALLET_TYPE_SIMPLE",
    "Network",
    "Token",
    "SEPOLIA_ID",
    "ANVIL_ID",
    "BUILTIN_NETWORK_IDS",
    "default_networks",
    "StoreDocument",
    "migrate",
    "Store",
    "Session",
    "SessionState",
]
