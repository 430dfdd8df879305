"""
Store Document - the root aggregate persisted in the store file.

Holds wallets, networks and tokens plus three active pointers. The
pointers are checked by ensure_consistent() before every save, and
older document shapes are brought up to date by migrate() on load.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..errors import CorruptedDocument
from .network import (
    PRIMARY_NETWORK_ID,
    Network,
    Token,
    default_networks,
)
from .wallet import WALLET_TYPE_HD, Account, Wallet, string_field

logger = logging.getLogger(__name__)


def is_document_shape(data) -> bool:
    """A plaintext store document is a JSON object with a wallets list."""
    return isinstance(data, dict) and isinstance(data.get("wallets"), list)


def migrate(data: dict) -> bool:
    """
    Bring a raw document dict up to the current schema, in place.

    - networks missing: built-in networks added
    - built-in networks missing from the list: re-added at the front
    - tokens missing: empty list
    - activeNetworkId missing: primary built-in network
    - hd wallets without nextIndex: counter recorded

    Safe to run on every load. Returns True if anything changed.
    """
    changed = False

    networks = data.get("networks")
    if networks is None:
        data["networks"] = [n.to_dict() for n in default_networks()]
        changed = True
    elif not isinstance(networks, list):
        raise CorruptedDocument("networks must be a list")
    else:
        present = {n.get("id") for n in networks if isinstance(n, dict)}
        missing = [n.to_dict() for n in default_networks() if n.id not in present]
        if missing:
            data["networks"] = missing + networks
            changed = True

    tokens = data.get("tokens")
    if tokens is None:
        data["tokens"] = []
        changed = True
    elif not isinstance(tokens, list):
        raise CorruptedDocument("tokens must be a list")

    if not data.get("activeNetworkId"):
        data["activeNetworkId"] = PRIMARY_NETWORK_ID
        changed = True

    for wallet in data.get("wallets", []):
        if isinstance(wallet, dict) and wallet.get("type") == WALLET_TYPE_HD and "nextIndex" not in wallet:
            # Value itself is computed by Wallet.from_dict
            changed = True

    if changed:
        logger.info("Store document migrated to current schema")
    return changed


@dataclass
class StoreDocument:
    """Everything the store persists, in memory."""
    wallets: list[Wallet] = field(default_factory=list)
    networks: list[Network] = field(default_factory=default_networks)
    tokens: list[Token] = field(default_factory=list)
    active_wallet_id: Optional[str] = None
    active_account_address: Optional[str] = None
    active_network_id: Optional[str] = PRIMARY_NETWORK_ID

    # ============================================
    # Lookups
    # ============================================

    def get_wallet(self, wallet_id: Optional[str]) -> Optional[Wallet]:
        for wallet in self.wallets:
            if wallet.id == wallet_id:
                return wallet
        return None

    def get_network(self, network_id: Optional[str]) -> Optional[Network]:
        for network in self.networks:
            if network.id == network_id:
                return network
        return None

    @property
    def active_wallet(self) -> Optional[Wallet]:
        return self.get_wallet(self.active_wallet_id)

    @property
    def active_account(self) -> Optional[Account]:
        wallet = self.active_wallet
        if wallet is None:
            return None
        return wallet.get_account(self.active_account_address)

    @property
    def active_network(self) -> Optional[Network]:
        return self.get_network(self.active_network_id)

    # ============================================
    # Pointers
    # ============================================

    def activate(self, wallet: Wallet, account: Optional[Account] = None) -> None:
        """Point at a wallet and one of its accounts (default: its first)."""
        if account is None:
            account = wallet.first_account
        self.active_wallet_id = wallet.id
        self.active_account_address = account.address if account else None

    def ensure_consistent(self) -> bool:
        """
        Repair dangling active pointers.

        Wallet -> first wallet, account -> first account of the active
        wallet, network -> primary built-in (else first network). Pointers
        fall back to unset when nothing is left. Returns True if changed.
        """
        before = (self.active_wallet_id, self.active_account_address, self.active_network_id)

        if self.active_wallet_id is not None and self.active_wallet is None:
            self.active_wallet_id = self.wallets[0].id if self.wallets else None
            self.active_account_address = None

        wallet = self.active_wallet
        if wallet is None:
            self.active_account_address = None
        elif self.active_account_address is not None:
            account = wallet.get_account(self.active_account_address)
            if account is None:
                first = wallet.first_account
                self.active_account_address = first.address if first else None
            else:
                self.active_account_address = account.address
        elif self.active_wallet_id != before[0]:
            first = wallet.first_account
            self.active_account_address = first.address if first else None

        if self.active_network_id is not None and self.active_network is None:
            if self.get_network(PRIMARY_NETWORK_ID) is not None:
                self.active_network_id = PRIMARY_NETWORK_ID
            else:
                self.active_network_id = self.networks[0].id if self.networks else None

        after = (self.active_wallet_id, self.active_account_address, self.active_network_id)
        if after != before:
            logger.debug("Active pointers repaired")
        return after != before

    # ============================================
    # Serialisation
    # ============================================

    def to_dict(self) -> dict:
        data = {
            "wallets": [w.to_dict() for w in self.wallets],
            "networks": [n.to_dict() for n in self.networks],
            "tokens": [t.to_dict() for t in self.tokens],
        }
        # Unset pointers are omitted, as in older files
        if self.active_wallet_id:
            data["activeWalletId"] = self.active_wallet_id
        if self.active_account_address:
            data["activeAccountAddress"] = self.active_account_address
        if self.active_network_id:
            data["activeNetworkId"] = self.active_network_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "StoreDocument":
        """Build a document from a dict already passed through migrate()."""
        if not is_document_shape(data):
            raise CorruptedDocument("Store document must be an object with a wallets list")

        wallets = [Wallet.from_dict(w) for w in data["wallets"]]
        ids = [w.id for w in wallets]
        if len(set(ids)) != len(ids):
            raise CorruptedDocument("Duplicate wallet ids in store")

        return cls(
            wallets=wallets,
            networks=[Network.from_dict(n) for n in data.get("networks", [])],
            tokens=[Token.from_dict(t) for t in data.get("tokens", [])],
            active_wallet_id=string_field(data, "activeWalletId", "Store") or None,
            active_account_address=string_field(data, "activeAccountAddress", "Store") or None,
            active_network_id=string_field(data, "activeNetworkId", "Store") or None,
        )

    @classmethod
    def create_default(cls) -> "StoreDocument":
        """Empty store: built-in networks, primary network active."""
        return cls()
