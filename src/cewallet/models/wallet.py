"""
Wallet and Account models.

An account's key comes from exactly one source:
- DerivedKey: a BIP-44 path under its wallet's seed phrase (hd wallets)
- ImportedKey: a raw private key stored in the document

The JSON shape matches the store file written by earlier versions:
    {"address": ..., "name": ..., "path": ...}        # derived
    {"address": ..., "name": ..., "privateKey": ...}  # imported
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional, Union

from ..errors import CorruptedDocument


WALLET_TYPE_HD = "hd"
WALLET_TYPE_SIMPLE = "simple"
WALLET_TYPES = (WALLET_TYPE_HD, WALLET_TYPE_SIMPLE)


def string_field(data: dict, key: str, owner: str) -> Optional[str]:
    """Read an optional string field. Raises CorruptedDocument for other types."""
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise CorruptedDocument(f"{owner}: {key} must be a string")
    return value


def index_from_path(path: str) -> int:
    """Last path component as an index: "m/44'/60'/0'/0/7" -> 7."""
    last = path.rstrip('/').split('/')[-1].rstrip("'")
    if not last.isdigit():
        raise ValueError(f"No index in derivation path: {path}")
    return int(last)


# ============================================
# Key Sources
# ============================================

@dataclass(frozen=True)
class DerivedKey:
    """Account derived from the wallet seed at a BIP-44 path."""
    path: str

    @property
    def index(self) -> int:
        return index_from_path(self.path)


@dataclass(frozen=True)
class ImportedKey:
    """Account backed by an imported raw private key (0x hex)."""
    private_key: str = field(repr=False)


KeySource = Union[DerivedKey, ImportedKey]


# ============================================
# Signing Identities
# ============================================

@dataclass(frozen=True)
class RawKey:
    """Sign with this private key directly."""
    private_key: str = field(repr=False)


@dataclass(frozen=True)
class Derived:
    """Re-derive the signing key from a seed phrase at an index."""
    mnemonic: str = field(repr=False)
    index: int


SigningIdentity = Union[RawKey, Derived]


# ============================================
# Account
# ============================================

@dataclass
class Account:
    """One spendable identity."""
    address: str        # 0x... checksummed address
    name: str           # User-friendly label
    key_source: KeySource

    @property
    def is_derived(self) -> bool:
        return isinstance(self.key_source, DerivedKey)

    @property
    def is_imported(self) -> bool:
        return isinstance(self.key_source, ImportedKey)

    def matches(self, address: Optional[str]) -> bool:
        """Compare addresses ignoring checksum case."""
        return address is not None and self.address.lower() == address.lower()

    def to_dict(self) -> dict:
        data = {"address": self.address, "name": self.name}
        if isinstance(self.key_source, DerivedKey):
            data["path"] = self.key_source.path
        else:
            data["privateKey"] = self.key_source.private_key
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        if not isinstance(data, dict) or not data.get("address"):
            raise CorruptedDocument("Account entry without an address")

        address = string_field(data, "address", "Account")
        path = string_field(data, "path", f"Account {address}")
        private_key = string_field(data, "privateKey", f"Account {address}")
        name = string_field(data, "name", f"Account {address}")
        if path and not private_key:
            try:
                index_from_path(path)
            except ValueError as e:
                raise CorruptedDocument(str(e)) from e
            source = DerivedKey(path=path)
        elif private_key and not path:
            source = ImportedKey(private_key=private_key)
        else:
            raise CorruptedDocument(
                f"Account {data['address']} must have exactly one of path or privateKey"
            )

        return cls(
            address=address,
            name=name or address,
            key_source=source,
        )


# ============================================
# Wallet
# ============================================

@dataclass
class Wallet:
    """A named container of accounts."""
    id: str
    name: str
    type: str                       # hd | simple
    accounts: list[Account] = field(default_factory=list)
    mnemonic: Optional[str] = field(default=None, repr=False)
    next_index: int = 0             # Next derivation index (hd only)

    @classmethod
    def create_hd(cls, name: str, mnemonic: str) -> "Wallet":
        """Create a new seed-backed wallet with no accounts yet."""
        if not mnemonic:
            raise ValueError("hd wallets need a seed phrase")
        return cls(id=str(uuid.uuid4()), name=name, type=WALLET_TYPE_HD, mnemonic=mnemonic)

    @classmethod
    def create_simple(cls, name: str) -> "Wallet":
        """Create a new wallet for independently imported keys."""
        return cls(id=str(uuid.uuid4()), name=name, type=WALLET_TYPE_SIMPLE)

    @property
    def is_hd(self) -> bool:
        return self.type == WALLET_TYPE_HD and bool(self.mnemonic)

    @property
    def first_account(self) -> Optional[Account]:
        return self.accounts[0] if self.accounts else None

    def get_account(self, address: Optional[str]) -> Optional[Account]:
        """Find an account by 0x address."""
        for account in self.accounts:
            if account.matches(address):
                return account
        return None

    def remove_account(self, address: str) -> Optional[Account]:
        """Remove an account. Returns the removed account or None."""
        for i, account in enumerate(self.accounts):
            if account.matches(address):
                return self.accounts.pop(i)
        return None

    def derived_indices(self) -> list[int]:
        return [a.key_source.index for a in self.accounts if a.is_derived]

    def take_next_index(self) -> int:
        """Reserve the next derivation index. Indices are never handed out twice."""
        index = self.next_index
        self.next_index += 1
        return index

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "accounts": [a.to_dict() for a in self.accounts],
        }
        if self.type == WALLET_TYPE_HD:
            data["mnemonic"] = self.mnemonic
            data["nextIndex"] = self.next_index
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Wallet":
        if not isinstance(data, dict) or not data.get("id"):
            raise CorruptedDocument("Wallet entry without an id")

        wallet_id = string_field(data, "id", "Wallet")
        name = string_field(data, "name", f"Wallet {wallet_id}")
        wallet_type = data.get("type")
        if wallet_type not in WALLET_TYPES:
            raise CorruptedDocument(f"Wallet {data['id']} has unknown type: {wallet_type}")

        mnemonic = string_field(data, "mnemonic", f"Wallet {wallet_id}") or None
        if wallet_type == WALLET_TYPE_HD and not mnemonic:
            raise CorruptedDocument(f"hd wallet {data['id']} has no seed phrase")
        if wallet_type == WALLET_TYPE_SIMPLE and mnemonic:
            raise CorruptedDocument(f"simple wallet {data['id']} carries a seed phrase")

        raw_accounts = data.get("accounts") or []
        if not isinstance(raw_accounts, list):
            raise CorruptedDocument(f"Wallet {wallet_id}: accounts must be a list")
        accounts = [Account.from_dict(a) for a in raw_accounts]
        if wallet_type == WALLET_TYPE_SIMPLE and any(a.is_derived for a in accounts):
            raise CorruptedDocument(f"simple wallet {data['id']} has derived accounts")

        wallet = cls(
            id=wallet_id,
            name=name or "",
            type=wallet_type,
            accounts=accounts,
            mnemonic=mnemonic,
        )
        try:
            stored_next = int(data.get("nextIndex", 0))
        except (TypeError, ValueError) as e:
            raise CorruptedDocument(f"Wallet {data['id']} has a bad nextIndex") from e

        indices = wallet.derived_indices()
        wallet.next_index = max(stored_next, max(indices) + 1 if indices else 0)
        return wallet
