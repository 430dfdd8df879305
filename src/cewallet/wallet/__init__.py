"""
Wallet package - Key handling and wallet management for cewallet.

Contains:
- Envelope encryption and key derivation (crypto)
- Seed phrase, HD derivation and keystore helpers (keys)
- WalletManager: wallets, accounts and the active selection
"""

from .crypto import (
    Envelope,
    KdfParams,
    DEFAULT_KDF,
    derive_key,
    seal,
    open_envelope,
    encode_envelope,
    decode_envelope,
)
from .keys import (
    DerivedAccount,
    generate_mnemonic,
    validate_mnemonic,
    derive_account,
    derive_accounts,
    address_from_private_key,
    decrypt_keystore,
    encrypt_keystore,
    to_local_account,
)
from .manager import WalletManager, IMPORT_ACCOUNT_COUNT

__all__ = [
    # Crypto
    "Envelope",
    "KdfParams",
    "DEFAULT_KDF",
    "derive_key",
    "seal",
    "open_envelope",
    "encode_envelope",
    "decode_envelope",
    # Keys
    "DerivedAccount",
    "generate_mnemonic",
    "validate_mnemonic",
    "derive_account",
    "derive_accounts",
    "address_from_private_key",
    "decrypt_keystore",
    "encrypt_keystore",
    "to_local_account",
    # Manager
    "WalletManager",
    "IMPORT_ACCOUNT_COUNT",
]
