"""
Wallet Keys - BIP-39 / BIP-44 derivation and key handling.

Thin layer over eth-account and mnemonic that WalletManager calls for:
- generating and validating seed phrases
- deriving accounts from a seed phrase at an index
- resolving a raw private key to its address
- reading and writing password-encrypted keystore files
"""

import json
from pathlib import Path
from typing import Iterable, Optional, Union
from dataclasses import dataclass

# Ethereum
from mnemonic import Mnemonic
from eth_account import Account
from eth_account.hdaccount import seed_from_mnemonic, key_from_seed
from eth_account.signers.local import LocalAccount

from ..errors import InvalidKeystore, InvalidMnemonic, InvalidPrivateKey
from ..models.wallet import Derived, RawKey, SigningIdentity

# Enable HD wallet features
Account.enable_unaudited_hdwallet_features()


# BIP-44 derivation path for Ethereum
ETH_DERIVATION_PATH = "m/44'/60'/0'/0/{}"

DEFAULT_LANGUAGE = "english"
MIN_MNEMONIC_WORDS = 12
VALID_WORD_COUNTS = (12, 15, 18, 21, 24)


@dataclass(frozen=True)
class DerivedAccount:
    """An address derived from a seed phrase."""
    index: int
    path: str       # BIP-44 path (e.g., "m/44'/60'/0'/0/0")
    address: str    # 0x... checksummed address


def derivation_path(index: int) -> str:
    return ETH_DERIVATION_PATH.format(index)


# ============================================
# Seed Phrases
# ============================================

def generate_mnemonic(word_count: int = 12, language: str = DEFAULT_LANGUAGE) -> str:
    """
    Generate a fresh seed phrase.

    Args:
        word_count: 12 (128-bit) up to 24 (256-bit) words
        language: BIP-39 wordlist name
    """
    if word_count not in VALID_WORD_COUNTS:
        raise ValueError(f"word_count must be one of {VALID_WORD_COUNTS}")
    strength = word_count * 32 // 3
    return Mnemonic(language).generate(strength=strength)


def validate_mnemonic(mnemonic: str, language: str = DEFAULT_LANGUAGE) -> str:
    """
    Check a seed phrase and return it with normalised whitespace.

    Raises: InvalidMnemonic if too short or the checksum fails.
    """
    words = mnemonic.split() if isinstance(mnemonic, str) else []
    if len(words) < MIN_MNEMONIC_WORDS:
        raise InvalidMnemonic(
            f"Invalid mnemonic: expected at least {MIN_MNEMONIC_WORDS} words, got {len(words)}"
        )

    phrase = " ".join(words)
    mnemo = Mnemonic(language)
    if not mnemo.check(phrase):
        raise InvalidMnemonic("Invalid mnemonic: checksum or wordlist mismatch")
    return phrase


def derive_private_key(mnemonic: str, index: int) -> bytes:
    """
    Get the private key at an index of a seed phrase.

    WARNING: Handle with extreme care! Only for signing.
    """
    seed = seed_from_mnemonic(mnemonic, passphrase="")
    return key_from_seed(seed, derivation_path(index))


def derive_accounts(mnemonic: str, indices: Iterable[int]) -> list[DerivedAccount]:
    """Derive several addresses, stretching the seed only once."""
    seed = seed_from_mnemonic(mnemonic, passphrase="")
    accounts = []
    for index in indices:
        path = derivation_path(index)
        account = Account.from_key(key_from_seed(seed, path))
        accounts.append(DerivedAccount(index=index, path=path, address=account.address))
    return accounts


def derive_account(mnemonic: str, index: int) -> DerivedAccount:
    """Derive the address at the given index."""
    return derive_accounts(mnemonic, [index])[0]


# ============================================
# Raw Private Keys
# ============================================

def normalize_private_key(private_key: str) -> str:
    """
    Parse a hex private key (with or without 0x prefix).

    Returns: the key as 0x-prefixed lowercase hex
    Raises: InvalidPrivateKey if it is not a valid secp256k1 key
    """
    if not isinstance(private_key, str):
        raise InvalidPrivateKey("Private key must be a hex string")

    pkey = private_key.strip()
    if pkey.startswith("0x") or pkey.startswith("0X"):
        pkey = pkey[2:]

    try:
        pkey_bytes = bytes.fromhex(pkey)
    except ValueError as e:
        raise InvalidPrivateKey("Private key is not valid hex") from e
    if len(pkey_bytes) != 32:
        raise InvalidPrivateKey(f"Private key must be 32 bytes, got {len(pkey_bytes)}")

    try:
        Account.from_key(pkey_bytes)  # Validate
    except Exception as e:
        raise InvalidPrivateKey(f"Invalid private key: {e}") from e

    return "0x" + pkey_bytes.hex()


def address_from_private_key(private_key: str) -> str:
    """Resolve a raw private key to its checksummed address."""
    return Account.from_key(normalize_private_key(private_key)).address


# ============================================
# Keystore Files
# ============================================

def decrypt_keystore(keystore: Union[str, dict], password: str) -> str:
    """
    Recover the private key from a keystore JSON document.

    Raises: InvalidKeystore if the password is wrong or the file is malformed.
    """
    try:
        if isinstance(keystore, str):
            keystore = json.loads(keystore)
        pkey = Account.decrypt(keystore, password)
    except (ValueError, KeyError, TypeError) as e:
        raise InvalidKeystore(f"Could not decrypt keystore: {e}") from e
    return "0x" + bytes(pkey).hex()


def read_keystore_file(file_path: Union[str, Path], password: str) -> str:
    """
    Read a keystore file from disk and decrypt it.

    Raises:
        FileNotFoundError: If the keystore file doesn't exist
        InvalidKeystore: If the password is wrong or the file is malformed
    """
    with open(Path(file_path), 'r') as f:
        raw = f.read()
    return decrypt_keystore(raw, password)


def encrypt_keystore(private_key: str, password: str, kdf: Optional[str] = None,
                     iterations: Optional[int] = None) -> dict:
    """
    Wrap a private key in a password-encrypted keystore document.

    Args:
        kdf: "scrypt" (eth-account default) or "pbkdf2"
        iterations: KDF work factor, or None for the eth-account default
    """
    return Account.encrypt(normalize_private_key(private_key), password, kdf=kdf, iterations=iterations)


# ============================================
# Signing
# ============================================

def private_key_for(identity: SigningIdentity) -> str:
    """The 0x-hex private key behind a signing identity."""
    if isinstance(identity, RawKey):
        return normalize_private_key(identity.private_key)
    if isinstance(identity, Derived):
        return "0x" + derive_private_key(identity.mnemonic, identity.index).hex()
    raise TypeError(f"Unknown signing identity: {type(identity).__name__}")


def to_local_account(identity: SigningIdentity) -> LocalAccount:
    """Get an eth_account LocalAccount for signing."""
    return Account.from_key(private_key_for(identity))
