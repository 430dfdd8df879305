"""
Wallet Crypto - Envelope encryption for the wallet store.

Industry-standard security:
- Argon2id key derivation (memory-hard), scrypt for older stores
- AES-256-GCM authenticated encryption
- Fresh 96-bit nonce for every encryption

The whole store document is sealed with one key derived from the user's
password. Keys never exist on disk.
"""

import os
import json
import secrets
import logging
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

# Cryptography
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from argon2.low_level import hash_secret_raw, Type

from ..errors import CorruptedDocument, IncorrectPassword

logger = logging.getLogger(__name__)


# ============================================
# Security Constants
# ============================================

# Argon2id parameters (OWASP recommendations for high-security)
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 4

# scrypt parameters used by stores written before the kdf block existed
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1

# AES-GCM constants
AES_KEY_SIZE = 32  # 256 bits
AES_IV_SIZE = 12  # 96 bits (recommended for GCM)
AES_TAG_SIZE = 16  # 128 bits
SALT_SIZE = 16  # 128 bits

# Envelope format version written by this package
ENVELOPE_VERSION = 2

# Secure file permissions (Unix only)
SECURE_FILE_MODE = 0o600  # Owner read/write only


def set_secure_permissions(filepath: Path) -> None:
    """
    Set restrictive file permissions on Unix systems.

    Sets file to mode 0600 (owner read/write only) to protect wallet data.
    No-op on Windows (NTFS uses ACLs, not Unix permissions).
    """
    if os.name == 'posix':
        try:
            os.chmod(filepath, SECURE_FILE_MODE)
        except OSError as e:
            # Best effort - don't fail save operation if chmod fails
            logger.warning(f"Could not restrict permissions on {filepath}: {e}")


def write_json_atomic(filepath: Path, data: dict) -> None:
    """
    Write a JSON document so readers see either the old or the new file.

    Writes to a sibling temp file, fsyncs it, then renames over the target.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    temp_path = filepath.with_suffix('.tmp')
    with open(temp_path, 'w') as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    set_secure_permissions(temp_path)

    temp_path.replace(filepath)
    set_secure_permissions(filepath)


# ============================================
# Key Derivation
# ============================================

@dataclass(frozen=True)
class KdfParams:
    """Password KDF selection and cost parameters."""
    algorithm: str = "argon2id"     # argon2id | scrypt
    time_cost: int = ARGON2_TIME_COST
    memory_cost: int = ARGON2_MEMORY_COST  # KiB
    parallelism: int = ARGON2_PARALLELISM
    n: int = SCRYPT_N
    r: int = SCRYPT_R
    p: int = SCRYPT_P

    def to_dict(self) -> dict:
        if self.algorithm == "scrypt":
            return {"algorithm": "scrypt", "n": self.n, "r": self.r, "p": self.p}
        return {
            "algorithm": self.algorithm,
            "time_cost": self.time_cost,
            "memory_cost": self.memory_cost,
            "parallelism": self.parallelism,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "KdfParams":
        """
        Read a kdf block.

        A missing block means a store written before kdf blocks, sealed
        with scrypt. Raises CorruptedDocument for unusable parameters.
        """
        if not data:
            return LEGACY_SCRYPT
        if not isinstance(data, dict):
            raise CorruptedDocument("Invalid kdf block")

        algorithm = data.get("algorithm")
        try:
            if algorithm == "scrypt":
                params = cls(
                    algorithm="scrypt",
                    n=int(data.get("n", SCRYPT_N)),
                    r=int(data.get("r", SCRYPT_R)),
                    p=int(data.get("p", SCRYPT_P)),
                )
            elif algorithm == "argon2id":
                params = cls(
                    algorithm="argon2id",
                    time_cost=int(data["time_cost"]),
                    memory_cost=int(data["memory_cost"]),
                    parallelism=int(data["parallelism"]),
                )
            else:
                raise CorruptedDocument(f"Unsupported kdf algorithm: {algorithm}")
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptedDocument(f"Invalid kdf parameters: {e}") from e

        problem = params.check()
        if problem:
            raise CorruptedDocument(f"Invalid kdf parameters: {problem}")
        return params

    def check(self) -> Optional[str]:
        """Describe why these parameters cannot derive a key, or None if usable."""
        if self.algorithm == "scrypt":
            if self.n <= 1 or self.n & (self.n - 1):
                return f"scrypt n must be a power of 2 greater than 1, got {self.n}"
            if self.r < 1 or self.p < 1:
                return "scrypt r and p must be at least 1"
            return None
        if self.time_cost < 1 or self.parallelism < 1:
            return "argon2 time_cost and parallelism must be at least 1"
        if self.memory_cost < 8 * self.parallelism:
            return "argon2 memory_cost must be at least 8 KiB per lane"
        return None


DEFAULT_KDF = KdfParams()
LEGACY_SCRYPT = KdfParams(algorithm="scrypt")


def kdf_from_settings(settings: dict) -> KdfParams:
    """KDF for new stores: the settings "kdf" block, else Argon2id defaults."""
    block = settings.get("kdf")
    if not block:
        return DEFAULT_KDF
    return KdfParams.from_dict(block)


def generate_salt() -> bytes:
    """Fresh 128-bit salt. Only used at creation, upgrade or password change."""
    return secrets.token_bytes(SALT_SIZE)


def derive_key(password: str, salt: bytes, params: KdfParams = DEFAULT_KDF) -> bytes:
    """
    Derive a 256-bit encryption key from a password.

    Argon2id is memory-hard, making brute-force attacks expensive.
    With the default parameters each password guess requires ~64MB RAM.
    The same password and salt always give the same key.
    """
    secret = password.encode('utf-8')

    if params.algorithm == "scrypt":
        kdf = Scrypt(salt=salt, length=AES_KEY_SIZE, n=params.n, r=params.r, p=params.p)
        return kdf.derive(secret)

    return hash_secret_raw(
        secret=secret,
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=AES_KEY_SIZE,
        type=Type.ID
    )


# ============================================
# Envelope
# ============================================

@dataclass(frozen=True)
class Envelope:
    """Output of one AES-GCM encryption."""
    iv: bytes
    tag: bytes
    ciphertext: bytes


def seal(plaintext: bytes, key: bytes) -> Envelope:
    """
    Encrypt plaintext under key.

    The nonce is generated here on every call and never accepted from
    the caller, so a (key, nonce) pair cannot repeat.
    """
    iv = secrets.token_bytes(AES_IV_SIZE)
    aesgcm = AESGCM(bytes(key))
    ciphertext_and_tag = aesgcm.encrypt(iv, plaintext, None)

    return Envelope(
        iv=iv,
        tag=ciphertext_and_tag[-AES_TAG_SIZE:],
        ciphertext=ciphertext_and_tag[:-AES_TAG_SIZE],
    )


def open_envelope(envelope: Envelope, key: bytes) -> bytes:
    """
    Decrypt an envelope.

    Raises: IncorrectPassword if the key is wrong or data is tampered.
    """
    aesgcm = AESGCM(bytes(key))
    try:
        return aesgcm.decrypt(envelope.iv, envelope.ciphertext + envelope.tag, None)
    except InvalidTag as e:
        raise IncorrectPassword() from e


# ============================================
# Envelope Document
# ============================================

def is_envelope(data) -> bool:
    """Check whether a parsed store file carries the envelope marker."""
    return isinstance(data, dict) and data.get("encrypted") is True


def encode_envelope(envelope: Envelope, salt: bytes, kdf: KdfParams) -> dict:
    """Serialise an envelope with its salt and KDF block to one document."""
    return {
        "version": ENVELOPE_VERSION,
        "encrypted": True,
        "salt": salt.hex(),
        "kdf": kdf.to_dict(),
        "iv": envelope.iv.hex(),
        "tag": envelope.tag.hex(),
        "data": envelope.ciphertext.hex(),
    }


def decode_envelope(data: dict) -> tuple[Envelope, bytes, KdfParams]:
    """
    Parse an envelope document.

    Returns: (envelope, salt, kdf_params)
    Raises: CorruptedDocument for missing fields or malformed hex.
    """
    try:
        salt = bytes.fromhex(data["salt"])
        iv = bytes.fromhex(data["iv"])
        tag = bytes.fromhex(data["tag"])
        ciphertext = bytes.fromhex(data["data"])
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptedDocument(f"Malformed encrypted store: {e}") from e

    if len(iv) != AES_IV_SIZE or len(tag) != AES_TAG_SIZE or not salt:
        raise CorruptedDocument("Malformed encrypted store: bad iv, tag or salt length")

    kdf = KdfParams.from_dict(data.get("kdf"))
    return Envelope(iv=iv, tag=tag, ciphertext=ciphertext), salt, kdf
