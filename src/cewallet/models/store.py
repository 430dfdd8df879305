"""
Wallet Store - encrypted JSON persistence for the store document.

Store.unlock() is the only way to obtain a Session. The session holds the
derived key, the salt and the decrypted document for the rest of the
process, and rewrites the whole file after every change.

On-disk shapes understood by unlock():
- no file: a new store is created
- envelope ({"encrypted": true, ...}): decrypted with the password
- legacy plaintext document: loaded and immediately encrypted
"""

import json
import atexit
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from ..errors import CorruptedDocument, StoreError, StoreLocked, UpgradeNotConfirmed
from ..utils import get_store_path
from ..wallet.crypto import (
    DEFAULT_KDF,
    KdfParams,
    decode_envelope,
    derive_key,
    encode_envelope,
    generate_salt,
    is_envelope,
    open_envelope,
    seal,
    write_json_atomic,
)
from .document import StoreDocument, is_document_shape, migrate

logger = logging.getLogger(__name__)


class SessionState(Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"


class Session:
    """
    An unlocked store.

    Created by Store.unlock(); every registry operation takes one. After
    close() the key is zeroed and any further use raises StoreLocked.
    """

    def __init__(self, path: Path, key: bytes, salt: bytes, kdf: KdfParams,
                 document: StoreDocument):
        self.path = path
        self._key = bytearray(key)
        self._salt = salt
        self._kdf = kdf
        self._document: Optional[StoreDocument] = document

    @property
    def is_open(self) -> bool:
        return self._document is not None

    @property
    def kdf(self) -> KdfParams:
        return self._kdf

    @property
    def document(self) -> StoreDocument:
        """The decrypted document."""
        if self._document is None:
            raise StoreLocked()
        return self._document

    def save(self) -> None:
        """
        Encrypt and persist the whole document.

        Active pointers are repaired first, so the file never holds a
        dangling wallet, account or network id.
        """
        document = self.document
        document.ensure_consistent()

        plaintext = json.dumps(document.to_dict()).encode('utf-8')
        envelope = seal(plaintext, self._key)
        write_json_atomic(self.path, encode_envelope(envelope, self._salt, self._kdf))
        logger.debug(f"Store saved to {self.path}")

    def change_password(self, new_password: str, kdf: Optional[KdfParams] = None) -> None:
        """Re-key the store under a new password with a fresh salt."""
        if not self.is_open:
            raise StoreLocked()
        kdf = kdf or DEFAULT_KDF
        salt = generate_salt()
        key = derive_key(new_password, salt, kdf)

        self._wipe_key()
        self._key = bytearray(key)
        self._salt = salt
        self._kdf = kdf
        self.save()
        logger.info("Store password changed")

    def close(self) -> None:
        """Forget the key and the decrypted document."""
        if self._document is None:
            return
        self._wipe_key()
        self._document = None
        atexit.unregister(self.close)
        logger.debug("Store session closed")

    def _wipe_key(self) -> None:
        for i in range(len(self._key)):
            self._key[i] = 0


class Store:
    """
    The password-protected store file.

    Usage:
        store = Store(path)
        session = store.unlock("password")
        WalletManager(session).create_hd_wallet("Main")
    """

    def __init__(self, path: Optional[str | Path] = None, kdf: KdfParams = DEFAULT_KDF):
        """
        Args:
            path: Store file (default: ~/.cew/wallets.json)
            kdf: KDF used for new stores and plaintext upgrades
        """
        self.path = Path(path) if path else get_store_path()
        self.kdf = kdf
        self._state = SessionState.LOCKED
        self._session: Optional[Session] = None

    @property
    def state(self) -> SessionState:
        if self._state is SessionState.UNLOCKED and not self._session.is_open:
            self._state = SessionState.LOCKED
            self._session = None
        return self._state

    @property
    def session(self) -> Session:
        """The active session. Raises StoreLocked before unlock."""
        if self.state is not SessionState.UNLOCKED:
            raise StoreLocked()
        return self._session

    def is_initialized(self) -> bool:
        """Check if a store file exists."""
        return self.path.exists()

    def is_encrypted(self) -> bool:
        """Check if the store file carries the encryption envelope."""
        if not self.is_initialized():
            return False
        try:
            return is_envelope(self._read_file())
        except CorruptedDocument:
            return False

    def unlock(self, password: str, allow_plaintext_upgrade: bool = True) -> Session:
        """
        Unlock (or create) the store.

        Args:
            password: Store password
            allow_plaintext_upgrade: If False, a legacy plaintext store is
                not silently encrypted under this password

        Raises:
            IncorrectPassword: Envelope could not be authenticated
            CorruptedDocument: File matches no known shape
            UpgradeNotConfirmed: Plaintext store and upgrade not allowed
        """
        if self.state is SessionState.UNLOCKED:
            raise StoreError("Store is already unlocked")

        self._state = SessionState.UNLOCKING
        session = None
        try:
            session = self._open(password, allow_plaintext_upgrade)
        finally:
            self._state = SessionState.UNLOCKED if session else SessionState.LOCKED

        self._session = session
        atexit.register(session.close)
        return session

    def _open(self, password: str, allow_plaintext_upgrade: bool) -> Session:
        # Case 1: New store
        if not self.path.exists():
            logger.info(f"No store found at {self.path}, initializing a new one")
            return self._create(password, StoreDocument.create_default())

        data = self._read_file()

        # Case 2: Encrypted store
        if is_envelope(data):
            envelope, salt, kdf = decode_envelope(data)
            key = derive_key(password, salt, kdf)
            plaintext = open_envelope(envelope, key)

            try:
                raw = json.loads(plaintext.decode('utf-8'))
            except (UnicodeDecodeError, ValueError) as e:
                raise CorruptedDocument("Decrypted store is not valid JSON") from e
            if not is_document_shape(raw):
                raise CorruptedDocument("Decrypted store is not a store document")

            changed = migrate(raw)
            document = StoreDocument.from_dict(raw)
            changed = document.ensure_consistent() or changed

            session = Session(self.path, key, salt, kdf, document)
            if changed:
                session.save()
            logger.info("Store unlocked")
            return session

        # Case 3: Legacy plaintext store
        if is_document_shape(data):
            if not allow_plaintext_upgrade:
                raise UpgradeNotConfirmed("Plaintext store found; encryption upgrade not confirmed")

            logger.warning(f"Unsecured plaintext store found at {self.path}, encrypting it now")
            migrate(data)
            return self._create(password, StoreDocument.from_dict(data))

        raise CorruptedDocument("Store file is neither an encrypted nor a plaintext store")

    def _create(self, password: str, document: StoreDocument) -> Session:
        """Key a document under a fresh salt and persist it."""
        salt = generate_salt()
        key = derive_key(password, salt, self.kdf)
        session = Session(self.path, key, salt, self.kdf, document)
        session.save()
        return session

    def _read_file(self):
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptedDocument("Corrupted wallet data file") from e
