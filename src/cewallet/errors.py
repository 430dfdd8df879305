"""
Store errors.

Every failure the store reports to its caller is a StoreError subclass.
Input-validation failures also derive from ValueError so callers that
already catch ValueError keep working.
"""


class StoreError(Exception):
    """Base class for all wallet store errors."""


# ============================================
# Session / File
# ============================================

class StoreLocked(StoreError):
    """The store has not been unlocked (or the session was closed)."""

    def __init__(self, message: str = "Wallet locked. Please unlock first."):
        super().__init__(message)


class IncorrectPassword(StoreError):
    """Authentication tag mismatch while opening the envelope."""

    def __init__(self, message: str = "Incorrect password"):
        super().__init__(message)


class CorruptedDocument(StoreError):
    """The store file is present but matches no known shape."""


class UpgradeNotConfirmed(StoreError):
    """A plaintext store was found and the caller refused the upgrade."""


# ============================================
# Registry
# ============================================

class WalletNotFound(StoreError, LookupError):
    pass


class AccountNotFound(StoreError, LookupError):
    pass


class NetworkNotFound(StoreError, LookupError):
    pass


class NoActiveWallet(StoreError):
    pass


class NoActiveAccount(StoreError):
    pass


class TokenAlreadyExists(StoreError, ValueError):
    pass


class CannotDeleteDefaultNetwork(StoreError, ValueError):
    pass


class InvalidMnemonic(StoreError, ValueError):
    pass


class InvalidPrivateKey(StoreError, ValueError):
    pass


class InvalidKeystore(StoreError, ValueError):
    """Keystore file could not be read or its password is wrong."""


class NotHDWallet(StoreError, ValueError):
    """Operation needs a seed-backed (hd) wallet."""


class InvalidAccountState(StoreError):
    """An account has no usable key source. The document is inconsistent."""
