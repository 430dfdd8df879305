"""
Wallet Manager - wallets, accounts and the active selection.

Every operation works on an unlocked Session and ends by saving it, so
the store file always reflects the last completed operation.
"""

import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from ..errors import (
    AccountNotFound,
    InvalidAccountState,
    NoActiveAccount,
    NoActiveWallet,
    NotHDWallet,
    WalletNotFound,
)
from ..models.document import StoreDocument
from ..models.wallet import (
    Account,
    Derived,
    DerivedKey,
    ImportedKey,
    RawKey,
    SigningIdentity,
    Wallet,
)
from .keys import (
    DEFAULT_LANGUAGE,
    address_from_private_key,
    derive_accounts,
    encrypt_keystore,
    generate_mnemonic,
    normalize_private_key,
    private_key_for,
    read_keystore_file,
    validate_mnemonic,
)

if TYPE_CHECKING:
    from ..models.store import Session

logger = logging.getLogger(__name__)


# Accounts derived up front when a seed phrase is imported
IMPORT_ACCOUNT_COUNT = 10


class WalletManager:
    """
    Create, import, select and delete wallets and accounts.

    Usage:
        manager = WalletManager(store.unlock("password"))
        wallet, mnemonic = manager.create_hd_wallet("Main")
        manager.derive_new_account(wallet.id)
        identity = manager.resolve_signing_identity()
    """

    def __init__(self, session: "Session", language: str = DEFAULT_LANGUAGE):
        """
        Args:
            session: Unlocked store session
            language: BIP-39 wordlist for new and imported seed phrases
        """
        self.session = session
        self.language = language

    @property
    def document(self) -> StoreDocument:
        return self.session.document

    # ============================================
    # Queries
    # ============================================

    def list_wallets(self) -> list[Wallet]:
        """Get all wallets in creation order."""
        return list(self.document.wallets)

    def get_wallet(self, wallet_id: str) -> Wallet:
        """Get a wallet by id. Raises WalletNotFound."""
        wallet = self.document.get_wallet(wallet_id)
        if wallet is None:
            raise WalletNotFound(f"Wallet not found: {wallet_id}")
        return wallet

    def get_active_wallet(self) -> Optional[Wallet]:
        return self.document.active_wallet

    def get_active_account(self) -> Optional[Account]:
        return self.document.active_account

    # ============================================
    # Wallets
    # ============================================

    def create_hd_wallet(self, name: str, word_count: int = 12) -> tuple[Wallet, str]:
        """
        Create a wallet with a fresh seed phrase and its first account.

        The new wallet and account become active.

        Returns:
            (wallet, mnemonic) - show the mnemonic to the user once for backup
        """
        mnemonic = generate_mnemonic(word_count, self.language)
        wallet = Wallet.create_hd(name, mnemonic)
        self._derive_into(wallet, 1)

        self.document.wallets.append(wallet)
        self.document.activate(wallet)
        self.session.save()

        logger.info(f"Created hd wallet {wallet.id} ({wallet.name})")
        return wallet, mnemonic

    def import_mnemonic(self, name: str, mnemonic: str) -> Wallet:
        """
        Import a seed phrase as a new wallet with its first ten accounts.

        Raises: InvalidMnemonic if shorter than 12 words or the checksum fails.
        """
        phrase = validate_mnemonic(mnemonic, self.language)
        wallet = Wallet.create_hd(name, phrase)
        self._derive_into(wallet, IMPORT_ACCOUNT_COUNT)

        self.document.wallets.append(wallet)
        self.document.activate(wallet)
        self.session.save()

        logger.info(f"Imported hd wallet {wallet.id} ({wallet.name}) with {len(wallet.accounts)} accounts")
        return wallet

    def create_simple_wallet(self, name: str) -> Wallet:
        """Create an empty wallet for imported private keys and make it active."""
        wallet = Wallet.create_simple(name)
        self.document.wallets.append(wallet)
        self.document.activate(wallet)
        self.session.save()

        logger.info(f"Created simple wallet {wallet.id} ({wallet.name})")
        return wallet

    def switch_wallet(self, wallet_id: str) -> Wallet:
        """Make a wallet active, selecting its first account."""
        wallet = self.get_wallet(wallet_id)
        self.document.activate(wallet)
        self.session.save()
        return wallet

    def delete_active_wallet(self) -> Wallet:
        """
        Delete the active wallet and all its accounts.

        The first remaining wallet (and its first account) becomes active,
        or both pointers are unset when no wallet is left.
        """
        document = self.document
        if not document.active_wallet_id:
            raise NoActiveWallet("No active wallet selected")

        wallet = document.active_wallet
        if wallet is None:
            raise WalletNotFound(f"Wallet not found: {document.active_wallet_id}")

        document.wallets.remove(wallet)
        if document.wallets:
            document.activate(document.wallets[0])
        else:
            document.active_wallet_id = None
            document.active_account_address = None
        self.session.save()

        logger.info(f"Deleted wallet {wallet.id} ({wallet.name})")
        return wallet

    # ============================================
    # Accounts
    # ============================================

    def _derive_into(self, wallet: Wallet, count: int) -> list[Account]:
        """Derive the next `count` accounts of an hd wallet and append them."""
        indices = [wallet.take_next_index() for _ in range(count)]
        accounts = []
        for derived in derive_accounts(wallet.mnemonic, indices):
            account = Account(
                address=derived.address,
                name=f"Account {derived.index + 1}",
                key_source=DerivedKey(path=derived.path),
            )
            wallet.accounts.append(account)
            accounts.append(account)
        return accounts

    def derive_new_account(self, wallet_id: str) -> Account:
        """
        Derive the next account of an hd wallet and make it active.

        Indices only move forward: an index freed by deleting its account
        is not derived again.
        """
        wallet = self.get_wallet(wallet_id)
        if not wallet.is_hd:
            raise NotHDWallet(f"Cannot derive account: wallet {wallet_id} is not an hd wallet")

        account = self._derive_into(wallet, 1)[0]
        self.document.activate(wallet, account)
        self.session.save()

        logger.info(f"Derived account {account.key_source.path} in wallet {wallet.id}")
        return account

    def import_private_key(self, name: str, private_key: str, wallet_id: str) -> Account:
        """
        Add an account backed by a raw private key and make it active.

        Importing an address the wallet already holds selects the existing
        account instead of adding a duplicate.

        Raises:
            WalletNotFound: Unknown wallet_id
            InvalidPrivateKey: Key is not a valid secp256k1 key
        """
        wallet = self.get_wallet(wallet_id)
        pkey = normalize_private_key(private_key)
        address = address_from_private_key(pkey)

        account = wallet.get_account(address)
        if account is None:
            imported_count = sum(1 for a in wallet.accounts if a.is_imported)
            account = Account(
                address=address,
                name=name or f"Imported #{imported_count + 1}",
                key_source=ImportedKey(private_key=pkey),
            )
            wallet.accounts.append(account)
            logger.info(f"Imported account {address} into wallet {wallet.id}")
        else:
            logger.info(f"Account {address} already in wallet {wallet.id}, selecting it")

        self.document.activate(wallet, account)
        self.session.save()
        return account

    def import_keystore(self, file_path: str | Path, password: str, wallet_id: str,
                        name: str = "Imported Keystore") -> Account:
        """
        Import the key inside a password-encrypted keystore file.

        Raises:
            FileNotFoundError: If the keystore file doesn't exist
            InvalidKeystore: If the keystore password is wrong
            WalletNotFound: Unknown wallet_id
        """
        self.get_wallet(wallet_id)
        pkey = read_keystore_file(file_path, password)
        return self.import_private_key(name, pkey, wallet_id)

    def switch_account(self, address: str) -> Account:
        """Select an account of the active wallet."""
        wallet = self.document.active_wallet
        if wallet is None:
            raise NoActiveWallet("No active wallet")

        account = wallet.get_account(address)
        if account is None:
            raise AccountNotFound(f"Account not found in active wallet: {address}")

        self.document.activate(wallet, account)
        self.session.save()
        return account

    def delete_active_account(self) -> Account:
        """
        Remove the active account from the active wallet.

        The wallet's first remaining account becomes active, or the
        account pointer is unset.
        """
        document = self.document
        if not document.active_wallet_id:
            raise NoActiveWallet("No active wallet")

        wallet = document.active_wallet
        if wallet is None:
            raise WalletNotFound(f"Wallet not found: {document.active_wallet_id}")

        if not document.active_account_address:
            raise NoActiveAccount("No active account selected")

        removed = wallet.remove_account(document.active_account_address)
        if removed is None:
            raise AccountNotFound("Account not found in active wallet")

        first = wallet.first_account
        document.active_account_address = first.address if first else None
        self.session.save()

        logger.info(f"Deleted account {removed.address} from wallet {wallet.id}")
        return removed

    # ============================================
    # Signing / Export
    # ============================================

    def resolve_signing_identity(self) -> SigningIdentity:
        """
        Get what is needed to sign for the active account.

        Returns RawKey for imported accounts and Derived for accounts of
        an hd wallet.

        Raises:
            NoActiveAccount: Nothing is selected
            InvalidAccountState: The account has no usable key source
        """
        wallet = self.document.active_wallet
        account = self.document.active_account
        if wallet is None or account is None:
            raise NoActiveAccount("No active account")

        source = account.key_source
        if isinstance(source, ImportedKey):
            return RawKey(private_key=source.private_key)
        if isinstance(source, DerivedKey) and wallet.is_hd:
            return Derived(mnemonic=wallet.mnemonic, index=source.index)
        raise InvalidAccountState(f"Invalid account state for {account.address}")

    def export_private_key(self) -> str:
        """
        Get the active account's private key as 0x hex.

        WARNING: Handle with extreme care!
        """
        return private_key_for(self.resolve_signing_identity())

    def export_mnemonic(self) -> str:
        """Get the active wallet's seed phrase (sensitive - backup only!)."""
        wallet = self.document.active_wallet
        if wallet is None:
            raise NoActiveWallet("No active wallet")
        if not wallet.is_hd:
            raise NotHDWallet("Current wallet is not an hd wallet or has no seed")
        return wallet.mnemonic

    def export_keystore(self, password: str, kdf: Optional[str] = None,
                        iterations: Optional[int] = None) -> dict:
        """Wrap the active account's key in a keystore document."""
        return encrypt_keystore(self.export_private_key(), password, kdf=kdf, iterations=iterations)
