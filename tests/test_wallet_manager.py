import json
from typing import Optional, get_type_hints

import pytest
from eth_account import Account as EthAccount

from cewallet.errors import (
    AccountNotFound,
    InvalidAccountState,
    InvalidKeystore,
    InvalidMnemonic,
    InvalidPrivateKey,
    NoActiveAccount,
    NoActiveWallet,
    NotHDWallet,
    WalletNotFound,
)
from cewallet.models.wallet import Derived, ImportedKey, RawKey
from cewallet.wallet.keys import (
    decrypt_keystore,
    derive_account,
    encrypt_keystore,
    generate_mnemonic,
    normalize_private_key,
    to_local_account,
    validate_mnemonic,
)
from cewallet.wallet.manager import WalletManager

from conftest import (
    TEST_ADDRESSES,
    TEST_MNEMONIC,
    TEST_PRIVATE_KEYS,
    assert_pointers_valid,
    reopen,
)

# Checksum-invalid phrase built from valid words
BAD_CHECKSUM_MNEMONIC = "test test test test test test test test test test test test"


# ============================================
# Keys
# ============================================

def test_generate_mnemonic_word_counts():
    assert len(generate_mnemonic().split()) == 12
    phrase = generate_mnemonic(24)
    assert len(phrase.split()) == 24
    assert validate_mnemonic(phrase) == phrase
    with pytest.raises(ValueError):
        generate_mnemonic(13)


def test_validate_mnemonic_normalises_whitespace():
    messy = "  " + TEST_MNEMONIC.replace(" ", "   ") + "\n"
    assert validate_mnemonic(messy) == TEST_MNEMONIC


@pytest.mark.parametrize("phrase", [
    "",
    "test test test",
    BAD_CHECKSUM_MNEMONIC,
    "notaword " * 12,
])
def test_validate_mnemonic_rejects(phrase):
    with pytest.raises(InvalidMnemonic):
        validate_mnemonic(phrase)


def test_derive_account_matches_known_addresses():
    for index, address in enumerate(TEST_ADDRESSES):
        derived = derive_account(TEST_MNEMONIC, index)
        assert derived.address == address
        assert derived.path == f"m/44'/60'/0'/0/{index}"


@pytest.mark.parametrize("key", [
    "0x1234",
    "not hex at all",
    "0x" + "00" * 32,
    "0x" + "ff" * 33,
])
def test_normalize_private_key_rejects(key):
    with pytest.raises(InvalidPrivateKey):
        normalize_private_key(key)


def test_normalize_private_key_accepts_bare_hex():
    bare = TEST_PRIVATE_KEYS[0][2:].upper()
    assert normalize_private_key(bare) == TEST_PRIVATE_KEYS[0]


# ============================================
# Wallets
# ============================================

def test_import_mnemonic_derives_ten_accounts(store_path, wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)

    assert wallet.is_hd
    assert len(wallet.accounts) == 10
    assert [a.address for a in wallet.accounts[:3]] == TEST_ADDRESSES
    assert [a.key_source.path for a in wallet.accounts] == [
        f"m/44'/60'/0'/0/{i}" for i in range(10)
    ]
    assert wallet.accounts[0].name == "Account 1"
    assert wallet.next_index == 10

    document = wallets.document
    assert document.active_wallet_id == wallet.id
    assert document.active_account_address == TEST_ADDRESSES[0]

    persisted = reopen(store_path)
    assert persisted.wallets[0].mnemonic == TEST_MNEMONIC
    assert persisted.wallets[0].next_index == 10
    assert persisted.active_account_address == TEST_ADDRESSES[0]


def test_import_invalid_mnemonic_changes_nothing(store_path, wallets):
    before = store_path.read_text()
    with pytest.raises(InvalidMnemonic):
        wallets.import_mnemonic("Bad", BAD_CHECKSUM_MNEMONIC)
    assert wallets.list_wallets() == []
    assert store_path.read_text() == before


def test_create_hd_wallet(wallets):
    wallet, mnemonic = wallets.create_hd_wallet("Fresh")

    assert validate_mnemonic(mnemonic) == mnemonic
    assert wallet.mnemonic == mnemonic
    assert len(wallet.accounts) == 1
    assert wallet.accounts[0].address == derive_account(mnemonic, 0).address
    assert wallets.get_active_wallet() is wallet
    assert wallets.get_active_account() is wallet.accounts[0]


def test_switch_wallet(wallets):
    first = wallets.import_mnemonic("First", TEST_MNEMONIC)
    second, _ = wallets.create_hd_wallet("Second")
    assert wallets.get_active_wallet() is second

    wallets.switch_wallet(first.id)
    assert wallets.document.active_wallet_id == first.id
    assert wallets.document.active_account_address == TEST_ADDRESSES[0]

    with pytest.raises(WalletNotFound):
        wallets.switch_wallet("nope")


def test_delete_active_wallet(store_path, wallets):
    first = wallets.import_mnemonic("First", TEST_MNEMONIC)
    second, _ = wallets.create_hd_wallet("Second")

    assert wallets.delete_active_wallet() is second
    assert wallets.list_wallets() == [first]
    assert wallets.document.active_wallet_id == first.id
    assert wallets.document.active_account_address == TEST_ADDRESSES[0]

    wallets.delete_active_wallet()
    assert wallets.list_wallets() == []
    assert wallets.document.active_wallet_id is None
    assert wallets.document.active_account_address is None
    assert_pointers_valid(reopen(store_path))

    with pytest.raises(NoActiveWallet):
        wallets.delete_active_wallet()


# ============================================
# Accounts
# ============================================

def test_derive_new_account_continues_sequence(wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    account = wallets.derive_new_account(wallet.id)

    assert account.key_source.path == "m/44'/60'/0'/0/10"
    assert account.name == "Account 11"
    assert wallets.document.active_account_address == account.address


def test_derived_indices_follow_imported_accounts(wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    derived = [wallets.derive_new_account(wallet.id) for _ in range(3)]
    assert [a.key_source.index for a in derived] == [10, 11, 12]


def test_derivation_index_is_never_reused(store_path, wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    newest = wallets.derive_new_account(wallet.id)

    wallets.delete_active_account()
    assert wallet.get_account(newest.address) is None

    again = wallets.derive_new_account(wallet.id)
    assert again.key_source.path == "m/44'/60'/0'/0/11"
    assert again.address != newest.address

    persisted = reopen(store_path).wallets[0]
    assert persisted.next_index == 12


def test_derived_paths_stay_unique(wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    for _ in range(3):
        wallets.switch_account(wallet.accounts[-1].address)
        wallets.delete_active_account()
        wallets.derive_new_account(wallet.id)

    paths = [a.key_source.path for a in wallet.accounts]
    assert len(paths) == len(set(paths))
    assert max(wallet.derived_indices()) < wallet.next_index


def test_derive_in_simple_wallet_fails(wallets):
    simple = wallets.create_simple_wallet("Keys")
    with pytest.raises(NotHDWallet):
        wallets.derive_new_account(simple.id)
    with pytest.raises(WalletNotFound):
        wallets.derive_new_account("nope")


def test_import_private_key(store_path, wallets):
    simple = wallets.create_simple_wallet("Keys")
    assert wallets.document.active_account_address is None

    account = wallets.import_private_key("", TEST_PRIVATE_KEYS[1][2:], simple.id)

    assert account.address == TEST_ADDRESSES[1]
    assert account.name == "Imported #1"
    assert account.key_source == ImportedKey(TEST_PRIVATE_KEYS[1])
    assert wallets.document.active_wallet_id == simple.id
    assert wallets.document.active_account_address == TEST_ADDRESSES[1]

    named = wallets.import_private_key("Cold", TEST_PRIVATE_KEYS[0], simple.id)
    assert named.name == "Cold"
    assert reopen(store_path).wallets[0].accounts[1].key_source.private_key == TEST_PRIVATE_KEYS[0]


def test_import_private_key_into_hd_wallet_selects_existing(wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    wallets.switch_account(TEST_ADDRESSES[2])

    account = wallets.import_private_key("Dup", TEST_PRIVATE_KEYS[1], wallet.id)

    assert account.is_derived
    assert len(wallet.accounts) == 10
    assert wallets.document.active_account_address == TEST_ADDRESSES[1]


def test_import_invalid_private_key(wallets):
    simple = wallets.create_simple_wallet("Keys")
    with pytest.raises(InvalidPrivateKey):
        wallets.import_private_key("Bad", "0x1234", simple.id)
    with pytest.raises(WalletNotFound):
        wallets.import_private_key("Ok", TEST_PRIVATE_KEYS[0], "nope")
    assert simple.accounts == []


def test_import_keystore(tmp_path, wallets):
    simple = wallets.create_simple_wallet("Keys")
    keystore = EthAccount.encrypt(TEST_PRIVATE_KEYS[0], "ks-pass", kdf="pbkdf2", iterations=2)
    keystore_path = tmp_path / "keystore.json"
    keystore_path.write_text(json.dumps(keystore))

    with pytest.raises(InvalidKeystore):
        wallets.import_keystore(keystore_path, "wrong", simple.id)
    with pytest.raises(FileNotFoundError):
        wallets.import_keystore(tmp_path / "missing.json", "ks-pass", simple.id)

    account = wallets.import_keystore(keystore_path, "ks-pass", simple.id)
    assert account.address == TEST_ADDRESSES[0]
    assert account.name == "Imported Keystore"


def test_switch_account(wallets):
    wallets.import_mnemonic("Main", TEST_MNEMONIC)
    account = wallets.switch_account(TEST_ADDRESSES[2].lower())

    assert account.address == TEST_ADDRESSES[2]
    assert wallets.document.active_account_address == TEST_ADDRESSES[2]
    with pytest.raises(AccountNotFound):
        wallets.switch_account("0x0000000000000000000000000000000000000001")


def test_switch_account_without_wallet(wallets):
    with pytest.raises(NoActiveWallet):
        wallets.switch_account(TEST_ADDRESSES[0])


def test_delete_active_account(wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    wallets.switch_account(TEST_ADDRESSES[1])

    removed = wallets.delete_active_account()

    assert removed.address == TEST_ADDRESSES[1]
    assert len(wallet.accounts) == 9
    assert wallets.document.active_account_address == TEST_ADDRESSES[0]


def test_delete_last_account_unsets_pointer(wallets):
    simple = wallets.create_simple_wallet("Keys")
    wallets.import_private_key("Only", TEST_PRIVATE_KEYS[0], simple.id)

    wallets.delete_active_account()

    assert simple.accounts == []
    assert wallets.document.active_wallet_id == simple.id
    assert wallets.document.active_account_address is None
    with pytest.raises(NoActiveAccount):
        wallets.delete_active_account()


def test_pointers_valid_after_every_operation(store_path, wallets):
    hd = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    simple = wallets.create_simple_wallet("Keys")
    steps = [
        lambda: wallets.import_private_key("A", TEST_PRIVATE_KEYS[0], simple.id),
        lambda: wallets.derive_new_account(hd.id),
        lambda: wallets.switch_wallet(simple.id),
        wallets.delete_active_account,
        lambda: wallets.switch_wallet(hd.id),
        wallets.delete_active_account,
        wallets.delete_active_wallet,
        wallets.delete_active_wallet,
    ]
    for step in steps:
        step()
        assert_pointers_valid(wallets.document)
        assert reopen(store_path).to_dict() == wallets.document.to_dict()


# ============================================
# Signing / Export
# ============================================

def test_signing_identity_for_derived_account(wallets):
    wallets.import_mnemonic("Main", TEST_MNEMONIC)
    wallets.switch_account(TEST_ADDRESSES[1])

    identity = wallets.resolve_signing_identity()

    assert identity == Derived(mnemonic=TEST_MNEMONIC, index=1)
    assert to_local_account(identity).address == TEST_ADDRESSES[1]
    assert wallets.export_private_key() == TEST_PRIVATE_KEYS[1]


def test_signing_identity_for_imported_account(wallets):
    simple = wallets.create_simple_wallet("Keys")
    wallets.import_private_key("Cold", TEST_PRIVATE_KEYS[0], simple.id)

    identity = wallets.resolve_signing_identity()

    assert identity == RawKey(private_key=TEST_PRIVATE_KEYS[0])
    assert to_local_account(identity).address == TEST_ADDRESSES[0]


def test_signing_identity_requires_active_account(wallets):
    with pytest.raises(NoActiveAccount):
        wallets.resolve_signing_identity()
    wallets.create_simple_wallet("Empty")
    with pytest.raises(NoActiveAccount):
        wallets.resolve_signing_identity()


def test_derived_account_without_seed_is_invalid(wallets):
    wallet = wallets.import_mnemonic("Main", TEST_MNEMONIC)
    # Simulate a wallet whose seed was lost
    wallet.mnemonic = None
    with pytest.raises(InvalidAccountState):
        wallets.resolve_signing_identity()


def test_export_mnemonic(wallets):
    with pytest.raises(NoActiveWallet):
        wallets.export_mnemonic()

    wallets.import_mnemonic("Main", TEST_MNEMONIC)
    assert wallets.export_mnemonic() == TEST_MNEMONIC

    wallets.create_simple_wallet("Keys")
    with pytest.raises(NotHDWallet):
        wallets.export_mnemonic()


def test_export_keystore_round_trip(wallets):
    wallets.import_mnemonic("Main", TEST_MNEMONIC)
    keystore = wallets.export_keystore("ks-pass", kdf="pbkdf2", iterations=2)

    assert keystore["address"].lower() == TEST_ADDRESSES[0][2:].lower()
    assert decrypt_keystore(keystore, "ks-pass") == TEST_PRIVATE_KEYS[0]
    with pytest.raises(InvalidKeystore):
        decrypt_keystore(keystore, "wrong")


def test_keystore_options_default_to_none():
    for func in (encrypt_keystore, WalletManager.export_keystore):
        hints = get_type_hints(func)
        assert hints["kdf"] == Optional[str]
        assert hints["iterations"] == Optional[int]
