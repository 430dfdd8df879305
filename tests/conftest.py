import pytest

from cewallet.models.store import Store
from cewallet.networks import NetworkManager, TokenManager
from cewallet.wallet.crypto import KdfParams
from cewallet.wallet.manager import WalletManager


# Cheap Argon2id so unlocks stay fast
FAST_KDF = KdfParams(time_cost=1, memory_cost=8, parallelism=1)

PASSWORD = "correct horse battery staple"

# Well-known development seed phrase and its first accounts
TEST_MNEMONIC = "test test test test test test test test test test test junk"
TEST_ADDRESSES = [
    "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
    "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
]
TEST_PRIVATE_KEYS = [
    "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
    "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d",
]


@pytest.fixture(autouse=True)
def app_home(tmp_path, monkeypatch):
    """Point the application directory at a temp dir."""
    home = tmp_path / "home"
    monkeypatch.setenv("CEW_HOME", str(home))
    return home


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "wallets.json"


@pytest.fixture
def store(store_path):
    return Store(store_path, kdf=FAST_KDF)


@pytest.fixture
def session(store):
    session = store.unlock(PASSWORD)
    yield session
    session.close()


@pytest.fixture
def wallets(session):
    return WalletManager(session)


@pytest.fixture
def networks(session):
    return NetworkManager(session)


@pytest.fixture
def tokens(session):
    return TokenManager(session)


def reopen(store_path, password=PASSWORD):
    """Unlock the file again from scratch and return the persisted document."""
    session = Store(store_path, kdf=FAST_KDF).unlock(password)
    try:
        return session.document
    finally:
        session.close()


def assert_pointers_valid(document):
    """Every set active pointer resolves to an existing entity."""
    if document.active_wallet_id is None:
        assert document.active_account_address is None
    else:
        wallet = document.get_wallet(document.active_wallet_id)
        assert wallet is not None
        if document.active_account_address is not None:
            assert wallet.get_account(document.active_account_address) is not None
    if document.active_network_id is not None:
        assert document.get_network(document.active_network_id) is not None
