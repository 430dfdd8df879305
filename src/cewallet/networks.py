"""
Networks and tracked tokens.

Network and token lists live in the store document; these managers
read and change them through an unlocked Session.
"""

import logging
from typing import Optional, TYPE_CHECKING

from web3 import Web3

from .errors import CannotDeleteDefaultNetwork, NetworkNotFound, NoActiveAccount, TokenAlreadyExists
from .models.document import StoreDocument
from .models.network import BUILTIN_NETWORK_IDS, PRIMARY_NETWORK_ID, Network, Token

if TYPE_CHECKING:
    from .models.store import Session

logger = logging.getLogger(__name__)


# ============================================
# Networks
# ============================================

class NetworkManager:
    """Add, switch and delete networks."""

    def __init__(self, session: "Session"):
        self.session = session

    @property
    def document(self) -> StoreDocument:
        return self.session.document

    def list_networks(self) -> list[Network]:
        return list(self.document.networks)

    def get_network(self, network_id: str) -> Network:
        """Get a network by id. Raises NetworkNotFound."""
        network = self.document.get_network(network_id)
        if network is None:
            raise NetworkNotFound(f"Network not found: {network_id}")
        return network

    def get_active_network(self) -> Network:
        """The active network, or the first network when none is selected."""
        document = self.document
        if not document.active_network_id:
            if not document.networks:
                raise NetworkNotFound("No networks configured")
            return document.networks[0]

        network = document.active_network
        if network is None:
            raise NetworkNotFound("Active network configuration not found")
        return network

    def add_network(
        self,
        name: str,
        rpc_url: str,
        chain_id: int,
        symbol: str = "ETH",
        explorer_url: Optional[str] = None
    ) -> Network:
        """Add a custom network. It does not become active."""
        if not name or not rpc_url:
            raise ValueError("Network name and RPC URL are required")
        try:
            chain_id = int(chain_id)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Chain ID must be an integer, got {chain_id!r}") from e
        if chain_id <= 0:
            raise ValueError(f"Chain ID must be positive, got {chain_id}")

        network = Network.create(name, rpc_url, chain_id, symbol, explorer_url)
        self.document.networks.append(network)
        self.session.save()

        logger.info(f"Added network {network.name} (chain {network.chain_id})")
        return network

    def switch_network(self, network_id: str) -> Network:
        network = self.get_network(network_id)
        self.document.active_network_id = network.id
        self.session.save()
        return network

    def delete_network(self, network_id: str) -> Network:
        """
        Delete a custom network.

        Deleting the active network makes the primary built-in active.

        Raises:
            CannotDeleteDefaultNetwork: For the built-in networks
            NetworkNotFound: Unknown network_id
        """
        if network_id in BUILTIN_NETWORK_IDS:
            raise CannotDeleteDefaultNetwork("Cannot delete default networks (Sepolia, Anvil)")

        network = self.get_network(network_id)
        document = self.document
        document.networks.remove(network)
        if document.active_network_id == network_id:
            document.active_network_id = PRIMARY_NETWORK_ID
        self.session.save()

        logger.info(f"Deleted network {network.name}")
        return network

    def delete_active_network(self) -> Network:
        network_id = self.document.active_network_id
        if not network_id:
            raise NetworkNotFound("No active network")
        return self.delete_network(network_id)


# ============================================
# Tokens
# ============================================

class TokenManager:
    """Track ERC-20 tokens per chain."""

    def __init__(self, session: "Session"):
        self.session = session

    @property
    def document(self) -> StoreDocument:
        return self.session.document

    def get_tokens(self, chain_id: int) -> list[Token]:
        """Tokens tracked on one chain."""
        return [t for t in self.document.tokens if t.chain_id == chain_id]

    def find_token(self, address: str, chain_id: int) -> Optional[Token]:
        key = (address.lower(), chain_id)
        for token in self.document.tokens:
            if token.key == key:
                return token
        return None

    def add_token(self, token: Token) -> Token:
        """
        Track a token.

        Raises:
            ValueError: If the address is not a valid 0x address
            TokenAlreadyExists: Same address (any letter case) on the same chain
        """
        if not Web3.is_address(token.address):
            raise ValueError(f"Invalid token address: {token.address}")
        if self.find_token(token.address, token.chain_id) is not None:
            raise TokenAlreadyExists(f"Token already exists: {token.address} on chain {token.chain_id}")

        token.address = Web3.to_checksum_address(token.address)
        self.document.tokens.append(token)
        self.session.save()

        logger.info(f"Tracking token {token.symbol} on chain {token.chain_id}")
        return token

    def remove_token(self, address: str, chain_id: int) -> bool:
        """Stop tracking a token. Returns False (and changes nothing) if absent."""
        token = self.find_token(address, chain_id)
        if token is None:
            return False

        self.document.tokens.remove(token)
        self.session.save()
        return True


def active_address(session: "Session") -> str:
    """The active account's address, for balance lookups."""
    account = session.document.active_account
    if account is None:
        raise NoActiveAccount("No active account found. Please create or select a wallet.")
    return account.address
