"""
Balances - native and ERC-20 balance fetching over JSON-RPC.

Built from a stored Network record. This is the only place the package
talks to a node.
"""

import logging
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from web3 import Web3
from web3.exceptions import Web3Exception

from ..models.network import Network, Token
from ..networks import NetworkManager, TokenManager, active_address

if TYPE_CHECKING:
    from ..models.store import Session

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18

# Minimal ERC-20 ABI for balance checking
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function"
    },
]


@dataclass
class Balance:
    """A token or native balance."""
    symbol: str
    raw: int           # Raw balance in smallest unit
    decimals: int
    token_address: Optional[str] = None  # None for the native currency

    @property
    def formatted(self) -> float:
        """Human-readable balance."""
        return self.raw / (10 ** self.decimals)


class BalanceFetcher:
    """Fetches balances from one network."""

    def __init__(self, network: Network, w3: Optional[Web3] = None):
        """
        Args:
            network: Stored network record (rpc_url, chain_id, symbol)
            w3: Preconfigured Web3 instance, or None to connect to network.rpc_url
        """
        self.network = network
        self.w3 = w3 or Web3(Web3.HTTPProvider(network.rpc_url))

    @property
    def is_connected(self) -> bool:
        """Check if connected to the network."""
        try:
            return self.w3.is_connected()
        except Web3Exception:
            return False

    def get_native_balance(self, address: str) -> Balance:
        """Get native currency balance."""
        address = Web3.to_checksum_address(address)
        raw_balance = self.w3.eth.get_balance(address)
        return Balance(symbol=self.network.symbol, raw=raw_balance, decimals=NATIVE_DECIMALS)

    def get_token_balance(self, address: str, token: Token) -> Optional[Balance]:
        """Get ERC-20 token balance. None if the token is on another chain."""
        if token.chain_id != self.network.chain_id:
            return None

        address = Web3.to_checksum_address(address)
        token_address = Web3.to_checksum_address(token.address)
        contract = self.w3.eth.contract(address=token_address, abi=ERC20_ABI)
        raw_balance = contract.functions.balanceOf(address).call()

        return Balance(
            symbol=token.symbol,
            raw=raw_balance,
            decimals=token.decimals,
            token_address=token_address,
        )

    def get_all_balances(self, address: str, tokens: list[Token]) -> list[Balance]:
        """
        Get native plus tracked token balances.

        A token whose contract call fails is logged and left out.
        """
        balances = [self.get_native_balance(address)]

        for token in tokens:
            try:
                balance = self.get_token_balance(address, token)
            except (Web3Exception, ValueError) as e:
                logger.warning(f"Failed to fetch {token.symbol} balance from {token.address}: {e}")
                continue
            if balance is not None:
                balances.append(balance)

        return balances


def fetch_active_balances(session: "Session", w3: Optional[Web3] = None) -> list[Balance]:
    """Balances of the active account on the active network."""
    network = NetworkManager(session).get_active_network()
    tokens = TokenManager(session).get_tokens(network.chain_id)
    fetcher = BalanceFetcher(network, w3)
    return fetcher.get_all_balances(active_address(session), tokens)
