"""
Network and Token models.

Networks are RPC endpoints the user can switch between. Two built-in
networks (Sepolia and a local Anvil node) always exist and cannot be
deleted. Tokens are ERC-20 contracts tracked per chain.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from ..errors import CorruptedDocument


# Reserved network ids
SEPOLIA_ID = "sepolia"
ANVIL_ID = "anvil"
BUILTIN_NETWORK_IDS = (SEPOLIA_ID, ANVIL_ID)
PRIMARY_NETWORK_ID = SEPOLIA_ID


@dataclass
class Network:
    """Configuration for a blockchain network."""
    id: str
    name: str
    rpc_url: str
    chain_id: int
    symbol: str = "ETH"             # Native currency symbol
    explorer_url: Optional[str] = None

    @classmethod
    def create(
        cls,
        name: str,
        rpc_url: str,
        chain_id: int,
        symbol: str = "ETH",
        explorer_url: Optional[str] = None
    ) -> "Network":
        """Create a custom network with a fresh id."""
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            rpc_url=rpc_url,
            chain_id=int(chain_id),
            symbol=symbol or "ETH",
            explorer_url=explorer_url or None,
        )

    @property
    def is_builtin(self) -> bool:
        return self.id in BUILTIN_NETWORK_IDS

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "rpcUrl": self.rpc_url,
            "chainId": self.chain_id,
            "symbol": self.symbol,
        }
        if self.explorer_url:
            data["explorerUrl"] = self.explorer_url
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Network":
        try:
            return cls(
                id=data["id"],
                name=data["name"],
                rpc_url=data["rpcUrl"],
                chain_id=int(data["chainId"]),
                symbol=data.get("symbol") or "ETH",
                explorer_url=data.get("explorerUrl") or None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptedDocument(f"Invalid network entry: {e}") from e


def default_networks() -> list[Network]:
    """The built-in networks every store starts with."""
    return [
        Network(
            id=SEPOLIA_ID,
            name="Sepolia",
            rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
            chain_id=11155111,
            symbol="ETH",
            explorer_url="https://sepolia.etherscan.io",
        ),
        Network(
            id=ANVIL_ID,
            name="Anvil (Local)",
            rpc_url="http://127.0.0.1:8545",
            chain_id=31337,
            symbol="ETH",
        ),
    ]


@dataclass
class Token:
    """An ERC-20 token tracked on one chain."""
    address: str
    chain_id: int
    symbol: str
    decimals: int = 18
    name: Optional[str] = None

    @property
    def key(self) -> tuple[str, int]:
        """Identity of the token: (lowercased address, chain id)."""
        return self.address.lower(), self.chain_id

    def to_dict(self) -> dict:
        data = {
            "address": self.address,
            "chainId": self.chain_id,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Token":
        try:
            return cls(
                address=data["address"],
                chain_id=int(data["chainId"]),
                symbol=data["symbol"],
                decimals=int(data.get("decimals", 18)),
                name=data.get("name") or None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptedDocument(f"Invalid token entry: {e}") from e
