"""
Chain registry: chain selector name -> chain id, default public RPC, explorer.

Names follow the Chainlink chain-selector naming used in workflow configs
(e.g. "ethereum-testnet-sepolia"). Only the chain family "evm" is known.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from recurpay.errors import ConfigurationError


@dataclass(frozen=True)
class Network:
    """A resolved EVM chain."""
    name: str
    chain_id: int
    rpc_url: str
    is_testnet: bool
    explorer_url: Optional[str] = None

    def tx_url(self, tx_hash: str) -> Optional[str]:
        if not self.explorer_url:
            return None
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


NETWORKS: Dict[str, Network] = {
    n.name: n
    for n in (
        Network(
            "ethereum-testnet-sepolia", 11155111,
            "https://ethereum-sepolia-rpc.publicnode.com", True, "https://sepolia.etherscan.io",
        ),
        Network(
            "ethereum-testnet-sepolia-base-1", 84532,
            "https://sepolia.base.org", True, "https://sepolia.basescan.org",
        ),
        Network(
            "ethereum-testnet-sepolia-arbitrum-1", 421614,
            "https://sepolia-rollup.arbitrum.io/rpc", True, "https://sepolia.arbiscan.io",
        ),
        Network(
            "ethereum-testnet-sepolia-optimism-1", 11155420,
            "https://sepolia.optimism.io", True, "https://sepolia-optimism.etherscan.io",
        ),
        Network(
            "polygon-testnet-amoy", 80002,
            "https://rpc-amoy.polygon.technology", True, "https://amoy.polygonscan.com",
        ),
        Network(
            "avalanche-testnet-fuji", 43113,
            "https://api.avax-test.network/ext/bc/C/rpc", True, "https://testnet.snowtrace.io",
        ),
        Network(
            "ethereum-mainnet", 1,
            "https://ethereum-rpc.publicnode.com", False, "https://etherscan.io",
        ),
        Network(
            "ethereum-mainnet-base-1", 8453,
            "https://mainnet.base.org", False, "https://basescan.org",
        ),
    )
}


def get_network(
    chain_name: str,
    chain_family: str = "evm",
    is_testnet: Optional[bool] = True,
    rpc_url: Optional[str] = None,
) -> Network:
    """
    Resolve a chain selector name.

    Args:
        chain_name: e.g. "ethereum-testnet-sepolia".
        chain_family: only "evm" is supported.
        is_testnet: if not None, the chain must be on that side (testnet/mainnet).
        rpc_url: overrides the registry's default public RPC.

    Raises ConfigurationError if the name is not in the registry.
    """
    if chain_family != "evm":
        raise ConfigurationError(f"Unsupported chain family: {chain_family}")
    network = NETWORKS.get((chain_name or "").strip())
    if network is None or (is_testnet is not None and network.is_testnet != is_testnet):
        raise ConfigurationError(f"Unknown chain name: {chain_name}")
    if rpc_url:
        network = Network(network.name, network.chain_id, rpc_url, network.is_testnet, network.explorer_url)
    return network
