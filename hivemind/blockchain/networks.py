"""
Chain registry.

Every network the gateway talks to is described once here: RPC endpoint,
EVM chain id, LayerZero V2 endpoint id and the contract addresses deployed on
it. Addresses that vary per deployment come from settings.
"""

import logging
from dataclasses import dataclass, field

from hivemind.core.config import ZERO_ADDRESS, settings
from hivemind.core.errors import InvalidNetworkError

logger = logging.getLogger(__name__)

# LayerZero V2 endpoint contract shared by the supported testnets
LZ_TESTNET_ENDPOINT = "0x6EDCE65403992e310A62460808c4b910D972f10f"
ETHEREUM_PYUSD_ADDRESS = "0x6c3ea9036406852006290770bedfcaba0e23a0e8"


@dataclass
class NetworkConfig:
    """Static description of one EVM network."""

    name: str
    rpc_url: str
    chain_id: int
    lz_endpoint_id: int | None = None
    lz_endpoint: str | None = None
    explorer: str | None = None
    contracts: dict[str, str] = field(default_factory=dict)

    def contract(self, key: str) -> str:
        """Address of a named contract, or the zero address if undeployed."""
        return self.contracts.get(key, ZERO_ADDRESS)

    def has_contract(self, key: str) -> bool:
        return self.contract(key).lower() != ZERO_ADDRESS


def _build_networks() -> dict[str, NetworkConfig]:
    return {
        "localhost": NetworkConfig(
            name="localhost",
            rpc_url=settings.localhost_rpc_url,
            chain_id=31337,
            contracts={
                "coordinator": settings.coordinator_address_localhost,
                "payment_token": settings.payment_token_address_localhost,
            },
        ),
        "base-sepolia": NetworkConfig(
            name="base-sepolia",
            rpc_url=settings.base_sepolia_rpc_url,
            chain_id=84532,
            lz_endpoint_id=40245,
            lz_endpoint=LZ_TESTNET_ENDPOINT,
            explorer="https://sepolia.basescan.org",
            contracts={
                "coordinator": settings.coordinator_address_base_sepolia,
                "payment_token": settings.payment_token_address_base_sepolia,
                "pyusd": settings.pyusd_address_base,
                "orchestrator": settings.orchestrator_address_base,
            },
        ),
        "arbitrum-sepolia": NetworkConfig(
            name="arbitrum-sepolia",
            rpc_url=settings.arbitrum_sepolia_rpc_url,
            chain_id=421614,
            lz_endpoint_id=40231,
            lz_endpoint=LZ_TESTNET_ENDPOINT,
            explorer="https://sepolia.arbiscan.io",
            contracts={
                "pyusd": settings.pyusd_address_arb,
                "orchestrator": settings.orchestrator_address_arb,
            },
        ),
        "optimism-sepolia": NetworkConfig(
            name="optimism-sepolia",
            rpc_url=settings.optimism_sepolia_rpc_url,
            chain_id=11155420,
            lz_endpoint_id=40232,
            lz_endpoint=LZ_TESTNET_ENDPOINT,
            explorer="https://sepolia-optimism.etherscan.io",
        ),
        "ethereum": NetworkConfig(
            name="ethereum",
            rpc_url=settings.ethereum_rpc_url,
            chain_id=1,
            lz_endpoint_id=30101,
            explorer="https://etherscan.io",
            contracts={
                "pyusd": ETHEREUM_PYUSD_ADDRESS,
                "orchestrator": settings.orchestrator_address_eth,
            },
        ),
        "coston2": NetworkConfig(
            name="coston2",
            rpc_url=settings.flare_rpc_url,
            chain_id=114,
            explorer="https://coston2-explorer.flare.network",
            contracts={
                "ftso_registry": settings.ftso_registry_address,
                "price_submitter": settings.ftso_price_submitter_address,
            },
        ),
    }


NETWORKS: dict[str, NetworkConfig] = _build_networks()

# Networks reachable over LayerZero testnet messaging
LZ_BRIDGE_NETWORKS = ("base-sepolia", "arbitrum-sepolia", "optimism-sepolia")

# Networks with a PYUSD payment orchestrator
PYUSD_NETWORKS = ("base-sepolia", "arbitrum-sepolia", "ethereum")


def get_network(name: str) -> NetworkConfig:
    """
    Look up a network by name.

    Raises:
        InvalidNetworkError: If the network is unknown
    """
    network = NETWORKS.get(name)
    if network is None:
        logger.warning(f"Unknown network requested: {name}")
        raise InvalidNetworkError("Invalid network", detail=name)
    return network


def get_network_by_lz_eid(eid: int, allowed: tuple[str, ...] = LZ_BRIDGE_NETWORKS) -> NetworkConfig:
    """
    Look up a network by LayerZero endpoint id.

    Raises:
        InvalidNetworkError: If no allowed network uses that endpoint id
    """
    for name in allowed:
        network = NETWORKS[name]
        if network.lz_endpoint_id == eid:
            return network
    raise InvalidNetworkError("Invalid chain IDs", detail=str(eid))
