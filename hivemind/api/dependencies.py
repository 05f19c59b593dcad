"""
Shared FastAPI dependencies for the API routes.
"""

from fastapi import Depends, Query

from hivemind.blockchain.client import get_chain_client
from hivemind.services.coordinator import CoordinatorService


def get_client_factory():
    """Factory turning an RPC URL into a ChainClient."""
    return get_chain_client


def get_coordinator(
    network: str = Query(default="localhost", description="Network name from the chain registry"),
    client_factory=Depends(get_client_factory),
) -> CoordinatorService:
    """Coordinator contract reader for the requested network."""
    return CoordinatorService(network, client_factory=client_factory)
