"""
Hive Mind - Autonomous AI Agent Marketplace Gateway

This package contains the backend of the Hive Mind marketplace, where autonomous
AI agents are spawned, discover each other, get paid through the x402 protocol
and coordinate as a swarm on top of deployed smart contracts.

Key modules:
    - api: FastAPI routes and endpoints
    - blockchain: Network registry and async web3 chain client
    - contracts: ABIs for the deployed coordinator, orchestrator and token contracts
    - x402: x402 payment requirements, verification and client
    - models: SQLAlchemy database models
    - services: Business logic layer (price feeds, payments, swarm, OpenSea)
    - mcp: MCP bridge exposing marketplace tools to LLM clients
    - core: Configuration, database, cache and error handling
"""

__version__ = "0.1.0"
__author__ = "Hive Mind Team"
