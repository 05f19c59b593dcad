"""
PYUSD cross-chain payment gateway.

Prepares PYUSD payments through the payment orchestrator contract (which
routes cross-chain transfers over LayerZero) and reads balances, payment
status and service accounts. Write operations return unsigned transactions
for the caller's wallet.
"""

import logging
import time
from typing import Any

from web3 import Web3

from hivemind.blockchain.client import (
    ChainClient,
    encode_function_call,
    format_ether,
    from_units,
    get_chain_client,
    to_bytes32,
    to_checksum,
    to_hex,
    to_units,
)
from hivemind.blockchain.networks import NETWORKS, PYUSD_NETWORKS, NetworkConfig
from hivemind.contracts.abis import (
    APPROVE_SIGNATURE,
    ERC20_ABI,
    INITIATE_PAYMENT_SIGNATURE,
    ORCHESTRATOR_ABI,
    PAYMENT_FIELDS,
)
from hivemind.core.constants import (
    PYUSD_CROSS_CHAIN_GAS,
    PYUSD_CROSS_CHAIN_LZ_FEE_ETH,
    PYUSD_DECIMALS,
    PYUSD_ESTIMATED_GAS_PRICE_GWEI,
    PYUSD_LOCAL_GAS,
    PYUSD_LZ_OPTIONS,
)
from hivemind.core.errors import ChainReadError, SafeException

logger = logging.getLogger(__name__)

DEFAULT_CHAIN = "base-sepolia"
PAYMENT_STATUSES = ["Pending", "Processing", "Completed", "Failed", "Refunded"]

ACTIONS = [
    "initiate-payment",
    "check-balance",
    "approve-spending",
    "get-payment-status",
    "register-service",
    "get-account-info",
    "estimate-fees",
]


class InvalidActionError(SafeException):
    """Raised for an unknown gateway action."""

    status_code = 400


def _hex_to_bytes(value: str) -> bytes:
    value = value or "0x"
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _now_ms() -> int:
    return int(time.time() * 1000)


class PYUSDGateway:
    """Service for PYUSD payments across chains."""

    def __init__(self, client_factory=get_chain_client):
        self.client_factory = client_factory

    def _chain(self, name: str) -> NetworkConfig:
        if name not in PYUSD_NETWORKS:
            raise ValueError("Invalid chain configuration")
        return NETWORKS[name]

    def _client(self, network: NetworkConfig) -> ChainClient:
        return self.client_factory(network.rpc_url)

    def describe(self) -> dict[str, Any]:
        return {
            "service": "X402 PYUSD Payment Gateway",
            "version": "1.0.0",
            "endpoints": {"POST /api/v1/x402/pyusd/payment": {"actions": ACTIONS}},
            "supportedChains": list(PYUSD_NETWORKS),
            "pyusdDecimals": PYUSD_DECIMALS,
        }

    async def handle(self, action: str | None, params: dict[str, Any] | None) -> dict[str, Any]:
        """
        Dispatch a gateway action.

        Raises:
            InvalidActionError: For unknown actions
            ValueError: For invalid chains or parameters
        """
        handlers = {
            "initiate-payment": self.initiate_payment,
            "check-balance": self.check_balance,
            "approve-spending": self.approve_spending,
            "get-payment-status": self.get_payment_status,
            "register-service": self.register_service,
            "get-account-info": self.get_account_info,
            "estimate-fees": self.estimate_fees,
        }
        handler = handlers.get(action or "")
        if handler is None:
            raise InvalidActionError("Invalid action")
        return await handler(params or {})

    async def initiate_payment(self, params: dict[str, Any]) -> dict[str, Any]:
        source_chain = params.get("sourceChain", DEFAULT_CHAIN)
        destination_chain = params.get("destinationChain", DEFAULT_CHAIN)
        recipient = params.get("recipient")
        amount = params.get("amount")
        metadata = params.get("metadata", "0x")

        source = self._chain(source_chain)
        dest = self._chain(destination_chain)
        if not recipient or amount is None:
            raise ValueError("recipient and amount are required")

        amount_units = to_units(amount, PYUSD_DECIMALS)
        service_id = params.get("serviceId") or to_hex(Web3.keccak(text=f"service-{_now_ms()}"))

        lz_fee = to_units(PYUSD_CROSS_CHAIN_LZ_FEE_ETH, 18) if source_chain != destination_chain else 0

        data = encode_function_call(
            INITIATE_PAYMENT_SIGNATURE,
            ["address", "uint256", "uint32", "bytes32", "bytes", "bytes"],
            [
                to_checksum(recipient),
                amount_units,
                dest.lz_endpoint_id,
                to_bytes32(service_id),
                _hex_to_bytes(metadata),
                _hex_to_bytes(PYUSD_LZ_OPTIONS),
            ],
        )

        logger.info(f"Prepared PYUSD payment {source_chain} -> {destination_chain} for {amount}")
        return {
            "success": True,
            "transaction": {
                "to": source.contract("orchestrator"),
                "data": data,
                "value": hex(lz_fee),
                "chainId": source.chain_id,
            },
            "payment": {
                "sourceChain": source_chain,
                "destinationChain": destination_chain,
                "recipient": recipient,
                "amount": str(amount),
                "amountInUnits": str(amount_units),
                "serviceId": service_id,
                "lzFee": format_ether(lz_fee),
                "estimatedGas": "200000",
            },
        }

    async def check_balance(self, params: dict[str, Any]) -> dict[str, Any]:
        chain_name = params.get("chain", DEFAULT_CHAIN)
        network = NETWORKS.get(chain_name) if chain_name in PYUSD_NETWORKS else None
        if network is None or not network.has_contract("pyusd"):
            return {"success": False, "balance": "0", "message": "PYUSD not deployed on this chain"}

        address = params.get("address")
        if not address:
            raise ValueError("address is required")

        client = self._client(network)
        token = network.contract("pyusd")
        balance = await client.call(token, ERC20_ABI, "balanceOf", to_checksum(address))
        decimals = await client.call(token, ERC20_ABI, "decimals")

        return {
            "success": True,
            "balance": from_units(balance, decimals),
            "balanceRaw": str(balance),
            "decimals": int(decimals),
            "chain": chain_name,
            "tokenAddress": token,
        }

    async def approve_spending(self, params: dict[str, Any]) -> dict[str, Any]:
        network = self._chain(params.get("chain", DEFAULT_CHAIN))
        amount = params.get("amount")
        if amount is None:
            raise ValueError("amount is required")

        spender = params.get("spender") or network.contract("orchestrator")
        amount_units = to_units(amount, PYUSD_DECIMALS)
        data = encode_function_call(
            APPROVE_SIGNATURE, ["address", "uint256"], [to_checksum(spender), amount_units]
        )

        return {
            "success": True,
            "transaction": {
                "to": network.contract("pyusd"),
                "data": data,
                "chainId": network.chain_id,
            },
            "approval": {
                "token": "PYUSD",
                "spender": spender,
                "amount": str(amount),
                "amountInUnits": str(amount_units),
            },
        }

    async def get_payment_status(self, params: dict[str, Any]) -> dict[str, Any]:
        network = self._chain(params.get("chain", DEFAULT_CHAIN))
        payment_id = params.get("paymentId")

        try:
            raw = await self._client(network).call(
                network.contract("orchestrator"), ORCHESTRATOR_ABI, "getPayment", to_bytes32(payment_id)
            )
        except (ChainReadError, ValueError, TypeError, AttributeError) as e:
            logger.info(f"PYUSD payment {payment_id} not found: {e}")
            return {"success": False, "message": "Payment not found", "paymentId": payment_id}

        payment = dict(zip(PAYMENT_FIELDS, raw))
        status_index = int(payment["status"])
        return {
            "success": True,
            "payment": {
                "id": payment_id,
                "payer": payment["payer"],
                "recipient": payment["recipient"],
                "amount": from_units(payment["amount"], PYUSD_DECIMALS),
                "sourceChainId": str(payment["sourceChainId"]),
                "destinationChainId": str(payment["destinationChainId"]),
                "timestamp": str(payment["timestamp"]),
                "status": PAYMENT_STATUSES[status_index] if status_index < len(PAYMENT_STATUSES) else "Unknown",
                "serviceId": to_hex(payment["serviceId"]),
                "metadata": to_hex(payment["metadata"]),
            },
        }

    async def register_service(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        price_per_call = params.get("pricePerCall")
        if not name or price_per_call is None:
            raise ValueError("name and pricePerCall are required")

        registered_at = _now_ms()
        service = {
            "id": to_hex(Web3.keccak(text=f"{name}-{registered_at}")),
            "name": name,
            "description": params.get("description"),
            "pricePerCall": str(to_units(price_per_call, PYUSD_DECIMALS)),
            "endpoint": params.get("endpoint"),
            "capabilities": params.get("capabilities", []),
            "registeredAt": registered_at,
            "chain": params.get("chain", DEFAULT_CHAIN),
            "status": "active",
        }
        return {"success": True, "service": service, "message": "Service registered successfully"}

    async def get_account_info(self, params: dict[str, Any]) -> dict[str, Any]:
        chain_name = params.get("chain", DEFAULT_CHAIN)
        network = self._chain(chain_name)
        address = params.get("address")

        client = self._client(network)
        orchestrator = network.contract("orchestrator")
        try:
            balance, total_spent, total_received, is_active = await client.call(
                orchestrator, ORCHESTRATOR_ABI, "serviceAccounts", to_checksum(address)
            )
            chain_balance = await client.call(
                orchestrator, ORCHESTRATOR_ABI, "getChainBalance", to_checksum(address), network.lz_endpoint_id
            )
        except (ChainReadError, ValueError, TypeError) as e:
            logger.info(f"PYUSD service account {address} not found: {e}")
            return {"success": False, "message": "Account not found", "address": address}

        return {
            "success": True,
            "account": {
                "address": address,
                "balance": from_units(balance, PYUSD_DECIMALS),
                "totalSpent": from_units(total_spent, PYUSD_DECIMALS),
                "totalReceived": from_units(total_received, PYUSD_DECIMALS),
                "isActive": bool(is_active),
                "chainBalance": from_units(chain_balance, PYUSD_DECIMALS),
                "chain": chain_name,
            },
        }

    async def estimate_fees(self, params: dict[str, Any]) -> dict[str, Any]:
        source_chain = params.get("sourceChain", DEFAULT_CHAIN)
        destination_chain = params.get("destinationChain", DEFAULT_CHAIN)
        amount = params.get("amount")
        if amount is None:
            raise ValueError("amount is required")

        amount_units = to_units(amount, PYUSD_DECIMALS)
        if source_chain != destination_chain:
            lz_fee = to_units(PYUSD_CROSS_CHAIN_LZ_FEE_ETH, 18)
            gas_estimate = PYUSD_CROSS_CHAIN_GAS
        else:
            lz_fee = 0
            gas_estimate = PYUSD_LOCAL_GAS

        gas_cost = gas_estimate * to_units(PYUSD_ESTIMATED_GAS_PRICE_GWEI, 9)

        return {
            "success": True,
            "fees": {
                "layerZeroFee": format_ether(lz_fee),
                "estimatedGas": str(gas_estimate),
                "estimatedGasCost": format_ether(gas_cost),
                "totalEstimatedCost": format_ether(lz_fee + gas_cost),
                "paymentAmount": from_units(amount_units, PYUSD_DECIMALS),
                "sourceChain": source_chain,
                "destinationChain": destination_chain,
            },
        }
