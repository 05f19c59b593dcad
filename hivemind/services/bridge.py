"""
LayerZero bridge quoting service.

Produces a quote for moving a token between LayerZero testnets: message id,
fee estimate from the source chain's gas price and the explorer link. No
message is sent; the caller submits the transaction with their own wallet.
"""

import logging
import secrets
from typing import Any

from web3 import Web3

from hivemind.blockchain.client import ChainClient, format_ether, get_chain_client, to_checksum
from hivemind.blockchain.networks import LZ_BRIDGE_NETWORKS, NETWORKS, get_network_by_lz_eid
from hivemind.core.config import settings
from hivemind.core.constants import (
    LZ_BASE_MESSAGE_GAS,
    LZ_DEFAULT_GAS_PRICE_WEI,
    LZ_ESTIMATED_DELIVERY_SECONDS,
)

logger = logging.getLogger(__name__)

LZ_DOCS_URL = "https://docs.layerzero.network/v2"
LZ_SCAN_URL = "https://testnet.layerzeroscan.com"


def compute_message_id(src_eid: int, dst_eid: int, recipient: str, nonce: int) -> str:
    """keccak256 of the packed (uint16 src, uint16 dst, address recipient, uint64 nonce)."""
    digest = Web3.solidity_keccak(
        ["uint16", "uint16", "address", "uint64"],
        [src_eid, dst_eid, to_checksum(recipient), nonce],
    )
    return "0x" + bytes(digest).hex()


class BridgeService:
    """Service for LayerZero bridge quotes."""

    def __init__(self, client_factory=get_chain_client):
        self.client_factory = client_factory

    def supported(self) -> dict[str, Any]:
        """Endpoints, endpoint ids and RPC URLs of the supported chains."""
        networks = [NETWORKS[name] for name in LZ_BRIDGE_NETWORKS]
        return {
            "endpoints": {n.name: n.lz_endpoint for n in networks},
            "chainIds": {n.name: n.lz_endpoint_id for n in networks},
            "rpcUrls": {n.name: n.rpc_url for n in networks},
            "supported": [n.name for n in networks],
            "documentation": LZ_DOCS_URL,
        }

    async def quote(
        self,
        src_chain_id: int,
        dst_chain_id: int,
        amount: Any,
        token: str,
        recipient: str,
    ) -> dict[str, Any]:
        """
        Quote a cross-chain transfer.

        Args:
            src_chain_id: LayerZero endpoint id of the source chain
            dst_chain_id: LayerZero endpoint id of the destination chain
            amount: Amount to bridge (echoed back)
            token: Token symbol or address (echoed back)
            recipient: Recipient address on the destination chain

        Returns:
            Quote with message id, fees and explorer URL

        Raises:
            InvalidNetworkError: If either id is not a supported endpoint
            ChainReadError: If the source chain cannot be read
        """
        src = get_network_by_lz_eid(src_chain_id)
        dst = get_network_by_lz_eid(dst_chain_id)

        chain: ChainClient = self.client_factory(src.rpc_url)
        block = await chain.get_latest_block()
        gas_price = await chain.get_gas_price() or LZ_DEFAULT_GAS_PRICE_WEI

        nonce = int.from_bytes(secrets.token_bytes(8), "big")
        message_id = compute_message_id(src_chain_id, dst_chain_id, recipient, nonce)

        native_fee_wei = LZ_BASE_MESSAGE_GAS * gas_price
        native_fee = format_ether(native_fee_wei)
        total_fee_usd = f"{float(native_fee) * settings.eth_price_usd:.2f}"

        logger.info(
            f"LayerZero bridge quote {src.name} -> {dst.name}: {amount} {token}, message {message_id}"
        )

        return {
            "messageId": message_id,
            "messageNonce": f"0x{nonce:016x}",
            "transactionHash": None,
            "estimatedTime": LZ_ESTIMATED_DELIVERY_SECONDS,
            "srcChainId": src_chain_id,
            "dstChainId": dst_chain_id,
            "srcChain": src.name,
            "dstChain": dst.name,
            "amount": amount,
            "token": token,
            "recipient": recipient,
            "status": "pending",
            "blockNumber": block["number"],
            "timestamp": block["timestamp"],
            "estimatedFees": {
                "nativeFee": native_fee,
                "zroFee": "0",
                "totalFeeUSD": total_fee_usd,
            },
            "layerZeroEndpoint": src.lz_endpoint,
            "explorerUrl": f"{LZ_SCAN_URL}/{message_id}",
        }
