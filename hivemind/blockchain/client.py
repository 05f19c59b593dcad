"""
Async JSON-RPC client for EVM chains.

Wraps ``web3.AsyncWeb3`` for the handful of reads the gateway needs (block,
gas price, contract views) and provides helpers to prepare calldata for
transactions that the caller signs with their own wallet.
"""

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Any

from eth_abi import encode
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from hivemind.core.errors import ChainReadError

logger = logging.getLogger(__name__)

WEI_DECIMALS = 18


def to_units(amount: Any, decimals: int) -> int:
    """
    Convert a human amount to integer token units.

    Extra precision beyond ``decimals`` is truncated.

    Args:
        amount: Amount as str, int, float or Decimal
        decimals: Token decimals

    Returns:
        int: Amount in the token's smallest unit
    """
    try:
        value = Decimal(str(amount))
    except Exception as e:
        raise ValueError(f"Invalid amount: {amount}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount}")
    scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def from_units(raw: int, decimals: int) -> str:
    """
    Format integer token units as a decimal string.

    Whole amounts keep one fractional digit (``"1.0"``) and trailing zeros are
    otherwise dropped.
    """
    value = Decimal(int(raw)) / (Decimal(10) ** decimals)
    text = format(value.normalize(), "f")
    if "." not in text:
        text += ".0"
    return text


def format_ether(wei: int) -> str:
    """Format a wei amount as ETH."""
    return from_units(wei, WEI_DECIMALS)


def function_selector(signature: str) -> bytes:
    """First four bytes of the keccak hash of a function signature."""
    return bytes(Web3.keccak(text=signature)[:4])


def encode_function_call(signature: str, arg_types: list[str], args: list[Any]) -> str:
    """
    Build calldata for a contract call.

    Args:
        signature: Canonical signature, e.g. ``approve(address,uint256)``
        arg_types: ABI types of the arguments
        args: Argument values

    Returns:
        str: 0x-prefixed hex calldata
    """
    data = function_selector(signature) + encode(arg_types, args)
    return "0x" + data.hex()


def to_checksum(address: str) -> str:
    """Checksum an address, raising ValueError for malformed input."""
    if not Web3.is_address(address):
        raise ValueError(f"Invalid address: {address}")
    return Web3.to_checksum_address(address)


def to_bytes32(value: str | bytes) -> bytes:
    """Coerce a 0x-hex string or bytes into 32 bytes."""
    if isinstance(value, bytes):
        raw = value
    else:
        raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(raw) != 32:
        raise ValueError("Expected 32 bytes")
    return raw


def to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


class ChainClient:
    """
    Read-only client for one RPC endpoint.

    Every read raises ``ChainReadError`` on failure so callers can decide on
    their own fallback.
    """

    def __init__(self, rpc_url: str, timeout: float = 10.0):
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

    async def get_block_number(self) -> int:
        try:
            return int(await self.w3.eth.block_number)
        except Exception as e:
            logger.error(f"Failed to read block number from {self.rpc_url}: {e}")
            raise ChainReadError(str(e), {"rpc_url": self.rpc_url}) from e

    async def get_latest_block(self) -> dict[str, int]:
        """Number and timestamp of the latest block."""
        try:
            block = await self.w3.eth.get_block("latest")
        except Exception as e:
            logger.error(f"Failed to read latest block from {self.rpc_url}: {e}")
            raise ChainReadError(str(e), {"rpc_url": self.rpc_url}) from e
        return {"number": int(block["number"]), "timestamp": int(block["timestamp"])}

    async def get_gas_price(self) -> int:
        try:
            return int(await self.w3.eth.gas_price)
        except Exception as e:
            logger.error(f"Failed to read gas price from {self.rpc_url}: {e}")
            raise ChainReadError(str(e), {"rpc_url": self.rpc_url}) from e

    async def get_balance(self, address: str) -> int:
        """Native balance in wei."""
        try:
            return int(await self.w3.eth.get_balance(to_checksum(address)))
        except ValueError:
            raise
        except Exception as e:
            raise ChainReadError(str(e), {"rpc_url": self.rpc_url}) from e

    def contract(self, address: str, abi: list[dict[str, Any]]):
        return self.w3.eth.contract(address=to_checksum(address), abi=abi)

    async def call(self, address: str, abi: list[dict[str, Any]], fn_name: str, *args: Any) -> Any:
        """
        Call a view function.

        Args:
            address: Contract address
            abi: Contract ABI
            fn_name: Function name
            *args: Function arguments

        Returns:
            The decoded return value
        """
        try:
            contract = self.contract(address, abi)
            return await getattr(contract.functions, fn_name)(*args).call()
        except Exception as e:
            logger.debug(f"Contract call {fn_name} on {address} failed: {e}")
            raise ChainReadError(f"{fn_name} failed: {e}", {"address": address}) from e


_clients: dict[str, ChainClient] = {}


def get_chain_client(rpc_url: str) -> ChainClient:
    """Shared client per RPC URL."""
    client = _clients.get(rpc_url)
    if client is None:
        client = ChainClient(rpc_url)
        _clients[rpc_url] = client
    return client
