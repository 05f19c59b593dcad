"""
Agent wallet keystore.

Agents hold their own EOA wallets. Keys are created or imported with
``eth_account`` and stored as encrypted keystores; balances are read from
any network in the chain registry.
"""

import logging
from typing import Any

from eth_account import Account
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hivemind.blockchain.client import format_ether, get_chain_client, to_checksum
from hivemind.blockchain.networks import get_network
from hivemind.core.config import settings
from hivemind.core.errors import InvalidParameterError, SafeException
from hivemind.models.wallets import AgentWallet

logger = logging.getLogger(__name__)

EXPORT_WARNING = "Never share this private key. Anyone holding it controls the wallet's funds."


class WalletNotFoundError(SafeException):
    status_code = 404


class WalletExistsError(SafeException):
    status_code = 409


class WalletService:
    """Service for managing agent wallets."""

    def __init__(
        self,
        db: AsyncSession,
        password: str | None = None,
        iterations: int | None = None,
        client_factory=get_chain_client,
    ):
        """
        Initialize the wallet service.

        Args:
            db: Database session
            password: Keystore passphrase (defaults to settings)
            iterations: PBKDF2 iterations for new keystores (defaults to settings)
            client_factory: Returns a ChainClient for an RPC URL
        """
        self.db = db
        self.password = password or settings.wallet_keystore_password
        self.iterations = iterations or settings.wallet_keystore_iterations
        self.client_factory = client_factory

    async def _store(self, private_key: str | bytes, name: str | None) -> AgentWallet:
        account = Account.from_key(private_key)
        if await self.db.get(AgentWallet, account.address) is not None:
            raise WalletExistsError("Wallet already exists", detail=account.address)

        keystore = Account.encrypt(account.key, self.password, kdf="pbkdf2", iterations=self.iterations)
        wallet = AgentWallet(address=account.address, name=name, keystore=keystore)
        self.db.add(wallet)
        await self.db.flush()
        return wallet

    async def create_wallet(self, name: str | None = None) -> AgentWallet:
        """Generate a new wallet and store it encrypted."""
        account = Account.create()
        wallet = await self._store(account.key, name)
        logger.info(f"Created agent wallet {wallet.address}")
        return wallet

    async def import_wallet(self, private_key: str, name: str | None = None) -> AgentWallet:
        """
        Import an existing private key.

        Raises:
            ValueError: If the key is malformed
            WalletExistsError: If the wallet is already stored
        """
        try:
            Account.from_key(private_key)
        except Exception as e:
            raise ValueError("Invalid private key") from e
        wallet = await self._store(private_key, name)
        logger.info(f"Imported agent wallet {wallet.address}")
        return wallet

    async def list_wallets(self) -> list[AgentWallet]:
        result = await self.db.execute(select(AgentWallet).order_by(AgentWallet.created_at))
        return list(result.scalars().all())

    async def get_wallet(self, address: str) -> AgentWallet:
        """
        Look up a stored wallet by address in any letter case.

        Raises:
            InvalidParameterError: If the address is not 20 hex bytes
            WalletNotFoundError: If the wallet is not in the keystore
        """
        try:
            checksummed = to_checksum(address)
        except ValueError:
            raise InvalidParameterError("Invalid address", detail=address)
        # stored under the checksummed address
        wallet = await self.db.get(AgentWallet, checksummed)
        if wallet is None:
            raise WalletNotFoundError("Wallet not found")
        return wallet

    async def export_wallet(self, address: str) -> dict[str, Any]:
        """Decrypt a stored wallet's private key."""
        wallet = await self.get_wallet(address)
        private_key = Account.decrypt(wallet.keystore, self.password)
        logger.warning(f"Private key exported for wallet {wallet.address}")
        return {
            "address": wallet.address,
            "privateKey": "0x" + bytes(private_key).hex(),
            "warning": EXPORT_WARNING,
        }

    async def get_balance(self, address: str, network: str = "base-sepolia") -> dict[str, Any]:
        """
        Native balance of a stored wallet.

        Raises:
            WalletNotFoundError: If the wallet is not in the keystore
            InvalidNetworkError: If the network is unknown
            ChainReadError: If the balance cannot be read
        """
        wallet = await self.get_wallet(address)
        config = get_network(network)
        wei = await self.client_factory(config.rpc_url).get_balance(wallet.address)
        return {
            "address": wallet.address,
            "network": config.name,
            "balance": format_ether(wei),
            "balanceWei": str(wei),
        }
