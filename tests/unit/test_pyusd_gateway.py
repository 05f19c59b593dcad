"""
Tests for the PYUSD cross-chain payment gateway.
"""

import pytest

from hivemind.core.errors import ChainReadError
from hivemind.services.pyusd_gateway import InvalidActionError, PYUSDGateway

RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
PAYMENT_ID = "0x" + "11" * 32


@pytest.fixture
def gateway(client_factory):
    return PYUSDGateway(client_factory=client_factory)


class TestPaymentPreparation:
    """Test prepared (unsigned) transactions."""

    @pytest.mark.asyncio
    async def test_cross_chain_payment_carries_layerzero_fee(self, gateway):
        result = await gateway.handle("initiate-payment", {
            "sourceChain": "base-sepolia",
            "destinationChain": "arbitrum-sepolia",
            "recipient": RECIPIENT,
            "amount": "10.5",
            "serviceId": PAYMENT_ID,
        })

        assert result["success"] is True
        assert result["transaction"]["chainId"] == 84532
        assert result["transaction"]["value"] == hex(10**15)
        assert result["payment"]["amountInUnits"] == "10500000"
        assert result["payment"]["lzFee"] == "0.001"
        assert result["payment"]["serviceId"] == PAYMENT_ID

    @pytest.mark.asyncio
    async def test_same_chain_payment_is_free_of_layerzero_fee(self, gateway):
        result = await gateway.initiate_payment({"recipient": RECIPIENT, "amount": 1})

        assert result["transaction"]["value"] == "0x0"
        assert result["payment"]["lzFee"] == "0.0"
        assert result["payment"]["sourceChain"] == "base-sepolia"

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, gateway):
        with pytest.raises(ValueError, match="Invalid chain configuration"):
            await gateway.initiate_payment({
                "sourceChain": "optimism-sepolia",
                "recipient": RECIPIENT,
                "amount": 1,
            })

    @pytest.mark.asyncio
    async def test_missing_recipient(self, gateway):
        with pytest.raises(ValueError):
            await gateway.initiate_payment({"amount": 1})

    @pytest.mark.asyncio
    async def test_approve_spending(self, gateway):
        result = await gateway.approve_spending({"amount": "2", "spender": RECIPIENT})

        assert result["transaction"]["data"].startswith("0x095ea7b3")
        assert result["approval"]["amountInUnits"] == "2000000"
        assert result["approval"]["spender"] == RECIPIENT

    @pytest.mark.asyncio
    async def test_unknown_action(self, gateway):
        with pytest.raises(InvalidActionError) as exc_info:
            await gateway.handle("refund", {})
        assert exc_info.value.status_code == 400


class TestReads:
    """Test contract reads."""

    @pytest.mark.asyncio
    async def test_balance_on_chain_without_pyusd(self, gateway):
        result = await gateway.check_balance({"chain": "base-sepolia", "address": RECIPIENT})

        assert result == {"success": False, "balance": "0", "message": "PYUSD not deployed on this chain"}

    @pytest.mark.asyncio
    async def test_balance_on_ethereum(self, gateway, mock_chain):
        mock_chain.call.side_effect = [12_340_000, 6]

        result = await gateway.check_balance({"chain": "ethereum", "address": RECIPIENT})

        assert result["success"] is True
        assert result["balance"] == "12.34"
        assert result["balanceRaw"] == "12340000"
        assert result["decimals"] == 6

    @pytest.mark.asyncio
    async def test_payment_status(self, gateway, mock_chain):
        mock_chain.call.return_value = (
            RECIPIENT, RECIPIENT, 5_000_000, 40245, 40231, 1_700_000_000, 2, bytes(32), b"\x01",
        )

        result = await gateway.get_payment_status({"paymentId": PAYMENT_ID})

        payment = result["payment"]
        assert payment["amount"] == "5.0"
        assert payment["status"] == "Completed"
        assert payment["destinationChainId"] == "40231"
        assert payment["serviceId"] == "0x" + "00" * 32
        assert payment["metadata"] == "0x01"

    @pytest.mark.asyncio
    async def test_payment_status_not_found(self, gateway, mock_chain):
        mock_chain.call.side_effect = ChainReadError("execution reverted")

        result = await gateway.get_payment_status({"paymentId": PAYMENT_ID})

        assert result == {"success": False, "message": "Payment not found", "paymentId": PAYMENT_ID}

    @pytest.mark.asyncio
    async def test_payment_status_without_id(self, gateway, mock_chain):
        result = await gateway.get_payment_status({})

        assert result["message"] == "Payment not found"
        mock_chain.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_account_info(self, gateway, mock_chain):
        mock_chain.call.side_effect = [(1_000_000, 250_000, 0, True), 750_000]

        result = await gateway.get_account_info({"address": RECIPIENT})

        assert result["account"]["balance"] == "1.0"
        assert result["account"]["totalSpent"] == "0.25"
        assert result["account"]["chainBalance"] == "0.75"
        assert result["account"]["isActive"] is True


class TestFeeEstimation:
    """Test fee estimates."""

    @pytest.mark.asyncio
    async def test_cross_chain_fees(self, gateway):
        result = await gateway.estimate_fees({
            "amount": "100",
            "sourceChain": "base-sepolia",
            "destinationChain": "ethereum",
        })

        fees = result["fees"]
        assert fees["layerZeroFee"] == "0.001"
        assert fees["estimatedGas"] == "300000"
        assert fees["estimatedGasCost"] == "0.006"
        assert fees["totalEstimatedCost"] == "0.007"
        assert fees["paymentAmount"] == "100.0"

    @pytest.mark.asyncio
    async def test_local_fees(self, gateway):
        fees = (await gateway.estimate_fees({"amount": "1"}))["fees"]

        assert fees["layerZeroFee"] == "0.0"
        assert fees["estimatedGas"] == "150000"
        assert fees["estimatedGasCost"] == "0.003"

    @pytest.mark.asyncio
    async def test_amount_required(self, gateway):
        with pytest.raises(ValueError):
            await gateway.estimate_fees({})

    @pytest.mark.asyncio
    async def test_register_service(self, gateway):
        result = await gateway.register_service({"name": "oracle", "pricePerCall": "0.01"})

        assert result["service"]["pricePerCall"] == "10000"
        assert result["service"]["id"].startswith("0x")
        assert result["message"] == "Service registered successfully"
