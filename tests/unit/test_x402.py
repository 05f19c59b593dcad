"""
Tests for the x402 payment protocol.

This module tests payment requirements, header verification, replay
protection and the paying client.
"""

import base64
import json

import httpx
import pytest

from hivemind.core.errors import PaymentVerificationError
from hivemind.services.x402_gateway import REPLAY_ERROR, X402Gateway
from hivemind.x402.client import X402Client, sign_payment
from hivemind.x402.nonces import NonceRegistry
from hivemind.x402.requirements import (
    payment_required_body,
    protected_requirements,
    service_requirements,
    usd_to_atomic,
)
from hivemind.x402.verification import (
    decode_payment_header,
    decode_payment_response,
    encode_payment_response,
    verify_payment,
)


@pytest.fixture
def requirements():
    return protected_requirements("GET")


class TestRequirements:
    """Test payment requirement construction."""

    def test_protected_prices(self):
        assert protected_requirements("GET").max_amount_required == "1000"
        assert protected_requirements("post").max_amount_required == "5000"

    def test_wire_format_uses_camel_case(self, requirements):
        wire = requirements.to_wire()

        assert wire["scheme"] == "exact"
        assert wire["network"] == "base-sepolia"
        assert wire["maxAmountRequired"] == "1000"
        assert wire["maxTimeoutSeconds"] == 300
        assert wire["payTo"].lower() == "0xc8973d8f3cd4ee6bd5358acdbe9a4ca517bdd129"
        assert wire["extra"] == {"name": "USDC", "version": "2"}
        assert wire["outputSchema"]["input"]["method"] == "GET"

    def test_service_requirements_omit_output_schema(self):
        wire = service_requirements(0.002, "https://agent.example/run", "AI Agent a1").to_wire()

        assert wire["maxAmountRequired"] == "2000"
        assert wire["resource"] == "https://agent.example/run"
        assert "outputSchema" not in wire

    @pytest.mark.parametrize(
        "price,expected",
        [("$0.001", "1000"), (0.005, "5000"), ("1", "1000000"), (0.0000019, "1")],
    )
    def test_usd_to_atomic_floors(self, price, expected):
        assert usd_to_atomic(price) == expected

    def test_payment_required_body(self, requirements):
        body = payment_required_body("Payment expired", requirements, payer="0xabc")

        assert body["x402Version"] == 1
        assert body["error"] == "Payment expired"
        assert body["accepts"] == [requirements.to_wire()]
        assert body["payer"] == "0xabc"


class TestVerification:
    """Test X-PAYMENT header verification."""

    def test_valid_payment(self, payer, requirements):
        header = sign_payment(payer, requirements).to_header()

        result = verify_payment(header, requirements)

        assert result.is_valid is True
        assert result.payer == payer.address
        assert result.payload.amount == "1000"

    def test_header_is_base64_json(self, payer, requirements):
        payload = sign_payment(payer, requirements)
        decoded = json.loads(base64.b64decode(payload.to_header()))

        assert decoded["payTo"] == requirements.pay_to
        assert len(decoded["nonce"]) == 32
        assert decode_payment_header(payload.to_header()).nonce == payload.nonce

    @pytest.mark.parametrize(
        "update,reason",
        [
            ({"scheme": "upto"}, "Invalid payment scheme"),
            ({"network": "base"}, "Invalid network"),
            ({"asset": "0x0000000000000000000000000000000000000001"}, "Invalid asset"),
            ({"pay_to": "0x0000000000000000000000000000000000000002"}, "Invalid recipient"),
            ({"amount": "999"}, "Insufficient payment: 999 < 1000"),
        ],
    )
    def test_field_mismatches(self, payer, requirements, update, reason):
        payload = sign_payment(payer, requirements).model_copy(update=update)

        result = verify_payment(payload.to_header(), requirements)

        assert result.is_valid is False
        assert result.reason == reason

    def test_checks_run_in_order(self, payer, requirements):
        """Scheme is reported before the other mismatches."""
        payload = sign_payment(payer, requirements).model_copy(
            update={"scheme": "upto", "network": "base", "amount": "1"}
        )
        assert verify_payment(payload.to_header(), requirements).reason == "Invalid payment scheme"

    def test_overpayment_accepted(self, payer, requirements):
        header = sign_payment(payer, requirements, amount="2000").to_header()
        assert verify_payment(header, requirements).is_valid is True

    def test_expired_payment(self, payer, requirements):
        payload = sign_payment(payer, requirements)

        result = verify_payment(payload.to_header(), requirements, now=payload.timestamp + 301)

        assert result.is_valid is False
        assert result.reason == "Payment expired"

    def test_payment_at_timeout_boundary_accepted(self, payer, requirements):
        payload = sign_payment(payer, requirements)
        assert verify_payment(payload.to_header(), requirements, now=payload.timestamp + 300).is_valid

    def test_malformed_signature(self, payer, requirements):
        payload = sign_payment(payer, requirements).model_copy(update={"signature": "0xdead"})

        result = verify_payment(payload.to_header(), requirements)

        assert result.is_valid is False
        assert result.reason == "Invalid signature"

    def test_short_nonce(self, payer, requirements):
        payload = sign_payment(payer, requirements).model_copy(
            update={"nonce": "abc", "signature": None, "payer": None}
        )

        result = verify_payment(payload.to_header(), requirements)

        assert result.is_valid is False
        assert result.reason == "Invalid or missing nonce"

    @pytest.mark.parametrize(
        "header",
        ["not-base64!!", base64.b64encode(b"{}").decode(), base64.b64encode(b"[1, 2]").decode()],
    )
    def test_malformed_header(self, requirements, header):
        result = verify_payment(header, requirements)

        assert result.is_valid is False
        assert result.reason == "Invalid payment format"

    def test_payment_response_header(self):
        header = encode_payment_response("0xpayer", "1000", action="spawn_agent", timestamp_ms=42)

        assert decode_payment_response(header) == {
            "success": True,
            "payer": "0xpayer",
            "amount": "1000",
            "action": "spawn_agent",
            "timestamp": 42,
        }


class TestReplayProtection:
    """Test nonce consumption and the gateway."""

    @pytest.mark.asyncio
    async def test_nonce_consumed_once(self, db_session, payer, requirements):
        registry = NonceRegistry(db_session)
        payload = sign_payment(payer, requirements)

        assert await registry.consume(payload, resource="r", amount="1000") is True
        assert await registry.consume(payload, resource="r", amount="1000") is False

    @pytest.mark.asyncio
    async def test_nonce_remembered_without_cache(self, db_session, payer, requirements):
        from hivemind.core.cache import cache_client

        registry = NonceRegistry(db_session)
        payload = sign_payment(payer, requirements)
        await registry.consume(payload, resource="r", amount="1000")
        cache_client._memory.clear()

        assert await registry.is_used(payload.nonce) is True

    @pytest.mark.asyncio
    async def test_rolled_back_nonce_is_usable_again(self, db_session, payer, requirements):
        registry = NonceRegistry(db_session)
        payload = sign_payment(payer, requirements)

        assert await registry.consume(payload, resource="r", amount="1000") is True
        await db_session.rollback()

        assert await registry.is_used(payload.nonce) is False
        assert await registry.consume(payload, resource="r", amount="1000") is True

    @pytest.mark.asyncio
    async def test_missing_payment_raises_challenge(self, db_session, requirements):
        with pytest.raises(PaymentVerificationError) as exc_info:
            await X402Gateway(db_session).require_payment(None, requirements)

        assert exc_info.value.status_code == 402
        assert exc_info.value.detail["error"] == "Payment required"
        assert exc_info.value.detail["accepts"][0]["maxAmountRequired"] == "1000"

    @pytest.mark.asyncio
    async def test_gateway_rejects_replay(self, db_session, payer, requirements):
        gateway = X402Gateway(db_session)
        header = sign_payment(payer, requirements).to_header()

        receipt = await gateway.require_payment(header, requirements, action="spawn_agent")
        assert receipt.payer == payer.address
        assert decode_payment_response(receipt.response_header())["action"] == "spawn_agent"

        with pytest.raises(PaymentVerificationError) as exc_info:
            await gateway.require_payment(header, requirements)
        assert exc_info.value.message == REPLAY_ERROR

    @pytest.mark.asyncio
    async def test_gateway_reports_payer_on_rejection(self, db_session, payer, requirements):
        payload = sign_payment(payer, requirements)

        with pytest.raises(PaymentVerificationError) as exc_info:
            await X402Gateway(db_session).require_payment(
                payload.model_copy(update={"amount": "10"}).to_header(), requirements
            )

        assert exc_info.value.detail["error"] == "Insufficient payment: 10 < 1000"


class TestX402Client:
    """Test the paying client against a fake 402 resource."""

    @staticmethod
    def _paid_resource(requirements, seen_headers):
        def handler(request: httpx.Request) -> httpx.Response:
            header = request.headers.get("X-PAYMENT")
            seen_headers.append(header)
            if header is None:
                return httpx.Response(402, json=payment_required_body("Payment required", requirements))
            result = verify_payment(header, requirements)
            if not result.is_valid:
                return httpx.Response(402, json=payment_required_body(result.reason, requirements))
            return httpx.Response(
                200,
                json={"capability": {"name": "sentiment", "type": "analysis"}},
                headers={"X-PAYMENT-RESPONSE": encode_payment_response(result.payer, "2000")},
            )

        return handler

    @pytest.mark.asyncio
    async def test_pays_and_retries(self, payer):
        requirements = service_requirements(0.002, "https://agent.test/buy", "capability")
        seen = []
        http = httpx.AsyncClient(transport=httpx.MockTransport(self._paid_resource(requirements, seen)))
        client = X402Client(account=payer, http_client=http)

        response = await client.call("https://agent.test/buy", {"action": "purchase"}, max_price=0.01)

        assert seen[0] is None and seen[1] is not None
        assert response["paid"] == "2000"
        assert response["data"]["capability"]["name"] == "sentiment"
        assert response["receipt"]["payer"] == payer.address
        await client.close()

    @pytest.mark.asyncio
    async def test_refuses_price_above_max(self, payer):
        requirements = service_requirements(0.05, "https://agent.test/buy", "capability")
        seen = []
        http = httpx.AsyncClient(transport=httpx.MockTransport(self._paid_resource(requirements, seen)))
        client = X402Client(account=payer, http_client=http)

        with pytest.raises(PaymentVerificationError, match="exceeds max price"):
            await client.call("https://agent.test/buy", max_price=0.01)
        assert len(seen) == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_free_resource_not_paid(self, payer):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"ok": True})))
        client = X402Client(account=payer, http_client=http)

        response = await client.call("https://agent.test/free")

        assert response == {"data": {"ok": True}, "paid": None, "receipt": None}
        await client.close()
