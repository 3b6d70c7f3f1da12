"""Tests for the aiohttp webhook receiver."""

from __future__ import annotations

import json
import socket
import time

import pytest
from aiohttp import test_utils

from martianpay.core.config import WebhookSettings
from martianpay.server import WebhookReceiver
from martianpay.webhooks import EventDispatcher, sign_payload

SECRET = "whsec_01c43aa3c8342e7cbe94c25ccf11ad709c180029fd83a217f8566751fd414327"
PATH = "/v1/webhook_test"


def make_payload(event_type: str = "payment_intent.succeeded", obj: dict | None = None) -> bytes:
    body = {
        "id": "evt_1",
        "object": "event",
        "created": int(time.time()),
        "type": event_type,
        "data": {"object": obj if obj is not None else {"id": "pi_1", "amount": "10.00"}},
    }
    return json.dumps(body, separators=(",", ":")).encode()


def make_receiver(dispatcher: EventDispatcher | None = None, **settings) -> WebhookReceiver:
    return WebhookReceiver(
        WebhookSettings(secret=SECRET, **settings),
        dispatcher=dispatcher or EventDispatcher(),
    )


def client_for(receiver: WebhookReceiver) -> test_utils.TestClient:
    return test_utils.TestClient(test_utils.TestServer(receiver.create_app()))


def sig(payload: bytes, timestamp: int | None = None, secret: str = SECRET) -> dict[str, str]:
    return {"Martian-Pay-Signature": sign_payload(payload, secret, timestamp=timestamp)}


class TestWebhookEndpoint:
    """Test POST handling."""

    @pytest.mark.asyncio
    async def test_valid_webhook(self):
        received = []
        receiver = make_receiver(EventDispatcher([("payment_intent.", received.append)]))
        payload = make_payload()

        async with client_for(receiver) as client:
            resp = await client.post(PATH, data=payload, headers=sig(payload))

            assert resp.status == 200
            assert await resp.json() == {"code": 0, "msg": "success"}

        assert received == [b'{"id":"pi_1","amount":"10.00"}']

    @pytest.mark.asyncio
    async def test_header_name_is_case_insensitive(self):
        payload = make_payload()
        headers = {"martian-pay-signature": sign_payload(payload, SECRET)}

        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=payload, headers=headers)
            assert resp.status == 200

    @pytest.mark.asyncio
    async def test_unknown_event_type_succeeds(self):
        payload = make_payload("something.new", {})

        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=payload, headers=sig(payload))

            assert resp.status == 200
            assert (await resp.json())["code"] == 0

    @pytest.mark.asyncio
    async def test_missing_signature(self):
        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=make_payload())

            assert resp.status == 401
            body = await resp.json()
            assert body["code"] == 401
            assert "Martian-Pay-Signature" in body["msg"]

    @pytest.mark.asyncio
    async def test_malformed_header(self):
        async with client_for(make_receiver()) as client:
            resp = await client.post(
                PATH, data=make_payload(), headers={"Martian-Pay-Signature": "v1=abc"}
            )

            assert resp.status == 400
            assert (await resp.json())["code"] == 400

    @pytest.mark.asyncio
    async def test_wrong_secret(self):
        payload = make_payload()

        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=payload, headers=sig(payload, secret="whsec_other"))

            assert resp.status == 401
            assert (await resp.json())["msg"] == "webhook had no valid signature"

    @pytest.mark.asyncio
    async def test_tampered_body(self):
        payload = make_payload()
        headers = sig(payload)

        async with client_for(make_receiver()) as client:
            resp = await client.post(
                PATH, data=payload.replace(b"10.00", b"99.00"), headers=headers
            )
            assert resp.status == 401

    @pytest.mark.asyncio
    async def test_expired_timestamp(self):
        payload = make_payload()
        headers = sig(payload, timestamp=int(time.time()) - 3600)

        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=payload, headers=headers)

            assert resp.status == 401
            assert (await resp.json())["msg"] == "timestamp wasn't within tolerance"

    @pytest.mark.asyncio
    async def test_signed_invalid_json(self):
        payload = b"{not json"

        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=payload, headers=sig(payload))

            assert resp.status == 400
            assert (await resp.json())["code"] == 400

    @pytest.mark.asyncio
    async def test_oversized_timestamp(self):
        payload = make_payload()
        header = "t=" + "9" * 5000 + ",v1=" + "00" * 32

        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=payload, headers={"Martian-Pay-Signature": header})

            assert resp.status == 400
            assert await resp.json() == {
                "code": 400,
                "msg": "webhook signature header has an invalid timestamp",
            }

    @pytest.mark.asyncio
    async def test_signed_deeply_nested_body(self):
        payload = (
            b'{"type":"payment_intent.succeeded","data":{"object":{"a":'
            + b"[" * 100000
            + b"]" * 100000
            + b"}}}"
        )

        async with client_for(make_receiver()) as client:
            resp = await client.post(PATH, data=payload, headers=sig(payload))

            assert resp.status == 400
            assert (await resp.json())["code"] == 400

    @pytest.mark.asyncio
    async def test_handler_failure(self):
        def broken(raw: bytes) -> None:
            raise RuntimeError("boom")

        receiver = make_receiver(EventDispatcher([("payment_intent.", broken)]))
        payload = make_payload()

        async with client_for(receiver) as client:
            resp = await client.post(PATH, data=payload, headers=sig(payload))

            assert resp.status == 500
            assert (await resp.json())["code"] == 500

    @pytest.mark.asyncio
    async def test_legacy_status_codes(self):
        receiver = make_receiver(legacy_status_codes=True)

        async with client_for(receiver) as client:
            missing = await client.post(PATH, data=make_payload())
            malformed = await client.post(
                PATH, data=make_payload(), headers={"Martian-Pay-Signature": "v1=abc"}
            )

            for resp in (missing, malformed):
                assert resp.status == 500
                assert (await resp.json())["code"] == 500

    @pytest.mark.asyncio
    async def test_custom_path_and_header(self):
        receiver = make_receiver(path="/hooks/martian", signature_header="X-Signature")
        payload = make_payload()
        headers = {"X-Signature": sign_payload(payload, SECRET)}

        async with client_for(receiver) as client:
            resp = await client.post("/hooks/martian", data=payload, headers=headers)
            assert resp.status == 200

            resp = await client.post(PATH, data=payload, headers=headers)
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_get_not_allowed(self):
        async with client_for(make_receiver()) as client:
            resp = await client.get(PATH)
            assert resp.status == 405


class TestAuxiliaryEndpoints:
    """Test health and metrics routes."""

    @pytest.mark.asyncio
    async def test_health(self):
        async with client_for(make_receiver()) as client:
            resp = await client.get("/health")

            assert resp.status == 200
            assert await resp.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_metrics(self):
        payload = make_payload()

        async with client_for(make_receiver()) as client:
            await client.post(PATH, data=payload, headers=sig(payload))
            resp = await client.get("/metrics")

            assert resp.status == 200
            text = await resp.text()
            assert "martianpay_webhook_requests_total" in text
            assert "martianpay_webhook_processing_seconds" in text


class TestReceiverSetup:
    """Test construction and lifecycle."""

    def test_requires_secret(self):
        with pytest.raises(ValueError):
            WebhookReceiver(WebhookSettings(secret=""), dispatcher=EventDispatcher())

    def test_default_dispatcher(self):
        receiver = WebhookReceiver(WebhookSettings(secret=SECRET))
        assert len(receiver.dispatcher) == 5

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        with socket.socket() as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]
        receiver = make_receiver(host="127.0.0.1", port=port)

        await receiver.start()
        await receiver.stop()

        assert receiver._runner is None
