"""MartianPay webhook receiver.

An aiohttp application that accepts signed webhook POSTs, verifies them,
decodes the event and hands it to an ``EventDispatcher``.

Responses use the MartianPay envelope:
- ``{"code": 0, "msg": "success"}`` when the event was accepted
- ``{"code": <status>, "msg": <reason>}`` otherwise

Failures map to 400 (malformed header or payload), 401 (missing, invalid
or expired signature) or 500 (handler failure). With
``legacy_status_codes`` every failure is answered with 500.
"""

from __future__ import annotations

import asyncio
import time

import structlog
from aiohttp import web

from martianpay.core.config import WebhookSettings
from martianpay.errors import WebhookError
from martianpay.events import Event
from martianpay.observability.metrics import (
    WEBHOOK_EVENTS,
    WEBHOOK_PROCESSING,
    WEBHOOK_REQUESTS,
    generate_metrics,
    get_content_type,
)
from martianpay.webhooks.dispatcher import DispatchResult, EventDispatcher, create_dispatcher
from martianpay.webhooks.verifier import WebhookVerifier

logger = structlog.get_logger()

SUCCESS_BODY = {"code": 0, "msg": "success"}


class WebhookReceiver:
    """HTTP endpoint for MartianPay webhooks."""

    def __init__(
        self,
        settings: WebhookSettings | None = None,
        dispatcher: EventDispatcher | None = None,
        verifier: WebhookVerifier | None = None,
    ) -> None:
        """Initialize the receiver.

        Args:
            settings: Receiver settings (default: read from the environment).
            dispatcher: Routes verified events (default: the domain dispatcher).
            verifier: Signature verifier (default: built from ``settings``).

        Raises:
            ValueError: If no verifier is given and the secret is empty.
        """
        self.settings = settings or WebhookSettings()
        self.dispatcher = dispatcher or create_dispatcher()
        self.verifier = verifier or WebhookVerifier(
            self.settings.secret, tolerance=self.settings.tolerance
        )
        self._runner: web.AppRunner | None = None

    def create_app(self) -> web.Application:
        """Build the aiohttp application with the webhook, health and metrics routes."""
        app = web.Application(client_max_size=self.settings.max_body_size)
        app.router.add_post(self.settings.path, self._handle_webhook)
        app.router.add_get("/health", self._handle_health_check)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    def _process(self, payload: bytes, header: str | None) -> tuple[Event, DispatchResult]:
        event = self.verifier.construct_event(payload, header)
        return event, self.dispatcher.dispatch(event)

    def _error_response(self, error: WebhookError) -> web.Response:
        status = 500 if self.settings.legacy_status_codes else error.http_status
        return web.json_response({"code": status, "msg": error.message}, status=status)

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        """Verify, decode and dispatch one webhook request."""
        start = time.perf_counter()
        payload = await request.read()
        header = request.headers.get(self.settings.signature_header)

        try:
            event, result = await asyncio.to_thread(self._process, payload, header)
        except WebhookError as e:
            WEBHOOK_REQUESTS.labels(outcome=e.status.value).inc()
            log = logger.exception if e.http_status >= 500 else logger.warning
            log(
                "Webhook rejected",
                reason=e.status.value,
                error=e.message,
                remote=request.remote,
            )
            return self._error_response(e)
        finally:
            WEBHOOK_PROCESSING.observe(time.perf_counter() - start)

        WEBHOOK_REQUESTS.labels(outcome="success").inc()
        WEBHOOK_EVENTS.labels(prefix=result.prefix or "unhandled").inc()
        logger.info(
            "Webhook accepted",
            event_id=event.id,
            event_type=event.type,
            route=result.prefix,
        )
        return web.json_response(SUCCESS_BODY)

    async def _handle_health_check(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy"})

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Prometheus metrics endpoint."""
        return web.Response(
            body=generate_metrics(),
            headers={"Content-Type": get_content_type()},
        )

    async def start(self) -> None:
        """Bind the receiver and start serving."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.settings.host, self.settings.port)
        await site.start()
        logger.info(
            "Webhook receiver started",
            host=self.settings.host,
            port=self.settings.port,
            path=self.settings.path,
            routes=[route.prefix for route in self.dispatcher.routes],
        )

    async def stop(self) -> None:
        """Stop the receiver gracefully."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Webhook receiver stopped")


async def run(receiver: WebhookReceiver) -> None:
    """Serve until cancelled."""
    await receiver.start()
    try:
        await asyncio.Event().wait()
    finally:
        await receiver.stop()
