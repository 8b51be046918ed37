from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

import httpx

from src.careplan.config import settings

logger = logging.getLogger("careplan.notifications")


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> "DeliveryResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> "DeliveryResult":
        return cls(ok=False, error=error)


class Notifier(Protocol):
    """Delivers a reminder message to a patient.

    Implementations report failures through the returned result rather than
    raising; the dispatcher also guards against unexpected exceptions.
    """

    async def send(self, patient_id: UUID, message: str) -> DeliveryResult:  # pragma: no cover - interface
        raise NotImplementedError


class LogNotifier:
    """Writes reminders to the application log instead of a real channel."""

    async def send(self, patient_id: UUID, message: str) -> DeliveryResult:
        logger.info("Sending reminder to patient %s: %s", patient_id, message)
        return DeliveryResult.success()


class WebhookNotifier:
    """Posts reminders as JSON to an HTTP endpoint.

    Any 2xx response counts as delivered. Transport errors and other status
    codes are reported as failures so the dispatcher can retry.
    """

    def __init__(self, url: str, *, timeout_seconds: float = 10.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._client = client

    async def send(self, patient_id: UUID, message: str) -> DeliveryResult:
        payload = {"patient_id": str(patient_id), "message": message}
        try:
            if self._client is not None:
                response = await self._client.post(self._url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                    response = await client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery to %s failed: %s", self._url, exc)
            return DeliveryResult.failure(f"transport error: {exc}")

        if not response.is_success:
            return DeliveryResult.failure(f"webhook returned HTTP {response.status_code}")
        return DeliveryResult.success()


def get_notifier_from_env() -> Notifier:
    """Select a notifier based on the NOTIFIER_BACKEND environment variable.

    - NOTIFIER_BACKEND=webhook → WebhookNotifier (requires NOTIFIER_WEBHOOK_URL)
    - Anything else (or unset) → LogNotifier
    """

    backend_name = settings.notifier_backend.lower()
    if backend_name == "webhook":
        if not settings.notifier_webhook_url:
            raise RuntimeError("NOTIFIER_WEBHOOK_URL must be set to use the webhook notifier")
        return WebhookNotifier(settings.notifier_webhook_url, timeout_seconds=settings.dispatcher_send_timeout_seconds)
    return LogNotifier()
