import json
from uuid import uuid4

import httpx
import pytest

from src.careplan.config import settings
from src.careplan.services.reminders.notifiers import (
    LogNotifier,
    WebhookNotifier,
    get_notifier_from_env,
)


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_webhook_posts_reminder_payload():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    patient_id = uuid4()
    async with _client(handler) as client:
        result = await WebhookNotifier("http://push.local/send", client=client).send(patient_id, "Take your pills")

    assert result.ok
    assert seen == [{"patient_id": str(patient_id), "message": "Take your pills"}]


async def test_webhook_non_success_status_is_a_failure():
    async with _client(lambda request: httpx.Response(503)) as client:
        result = await WebhookNotifier("http://push.local/send", client=client).send(uuid4(), "hi")

    assert not result.ok
    assert "503" in result.error


async def test_webhook_transport_error_is_a_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        result = await WebhookNotifier("http://push.local/send", client=client).send(uuid4(), "hi")

    assert not result.ok
    assert result.error.startswith("transport error")


async def test_log_notifier_always_succeeds(caplog):
    with caplog.at_level("INFO", logger="careplan.notifications"):
        result = await LogNotifier().send(uuid4(), "Reminder: Follow the doctor's plan.")

    assert result.ok
    assert "Reminder: Follow the doctor's plan." in caplog.text


def test_notifier_selection(monkeypatch):
    monkeypatch.setattr(settings, "notifier_backend", "webhook")
    monkeypatch.setattr(settings, "notifier_webhook_url", None)
    with pytest.raises(RuntimeError):
        get_notifier_from_env()

    monkeypatch.setattr(settings, "notifier_webhook_url", "http://push.local/send")
    assert isinstance(get_notifier_from_env(), WebhookNotifier)

    monkeypatch.setattr(settings, "notifier_backend", "log")
    assert isinstance(get_notifier_from_env(), LogNotifier)
