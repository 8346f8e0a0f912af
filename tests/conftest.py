import os

# Must be set before config is imported; app.py builds a default app at import time.
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DISCORD_WEBHOOK_URL"] = ""
os.environ["WEBHOOK_REQUIRED"] = "false"

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from notifier import DiscordNotifier
from storage import MemoryStorage

WEBHOOK_URL = "https://discord.com/api/webhooks/123456/secret-token"


class WebhookRecorder:
    """Stands in for the webhook service and keeps every request it receives."""

    def __init__(self, status_code: int = 204):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Name or service not known", request=request)


@pytest.fixture
def valid_payload():
    return {
        "rename": "Alpha",
        "communitiesMember": "m1",
        "ownerUsername": "owner1",
        "robuxFund": "100",
        "textContent": "line one\n\nline two",
    }


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def webhook():
    return WebhookRecorder()


@pytest.fixture
def notifier(webhook):
    return DiscordNotifier(transport=webhook.transport)


@pytest.fixture
def make_client(storage):
    """Build a TestClient around a fresh app; tests pick the notifier."""
    clients = []

    def _make(notifier, store=None):
        test_client = TestClient(create_app(storage=store or storage, notifier=notifier))
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        test_client.close()


@pytest.fixture
def client(make_client, notifier):
    return make_client(notifier)
