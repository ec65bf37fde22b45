import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-for-chatrelay-tests-0123456789")
os.environ.pop("DATABASE_URL", None)
os.environ.pop("GEMINI_API_KEY", None)

import json

import httpx
import pytest
from starlette.testclient import TestClient

from chatrelay.services import build_services
from chatrelay.services.model_gateway import ModelGateway
from chatrelay.storage.memory import build_in_memory_storage
from rate_limiter import RateLimitConfig, RateLimitRule

TEST_COMMANDS = {"joke": "Why did the function return early? It had a base case."}
TEST_CANNED = {"hello": "Hi!", "thanks": "You're welcome!"}


def gemini_reply(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}, "finishReason": "STOP"}]}


class FakeGemini:
    """Records generateContent calls and answers with a fixed text or status."""

    def __init__(self, text: str = "Model answer.", status_code: int = 200, error: dict = None):
        self.text = text
        self.status_code = status_code
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json=self.error or {"error": {"code": self.status_code}})
        return httpx.Response(200, json=gemini_reply(self.text))

    @property
    def payloads(self) -> list:
        return [json.loads(request.content) for request in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_gateway(fake: FakeGemini = None, api_key: str = "test-key") -> ModelGateway:
    fake = fake or FakeGemini()
    return ModelGateway(api_key=api_key, transport=fake.transport())


def make_services(fake: FakeGemini = None, api_key: str = "test-key", **kwargs):
    kwargs.setdefault("storage", build_in_memory_storage())
    kwargs.setdefault("commands", dict(TEST_COMMANDS))
    kwargs.setdefault("canned_responses", dict(TEST_CANNED))
    kwargs.setdefault("gateway", make_gateway(fake, api_key))
    return build_services(**kwargs)


def make_client(services, rate_limit_config: RateLimitConfig = None) -> TestClient:
    from app.main import create_app

    rate_limit_config = rate_limit_config or RateLimitConfig(
        enabled=False,
        chat=RateLimitRule(limit=1000, window_seconds=60),
        auth=RateLimitRule(limit=1000, window_seconds=60),
        max_cache_entries=100,
        trusted_proxy_count=0,
    )
    return TestClient(create_app(services=services, rate_limit_config=rate_limit_config))


def register(client: TestClient, identity: str = "a@x.com", password: str = "pw123") -> str:
    response = client.post("/api/auth/register", json={"identity": identity, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def fake_gemini():
    return FakeGemini()


@pytest.fixture
def services(fake_gemini):
    return make_services(fake_gemini)


@pytest.fixture
def client(services):
    with make_client(services) as test_client:
        yield test_client
