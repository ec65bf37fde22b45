import httpx

from conftest import FakeGemini, bearer, make_client, make_services, register

from chatrelay.errors import ModelFailure
from chatrelay.prompts import TOOL_TEMPLATES
from chatrelay.services.model_gateway import ModelGateway

THREE_TURNS = [
    {"role": "user", "text": "I need to book flights and renew my passport"},
    {"role": "bot", "text": "Start with the passport, it takes longer."},
    {"role": "user", "text": "Good idea"},
]


def test_tool_requires_auth(client):
    assert client.post("/api/tool/summarize", json={"history": THREE_TURNS}).status_code == 401


def test_summarize_with_enough_history(client, fake_gemini):
    headers = bearer(register(client))

    response = client.post("/api/tool/summarize", json={"history": THREE_TURNS}, headers=headers)

    assert response.status_code == 200
    text = response.json()["text"]
    assert text.startswith(TOOL_TEMPLATES["summarize"].lead_in)
    assert text.endswith("Model answer.")
    messages = client.get("/api/messages", headers=headers).json()["messages"]
    assert messages == [{"role": "bot", "text": text, "timestamp": messages[0]["timestamp"]}]


def test_insufficient_history(client, fake_gemini):
    headers = bearer(register(client))

    response = client.post("/api/tool/summarize", json={"history": THREE_TURNS[:1]}, headers=headers)

    assert response.status_code == 400
    assert response.json() == {"text": "history needs at least 2 turns", "field": "history"}
    assert fake_gemini.requests == []


def test_unknown_kind_is_checked_before_history(client):
    headers = bearer(register(client))

    response = client.post("/api/tool/poem", json={}, headers=headers)

    assert response.status_code == 404
    assert response.json() == {"text": "Unknown tool: poem"}


def test_every_tool_kind_has_its_own_lead_in(client):
    headers = bearer(register(client))

    for kind, template in TOOL_TEMPLATES.items():
        response = client.post(f"/api/tool/{kind}", json={"history": THREE_TURNS}, headers=headers)
        assert response.json()["text"].startswith(template.lead_in + "\n\n")


def test_model_failure_returns_500_and_is_logged():
    services = make_services(FakeGemini(status_code=503))
    with make_client(services) as client:
        headers = bearer(register(client))
        response = client.post("/api/tool/tasks", json={"history": THREE_TURNS}, headers=headers)
        messages = client.get("/api/messages", headers=headers).json()["messages"]

    assert response.status_code == 500
    assert response.json() == {"text": ModelFailure.model_unavailable.user_message}
    assert messages[-1]["text"] == ModelFailure.model_unavailable.user_message


def test_malformed_model_body_is_an_unknown_failure():
    gateway = ModelGateway(
        api_key="test-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": ["oops"]})),
    )
    services = make_services(gateway=gateway)
    with make_client(services) as client:
        headers = bearer(register(client))
        response = client.post("/api/tool/next-steps", json={"history": THREE_TURNS}, headers=headers)
        messages = client.get("/api/messages", headers=headers).json()["messages"]

    assert response.status_code == 500
    assert response.json() == {"text": ModelFailure.unknown.user_message}
    assert messages[-1]["text"] == ModelFailure.unknown.user_message
