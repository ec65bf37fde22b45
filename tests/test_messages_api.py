from conftest import bearer, register


def test_messages_limit_returns_newest_in_order(client):
    headers = bearer(register(client))
    for prompt in ("hello", "thanks", "/joke"):
        client.post("/api/chat", json={"prompt": prompt}, headers=headers)

    response = client.get("/api/messages", params={"n": 3}, headers=headers)

    assert response.status_code == 200
    texts = [m["text"] for m in response.json()["messages"]]
    assert texts == ["You're welcome!", "/joke", "Why did the function return early? It had a base case."]


def test_messages_limit_bounds(client):
    headers = bearer(register(client))

    assert client.get("/api/messages", params={"n": 0}, headers=headers).status_code == 400
    assert client.get("/api/messages", params={"n": 101}, headers=headers).status_code == 400
    assert client.get("/api/messages", params={"n": "many"}, headers=headers).status_code == 400
    assert client.get("/api/messages", params={"n": 100}, headers=headers).status_code == 200


def test_messages_are_scoped_to_caller(client):
    alice = bearer(register(client, "alice@x.com", "pw"))
    bob = bearer(register(client, "bob@x.com", "pw"))
    client.post("/api/chat", json={"prompt": "hello"}, headers=alice)
    client.post("/api/chat", json={"prompt": "hello"}, headers={})

    assert client.get("/api/messages", headers=bob).json() == {"messages": []}
    assert len(client.get("/api/messages", headers=alice).json()["messages"]) == 2


def test_health_and_root(client):
    health = client.get("/api/health").json()
    root = client.get("/").json()

    assert health["status"] == "ok"
    assert health["ai"] is True
    assert health["storage"] == "memory"
    assert "timestamp" in health
    assert root["service"] == "chatrelay"
    assert root["endpoints"]["chat"] == "/api/chat"
