import uuid

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import FakeAIClient, WRAPPED_SOL
from xiaoyue.api.routes import create_app
from xiaoyue.app import XiaoyueApp
from xiaoyue.errors import CompletionUnavailable


@pytest.fixture
def ai() -> FakeAIClient:
    return FakeAIClient(replies=["nyaa~ hello!"])


@pytest.fixture
def client(app_config, fake_chain, ai):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_chain.handler))
    app = create_app(XiaoyueApp(app_config, ai_client=ai, http_client=http_client))
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_route_is_404(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_open_session_with_empty_body(client):
    response = client.post("/api/session")
    assert response.status_code == 200
    body = response.json()
    assert str(uuid.UUID(body["sessionId"])) == body["sessionId"]
    assert body["locale"] == "en"
    assert body["walletAddress"] is None
    assert body["messageCount"] == 0
    assert body["userMessageCount"] == 0
    assert body["freeMessagesLeft"] == 4
    assert body["messages"] == []


def test_open_session_unknown_id_creates_new(client):
    missing = str(uuid.uuid4())
    body = client.post("/api/session", json={"sessionId": missing, "locale": "zh"}).json()
    assert body["sessionId"] != missing
    assert body["locale"] == "zh"


def test_open_session_overwrites_wallet(client):
    session_id = client.post("/api/session", json={"walletAddress": "WalletA"}).json()["sessionId"]
    body = client.post(
        "/api/session", json={"sessionId": session_id, "walletAddress": "WalletB"}
    ).json()
    assert body["sessionId"] == session_id
    assert body["walletAddress"] == "WalletB"


def test_free_tier_scenario(client, ai):
    session_id = client.post("/api/session", json={}).json()["sessionId"]

    lefts = []
    for i in range(4):
        response = client.post("/api/chat", json={"sessionId": session_id, "prompt": f"q{i}"})
        assert response.status_code == 200
        body = response.json()
        assert body["sessionId"] == session_id
        assert body["message"] == "nyaa~ hello!"
        lefts.append(body["freeMessagesLeft"])
    assert lefts == [3, 2, 1, 0]

    calls = len(ai.calls)
    blocked = client.post("/api/chat", json={"sessionId": session_id, "prompt": "q4"})
    assert blocked.status_code == 403
    assert blocked.json()["requireWallet"] is True
    assert "connect your Solana wallet" in blocked.json()["message"]
    assert len(ai.calls) == calls

    attached = client.post(
        "/api/session", json={"sessionId": session_id, "walletAddress": "Wallet111"}
    ).json()
    assert attached["userMessageCount"] == 4
    assert attached["walletAddress"] == "Wallet111"

    retried = client.post("/api/chat", json={"sessionId": session_id, "prompt": "q4"})
    assert retried.status_code == 200
    assert retried.json()["walletAddress"] == "Wallet111"
    assert retried.json()["freeMessagesLeft"] == 0

    history = client.get(f"/api/session/{session_id}/messages").json()
    assert history["sessionId"] == session_id
    assert len(history["messages"]) == 10
    assert [m["role"] for m in history["messages"][:2]] == ["user", "assistant"]
    assert set(history["messages"][0]) == {"id", "session_id", "role", "content", "created_at"}


def test_messages_for_unknown_session_is_404(client):
    response = client.get(f"/api/session/{uuid.uuid4()}/messages")
    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}


def test_chat_validation_errors(client):
    empty = client.post("/api/chat", json={"prompt": ""})
    assert empty.status_code == 400
    assert "error" in empty.json()

    bad_id = client.post("/api/chat", json={"sessionId": "abc", "prompt": "hi"})
    assert bad_id.status_code == 400

    bad_locale = client.post("/api/chat", json={"prompt": "hi", "locale": "fr"})
    assert bad_locale.status_code == 400


def test_token_info(client):
    response = client.get(f"/api/token/{WRAPPED_SOL}")
    assert response.status_code == 200
    body = response.json()
    assert body["decimals"] == 9
    assert 0 < len(body["largestHolders"]) <= 5
    assert all(h["amount"] is not None for h in body["largestHolders"])


def test_token_info_bad_mint(client):
    response = client.get("/api/token/not-a-mint")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid token mint or RPC failure"}


def test_analyze_creates_session_and_records_pair(client):
    response = client.post("/api/token/analyze", json={"mint": WRAPPED_SOL, "locale": "zh"})
    assert response.status_code == 200
    body = response.json()
    assert body["analysis"] == "nyaa~ hello!"
    assert body["token"]["mint"] == WRAPPED_SOL
    assert body["freeMessagesLeft"] == 3

    history = client.get(f"/api/session/{body['sessionId']}/messages").json()["messages"]
    assert [m["content"] for m in history] == [f"Analyze token {WRAPPED_SOL}", "nyaa~ hello!"]


def test_analyze_unknown_session_is_404(client):
    response = client.post(
        "/api/token/analyze", json={"sessionId": str(uuid.uuid4()), "mint": WRAPPED_SOL}
    )
    assert response.status_code == 404


def test_analyze_gated_after_limit(client, fake_chain):
    session_id = client.post("/api/session").json()["sessionId"]
    for i in range(4):
        client.post("/api/chat", json={"sessionId": session_id, "prompt": f"q{i}"})

    response = client.post("/api/token/analyze", json={"sessionId": session_id, "mint": WRAPPED_SOL})
    assert response.status_code == 403
    assert response.json()["requireWallet"] is True
    assert fake_chain.requests == []

    with_wallet = client.post(
        "/api/token/analyze",
        json={"sessionId": session_id, "mint": WRAPPED_SOL, "walletAddress": "Wallet111"},
    )
    assert with_wallet.status_code == 200


def test_analyze_bad_mint_is_400(client):
    response = client.post("/api/token/analyze", json={"mint": "zzz-not-base58"})
    assert response.status_code == 400


def test_model_failure_is_500_without_detail(client, ai):
    ai.error = CompletionUnavailable("upstream said: secret-key-123 invalid")
    response = client.post("/api/chat", json={"prompt": "hi"})
    assert response.status_code == 500
    assert response.json() == {"error": "Language model unavailable"}


def test_unexpected_error_is_generic_500(client, ai):
    ai.error = RuntimeError("internal detail")
    response = client.post("/api/chat", json={"prompt": "hi"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
