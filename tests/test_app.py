from __future__ import annotations

from typing import Optional

from fastapi.testclient import TestClient

from fixology_chat.app import ALLOWED_ORIGINS, create_app
from fixology_chat.config import Settings

from .conftest import RecordingTransport, anthropic_reply, build_pipeline, make_settings

HELLO = {"messages": [{"role": "user", "content": "hello"}]}


def _client(
    provider: RecordingTransport,
    settings: Optional[Settings] = None,
    device_status: Optional[RecordingTransport] = None,
) -> TestClient:
    current = settings or make_settings()
    pipeline = build_pipeline(provider, device_status=device_status, settings=current)
    return TestClient(create_app(pipeline=pipeline, settings_loader=lambda: current))


def test_chat_success_envelope() -> None:
    provider = RecordingTransport(payload=anthropic_reply("Hi! How can I help?"))
    response = _client(provider).post("/chat", json=HELLO)

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "success": True,
        "intent": "generic_support",
        "reply": "Hi! How can I help?",
        "meta": {
            "suggestedActions": ["Diagnose a device", "Check an IMEI", "Find repair shops near me"],
        },
    }


def test_empty_messages_is_400() -> None:
    provider = RecordingTransport(payload=anthropic_reply("unused"))
    response = _client(provider).post("/chat", json={"messages": []})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Missing or invalid messages array",
        "debug": "Request body must include messages: [{ role, content }, ...]",
    }
    assert provider.requests == []


def test_missing_user_turn_is_400() -> None:
    provider = RecordingTransport(payload=anthropic_reply("unused"))
    response = _client(provider).post("/chat", json={"messages": [{"role": "assistant", "content": "Hi"}]})

    assert response.status_code == 400
    assert response.json()["error"] == "No user message found"


def test_malformed_bodies_are_400() -> None:
    client = _client(RecordingTransport(payload=anthropic_reply("unused")))

    not_json = client.post("/chat", content=b"not json", headers={"Content-Type": "application/json"})
    wrong_type = client.post("/chat", json={"messages": "hello"})
    bad_role = client.post("/chat", json={"messages": [{"role": "robot", "content": "hi"}]})

    assert not_json.status_code == 400
    assert wrong_type.status_code == 400
    assert wrong_type.json()["error"] == "Missing or invalid messages array"
    assert bad_role.status_code == 400


def test_provider_failure_is_500_with_debug_outside_production() -> None:
    provider = RecordingTransport(status_code=500, text="upstream exploded")
    response = _client(provider).post("/chat", json=HELLO)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Something went wrong processing your request. Please try again."
    assert "anthropic API error 500" in body["debug"]


def test_debug_hidden_in_production() -> None:
    provider = RecordingTransport(status_code=500, text="upstream exploded")
    response = _client(provider, settings=make_settings(app_env="production")).post("/chat", json=HELLO)

    assert response.status_code == 500
    assert "debug" not in response.json()


def test_missing_key_is_500_without_outbound_calls() -> None:
    provider = RecordingTransport(payload=anthropic_reply("unused"))
    status = RecordingTransport(payload={"success": True})
    client = _client(provider, settings=make_settings(llm_api_key=""), device_status=status)

    response = client.post("/chat", json={"messages": [{"role": "user", "content": "check 356938035643809"}]})

    assert response.status_code == 500
    assert response.json()["error"] == "Service is not configured"
    assert provider.requests == []
    assert status.requests == []


def test_unknown_provider_is_500() -> None:
    provider = RecordingTransport(payload=anthropic_reply("unused"))
    response = _client(provider, settings=make_settings(llm_provider="bogus")).post("/chat", json=HELLO)

    assert response.status_code == 500
    assert "bogus" in response.json()["debug"]
    assert provider.requests == []


def test_preflight_and_cors_headers() -> None:
    client = _client(RecordingTransport(payload=anthropic_reply("ok")))

    preflight = client.options("/chat", headers={"Origin": "http://localhost:3000"})
    unknown = client.post("/chat", json=HELLO, headers={"Origin": "https://evil.example"})

    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert "POST" in preflight.headers["access-control-allow-methods"]
    assert preflight.headers["vary"] == "Origin"
    assert unknown.headers["access-control-allow-origin"] == ALLOWED_ORIGINS[0]


def test_referer_used_when_origin_absent() -> None:
    client = _client(RecordingTransport(payload=anthropic_reply("ok")))
    response = client.options("/chat", headers={"Referer": "http://127.0.0.1:5500"})
    assert response.headers["access-control-allow-origin"] == "http://127.0.0.1:5500"


def test_other_methods_are_405() -> None:
    client = _client(RecordingTransport(payload=anthropic_reply("ok")))

    response = client.get("/chat")

    assert response.status_code == 405
    assert response.json() == {
        "success": False,
        "error": "Method not allowed. Use POST.",
        "debug": "Received GET",
    }


def test_health() -> None:
    client = _client(RecordingTransport(payload=anthropic_reply("ok")))
    assert client.get("/health").json() == {"status": "ok"}


def test_null_role_is_treated_as_customer() -> None:
    provider = RecordingTransport(payload=anthropic_reply("Hi!"))
    response = _client(provider).post("/chat", json={"role": None, "messages": HELLO["messages"]})

    assert response.status_code == 200
    assert "User is a customer seeking help with their device." in provider.json_bodies()[0]["system"]
