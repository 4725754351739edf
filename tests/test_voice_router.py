"""End-to-end tests for the WebSocket endpoints."""

import pytest
from fastapi.testclient import TestClient

from fakes import StubChatService, StubTTSService
from speechstream.app import create_app


@pytest.fixture
def chat() -> StubChatService:
    return StubChatService(["Hello there. ", "Goodbye."])


@pytest.fixture
def client(settings, chat):
    app = create_app(settings, chat_service=chat, tts_service=StubTTSService())
    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.parametrize("path", ["/ws", "/api/voice/chat"])
def test_turn_over_websocket(client: TestClient, path: str) -> None:
    with client.websocket_connect(path) as websocket:
        websocket.send_json({"text": "Hi"})
        messages = [websocket.receive_json() for _ in range(5)]

    assert messages[0] == {
        "type": "text",
        "data": "Hello there. ",
        "paragraph": "Hello there.",
    }
    assert messages[1]["type"] == "audio-chunk"
    assert messages[1]["chunkIndex"] == 0
    assert messages[2]["paragraph"] == "Goodbye."
    assert messages[3]["chunkIndex"] == 1
    assert messages[4] == {
        "type": "audio-chunk",
        "chunkIndex": 1,
        "totalChunks": 2,
        "isLastChunk": True,
    }


def test_invalid_json_gets_error_and_connection_survives(client: TestClient) -> None:
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("not json")
        assert websocket.receive_json() == {
            "type": "error",
            "error": "Invalid message format",
        }

        websocket.send_json({"text": "Hi"})
        assert websocket.receive_json()["type"] == "text"


def test_missing_text_is_rejected(client: TestClient) -> None:
    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"text": ""})
        assert websocket.receive_json() == {
            "type": "error",
            "error": "Invalid message: text field is required",
        }


def test_health_reports_model(client: TestClient, settings) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "chat_model": settings.chat_model,
        "active_connections": 0,
    }


def test_shutdown_closes_chat_client(settings, chat) -> None:
    app = create_app(settings, chat_service=chat, tts_service=StubTTSService())
    with TestClient(app):
        pass

    assert chat.closed is True
