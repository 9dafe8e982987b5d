"""
/v1/transcribe 测试
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from handsoff.api.proxy.routes import get_identity_client
from handsoff.clients.http_client import get_http_client
from handsoff.clients.identity import IdentityClient
from handsoff.config import config
from handsoff.main import create_app
from handsoff.models.database import UsageLog

AUTH = {"Authorization": "Bearer good-token"}


@pytest.fixture
def captured() -> list[httpx.Request]:
    return []


@pytest.fixture
def client(db_engine, captured, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config, "disable_usage_tracking", False)
    monkeypatch.setenv("MISTRAL_API_KEY", "server-mistral")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "identity.test":
            return httpx.Response(200, json={"id": "user-1"})
        captured.append(request)
        return httpx.Response(
            200,
            json={
                "text": "bonjour",
                "usage": {"prompt_audio_seconds": 12, "prompt_tokens": 3, "completion_tokens": 20},
            },
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    app = create_app()
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_identity_client] = lambda: IdentityClient(
        http_client, base_url="https://identity.test"
    )
    return TestClient(app)


class TestTranscribe:
    def test_forwards_form_and_records_usage(self, client, captured, db_session) -> None:
        response = client.post(
            "/v1/transcribe",
            files={"file": ("clip.m4a", b"fake-audio", "audio/mp4")},
            data={"language": "fr"},
            headers=AUTH,
        )
        assert response.status_code == 200
        assert response.json()["text"] == "bonjour"

        upstream = captured[0]
        assert str(upstream.url) == "https://api.mistral.ai/v1/audio/transcriptions"
        assert upstream.headers["authorization"] == "Bearer server-mistral"
        assert b"fake-audio" in upstream.content
        assert b'filename="clip.m4a"' in upstream.content
        assert b'name="language"' in upstream.content
        assert b"voxtral-mini-latest" in upstream.content

        row = db_session.execute(select(UsageLog)).scalar_one()
        assert (row.provider, row.model) == ("mistral", "voxtral-mini-latest")
        assert row.output_tokens == 20
        assert row.cost_usd == pytest.approx(12 / 60 * 0.002 + 20 / 1e6 * 0.04)

    def test_custom_model(self, client, captured) -> None:
        client.post(
            "/v1/transcribe",
            files={"file": ("clip.wav", b"x", "audio/wav")},
            data={"model": "voxtral-small-2507"},
            headers=AUTH,
        )
        assert b"voxtral-small-2507" in captured[0].content

    def test_missing_file(self, client, captured) -> None:
        response = client.post("/v1/transcribe", data={"language": "fr"}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing audio file"}
        assert captured == []

    def test_requires_auth(self, client, captured) -> None:
        response = client.post(
            "/v1/transcribe", files={"file": ("clip.wav", b"x", "audio/wav")}
        )
        assert response.status_code == 401
        assert captured == []
