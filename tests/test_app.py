from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import EchoChat, FakeEmbedder
from ragqa import main
from ragqa.chunker import TextSplitter
from ragqa.config import Settings
from ragqa.errors import ConfigurationError
from ragqa.services.rag import RAGPipeline
from ragqa.vectorstore import InMemoryVectorStore


def test_health_reports_ok_with_utc_timestamp(pipeline: RAGPipeline) -> None:
    client = TestClient(main.create_app(pipeline=pipeline))

    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "OK"
    assert datetime.fromisoformat(payload["timestamp"].replace("Z", "+00:00")).utcoffset() is not None


def test_cors_allows_configured_frontend(pipeline: RAGPipeline) -> None:
    client = TestClient(main.create_app(pipeline=pipeline))

    response = client.options(
        "/api/query",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_cors_rejects_unknown_origin(pipeline: RAGPipeline) -> None:
    client = TestClient(main.create_app(pipeline=pipeline))

    response = client.get("/health", headers={"Origin": "http://evil.example"})

    assert "access-control-allow-origin" not in response.headers


def test_settings_drive_cors_and_upload_limit(pipeline: RAGPipeline) -> None:
    settings = Settings(
        openai_api_key="sk-openai",
        deepseek_api_key="sk-deepseek",
        cors_origins=("https://app.example",),
        max_upload_bytes=3 << 19,
    )
    app = main.create_app(settings, pipeline=pipeline)
    client = TestClient(app)

    assert app.state.max_upload_bytes == 3 << 19
    response = client.get("/health", headers={"Origin": "https://app.example"})
    assert response.headers["access-control-allow-origin"] == "https://app.example"


def test_shutdown_closes_provider_clients() -> None:
    embedder = FakeEmbedder()
    chat = EchoChat()
    pipeline = RAGPipeline(
        splitter=TextSplitter(), embedder=embedder, chat=chat, store=InMemoryVectorStore()
    )

    with TestClient(main.create_app(pipeline=pipeline)) as client:
        assert client.get("/health").status_code == 200

    assert embedder.closed and chat.closed


def test_create_app_without_keys_fails_fast(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        main.create_app()


def _raise() -> Settings:
    raise ConfigurationError("DEEPSEEK_API_KEY environment variable is required")


def test_run_exits_when_configuration_is_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "load_settings", _raise)
    monkeypatch.setattr(main, "configure_logging", lambda *args, **kwargs: None)

    with pytest.raises(SystemExit) as excinfo:
        main.run()

    assert excinfo.value.code == 1


def test_run_serves_configured_host_and_port(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = Settings(openai_api_key="sk-openai", deepseek_api_key="sk-deepseek", port=4321)
    served: dict[str, object] = {}

    def fake_run(app, host, port, log_config):  # noqa: ANN001
        served.update(app=app, host=host, port=port, log_config=log_config)

    monkeypatch.setattr(main, "load_settings", lambda: settings)
    monkeypatch.setattr(main, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(main.uvicorn, "run", fake_run)

    main.run()

    assert served["port"] == 4321
    assert served["host"] == "0.0.0.0"
    assert served["log_config"] is None
