from __future__ import annotations

from typing import Any, Dict

import pytest
import requests

from lademittel.config import Settings
from lademittel.errors import ConfigurationError, OracleFailure
from lademittel.llm.mock_vision_client import MockVisionClient
from lademittel.llm.ollama_vision_client import OllamaVisionClient
from lademittel.llm.openai_vision_client import OpenAIVisionClient
from lademittel.llm.vision_client_factory import create_vision_client, vision_client_from_settings


def test_factory():
    assert isinstance(create_vision_client("mock"), MockVisionClient)
    assert isinstance(create_vision_client("ollama", model="llava"), OllamaVisionClient)
    with pytest.raises(ConfigurationError):
        create_vision_client("watson")


def test_client_from_settings(tmp_path):
    settings = Settings(oracle_provider="ollama", oracle_model="llava", output_dir=tmp_path)
    client = vision_client_from_settings(settings)
    assert isinstance(client, OllamaVisionClient)
    assert client.model == "llava"


def test_mock_only_when_asked_for(tmp_path):
    settings = Settings(oracle_provider="mock", output_dir=tmp_path)
    assert isinstance(vision_client_from_settings(settings), MockVisionClient)


def test_unknown_provider_is_rejected(tmp_path):
    settings = Settings(oracle_provider="mock", output_dir=tmp_path)
    typo = settings.model_copy(update={"oracle_provider": "opnai"})
    with pytest.raises(ConfigurationError):
        vision_client_from_settings(typo)


def test_mock_queue_then_keyed_responses():
    client = MockVisionClient(
        responses={"classify": "{}", "boom": OracleFailure("down")},
        queue=["first"],
        default="fallback",
    )
    assert client.generate_raw("classify", images=["a", "b"]) == "first"
    assert client.generate_raw("please classify") == "{}"
    assert client.generate_raw("other") == "fallback"
    with pytest.raises(OracleFailure):
        client.generate_raw("boom")
    assert client.calls[0] == ("classify", 2)


def test_openai_payload_carries_images():
    client = OpenAIVisionClient(model="gpt-4.1-mini", enable_cache=False)
    payload = client._payload("extract", ["QUJD"])
    content = payload["input"][0]["content"]
    assert content[0] == {"type": "input_text", "text": "extract"}
    assert content[1]["image_url"] == "data:image/png;base64,QUJD"
    assert payload["temperature"] == 0.0
    assert "text" not in payload

    reasoning = OpenAIVisionClient(model="o4-mini", enable_cache=False)._payload("x", [])
    assert "temperature" not in reasoning


def test_openai_cache_hit_needs_no_key(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = OpenAIVisionClient(enable_cache=True, cache_dir=tmp_path)
    path = client._cache_path(client._payload("p", ["img"]))
    path.parent.mkdir(parents=True)
    path.write_text('{"cached": true}', encoding="utf-8")
    assert client.generate_raw("p", images=["img"]) == '{"cached": true}'


def test_openai_missing_key(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = OpenAIVisionClient(enable_cache=False)
    with pytest.raises(ConfigurationError):
        client.generate_raw("p")


class _FakeResponse:
    def __init__(self, data: Dict[str, Any]):
        self._data = data

    def raise_for_status(self) -> None:
        pass

    def json(self) -> Dict[str, Any]:
        return self._data


def test_ollama_sends_images_and_json_format(monkeypatch):
    seen: Dict[str, Any] = {}

    def fake_post(url, json=None, timeout=None):
        seen["url"] = url
        seen["payload"] = json
        return _FakeResponse({"response": '{"ok": true}'})

    monkeypatch.setattr(requests, "post", fake_post)
    client = OllamaVisionClient(model="llava", host="http://ollama:11434")
    assert client.generate_raw("p", images=["img1", "img2"]) == '{"ok": true}'
    assert seen["url"] == "http://ollama:11434/api/generate"
    assert seen["payload"]["images"] == ["img1", "img2"]
    assert seen["payload"]["format"] == "json"
    assert seen["payload"]["stream"] is False


def test_ollama_connection_error_is_oracle_failure(monkeypatch):
    def fake_post(url, json=None, timeout=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", fake_post)
    with pytest.raises(OracleFailure):
        OllamaVisionClient().generate_raw("p")
