from typing import Any

from lademittel.config import Settings
from lademittel.errors import ConfigurationError
from lademittel.llm.mock_vision_client import MockVisionClient
from lademittel.llm.ollama_vision_client import OllamaVisionClient
from lademittel.llm.openai_vision_client import OpenAIVisionClient
from lademittel.llm.vision_client import VisionClient


def _unknown(provider: str) -> ConfigurationError:
    return ConfigurationError(
        f"Unknown vision provider: {provider}. Use 'openai', 'ollama' or 'mock'."
    )


def create_vision_client(provider: str, **kwargs: Any) -> VisionClient:
    if provider == "openai":
        return OpenAIVisionClient(**kwargs)
    elif provider == "ollama":
        return OllamaVisionClient(**kwargs)
    elif provider == "mock":
        return MockVisionClient(**kwargs)
    raise _unknown(provider)


def vision_client_from_settings(settings: Settings) -> VisionClient:
    if settings.oracle_provider == "openai":
        return OpenAIVisionClient(
            model=settings.oracle_model,
            base_url=settings.oracle_base_url,
            timeout_s=settings.oracle_timeout_s,
            cache_dir=settings.output_dir / ".cache" / "openai",
        )
    if settings.oracle_provider == "ollama":
        kwargs: Any = {"model": settings.oracle_model, "timeout_s": settings.oracle_timeout_s}
        if settings.oracle_base_url:
            kwargs["host"] = settings.oracle_base_url
        return OllamaVisionClient(**kwargs)
    if settings.oracle_provider == "mock":
        return MockVisionClient()
    raise _unknown(settings.oracle_provider)
