from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from lademittel.errors import ConfigurationError, OracleFailure
from lademittel.llm.vision_client import VisionClient

logger = logging.getLogger(__name__)

# Note: openai is imported lazily in _client() so the engine imports without it.


def _stable_json(obj: Any) -> str:
    """Deterministic JSON for hashing/caching."""
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _sha256_text(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _response_to_text(resp: Any) -> str:
    # 1) Fast path (SDK provides this on many versions)
    text = getattr(resp, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()

    # 2) Fallback: walk resp.output items
    out = getattr(resp, "output", None)
    if isinstance(out, list):
        chunks: List[str] = []
        for item in out:
            content = getattr(item, "content", None)
            if not isinstance(content, list):
                continue
            for c in content:
                if getattr(c, "type", None) in ("output_text", "text"):
                    t = getattr(c, "text", None)
                    if isinstance(t, str) and t:
                        chunks.append(t)
        if chunks:
            return "".join(chunks).strip()

    return ""


def _is_reasoning_model(model: str) -> bool:
    return model.startswith(("gpt-5", "o1", "o3", "o4"))


@dataclass
class OpenAIVisionClient(VisionClient):
    """
    Vision client on the OpenAI Responses API. Page images are sent as
    data-URL ``input_image`` parts after the text prompt.
    ``base_url`` allows OpenAI-compatible gateways.
    """

    model: str = "gpt-4.1-mini"
    base_url: Optional[str] = None
    temperature: float = 0.0
    max_output_tokens: int = 4096
    timeout_s: float = 120.0
    image_detail: str = "high"

    enable_cache: bool = True
    cache_dir: Path = field(default_factory=lambda: Path(".cache") / "lademittel" / "openai")

    def _client(self):
        """
        Lazily construct the OpenAI client.
        Requires env var OPENAI_API_KEY.
        """
        from openai import OpenAI

        key = os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigurationError(
                "Missing OpenAI API key. Set environment variable OPENAI_API_KEY"
            )

        kwargs: Dict[str, Any] = {"api_key": key, "timeout": self.timeout_s}
        if self.base_url:
            kwargs["base_url"] = self.base_url
        return OpenAI(**kwargs)

    def _cache_path(self, payload: Dict[str, Any]) -> Path:
        h = _sha256_text(_stable_json(payload))
        return self.cache_dir / self.model / f"{h}.txt"

    def _payload(self, prompt: str, images: Sequence[str]) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [{"type": "input_text", "text": prompt}]
        for b64 in images:
            content.append(
                {
                    "type": "input_image",
                    "image_url": f"data:image/png;base64,{b64}",
                    "detail": self.image_detail,
                }
            )

        payload: Dict[str, Any] = {
            "model": self.model,
            "input": [{"role": "user", "content": content}],
            "max_output_tokens": self.max_output_tokens,
        }
        # reasoning models do not support temperature
        if _is_reasoning_model(self.model):
            payload["reasoning"] = {"effort": "low"}
        else:
            payload["temperature"] = self.temperature
        return payload

    def generate_raw(self, prompt: str, *, images: Sequence[str] = ()) -> str:
        """
        One Responses API call, no retry (the extraction oracle retries).
        Answers are cached on disk keyed by the full payload.
        """
        payload = self._payload(prompt, images)

        path = self._cache_path(payload)
        if self.enable_cache and path.exists():
            return path.read_text(encoding="utf-8")

        from openai import OpenAIError

        client = self._client()
        try:
            resp = client.responses.create(**payload)
        except OpenAIError as e:
            raise OracleFailure(f"OpenAI request failed: {e}") from e

        text = _response_to_text(resp)
        if not text:
            raise OracleFailure("OpenAI returned an empty response")

        if self.enable_cache:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")

        logger.debug("openai %s: %d image(s), %d chars", self.model, len(images), len(text))
        return text
