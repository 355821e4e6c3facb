from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Sequence

import requests

from lademittel.errors import OracleFailure
from lademittel.llm.vision_client import VisionClient

logger = logging.getLogger(__name__)


def _sha1(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


@dataclass
class OllamaVisionClient(VisionClient):
    """Local vision model (e.g. llava, qwen2.5vl) through Ollama's /api/generate."""

    model: str = "qwen2.5vl"
    host: str = "http://127.0.0.1:11434"
    temperature: float = 0.0
    num_ctx: int = 16384
    num_predict: int = 2048
    timeout_s: float = 120.0
    enable_cache: bool = False
    cache_dir: Path = field(default_factory=lambda: Path(".cache/ollama_vision"))

    def __post_init__(self):
        if self.enable_cache:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _make_cache_key(self, payload: Dict[str, Any]) -> str:
        return _sha1(json.dumps(payload, ensure_ascii=False, sort_keys=True))

    def _cache_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.txt"

    def generate_raw(
        self,
        prompt: str,
        *,
        images: Sequence[str] = (),
    ) -> str:
        """
        Return Ollama's .json()['response'] (a STRING). No parsing here.
        HTTP and connection errors surface as OracleFailure.
        """
        opts = {
            "temperature": self.temperature,
            "num_ctx": self.num_ctx,
            "num_predict": self.num_predict,
        }

        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "images": list(images),
            "stream": False,
            "options": opts,
            "format": "json",
        }

        key = self._make_cache_key(payload)
        if self.enable_cache:
            p = self._cache_path(key)
            if p.exists():
                return p.read_text(encoding="utf-8")

        try:
            r = requests.post(f"{self.host}/api/generate", json=payload, timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise OracleFailure(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise OracleFailure(f"Ollama returned a non-JSON body: {e}") from e

        resp = data.get("response", "")
        if self.enable_cache:
            self._cache_path(key).write_text(resp, encoding="utf-8")
        logger.debug("ollama %s: %d image(s), %d chars", self.model, len(images), len(resp))
        return resp
