"""Text-generation client for an Ollama-compatible HTTP API.

The model is only ever asked for a single JSON object (the filter envelope). This module knows
nothing about filters: it performs the capability probe and the raw generate call, and maps
transport failures onto `LLMUnavailableError`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

_HEALTH_PROMPT = '{"kind":"filter","entity":"tasks","filter":{"op":"cmp","field":"Duration","cmp":">","value":2}}'


class LLMUnavailableError(RuntimeError):
    """Raised when the service is unreachable, times out or answers with an error status."""


class LLMResponseError(RuntimeError):
    """Raised when the service answers with a payload of unexpected shape."""


@dataclass(frozen=True)
class Preflight:
    """Result of the capability probe (`GET /api/tags`)."""

    ok: bool
    models: list[str] = field(default_factory=list)
    error: str | None = None


class TextGenerator(Protocol):
    """What the pipeline needs from a text-generation backend."""

    def preflight(self) -> Preflight: ...

    def generate(self, system: str, prompt: str) -> str: ...


@dataclass(frozen=True)
class LLMConfig:
    """Connection settings for the Ollama-style API."""

    base_url: str = "http://127.0.0.1:11434"
    model: str = "qwen2.5:0.5b-instruct"
    timeout_s: float = 25.0


class OllamaClient:
    """Blocking client; callers bound it with their own deadline (see the pipeline)."""

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    def _url(self, path: str) -> str:
        return self.config.base_url.rstrip("/") + path

    def _request_json(self, req: Request) -> Any:
        try:
            with urlopen(req, timeout=self.config.timeout_s) as resp:  # noqa: S310 (configured endpoint)
                body = resp.read()
        except HTTPError as exc:
            raise LLMUnavailableError(f"LLM HTTP error: {exc.code}") from exc
        except (URLError, TimeoutError, OSError) as exc:
            raise LLMUnavailableError("LLM connection error") from exc

        try:
            return json.loads(body)
        except ValueError as exc:
            raise LLMResponseError("LLM returned a non-JSON payload") from exc

    def preflight(self) -> Preflight:
        """Probe the service and list installed models. Never raises."""

        try:
            data = self._request_json(Request(self._url("/api/tags"), method="GET"))
        except (LLMUnavailableError, LLMResponseError) as exc:
            return Preflight(ok=False, error=str(exc))

        raw_models = data.get("models") if isinstance(data, dict) else None
        models = [
            m["name"] for m in raw_models or [] if isinstance(m, dict) and m.get("name")
        ]
        return Preflight(ok=True, models=models)

    def generate(self, system: str, prompt: str) -> str:
        """Run one non-streaming JSON-mode generation and return the raw response text.

        Raises:
            LLMUnavailableError: On connection/HTTP errors or socket timeout.
            LLMResponseError: If the payload has no `response` string.
        """

        payload = {
            "model": self.config.model,
            "system": system,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": 0, "top_p": 0.1, "num_ctx": 4096},
        }
        req = Request(
            self._url("/api/generate"),
            method="POST",
            headers={"Content-Type": "application/json"},
            data=json.dumps(payload).encode(),
        )
        data = self._request_json(req)
        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise LLMResponseError("Unexpected LLM response format")
        return data["response"]

    def health(self) -> dict[str, Any]:
        """Warm-up probe: tags plus one tiny JSON generation."""

        pre = self.preflight()
        report: dict[str, Any] = {
            "ok": False,
            "base_url": self.config.base_url,
            "model": self.config.model,
            "models": pre.models,
            "has_model": self.config.model in pre.models,
            "generate_ok": False,
        }
        if not pre.ok:
            report["error"] = pre.error
            return report

        try:
            sample = self.generate("", _HEALTH_PROMPT)
        except (LLMUnavailableError, LLMResponseError) as exc:
            logger.info("health generate failed error=%s", exc)
            report["error"] = str(exc)
            return report

        report["generate_ok"] = bool(sample)
        report["ok"] = report["has_model"] and report["generate_ok"]
        return report


def llm_config_from_settings(settings: Any) -> LLMConfig:
    return LLMConfig(
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        timeout_s=settings.llm_timeout_s,
    )
