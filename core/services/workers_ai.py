# core/services/workers_ai.py
from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from core.config import KhularkSettings, settings as default_settings
from core.utils.net_api import get_http_client

logger = logging.getLogger(__name__)


class WorkersAIError(RuntimeError):
    """Non-2xx or unparsable response from the model host."""

    def __init__(self, message: str, *, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class WorkersAIClient:
    """
    Thin wrapper over the Workers AI REST surface:
        POST {base_url}/accounts/{account_id}/ai/run/{model}
    The host wraps payloads as {"result": ...}; callers get the unwrapped value.
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        *,
        base_url: str = "https://api.cloudflare.com/client/v4",
        http_client: httpx.AsyncClient | None = None,
    ):
        self._account_id = account_id
        self._api_token = api_token
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client

    @classmethod
    def from_settings(cls, cfg: KhularkSettings | None = None, **kw: Any) -> WorkersAIClient:
        cfg = cfg or default_settings
        return cls(
            cfg.cloudflare_account_id,
            cfg.cloudflare_api_token,
            base_url=cfg.ai_base_url,
            **kw,
        )

    def model_url(self, model: str) -> str:
        return f"{self._base_url}/accounts/{self._account_id}/ai/run/{model}"

    async def run(self, model: str, payload: Any) -> Any:
        """Run a model with a JSON input (e.g. chat messages)."""
        return await self._post(model, payload)

    async def run_binary(self, model: str, image: bytes) -> Any:
        """Run a model on raw image bytes; the host expects them as a list of ints."""
        logger.info("[WorkersAI] Binary run | model=%s | bytes=%d", model, len(image))
        return await self._post(model, {"image": list(image)})

    async def _post(self, model: str, payload: Any) -> Any:
        client = self._http_client or await get_http_client()
        url = self.model_url(model)
        headers = {
            "authorization": f"Bearer {self._api_token}",
            "content-type": "application/json",
        }

        resp = await client.post(url, headers=headers, content=json.dumps(payload))
        raw_text = resp.text
        logger.info(
            "[WorkersAI] Response | model=%s | status=%d | length=%d",
            model,
            resp.status_code,
            len(raw_text),
        )

        if not resp.is_success:
            raise self._error_from(resp.status_code, resp.reason_phrase, raw_text)

        try:
            parsed = json.loads(raw_text)
        except json.JSONDecodeError as e:
            raise WorkersAIError(
                f"Failed to parse response: {raw_text[:200]}",
                status_code=resp.status_code,
                details=raw_text,
            ) from e

        if isinstance(parsed, dict) and parsed.get("result") is not None:
            return parsed["result"]
        return parsed

    @staticmethod
    def _error_from(status: int, reason: str, raw_text: str) -> WorkersAIError:
        message = f"Workers AI error: {status} {reason}"
        details: Any = raw_text
        try:
            parsed = json.loads(raw_text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            errors = parsed.get("errors")
            if isinstance(errors, list) and errors:
                first = errors[0] if isinstance(errors[0], dict) else {}
                message = f"Workers AI error: {first.get('message') or reason}"
                details = errors
        logger.error("[WorkersAI] %s", message)
        return WorkersAIError(message, status_code=status, details=details)
