"""Chat completion passthrough.

Forwards ``{messages, model?, max_tokens?}`` to an OpenAI-compatible
chat completions endpoint and hands the upstream JSON back untouched.
Stateless; disabled (501) when no API key is configured.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from dexpress.config import ProdConfig
from dexpress.core.errors import ChatNotConfiguredError, FieldValidationError, UpstreamError

logger = logging.getLogger(__name__)


class ChatProxy:
    """Thin async client for the upstream completion API.

    Parameters
    ----------
    api_key:
        Upstream API key.  Empty disables the proxy.
    url:
        Chat completions endpoint.
    default_model:
        Used when the request names no model.
    default_max_tokens:
        Used when the request sets no ``max_tokens``.
    timeout:
        Upstream request timeout in seconds.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        *,
        url: str = "https://api.openai.com/v1/chat/completions",
        default_model: str = "gpt-4o-mini",
        default_max_tokens: int = 600,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._default_model = default_model
        self._default_max_tokens = default_max_tokens
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: ProdConfig, **kwargs: Any) -> ChatProxy:
        return cls(
            config.openai_api_key,
            url=config.chat_completions_url,
            default_model=config.chat_default_model,
            default_max_tokens=config.chat_default_max_tokens,
            timeout=config.chat_timeout_seconds,
            **kwargs,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def complete(
        self,
        messages: list[dict[str, Any]] | None,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> tuple[int, Any]:
        """Forward a completion request; return (upstream status, JSON body)."""
        if not self.enabled:
            raise ChatNotConfiguredError()
        if not messages:
            raise FieldValidationError("messages required")

        body = {
            "model": model or self._default_model,
            "messages": messages,
            "max_tokens": max_tokens or self._default_max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._url, json=body, headers=headers)
            return response.status_code, response.json()
        except httpx.HTTPError as exc:
            logger.error("Chat upstream request failed: %s", exc)
            raise UpstreamError(str(exc)) from exc
        except ValueError as exc:
            logger.error("Chat upstream returned non-JSON body: %s", exc)
            raise UpstreamError("upstream returned an invalid response") from exc
