# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""HTTP adapters for the embedding and chat-completion capabilities.

Two transports are supported:
- Direct: OpenAI-compatible REST API called with a bearer API key
- Proxied: a serverless proxy that holds the key server-side
  (``POST /api/embeddings`` and ``POST /api/complete``)

Every failure is mapped onto ``EmbeddingUnavailableError`` or
``ClassificationUnavailableError`` with a category that tells network/auth
problems apart from malformed responses.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Type

import httpx

from autoclose.config.settings import Settings
from autoclose.core.errors import (
    ClassificationUnavailableError,
    EmbeddingUnavailableError,
    ErrorCategory,
    ProviderError,
)

logger = logging.getLogger(__name__)


def _category_for_status(status_code: int) -> ErrorCategory:
    if status_code in (401, 403):
        return ErrorCategory.PROVIDER_AUTH
    if status_code == 429:
        return ErrorCategory.PROVIDER_RATE_LIMIT
    if status_code in (408, 504):
        return ErrorCategory.PROVIDER_TIMEOUT
    if status_code >= 500:
        return ErrorCategory.PROVIDER_CONNECTION
    return ErrorCategory.PROVIDER_INVALID_RESPONSE


def _error_message(response: httpx.Response) -> str:
    """Best-effort extraction of the error text from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
    return response.reason_phrase


class _HTTPProvider:
    """Shared plumbing for the HTTP adapters."""

    provider_name = "openai"
    error_cls: Type[ProviderError] = ProviderError

    def __init__(
        self,
        model_name: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.model_name = model_name
        self.timeout = timeout
        self._client = client

    def _fail(self, message: str, category: ErrorCategory, **kwargs: Any) -> ProviderError:
        return self.error_cls(
            message,
            provider=self.provider_name,
            model=self.model_name,
            category=category,
            **kwargs,
        )

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded JSON object."""
        start = time.perf_counter()
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise self._fail(
                f"Request to {url} timed out after {self.timeout}s",
                ErrorCategory.PROVIDER_TIMEOUT,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise self._fail(
                f"Request to {url} failed: {e}",
                ErrorCategory.PROVIDER_CONNECTION,
                cause=e,
            ) from e

        elapsed = time.perf_counter() - start
        logger.debug(
            f"[{self.provider_name}] POST {url}: status={response.status_code}, "
            f"time={elapsed*1000:.1f}ms"
        )

        if response.status_code >= 400:
            raise self._fail(
                f"{self.provider_name} request failed ({response.status_code}): "
                f"{_error_message(response)}",
                _category_for_status(response.status_code),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise self._fail(
                f"{self.provider_name} returned a non-JSON body",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
                status_code=response.status_code,
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise self._fail(
                f"{self.provider_name} returned {type(data).__name__}, expected an object",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
                status_code=response.status_code,
            )
        return data

    def _validate_vector(self, raw: Any) -> List[float]:
        if not isinstance(raw, list) or not raw:
            raise self._fail(
                "Embedding response did not contain a vector",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
            )
        try:
            return [float(x) for x in raw]
        except (TypeError, ValueError) as e:
            raise self._fail(
                "Embedding vector contains non-numeric values",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
                cause=e,
            ) from e


class OpenAIEmbeddingProvider(_HTTPProvider):
    """Direct call to the OpenAI ``/embeddings`` endpoint."""

    error_cls = EmbeddingUnavailableError

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model_name, timeout=timeout, client=client)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def embed(self, text: str) -> Sequence[float]:
        if not self.api_key:
            raise self._fail(
                "API key not configured. Set OPENAI_API_KEY or AUTOCLOSE_PROXY_BASE_URL",
                ErrorCategory.CONFIG_MISSING,
            )
        data = await self._post_json(
            f"{self.base_url}/embeddings",
            {"model": self.model_name, "input": text},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        try:
            raw = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._fail(
                "Embedding response is missing data[0].embedding",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
                cause=e,
            ) from e
        return self._validate_vector(raw)


class ProxyEmbeddingProvider(_HTTPProvider):
    """Embeddings through the serverless proxy (``{"text"}`` → ``{"embedding"}``)."""

    provider_name = "proxy"
    error_cls = EmbeddingUnavailableError

    def __init__(
        self,
        base_url: str,
        model_name: str = "text-embedding-3-small",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model_name, timeout=timeout, client=client)
        self.base_url = base_url.rstrip("/")

    async def embed(self, text: str) -> Sequence[float]:
        data = await self._post_json(f"{self.base_url}/api/embeddings", {"text": text})
        return self._validate_vector(data.get("embedding"))


class OpenAICompletionProvider(_HTTPProvider):
    """Direct call to the OpenAI ``/chat/completions`` endpoint."""

    error_cls = ClassificationUnavailableError

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model_name, timeout=timeout, client=client)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        if not self.api_key:
            raise self._fail(
                "API key not configured. Set OPENAI_API_KEY or AUTOCLOSE_PROXY_BASE_URL",
                ErrorCategory.CONFIG_MISSING,
            )
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            {
                "model": self.model_name,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._fail(
                "Completion response is missing choices[0].message.content",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
                cause=e,
            ) from e
        if not isinstance(content, str):
            raise self._fail(
                "Completion content is not text",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
            )
        return content


class ProxyCompletionProvider(_HTTPProvider):
    """Chat completions through the serverless proxy (``/api/complete``)."""

    provider_name = "proxy"
    error_cls = ClassificationUnavailableError

    def __init__(
        self,
        base_url: str,
        model_name: str = "gpt-4o-mini",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model_name, timeout=timeout, client=client)
        self.base_url = base_url.rstrip("/")

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        data = await self._post_json(
            f"{self.base_url}/api/complete",
            {
                "systemPrompt": system_prompt,
                "userPrompt": user_prompt,
                "temperature": temperature,
                "maxTokens": max_tokens,
                "model": self.model_name,
            },
        )
        content = data.get("content")
        if not isinstance(content, str):
            raise self._fail(
                "Proxy response is missing 'content'",
                ErrorCategory.PROVIDER_INVALID_RESPONSE,
            )
        return content


def create_embedding_provider(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> _HTTPProvider:
    """Pick the embedding transport for the configured environment."""
    if settings.uses_proxy:
        logger.debug(f"Using proxied embeddings at {settings.proxy_base_url}")
        return ProxyEmbeddingProvider(
            settings.proxy_base_url,
            model_name=settings.embedding_model,
            timeout=settings.http_timeout,
            client=client,
        )
    return OpenAIEmbeddingProvider(
        settings.openai_api_key,
        model_name=settings.embedding_model,
        base_url=settings.openai_base_url,
        timeout=settings.http_timeout,
        client=client,
    )


def create_completion_provider(
    settings: Settings,
    model_name: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> _HTTPProvider:
    """Pick the completion transport for the configured environment."""
    model = model_name or settings.completion_model
    if settings.uses_proxy:
        return ProxyCompletionProvider(
            settings.proxy_base_url,
            model_name=model,
            timeout=settings.http_timeout,
            client=client,
        )
    return OpenAICompletionProvider(
        settings.openai_api_key,
        model_name=model,
        base_url=settings.openai_base_url,
        timeout=settings.http_timeout,
        client=client,
    )
