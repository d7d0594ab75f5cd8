"""Text-generation backends used by the tiered writer.

Each backend takes a system instruction and a user message and returns
the completion text plus the token counts the provider reported. OpenAI
and Anthropic are called over plain HTTP with httpx; Gemini goes through
the google-generativeai SDK.

Backends raise ``BackendError`` for every failure so the writer can
fall through to the next tier without caring which provider broke.
"""

import logging
from dataclasses import dataclass

import httpx

from replymate.app.config import Settings, get_settings

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class BackendResponse:
    text: str
    model_id: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class BackendError(Exception):
    """A generation backend was unreachable, refused the call, or returned nothing.

    ``response`` is set when the provider answered (and billed) but the
    answer was unusable.
    """

    def __init__(self, message: str, response: "BackendResponse | None" = None):
        super().__init__(message)
        self.response = response


class TextBackend:
    """Base class for generation backends."""

    provider = "base"

    def __init__(self, model_id: str, max_tokens: int = 500, temperature: float = 0.7):
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(self, system_instruction: str, user_message: str) -> BackendResponse:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.model_id}>"


# ---------------------------------------------------------------------------
# HTTP backends
# ---------------------------------------------------------------------------


class _HTTPBackend(TextBackend):
    def __init__(
        self,
        api_key: str,
        model_id: str,
        base_url: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(model_id=model_id, max_tokens=max_tokens, temperature=temperature)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _post(self, path: str, headers: dict, payload: dict) -> dict:
        if not self._api_key:
            raise BackendError(f"{self.provider} API key not configured")

        logger.debug("[%s] POST %s model=%s", self.provider, path, self.model_id)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(f"{self._base_url}{path}", headers=headers, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            detail = _error_message(exc.response)
            raise BackendError(
                f"{self.provider} HTTP {exc.response.status_code}: {detail}"
            ) from exc
        except httpx.RequestError as exc:
            raise BackendError(f"{self.provider} request failed: {exc}") from exc
        except ValueError as exc:
            raise BackendError(f"{self.provider} returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise BackendError(f"{self.provider} returned unexpected payload: {type(data).__name__}")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise BackendError(f"{self.provider} API error: {message}")
        return data


class OpenAIChatBackend(_HTTPBackend):
    """OpenAI chat completions."""

    provider = "openai"

    async def complete(self, system_instruction: str, user_message: str) -> BackendResponse:
        data = await self._post(
            "/chat/completions",
            headers={"Authorization": f"Bearer {self._api_key}"},
            payload={
                "model": self.model_id,
                "messages": [
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": user_message},
                ],
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
        )
        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise BackendError("openai response missing choices") from exc

        usage = data.get("usage") or {}
        return _checked(BackendResponse(
            text=text.strip(),
            model_id=data.get("model") or self.model_id,
            input_tokens=int(usage.get("prompt_tokens") or 0),
            output_tokens=int(usage.get("completion_tokens") or 0),
        ), self.provider)


class AnthropicMessagesBackend(_HTTPBackend):
    """Anthropic messages API."""

    provider = "anthropic"

    async def complete(self, system_instruction: str, user_message: str) -> BackendResponse:
        data = await self._post(
            "/messages",
            headers={"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION},
            payload={
                "model": self.model_id,
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
                "system": system_instruction,
                "messages": [{"role": "user", "content": user_message}],
            },
        )
        blocks = data.get("content") or []
        text = "".join(b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type", "text") == "text")

        usage = data.get("usage") or {}
        return _checked(BackendResponse(
            text=text.strip(),
            model_id=data.get("model") or self.model_id,
            input_tokens=int(usage.get("input_tokens") or 0),
            output_tokens=int(usage.get("output_tokens") or 0),
        ), self.provider)


# ---------------------------------------------------------------------------
# Gemini (SDK)
# ---------------------------------------------------------------------------


class GeminiBackend(TextBackend):
    """Gemini via google-generativeai."""

    provider = "gemini"

    async def complete(self, system_instruction: str, user_message: str) -> BackendResponse:
        from replymate.infra.gemini_client import get_model

        model = get_model(
            model_name=self.model_id,
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
            system_instruction=system_instruction,
        )
        try:
            response = await model.generate_content_async(user_message)
            text = response.text or ""
        except Exception as exc:
            raise BackendError(f"gemini generation failed: {exc}") from exc

        input_tokens = output_tokens = 0
        if getattr(response, "usage_metadata", None):
            input_tokens = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
            output_tokens = getattr(response.usage_metadata, "candidates_token_count", 0) or 0

        return _checked(BackendResponse(
            text=text.strip(),
            model_id=self.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        ), self.provider)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_backend(
    provider: str,
    model_id: str,
    max_tokens: int,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TextBackend:
    """Construct the backend for ``provider`` using keys from settings."""
    settings = settings or get_settings()
    common = {
        "model_id": model_id,
        "max_tokens": max_tokens,
        "temperature": settings.generation_temperature,
    }
    provider = provider.lower()
    if provider == "openai":
        return OpenAIChatBackend(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.generation_timeout_seconds,
            transport=transport,
            **common,
        )
    if provider == "anthropic":
        return AnthropicMessagesBackend(
            api_key=settings.anthropic_api_key,
            base_url=settings.anthropic_base_url,
            timeout=settings.generation_timeout_seconds,
            transport=transport,
            **common,
        )
    if provider == "gemini":
        return GeminiBackend(**common)
    raise ValueError(f"Unknown generation provider: {provider}")


def _checked(response: BackendResponse, provider: str) -> BackendResponse:
    # A blank completion cannot be sent to a buyer
    if not response.text:
        raise BackendError(f"{provider} returned an empty completion", response=response)
    return response


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or str(error)
    return str(error or body)[:200]
