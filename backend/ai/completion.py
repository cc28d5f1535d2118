"""
Text-completion clients for the website builder.

Each client streams the model's answer for one generation request as text
deltas and finishes with a usage record. Two providers are supported:
Anthropic through its SDK, and OpenRouter (OpenAI-compatible SSE) over httpx.

Usage:
    router = CompletionRouter()
    async for chunk in router.client_for(model).stream(request):
        ...
"""

import logging
import os
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Union

import httpx
from anthropic import AsyncAnthropic
from fastapi import HTTPException

from backend.ai.prompts import build_generation_messages
from backend.projects.agents import ModelConfig, Provider
from builder.frames import FrameReader

logger = logging.getLogger(__name__)

_OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

# Generations are long; only the gap between chunks is bounded tightly.
_REQUEST_TIMEOUT = httpx.Timeout(connect=10.0, read=120.0, write=30.0, pool=10.0)


@dataclass
class CompletionRequest:
    prompt: str
    model: ModelConfig
    files: dict = field(default_factory=dict)
    history: list = field(default_factory=list)
    reference_image: Optional[str] = None


@dataclass
class TextDelta:
    text: str


@dataclass
class CompletionUsage:
    input_tokens: int = 0
    output_tokens: int = 0


CompletionChunk = Union[TextDelta, CompletionUsage]


class CompletionError(Exception):
    """The provider rejected the request or the stream broke off."""


class AnthropicCompletionClient:
    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key
        self._client: Optional[AsyncAnthropic] = None

    def ensure_configured(self) -> None:
        if not (self._api_key or os.getenv("ANTHROPIC_API_KEY")):
            raise HTTPException(status_code=500, detail="ANTHROPIC_API_KEY not configured")

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self.ensure_configured()
            self._client = AsyncAnthropic(api_key=self._api_key or os.getenv("ANTHROPIC_API_KEY"))
        return self._client

    async def stream(self, request: CompletionRequest) -> AsyncIterator[CompletionChunk]:
        system, messages = build_generation_messages(
            request.prompt, request.files, request.history, request.reference_image
        )
        client = self._get_client()
        async with client.messages.stream(
            model=request.model.provider_model,
            max_tokens=request.model.max_tokens,
            system=system,
            messages=messages,
            temperature=request.model.temperature,
        ) as stream:
            async for text in stream.text_stream:
                yield TextDelta(text)
            final = await stream.get_final_message()

        usage = getattr(final, "usage", None)
        yield CompletionUsage(
            input_tokens=int(getattr(usage, "input_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "output_tokens", 0) or 0),
        )


def _to_openai_content(content) -> Union[str, list]:
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if block["type"] == "image":
            source = block["source"]
            url = f"data:{source['media_type']};base64,{source['data']}"
            parts.append({"type": "image_url", "image_url": {"url": url}})
        else:
            parts.append({"type": "text", "text": block["text"]})
    return parts


class OpenRouterCompletionClient:
    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = api_key
        self._transport = transport

    def ensure_configured(self) -> None:
        if not (self._api_key or os.getenv("OPENROUTER_API_KEY")):
            raise HTTPException(status_code=500, detail="OPENROUTER_API_KEY not configured")

    async def stream(self, request: CompletionRequest) -> AsyncIterator[CompletionChunk]:
        self.ensure_configured()
        system, messages = build_generation_messages(
            request.prompt, request.files, request.history, request.reference_image
        )
        body = {
            "model": request.model.provider_model,
            "messages": [{"role": "system", "content": system}]
            + [{"role": m["role"], "content": _to_openai_content(m["content"])} for m in messages],
            "max_tokens": request.model.max_tokens,
            "temperature": request.model.temperature,
            "stream": True,
            "usage": {"include": True},
        }
        headers = {"Authorization": f"Bearer {self._api_key or os.getenv('OPENROUTER_API_KEY')}"}

        usage = CompletionUsage()
        async with httpx.AsyncClient(timeout=_REQUEST_TIMEOUT, transport=self._transport) as client:
            async with client.stream("POST", _OPENROUTER_URL, json=body, headers=headers) as response:
                if response.status_code != 200:
                    detail = (await response.aread())[:200]
                    raise CompletionError(f"OpenRouter returned HTTP {response.status_code}: {detail!r}")
                reader = FrameReader()
                async for chunk in response.aiter_text():
                    for frame in reader.feed(chunk):
                        if frame.done:
                            continue
                        choices = frame.payload.get("choices") or []
                        if choices:
                            text = (choices[0].get("delta") or {}).get("content")
                            if text:
                                yield TextDelta(text)
                        if frame.payload.get("usage"):
                            u = frame.payload["usage"]
                            usage = CompletionUsage(
                                input_tokens=int(u.get("prompt_tokens") or 0),
                                output_tokens=int(u.get("completion_tokens") or 0),
                            )
        yield usage


class CompletionRouter:
    """Picks (and caches) the client for a model's provider."""

    def __init__(self):
        self._clients = {}

    def client_for(self, model: ModelConfig):
        if model.provider not in self._clients:
            if model.provider == Provider.ANTHROPIC:
                self._clients[model.provider] = AnthropicCompletionClient()
            else:
                self._clients[model.provider] = OpenRouterCompletionClient()
        return self._clients[model.provider]
