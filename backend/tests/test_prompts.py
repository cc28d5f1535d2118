"""Tests for prompt construction and the completion clients' wire handling."""

import asyncio
import json
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from backend.ai.completion import (
    CompletionError,
    CompletionRequest,
    CompletionUsage,
    OpenRouterCompletionClient,
    TextDelta,
)
from backend.ai.prompts import MAX_HISTORY_MESSAGES, build_generation_messages, image_block
from backend.projects.agents import MODEL_CONFIGS, default_model, get_model


class TestPrompts:
    """System prompt and message list."""

    def test_new_project_mode(self):
        system, messages = build_generation_messages("A bakery site", {}, [])
        assert "This is a new project" in system
        assert messages == [{"role": "user", "content": [{"type": "text", "text": "A bakery site"}]}]

    def test_follow_up_lists_files(self):
        system, _ = build_generation_messages("Make it blue", {"src/App.jsx": "function App() {}"}, [])
        assert '<file path="src/App.jsx">\nfunction App() {}\n</file>' in system

    def test_history_trimmed_and_alternating(self):
        history = [{"role": "user" if i % 2 == 0 else "assistant", "content": "m%d" % i} for i in range(30)]
        _, messages = build_generation_messages("next", {}, history)
        assert messages[0]["role"] == "user"
        for a, b in zip(messages, messages[1:]):
            assert a["role"] != b["role"]
        assert len(messages) <= MAX_HISTORY_MESSAGES + 2

    def test_reference_image_block(self):
        data_url = "data:image/png;base64,iVBORw0KGgo="
        _, messages = build_generation_messages("copy this", {}, [], reference_image=data_url)
        blocks = messages[-1]["content"]
        assert blocks[0] == {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "iVBORw0KGgo="}}
        assert image_block("not a data url") is None


class TestModels:
    def test_default_model(self):
        assert get_model(None) is default_model()
        assert get_model("nope") is None
        assert sum(m.is_default for m in MODEL_CONFIGS.values()) == 1

    def test_credits(self):
        model = default_model()
        assert model.credits_for(2000, 1000) == pytest.approx(2 * model.input_credits_per_1k + model.output_credits_per_1k)


def _sse(*payloads):
    body = "".join("data: %s\n\n" % json.dumps(p) for p in payloads) + "data: [DONE]\n\n"
    return body.encode()


class TestOpenRouterClient:
    """OpenAI-compatible SSE parsing over a mocked transport."""

    def _collect(self, handler):
        client = OpenRouterCompletionClient(api_key="test", transport=httpx.MockTransport(handler))
        request = CompletionRequest(prompt="hi", model=MODEL_CONFIGS["openai/gpt-4o"])

        async def run():
            return [chunk async for chunk in client.stream(request)]

        return asyncio.run(run())

    def test_deltas_and_usage(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["stream"] is True
            assert body["messages"][0]["role"] == "system"
            return httpx.Response(200, content=_sse(
                {"choices": [{"delta": {"content": "<file "}}]},
                {"choices": [{"delta": {"content": 'path="a">x</file>'}}]},
                {"choices": [], "usage": {"prompt_tokens": 10, "completion_tokens": 5}},
            ))

        chunks = self._collect(handler)
        assert chunks == [TextDelta("<file "), TextDelta('path="a">x</file>'), CompletionUsage(10, 5)]

    def test_http_error(self):
        with pytest.raises(CompletionError):
            self._collect(lambda request: httpx.Response(401, content=b"bad key"))
