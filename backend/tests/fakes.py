"""Test doubles for the completion provider and the preview sandbox."""

import asyncio

from backend.ai.completion import CompletionUsage, TextDelta
from builder.sandbox import ContextReport, ExecutionContext


HELLO_RESPONSE = (
    "<thinking>A single greeting.</thinking>\n"
    '<file path="src/App.jsx">\n'
    "export default function App() {\n"
    "  return <h1>Hello</h1>;\n"
    "}\n"
    "</file>"
)


def chunked(text, size=7):
    return [text[i:i + size] for i in range(0, len(text), size)]


class FakeCompletionClient:
    def __init__(self, deltas, usage=None, error=None, delay=0.0):
        self.deltas = list(deltas)
        self.delay = delay
        self.usage = usage or CompletionUsage(input_tokens=1000, output_tokens=1000)
        self.error = error
        self.requests = []

    def ensure_configured(self):
        pass

    async def stream(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        for delta in self.deltas:
            yield TextDelta(delta)
        if self.error is not None:
            raise self.error
        yield self.usage


class FakeCompletionRouter:
    def __init__(self, client):
        self.client = client

    def client_for(self, model):
        return self.client


class FakeContext(ExecutionContext):
    def __init__(self, crashed=False):
        self.crashed = crashed
        self.document = None
        self.closed = False

    async def load(self, document):
        self.document = document

    async def settle(self, timeout):
        if self.crashed:
            return ContextReport(crashed=True, error="App is not defined")
        return ContextReport(crashed=False, text="Hello" if "Hello" in self.document else "")

    async def close(self):
        self.closed = True


async def fake_context_factory():
    return FakeContext()
