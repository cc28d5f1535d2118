"""Tests for the HTTP surface, driven through FastAPI's TestClient."""

import asyncio
import os
import sys

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from backend.middleware.rate_limit import RateLimitMiddleware
from backend.projects.pipeline import GenerationPipeline
from backend.projects.preview import PreviewRegistry
from backend.projects.store import InMemoryProjectStore
from backend.routes import generate, preview, projects
from backend.tests.fakes import HELLO_RESPONSE, FakeCompletionClient, FakeCompletionRouter, chunked, fake_context_factory
from builder.assemble import BundleAssembler
from builder.frames import iter_frames
from builder.turn import INTERRUPTED_MESSAGE


def _app(deltas=None, ai_limit=100):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_minute=1000, ai_requests_per_minute=ai_limit)
    app.include_router(projects.router, prefix="/api")
    app.include_router(generate.router, prefix="/api")
    app.include_router(preview.router, prefix="/api")
    app.state.project_store = InMemoryProjectStore()
    app.state.previews = PreviewRegistry(context_factory=fake_context_factory)
    app.state.assembler = BundleAssembler()
    client = FakeCompletionClient(chunked(HELLO_RESPONSE) if deltas is None else deltas)
    app.state.pipeline = GenerationPipeline(app.state.project_store, FakeCompletionRouter(client), app.state.previews)
    return app


@pytest.fixture
def app():
    return _app()


@pytest.fixture
def client(app):
    return TestClient(app)


def _create(client, name="Landing page"):
    response = client.post("/api/projects", json={"name": name})
    assert response.status_code == 200
    return response.json()["id"]


def _frames(response):
    return list(iter_frames([response.text]))


class TestProjectRoutes:
    """CRUD and file table access."""

    def test_models_list_has_one_default(self, client):
        models = client.get("/api/models").json()
        assert sum(1 for m in models if m["is_default"]) == 1

    def test_create_and_get(self, client):
        project_id = _create(client)
        body = client.get(f"/api/projects/{project_id}").json()
        assert body["name"] == "Landing page"
        assert body["files"] == []
        assert body["interrupted"] is False

    def test_unknown_project_404(self, client):
        assert client.get("/api/projects/missing").status_code == 404

    def test_unsupported_framework(self, client):
        response = client.post("/api/projects", json={"name": "x", "framework": "svelte"})
        assert response.status_code == 422

    def test_list(self, client):
        _create(client, "a")
        _create(client, "b")
        names = {p["name"] for p in client.get("/api/projects").json()}
        assert names == {"a", "b"}

    def test_replace_and_read_file(self, client):
        project_id = _create(client)
        put = client.put(f"/api/projects/{project_id}/files/src/App.jsx", json={"content": "x"})
        assert put.status_code == 200
        got = client.get(f"/api/projects/{project_id}/files/src/App.jsx").json()
        assert got == {"path": "src/App.jsx", "content": "x"}
        assert client.get(f"/api/projects/{project_id}/files/src/nope.jsx").status_code == 404

    def test_download(self, client):
        project_id = _create(client, "Shop")
        assert client.get(f"/api/projects/{project_id}/download").status_code == 404
        client.put(f"/api/projects/{project_id}/files/src/App.jsx", json={"content": "x"})
        body = client.get(f"/api/projects/{project_id}/download").json()
        assert body == {"projectName": "Shop", "files": {"src/App.jsx": "x"}}

    def test_delete(self, client):
        project_id = _create(client)
        assert client.delete(f"/api/projects/{project_id}").json() == {"status": "deleted"}
        assert client.delete(f"/api/projects/{project_id}").status_code == 404

    def test_interrupted_flag_reported_once(self, app, client):
        project_id = _create(client)
        asyncio.run(app.state.project_store.set_generating(project_id, True))
        first = client.get(f"/api/projects/{project_id}").json()
        assert first["interrupted"] is True
        assert first["warning"] == INTERRUPTED_MESSAGE
        second = client.get(f"/api/projects/{project_id}").json()
        assert second["interrupted"] is False


class TestGenerateRoutes:
    """Streaming generation over HTTP."""

    def test_generate_streams_frames(self, client):
        project_id = _create(client)
        response = client.post(f"/api/projects/{project_id}/generate", json={"prompt": "Say hello"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = _frames(response)
        assert frames[-1].done
        assert frames[-2].payload["type"] == "result"

        files = client.get(f"/api/projects/{project_id}").json()["files"]
        assert [f["path"] for f in files] == ["src/App.jsx"]

    def test_generate_creates_project(self, client):
        response = client.post("/api/generate", json={"prompt": "A bakery landing page"})
        frames = _frames(response)
        assert frames[0].payload["type"] == "project"
        project_id = frames[0].payload["projectId"]
        body = client.get(f"/api/projects/{project_id}").json()
        assert body["name"] == "A bakery landing page"
        assert len(body["files"]) == 1

    def test_generate_unknown_project(self, client):
        response = client.post("/api/projects/missing/generate", json={"prompt": "hi"})
        assert response.status_code == 404

    def test_generate_unknown_model(self, client):
        project_id = _create(client)
        response = client.post(f"/api/projects/{project_id}/generate", json={"prompt": "hi", "model_id": "nope"})
        assert response.status_code == 422

    def test_empty_prompt_rejected(self, client):
        project_id = _create(client)
        assert client.post(f"/api/projects/{project_id}/generate", json={"prompt": ""}).status_code == 422

    def test_concurrent_generation_409(self, app, client):
        project_id = _create(client)
        asyncio.run(app.state.pipeline.claim(project_id))
        response = client.post(f"/api/projects/{project_id}/generate", json={"prompt": "hi"})
        assert response.status_code == 409
        assert client.get(f"/api/projects/{project_id}").json()["generating"] is True
        assert client.put(f"/api/projects/{project_id}/files/src/App.jsx", json={"content": "x"}).status_code == 409

    def test_generation_rate_limited(self):
        client = TestClient(_app(ai_limit=1))
        project_id = _create(client)
        assert client.post(f"/api/projects/{project_id}/generate", json={"prompt": "hi"}).status_code == 200
        response = client.post(f"/api/projects/{project_id}/generate", json={"prompt": "hi"})
        assert response.status_code == 429


class TestPreviewRoutes:
    """Preview document and sandbox render."""

    def _project_with_app(self, client):
        project_id = _create(client)
        client.put(
            f"/api/projects/{project_id}/files/src/App.jsx",
            json={"content": "export default function App() { return <h1>Hello</h1>; }\n"},
        )
        return project_id

    def test_document_without_entry_404(self, client):
        project_id = _create(client)
        assert client.get(f"/api/projects/{project_id}/preview").status_code == 404

    def test_document_and_etag(self, client):
        project_id = self._project_with_app(client)
        response = client.get(f"/api/projects/{project_id}/preview")
        assert response.status_code == 200
        assert "function App()" in response.text
        etag = response.headers["etag"]
        cached = client.get(f"/api/projects/{project_id}/preview", headers={"If-None-Match": etag})
        assert cached.status_code == 304

    def test_render_and_status(self, client):
        project_id = self._project_with_app(client)
        assert client.get(f"/api/projects/{project_id}/preview/status").json()["state"] == "empty"
        rendered = client.post(f"/api/projects/{project_id}/preview/render").json()
        assert rendered["state"] == "rendered"
        assert rendered["text"] == "Hello"
        status = client.get(f"/api/projects/{project_id}/preview/status").json()
        assert status["state"] == "rendered"
        assert status["digest"] == rendered["digest"]

    def test_file_edit_remounts_preview(self, app, client):
        project_id = self._project_with_app(client)
        client.post(f"/api/projects/{project_id}/preview/render")
        host = app.state.previews.get(project_id)
        assert host.mounts == 1

        edited = "export default function App() { return <h1>Welcome</h1>; }\n"
        put = client.put(f"/api/projects/{project_id}/files/src/App.jsx", json={"content": edited})
        assert put.json() == {"path": "src/App.jsx", "content": edited}
        assert host.mounts == 2
        assert "Welcome" in host.document

        client.put(f"/api/projects/{project_id}/files/src/App.jsx", json={"content": edited})
        assert host.mounts == 2

    def test_file_edit_without_preview_does_not_mount(self, app, client):
        project_id = self._project_with_app(client)
        assert app.state.previews.get(project_id) is None
