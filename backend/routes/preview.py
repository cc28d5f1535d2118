"""Preview routes: the assembled document and sandboxed render status."""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, Response

from backend.models import PreviewStatusResponse
from builder.assemble import document_digest
from builder.files import has_entry
from builder.sandbox import PreviewState, SandboxUnavailable

logger = logging.getLogger(__name__)

router = APIRouter()


async def _files(request: Request, project_id: str) -> dict:
    project = await request.app.state.project_store.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project.files


@router.get("/projects/{project_id}/preview", response_class=HTMLResponse)
async def preview_document(project_id: str, request: Request):
    """Self-contained preview document; ETag is the document digest."""
    files = await _files(request, project_id)
    if not has_entry(files):
        raise HTTPException(status_code=404, detail="Project has no entry file yet")

    document = request.app.state.assembler.build(files)
    etag = f'"{document_digest(document)}"'
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    return HTMLResponse(document, headers={"ETag": etag})


@router.post("/projects/{project_id}/preview/render", response_model=PreviewStatusResponse)
async def render_preview(project_id: str, request: Request):
    """Mount the current file table in a fresh sandbox and report the outcome."""
    files = await _files(request, project_id)
    try:
        outcome = await request.app.state.previews.render(project_id, files)
    except SandboxUnavailable as e:
        logger.warning("Preview sandbox unavailable: %s", e)
        raise HTTPException(status_code=503, detail=str(e))

    host = request.app.state.previews.get(project_id)
    digest = document_digest(host.document) if host and host.document else None
    return PreviewStatusResponse(state=outcome.state.value, error=outcome.error, text=outcome.text, digest=digest)


@router.get("/projects/{project_id}/preview/status", response_model=PreviewStatusResponse)
async def preview_status(project_id: str, request: Request):
    await _files(request, project_id)
    host = request.app.state.previews.get(project_id)
    if host is None:
        return PreviewStatusResponse(state=PreviewState.EMPTY.value)
    digest = document_digest(host.document) if host.document else None
    return PreviewStatusResponse(state=host.state.value, error=host.error, digest=digest)
