"""Generation route: streams one turn as server-sent events."""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from backend.models import GenerateRequest
from backend.projects.agents import get_model
from backend.projects.pipeline import TurnInProgress
from builder.frames import encode

logger = logging.getLogger(__name__)

router = APIRouter()

_SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@router.post("/projects/{project_id}/generate")
async def generate(project_id: str, body: GenerateRequest, request: Request):
    """Run a generation turn for the project.

    Frames: content, reasoning, phase, file, preview, error, then one
    result frame and the [DONE] sentinel.
    """
    store = request.app.state.project_store
    pipeline = request.app.state.pipeline

    model = get_model(body.model_id)
    if model is None:
        raise HTTPException(status_code=422, detail=f"Unknown model: {body.model_id}")
    pipeline.completions.client_for(model).ensure_configured()

    project = await store.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    try:
        await pipeline.claim(project_id)
    except TurnInProgress:
        raise HTTPException(status_code=409, detail="A generation is already running for this project")

    logger.info("Starting generation for project %s with %s", project_id, model.id)
    return StreamingResponse(
        pipeline.run(project_id, body.prompt, model, body.reference_image),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


def _name_from_prompt(prompt: str) -> str:
    words = prompt.split()[:6]
    return " ".join(words)[:60] or "My Website"


async def _with_project_frame(project_id: str, frames):
    yield encode({"type": "project", "projectId": project_id})
    async for frame in frames:
        yield frame


@router.post("/generate")
async def generate_new_project(body: GenerateRequest, request: Request):
    """Create a project from the first prompt and stream its first turn.

    The first frame carries the new project id.
    """
    store = request.app.state.project_store
    pipeline = request.app.state.pipeline

    model = get_model(body.model_id)
    if model is None:
        raise HTTPException(status_code=422, detail=f"Unknown model: {body.model_id}")
    pipeline.completions.client_for(model).ensure_configured()

    project_id = await store.create(body.project_name or _name_from_prompt(body.prompt))
    await pipeline.claim(project_id)

    logger.info("Created project %s from first prompt", project_id)
    return StreamingResponse(
        _with_project_frame(project_id, pipeline.run(project_id, body.prompt, model, body.reference_image)),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )
