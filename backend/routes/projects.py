"""Project routes: CRUD, file table access and download."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from backend.models import (
    CreateProjectRequest,
    DownloadResponse,
    ModelInfo,
    ProjectResponse,
    ProjectSummary,
    ReplaceFileRequest,
)
from backend.projects.agents import MODEL_CONFIGS
from backend.projects.models import Project, ProjectFile
from builder.files import FileRecord, apply_edits, canonical_path
from builder.sandbox import SandboxUnavailable
from builder.turn import INTERRUPTED_MESSAGE

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(project: Project, generating: bool = False, interrupted: bool = False) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        owner_id=project.owner_id,
        name=project.name,
        framework=project.framework,
        files=project.file_list(),
        messages=project.messages,
        credits_used=project.credits_used,
        generating=generating,
        interrupted=interrupted,
        warning=INTERRUPTED_MESSAGE if interrupted else None,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


async def _load(request: Request, project_id: str) -> Project:
    project = await request.app.state.project_store.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("/models", response_model=list[ModelInfo])
async def list_models():
    """Models available in the model selector."""
    return [
        ModelInfo(id=m.id, name=m.name, provider=m.provider.value, is_default=m.is_default)
        for m in MODEL_CONFIGS.values()
    ]


@router.post("/projects", response_model=ProjectResponse)
async def create_project(body: CreateProjectRequest, request: Request):
    if body.framework != "vite-react":
        raise HTTPException(status_code=422, detail=f"Unsupported framework: {body.framework}")
    store = request.app.state.project_store
    project = await store.create_project(name=body.name, owner_id=body.owner_id, framework=body.framework)
    return _to_response(project)


@router.get("/projects", response_model=list[ProjectSummary])
async def list_projects(request: Request, owner_id: Optional[str] = None):
    store = request.app.state.project_store
    projects = await store.list_projects(owner_id)
    return [
        ProjectSummary(
            id=p.id,
            name=p.name,
            file_count=len(p.files),
            credits_used=p.credits_used,
            updated_at=p.updated_at,
        )
        for p in projects
    ]


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, request: Request):
    """Full project state.

    A project still flagged as generating with no turn running was cut off
    (server restart, crash); the flag is cleared and the client is told to
    resubmit.
    """
    store = request.app.state.project_store
    pipeline = request.app.state.pipeline
    project = await _load(request, project_id)

    if pipeline.is_active(project_id):
        return _to_response(project, generating=True)

    interrupted = await store.claim_interrupted(project_id)
    return _to_response(project, interrupted=interrupted)


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, request: Request):
    if request.app.state.pipeline.is_active(project_id):
        raise HTTPException(status_code=409, detail="A generation is in progress for this project")
    deleted = await request.app.state.project_store.delete_project(project_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Project not found")
    await request.app.state.previews.discard(project_id)
    return {"status": "deleted"}


@router.get("/projects/{project_id}/files/{path:path}", response_model=ProjectFile)
async def read_file(project_id: str, path: str, request: Request):
    project = await _load(request, project_id)
    path = canonical_path(path)
    if path not in project.files:
        raise HTTPException(status_code=404, detail=f"File not found: {path}")
    return ProjectFile(path=path, content=project.files[path])


@router.put("/projects/{project_id}/files/{path:path}", response_model=ProjectFile)
async def replace_file(project_id: str, path: str, body: ReplaceFileRequest, request: Request):
    """Replace one file's full content (manual edit from the code view).

    A project whose preview is mounted gets it rebuilt from the new table.
    """
    if request.app.state.pipeline.is_active(project_id):
        raise HTTPException(status_code=409, detail="A generation is in progress for this project")
    project = await _load(request, project_id)
    path = canonical_path(path)
    if not path:
        raise HTTPException(status_code=422, detail="File path is empty")

    result = apply_edits(project.files, [FileRecord(path=path, content=body.content)])
    for changed in result.changed:
        await request.app.state.project_store.replace_file(project_id, changed, result.files[changed])

    previews = request.app.state.previews
    if result.changed and previews.get(project_id) is not None:
        try:
            await previews.render(project_id, result.files)
        except SandboxUnavailable as e:
            logger.warning("Preview not refreshed for project %s: %s", project_id, e)
    return ProjectFile(path=path, content=result.files[path])


@router.get("/projects/{project_id}/download", response_model=DownloadResponse)
async def download_project(project_id: str, request: Request):
    project = await _load(request, project_id)
    if not project.files:
        raise HTTPException(status_code=404, detail="Project has no files yet")
    return DownloadResponse(projectName=project.name, files=dict(project.files))
