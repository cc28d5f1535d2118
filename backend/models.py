"""Pydantic models for Sitesmith API requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from backend.projects.models import ChatMessage, ProjectFile


# --- Projects ---

class CreateProjectRequest(BaseModel):
    name: str = Field("My Website", min_length=1, max_length=120)
    owner_id: str = Field("", max_length=120)
    framework: str = Field("vite-react", description="Only vite-react is supported")


class ProjectSummary(BaseModel):
    id: str
    name: str
    file_count: int
    credits_used: float
    updated_at: datetime


class ProjectResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    framework: str
    files: list[ProjectFile]
    messages: list[ChatMessage]
    credits_used: float
    generating: bool = False
    interrupted: bool = False
    warning: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReplaceFileRequest(BaseModel):
    content: str


class DownloadResponse(BaseModel):
    """File table serialized for the client-side zip packager."""
    projectName: str
    files: dict[str, str]


# --- Generation ---

class GenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=20000)
    model_id: Optional[str] = Field(None, description="Model selector id; default model when omitted")
    reference_image: Optional[str] = Field(None, description="Base64 data URL of a reference screenshot")
    project_name: Optional[str] = Field(None, max_length=120, description="Name for a project created by this request")


class ModelInfo(BaseModel):
    id: str
    name: str
    provider: str
    is_default: bool


# --- Preview ---

class PreviewStatusResponse(BaseModel):
    state: str
    error: Optional[str] = None
    text: str = ""
    digest: Optional[str] = None
