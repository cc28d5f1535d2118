from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field
import uuid


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: str  # "user", "assistant"
    content: str
    has_image: bool = False
    timestamp: datetime = Field(default_factory=_now)


class ProjectFile(BaseModel):
    path: str
    content: str


class Project(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str = ""
    name: str = "My Website"
    framework: str = "vite-react"
    files: dict[str, str] = Field(default_factory=dict)  # path -> content, insertion ordered
    messages: list[ChatMessage] = Field(default_factory=list)
    credits_used: float = 0.0
    generating_since: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def file_list(self) -> list[ProjectFile]:
        return [ProjectFile(path=p, content=c) for p, c in self.files.items()]
