import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

from backend.projects.models import ChatMessage, Project


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProjectStoreBase:
    """Collaborator interface used by the generation pipeline.

    `get`, `create` and `replace_file` are the narrow surface the pipeline
    needs; the rest serves the HTTP routes.
    """

    async def get(self, project_id: str) -> Optional[dict]:
        project = await self.get_project(project_id)
        if project is None:
            return None
        return {"files": dict(project.files), "messages": list(project.messages)}

    async def create(self, name: str, owner_id: str = "") -> str:
        project = await self.create_project(name=name, owner_id=owner_id)
        return project.id

    async def claim_interrupted(self, project_id: str) -> bool:
        """Clear a leftover in-progress flag; True if one was set."""
        project = await self.get_project(project_id)
        if project is None or project.generating_since is None:
            return False
        await self.set_generating(project_id, False)
        return True


class InMemoryProjectStore(ProjectStoreBase):
    def __init__(self):
        self._projects: dict[str, Project] = {}
        self._lock = asyncio.Lock()

    async def create_project(self, name: str = "My Website", owner_id: str = "", framework: str = "vite-react") -> Project:
        project = Project(name=name, owner_id=owner_id, framework=framework)
        async with self._lock:
            self._projects[project.id] = project
        return project.model_copy(deep=True)

    async def get_project(self, project_id: str) -> Optional[Project]:
        async with self._lock:
            project = self._projects.get(project_id)
            return project.model_copy(deep=True) if project else None

    async def list_projects(self, owner_id: Optional[str] = None) -> list[Project]:
        async with self._lock:
            projects = [p for p in self._projects.values() if not owner_id or p.owner_id == owner_id]
            projects.sort(key=lambda p: p.updated_at, reverse=True)
            return [p.model_copy(deep=True) for p in projects]

    async def replace_file(self, project_id: str, path: str, content: str) -> bool:
        async with self._lock:
            project = self._projects.get(project_id)
            if not project:
                return False
            project.files[path] = content
            project.updated_at = _now()
            return True

    async def append_messages(self, project_id: str, messages: list[ChatMessage]) -> None:
        async with self._lock:
            project = self._projects.get(project_id)
            if project:
                project.messages.extend(messages)
                project.updated_at = _now()

    async def add_credits(self, project_id: str, amount: float) -> None:
        async with self._lock:
            project = self._projects.get(project_id)
            if project:
                project.credits_used += amount

    async def set_generating(self, project_id: str, generating: bool) -> None:
        async with self._lock:
            project = self._projects.get(project_id)
            if project:
                project.generating_since = _now() if generating else None

    async def delete_project(self, project_id: str) -> bool:
        async with self._lock:
            return self._projects.pop(project_id, None) is not None


class SQLiteProjectStore(ProjectStoreBase):
    """Persistent project store backed by SQLite via SQLAlchemy."""

    def __init__(self, session_factory=None):
        if session_factory is None:
            from backend.database import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory

    def _to_pydantic(self, row) -> Project:
        """Convert ORM Project row (with files) to the Pydantic Project."""
        messages_data = json.loads(row.messages_json) if row.messages_json else []
        files = sorted(row.files, key=lambda f: f.position)
        return Project(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            framework=row.framework,
            files={f.path: f.content for f in files},
            messages=[ChatMessage(**m) for m in messages_data],
            credits_used=row.credits_used,
            generating_since=row.generating_since,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _row(self, db, project_id: str):
        from backend.models_db import Project as ProjectRow
        return db.query(ProjectRow).filter(ProjectRow.id == project_id).first()

    async def create_project(self, name: str = "My Website", owner_id: str = "", framework: str = "vite-react") -> Project:
        from backend.models_db import Project as ProjectRow
        project = Project(name=name, owner_id=owner_id, framework=framework)
        db = self._session_factory()
        try:
            db.add(ProjectRow(
                id=project.id,
                owner_id=owner_id,
                name=name,
                framework=framework,
                messages_json="[]",
                credits_used=0.0,
            ))
            db.commit()
        finally:
            db.close()
        return project

    async def get_project(self, project_id: str) -> Optional[Project]:
        db = self._session_factory()
        try:
            row = self._row(db, project_id)
            if not row:
                return None
            return self._to_pydantic(row)
        finally:
            db.close()

    async def list_projects(self, owner_id: Optional[str] = None) -> list[Project]:
        from backend.models_db import Project as ProjectRow
        db = self._session_factory()
        try:
            query = db.query(ProjectRow)
            if owner_id:
                query = query.filter(ProjectRow.owner_id == owner_id)
            rows = query.order_by(ProjectRow.updated_at.desc()).all()
            return [self._to_pydantic(r) for r in rows]
        finally:
            db.close()

    async def replace_file(self, project_id: str, path: str, content: str) -> bool:
        from backend.models_db import ProjectFile as FileRow
        db = self._session_factory()
        try:
            row = self._row(db, project_id)
            if not row:
                return False
            existing = next((f for f in row.files if f.path == path), None)
            if existing:
                existing.content = content
            else:
                position = max((f.position for f in row.files), default=-1) + 1
                db.add(FileRow(project_id=project_id, path=path, content=content, position=position))
            row.updated_at = _now()
            db.commit()
            return True
        finally:
            db.close()

    async def append_messages(self, project_id: str, messages: list[ChatMessage]) -> None:
        db = self._session_factory()
        try:
            row = self._row(db, project_id)
            if not row:
                return
            data = json.loads(row.messages_json) if row.messages_json else []
            data.extend(m.model_dump(mode="json") for m in messages)
            row.messages_json = json.dumps(data)
            row.updated_at = _now()
            db.commit()
        finally:
            db.close()

    async def add_credits(self, project_id: str, amount: float) -> None:
        db = self._session_factory()
        try:
            row = self._row(db, project_id)
            if row:
                row.credits_used = (row.credits_used or 0.0) + amount
                db.commit()
        finally:
            db.close()

    async def set_generating(self, project_id: str, generating: bool) -> None:
        db = self._session_factory()
        try:
            row = self._row(db, project_id)
            if row:
                row.generating_since = _now() if generating else None
                db.commit()
        finally:
            db.close()

    async def delete_project(self, project_id: str) -> bool:
        db = self._session_factory()
        try:
            row = self._row(db, project_id)
            if not row:
                return False
            db.delete(row)
            db.commit()
            return True
        finally:
            db.close()
