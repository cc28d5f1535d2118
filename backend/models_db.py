"""SQLAlchemy ORM models."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Float, Integer, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from backend.database import Base

class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, nullable=False, default="")
    name = Column(String, nullable=False, default="My Website")
    framework = Column(String, nullable=False, default="vite-react")
    messages_json = Column(Text, nullable=False, default="[]")
    credits_used = Column(Float, nullable=False, default=0.0)
    generating_since = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    files = relationship("ProjectFile", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index("ix_projects_owner_id", "owner_id"),
    )


class ProjectFile(Base):
    __tablename__ = "project_files"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    path = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    position = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    project = relationship("Project", back_populates="files")

    __table_args__ = (
        UniqueConstraint("project_id", "path", name="uq_project_files_path"),
    )
