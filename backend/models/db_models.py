from sqlmodel import SQLModel, Field, Relationship, Column
from sqlalchemy import DateTime, Text, UniqueConstraint
from typing import Optional, List
from datetime import datetime, timezone
import uuid
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False)


class ProjectStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    name: str = Field(max_length=255)
    location: str = Field(max_length=100)
    status: ProjectStatus = Field(default=ProjectStatus.COMPLETED, index=True)

    # Chain artifacts for the active version
    static_data: str = Field(sa_column=Column(Text, nullable=False))
    dynamic_assumptions: str = Field(sa_column=Column(Text, nullable=False))
    manual_j_results: str = Field(sa_column=Column(Text, nullable=False))
    chart_data: str = Field(sa_column=Column(Text, nullable=False))
    csv_data: str = Field(sa_column=Column(Text, nullable=False))

    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())

    # Relationships
    versions: List["ProjectVersion"] = Relationship(
        back_populates="project",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class ProjectVersion(SQLModel, table=True):
    __tablename__ = "project_versions"
    __table_args__ = (UniqueConstraint("project_id", "version_number", name="uq_project_version"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True, max_length=64)
    version_number: int = Field(ge=1)
    static_data: str = Field(sa_column=Column(Text, nullable=False))
    dynamic_assumptions: str = Field(sa_column=Column(Text, nullable=False))
    manual_j_results: str = Field(sa_column=Column(Text, nullable=False))
    change_reason: str = Field(default="Initial calculation", max_length=255)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())

    # Relationships
    project: Optional[Project] = Relationship(back_populates="versions")
