from __future__ import annotations

import datetime as dt
import enum
import uuid
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from .acl import project_resource

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class TimeEntryStatus(str, enum.Enum):
    NOT_REPORTED = "NOT_REPORTED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


class Project(Base):
    __tablename__ = "projects"

    code = Column(String(10), primary_key=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    tasks = relationship(
        "ProjectTask",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectTask.task_name",
    )
    tags = relationship(
        "ProjectTag",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectTag.tag_name",
    )


class ProjectTask(Base):
    __tablename__ = "project_tasks"
    __table_args__ = (UniqueConstraint("project_code", "task_name", name="uq_project_task"),)

    id = Column(Integer, primary_key=True)
    project_code = Column(String(10), ForeignKey("projects.code"), nullable=False, index=True)
    task_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    project = relationship("Project", back_populates="tasks")


class ProjectTag(Base):
    __tablename__ = "project_tags"
    __table_args__ = (UniqueConstraint("project_code", "tag_name", name="uq_project_tag"),)

    id = Column(Integer, primary_key=True)
    project_code = Column(String(10), ForeignKey("projects.code"), nullable=False, index=True)
    tag_name = Column(String(20), nullable=False)
    is_required = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    project = relationship("Project", back_populates="tags")
    allowed_values = relationship(
        "TagValue",
        back_populates="project_tag",
        cascade="all, delete-orphan",
        order_by="TagValue.id",
    )


class TagValue(Base):
    __tablename__ = "tag_values"
    __table_args__ = (UniqueConstraint("project_tag_id", "value", name="uq_tag_value"),)

    id = Column(Integer, primary_key=True)
    project_tag_id = Column(Integer, ForeignKey("project_tags.id"), nullable=False, index=True)
    value = Column(String(100), nullable=False)

    project_tag = relationship("ProjectTag", back_populates="allowed_values")


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    user_email = Column(String(255), nullable=True)
    user_name = Column(String(255), nullable=True)
    project_code = Column(String(10), ForeignKey("projects.code"), nullable=False, index=True)
    project_task_id = Column(Integer, ForeignKey("project_tasks.id"), nullable=False)
    issue_id = Column(String(30), nullable=True)
    standard_hours = Column(Numeric(10, 2), nullable=False)
    overtime_hours = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False, index=True)
    completion_date = Column(Date, nullable=False)
    status = Column(
        Enum(
            TimeEntryStatus,
            native_enum=False,
            length=20,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=TimeEntryStatus.NOT_REPORTED,
        index=True,
    )
    decline_comment = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    project = relationship("Project")
    project_task = relationship("ProjectTask")
    tags = relationship(
        "TimeEntryTag",
        back_populates="time_entry",
        cascade="all, delete-orphan",
        order_by="TimeEntryTag.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def task(self) -> str:
        return self.project_task.task_name

    @property
    def resource_path(self) -> str:
        return project_resource(self.project_code)


class TimeEntryTag(Base):
    __tablename__ = "time_entry_tags"
    __table_args__ = (UniqueConstraint("time_entry_id", "tag_value_id", name="uq_time_entry_tag"),)

    id = Column(Integer, primary_key=True)
    time_entry_id = Column(String(36), ForeignKey("time_entries.id"), nullable=False, index=True)
    tag_value_id = Column(Integer, ForeignKey("tag_values.id"), nullable=False)

    time_entry = relationship("TimeEntry", back_populates="tags")
    tag_value = relationship("TagValue")

    @property
    def name(self) -> str:
        return self.tag_value.project_tag.tag_name

    @property
    def value(self) -> str:
        return self.tag_value.value
