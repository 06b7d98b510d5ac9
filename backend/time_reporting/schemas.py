from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer

from .models import TimeEntryStatus


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


class TagInput(BaseModel):
    name: str = Field(min_length=1, max_length=20)
    value: str = Field(min_length=1, max_length=100)


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    value: str


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    user_email: Optional[str]
    user_name: Optional[str]
    project_code: str
    task: str
    issue_id: Optional[str]
    standard_hours: Decimal
    overtime_hours: Decimal
    description: Optional[str]
    start_date: dt.date
    completion_date: dt.date
    status: TimeEntryStatus
    decline_comment: Optional[str]
    tags: List[TagResponse] = Field(default_factory=list)
    created_at: dt.datetime
    updated_at: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "user_name": self.user_name,
            "project_code": self.project_code,
            "task": self.task,
            "issue_id": self.issue_id,
            "standard_hours": float(self.standard_hours),
            "overtime_hours": float(self.overtime_hours),
            "description": self.description,
            "start_date": self.start_date.isoformat(),
            "completion_date": self.completion_date.isoformat(),
            "status": self.status.value,
            "decline_comment": self.decline_comment,
            "tags": [{"name": tag.name, "value": tag.value} for tag in self.tags],
            "created_at": _serialize_datetime(self.created_at),
            "updated_at": _serialize_datetime(self.updated_at),
        }


class LogTimeRequest(BaseModel):
    project_code: str = Field(min_length=1, max_length=10)
    task: str = Field(min_length=1, max_length=100)
    standard_hours: Decimal
    overtime_hours: Decimal = Decimal("0")
    start_date: dt.date
    completion_date: dt.date
    description: Optional[str] = None
    issue_id: Optional[str] = Field(default=None, max_length=30)
    tags: List[TagInput] = Field(default_factory=list)


class UpdateTimeEntryRequest(BaseModel):
    task: Optional[str] = Field(default=None, min_length=1, max_length=100)
    issue_id: Optional[str] = Field(default=None, max_length=30)
    standard_hours: Optional[Decimal] = None
    overtime_hours: Optional[Decimal] = None
    description: Optional[str] = None
    start_date: Optional[dt.date] = None
    completion_date: Optional[dt.date] = None
    tags: Optional[List[TagInput]] = None


class MoveTaskRequest(BaseModel):
    project_code: str = Field(min_length=1, max_length=10)
    task: str = Field(min_length=1, max_length=100)


class UpdateTagsRequest(BaseModel):
    tags: List[TagInput] = Field(default_factory=list)


class DeclineRequest(BaseModel):
    comment: str = ""


class DeleteResponse(BaseModel):
    deleted: bool


class ProjectTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_name: str
    is_active: bool


class TagValueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: str


class ProjectTagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tag_name: str
    is_required: bool
    is_active: bool
    allowed_values: List[TagValueResponse]


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    is_active: bool
    tasks: List[ProjectTaskResponse]
    tags: List[ProjectTagResponse]


class AclEntryResponse(BaseModel):
    resource: str
    permissions: List[str]


class WhoAmIResponse(BaseModel):
    user_id: str
    email: Optional[str]
    name: Optional[str]
    acl: List[AclEntryResponse]
