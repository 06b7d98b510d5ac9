from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy.orm import Session

from . import catalog
from .errors import NotFoundError, ValidationError
from .models import Project, ProjectTask, TagValue


def validate_project(db: Session, project_code: str, *, require_active: bool = True) -> Project:
    project = catalog.get_project(db, project_code)
    if project is None:
        raise NotFoundError(f"Project '{project_code}' does not exist")
    if require_active and not project.is_active:
        raise ValidationError(f"Project '{project_code}' is inactive", "projectCode")
    return project


def validate_task(db: Session, project_code: str, task_name: str) -> ProjectTask:
    task = catalog.get_task(db, project_code, task_name)
    if task is None or not task.is_active:
        raise NotFoundError(f"Task '{task_name}' is not available for project '{project_code}'")
    return task


def validate_tags(db: Session, project_code: str, tags: Iterable[Tuple[str, str]]) -> List[TagValue]:
    """Resolve ``(name, value)`` pairs to allowed tag values of the project.

    Every required tag of the project must be present.
    """
    configuration = {tag.tag_name: tag for tag in catalog.get_tag_configuration(db, project_code)}
    resolved: List[TagValue] = []
    seen: Set[str] = set()
    for name, value in tags:
        if name in seen:
            raise ValidationError(f"Tag '{name}' was supplied more than once", "tags")
        seen.add(name)
        project_tag = configuration.get(name)
        if project_tag is None:
            raise ValidationError(f"Tag '{name}' is not configured for project '{project_code}'", "tags")
        allowed: Dict[str, TagValue] = {item.value: item for item in project_tag.allowed_values}
        if value not in allowed:
            raise ValidationError(
                f"Value '{value}' is not allowed for tag '{name}'. Allowed values: {', '.join(allowed)}",
                "tags",
            )
        resolved.append(allowed[value])
    missing = sorted(tag.tag_name for tag in configuration.values() if tag.is_required and tag.tag_name not in seen)
    if missing:
        raise ValidationError(
            f"Required tag(s) missing for project '{project_code}': {', '.join(missing)}",
            "tags",
        )
    return resolved


def validate_date_range(start_date: dt.date, completion_date: dt.date) -> None:
    if start_date > completion_date:
        raise ValidationError("StartDate must be less than or equal to CompletionDate", "startDate")


def validate_hours(standard_hours: Decimal, overtime_hours: Decimal) -> None:
    if standard_hours < 0:
        raise ValidationError("StandardHours must be greater than or equal to 0", "standardHours")
    if overtime_hours < 0:
        raise ValidationError("OvertimeHours must be greater than or equal to 0", "overtimeHours")
