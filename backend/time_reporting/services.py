from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .config import settings
from .errors import ConflictError, NotFoundError, ValidationError
from .identity import Principal
from .models import TimeEntry, TimeEntryStatus, TimeEntryTag, TagValue
from .permissions import authorize
from .validation import (
    validate_date_range,
    validate_hours,
    validate_project,
    validate_tags,
    validate_task,
)
from .workflow import Action, next_state, rule_for

logger = logging.getLogger(__name__)

UTC = dt.timezone.utc

UPDATABLE_FIELDS = {
    "task",
    "issue_id",
    "standard_hours",
    "overtime_hours",
    "description",
    "start_date",
    "completion_date",
    "tags",
}


def _now() -> dt.datetime:
    return dt.datetime.now(UTC)


def _to_decimal(value: Any) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError as exc:
        raise ValidationError(f"'{value}' is not a valid number of hours", "hours") from exc
    if not result.is_finite():
        raise ValidationError(f"'{value}' is not a valid number of hours", "hours")
    return result


def _tag_pairs(tags: Optional[Iterable[Any]]) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for tag in tags or []:
        if isinstance(tag, dict):
            name, value = tag.get("name"), tag.get("value")
        elif isinstance(tag, (tuple, list)) and len(tag) == 2:
            name, value = tag
        else:
            name, value = getattr(tag, "name", None), getattr(tag, "value", None)
        if not isinstance(name, str) or not isinstance(value, str):
            raise ValidationError(f"Tag {tag!r} must provide a name and a value", "tags")
        pairs.append((name, value))
    return pairs


def _replace_tags(entry: TimeEntry, tag_values: Sequence[TagValue]) -> None:
    # Reuse surviving links; (time_entry_id, tag_value_id) is unique.
    existing = {link.tag_value_id: link for link in entry.tags}
    entry.tags = [existing.get(tag_value.id) or TimeEntryTag(tag_value=tag_value) for tag_value in tag_values]


def _get_time_entry(db: Session, entry_id: str) -> TimeEntry:
    entry = db.get(TimeEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"Time entry with ID '{entry_id}' not found")
    return entry


def _apply_transition(entry: TimeEntry, action: Action) -> None:
    target = next_state(action, entry.status)
    if rule_for(action).clears_decline_comment:
        entry.decline_comment = None
    if target is not None:
        entry.status = target
    entry.updated_at = _now()


def _commit(db: Session, entry: TimeEntry, action: Action) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent modification of time entry %s during %s", entry.id, action.value)
        raise ConflictError(
            f"Time entry '{entry.id}' was modified by another request. Reload it and try again."
        ) from exc


def log_time(
    db: Session,
    principal: Principal,
    project_code: str,
    task: str,
    standard_hours: Any,
    start_date: dt.date,
    completion_date: dt.date,
    overtime_hours: Any = Decimal("0"),
    description: Optional[str] = None,
    issue_id: Optional[str] = None,
    tags: Optional[Iterable[Any]] = None,
) -> TimeEntry:
    authorize(principal, Action.CREATE, [project_code])

    standard = _to_decimal(standard_hours)
    overtime = _to_decimal(overtime_hours if overtime_hours is not None else Decimal("0"))
    project = validate_project(db, project_code)
    project_task = validate_task(db, project_code, task)
    tag_values = validate_tags(db, project_code, _tag_pairs(tags))
    validate_date_range(start_date, completion_date)
    validate_hours(standard, overtime)

    now = _now()
    entry = TimeEntry(
        user_id=principal.user_id,
        user_email=principal.email,
        user_name=principal.name,
        project=project,
        project_code=project.code,
        project_task=project_task,
        project_task_id=project_task.id,
        issue_id=issue_id,
        standard_hours=standard,
        overtime_hours=overtime,
        description=description,
        start_date=start_date,
        completion_date=completion_date,
        status=rule_for(Action.CREATE).to_state,
        created_at=now,
        updated_at=now,
    )
    _replace_tags(entry, tag_values)
    db.add(entry)
    _commit(db, entry, Action.CREATE)
    db.refresh(entry)
    logger.info("User %s logged time entry %s on %s", principal.user_id, entry.id, project_code)
    return entry


def update_time_entry(db: Session, principal: Principal, entry_id: str, changes: Dict[str, Any]) -> TimeEntry:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    changes = {key: value for key, value in changes.items() if value is not None}

    entry = _get_time_entry(db, entry_id)
    next_state(Action.UPDATE, entry.status)
    authorize(principal, Action.UPDATE, [entry.project_code], entry)

    project_code = entry.project_code
    project_task = None
    if "task" in changes and changes["task"] != entry.task:
        project_task = validate_task(db, project_code, changes["task"])
    tag_values = None
    if "tags" in changes:
        tag_values = validate_tags(db, project_code, _tag_pairs(changes["tags"]))
    standard = _to_decimal(changes.get("standard_hours", entry.standard_hours))
    overtime = _to_decimal(changes.get("overtime_hours", entry.overtime_hours))
    validate_hours(standard, overtime)
    start_date = changes.get("start_date", entry.start_date)
    completion_date = changes.get("completion_date", entry.completion_date)
    validate_date_range(start_date, completion_date)

    previous_status = entry.status
    if project_task is not None:
        entry.project_task = project_task
        entry.project_task_id = project_task.id
    if "issue_id" in changes:
        entry.issue_id = changes["issue_id"]
    if "description" in changes:
        entry.description = changes["description"]
    entry.standard_hours = standard
    entry.overtime_hours = overtime
    entry.start_date = start_date
    entry.completion_date = completion_date
    if tag_values is not None:
        _replace_tags(entry, tag_values)
    _apply_transition(entry, Action.UPDATE)

    _commit(db, entry, Action.UPDATE)
    db.refresh(entry)
    logger.info(
        "User %s updated time entry %s (%s -> %s)",
        principal.user_id,
        entry.id,
        previous_status.value,
        entry.status.value,
    )
    return entry


def delete_time_entry(db: Session, principal: Principal, entry_id: str) -> bool:
    entry = _get_time_entry(db, entry_id)
    next_state(Action.DELETE, entry.status)
    authorize(principal, Action.DELETE, [entry.project_code], entry)

    db.delete(entry)
    _commit(db, entry, Action.DELETE)
    logger.info("User %s deleted time entry %s", principal.user_id, entry_id)
    return True


def move_task_to_project(
    db: Session,
    principal: Principal,
    entry_id: str,
    new_project_code: str,
    new_task: str,
) -> TimeEntry:
    entry = _get_time_entry(db, entry_id)
    old_project_code = entry.project_code
    next_state(Action.MOVE, entry.status)
    authorize(principal, Action.MOVE, [old_project_code, new_project_code], entry)

    project = validate_project(db, new_project_code)
    project_task = validate_task(db, new_project_code, new_task)

    # Tag values belong to a single project, even when names coincide.
    if old_project_code != new_project_code:
        entry.tags.clear()
    entry.project = project
    entry.project_code = project.code
    entry.project_task = project_task
    entry.project_task_id = project_task.id
    _apply_transition(entry, Action.MOVE)

    _commit(db, entry, Action.MOVE)
    db.refresh(entry)
    logger.info(
        "User %s moved time entry %s from %s to %s/%s",
        principal.user_id,
        entry.id,
        old_project_code,
        new_project_code,
        new_task,
    )
    return entry


def update_tags(db: Session, principal: Principal, entry_id: str, tags: Optional[Iterable[Any]]) -> TimeEntry:
    entry = _get_time_entry(db, entry_id)
    next_state(Action.RETAG, entry.status)
    authorize(principal, Action.RETAG, [entry.project_code], entry)

    tag_values = validate_tags(db, entry.project_code, _tag_pairs(tags))

    _replace_tags(entry, tag_values)
    _apply_transition(entry, Action.RETAG)

    _commit(db, entry, Action.RETAG)
    db.refresh(entry)
    logger.info("User %s replaced tags on time entry %s", principal.user_id, entry.id)
    return entry


def submit_time_entry(db: Session, principal: Principal, entry_id: str) -> TimeEntry:
    return _transition(db, principal, entry_id, Action.SUBMIT)


def approve_time_entry(db: Session, principal: Principal, entry_id: str) -> TimeEntry:
    return _transition(db, principal, entry_id, Action.APPROVE)


def decline_time_entry(db: Session, principal: Principal, entry_id: str, comment: Optional[str]) -> TimeEntry:
    return _transition(db, principal, entry_id, Action.DECLINE, comment=comment)


def _transition(
    db: Session,
    principal: Principal,
    entry_id: str,
    action: Action,
    comment: Optional[str] = None,
) -> TimeEntry:
    entry = _get_time_entry(db, entry_id)
    next_state(action, entry.status)
    authorize(principal, action, [entry.project_code], entry)
    if action == Action.DECLINE and (comment is None or not comment.strip()):
        raise ValidationError("Decline comment is required", "comment")
    previous_status = entry.status
    _apply_transition(entry, action)
    if action == Action.DECLINE:
        entry.decline_comment = comment.strip()

    _commit(db, entry, action)
    db.refresh(entry)
    logger.info(
        "User %s moved time entry %s from %s to %s",
        principal.user_id,
        entry.id,
        previous_status.value,
        entry.status.value,
    )
    return entry


def list_time_entries(
    db: Session,
    principal: Principal,
    *,
    status: Optional[TimeEntryStatus] = None,
    project_code: Optional[str] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[TimeEntry]:
    """Return the caller's own entries.

    Scoped by ownership only; ACL grants do not widen or narrow the result.
    """
    if limit is None:
        limit = settings.default_page_size
    limit = max(1, min(limit, settings.max_page_size))
    query = db.query(TimeEntry).filter(TimeEntry.user_id == principal.user_id)
    if status is not None:
        query = query.filter(TimeEntry.status == status)
    if project_code:
        query = query.filter(TimeEntry.project_code == project_code)
    if start_date:
        query = query.filter(TimeEntry.start_date >= start_date)
    if end_date:
        query = query.filter(TimeEntry.start_date <= end_date)
    return (
        query.order_by(TimeEntry.start_date.desc(), TimeEntry.created_at.desc())
        .offset(max(0, offset))
        .limit(limit)
        .all()
    )


def get_time_entry(db: Session, principal: Principal, entry_id: str) -> Optional[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.id == entry_id, TimeEntry.user_id == principal.user_id)
        .one_or_none()
    )
