from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import catalog, models
from .config import settings
from .database import db_session, engine, get_db
from .errors import (
    AuthorizationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    TimeReportingError,
    ValidationError,
)
from .identity import Principal
from .middleware import BearerAuthMiddleware
from .models import TimeEntryStatus
from .schemas import (
    AclEntryResponse,
    DeclineRequest,
    DeleteResponse,
    LogTimeRequest,
    MoveTaskRequest,
    ProjectResponse,
    TimeEntryResponse,
    UpdateTagsRequest,
    UpdateTimeEntryRequest,
    WhoAmIResponse,
)
from .services import (
    approve_time_entry,
    decline_time_entry,
    delete_time_entry,
    get_time_entry,
    list_time_entries,
    log_time,
    move_task_to_project,
    submit_time_entry,
    update_tags,
    update_time_entry,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    BusinessRuleError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
}


models.Base.metadata.create_all(bind=engine)

if settings.seed_catalog:
    with db_session() as session:
        catalog.seed_catalog(session)

app = FastAPI(title=settings.app_name)
app.add_middleware(BearerAuthMiddleware)


@app.exception_handler(TimeReportingError)
async def handle_time_reporting_error(request: Request, exc: TimeReportingError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(exc.to_dict(), status_code=status_code)


def get_principal(request: Request) -> Principal:
    principal: Optional[Principal] = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return principal


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/me", response_model=WhoAmIResponse)
def whoami(principal: Principal = Depends(get_principal)) -> WhoAmIResponse:
    return WhoAmIResponse(
        user_id=principal.user_id,
        email=principal.email,
        name=principal.name,
        acl=[
            AclEntryResponse(
                resource=entry.resource_path,
                permissions=sorted(permission.value for permission in entry.permissions),
            )
            for entry in principal.acl.entries()
        ],
    )


@app.get("/projects", response_model=list[ProjectResponse])
def projects(
    active_only: bool = True,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> list[ProjectResponse]:
    return catalog.list_projects(db, active_only=active_only)


@app.get("/time-entries", response_model=list[TimeEntryResponse])
def time_entries(
    status_filter: Optional[TimeEntryStatus] = Query(default=None, alias="status"),
    project_code: Optional[str] = None,
    from_date: Optional[dt.date] = None,
    to_date: Optional[dt.date] = None,
    limit: int = Query(default=settings.default_page_size, ge=1),
    offset: int = Query(default=0, ge=0),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> list[TimeEntryResponse]:
    return list_time_entries(
        db,
        principal,
        status=status_filter,
        project_code=project_code,
        start_date=from_date,
        end_date=to_date,
        limit=limit,
        offset=offset,
    )


@app.get("/time-entries/{entry_id}", response_model=TimeEntryResponse)
def time_entry(
    entry_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = get_time_entry(db, principal, entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time entry not found")
    return entry


@app.post("/time-entries", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
def create_time_entry(
    payload: LogTimeRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = log_time(
        db,
        principal,
        payload.project_code,
        payload.task,
        payload.standard_hours,
        payload.start_date,
        payload.completion_date,
        overtime_hours=payload.overtime_hours,
        description=payload.description,
        issue_id=payload.issue_id,
        tags=payload.tags,
    )
    return entry


@app.patch("/time-entries/{entry_id}", response_model=TimeEntryResponse)
def patch_time_entry(
    entry_id: str,
    payload: UpdateTimeEntryRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    changes = payload.model_dump(exclude_unset=True)
    return update_time_entry(db, principal, entry_id, changes)


@app.delete("/time-entries/{entry_id}", response_model=DeleteResponse)
def remove_time_entry(
    entry_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> DeleteResponse:
    return DeleteResponse(deleted=delete_time_entry(db, principal, entry_id))


@app.post("/time-entries/{entry_id}/move", response_model=TimeEntryResponse)
def move_time_entry(
    entry_id: str,
    payload: MoveTaskRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return move_task_to_project(db, principal, entry_id, payload.project_code, payload.task)


@app.put("/time-entries/{entry_id}/tags", response_model=TimeEntryResponse)
def replace_time_entry_tags(
    entry_id: str,
    payload: UpdateTagsRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return update_tags(db, principal, entry_id, payload.tags)


@app.post("/time-entries/{entry_id}/submit", response_model=TimeEntryResponse)
def submit(
    entry_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return submit_time_entry(db, principal, entry_id)


@app.post("/time-entries/{entry_id}/approve", response_model=TimeEntryResponse)
def approve(
    entry_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return approve_time_entry(db, principal, entry_id)


@app.post("/time-entries/{entry_id}/decline", response_model=TimeEntryResponse)
def decline(
    entry_id: str,
    payload: DeclineRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return decline_time_entry(db, principal, entry_id, payload.comment)
