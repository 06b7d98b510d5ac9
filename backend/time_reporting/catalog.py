"""Read-only lookups against the project catalog.

Every call queries the database; results are never kept between requests.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from .models import Project, ProjectTag, ProjectTask, TagValue


def get_project(db: Session, code: str) -> Optional[Project]:
    return db.query(Project).filter(Project.code == code).one_or_none()


def get_task(db: Session, project_code: str, task_name: str) -> Optional[ProjectTask]:
    return (
        db.query(ProjectTask)
        .filter(ProjectTask.project_code == project_code, ProjectTask.task_name == task_name)
        .one_or_none()
    )


def get_tag_configuration(db: Session, project_code: str) -> List[ProjectTag]:
    return (
        db.query(ProjectTag)
        .options(selectinload(ProjectTag.allowed_values))
        .filter(ProjectTag.project_code == project_code, ProjectTag.is_active.is_(True))
        .order_by(ProjectTag.tag_name)
        .all()
    )


def list_projects(db: Session, active_only: bool = True) -> List[Project]:
    query = db.query(Project).options(
        selectinload(Project.tasks),
        selectinload(Project.tags).selectinload(ProjectTag.allowed_values),
    )
    if active_only:
        query = query.filter(Project.is_active.is_(True))
    return query.order_by(Project.code).all()


def seed_catalog(db: Session) -> None:
    """Insert the default projects, tasks and tag configuration if missing."""
    catalog = {
        "INTERNAL": (
            "Internal Development",
            ["Architecture", "Development", "Code Review", "Testing", "Documentation", "DevOps"],
            [
                ("Environment", False, ["Production", "Staging", "Development"]),
                ("Billable", False, ["Yes", "No"]),
                ("Type", False, ["Feature", "Bug", "Refactor", "Docs"]),
            ],
        ),
        "CLIENT-A": (
            "Client A Project",
            ["Feature Development", "Bug Fixing", "Maintenance", "Support", "Code Review"],
            [
                ("Priority", True, ["High", "Medium", "Low"]),
                ("Sprint", False, ["Sprint-1", "Sprint-2", "Sprint-3", "Sprint-4"]),
                ("Billable", False, ["Yes", "No"]),
            ],
        ),
        "MAINT": (
            "Maintenance & Support",
            ["Bug Fixing", "Security Patches", "Performance Optimization", "Monitoring"],
            [
                ("Severity", True, ["Critical", "High", "Medium", "Low"]),
                ("Billable", False, ["Yes", "No"]),
            ],
        ),
    }
    for code, (name, tasks, tags) in catalog.items():
        if get_project(db, code) is not None:
            continue
        project = Project(code=code, name=name, is_active=True)
        project.tasks = [ProjectTask(task_name=task, is_active=True) for task in tasks]
        project.tags = [
            ProjectTag(
                tag_name=tag_name,
                is_required=required,
                is_active=True,
                allowed_values=[TagValue(value=value) for value in values],
            )
            for tag_name, required, values in tags
        ]
        db.add(project)
    db.commit()
