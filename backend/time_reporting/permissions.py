from __future__ import annotations

import logging
from typing import Iterable, Optional

from .acl import Permission, project_resource
from .errors import AuthorizationError
from .identity import Principal
from .models import TimeEntry
from .workflow import Action, Ownership, rule_for

logger = logging.getLogger(__name__)


def has_permission(principal: Principal, resource_path: str, permission: Permission) -> bool:
    return principal.acl.allows(resource_path, permission)


def has_any_permission(principal: Principal, resource_path: str, *permissions: Permission) -> bool:
    return any(has_permission(principal, resource_path, permission) for permission in permissions)


def is_owner(principal: Principal, entry: TimeEntry) -> bool:
    return bool(principal.user_id) and entry.user_id == principal.user_id


def can_act_on_others_record(principal: Principal, resource_path: str) -> bool:
    return has_permission(principal, resource_path, Permission.MANAGE)


def _describe(permissions: Iterable[Permission]) -> tuple[str, str]:
    ordered = [permission for permission in Permission if permission in set(permissions)]
    letters = ",".join(permission.value for permission in ordered)
    labels = " or ".join(permission.label for permission in ordered)
    return letters, labels


def authorize(
    principal: Principal,
    action: Action,
    project_codes: Iterable[str],
    entry: Optional[TimeEntry] = None,
) -> None:
    """Raise :class:`AuthorizationError` unless ``principal`` may perform ``action``.

    The grant named by the action's transition rule is required on every
    project in ``project_codes``. When ``entry`` is given, the rule's ownership
    requirement is checked against it as well.
    """
    rule = rule_for(action)
    for project_code in project_codes:
        resource = project_resource(project_code)
        if not has_any_permission(principal, resource, *rule.permissions):
            letters, labels = _describe(rule.permissions)
            logger.info(
                "Denied %s for user %s on %s: missing %s",
                action.value,
                principal.user_id,
                resource,
                letters,
            )
            raise AuthorizationError(
                f"Permission '{labels}' on '{resource}' is required to {action.value} time entries",
                resource=resource,
                permission=letters,
            )
    if entry is None or rule.ownership == Ownership.ANY:
        return
    if is_owner(principal, entry):
        return
    resource = entry.resource_path
    if rule.ownership == Ownership.OWNER_OR_MANAGER and can_act_on_others_record(principal, resource):
        return
    logger.info("Denied %s for user %s on entry %s: not the owner", action.value, principal.user_id, entry.id)
    if rule.ownership == Ownership.OWNER_ONLY:
        raise AuthorizationError(
            f"Only the owner of a time entry may {action.value} it",
            resource=resource,
        )
    raise AuthorizationError(
        f"Permission 'Manage' on '{resource}' is required to {action.value} another user's time entry",
        resource=resource,
        permission=Permission.MANAGE.value,
    )
