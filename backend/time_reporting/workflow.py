"""Lifecycle state machine for time entries.

The table below is the single place that says which action is allowed from
which status, what grant it needs, who may perform it and where it leads.
Handlers in :mod:`services` look their rule up here instead of branching on
status themselves.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from .acl import Permission
from .errors import BusinessRuleError
from .models import TimeEntryStatus


class Action(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    RETAG = "retag"
    MOVE = "move"
    DELETE = "delete"
    SUBMIT = "submit"
    APPROVE = "approve"
    DECLINE = "decline"


class Ownership(str, enum.Enum):
    # any holder of the required grant
    ANY = "any"
    OWNER_OR_MANAGER = "owner_or_manager"
    OWNER_ONLY = "owner_only"


@dataclass(frozen=True)
class TransitionRule:
    action: Action
    from_states: FrozenSet[TimeEntryStatus]
    permissions: FrozenSet[Permission]
    ownership: Ownership
    to_state: Optional[TimeEntryStatus]
    clears_decline_comment: bool = False

    def allows(self, status: TimeEntryStatus) -> bool:
        return status in self.from_states


MUTABLE_STATES = frozenset({TimeEntryStatus.NOT_REPORTED, TimeEntryStatus.DECLINED})

TRANSITIONS: Dict[Action, TransitionRule] = {
    Action.CREATE: TransitionRule(
        action=Action.CREATE,
        from_states=frozenset(),
        permissions=frozenset({Permission.TRACK}),
        ownership=Ownership.ANY,
        to_state=TimeEntryStatus.NOT_REPORTED,
    ),
    Action.UPDATE: TransitionRule(
        action=Action.UPDATE,
        from_states=MUTABLE_STATES,
        permissions=frozenset({Permission.EDIT}),
        ownership=Ownership.OWNER_OR_MANAGER,
        to_state=TimeEntryStatus.NOT_REPORTED,
        clears_decline_comment=True,
    ),
    Action.RETAG: TransitionRule(
        action=Action.RETAG,
        from_states=MUTABLE_STATES,
        permissions=frozenset({Permission.EDIT}),
        ownership=Ownership.OWNER_OR_MANAGER,
        to_state=TimeEntryStatus.NOT_REPORTED,
        clears_decline_comment=True,
    ),
    Action.MOVE: TransitionRule(
        action=Action.MOVE,
        from_states=MUTABLE_STATES,
        permissions=frozenset({Permission.EDIT}),
        ownership=Ownership.OWNER_OR_MANAGER,
        to_state=TimeEntryStatus.NOT_REPORTED,
        clears_decline_comment=True,
    ),
    Action.DELETE: TransitionRule(
        action=Action.DELETE,
        from_states=MUTABLE_STATES,
        permissions=frozenset({Permission.EDIT}),
        ownership=Ownership.OWNER_OR_MANAGER,
        to_state=None,
    ),
    Action.SUBMIT: TransitionRule(
        action=Action.SUBMIT,
        from_states=MUTABLE_STATES,
        permissions=frozenset({Permission.TRACK, Permission.EDIT}),
        ownership=Ownership.OWNER_ONLY,
        to_state=TimeEntryStatus.SUBMITTED,
        clears_decline_comment=True,
    ),
    Action.APPROVE: TransitionRule(
        action=Action.APPROVE,
        from_states=frozenset({TimeEntryStatus.SUBMITTED}),
        permissions=frozenset({Permission.APPROVE}),
        ownership=Ownership.ANY,
        to_state=TimeEntryStatus.APPROVED,
    ),
    Action.DECLINE: TransitionRule(
        action=Action.DECLINE,
        from_states=frozenset({TimeEntryStatus.SUBMITTED}),
        permissions=frozenset({Permission.APPROVE}),
        ownership=Ownership.ANY,
        to_state=TimeEntryStatus.DECLINED,
    ),
}


def rule_for(action: Action) -> TransitionRule:
    return TRANSITIONS[action]


def _rejection_message(action: Action, status: TimeEntryStatus) -> str:
    if status == TimeEntryStatus.APPROVED:
        return f"Cannot {action.value} time entry in APPROVED status. Approved entries are immutable."
    if action == Action.SUBMIT and status == TimeEntryStatus.SUBMITTED:
        return "Time entry is already SUBMITTED. Cannot submit again."
    if action in (Action.APPROVE, Action.DECLINE):
        return f"Time entry must be in SUBMITTED status to {action.value}. Current status: {status.value}"
    return f"Cannot {action.value} time entry in {status.value} status."


def next_state(action: Action, status: TimeEntryStatus) -> Optional[TimeEntryStatus]:
    """Return the status after ``action`` or raise :class:`BusinessRuleError`.

    ``None`` means the entry is removed.
    """
    rule = rule_for(action)
    if not rule.allows(status):
        raise BusinessRuleError(_rejection_message(action, status))
    return rule.to_state
