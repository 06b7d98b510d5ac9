from __future__ import annotations

import pytest

from time_reporting.errors import BusinessRuleError
from time_reporting.models import TimeEntryStatus
from time_reporting.workflow import MUTABLE_STATES, TRANSITIONS, Action, next_state, rule_for

NOT_REPORTED = TimeEntryStatus.NOT_REPORTED
SUBMITTED = TimeEntryStatus.SUBMITTED
APPROVED = TimeEntryStatus.APPROVED
DECLINED = TimeEntryStatus.DECLINED


def test_every_action_has_a_rule() -> None:
    assert set(TRANSITIONS) == set(Action)


@pytest.mark.parametrize(
    ("action", "status", "expected"),
    [
        (Action.UPDATE, NOT_REPORTED, NOT_REPORTED),
        (Action.UPDATE, DECLINED, NOT_REPORTED),
        (Action.RETAG, DECLINED, NOT_REPORTED),
        (Action.MOVE, DECLINED, NOT_REPORTED),
        (Action.SUBMIT, NOT_REPORTED, SUBMITTED),
        (Action.SUBMIT, DECLINED, SUBMITTED),
        (Action.APPROVE, SUBMITTED, APPROVED),
        (Action.DECLINE, SUBMITTED, DECLINED),
        (Action.DELETE, NOT_REPORTED, None),
        (Action.DELETE, DECLINED, None),
    ],
)
def test_allowed_transitions(action: Action, status: TimeEntryStatus, expected) -> None:
    assert next_state(action, status) == expected


@pytest.mark.parametrize("action", [a for a in Action if a != Action.CREATE])
def test_approved_is_terminal(action: Action) -> None:
    with pytest.raises(BusinessRuleError):
        next_state(action, APPROVED)


@pytest.mark.parametrize("action", [Action.UPDATE, Action.RETAG, Action.MOVE, Action.DELETE])
def test_submitted_entries_cannot_be_edited(action: Action) -> None:
    with pytest.raises(BusinessRuleError):
        next_state(action, SUBMITTED)


def test_double_submit_is_rejected() -> None:
    with pytest.raises(BusinessRuleError, match="already SUBMITTED"):
        next_state(Action.SUBMIT, SUBMITTED)


@pytest.mark.parametrize("status", [NOT_REPORTED, DECLINED, APPROVED])
def test_review_requires_submitted(status: TimeEntryStatus) -> None:
    with pytest.raises(BusinessRuleError):
        next_state(Action.APPROVE, status)
    with pytest.raises(BusinessRuleError):
        next_state(Action.DECLINE, status)


def test_approved_message_mentions_immutability() -> None:
    with pytest.raises(BusinessRuleError, match="Approved entries are immutable"):
        next_state(Action.UPDATE, APPROVED)


def test_leaving_declined_clears_the_decline_comment() -> None:
    for action in (Action.UPDATE, Action.RETAG, Action.MOVE, Action.SUBMIT):
        assert rule_for(action).clears_decline_comment
    assert not rule_for(Action.APPROVE).clears_decline_comment
    assert MUTABLE_STATES == {NOT_REPORTED, DECLINED}
