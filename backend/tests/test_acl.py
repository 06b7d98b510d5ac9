from __future__ import annotations

import logging

import pytest

from time_reporting.acl import Acl, Permission, parse_acl_claims, parse_acl_entry, project_resource
from time_reporting.errors import AclParseError
from time_reporting.identity import principal_from_claims


def test_parse_single_entry() -> None:
    entry = parse_acl_entry("Project/INTERNAL=V,E,A")
    assert entry is not None
    assert entry.resource_path == "Project/INTERNAL"
    assert entry.permissions == frozenset({Permission.VIEW, Permission.EDIT, Permission.APPROVE})


def test_parse_entry_tolerates_whitespace_and_lowercase_letters() -> None:
    entry = parse_acl_entry("  Project/MAINT = t , e ")
    assert entry is not None
    assert entry.resource_path == "Project/MAINT"
    assert entry.permissions == frozenset({Permission.TRACK, Permission.EDIT})


@pytest.mark.parametrize(
    "raw",
    [
        "Project/INTERNAL",
        "=V,E",
        "Project/INTERNAL=",
        "Project/INTERNAL=V,X",
        "Project/INTERNAL=, ,",
    ],
)
def test_malformed_entries_are_rejected(raw: str) -> None:
    assert parse_acl_entry(raw) is None


def test_malformed_entries_are_dropped_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="time_reporting.acl"):
        acl = parse_acl_claims(["Project/INTERNAL=T", "Project/CLIENT-A=Z", "garbage"])
    assert acl.permissions_for("Project/INTERNAL") == frozenset({Permission.TRACK})
    assert acl.permissions_for("Project/CLIENT-A") == frozenset()
    assert len([r for r in caplog.records if "Dropping malformed ACL entry" in r.getMessage()]) == 2


def test_strict_mode_rejects_the_whole_claim_set() -> None:
    with pytest.raises(AclParseError):
        parse_acl_claims(["Project/INTERNAL=T", "Project/CLIENT-A=Z"], strict=True)


def test_repeated_paths_are_merged() -> None:
    acl = parse_acl_claims(["Project/INTERNAL=T", "Project/INTERNAL=A"])
    assert acl.permissions_for("Project/INTERNAL") == frozenset({Permission.TRACK, Permission.APPROVE})


def test_single_string_claim_is_accepted() -> None:
    acl = parse_acl_claims("Project/INTERNAL=M")
    assert acl.allows("Project/INTERNAL", Permission.MANAGE)


def test_missing_claim_yields_empty_acl() -> None:
    acl = parse_acl_claims(None)
    assert acl == Acl()
    assert acl.entries() == []


def test_matching_is_exact_on_resource_path() -> None:
    acl = parse_acl_claims(["Project/INTERNAL=E", "Project/*=E", "Project=E"])
    assert acl.allows(project_resource("INTERNAL"), Permission.EDIT)
    assert not acl.allows(project_resource("internal"), Permission.EDIT)
    assert not acl.allows(project_resource("CLIENT-A"), Permission.EDIT)
    assert not acl.allows("Project/INTERNAL/Sub", Permission.EDIT)


def test_acl_grants_are_read_only() -> None:
    acl = parse_acl_claims(["Project/INTERNAL=T"])
    with pytest.raises(TypeError):
        acl.grants["Project/INTERNAL"] = frozenset({Permission.MANAGE})  # type: ignore[index]


def test_principal_prefers_oid_over_sub() -> None:
    principal = principal_from_claims(
        {
            "oid": "object-id",
            "sub": "subject",
            "upn": "dev@example.com",
            "given_name": "Ada",
            "family_name": "Lovelace",
            "extn.TimeReportingACL": ["Project/INTERNAL=T,E"],
        }
    )
    assert principal is not None
    assert principal.user_id == "object-id"
    assert principal.email == "dev@example.com"
    assert principal.name == "Ada Lovelace"
    assert principal.acl.allows("Project/INTERNAL", Permission.EDIT)


def test_principal_without_user_id_is_none() -> None:
    assert principal_from_claims({"email": "nobody@example.com"}) is None


def test_principal_uses_custom_acl_claim_name() -> None:
    principal = principal_from_claims({"sub": "u1", "roles": "Project/MAINT=A"}, acl_claim="roles")
    assert principal is not None
    assert principal.acl.allows("Project/MAINT", Permission.APPROVE)


def test_principal_strict_mode_propagates_parse_error() -> None:
    with pytest.raises(AclParseError):
        principal_from_claims({"sub": "u1", "extn.TimeReportingACL": ["bad"]}, strict=True)


def test_non_list_claim_is_dropped_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="time_reporting.acl"):
        acl = parse_acl_claims(5)  # type: ignore[arg-type]
    assert acl == Acl()
    assert any("unsupported type int" in record.getMessage() for record in caplog.records)

    principal = principal_from_claims({"sub": "u1", "extn.TimeReportingACL": True})
    assert principal is not None
    assert principal.acl.entries() == []


def test_non_list_claim_is_rejected_in_strict_mode() -> None:
    with pytest.raises(AclParseError):
        parse_acl_claims({"Project/INTERNAL": "T"}, strict=True)  # type: ignore[arg-type]
