from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .acl import Acl, parse_acl_claims
from .config import settings


@dataclass(frozen=True)
class Principal:
    """Caller identity for a single request."""

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    acl: Acl = field(default_factory=Acl)


def _first_claim(claims: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = claims.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _display_name(claims: Mapping[str, Any]) -> Optional[str]:
    name = _first_claim(claims, "name", "preferred_username")
    if name:
        return name
    parts = [part for part in (_first_claim(claims, "given_name"), _first_claim(claims, "family_name")) if part]
    return " ".join(parts) or None


def principal_from_claims(
    claims: Mapping[str, Any],
    *,
    acl_claim: Optional[str] = None,
    strict: Optional[bool] = None,
) -> Optional[Principal]:
    """Build a principal from decoded token claims.

    Returns ``None`` when the claims carry no user identifier (``oid`` is
    preferred over ``sub``). The ACL claim may hold a single string or a list.
    """
    user_id = _first_claim(claims, "oid", "sub")
    if user_id is None:
        return None
    acl = parse_acl_claims(
        claims.get(acl_claim or settings.acl_claim),
        strict=settings.acl_strict if strict is None else strict,
    )
    return Principal(
        user_id=user_id,
        email=_first_claim(claims, "email", "upn"),
        name=_display_name(claims),
        acl=acl,
    )
