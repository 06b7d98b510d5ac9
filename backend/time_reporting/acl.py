"""ACL claim parsing.

Identity tokens carry grants as flat strings such as
``"Project/INTERNAL=V,E,A"``. They are parsed exactly once per request into an
immutable :class:`Acl`; nothing deeper in the call stack looks at the raw
strings again.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Set, Union

from .errors import AclParseError

logger = logging.getLogger(__name__)

PROJECT_RESOURCE_PREFIX = "Project/"


class Permission(str, enum.Enum):
    VIEW = "V"
    EDIT = "E"
    TRACK = "T"
    APPROVE = "A"
    MANAGE = "M"

    @property
    def label(self) -> str:
        return self.name.capitalize()


def project_resource(project_code: str) -> str:
    return f"{PROJECT_RESOURCE_PREFIX}{project_code}"


@dataclass(frozen=True)
class AclEntry:
    resource_path: str
    permissions: FrozenSet[Permission]


@dataclass(frozen=True)
class Acl:
    """Resource path to granted permissions, matched by exact path equality."""

    grants: Mapping[str, FrozenSet[Permission]] = field(default_factory=lambda: MappingProxyType({}))

    def permissions_for(self, resource_path: str) -> FrozenSet[Permission]:
        return self.grants.get(resource_path, frozenset())

    def allows(self, resource_path: str, permission: Permission) -> bool:
        return permission in self.permissions_for(resource_path)

    def entries(self) -> List[AclEntry]:
        return [AclEntry(path, perms) for path, perms in sorted(self.grants.items())]


def parse_acl_entry(raw: str) -> Optional[AclEntry]:
    """Parse one ``Path=P1,P2`` string, returning ``None`` when it is malformed."""
    if not isinstance(raw, str) or "=" not in raw:
        return None
    path, _, letters = raw.partition("=")
    path = path.strip()
    if not path:
        return None
    permissions: Set[Permission] = set()
    for letter in letters.split(","):
        letter = letter.strip().upper()
        if not letter:
            continue
        try:
            permissions.add(Permission(letter))
        except ValueError:
            return None
    if not permissions:
        return None
    return AclEntry(path, frozenset(permissions))


def parse_acl_claims(claims: Union[str, Sequence[str], None], *, strict: bool = False) -> Acl:
    """Build an :class:`Acl` from raw claim strings.

    Malformed entries are dropped so one bad grant does not break unrelated
    resources. With ``strict`` the whole claim set is rejected instead.
    Repeated paths are merged.
    """
    if claims is None:
        return Acl()
    if isinstance(claims, str):
        claims = [claims]
    elif not isinstance(claims, (list, tuple)):
        if strict:
            raise AclParseError(f"Malformed ACL claim: {claims!r}")
        logger.warning("Ignoring ACL claim of unsupported type %s", type(claims).__name__)
        return Acl()
    merged: Dict[str, Set[Permission]] = {}
    for raw in claims:
        entry = parse_acl_entry(raw)
        if entry is None:
            if strict:
                raise AclParseError(f"Malformed ACL entry: {raw!r}")
            logger.warning("Dropping malformed ACL entry %r", raw)
            continue
        merged.setdefault(entry.resource_path, set()).update(entry.permissions)
    return Acl(MappingProxyType({path: frozenset(perms) for path, perms in merged.items()}))
