from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from services.errors import PreconditionError

logger = logging.getLogger(__name__)

# Grant rows accepted by roles_from_frame()
FRAME_REQUIRED_COLUMNS = ("role_id", "role_name", "resource", "action", "scope")


@dataclass(frozen=True)
class Permission:
    """
    Atomic access grant. Identity is the (resource, action, scope) triple;
    description is informational and ignored by == and hash().
    """

    resource: str
    action: str
    scope: str
    description: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        for name in ("resource", "action", "scope"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Permission {name} must be a non-empty string, got {value!r}")

    @property
    def key(self) -> str:
        return f"{self.resource}.{self.action}.{self.scope}"

    @property
    def triple(self) -> Tuple[str, str, str]:
        return (self.resource, self.action, self.scope)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": self.resource,
            "action": self.action,
            "scope": self.scope,
            "description": self.description,
            "key": self.key,
        }


@dataclass(frozen=True)
class Role:
    """A named bundle of permissions, as selected for comparison."""

    id: str
    name: str
    permissions: Tuple[Permission, ...] = ()
    description: Optional[str] = None
    is_system_role: bool = False
    system_role: Optional[str] = None
    user_count: int = 0

    def __post_init__(self):
        # Accept any iterable from callers but store an immutable tuple
        if not isinstance(self.permissions, tuple):
            object.__setattr__(self, "permissions", tuple(self.permissions))

    @property
    def permission_count(self) -> int:
        return len(self.permissions)

    @property
    def permission_set(self) -> frozenset:
        """Distinct (resource, action, scope) triples held by this role."""
        return frozenset(p.triple for p in self.permissions)

    @property
    def permission_keys(self) -> set:
        """Display keys only; two triples can render to the same key."""
        return {p.key for p in self.permissions}

    def duplicate_permissions(self) -> List[str]:
        """Display keys of triples that appear more than once in this role's permission list."""
        seen = set()
        dupes = []
        for perm in self.permissions:
            if perm.triple in seen and perm.key not in dupes:
                dupes.append(perm.key)
            seen.add(perm.triple)
        return dupes

    def permissions_in(self, category: str) -> List[Permission]:
        return [p for p in self.permissions if p.resource == category]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_system_role": self.is_system_role,
            "system_role": self.system_role,
            "user_count": self.user_count,
            "permissions": [p.to_dict() for p in self.permissions],
        }


# ============================================================================
# INGESTION
# ============================================================================

def _pick(data: Dict[str, Any], *names, default=None):
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return default


def permission_from_dict(data: Dict[str, Any]) -> Permission:
    """Build a Permission from a source record. Shape errors raise PreconditionError."""
    if not isinstance(data, dict):
        raise PreconditionError(
            f"Permission record must be a mapping, got {type(data).__name__}",
            reason="invalid_role",
        )

    missing = [k for k in ("resource", "action", "scope") if not data.get(k)]
    if missing:
        raise PreconditionError(
            f"Permission record missing {', '.join(missing)}: {data!r}",
            reason="invalid_role",
        )

    try:
        return Permission(
            resource=data["resource"],
            action=data["action"],
            scope=data["scope"],
            description=data.get("description") or None,
        )
    except ValueError as e:
        raise PreconditionError(str(e), reason="invalid_role") from e


def role_from_dict(data: Dict[str, Any]) -> Role:
    """
    Build a Role from a role record as served by the host API.

    Accepts camelCase (isSystemRole, systemRole, userCount) and snake_case keys.
    A role listing the same permission triple twice is rejected.
    """
    if not isinstance(data, dict):
        raise PreconditionError(
            f"Role record must be a mapping, got {type(data).__name__}",
            reason="invalid_role",
        )

    role_id = data.get("id")
    name = data.get("name")
    if not role_id or not name:
        raise PreconditionError(f"Role record requires id and name: {data!r}", reason="invalid_role")

    raw_permissions = data.get("permissions") or []
    if not isinstance(raw_permissions, (list, tuple)):
        raise PreconditionError(
            f"Role {role_id} permissions must be a list",
            reason="invalid_role",
            role_id=str(role_id),
        )

    is_system = bool(_pick(data, "isSystemRole", "is_system_role", default=False))

    raw_user_count = _pick(data, "userCount", "user_count", default=0)
    try:
        user_count = int(raw_user_count)
    except (TypeError, ValueError) as e:
        raise PreconditionError(
            f"Role {role_id} userCount must be an integer, got {raw_user_count!r}",
            reason="invalid_role",
            role_id=str(role_id),
        ) from e

    role = Role(
        id=str(role_id),
        name=str(name),
        permissions=tuple(permission_from_dict(p) for p in raw_permissions),
        description=data.get("description"),
        is_system_role=is_system,
        system_role=_pick(data, "systemRole", "system_role") if is_system else None,
        user_count=user_count,
    )

    dupes = role.duplicate_permissions()
    if dupes:
        raise PreconditionError(
            f"Role {role.id} lists duplicate permissions: {', '.join(dupes)}",
            reason="duplicate_permission",
            role_id=role.id,
        )
    return role


def roles_from_records(records: Iterable[Dict[str, Any]]) -> List[Role]:
    return [role_from_dict(r) for r in records]


def roles_from_frame(frame: pd.DataFrame) -> List[Role]:
    """
    Build roles from a grant table, one row per (role, permission).

    Columns: role_id, role_name, resource, action, scope [, description].
    Whitespace is stripped from column names and ID values. Rows with a null or
    empty ID and repeated (role_id, resource, action, scope) rows are rejected.
    Role order follows first appearance in the frame.
    """
    df = frame.copy()
    df.columns = df.columns.str.strip()

    missing_cols = [c for c in FRAME_REQUIRED_COLUMNS if c not in df.columns]
    if missing_cols:
        raise PreconditionError(
            f"Grant table missing columns: {', '.join(missing_cols)}",
            reason="invalid_role",
        )

    for col in FRAME_REQUIRED_COLUMNS:
        df[col] = df[col].astype("string").str.strip().replace("", pd.NA)

    bad_rows = df[df[list(FRAME_REQUIRED_COLUMNS)].isna().any(axis=1)]
    if not bad_rows.empty:
        raise PreconditionError(
            f"Grant table has {len(bad_rows)} rows with null/empty IDs "
            f"(first at index {bad_rows.index[0]})",
            reason="invalid_role",
        )

    key_cols = ["role_id", "resource", "action", "scope"]
    dupes = df[df.duplicated(subset=key_cols, keep="first")]
    if not dupes.empty:
        first = dupes.iloc[0]
        raise PreconditionError(
            f"Role {first['role_id']} lists duplicate permission "
            f"{first['resource']}.{first['action']}.{first['scope']} "
            f"({len(dupes)} duplicate rows)",
            reason="duplicate_permission",
            role_id=str(first["role_id"]),
        )

    has_description = "description" in df.columns
    roles = []
    for role_id, rows in df.groupby("role_id", sort=False):
        permissions = []
        for row in rows.itertuples(index=False):
            description = getattr(row, "description", None) if has_description else None
            if description is not None and pd.isna(description):
                description = None
            permissions.append(Permission(
                resource=str(row.resource),
                action=str(row.action),
                scope=str(row.scope),
                description=str(description) if description else None,
            ))
        roles.append(Role(
            id=str(role_id),
            name=str(rows["role_name"].iloc[0]),
            permissions=tuple(permissions),
        ))

    logger.info(
        "roles_from_frame: %d grant rows, %d roles",
        len(df),
        len(roles),
    )
    return roles
