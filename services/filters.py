# services/filters.py
"""
Role selection and permission filtering around a comparison.

Selection resolves caller-supplied role ids against the roles the role source
returned; filtering narrows permission lists for matrix and diff views.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from models.comparison import PermissionMatrix
from models.role import Permission, Role
from services.errors import PreconditionError

logger = logging.getLogger(__name__)


def select_roles(
        available: Sequence[Role],
        role_ids: Iterable[str],
        max_roles: int = 4,
) -> List[Role]:
    """
    Resolve role ids to roles, keeping the requested order.

    Repeated ids are ignored. Unknown ids and selections larger than max_roles
    raise PreconditionError.
    """
    by_id = {r.id: r for r in available}

    selected: List[Role] = []
    seen = set()
    for role_id in role_ids:
        if role_id in seen:
            continue
        if role_id not in by_id:
            raise PreconditionError(
                f"Unknown role id: {role_id}",
                reason="unknown_role",
                role_id=role_id,
            )
        seen.add(role_id)
        selected.append(by_id[role_id])

    if len(selected) > max_roles:
        raise PreconditionError(
            f"At most {max_roles} roles can be compared, got {len(selected)}",
            reason="too_many_roles",
        )

    logger.debug("select_roles: %s", [r.id for r in selected])
    return selected


def filter_permissions(
        permissions: Iterable[Permission],
        search_term: Optional[str] = None,
        category: Optional[str] = None,
) -> List[Permission]:
    """
    Case-insensitive substring search over resource, action, scope and
    description; category must match the resource exactly.
    """
    needle = (search_term or "").strip().lower()
    result = []
    for perm in permissions:
        if category and perm.resource != category:
            continue
        if needle:
            haystack = " ".join([perm.resource, perm.action, perm.scope, perm.description or ""]).lower()
            if needle not in haystack:
                continue
        result.append(perm)
    return result


def differing_permissions(matrix: PermissionMatrix) -> List[Permission]:
    """Permissions held by some, but not all, of the compared roles."""
    holder_counts = matrix.presence.sum(axis=0)
    return [
        perm for perm, count in zip(matrix.permissions, holder_counts)
        if 0 < int(count) < matrix.n_roles
    ]


def group_by_category(permissions: Iterable[Permission]) -> Dict[str, List[Permission]]:
    groups: Dict[str, List[Permission]] = {}
    for perm in permissions:
        groups.setdefault(perm.resource, []).append(perm)
    return groups
