# services/differences.py
import logging
from typing import Dict, List, Sequence, Tuple

from models.comparison import PermissionConflict, PermissionDifferences, PermissionMatrix
from models.role import Permission, Role

logger = logging.getLogger(__name__)


def calculate_permission_differences(
        roles: Sequence[Role],
        matrix: PermissionMatrix,
) -> PermissionDifferences:
    """
    Classify every permission in the union.

    - shared: held by all selected roles
    - unique[r]: held by r and nobody else
    - missing[r]: held by at least one other role but not by r

    A permission held by all but one role lands in that role's missing list and
    in no unique list. Conflicts are reported separately and do not affect the
    three classifications.
    """
    n_roles = len(roles)
    shared: List[Permission] = []
    unique: Dict[str, List[Permission]] = {r.id: [] for r in roles}
    missing: Dict[str, List[Permission]] = {r.id: [] for r in roles}

    for j, permission in enumerate(matrix.permissions):
        held = matrix.presence[:, j]
        holder_count = int(held.sum())

        if holder_count == n_roles:
            shared.append(permission)
            continue

        if holder_count == 1:
            owner = matrix.role_ids[int(held.argmax())]
            unique[owner].append(permission)

        for role_id, has_it in zip(matrix.role_ids, held):
            if not has_it:
                missing[role_id].append(permission)

    conflicts = detect_scope_conflicts(roles)

    logger.info(
        f"Differences: {len(shared)} shared, "
        f"{sum(len(v) for v in unique.values())} unique, "
        f"{sum(len(v) for v in missing.values())} missing slots, "
        f"{len(conflicts)} conflicts"
    )

    return PermissionDifferences(shared=shared, unique=unique, missing=missing, conflicts=conflicts)


def detect_scope_conflicts(roles: Sequence[Role]) -> List[PermissionConflict]:
    """
    Find resource+action pairs that different roles grant under different scopes.

    Only pairs held by at least two roles whose scope sets differ are reported.
    Output is sorted by (resource, action).
    """
    grants: Dict[Tuple[str, str], Dict[str, set]] = {}
    for role in roles:
        for perm in role.permissions:
            by_role = grants.setdefault((perm.resource, perm.action), {})
            by_role.setdefault(role.id, set()).add(perm.scope)

    conflicts = []
    for (resource, action), by_role in sorted(grants.items()):
        if len(by_role) < 2:
            continue
        distinct = {frozenset(scopes) for scopes in by_role.values()}
        if len(distinct) < 2:
            continue
        conflicts.append(PermissionConflict(
            resource=resource,
            action=action,
            conflict_type="scope_mismatch",
            role_scopes={rid: tuple(sorted(scopes)) for rid, scopes in by_role.items()},
        ))

    return conflicts
