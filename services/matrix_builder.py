# services/matrix_builder.py
import logging
import time
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix

from models.comparison import PermissionMatrix
from models.role import Permission, Role
from services.errors import PreconditionError

logger = logging.getLogger(__name__)

MIN_ROLES = 2


def validate_roles(roles: Iterable[Role], min_roles: int = MIN_ROLES) -> List[Role]:
    """
    Fail fast on inputs the analysis refuses to run on.

    Accepts any iterable of roles and returns them as a list.

    Raises PreconditionError for: a non-iterable input, fewer than min_roles
    roles, repeated role ids, a role listing the same permission triple twice.
    """
    if roles is None:
        roles = []
    try:
        roles = list(roles)
    except TypeError as e:
        raise PreconditionError(
            f"Roles must be an iterable of Role, got {type(roles).__name__}",
            reason="invalid_role",
        ) from e

    if len(roles) < min_roles:
        count = len(roles)
        raise PreconditionError(
            f"Comparison requires at least {min_roles} roles, got {count}",
            reason="too_few_roles",
        )

    seen_ids = set()
    for role in roles:
        if not isinstance(role, Role):
            raise PreconditionError(
                f"Expected Role, got {type(role).__name__}",
                reason="invalid_role",
            )
        if role.id in seen_ids:
            raise PreconditionError(
                f"Role {role.id} selected more than once",
                reason="duplicate_role",
                role_id=role.id,
            )
        seen_ids.add(role.id)

        dupes = role.duplicate_permissions()
        if dupes:
            raise PreconditionError(
                f"Role {role.id} lists duplicate permissions: {', '.join(dupes)}",
                reason="duplicate_permission",
                role_id=role.id,
            )

    return roles


def _presence_from_grants(
        roles: Sequence[Role],
        role_ids: List[str],
        perm_index: Dict[Tuple[str, str, str], int],
) -> np.ndarray:
    """Categorical codes -> sparse grants -> dense bool (role counts are small)."""
    grant_roles = [r.id for r in roles for _ in r.permissions]
    grant_perms = [perm_index[p.triple] for r in roles for p in r.permissions]
    role_cat = pd.Categorical(grant_roles, categories=role_ids)
    perm_cat = pd.Categorical(grant_perms, categories=range(len(perm_index)))

    sparse = csr_matrix(
        (np.ones(len(grant_perms), dtype=np.int8), (role_cat.codes, perm_cat.codes)),
        shape=(len(role_ids), len(perm_index)),
    )
    return sparse.toarray().astype(bool)


def build_permission_matrix(roles: Iterable[Role]) -> PermissionMatrix:
    """
    Build the role x permission presence matrix for the selected roles.

    Columns are keyed by the (resource, action, scope) triple. Union order is
    first-seen across roles (input order only changes ordering, never
    membership). When the same triple carries a description in several
    roles, the last non-empty one is kept.

    Returns:
        PermissionMatrix with a total presence map and resource categories.
    """
    _t_start = time.monotonic()
    roles = validate_roles(roles)

    # Union of triples, first-seen order, last description wins
    union: Dict[Tuple[str, str, str], Permission] = {}
    for role in roles:
        for perm in role.permissions:
            if perm.triple not in union or perm.description:
                union[perm.triple] = perm

    perm_index = {triple: j for j, triple in enumerate(union)}
    role_ids = [r.id for r in roles]

    if perm_index:
        presence = _presence_from_grants(roles, role_ids, perm_index)
    else:
        presence = np.zeros((len(role_ids), 0), dtype=bool)

    permissions = list(union.values())
    categories: Dict[str, List[Permission]] = {}
    for perm in permissions:
        categories.setdefault(perm.resource, []).append(perm)

    logger.info(
        "permission matrix built: roles=%d permissions=%d categories=%d grants=%d elapsed_ms=%.1f",
        len(role_ids),
        len(permissions),
        len(categories),
        int(presence.sum()),
        (time.monotonic() - _t_start) * 1000,
    )

    return PermissionMatrix(
        role_ids=tuple(role_ids),
        permissions=permissions,
        presence=presence,
        categories=categories,
    )
