"""
Comparison Metrics & Statistics
===============================

Scalar and per-category metrics over a set of selected roles.

Formulas:
- pairwise similarity   = |A ∩ B| / |A ∪ B|        (0 when the union is empty)
- pairwise overlap      = |A ∩ B| / min(|A|, |B|)  (0 when either role is empty)
- similarity_score      = mean pairwise similarity over all C(n, 2) pairs
- overlap_coefficient   = mean pairwise overlap over all C(n, 2) pairs
- coverage_gap          = (total - shared) / total  (0 when total == 0)
- permission_density    = mean permissions per role
- variance              = mean squared deviation of per-role counts
- entropy               = -Σ p_i log2 p_i, p_i = count_i / Σ counts
- category overlap      = roles with >= 1 permission in category / roles
- category diversity    = 1 - Σ counts / (n_roles * max count)  (0 when max == 0)

Pairs are always reduced in canonical order (role ids sorted inside the pair,
pairs sorted) so floating-point sums do not depend on input order or on the
completion order of parallel workers.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import entropy as shannon_entropy

from config.config import ComparisonConfig, get_default_config
from models.comparison import (
    ComparisonMetrics,
    PermissionDifferences,
    PermissionMatrix,
    RolePairMetrics,
    StatisticalSummary,
)
from models.role import Role

logger = logging.getLogger(__name__)

SIMILARITY_LABELS = (
    (0.8, "Very Similar"),
    (0.6, "Moderately Similar"),
    (0.4, "Somewhat Similar"),
)


def _safe_ratio(numerator: float, denominator: float) -> float:
    return float(numerator) / float(denominator) if denominator else 0.0


# ============================================================================
# PAIRWISE
# ============================================================================

def jaccard_similarity(a: Iterable, b: Iterable) -> float:
    """|A ∩ B| / |A ∪ B| over two collections of permission keys."""
    set_a, set_b = set(a), set(b)
    return _safe_ratio(len(set_a & set_b), len(set_a | set_b))


def overlap_coefficient(a: Iterable, b: Iterable) -> float:
    """|A ∩ B| / min(|A|, |B|) over two collections of permission keys."""
    set_a, set_b = set(a), set(b)
    return _safe_ratio(len(set_a & set_b), min(len(set_a), len(set_b)))


def role_similarity(role_a: Role, role_b: Role) -> float:
    return jaccard_similarity(role_a.permission_set, role_b.permission_set)


def _pair_key(id_a: str, id_b: str) -> Tuple[str, str]:
    return (id_a, id_b) if id_a <= id_b else (id_b, id_a)


def _compute_pair(matrix: PermissionMatrix, id_a: str, id_b: str) -> RolePairMetrics:
    row_a = matrix.role_row(id_a)
    row_b = matrix.role_row(id_b)

    shared = int(np.count_nonzero(row_a & row_b))
    union = int(np.count_nonzero(row_a | row_b))
    smaller = min(int(np.count_nonzero(row_a)), int(np.count_nonzero(row_b)))

    return RolePairMetrics(
        role_a=id_a,
        role_b=id_b,
        shared_count=shared,
        union_count=union,
        jaccard=_safe_ratio(shared, union),
        overlap=_safe_ratio(shared, smaller),
    )


def compute_pairwise(
        roles: Sequence[Role],
        matrix: PermissionMatrix,
        config: Optional[ComparisonConfig] = None,
) -> List[RolePairMetrics]:
    """
    Compare every pair of selected roles.

    Returns:
        RolePairMetrics for all C(n, 2) pairs in canonical order.
    """
    config = config or get_default_config()

    keys = sorted(
        _pair_key(roles[i].id, roles[j].id)
        for i in range(len(roles))
        for j in range(i + 1, len(roles))
    )

    results: Dict[Tuple[str, str], RolePairMetrics] = {}
    if config.parallel_pairwise and len(keys) > 1:
        with ThreadPoolExecutor(max_workers=config.num_workers) as pool:
            futures = {key: pool.submit(_compute_pair, matrix, *key) for key in keys}
            for key, future in futures.items():
                results[key] = future.result()
    else:
        for key in keys:
            results[key] = _compute_pair(matrix, *key)

    return [results[key] for key in keys]


# ============================================================================
# COMPARISON METRICS
# ============================================================================

def calculate_comparison_metrics(
        roles: Sequence[Role],
        matrix: PermissionMatrix,
        differences: PermissionDifferences,
        pairs: Optional[List[RolePairMetrics]] = None,
        config: Optional[ComparisonConfig] = None,
) -> ComparisonMetrics:
    """Aggregate metrics for the selected roles (see module docstring for formulas)."""
    if pairs is None:
        pairs = compute_pairwise(roles, matrix, config)

    total = matrix.n_permissions
    shared = len(differences.shared)
    unique = sum(len(perms) for perms in differences.unique.values())

    permissions_by_category = {c: len(perms) for c, perms in matrix.categories.items()}

    similarity_score = _safe_ratio(sum(p.jaccard for p in pairs), len(pairs))
    overlap = _safe_ratio(sum(p.overlap for p in pairs), len(pairs))
    coverage_gap = _safe_ratio(total - shared, total)
    density = _safe_ratio(sum(r.permission_count for r in roles), len(roles))

    logger.info(
        f"Metrics: total={total} shared={shared} unique={unique} "
        f"similarity={similarity_score:.3f} coverage_gap={coverage_gap:.3f} "
        f"overlap={overlap:.3f} density={density:.2f}"
    )

    return ComparisonMetrics(
        total_permissions=total,
        shared_permissions=shared,
        unique_permissions=unique,
        permissions_by_category=permissions_by_category,
        similarity_score=similarity_score,
        coverage_gap=coverage_gap,
        overlap_coefficient=overlap,
        permission_density=density,
        role_pairs=list(pairs),
    )


# ============================================================================
# STATISTICAL SUMMARY
# ============================================================================

def build_similarity_matrix(
        roles: Sequence[Role],
        pairs: List[RolePairMetrics],
) -> Dict[str, Dict[str, float]]:
    """
    role id -> role id -> similarity. The diagonal is 1 for a role with any
    permission and 0 for an empty role, matching jaccard_similarity(A, A).
    """
    by_key = {p.key: p.jaccard for p in pairs}
    result = {}
    for a in roles:
        row = {}
        for b in roles:
            if a.id == b.id:
                row[b.id] = 1.0 if a.permission_count > 0 else 0.0
            else:
                row[b.id] = by_key[_pair_key(a.id, b.id)]
        result[a.id] = row
    return result


def permission_entropy(counts: Sequence[int]) -> float:
    """Shannon entropy (bits) of the permission-count distribution across roles."""
    ordered = np.sort(np.asarray(counts, dtype=np.float64))
    if ordered.sum() <= 0:
        return 0.0
    return float(shannon_entropy(ordered, base=2))


def calculate_statistical_summary(
        roles: Sequence[Role],
        pairs: List[RolePairMetrics],
) -> StatisticalSummary:
    # Sorted so the float reductions below are input-order independent
    counts = np.sort(np.array([r.permission_count for r in roles], dtype=np.float64))
    similarities = [p.jaccard for p in pairs]

    return StatisticalSummary(
        mean_permissions=float(np.mean(counts)),
        median_permissions=float(np.median(counts)),
        permission_variance=float(np.var(counts)),
        max_similarity=max(similarities) if similarities else 0.0,
        min_similarity=min(similarities) if similarities else 0.0,
        average_similarity=_safe_ratio(sum(similarities), len(similarities)),
        entropy_score=permission_entropy(counts),
        similarity_matrix=build_similarity_matrix(roles, pairs),
    )


# ============================================================================
# PER-CATEGORY
# ============================================================================

def calculate_category_overlap(matrix: PermissionMatrix) -> Dict[str, float]:
    counts = matrix.category_counts()
    n_roles = matrix.n_roles
    return {
        category: _safe_ratio(int((counts[category] > 0).sum()), n_roles)
        for category in counts.columns
    }


def calculate_category_diversity(matrix: PermissionMatrix) -> Dict[str, float]:
    counts = matrix.category_counts()
    n_roles = matrix.n_roles
    diversity = {}
    for category in counts.columns:
        column = counts[category]
        max_count = int(column.max()) if len(column) else 0
        if max_count > 0:
            diversity[category] = 1.0 - int(column.sum()) / (n_roles * max_count)
        else:
            diversity[category] = 0.0
    return diversity


def similarity_label(score: float) -> str:
    for floor, label in SIMILARITY_LABELS:
        if score >= floor:
            return label
    return "Very Different"
