# services/analytics.py
"""
Visualization read-models derived from a comparison run.

- Venn data (2 or 3 roles only) with explicit intersection members
- Role/category network graph
- Role x category coverage heatmap
- Role distance matrix (1 - similarity)
- Category analysis with critical gap detection
"""

import logging
from itertools import combinations
from typing import Dict, List, Optional, Sequence

from config.config import ComparisonConfig, get_default_config
from models.comparison import (
    CategoryAnalysis,
    CriticalGap,
    HeatmapData,
    NetworkEdge,
    NetworkGraphData,
    NetworkNode,
    PermissionMatrix,
    RolePairMetrics,
    VennDiagramData,
    VennIntersection,
    VennSet,
)
from models.role import Role
from services.metrics import calculate_category_diversity, calculate_category_overlap

logger = logging.getLogger(__name__)

CATEGORY_NODE_PREFIX = "category_"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def role_color(role: Role, config: ComparisonConfig) -> str:
    return config.color_for(role.system_role if role.is_system_role else None)


# ============================================================================
# VENN
# ============================================================================

def build_venn_data(
        roles: Sequence[Role],
        matrix: PermissionMatrix,
        config: Optional[ComparisonConfig] = None,
) -> Optional[VennDiagramData]:
    """
    Venn sets and intersections for 2 or 3 roles; None for any other count.

    Two roles: one pairwise intersection. Three roles: the three pairwise
    intersections (in selection order) followed by the three-way intersection.
    """
    if len(roles) not in (2, 3):
        return None
    config = config or get_default_config()

    sets = [
        VennSet(id=r.id, label=r.name, size=r.permission_count, color=role_color(r, config))
        for r in roles
    ]

    groups = list(combinations(roles, 2))
    if len(roles) == 3:
        groups.append(tuple(roles))

    intersections = []
    for group in groups:
        members = matrix.presence[[matrix.role_ids.index(r.id) for r in group]].all(axis=0)
        intersections.append(VennIntersection(
            sets=tuple(r.id for r in group),
            permissions=tuple(p for p, held in zip(matrix.permissions, members) if held),
        ))

    return VennDiagramData(sets=sets, intersections=intersections)


# ============================================================================
# NETWORK GRAPH
# ============================================================================

def build_network_graph(
        roles: Sequence[Role],
        matrix: PermissionMatrix,
        pairs: List[RolePairMetrics],
        config: Optional[ComparisonConfig] = None,
) -> NetworkGraphData:
    """
    Role nodes + category nodes.

    Edges:
    - "similar" between role pairs with similarity above the edge threshold
    - "has_permission" from a role to each category it holds anything in,
      weighted by the role's share of that category
    """
    config = config or get_default_config()
    counts = matrix.category_counts()

    nodes: List[NetworkNode] = []
    edges: List[NetworkEdge] = []

    for role in roles:
        nodes.append(NetworkNode(
            id=role.id,
            label=role.name,
            type="role",
            size=_clamp(
                role.permission_count * config.role_node_size_per_permission,
                config.role_node_min_size,
                config.role_node_max_size,
            ),
            color=role_color(role, config),
            metadata={
                "permission_count": role.permission_count,
                "user_count": role.user_count,
                "is_system_role": role.is_system_role,
            },
        ))

    for category, perms in matrix.categories.items():
        nodes.append(NetworkNode(
            id=f"{CATEGORY_NODE_PREFIX}{category}",
            label=category,
            type="category",
            size=_clamp(
                len(perms) * config.category_node_size_per_permission,
                config.category_node_min_size,
                config.category_node_max_size,
            ),
            color=config.category_node_color,
            metadata={"permission_count": len(perms)},
        ))

    for pair in pairs:
        if pair.jaccard > config.similarity_edge_threshold:
            edges.append(NetworkEdge(
                source=pair.role_a,
                target=pair.role_b,
                weight=pair.jaccard,
                type="similar",
                metadata={"similarity": pair.jaccard, "shared_count": pair.shared_count},
            ))

    for role in roles:
        for category, perms in matrix.categories.items():
            held = int(counts.at[role.id, category])
            if held > 0:
                edges.append(NetworkEdge(
                    source=role.id,
                    target=f"{CATEGORY_NODE_PREFIX}{category}",
                    weight=held / len(perms),
                    type="has_permission",
                    metadata={"permission_count": held, "total_in_category": len(perms)},
                ))

    logger.debug(f"Network graph: {len(nodes)} nodes, {len(edges)} edges")
    return NetworkGraphData(nodes=nodes, edges=edges)


# ============================================================================
# HEATMAP / DISTANCE
# ============================================================================

def build_heatmap(roles: Sequence[Role], matrix: PermissionMatrix) -> HeatmapData:
    """Rows = role names, columns = categories, cell = share of the category the role holds."""
    counts = matrix.category_counts()
    columns = list(matrix.categories.keys())
    totals = {c: len(matrix.categories[c]) for c in columns}

    values = [
        [
            (int(counts.at[role.id, c]) / totals[c]) if totals[c] > 0 else 0.0
            for c in columns
        ]
        for role in roles
    ]
    flat = [v for row in values for v in row]

    return HeatmapData(
        rows=[r.name for r in roles],
        columns=columns,
        values=values,
        max_value=max(flat) if flat else 0.0,
        min_value=min(flat) if flat else 0.0,
    )


def build_distance_matrix(roles: Sequence[Role], pairs: List[RolePairMetrics]) -> List[List[float]]:
    by_key: Dict = {p.key: p.jaccard for p in pairs}
    return [
        [
            0.0 if a.id == b.id else 1.0 - by_key[tuple(sorted((a.id, b.id)))]
            for b in roles
        ]
        for a in roles
    ]


# ============================================================================
# CATEGORY ANALYSIS
# ============================================================================

def gap_impact(category: str, missing_count: int, total_count: int, config: ComparisonConfig) -> str:
    missing_share = missing_count / total_count if total_count else 0.0
    critical = config.is_critical_category(category)

    if critical and missing_share > config.gap_high_threshold:
        return "high"
    if critical or missing_share > config.gap_majority_threshold:
        return "medium"
    return "low"


def detect_critical_gaps(
        roles: Sequence[Role],
        matrix: PermissionMatrix,
        config: Optional[ComparisonConfig] = None,
) -> List[CriticalGap]:
    """Business-critical categories that at least one selected role has nothing in."""
    config = config or get_default_config()
    counts = matrix.category_counts()

    gaps = []
    for category in matrix.categories:
        if not config.is_critical_category(category):
            continue
        missing = [r.id for r in roles if int(counts.at[r.id, category]) == 0]
        if missing:
            gaps.append(CriticalGap(
                category=category,
                missing_roles=tuple(missing),
                impact=gap_impact(category, len(missing), len(roles), config),
            ))

    if gaps:
        logger.info(
            "Critical gaps: %s",
            ", ".join(f"{g.category}({g.impact})" for g in gaps),
        )
    return gaps


def calculate_category_analysis(
        roles: Sequence[Role],
        matrix: PermissionMatrix,
        config: Optional[ComparisonConfig] = None,
) -> CategoryAnalysis:
    return CategoryAnalysis(
        category_overlap=calculate_category_overlap(matrix),
        category_diversity=calculate_category_diversity(matrix),
        critical_gaps=detect_critical_gaps(roles, matrix, config),
    )
