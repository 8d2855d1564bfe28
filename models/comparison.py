"""
Derived read-models produced by one comparison run.

Nothing here is persisted or mutated after construction. Every model has a
to_dict() that yields plain JSON-serializable data for the export layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from models.role import Permission, Role


def _perm_list(permissions: List[Permission]) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in permissions]


# ============================================================================
# PERMISSION MATRIX
# ============================================================================

@dataclass(eq=False)
class PermissionMatrix:
    """
    Dense role x permission presence matrix over the union of selected roles.

    presence[i, j] is True when role_ids[i] holds permissions[j]. The matrix is
    total: every role has a cell for every permission in the union.
    """

    role_ids: Tuple[str, ...]
    permissions: List[Permission]
    presence: np.ndarray
    categories: Dict[str, List[Permission]]
    _role_index: Dict[str, int] = field(init=False, repr=False)
    _perm_index: Dict[Tuple[str, str, str], int] = field(init=False, repr=False)

    def __post_init__(self):
        self._role_index = {rid: i for i, rid in enumerate(self.role_ids)}
        self._perm_index = {p.triple: j for j, p in enumerate(self.permissions)}

    @property
    def n_roles(self) -> int:
        return len(self.role_ids)

    @property
    def n_permissions(self) -> int:
        return len(self.permissions)

    def role_row(self, role_id: str) -> np.ndarray:
        return self.presence[self._role_index[role_id]]

    def column(self, permission: Permission) -> np.ndarray:
        return self.presence[:, self._perm_index[permission.triple]]

    def has(self, role_id: str, permission: Permission) -> bool:
        return bool(self.presence[self._role_index[role_id], self._perm_index[permission.triple]])

    def holders(self, permission: Permission) -> List[str]:
        col = self.column(permission)
        return [rid for rid, held in zip(self.role_ids, col) if held]

    def role_sizes(self) -> Dict[str, int]:
        counts = self.presence.sum(axis=1)
        return {rid: int(c) for rid, c in zip(self.role_ids, counts)}

    def category_counts(self) -> pd.DataFrame:
        """Per-role permission counts for each category (rows=role ids, cols=categories)."""
        data = {}
        for category, perms in self.categories.items():
            cols = [self._perm_index[p.triple] for p in perms]
            data[category] = self.presence[:, cols].sum(axis=1).astype(int)
        return pd.DataFrame(data, index=list(self.role_ids), columns=list(self.categories))

    def role_permission_map(self) -> Dict[str, Dict[str, bool]]:
        return {
            rid: {p.key: bool(self.presence[i, j]) for j, p in enumerate(self.permissions)}
            for i, rid in enumerate(self.role_ids)
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permissions": _perm_list(self.permissions),
            "role_permission_map": self.role_permission_map(),
            "categories": {c: _perm_list(perms) for c, perms in self.categories.items()},
        }


# ============================================================================
# DIFFERENCES
# ============================================================================

@dataclass(frozen=True)
class PermissionConflict:
    """Same resource+action granted under different scopes by different roles."""

    resource: str
    action: str
    conflict_type: str
    role_scopes: Dict[str, Tuple[str, ...]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": self.resource,
            "action": self.action,
            "conflict_type": self.conflict_type,
            "role_scopes": {rid: list(scopes) for rid, scopes in self.role_scopes.items()},
        }


@dataclass
class PermissionDifferences:
    shared: List[Permission]
    unique: Dict[str, List[Permission]]
    missing: Dict[str, List[Permission]]
    conflicts: List[PermissionConflict] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shared": _perm_list(self.shared),
            "unique": {rid: _perm_list(p) for rid, p in self.unique.items()},
            "missing": {rid: _perm_list(p) for rid, p in self.missing.items()},
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


# ============================================================================
# METRICS
# ============================================================================

@dataclass(frozen=True)
class RolePairMetrics:
    """Pairwise comparison of two roles. role_a < role_b lexicographically."""

    role_a: str
    role_b: str
    shared_count: int
    union_count: int
    jaccard: float
    overlap: float

    @property
    def key(self) -> Tuple[str, str]:
        return (self.role_a, self.role_b)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role_a": self.role_a,
            "role_b": self.role_b,
            "shared_count": self.shared_count,
            "union_count": self.union_count,
            "jaccard": self.jaccard,
            "overlap": self.overlap,
        }


@dataclass
class ComparisonMetrics:
    total_permissions: int
    shared_permissions: int
    unique_permissions: int
    permissions_by_category: Dict[str, int]
    similarity_score: float
    coverage_gap: float
    overlap_coefficient: float
    permission_density: float
    role_pairs: List[RolePairMetrics] = field(default_factory=list)

    def pair(self, role_a: str, role_b: str) -> RolePairMetrics:
        key = tuple(sorted((role_a, role_b)))
        for p in self.role_pairs:
            if p.key == key:
                return p
        raise KeyError(f"No pair metrics for {role_a}/{role_b}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_permissions": self.total_permissions,
            "shared_permissions": self.shared_permissions,
            "unique_permissions": self.unique_permissions,
            "permissions_by_category": dict(self.permissions_by_category),
            "similarity_score": self.similarity_score,
            "coverage_gap": self.coverage_gap,
            "overlap_coefficient": self.overlap_coefficient,
            "permission_density": self.permission_density,
            "role_pairs": [p.to_dict() for p in self.role_pairs],
        }


@dataclass
class StatisticalSummary:
    mean_permissions: float
    median_permissions: float
    permission_variance: float
    max_similarity: float
    min_similarity: float
    average_similarity: float
    entropy_score: float
    similarity_matrix: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean_permissions": self.mean_permissions,
            "median_permissions": self.median_permissions,
            "permission_variance": self.permission_variance,
            "max_similarity": self.max_similarity,
            "min_similarity": self.min_similarity,
            "average_similarity": self.average_similarity,
            "entropy_score": self.entropy_score,
            "similarity_matrix": {k: dict(v) for k, v in self.similarity_matrix.items()},
        }


@dataclass(frozen=True)
class CriticalGap:
    category: str
    missing_roles: Tuple[str, ...]
    impact: str

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "missing_roles": list(self.missing_roles), "impact": self.impact}


@dataclass
class CategoryAnalysis:
    category_overlap: Dict[str, float]
    category_diversity: Dict[str, float]
    critical_gaps: List[CriticalGap]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category_overlap": dict(self.category_overlap),
            "category_diversity": dict(self.category_diversity),
            "critical_gaps": [g.to_dict() for g in self.critical_gaps],
        }


# ============================================================================
# VISUALIZATION READ-MODELS
# ============================================================================

@dataclass(frozen=True)
class VennSet:
    id: str
    label: str
    size: int
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "size": self.size, "color": self.color}


@dataclass(frozen=True)
class VennIntersection:
    sets: Tuple[str, ...]
    permissions: Tuple[Permission, ...]

    @property
    def size(self) -> int:
        return len(self.permissions)

    def to_dict(self) -> Dict[str, Any]:
        return {"sets": list(self.sets), "size": self.size, "permissions": _perm_list(list(self.permissions))}


@dataclass
class VennDiagramData:
    sets: List[VennSet]
    intersections: List[VennIntersection]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sets": [s.to_dict() for s in self.sets],
            "intersections": [i.to_dict() for i in self.intersections],
        }


@dataclass
class NetworkNode:
    id: str
    label: str
    type: str  # "role" | "category"
    size: float
    color: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "size": self.size,
            "color": self.color,
            "metadata": dict(self.metadata),
        }


@dataclass
class NetworkEdge:
    source: str
    target: str
    weight: float
    type: str  # "similar" | "has_permission"
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "weight": self.weight,
            "type": self.type,
            "metadata": dict(self.metadata),
        }


@dataclass
class NetworkGraphData:
    nodes: List[NetworkNode]
    edges: List[NetworkEdge]

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": [n.to_dict() for n in self.nodes], "edges": [e.to_dict() for e in self.edges]}


@dataclass
class HeatmapData:
    rows: List[str]
    columns: List[str]
    values: List[List[float]]
    max_value: float
    min_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": list(self.rows),
            "columns": list(self.columns),
            "values": [list(r) for r in self.values],
            "metadata": {"max_value": self.max_value, "min_value": self.min_value},
        }


# ============================================================================
# SUGGESTIONS
# ============================================================================

SUGGESTION_TYPES = ("consolidation", "gap", "optimization", "hierarchy", "migration")
LEVELS = ("low", "medium", "high")


@dataclass(frozen=True)
class Suggestion:
    type: str
    title: str
    description: str
    impact: str
    effort: str
    affected_roles: Tuple[str, ...]
    action_items: Tuple[str, ...]
    priority: int

    def __post_init__(self):
        if self.type not in SUGGESTION_TYPES:
            raise ValueError(f"Unknown suggestion type {self.type!r}; expected one of {SUGGESTION_TYPES}")
        for name in ("impact", "effort"):
            value = getattr(self, name)
            if value not in LEVELS:
                raise ValueError(f"Suggestion {name} must be one of {LEVELS}, got {value!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "effort": self.effort,
            "affected_roles": list(self.affected_roles),
            "action_items": list(self.action_items),
            "priority": self.priority,
        }


# ============================================================================
# BUNDLE
# ============================================================================

@dataclass
class RoleComparison:
    roles: List[Role]
    permission_matrix: PermissionMatrix
    differences: PermissionDifferences
    metrics: ComparisonMetrics
    statistical_summary: StatisticalSummary
    category_analysis: CategoryAnalysis
    venn_diagram: Optional[VennDiagramData]
    network_graph: NetworkGraphData
    heatmap: HeatmapData
    role_distance_matrix: List[List[float]]
    suggestions: List[Suggestion]
    timestamp: datetime
    analysis_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roles": [r.to_dict() for r in self.roles],
            "permission_matrix": self.permission_matrix.to_dict(),
            "differences": self.differences.to_dict(),
            "metrics": self.metrics.to_dict(),
            "statistical_summary": self.statistical_summary.to_dict(),
            "category_analysis": self.category_analysis.to_dict(),
            "venn_diagram": self.venn_diagram.to_dict() if self.venn_diagram else None,
            "network_graph": self.network_graph.to_dict(),
            "heatmap": self.heatmap.to_dict(),
            "role_distance_matrix": [list(r) for r in self.role_distance_matrix],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "timestamp": self.timestamp.isoformat(),
            "analysis_time_ms": self.analysis_time_ms,
        }
