# services/comparison.py
"""
Role Comparison - single entry point
====================================

Runs the full analysis for a selected set of roles:

1. Validate input (>= 2 roles, unique ids, no duplicate permissions)
2. Build role x permission presence matrix
3. Classify shared / unique / missing permissions (+ scope conflicts)
4. Pairwise similarity and aggregate metrics
5. Statistical summary and category analysis
6. Visualization read-models (Venn, network, heatmap, distance matrix)
7. Suggestions

Every step is a pure function of the previous outputs; nothing is cached
between calls.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from config.config import ComparisonConfig, get_default_config
from models.comparison import RoleComparison
from models.role import Role
from services.analytics import (
    build_distance_matrix,
    build_heatmap,
    build_network_graph,
    build_venn_data,
    calculate_category_analysis,
)
from services.differences import calculate_permission_differences
from services.errors import AnalysisError, ComparisonError, PreconditionError
from services.matrix_builder import build_permission_matrix, validate_roles
from services.metrics import (
    calculate_comparison_metrics,
    calculate_statistical_summary,
    compute_pairwise,
)
from services.suggestions import generate_suggestions

logger = logging.getLogger(__name__)


def build_comparison(
        roles: Iterable[Role],
        config: Optional[ComparisonConfig] = None,
) -> RoleComparison:
    """
    Compare the selected roles.

    Args:
        roles: 2+ roles, any iterable (order only affects presentation ordering)
        config: Optional ComparisonConfig; defaults when omitted

    Returns:
        RoleComparison bundling matrix, differences, metrics, analytics and
        suggestions, stamped with a UTC timestamp.

    Raises:
        PreconditionError: invalid config, too few roles, repeated role ids,
            duplicate permissions within a role
        AnalysisError: any other failure while computing; wraps the cause
    """
    config = config or get_default_config()

    errors = config.validate()
    if errors:
        raise PreconditionError(
            f"Invalid comparison configuration: {'; '.join(errors)}",
            reason="invalid_config",
        )

    _t_start = time.monotonic()

    try:
        roles = validate_roles(roles, min_roles=config.min_roles)
        logger.info(f"Starting role comparison: {len(roles)} roles {[r.id for r in roles]}")

        logger.info("Step 1: Building permission matrix")
        matrix = build_permission_matrix(roles)

        logger.info("Step 2: Calculating permission differences")
        differences = calculate_permission_differences(roles, matrix)

        logger.info("Step 3: Computing pairwise similarity and metrics")
        pairs = compute_pairwise(roles, matrix, config)
        metrics = calculate_comparison_metrics(roles, matrix, differences, pairs, config)

        logger.info("Step 4: Statistical summary and category analysis")
        summary = calculate_statistical_summary(roles, pairs)
        category_analysis = calculate_category_analysis(roles, matrix, config)

        logger.info("Step 5: Building visualization data")
        venn = build_venn_data(roles, matrix, config)
        network = build_network_graph(roles, matrix, pairs, config)
        heatmap = build_heatmap(roles, matrix)
        distances = build_distance_matrix(roles, pairs)

        logger.info("Step 6: Generating suggestions")
        suggestions = generate_suggestions(roles, differences, metrics, config)

    except ComparisonError:
        raise
    except Exception as e:
        logger.exception("Role comparison failed")
        raise AnalysisError(f"Role comparison failed: {e}", cause=e) from e

    elapsed_ms = (time.monotonic() - _t_start) * 1000
    if config.enable_performance_logging:
        logger.info(
            "role comparison complete: roles=%d permissions=%d suggestions=%d elapsed_ms=%.1f",
            len(roles),
            metrics.total_permissions,
            len(suggestions),
            elapsed_ms,
        )

    return RoleComparison(
        roles=roles,
        permission_matrix=matrix,
        differences=differences,
        metrics=metrics,
        statistical_summary=summary,
        category_analysis=category_analysis,
        venn_diagram=venn,
        network_graph=network,
        heatmap=heatmap,
        role_distance_matrix=distances,
        suggestions=suggestions,
        timestamp=datetime.now(timezone.utc),
        analysis_time_ms=round(elapsed_ms, 3),
    )
