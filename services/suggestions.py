# services/suggestions.py
import logging
from typing import List, Optional, Sequence

from config.config import ComparisonConfig, get_default_config
from models.comparison import ComparisonMetrics, PermissionDifferences, Suggestion
from models.role import Role

logger = logging.getLogger(__name__)

CONSOLIDATION_ACTIONS = (
    "Review business requirements for separate roles",
    "Identify any unique use cases",
    "Plan migration strategy for affected users",
)

GAP_ACTIONS = (
    "Review permission gaps for each role",
    "Validate business requirements",
    "Update role permissions as needed",
)

DIFFERENTIATED_ACTIONS = (
    "Document role differences clearly",
    "Ensure role names reflect their purpose",
    "Regular review to maintain differentiation",
)


def generate_suggestions(
        roles: Sequence[Role],
        differences: PermissionDifferences,
        metrics: ComparisonMetrics,
        config: Optional[ComparisonConfig] = None,
) -> List[Suggestion]:
    """
    Turn comparison metrics into ranked recommendations.

    Triggers:
    - similarity > consolidation_threshold   -> consolidation (priority 3)
    - coverage gap > coverage_gap_threshold  -> gap (priority 1)
    - similarity < differentiation_threshold -> optimization (priority 5)

    Returns:
        Suggestions sorted by ascending priority (most urgent first).
    """
    config = config or get_default_config()
    affected = tuple(r.id for r in roles)
    suggestions = []

    if metrics.similarity_score > config.consolidation_threshold:
        suggestions.append(Suggestion(
            type="consolidation",
            title="Consider Role Consolidation",
            description="These roles have very similar permissions and could potentially be consolidated.",
            impact="medium",
            effort="medium",
            affected_roles=affected,
            action_items=CONSOLIDATION_ACTIONS,
            priority=3,
        ))

    if metrics.coverage_gap > config.coverage_gap_threshold:
        suggestions.append(Suggestion(
            type="gap",
            title="Significant Permission Gaps",
            description=(
                "Large differences in permissions between roles may indicate "
                "missing access or over-privileged roles."
            ),
            impact="high",
            effort="low",
            affected_roles=affected,
            action_items=GAP_ACTIONS,
            priority=1,
        ))

    if metrics.similarity_score < config.differentiation_threshold:
        suggestions.append(Suggestion(
            type="optimization",
            title="Roles Are Well Differentiated",
            description="These roles have distinct permission sets, which is good for security and clarity.",
            impact="low",
            effort="low",
            affected_roles=affected,
            action_items=DIFFERENTIATED_ACTIONS,
            priority=5,
        ))

    suggestions.sort(key=lambda s: s.priority)

    if suggestions:
        logger.info(f"Generated {len(suggestions)} suggestions: {[s.type for s in suggestions]}")
    return suggestions
