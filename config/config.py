"""
Role Comparison Configuration
Thresholds, visualization ranges and runtime knobs for the comparison engine.

Pure in-memory configuration: the engine never reads files on its own. Callers
may load a JSON override with load_config_from_json().
"""

from typing import Dict, Any, List
from dataclasses import dataclass, field, asdict
import copy
import json
import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV = "ROLE_COMPARISON_LOG_LEVEL"

# ============================================================================
# CONFIGURATION VALIDATION RULES
# ============================================================================

VALIDATION_RULES = {
    "min_roles": {
        "min": 2,
        "error": "Comparison needs at least 2 roles",
    },
    "max_roles": {
        "min": 2,
        "max": 10,
        "warning_high": "Pairwise analysis grows O(n^2); keep selections small",
    },
    "similarity_edge_threshold": {
        "min": 0.0,
        "max": 1.0,
        "error": "Similarity threshold must be within [0, 1]",
    },
    "consolidation_threshold": {
        "min": 0.0,
        "max": 1.0,
        "error": "Consolidation threshold must be within [0, 1]",
    },
    "coverage_gap_threshold": {
        "min": 0.0,
        "max": 1.0,
        "error": "Coverage gap threshold must be within [0, 1]",
    },
    "differentiation_threshold": {
        "min": 0.0,
        "max": 1.0,
        "error": "Differentiation threshold must be within [0, 1]",
    },
    "num_workers": {
        "min": 1,
        "max": 32,
        "error": "num_workers must be between 1 and 32",
    },
}


# ============================================================================
# DEFAULT CONFIGURATION
# ============================================================================

DEFAULT_ROLE_COLORS: Dict[str, str] = {
    "PLATFORM_ADMIN": "#ef4444",
    "ORGANIZATION_OWNER": "#a855f7",
    "ORGANIZATION_ADMIN": "#6366f1",
    "PROPERTY_MANAGER": "#3b82f6",
    "DEPARTMENT_ADMIN": "#10b981",
    "STAFF": "#6b7280",
    "custom": "#8b5cf6",
}

DEFAULT_COMPARISON_CONFIG: Dict[str, Any] = {
    # =========================================================================
    # SELECTION
    # =========================================================================
    "min_roles": 2,
    "max_roles": 4,  # Caller-enforced cap on selected roles

    # =========================================================================
    # SUGGESTION TRIGGERS
    # =========================================================================
    "consolidation_threshold": 0.8,  # similarity > 0.8 = near-duplicates
    "coverage_gap_threshold": 0.5,  # gap > 0.5 = significant gaps
    "differentiation_threshold": 0.2,  # similarity < 0.2 = well differentiated

    # =========================================================================
    # CRITICAL GAP DETECTION
    # =========================================================================
    "critical_categories": ["user", "organization", "property", "department", "payroll"],
    "gap_high_threshold": 0.5,  # critical AND > 50% of roles missing = high
    "gap_majority_threshold": 0.7,  # critical OR > 70% missing = medium

    # =========================================================================
    # NETWORK GRAPH
    # =========================================================================
    "similarity_edge_threshold": 0.1,  # Only draw role-role edges above this
    "role_node_min_size": 20,
    "role_node_max_size": 60,
    "role_node_size_per_permission": 2.0,
    "category_node_min_size": 15,
    "category_node_max_size": 40,
    "category_node_size_per_permission": 1.5,
    "category_node_color": "#e5e7eb",
    "role_colors": DEFAULT_ROLE_COLORS,

    # =========================================================================
    # PERFORMANCE
    # =========================================================================
    "parallel_pairwise": False,  # Thread pool for pair computations
    "num_workers": 4,

    # =========================================================================
    # LOGGING
    # =========================================================================
    "log_level": "INFO",
    "enable_performance_logging": True,  # Log elapsed time per analysis
}


# ============================================================================
# CONFIGURATION DATACLASS
# ============================================================================

@dataclass
class ComparisonConfig:
    """
    Strongly-typed configuration for the role comparison engine.

    Use this instead of dict for type safety and IDE autocomplete.
    """

    # Selection
    min_roles: int = 2
    max_roles: int = 4

    # Suggestion triggers
    consolidation_threshold: float = 0.8
    coverage_gap_threshold: float = 0.5
    differentiation_threshold: float = 0.2

    # Critical gaps
    critical_categories: List[str] = field(default_factory=lambda: [
        "user", "organization", "property", "department", "payroll",
    ])
    gap_high_threshold: float = 0.5
    gap_majority_threshold: float = 0.7

    # Network graph
    similarity_edge_threshold: float = 0.1
    role_node_min_size: float = 20
    role_node_max_size: float = 60
    role_node_size_per_permission: float = 2.0
    category_node_min_size: float = 15
    category_node_max_size: float = 40
    category_node_size_per_permission: float = 1.5
    category_node_color: str = "#e5e7eb"
    role_colors: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ROLE_COLORS))

    # Performance
    parallel_pairwise: bool = False
    num_workers: int = 4

    # Logging
    log_level: str = "INFO"
    enable_performance_logging: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ComparisonConfig':
        """Create from dictionary, ignoring unknown keys."""
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in config_dict.items() if k in valid_keys}
        return cls(**filtered)

    def is_critical_category(self, category: str) -> bool:
        return category.lower() in {c.lower() for c in self.critical_categories}

    def color_for(self, system_role: str = None) -> str:
        """Role color from the injected palette; unknown or custom roles get the custom color."""
        fallback = self.role_colors.get("custom", "#8b5cf6")
        if not system_role:
            return fallback
        return self.role_colors.get(system_role, fallback)

    def validate(self) -> List[str]:
        """
        Validate configuration against rules.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        rule = VALIDATION_RULES["min_roles"]
        if self.min_roles < rule["min"]:
            errors.append(f"min_roles < {rule['min']}: {rule['error']}")

        rule = VALIDATION_RULES["max_roles"]
        if self.max_roles < rule["min"]:
            errors.append(f"max_roles < {rule['min']}")
        if self.max_roles > rule["max"]:
            errors.append(f"max_roles > {rule['max']}: {rule['warning_high']}")
        if self.max_roles < self.min_roles:
            errors.append(f"max_roles ({self.max_roles}) < min_roles ({self.min_roles})")

        for name in (
                "similarity_edge_threshold",
                "consolidation_threshold",
                "coverage_gap_threshold",
                "differentiation_threshold",
        ):
            rule = VALIDATION_RULES[name]
            value = getattr(self, name)
            if not rule["min"] <= value <= rule["max"]:
                errors.append(f"{name}={value}: {rule['error']}")

        if self.differentiation_threshold >= self.consolidation_threshold:
            errors.append(
                f"differentiation_threshold ({self.differentiation_threshold}) must be "
                f"below consolidation_threshold ({self.consolidation_threshold})"
            )

        if self.role_node_min_size > self.role_node_max_size:
            errors.append("role_node_min_size > role_node_max_size")
        if self.category_node_min_size > self.category_node_max_size:
            errors.append("category_node_min_size > category_node_max_size")

        rule = VALIDATION_RULES["num_workers"]
        if not rule["min"] <= self.num_workers <= rule["max"]:
            errors.append(f"num_workers={self.num_workers}: {rule['error']}")

        if logging.getLevelName(str(self.log_level).upper()) not in (
                logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL,
        ):
            errors.append(f"log_level={self.log_level!r} is not a logging level")

        return errors


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def load_config_from_json(filepath: str) -> ComparisonConfig:
    """Load configuration from JSON file, layered over the defaults."""
    with open(filepath, 'r') as f:
        config_dict = json.load(f)
    return ComparisonConfig.from_dict(merge_configs(copy.deepcopy(DEFAULT_COMPARISON_CONFIG), config_dict))


def get_default_config() -> ComparisonConfig:
    """Get default configuration as dataclass."""
    return ComparisonConfig.from_dict(copy.deepcopy(DEFAULT_COMPARISON_CONFIG))


def merge_configs(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge override config into base config.

    Useful for caller-specific overrides on top of defaults.
    """
    merged = base.copy()
    merged.update(overrides)
    return merged


def configure_logging(config: ComparisonConfig = None) -> int:
    """
    Apply the standard log format. ROLE_COMPARISON_LOG_LEVEL wins over config.log_level.

    Returns the numeric level that was applied.
    """
    config = config or get_default_config()
    raw = (os.getenv(LOG_LEVEL_ENV) or config.log_level or "INFO").strip().upper()
    level = logging.getLevelName(raw)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    return level
