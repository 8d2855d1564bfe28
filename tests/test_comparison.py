"""
End-to-end tests for services.comparison.build_comparison
"""
import json
from datetime import timezone

import pytest

from config.config import ComparisonConfig
from conftest import make_role
from models.role import Permission, Role
from services.comparison import build_comparison
from services.errors import AnalysisError, PreconditionError


def _keys(perms):
    return sorted(p.key for p in perms)


class TestScenarios:
    def test_scenario_a(self, scenario_a):
        result = build_comparison(scenario_a)
        assert _keys(result.differences.shared) == ["user.read.department"]
        assert _keys(result.differences.unique["role1"]) == ["user.write.department"]
        assert result.differences.unique["role2"] == []
        assert result.metrics.similarity_score == 0.5
        assert result.suggestions == []

    def test_scenario_b(self, identical_roles):
        result = build_comparison(identical_roles)
        assert result.metrics.similarity_score == 1.0
        assert result.metrics.coverage_gap == 0.0
        assert all(i.size == 5 for i in result.venn_diagram.intersections)
        assert [s.type for s in result.suggestions] == ["consolidation"]

    def test_scenario_c(self, disjoint_roles):
        result = build_comparison(disjoint_roles)
        assert result.differences.shared == []
        assert result.metrics.similarity_score == 0.0
        assert result.metrics.coverage_gap == 1.0
        assert len(result.differences.unique["role_a"]) == 3
        assert len(result.differences.unique["role_b"]) == 4
        assert [s.type for s in result.suggestions] == ["gap", "optimization"]

    def test_scenario_d_too_few_roles(self):
        with pytest.raises(PreconditionError) as exc:
            build_comparison([make_role("only", ["user.read.own"])])
        assert exc.value.reason == "too_few_roles"

    def test_scenario_e_empty_role(self):
        roles = [make_role("empty", []), make_role("full", ["user.read.own", "user.write.own"])]
        result = build_comparison(roles)
        assert result.metrics.similarity_score == 0.0
        assert result.metrics.permission_density == 1.0
        assert result.statistical_summary.entropy_score == 0.0


class TestBuildComparison:
    def test_bundle_is_complete(self, hotel_roles):
        result = build_comparison(hotel_roles)
        assert [r.id for r in result.roles] == ["property_manager", "department_admin", "front_desk"]
        assert result.permission_matrix.n_permissions == 8
        assert result.venn_diagram is not None
        assert len(result.role_distance_matrix) == 3
        assert result.heatmap.rows == ["Property Manager", "Department Admin", "Front Desk"]
        assert [g.category for g in result.category_analysis.critical_gaps] == ["payroll"]
        assert result.timestamp.tzinfo == timezone.utc
        assert result.analysis_time_ms >= 0

    def test_idempotent_across_order(self, hotel_roles):
        first = build_comparison(hotel_roles)
        second = build_comparison(list(reversed(hotel_roles)))

        assert first.metrics.to_dict() == second.metrics.to_dict()
        assert _keys(first.differences.shared) == _keys(second.differences.shared)
        for role in hotel_roles:
            assert _keys(first.differences.unique[role.id]) == _keys(second.differences.unique[role.id])
            assert _keys(first.differences.missing[role.id]) == _keys(second.differences.missing[role.id])
        assert first.statistical_summary.entropy_score == second.statistical_summary.entropy_score
        assert first.statistical_summary.permission_variance == second.statistical_summary.permission_variance

    def test_parallel_pairwise_gives_same_metrics(self, hotel_roles):
        serial = build_comparison(hotel_roles)
        parallel = build_comparison(hotel_roles, ComparisonConfig(parallel_pairwise=True, num_workers=2))
        assert serial.metrics.to_dict() == parallel.metrics.to_dict()

    def test_to_dict_is_json_serializable(self, hotel_roles):
        data = build_comparison(hotel_roles).to_dict()
        encoded = json.dumps(data)
        decoded = json.loads(encoded)
        assert decoded["metrics"]["total_permissions"] == 8
        assert decoded["permission_matrix"]["role_permission_map"]["front_desk"]["payroll.read.property"] is False
        assert decoded["venn_diagram"]["intersections"][-1]["size"] == 1

    def test_four_roles_without_venn(self, hotel_roles):
        roles = hotel_roles + [make_role("auditor", ["document.read.own"])]
        result = build_comparison(roles)
        assert result.venn_diagram is None
        assert result.to_dict()["venn_diagram"] is None

    def test_duplicate_permission_rejected(self):
        bad = Role(id="bad", name="Bad", permissions=(
            make_role("x", ["user.read.own"]).permissions[0],
            make_role("y", ["user.read.own"]).permissions[0],
        ))
        with pytest.raises(PreconditionError) as exc:
            build_comparison([bad, make_role("ok", ["user.read.own"])])
        assert exc.value.reason == "duplicate_permission"

    def test_invalid_config_rejected(self, scenario_a):
        with pytest.raises(PreconditionError) as exc:
            build_comparison(scenario_a, ComparisonConfig(consolidation_threshold=1.5))
        assert exc.value.reason == "invalid_config"

    def test_config_min_roles(self, scenario_a):
        with pytest.raises(PreconditionError):
            build_comparison(scenario_a, ComparisonConfig(min_roles=3))

    def test_malformed_permission_wrapped(self):
        broken = Role(id="broken", name="Broken", permissions=("user.read.own",))
        with pytest.raises(AnalysisError) as exc:
            build_comparison([broken, make_role("ok", ["user.read.own"])])
        assert isinstance(exc.value.cause, AttributeError)
        assert exc.value.__cause__ is exc.value.cause

    def test_accepts_generator(self, hotel_roles):
        result = build_comparison(r for r in hotel_roles)
        assert [r.id for r in result.roles] == [r.id for r in hotel_roles]

    def test_dotted_fields_compared_as_triples(self):
        dotted_resource = Permission("user.profile", "read", "own")
        dotted_action = Permission("user", "profile.read", "own")
        result = build_comparison([
            Role(id="r1", name="R1", permissions=(dotted_resource, dotted_action)),
            Role(id="r2", name="R2", permissions=(dotted_resource,)),
        ])
        assert result.metrics.total_permissions == 2
        assert result.metrics.similarity_score == 0.5
        assert result.differences.unique["r1"] == [dotted_action]
