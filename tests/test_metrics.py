"""
Tests for services.metrics
"""
import math

import pytest

from config.config import ComparisonConfig
from conftest import make_role
from models.role import Permission, Role
from services.differences import calculate_permission_differences
from services.matrix_builder import build_permission_matrix
from services.metrics import (
    build_similarity_matrix,
    calculate_category_diversity,
    calculate_category_overlap,
    calculate_comparison_metrics,
    calculate_statistical_summary,
    compute_pairwise,
    jaccard_similarity,
    overlap_coefficient,
    permission_entropy,
    role_similarity,
    similarity_label,
)


def _metrics(roles, config=None):
    matrix = build_permission_matrix(roles)
    diff = calculate_permission_differences(roles, matrix)
    pairs = compute_pairwise(roles, matrix, config)
    return calculate_comparison_metrics(roles, matrix, diff, pairs, config)


class TestPairwiseSimilarity:
    def test_symmetry(self, hotel_roles):
        for a in hotel_roles:
            for b in hotel_roles:
                assert role_similarity(a, b) == role_similarity(b, a)

    def test_self_similarity(self, hotel_roles):
        for role in hotel_roles:
            assert role_similarity(role, role) == 1.0

    def test_empty_sets(self):
        assert jaccard_similarity([], []) == 0.0
        assert overlap_coefficient([], ["a"]) == 0.0

    def test_scenario_a(self, scenario_a):
        assert role_similarity(*scenario_a) == 0.5

    def test_dotted_fields_not_conflated(self):
        role_a = Role(id="r1", name="R1", permissions=(Permission("user.profile", "read", "own"),))
        role_b = Role(id="r2", name="R2", permissions=(Permission("user", "profile.read", "own"),))
        assert role_similarity(role_a, role_b) == 0.0

    def test_overlap_coefficient(self):
        assert overlap_coefficient({"a", "b"}, {"a"}) == 1.0
        assert overlap_coefficient({"a", "b", "c"}, {"a", "d"}) == 0.5

    def test_pairs_in_canonical_order(self, hotel_roles):
        matrix = build_permission_matrix(hotel_roles)
        pairs = compute_pairwise(hotel_roles, matrix)
        assert [p.key for p in pairs] == [
            ("department_admin", "front_desk"),
            ("department_admin", "property_manager"),
            ("front_desk", "property_manager"),
        ]
        assert pairs[0].shared_count == 2
        assert pairs[0].union_count == 4
        assert pairs[0].jaccard == 0.5
        assert pairs[0].overlap == pytest.approx(2 / 3)
        assert pairs[1].jaccard == pytest.approx(1 / 7)

    def test_parallel_matches_serial(self, hotel_roles):
        matrix = build_permission_matrix(hotel_roles)
        serial = compute_pairwise(hotel_roles, matrix, ComparisonConfig())
        parallel = compute_pairwise(
            hotel_roles, matrix, ComparisonConfig(parallel_pairwise=True, num_workers=3)
        )
        assert serial == parallel


class TestComparisonMetrics:
    def test_scenario_a(self, scenario_a):
        m = _metrics(scenario_a)
        assert m.total_permissions == 2
        assert m.shared_permissions == 1
        assert m.unique_permissions == 1
        assert m.similarity_score == 0.5
        assert m.coverage_gap == 0.5
        assert m.overlap_coefficient == 1.0
        assert m.permission_density == 1.5
        assert m.permissions_by_category == {"user": 2}

    def test_scenario_b_identical(self, identical_roles):
        m = _metrics(identical_roles)
        assert m.similarity_score == 1.0
        assert m.coverage_gap == 0.0
        assert m.shared_permissions == m.total_permissions == 5

    def test_scenario_c_disjoint(self, disjoint_roles):
        m = _metrics(disjoint_roles)
        assert m.similarity_score == 0.0
        assert m.coverage_gap == 1.0
        assert m.unique_permissions == 7

    def test_scenario_e_empty_role(self):
        roles = [make_role("empty", []), make_role("full", ["user.read.own", "user.write.own", "payroll.read.own"])]
        m = _metrics(roles)
        assert m.similarity_score == 0.0
        assert not math.isnan(m.similarity_score)
        assert m.permission_density == 1.5
        assert m.overlap_coefficient == 0.0

    def test_all_roles_empty(self):
        m = _metrics([make_role("a", []), make_role("b", [])])
        assert m.total_permissions == 0
        assert m.coverage_gap == 0.0
        assert m.similarity_score == 0.0

    def test_three_roles(self, hotel_roles):
        m = _metrics(hotel_roles)
        assert m.total_permissions == 8
        assert m.shared_permissions == 1
        assert m.unique_permissions == 6
        assert m.similarity_score == pytest.approx(11 / 42)
        assert m.coverage_gap == pytest.approx(7 / 8)
        assert m.permission_density == pytest.approx(11 / 3)
        assert 0.0 <= m.coverage_gap <= 1.0

    def test_input_order_does_not_change_metrics(self, hotel_roles):
        forward = _metrics(hotel_roles)
        for order in ([2, 0, 1], [1, 2, 0], [2, 1, 0]):
            other = _metrics([hotel_roles[i] for i in order])
            assert other.similarity_score == forward.similarity_score
            assert other.overlap_coefficient == forward.overlap_coefficient
            assert other.coverage_gap == forward.coverage_gap
            assert other.permission_density == forward.permission_density
            assert other.role_pairs == forward.role_pairs

    def test_pair_lookup(self, hotel_roles):
        m = _metrics(hotel_roles)
        assert m.pair("front_desk", "department_admin").jaccard == 0.5
        with pytest.raises(KeyError):
            m.pair("front_desk", "nobody")


class TestStatisticalSummary:
    def test_three_roles(self, hotel_roles):
        matrix = build_permission_matrix(hotel_roles)
        summary = calculate_statistical_summary(hotel_roles, compute_pairwise(hotel_roles, matrix))

        assert summary.mean_permissions == pytest.approx(11 / 3)
        assert summary.median_permissions == 3.0
        assert summary.permission_variance == pytest.approx(8 / 9)
        assert summary.max_similarity == 0.5
        assert summary.min_similarity == pytest.approx(1 / 7)
        assert summary.average_similarity == pytest.approx(11 / 42)

        p = [3 / 11, 3 / 11, 5 / 11]
        assert summary.entropy_score == pytest.approx(-sum(x * math.log2(x) for x in p))

    def test_even_count_median(self):
        roles = [
            make_role("a", ["user.read.own"]),
            make_role("b", ["user.read.own", "user.write.own"]),
            make_role("c", ["user.read.own", "user.write.own", "user.delete.own"]),
            make_role("d", ["user.read.own", "user.write.own", "user.delete.own", "user.read.all"]),
        ]
        matrix = build_permission_matrix(roles)
        summary = calculate_statistical_summary(roles, compute_pairwise(roles, matrix))
        assert summary.median_permissions == 2.5
        assert summary.permission_variance == pytest.approx(1.25)

    def test_entropy_skips_empty_roles(self):
        assert permission_entropy([0, 4]) == 0.0
        assert permission_entropy([0, 0]) == 0.0
        assert permission_entropy([2, 2]) == pytest.approx(1.0)

    def test_similarity_matrix(self):
        roles = [make_role("a", ["user.read.own"]), make_role("b", ["user.read.own", "user.write.own"]),
                 make_role("z", [])]
        matrix = build_permission_matrix(roles)
        sim = build_similarity_matrix(roles, compute_pairwise(roles, matrix))
        assert sim["a"]["a"] == 1.0
        assert sim["z"]["z"] == 0.0
        assert sim["a"]["b"] == sim["b"]["a"] == 0.5
        assert sim["a"]["z"] == 0.0


class TestCategoryMetrics:
    def test_overlap_and_diversity(self, hotel_roles):
        matrix = build_permission_matrix(hotel_roles)
        overlap = calculate_category_overlap(matrix)
        diversity = calculate_category_diversity(matrix)

        assert overlap["user"] == 1.0
        assert overlap["payroll"] == pytest.approx(1 / 3)
        assert diversity["user"] == pytest.approx(1 / 3)
        assert diversity["payroll"] == pytest.approx(2 / 3)
        assert diversity["department"] == 0.0


class TestSimilarityLabel:
    @pytest.mark.parametrize("score,label", [
        (0.95, "Very Similar"),
        (0.8, "Very Similar"),
        (0.65, "Moderately Similar"),
        (0.4, "Somewhat Similar"),
        (0.1, "Very Different"),
    ])
    def test_labels(self, score, label):
        assert similarity_label(score) == label
