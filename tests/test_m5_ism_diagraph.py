# SPDX-License-Identifier: PROPRIETARY
"""Tests for the canonical matrix and digraph construction."""

import numpy as np
import pytest
from matplotlib.colors import to_hex
from matplotlib.patches import Circle, FancyArrowPatch

from m3_ism_frm import compute_final_reachability
from m4_ism_lp import partition_levels
from m5_ism_diagraph import (
    CATEGORY_COLORS,
    CIRCLE_RADIUS,
    VERTICAL_SPACING,
    calculate_circular_positions,
    calculate_hierarchical_positions,
    create_canonical_matrix,
    create_interrelationship_graph,
    create_ism_digraph,
    extract_edges,
    filter_edges_by_levels,
    find_mutual_reachability_classes,
    identify_reciprocal_edges,
    int_to_roman,
)


class TestCanonicalMatrix:

    def test_chain_keeps_consecutive_edges(self, chain_irm):
        canonical = create_canonical_matrix(compute_final_reachability(chain_irm))
        np.testing.assert_array_equal(canonical, np.array([
            [0, 1, 0],
            [0, 0, 1],
            [0, 0, 0],
        ]))

    def test_mutual_pair_keeps_both_directions(self):
        canonical = create_canonical_matrix(np.ones((2, 2), dtype=int))
        np.testing.assert_array_equal(canonical, np.array([[0, 1], [1, 0]]))

    def test_cycle_class_kept_whole(self):
        canonical = create_canonical_matrix(np.ones((3, 3), dtype=int))
        np.testing.assert_array_equal(canonical, 1 - np.eye(3, dtype=int))

    def test_shortcut_through_class_removed(self):
        # 0 -> {1, 2} (mutual) -> 3
        irm = np.eye(4, dtype=int)
        irm[0, 1] = 1
        irm[1, 2] = irm[2, 1] = 1
        irm[2, 3] = 1
        canonical = create_canonical_matrix(compute_final_reachability(irm))

        assert canonical[1, 2] == 1 and canonical[2, 1] == 1
        assert canonical[0, 1] == 1 and canonical[0, 2] == 1
        assert canonical[1, 3] == 1 and canonical[2, 3] == 1
        assert canonical[0, 3] == 0

    def test_diagonal_zero_and_subset_of_frm(self):
        rng = np.random.default_rng(3)
        irm = (rng.random((8, 8)) < 0.25).astype(int)
        np.fill_diagonal(irm, 1)
        frm = compute_final_reachability(irm)
        canonical = create_canonical_matrix(frm)

        assert np.all(np.diag(canonical) == 0)
        assert np.all(canonical <= frm)
        np.testing.assert_array_equal(compute_final_reachability(canonical + np.eye(8, dtype=int)), frm)

    def test_empty(self):
        assert create_canonical_matrix(np.zeros((0, 0), dtype=int)).shape == (0, 0)

    def test_mutual_classes(self):
        frm = np.ones((3, 3), dtype=int)
        frm[2, :2] = 0
        assert find_mutual_reachability_classes(frm) == [[0, 1], [2]]


class TestEdges:

    def test_extract_edges(self, chain_irm):
        assert extract_edges(chain_irm) == [(0, 1), (1, 2)]

    def test_reciprocal(self):
        result = identify_reciprocal_edges([(0, 1), (1, 0), (1, 2)])
        assert result == {'reciprocal': [(0, 1)], 'unidirectional': [(1, 2)]}

    def test_filter_by_levels(self):
        factor_levels = {0: 3, 1: 2, 2: 1, 3: 1}
        result = filter_edges_by_levels([(0, 1), (2, 1), (2, 3)], factor_levels)
        assert result['upward'] == [(0, 1)]
        assert result['downward'] == [(2, 1)]
        assert result['intra_level'] == [(2, 3)]
        assert result['inter_level'] == [(0, 1), (2, 1)]


class TestLayout:

    def test_positions(self):
        levels = [{'level': 1, 'elements': [2, 3]}, {'level': 2, 'elements': [0]}]
        positions = calculate_hierarchical_positions(levels)
        assert positions[0] == (0.0, VERTICAL_SPACING)
        assert positions[2][1] == positions[3][1] == 2 * VERTICAL_SPACING
        assert positions[2][0] == -positions[3][0]

    def test_no_levels(self):
        assert calculate_hierarchical_positions([]) == {}

    def test_circular_positions(self):
        positions = calculate_circular_positions(4)
        assert positions[0] == pytest.approx((0.0, CIRCLE_RADIUS))
        assert positions[1] == pytest.approx((CIRCLE_RADIUS, 0.0))
        for x, y in positions.values():
            assert np.hypot(x, y) == pytest.approx(CIRCLE_RADIUS)

    def test_circular_positions_empty(self):
        assert calculate_circular_positions(0) == {}

    @pytest.mark.parametrize("num, roman", [(1, 'I'), (4, 'IV'), (9, 'IX'), (14, 'XIV')])
    def test_int_to_roman(self, num, roman):
        assert int_to_roman(num) == roman


class TestCreateIsmDigraph:

    def test_irm_edges_and_files(self, chain_irm, chain_factors, output_dir):
        frm = compute_final_reachability(chain_irm)
        partition = partition_levels(frm)
        results = create_ism_digraph(irm=chain_irm, frm=frm, levels=partition['levels'],
                                     factor_levels=partition['factor_levels'],
                                     factors=chain_factors, output_dir=output_dir)

        assert results['edges'] == [(0, 1), (1, 2)]
        assert [p.name for p in results['output_files']] == ['ism_diagraph.png',
                                                          'ism_interrelationship.png',
                                                          'ism_edge_list.xlsx']
        assert all(p.exists() for p in results['output_files'])
        assert list(results['edge_df']['Relationship_Type']) == ['Influence (Cause→Effect)'] * 2

    def test_summary_counts_edges_between_levels(self, chain_irm, chain_factors, capsys):
        frm = compute_final_reachability(chain_irm)
        create_ism_digraph(irm=chain_irm, frm=frm, factors=chain_factors, save=False)
        out = capsys.readouterr().out
        assert "Between Levels: 2" in out
        assert "Same Level: 0" in out

    def test_canonical_edges(self, chain_factors):
        frm = np.triu(np.ones((3, 3), dtype=int))
        results = create_ism_digraph(irm=frm, frm=frm, factors=chain_factors,
                                     edge_source='canonical', save=False)
        assert results['edges'] == [(0, 1), (1, 2)]
        assert results['fig'] is not None

    def test_invalid_edge_source(self, chain_irm, chain_factors):
        with pytest.raises(ValueError, match="edge_source"):
            create_ism_digraph(irm=chain_irm, frm=chain_irm, factors=chain_factors,
                               edge_source='frm', save=False)

    def test_no_factors_no_figures(self):
        empty = np.zeros((0, 0), dtype=int)
        results = create_ism_digraph(irm=empty, frm=empty, levels=[], factor_levels={},
                                     factors=[], save=False)
        assert results['fig'] is None
        assert results['interrelationship_fig'] is None


class TestInterrelationshipGraph:

    def test_category_legend(self, chain_irm, chain_factors):
        fig = create_interrelationship_graph(chain_irm, chain_factors)
        labels = [text.get_text() for text in fig.axes[0].get_legend().get_texts()]
        assert labels == ['One-way (Direct)', 'Two-way (Mutual)', 'Policy', 'Process']

    def test_node_outline_by_category(self, chain_irm, chain_factors):
        fig = create_interrelationship_graph(chain_irm, chain_factors)
        circles = [patch for patch in fig.axes[0].patches if isinstance(patch, Circle)]
        assert len(circles) == 3
        assert to_hex(circles[0].get_edgecolor()) == CATEGORY_COLORS['Policy'].lower()

    def test_mutual_pair_drawn_once(self):
        factors = [{'id': c, 'name': c, 'description': '', 'category': None} for c in 'AB']
        fig = create_interrelationship_graph(np.ones((2, 2), dtype=int), factors)
        arrows = [patch for patch in fig.axes[0].patches if isinstance(patch, FancyArrowPatch)]
        assert len(arrows) == 1
