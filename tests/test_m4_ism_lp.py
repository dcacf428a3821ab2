# SPDX-License-Identifier: PROPRIETARY
"""Tests for level partitioning of the reachability matrix."""

import numpy as np
import pytest

from m3_ism_frm import compute_final_reachability
from m4_ism_lp import (
    create_comprehensive_final_dataframe,
    create_iteration_dataframe,
    create_level_summary_dataframe,
    create_set_row,
    get_antecedent_set,
    get_intersection_set,
    get_level_elements,
    get_reachability_set,
    partition_levels,
    perform_level_partitioning,
)


def random_frm(n, density, seed):
    rng = np.random.default_rng(seed)
    irm = (rng.random((n, n)) < density).astype(int)
    np.fill_diagonal(irm, 1)
    return compute_final_reachability(irm)


class TestSets:

    def test_sets(self, chain_irm):
        frm = compute_final_reachability(chain_irm)
        assert get_reachability_set(frm, 0) == {0, 1, 2}
        assert get_antecedent_set(frm, 0) == {0}
        assert get_antecedent_set(frm, 2) == {0, 1, 2}
        assert get_intersection_set({0, 1, 2}, {0}) == {0}


class TestPartitionLevels:

    def test_chain(self, chain_irm):
        result = partition_levels(compute_final_reachability(chain_irm))
        assert result['levels'] == [
            {'level': 1, 'elements': [2]},
            {'level': 2, 'elements': [1]},
            {'level': 3, 'elements': [0]},
        ]
        assert result['factor_levels'] == {2: 1, 1: 2, 0: 3}
        assert result['max_level'] == 3

    def test_mutual_pair_single_level(self):
        result = partition_levels(np.ones((2, 2), dtype=int))
        assert result['levels'] == [{'level': 1, 'elements': [0, 1]}]

    def test_all_unrelated_single_level(self):
        result = partition_levels(np.eye(5, dtype=int))
        assert result['levels'] == [{'level': 1, 'elements': [0, 1, 2, 3, 4]}]

    def test_single_factor(self):
        assert partition_levels(np.array([[1]]))['levels'] == [{'level': 1, 'elements': [0]}]

    def test_empty(self):
        result = partition_levels(np.zeros((0, 0), dtype=int))
        assert result['levels'] == []
        assert result['max_level'] == 0

    def test_non_transitive_cycle_raises(self):
        cycle = np.array([
            [1, 1, 0],
            [0, 1, 1],
            [1, 0, 1],
        ])
        with pytest.raises(RuntimeError, match="no progress"):
            partition_levels(cycle)

    @pytest.mark.parametrize("seed", range(6))
    def test_partition_complete_and_valid(self, seed):
        frm = random_frm(10, 0.15, seed)
        result = partition_levels(frm)

        elements = [i for level in result['levels'] for i in level['elements']]
        assert sorted(elements) == list(range(10))
        assert len(elements) == len(set(elements))

        removed = set()
        for level in result['levels']:
            remaining = set(range(10)) - removed
            for i in level['elements']:
                reach = get_reachability_set(frm, i) & remaining
                ante = get_antecedent_set(frm, i) & remaining
                assert reach == reach & ante
            assert level['elements'] == sorted(level['elements'])
            removed |= set(level['elements'])

    def test_get_level_elements(self, chain_irm):
        levels = partition_levels(compute_final_reachability(chain_irm))['levels']
        assert get_level_elements(levels, 2) == [1]
        assert get_level_elements(levels, 9) == []


class TestDataFrames:

    def test_set_row(self, chain_factors):
        row = create_set_row(chain_factors[1], {1, 2}, {0, 1}, {1}, 2, chain_factors)
        assert row == {
            'Factor': 'F2: Workflow maturity',
            'Reachability_Set_R(i)': 'F2, F3',
            'Antecedent_Set_A(i)': 'F1, F2',
            'Intersection_C(i)': 'F2',
            'Level': 2,
        }

    def test_iteration_and_summary(self, chain_irm, chain_factors):
        frm = compute_final_reachability(chain_irm)
        result = partition_levels(frm)

        first = create_iteration_dataframe(result['iterations'][0], chain_factors)
        assert list(first['Level']) == ['', '', '1']
        assert first.iloc[0]['Reachability_Set_R(i)'] == 'F1, F2, F3'

        summary = create_level_summary_dataframe(result, chain_factors)
        assert list(summary['Factor_Codes']) == ['F3', 'F2', 'F1']

        comprehensive = create_comprehensive_final_dataframe(frm, result, chain_factors)
        assert list(comprehensive['Level']) == [3, 2, 1]


class TestPerformLevelPartitioning:

    def test_files(self, chain_irm, chain_factors, output_dir):
        frm = compute_final_reachability(chain_irm)
        results = perform_level_partitioning(frm=frm, factors=chain_factors, output_dir=output_dir)
        names = [p.name for p in results['output_files']]
        assert names == ['ism_lp_1.xlsx', 'ism_lp_2.xlsx', 'ism_lp_3.xlsx', 'ism_lp_final.xlsx']
        assert all(p.exists() for p in results['output_files'])

    def test_summary_lists_levels_in_order(self, chain_irm, chain_factors, capsys):
        perform_level_partitioning(frm=compute_final_reachability(chain_irm),
                                   factors=chain_factors, save=False)
        out = capsys.readouterr().out
        assert out.index("Level 1:\n    - F3: Project outcome") < out.index("Level 3:\n    - F1")
