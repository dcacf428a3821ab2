# SPDX-License-Identifier: PROPRIETARY
"""Tests for MICMAC quadrant classification."""

import numpy as np
import pytest

from m3_ism_frm import compute_final_reachability
from m6_ism_micmac import (
    AUTONOMOUS,
    DEPENDENT,
    DRIVER,
    LINKAGE,
    QUADRANT_ORDER,
    calculate_boundaries,
    calculate_split_point,
    classify_factor,
    classify_micmac,
    create_cluster_summary_dataframe,
    create_micmac_dataframe,
    group_by_quadrant,
    perform_micmac_analysis,
)


class TestSplitPoint:

    @pytest.mark.parametrize("n, split", [(11, 5.5), (12, 6.0), (3, 1.5), (0, 0.0)])
    def test_half_of_n(self, n, split):
        assert calculate_split_point(n) == split


class TestClassifyFactor:

    @pytest.mark.parametrize("dp, dep, quadrant", [
        (2, 2, AUTONOMOUS),
        (2, 9, DEPENDENT),
        (9, 9, LINKAGE),
        (9, 2, DRIVER),
    ])
    def test_quadrants(self, dp, dep, quadrant):
        assert classify_factor(dp, dep, 6.0) == quadrant

    def test_equal_to_split_is_low(self):
        assert classify_factor(6, 6, 6.0) == AUTONOMOUS
        assert classify_factor(7, 6, 6.0) == DRIVER
        assert classify_factor(6, 7, 6.0) == DEPENDENT


class TestClassifyMicmac:

    def test_chain(self, chain_irm):
        micmac = classify_micmac(compute_final_reachability(chain_irm))
        assert micmac['split_point'] == 1.5
        assert [(p['driving_power'], p['dependence_power'], p['quadrant'])
                for p in micmac['points']] == [
            (3, 1, DRIVER),
            (2, 2, LINKAGE),
            (1, 3, DEPENDENT),
        ]

    def test_all_unrelated_autonomous(self):
        micmac = classify_micmac(np.eye(4, dtype=int))
        assert micmac['split_point'] == 2.0
        assert all(p['driving_power'] == p['dependence_power'] == 1 for p in micmac['points'])
        assert {p['quadrant'] for p in micmac['points']} == {AUTONOMOUS}

    def test_power_totals_equal(self):
        rng = np.random.default_rng(5)
        irm = (rng.random((9, 9)) < 0.2).astype(int)
        np.fill_diagonal(irm, 1)
        frm = compute_final_reachability(irm)
        points = classify_micmac(frm)['points']

        assert sum(p['driving_power'] for p in points) == frm.sum()
        assert sum(p['dependence_power'] for p in points) == frm.sum()
        assert [p['factor_index'] for p in points] == list(range(9))

    def test_empty(self):
        micmac = classify_micmac(np.zeros((0, 0), dtype=int))
        assert micmac == {'split_point': 0.0, 'points': []}
        assert calculate_boundaries([], []) == {'dp_max': 0, 'dp_min': 0,
                                               'dep_max': 0, 'dep_min': 0}

    def test_group_by_quadrant(self, chain_irm):
        micmac = classify_micmac(compute_final_reachability(chain_irm))
        groups = group_by_quadrant(micmac['points'])
        assert list(groups) == QUADRANT_ORDER
        assert groups[DRIVER] == [0]
        assert groups[AUTONOMOUS] == []


class TestDataFrames:

    def test_sorted_drivers_first(self, chain_irm, chain_factors):
        micmac = classify_micmac(compute_final_reachability(chain_irm))
        df = create_micmac_dataframe(micmac, chain_factors)
        assert list(df['Cluster']) == [DRIVER, LINKAGE, DEPENDENT]
        assert df.iloc[0]['Quadrant'] == 'IV'

        summary = create_cluster_summary_dataframe(micmac, chain_factors)
        assert list(summary['Count']) == [1, 1, 1, 0]
        assert summary.iloc[3]['Factors'] == 'None'


class TestPerformMicmacAnalysis:

    def test_files(self, chain_irm, chain_factors, output_dir):
        frm = compute_final_reachability(chain_irm)
        results = perform_micmac_analysis(frm=frm, factors=chain_factors, output_dir=output_dir)

        assert results['clusters'] == {0: DRIVER, 1: LINKAGE, 2: DEPENDENT}
        assert results['boundaries'] == {'dp_max': 3, 'dp_min': 1, 'dep_max': 3, 'dep_min': 1}
        assert [p.name for p in results['output_files']] == ['ism_micmac.xlsx', 'ism_micmac.png']
        assert all(p.exists() for p in results['output_files'])

    def test_no_save(self, chain_irm, chain_factors):
        results = perform_micmac_analysis(frm=compute_final_reachability(chain_irm),
                                          factors=chain_factors, save=False)
        assert results['output_files'] is None
        assert results['fig'] is not None
