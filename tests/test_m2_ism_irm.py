# SPDX-License-Identifier: PROPRIETARY
"""Tests for SSIM encoding into the Initial Reachability Matrix."""

import numpy as np
import pytest

from m2_ism_irm import (
    build_ssim_grid,
    count_judgments,
    create_initial_reachability_matrix,
    encode_judgment,
    encode_ssim,
    lookup_judgment,
)


class TestLookupJudgment:

    def test_present(self):
        assert lookup_judgment({'A': {'B': 'X'}}, 'A', 'B') == 'X'

    def test_absent_row_column_and_none(self):
        ssim = {'A': {'B': None}}
        assert lookup_judgment(ssim, 'A', 'B') == 'O'
        assert lookup_judgment(ssim, 'A', 'C') == 'O'
        assert lookup_judgment(ssim, 'Z', 'B') == 'O'
        assert lookup_judgment({}, 'A', 'B') == 'O'


class TestEncodeJudgment:

    @pytest.mark.parametrize("symbol, flags", [
        ('V', (1, 0)),
        ('A', (0, 1)),
        ('X', (1, 1)),
        ('O', (0, 0)),
        ('?', (0, 0)),
    ])
    def test_flags(self, symbol, flags):
        assert encode_judgment(symbol) == flags


class TestEncodeSsim:

    def test_chain(self, chain_ssim, chain_irm):
        irm = encode_ssim(3, ['F1', 'F2', 'F3'], chain_ssim)
        np.testing.assert_array_equal(irm, chain_irm)

    def test_reflexive_diagonal(self, mixed_factors, mixed_ssim):
        ids = [f['id'] for f in mixed_factors]
        irm = encode_ssim(5, ids, mixed_ssim)
        assert all(irm[i, i] == 1 for i in range(5))

    def test_symbol_consistency(self, mixed_factors, mixed_ssim):
        ids = [f['id'] for f in mixed_factors]
        irm = encode_ssim(5, ids, mixed_ssim)
        expected = {
            'V': (1, 0), 'A': (0, 1), 'X': (1, 1), 'O': (0, 0)
        }
        for i in range(5):
            for j in range(i + 1, 5):
                symbol = lookup_judgment(mixed_ssim, ids[i], ids[j])
                assert (irm[i, j], irm[j, i]) == expected[symbol]

    def test_mutual_pair(self):
        irm = encode_ssim(2, ['A', 'B'], {'A': {'B': 'X'}})
        np.testing.assert_array_equal(irm, np.ones((2, 2), dtype=int))

    def test_empty_ssim_is_identity(self):
        irm = encode_ssim(4, ['a', 'b', 'c', 'd'], {})
        np.testing.assert_array_equal(irm, np.eye(4, dtype=int))

    def test_lower_triangle_ignored(self):
        irm = encode_ssim(2, ['A', 'B'], {'B': {'A': 'V'}})
        np.testing.assert_array_equal(irm, np.eye(2, dtype=int))

    def test_count_mismatch(self):
        with pytest.raises(ValueError, match="does not match"):
            encode_ssim(3, ['A', 'B'], {})

    def test_zero_factors(self):
        assert encode_ssim(0, [], {}).shape == (0, 0)

    def test_fresh_array_per_call(self, chain_ssim):
        first = encode_ssim(3, ['F1', 'F2', 'F3'], chain_ssim)
        first[0, 2] = 1
        second = encode_ssim(3, ['F1', 'F2', 'F3'], chain_ssim)
        assert second[0, 2] == 0


class TestSsimGrid:

    def test_grid_and_counts(self, mixed_factors, mixed_ssim):
        ids = [f['id'] for f in mixed_factors]
        grid = build_ssim_grid(5, ids, mixed_ssim)
        assert grid[0, 1] == 'V'
        assert grid[1, 2] == 'X'
        assert grid[1, 3] == 'A'
        assert grid[2, 4] == 'O'
        assert grid[1, 0] == ''

        counts = count_judgments(5, ids, mixed_ssim)
        assert counts == {'V': 1, 'A': 1, 'X': 1, 'O': 7}


class TestCreateInitialReachabilityMatrix:

    def test_results_and_files(self, chain_factors, chain_ssim, chain_irm, output_dir):
        results = create_initial_reachability_matrix(factors=chain_factors, ssim=chain_ssim,
                                                     output_dir=output_dir)
        np.testing.assert_array_equal(results['irm'], chain_irm)
        assert results['factor_ids'] == ['F1', 'F2', 'F3']
        assert list(results['irm_df'].columns) == ['F1', 'F2', 'F3']
        assert results['irm_df'].index[0] == 'F1: Policy support'
        assert sorted(p.name for p in results['output_files']) == ['ism_irm.xlsx', 'ism_ssim.xlsx']
        assert all(p.exists() for p in results['output_files'])

    def test_no_save(self, chain_factors, chain_ssim):
        results = create_initial_reachability_matrix(factors=chain_factors, ssim=chain_ssim,
                                                     save=False)
        assert results['output_files'] is None

    def test_invalid_symbol_rejected(self, chain_factors):
        with pytest.raises(ValueError, match="Invalid ISM input"):
            create_initial_reachability_matrix(factors=chain_factors, ssim={'F1': {'F2': 'Y'}},
                                               save=False)
