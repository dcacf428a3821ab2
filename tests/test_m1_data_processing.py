# SPDX-License-Identifier: PROPRIETARY
"""Tests for factor/SSIM loading and input validation."""

import json

import pytest

from m1_data_processing import (
    FACTORS,
    get_factor_label,
    load_factors,
    load_ssim,
    normalize_factor,
    process_data,
    save_factors,
    save_ssim,
    validate_analysis_input,
    validate_factor_ids,
    validate_ssim,
)


class TestNormalizeFactor:

    def test_defaults_filled(self):
        factor = normalize_factor({'id': 'F1'})
        assert factor == {'id': 'F1', 'name': 'F1', 'description': '', 'category': None}

    def test_missing_id_raises(self):
        with pytest.raises(ValueError, match="missing an 'id'"):
            normalize_factor({'name': 'No id'}, position=2)

    def test_non_dict_raises(self):
        with pytest.raises(ValueError, match="must be an object"):
            normalize_factor(["F1"])


class TestFactorLabels:

    def test_label_with_description(self, chain_factors):
        assert get_factor_label(chain_factors[0]) == "F1: Policy support"

    def test_label_without_description(self):
        assert get_factor_label({'id': 'X', 'name': 'X', 'description': ''}) == "X"


class TestFactorFiles:

    def test_default_factors(self):
        factors = load_factors()
        assert [f['id'] for f in factors] == [f['id'] for f in FACTORS]

    def test_json_roundtrip(self, tmp_path, chain_factors):
        path = save_factors(chain_factors, tmp_path / "factors.json")
        assert load_factors(path) == chain_factors

    def test_csv_roundtrip(self, tmp_path, chain_factors):
        path = save_factors(chain_factors, tmp_path / "factors.csv")
        loaded = load_factors(path)
        assert [f['id'] for f in loaded] == ['F1', 'F2', 'F3']
        assert loaded[2]['category'] is None
        assert loaded[1]['description'] == 'Workflow maturity'

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported factor file type"):
            load_factors(tmp_path / "factors.txt")

    def test_json_must_be_array(self, tmp_path):
        path = tmp_path / "factors.json"
        path.write_text(json.dumps({'id': 'F1'}), encoding="utf-8")
        with pytest.raises(ValueError, match="JSON array"):
            load_factors(path)


class TestSsimFiles:

    def test_roundtrip(self, tmp_path, chain_ssim):
        path = save_ssim(chain_ssim, tmp_path / "nested" / "ssim.json")
        assert load_ssim(path) == chain_ssim

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_ssim(tmp_path / "absent.json")

    def test_must_be_object(self, tmp_path):
        path = tmp_path / "ssim.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError, match="JSON object"):
            load_ssim(path)


class TestValidation:

    def test_valid_input(self, chain_ssim):
        assert validate_factor_ids(3, ['F1', 'F2', 'F3']) == []
        assert validate_ssim(chain_ssim, ['F1', 'F2', 'F3']) == []

    def test_count_mismatch(self):
        errors = validate_factor_ids(4, ['F1', 'F2', 'F3'])
        assert any("does not match" in e for e in errors)

    def test_duplicate_and_empty_ids(self):
        errors = validate_factor_ids(3, ['F1', 'F1', ' '])
        assert any("Duplicate" in e for e in errors)
        assert any("non-empty" in e for e in errors)

    def test_invalid_symbol(self):
        errors = validate_ssim({'F1': {'F2': 'Q'}}, ['F1', 'F2'])
        assert len(errors) == 1
        assert "'Q'" in errors[0]

    def test_lowercase_symbol_rejected(self):
        assert validate_ssim({'F1': {'F2': 'v'}}, ['F1', 'F2'])

    def test_unknown_ids(self):
        errors = validate_ssim({'F9': {'F2': 'V'}, 'F1': {'F8': 'V'}}, ['F1', 'F2'])
        assert len(errors) == 2

    def test_lower_triangle_and_none_allowed(self):
        assert validate_ssim({'F2': {'F1': 'V'}, 'F1': {'F1': 'X', 'F2': None}}, ['F1', 'F2']) == []

    def test_non_dict_row(self):
        errors = validate_ssim({'F1': ['V']}, ['F1', 'F2'])
        assert "mapping" in errors[0]

    def test_analysis_input_raises_with_all_errors(self):
        with pytest.raises(ValueError) as excinfo:
            validate_analysis_input(2, ['F1', 'F2'], {'F1': {'F2': 'Z'}, 'F3': {}})
        message = str(excinfo.value)
        assert "'Z'" in message
        assert "'F3'" in message


class TestProcessData:

    def test_explicit_input(self, chain_factors, chain_ssim):
        results = process_data(factors=chain_factors, ssim=chain_ssim)
        assert results['n'] == 3
        assert results['factor_ids'] == ['F1', 'F2', 'F3']
        assert results['ssim'] == chain_ssim
        assert results['ssim'] is not chain_ssim
        assert results['output_files'] is None

    def test_missing_ssim_file_defaults_to_empty(self, tmp_path, chain_factors):
        results = process_data(factors=chain_factors, ssim_file=tmp_path / "none.json")
        assert results['ssim'] == {}

    def test_invalid_input_raises(self, chain_factors):
        with pytest.raises(ValueError, match="Invalid ISM input"):
            process_data(factors=chain_factors, ssim={'F1': {'F2': 'B'}})

    def test_save_snapshot(self, chain_factors, chain_ssim, output_dir):
        results = process_data(factors=chain_factors, ssim=chain_ssim, save=True,
                               output_dir=output_dir)
        names = sorted(path.name for path in results['output_files'])
        assert names == ['ism_factors.json', 'ism_ssim.json']

    def test_bundled_ssim_is_valid(self):
        results = process_data()
        assert results['n'] == len(FACTORS)
        assert results['ssim']
