# SPDX-License-Identifier: PROPRIETARY
"""Shared fixtures for the ISM-MICMAC module tests."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest


@pytest.fixture(autouse=True)
def close_figures():
    """Close any figure a test leaves open."""
    yield
    plt.close("all")


@pytest.fixture
def chain_factors():
    """Three factors in a V chain F1 -> F2 -> F3."""
    return [
        {'id': 'F1', 'name': 'F1', 'description': 'Policy support', 'category': 'Policy'},
        {'id': 'F2', 'name': 'F2', 'description': 'Workflow maturity', 'category': 'Process'},
        {'id': 'F3', 'name': 'F3', 'description': 'Project outcome', 'category': None},
    ]


@pytest.fixture
def chain_ssim():
    return {'F1': {'F2': 'V'}, 'F2': {'F3': 'V'}}


@pytest.fixture
def chain_irm():
    return np.array([
        [1, 1, 0],
        [0, 1, 1],
        [0, 0, 1],
    ])


@pytest.fixture
def mixed_factors():
    """Five factors with V, A, X and O judgments."""
    return [{'id': f'B{i}', 'name': f'B{i}', 'description': f'Barrier {i}', 'category': None}
            for i in range(1, 6)]


@pytest.fixture
def mixed_ssim():
    # B1 -> B2, B2 <-> B3, B4 -> B2 (entered as A), B5 isolated
    return {
        'B1': {'B2': 'V', 'B3': 'O', 'B4': 'O', 'B5': 'O'},
        'B2': {'B3': 'X', 'B4': 'A'},
        'B3': {'B5': None},
    }


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "ism"
