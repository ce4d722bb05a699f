"""
Basic tests for dune mobility indices.
"""

import pytest
import numpy as np
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent))

from duneflux.logging_utils import UnknownMethodError
from duneflux.mobility_indices import calc_mobility_index


def test_vanilla_index():
    """Test the flux / soil moisture ratio"""
    index = calc_mobility_index([2.0, 4.0], [1.0, 2.0])

    np.testing.assert_allclose(index, [2.0, 2.0])


def test_vanilla_anomaly_index():
    """Test anomalies from the series mean"""
    index = calc_mobility_index([1.0, 3.0], [1.0, 1.0], 'vanilla_anomaly')

    np.testing.assert_allclose(index, [-1.0, 1.0])


def test_anomaly_propagates_missing_values():
    """Test that one missing year makes every anomaly missing"""
    index = calc_mobility_index([1.0, np.nan, 3.0], [1.0, 1.0, 1.0], 'vanilla_anomaly')

    assert np.all(np.isnan(index))


def test_vanilla_keeps_other_years():
    """Test that the plain ratio is elementwise"""
    index = calc_mobility_index([1.0, np.nan], [0.5, 0.5], 'vanilla')

    assert index[0] == pytest.approx(2.0)
    assert np.isnan(index[1])


def test_unknown_modification():
    """Test that unknown modifications are rejected"""
    with pytest.raises(UnknownMethodError):
        calc_mobility_index([1.0], [1.0], 'lancaster')
