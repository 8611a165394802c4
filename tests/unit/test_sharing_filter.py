"""
Unit tests for the sharing filter.
"""

import pytest
import numpy as np
from forward_mult.analysis.sharing_filter import SharingFilter, merge_shared_strips
from forward_mult.core.event import DetectorPayload
from forward_mult.core.records import DetectorSnapshot


class TestMergeSharedStrips:
    """Test merging along one sector"""

    def test_zero_suppression_and_merge(self):
        """Small neighbours are folded into the larger strip"""
        row = np.array([0.5, 0.3, 0.0, 1.0, 1.0, 0.1])
        merged = merge_shared_strips(row, low_cut=0.15, high_cut=0.7)
        np.testing.assert_allclose(merged, [0.8, 0.0, 0.0, 1.0, 1.0, 0.0])

    def test_merge_onto_larger(self):
        """The signal moves to the larger of the pair"""
        merged = merge_shared_strips(np.array([0.2, 1.5]), low_cut=0.15, high_cut=0.7)
        np.testing.assert_allclose(merged, [0.0, 1.7])

    def test_signal_conserved(self):
        """Merging does not change the total above threshold"""
        rng = np.random.default_rng(3)
        row = rng.uniform(0.2, 2.0, 64)
        merged = merge_shared_strips(row, low_cut=0.15, high_cut=0.7)
        assert merged.sum() == pytest.approx(row.sum())

    def test_invalid_strips_kept(self):
        """NaN strips stay NaN and are never merged"""
        merged = merge_shared_strips(np.array([np.nan, 0.5, 0.0]), low_cut=0.15, high_cut=0.7)
        assert np.isnan(merged[0])
        assert merged[1] == 0.5


class TestSharingFilter:
    """Test the filter over a whole payload"""

    def test_fills_snapshot(self, sample_payload):
        """Every ring ends up in the snapshot"""
        snapshot, ok = SharingFilter().filter(sample_payload, False, 0.0)
        assert ok
        assert set(snapshot.signals) == set(sample_payload.signals)

    def test_fills_given_snapshot(self, sample_payload):
        """A snapshot passed in is filled in place"""
        owned = DetectorSnapshot()
        snapshot, ok = SharingFilter().filter(sample_payload, False, 0.0, owned)
        assert snapshot is owned
        assert not owned.is_empty

    def test_low_flux_threshold(self):
        """Low-flux events use the lower zero-suppression cut"""
        payload = DetectorPayload.empty()
        payload.signals[(1, 'I')][0, 0] = 0.12
        sharing = SharingFilter(low_cut=0.15, low_cut_low_flux=0.10, merge_shared=False)

        high, _ = sharing.filter(payload, False, 0.0)
        low, _ = sharing.filter(payload, True, 0.0)

        assert high.signals[(1, 'I')][0, 0] == 0.0
        assert low.signals[(1, 'I')][0, 0] == 0.12

    def test_wrong_shape_fails(self):
        """A ring with the wrong shape fails the event"""
        payload = DetectorPayload(signals={(1, 'I'): np.zeros((3, 3))})
        _, ok = SharingFilter().filter(payload, False, 0.0)
        assert not ok

    def test_no_rings_fails(self):
        """An empty payload gives an empty snapshot and fails"""
        _, ok = SharingFilter().filter(DetectorPayload(signals={}), False, 0.0)
        assert not ok
