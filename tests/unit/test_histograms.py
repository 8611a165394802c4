"""
Unit tests for histogram containers and accumulators.
"""

import pytest
import numpy as np
from forward_mult.core.histograms import (
    Histogram2D,
    MinimumBiasAccumulator,
    RingHistograms,
    RingSums,
)

BINNING = (20, -4.0, 6.0, 8)


class TestHistogram2D:
    """Test the eta x phi histogram"""

    def test_fill(self):
        """Weights land in the right bins"""
        h = Histogram2D(*BINNING)
        h.fill([0.1, 0.1, 5.9], [0.1, 0.1, 6.0], [1.0, 2.0, 4.0])
        assert h.integral() == 7.0
        assert h.values[8, 0] == 3.0
        assert h.values[19, 7] == 4.0

    def test_fill_outside_axis_dropped(self):
        """Entries outside the eta axis are ignored"""
        h = Histogram2D(*BINNING)
        h.fill([-10.0, 10.0], [1.0, 1.0], [1.0, 1.0])
        assert h.integral() == 0.0

    def test_add_and_scale(self):
        """Addition and scaling act on every bin"""
        a = Histogram2D(*BINNING)
        b = Histogram2D(*BINNING)
        a.values += 1.0
        b.values += 2.0
        a.add(b, scale=0.5)
        assert np.all(a.values == 2.0)
        a.scale(3.0)
        assert np.all(a.values == 6.0)

    def test_add_binning_mismatch(self):
        """Adding histograms with different binning fails"""
        a = Histogram2D(*BINNING)
        b = Histogram2D(10, -4.0, 6.0, 8)
        with pytest.raises(ValueError):
            a.add(b)

    def test_reset_clears_quality_bit(self):
        """reset zeroes content and clears skip_ring"""
        h = Histogram2D(*BINNING)
        h.values += 1.0
        h.skip_ring = True
        h.reset()
        assert h.integral() == 0.0
        assert h.skip_ring is False

    def test_projection_eta(self):
        """Projection sums over phi"""
        h = Histogram2D(*BINNING)
        h.values[3, :] = 1.0
        proj = h.projection_eta()
        assert proj.shape == (20,)
        assert proj[3] == 8.0

    def test_copy_independent(self):
        """Copies do not share storage"""
        h = Histogram2D(*BINNING)
        c = h.copy()
        c.values += 1.0
        assert h.integral() == 0.0
        assert h.same_binning(c)


class TestRingHistograms:
    """Test the working histogram set"""

    def test_one_per_ring(self):
        """Five rings, addressable by (detector, ring)"""
        histos = RingHistograms(*BINNING)
        assert len(histos) == 5
        assert histos.get(2, 'O').name == 'FMD2O'
        assert histos.get(1, 'O') is None

    def test_clear(self):
        """clear resets content and outlier bits of every ring"""
        histos = RingHistograms(*BINNING)
        for _, h in histos:
            h.values += 1.0
        histos[(3, 'I')].skip_ring = True
        assert histos.skipped_rings() == [(3, 'I')]

        histos.clear()
        assert histos.is_empty()
        assert histos.skipped_rings() == []


class TestRingSums:
    """Test per vertex bin accumulators"""

    def test_add(self):
        """Events accumulate in their vertex bin"""
        sums = RingSums(4, *BINNING)
        histos = RingHistograms(*BINNING)
        histos[(1, 'I')].values += 1.0

        sums.add(histos, 2)
        sums.add(histos, 2)

        assert sums.sums[2][(1, 'I')].integral() == 2.0 * 20 * 8
        assert sums.sums[1][(1, 'I')].integral() == 0.0
        assert list(sums.event_counts) == [0, 2, 0, 0]

    def test_add_invalid_bin(self):
        """Vertex bins are 1-based"""
        sums = RingSums(4, *BINNING)
        with pytest.raises(IndexError):
            sums.add(RingHistograms(*BINNING), 0)

    def test_merge(self):
        """Merging adds content and counts"""
        a = RingSums(2, *BINNING)
        b = RingSums(2, *BINNING)
        histos = RingHistograms(*BINNING)
        histos[(2, 'O')].values += 1.0
        a.add(histos, 1)
        b.add(histos, 1)
        a.merge(b)
        assert a.sums[1][(2, 'O')].integral() == 2.0 * 20 * 8
        assert a.event_counts[0] == 2

    def test_to_arrays(self):
        """One (vertex, eta, phi) array per ring"""
        arrays = RingSums(3, *BINNING).to_arrays()
        assert set(arrays) == {'FMD1I', 'FMD2I', 'FMD2O', 'FMD3I', 'FMD3O'}
        assert arrays['FMD1I'].shape == (3, 20, 8)


class TestMinimumBiasAccumulator:
    """Test the run-long accumulator"""

    def test_add_counts_events(self):
        """Each add counts one event and sums content"""
        acc = MinimumBiasAccumulator(*BINNING)
        h = Histogram2D(*BINNING)
        h.values += 0.5
        acc.add(h)
        acc.add(h)
        assert acc.n_events == 2
        assert acc.integral() == pytest.approx(2 * 0.5 * 20 * 8)

    def test_dndeta(self):
        """Per-event density divides by events and bin width"""
        acc = MinimumBiasAccumulator(*BINNING)
        h = Histogram2D(*BINNING)
        h.values[0, :] = 1.0
        acc.add(h)
        acc.add(h)
        dndeta = acc.dndeta()
        assert dndeta[0] == pytest.approx(8 / 0.5)
        assert dndeta[1] == 0.0

    def test_dndeta_empty(self):
        """No events gives zeros"""
        assert np.all(MinimumBiasAccumulator(*BINNING).dndeta() == 0)

    def test_merge(self):
        """Merging sums content and counts"""
        a = MinimumBiasAccumulator(*BINNING)
        b = MinimumBiasAccumulator(*BINNING)
        h = Histogram2D(*BINNING)
        h.values += 1.0
        b.add(h)
        a.merge(b)
        assert a.n_events == 1
        assert a.integral() == 160.0
