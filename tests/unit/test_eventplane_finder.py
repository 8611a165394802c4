"""
Unit tests for the event plane finder.
"""

import pytest
import numpy as np
from forward_mult.analysis.eventplane_finder import EventPlaneFinder, q_vector
from forward_mult.core.histograms import Histogram2D, RingHistograms
from forward_mult.core.records import EventPlaneRecord


def modulated_summary(psi: float, amplitude: float = 0.5) -> Histogram2D:
    """Flat density with a second harmonic modulation around psi"""
    h = Histogram2D(20, -4.0, 6.0, 20, name='summary')
    phi = 0.5 * (h.phi_edges[:-1] + h.phi_edges[1:])
    h.values[:] = 1.0 + amplitude * np.cos(2 * (phi - psi))
    return h


class TestQVector:
    """Test the flow vector"""

    def test_flat_density_has_no_flow(self):
        """A flat distribution has a vanishing Q vector"""
        phi = np.linspace(0, 2 * np.pi, 21)[:-1] + np.pi / 20
        qx, qy, w = q_vector(np.ones((4, 20)), phi, 2)
        assert qx == pytest.approx(0.0, abs=1e-9)
        assert qy == pytest.approx(0.0, abs=1e-9)
        assert w == 80.0


class TestFindEventPlane:
    """Test the event plane estimate"""

    def test_recovers_plane_angle(self, sample_event):
        """The reconstructed angle matches the injected one"""
        histos = RingHistograms(20, -4.0, 6.0, 20)
        record, ok = EventPlaneFinder().find_eventplane(
            sample_event, modulated_summary(0.3), histos
        )
        assert ok
        assert record.is_filled
        assert record.psi == pytest.approx(0.3, abs=1e-6)
        assert record.psi_a == pytest.approx(0.3, abs=1e-6)
        assert record.psi_c == pytest.approx(0.3, abs=1e-6)

    def test_angle_range(self, sample_event):
        """Angles are reported in [0, pi)"""
        histos = RingHistograms(20, -4.0, 6.0, 20)
        record, ok = EventPlaneFinder().find_eventplane(
            sample_event, modulated_summary(-0.4), histos
        )
        assert ok
        assert 0.0 <= record.psi < np.pi
        assert record.psi == pytest.approx(np.pi - 0.4, abs=1e-6)

    def test_fills_given_record(self, sample_event):
        """A record passed in is filled in place"""
        record = EventPlaneRecord()
        histos = RingHistograms(20, -4.0, 6.0, 20)
        returned, _ = EventPlaneFinder().find_eventplane(
            sample_event, modulated_summary(0.3), histos, record
        )
        assert returned is record

    def test_no_event_fails(self):
        """Without an event the record stays empty"""
        record, ok = EventPlaneFinder().find_eventplane(
            None, modulated_summary(0.3), RingHistograms(20, -4.0, 6.0, 20)
        )
        assert not ok
        assert not record.is_filled

    def test_one_sided_density_fails(self, sample_event):
        """A side with no weight fails the estimate"""
        summary = modulated_summary(0.3)
        summary.values[summary.eta_centers < 0] = 0.0
        record, ok = EventPlaneFinder().find_eventplane(
            sample_event, summary, RingHistograms(20, -4.0, 6.0, 20)
        )
        assert not ok
        assert np.isnan(record.psi)

    def test_falls_back_to_ring_histograms(self, sample_event):
        """An empty summary is replaced by the non-flagged rings"""
        histos = RingHistograms(20, -4.0, 6.0, 20)
        for _, h in histos:
            h.values[:] = modulated_summary(1.0).values
        empty = Histogram2D(20, -4.0, 6.0, 20)

        record, ok = EventPlaneFinder().find_eventplane(sample_event, empty, histos)

        assert ok
        assert record.psi == pytest.approx(1.0, abs=1e-6)
