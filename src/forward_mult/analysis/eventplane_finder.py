"""Reaction-plane estimate from the forward particle density"""
import numpy as np
import logging
from typing import Optional, Tuple

from ..core.event import RawEvent
from ..core.histograms import Histogram2D, RingHistograms
from ..core.records import EventPlaneRecord
from ..constants import (
    EVENTPLANE_HARMONIC,
    EVENTPLANE_ETA_GAP_DEFAULT,
    EVENTPLANE_MIN_WEIGHT_DEFAULT,
)

logger = logging.getLogger(__name__)


def q_vector(values: np.ndarray, phi_centers: np.ndarray, harmonic: int) -> Tuple[float, float, float]:
    """(Qx, Qy, sum of weights) of an (eta, phi) density block"""
    weights = values.sum(axis=0)
    qx = float(np.sum(weights * np.cos(harmonic * phi_centers)))
    qy = float(np.sum(weights * np.sin(harmonic * phi_centers)))
    return qx, qy, float(weights.sum())


class EventPlaneFinder:
    """Second-harmonic event plane from the A (eta > 0) and C (eta < 0) sides"""

    def __init__(self,
                 eta_gap: float = EVENTPLANE_ETA_GAP_DEFAULT,
                 min_weight: float = EVENTPLANE_MIN_WEIGHT_DEFAULT,
                 harmonic: int = EVENTPLANE_HARMONIC):
        self.eta_gap = eta_gap
        self.min_weight = min_weight
        self.harmonic = harmonic

    def _density(self, summary: Optional[Histogram2D], histos: RingHistograms) -> Optional[Histogram2D]:
        if summary is not None and summary.integral() > 0:
            return summary

        combined = None
        for _, h in histos:
            if h.skip_ring:
                continue
            if combined is None:
                combined = Histogram2D.like(h, name='eventplane_input')
            combined.add(h)
        return combined

    def find_eventplane(self,
                        event: Optional[RawEvent],
                        summary: Optional[Histogram2D],
                        histos: RingHistograms,
                        record: EventPlaneRecord = None) -> Tuple[EventPlaneRecord, bool]:
        """
        Estimate the event plane angle.

        The summary histogram is used when it already has content, otherwise
        the non-flagged working histograms are combined.

        Args:
            event: Raw event
            summary: Summary density histogram of the output record
            histos: Working histogram set
            record: Record to fill; a new one is created when None

        Returns:
            (record, success). Fails when a side has too little weight.
        """
        if record is None:
            record = EventPlaneRecord()
        if event is None:
            return record, False

        density = self._density(summary, histos)
        if density is None:
            return record, False

        eta = density.eta_centers
        phi = 0.5 * (density.phi_edges[:-1] + density.phi_edges[1:])
        half_gap = self.eta_gap / 2

        qx_a, qy_a, w_a = q_vector(density.values[eta > half_gap], phi, self.harmonic)
        qx_c, qy_c, w_c = q_vector(density.values[eta < -half_gap], phi, self.harmonic)

        if w_a < self.min_weight or w_c < self.min_weight:
            logger.debug(f"Too little weight for event plane: A={w_a:.3g}, C={w_c:.3g}")
            return record, False

        n = self.harmonic
        record.qx = qx_a + qx_c
        record.qy = qy_a + qy_c
        record.weight_a = w_a
        record.weight_c = w_c
        record.psi_a = float(np.mod(np.arctan2(qy_a, qx_a) / n, 2 * np.pi / n))
        record.psi_c = float(np.mod(np.arctan2(qy_c, qx_c) / n, 2 * np.pi / n))
        record.psi = float(np.mod(np.arctan2(record.qy, record.qx) / n, 2 * np.pi / n))
        record.filled = True
        return record, True
