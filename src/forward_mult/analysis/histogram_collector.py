"""Fold corrected ring histograms into the ring sums and the summary histogram"""
import numpy as np
import logging
from typing import Dict, Tuple

from ..core.geometry import RingId, ring_ids, strip_eta
from ..core.histograms import Histogram2D, RingHistograms, RingSums
from ..constants import (
    ETA_BINS_DEFAULT,
    ETA_MIN_DEFAULT,
    ETA_MAX_DEFAULT,
    VERTEX_BINS_DEFAULT,
    VERTEX_MIN_DEFAULT,
    VERTEX_MAX_DEFAULT,
)

logger = logging.getLogger(__name__)

CENTRALITY_EDGES = np.linspace(0.0, 100.0, 11)


class HistogramCollector:
    """
    Combine ring histograms into one (eta, phi) density.

    In eta bins covered by more than one ring the summary holds the mean of
    the covering rings. Coverage is fixed per vertex bin: an eta bin belongs
    to a ring when it lies completely inside the ring's acceptance seen from
    the vertex bin centre.
    """

    def __init__(self,
                 eta_bins: int = ETA_BINS_DEFAULT,
                 eta_min: float = ETA_MIN_DEFAULT,
                 eta_max: float = ETA_MAX_DEFAULT,
                 vertex_bins: int = VERTEX_BINS_DEFAULT,
                 vertex_min: float = VERTEX_MIN_DEFAULT,
                 vertex_max: float = VERTEX_MAX_DEFAULT):
        self.eta_edges = np.linspace(eta_min, eta_max, eta_bins + 1)
        self.vertex_edges = np.linspace(vertex_min, vertex_max, vertex_bins + 1)
        self.coverage: Dict[int, Dict[RingId, np.ndarray]] = {}
        for ivz in range(1, vertex_bins + 1):
            z = 0.5 * (self.vertex_edges[ivz - 1] + self.vertex_edges[ivz])
            self.coverage[ivz] = {ring: self._ring_coverage(ring, z) for ring in ring_ids()}
        self.centrality_counts = np.zeros(len(CENTRALITY_EDGES) - 1, dtype=np.int64)

    def _ring_coverage(self, ring: RingId, ip_z: float) -> np.ndarray:
        eta = strip_eta(ring, ip_z)
        low, high = eta.min(), eta.max()
        return (self.eta_edges[:-1] >= low) & (self.eta_edges[1:] <= high)

    def eta_range(self, ring: RingId, vertex_bin: int) -> Tuple[int, int]:
        """First and last covered eta bin (0-based), (-1, -1) if none"""
        covered = np.flatnonzero(self.coverage[vertex_bin][ring])
        if len(covered) == 0:
            return -1, -1
        return int(covered[0]), int(covered[-1])

    def collect(self,
                histos: RingHistograms,
                ring_sums: RingSums,
                vertex_bin: int,
                summary: Histogram2D,
                centrality: float) -> bool:
        """
        Add the event to the ring sums and fill the summary histogram.

        Args:
            histos: Corrected working histograms
            ring_sums: Long-lived per vertex bin accumulators
            vertex_bin: 1-based vertex bin
            summary: Summary histogram of the output record
            centrality: Event centrality (%)

        Returns:
            False if the vertex bin is unknown or the binning is inconsistent
        """
        if vertex_bin not in self.coverage:
            logger.warning(f"Vertex bin {vertex_bin} outside collector range")
            return False
        if summary.shape[0] != len(self.eta_edges) - 1:
            logger.warning(
                f"Summary histogram has {summary.shape[0]} eta bins, "
                f"collector expects {len(self.eta_edges) - 1}"
            )
            return False

        total = np.zeros(summary.shape)
        n_rings = np.zeros(summary.shape[0])
        for ring, h in histos:
            if not h.same_binning(summary):
                logger.warning(f"Ring histogram {h.name} binning differs from summary")
                return False
            covered = self.coverage[vertex_bin][ring]
            total[covered] += h.values[covered]
            n_rings += covered

        ring_sums.add(histos, vertex_bin)

        with np.errstate(invalid='ignore', divide='ignore'):
            mean = np.where(n_rings[:, None] > 0, total / n_rings[:, None], 0.0)
        summary.values += mean

        if centrality >= 0:
            index = np.searchsorted(CENTRALITY_EDGES, centrality, side='right') - 1
            if 0 <= index < len(self.centrality_counts):
                self.centrality_counts[index] += 1

        return True
