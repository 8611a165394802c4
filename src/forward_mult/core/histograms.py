"""Fixed-binning 2-D histograms and the long-lived accumulators built on them"""
import numpy as np
import logging
from typing import Dict, Iterator, List, Optional, Tuple
from .geometry import RingId, ring_ids, ring_name

logger = logging.getLogger(__name__)


class Histogram2D:
    """
    Eta x phi histogram on numpy arrays.

    Besides bin content it carries the per-ring quality bit ``skip_ring``
    set by the density calculator when a ring's data is an outlier.
    """

    def __init__(self,
                 eta_bins: int,
                 eta_min: float,
                 eta_max: float,
                 phi_bins: int,
                 name: str = ''):
        self.name = name
        self.eta_edges = np.linspace(eta_min, eta_max, eta_bins + 1)
        self.phi_edges = np.linspace(0.0, 2 * np.pi, phi_bins + 1)
        self.values = np.zeros((eta_bins, phi_bins))
        self.skip_ring = False

    @classmethod
    def like(cls, other: 'Histogram2D', name: str = '') -> 'Histogram2D':
        """Empty histogram with the binning of another one"""
        return cls(
            len(other.eta_edges) - 1,
            float(other.eta_edges[0]),
            float(other.eta_edges[-1]),
            len(other.phi_edges) - 1,
            name=name or other.name
        )

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    @property
    def eta_centers(self) -> np.ndarray:
        return 0.5 * (self.eta_edges[:-1] + self.eta_edges[1:])

    def same_binning(self, other: 'Histogram2D') -> bool:
        return (self.shape == other.shape
                and np.allclose(self.eta_edges, other.eta_edges)
                and np.allclose(self.phi_edges, other.phi_edges))

    def fill(self, eta: np.ndarray, phi: np.ndarray, weights: np.ndarray) -> None:
        """Add weights at (eta, phi); entries outside the eta axis are dropped"""
        eta = np.asarray(eta, dtype=float).ravel()
        phi = np.asarray(phi, dtype=float).ravel()
        weights = np.asarray(weights, dtype=float).ravel()

        filled, _, _ = np.histogram2d(
            eta, phi,
            bins=[self.eta_edges, self.phi_edges],
            weights=weights
        )
        self.values += filled

    def add(self, other: 'Histogram2D', scale: float = 1.0) -> None:
        """
        Add the content of another histogram.

        Raises:
            ValueError: If the binning differs
        """
        if not self.same_binning(other):
            raise ValueError(f"Cannot add '{other.name}' to '{self.name}': binning differs")
        self.values += scale * other.values

    def scale(self, factor) -> None:
        self.values *= factor

    def reset(self) -> None:
        """Zero the content and clear the quality bit"""
        self.values.fill(0.0)
        self.skip_ring = False

    def integral(self) -> float:
        return float(np.sum(self.values))

    def projection_eta(self) -> np.ndarray:
        """Sum over phi"""
        return self.values.sum(axis=1)

    def copy(self) -> 'Histogram2D':
        h = Histogram2D.like(self)
        h.values = self.values.copy()
        h.skip_ring = self.skip_ring
        return h


class RingHistograms:
    """Working histogram set: one Histogram2D per ring, cleared every event"""

    def __init__(self, eta_bins: int, eta_min: float, eta_max: float, phi_bins: int):
        self._histos: Dict[RingId, Histogram2D] = {
            ring: Histogram2D(eta_bins, eta_min, eta_max, phi_bins, name=ring_name(ring))
            for ring in ring_ids()
        }

    def get(self, detector: int, ring: str) -> Optional[Histogram2D]:
        return self._histos.get((detector, ring))

    def __getitem__(self, ring: RingId) -> Histogram2D:
        return self._histos[ring]

    def __iter__(self) -> Iterator[Tuple[RingId, Histogram2D]]:
        return iter(self._histos.items())

    def __len__(self) -> int:
        return len(self._histos)

    def clear(self) -> None:
        for h in self._histos.values():
            h.reset()

    def skipped_rings(self) -> List[RingId]:
        return [ring for ring, h in self._histos.items() if h.skip_ring]

    def is_empty(self) -> bool:
        return all(h.integral() == 0 and not h.skip_ring for h in self._histos.values())


class RingSums:
    """
    Per vertex bin ring-sum accumulators.

    Long-lived: updated by the histogram collector for every collected event
    and merged across workers at run end.
    """

    def __init__(self, vertex_bins: int, eta_bins: int, eta_min: float, eta_max: float,
                 phi_bins: int):
        self.vertex_bins = vertex_bins
        self.sums: Dict[int, RingHistograms] = {
            ivz: RingHistograms(eta_bins, eta_min, eta_max, phi_bins)
            for ivz in range(1, vertex_bins + 1)
        }
        self.event_counts = np.zeros(vertex_bins, dtype=np.int64)

    def add(self, histos: RingHistograms, vertex_bin: int) -> None:
        """
        Add one event's working histograms to the sums of a vertex bin.

        Raises:
            IndexError: If vertex_bin is outside 1..vertex_bins
        """
        if vertex_bin not in self.sums:
            raise IndexError(f"Vertex bin {vertex_bin} outside 1..{self.vertex_bins}")
        target = self.sums[vertex_bin]
        for ring, h in histos:
            target[ring].add(h)
        self.event_counts[vertex_bin - 1] += 1

    def merge(self, other: 'RingSums') -> None:
        if other.vertex_bins != self.vertex_bins:
            raise ValueError("Cannot merge ring sums with different vertex binning")
        for ivz, histos in other.sums.items():
            for ring, h in histos:
                self.sums[ivz][ring].add(h)
        self.event_counts += other.event_counts

    def to_arrays(self) -> Dict[str, np.ndarray]:
        """{'FMD1I': array(vertex_bins, eta, phi), ...} for persistence"""
        arrays = {}
        for ring in ring_ids():
            arrays[ring_name(ring)] = np.stack([
                self.sums[ivz][ring].values for ivz in range(1, self.vertex_bins + 1)
            ])
        return arrays


class MinimumBiasAccumulator:
    """Run-long sum of summary histograms from qualifying events; never reset"""

    def __init__(self, eta_bins: int, eta_min: float, eta_max: float, phi_bins: int):
        self.histogram = Histogram2D(eta_bins, eta_min, eta_max, phi_bins, name='minimum_bias')
        self.n_events = 0

    def add(self, summary: Histogram2D) -> None:
        self.histogram.add(summary)
        self.n_events += 1

    def integral(self) -> float:
        return self.histogram.integral()

    def merge(self, other: 'MinimumBiasAccumulator') -> None:
        self.histogram.add(other.histogram)
        self.n_events += other.n_events

    def dndeta(self) -> np.ndarray:
        """Per-event eta distribution (zeros when no event was added)"""
        if self.n_events == 0:
            return np.zeros(self.histogram.shape[0])
        width = np.diff(self.histogram.eta_edges)
        return self.histogram.projection_eta() / (self.n_events * width)
