"""Inclusive charged-particle density per ring, with outlier flagging"""
import numpy as np
import logging
from typing import Tuple

from ..core.geometry import sector_phi
from ..core.histograms import Histogram2D, RingHistograms
from ..core.records import DetectorSnapshot
from ..constants import (
    MAX_PARTICLES_DEFAULT,
    MAX_OUTLIER_FRACTION_DEFAULT,
    CENTRAL_OUTLIER_FRACTION_DEFAULT,
    CENTRAL_CUT_DEFAULT,
)

logger = logging.getLogger(__name__)


class DensityCalculator:
    """Estimate the number of particles per (eta, phi) bin of each ring"""

    def __init__(self,
                 max_particles: int = MAX_PARTICLES_DEFAULT,
                 max_outlier_fraction: float = MAX_OUTLIER_FRACTION_DEFAULT,
                 central_outlier_fraction: float = CENTRAL_OUTLIER_FRACTION_DEFAULT,
                 central_cut: float = CENTRAL_CUT_DEFAULT,
                 use_poisson: bool = True):
        """
        Initialize density calculator.

        Args:
            max_particles: Strips with more particles than this are saturated
            max_outlier_fraction: Saturated-strip fraction that flags a ring
            central_outlier_fraction: Same, for central events
            central_cut: Centrality (%) below which an event counts as central
            use_poisson: Use the Poisson (empty strip) estimate for high-flux events
        """
        self.max_particles = max_particles
        self.max_outlier_fraction = max_outlier_fraction
        self.central_outlier_fraction = central_outlier_fraction
        self.central_cut = central_cut
        self.use_poisson = use_poisson

    def outlier_limit(self, centrality: float) -> float:
        """Allowed saturated-strip fraction for an event of this centrality"""
        if 0 <= centrality < self.central_cut:
            return self.central_outlier_fraction
        return self.max_outlier_fraction

    @staticmethod
    def count_particles(signals: np.ndarray) -> np.ndarray:
        """Particles per strip from the merged signal: at least one per hit strip"""
        valid = np.isfinite(signals) & (signals > 0)
        counts = np.zeros_like(signals)
        counts[valid] = np.maximum(1.0, np.rint(signals[valid]))
        return counts

    def poisson_density(self, h: Histogram2D, eta: np.ndarray, phi: np.ndarray,
                        counts: np.ndarray, valid: np.ndarray) -> np.ndarray:
        """
        Poisson estimate per bin from the fraction of empty strips.

        Bins where every strip is hit fall back to straight counting.
        """
        bins = [h.eta_edges, h.phi_edges]
        n_total, _, _ = np.histogram2d(eta[valid], phi[valid], bins=bins)
        empty = valid & (counts == 0)
        n_empty, _, _ = np.histogram2d(eta[empty], phi[empty], bins=bins)
        n_counted, _, _ = np.histogram2d(eta[valid], phi[valid], bins=bins,
                                         weights=counts[valid])

        density = n_counted.copy()
        usable = (n_total > 0) & (n_empty > 0)
        density[usable] = -np.log(n_empty[usable] / n_total[usable]) * n_total[usable]
        return density

    def calculate(self,
                  snapshot: DetectorSnapshot,
                  histos: RingHistograms,
                  low_flux: bool,
                  centrality: float,
                  ip: Tuple[float, float, float]) -> bool:
        """
        Fill the working histograms from the merged snapshot.

        Sets ``skip_ring`` on every ring whose saturated-strip fraction is
        above the outlier limit.

        Args:
            snapshot: Merged signals from the sharing filter
            histos: Working histogram set to fill
            low_flux: Count particles directly instead of the Poisson estimate
            centrality: Event centrality (%)
            ip: Interaction point (x, y, z) in cm

        Returns:
            False if the snapshot is empty or a ring has no working histogram
        """
        if snapshot.is_empty:
            logger.warning("Empty detector snapshot")
            return False

        limit = self.outlier_limit(centrality)
        poisson = self.use_poisson and not low_flux

        for ring, signals in snapshot.signals.items():
            h = histos.get(*ring)
            if h is None:
                logger.warning(f"No working histogram for ring {ring}")
                return False

            eta = np.broadcast_to(snapshot.eta[ring], signals.shape)
            phi = sector_phi(ring, ip[0], ip[1])
            valid = np.isfinite(signals)
            counts = self.count_particles(signals)

            if poisson:
                h.values += self.poisson_density(h, eta, phi, counts, valid)
            else:
                h.fill(eta[valid], phi[valid], counts[valid])

            n_valid = int(np.count_nonzero(valid))
            n_saturated = int(np.count_nonzero(counts > self.max_particles))
            fraction = n_saturated / n_valid if n_valid else 0.0
            if fraction > limit:
                h.skip_ring = True
                logger.debug(
                    f"Ring {h.name} flagged: {fraction:.3f} saturated strips > {limit:.3f}"
                )

        return True
