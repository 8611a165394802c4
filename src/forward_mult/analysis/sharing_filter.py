"""Sharing filter: merge signal spilled over adjacent strips into single hits"""
import numpy as np
import logging
from typing import Tuple

from ..core.event import DetectorPayload
from ..core.geometry import ring_shape
from ..core.records import DetectorSnapshot
from ..constants import (
    SHARING_LOW_CUT_DEFAULT,
    SHARING_LOW_CUT_LOW_FLUX_DEFAULT,
    SHARING_HIGH_CUT_DEFAULT,
)

logger = logging.getLogger(__name__)


def merge_shared_strips(row: np.ndarray, low_cut: float, high_cut: float) -> np.ndarray:
    """
    Merge shared signals along one sector.

    A strip above ``low_cut`` but below ``high_cut`` whose neighbour is
    also above ``low_cut`` is taken to be a partial deposit of the
    neighbouring hit: its signal is moved onto the larger of the two.

    Args:
        row: Signals of one sector (NaN = invalid strip)
        low_cut: Zero-suppression threshold (MIP)
        high_cut: Threshold below which a strip may be shared (MIP)

    Returns:
        Merged signals, same shape
    """
    merged = np.where(np.isfinite(row) & (row >= low_cut), row, 0.0)
    merged[~np.isfinite(row)] = np.nan

    n = len(merged)
    i = 0
    while i < n - 1:
        current, following = merged[i], merged[i + 1]
        if (np.isfinite(current) and np.isfinite(following)
                and current > 0 and following > 0
                and min(current, following) < high_cut):
            if current >= following:
                merged[i] = current + following
                merged[i + 1] = 0.0
            else:
                merged[i + 1] = current + following
                merged[i] = 0.0
            i += 2
        else:
            i += 1

    return merged


class SharingFilter:
    """Turn the repaired payload into the merged detector snapshot"""

    def __init__(self,
                 low_cut: float = SHARING_LOW_CUT_DEFAULT,
                 low_cut_low_flux: float = SHARING_LOW_CUT_LOW_FLUX_DEFAULT,
                 high_cut: float = SHARING_HIGH_CUT_DEFAULT,
                 merge_shared: bool = True):
        self.low_cut = low_cut
        self.low_cut_low_flux = low_cut_low_flux
        self.high_cut = high_cut
        self.merge_shared = merge_shared

    def filter(self,
               payload: DetectorPayload,
               low_flux: bool,
               ip_z: float,
               snapshot: DetectorSnapshot = None) -> Tuple[DetectorSnapshot, bool]:
        """
        Zero-suppress and merge shared strips, ring by ring.

        Args:
            payload: Repaired raw payload
            low_flux: Use the low-flux zero-suppression threshold
            ip_z: Vertex z position (cm), logged for diagnostics
            snapshot: Snapshot to fill; a new one is created when None

        Returns:
            (snapshot, success). Fails when a ring has the wrong shape.
        """
        if snapshot is None:
            snapshot = DetectorSnapshot()

        low_cut = self.low_cut_low_flux if low_flux else self.low_cut

        for ring, signals in payload.signals.items():
            if signals.shape != ring_shape(ring):
                logger.warning(
                    f"Ring {ring} has shape {signals.shape}, expected {ring_shape(ring)}"
                )
                return snapshot, False

            if self.merge_shared:
                merged = np.vstack([
                    merge_shared_strips(row, low_cut, self.high_cut) for row in signals
                ])
            else:
                merged = np.where(np.isfinite(signals) & (signals >= low_cut), signals, 0.0)
                merged[~np.isfinite(signals)] = np.nan

            snapshot.set_ring(ring, merged, payload.eta[ring].copy())

        logger.debug(
            f"Sharing filter: {len(snapshot.signals)} rings, ip_z={ip_z:.2f} cm, "
            f"total signal {snapshot.total_signal():.1f} MIP"
        )
        return snapshot, not snapshot.is_empty
