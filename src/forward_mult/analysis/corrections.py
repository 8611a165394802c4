"""Multiplicative correction maps applied to the working histograms"""
import numpy as np
import logging
from pathlib import Path
from typing import Dict, Optional

from ..core.geometry import RingId, ring_ids, ring_name
from ..core.histograms import RingHistograms
from ..exceptions import CorrectionMapError
from ..flags import CorrectionFlags

logger = logging.getLogger(__name__)

# Corrections implemented as per ring, per vertex bin multiplicative maps
MAP_CORRECTIONS = (
    CorrectionFlags.SECONDARY_MAP,
    CorrectionFlags.ACCEPTANCE,
    CorrectionFlags.NOISE_GAIN,
)
ALL_MAP_CORRECTIONS = (
    CorrectionFlags.SECONDARY_MAP | CorrectionFlags.ACCEPTANCE | CorrectionFlags.NOISE_GAIN
)


class CorrectionMaps:
    """
    Per ring, per vertex bin (eta, phi) maps.

    Maps are stored as ``{flag: {ring: array(vertex_bins, eta_bins, phi_bins)}}``.
    The .npz layout uses keys like ``secondary_map/FMD2I``.
    """

    def __init__(self, maps: Dict[CorrectionFlags, Dict[RingId, np.ndarray]], vertex_bins: int):
        self.maps = maps
        self.vertex_bins = vertex_bins

    @classmethod
    def unit(cls, vertex_bins: int, eta_bins: int, phi_bins: int) -> 'CorrectionMaps':
        """Maps that leave the histograms unchanged"""
        ones = np.ones((vertex_bins, eta_bins, phi_bins))
        maps = {flag: {ring: ones.copy() for ring in ring_ids()} for flag in MAP_CORRECTIONS}
        return cls(maps, vertex_bins)

    @classmethod
    def from_npz(cls, path: Path, vertex_bins: int, eta_bins: int, phi_bins: int) -> 'CorrectionMaps':
        """
        Load maps from a numpy archive; missing maps are unit maps.

        Raises:
            CorrectionMapError: If the file is missing or a map has the wrong shape
        """
        path = Path(path)
        if not path.exists():
            raise CorrectionMapError(f"maps file not found: {path}")

        maps = cls.unit(vertex_bins, eta_bins, phi_bins).maps
        expected = (vertex_bins, eta_bins, phi_bins)
        with np.load(path) as archive:
            for key in archive.files:
                flag_name, _, name = key.partition('/')
                try:
                    flag = CorrectionFlags.from_names([flag_name])
                except ValueError as e:
                    raise CorrectionMapError(f"unexpected map '{key}' in {path}") from e
                ring = next((r for r in ring_ids() if ring_name(r) == name), None)
                if flag not in maps or ring is None:
                    raise CorrectionMapError(f"unexpected map '{key}' in {path}")
                values = archive[key]
                if values.shape != expected:
                    raise CorrectionMapError(
                        f"map '{key}' has shape {values.shape}, expected {expected}"
                    )
                maps[flag][ring] = values.astype(float)

        logger.info(f"Loaded correction maps from {path}")
        return cls(maps, vertex_bins)

    def save_npz(self, path: Path) -> None:
        arrays = {
            f"{flag.name.lower()}/{ring_name(ring)}": values
            for flag, per_ring in self.maps.items()
            for ring, values in per_ring.items()
        }
        np.savez_compressed(path, **arrays)

    def get(self, flag: CorrectionFlags, ring: RingId, vertex_bin: int) -> Optional[np.ndarray]:
        per_ring = self.maps.get(flag)
        if per_ring is None or ring not in per_ring:
            return None
        return per_ring[ring][vertex_bin - 1]


class CorrectionApplier:
    """Apply the maps selected by the needed-corrections mask"""

    def __init__(self, maps: CorrectionMaps):
        self.maps = maps
        self.run = None

    def set_run_configuration(self, run) -> None:
        """Bind the run configuration whose needed-corrections mask is applied"""
        self.run = run

    def correct(self, histos: RingHistograms, vertex_bin: int,
                needed: Optional[CorrectionFlags] = None) -> bool:
        """
        Multiply every working histogram by the selected maps.

        Args:
            histos: Working histogram set
            vertex_bin: 1-based vertex bin of the event
            needed: Active corrections; defaults to the bound run's mask, or
                every map when no run is bound

        Returns:
            False if the vertex bin has no maps or a map has the wrong shape
        """
        if needed is None:
            needed = self.run.needed_corrections if self.run is not None else ALL_MAP_CORRECTIONS

        if not 1 <= vertex_bin <= self.maps.vertex_bins:
            logger.warning(f"No corrections for vertex bin {vertex_bin}")
            return False

        for flag in MAP_CORRECTIONS:
            if flag not in needed:
                continue
            for ring, h in histos:
                factor = self.maps.get(flag, ring, vertex_bin)
                if factor is None:
                    logger.warning(f"Missing {flag.name} map for {h.name}")
                    return False
                if factor.shape != h.shape:
                    logger.warning(
                        f"{flag.name} map for {h.name} has shape {factor.shape}, "
                        f"histogram has {h.shape}"
                    )
                    return False
                h.scale(factor)

        return True

