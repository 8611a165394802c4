"""Repair of known hardware artifacts in the raw forward detector payload"""
import numpy as np
import logging
from typing import Dict, List, Optional

from ..core.event import DetectorPayload
from ..core.geometry import RingId, parse_ring_name, strip_eta
from ..constants import RECO_NOISE_FACTOR_DEFAULT, NOISE_PER_STRIP_MIP

logger = logging.getLogger(__name__)


class ESDFixer:
    """
    Fix up raw detector data before hit merging.

    Three repairs are applied in place: the noise suppression applied at
    reconstruction is partly undone, known dead strips are invalidated,
    and strip pseudorapidity is recomputed for the event vertex.
    """

    def __init__(self,
                 reco_noise_factor: int = RECO_NOISE_FACTOR_DEFAULT,
                 recalculate_eta: bool = True,
                 dead_strips: Optional[Dict[str, List[List[int]]]] = None,
                 noise_per_strip: float = NOISE_PER_STRIP_MIP):
        """
        Initialize fixer.

        Args:
            reco_noise_factor: Noise factor the analysis wants to work with
            recalculate_eta: Recompute strip eta for the event vertex
            dead_strips: {'FMD1I': [[sector, strip], ...], ...}
            noise_per_strip: Noise over gain per strip (MIP)
        """
        self.reco_noise_factor = reco_noise_factor
        self.recalculate_eta = recalculate_eta
        self.noise_per_strip = noise_per_strip
        self.dead_strips: Dict[RingId, np.ndarray] = {}
        for name, pairs in (dead_strips or {}).items():
            self.dead_strips[parse_ring_name(name)] = np.asarray(pairs, dtype=int).reshape(-1, 2)

    def find_target_noise_factor(self, payload: DetectorPayload, dry_run: bool = False) -> int:
        """
        Noise factor difference that has to be undone.

        A value <= 0 means the payload needs no noise fix (or cannot be
        fixed), in which case the noise/gain correction is not trustworthy.

        Args:
            payload: Representative raw payload
            dry_run: Only compute, do not log

        Returns:
            Target noise factor
        """
        if not payload.needs_noise_fix:
            if not dry_run:
                logger.info("Payload does not need a noise fix")
            return 0

        target = self.reco_noise_factor - payload.noise_factor
        if not dry_run:
            logger.info(
                f"Target noise factor {target} "
                f"(analysis {self.reco_noise_factor}, reconstruction {payload.noise_factor})"
            )
        return max(target, 0)

    def set_reco_noise_factor(self, value: int) -> None:
        logger.info(f"Reco noise factor set to {value}")
        self.reco_noise_factor = value

    def fix(self, payload: DetectorPayload, ip_z: float) -> None:
        """
        Repair the payload in place.

        Args:
            payload: Raw payload of the current event
            ip_z: Vertex z position (cm)
        """
        target = self.find_target_noise_factor(payload, dry_run=True)
        correction = target * self.noise_per_strip

        for ring, signals in payload.signals.items():
            if correction > 0:
                hit = np.isfinite(signals) & (signals > 0)
                signals[hit] += correction

            dead = self.dead_strips.get(ring)
            if dead is not None and len(dead):
                n_sectors, n_strips = signals.shape
                inside = (dead[:, 0] < n_sectors) & (dead[:, 1] < n_strips)
                signals[dead[inside, 0], dead[inside, 1]] = np.nan

            if self.recalculate_eta:
                payload.eta[ring] = strip_eta(ring, ip_z)

        if correction > 0:
            payload.noise_factor = self.reco_noise_factor
            payload.needs_noise_fix = False
