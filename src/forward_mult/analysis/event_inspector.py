"""Event inspection: trigger, vertex, centrality and flux classification"""
import numpy as np
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..core.event import RawEvent
from ..flags import CollisionSystem, FoundFlags, TriggerBits
from ..constants import (
    CENTRALITY_UNSET,
    LOW_FLUX_CUT_DEFAULT,
    SQRT_S_NN_DEFAULT,
    VERTEX_BINS_DEFAULT,
    VERTEX_MIN_DEFAULT,
    VERTEX_MAX_DEFAULT,
)

logger = logging.getLogger(__name__)


@dataclass
class InspectionResult:
    """Everything the inspector reports about one event"""

    found: FoundFlags = FoundFlags.NONE
    triggers: TriggerBits = TriggerBits.NONE
    low_flux: bool = False
    vertex_bin: int = 0
    ip: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    centrality: float = CENTRALITY_UNSET
    n_clusters: int = 0

    @property
    def ip_z(self) -> float:
        return self.ip[2]


class EventInspector:
    """Classify events and locate them on the vertex axis"""

    def __init__(self,
                 vertex_bins: int = VERTEX_BINS_DEFAULT,
                 vertex_min: float = VERTEX_MIN_DEFAULT,
                 vertex_max: float = VERTEX_MAX_DEFAULT,
                 low_flux_cut: int = LOW_FLUX_CUT_DEFAULT,
                 use_pileup_flag: bool = True,
                 collision_system: CollisionSystem = CollisionSystem.UNKNOWN,
                 sqrt_s_nn: float = SQRT_S_NN_DEFAULT):
        """
        Initialize event inspector.

        Args:
            vertex_bins: Number of vertex bins
            vertex_min: Lower edge of the vertex axis (cm)
            vertex_max: Upper edge of the vertex axis (cm)
            low_flux_cut: Cluster count below which an event is low-flux
            use_pileup_flag: Copy the event pile-up tag into the trigger bits
            collision_system: Fallback collision system
            sqrt_s_nn: Fallback collision energy (GeV)
        """
        self.vertex_edges = np.linspace(vertex_min, vertex_max, vertex_bins + 1)
        self.low_flux_cut = low_flux_cut
        self.use_pileup_flag = use_pileup_flag
        self._system = collision_system
        self._energy = sqrt_s_nn

    def read_run_details(self, event: Optional[RawEvent]) -> None:
        """Take collision system and energy from the run header when it has them"""
        if event is None:
            return
        header = event.header
        if header.collision_system is not CollisionSystem.UNKNOWN:
            self._system = header.collision_system
        if header.sqrt_s_nn > 0:
            self._energy = header.sqrt_s_nn
        logger.info(f"Run details: system={self._system.value}, sqrt(s_NN)={self._energy} GeV")

    def get_collision_system(self) -> CollisionSystem:
        return self._system

    def get_energy(self) -> float:
        return self._energy

    def find_vertex_bin(self, z: float) -> int:
        """1-based vertex bin, 0 if z is outside the axis"""
        if z < self.vertex_edges[0] or z >= self.vertex_edges[-1]:
            return 0
        return int(np.searchsorted(self.vertex_edges, z, side='right'))

    def process(self, event: Optional[RawEvent]) -> InspectionResult:
        """
        Inspect one event.

        Args:
            event: Raw event, None if the input had no event

        Returns:
            InspectionResult with the found-conditions flags and event properties
        """
        result = InspectionResult()
        if event is None:
            result.found |= FoundFlags.NO_EVENT
            return result

        triggers = TriggerBits(event.triggers)
        if self.use_pileup_flag and event.pileup:
            triggers |= TriggerBits.PILEUP
        if TriggerBits.INEL in triggers and event.n_clusters > 0:
            triggers |= TriggerBits.INEL_GT0
        result.triggers = triggers

        if not (triggers & ~TriggerBits.PILEUP):
            result.found |= FoundFlags.NO_TRIGGERS

        result.centrality = event.centrality
        result.n_clusters = event.n_clusters
        result.low_flux = event.n_clusters < self.low_flux_cut

        if not event.has_spd:
            result.found |= FoundFlags.NO_SPD
        if event.fmd is None:
            result.found |= FoundFlags.NO_FMD

        if event.vertex is None:
            result.found |= FoundFlags.NO_VERTEX
            return result

        x, y, z = (float(v) for v in event.vertex)
        result.ip = (x, y, z)
        result.vertex_bin = self.find_vertex_bin(z)
        if not event.vertex_ok or result.vertex_bin == 0:
            result.found |= FoundFlags.BAD_VERTEX

        return result
