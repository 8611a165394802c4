"""Input event model: run header, raw detector payload and the recorded event"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import numpy as np

from .geometry import RingId, ring_ids, ring_shape, strip_eta
from ..flags import CollisionSystem, TriggerBits
from ..constants import (
    CENTRALITY_UNSET,
    RECO_NOISE_FACTOR_DEFAULT,
    SQRT_S_NN_DEFAULT,
)


@dataclass
class RunHeader:
    """Run-level conditions shared by every event of a file"""

    collision_system: CollisionSystem = CollisionSystem.UNKNOWN
    sqrt_s_nn: float = SQRT_S_NN_DEFAULT
    reco_noise_factor: int = RECO_NOISE_FACTOR_DEFAULT


@dataclass
class DetectorPayload:
    """
    Raw forward detector data of one event.

    Attributes:
        signals: Per ring signal amplitudes in MIP units, shape (sectors, strips).
            NaN marks an invalid strip.
        eta: Per ring strip pseudorapidity, shape (strips,)
        noise_factor: Noise factor applied during reconstruction
        needs_noise_fix: Whether the reconstruction noise cut must be undone
    """

    signals: Dict[RingId, np.ndarray]
    eta: Dict[RingId, np.ndarray] = field(default_factory=dict)
    noise_factor: int = RECO_NOISE_FACTOR_DEFAULT
    needs_noise_fix: bool = False

    def __post_init__(self):
        for ring in self.signals:
            if ring not in self.eta:
                self.eta[ring] = strip_eta(ring, 0.0)

    @classmethod
    def empty(cls, **kwargs) -> 'DetectorPayload':
        """Payload with all strips at zero signal"""
        signals = {ring: np.zeros(ring_shape(ring)) for ring in ring_ids()}
        return cls(signals=signals, **kwargs)

    def total_signal(self) -> float:
        return float(sum(np.nansum(s) for s in self.signals.values()))


@dataclass
class RawEvent:
    """
    One recorded collision as handed to the pipeline.

    Attributes:
        header: Run conditions
        triggers: Offline trigger bits
        vertex: Interaction point (x, y, z) in cm, None if no vertex was found
        vertex_ok: False if the vertexer flagged the vertex as unreliable
        centrality: Centrality percentile, CENTRALITY_UNSET if unknown
        n_clusters: SPD cluster (tracklet) count
        has_spd: Whether SPD data is present
        pileup: Whether the event was tagged as pile-up
        fmd: Forward detector payload, None if missing
        event_number: Position in the input stream
    """

    header: RunHeader = field(default_factory=RunHeader)
    triggers: TriggerBits = TriggerBits.NONE
    vertex: Optional[Tuple[float, float, float]] = None
    vertex_ok: bool = True
    centrality: float = CENTRALITY_UNSET
    n_clusters: int = 0
    has_spd: bool = True
    pileup: bool = False
    fmd: Optional[DetectorPayload] = None
    event_number: int = 0
