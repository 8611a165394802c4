"""
Per-event records owned by the pipeline.

Each record is allocated once per run and cleared at the start of every
event, so no stage can observe data left over from a previous event.
"""
from dataclasses import dataclass, fields
from typing import Dict, Optional
import numpy as np

from .geometry import RingId
from .histograms import Histogram2D
from ..flags import CollisionSystem, TriggerBits
from ..constants import CENTRALITY_UNSET, SQRT_S_NN_DEFAULT


class DetectorSnapshot:
    """Merged per-strip signals produced by the sharing filter"""

    def __init__(self):
        self.signals: Dict[RingId, np.ndarray] = {}
        self.eta: Dict[RingId, np.ndarray] = {}

    def set_ring(self, ring: RingId, signals: np.ndarray, eta: np.ndarray) -> None:
        self.signals[ring] = signals
        self.eta[ring] = eta

    def clear(self) -> None:
        self.signals.clear()
        self.eta.clear()

    def update_from(self, other: 'DetectorSnapshot') -> None:
        """Take over the rings of a snapshot returned by a sharing filter"""
        if other is self:
            return
        for ring, signals in other.signals.items():
            self.set_ring(ring, signals, other.eta[ring])

    @property
    def is_empty(self) -> bool:
        return not self.signals

    def total_signal(self) -> float:
        return float(sum(np.nansum(s) for s in self.signals.values()))


class ForwardOutput:
    """
    Processed output record of one event.

    Becomes visible to the surrounding framework once the event is marked
    for storage.
    """

    def __init__(self, summary: Histogram2D):
        self.histogram = summary
        self.clear()

    def clear(self) -> None:
        self.trigger_bits = TriggerBits.NONE
        self.sqrt_s_nn = SQRT_S_NN_DEFAULT
        self.system = CollisionSystem.UNKNOWN
        self.centrality = CENTRALITY_UNSET
        self.n_clusters = 0
        self.ip_z: Optional[float] = None
        self.histogram.reset()

    def is_trigger_bits(self, bits: TriggerBits) -> bool:
        """True if all of ``bits`` are set"""
        return (self.trigger_bits & bits) == bits

    @property
    def has_ip_z(self) -> bool:
        return self.ip_z is not None

    def to_row(self) -> dict:
        """Flat record for the stored-events table"""
        return {
            'trigger_bits': int(self.trigger_bits),
            'sqrt_s_nn': self.sqrt_s_nn,
            'system': self.system.value,
            'centrality': self.centrality,
            'n_clusters': self.n_clusters,
            'ip_z': np.nan if self.ip_z is None else self.ip_z,
            'summary_integral': self.histogram.integral(),
        }


@dataclass
class EventPlaneRecord:
    """Reaction-plane estimate of one event (second harmonic)"""

    psi: float = np.nan
    psi_a: float = np.nan
    psi_c: float = np.nan
    qx: float = 0.0
    qy: float = 0.0
    weight_a: float = 0.0
    weight_c: float = 0.0
    filled: bool = False

    def clear(self) -> None:
        self.psi = np.nan
        self.psi_a = np.nan
        self.psi_c = np.nan
        self.qx = 0.0
        self.qy = 0.0
        self.weight_a = 0.0
        self.weight_c = 0.0
        self.filled = False

    def update_from(self, other: 'EventPlaneRecord') -> None:
        """Copy the estimate of a record returned by an event plane finder"""
        if other is self:
            return
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))

    @property
    def is_filled(self) -> bool:
        return self.filled
