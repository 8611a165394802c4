"""Toy event generator for demos and tests"""
import numpy as np
import logging
from typing import Iterator, List, Optional

from ..core.event import DetectorPayload, RawEvent, RunHeader
from ..core.geometry import ring_ids, ring_shape
from ..flags import CollisionSystem, TriggerBits
from ..constants import CENTRALITY_UNSET, RECO_NOISE_FACTOR_DEFAULT

logger = logging.getLogger(__name__)


class EventSimulator:
    """
    Generate synthetic forward detector events.

    Hit occupancy scales with the cluster count, hit amplitudes follow a
    Landau-like (log-normal) distribution around one MIP, and a fraction
    of hits leak part of their signal into the neighbouring strip so the
    sharing filter has something to merge.
    """

    def __init__(self,
                 collision_system: CollisionSystem = CollisionSystem.PP,
                 sqrt_s_nn: float = 13000.0,
                 seed: Optional[int] = None,
                 mean_clusters: float = 400.0,
                 vertex_sigma: float = 5.0,
                 no_vertex_fraction: float = 0.05,
                 pileup_fraction: float = 0.02,
                 no_fmd_fraction: float = 0.01,
                 share_fraction: float = 0.1,
                 needs_noise_fix: bool = False,
                 noise_factor: int = RECO_NOISE_FACTOR_DEFAULT):
        """
        Initialize simulator.

        Args:
            collision_system: System written into the run header
            sqrt_s_nn: Collision energy (GeV)
            seed: Seed for numpy's random generator
            mean_clusters: Mean SPD cluster count (central events for PbPb)
            vertex_sigma: Width of the vertex z distribution (cm)
            no_vertex_fraction: Fraction of events without a vertex
            pileup_fraction: Fraction of events tagged as pile-up
            no_fmd_fraction: Fraction of events without a detector payload
            share_fraction: Fraction of hits shared with the next strip
            needs_noise_fix: Mark payloads as reconstructed with a lower noise factor
            noise_factor: Noise factor applied at reconstruction
        """
        self.header = RunHeader(
            collision_system=CollisionSystem.parse(collision_system),
            sqrt_s_nn=sqrt_s_nn,
            reco_noise_factor=noise_factor,
        )
        self.rng = np.random.default_rng(seed)
        self.mean_clusters = mean_clusters
        self.vertex_sigma = vertex_sigma
        self.no_vertex_fraction = no_vertex_fraction
        self.pileup_fraction = pileup_fraction
        self.no_fmd_fraction = no_fmd_fraction
        self.share_fraction = share_fraction
        self.needs_noise_fix = needs_noise_fix
        self.noise_factor = noise_factor

    @property
    def is_heavy_ion(self) -> bool:
        return self.header.collision_system in (CollisionSystem.PBPB, CollisionSystem.XEXE)

    def _triggers(self, n_clusters: int, pileup: bool) -> TriggerBits:
        rng = self.rng
        bits = TriggerBits.NONE
        if n_clusters == 0 and rng.random() < 0.5:
            return TriggerBits.EMPTY
        bits |= TriggerBits.INEL | TriggerBits.OFFLINE | TriggerBits.B
        if n_clusters > 0:
            bits |= TriggerBits.INEL_GT0
        if rng.random() < 0.8:
            bits |= TriggerBits.NSD | TriggerBits.V0AND
        if pileup:
            bits |= TriggerBits.PILEUP
        return bits

    def _payload(self, n_clusters: int) -> DetectorPayload:
        rng = self.rng
        occupancy = min(0.9, 0.02 + n_clusters / 20000.0)
        signals = {}
        for ring in ring_ids():
            n_sectors, n_strips = ring_shape(ring)
            hits = rng.random((n_sectors, n_strips)) < occupancy
            amplitude = rng.lognormal(mean=0.0, sigma=0.3, size=(n_sectors, n_strips))
            # multiple particles per strip in high flux
            amplitude *= 1 + rng.poisson(occupancy, size=(n_sectors, n_strips))
            ring_signal = np.where(hits, amplitude, 0.0)

            shared = hits & (rng.random((n_sectors, n_strips)) < self.share_fraction)
            shared[:, -1] = False
            leak = ring_signal * rng.uniform(0.2, 0.5, size=ring_signal.shape) * shared
            ring_signal -= leak
            ring_signal[:, 1:] += leak[:, :-1]

            noise = rng.normal(0.0, 0.02, size=ring_signal.shape)
            signals[ring] = np.clip(ring_signal + noise, 0.0, None)

        return DetectorPayload(
            signals=signals,
            noise_factor=self.noise_factor,
            needs_noise_fix=self.needs_noise_fix,
        )

    def generate_event(self, event_number: int = 0) -> RawEvent:
        """Draw one event"""
        rng = self.rng
        if self.is_heavy_ion:
            centrality = float(rng.uniform(0.0, 100.0))
            scale = (1.0 - centrality / 100.0) ** 2
        else:
            centrality = CENTRALITY_UNSET
            scale = rng.exponential(0.25)
        n_clusters = int(rng.poisson(self.mean_clusters * scale))

        vertex = None
        if rng.random() >= self.no_vertex_fraction:
            vertex = (
                float(rng.normal(0.0, 0.01)),
                float(rng.normal(0.0, 0.01)),
                float(rng.normal(0.0, self.vertex_sigma)),
            )

        pileup = bool(rng.random() < self.pileup_fraction)
        fmd = None if rng.random() < self.no_fmd_fraction else self._payload(n_clusters)

        return RawEvent(
            header=self.header,
            triggers=self._triggers(n_clusters, pileup),
            vertex=vertex,
            centrality=centrality,
            n_clusters=n_clusters,
            pileup=pileup,
            fmd=fmd,
            event_number=event_number,
        )

    def iter_events(self, n_events: int) -> Iterator[RawEvent]:
        for i in range(n_events):
            yield self.generate_event(i)

    def generate(self, n_events: int) -> List[RawEvent]:
        """
        Draw a list of events.

        Args:
            n_events: Number of events

        Returns:
            Events numbered 0..n_events-1
        """
        events = list(self.iter_events(n_events))
        logger.info(f"Simulated {n_events} {self.header.collision_system.value} events")
        return events
