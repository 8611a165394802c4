"""Pipeline context for state flow between stages.

EventContext carries every piece of per-event state through the stages.
It is allocated once per run and cleared before each event, which makes the
reset-before-each-event rule structural: all state a stage can see lives in
the context and ``clear()`` resets all of it.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..analysis.event_inspector import InspectionResult
from ..core.event import RawEvent
from ..core.histograms import RingHistograms
from ..core.records import DetectorSnapshot, EventPlaneRecord, ForwardOutput
from ..flags import CollisionSystem, CorrectionFlags, EVENTPLANE_SYSTEM
from ..constants import SQRT_S_NN_DEFAULT


@dataclass(frozen=True)
class RunConfiguration:
    """Run-wide settings fixed before the first event.

    Attributes:
        needed_corrections: Correction maps applied every event
        enable_low_flux: If False the low-flux flag is forced off
        eventplane_system: The only collision system that gets an event plane
        collision_system: Collision system read from the run header
        sqrt_s_nn: Collision energy (GeV) read from the run header
    """

    needed_corrections: CorrectionFlags
    enable_low_flux: bool = True
    eventplane_system: CollisionSystem = EVENTPLANE_SYSTEM
    collision_system: CollisionSystem = CollisionSystem.UNKNOWN
    sqrt_s_nn: float = SQRT_S_NN_DEFAULT


@dataclass
class EventContext:
    """Mutable per-event state shared by the stages.

    Attributes:
        histos: Working histogram set (per ring)
        snapshot: Merged detector data from the sharing filter
        output: Processed output record
        eventplane: Reaction-plane record
        run: Run configuration, set by the pre-run hook

        event: Raw event being processed
        inspection: Event inspector results
        n_skip: Rings flagged as outliers
        store: Event marked for storage
        accepted: Event passed every gate
        rejected_at: Name of the stage that rejected the event
        eventplane_failed: Soft failure of the reaction-plane stage
        minimum_bias: Event was added to the minimum-bias accumulator
    """

    histos: RingHistograms
    snapshot: DetectorSnapshot
    output: ForwardOutput
    eventplane: EventPlaneRecord
    run: Optional[RunConfiguration] = None

    event: Optional[RawEvent] = None
    inspection: InspectionResult = field(default_factory=InspectionResult)
    n_skip: int = 0
    store: bool = False
    accepted: bool = False
    rejected_at: Optional[str] = None
    eventplane_failed: bool = False
    minimum_bias: bool = False

    def clear(self) -> None:
        """Reset all per-event state; run configuration is kept"""
        self.histos.clear()
        self.snapshot.clear()
        self.output.clear()
        self.eventplane.clear()
        self.event = None
        self.inspection = InspectionResult()
        self.n_skip = 0
        self.store = False
        self.accepted = False
        self.rejected_at = None
        self.eventplane_failed = False
        self.minimum_bias = False

    def mark_for_store(self) -> None:
        self.store = True

