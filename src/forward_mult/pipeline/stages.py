"""Pipeline stages of the per-event forward multiplicity chain.

Each stage is a focused unit with a single responsibility. Stages follow the
pattern: receive the event context -> run one collaborator -> return whether
the event may continue. The executor stops at the first stage returning
False.
"""

import logging
from typing import Optional

from ..core.histograms import MinimumBiasAccumulator, RingSums
from ..exceptions import ProcessingError
from ..flags import FoundFlags, TriggerBits
from .context import EventContext
from .timing import TimingStage

logger = logging.getLogger(__name__)


class Stage:
    """Base class: a named step with an optional timing key"""

    name = 'stage'
    timing: Optional[TimingStage] = None

    def applies(self, ctx: EventContext) -> bool:
        """Whether the stage runs for this event at all"""
        return True

    def execute(self, ctx: EventContext) -> bool:
        raise NotImplementedError


class InspectionStage(Stage):
    """Inspect the event, copy its metadata to the output and mark it for storage.

    Gates: no event or no triggers reject before the storage mark; no
    detector payload, no vertex or a bad vertex reject after it. Missing SPD
    data and pile-up do not reject here: pile-up events are removed later,
    from the minimum-bias sum only.
    """

    name = 'inspection'
    timing = TimingStage.EVENT_INSPECTOR

    def __init__(self, inspector):
        self.inspector = inspector

    def execute(self, ctx: EventContext) -> bool:
        result = self.inspector.process(ctx.event)
        ctx.inspection = result
        found = result.found

        if FoundFlags.NO_EVENT in found or FoundFlags.NO_TRIGGERS in found:
            logger.debug(f"Event rejected by inspector: {found!r}")
            return False

        out = ctx.output
        out.trigger_bits = result.triggers
        out.sqrt_s_nn = self.inspector.get_energy()
        out.system = self.inspector.get_collision_system()
        out.centrality = result.centrality
        out.n_clusters = result.n_clusters
        ctx.mark_for_store()

        if FoundFlags.NO_FMD in found or FoundFlags.NO_VERTEX in found:
            logger.debug(f"Event rejected by inspector: {found!r}")
            return False

        out.ip_z = result.ip_z
        if FoundFlags.BAD_VERTEX in found:
            logger.debug(f"Bad vertex at z={result.ip_z:.2f} cm")
            return False

        if not ctx.run.enable_low_flux:
            result.low_flux = False

        return True


class FixerStage(Stage):
    """Repair the raw payload in place; never gates"""

    name = 'fixer'

    def __init__(self, fixer):
        self.fixer = fixer

    def execute(self, ctx: EventContext) -> bool:
        self.fixer.fix(ctx.event.fmd, ctx.inspection.ip_z)
        return True


class SharingStage(Stage):
    """Merge shared strips into the detector snapshot"""

    name = 'sharing'
    timing = TimingStage.SHARING_FILTER

    def __init__(self, sharing_filter):
        self.sharing_filter = sharing_filter

    def execute(self, ctx: EventContext) -> bool:
        insp = ctx.inspection
        snapshot, ok = self.sharing_filter.filter(ctx.event.fmd, insp.low_flux, insp.ip_z)
        if snapshot is not None:
            ctx.snapshot.update_from(snapshot)
        if not ok:
            logger.warning("Sharing filter failed!")
        return ok


class DensityStage(Stage):
    """Per-ring density estimate; sets the ring outlier bits"""

    name = 'density'
    timing = TimingStage.DENSITY_CALCULATOR

    def __init__(self, density_calculator):
        self.density_calculator = density_calculator

    def execute(self, ctx: EventContext) -> bool:
        insp = ctx.inspection
        ok = self.density_calculator.calculate(
            ctx.snapshot, ctx.histos, insp.low_flux, insp.centrality, insp.ip
        )
        if not ok:
            logger.warning("Density calculator failed!")
        return ok


class EventPlaneStage(Stage):
    """Reaction-plane estimate, only for the designated collision system.

    Never rejects: a failure is reported and the chain continues.
    """

    name = 'eventplane'
    timing = TimingStage.EVENTPLANE_FINDER

    def __init__(self, finder):
        self.finder = finder

    def applies(self, ctx: EventContext) -> bool:
        return ctx.output.system == ctx.run.eventplane_system

    def execute(self, ctx: EventContext) -> bool:
        try:
            record, ok = self.finder.find_eventplane(
                ctx.event, ctx.output.histogram, ctx.histos
            )
            if record is not None:
                ctx.eventplane.update_from(record)
        except ProcessingError as e:
            logger.warning(f"Eventplane finder raised: {e}")
            ok = False

        if not ok:
            ctx.eventplane_failed = True
            logger.warning("Eventplane finder failed!")
        return True


class SkipScanStage(Stage):
    """Count rings flagged as outliers; any flagged ring rejects the event"""

    name = 'skip_scan'

    def execute(self, ctx: EventContext) -> bool:
        n_skip = 0
        for _, h in ctx.histos:
            if h.skip_ring:
                n_skip += 1
        ctx.n_skip = n_skip
        if n_skip > 0:
            logger.debug(f"{n_skip} ring(s) flagged as outliers, skipping event")
            return False
        return True


class CorrectionStage(Stage):
    """Apply the run's needed correction maps.

    The applier reads the needed-corrections mask from the run configuration
    it was bound to by the pre-run hook.
    """

    name = 'corrections'
    timing = TimingStage.CORRECTIONS

    def __init__(self, applier):
        self.applier = applier

    def execute(self, ctx: EventContext) -> bool:
        ok = self.applier.correct(ctx.histos, ctx.inspection.vertex_bin)
        if not ok:
            logger.warning("Corrections failed")
        return ok


class CollectionStage(Stage):
    """Fold the corrected histograms into the ring sums and the summary histogram"""

    name = 'collection'
    timing = TimingStage.HIST_COLLECTOR

    def __init__(self, collector, ring_sums: RingSums):
        self.collector = collector
        self.ring_sums = ring_sums

    def execute(self, ctx: EventContext) -> bool:
        ok = self.collector.collect(
            ctx.histos, self.ring_sums, ctx.inspection.vertex_bin,
            ctx.output.histogram, ctx.output.centrality
        )
        if not ok:
            logger.warning("Histogram collector failed")
        return ok


class MinimumBiasStage(Stage):
    """Add the summary histogram to the minimum-bias sum for clean INEL events"""

    name = 'minimum_bias'

    def __init__(self, accumulator: MinimumBiasAccumulator):
        self.accumulator = accumulator

    def qualifies(self, ctx: EventContext) -> bool:
        return (ctx.output.is_trigger_bits(TriggerBits.INEL)
                and TriggerBits.PILEUP not in ctx.inspection.triggers
                and ctx.n_skip < 1)

    def execute(self, ctx: EventContext) -> bool:
        if self.qualifies(ctx):
            self.accumulator.add(ctx.output.histogram)
            ctx.minimum_bias = True
        return True
