"""Pipeline executor: the forward multiplicity task.

ForwardMultiplicityTask owns the collaborators, the per-event context and
the run-long accumulators, and exposes the hooks a surrounding event loop
calls: ``initialize_run`` once, then ``pre_event`` and ``event`` for every
event, and ``finalize`` at the end.
"""

import logging
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..analysis import (
    CorrectionApplier,
    CorrectionMaps,
    DensityCalculator,
    ESDFixer,
    EventInspector,
    EventPlaneFinder,
    HistogramCollector,
    SharingFilter,
)
from ..config_schema import ForwardMultConfig
from ..core.event import RawEvent
from ..core.histograms import Histogram2D, MinimumBiasAccumulator, RingHistograms, RingSums
from ..core.records import DetectorSnapshot, EventPlaneRecord, ForwardOutput
from ..exceptions import PipelineStateError, ProcessingError
from ..flags import CollisionSystem, CorrectionFlags
from ..statistics.run_summary import RunStatistics
from .context import EventContext, RunConfiguration
from .stages import (
    InspectionStage,
    FixerStage,
    SharingStage,
    DensityStage,
    EventPlaneStage,
    SkipScanStage,
    CorrectionStage,
    CollectionStage,
    MinimumBiasStage,
)
from .timing import NullStageTimer, StageTimer, TimingStage

logger = logging.getLogger(__name__)


def build_collaborators(config: ForwardMultConfig) -> Dict[str, Any]:
    """
    Default collaborators configured from the settings.

    Args:
        config: Validated configuration

    Returns:
        Dict with keys inspector, fixer, sharing_filter, density_calculator,
        eventplane_finder, corrections, collector
    """
    hs = config.histograms
    if config.corrections.maps_file:
        maps = CorrectionMaps.from_npz(
            Path(config.corrections.maps_file), hs.vertex_bins, hs.eta_bins, hs.phi_bins
        )
    else:
        maps = CorrectionMaps.unit(hs.vertex_bins, hs.eta_bins, hs.phi_bins)

    return {
        'inspector': EventInspector(
            vertex_bins=hs.vertex_bins,
            vertex_min=hs.vertex_min,
            vertex_max=hs.vertex_max,
            low_flux_cut=config.inspector.low_flux_cut,
            use_pileup_flag=config.inspector.use_pileup_flag,
            collision_system=CollisionSystem.parse(config.inspector.collision_system),
            sqrt_s_nn=config.inspector.sqrt_s_nn,
        ),
        'fixer': ESDFixer(
            reco_noise_factor=config.fixer.reco_noise_factor,
            recalculate_eta=config.fixer.recalculate_eta,
            dead_strips=config.fixer.dead_strips,
        ),
        'sharing_filter': SharingFilter(
            low_cut=config.sharing.low_cut,
            low_cut_low_flux=config.sharing.low_cut_low_flux,
            high_cut=config.sharing.high_cut,
            merge_shared=config.sharing.merge_shared,
        ),
        'density_calculator': DensityCalculator(
            max_particles=config.density.max_particles,
            max_outlier_fraction=config.density.max_outlier_fraction,
            central_outlier_fraction=config.density.central_outlier_fraction,
            central_cut=config.density.central_cut,
            use_poisson=config.density.use_poisson,
        ),
        'eventplane_finder': EventPlaneFinder(
            eta_gap=config.eventplane.eta_gap,
            min_weight=config.eventplane.min_weight,
        ),
        'corrections': CorrectionApplier(maps),
        'collector': HistogramCollector(
            eta_bins=hs.eta_bins,
            eta_min=hs.eta_min,
            eta_max=hs.eta_max,
            vertex_bins=hs.vertex_bins,
            vertex_min=hs.vertex_min,
            vertex_max=hs.vertex_max,
        ),
    }


class ForwardMultiplicityTask:
    """Per-event forward multiplicity pipeline.

    The stages run in a fixed order and the first one returning False
    rejects the event. Each collaborator can be replaced through the
    constructor by any object with the same methods.

    Attributes:
        stages: Ordered list of pipeline stages
        needed_corrections: Correction mask, frozen by initialize_run
        minimum_bias: Run-long minimum-bias accumulator
        ring_sums: Run-long per vertex bin ring sums
        statistics: Run counters
        stored_events: Rows of the events marked for storage
    """

    def __init__(self, config: ForwardMultConfig = None, **collaborators):
        self.config = config or ForwardMultConfig()
        defaults = build_collaborators(self.config)
        unknown = set(collaborators) - set(defaults)
        if unknown:
            raise TypeError(f"Unknown collaborators: {', '.join(sorted(unknown))}")
        defaults.update(collaborators)

        self.inspector = defaults['inspector']
        self.fixer = defaults['fixer']
        self.sharing_filter = defaults['sharing_filter']
        self.density_calculator = defaults['density_calculator']
        self.eventplane_finder = defaults['eventplane_finder']
        self.corrections = defaults['corrections']
        self.collector = defaults['collector']

        hs = self.config.histograms
        binning = (hs.eta_bins, hs.eta_min, hs.eta_max, hs.phi_bins)
        self.minimum_bias = MinimumBiasAccumulator(*binning)
        self.ring_sums = RingSums(hs.vertex_bins, *binning)
        self.ctx = EventContext(
            histos=RingHistograms(*binning),
            snapshot=DetectorSnapshot(),
            output=ForwardOutput(Histogram2D(*binning, name='summary')),
            eventplane=EventPlaneRecord(),
        )

        self.needed_corrections: CorrectionFlags = self.config.task.correction_mask()
        self.run_config: Optional[RunConfiguration] = None
        self.timer = StageTimer() if self.config.task.do_timing else NullStageTimer()
        self.statistics = RunStatistics()
        self.stored_events: List[Dict[str, Any]] = []

        self.stages = [
            InspectionStage(self.inspector),
            FixerStage(self.fixer),
            SharingStage(self.sharing_filter),
            DensityStage(self.density_calculator),
            EventPlaneStage(self.eventplane_finder),
            SkipScanStage(),
            CorrectionStage(self.corrections),
            CollectionStage(self.collector, self.ring_sums),
            MinimumBiasStage(self.minimum_bias),
        ]

    # ------------------------------------------------------------------
    # Run hooks
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self.run_config is not None

    def pre_corrections(self, event: Optional[RawEvent]) -> None:
        """
        Detector-health probe: decide on the noise/gain correction.

        No-op when there is no event or no detector payload. A target noise
        factor <= 0 sets the fallback factor on the fixer and removes
        NOISE_GAIN from the needed corrections for the rest of the run.
        """
        if event is None or event.fmd is None:
            logger.debug("Health probe skipped: no event or no detector payload")
            return

        target = self.fixer.find_target_noise_factor(event.fmd, False)
        if target <= 0:
            fallback = self.config.fixer.fallback_noise_factor
            self.fixer.set_reco_noise_factor(fallback)
            self.needed_corrections &= ~CorrectionFlags.NOISE_GAIN
            logger.info(f"Noise/gain correction disabled, noise factor set to {fallback}")
        else:
            logger.warning("The noise corrector has been enabled!")

    def _bind_run(self, run: RunConfiguration) -> None:
        """Make ``run`` the configuration seen by the stages and the correction applier"""
        self.run_config = run
        self.ctx.run = run
        if hasattr(self.corrections, 'set_run_configuration'):
            self.corrections.set_run_configuration(run)

    def initialize_run(self, first_event: Optional[RawEvent]) -> RunConfiguration:
        """
        Pre-run hook: run the health probe and freeze the run configuration.

        Only the first call has an effect.

        Args:
            first_event: Representative first event of the run (may be None)

        Returns:
            The run configuration used for every event
        """
        if self.initialized:
            logger.debug("Run already initialized, ignoring repeated initialization")
            return self.run_config

        if hasattr(self.inspector, 'read_run_details'):
            self.inspector.read_run_details(first_event)
        self.pre_corrections(first_event)

        self.run_config = RunConfiguration(
            needed_corrections=self.needed_corrections,
            enable_low_flux=self.config.task.enable_low_flux,
            collision_system=CollisionSystem.parse(self.inspector.get_collision_system()),
            sqrt_s_nn=float(self.inspector.get_energy()),
        )
        self._bind_run(self.run_config)
        logger.info(f"Needed corrections: {', '.join(self.needed_corrections.names()) or 'none'}")
        return self.run_config

    # ------------------------------------------------------------------
    # Event hooks
    # ------------------------------------------------------------------

    def pre_event(self) -> bool:
        """Clear every piece of per-event state"""
        self.ctx.clear()
        return True

    @property
    def is_marked_for_store(self) -> bool:
        return self.ctx.store

    def event(self, raw_event: Optional[RawEvent]) -> bool:
        """
        Run the stage chain for one event.

        Args:
            raw_event: Event to process (None counts as no event)

        Returns:
            True if every gate was passed

        Raises:
            PipelineStateError: If initialize_run was not called
        """
        if not self.initialized:
            raise PipelineStateError('event', 'initialize_run must be called before the first event')

        ctx = self.ctx
        ctx.event = raw_event
        timer = self.timer
        total = timer.start()

        for stage in self.stages:
            if not stage.applies(ctx):
                continue
            try:
                with timer.measure(stage.timing) if stage.timing else nullcontext():
                    passed = stage.execute(ctx)
            except ProcessingError as e:
                logger.warning(f"Stage {stage.name} raised: {e}")
                passed = False
            if not passed:
                ctx.rejected_at = stage.name
                return False

        ctx.accepted = True
        timer.fill_since(TimingStage.TOTAL, total)
        return True

    def post_event(self) -> None:
        """Book the event in the run statistics and keep its record if stored"""
        ctx = self.ctx
        self.statistics.record(
            accepted=ctx.accepted,
            stored=ctx.store,
            rejected_at=ctx.rejected_at,
            minimum_bias=ctx.minimum_bias,
            eventplane_failed=ctx.eventplane_failed,
        )
        if ctx.store:
            row = {'event_number': ctx.event.event_number if ctx.event else -1}
            row.update(ctx.output.to_row())
            row['accepted'] = ctx.accepted
            row['rejected_at'] = ctx.rejected_at or ''
            row['eventplane_psi'] = ctx.eventplane.psi
            self.stored_events.append(row)

    def process_events(self, events: Iterable[Optional[RawEvent]]) -> RunStatistics:
        """
        Drive the hooks over an event stream.

        The first event doubles as the health-probe sample.

        Args:
            events: Iterable of raw events

        Returns:
            Run statistics
        """
        for raw_event in events:
            if not self.initialized:
                self.initialize_run(raw_event)
            self.pre_event()
            self.event(raw_event)
            self.post_event()

        self.statistics.log_summary()
        return self.statistics

    # ------------------------------------------------------------------
    # Run end
    # ------------------------------------------------------------------

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def merge(self, other: 'ForwardMultiplicityTask') -> None:
        """Fold another worker's accumulators and counters into this task"""
        if not self.initialized and other.initialized:
            self.needed_corrections = other.needed_corrections
            self._bind_run(other.run_config)
        self.minimum_bias.merge(other.minimum_bias)
        self.ring_sums.merge(other.ring_sums)
        self.statistics.merge(other.statistics)
        self.stored_events.extend(other.stored_events)
        if hasattr(self.collector, 'centrality_counts') and hasattr(other.collector, 'centrality_counts'):
            self.collector.centrality_counts += other.collector.centrality_counts
        if self.timer.enabled and other.timer.enabled:
            self.timer.histogram.merge(other.timer.histogram)

    def finalize(self, output_dir: Path) -> Dict[str, Any]:
        """
        Write accumulators, stored events and summaries.

        Args:
            output_dir: Directory for the output files

        Returns:
            Mapping of output kind to written path(s)
        """
        from ..export.writer import write_run_outputs

        return write_run_outputs(self, Path(output_dir))

