"""Pipeline architecture for the forward multiplicity task.

This package contains the per-event stage chain, the context that carries
state between stages, and the task that sequences them. Each stage has a
single responsibility and reports whether the event may continue.
"""

from .executor import ForwardMultiplicityTask, build_collaborators
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
    MinimumBiasStage
)
from .timing import NullStageTimer, StageTimer, TimingHistogram, TimingStage

__all__ = [
    'ForwardMultiplicityTask',
    'build_collaborators',
    'EventContext',
    'RunConfiguration',
    'InspectionStage',
    'FixerStage',
    'SharingStage',
    'DensityStage',
    'EventPlaneStage',
    'SkipScanStage',
    'CorrectionStage',
    'CollectionStage',
    'MinimumBiasStage',
    'NullStageTimer',
    'StageTimer',
    'TimingHistogram',
    'TimingStage'
]
