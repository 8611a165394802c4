"""Default implementations of the per-event reconstruction collaborators"""

from .event_inspector import EventInspector, InspectionResult
from .esd_fixer import ESDFixer
from .sharing_filter import SharingFilter
from .density_calculator import DensityCalculator
from .eventplane_finder import EventPlaneFinder
from .corrections import CorrectionApplier, CorrectionMaps
from .histogram_collector import HistogramCollector

__all__ = [
    'EventInspector',
    'InspectionResult',
    'ESDFixer',
    'SharingFilter',
    'DensityCalculator',
    'EventPlaneFinder',
    'CorrectionApplier',
    'CorrectionMaps',
    'HistogramCollector',
]
