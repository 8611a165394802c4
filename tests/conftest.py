"""
Pytest configuration and shared fixtures for forward multiplicity tests.

Provides synthetic events, recording stub collaborators and configuration
dictionaries used across unit and integration tests.
"""

import pytest
import numpy as np
import yaml

from forward_mult.analysis.event_inspector import InspectionResult
from forward_mult.config_schema import ForwardMultConfig
from forward_mult.core.event import DetectorPayload, RawEvent, RunHeader
from forward_mult.core.geometry import ring_ids, ring_shape
from forward_mult.core.records import DetectorSnapshot, EventPlaneRecord
from forward_mult.flags import CollisionSystem, FoundFlags, TriggerBits
from forward_mult.pipeline.executor import ForwardMultiplicityTask


# ============================================================================
# Sample Data Fixtures
# ============================================================================

def make_payload(seed: int = 42, occupancy: float = 0.05, amplitude: float = 1.0,
                 needs_noise_fix: bool = False) -> DetectorPayload:
    """Payload with a fraction of strips hit at roughly ``amplitude`` MIP"""
    rng = np.random.default_rng(seed)
    signals = {}
    for ring in ring_ids():
        shape = ring_shape(ring)
        hits = rng.random(shape) < occupancy
        signals[ring] = np.where(hits, amplitude * rng.uniform(0.8, 1.2, shape), 0.0)
    return DetectorPayload(signals=signals, needs_noise_fix=needs_noise_fix)


def make_event(system: CollisionSystem = CollisionSystem.PP,
               triggers: TriggerBits = TriggerBits.INEL,
               vertex=(0.0, 0.0, 1.0),
               n_clusters: int = 50,
               centrality: float = -1.0,
               pileup: bool = False,
               with_fmd: bool = True,
               seed: int = 42,
               event_number: int = 0) -> RawEvent:
    return RawEvent(
        header=RunHeader(collision_system=system, sqrt_s_nn=5020.0),
        triggers=triggers,
        vertex=vertex,
        centrality=centrality,
        n_clusters=n_clusters,
        pileup=pileup,
        fmd=make_payload(seed) if with_fmd else None,
        event_number=event_number,
    )


@pytest.fixture
def sample_payload():
    """Low-occupancy payload, all rings present"""
    return make_payload()


@pytest.fixture
def sample_event():
    """Clean pp INEL event with a central vertex"""
    return make_event()


@pytest.fixture
def pbpb_event():
    """Semi-central PbPb event"""
    return make_event(system=CollisionSystem.PBPB, centrality=35.0, n_clusters=2000)


@pytest.fixture
def event_factory():
    """Factory building RawEvents with overrides"""
    return make_event


# ============================================================================
# Recording Stub Collaborators
# ============================================================================

class StubInspector:
    """Returns a configurable InspectionResult"""

    def __init__(self, calls, system=CollisionSystem.PP):
        self.calls = calls
        self.system = system
        self.energy = 5020.0
        self.found = FoundFlags.NONE
        self.triggers = TriggerBits.INEL
        self.low_flux = False
        self.vertex_bin = 5
        self.ip = (0.0, 0.0, 1.5)
        self.centrality = 20.0
        self.n_clusters = 123
        self.run_details_calls = 0

    def read_run_details(self, event):
        self.run_details_calls += 1

    def get_collision_system(self):
        return self.system

    def get_energy(self):
        return self.energy

    def process(self, event):
        self.calls.append('inspector')
        return InspectionResult(
            found=self.found,
            triggers=self.triggers,
            low_flux=self.low_flux,
            vertex_bin=self.vertex_bin,
            ip=self.ip,
            centrality=self.centrality,
            n_clusters=self.n_clusters,
        )


class StubFixer:
    def __init__(self, calls, target=1):
        self.calls = calls
        self.target = target
        self.probe_calls = 0
        self.reco_noise_factor = None

    def find_target_noise_factor(self, payload, dry_run=False):
        self.probe_calls += 1
        return self.target

    def set_reco_noise_factor(self, value):
        self.reco_noise_factor = value

    def fix(self, payload, ip_z):
        self.calls.append('fixer')
        self.last_ip_z = ip_z


class StubSharingFilter:
    def __init__(self, calls):
        self.calls = calls
        self.ok = True

    def filter(self, payload, low_flux, ip_z):
        self.calls.append('sharing')
        self.last_low_flux = low_flux
        snapshot = DetectorSnapshot()
        for ring, signals in payload.signals.items():
            snapshot.set_ring(ring, signals.copy(), payload.eta[ring])
        return snapshot, self.ok


class StubDensityCalculator:
    """Puts one unit in bin (0, 0) of every ring; flags the rings listed in skip_rings"""

    def __init__(self, calls):
        self.calls = calls
        self.ok = True
        self.skip_rings = []

    def calculate(self, snapshot, histos, low_flux, centrality, ip):
        self.calls.append('density')
        for ring, h in histos:
            h.values[0, 0] += 1.0
            if ring in self.skip_rings:
                h.skip_ring = True
        return self.ok


class StubEventPlaneFinder:
    def __init__(self, calls):
        self.calls = calls
        self.ok = True
        self.error = None

    def find_eventplane(self, event, summary, histos):
        self.calls.append('eventplane')
        if self.error is not None:
            raise self.error
        record = EventPlaneRecord()
        if self.ok:
            record.psi = 0.5
            record.filled = True
        return record, self.ok


class StubCorrections:
    def __init__(self, calls):
        self.calls = calls
        self.ok = True
        self.masks = []
        self.run = None

    def set_run_configuration(self, run):
        self.run = run

    def correct(self, histos, vertex_bin):
        self.calls.append('corrections')
        self.masks.append(self.run.needed_corrections)
        return self.ok


class StubCollector:
    """Adds ``content`` to every bin of the summary histogram"""

    def __init__(self, calls):
        self.calls = calls
        self.ok = True
        self.content = 1.0

    def collect(self, histos, ring_sums, vertex_bin, summary, centrality):
        self.calls.append('collector')
        if self.ok:
            summary.values += self.content
        return self.ok


class StubSet:
    """All stub collaborators sharing one call log"""

    def __init__(self, system=CollisionSystem.PP):
        self.calls = []
        self.inspector = StubInspector(self.calls, system)
        self.fixer = StubFixer(self.calls)
        self.sharing_filter = StubSharingFilter(self.calls)
        self.density_calculator = StubDensityCalculator(self.calls)
        self.eventplane_finder = StubEventPlaneFinder(self.calls)
        self.corrections = StubCorrections(self.calls)
        self.collector = StubCollector(self.calls)

    def collaborators(self):
        return {
            'inspector': self.inspector,
            'fixer': self.fixer,
            'sharing_filter': self.sharing_filter,
            'density_calculator': self.density_calculator,
            'eventplane_finder': self.eventplane_finder,
            'corrections': self.corrections,
            'collector': self.collector,
        }

    def task(self, config: ForwardMultConfig = None) -> ForwardMultiplicityTask:
        return ForwardMultiplicityTask(config, **self.collaborators())


@pytest.fixture
def stubs():
    """Recording stub collaborators for a pp run"""
    return StubSet()


@pytest.fixture
def pbpb_stubs():
    """Recording stub collaborators for a PbPb run"""
    return StubSet(system=CollisionSystem.PBPB)


@pytest.fixture
def stub_factory():
    """Builds independent stub sets, for tests that need more than one task"""
    return StubSet


@pytest.fixture
def stub_task(stubs, sample_event):
    """Initialized task wired to the pp stubs"""
    task = stubs.task()
    task.initialize_run(sample_event)
    return task


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def config_dict():
    """Small but complete configuration"""
    return {
        'general': {
            'output_dir': 'results',
            'log_level': 'INFO'
        },
        'task': {
            'enable_low_flux': True,
            'do_timing': False,
            'needed_corrections': ['secondary_map', 'acceptance', 'noise_gain'],
            'store_outputs': True
        },
        'histograms': {
            'eta_bins': 50,
            'eta_min': -4.0,
            'eta_max': 6.0,
            'phi_bins': 10,
            'vertex_bins': 10,
            'vertex_min': -10.0,
            'vertex_max': 10.0
        },
        'inspector': {
            'low_flux_cut': 1000,
            'collision_system': 'pp',
            'sqrt_s_nn': 13000.0
        },
        'export': {
            'write_xlsx': True,
            'generate_plots': True,
            'plot_dpi': 72
        }
    }


@pytest.fixture
def small_config(config_dict):
    """Validated configuration with coarse binning"""
    return ForwardMultConfig.from_dict(config_dict)


@pytest.fixture
def temp_yaml_config(tmp_path, config_dict):
    """Create temporary YAML config file"""
    config_path = tmp_path / "test_config.yaml"
    with open(config_path, 'w') as f:
        yaml.dump(config_dict, f)
    return config_path


# ============================================================================
# Test Utilities
# ============================================================================

def assert_array_shape(array, expected_shape):
    """Assert array has expected shape"""
    assert array.shape == expected_shape, \
        f"Expected shape {expected_shape}, got {array.shape}"


def assert_close(actual, expected, rtol=1e-5, atol=1e-8):
    """Assert values are close (handles arrays and scalars)"""
    np.testing.assert_allclose(actual, expected, rtol=rtol, atol=atol)
