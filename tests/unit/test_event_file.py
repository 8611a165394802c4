"""
Unit tests for event archives and the event simulator.
"""

import pytest
import numpy as np
from forward_mult.core.event import RunHeader
from forward_mult.exceptions import EventFileNotFoundError, InvalidEventFileError
from forward_mult.flags import CollisionSystem, TriggerBits
from forward_mult.io.event_file import read_event_file, write_event_file
from forward_mult.io.simulation import EventSimulator


@pytest.fixture
def header():
    return RunHeader(collision_system=CollisionSystem.PBPB, sqrt_s_nn=5020.0, reco_noise_factor=3)


class TestEventFile:
    """Test writing and reading event archives"""

    def test_write_read(self, tmp_path, header, event_factory):
        """Header, metadata and signals survive the archive"""
        events = [
            event_factory(triggers=TriggerBits.INEL | TriggerBits.NSD, event_number=7),
            event_factory(vertex=None, with_fmd=False, pileup=True, event_number=8),
        ]
        path = write_event_file(tmp_path / 'run.npz', header, events)

        read_header, loaded = read_event_file(path)

        assert read_header == header
        assert len(loaded) == 2
        first, second = loaded
        assert first.triggers == TriggerBits.INEL | TriggerBits.NSD
        assert first.vertex == (0.0, 0.0, 1.0)
        assert first.event_number == 7
        np.testing.assert_array_equal(first.fmd.signals[(2, 'O')], events[0].fmd.signals[(2, 'O')])
        assert second.vertex is None
        assert second.fmd is None
        assert second.pileup

    def test_missing_file(self, tmp_path):
        """A missing archive raises a load error"""
        with pytest.raises(EventFileNotFoundError):
            read_event_file(tmp_path / 'absent.npz')

    def test_not_an_archive(self, tmp_path):
        """Random bytes are not a valid archive"""
        path = tmp_path / 'garbage.npz'
        path.write_bytes(b'not a zip file')
        with pytest.raises(InvalidEventFileError):
            read_event_file(path)

    def test_missing_arrays(self, tmp_path):
        """Archives without the event columns are rejected"""
        path = tmp_path / 'partial.npz'
        np.savez(path, triggers=np.zeros(3))
        with pytest.raises(InvalidEventFileError, match='missing arrays'):
            read_event_file(path)

    def test_inconsistent_lengths(self, tmp_path, header, event_factory):
        """Columns of different length are rejected"""
        path = write_event_file(tmp_path / 'run.npz', header, [event_factory(), event_factory()])
        with np.load(path) as archive:
            arrays = {k: archive[k] for k in archive.files}
        arrays['centrality'] = arrays['centrality'][:1]
        np.savez(path, **arrays)

        with pytest.raises(InvalidEventFileError, match='centrality'):
            read_event_file(path)


class TestEventSimulator:
    """Test the toy event generator"""

    def test_seed_is_reproducible(self):
        """Same seed, same events"""
        a = EventSimulator(seed=11).generate(5)
        b = EventSimulator(seed=11).generate(5)
        for ea, eb in zip(a, b):
            assert ea.triggers == eb.triggers
            assert ea.vertex == eb.vertex
            assert ea.n_clusters == eb.n_clusters

    def test_numbering_and_header(self):
        """Events are numbered in order and share the run header"""
        events = EventSimulator(collision_system='PbPb', sqrt_s_nn=5020.0, seed=1).generate(4)
        assert [e.event_number for e in events] == [0, 1, 2, 3]
        assert all(e.header.collision_system is CollisionSystem.PBPB for e in events)
        assert all(0.0 <= e.centrality <= 100.0 for e in events)

    def test_payload_shapes(self):
        """Generated payloads cover every ring with non-negative signals"""
        event = EventSimulator(seed=2, no_fmd_fraction=0.0).generate_event()
        assert len(event.fmd.signals) == 5
        for signals in event.fmd.signals.values():
            assert np.all(signals >= 0.0)

    def test_roundtrip_through_archive(self, tmp_path):
        """Simulated events can be archived and read back"""
        simulator = EventSimulator(seed=3)
        events = simulator.generate(3)
        path = write_event_file(tmp_path / 'sim.npz', simulator.header, events)
        _, loaded = read_event_file(path)
        assert [e.n_clusters for e in loaded] == [e.n_clusters for e in events]
