"""
Unit tests for the correction maps and their application.
"""

import pytest
import numpy as np
from forward_mult.analysis.corrections import CorrectionApplier, CorrectionMaps
from forward_mult.core.geometry import ring_ids
from forward_mult.core.histograms import RingHistograms
from forward_mult.exceptions import CorrectionMapError
from forward_mult.flags import CorrectionFlags
from forward_mult.pipeline.context import RunConfiguration

VERTEX_BINS, ETA_BINS, PHI_BINS = 4, 10, 5
ALL = CorrectionFlags.SECONDARY_MAP | CorrectionFlags.ACCEPTANCE | CorrectionFlags.NOISE_GAIN


@pytest.fixture
def histos():
    h = RingHistograms(ETA_BINS, -4.0, 6.0, PHI_BINS)
    for _, ring_h in h:
        ring_h.values[:] = 1.0
    return h


@pytest.fixture
def maps():
    return CorrectionMaps.unit(VERTEX_BINS, ETA_BINS, PHI_BINS)


class TestCorrectionMaps:
    """Test map construction and persistence"""

    def test_unit_maps(self, maps):
        """Every map exists and is one everywhere"""
        for flag in (CorrectionFlags.SECONDARY_MAP, CorrectionFlags.ACCEPTANCE, CorrectionFlags.NOISE_GAIN):
            for ring in ring_ids():
                assert np.all(maps.get(flag, ring, 1) == 1.0)

    def test_get_unknown_flag(self, maps):
        """Flags without maps return None"""
        assert maps.get(CorrectionFlags.ELOSS_FITS, (1, 'I'), 1) is None

    def test_npz_persistence(self, maps, tmp_path):
        """Saved maps load back with their values"""
        maps.maps[CorrectionFlags.ACCEPTANCE][(2, 'O')][2] = 3.0
        path = tmp_path / 'maps.npz'
        maps.save_npz(path)

        loaded = CorrectionMaps.from_npz(path, VERTEX_BINS, ETA_BINS, PHI_BINS)

        assert np.all(loaded.get(CorrectionFlags.ACCEPTANCE, (2, 'O'), 3) == 3.0)
        assert np.all(loaded.get(CorrectionFlags.ACCEPTANCE, (2, 'O'), 1) == 1.0)

    def test_missing_file(self, tmp_path):
        """A missing maps file is an error"""
        with pytest.raises(CorrectionMapError):
            CorrectionMaps.from_npz(tmp_path / 'nope.npz', VERTEX_BINS, ETA_BINS, PHI_BINS)

    def test_unknown_key(self, tmp_path):
        """Keys that are not flag/ring pairs are rejected"""
        path = tmp_path / 'maps.npz'
        np.savez(path, **{'bogus/FMD1I': np.ones((VERTEX_BINS, ETA_BINS, PHI_BINS))})
        with pytest.raises(CorrectionMapError, match='unexpected map'):
            CorrectionMaps.from_npz(path, VERTEX_BINS, ETA_BINS, PHI_BINS)

    def test_wrong_shape(self, tmp_path):
        """A map with the wrong binning is rejected"""
        path = tmp_path / 'maps.npz'
        np.savez(path, **{'acceptance/FMD1I': np.ones((VERTEX_BINS, ETA_BINS + 1, PHI_BINS))})
        with pytest.raises(CorrectionMapError, match='shape'):
            CorrectionMaps.from_npz(path, VERTEX_BINS, ETA_BINS, PHI_BINS)


class TestCorrectionApplier:
    """Test application of the needed maps"""

    def test_unit_maps_leave_histograms(self, maps, histos):
        """Unit maps do not change the content"""
        assert CorrectionApplier(maps).correct(histos, 1, ALL)
        for _, h in histos:
            assert np.all(h.values == 1.0)

    def test_only_needed_maps_applied(self, maps, histos):
        """Maps missing from the mask are skipped"""
        for ring in ring_ids():
            maps.maps[CorrectionFlags.NOISE_GAIN][ring][:] = 2.0
            maps.maps[CorrectionFlags.ACCEPTANCE][ring][:] = 3.0
        applier = CorrectionApplier(maps)

        assert applier.correct(histos, 2, ALL & ~CorrectionFlags.NOISE_GAIN)
        for _, h in histos:
            assert np.all(h.values == 3.0)

    def test_vertex_bin_out_of_range(self, maps, histos):
        """Vertex bins outside the maps fail"""
        applier = CorrectionApplier(maps)
        assert not applier.correct(histos, 0, ALL)
        assert not applier.correct(histos, VERTEX_BINS + 1, ALL)

    def test_shape_mismatch(self, histos):
        """Maps with a binning different from the histograms fail"""
        maps = CorrectionMaps.unit(VERTEX_BINS, ETA_BINS + 2, PHI_BINS)
        assert not CorrectionApplier(maps).correct(histos, 1, CorrectionFlags.ACCEPTANCE)

    def test_empty_mask(self, histos):
        """Nothing to apply always succeeds"""
        maps = CorrectionMaps.unit(VERTEX_BINS, ETA_BINS + 2, PHI_BINS)
        assert CorrectionApplier(maps).correct(histos, 1, CorrectionFlags.NONE)

    def test_mask_from_bound_run(self, maps, histos):
        """Without an explicit mask the bound run's mask is applied"""
        for ring in ring_ids():
            maps.maps[CorrectionFlags.NOISE_GAIN][ring][:] = 2.0
        applier = CorrectionApplier(maps)
        applier.set_run_configuration(RunConfiguration(needed_corrections=CorrectionFlags.ACCEPTANCE))

        assert applier.correct(histos, 1)
        for _, h in histos:
            assert np.all(h.values == 1.0)

    def test_unbound_applies_every_map(self, maps, histos):
        """An applier without a run applies all correction maps"""
        for ring in ring_ids():
            maps.maps[CorrectionFlags.NOISE_GAIN][ring][:] = 2.0
        assert CorrectionApplier(maps).correct(histos, 1)
        for _, h in histos:
            assert np.all(h.values == 2.0)
