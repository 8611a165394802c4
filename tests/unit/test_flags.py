"""
Unit tests for the gating flag sets.
"""

import pytest
from forward_mult.flags import (
    CollisionSystem,
    CorrectionFlags,
    EVENTPLANE_SYSTEM,
    FoundFlags,
    TriggerBits,
)


class TestFoundFlags:
    """Test found-condition membership"""

    def test_membership(self):
        """Combined flags answer membership tests per condition"""
        found = FoundFlags.NO_SPD | FoundFlags.NO_VERTEX
        assert FoundFlags.NO_VERTEX in found
        assert FoundFlags.NO_SPD in found
        assert FoundFlags.NO_EVENT not in found

    def test_bits_distinct(self):
        """Every condition has its own bit"""
        values = [f.value for f in FoundFlags if f.value]
        assert len(values) == len(set(values))
        for v in values:
            assert v & (v - 1) == 0


class TestTriggerBits:
    """Test trigger bit values"""

    def test_round_trip_through_int(self):
        """Trigger masks survive conversion to int and back"""
        bits = TriggerBits.INEL | TriggerBits.NSD | TriggerBits.PILEUP
        assert TriggerBits(int(bits)) == bits

    def test_pileup_not_inel(self):
        """Pile-up is a separate bit"""
        assert TriggerBits.INEL not in TriggerBits.PILEUP


class TestCorrectionFlags:
    """Test the needed-corrections mask"""

    def test_from_names(self):
        """Names are case-insensitive"""
        mask = CorrectionFlags.from_names(['secondary_map', 'NOISE_GAIN'])
        assert mask == CorrectionFlags.SECONDARY_MAP | CorrectionFlags.NOISE_GAIN

    def test_from_names_empty(self):
        """No names gives an empty mask"""
        assert CorrectionFlags.from_names([]) == CorrectionFlags.NONE

    def test_unknown_name(self):
        """Unknown names are rejected"""
        with pytest.raises(ValueError):
            CorrectionFlags.from_names(['flux_capacitor'])

    def test_names(self):
        """names() lists set bits in declaration order"""
        mask = CorrectionFlags.NOISE_GAIN | CorrectionFlags.SECONDARY_MAP
        assert mask.names() == ['secondary_map', 'noise_gain']

    def test_clear_bit(self):
        """Clearing one bit leaves the others"""
        mask = CorrectionFlags.from_names(['secondary_map', 'acceptance', 'noise_gain'])
        mask &= ~CorrectionFlags.NOISE_GAIN
        assert CorrectionFlags.NOISE_GAIN not in mask
        assert CorrectionFlags.ACCEPTANCE in mask
        assert CorrectionFlags.SECONDARY_MAP in mask


class TestCollisionSystem:
    """Test collision system parsing"""

    @pytest.mark.parametrize("text,expected", [
        ('PbPb', CollisionSystem.PBPB),
        ('pp', CollisionSystem.PP),
        ('p-Pb', CollisionSystem.PPB),
        ('Pb_p', CollisionSystem.PBP),
        ('XeXe', CollisionSystem.XEXE),
        ('gold', CollisionSystem.UNKNOWN),
        (None, CollisionSystem.UNKNOWN),
    ])
    def test_parse(self, text, expected):
        """Common spellings are recognised"""
        assert CollisionSystem.parse(text) is expected

    def test_parse_member(self):
        """Members pass through unchanged"""
        assert CollisionSystem.parse(CollisionSystem.PP) is CollisionSystem.PP

    def test_eventplane_system(self):
        """Only PbPb gets a reaction-plane estimate"""
        assert EVENTPLANE_SYSTEM is CollisionSystem.PBPB
