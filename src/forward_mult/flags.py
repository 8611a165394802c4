"""
Named flag sets used for gating.

Inspection results, trigger classification and the needed-corrections mask
are enum.IntFlag values so that gates read as membership tests
(``FoundFlags.NO_VERTEX in found``) while still round-tripping through the
integer arrays of the event files.
"""

from enum import Enum, IntFlag
from typing import Iterable


class FoundFlags(IntFlag):
    """Problems found by the event inspector"""

    NONE = 0
    NO_EVENT = 0x01
    NO_TRIGGERS = 0x02
    NO_SPD = 0x04
    NO_FMD = 0x08
    NO_VERTEX = 0x10
    BAD_VERTEX = 0x20


class TriggerBits(IntFlag):
    """Offline trigger classification of an event"""

    NONE = 0
    INEL = 0x0001
    INEL_GT0 = 0x0002
    NSD = 0x0004
    EMPTY = 0x0008
    A = 0x0010
    B = 0x0020
    C = 0x0080
    E = 0x0100
    PILEUP = 0x0200
    MC_NSD = 0x0400
    OFFLINE = 0x0800
    SAT = 0x1000
    V0AND = 0x2000
    IN_CLASS = 0x4000


class CorrectionFlags(IntFlag):
    """Correction maps a run needs"""

    NONE = 0
    SECONDARY_MAP = 0x01
    ELOSS_FITS = 0x02
    ACCEPTANCE = 0x04
    NOISE_GAIN = 0x08
    MERGING_EFFICIENCY = 0x10
    VERTEX_BIAS = 0x20

    @classmethod
    def from_names(cls, names: Iterable[str]) -> 'CorrectionFlags':
        """
        Build a mask from correction names.

        Args:
            names: Names such as 'secondary_map' or 'NOISE_GAIN'

        Returns:
            Combined CorrectionFlags

        Raises:
            ValueError: If a name is unknown
        """
        mask = cls.NONE
        for name in names:
            key = name.strip().upper()
            if key not in cls.__members__:
                raise ValueError(f"Unknown correction '{name}'")
            mask |= cls[key]
        return mask

    def names(self) -> list:
        """Lower-case names of the set bits, in declaration order"""
        return [
            member.name.lower() for member in type(self)
            if member.value and member in self
        ]


class CollisionSystem(Enum):
    """Collision system of a run"""

    UNKNOWN = 'unknown'
    PP = 'pp'
    PPB = 'ppb'
    PBP = 'pbp'
    PBPB = 'pbpb'
    XEXE = 'xexe'

    @classmethod
    def parse(cls, value) -> 'CollisionSystem':
        """Parse 'PbPb', 'p-Pb', 'pp', ... into a CollisionSystem (UNKNOWN on failure)"""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        key = str(value).lower().replace('-', '').replace('_', '').strip()
        for member in cls:
            if member.value == key:
                return member
        return cls.UNKNOWN


# Only this system gets a reaction-plane estimate
EVENTPLANE_SYSTEM = CollisionSystem.PBPB
