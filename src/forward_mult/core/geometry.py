"""Forward detector ring geometry: strip pseudorapidity and sector azimuth"""
import numpy as np
from typing import List, Tuple
from ..constants import RING_GEOMETRY, EPSILON

RingId = Tuple[int, str]


def ring_ids() -> List[RingId]:
    """All rings in detector order: FMD1I, FMD2I, FMD2O, FMD3I, FMD3O"""
    return list(RING_GEOMETRY.keys())


def ring_name(ring: RingId) -> str:
    """Short name such as 'FMD2O'"""
    detector, ring_char = ring
    return f"FMD{detector}{ring_char}"


def parse_ring_name(name: str) -> RingId:
    """
    Inverse of ring_name.

    Raises:
        ValueError: If the name does not describe a known ring
    """
    key = name.strip().upper()
    if len(key) != 5 or not key.startswith('FMD'):
        raise ValueError(f"Not a ring name: '{name}'")
    ring = (int(key[3]), key[4])
    if ring not in RING_GEOMETRY:
        raise ValueError(f"Unknown ring: '{name}'")
    return ring


def ring_shape(ring: RingId) -> Tuple[int, int]:
    """(sectors, strips) of a ring"""
    _, n_sectors, n_strips, _, _ = RING_GEOMETRY[ring]
    return n_sectors, n_strips


def strip_radius(ring: RingId) -> np.ndarray:
    """Radius (cm) of each strip centre"""
    _, _, n_strips, r_low, r_high = RING_GEOMETRY[ring]
    pitch = (r_high - r_low) / n_strips
    return r_low + (np.arange(n_strips) + 0.5) * pitch


def strip_eta(ring: RingId, ip_z: float = 0.0) -> np.ndarray:
    """
    Pseudorapidity of each strip centre seen from the interaction point.

    Args:
        ring: Ring identifier
        ip_z: Vertex z position (cm)

    Returns:
        Array of shape (strips,)
    """
    z, _, _, _, _ = RING_GEOMETRY[ring]
    r = strip_radius(ring)
    dz = z - ip_z
    theta = np.arctan2(r, dz)
    return -np.log(np.tan(np.clip(theta, EPSILON, np.pi - EPSILON) / 2))


def sector_phi(ring: RingId, ip_x: float = 0.0, ip_y: float = 0.0) -> np.ndarray:
    """
    Azimuth in [0, 2pi) of each (sector, strip) centre, corrected for a
    transverse vertex offset.

    Returns:
        Array of shape (sectors, strips)
    """
    n_sectors, _ = ring_shape(ring)
    phi_sector = (np.arange(n_sectors) + 0.5) * 2 * np.pi / n_sectors
    r = strip_radius(ring)

    x = np.outer(np.cos(phi_sector), r) - ip_x
    y = np.outer(np.sin(phi_sector), r) - ip_y
    return np.mod(np.arctan2(y, x), 2 * np.pi)
