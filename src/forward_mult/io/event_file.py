"""
Event archives on disk.

An event file is a numpy ``.npz`` archive holding one run header and
column arrays with one entry per event:

    header_system, header_sqrt_s_nn, header_noise_factor   run header
    triggers, vertex, has_vertex, vertex_ok, centrality,
    n_clusters, has_spd, pileup, has_fmd, noise_factor,
    needs_noise_fix, event_number                          per event
    signals_FMD1I ... signals_FMD3O                        (n_events, sectors, strips)

Events without a detector payload store zero signals and ``has_fmd=False``.
"""
import numpy as np
import logging
from pathlib import Path
from typing import List, Sequence, Tuple

from ..core.event import DetectorPayload, RawEvent, RunHeader
from ..core.geometry import ring_ids, ring_name, ring_shape
from ..exceptions import EventFileNotFoundError, InvalidEventFileError
from ..flags import CollisionSystem, TriggerBits

logger = logging.getLogger(__name__)

EVENT_COLUMNS = [
    'triggers',
    'vertex',
    'has_vertex',
    'vertex_ok',
    'centrality',
    'n_clusters',
    'has_spd',
    'pileup',
    'has_fmd',
    'noise_factor',
    'needs_noise_fix',
    'event_number',
]
HEADER_KEYS = ['header_system', 'header_sqrt_s_nn', 'header_noise_factor']


def _signal_key(ring) -> str:
    return f"signals_{ring_name(ring)}"


def write_event_file(path: Path, header: RunHeader, events: Sequence[RawEvent]) -> Path:
    """
    Write events to an ``.npz`` archive.

    Args:
        path: Output file path
        header: Run header stored once for the file
        events: Events to store (None entries are not allowed)

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    n = len(events)

    arrays = {
        'header_system': np.array([header.collision_system.value]),
        'header_sqrt_s_nn': np.array([header.sqrt_s_nn], dtype=float),
        'header_noise_factor': np.array([header.reco_noise_factor], dtype=np.int64),
        'triggers': np.array([int(e.triggers) for e in events], dtype=np.int64),
        'vertex': np.full((n, 3), np.nan),
        'has_vertex': np.array([e.vertex is not None for e in events], dtype=bool),
        'vertex_ok': np.array([e.vertex_ok for e in events], dtype=bool),
        'centrality': np.array([e.centrality for e in events], dtype=float),
        'n_clusters': np.array([e.n_clusters for e in events], dtype=np.int64),
        'has_spd': np.array([e.has_spd for e in events], dtype=bool),
        'pileup': np.array([e.pileup for e in events], dtype=bool),
        'has_fmd': np.array([e.fmd is not None for e in events], dtype=bool),
        'noise_factor': np.array(
            [e.fmd.noise_factor if e.fmd is not None else header.reco_noise_factor for e in events],
            dtype=np.int64
        ),
        'needs_noise_fix': np.array(
            [e.fmd.needs_noise_fix if e.fmd is not None else False for e in events], dtype=bool
        ),
        'event_number': np.array([e.event_number for e in events], dtype=np.int64),
    }

    for i, event in enumerate(events):
        if event.vertex is not None:
            arrays['vertex'][i] = event.vertex

    for ring in ring_ids():
        signals = np.zeros((n,) + ring_shape(ring))
        for i, event in enumerate(events):
            if event.fmd is not None and ring in event.fmd.signals:
                signals[i] = event.fmd.signals[ring]
        arrays[_signal_key(ring)] = signals

    np.savez_compressed(path, **arrays)
    logger.info(f"Wrote {n} events to {path}")
    return path


def read_event_file(path: Path) -> Tuple[RunHeader, List[RawEvent]]:
    """
    Load an event archive written by write_event_file.

    Args:
        path: Path to the ``.npz`` file

    Returns:
        (run header, events)

    Raises:
        EventFileNotFoundError: If the file does not exist
        InvalidEventFileError: If arrays are missing or inconsistent
    """
    path = Path(path)
    if not path.exists():
        raise EventFileNotFoundError(str(path))

    logger.info(f"Loading events from {path}")
    try:
        archive = np.load(path, allow_pickle=False)
    except (OSError, ValueError) as e:
        raise InvalidEventFileError(str(path), f"not a numpy archive ({e})") from e

    with archive:
        signal_keys = [_signal_key(ring) for ring in ring_ids()]
        missing = [k for k in HEADER_KEYS + EVENT_COLUMNS + signal_keys if k not in archive.files]
        if missing:
            raise InvalidEventFileError(str(path), f"missing arrays: {', '.join(missing)}")
        data = {k: archive[k] for k in HEADER_KEYS + EVENT_COLUMNS + signal_keys}

    header = RunHeader(
        collision_system=CollisionSystem.parse(str(data['header_system'][0])),
        sqrt_s_nn=float(data['header_sqrt_s_nn'][0]),
        reco_noise_factor=int(data['header_noise_factor'][0]),
    )

    n = len(data['triggers'])
    for key in EVENT_COLUMNS:
        if len(data[key]) != n:
            raise InvalidEventFileError(str(path), f"'{key}' has {len(data[key])} entries, expected {n}")
    if data['vertex'].shape != (n, 3):
        raise InvalidEventFileError(str(path), f"'vertex' has shape {data['vertex'].shape}")
    for ring in ring_ids():
        expected = (n,) + ring_shape(ring)
        if data[_signal_key(ring)].shape != expected:
            raise InvalidEventFileError(
                str(path), f"'{_signal_key(ring)}' has shape {data[_signal_key(ring)].shape}, expected {expected}"
            )

    events = []
    for i in range(n):
        fmd = None
        if data['has_fmd'][i]:
            fmd = DetectorPayload(
                signals={ring: data[_signal_key(ring)][i].copy() for ring in ring_ids()},
                noise_factor=int(data['noise_factor'][i]),
                needs_noise_fix=bool(data['needs_noise_fix'][i]),
            )
        vertex = tuple(float(v) for v in data['vertex'][i]) if data['has_vertex'][i] else None
        events.append(RawEvent(
            header=header,
            triggers=TriggerBits(int(data['triggers'][i])),
            vertex=vertex,
            vertex_ok=bool(data['vertex_ok'][i]),
            centrality=float(data['centrality'][i]),
            n_clusters=int(data['n_clusters'][i]),
            has_spd=bool(data['has_spd'][i]),
            pileup=bool(data['pileup'][i]),
            fmd=fmd,
            event_number=int(data['event_number'][i]),
        ))

    logger.info(f"Loaded {n} events ({header.collision_system.value}, sqrt(s_NN)={header.sqrt_s_nn} GeV)")
    return header, events
