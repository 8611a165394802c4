"""Run-end persistence: accumulators, stored events and summaries"""
import numpy as np
import pandas as pd
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from .visualizer import RunVisualizer
from .xlsx_exporter import XLSXExporter
from ..constants import EVENTS_FILENAME, HISTOGRAM_FILENAME
from ..exceptions import OutputDirectoryError
from ..flags import CollisionSystem

logger = logging.getLogger(__name__)

STORED_EVENT_COLUMNS = [
    'event_number', 'trigger_bits', 'sqrt_s_nn', 'system', 'centrality', 'n_clusters',
    'ip_z', 'summary_integral', 'accepted', 'rejected_at', 'eventplane_psi',
]


def write_histograms(task, output_path: Path) -> Path:
    """
    Save the minimum-bias accumulator and the ring sums to one ``.npz``.

    Keys: minimum_bias, minimum_bias_n_events, dndeta, eta_edges, phi_edges,
    vertex_edges, ring_sums_<RING> (vertex_bins, eta, phi),
    ring_sums_event_counts and, with the default collector, centrality_counts.
    """
    hs = task.config.histograms
    mb = task.minimum_bias
    arrays = {
        'minimum_bias': mb.histogram.values,
        'minimum_bias_n_events': np.array(mb.n_events),
        'dndeta': mb.dndeta(),
        'eta_edges': mb.histogram.eta_edges,
        'phi_edges': mb.histogram.phi_edges,
        'vertex_edges': np.linspace(hs.vertex_min, hs.vertex_max, hs.vertex_bins + 1),
        'ring_sums_event_counts': task.ring_sums.event_counts,
    }
    for name, values in task.ring_sums.to_arrays().items():
        arrays[f'ring_sums_{name}'] = values
    if hasattr(task.collector, 'centrality_counts'):
        arrays['centrality_counts'] = task.collector.centrality_counts

    np.savez_compressed(output_path, **arrays)
    logger.info(f"Saved histograms: {output_path}")
    return output_path


def run_metadata(task) -> Dict[str, Any]:
    run = task.run_config
    if run is not None:
        system, energy = run.collision_system, run.sqrt_s_nn
    else:
        system = CollisionSystem.parse(task.inspector.get_collision_system())
        energy = task.inspector.get_energy()
    return {
        'analysis_date': datetime.now().isoformat(),
        'collision_system': system.value,
        'sqrt_s_nn': energy,
        'needed_corrections': ', '.join(run.needed_corrections.names()) if run else 'not initialized',
        'enable_low_flux': task.config.task.enable_low_flux,
        'timing': task.timer.enabled,
        'eta_bins': task.config.histograms.eta_bins,
        'vertex_bins': task.config.histograms.vertex_bins,
    }


def write_run_outputs(task, output_dir: Path) -> Dict[str, Any]:
    """
    Write every run-end output of a task.

    Args:
        task: Finished ForwardMultiplicityTask
        output_dir: Directory for the output files

    Returns:
        Mapping of output kind to written path(s)

    Raises:
        OutputDirectoryError: If the directory cannot be created
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirectoryError(str(output_dir), str(e)) from e

    settings = task.config
    outputs: Dict[str, Any] = {
        'histograms': str(write_histograms(task, output_dir / HISTOGRAM_FILENAME)),
    }

    if settings.task.store_outputs:
        events_path = output_dir / EVENTS_FILENAME
        pd.DataFrame(task.stored_events, columns=STORED_EVENT_COLUMNS).to_csv(events_path, index=False)
        logger.info(f"Saved {len(task.stored_events)} stored events: {events_path}")
        outputs['events'] = str(events_path)

    rejections = task.statistics.rejection_table(task.stage_names)

    if settings.export.write_xlsx:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        exporter = XLSXExporter(output_dir / f"Forward_Multiplicity_{timestamp}.xlsx")
        timing = task.timer.histogram.to_dataframe() if task.timer.enabled else None
        outputs['xlsx'] = str(exporter.export(
            task.statistics.summary_rows(),
            rejections,
            timing,
            run_metadata(task)
        ))

    if settings.export.generate_plots:
        visualizer = RunVisualizer(output_dir, dpi=settings.export.plot_dpi)
        plot_paths = visualizer.generate_all(task.minimum_bias, rejections)
        outputs['plots'] = [str(p) for p in plot_paths]

    return outputs
