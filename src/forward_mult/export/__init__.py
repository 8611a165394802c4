"""Run-end output: histogram archive, event table, workbook and plots"""

from .writer import write_run_outputs
from .xlsx_exporter import XLSXExporter
from .visualizer import RunVisualizer

__all__ = [
    'write_run_outputs',
    'XLSXExporter',
    'RunVisualizer',
]
