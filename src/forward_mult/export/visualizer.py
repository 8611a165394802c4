"""PNG plots of the run results"""
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import logging
from pathlib import Path
from typing import List

from ..core.histograms import MinimumBiasAccumulator
from ..constants import PLOT_DPI, PLOT_FIGSIZE_WIDTH, PLOT_FIGSIZE_HEIGHT

logger = logging.getLogger(__name__)


class RunVisualizer:
    """Generate PNG plots of the minimum-bias result and the event selection"""

    def __init__(self, output_dir: Path, dpi: int = PLOT_DPI):
        """
        Initialize visualizer.

        Args:
            output_dir: Output directory for plots
            dpi: Resolution for PNG files
        """
        self.output_dir = output_dir
        self.dpi = dpi
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _save(self, fig, filename: str) -> Path:
        output_path = self.output_dir / filename
        fig.tight_layout()
        fig.savefig(output_path, dpi=self.dpi, bbox_inches='tight')
        plt.close(fig)
        logger.info(f"Saved plot: {output_path}")
        return output_path

    def plot_dndeta(self, accumulator: MinimumBiasAccumulator) -> Path:
        """
        Plot the per-event minimum-bias eta distribution.

        Args:
            accumulator: Minimum-bias accumulator

        Returns:
            Path to saved plot
        """
        fig, ax = plt.subplots(figsize=(PLOT_FIGSIZE_WIDTH, PLOT_FIGSIZE_HEIGHT))

        eta = accumulator.histogram.eta_centers
        dndeta = accumulator.dndeta()
        covered = dndeta > 0

        if np.any(covered):
            ax.step(eta, dndeta, where='mid', color='black')
            ax.fill_between(eta, 0, dndeta, step='mid', color='steelblue', alpha=0.4)
        else:
            ax.text(0.5, 0.5, 'No minimum-bias events', transform=ax.transAxes,
                    ha='center', va='center')

        ax.set_xlabel(r'$\eta$', fontweight='bold')
        ax.set_ylabel(r'$dN/d\eta$ per event', fontweight='bold')
        ax.set_title(f'Minimum-bias distribution ({accumulator.n_events} events)')
        ax.grid(alpha=0.3)

        return self._save(fig, 'plot_dndeta.png')

    def plot_rejections(self, rejections: pd.DataFrame) -> Path:
        """
        Bar chart of rejected events per pipeline stage.

        Args:
            rejections: DataFrame with columns stage, rejected

        Returns:
            Path to saved plot
        """
        fig, ax = plt.subplots(figsize=(PLOT_FIGSIZE_WIDTH, PLOT_FIGSIZE_HEIGHT))

        x = np.arange(len(rejections))
        ax.bar(x, rejections['rejected'], color='indianred', alpha=0.7, edgecolor='black')
        ax.set_xticks(x)
        ax.set_xticklabels(rejections['stage'], rotation=30, ha='right')
        ax.set_ylabel('Rejected events', fontweight='bold')
        ax.set_title('Event rejections per stage')
        ax.grid(axis='y', alpha=0.3)

        return self._save(fig, 'plot_rejections.png')

    def generate_all(self, accumulator: MinimumBiasAccumulator,
                     rejections: pd.DataFrame) -> List[Path]:
        return [
            self.plot_dndeta(accumulator),
            self.plot_rejections(rejections),
        ]
