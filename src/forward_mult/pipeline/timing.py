"""Optional CPU-time instrumentation of the pipeline stages.

When timing is disabled the task holds a NullStageTimer whose hooks do
nothing, so the instrumentation never changes control flow or results.
"""

import time
from contextlib import contextmanager, nullcontext
from enum import Enum
from typing import Dict

import numpy as np
import pandas as pd


class TimingStage(Enum):
    """Timing histogram keys"""

    EVENT_INSPECTOR = 'event_inspector'
    SHARING_FILTER = 'sharing_filter'
    DENSITY_CALCULATOR = 'density_calculator'
    EVENTPLANE_FINDER = 'eventplane_finder'
    CORRECTIONS = 'corrections'
    HIST_COLLECTOR = 'hist_collector'
    TOTAL = 'total'


class TimingHistogram:
    """Accumulated CPU seconds and call counts per stage"""

    def __init__(self):
        self.seconds: Dict[TimingStage, float] = {stage: 0.0 for stage in TimingStage}
        self.counts: Dict[TimingStage, int] = {stage: 0 for stage in TimingStage}

    def fill(self, stage: TimingStage, seconds: float) -> None:
        self.seconds[stage] += seconds
        self.counts[stage] += 1

    def merge(self, other: 'TimingHistogram') -> None:
        for stage in TimingStage:
            self.seconds[stage] += other.seconds[stage]
            self.counts[stage] += other.counts[stage]

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for stage in TimingStage:
            n = self.counts[stage]
            rows.append({
                'stage': stage.value,
                'calls': n,
                'cpu_seconds': self.seconds[stage],
                'mean_ms': 1000 * self.seconds[stage] / n if n else np.nan,
            })
        return pd.DataFrame(rows)


class StageTimer:
    """Measure stages into a TimingHistogram"""

    enabled = True

    def __init__(self, histogram: TimingHistogram = None):
        self.histogram = histogram or TimingHistogram()

    @contextmanager
    def measure(self, stage: TimingStage):
        start = time.process_time()
        try:
            yield
        finally:
            self.histogram.fill(stage, time.process_time() - start)

    def start(self) -> float:
        return time.process_time()

    def fill_since(self, stage: TimingStage, start: float) -> None:
        self.histogram.fill(stage, time.process_time() - start)


class NullStageTimer:
    """No-op timer used when timing is disabled"""

    enabled = False
    histogram = None

    def measure(self, stage: TimingStage):
        return nullcontext()

    def start(self) -> float:
        return 0.0

    def fill_since(self, stage: TimingStage, start: float) -> None:
        pass
