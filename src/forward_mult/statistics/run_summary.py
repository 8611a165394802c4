"""Run-level bookkeeping: how many events were seen, stored, accepted and where the rest stopped"""
import logging
from collections import Counter
from typing import Dict, List

import pandas as pd

logger = logging.getLogger(__name__)


class RunStatistics:
    """Counters filled once per event by the task"""

    def __init__(self):
        self.n_events = 0
        self.n_stored = 0
        self.n_accepted = 0
        self.n_minimum_bias = 0
        self.n_eventplane_failed = 0
        self.rejections: Counter = Counter()

    def record(self, accepted: bool, stored: bool, rejected_at: str = None,
               minimum_bias: bool = False, eventplane_failed: bool = False) -> None:
        self.n_events += 1
        if stored:
            self.n_stored += 1
        if accepted:
            self.n_accepted += 1
        elif rejected_at:
            self.rejections[rejected_at] += 1
        if minimum_bias:
            self.n_minimum_bias += 1
        if eventplane_failed:
            self.n_eventplane_failed += 1

    def merge(self, other: 'RunStatistics') -> None:
        self.n_events += other.n_events
        self.n_stored += other.n_stored
        self.n_accepted += other.n_accepted
        self.n_minimum_bias += other.n_minimum_bias
        self.n_eventplane_failed += other.n_eventplane_failed
        self.rejections.update(other.rejections)

    @property
    def acceptance(self) -> float:
        """Fraction of events that passed every gate"""
        return self.n_accepted / self.n_events if self.n_events else 0.0

    def to_dict(self) -> Dict:
        return {
            'n_events': self.n_events,
            'n_stored': self.n_stored,
            'n_accepted': self.n_accepted,
            'n_minimum_bias': self.n_minimum_bias,
            'n_eventplane_failed': self.n_eventplane_failed,
            'acceptance': self.acceptance,
            'rejections': dict(self.rejections),
        }

    def summary_rows(self) -> List[Dict]:
        return [
            {'quantity': 'events seen', 'value': self.n_events},
            {'quantity': 'events stored', 'value': self.n_stored},
            {'quantity': 'events accepted', 'value': self.n_accepted},
            {'quantity': 'minimum-bias events', 'value': self.n_minimum_bias},
            {'quantity': 'event plane failures', 'value': self.n_eventplane_failed},
            {'quantity': 'acceptance', 'value': round(self.acceptance, 4)},
        ]

    def rejection_table(self, stage_order: List[str] = None) -> pd.DataFrame:
        """Rejected events per stage, in pipeline order when given"""
        stages = stage_order or sorted(self.rejections)
        rows = [
            {
                'stage': stage,
                'rejected': self.rejections.get(stage, 0),
                'fraction': self.rejections.get(stage, 0) / self.n_events if self.n_events else 0.0,
            }
            for stage in stages
        ]
        return pd.DataFrame(rows, columns=['stage', 'rejected', 'fraction'])

    def log_summary(self) -> None:
        logger.info(
            f"Events: {self.n_events} seen, {self.n_stored} stored, "
            f"{self.n_accepted} accepted ({self.acceptance*100:.1f}%), "
            f"{self.n_minimum_bias} minimum bias"
        )
        for stage, n in self.rejections.most_common():
            logger.info(f"  rejected at {stage}: {n}")
