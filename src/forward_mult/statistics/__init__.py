"""Run-level statistics"""

from .run_summary import RunStatistics

__all__ = ['RunStatistics']
