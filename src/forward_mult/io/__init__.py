"""Event file codec and synthetic event generation"""

from .event_file import read_event_file, write_event_file
from .simulation import EventSimulator

__all__ = [
    'read_event_file',
    'write_event_file',
    'EventSimulator',
]
