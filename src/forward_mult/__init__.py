"""Forward multiplicity event pipeline"""

__version__ = '1.0.0'

from .config_schema import ForwardMultConfig, load_config
from .pipeline import ForwardMultiplicityTask

__all__ = [
    '__version__',
    'ForwardMultConfig',
    'load_config',
    'ForwardMultiplicityTask',
]
