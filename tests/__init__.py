"""
Forward Multiplicity Test Suite

Test Organization:
- tests/unit/: Isolated collaborator, container and codec tests
- tests/integration/: Stage gating, run hooks, outputs and CLI
"""

__version__ = "1.0.0"
