"""
Core package for the automator.
Lightweight package init to avoid import cycles.

Consumers should import submodules directly, e.g.:
  from automator.core.engine import Automator
  from automator.core.expander import expand_actions
  from automator.core.sequence_loader import load_sequence
"""

__all__: list[str] = []
