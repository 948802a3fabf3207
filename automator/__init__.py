"""
Automator

Runs sequences of delays, callables and key tokens with step/iteration
delays, runtime-injected sub-sequences and awaitable handler results.

Core modules:
- core.engine: the step driver and completion handle
- core.expander: "tabx3"-style repeat expansion
- core.dispatch / core.keyboard: action shapes and default handlers
"""

__version__ = "0.1.0"
