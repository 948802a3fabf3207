# automator/core/expander.py
from __future__ import annotations

"""Repeat-token expansion
-------------------------
Turns ``"tabx3"`` into three ``"tab"`` actions before a run starts.
Everything else is copied over untouched and in order.
"""

import re
from typing import Any, Iterable

__all__ = ["expand_actions", "REPEAT_PATTERN"]

# <text>x<count> spanning the whole string (use fullmatch); greedy so "xx2" repeats "x"
REPEAT_PATTERN = re.compile(r"(.+)x([0-9]+)", re.DOTALL)


def expand_actions(actions: Iterable[Any]) -> list[Any]:
    """Return a new list with every ``<text>x<n>`` string replaced by n copies of ``<text>``.

    A count of 0 drops the element. Strings whose suffix does not match
    (``"ax"``, ``"ax-1"``, ``"ax1.5"``) stay literal.
    """
    expanded: list[Any] = []
    for action in actions:
        if isinstance(action, str):
            m = REPEAT_PATTERN.fullmatch(action)
            if m:
                text, count = m.group(1), int(m.group(2))
                expanded.extend([text] * count)
                continue
        expanded.append(action)
    return expanded
