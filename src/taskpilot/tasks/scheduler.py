"""Dependency-ordered scheduling of sub-tasks.

Dependencies are matched by sub-task *title*. A dependency naming a title that
no sibling carries never blocks. When no remaining sub-task is ready (a cycle),
ordering by dependencies is abandoned and the rest is placed by priority alone.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Set

from .base import SubTask

logger = logging.getLogger(__name__)


def _by_priority(sub_tasks: Sequence[SubTask]) -> List[SubTask]:
    # sorted() is stable, so equal priorities keep their input order
    return sorted(sub_tasks, key=lambda st: st.priority)


def unresolved_dependencies(sub_tasks: Sequence[SubTask]) -> Set[str]:
    """Dependency titles that name no sibling and are therefore always satisfied."""

    titles = {st.title for st in sub_tasks}
    return {dep for st in sub_tasks for dep in st.dependencies if dep not in titles}


def schedule(sub_tasks: Sequence[SubTask]) -> List[SubTask]:
    """Return ``sub_tasks`` reordered so dependencies run before dependents."""

    titles = {st.title for st in sub_tasks}
    placed_titles: Set[str] = set()
    ordered: List[SubTask] = []
    remaining = list(sub_tasks)

    while remaining:
        ready = [
            st
            for st in remaining
            if all(dep in placed_titles or dep not in titles for dep in st.dependencies)
        ]
        if not ready:
            logger.warning(
                "Circular dependencies among %s; falling back to priority order",
                [st.title for st in remaining],
            )
            ordered.extend(_by_priority(remaining))
            break
        for st in _by_priority(ready):
            ordered.append(st)
            placed_titles.add(st.title)
        ready_ids = {id(st) for st in ready}
        remaining = [st for st in remaining if id(st) not in ready_ids]

    return ordered
