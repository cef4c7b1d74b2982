from __future__ import annotations
from typing import Iterable, Optional, Set

from .domain import SectionOutline
from .tree import walk_forest


class OutlineViewState:
    """Client-side bookkeeping: expanded sections/tasks and the task being edited."""

    def __init__(self):
        self.expanded_sections: Set[int] = set()
        self.expanded_tasks: Set[int] = set()
        self.editing_task_id: Optional[int] = None
        self._initialized = False

    def initialize(self, section_ids: Iterable[int]) -> None:
        # first load of a template opens every section
        if not self._initialized:
            self.expanded_sections = set(section_ids)
            self._initialized = True

    def toggle_section(self, section_id: int) -> bool:
        if section_id in self.expanded_sections:
            self.expanded_sections.discard(section_id)
            return False
        self.expanded_sections.add(section_id)
        return True

    def toggle_task(self, task_id: int) -> bool:
        if task_id in self.expanded_tasks:
            self.expanded_tasks.discard(task_id)
            return False
        self.expanded_tasks.add(task_id)
        return True

    def is_section_expanded(self, section_id: int) -> bool:
        return section_id in self.expanded_sections

    def is_task_expanded(self, task_id: int) -> bool:
        return task_id in self.expanded_tasks

    def start_editing(self, task_id: int) -> None:
        self.editing_task_id = task_id

    def stop_editing(self) -> None:
        self.editing_task_id = None

    def prune(self, outline: Iterable[SectionOutline]) -> None:
        """Forget ids that no longer exist after a cache change."""
        outline = list(outline)
        section_ids = {o.section.id for o in outline}
        task_ids = {tree.task.id for o in outline for _, tree in walk_forest(o.roots)}
        self.expanded_sections &= section_ids
        self.expanded_tasks &= task_ids
        if self.editing_task_id is not None and self.editing_task_id not in task_ids:
            self.editing_task_id = None
