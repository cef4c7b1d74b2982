"""Glue for one open template outline: the read model, both coordinators
and the view state, kept in step through ``outline_changed``.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from . import conf
from .backend import OrmBackend, OutlineBackend
from .cache import OutlineCache
from .coordinator import OutlineMutationCoordinator
from .domain import Section, SectionOutline, TaskNode
from .ordering import SectionOrderingEngine
from .signals import outline_changed
from .tree import visual_indent, walk_forest
from .view_state import OutlineViewState


@dataclass(frozen=True)
class OutlineRow:
    section: Section
    task: Optional[TaskNode]
    depth: int
    indent: int
    has_children: bool = False


class TemplateOutline:
    def __init__(self, template_id: int, backend: Optional[OutlineBackend] = None,
                 cache: Optional[OutlineCache] = None):
        self.template_id = template_id
        self.backend = backend if backend is not None else OrmBackend()
        self.cache = cache if cache is not None else OutlineCache()
        self.mutations = OutlineMutationCoordinator(self.backend, self.cache)
        self.ordering = SectionOrderingEngine(self.backend, self.cache)
        self.view = OutlineViewState()
        outline_changed.connect(self._on_outline_changed)

    def close(self) -> None:
        outline_changed.disconnect(self._on_outline_changed)

    def _on_outline_changed(self, sender, cache=None, template_id=None, reason=None, **kwargs) -> None:
        if cache is self.cache and template_id == self.template_id:
            self.view.prune(self.cache.get_forest(self.template_id))

    # -------------------- reads --------------------
    async def open(self) -> List[SectionOutline]:
        await self.ordering.load(self.template_id)
        forest = await self.mutations.load_tasks(self.template_id)
        self.view.initialize(self.cache.section_order(self.template_id))
        return forest

    def get_forest(self) -> List[SectionOutline]:
        return self.cache.get_forest(self.template_id)

    def totals(self) -> Tuple[int, int]:
        return self.cache.totals(self.template_id)

    def rows(self) -> Iterator[OutlineRow]:
        """Visible rows in display order, honouring expansion state."""
        max_depth = conf.max_visual_depth()
        for outline in self.get_forest():
            yield OutlineRow(section=outline.section, task=None, depth=0, indent=0,
                             has_children=bool(outline.roots))
            if not self.view.is_section_expanded(outline.section.id):
                continue
            hidden_below: Optional[int] = None
            for depth, tree in walk_forest(outline.roots):
                if hidden_below is not None:
                    if depth > hidden_below:
                        continue
                    hidden_below = None
                yield OutlineRow(section=outline.section, task=tree.task, depth=depth,
                                 indent=visual_indent(depth, max_depth),
                                 has_children=bool(tree.children))
                if tree.children and not self.view.is_task_expanded(tree.task.id):
                    hidden_below = depth

    # -------------------- task edits --------------------
    async def create_task(self, section_id: int, parent_id: Optional[int], title: str,
                          description: str = "", **fields: Any) -> TaskNode:
        return await self.mutations.create_task(section_id, parent_id, title, description, **fields)

    async def add_subtask(self, parent_id: int, title: str) -> TaskNode:
        task = await self.mutations.add_subtask(parent_id, title)
        self.view.expanded_tasks.add(parent_id)
        return task

    async def update_task(self, task_id: int, patch: Mapping[str, Any]) -> TaskNode:
        task = await self.mutations.update_task(task_id, patch)
        if self.view.editing_task_id == task_id:
            self.view.stop_editing()
        return task

    async def delete_task(self, task_id: int) -> None:
        await self.mutations.delete_task(task_id)

    async def reorder_tasks(self, dragged_id: int, over_id: int) -> bool:
        return await self.mutations.reorder_tasks(dragged_id, over_id)

    async def reload_stale(self) -> List[int]:
        return await self.mutations.reload_stale()

    # -------------------- sections --------------------
    async def create_section(self, title: str) -> Section:
        section = await self.mutations.create_section(self.template_id, title)
        self.view.expanded_sections.add(section.id)
        return section

    async def rename_section(self, section_id: int, title: str) -> Section:
        return await self.mutations.rename_section(section_id, title)

    async def delete_section(self, section_id: int) -> None:
        await self.mutations.delete_section(section_id)

    async def drop(self, dragged_id: int, target_index: int) -> bool:
        return await self.ordering.drop(self.template_id, dragged_id, target_index)

    async def drop_on(self, dragged_id: int, over_id: int) -> bool:
        return await self.ordering.drop_on(self.template_id, dragged_id, over_id)
