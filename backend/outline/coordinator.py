from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Set

from .backend import OutlineBackend
from .cache import OutlineCache
from .domain import Section, SectionOutline, TaskNode, normalize_keys
from .errors import NotFoundError, OutlineError, ValidationError
from .ordering import move_item
from .serializers import SectionInputSerializer, TaskFieldsSerializer, TaskInputSerializer, validate_or_raise
from .tree import descendant_ids

logger = logging.getLogger(__name__)


class OutlineMutationCoordinator:
    """Turns outline edits into backend calls and refreshes the cache.

    The cached task list of a section is replaced only with a list fetched
    after the backend confirmed the write; a failed call leaves the cache
    exactly as it was. When that refetch fails the write still counts as
    done and the section is listed in ``stale_sections`` until reloaded.
    """

    def __init__(self, backend: OutlineBackend, cache: OutlineCache):
        self.backend = backend
        self.cache = cache
        self._refresh_seq: Dict[int, int] = {}
        # sections whose refetch failed after a confirmed write
        self.stale_sections: Set[int] = set()

    # -------------------- cache refresh --------------------
    async def refresh_section(self, section_id: int) -> bool:
        """Refetch one section's flat task list. False if a newer refresh won."""
        seq = self._refresh_seq.get(section_id, 0) + 1
        self._refresh_seq[section_id] = seq
        tasks = await self.backend.list_tasks_for_section(section_id)
        if self._refresh_seq.get(section_id) != seq:
            logger.debug("Dropping stale task list for section %s", section_id)
            return False
        self.cache.replace_tasks(section_id, tasks)
        self.stale_sections.discard(section_id)
        return True

    async def load_tasks(self, template_id: int) -> List[SectionOutline]:
        """Fetch task lists for every cached section of a template."""
        for section in self.cache.sections(template_id):
            await self.refresh_section(section.id)
        return self.cache.get_forest(template_id)

    def get_forest(self, template_id: int) -> List[SectionOutline]:
        return self.cache.get_forest(template_id)

    def _cached_task(self, task_id: int) -> TaskNode:
        task = self.cache.find_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found.")
        return task

    async def _call(self, section_id: int, coro):
        # NotFound means our copy is stale: resync, then let the caller know
        try:
            return await coro
        except NotFoundError:
            logger.info("Backend reported a missing record in section %s, refreshing", section_id)
            try:
                await self.refresh_section(section_id)
            except NotFoundError:
                self.cache.drop_section(section_id)
            raise

    async def _refresh_after_write(self, section_id: int) -> None:
        # the write is applied: a failed refetch must not read as a failed write
        try:
            await self.refresh_section(section_id)
        except NotFoundError:
            self.stale_sections.discard(section_id)
            self.cache.drop_section(section_id)
        except OutlineError as e:
            self.stale_sections.add(section_id)
            logger.warning("Write to section %s applied but refetch failed, marked stale: %s",
                           section_id, e.message)

    async def reload_stale(self) -> List[int]:
        """Retry the refetch of every stale section; returns those reloaded."""
        reloaded = []
        for section_id in sorted(self.stale_sections):
            if await self.refresh_section(section_id):
                reloaded.append(section_id)
        return reloaded

    # -------------------- tasks --------------------
    async def create_task(self, section_id: int, parent_id: Optional[int], title: str,
                          description: str = "", **fields: Any) -> TaskNode:
        data = validate_or_raise(TaskInputSerializer, {
            **normalize_keys(fields),
            "section_id": section_id,
            "parent_id": parent_id,
            "title": title,
            "description": description,
        })
        self.cache.template_of_section(section_id)
        task = await self._call(section_id, self.backend.create_task(data))
        await self._refresh_after_write(section_id)
        return task

    async def add_subtask(self, parent_id: int, title: str, description: str = "") -> TaskNode:
        parent = self._cached_task(parent_id)
        return await self.create_task(parent.section_id, parent.id, title, description)

    def _validate_parent(self, task: TaskNode, parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        if parent_id == task.id:
            raise ValidationError("A task cannot be its own parent.", detail={"parent_id": ["Self reference."]})
        siblings = self.cache.tasks(task.section_id)
        if not any(t.id == parent_id for t in siblings):
            raise ValidationError(
                f"Parent task {parent_id} is not in the same section.",
                detail={"parent_id": ["Unknown parent for this section."]},
            )
        if parent_id in descendant_ids(siblings, task.id):
            raise ValidationError(
                "A task cannot be moved below one of its own subtasks.",
                detail={"parent_id": ["Would create a cycle."]},
            )

    async def update_task(self, task_id: int, patch: Mapping[str, Any]) -> TaskNode:
        current = self._cached_task(task_id)
        raw = normalize_keys(patch)
        if "section_id" in raw and raw["section_id"] != current.section_id:
            raise ValidationError(
                "Tasks cannot be moved between sections.",
                detail={"section_id": ["Read-only."]},
            )
        changes = {k: v for k, v in validate_or_raise(TaskFieldsSerializer, raw, partial=True).items()
                   if k in raw}
        if not changes:
            return current
        if "parent_id" in changes and changes["parent_id"] != current.parent_id:
            self._validate_parent(current, changes["parent_id"])
        updated = await self._call(current.section_id, self.backend.update_task(task_id, changes))
        await self._refresh_after_write(current.section_id)
        return updated

    async def delete_task(self, task_id: int) -> None:
        """Delete one task. Its subtasks are kept and show up as roots."""
        current = self._cached_task(task_id)
        await self._call(current.section_id, self.backend.delete_task(task_id))
        await self._refresh_after_write(current.section_id)

    async def reorder_tasks(self, dragged_id: int, over_id: int) -> bool:
        """Move ``dragged_id`` to ``over_id``'s slot among their shared siblings."""
        dragged = self._cached_task(dragged_id)
        over = self._cached_task(over_id)
        if dragged.section_id != over.section_id or dragged.parent_id != over.parent_id:
            raise ValidationError("Tasks can only be reordered among siblings.")
        siblings = sorted(
            (t for t in self.cache.tasks(dragged.section_id) if t.parent_id == dragged.parent_id),
            key=lambda t: t.sort_order,
        )
        before = [t.id for t in siblings]
        after = move_item(before, dragged_id, before.index(over_id))
        if after == before:
            return False
        updates = [{"id": tid, "sort_order": position} for position, tid in enumerate(after, start=1)]
        await self._call(dragged.section_id, self.backend.reorder_tasks(updates))
        await self._refresh_after_write(dragged.section_id)
        return True

    # -------------------- sections --------------------
    async def create_section(self, template_id: int, title: str) -> Section:
        data = validate_or_raise(SectionInputSerializer, {"template_id": template_id, "title": title})
        section = await self.backend.create_section(template_id, data["title"])
        self.cache.put_section(section)
        return section

    async def rename_section(self, section_id: int, title: str) -> Section:
        current = self.cache.get_section(section_id)
        data = validate_or_raise(SectionInputSerializer, {"template_id": current.template_id, "title": title})
        section = await self._call(section_id, self.backend.update_section(section_id, {"title": data["title"]}))
        self.cache.put_section(section)
        return section

    async def delete_section(self, section_id: int) -> None:
        """Delete a section together with every task in it."""
        self.cache.get_section(section_id)
        try:
            await self.backend.delete_section(section_id)
        except NotFoundError:
            self.cache.drop_section(section_id)
            raise
        self.cache.drop_section(section_id)
