"""The backend collaborator the outline core talks to.

``OutlineBackend`` is the shape the coordinators depend on; every call is a
suspension point. ``OrmBackend`` serves it from this project's own store.
"""
from __future__ import annotations
from typing import Any, Iterable, List, Mapping, Protocol

from asgiref.sync import sync_to_async

from . import store
from .domain import Section, TaskNode


class OutlineBackend(Protocol):
    async def list_sections(self, template_id: int) -> List[Section]: ...

    async def create_section(self, template_id: int, title: str) -> Section: ...

    async def update_section(self, section_id: int, patch: Mapping[str, Any]) -> Section: ...

    async def delete_section(self, section_id: int) -> None: ...

    async def reorder_sections(self, template_id: int, ordered_ids: List[int]) -> None: ...

    async def list_tasks_for_section(self, section_id: int) -> List[TaskNode]: ...

    async def create_task(self, data: Mapping[str, Any]) -> TaskNode: ...

    async def update_task(self, task_id: int, patch: Mapping[str, Any]) -> TaskNode: ...

    async def delete_task(self, task_id: int) -> None: ...

    async def reorder_tasks(self, task_updates: Iterable[Mapping[str, Any]]) -> None: ...


class OrmBackend:
    """Async adapter over ``outline.store``; ORM work runs via ``sync_to_async``."""

    async def list_sections(self, template_id: int) -> List[Section]:
        return await sync_to_async(store.list_sections)(template_id)

    async def create_section(self, template_id: int, title: str) -> Section:
        return await sync_to_async(store.create_section)(template_id, title)

    async def update_section(self, section_id: int, patch: Mapping[str, Any]) -> Section:
        return await sync_to_async(store.update_section)(section_id, patch)

    async def delete_section(self, section_id: int) -> None:
        await sync_to_async(store.delete_section)(section_id)

    async def reorder_sections(self, template_id: int, ordered_ids: List[int]) -> None:
        await sync_to_async(store.reorder_sections)(template_id, list(ordered_ids))

    async def list_tasks_for_section(self, section_id: int) -> List[TaskNode]:
        return await sync_to_async(store.list_tasks_for_section)(section_id)

    async def create_task(self, data: Mapping[str, Any]) -> TaskNode:
        return await sync_to_async(store.create_task)(data)

    async def update_task(self, task_id: int, patch: Mapping[str, Any]) -> TaskNode:
        return await sync_to_async(store.update_task)(task_id, patch)

    async def delete_task(self, task_id: int) -> None:
        await sync_to_async(store.delete_task)(task_id)

    async def reorder_tasks(self, task_updates: Iterable[Mapping[str, Any]]) -> None:
        await sync_to_async(store.reorder_tasks)(list(task_updates))
