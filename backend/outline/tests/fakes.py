"""In-memory stand-in for the REST backend used by the coordinator tests."""
import asyncio
from typing import Any, Dict, List, Mapping, Optional

from outline.domain import PATCHABLE_FIELDS, Section, TaskNode
from outline.errors import NotFoundError, ReorderConflictError, ValidationError
from outline.tree import descendant_ids


class FakeBackend:
    def __init__(self):
        self.sections: Dict[int, Section] = {}
        self.tasks: Dict[int, TaskNode] = {}
        self.templates: set = set()
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.gate_reorders = False
        self.pending: List[asyncio.Future] = []
        self._next_id = 1

    # -------------------- seeding helpers --------------------
    def _allocate(self) -> int:
        nid = self._next_id
        self._next_id += 1
        return nid

    def add_template(self) -> int:
        tid = self._allocate()
        self.templates.add(tid)
        return tid

    def add_section(self, template_id: int, title: str) -> int:
        order = max((s.order for s in self.sections.values() if s.template_id == template_id), default=0) + 1
        sid = self._allocate()
        self.sections[sid] = Section(id=sid, title=title, template_id=template_id, order=order)
        return sid

    def add_task(self, section_id: int, title: str, parent_id: Optional[int] = None, **fields) -> int:
        task_id = fields.pop('id', None) or self._allocate()
        order = max((t.sort_order for t in self.tasks.values()
                     if t.section_id == section_id and t.parent_id == parent_id), default=0) + 1
        self.tasks[task_id] = TaskNode(id=task_id, title=title, section_id=section_id,
                                       parent_id=parent_id, sort_order=order, **fields)
        return task_id

    def release(self, index: int, error: Optional[Exception] = None) -> None:
        future = self.pending[index]
        if error is None:
            future.set_result(None)
        else:
            future.set_exception(error)

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        error = self.failures.pop(name, None)
        if error is not None:
            raise error

    # -------------------- backend interface --------------------
    async def list_sections(self, template_id: int) -> List[Section]:
        self._maybe_fail('list_sections')
        if template_id not in self.templates:
            raise NotFoundError(f'Template {template_id} not found.')
        return sorted((s for s in self.sections.values() if s.template_id == template_id),
                      key=lambda s: (s.order, -s.id))

    async def create_section(self, template_id: int, title: str) -> Section:
        self._maybe_fail('create_section')
        return self.sections[self.add_section(template_id, title)]

    async def update_section(self, section_id: int, patch: Mapping[str, Any]) -> Section:
        self._maybe_fail('update_section')
        if section_id not in self.sections:
            raise NotFoundError(f'Section {section_id} not found.')
        current = self.sections[section_id]
        self.sections[section_id] = Section(id=current.id, title=patch.get('title', current.title),
                                            template_id=current.template_id, order=current.order)
        return self.sections[section_id]

    async def delete_section(self, section_id: int) -> None:
        self._maybe_fail('delete_section')
        if self.sections.pop(section_id, None) is None:
            raise NotFoundError(f'Section {section_id} not found.')
        self.tasks = {tid: t for tid, t in self.tasks.items() if t.section_id != section_id}

    async def reorder_sections(self, template_id: int, ordered_ids: List[int]) -> None:
        self._maybe_fail('reorder_sections')
        if self.gate_reorders:
            future = asyncio.get_running_loop().create_future()
            self.pending.append(future)
            await future
        current = [s.id for s in self.sections.values() if s.template_id == template_id]
        if sorted(current) != sorted(ordered_ids):
            raise ReorderConflictError('Stale section order.')
        for position, sid in enumerate(ordered_ids, start=1):
            s = self.sections[sid]
            self.sections[sid] = Section(id=s.id, title=s.title, template_id=s.template_id, order=position)

    async def list_tasks_for_section(self, section_id: int) -> List[TaskNode]:
        self._maybe_fail('list_tasks_for_section')
        if section_id not in self.sections:
            raise NotFoundError(f'Section {section_id} not found.')
        return sorted((t for t in self.tasks.values() if t.section_id == section_id),
                      key=lambda t: (t.sort_order, t.id))

    async def create_task(self, data: Mapping[str, Any]) -> TaskNode:
        self._maybe_fail('create_task')
        section_id = data['section_id']
        if section_id not in self.sections:
            raise NotFoundError(f'Section {section_id} not found.')
        parent_id = data.get('parent_id')
        if parent_id is not None and parent_id not in self.tasks:
            raise ValidationError('Unknown parent.')
        fields = {k: v for k, v in data.items() if k in PATCHABLE_FIELDS and k not in ('title', 'parent_id')}
        return self.tasks[self.add_task(section_id, data['title'], parent_id, **fields)]

    async def update_task(self, task_id: int, patch: Mapping[str, Any]) -> TaskNode:
        self._maybe_fail('update_task')
        if task_id not in self.tasks:
            raise NotFoundError(f'Task {task_id} not found.')
        current = self.tasks[task_id]
        if 'parent_id' in patch and patch['parent_id'] is not None:
            section_tasks = [t for t in self.tasks.values() if t.section_id == current.section_id]
            if patch['parent_id'] in descendant_ids(section_tasks, task_id) | {task_id}:
                raise ValidationError('Would create a cycle.')
        self.tasks[task_id] = current.apply(patch)
        return self.tasks[task_id]

    async def delete_task(self, task_id: int) -> None:
        self._maybe_fail('delete_task')
        if self.tasks.pop(task_id, None) is None:
            raise NotFoundError(f'Task {task_id} not found.')

    async def reorder_tasks(self, task_updates) -> None:
        self._maybe_fail('reorder_tasks')
        for update in task_updates:
            if update['id'] not in self.tasks:
                raise NotFoundError(f"Task {update['id']} not found.")
        for update in task_updates:
            t = self.tasks[update['id']]
            self.tasks[t.id] = TaskNode(**{**t.to_dict(), 'sort_order': update['sort_order']})
