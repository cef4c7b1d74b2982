"""Explicit read model of the backend's sections and flat task lists.

The cache is injected into the coordinators rather than held as ambient
state. Task lists are only ever replaced wholesale with a list fetched
after a confirmed write; the section order is the one piece of state the
ordering engine may set optimistically.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .domain import Section, SectionOutline, TaskNode
from .errors import NotFoundError
from .signals import outline_changed
from .tree import build_forest

logger = logging.getLogger(__name__)


@dataclass
class _TemplateEntry:
    sections: Dict[int, Section] = field(default_factory=dict)
    order: List[int] = field(default_factory=list)
    tasks: Dict[int, List[TaskNode]] = field(default_factory=dict)
    version: int = 0
    forest: Optional[Tuple[int, List[SectionOutline]]] = None


class OutlineCache:
    def __init__(self):
        self._templates: Dict[int, _TemplateEntry] = {}
        self._section_template: Dict[int, int] = {}

    # -------------------- internals --------------------
    def _entry(self, template_id: int) -> _TemplateEntry:
        try:
            return self._templates[template_id]
        except KeyError:
            raise NotFoundError(f"Template {template_id} is not loaded.")

    def _changed(self, template_id: int, reason: str) -> None:
        entry = self._templates[template_id]
        entry.version += 1
        logger.debug("Outline cache for template %s changed (%s), version %d",
                     template_id, reason, entry.version)
        outline_changed.send(sender=self.__class__, cache=self, template_id=template_id, reason=reason)

    # -------------------- sections --------------------
    def has_template(self, template_id: int) -> bool:
        return template_id in self._templates

    def load_sections(self, template_id: int, sections: Iterable[Section]) -> None:
        """Replace the template's sections with a server list (already ordered)."""
        entry = self._templates.setdefault(template_id, _TemplateEntry())
        sections = list(sections)
        for old_id in entry.sections:
            self._section_template.pop(old_id, None)
        entry.sections = {s.id: s for s in sections}
        entry.order = [s.id for s in sections]
        entry.tasks = {sid: tasks for sid, tasks in entry.tasks.items() if sid in entry.sections}
        for s in sections:
            self._section_template[s.id] = template_id
        self._changed(template_id, "sections")

    def sections(self, template_id: int) -> List[Section]:
        entry = self._entry(template_id)
        return [entry.sections[sid] for sid in entry.order]

    def section_order(self, template_id: int) -> List[int]:
        return list(self._entry(template_id).order)

    def set_section_order(self, template_id: int, order: Iterable[int], reason: str = "order") -> None:
        entry = self._entry(template_id)
        order = list(order)
        if sorted(order) != sorted(entry.sections):
            raise ValueError(f"{order} is not a permutation of the sections of template {template_id}")
        if order != entry.order:
            entry.order = order
            self._changed(template_id, reason)

    def template_of_section(self, section_id: int) -> int:
        try:
            return self._section_template[section_id]
        except KeyError:
            raise NotFoundError(f"Section {section_id} is not loaded.")

    def get_section(self, section_id: int) -> Section:
        return self._entry(self.template_of_section(section_id)).sections[section_id]

    def put_section(self, section: Section) -> None:
        entry = self._entry(section.template_id)
        if section.id not in entry.sections:
            entry.order.append(section.id)
            entry.tasks.setdefault(section.id, [])
        entry.sections[section.id] = section
        self._section_template[section.id] = section.template_id
        self._changed(section.template_id, "section")

    def drop_section(self, section_id: int) -> None:
        template_id = self.template_of_section(section_id)
        entry = self._entry(template_id)
        entry.sections.pop(section_id, None)
        entry.tasks.pop(section_id, None)
        entry.order = [sid for sid in entry.order if sid != section_id]
        self._section_template.pop(section_id, None)
        self._changed(template_id, "section")

    # -------------------- tasks --------------------
    def replace_tasks(self, section_id: int, tasks: Iterable[TaskNode]) -> None:
        template_id = self.template_of_section(section_id)
        self._entry(template_id).tasks[section_id] = list(tasks)
        self._changed(template_id, "tasks")

    def tasks(self, section_id: int) -> List[TaskNode]:
        entry = self._entry(self.template_of_section(section_id))
        return list(entry.tasks.get(section_id, []))

    def find_task(self, task_id: int) -> Optional[TaskNode]:
        for entry in self._templates.values():
            for tasks in entry.tasks.values():
                for task in tasks:
                    if task.id == task_id:
                        return task
        return None

    # -------------------- derived --------------------
    def get_forest(self, template_id: int) -> List[SectionOutline]:
        """Ordered sections with their task forests, memoized per cache version."""
        entry = self._entry(template_id)
        if entry.forest is not None and entry.forest[0] == entry.version:
            return entry.forest[1]
        forest = [
            SectionOutline(section=entry.sections[sid], roots=tuple(build_forest(entry.tasks.get(sid, []))))
            for sid in entry.order
        ]
        entry.forest = (entry.version, forest)
        return forest

    def totals(self, template_id: int) -> Tuple[int, int]:
        """(task count, summed estimated days) across the template."""
        entry = self._entry(template_id)
        tasks = [t for sid in entry.order for t in entry.tasks.get(sid, [])]
        return len(tasks), sum(t.estimated_days or 0 for t in tasks)
