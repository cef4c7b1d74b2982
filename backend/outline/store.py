"""TaskNode Store: synchronous ORM operations behind the REST surface and
``backend.OrmBackend``. All functions return domain objects, never rows.
"""
from __future__ import annotations
import functools
import logging
from typing import Any, Dict, Iterable, List, Mapping

from django.db import DatabaseError, transaction
from django.db.models import Max

from .domain import PATCHABLE_FIELDS, Section, TaskNode
from .errors import NotFoundError, ReorderConflictError, TransportError, ValidationError
from .models import ProjectTemplate, Section as SectionRow, TemplateTask
from .tree import descendant_ids

logger = logging.getLogger(__name__)

# domain attribute -> model column where they differ
_COLUMNS = {"parent_id": "parent_task_id", "offset_days": "days_from_meeting"}


def _db_guard(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as e:
            logger.exception("%s failed", func.__name__)
            raise TransportError(f"Storage failure in {func.__name__}: {e}") from e
    return wrapper


def task_to_node(row: TemplateTask) -> TaskNode:
    return TaskNode(
        id=row.id,
        title=row.title,
        section_id=row.section_id,
        parent_id=row.parent_task_id,
        description=row.description or "",
        due_date=row.due_date,
        assigned_to=row.assigned_to,
        estimated_days=row.estimated_days,
        offset_days=row.days_from_meeting,
        sort_order=row.sort_order,
    )


def section_to_domain(row: SectionRow) -> Section:
    return Section(id=row.id, title=row.title, template_id=row.template_id, order=row.sort_order)


def _get_section(section_id: int) -> SectionRow:
    try:
        return SectionRow.objects.get(pk=section_id)
    except SectionRow.DoesNotExist:
        raise NotFoundError(f"Section {section_id} not found.")


def _get_task(task_id: int) -> TemplateTask:
    try:
        return TemplateTask.objects.get(pk=task_id)
    except TemplateTask.DoesNotExist:
        raise NotFoundError(f"Task {task_id} not found.")


def _check_parent(section_id: int, task_id: int | None, parent_id: int | None) -> None:
    if parent_id is None:
        return
    if task_id is not None and parent_id == task_id:
        raise ValidationError("A task cannot be its own parent.", detail={"parent_id": ["Self reference."]})
    siblings = [task_to_node(r) for r in TemplateTask.objects.filter(section_id=section_id)]
    if not any(t.id == parent_id for t in siblings):
        raise ValidationError(
            f"Parent task {parent_id} is not in section {section_id}.",
            detail={"parent_id": ["Unknown parent for this section."]},
        )
    if task_id is not None and parent_id in descendant_ids(siblings, task_id):
        raise ValidationError(
            "A task cannot be moved below one of its own subtasks.",
            detail={"parent_id": ["Would create a cycle."]},
        )


# -------------------- templates --------------------
@_db_guard
def create_template(name: str, description: str = "") -> int:
    return ProjectTemplate.objects.create(name=name, description=description).id


# -------------------- sections --------------------
@_db_guard
def list_sections(template_id: int) -> List[Section]:
    if not ProjectTemplate.objects.filter(pk=template_id).exists():
        raise NotFoundError(f"Template {template_id} not found.")
    return [section_to_domain(r) for r in SectionRow.objects.filter(template_id=template_id)]


@_db_guard
def get_section(section_id: int) -> Section:
    return section_to_domain(_get_section(section_id))


@_db_guard
def create_section(template_id: int, title: str) -> Section:
    with transaction.atomic():
        if not ProjectTemplate.objects.filter(pk=template_id).exists():
            raise NotFoundError(f"Template {template_id} not found.")
        current = SectionRow.objects.filter(template_id=template_id).aggregate(m=Max('sort_order'))['m'] or 0
        row = SectionRow.objects.create(template_id=template_id, title=title, sort_order=current + 1)
    logger.info("Created section %s in template %s", row.id, template_id)
    return section_to_domain(row)


@_db_guard
def update_section(section_id: int, patch: Mapping[str, Any]) -> Section:
    row = _get_section(section_id)
    if "title" in patch:
        row.title = patch["title"]
    row.save()
    return section_to_domain(row)


@_db_guard
def delete_section(section_id: int) -> None:
    row = _get_section(section_id)
    count = row.tasks.count()
    row.delete()
    logger.info("Deleted section %s and %d task(s)", section_id, count)


@_db_guard
def reorder_sections(template_id: int, ordered_ids: Iterable[int]) -> None:
    """Persist ``ordered_ids`` as the section order (1..n).

    The list must be a permutation of the template's current sections.
    """
    ordered = [int(i) for i in ordered_ids]
    with transaction.atomic():
        rows = {r.id: r for r in SectionRow.objects.select_for_update().filter(template_id=template_id)}
        if sorted(rows) != sorted(ordered) or len(set(ordered)) != len(ordered):
            raise ReorderConflictError(
                f"Order {ordered} does not match the sections of template {template_id}."
            )
        for position, section_id in enumerate(ordered, start=1):
            row = rows[section_id]
            if row.sort_order != position:
                row.sort_order = position
                row.save(update_fields=['sort_order', 'updated_at'])
    logger.info("Reordered sections of template %s: %s", template_id, ordered)


# -------------------- tasks --------------------
@_db_guard
def list_tasks_for_section(section_id: int) -> List[TaskNode]:
    _get_section(section_id)
    return [task_to_node(r) for r in TemplateTask.objects.filter(section_id=section_id)]


@_db_guard
def create_task(data: Mapping[str, Any]) -> TaskNode:
    section_id = int(data["section_id"])
    parent_id = data.get("parent_id")
    with transaction.atomic():
        _get_section(section_id)
        _check_parent(section_id, None, parent_id)
        siblings = TemplateTask.objects.filter(section_id=section_id, parent_task_id=parent_id)
        current = siblings.aggregate(m=Max('sort_order'))['m'] or 0
        row = TemplateTask.objects.create(
            section_id=section_id,
            parent_task_id=parent_id,
            title=data["title"],
            description=data.get("description") or "",
            due_date=data.get("due_date"),
            assigned_to=data.get("assigned_to"),
            estimated_days=data.get("estimated_days") or 0,
            days_from_meeting=data.get("offset_days") or 0,
            sort_order=current + 1,
        )
    logger.info("Created task %s in section %s (parent %s)", row.id, section_id, parent_id)
    return task_to_node(row)


@_db_guard
def update_task(task_id: int, patch: Mapping[str, Any]) -> TaskNode:
    with transaction.atomic():
        row = _get_task(task_id)
        if "parent_id" in patch and patch["parent_id"] != row.parent_task_id:
            _check_parent(row.section_id, row.id, patch["parent_id"])
        for key in PATCHABLE_FIELDS:
            if key in patch:
                setattr(row, _COLUMNS.get(key, key), patch[key])
        row.save()
    return task_to_node(row)


@_db_guard
def delete_task(task_id: int) -> None:
    deleted, _ = TemplateTask.objects.filter(pk=task_id).delete()
    if not deleted:
        raise NotFoundError(f"Task {task_id} not found.")
    logger.info("Deleted task %s", task_id)


@_db_guard
def reorder_tasks(task_updates: Iterable[Mapping[str, Any]]) -> None:
    """Apply ``[{id, sort_order}, ...]``. Parent and section are untouched."""
    updates: Dict[int, int] = {int(u["id"]): int(u["sort_order"]) for u in task_updates}
    with transaction.atomic():
        rows = list(TemplateTask.objects.select_for_update().filter(pk__in=updates))
        missing = set(updates) - {r.id for r in rows}
        if missing:
            raise NotFoundError(f"Task(s) {sorted(missing)} not found.")
        for row in rows:
            row.sort_order = updates[row.id]
            row.save(update_fields=['sort_order', 'updated_at'])
