"""Value objects shared by the tree builder, the cache and the coordinators.

Parent/child structure is recorded only in ``TaskNode.parent_id``. The
``children`` of an outline are always derived (see ``tree.build_forest``)
and are never read from input payloads.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace, asdict
from datetime import date
from typing import Any, Dict, Mapping, Optional, Tuple

# camelCase keys used on the wire -> attribute names
_WIRE_KEYS: Dict[str, str] = {
    "parentId": "parent_id",
    "parentTaskId": "parent_id",
    "sectionId": "section_id",
    "milestoneId": "section_id",
    "dueDate": "due_date",
    "assignedTo": "assigned_to",
    "estimatedDays": "estimated_days",
    "offsetDays": "offset_days",
    "daysFromMeeting": "offset_days",
    "sortOrder": "sort_order",
    "templateId": "template_id",
    "milestoneIds": "ordered_ids",
    "sectionIds": "ordered_ids",
    "taskUpdates": "task_updates",
}

# derived-only keys, dropped on ingestion
_DERIVED_KEYS = frozenset({"children", "subtasks"})

PATCHABLE_FIELDS: Tuple[str, ...] = (
    "title",
    "description",
    "parent_id",
    "due_date",
    "assigned_to",
    "estimated_days",
    "offset_days",
)


def normalize_keys(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Map wire (camelCase) keys to attribute names and drop derived keys."""
    return {_WIRE_KEYS.get(k, k): v for k, v in raw.items() if k not in _DERIVED_KEYS}


@dataclass(frozen=True)
class TaskNode:
    """Cached copy of one persisted task record."""
    id: int
    title: str
    section_id: int
    parent_id: Optional[int] = None
    description: str = ""
    due_date: Optional[date] = None
    assigned_to: Optional[str] = None
    estimated_days: int = 0
    offset_days: int = 0
    sort_order: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TaskNode":
        data = normalize_keys(raw)
        return cls(
            id=int(data["id"]),
            title=str(data.get("title") or ""),
            section_id=int(data["section_id"]),
            parent_id=None if data.get("parent_id") is None else int(data["parent_id"]),
            description=data.get("description") or "",
            due_date=data.get("due_date"),
            assigned_to=data.get("assigned_to"),
            estimated_days=int(data.get("estimated_days") or 0),
            offset_days=int(data.get("offset_days") or 0),
            sort_order=int(data.get("sort_order") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def apply(self, patch: Mapping[str, Any]) -> "TaskNode":
        """Return a copy with only the patchable fields in ``patch`` changed."""
        changes = {k: v for k, v in normalize_keys(patch).items() if k in PATCHABLE_FIELDS}
        return replace(self, **changes)


@dataclass(frozen=True)
class Section:
    """A milestone: the explicitly ordered top-level container of tasks."""
    id: int
    title: str
    template_id: int
    order: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Section":
        data = normalize_keys(raw)
        return cls(
            id=int(data["id"]),
            title=str(data.get("title") or ""),
            template_id=int(data["template_id"]),
            order=int(data.get("order", data.get("sort_order")) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OutlineTree:
    """A derived node of the outline forest. Never persisted."""
    task: TaskNode
    children: list = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.task.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.task.to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass(frozen=True)
class SectionOutline:
    """One section with its task forest, as returned by ``get_forest``."""
    section: Section
    roots: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        data = self.section.to_dict()
        data["tasks"] = [root.to_dict() for root in self.roots]
        return data
