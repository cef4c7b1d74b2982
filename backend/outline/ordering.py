"""Section ordering: the drag-and-drop array move and the optimistic
reorder state machine with stale-response suppression.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, List, Optional, Sequence, Tuple, TypeVar

from .backend import OutlineBackend
from .cache import OutlineCache
from .domain import Section
from .errors import NotFoundError, OutlineError
from .signals import section_order_changed

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)


def move_item(order: Sequence[T], item: T, target_index: int) -> List[T]:
    """Return ``order`` with ``item`` moved to ``target_index``.

    The index is clamped to ``[0, len(order) - 1]``; every other item keeps
    its relative position. Moving an item to its own index is a no-op.
    """
    result = list(order)
    if item not in result:
        raise ValueError(f"{item!r} is not in the order")
    target = max(0, min(int(target_index), len(result) - 1))
    result.remove(item)
    result.insert(target, item)
    return result


class ReorderState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    OPTIMISTICALLY_REORDERED = "optimistically_reordered"
    RECONCILING = "reconciling"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class ReorderRequest:
    template_id: int
    seq: int
    order: Tuple[int, ...]


@dataclass
class _TemplateOrdering:
    confirmed: List[int] = field(default_factory=list)
    state: ReorderState = ReorderState.IDLE
    issued_seq: int = 0
    dragging: Optional[int] = None
    state_before_drag: ReorderState = ReorderState.IDLE


def _fit(order: Sequence[int], current: Sequence[int]) -> List[int]:
    # keep `order` for ids still present, append ids it does not know about
    present = set(current)
    kept = [i for i in order if i in present]
    return kept + [i for i in current if i not in set(kept)]


class SectionOrderingEngine:
    """Maintains each template's displayed section order.

    A drop is applied to the cache synchronously (optimistic), then
    persisted. Every drop gets a per-template sequence number and only the
    latest-issued request may confirm or roll back; earlier responses are
    ignored for state purposes.
    """

    def __init__(self, backend: OutlineBackend, cache: OutlineCache):
        self.backend = backend
        self.cache = cache
        self._templates: Dict[int, _TemplateOrdering] = {}

    def _ordering(self, template_id: int) -> _TemplateOrdering:
        try:
            return self._templates[template_id]
        except KeyError:
            raise NotFoundError(f"Section order for template {template_id} is not loaded.")

    def _set_state(self, template_id: int, state: ReorderState) -> None:
        self._templates[template_id].state = state
        section_order_changed.send(
            sender=self.__class__, template_id=template_id, state=state,
            order=self.cache.section_order(template_id),
        )

    # -------------------- queries --------------------
    def state(self, template_id: int) -> ReorderState:
        return self._ordering(template_id).state

    def confirmed_order(self, template_id: int) -> List[int]:
        return list(self._ordering(template_id).confirmed)

    def displayed_order(self, template_id: int) -> List[int]:
        return self.cache.section_order(template_id)

    # -------------------- loading --------------------
    async def load(self, template_id: int) -> List[Section]:
        sections = await self.backend.list_sections(template_id)
        self.cache.load_sections(template_id, sections)
        ordering = self._templates.setdefault(template_id, _TemplateOrdering())
        ordering.confirmed = [s.id for s in sections]
        ordering.issued_seq += 1
        ordering.dragging = None
        self._set_state(template_id, ReorderState.IDLE)
        return sections

    # -------------------- gesture --------------------
    def begin_drag(self, template_id: int, section_id: int) -> None:
        ordering = self._ordering(template_id)
        if section_id not in self.cache.section_order(template_id):
            raise NotFoundError(f"Section {section_id} is not in template {template_id}.")
        if ordering.state is not ReorderState.DRAGGING:
            ordering.state_before_drag = ordering.state
        ordering.dragging = section_id
        self._set_state(template_id, ReorderState.DRAGGING)

    def cancel_drag(self, template_id: int) -> None:
        ordering = self._ordering(template_id)
        if ordering.state is ReorderState.DRAGGING:
            ordering.dragging = None
            self._set_state(template_id, ordering.state_before_drag)

    def apply_drop(self, template_id: int, dragged_id: int, target_index: int) -> Optional[ReorderRequest]:
        """Apply a drop locally and return the request to persist.

        Returns None when the drop does not change the order.
        """
        ordering = self._ordering(template_id)
        current = self.cache.section_order(template_id)
        if dragged_id not in current:
            raise NotFoundError(f"Section {dragged_id} is not in template {template_id}.")
        new_order = move_item(current, dragged_id, target_index)
        ordering.dragging = None
        if new_order == current:
            if ordering.state is ReorderState.DRAGGING:
                self._set_state(template_id, ordering.state_before_drag)
            return None
        ordering.issued_seq += 1
        self.cache.set_section_order(template_id, new_order, reason="optimistic")
        self._set_state(template_id, ReorderState.OPTIMISTICALLY_REORDERED)
        return ReorderRequest(template_id=template_id, seq=ordering.issued_seq, order=tuple(new_order))

    def _is_latest(self, request: ReorderRequest) -> bool:
        return self._ordering(request.template_id).issued_seq == request.seq

    async def persist(self, request: ReorderRequest) -> bool:
        """Send ``request`` and reconcile. Returns False if it was superseded.

        On failure of the latest request the displayed order reverts to the
        last confirmed one and the error is re-raised. Failures of
        superseded requests are re-raised without touching state; their
        successes only move the confirmed order. A ``load`` supersedes
        every request issued before it.
        """
        template_id = request.template_id
        ordering = self._ordering(template_id)
        if self._is_latest(request):
            self._set_state(template_id, ReorderState.RECONCILING)
        try:
            await self.backend.reorder_sections(template_id, list(request.order))
        except OutlineError:
            if not self._is_latest(request):
                logger.debug("Ignoring failure of superseded reorder #%d for template %s",
                             request.seq, template_id)
                raise
            rollback = _fit(ordering.confirmed, self.cache.section_order(template_id))
            self.cache.set_section_order(template_id, rollback, reason="rollback")
            self._set_state(template_id, ReorderState.ROLLED_BACK)
            logger.warning("Reorder #%d for template %s failed, reverted to %s",
                           request.seq, template_id, rollback)
            raise

        if not self._is_latest(request):
            # the server now holds this order even though a newer one is displayed
            ordering.confirmed = list(request.order)
            logger.debug("Discarding stale reorder response #%d for template %s (latest #%d)",
                         request.seq, template_id, ordering.issued_seq)
            return False

        ordering.confirmed = list(request.order)
        self._set_state(template_id, ReorderState.CONFIRMED)
        logger.info("Reorder #%d for template %s confirmed: %s", request.seq, template_id, list(request.order))

        sections = await self.backend.list_sections(template_id)
        if not self._is_latest(request):
            return False
        self.cache.load_sections(template_id, sections)
        ordering.confirmed = [s.id for s in sections]
        return True

    async def drop(self, template_id: int, dragged_id: int, target_index: int) -> bool:
        """Optimistic apply + persist. True when the drop ended confirmed."""
        request = self.apply_drop(template_id, dragged_id, target_index)
        if request is None:
            return True
        return await self.persist(request)

    async def drop_on(self, template_id: int, dragged_id: int, over_id: int) -> bool:
        """Drop ``dragged_id`` onto the position of the section ``over_id``."""
        current = self.cache.section_order(template_id)
        if over_id not in current:
            raise NotFoundError(f"Section {over_id} is not in template {template_id}.")
        return await self.drop(template_id, dragged_id, current.index(over_id))
