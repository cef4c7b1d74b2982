from __future__ import annotations
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple, Union

from .domain import OutlineTree, TaskNode

TaskLike = Union[TaskNode, Mapping[str, Any]]


def _coerce(tasks: Iterable[TaskLike]) -> List[TaskNode]:
    return [t if isinstance(t, TaskNode) else TaskNode.from_dict(t) for t in tasks]


def detect_parent_cycles(tasks: Iterable[TaskLike]) -> Set[int]:
    """Return the ids of tasks whose parent chain loops back onto itself.

    A task that merely hangs below a cycle is not reported; only the
    members of the loop are. Self-parented tasks are one-element loops.
    """
    parent_of: Dict[int, Optional[int]] = {}
    for t in _coerce(tasks):
        parent_of.setdefault(t.id, t.parent_id)

    ON_PATH, DONE = 1, 2
    state: Dict[int, int] = {}
    in_cycle: Set[int] = set()

    for start in parent_of:
        if start in state:
            continue
        path: List[int] = []
        node: Optional[int] = start
        while node is not None and node in parent_of and node not in state:
            state[node] = ON_PATH
            path.append(node)
            node = parent_of[node]
        if node is not None and state.get(node) == ON_PATH:
            in_cycle.update(path[path.index(node):])
        for visited in path:
            state[visited] = DONE
    return in_cycle


def build_forest(tasks: Iterable[TaskLike]) -> List[OutlineTree]:
    """Turn a flat task list into an ordered forest.

    Roots and siblings keep input order. A task becomes a root when it has
    no parent, when its parent is absent from the list (orphan), or when
    it takes part in a parent cycle. Never raises on well-shaped input.
    """
    nodes = _coerce(tasks)
    trees: List[OutlineTree] = []
    index: Dict[int, OutlineTree] = {}
    for task in nodes:
        tree = OutlineTree(task=task)
        trees.append(tree)
        index.setdefault(task.id, tree)

    cyclic = detect_parent_cycles(nodes)
    roots: List[OutlineTree] = []
    for tree in trees:
        pid = tree.task.parent_id
        parent = index.get(pid) if pid is not None else None
        if parent is None or parent is tree or tree.task.id in cyclic:
            roots.append(tree)
        else:
            parent.children.append(tree)
    return roots


def walk_forest(forest: Iterable[OutlineTree]) -> Iterator[Tuple[int, OutlineTree]]:
    """Yield ``(depth, node)`` pairs in display (pre-)order."""
    stack: List[Tuple[int, OutlineTree]] = [(0, t) for t in reversed(list(forest))]
    while stack:
        depth, tree = stack.pop()
        yield depth, tree
        stack.extend((depth + 1, child) for child in reversed(tree.children))


def find_node(forest: Iterable[OutlineTree], task_id: int) -> Optional[OutlineTree]:
    for _, tree in walk_forest(forest):
        if tree.task.id == task_id:
            return tree
    return None


def descendant_ids(tasks: Iterable[TaskLike], task_id: int) -> Set[int]:
    """Ids reachable below ``task_id`` in the forest built from ``tasks``."""
    found = find_node(build_forest(tasks), task_id)
    if found is None:
        return set()
    return {tree.task.id for _, tree in walk_forest(found.children)}


def visual_indent(depth: int, max_depth: int) -> int:
    # rendering uses a finite scale, the tree does not
    return max(0, min(depth, max_depth))
