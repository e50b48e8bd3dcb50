"""
Cycle Detector - keeps the prerequisite graph acyclic.

Edges point from a lecture to its prerequisite. Adding `lecture -> candidate`
closes a loop iff `lecture` is already reachable from `candidate`, so the
check is a depth-first walk outward from `candidate` looking for `lecture`.

The walk uses an explicit frame stack, so deep prerequisite chains cannot hit
the recursion limit, and keeps two sets:
- visited: every node expanded so far (re-converging branches are walked once)
- on_path: nodes on the current root-to-frontier path

Meeting a node that is still on the current path means the stored graph
already contains a cycle. That is reported (and logged) rather than ignored.
Storage errors propagate as DatabaseError; there is no "assume no cycle"
fallback.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.prerequisites.repository import PrerequisiteRepository
from src.kernel.stores.lecture_store import LectureStore
from src.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CycleCheckResult:
    has_cycle: bool
    lecture_ids: List[uuid.UUID] = field(default_factory=list)
    path: List[str] = field(default_factory=list)
    # True when the loop was already in the stored graph, independent of the candidate edge
    pre_existing: bool = False

    @property
    def description(self) -> str:
        return " → ".join(self.path)


@dataclass
class _Frame:
    node: uuid.UUID
    neighbours: List[uuid.UUID]
    index: int = 0


def format_lecture_label(lecture_id: uuid.UUID, title: Optional[str]) -> str:
    if title is None:
        return f"Unknown Lecture ({lecture_id})"
    return f"{title} ({lecture_id})"


class CycleDetector:
    """Reachability checks over the stored prerequisite graph."""

    def __init__(
        self,
        session: AsyncSession,
        repository: Optional[PrerequisiteRepository] = None,
        lectures: Optional[LectureStore] = None,
    ):
        self.repository = repository or PrerequisiteRepository(session)
        self.lectures = lectures or LectureStore(session)

    async def check_cycle(
        self,
        lecture_id: uuid.UUID,
        candidate_prerequisite_id: uuid.UUID,
    ) -> CycleCheckResult:
        """Would adding `lecture_id -> candidate_prerequisite_id` create a cycle?"""
        if lecture_id == candidate_prerequisite_id:
            ids = [lecture_id, lecture_id]
            return CycleCheckResult(True, ids, await self._labels(ids))

        found = await self._search(candidate_prerequisite_id, lecture_id)
        if found is None:
            return CycleCheckResult(has_cycle=False)

        walk, pre_existing = found
        ids = walk if pre_existing else [lecture_id] + walk
        return CycleCheckResult(
            has_cycle=True,
            lecture_ids=ids,
            path=await self._labels(ids),
            pre_existing=pre_existing,
        )

    async def _search(
        self,
        start: uuid.UUID,
        target: uuid.UUID,
    ) -> Optional[tuple[List[uuid.UUID], bool]]:
        """
        Iterative DFS from `start`. Returns (path, pre_existing) on a hit:
        - the path start..target when `target` is reachable
        - the offending loop when an existing cycle is met first
        """
        visited = {start}
        on_path = {start}
        path = [start]
        stack = [_Frame(start, await self.repository.prerequisite_ids_of(start))]

        while stack:
            frame = stack[-1]
            if frame.index >= len(frame.neighbours):
                stack.pop()
                on_path.discard(frame.node)
                path.pop()
                continue

            nxt = frame.neighbours[frame.index]
            frame.index += 1

            if nxt == target:
                return path + [nxt], False

            if nxt in on_path:
                loop = path[path.index(nxt):] + [nxt]
                logger.warning(
                    "Existing prerequisite cycle found while walking the graph",
                    extra={"cycle": [str(n) for n in loop]},
                )
                return loop, True

            if nxt in visited:
                continue

            visited.add(nxt)
            on_path.add(nxt)
            path.append(nxt)
            stack.append(_Frame(nxt, await self.repository.prerequisite_ids_of(nxt)))

        return None

    async def find_cycles(self) -> List[CycleCheckResult]:
        """Audit the whole stored graph; one result per back edge found."""
        edges = await self.repository.list_all_edges()
        adjacency: Dict[uuid.UUID, List[uuid.UUID]] = {}
        for edge in edges:
            adjacency.setdefault(edge.lecture_id, []).append(edge.prerequisite_lecture_id)

        loops = find_cycles_in(adjacency)
        if loops:
            logger.warning("Prerequisite graph audit found %d cycle(s)", len(loops))

        titles = await self._titles(n for loop in loops for n in loop)
        return [
            CycleCheckResult(
                has_cycle=True,
                lecture_ids=loop,
                path=[format_lecture_label(n, titles.get(n)) for n in loop],
                pre_existing=True,
            )
            for loop in loops
        ]

    async def _titles(self, ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, str]:
        lectures = await self.lectures.get_lectures(ids)
        return {lecture_id: lecture.title for lecture_id, lecture in lectures.items()}

    async def _labels(self, ids: Sequence[uuid.UUID]) -> List[str]:
        titles = await self._titles(ids)
        return [format_lecture_label(n, titles.get(n)) for n in ids]


def find_cycles_in(adjacency: Mapping[uuid.UUID, Sequence[uuid.UUID]]) -> List[List[uuid.UUID]]:
    """
    Every loop closed by a back edge in `adjacency`, each as [n0, ..., n0].
    Nodes are visited in sorted order so the output is deterministic.
    """
    nodes = set(adjacency)
    for targets in adjacency.values():
        nodes.update(targets)

    visited: set = set()
    loops: List[List[uuid.UUID]] = []

    for root in sorted(nodes, key=str):
        if root in visited:
            continue
        visited.add(root)
        on_path = {root}
        path = [root]
        stack = [_Frame(root, sorted(adjacency.get(root, ()), key=str))]

        while stack:
            frame = stack[-1]
            if frame.index >= len(frame.neighbours):
                stack.pop()
                on_path.discard(frame.node)
                path.pop()
                continue

            nxt = frame.neighbours[frame.index]
            frame.index += 1

            if nxt in on_path:
                loops.append(path[path.index(nxt):] + [nxt])
                continue
            if nxt in visited:
                continue

            visited.add(nxt)
            on_path.add(nxt)
            path.append(nxt)
            stack.append(_Frame(nxt, sorted(adjacency.get(nxt, ()), key=str)))

    return loops
