"""
Explicit arena for the stage chain of one pipeline.

The graph maps every stage id to the id of the stage it deploys into, or
``None`` for the last stage. A well-formed graph is a single chain: one head,
no branches, no cycles and no successor outside the arena.
"""

from collections.abc import Iterable, Mapping

from snapline.exceptions.domain import InvalidStageError
from snapline.models import PipelineStage


class StageGraph:
    """Singly linked chain of stage ids."""

    def __init__(self, links: Mapping[int, int | None] | None = None) -> None:
        self._next: dict[int, int | None] = dict(links or {})

    @classmethod
    def from_stages(cls, stages: Iterable[PipelineStage]) -> "StageGraph":
        return cls({stage.id: stage.next_stage_id for stage in stages})  # type: ignore[misc]

    def __contains__(self, stage_id: object) -> bool:
        return stage_id in self._next

    def __len__(self) -> int:
        return len(self._next)

    @property
    def links(self) -> dict[int, int | None]:
        return dict(self._next)

    def successor(self, stage_id: int) -> int | None:
        return self._next[stage_id]

    def predecessor(self, stage_id: int) -> int | None:
        for candidate, successor in self._next.items():
            if successor == stage_id:
                return candidate
        return None

    def head(self) -> int | None:
        """First stage of the chain, None for an empty pipeline."""
        successors = {s for s in self._next.values() if s is not None}
        heads = [stage_id for stage_id in self._next if stage_id not in successors]
        return heads[0] if heads else None

    def tail(self) -> int | None:
        ordered = self.ordered()
        return ordered[-1] if ordered else None

    def ordered(self) -> list[int]:
        """Stage ids from head to tail."""
        result: list[int] = []
        current = self.head()
        while current is not None and current not in result:
            result.append(current)
            current = self._next.get(current)
        return result

    def check(self) -> None:
        """Validate that the arena forms one simple chain.

        Raises:
            InvalidStageError: On a dangling successor, a branch, a cycle or several heads
        """
        seen_successors: set[int] = set()
        for stage_id, successor in self._next.items():
            if successor is None:
                continue
            if successor not in self._next:
                raise InvalidStageError(f"Stage {stage_id} points at unknown stage {successor}")
            if successor == stage_id:
                raise InvalidStageError(f"Stage {stage_id} points at itself")
            if successor in seen_successors:
                raise InvalidStageError(f"Stage {successor} has more than one predecessor")
            seen_successors.add(successor)

        if not self._next:
            return
        heads = [stage_id for stage_id in self._next if stage_id not in seen_successors]
        if len(heads) != 1:
            raise InvalidStageError("Pipeline stages must form a single chain")
        if len(self.ordered()) != len(self._next):
            raise InvalidStageError("Pipeline stages contain a cycle")

    def insert_after(self, source_id: int, stage_id: int) -> None:
        """Insert a new stage directly after ``source_id``.

        Whatever followed the source now follows the new stage.
        """
        if source_id not in self._next:
            raise InvalidStageError(f"Source stage {source_id} is not part of this pipeline")
        if stage_id in self._next:
            raise InvalidStageError(f"Stage {stage_id} is already part of this pipeline")
        self._next[stage_id] = self._next[source_id]
        self._next[source_id] = stage_id

    def append(self, stage_id: int) -> None:
        """Add a new stage at the tail of the chain."""
        tail = self.tail()
        if tail is None:
            if stage_id in self._next:
                raise InvalidStageError(f"Stage {stage_id} is already part of this pipeline")
            self._next[stage_id] = None
        else:
            self.insert_after(tail, stage_id)

    def remove(self, stage_id: int) -> int | None:
        """Remove a stage, bridging its predecessor to its successor.

        Returns:
            Id of the rewired predecessor, None when the stage was the head
        """
        successor = self._next.pop(stage_id)
        predecessor = self.predecessor(stage_id)
        if predecessor is not None:
            self._next[predecessor] = successor
        return predecessor
