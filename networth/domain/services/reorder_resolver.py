"""
REORDER RESOLVER
Drag-and-drop move of a record within or across containers.

RESPONSIBILITIES:
- Track one drag gesture: IDLE -> DRAGGING -> RESOLVED
- Apply the move optimistically, synchronously, on drop
- Hand exactly one (record, container, index) write to persistence
- Roll the optimistic move back when persistence fails or conflicts

STATE:
- OrderedListState keeps the authoritative ordering from the last snapshot
  plus an overlay of pending moves. The visible ordering is the snapshot
  with the overlay replayed on top. A new snapshot replaces the ordering
  wholesale and drops the overlay.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from networth.domain.errors import PersistenceFailure, ReorderConflict
from networth.domain.models import (
    ContainerTarget,
    DragPhase,
    DropTarget,
    PersistResult,
    ReorderInstruction,
    ReorderNotice,
    ReorderOutcome,
    SlotTarget,
)

logger = logging.getLogger(__name__)

Columns = Dict[str, Tuple[str, ...]]


class ReorderStore(Protocol):
    """Persistence collaborator - ASYNC"""

    async def persist_reorder(
        self,
        record_id: str,
        target_container_id: str,
        target_index: int,
    ) -> PersistResult:
        ...


def locate(columns: Mapping[str, Sequence[str]], record_id: str) -> Optional[Tuple[str, int]]:
    """Find (container_id, index) of a record by scanning every container"""
    for container_id, ids in columns.items():
        for index, candidate in enumerate(ids):
            if candidate == record_id:
                return container_id, index
    return None


def adjust_target_index(
    source_container_id: str,
    source_index: int,
    target_container_id: str,
    target_index: int,
) -> int:
    """Removing the record first shifts later siblings of the same list down by one"""
    if source_container_id == target_container_id and source_index < target_index:
        return target_index - 1
    return target_index


def move_item(
    columns: Mapping[str, Sequence[str]],
    source_container_id: str,
    source_index: int,
    target_container_id: str,
    target_index: int,
) -> Columns:
    """
    Remove at source, insert at target (index already adjusted for the removal).

    Same operation for in-container reorders and cross-container moves.
    Returns a new mapping; the input is not modified.
    """
    result = {cid: list(ids) for cid, ids in columns.items()}
    record_id = result[source_container_id].pop(source_index)
    target = result.setdefault(target_container_id, [])
    index = max(0, min(target_index, len(target)))
    target.insert(index, record_id)
    return {cid: tuple(ids) for cid, ids in result.items()}


def classify_drop_target(payload) -> Optional[DropTarget]:
    """
    Map a hover payload onto a drop target.

    Accepted shapes:
        {"type": "container", "container_id": "..."}
        {"type": "slot", "container_id": "...", "index": 2, "before_record_id": "..."}
    Anything else is not a valid target.
    """
    if isinstance(payload, (ContainerTarget, SlotTarget)):
        return payload
    if not isinstance(payload, Mapping):
        return None

    container_id = payload.get("container_id")
    if not container_id:
        return None

    kind = payload.get("type")
    if kind == "container":
        return ContainerTarget(container_id=container_id)
    if kind == "slot":
        index = payload.get("index")
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            return None
        return SlotTarget(
            container_id=container_id,
            target_index=index,
            before_record_id=payload.get("before_record_id"),
        )
    return None


@dataclass
class _PendingMove:
    instruction: ReorderInstruction
    confirmed: bool = False


class OrderedListState:
    """Authoritative ordering plus an overlay of provisional moves"""

    def __init__(self, columns: Optional[Mapping[str, Sequence[str]]] = None):
        self._authoritative: Columns = {}
        self._pending: List[_PendingMove] = []
        self.snapshot_version = 0
        if columns is not None:
            self.apply_snapshot(columns)

    @property
    def authoritative(self) -> Columns:
        return dict(self._authoritative)

    @property
    def pending(self) -> List[ReorderInstruction]:
        return [p.instruction for p in self._pending]

    def apply_snapshot(self, columns: Mapping[str, Sequence[str]]) -> None:
        """Replace the ordering wholesale; provisional moves are discarded"""
        self._authoritative = {cid: tuple(ids) for cid, ids in columns.items()}
        if self._pending:
            logger.debug("Snapshot replaced %d pending move(s)", len(self._pending))
        self._pending = []
        self.snapshot_version += 1

    def view(self) -> Columns:
        return self._replay(self._pending)

    def view_before(self, seq: int) -> Columns:
        """Ordering the move with this seq was resolved against"""
        return self._replay([p for p in self._pending if p.instruction.seq < seq])

    def _replay(self, moves: Sequence[_PendingMove]) -> Columns:
        columns = dict(self._authoritative)
        for pending in moves:
            instruction = pending.instruction
            found = locate(columns, instruction.record_id)
            if found is None or instruction.target_container_id not in columns:
                continue
            columns = move_item(
                columns,
                found[0],
                found[1],
                instruction.target_container_id,
                instruction.target_index,
            )
        return columns

    def push_pending(self, instruction: ReorderInstruction) -> None:
        self._pending.append(_PendingMove(instruction))

    def confirm(self, seq: int) -> bool:
        """Mark committed; it stays in the overlay until the next snapshot arrives"""
        for pending in self._pending:
            if pending.instruction.seq == seq:
                pending.confirmed = True
                return True
        return False

    def rollback(self, seq: int) -> bool:
        """Drop one provisional move; later moves are replayed on the remaining state"""
        before = len(self._pending)
        self._pending = [p for p in self._pending if p.instruction.seq != seq]
        return len(self._pending) != before


class ReorderResolver:
    """
    Drag gesture state machine bound to one OrderedListState.

    on_drag_start / on_drag_over / on_drop are synchronous so the view moves
    with zero latency; persist() is the only awaited step.
    """

    MAX_NOTICES = 20

    def __init__(
        self,
        store: ReorderStore,
        state: Optional[OrderedListState] = None,
        on_notice: Optional[Callable[[ReorderNotice], None]] = None,
    ):
        self.store = store
        self.state = state if state is not None else OrderedListState()
        self.on_notice = on_notice
        self.phase = DragPhase.IDLE
        self.notices: Deque[ReorderNotice] = deque(maxlen=self.MAX_NOTICES)
        self._record_id: Optional[str] = None
        self._source: Optional[Tuple[str, int]] = None
        self._target: Optional[DropTarget] = None
        self._seq = 0
        self._outcomes: Dict[int, ReorderOutcome] = {}

    # ------------------------------------------------------------------
    # Gesture
    # ------------------------------------------------------------------

    @property
    def source(self) -> Optional[Tuple[str, int]]:
        return self._source

    @property
    def target(self) -> Optional[DropTarget]:
        return self._target

    def apply_snapshot(self, columns: Mapping[str, Sequence[str]]) -> None:
        self.state.apply_snapshot(columns)
        # outcomes only dedupe writes against the ordering they were resolved on
        self._outcomes.clear()
        if self.phase is DragPhase.DRAGGING and locate(self.state.view(), self._record_id) is None:
            logger.info("Dragged record %s vanished from snapshot; gesture cancelled", self._record_id)
            self._reset()

    def on_drag_start(self, record_id: str) -> bool:
        found = locate(self.state.view(), record_id)
        if found is None:
            logger.debug("Drag start for unknown record %s ignored", record_id)
            self._reset()
            return False
        self.phase = DragPhase.DRAGGING
        self._record_id = record_id
        self._source = found
        self._target = None
        return True

    def on_drag_over(self, payload) -> Optional[DropTarget]:
        if self.phase is not DragPhase.DRAGGING:
            return None
        target = classify_drop_target(payload)
        if target is not None and target.container_id not in self.state.view():
            target = None
        self._target = target
        return target

    def on_drop(self) -> Optional[ReorderInstruction]:
        """
        Resolve the gesture.

        Returns:
            The instruction to persist, or None for a no-op drop
        """
        if self.phase is not DragPhase.DRAGGING:
            return None
        self.phase = DragPhase.RESOLVED
        target = self._target
        if target is None:
            return None
        return self._resolve(self._record_id, target)

    def resolve(self, record_id: str, payload) -> Optional[ReorderInstruction]:
        """Whole gesture in one call (keyboard moves, HTTP requests)"""
        if not self.on_drag_start(record_id):
            return None
        self.on_drag_over(payload)
        return self.on_drop()

    def _resolve(self, record_id: str, target: DropTarget) -> Optional[ReorderInstruction]:
        view = self.state.view()
        # position at drop time, a snapshot may have landed mid-gesture
        current = locate(view, record_id)
        if current is None:
            return None
        source_container_id, source_index = current
        target_container_id = target.container_id
        target_index = min(target.target_index, len(view.get(target_container_id, ())))

        if (source_container_id, source_index) == (target_container_id, target_index):
            return None

        adjusted = adjust_target_index(
            source_container_id, source_index, target_container_id, target_index
        )
        if source_container_id == target_container_id and adjusted == source_index:
            return None

        self._seq += 1
        instruction = ReorderInstruction(
            record_id=record_id,
            target_container_id=target_container_id,
            target_index=adjusted,
            source_container_id=source_container_id,
            source_index=source_index,
            seq=self._seq,
        )
        self.state.push_pending(instruction)
        return instruction

    def _reset(self) -> None:
        self.phase = DragPhase.IDLE
        self._record_id = None
        self._source = None
        self._target = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def persist(self, instruction: ReorderInstruction) -> ReorderOutcome:
        """
        Send the instruction to the store once; roll back on any failure.
        A repeated call for the same instruction returns the first outcome.
        """
        cached = self._outcomes.get(instruction.seq)
        if cached is not None:
            return cached

        try:
            self._check_conflict(instruction)
            await self._write(instruction)
        except ReorderConflict as exc:
            outcome = self._roll_back(instruction, "conflict", exc.reason)
        except PersistenceFailure as exc:
            outcome = self._roll_back(instruction, "persistence_failure", exc.reason)
        else:
            self.state.confirm(instruction.seq)
            outcome = ReorderOutcome(instruction=instruction, committed=True)

        self._outcomes[instruction.seq] = outcome
        if self.phase is DragPhase.RESOLVED:
            self._reset()
        return outcome

    async def drop(self) -> Optional[ReorderOutcome]:
        instruction = self.on_drop()
        if instruction is None:
            if self.phase is DragPhase.RESOLVED:
                self._reset()
            return None
        return await self.persist(instruction)

    def _check_conflict(self, instruction: ReorderInstruction) -> None:
        # snapshot plus the moves resolved before this one
        current = self.state.view_before(instruction.seq)
        if instruction.target_container_id not in current:
            raise ReorderConflict(instruction, "target container no longer exists")
        if locate(current, instruction.record_id) is None:
            raise ReorderConflict(instruction, "record no longer exists")
        siblings = [
            rid for rid in current[instruction.target_container_id]
            if rid != instruction.record_id
        ]
        if instruction.target_index > len(siblings):
            raise ReorderConflict(instruction, "target index out of range")

    async def _write(self, instruction: ReorderInstruction) -> None:
        try:
            result = await self.store.persist_reorder(
                instruction.record_id,
                instruction.target_container_id,
                instruction.target_index,
            )
        except Exception as exc:
            raise PersistenceFailure(instruction, str(exc) or type(exc).__name__) from exc
        if not result.success:
            raise PersistenceFailure(instruction, result.error or "rejected by store")

    def _roll_back(self, instruction: ReorderInstruction, kind: str, reason: str) -> ReorderOutcome:
        self.state.rollback(instruction.seq)
        logger.warning("Reorder of %s rolled back (%s): %s", instruction.record_id, kind, reason)
        notice = ReorderNotice(
            kind=kind,
            record_id=instruction.record_id,
            message=f"Could not move item: {reason}",
        )
        self.notices.append(notice)
        if self.on_notice is not None:
            self.on_notice(notice)
        return ReorderOutcome(instruction=instruction, committed=False, notice=notice)
