import pytest

from networth.domain.models import (
    ContainerTarget,
    DragPhase,
    PersistResult,
    SlotTarget,
)
from networth.domain.services.reorder_resolver import (
    OrderedListState,
    ReorderResolver,
    classify_drop_target,
    move_item,
)


class MockStore:
    """Records persist calls; answers with the queued results"""

    def __init__(self, results=None, error=None):
        self.calls = []
        self.results = list(results or [])
        self.error = error

    async def persist_reorder(self, record_id, target_container_id, target_index):
        self.calls.append((record_id, target_container_id, target_index))
        if self.error is not None:
            raise self.error
        if self.results:
            return self.results.pop(0)
        return PersistResult(success=True)


def _columns():
    return {
        "c1": ("a", "b", "c", "d"),
        "c2": ("x",),
        "empty": (),
    }


def _resolver(store=None, columns=None):
    return ReorderResolver(store or MockStore(), OrderedListState(columns or _columns()))


class TestMoveItem:
    def test_move_within_container(self):
        result = move_item(_columns(), "c1", 2, "c1", 0)
        assert result["c1"] == ("c", "a", "b", "d")

    def test_move_across_containers(self):
        result = move_item(_columns(), "c1", 1, "c2", 1)
        assert result["c1"] == ("a", "c", "d")
        assert result["c2"] == ("x", "b")

    def test_input_is_not_modified(self):
        columns = _columns()
        move_item(columns, "c1", 0, "c2", 0)
        assert columns == _columns()

    def test_index_past_end_is_clamped(self):
        result = move_item(_columns(), "c1", 0, "c2", 10)
        assert result["c2"] == ("x", "a")

    def test_index_move_equals_adjacent_swaps(self):
        direct = move_item(_columns(), "c1", 2, "c1", 0)

        swapped = move_item(_columns(), "c1", 2, "c1", 1)
        swapped = move_item(swapped, "c1", 1, "c1", 0)

        assert direct == swapped


class TestClassifyDropTarget:
    def test_container_payload(self):
        assert classify_drop_target({"type": "container", "container_id": "c2"}) == ContainerTarget("c2")

    def test_slot_payload(self):
        target = classify_drop_target(
            {"type": "slot", "container_id": "c1", "index": 2, "before_record_id": "c"}
        )
        assert target == SlotTarget("c1", 2, "c")

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "c1",
            {},
            {"type": "header", "container_id": "c1"},
            {"type": "slot", "container_id": "c1"},
            {"type": "slot", "container_id": "c1", "index": -1},
            {"type": "slot", "container_id": "c1", "index": True},
            {"type": "container"},
        ],
    )
    def test_unrecognized_payloads(self, payload):
        assert classify_drop_target(payload) is None


class TestGesture:
    def test_drag_start_records_source(self):
        resolver = _resolver()
        assert resolver.on_drag_start("c")
        assert resolver.phase is DragPhase.DRAGGING
        assert resolver.source == ("c1", 2)

    def test_drag_start_unknown_record(self):
        resolver = _resolver()
        assert not resolver.on_drag_start("nope")
        assert resolver.phase is DragPhase.IDLE

    def test_drop_moves_optimistically_before_persisting(self):
        store = MockStore()
        resolver = _resolver(store)

        resolver.on_drag_start("c")
        resolver.on_drag_over({"type": "slot", "container_id": "c1", "index": 0})
        instruction = resolver.on_drop()

        assert instruction.record_id == "c"
        assert instruction.target_container_id == "c1"
        assert instruction.target_index == 0
        assert resolver.state.view()["c1"] == ("c", "a", "b", "d")
        assert store.calls == []

    def test_downward_move_adjusts_for_removal(self):
        resolver = _resolver()
        # drop "a" in front of "d" (slot 3)
        instruction = resolver.resolve("a", {"type": "slot", "container_id": "c1", "index": 3})

        assert instruction.target_index == 2
        assert resolver.state.view()["c1"] == ("b", "c", "a", "d")

    def test_drop_on_empty_container(self):
        resolver = _resolver()
        instruction = resolver.resolve("b", {"type": "container", "container_id": "empty"})

        assert instruction.target_container_id == "empty"
        assert instruction.target_index == 0
        view = resolver.state.view()
        assert view["empty"] == ("b",)
        assert view["c1"] == ("a", "c", "d")

    def test_drop_without_target_is_noop(self):
        resolver = _resolver()
        resolver.on_drag_start("a")
        assert resolver.on_drop() is None
        assert resolver.phase is DragPhase.RESOLVED
        assert resolver.state.pending == []

    def test_drop_on_own_slot_is_noop(self):
        resolver = _resolver()
        assert resolver.resolve("b", {"type": "slot", "container_id": "c1", "index": 1}) is None
        # slot right after itself resolves to the same place
        assert resolver.resolve("b", {"type": "slot", "container_id": "c1", "index": 2}) is None

    def test_unknown_target_container_is_ignored(self):
        resolver = _resolver()
        resolver.on_drag_start("a")
        assert resolver.on_drag_over({"type": "container", "container_id": "ghost"}) is None
        assert resolver.on_drop() is None

    def test_duplicate_drop_emits_one_instruction(self):
        resolver = _resolver()
        resolver.on_drag_start("a")
        resolver.on_drag_over({"type": "container", "container_id": "c2"})

        first = resolver.on_drop()
        second = resolver.on_drop()

        assert first is not None
        assert second is None
        assert len(resolver.state.pending) == 1

    def test_drag_over_outside_drag_is_ignored(self):
        resolver = _resolver()
        assert resolver.on_drag_over({"type": "container", "container_id": "c2"}) is None

    def test_moving_only_item_empties_its_container(self):
        resolver = _resolver()
        instruction = resolver.resolve("x", {"type": "container", "container_id": "c1"})

        assert instruction.source_container_id == "c2"
        assert instruction.target_index == 0
        view = resolver.state.view()
        assert view["c2"] == ()
        assert view["c1"][0] == "x"
        assert sum(len(ids) for ids in view.values()) == sum(len(ids) for ids in _columns().values())


class TestPersist:
    @pytest.mark.asyncio
    async def test_success_sends_one_write_and_returns_to_idle(self):
        store = MockStore()
        resolver = _resolver(store)

        resolver.on_drag_start("c")
        resolver.on_drag_over({"type": "slot", "container_id": "c1", "index": 0})
        outcome = await resolver.drop()

        assert outcome.committed
        assert store.calls == [("c", "c1", 0)]
        assert resolver.phase is DragPhase.IDLE
        assert resolver.state.view()["c1"] == ("c", "a", "b", "d")

    @pytest.mark.asyncio
    async def test_persist_twice_writes_once(self):
        store = MockStore()
        resolver = _resolver(store)
        instruction = resolver.resolve("a", {"type": "container", "container_id": "c2"})

        first = await resolver.persist(instruction)
        second = await resolver.persist(instruction)

        assert first is second
        assert len(store.calls) == 1

    @pytest.mark.asyncio
    async def test_rejected_write_rolls_back_with_notice(self):
        store = MockStore(results=[PersistResult(success=False, error="disk full")])
        seen = []
        resolver = ReorderResolver(store, OrderedListState(_columns()), on_notice=seen.append)

        instruction = resolver.resolve("a", {"type": "container", "container_id": "c2"})
        outcome = await resolver.persist(instruction)

        assert not outcome.committed
        assert outcome.notice.kind == "persistence_failure"
        assert "disk full" in outcome.notice.message
        assert seen == [outcome.notice]
        assert resolver.state.view() == _columns()

    @pytest.mark.asyncio
    async def test_store_exception_rolls_back(self):
        store = MockStore(error=RuntimeError("connection reset"))
        resolver = _resolver(store)

        instruction = resolver.resolve("a", {"type": "container", "container_id": "c2"})
        outcome = await resolver.persist(instruction)

        assert not outcome.committed
        assert "connection reset" in outcome.notice.message
        assert resolver.state.view() == _columns()
        assert list(resolver.notices) == [outcome.notice]

    @pytest.mark.asyncio
    async def test_target_removed_by_new_snapshot_conflicts(self):
        store = MockStore()
        resolver = _resolver(store)
        instruction = resolver.resolve("a", {"type": "container", "container_id": "c2"})

        resolver.apply_snapshot({"c1": ("a", "b", "c", "d")})
        outcome = await resolver.persist(instruction)

        assert not outcome.committed
        assert outcome.notice.kind == "conflict"
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_rollback_keeps_later_moves(self):
        store = MockStore(results=[PersistResult(success=False, error="nope"), PersistResult(success=True)])
        resolver = _resolver(store)

        first = resolver.resolve("a", {"type": "container", "container_id": "c2"})
        second = resolver.resolve("d", {"type": "container", "container_id": "empty"})

        await resolver.persist(first)
        await resolver.persist(second)

        view = resolver.state.view()
        assert view["c1"] == ("a", "b", "c")
        assert view["c2"] == ("x",)
        assert view["empty"] == ("d",)

    @pytest.mark.asyncio
    async def test_second_move_into_filled_section_after_commit(self):
        store = MockStore()
        resolver = ReorderResolver(store, OrderedListState({"c1": ("a", "b"), "empty": ()}))

        first = resolver.resolve("a", {"type": "container", "container_id": "empty"})
        assert (await resolver.persist(first)).committed

        second = resolver.resolve("b", {"type": "slot", "container_id": "empty", "index": 1})
        outcome = await resolver.persist(second)

        assert outcome.committed
        assert store.calls == [("a", "empty", 0), ("b", "empty", 1)]
        assert resolver.state.view() == {"c1": (), "empty": ("a", "b")}

    @pytest.mark.asyncio
    async def test_append_after_earlier_cross_move(self):
        store = MockStore()
        resolver = _resolver(store)

        first = resolver.resolve("a", {"type": "slot", "container_id": "c2", "index": 1})
        await resolver.persist(first)
        second = resolver.resolve("x", {"type": "slot", "container_id": "c2", "index": 2})
        outcome = await resolver.persist(second)

        assert outcome.committed
        assert second.target_index == 1
        assert resolver.state.view()["c2"] == ("a", "x")

    @pytest.mark.asyncio
    async def test_move_resolved_while_earlier_write_in_flight(self):
        store = MockStore()
        resolver = ReorderResolver(store, OrderedListState({"c1": ("a", "b"), "empty": ()}))

        first = resolver.resolve("a", {"type": "container", "container_id": "empty"})
        second = resolver.resolve("b", {"type": "slot", "container_id": "empty", "index": 1})

        assert (await resolver.persist(first)).committed
        assert (await resolver.persist(second)).committed
        assert store.calls == [("a", "empty", 0), ("b", "empty", 1)]

    @pytest.mark.asyncio
    async def test_snapshot_clears_remembered_outcomes(self):
        store = MockStore()
        resolver = _resolver(store)
        instruction = resolver.resolve("a", {"type": "container", "container_id": "c2"})
        await resolver.persist(instruction)

        resolver.apply_snapshot({"c1": ("b", "c", "d"), "c2": ("a", "x"), "empty": ()})

        assert resolver._outcomes == {}


class TestSnapshots:
    def test_snapshot_replaces_ordering_wholesale(self):
        state = OrderedListState(_columns())
        resolver = ReorderResolver(MockStore(), state)
        resolver.resolve("a", {"type": "container", "container_id": "c2"})

        resolver.apply_snapshot({"c1": ("d", "c"), "c2": ("x", "a", "b")})

        assert state.pending == []
        assert state.snapshot_version == 2
        assert state.view() == {"c1": ("d", "c"), "c2": ("x", "a", "b")}

    def test_drag_uses_position_at_drop_time(self):
        resolver = _resolver()
        resolver.on_drag_start("c")
        resolver.on_drag_over({"type": "slot", "container_id": "c2", "index": 0})

        # another client moved "c" to the front of c1 mid-gesture
        resolver.apply_snapshot({"c1": ("c", "a", "b", "d"), "c2": ("x",), "empty": ()})
        instruction = resolver.on_drop()

        assert instruction.source_container_id == "c1"
        assert instruction.source_index == 0

    def test_dragged_record_vanishing_cancels_gesture(self):
        resolver = _resolver()
        resolver.on_drag_start("c")

        resolver.apply_snapshot({"c1": ("a", "b", "d"), "c2": ("x",)})

        assert resolver.phase is DragPhase.IDLE
        assert resolver.on_drop() is None

    def test_confirmed_move_stays_visible_until_next_snapshot(self):
        state = OrderedListState(_columns())
        resolver = ReorderResolver(MockStore(), state)
        instruction = resolver.resolve("a", {"type": "container", "container_id": "c2"})

        assert state.confirm(instruction.seq)

        assert state.view()["c2"] == ("a", "x")
        assert state.authoritative["c2"] == ("x",)
