"""Tests for the drag/snap/tray state machine."""

import random
from typing import Callable, List, Optional, Tuple

import pytest

from puzzle_engine import (
    BoardRect,
    DragMoved,
    EventBus,
    ImmediateFrameScheduler,
    InteractionController,
    ManualFrameScheduler,
    Piece,
    PiecePlaced,
    PuzzleCompleted,
    PuzzleSnapshot,
    fill_empty_slots,
    generate_puzzle_edges,
    shuffle_pieces,
)

BOARD = BoardRect(left=10, top=20, width=300, height=300)


class FakePointerSource:
    """Pointer stream that records subscriptions."""

    def __init__(self) -> None:
        self.on_move: Optional[Callable[[float, float], None]] = None
        self.on_end: Optional[Callable[[], None]] = None
        self.subscribed = 0
        self.released = 0

    def subscribe(self, on_move: Callable[[float, float], None], on_end: Callable[[], None]) -> Callable[[], None]:
        self.subscribed += 1
        self.on_move, self.on_end = on_move, on_end

        def release() -> None:
            self.released += 1
            self.on_move = self.on_end = None

        return release


def make_controller(
    grid_size: int = 3,
    seed: int = 42,
    board: Optional[BoardRect] = BOARD,
    **kwargs,
) -> InteractionController:
    rng = random.Random(seed).random
    descriptors = generate_puzzle_edges(grid_size, grid_size, rng)
    kwargs.setdefault("scheduler", ManualFrameScheduler())
    kwargs.setdefault("measure_board", lambda: board)
    return InteractionController(
        descriptors,
        grid_size,
        grid_size,
        random_source=rng,
        **kwargs,
    )


def home_center(controller: InteractionController, piece: Piece) -> Tuple[float, float]:
    size = BOARD.width / controller.cols
    return (BOARD.left + piece.col * size + size / 2, BOARD.top + piece.row * size + size / 2)


def first_tray_piece(controller: InteractionController) -> Piece:
    return next(piece for piece in controller.tray_pieces() if piece is not None)


def drop_home(controller: InteractionController, piece: Piece) -> bool:
    assert controller.drag_start(piece.id, *home_center(controller, piece))
    return controller.drag_end(*home_center(controller, piece))


def assert_partition(controller: InteractionController) -> None:
    """Reserve, tray and placed pieces are disjoint and cover every piece."""
    state = controller.state
    tray_ids = [piece_id for piece_id in state.tray_slots if piece_id is not None]
    reserve_ids = [piece.id for piece in state.reserve()]
    placed_ids = [piece.id for piece in state.placed.values()]

    assert len(tray_ids) == len(set(tray_ids))
    assert set(tray_ids) <= {piece.id for piece in state.pool}
    combined = tray_ids + reserve_ids + placed_ids
    assert len(combined) == len(set(combined))
    assert set(combined) == set(range(controller.total_pieces))


class TestInitialization:
    """Tests for dealing a new puzzle."""

    def test_4x4_deals_four_distinct_tray_pieces(self) -> None:
        controller = make_controller(grid_size=4)
        slots = controller.state.tray_slots

        assert len(slots) == 4
        assert None not in slots
        assert len(set(slots)) == 4
        assert len(controller.state.pool) == 16
        assert len(controller.state.reserve()) == 12
        assert controller.state.placed == {}
        assert not controller.complete
        assert_partition(controller)

    def test_tray_is_head_of_shuffled_pool(self) -> None:
        controller = make_controller(grid_size=5)
        assert controller.state.tray_slots == [piece.id for piece in controller.state.pool[:4]]

    def test_descriptor_count_must_match_grid(self) -> None:
        descriptors = generate_puzzle_edges(3, 3)
        with pytest.raises(ValueError, match="expected 16 descriptors"):
            InteractionController(descriptors, 4, 4)

    def test_small_puzzle_leaves_surplus_slots_empty(self) -> None:
        descriptors = generate_puzzle_edges(1, 2)
        controller = InteractionController(descriptors, 1, 2, measure_board=lambda: BOARD)
        assert sorted(s for s in controller.state.tray_slots if s is not None) == [0, 1]
        assert controller.state.tray_slots[2:] == [None, None]
        assert controller.tray_pieces()[2:] == [None, None]


class TestPlacement:
    """Tests for dropping pieces onto the board."""

    def test_correct_drop_places_piece(self) -> None:
        placed_events: List[PiecePlaced] = []
        controller = make_controller()
        controller.events.subscribe(PiecePlaced, placed_events.append)
        piece = first_tray_piece(controller)

        assert drop_home(controller, piece)

        assert controller.state.placed[piece.cell_key] == piece
        assert piece not in controller.state.pool
        assert piece.id not in controller.state.tray_slots
        assert controller.remaining_count == 8
        assert placed_events == [PiecePlaced(piece=piece, row=piece.row, col=piece.col)]
        assert controller.state.dragging is None
        assert controller.state.highlight_cell is None
        assert_partition(controller)

    def test_far_drop_returns_piece_to_tray(self) -> None:
        controller = make_controller()
        piece = first_tray_piece(controller)
        slots_before = list(controller.state.tray_slots)

        controller.drag_start(piece.id, 0, 0)
        assert not controller.drag_end(1000, 1000)

        assert controller.state.tray_slots == slots_before
        assert controller.state.placed == {}
        assert controller.state.dragging is None

    def test_slot_two_is_refilled_after_placement(self) -> None:
        controller = make_controller(grid_size=4)
        piece = controller.tray_pieces()[2]
        assert piece is not None

        assert drop_home(controller, piece)

        slots = controller.state.tray_slots
        assert slots[2] is not None
        assert slots[2] != piece.id
        assert slots[2] not in slots[:2] + slots[3:]
        assert slots[2] not in {p.id for p in controller.state.placed.values()}
        assert_partition(controller)

    def test_3x3_completes_on_ninth_placement(self) -> None:
        completed: List[PuzzleCompleted] = []
        controller = make_controller(grid_size=3)
        controller.events.subscribe(PuzzleCompleted, completed.append)

        for placement in range(1, 10):
            assert not controller.complete
            assert drop_home(controller, first_tray_piece(controller))
            assert_partition(controller)
            assert controller.complete == (placement == 9)

        assert len(completed) == 1
        assert controller.remaining_count == 0
        assert controller.tray_pieces() == [None, None, None, None]

    def test_failing_placed_handler_still_completes_puzzle(self) -> None:
        """An error raised by a handler on the last drop leaves the state consistent."""
        controller = make_controller(grid_size=3)
        for _ in range(8):
            assert drop_home(controller, first_tray_piece(controller))

        def fail(event: PiecePlaced) -> None:
            raise RuntimeError("sound device unavailable")

        controller.events.subscribe(PiecePlaced, fail)
        piece = first_tray_piece(controller)
        controller.drag_start(piece.id, *home_center(controller, piece))
        with pytest.raises(RuntimeError, match="sound device unavailable"):
            controller.drag_end(*home_center(controller, piece))

        assert len(controller.placed_pieces()) == 9
        assert controller.complete
        assert controller.state.dragging is None

    def test_reset_from_placed_handler_skips_completion(self) -> None:
        """Restarting from the last placement does not announce the old puzzle's completion."""
        completed: List[PuzzleCompleted] = []
        controller = make_controller(grid_size=3)
        controller.events.subscribe(PuzzleCompleted, completed.append)
        for _ in range(8):
            assert drop_home(controller, first_tray_piece(controller))

        controller.events.subscribe(PiecePlaced, lambda event: controller.reset())
        assert drop_home(controller, first_tray_piece(controller))

        assert completed == []
        assert not controller.complete
        assert controller.state.placed == {}
        assert_partition(controller)

    @pytest.mark.parametrize("seed", [1, 2, 3, 4])
    def test_partition_holds_through_random_play(self, seed: int) -> None:
        """Misses, cancels and hits in any order keep the piece sets partitioned."""
        rng = random.Random(seed)
        controller = make_controller(grid_size=4, seed=seed)

        while not controller.complete:
            piece = rng.choice([p for p in controller.tray_pieces() if p is not None])
            action = rng.choice(["hit", "miss", "cancel"])
            controller.drag_start(piece.id, 0, 0)
            if action == "hit":
                controller.drag_end(*home_center(controller, piece))
            elif action == "miss":
                controller.drag_end(-500, -500)
            else:
                controller.drag_cancel()
            assert_partition(controller)

        assert len(controller.placed_pieces()) == 16

    def test_drop_without_drag_is_noop(self) -> None:
        controller = make_controller()
        pool_before = list(controller.state.pool)
        assert not controller.drag_end(*home_center(controller, first_tray_piece(controller)))
        assert controller.state.pool == pool_before
        assert controller.state.placed == {}

    def test_unmeasurable_board_never_snaps(self) -> None:
        controller = make_controller(board=None)
        piece = first_tray_piece(controller)
        controller.drag_start(piece.id, 0, 0)
        assert not controller.drag_end(*home_center(controller, piece))
        assert piece.id in controller.state.tray_slots

    def test_occupied_cell_is_rejected(self) -> None:
        controller = make_controller()
        piece = first_tray_piece(controller)
        controller.state.placed[piece.cell_key] = piece
        assert controller.snap_target(piece, *home_center(controller, piece)) is None


class TestSnapThreshold:
    """Tests for the snap tolerance boundary."""

    @pytest.mark.parametrize("axis", [0, 1])
    def test_exact_threshold_does_not_match(self, axis: int) -> None:
        controller = make_controller()
        piece = first_tray_piece(controller)
        center = list(home_center(controller, piece))
        center[axis] += 40  # 40% of a 100px piece
        assert controller.snap_target(piece, *center) is None

    @pytest.mark.parametrize("axis", [0, 1])
    def test_just_inside_threshold_matches(self, axis: int) -> None:
        controller = make_controller()
        piece = first_tray_piece(controller)
        center = list(home_center(controller, piece))
        center[axis] -= 39.99
        assert controller.snap_target(piece, *center) == piece.cell

    def test_custom_ratio(self) -> None:
        controller = make_controller(snap_threshold_ratio=0.1)
        piece = first_tray_piece(controller)
        x, y = home_center(controller, piece)
        assert controller.snap_target(piece, x + 9, y - 9) == piece.cell
        assert controller.snap_target(piece, x + 11, y) is None


class TestDragProtocol:
    """Tests for drag start, move coalescing and release."""

    def test_second_drag_start_is_ignored(self) -> None:
        controller = make_controller()
        first, second = controller.tray_pieces()[:2]
        assert first is not None and second is not None

        assert controller.drag_start(first.id, 0, 0)
        assert not controller.drag_start(second.id, 0, 0)
        assert controller.state.dragging == first

    def test_reserve_piece_cannot_be_dragged(self) -> None:
        controller = make_controller()
        reserve_piece = controller.state.reserve()[0]
        assert not controller.drag_start(reserve_piece.id, 0, 0)
        assert controller.state.dragging is None

    def test_drag_start_records_offset_and_remeasures_board(self) -> None:
        calls = []

        def measure() -> BoardRect:
            calls.append(1)
            return BOARD

        controller = make_controller(measure_board=measure)
        controller.board_rect()
        controller.board_rect()
        assert len(calls) == 1

        piece = first_tray_piece(controller)
        controller.drag_start(piece.id, 105, 210, piece_center=(100, 200))
        assert controller.state.drag_offset == (5, 10)
        controller.board_rect()
        assert len(calls) == 2

    def test_moves_are_coalesced_per_frame(self) -> None:
        scheduler = ManualFrameScheduler()
        moves: List[DragMoved] = []
        controller = make_controller(scheduler=scheduler)
        controller.events.subscribe(DragMoved, moves.append)
        piece = first_tray_piece(controller)
        target = home_center(controller, piece)

        controller.drag_start(piece.id, 0, 0)
        controller.drag_move(1, 1)
        controller.drag_move(2, 2)
        controller.drag_move(*target)
        assert scheduler.pending_count == 1
        assert moves == []

        assert scheduler.run_pending() == 1
        assert moves == [DragMoved(piece=piece, x=target[0], y=target[1], highlight_cell=piece.cell)]
        assert controller.state.drag_position == target
        assert controller.state.highlight_cell == piece.cell

        controller.drag_move(-100, -100)
        scheduler.run_pending()
        assert controller.state.highlight_cell is None

    def test_move_without_drag_is_ignored(self) -> None:
        scheduler = ManualFrameScheduler()
        controller = make_controller(scheduler=scheduler)
        controller.drag_move(5, 5)
        assert scheduler.pending_count == 0

    def test_drop_uses_latest_pending_position(self) -> None:
        scheduler = ManualFrameScheduler()
        controller = make_controller(scheduler=scheduler)
        piece = first_tray_piece(controller)

        controller.drag_start(piece.id, 0, 0)
        controller.drag_move(*home_center(controller, piece))
        assert controller.drag_end()
        assert scheduler.pending_count == 0

    def test_immediate_scheduler_processes_every_move(self) -> None:
        moves: List[DragMoved] = []
        controller = make_controller(scheduler=ImmediateFrameScheduler())
        controller.events.subscribe(DragMoved, moves.append)
        piece = first_tray_piece(controller)

        controller.drag_start(piece.id, 0, 0)
        controller.drag_move(1, 1)
        controller.drag_move(2, 2)
        assert [(m.x, m.y) for m in moves] == [(1, 1), (2, 2)]

    def test_pointer_subscription_is_scoped_to_drag(self) -> None:
        pointer = FakePointerSource()
        scheduler = ManualFrameScheduler()
        controller = make_controller(pointer_source=pointer, scheduler=scheduler)
        piece = first_tray_piece(controller)

        controller.drag_start(piece.id, 0, 0)
        assert pointer.subscribed == 1 and pointer.on_move is not None and pointer.on_end is not None

        pointer.on_move(*home_center(controller, piece))
        scheduler.run_pending()
        assert controller.state.highlight_cell == piece.cell

        pointer.on_end()
        assert pointer.released == 1
        assert piece.cell_key in controller.state.placed

    @pytest.mark.parametrize("exit_path", ["miss", "cancel", "reset"])
    def test_pointer_subscription_released_on_every_exit(self, exit_path: str) -> None:
        pointer = FakePointerSource()
        controller = make_controller(pointer_source=pointer)
        piece = first_tray_piece(controller)
        controller.drag_start(piece.id, 0, 0)
        controller.drag_move(3, 3)

        if exit_path == "miss":
            controller.drag_end(-1, -1)
        elif exit_path == "cancel":
            controller.drag_cancel()
        else:
            controller.reset()

        assert pointer.released == 1
        assert controller.state.dragging is None


class TestRestart:
    """Tests for play-again."""

    def test_reset_reshuffles_and_clears(self) -> None:
        controller = make_controller()
        for _ in range(9):
            drop_home(controller, first_tray_piece(controller))
        assert controller.complete

        controller.reset()
        assert not controller.complete
        assert controller.state.placed == {}
        assert len(controller.state.pool) == 9
        assert controller.state.tray_slots == [piece.id for piece in controller.state.pool[:4]]
        assert_partition(controller)


class TestSnapshot:
    """Tests for the view snapshot."""

    def test_snapshot_reflects_state(self) -> None:
        controller = make_controller()
        piece = first_tray_piece(controller)
        drop_home(controller, piece)

        snapshot = controller.snapshot()
        assert isinstance(snapshot, PuzzleSnapshot)
        assert snapshot.total_pieces == 9
        assert snapshot.placed_count == 1
        assert snapshot.remaining_count == 8
        assert snapshot.placed[piece.cell_key].id == piece.id
        assert snapshot.placed[piece.cell_key].edges.top == int(piece.edges.top)
        assert [p.id if p else None for p in snapshot.tray] == controller.state.tray_slots
        assert snapshot.dragging is None
        assert not snapshot.complete


class TestTrayHelpers:
    """Tests for shuffling and slot replenishment."""

    def test_fill_skips_pieces_already_shown(self) -> None:
        pool = [Piece(i, 0, i, None) for i in range(6)]  # type: ignore[arg-type]
        slots = fill_empty_slots(pool, [0, None, 2, None], random.Random(5).random)
        assert slots[0] == 0 and slots[2] == 2
        assert slots[1] in {1, 3, 4, 5} and slots[3] in {1, 3, 4, 5}
        assert slots[1] != slots[3]

    def test_fill_leaves_surplus_slots_empty(self) -> None:
        pool = [Piece(i, 0, i, None) for i in range(2)]  # type: ignore[arg-type]
        slots = fill_empty_slots(pool, [None, None, 1, None], random.Random(5).random)
        assert slots == [0, None, 1, None]

    def test_shuffle_is_a_permutation(self) -> None:
        items = list(range(20))
        shuffled = shuffle_pieces(items, random.Random(3).random)
        assert sorted(shuffled) == items
        assert items == list(range(20))

    def test_event_bus_unsubscribe(self) -> None:
        bus = EventBus()
        received: List[object] = []
        unsubscribe = bus.subscribe(PuzzleCompleted, received.append)
        bus.publish(PuzzleCompleted())
        unsubscribe()
        bus.publish(PuzzleCompleted())
        assert received == [PuzzleCompleted()]
