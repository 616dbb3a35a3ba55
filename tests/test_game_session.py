# tests/test_game_session.py
from equation_engine import PlacedEquation, RoundSpec, RoundState
from game_session import (
    ANNOUNCE_CORRECT,
    ANNOUNCE_NO_MORE_HINTS,
    ANNOUNCE_ROUND_COMPLETE,
    GameSession,
    Selection,
    is_straight_line,
    validate,
)


def _session_with(state, **kwargs):
    messages = []
    session = GameSession(RoundSpec(target=15, seed="fixed"), announce=messages.append, **kwargs)
    session.state = state
    return session, messages


def _select(session, cells):
    session.begin_selection(cells[0])
    for coord in cells[1:]:
        session.extend_selection(coord)
    return session.selection


# ---------------------------------------------------------------------------
# Geometry / validation
# ---------------------------------------------------------------------------
def test_straight_lines_accepted():
    assert is_straight_line([])
    assert is_straight_line([(3, 3)])
    assert is_straight_line([(0, 0), (0, 1), (0, 2)])
    assert is_straight_line([(4, 0), (3, 1), (2, 2)])
    assert is_straight_line([(2, 2), (1, 2), (0, 2)])


def test_bent_or_stalled_lines_rejected():
    assert not is_straight_line([(0, 0), (0, 1), (1, 1)])
    assert not is_straight_line([(0, 0), (1, 1), (2, 1)])
    assert not is_straight_line([(1, 1), (1, 1)])


def test_validate_examples():
    row = [(0, 0), (0, 1), (0, 2)]
    assert validate(list(zip(row, ["12", "+", "3"])), 15)
    assert not validate(list(zip(row, ["12", "+", "4"])), 15)
    assert not validate(list(zip(row, ["7", "×", "x"])), 15)
    bent = [(0, 0), (0, 1), (1, 1)]
    assert not validate(list(zip(bent, ["12", "+", "3"])), 15)


# ---------------------------------------------------------------------------
# Session: selection and answer tracking
# ---------------------------------------------------------------------------
def test_correct_selection_marks_found(fixed_round):
    changes = []
    session, messages = _session_with(fixed_round, on_cell_state_changed=lambda c, s: changes.append((c, s)))

    _select(session, [(0, 0), (0, 1), (0, 2)])
    assert session.finish_selection() is True

    assert fixed_round.found == [True, False]
    assert fixed_round.found_remaining == 1
    assert messages == [ANNOUNCE_CORRECT]
    assert session.selection is None
    assert all(session.cell_states[c] == "found" for c in [(0, 0), (0, 1), (0, 2)])
    assert ((0, 2), "found") in changes


def test_same_line_not_credited_twice(fixed_round):
    session, messages = _session_with(fixed_round)
    _select(session, [(0, 0), (0, 1), (0, 2)])
    session.finish_selection()

    # reversed drag over the same cells (3 + 12) is still the same line
    _select(session, [(0, 2), (0, 1), (0, 0)])
    assert session.finish_selection() is False
    assert fixed_round.found_remaining == 1
    assert messages == [ANNOUNCE_CORRECT]
    assert session.cell_states[(0, 1)] == "found"


def test_wrong_selection_changes_nothing(fixed_round):
    session, messages = _session_with(fixed_round)
    _select(session, [(1, 0), (1, 1), (1, 2)])
    assert session.finish_selection() is False
    assert fixed_round.found_remaining == 2
    assert fixed_round.found == [False, False]
    assert session.cell_states == {}
    assert messages == []


def test_bent_extension_is_ignored(fixed_round):
    session, _ = _session_with(fixed_round)
    session.begin_selection((0, 0))
    assert session.extend_selection((0, 1))
    assert not session.extend_selection((1, 1))
    assert not session.extend_selection((0, 1))  # same cell again
    assert session.selection.cells == [(0, 0), (0, 1)]


def test_finding_everything_completes_round(fixed_round):
    session, messages = _session_with(fixed_round)
    _select(session, [(0, 0), (0, 1), (0, 2)])
    session.finish_selection()
    _select(session, [(2, 0), (2, 1), (2, 2)])
    session.finish_selection()

    assert fixed_round.found_remaining == 0
    assert messages == [ANNOUNCE_CORRECT, ANNOUNCE_CORRECT, ANNOUNCE_ROUND_COMPLETE]


# ---------------------------------------------------------------------------
# Hints
# ---------------------------------------------------------------------------
def test_hint_points_at_first_unfound(fixed_round):
    session, _ = _session_with(fixed_round)
    assert session.request_hint() == [(0, 0), (0, 1), (0, 2)]
    assert session.cell_states[(0, 1)] == "hint"
    session.clear_hint()
    assert session.cell_states == {}

    _select(session, [(0, 0), (0, 1), (0, 2)])
    session.finish_selection()
    hint = session.request_hint()
    assert hint == [(2, 0), (2, 1), (2, 2)]
    assert not all(session.cell_states.get(c) == "found" for c in hint)


def test_hint_none_when_all_found(fixed_round):
    session, messages = _session_with(fixed_round)
    fixed_round.found_remaining = 0
    assert session.request_hint() is None
    assert messages == [ANNOUNCE_NO_MORE_HINTS]


def test_clear_hint_keeps_found_cells(fixed_round):
    session, _ = _session_with(fixed_round)
    _select(session, [(0, 0), (0, 1), (0, 2)])
    session.finish_selection()
    session.request_hint()
    session.clear_hint()
    assert set(session.cell_states) == {(0, 0), (0, 1), (0, 2)}


# ---------------------------------------------------------------------------
# Rounds
# ---------------------------------------------------------------------------
def test_start_round_notifies_and_resets():
    built = []
    session = GameSession(
        RoundSpec(target=20, seed="rounds"),
        on_round_built=lambda letters, target: built.append((letters, target)),
        announce=lambda _m: None,
    )
    state = session.start_round()
    assert built == [(state.letters, 20)]
    assert state.round_id == 1
    assert session.start_round().round_id == 2


def test_new_round_discards_selection_in_progress():
    session = GameSession(RoundSpec(target=15, seed="stale", grid_size=9), announce=lambda _m: None)
    first = session.start_round()
    assert first.solutions
    old = _select(session, first.solutions[0].cells)

    second = session.start_round()
    remaining = second.found_remaining
    assert session.selection is None
    assert session.finish_selection(old) is False
    assert session.finish_selection() is False
    assert second.found_remaining == remaining
    assert not any(second.found)
    assert session.extend_selection((0, 0)) is False


def test_live_round_can_be_solved_from_its_solutions():
    messages = []
    session = GameSession(RoundSpec(target=24, seed="solve", grid_size=9), announce=messages.append)
    state = session.start_round()
    for pe in state.solutions:
        _select(session, pe.cells)
        assert session.finish_selection() is True
    assert state.found_remaining == 0
    assert messages[-1] == ANNOUNCE_ROUND_COMPLETE


# ---------------------------------------------------------------------------
# Contiguity: every step must be one unit compass vector
# ---------------------------------------------------------------------------
def test_skipping_or_knight_steps_are_not_lines():
    assert not is_straight_line([(0, 0), (0, 2)])
    assert not is_straight_line([(0, 0), (2, 2)])
    assert not is_straight_line([(0, 0), (1, 2), (2, 3)])
    assert not is_straight_line([(0, 0), (0, 1), (0, 3)])


def test_extend_rejects_non_adjacent_cells(fixed_round):
    session, _ = _session_with(fixed_round)
    for far in [(0, 2), (2, 2), (1, 2)]:
        session.begin_selection((0, 0))
        assert not session.extend_selection(far)
        assert session.selection.cells == [(0, 0)]

    session.begin_selection((0, 0))
    assert not session.extend_selection((1, 2))
    assert not session.extend_selection((2, 3))
    assert session.selection.cells == [(0, 0)]


def test_scattered_correct_tokens_are_not_credited():
    letters = [["9"] * 5 for _ in range(5)]
    letters[0][0], letters[1][2], letters[2][3] = "12", "+", "3"
    letters[4][0], letters[4][1], letters[4][2] = "20", "−", "5"
    solution = PlacedEquation(["20", "−", "5"], (4, 0), "E", [(4, 0), (4, 1), (4, 2)])
    used = [[False] * 5 for _ in range(5)]
    for r, c in solution.cells:
        used[r][c] = True
    state = RoundState(
        round_id=1,
        target=15,
        letters=letters,
        used_mask=used,
        equations=[solution.tokens],
        solutions=[solution],
        found_remaining=1,
    )
    session, messages = _session_with(state)

    assert not validate([((0, 0), "12"), ((1, 2), "+"), ((2, 3), "3")], 15)
    session.selection = Selection(round_id=1, cells=[(0, 0), (1, 2), (2, 3)])
    assert session.finish_selection() is False
    assert state.found_remaining == 1
    assert messages == []


def test_seeded_session_deals_a_fresh_round_each_time():
    session = GameSession(RoundSpec(seed="advance"), announce=lambda _m: None)
    first = session.start_round()
    second = session.start_round()
    assert (first.target, first.letters) != (second.target, second.letters)
