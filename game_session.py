from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple

from equation_engine import (
    DIR_VECTORS,
    Coord,
    RoundSpec,
    RoundState,
    build_round,
    is_correct,
    make_rng,
)


# -----------------------------------------------------------------------------
# Simple logger hook (mirrors equation_engine)
# -----------------------------------------------------------------------------
_LOGGER = None  # type: Optional[callable]


def set_logger(fn) -> None:
    """Allow the UI to inject a logger callback: fn(text: str)."""
    global _LOGGER
    _LOGGER = fn


def _log(msg: str) -> None:
    if _LOGGER:
        try:
            _LOGGER(msg)
            return
        except Exception:
            pass
    print(msg)


CellState = Literal["selected", "found", "hint", "none"]

# Messages for the feedback collaborator (speech, toast, ...)
ANNOUNCE_CORRECT = "correct"
ANNOUNCE_ROUND_COMPLETE = "round-complete"
ANNOUNCE_NO_MORE_HINTS = "no-more-hints"

_LEGAL_STEPS = set(DIR_VECTORS.values())


# -----------------------------------------------------------------------------
# Geometry / arithmetic checks
# -----------------------------------------------------------------------------
def is_straight_line(coords: Sequence[Coord]) -> bool:
    """
    True when the cells run contiguously along one compass heading.

    The heading is the first step; it must be one of the eight unit
    direction vectors, and every later step must equal it exactly.
    """
    if len(coords) < 2:
        return True
    (r0, c0), (r1, c1) = coords[0], coords[1]
    heading = (r1 - r0, c1 - c0)
    if heading not in _LEGAL_STEPS:
        return False
    for (pr, pc), (r, c) in zip(coords[1:], coords[2:]):
        if (r - pr, c - pc) != heading:
            return False
    return True


def validate(path: Sequence[Tuple[Coord, str]], target: int) -> bool:
    """Check a selected path of (coord, token) pairs against the target."""
    coords = [coord for coord, _tok in path]
    tokens = [tok for _coord, tok in path]
    return is_straight_line(coords) and is_correct(tokens, target)


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------
@dataclass
class Selection:
    """An in-progress drag, bound to the round it started in."""
    round_id: int
    cells: List[Coord] = field(default_factory=list)


def _noop(*_args, **_kwargs) -> None:
    return None


class GameSession:
    """
    Owns the current RoundState and turns user gestures into state changes.

    Collaborators are plain callables:
      on_round_built(letters, target)
      on_cell_state_changed(coord, state)    state in selected/found/hint/none
      announce(message)
    """

    def __init__(
        self,
        spec: Optional[RoundSpec] = None,
        rng: Optional[random.Random] = None,
        *,
        on_round_built: Optional[Callable[[List[List[str]], int], None]] = None,
        on_cell_state_changed: Optional[Callable[[Coord, CellState], None]] = None,
        announce: Optional[Callable[[str], None]] = None,
    ):
        self.spec = spec or RoundSpec()
        self.rng = rng if rng is not None else make_rng(self.spec.seed)
        self.on_round_built = on_round_built or _noop
        self.on_cell_state_changed = on_cell_state_changed or _noop
        self.announce = announce or _log
        self.state: Optional[RoundState] = None
        self.selection: Optional[Selection] = None
        self.cell_states: Dict[Coord, CellState] = {}
        self._next_round_id = 1

    # --- cell state bookkeeping -------------------------------------------
    def _set_cell(self, coord: Coord, state: CellState) -> None:
        if state == "none":
            self.cell_states.pop(coord, None)
        else:
            self.cell_states[coord] = state
        self.on_cell_state_changed(coord, state)

    def _base_state(self, coord: Coord) -> CellState:
        """What a cell shows once it is no longer selected or hinted."""
        if self.state is not None:
            for solved, pe in zip(self.state.found, self.state.solutions):
                if solved and coord in pe.cells:
                    return "found"
            for path in self.state.found_paths:
                if coord in path:
                    return "found"
        return "none"

    def _in_bounds(self, coord: Coord) -> bool:
        n = self.state.size if self.state else 0
        r, c = coord
        return 0 <= r < n and 0 <= c < n

    # --- rounds --------------------------------------------------------------
    def start_round(self) -> RoundState:
        """Replace the round wholesale; any selection in progress is dropped."""
        self.selection = None
        self.cell_states = {}
        round_id = self._next_round_id
        if self.state is not None:
            round_id = max(round_id, self.state.round_id + 1)
        self.state = build_round(self.spec, self.rng, round_id=round_id)
        self._next_round_id = round_id + 1
        self.on_round_built(self.state.letters, self.state.target)
        return self.state

    # --- selection -----------------------------------------------------------
    def begin_selection(self, coord: Coord) -> Optional[Selection]:
        if self.state is None or not self._in_bounds(coord):
            return None
        if self.selection is not None:
            self.clear_selection()
        self.selection = Selection(round_id=self.state.round_id, cells=[coord])
        self._set_cell(coord, "selected")
        return self.selection

    def extend_selection(self, coord: Coord) -> bool:
        """Append coord when the path stays a straight line; else ignore it."""
        sel = self.selection
        if sel is None or self.state is None or sel.round_id != self.state.round_id:
            return False
        if not self._in_bounds(coord) or (sel.cells and sel.cells[-1] == coord):
            return False
        candidate = sel.cells + [coord]
        if not is_straight_line(candidate):
            return False
        sel.cells = candidate
        self._set_cell(coord, "selected")
        return True

    def clear_selection(self) -> None:
        sel = self.selection
        self.selection = None
        if sel is None or self.state is None or sel.round_id != self.state.round_id:
            return
        for coord in sel.cells:
            self._set_cell(coord, self._base_state(coord))

    def finish_selection(self, selection: Optional[Selection] = None) -> bool:
        """
        Resolve a drag: credit it when it is a correct, not-yet-credited line,
        otherwise just clear it. A selection from an earlier round is dropped
        without touching the current one.
        """
        sel = selection if selection is not None else self.selection
        state = self.state
        if sel is None or state is None:
            return False
        if sel.round_id != state.round_id:
            _log(f"[select] stale selection from round #{sel.round_id} ignored")
            if sel is self.selection:
                self.selection = None
            return False

        path = [(coord, state.token_at(coord)) for coord in sel.cells]
        key = frozenset(sel.cells)
        ok = validate(path, state.target) and key not in state.found_paths

        if not ok:
            if sel is self.selection:
                self.clear_selection()
            return False

        state.found_paths.add(key)
        for i, pe in enumerate(state.solutions):
            if not state.found[i] and frozenset(pe.cells) == key:
                state.found[i] = True
                break
        was_open = state.found_remaining > 0
        state.found_remaining = max(0, state.found_remaining - 1)

        if sel is self.selection:
            self.selection = None
        for coord in sel.cells:
            self._set_cell(coord, "found")

        self.announce(ANNOUNCE_CORRECT)
        if was_open and state.found_remaining == 0:
            self.announce(ANNOUNCE_ROUND_COMPLETE)
        return True

    # --- hints ---------------------------------------------------------------
    def request_hint(self) -> Optional[List[Coord]]:
        """Cells of the first unfound solution, or None when all are found."""
        state = self.state
        if state is None or state.found_remaining == 0:
            self.announce(ANNOUNCE_NO_MORE_HINTS)
            return None
        for solved, pe in zip(state.found, state.solutions):
            if solved:
                continue
            for coord in pe.cells:
                self._set_cell(coord, "hint")
            return list(pe.cells)
        self.announce(ANNOUNCE_NO_MORE_HINTS)
        return None

    def clear_hint(self) -> None:
        """Drop hint highlighting (the UI decides when)."""
        for coord, st in list(self.cell_states.items()):
            if st == "hint":
                self._set_cell(coord, self._base_state(coord))
