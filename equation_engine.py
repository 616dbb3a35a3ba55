from __future__ import annotations

import math
import operator
import random
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Tuple, Optional, Dict, Literal, Sequence

# 8 compass directions for placement (row delta, col delta)
DIR_VECTORS = {
    "E":  (0, 1),
    "W":  (0, -1),
    "N":  (-1, 0),
    "S":  (1, 0),
    "NE": (-1, 1),
    "SE": (1, 1),
    "SW": (1, -1),
    "NW": (-1, -1),
}

# Noise tokens for cells no equation claimed
DEFAULT_NOISE_POOL = ["+", "−", "×", "÷", "=", "0", "1", "2", "3", "4", "5", "6", "7", "8", "9"]


# -----------------------------------------------------------------------------
# Simple logger hook
# -----------------------------------------------------------------------------
# app.py can call set_logger(my_ui_logger). If you do nothing, we print().
_LOGGER = None  # type: Optional[callable]


def set_logger(fn) -> None:
    """Allow the UI to inject a logger callback: fn(text: str)."""
    global _LOGGER
    _LOGGER = fn


def _log(msg: str) -> None:
    """Log to UI if available; otherwise print. Keep messages simple."""
    if _LOGGER:
        try:
            _LOGGER(msg)
            return
        except Exception:
            pass
    print(msg)


# -----------------------------------------------------------------------------
# Data shapes used across the app
# -----------------------------------------------------------------------------
Direction = Literal["N", "NE", "E", "SE", "S", "SW", "W", "NW"]
Coord = Tuple[int, int]
Equation = List[str]


class Operator(Enum):
    """Arithmetic operators a grid line may use, keyed by display symbol."""
    ADD = "+"
    SUBTRACT = "−"
    MULTIPLY = "×"
    DIVIDE = "÷"

    @classmethod
    def from_symbol(cls, symbol: str) -> Optional["Operator"]:
        return _OPERATOR_ALIASES.get((symbol or "").strip())

    def apply(self, a: float, b: float) -> float:
        return _OPERATOR_FUNCS[self](a, b)


_OPERATOR_ALIASES: Dict[str, Operator] = {
    "+": Operator.ADD,
    "−": Operator.SUBTRACT,
    "-": Operator.SUBTRACT,
    "×": Operator.MULTIPLY,
    "*": Operator.MULTIPLY,
    "x": Operator.MULTIPLY,
    "÷": Operator.DIVIDE,
    "/": Operator.DIVIDE,
}

_OPERATOR_FUNCS: Dict[Operator, Callable[[float, float], float]] = {
    Operator.ADD: operator.add,
    Operator.SUBTRACT: operator.sub,
    Operator.MULTIPLY: operator.mul,
    Operator.DIVIDE: operator.truediv,
}


@dataclass
class PlacedEquation:
    """One placed equation with its path in the grid."""
    tokens: List[str]
    start: Coord  # (row, col)
    direction: Direction
    cells: List[Coord]  # all grid coordinates used, in token order


@dataclass
class RoundSpec:
    """
    Every tunable needed to build a round.
    The UI fills this from its sidebar; tests build it directly.
    """
    directions: List[Direction] = field(default_factory=lambda: list(DIR_VECTORS))
    target_min: int = 10
    target_max: int = 50
    target: Optional[int] = None          # pin the target instead of drawing it
    hidden_equations: int = 3
    noise_pool: List[str] = field(default_factory=lambda: list(DEFAULT_NOISE_POOL))
    max_attempts: int = 250               # line placement retries per equation
    factor_trials: int = 50               # random draws when looking for a factor
    size_k: float = 2.0                   # grid sizing density constant
    avg_len: float = 3.0                  # grid sizing length constant
    min_size: int = 5
    grid_size: Optional[int] = None       # pin the grid dimension instead of sizing it
    equals_form: bool = True              # also offer "a + b = target"
    include_division: bool = False
    seed: Optional[str] = None

    def validate(self) -> None:
        """Raise ValueError when these settings cannot produce a round."""
        if not self.directions:
            raise ValueError("at least one direction is required")
        unknown = [d for d in self.directions if str(d).upper() not in DIR_VECTORS]
        if unknown:
            raise ValueError(f"unknown directions: {unknown}")
        lo = self.target if self.target is not None else self.target_min
        hi = self.target if self.target is not None else self.target_max
        if lo < 2:
            raise ValueError(f"targets must be >= 2, got {lo}")
        if lo > hi:
            raise ValueError(f"target_min {self.target_min} > target_max {self.target_max}")
        if self.hidden_equations < 0:
            raise ValueError("hidden_equations must be >= 0")
        if not self.noise_pool:
            raise ValueError("noise_pool must not be empty")
        if self.max_attempts < 1 or self.factor_trials < 1:
            raise ValueError("retry budgets must be positive")
        if self.min_size < 4:
            raise ValueError("min_size must be >= 4")
        if self.grid_size is not None and self.grid_size < 1:
            raise ValueError("grid_size must be positive")


@dataclass
class RoundState:
    """
    One live round. This is what the session, renderer and UI consume.
    """
    round_id: int
    target: int
    letters: List[List[str]]                 # final grid of tokens, row-major
    used_mask: List[List[bool]]              # True where a placed equation token sits
    equations: List[Equation]                # candidates that were attempted
    solutions: List[PlacedEquation]          # placed equations, generation order
    found: List[bool] = field(default_factory=list)
    found_remaining: int = 0
    found_paths: set = field(default_factory=set)  # frozensets of coords already credited

    def __post_init__(self) -> None:
        if not self.found:
            self.found = [False] * len(self.solutions)

    @property
    def size(self) -> int:
        return len(self.letters)

    def token_at(self, coord: Coord) -> str:
        r, c = coord
        return self.letters[r][c]


# -----------------------------------------------------------------------------
# Helpers: addressing and randomness
# -----------------------------------------------------------------------------
def cell_index(coord: Coord, size: int) -> int:
    """Row-major flat index of (row, col) in a size x size grid."""
    r, c = coord
    return r * size + c


def cell_coord(index: int, size: int) -> Coord:
    """Inverse of cell_index."""
    return divmod(index, size)


def make_rng(seed: Optional[str]) -> random.Random:
    if seed is None or (isinstance(seed, str) and not seed.strip()):
        return random.Random()
    return random.Random(seed)


def _normalize_directions(directions: Optional[Sequence[str]]) -> List[str]:
    """Keep only known direction names; fall back to all eight."""
    dirs = []
    for d in (directions or []):
        d = (d or "").upper()
        if d in DIR_VECTORS and d not in dirs:
            dirs.append(d)
    return dirs or list(DIR_VECTORS)


# -----------------------------------------------------------------------------
# Equation synthesis
# -----------------------------------------------------------------------------
def _addition(target: int, rng: random.Random) -> Equation:
    a = rng.randint(1, target - 1)
    return [str(a), Operator.ADD.value, str(target - a)]


def _multiplication(target: int, rng: random.Random, trials: int) -> Optional[Equation]:
    """
    Random factor search. Returns None when no factor turns up within the
    trial budget (primes, or targets without a small factor).
    """
    hi = max(2, int(math.isqrt(target)) + 3)
    for _ in range(trials):
        a = rng.randint(2, hi)
        if target % a == 0:
            b = target // a
            if 2 <= b <= 99:
                return [str(a), Operator.MULTIPLY.value, str(b)]
    return None


def _subtraction(target: int, rng: random.Random) -> Equation:
    b = rng.randint(1, 20)
    return [str(target + b), Operator.SUBTRACT.value, str(b)]


def _division(target: int, rng: random.Random) -> Equation:
    b = rng.randint(2, 9)
    return [str(target * b), Operator.DIVIDE.value, str(b)]


def synthesize_equations(
    target: int,
    rng: Optional[random.Random] = None,
    *,
    limit: Optional[int] = None,
    factor_trials: int = 50,
    equals_form: bool = True,
    include_division: bool = False,
) -> List[Equation]:
    """
    Build distinct token sequences that evaluate to target.

    Generation order is +, ×, −, (÷), then the "a + b = target" form reusing
    the addition operands. Duplicates (exact, order-sensitive) are dropped and
    the result is capped to limit.
    """
    if target < 2:
        raise ValueError(f"target must be >= 2, got {target}")
    _rng = rng if rng is not None else random.Random()

    candidates: List[Equation] = []
    add = _addition(target, _rng)
    candidates.append(add)

    mul = _multiplication(target, _rng, factor_trials)
    if mul:
        candidates.append(mul)
    else:
        _log(f"[synth] no factor for {target} within {factor_trials} trials; skipping ×")

    candidates.append(_subtraction(target, _rng))
    if include_division:
        candidates.append(_division(target, _rng))
    if equals_form:
        candidates.append(add + ["=", str(target)])

    seen = set()
    out: List[Equation] = []
    for eq in candidates:
        key = tuple(eq)
        if key in seen:
            continue
        seen.add(key)
        out.append(eq)

    if limit is not None:
        out = out[: max(0, int(limit))]
    return out


# -----------------------------------------------------------------------------
# Arithmetic evaluation (no dynamic code evaluation)
# -----------------------------------------------------------------------------
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


def _parse_number(text: str) -> Optional[float]:
    t = (text or "").strip()
    if not _NUMBER_RE.match(t):
        return None
    return float(t)


def evaluate_binary(a: str, op: str, b: str) -> Optional[float]:
    """Evaluate 'a op b'. None for malformed operands, unknown ops or x ÷ 0."""
    left = _parse_number(a)
    right = _parse_number(b)
    oper = Operator.from_symbol(op)
    if left is None or right is None or oper is None:
        return None
    if oper is Operator.DIVIDE and right == 0:
        return None
    return oper.apply(left, right)


def evaluate_tokens(tokens: Sequence[str]) -> Optional[float]:
    """
    Value of a selected token line, or None when it is not a well-formed equation.

    Supported shapes:
      - [a, op, b]
      - [a, op, b, "=", result]   (result must equal the left-hand side)
    """
    toks = list(tokens)
    if len(toks) == 3:
        return evaluate_binary(toks[0], toks[1], toks[2])
    if len(toks) == 5 and toks[3] == "=":
        lhs = evaluate_binary(toks[0], toks[1], toks[2])
        result = _parse_number(toks[4])
        if lhs is None or result is None or lhs != result:
            return None
        return result
    return None


def is_correct(tokens: Sequence[str], target: int) -> bool:
    value = evaluate_tokens(tokens)
    return value is not None and value == target


# -----------------------------------------------------------------------------
# Grid building
# -----------------------------------------------------------------------------
def grid_size(num_equations: int, k: float = 2.0, avg_len: float = 3.0, min_size: int = 5) -> int:
    """
    Square grid dimension for hiding num_equations lines:
    ceil(k * sqrt(k * avg_len * num_equations)), floored at min_size.
    """
    if num_equations < 0:
        raise ValueError("num_equations must be >= 0")
    n = math.ceil(k * math.sqrt(k * avg_len * num_equations))
    return max(int(min_size), int(n))


def _empty_grid(h: int, w: int):
    return [[None for _ in range(w)] for _ in range(h)]


def can_place_line(grid, start: Coord, direction: str, tokens: Sequence[str]) -> bool:
    """Check bounds and compatibility (allow crossing on identical tokens)."""
    H = len(grid)
    W = len(grid[0]) if H else 0
    dr, dc = DIR_VECTORS[direction]
    rr, cc = start
    for tok in tokens:
        if rr < 0 or rr >= H or cc < 0 or cc >= W:
            return False
        cell = grid[rr][cc]
        if cell is not None and cell != "" and cell != tok:
            return False
        rr += dr
        cc += dc
    return True


def _write_line(grid, start: Coord, direction: str, tokens: Sequence[str]) -> List[Coord]:
    """Write the tokens on the grid; return list of (r,c)."""
    dr, dc = DIR_VECTORS[direction]
    cells = []
    rr, cc = start
    for tok in tokens:
        grid[rr][cc] = tok
        cells.append((rr, cc))
        rr += dr
        cc += dc
    return cells


def place_line(
    grid,
    tokens: Sequence[str],
    rng: random.Random,
    directions: Optional[Sequence[str]] = None,
    max_attempts: int = 250,
) -> Optional[PlacedEquation]:
    """
    Random-origin placer: each attempt draws a direction and a start cell and
    walks the tokens from there. Returns the placement, or None once the retry
    budget is spent. The grid is only written on success.
    """
    H = len(grid)
    W = len(grid[0]) if H else 0
    if not tokens or H == 0 or W == 0:
        return None
    dirs = _normalize_directions(directions)

    for _ in range(max(1, int(max_attempts))):
        d = rng.choice(dirs)
        start = (rng.randrange(0, H), rng.randrange(0, W))
        if not can_place_line(grid, start, d, tokens):
            continue
        cells = _write_line(grid, start, d, tokens)
        return PlacedEquation(tokens=list(tokens), start=start, direction=d, cells=cells)
    return None


def fill_noise(grid, rng: random.Random, pool: Optional[Sequence[str]] = None) -> None:
    """
    Fill empty cells in place with random tokens from pool.
    Run this only after every equation of the round is placed.
    """
    choices = list(pool or DEFAULT_NOISE_POOL)
    for row in grid:
        for c, cell in enumerate(row):
            if cell is None or cell == "":
                row[c] = rng.choice(choices)


# ---------------------------------------------------------------------------
# High-level API
# ---------------------------------------------------------------------------
def build_round(
    spec: Optional[RoundSpec] = None,
    rng: Optional[random.Random] = None,
    round_id: int = 0,
) -> RoundState:
    """
    Orchestrator:
      - draw the target
      - synthesize equations, capped to spec.hidden_equations
      - size the grid for the equations actually attempted
      - place each equation; skip the ones that do not fit
      - fill the remaining cells with noise
    """
    spec = spec or RoundSpec()
    spec.validate()
    # If rng is provided we keep consuming it (batch); otherwise seed from spec.
    _rng = rng if rng is not None else make_rng(spec.seed)

    target = spec.target if spec.target is not None else _rng.randint(spec.target_min, spec.target_max)

    equations = synthesize_equations(
        target,
        _rng,
        limit=spec.hidden_equations,
        factor_trials=spec.factor_trials,
        equals_form=spec.equals_form,
        include_division=spec.include_division,
    )

    if spec.grid_size is not None:
        n = int(spec.grid_size)
    else:
        n = grid_size(len(equations), spec.size_k, spec.avg_len, spec.min_size)
    _log(f"[size] {len(equations)} equation(s) -> {n}x{n}")

    grid = _empty_grid(n, n)
    solutions: List[PlacedEquation] = []
    for eq in equations:
        placed = place_line(grid, eq, _rng, spec.directions, spec.max_attempts)
        if placed is None:
            _log(f"[place] could not place '{' '.join(eq)}' in {n}x{n} after {spec.max_attempts} tries, skipping it")
            continue
        solutions.append(placed)

    used = [[False] * n for _ in range(n)]
    for pe in solutions:
        for (r, c) in pe.cells:
            used[r][c] = True

    fill_noise(grid, _rng, spec.noise_pool)

    _log(f"[round] #{round_id} target={target} hidden={len(solutions)}/{len(equations)}")
    return RoundState(
        round_id=round_id,
        target=target,
        letters=grid,
        used_mask=used,
        equations=equations,
        solutions=solutions,
        found_remaining=len(solutions),
    )


def generate_batch(spec: RoundSpec, count: int, rng: Optional[random.Random] = None) -> List[RoundState]:
    """Build several independent rounds from one RNG (printable sheets)."""
    _rng = rng if rng is not None else make_rng(spec.seed)
    return [build_round(spec, _rng, round_id=i + 1) for i in range(max(0, int(count)))]


def render_preview_ascii(state: RoundState) -> str:
    """
    Simple ASCII for quick debugging.
    """
    width = max((len(tok) for row in state.letters for tok in row), default=1)
    lines = [f"target: {state.target}"]
    for row in state.letters:
        lines.append(" ".join((tok if tok else ".").rjust(width) for tok in row))
    return "\n".join(lines)
