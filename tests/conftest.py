# tests/conftest.py
import sys
from pathlib import Path

import pytest

# Add project root to sys.path so the flat modules import in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from equation_engine import PlacedEquation, RoundState  # noqa: E402


@pytest.fixture(autouse=True)
def quiet_logs():
    """Route engine/session/renderer logs into a list instead of stdout."""
    import equation_engine
    import game_session
    import svg_renderer

    lines = []
    for mod in (equation_engine, game_session, svg_renderer):
        mod.set_logger(lines.append)
    yield lines
    for mod in (equation_engine, game_session, svg_renderer):
        mod.set_logger(None)


@pytest.fixture
def fixed_round():
    """
    5x5 round with target 15 and two hidden equations:
      row 0: 12 + 3   (E)
      row 2: 20 − 5   (E)
    """
    letters = [
        ["12", "+", "3", "1", "1"],
        ["9", "9", "9", "9", "9"],
        ["20", "−", "5", "9", "9"],
        ["9", "9", "9", "9", "9"],
        ["9", "9", "9", "9", "9"],
    ]
    solutions = [
        PlacedEquation(["12", "+", "3"], (0, 0), "E", [(0, 0), (0, 1), (0, 2)]),
        PlacedEquation(["20", "−", "5"], (2, 0), "E", [(2, 0), (2, 1), (2, 2)]),
    ]
    used = [[False] * 5 for _ in range(5)]
    for pe in solutions:
        for r, c in pe.cells:
            used[r][c] = True
    return RoundState(
        round_id=1,
        target=15,
        letters=letters,
        used_mask=used,
        equations=[pe.tokens for pe in solutions],
        solutions=solutions,
        found_remaining=2,
    )
