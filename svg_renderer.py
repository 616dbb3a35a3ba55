from __future__ import annotations

import math
from dataclasses import dataclass

from typing import Dict, List, Tuple

# Import shapes for type hints only
from equation_engine import RoundState


# -----------------------------------------------------------------------------
# Simple logger hook (optional; mirrors equation_engine)
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


@dataclass
class Appearance:
    """
    Visual settings used by the SVG renderer.
    Keep this in sync with your UI fields.
    """
    # Grid
    cell_bg_color: str = "#FFFFFF"
    cell_line_color: str = "#000000"
    cell_line_thickness: float = 1.0

    # Tokens
    grid_font_family: str = "Arial"
    grid_font_size: int = 24
    grid_font_bold: bool = False
    grid_font_color: str = "#000000"

    # Target header above the grid
    show_target: bool = True
    target_font_family: str = "Arial"
    target_font_size: int = 20
    target_font_color: str = "#000000"
    target_label: str = "Target"

    # --- Solution marking options ---
    solution_mark_style: str = "highlight"     # "highlight" | "circle"
    solution_mark_color: str = "#D94242"
    solution_circle_width: float = 2.0
    solution_circle_band_frac: float = 0.55    # fraction of cell height
    solution_circle_pad_len: float = 2.0       # extra length at each end (px)

    # --- Live board cell states ---
    selected_color: str = "#9CC3FF"
    found_color: str = "#A8E6A1"
    hint_color: str = "#FFE08A"

    # Border
    add_border: bool = False
    border_thickness: float = 2.0
    border_color: str = "#000000"
    # Distance of border rectangle to the grid (px)
    border_distance: float = 2.0


# -----------------------------------------------------------------------------
# Tiny helper to build safe SVG text (no external lib, very basic)
# -----------------------------------------------------------------------------
def _esc(s: str) -> str:
    return (
        str(s).replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def _layout(rows: int, cols: int, appearance: Appearance) -> Tuple[int, int, int, int, int]:
    """Return (cell, pad, header_h, total_w, total_h)."""
    # Size math: cell becomes font_size * 1.6, with some padding
    cell = max(12, int(appearance.grid_font_size * 1.6))
    pad = int(cell * 0.4)
    header_h = int(appearance.target_font_size * 1.6) if appearance.show_target else 0
    total_w = cols * cell + pad * 2
    total_h = rows * cell + header_h + pad * 2
    return cell, pad, header_h, total_w, total_h


def _open_svg(out: List[str], total_w: int, total_h: int) -> None:
    out.append(
        f'<svg xmlns="http://www.w3.org/2000/svg" '
        f'width="{total_w}" height="{total_h}" '
        f'viewBox="0 0 {total_w} {total_h}">'
    )


def _draw_header(out: List[str], state: RoundState, appearance: Appearance, pad: int, grid_w: int) -> None:
    if not appearance.show_target:
        return
    y = pad + int(appearance.target_font_size)
    out.append(
        f'<text x="{pad + grid_w // 2}" y="{y}" text-anchor="middle" '
        f'font-family="{_esc(appearance.target_font_family)}" font-size="{appearance.target_font_size}" '
        f'font-weight="bold" fill="{appearance.target_font_color}">'
        f'{_esc(appearance.target_label)}: {_esc(state.target)}</text>'
    )


def _draw_frame(out: List[str], appearance: Appearance, gx: int, gy: int, grid_w: int, grid_h: int) -> None:
    """Optional border (around GRID, offset by border_distance) and background."""
    if appearance.add_border:
        d = float(appearance.border_distance or 0.0)
        out.append(
            f'<rect x="{gx - d}" y="{gy - d}" width="{grid_w + 2 * d}" height="{grid_h + 2 * d}" '
            f'stroke="{appearance.border_color}" stroke-width="{appearance.border_thickness}" fill="none" />'
        )
    out.append(
        f'<rect x="{gx}" y="{gy}" width="{grid_w}" height="{grid_h}" '
        f'fill="{appearance.cell_bg_color}" stroke="none" />'
    )


def _draw_cell_fill(out: List[str], gx: int, gy: int, cell: int, r: int, c: int, color: str, opacity: float = 1.0) -> None:
    x = gx + c * cell + 1
    y = gy + r * cell + 1
    out.append(
        f'<rect x="{x}" y="{y}" width="{cell - 2}" height="{cell - 2}" '
        f'fill="{color}" fill-opacity="{opacity}" stroke="none" />'
    )


def _draw_lines(out: List[str], appearance: Appearance, gx: int, gy: int, rows: int, cols: int, cell: int) -> None:
    stroke = appearance.cell_line_color
    sw = appearance.cell_line_thickness
    grid_w = cols * cell
    grid_h = rows * cell
    for c in range(cols + 1):
        x = gx + c * cell
        out.append(f'<line x1="{x}" y1="{gy}" x2="{x}" y2="{gy + grid_h}" stroke="{stroke}" stroke-width="{sw}" />')
    for r in range(rows + 1):
        y = gy + r * cell
        out.append(f'<line x1="{gx}" y1="{y}" x2="{gx + grid_w}" y2="{y}" stroke="{stroke}" stroke-width="{sw}" />')


def _draw_tokens(out: List[str], letters: List[List[str]], appearance: Appearance, gx: int, gy: int, cell: int) -> None:
    font_weight = "bold" if appearance.grid_font_bold else "normal"
    out.append(
        f'<g font-family="{_esc(appearance.grid_font_family)}" font-size="{appearance.grid_font_size}" '
        f'font-weight="{font_weight}" fill="{appearance.grid_font_color}">'
    )
    # Center tokens in cells; multi-digit numbers shrink to stay inside
    txt_dy = int(appearance.grid_font_size * 0.35)
    for r, row in enumerate(letters):
        for c, tok in enumerate(row):
            x = gx + c * cell + cell // 2
            y = gy + r * cell + cell // 2 + txt_dy
            size_attr = ""
            if len(tok) > 2:
                size_attr = f' font-size="{max(8, int(appearance.grid_font_size * 2 / len(tok)))}"'
            out.append(f'<text x="{x}" y="{y}" text-anchor="middle"{size_attr}>{_esc(tok)}</text>')
    out.append('</g>')


# -----------------------------------------------------------------------------
# Core renderers
# -----------------------------------------------------------------------------
def render_puzzle_svg(state: RoundState, appearance: Appearance) -> str:
    """
    Draw the target and the token grid.
    The goal is clarity, not fancy style.
    """
    letters = state.letters
    rows = len(letters)
    cols = len(letters[0]) if rows else 0
    cell, pad, header_h, total_w, total_h = _layout(rows, cols, appearance)
    gx, gy = pad, pad + header_h

    out: List[str] = []
    _open_svg(out, total_w, total_h)
    _draw_header(out, state, appearance, pad, cols * cell)
    _draw_frame(out, appearance, gx, gy, cols * cell, rows * cell)
    _draw_lines(out, appearance, gx, gy, rows, cols, cell)
    _draw_tokens(out, letters, appearance, gx, gy, cell)
    out.append('</svg>')
    return "\n".join(out)


def render_solution_svg(state: RoundState, appearance: Appearance) -> str:
    """
    Solution SVG:
      - Draw grid + tokens like the puzzle.
      - Mark hidden equations with either:
          * "highlight": per-cell rects behind tokens
          * "circle": rotated pill per equation with semicircular endcaps,
            extended to fully include the first & last tokens (including diagonals).
    """
    letters = state.letters
    used = state.used_mask
    rows = len(letters)
    cols = len(letters[0]) if rows else 0
    cell, pad, header_h, total_w, total_h = _layout(rows, cols, appearance)
    gx, gy = pad, pad + header_h

    out: List[str] = []
    _open_svg(out, total_w, total_h)
    _draw_header(out, state, appearance, pad, cols * cell)
    _draw_frame(out, appearance, gx, gy, cols * cell, rows * cell)

    mark_style = (appearance.solution_mark_style or "highlight").lower()
    if mark_style == "highlight":
        for r in range(rows):
            for c in range(cols):
                if used[r][c]:
                    _draw_cell_fill(out, gx, gy, cell, r, c, appearance.solution_mark_color, 0.8)

    _draw_lines(out, appearance, gx, gy, rows, cols, cell)

    if mark_style == "circle":
        stroke = appearance.solution_mark_color
        sw = float(appearance.solution_circle_width or 2.0)
        rect_h = max(1.0, float(appearance.solution_circle_band_frac or 0.55) * cell)
        pad_len = float(appearance.solution_circle_pad_len or 2.0)
        rx = ry = rect_h * 0.5  # true half-circle endcaps

        for pe in state.solutions:
            if not pe.cells:
                continue
            # Centers of first/last tokens
            (r0, c0) = pe.cells[0]
            (r1, c1) = pe.cells[-1]
            x0 = gx + c0 * cell + 0.5 * cell
            y0 = gy + r0 * cell + 0.5 * cell
            x1 = gx + c1 * cell + 0.5 * cell
            y1 = gy + r1 * cell + 0.5 * cell

            dx = x1 - x0
            dy = y1 - y0
            D = math.hypot(dx, dy)
            if D > 1e-6:
                ux, uy = dx / D, dy / D
            else:
                ux, uy = 1.0, 0.0

            # 0.5*cell for axis-aligned; ~0.707*cell for 45 degrees
            ext_each = 0.5 * cell * (abs(ux) + abs(uy)) + pad_len
            rect_w = D + 2.0 * ext_each
            cx = (x0 + x1) * 0.5
            cy = (y0 + y1) * 0.5
            ang = math.degrees(math.atan2(dy, dx)) if D > 1e-6 else 0.0

            out.append(
                f'<rect x="{cx - rect_w * 0.5:.2f}" y="{cy - rect_h * 0.5:.2f}" '
                f'width="{rect_w:.2f}" height="{rect_h:.2f}" '
                f'fill="none" stroke="{stroke}" stroke-width="{sw:.2f}" '
                f'rx="{rx:.2f}" ry="{ry:.2f}" transform="rotate({ang:.2f} {cx:.2f} {cy:.2f})" />'
            )

    _draw_tokens(out, letters, appearance, gx, gy, cell)
    out.append('</svg>')
    return "\n".join(out)


def render_board_svg(
    state: RoundState,
    cell_states: Dict[Tuple[int, int], str],
    appearance: Appearance,
) -> str:
    """
    Live board for play: cells painted by state (selected / found / hint).
    Cells missing from cell_states, or marked "none", are left plain.
    """
    letters = state.letters
    rows = len(letters)
    cols = len(letters[0]) if rows else 0
    cell, pad, header_h, total_w, total_h = _layout(rows, cols, appearance)
    gx, gy = pad, pad + header_h

    colors = {
        "selected": appearance.selected_color,
        "found": appearance.found_color,
        "hint": appearance.hint_color,
    }

    out: List[str] = []
    _open_svg(out, total_w, total_h)
    _draw_header(out, state, appearance, pad, cols * cell)
    _draw_frame(out, appearance, gx, gy, cols * cell, rows * cell)
    for (r, c), st in sorted(cell_states.items()):
        color = colors.get(st)
        if color is None:
            continue
        if 0 <= r < rows and 0 <= c < cols:
            _draw_cell_fill(out, gx, gy, cell, r, c, color)
        else:
            _log(f"[render] cell {(r, c)} outside {rows}x{cols}, skipped")
    _draw_lines(out, appearance, gx, gy, rows, cols, cell)
    _draw_tokens(out, letters, appearance, gx, gy, cell)
    out.append('</svg>')
    return "\n".join(out)


def save_svg(svg_text: str, path: str) -> None:
    """Write an SVG string to disk."""
    with open(path, "w", encoding="utf-8") as f:
        f.write(svg_text)
