import io, zipfile, random
import streamlit as st
import re
from pathlib import Path

import equation_engine as eng
import game_session as gs
import svg_renderer as svg


def load_css(path: str | Path) -> None:
    css_path = Path(path)
    css = css_path.read_text(encoding="utf-8")
    st.markdown(f"<style>{css}</style>", unsafe_allow_html=True)


# ---- preview helper: scale an SVG to a target pixel width (keeps aspect) ----

def _scale_svg_for_preview(svg_text: str, target_width_px: int) -> tuple[str, int]:
    """
    Returns (scaled_svg_text, new_height_px).
    Only used for UI preview; original SVGs stay full size for ZIP/PNG/PDF.
    """
    s = svg_text
    m = re.search(r'viewBox="0\s+0\s+([\d.]+)\s+([\d.]+)"', s)
    if not m:
        return s, 600  # fallback
    vw, vh = float(m.group(1)), float(m.group(2))

    scale = max(0.05, float(target_width_px) / max(1.0, vw))
    new_h = max(50, int(round(vh * scale)))

    # rewrite width/height only on the <svg ...> tag
    s = re.sub(r'(<svg\b[^>]*\bwidth=")[^"]+(")',  rf'\g<1>{int(target_width_px)}\g<2>', s, count=1)
    s = re.sub(r'(<svg\b[^>]*\bheight=")[^"]+(")', rf'\g<1>{new_h}\g<2>',            s, count=1)
    if 'preserveAspectRatio' not in s[:400]:
        s = re.sub(r'<svg\b', '<svg preserveAspectRatio="xMidYMid meet"', s, count=1)
    return s, new_h


# Spoken feedback in the browser version; toasts here
_MESSAGES = {
    gs.ANNOUNCE_CORRECT: "Correct!",
    gs.ANNOUNCE_ROUND_COMPLETE: "Nice! All equations found. New puzzle ready.",
    gs.ANNOUNCE_NO_MORE_HINTS: "No more hints.",
}


def _announce(msg: str) -> None:
    st.toast(_MESSAGES.get(msg, msg))


def _ui_log(msg: str) -> None:
    st.session_state.setdefault("log", []).append(msg)


st.set_page_config(page_title="Equation Search", layout="wide")
load_css(Path(__file__).with_name("styles.css"))
st.title("Equation Search")

for _mod in (eng, gs, svg):
    _mod.set_logger(_ui_log)


# --- Controls in the sidebar (clean + compact) ---
with st.sidebar:
    tab_play, tab_export = st.tabs(["Play", "Export"])

    # ---------------------------
    # TAB 1: Play settings
    # ---------------------------
    with tab_play:
        r1c1, r1c2 = st.columns(2)
        with r1c1:
            target_min = st.number_input("Target min", 2, 500, 10, format="%d")
        with r1c2:
            target_max = st.number_input("Target max", 2, 500, 50, format="%d")

        hidden = st.number_input("# equations per round", 1, 5, 3, format="%d")

        r2c1, r2c2 = st.columns(2)
        with r2c1:
            equals_form = st.checkbox("Allow 'a + b = n'", value=True)
        with r2c2:
            include_division = st.checkbox("Include ÷", value=False)

        seed = st.text_input("Seed (optional)", "")
        new_round = st.button("New round", type="primary", use_container_width=True)

    # ---------------------------
    # TAB 2: Printable export
    # ---------------------------
    with tab_export:
        n_puzzles = st.number_input("# puzzles", 1, 100, 6, format="%d")
        mark_style = st.selectbox("Solution marks", ["highlight", "circle"])
        st.caption("Output formats")
        make_png  = st.checkbox("Also make PNG", value=True)
        make_pdf  = st.checkbox("Also make PDF", value=False)
        make_pptx = st.checkbox("Also make PPTX (simple insert)", value=False)

        st.caption("Preview")
        size_label = st.select_slider("Preview size", options=["Small", "Medium", "Large"], value="Medium")
        PREVIEW_W = {"Small": 420, "Medium": 560, "Large": 720}[size_label]

        export = st.button("Generate ZIP", use_container_width=True)


def _build_spec() -> eng.RoundSpec:
    return eng.RoundSpec(
        target_min=int(target_min),
        target_max=int(target_max),
        hidden_equations=int(hidden),
        equals_form=bool(equals_form),
        include_division=bool(include_division),
        seed=seed or None,
    )


_current = st.session_state.get("session")
if new_round or _current is None:
    try:
        spec_now = _build_spec()
        # keep one RNG across rounds unless the settings changed
        if _current is None or _current.spec != spec_now:
            _current = gs.GameSession(spec_now, announce=_announce)
        _current.start_round()
    except Exception as e:
        st.error("Round generation failed")
        st.exception(e)
        st.stop()
    st.session_state["session"] = _current

session: gs.GameSession = st.session_state["session"]
state = session.state


# --- cell click handlers (run before the next render) ---
def _on_cell(coord) -> None:
    session.clear_hint()
    if session.selection is None:
        session.begin_selection(coord)
    elif not session.extend_selection(coord):
        # not in line with the current path: start over from this cell
        session.begin_selection(coord)


def _on_check() -> None:
    session.finish_selection()


def _on_clear() -> None:
    session.clear_selection()


def _on_hint() -> None:
    session.clear_hint()
    session.request_hint()


look = svg.Appearance(solution_mark_style=mark_style)

col_board, col_pick = st.columns([3, 2])

with col_board:
    board = svg.render_board_svg(state, session.cell_states, look)
    board_p, hb = _scale_svg_for_preview(board, PREVIEW_W)
    st.components.v1.html(board_p, height=hb + 6, scrolling=False)
    st.caption(f"Equations left: {state.found_remaining} of {len(state.solutions)}")

with col_pick:
    st.caption("Click cells in a straight line, then Check.")
    n = state.size
    for r in range(n):
        cols = st.columns(n)
        for c in range(n):
            idx = eng.cell_index((r, c), n)
            cs = session.cell_states.get((r, c), "none")
            cols[c].button(
                state.letters[r][c],
                key=f"cell_{state.round_id}_{idx}",
                on_click=_on_cell,
                args=((r, c),),
                type="primary" if cs in ("selected", "found") else "secondary",
                use_container_width=True,
            )

    b1, b2, b3 = st.columns(3)
    b1.button("Check", on_click=_on_check, use_container_width=True)
    b2.button("Clear", on_click=_on_clear, use_container_width=True)
    b3.button("Hint", on_click=_on_hint, use_container_width=True)

with st.expander("Log"):
    st.code("\n".join(st.session_state.get("log", [])[-50:]) or "(empty)")


if export:
    try:
        from cairosvg import svg2png, svg2pdf
    except Exception as e:
        st.error("cairosvg not installed or failed to import")
        st.exception(e)
        st.stop()

    try:
        from pptx import Presentation
        from pptx.util import Inches
    except Exception as e:
        if make_pptx:
            st.error("python-pptx failed to import")
            st.exception(e)
            st.stop()
        else:
            Presentation = None  # not used

    svgs = []
    imgs_for_pptx = []
    first_puz_svg = None
    first_sol_svg = None

    try:
        spec = _build_spec()
        rng = random.Random(seed or None)
        for rs in eng.generate_batch(spec, int(n_puzzles), rng):
            puz_svg = svg.render_puzzle_svg(rs, look)
            sol_svg = svg.render_solution_svg(rs, look)
            svgs.append((f"puzzle_{rs.round_id:03d}.svg", puz_svg))
            svgs.append((f"solution_{rs.round_id:03d}.svg", sol_svg))
            if first_puz_svg is None:
                first_puz_svg = puz_svg
                first_sol_svg = sol_svg
    except Exception as e:
        st.error("Puzzle generation/rendering failed")
        st.exception(e)
        st.stop()

    # --- Previews (tabs) ---
    tab_puz, tab_sol = st.tabs(["Preview — Puzzle", "Preview — Solution"])
    with tab_puz:
        if first_puz_svg:
            svgp, hp = _scale_svg_for_preview(first_puz_svg, PREVIEW_W)
            st.components.v1.html(svgp, height=hp + 6, scrolling=False)
        else:
            st.info("No preview available.")
    with tab_sol:
        if first_sol_svg:
            svgs_p, hs = _scale_svg_for_preview(first_sol_svg, PREVIEW_W)
            st.components.v1.html(svgs_p, height=hs + 6, scrolling=False)
        else:
            st.info("No preview available.")

    # --- ZIP outputs ---
    try:
        mem = io.BytesIO()
        with zipfile.ZipFile(mem, "w", zipfile.ZIP_DEFLATED) as zf:
            for name, s in svgs:
                zf.writestr(name, s)

            for name, s in svgs:
                try:
                    if make_png:
                        zf.writestr(name.replace(".svg", ".png"),
                                    svg2png(bytestring=s.encode("utf-8")))
                except Exception as e:
                    zf.writestr(name.replace(".svg", ".PNG_ERROR.txt"),
                                (f"PNG conversion failed for {name}:\n{e}").encode("utf-8"))

                try:
                    if make_pdf:
                        zf.writestr(name.replace(".svg", ".pdf"),
                                    svg2pdf(bytestring=s.encode("utf-8")))
                except Exception as e:
                    zf.writestr(name.replace(".svg", ".PDF_ERROR.txt"),
                                (f"PDF conversion failed for {name}:\n{e}").encode("utf-8"))

                try:
                    if make_pptx and name.startswith("puzzle_"):
                        imgs_for_pptx.append(svg2png(bytestring=s.encode("utf-8")))
                except Exception as e:
                    zf.writestr(name.replace(".svg", ".PPTX_IMAGE_ERROR.txt"),
                                (f"PPTX image prep failed for {name}:\n{e}").encode("utf-8"))

            if make_pptx and imgs_for_pptx:
                prs = Presentation()
                blank = prs.slide_layouts[6]
                for png in imgs_for_pptx:
                    slide = prs.slides.add_slide(blank)
                    slide.shapes.add_picture(io.BytesIO(png), Inches(0.5), Inches(0.5), height=Inches(6.5))
                out = io.BytesIO()
                prs.save(out)
                zf.writestr("puzzles.pptx", out.getvalue())

        mem.seek(0)
        st.download_button("Download ZIP", data=mem.read(), file_name="equation_search.zip", mime="application/zip")
    except Exception as e:
        st.error("Failed to package outputs")
        st.exception(e)
        st.stop()
