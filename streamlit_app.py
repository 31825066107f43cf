"""
Bitmap Art — interactive control surface

Run with:
    streamlit run streamlit_app.py
"""

from __future__ import annotations

import io

import streamlit as st
from PIL import Image

from bitmap_art.config import BitmapConfig
from bitmap_art.image_io import to_svg
from bitmap_art.kernels import DITHER_METHODS
from bitmap_art.palette import (
    DEFAULT_PALETTE,
    PALETTE_METHODS,
    PALETTE_PRESETS,
    add_color,
    extract_palette_from_image,
    remove_color,
    update_color,
)
from bitmap_art.session import RenderSession

# -- Page config -------------------------------------------------------
st.set_page_config(
    page_title="Bitmap Art",
    page_icon=None,
    layout="wide",
    initial_sidebar_state="expanded",
)

_DEFAULTS = BitmapConfig()

# -- CSS ---------------------------------------------------------------
st.markdown("""
<style>
    @import url('https://fonts.googleapis.com/css2?family=Space+Mono:wght@400;700&display=swap');

    .stApp {
        background-color: #F1F3EB;
        color: #111;
        font-family: 'Space Mono', monospace;
    }
    .bitmap-title {
        font-size: 2.4rem;
        font-weight: 400;
        letter-spacing: -0.02em;
        border-bottom: 1px solid #111;
        padding-bottom: 0.4rem;
        margin-bottom: 1.5rem;
    }
    .stButton > button, .stDownloadButton > button {
        border: 1px solid #111 !important;
        border-radius: 2rem !important;
        text-transform: uppercase;
        font-size: 0.65rem;
        font-weight: 700;
    }
    .processing-note {
        color: #a33;
        font-size: 0.8rem;
        padding: 0.5rem 0;
    }
    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}
</style>
""", unsafe_allow_html=True)


# -- State -------------------------------------------------------------

if "session" not in st.session_state:
    st.session_state.session = RenderSession()
if "palette" not in st.session_state:
    st.session_state.palette = DEFAULT_PALETTE
    st.session_state.saved_palette = DEFAULT_PALETTE
    st.session_state.extracted_key = None

session: RenderSession = st.session_state.session

st.markdown('<div class="bitmap-title">Bitmap Fono</div>', unsafe_allow_html=True)

# -- Controls ----------------------------------------------------------
with st.sidebar:
    uploaded = st.file_uploader(
        "Source file", type=["jpg", "jpeg", "png", "webp", "bmp", "gif"],
    )
    output_width = st.slider("Output width", 100, 2000, _DEFAULTS.output_width, step=50)
    block_size = st.slider("Bit size (blockiness)", 1, 64, _DEFAULTS.block_size)
    color_mode = st.toggle("Colour mode", value=_DEFAULTS.mode == "color")
    threshold = st.slider("Threshold", 0, 255, _DEFAULTS.threshold)
    blur = st.slider("Signal blur", 0, 100, _DEFAULTS.blur)
    color_depth = st.slider("Bit depth", 1, 8, _DEFAULTS.color_depth)
    dither_method = st.selectbox(
        "Algorithm",
        list(DITHER_METHODS),
        index=list(DITHER_METHODS).index(_DEFAULTS.dither_method),
        format_func=DITHER_METHODS.get,
    )

if uploaded is not None:
    source = Image.open(io.BytesIO(uploaded.getvalue())).convert("RGBA")
    session.load(source)
else:
    source = session.image

# -- Palette panel (colour mode only) ----------------------------------
palette_method = _DEFAULTS.palette_method
if color_mode:
    with st.sidebar:
        palette_method = st.selectbox(
            "Palette method",
            list(PALETTE_METHODS),
            index=list(PALETTE_METHODS).index(_DEFAULTS.palette_method),
            format_func=PALETTE_METHODS.get,
        )

        # Re-extract whenever the image or the method changes
        extract_key = (uploaded.file_id if uploaded is not None else None, palette_method)
        if source is not None and st.session_state.extracted_key != extract_key:
            extracted = tuple(extract_palette_from_image(
                source, palette_method, _DEFAULTS.palette_size,
            ))
            st.session_state.saved_palette = extracted
            st.session_state.palette = extracted
            st.session_state.extracted_key = extract_key

        preset = st.selectbox(
            "Preset",
            ["(extracted)", *PALETTE_PRESETS],
            format_func=lambda k: PALETTE_PRESETS[k][0] if k in PALETTE_PRESETS else k,
        )
        if preset in PALETTE_PRESETS and st.button("Apply preset"):
            st.session_state.palette = PALETTE_PRESETS[preset][1]

        st.caption(f"Palette ({len(st.session_state.palette)})")
        cols = st.columns(4)
        for i, color in enumerate(st.session_state.palette):
            with cols[i % 4]:
                picked = st.color_picker(f"#{i + 1}", color, key=f"color_{i}_{color}")
                if picked.upper() != color:
                    st.session_state.palette = update_color(
                        st.session_state.palette, i, picked,
                    )
                    st.rerun()
                if len(st.session_state.palette) > 1 and st.button("✕", key=f"rm_{i}"):
                    st.session_state.palette = remove_color(st.session_state.palette, i)
                    st.rerun()

        add_col, restore_col = st.columns(2)
        if add_col.button("Add colour"):
            st.session_state.palette = add_color(st.session_state.palette)
            st.rerun()
        if (
            st.session_state.palette != st.session_state.saved_palette
            and restore_col.button("Restore extracted")
        ):
            st.session_state.palette = st.session_state.saved_palette
            st.rerun()

config = BitmapConfig(
    mode="color" if color_mode else "bw",
    output_width=output_width,
    block_size=block_size,
    threshold=threshold,
    blur=blur,
    color_depth=color_depth,
    dither_method=dither_method,
    palette_method=palette_method,
    palette=tuple(st.session_state.palette) if color_mode else None,
)

# -- Render ------------------------------------------------------------
if source is None:
    st.markdown("Upload an image to begin.")
else:
    result = session.render_now(config)
    if result is None and session.last_error is not None:
        st.markdown(
            f'<div class="processing-note">Processing failed: {session.last_error}. '
            "Showing the previous result.</div>",
            unsafe_allow_html=True,
        )
    shown = result or session.output

    if shown is not None:
        preview = shown.preview()
        st.image(preview, use_container_width=True)
        st.caption(
            f"{shown.width} × {shown.height} cells → "
            f"{preview.width} × {preview.height} px"
        )

        buf = io.BytesIO()
        preview.save(buf, format="PNG")
        png_col, svg_col = st.columns(2)
        png_col.download_button(
            "Download PNG", data=buf.getvalue(),
            file_name="bitmap.png", mime="image/png", use_container_width=True,
        )
        svg_col.download_button(
            "Download SVG", data=to_svg(shown.pixels),
            file_name="bitmap.svg", mime="image/svg+xml", use_container_width=True,
        )
