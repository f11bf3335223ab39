"""elevplot — Streamlit app for shaded elevation relief around a point."""

import html
import logging

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

from elevplot.compute import run  # noqa: E402
from elevplot.config import load_settings  # noqa: E402
from elevplot.errors import ElevPlotError  # noqa: E402
from elevplot.models import QueryInput, RenderSession  # noqa: E402
from elevplot.renderers.relief import save_relief  # noqa: E402

TEXTURE = "imhof2"
SUNANGLE = 70.0
ZSCALE = 1.0

# Mt. Hood
DEFAULT_LAT = 45.373601
DEFAULT_LON = -121.695942
DEFAULT_RADIUS = 1.0

settings = load_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("elevplot.app")

st.set_page_config(
    page_title="3D Elevation Plotting Tool",
    page_icon="⛰",
    layout="wide",
)

st.markdown(
    """
    <style>
    /* Error overlay */
    .overlay-box {
        background: rgba(0, 0, 0, 0.65);
        border-radius: 12px;
        padding: 1.2rem 1.6rem;
        color: #e8e8e8;
        margin-bottom: 0.5rem;
    }
    /* Button */
    [data-testid="stButton"] button {
        background-color: rgba(25, 95, 103, 0.2) !important;
        color: #195f67 !important;
        border: 1px solid #195f67 !important;
        border-radius: 6px !important;
        font-weight: 600;
    }
    [data-testid="stButton"] button:hover {
        background-color: rgba(25, 95, 103, 0.35) !important;
    }
    </style>
    """,
    unsafe_allow_html=True,
)

# --- Session state initialization ---
if "session" not in st.session_state:
    st.session_state.session = None
if "error_msg" not in st.session_state:
    st.session_state.error_msg = None

st.title("3D Elevation Plotting Tool")

# --- Sidebar inputs ---
with st.sidebar:
    center_lat = st.number_input(
        "Center Latitude Point:",
        min_value=-90.0,
        max_value=90.0,
        value=DEFAULT_LAT,
        format="%.6f",
    )
    center_lon = st.number_input(
        "Center Longitude Point:",
        min_value=-180.0,
        max_value=180.0,
        value=DEFAULT_LON,
        format="%.6f",
    )
    radius = st.slider(
        "Radius (in miles)",
        min_value=0.1,
        max_value=10.0,
        value=DEFAULT_RADIUS,
    )
    submitted = st.button("Go!")
    st.caption(
        "Press this button once you have all the numbers above set to where you want them!"
    )
    st.caption("Data Source: Mapzen AWS Terrain Tiles")

# --- Form submission handler ---
# The previous session is only replaced once the whole run has succeeded.
# The output file is shared across browser sessions; each session holds its own PNG bytes.
if submitted:
    query = QueryInput(
        center_lat=float(center_lat),
        center_lon=float(center_lon),
        radius_miles=float(radius),
    )
    st.session_state.error_msg = None
    with st.spinner("One sec! Downloading data..."):
        try:
            terrain = run(query)
            image_path = save_relief(
                terrain.grid,
                settings.output_path,
                texture=TEXTURE,
                sunangle=SUNANGLE,
                zscale=ZSCALE,
            )
            image_png = image_path.read_bytes()
            st.session_state.session = RenderSession(
                terrain=terrain, image_path=image_path, image_png=image_png
            )
        except (ElevPlotError, OSError) as e:
            logger.warning("Run failed for %s: %s", query, e)
            st.session_state.error_msg = f"Could not plot this area: {e}"

# --- Error message ---
if st.session_state.error_msg:
    st.markdown(
        f"<div class='overlay-box' style='border:1px solid #ff6b6b; color:#ff9999;'>"
        f"{html.escape(st.session_state.error_msg)}</div>",
        unsafe_allow_html=True,
    )

# --- Plot area ---
session: RenderSession | None = st.session_state.session
if session is not None:
    q = session.terrain.query
    st.image(
        session.image_png,
        caption=(
            f"{q.center_lat:.6f}, {q.center_lon:.6f}, radius {q.radius_miles:g} mi, "
            f"{session.terrain.grid.shape[0]}x{session.terrain.grid.shape[1]} samples"
        ),
    )
else:
    st.markdown(
        "<div style='height:40vh; display:flex; align-items:center; justify-content:center;"
        " color:#5a6b7a; font-size:1.2rem;'>Pick a center point and radius, then press Go!</div>",
        unsafe_allow_html=True,
    )
