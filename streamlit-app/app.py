"""
Varve Section Stitcher - Main Entry Point
Orders overlapping core sections by their marker layers and stitches them
into one continuous varve thickness sequence.
"""

import streamlit as st
import pandas as pd
import sys
import os

# Add parent directory to path for package access when run from a checkout
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stratastitch.ambiguity import FirstOccurrenceStrategy, SeededRandomStrategy
from stratastitch.errors import ReconstructionError
from stratastitch.field_mapping import DEFAULT_ORIENTATION, ORIENTATIONS
from stratastitch.marker_graph import build_marker_graph
from stratastitch.pipeline import reconstruct_sequence
from stratastitch.section_loader import load_sections

# Page configuration - must be first Streamlit command
st.set_page_config(
    page_title="Varve Section Stitcher",
    page_icon="🪨",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Professional CSS styling
st.markdown("""
<style>
    @import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&display=swap');

    .stApp {
        font-family: 'Inter', sans-serif;
    }

    .main-header {
        background: linear-gradient(135deg, #1a1d24 0%, #2d3748 100%);
        padding: 2rem 2.5rem;
        border-radius: 12px;
        margin-bottom: 2rem;
        border: 1px solid #3d4852;
        box-shadow: 0 4px 6px rgba(0, 0, 0, 0.3);
    }

    .main-title {
        font-size: 2.5rem;
        font-weight: 700;
        color: #00D4AA;
        margin: 0;
    }

    .main-subtitle {
        font-size: 1rem;
        color: #8892a0;
        margin-top: 0.5rem;
    }

    /* Hide streamlit branding */
    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}
</style>
""", unsafe_allow_html=True)

# Main Header
st.markdown("""
<div class="main-header">
    <div class="main-title">🪨 Varve Section Stitcher</div>
    <div class="main-subtitle">Marker-layer ordering • Overlap trimming • Composite sequence export</div>
</div>
""", unsafe_allow_html=True)

INFER_OPTION = "Infer from marker positions (heuristic)"


# =============================================================================
# SIDEBAR CONFIGURATION
# =============================================================================

with st.sidebar:
    st.markdown("### ⚙️ Section Loading")

    varve_top = st.selectbox(
        "Top of sequence in drawing",
        options=list(ORIENTATIONS),
        index=list(ORIENTATIONS).index(DEFAULT_ORIENTATION),
        help="Which side of the digitized section is stratigraphically up."
    )

    rescale = st.checkbox("Rescale section thickness", value=False)
    scale_to_thickness = None
    if rescale:
        scale_to_thickness = st.number_input(
            "Total thickness per section",
            min_value=0.001,
            value=1.0,
            help="Thicknesses of each section are scaled to sum to this value."
        )

    with st.expander("🔧 Marker Tie-Break", expanded=False):
        strategy_name = st.selectbox(
            "When sections share several markers",
            options=[FirstOccurrenceStrategy.name, SeededRandomStrategy.name],
            help="Which shared marker layer to keep as the boundary."
        )
        seed = st.number_input("Random seed", min_value=0, value=0, step=1,
                               disabled=strategy_name != SeededRandomStrategy.name)

    st.markdown("---")

    st.markdown("""
    ### 📖 How It Works

    1. **Marker Graph**
       - Sections sharing a marker layer are neighbours
       - The top and bottom sections have one neighbour

    2. **Ordering**
       - Walks from the top section down the chain

    3. **Stitching**
       - Keeps each overlapping layer exactly once
    """)


# =============================================================================
# MAIN INTERFACE - STEP 1: UPLOAD
# =============================================================================

st.markdown("## Step 1: Upload Section Tables")
st.markdown("*One CSV/TXT file per digitized section with x1, x2, y1, y2 (or thickness) "
            "and marker columns.*")

uploaded_files = st.file_uploader(
    "Upload Section Tables",
    type=['csv', 'txt', 'tsv'],
    accept_multiple_files=True,
    label_visibility="collapsed"
)

if not uploaded_files:
    st.info("Upload the section tables to get started.")
    st.stop()

messages = []

def progress_callback(step, msg):
    messages.append((step, msg))

for f in uploaded_files:
    f.seek(0)

try:
    loaded = load_sections(uploaded_files, varve_top=varve_top,
                           scale_to_thickness=scale_to_thickness,
                           progress_callback=progress_callback)
except ValueError as e:
    st.error(f"❌ {e}")
    st.stop()

sections = loaded.sections
messages.clear()

# results belong to the uploaded files and loader options they were built from
upload_key = (tuple((f.name, f.size) for f in uploaded_files), varve_top, scale_to_thickness)
if st.session_state.get('upload_key') != upload_key:
    st.session_state.pop('reconstruction', None)
    st.session_state['upload_key'] = upload_key

for warning in loaded.warnings:
    st.warning(f"⚠️ {warning}")

graph = build_marker_graph(sections)
with st.expander(f"📁 {len(sections)} sections loaded", expanded=False):
    summary = graph.to_frame()
    summary['layers'] = [len(s) for s in sections]
    st.dataframe(summary, use_container_width=True, hide_index=True)


# =============================================================================
# STEP 2: ORDER & STITCH
# =============================================================================

st.markdown("## Step 2: Reconstruct Sequence")

top_choice = st.selectbox(
    "Top section",
    options=[INFER_OPTION] + [s.name for s in sections],
    help="Naming the top section avoids guessing the sequence polarity."
)

if st.button("🔗 Reconstruct", type="primary", use_container_width=True):
    strategy = (SeededRandomStrategy(int(seed)) if strategy_name == SeededRandomStrategy.name
                else FirstOccurrenceStrategy())
    top = None if top_choice == INFER_OPTION else top_choice

    try:
        with st.spinner("Ordering and stitching sections..."):
            result = reconstruct_sequence(sections, top=top, strategy=strategy,
                                          progress_callback=progress_callback)
        st.session_state['reconstruction'] = result
    except ReconstructionError as e:
        st.session_state.pop('reconstruction', None)
        st.error(f"❌ {type(e).__name__} [{e.code}]: {e}")
        st.stop()
    except ValueError as e:
        st.session_state.pop('reconstruction', None)
        st.error(f"❌ {e}")
        st.stop()

for step, msg in messages:
    if step == "warning":
        st.warning(f"⚠️ {msg}")

if 'reconstruction' in st.session_state:
    result = st.session_state['reconstruction']
    combined = result.combined

    st.success(f"✅ {combined.num_sections} sections combined into {len(combined)} layers")

    col1, col2, col3 = st.columns(3)
    col1.metric("Sections", combined.num_sections)
    col2.metric("Layers", len(combined))
    col3.metric("Total Thickness", f"{combined.total_thickness:.2f}")

    st.markdown("### 📋 Section Order")
    st.dataframe(pd.DataFrame(combined.section_summary), use_container_width=True, hide_index=True)

    with st.expander("📝 Stitch Log", expanded=False):
        for log_entry in result.log:
            st.write(f"📝 {log_entry}")

    st.markdown("### 🧾 Combined Sequence")
    st.dataframe(result.df, use_container_width=True, hide_index=True)

    st.download_button(
        label="📊 Download CSV",
        data=result.df.to_csv(index=False),
        file_name="combined_sequence.csv",
        mime="text/csv",
        use_container_width=True
    )
