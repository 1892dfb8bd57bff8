"""
Main Application File for the Wafer Chip Map Streamlit Dashboard.
Generates a rectangular chip grid on a circular wafer with an optional
orientation flat and edge exclusion, lets the user paint chips with a
color/label/file name brush, and exports the map as JSON, PNG, SVG or Excel.
"""
import streamlit as st

from wafermap.config import (
    MAX_FLAT_ANGLE, MIN_LABEL_FONT_SIZE, MAX_LABEL_FONT_SIZE, PlotTheme
)
from wafermap.state import SessionStore
from wafermap.utils import load_css
from wafermap.views.manager import ViewManager, IMPORT_UPLOADER_KEY

# ==============================================================================
# --- STREAMLIT APP MAIN LOGIC ---
# ==============================================================================

def main() -> None:
    """
    Main function to configure and run the Streamlit application.
    """
    # --- App Configuration ---
    st.set_page_config(layout="wide", page_title="Wafer Chip Mapper")

    # --- Apply Custom CSS for a Professional UI ---
    load_css("assets/styles.css")

    # --- Initialize Session State ---
    store = SessionStore()
    manager = ViewManager(store, theme_config=PlotTheme())
    manager.sync_widgets_from_params()

    # --- Sidebar Control Panel ---
    with st.sidebar:
        st.title("🎛️ Control Panel")
        with st.form(key="wafer_form"):
            with st.expander("⭕ Wafer", expanded=True):
                st.text_input("Wafer Name (Optional)", key="wafer_name", help="Shown above the wafer and used in export file names.")
                st.number_input("Diameter (mm)", min_value=0.01, step=1.0, format="%.2f", key="wafer_diameter")
                st.number_input("Flat Angle (°)", min_value=0.0, max_value=MAX_FLAT_ANGLE, step=1.0, key="flat_angle", help="Angle subtended by the orientation flat. 0 disables the flat.")
                st.number_input("Excluded Edge (mm)", min_value=0.0, step=0.5, key="excluded_radius", help="Band along the wafer edge where no chip may be placed.")
            with st.expander("🔲 Chip", expanded=True):
                st.number_input("Chip Width (mm)", min_value=0.01, step=0.5, format="%.3f", key="chip_width")
                st.number_input("Chip Height (mm)", min_value=0.01, step=0.5, format="%.3f", key="chip_height")
                st.slider("Label Font Size", min_value=MIN_LABEL_FONT_SIZE, max_value=MAX_LABEL_FONT_SIZE, step=0.01, key="label_font_size", help="Label height as a fraction of the smaller chip side.")
            st.form_submit_button("🚀 Generate Map", on_click=manager.run_generation, use_container_width=True)

        st.divider()

        with st.expander("🖌️ Brush", expanded=True):
            st.color_picker("Color", key="brush_color", on_change=manager.update_brush)
            st.text_input("Label", key="brush_label", on_change=manager.update_brush)
            st.text_input("File Name", key="brush_file_name", on_change=manager.update_brush)

        st.divider()

        with st.expander("📂 Load Saved Map", expanded=False):
            with st.form(key="import_form", clear_on_submit=False):
                st.file_uploader("Wafer map JSON", type=["json"], key=IMPORT_UPLOADER_KEY)
                st.form_submit_button("Load Map", on_click=manager.import_document, use_container_width=True)

        with st.expander("📥 Export", expanded=True):
            manager.render_export_controls()

        st.divider()
        if st.button("🔄 Reset Session", use_container_width=True, on_click=store.clear_all):
            st.rerun()

    st.title("🟢 Wafer Chip Mapper")
    st.caption(manager.get_status_line())
    manager.render_navigation()
    st.divider()
    manager.render_main_view()


if __name__ == "__main__":
    main()
