import logging
import streamlit as st
from typing import Optional
from wafermap.state import SessionStore
from wafermap.enums import ViewMode, ExportFormat
from wafermap.errors import WaferMapError, MalformedImportError
from wafermap.config import PlotTheme, MIN_LABEL_FONT_SIZE, MAX_LABEL_FONT_SIZE
from wafermap.views import get_view_renderer
from wafermap.plotting import create_wafer_map_figure
from wafermap.reporting import (
    generate_json_export, generate_image_export, generate_excel_report, generate_zip_package
)
from wafermap.utils import generate_standard_filename

logger = logging.getLogger(__name__)

# Widget key -> params key
WAFER_WIDGETS = {
    "wafer_diameter": "diameter",
    "flat_angle": "flatAngle",
    "excluded_radius": "excludedRadius",
    "wafer_name": "name",
}
CHIP_WIDGETS = {
    "chip_width": "width",
    "chip_height": "height",
    "label_font_size": "labelFontSize",
}
BRUSH_WIDGETS = {
    "brush_color": "color",
    "brush_label": "label",
    "brush_file_name": "fileName",
}
TEXT_WIDGETS = ("wafer_name", "brush_label", "brush_file_name")

EXPORT_FILE_NAME_KEY = "export_file_name"
EXPORT_MIME_KEY = "export_mime"
IMPORT_UPLOADER_KEY = "import_file"
ZIP_OPTION = "zip"

class ViewManager:
    """
    Manages view routing, navigation components, and core wafer map actions.
    Decouples UI layout from application logic.
    """
    def __init__(self, store: SessionStore, theme_config: Optional[PlotTheme] = None):
        self.store = store
        self.theme_config = theme_config

    def sync_widgets_from_params(self, overwrite: bool = False):
        """
        Seeds the sidebar widget keys from the stored parameters. With
        overwrite, existing widget values are replaced (after an import).
        """
        sections = (
            (WAFER_WIDGETS, self.store.wafer_params),
            (CHIP_WIDGETS, self.store.chip_params),
            (BRUSH_WIDGETS, self.store.label_params),
        )
        for mapping, params in sections:
            for widget_key, param_key in mapping.items():
                if overwrite or widget_key not in st.session_state:
                    value = params.get(param_key)
                    if widget_key in TEXT_WIDGETS:
                        value = value or ""
                    elif widget_key == "label_font_size":
                        value = min(max(float(value), MIN_LABEL_FONT_SIZE), MAX_LABEL_FONT_SIZE)
                    elif widget_key != "brush_color":
                        value = float(value)
                    st.session_state[widget_key] = value

    def run_generation(self):
        """
        Regenerates the chip grid from the sidebar form, carrying user data
        over to chips at the same positions.
        """
        wafer_params = {p: st.session_state[w] for w, p in WAFER_WIDGETS.items() if w in st.session_state}
        chip_params = {p: st.session_state[w] for w, p in CHIP_WIDGETS.items() if w in st.session_state}
        try:
            self.store.regenerate(wafer_params, chip_params, keep_user_data=True)
        except WaferMapError as e:
            logger.warning("Rejected wafer parameters: %s", e)
            st.error(f"Invalid parameters: {e}")

    def import_document(self):
        """Loads the uploaded JSON document, replacing the current map."""
        uploaded = st.session_state.get(IMPORT_UPLOADER_KEY)
        if uploaded is None:
            st.warning("Choose a wafer map JSON file first.")
            return
        try:
            self.store.import_wafer_map(uploaded.getvalue())
        except MalformedImportError as e:
            logger.warning("Rejected import of %s: %s", getattr(uploaded, "name", "upload"), e)
            st.error(f"Could not load wafer map: {e}")
            return
        self.sync_widgets_from_params(overwrite=True)

    def update_brush(self):
        try:
            self.store.update_label_params(
                color=st.session_state.get("brush_color"),
                label=st.session_state.get("brush_label"),
                file_name=st.session_state.get("brush_file_name"),
            )
        except ValueError as e:
            st.error(str(e))

    def generate_export(self, export_option: str):
        """
        Builds the requested artifact and keeps it in the store until the
        user downloads it. Every export stamps the wafer parameters first.
        """
        timestamp = self.store.stamp_export()
        wafer_params = self.store.wafer_params
        chip_params = self.store.chip_params
        chips = self.store.chips
        name = wafer_params.get("name", "")

        try:
            if export_option == ZIP_OPTION:
                data = generate_zip_package(
                    chips, wafer_params, chip_params,
                    include_png=True, include_svg=True, theme_config=self.theme_config
                )
                file_name = generate_standard_filename("Wafer_Map_Package", name, timestamp, "zip")
                mime = "application/zip"
            else:
                fmt = ExportFormat(export_option)
                if fmt == ExportFormat.JSON:
                    data = generate_json_export(wafer_params, chip_params, chips)
                    prefix = "Wafer_Map"
                elif fmt == ExportFormat.EXCEL:
                    data = generate_excel_report(chips, wafer_params, chip_params)
                    prefix = "Chip_Report"
                else:
                    fig = create_wafer_map_figure(chips, wafer_params, chip_params, theme_config=self.theme_config)
                    data = generate_image_export(fig, fmt)
                    prefix = "Wafer_Map"
                file_name = generate_standard_filename(prefix, name, timestamp, fmt.value)
                mime = fmt.mime
        except (ValueError, RuntimeError, OSError) as e:
            logger.error("Export %s failed: %s", export_option, e)
            st.error(f"Export failed: {e}")
            self.store.report_bytes = None
            return

        self.store.report_bytes = data
        st.session_state[EXPORT_FILE_NAME_KEY] = file_name
        st.session_state[EXPORT_MIME_KEY] = mime

    def render_export_controls(self):
        labels = {
            ExportFormat.JSON.value: "JSON document",
            ExportFormat.PNG.value: "PNG image",
            ExportFormat.SVG.value: "SVG image",
            ExportFormat.EXCEL.value: "Excel report",
            ZIP_OPTION: "Full package (ZIP)",
        }
        export_option = st.selectbox("Format", options=list(labels), format_func=labels.get, key="export_option")
        st.button("Generate Export", use_container_width=True, on_click=self.generate_export, args=(export_option,))

        report_bytes = self.store.report_bytes
        st.download_button(
            label="Download",
            data=report_bytes if report_bytes is not None else b"",
            file_name=st.session_state.get(EXPORT_FILE_NAME_KEY, "wafer_map"),
            mime=st.session_state.get(EXPORT_MIME_KEY, "application/octet-stream"),
            disabled=report_bytes is None,
            use_container_width=True,
            help="Click 'Generate Export' first to enable download."
        )

    def render_navigation(self):
        nav_cols = st.columns(len(ViewMode), gap="small")

        def set_mode(mode: str):
            self.store.view_mode = mode

        for col, mode in zip(nav_cols, ViewMode.values()):
            is_active = self.store.view_mode == mode
            col.button(mode, type="primary" if is_active else "secondary", use_container_width=True, on_click=set_mode, args=(mode,))

    def render_main_view(self):
        get_view_renderer(self.store.view_mode)(self.store, self.theme_config)

    def get_status_line(self) -> str:
        wafer = self.store.wafer_params
        chip = self.store.chip_params
        inside = len(self.store.chips.inside_chips())
        return (
            f"Ø {wafer.get('diameter')} mm, flat {wafer.get('flatAngle')}°, "
            f"exclusion {wafer.get('excludedRadius')} mm | chip {chip.get('width')} × {chip.get('height')} mm | "
            f"{inside} chips"
        )
