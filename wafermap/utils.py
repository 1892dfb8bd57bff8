import re
from typing import Optional

import matplotlib.colors as mcolors
import streamlit as st

from wafermap.config import BACKGROUND_COLOR, TEXT_COLOR, SELECTION_COLOR, WAFER_FILL_COLOR


def load_css(file_path: str) -> None:
    """Loads a CSS file and injects it into the Streamlit app."""
    with open(file_path) as f:
        css = f.read()

    # Define CSS variables from Python config
    css_variables = f"""
    <style>
        :root {{
            --background-color: {BACKGROUND_COLOR};
            --text-color: {TEXT_COLOR};
            --wafer-color: {WAFER_FILL_COLOR};
            --accent-color: {SELECTION_COLOR};
        }}
        {css}
    </style>
    """
    st.markdown(css_variables, unsafe_allow_html=True)


def normalize_color(color: str) -> str:
    """
    Converts any matplotlib color spec (named colors, #rgb, #rrggbb) to
    lowercase '#rrggbb'. Raises ValueError for anything else.
    """
    if not isinstance(color, str) or not mcolors.is_color_like(color):
        raise ValueError(f"Invalid color: {color!r}")
    return mcolors.to_hex(color)


def sanitize_filename_part(text: str) -> str:
    return re.sub(r'[^A-Za-z0-9\-]+', '_', text).strip('_')


def generate_standard_filename(
    prefix: str,
    wafer_name: Optional[str],
    export_timestamp: Optional[str],
    extension: str
) -> str:
    """
    Builds download file names as PREFIX[_WaferName][_YYYYMMDD_HHMMSS].ext.
    Characters outside [A-Za-z0-9-] are replaced with '_'.
    """
    parts = [prefix]
    if wafer_name:
        name = sanitize_filename_part(wafer_name)
        if name:
            parts.append(name)
    if export_timestamp:
        # '2024-05-01T12:30:05.123Z' -> '20240501_123005'
        match = re.match(r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})", export_timestamp)
        if match:
            parts.append("{}{}{}_{}{}{}".format(*match.groups()))
    return "_".join(parts) + f".{extension}"
