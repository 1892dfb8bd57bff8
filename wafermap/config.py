"""
Configuration and Styling Module.

This module contains all configuration and styling variables for the application,
including the default wafer/chip parameters, the color theme and the Excel
report formats.
"""
from dataclasses import dataclass
from typing import Dict, Any

# --- Default Wafer Parameters (in mm / degrees) ---
# A 4" wafer with a 30 degree orientation flat.
DEFAULT_WAFER_DIAMETER = 101.6
DEFAULT_FLAT_ANGLE = 30.0
DEFAULT_EXCLUDED_RADIUS = 0.0
MAX_FLAT_ANGLE = 180.0

# --- Default Chip Parameters (in mm) ---
DEFAULT_CHIP_WIDTH = 10.0
DEFAULT_CHIP_HEIGHT = 12.0
# Label font size as a fraction of min(chip width, chip height).
DEFAULT_LABEL_FONT_SIZE = 0.18
MIN_LABEL_FONT_SIZE = 0.05
MAX_LABEL_FONT_SIZE = 0.5
# Chip numbers use a fixed fraction of the chip size.
NUMBER_FONT_SIZE = 0.2

# --- Chip Defaults ---
DEFAULT_CHIP_COLOR = '#ffffff'

# Saved chips match regenerated chips when both coordinates are this close (mm).
POSITION_TOLERANCE_MM = 0.1

# Upper bound on rows * cols; smaller chips are refused instead of generated.
MAX_GRID_CELLS = 1_000_000

# --- Figure Geometry ---
# Padding around the wafer as a fraction of its diameter.
FIGURE_PADDING_RATIO = 0.2
FIGURE_SIZE_PX = 800
EXPORT_IMAGE_SIZE_PX = 800
EXPORT_IMAGE_SCALE = 2
# Coordinate-system glyph: arm length (mm) and placement factor.
COORD_GLYPH_SIZE = 7.0
COORD_GLYPH_OFFSET = 5.5

# --- Style Theme: Wafer Map ---
WAFER_FILL_COLOR = '#f8f8f8'     # Light grey silicon.
WAFER_EDGE_COLOR = '#666666'     # Wafer outline.
USABLE_EDGE_COLOR = '#999999'    # Dashed usable-radius guide.
CHIP_BORDER_COLOR = '#cccccc'
CHIP_NUMBER_COLOR = '#555555'
CHIP_LABEL_COLOR = '#000000'
CHIP_FILE_NAME_COLOR = '#333333'
TIMESTAMP_COLOR = '#666666'
SELECTION_COLOR = '#1f77b4'
BACKGROUND_COLOR = '#ffffff'
PLOT_AREA_COLOR = '#ffffff'
TEXT_COLOR = '#000000'
FONT_FAMILY = 'Space Grotesk, sans-serif'

# --- Reporting Constants ---
REPORT_HEADER_COLOR = '#4F4F4F'
LABELED_CHIP_BG_COLOR = '#FFF2CC'


@dataclass
class PlotTheme:
    """Color set used by the plotting module. Missing values fall back to the module defaults."""
    background_color: str = BACKGROUND_COLOR
    plot_area_color: str = PLOT_AREA_COLOR
    wafer_fill_color: str = WAFER_FILL_COLOR
    wafer_edge_color: str = WAFER_EDGE_COLOR
    usable_edge_color: str = USABLE_EDGE_COLOR
    chip_border_color: str = CHIP_BORDER_COLOR
    text_color: str = TEXT_COLOR


class ExcelReportStyle:
    """Factory for the xlsxwriter cell formats shared by every report sheet."""

    @staticmethod
    def get_formats(workbook) -> Dict[str, Any]:
        return {
            'title': workbook.add_format({'bold': True, 'font_size': 18, 'font_color': REPORT_HEADER_COLOR, 'valign': 'vcenter'}),
            'subtitle': workbook.add_format({'bold': True, 'font_size': 12, 'font_color': REPORT_HEADER_COLOR}),
            'header': workbook.add_format({'bold': True, 'text_wrap': True, 'valign': 'top', 'fg_color': REPORT_HEADER_COLOR, 'font_color': '#FFFFFF', 'border': 1}),
            'number': workbook.add_format({'border': 1, 'num_format': '0.000'}),
            'labeled': workbook.add_format({'bg_color': LABELED_CHIP_BG_COLOR}),
        }
