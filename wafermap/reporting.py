"""
Export and Reporting Module.

This module produces every downloadable artifact of the application: the JSON
wafer map document (the format read back by the data handler), static PNG/SVG
images of the wafer map, a formatted multi-sheet Excel chip report written with
xlsxwriter, and a ZIP package bundling any of them.
"""
import pandas as pd
import io
import json
import logging
import zipfile
import plotly.graph_objects as go
from datetime import datetime
from typing import Dict, Any, Optional, List, Iterable

from wafermap.config import (
    ExcelReportStyle, PlotTheme, EXPORT_IMAGE_SIZE_PX, EXPORT_IMAGE_SCALE, DEFAULT_CHIP_COLOR
)
from wafermap.enums import ExportFormat
from wafermap.models import Chip, ChipCollection
from wafermap.plotting import create_wafer_map_figure
from wafermap.utils import generate_standard_filename

logger = logging.getLogger(__name__)

# ==============================================================================
# --- JSON Document ---
# ==============================================================================

def build_wafer_document(
    wafer_params: Dict[str, Any],
    chip_params: Dict[str, Any],
    chips: Iterable[Chip]
) -> Dict[str, Any]:
    """
    Builds the saved-document structure. Chip records omit None-valued fields
    (outside chips carry no `number`).
    """
    return {
        'waferParams': {
            'diameter': wafer_params.get('diameter'),
            'flatAngle': wafer_params.get('flatAngle'),
            'excludedRadius': wafer_params.get('excludedRadius'),
            'name': wafer_params.get('name', ''),
            'exportTimestamp': wafer_params.get('exportTimestamp'),
        },
        'chipParams': {
            'width': chip_params.get('width'),
            'height': chip_params.get('height'),
            'labelFontSize': chip_params.get('labelFontSize'),
        },
        'chips': [chip.to_record() for chip in chips],
    }

def generate_json_export(wafer_params: Dict[str, Any], chip_params: Dict[str, Any], chips: Iterable[Chip]) -> bytes:
    document = build_wafer_document(wafer_params, chip_params, chips)
    return json.dumps(document, indent=2).encode('utf-8')

# ==============================================================================
# --- Static Images ---
# ==============================================================================

def generate_image_export(fig: go.Figure, export_format: ExportFormat) -> bytes:
    """Renders a wafer map figure to PNG or SVG bytes on a white background."""
    if not export_format.is_image:
        raise ValueError(f"{export_format.value} is not an image format.")
    export_fig = go.Figure(fig)
    export_fig.update_layout(paper_bgcolor='white', plot_bgcolor='white')
    return export_fig.to_image(
        format=export_format.value,
        width=EXPORT_IMAGE_SIZE_PX,
        height=EXPORT_IMAGE_SIZE_PX,
        scale=EXPORT_IMAGE_SCALE if export_format == ExportFormat.PNG else 1
    )

# ==============================================================================
# --- Helper Classes ---
# ==============================================================================

class ReportWriter:
    """Encapsulates Excel writing logic and formatting state."""

    def __init__(self, buffer: io.BytesIO):
        self.writer = pd.ExcelWriter(buffer, engine='xlsxwriter')
        self.workbook = self.writer.book
        self.formats = ExcelReportStyle.get_formats(self.workbook)

    def write_header(self, worksheet, wafer_name: str):
        worksheet.set_row(0, 30)
        worksheet.merge_range('A1:D1', 'Wafer Chip Map Report', self.formats['title'])
        worksheet.write('A2', 'Wafer:', self.formats['subtitle'])
        worksheet.write('B2', wafer_name or '(unnamed)')
        worksheet.write('A3', 'Report Date:', self.formats['subtitle'])
        worksheet.write('B3', datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    def close(self):
        self.writer.close()

# ==============================================================================
# --- Report Generation Logic ---
# ==============================================================================

SUMMARY_SHEET = 'Wafer Summary'
CHIP_LIST_SHEET = 'Chip List'
LABELED_SHEET = 'Labeled Chips'

# Summary sheet layout (0-based rows).
PARAM_START_ROW = 5

CHIP_LIST_COLUMNS = {
    'number': 'Number', 'id': 'ID', 'x': 'X (mm)', 'y': 'Y (mm)',
    'width': 'Width (mm)', 'height': 'Height (mm)',
    'color': 'Color', 'label': 'Label', 'file_name': 'File Name'
}

def _calculate_kpis(all_df: pd.DataFrame) -> pd.DataFrame:
    """Calculates KPI data for the summary sheet."""
    inside_df = all_df[all_df['inside']] if not all_df.empty else all_df
    kpi_data = [
        {"Metric": "Total Grid Cells", "Value": len(all_df)},
        {"Metric": "Inside Chips", "Value": len(inside_df)},
        {"Metric": "Outside Chips", "Value": len(all_df) - len(inside_df)},
        {"Metric": "Labeled Chips", "Value": int((inside_df['label'] != '').sum()) if not inside_df.empty else 0},
        {"Metric": "Colored Chips", "Value": int((inside_df['color'] != DEFAULT_CHIP_COLOR).sum()) if not inside_df.empty else 0},
        {"Metric": "Chips With File", "Value": int((inside_df['file_name'] != '').sum()) if not inside_df.empty else 0},
    ]
    return pd.DataFrame(kpi_data)

def _create_summary_sheet(report: ReportWriter, all_df: pd.DataFrame, wafer_params: Dict[str, Any], chip_params: Dict[str, Any]):
    """Creates the 'Wafer Summary' sheet."""
    diameter = wafer_params.get('diameter', 0)
    excluded = wafer_params.get('excludedRadius', 0)
    param_df = pd.DataFrame({
        "Parameter": ["Diameter (mm)", "Flat Angle (deg)", "Excluded Radius (mm)", "Usable Radius (mm)",
                      "Chip Width (mm)", "Chip Height (mm)", "Label Font Size"],
        "Value": [diameter, wafer_params.get('flatAngle', 0), excluded, diameter / 2 - excluded,
                  chip_params.get('width'), chip_params.get('height'), chip_params.get('labelFontSize')]
    })
    param_df.to_excel(report.writer, sheet_name=SUMMARY_SHEET, startrow=PARAM_START_ROW, header=True, index=False)
    worksheet = report.writer.sheets[SUMMARY_SHEET]
    report.write_header(worksheet, wafer_params.get('name', ''))
    worksheet.merge_range(PARAM_START_ROW - 1, 0, PARAM_START_ROW - 1, 1, 'Wafer Parameters', report.formats['subtitle'])

    # KPIs
    kpi_start_row = PARAM_START_ROW + len(param_df) + 3
    kpi_df = _calculate_kpis(all_df)
    worksheet.merge_range(kpi_start_row - 1, 0, kpi_start_row - 1, 1, 'KPI Summary', report.formats['subtitle'])
    kpi_df.to_excel(report.writer, sheet_name=SUMMARY_SHEET, startrow=kpi_start_row, header=True, index=False)
    for col_num, value in enumerate(kpi_df.columns.values):
        worksheet.write(kpi_start_row, col_num, value, report.formats['header'])

    # Color distribution + chart
    inside_df = all_df[all_df['inside']] if not all_df.empty else all_df
    if not inside_df.empty:
        color_start_row = kpi_start_row + len(kpi_df) + 3
        color_df = inside_df['color'].value_counts().reset_index()
        color_df.columns = ['Color', 'Count']
        worksheet.merge_range(color_start_row - 1, 0, color_start_row - 1, 1, 'Color Distribution', report.formats['subtitle'])
        color_df.to_excel(report.writer, sheet_name=SUMMARY_SHEET, startrow=color_start_row, header=True, index=False)

        chart = report.workbook.add_chart({'type': 'column'})
        chart.add_series({
            'name': 'Chips by Color',
            'categories': [SUMMARY_SHEET, color_start_row + 1, 0, color_start_row + len(color_df), 0],
            'values': [SUMMARY_SHEET, color_start_row + 1, 1, color_start_row + len(color_df), 1],
            'points': [{'fill': {'color': color}, 'border': {'color': '#000000'}} for color in color_df['Color']],
            'data_labels': {'value': True}
        })
        chart.set_title({'name': 'Inside Chips by Color'})
        chart.set_legend({'position': 'none'})
        chart.set_y_axis({'name': 'Count'})
        chart.set_style(10)
        worksheet.insert_chart('E2', chart, {'x_scale': 1.5, 'y_scale': 1.5})

    worksheet.autofit()

def _write_chip_table(report: ReportWriter, chip_df: pd.DataFrame, sheet_name: str):
    final_df = chip_df[list(CHIP_LIST_COLUMNS)].rename(columns=CHIP_LIST_COLUMNS)
    final_df.to_excel(report.writer, sheet_name=sheet_name, startrow=1, header=False, index=False)
    worksheet = report.writer.sheets[sheet_name]

    for col_num, value in enumerate(final_df.columns.values):
        worksheet.write(0, col_num, value, report.formats['header'])

    if not final_df.empty:
        # Highlight rows carrying a label (column H).
        last_col = chr(ord('A') + len(final_df.columns) - 1)
        worksheet.conditional_format(f'A2:{last_col}{len(final_df) + 1}', {
            'type': 'formula', 'criteria': '=LEN($H2)>0', 'format': report.formats['labeled']
        })
    worksheet.set_column('C:F', 12, report.formats['number'])
    worksheet.autofit()

def _create_chip_list_sheet(report: ReportWriter, inside_df: pd.DataFrame):
    _write_chip_table(report, inside_df, CHIP_LIST_SHEET)

def _create_labeled_chips_sheet(report: ReportWriter, inside_df: pd.DataFrame):
    if inside_df.empty: return
    labeled_df = inside_df[(inside_df['label'] != '') | (inside_df['file_name'] != '')]
    if labeled_df.empty: return
    _write_chip_table(report, labeled_df, LABELED_SHEET)

# ==============================================================================
# --- Public API Function ---
# ==============================================================================

def generate_excel_report(collection: ChipCollection, wafer_params: Dict[str, Any], chip_params: Dict[str, Any]) -> bytes:
    output_buffer = io.BytesIO()
    report = ReportWriter(output_buffer)
    all_df = collection.to_dataframe()
    inside_df = collection.to_dataframe(inside_only=True)
    _create_summary_sheet(report, all_df, wafer_params, chip_params)
    _create_chip_list_sheet(report, inside_df)
    _create_labeled_chips_sheet(report, inside_df)
    report.close()
    return output_buffer.getvalue()

def generate_zip_package(
    collection: ChipCollection,
    wafer_params: Dict[str, Any],
    chip_params: Dict[str, Any],
    include_json: bool = True,
    include_excel: bool = True,
    include_png: bool = False,
    include_svg: bool = False,
    theme_config: Optional[PlotTheme] = None
) -> bytes:
    zip_buffer = io.BytesIO()
    log_capture_string = io.StringIO()
    ch = logging.StreamHandler(log_capture_string)
    ch.setLevel(logging.INFO)
    report_logger = logging.getLogger('report_generator')
    report_logger.addHandler(ch)
    report_logger.setLevel(logging.INFO)

    def log(msg): report_logger.info(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}")
    log("Starting generate_zip_package")

    name = wafer_params.get('name', '')
    timestamp = wafer_params.get('exportTimestamp')

    try:
        with zipfile.ZipFile(zip_buffer, 'w', zipfile.ZIP_DEFLATED) as zip_file:
            if include_json:
                zip_file.writestr(generate_standard_filename("Wafer_Map", name, timestamp, ExportFormat.JSON.value),
                                  generate_json_export(wafer_params, chip_params, collection))
                log(f"Wrote JSON document ({len(collection)} chips)")

            if include_excel:
                zip_file.writestr(generate_standard_filename("Chip_Report", name, timestamp, ExportFormat.EXCEL.value),
                                  generate_excel_report(collection, wafer_params, chip_params))
                log("Wrote Excel chip report")

            image_formats = [fmt for fmt, wanted in ((ExportFormat.PNG, include_png), (ExportFormat.SVG, include_svg)) if wanted]
            if image_formats:
                fig = create_wafer_map_figure(collection, wafer_params, chip_params, theme_config=theme_config)
                for fmt in image_formats:
                    image_path = "Images/" + generate_standard_filename("Wafer_Map", name, timestamp, fmt.value)
                    try:
                        zip_file.writestr(image_path, generate_image_export(fig, fmt))
                        log(f"Wrote {image_path}")
                    except Exception as e:
                        report_logger.error(f"Failed to generate {image_path}: {e}")

            zip_file.writestr("Debug_Log.txt", log_capture_string.getvalue())
    finally:
        report_logger.removeHandler(ch)

    return zip_buffer.getvalue()
