"""
Plotting and Visualization Module.
Draws a true-to-scale wafer map: wafer outline (with flat), usable-radius guide,
every inside chip with its number/label/file name, the wafer name and a small
coordinate-system glyph.

Display convention: the y axis is reversed so that increasing y goes down the
screen and reading-order numbering runs top-to-bottom.
"""
import math
from datetime import datetime
from typing import List, Dict, Any, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from wafermap.config import (
    PlotTheme, FIGURE_PADDING_RATIO, FIGURE_SIZE_PX, NUMBER_FONT_SIZE, DEFAULT_LABEL_FONT_SIZE,
    CHIP_NUMBER_COLOR, CHIP_LABEL_COLOR, CHIP_FILE_NAME_COLOR, TIMESTAMP_COLOR, SELECTION_COLOR,
    COORD_GLYPH_SIZE, COORD_GLYPH_OFFSET, FONT_FAMILY, DEFAULT_CHIP_COLOR
)
from wafermap.models import Chip

ARC_SEGMENTS = 180

# ==============================================================================
# --- Private Helper Functions ---
# ==============================================================================

def _view_geometry(diameter: float) -> Tuple[float, float]:
    """Returns (half width of the square view in mm, pixels per mm)."""
    view_size = diameter + 2 * diameter * FIGURE_PADDING_RATIO
    return view_size / 2, FIGURE_SIZE_PX / view_size

def _polygon_path(xs: Iterable[float], ys: Iterable[float]) -> str:
    points = [f"{x:.4f},{y:.4f}" for x, y in zip(xs, ys)]
    return "M " + " L ".join(points) + " Z"

def _draw_wafer_boundary(wafer_params: Dict[str, Any], theme: PlotTheme) -> List[Dict[str, Any]]:
    """
    Creates the wafer outline. With a flat the outline is the major arc plus
    the flat chord; Plotly paths have no arc command, so the arc is sampled.
    """
    radius = wafer_params['diameter'] / 2
    flat_angle = wafer_params.get('flatAngle', 0)
    line = dict(color=theme.wafer_edge_color, width=2)

    if flat_angle > 0:
        # The arc runs from (x_cutoff, -y_max) around the positive-x side to
        # (x_cutoff, y_max); closing the path draws the flat chord.
        half_angle = math.radians(flat_angle) / 2
        angles = np.linspace(-(math.pi - half_angle), math.pi - half_angle, ARC_SEGMENTS)
        path = _polygon_path(radius * np.cos(angles), radius * np.sin(angles))
        return [dict(type="path", path=path, fillcolor=theme.wafer_fill_color, line=line, layer='below')]

    return [dict(
        type="circle", x0=-radius, y0=-radius, x1=radius, y1=radius,
        fillcolor=theme.wafer_fill_color, line=line, layer='below'
    )]

def _draw_usable_radius(wafer_params: Dict[str, Any], theme: PlotTheme) -> List[Dict[str, Any]]:
    excluded = wafer_params.get('excludedRadius', 0)
    usable = wafer_params['diameter'] / 2 - excluded
    if excluded <= 0 or usable <= 0:
        return []
    return [dict(
        type="circle", x0=-usable, y0=-usable, x1=usable, y1=usable,
        line=dict(color=theme.usable_edge_color, width=1, dash='dash'), layer='below'
    )]

def _draw_chip_shapes(chips: List[Chip], theme: PlotTheme, selected_ids: set) -> List[Dict[str, Any]]:
    shapes = []
    for chip in chips:
        is_selected = chip.id in selected_ids
        shapes.append(dict(
            type="rect", x0=chip.x, y0=chip.y, x1=chip.x + chip.width, y1=chip.y + chip.height,
            fillcolor=chip.color or DEFAULT_CHIP_COLOR,
            line=dict(color=SELECTION_COLOR if is_selected else theme.chip_border_color, width=2 if is_selected else 1),
            layer='below'
        ))
    return shapes

def _draw_coordinate_system(theme: PlotTheme) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    A small fixed-size axis glyph near the bottom-left of the wafer:
    'Z' points left and '-Y' points down. Returns (shapes, annotations).
    """
    size = COORD_GLYPH_SIZE
    ox, oy = -size * COORD_GLYPH_OFFSET, size * COORD_GLYPH_OFFSET
    color = theme.text_color
    head = size * 0.2
    shapes = [
        dict(type="line", x0=ox, y0=oy, x1=ox - size, y1=oy, line=dict(color=color, width=1)),
        dict(type="line", x0=ox, y0=oy, x1=ox, y1=oy + size, line=dict(color=color, width=1)),
        dict(type="path", path=_polygon_path([ox - size, ox - size, ox - size - head], [oy - size * 0.1, oy + size * 0.1, oy]),
             fillcolor=color, line=dict(color=color, width=0)),
        dict(type="path", path=_polygon_path([ox - size * 0.1, ox + size * 0.1, ox], [oy + size, oy + size, oy + size + head]),
             fillcolor=color, line=dict(color=color, width=0)),
    ]
    annotations = [
        dict(x=ox - size - head - 1, y=oy, text="Z", showarrow=False, xanchor='right', yanchor='middle', font=dict(color=color, size=12)),
        dict(x=ox + 1, y=oy + size + head, text="-Y", showarrow=False, xanchor='left', yanchor='top', font=dict(color=color, size=12)),
    ]
    return shapes, annotations

def _format_timestamp(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp.replace('Z', '+00:00')).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return timestamp

def _draw_title_annotations(wafer_params: Dict[str, Any], px_per_mm: float) -> List[Dict[str, Any]]:
    """Wafer name 6 mm above the wafer and the export timestamp just below it."""
    name = wafer_params.get('name')
    if not name:
        return []

    diameter = wafer_params['diameter']
    radius = diameter / 2
    name_font_mm = diameter * 0.02 * 2
    annotations = [dict(
        x=0, y=-radius - 6, text=f"<b>{name}</b>", showarrow=False, xanchor='center', yanchor='bottom',
        font=dict(size=max(name_font_mm * px_per_mm, 8), family=FONT_FAMILY)
    )]

    timestamp = wafer_params.get('exportTimestamp')
    if timestamp:
        annotations.append(dict(
            x=0, y=-radius - 3, text=f"({_format_timestamp(timestamp)})", showarrow=False, xanchor='center', yanchor='bottom',
            font=dict(size=max(name_font_mm * 0.6 * px_per_mm, 6), family=FONT_FAMILY, color=TIMESTAMP_COLOR)
        ))
    return annotations

# ==============================================================================
# --- Public API Functions ---
# ==============================================================================

def create_wafer_shapes(
    chips: Iterable[Chip],
    wafer_params: Dict[str, Any],
    theme_config: Optional[PlotTheme] = None,
    selected_ids: Optional[Iterable[int]] = None
) -> List[Dict[str, Any]]:
    """
    Creates the shapes for the wafer outline, usable radius and inside chips.
    Chips are drawn in the order given.
    """
    theme = theme_config or PlotTheme()
    inside = [chip for chip in chips if chip.inside]
    shapes = []
    shapes.extend(_draw_wafer_boundary(wafer_params, theme))
    shapes.extend(_draw_usable_radius(wafer_params, theme))
    shapes.extend(_draw_chip_shapes(inside, theme, set(selected_ids or [])))
    return shapes

def create_chip_text_traces(chips: Iterable[Chip], chip_params: Dict[str, Any], px_per_mm: float) -> List[go.Scatter]:
    """
    Creates text traces for chip numbers (top-right corner), labels (center)
    and file names (under the label). Font sizes scale with the chip size.
    """
    inside = [chip for chip in chips if chip.inside]
    if not inside:
        return []

    chip_size = min(inside[0].width, inside[0].height)
    pad = min(1.0, chip_size * 0.1)
    number_font_mm = chip_size * NUMBER_FONT_SIZE
    label_font_mm = chip_size * chip_params.get('labelFontSize', DEFAULT_LABEL_FONT_SIZE)

    traces = [go.Scatter(
        x=[chip.x + chip.width - pad for chip in inside],
        y=[chip.y + pad for chip in inside],
        text=[str(chip.number) for chip in inside],
        mode='text', textposition='bottom left',
        textfont=dict(size=number_font_mm * px_per_mm, color=CHIP_NUMBER_COLOR),
        hoverinfo='skip', showlegend=False, name='Numbers'
    )]

    labeled = [chip for chip in inside if chip.label]
    if labeled:
        traces.append(go.Scatter(
            x=[chip.center[0] for chip in labeled],
            y=[chip.center[1] for chip in labeled],
            text=[chip.label for chip in labeled],
            mode='text', textposition='middle center',
            textfont=dict(size=label_font_mm * px_per_mm, color=CHIP_LABEL_COLOR),
            hoverinfo='skip', showlegend=False, name='Labels'
        ))

    with_files = [chip for chip in inside if chip.file_name]
    if with_files:
        traces.append(go.Scatter(
            x=[chip.center[0] for chip in with_files],
            y=[chip.center[1] + label_font_mm for chip in with_files],
            text=[chip.file_name for chip in with_files],
            mode='text', textposition='bottom center',
            textfont=dict(size=label_font_mm * 0.6 * px_per_mm, color=CHIP_FILE_NAME_COLOR),
            hoverinfo='skip', showlegend=False, name='File Names'
        ))
    return traces

def create_chip_selection_trace(chips: Iterable[Chip], px_per_mm: float) -> go.Scatter:
    """
    Creates an invisible marker at every inside chip center. Click, box and
    lasso selections on this trace carry the chip ids in customdata[0].
    """
    inside = [chip for chip in chips if chip.inside]
    marker_size = min(inside[0].width, inside[0].height) * px_per_mm * 0.9 if inside else 10
    return go.Scatter(
        x=[chip.center[0] for chip in inside],
        y=[chip.center[1] for chip in inside],
        mode='markers',
        marker=dict(symbol='square', size=marker_size, color='rgba(0,0,0,0)'),
        customdata=[[chip.id, chip.number, chip.label, chip.file_name, chip.color] for chip in inside],
        hovertemplate=(
            "<b>Chip #%{customdata[1]}</b><br>"
            "ID: %{customdata[0]}<br>"
            "Label: %{customdata[2]}<br>"
            "File: %{customdata[3]}<br>"
            "Color: %{customdata[4]}"
            "<extra></extra>"
        ),
        selected=dict(marker=dict(opacity=1)),
        unselected=dict(marker=dict(opacity=1)),
        showlegend=False, name='Chips'
    )

def create_wafer_map_figure(
    chips: Iterable[Chip],
    wafer_params: Dict[str, Any],
    chip_params: Dict[str, Any],
    theme_config: Optional[PlotTheme] = None,
    selected_ids: Optional[Iterable[int]] = None,
    show_coordinate_system: bool = True
) -> go.Figure:
    """
    Builds the complete wafer map figure.
    """
    theme = theme_config or PlotTheme()
    chips = list(chips)
    half, px_per_mm = _view_geometry(wafer_params['diameter'])

    fig = go.Figure()
    fig.add_trace(create_chip_selection_trace(chips, px_per_mm))
    for trace in create_chip_text_traces(chips, chip_params, px_per_mm):
        fig.add_trace(trace)

    shapes = create_wafer_shapes(chips, wafer_params, theme, selected_ids)
    annotations = _draw_title_annotations(wafer_params, px_per_mm)
    if show_coordinate_system:
        glyph_shapes, glyph_annotations = _draw_coordinate_system(theme)
        shapes.extend(glyph_shapes)
        annotations.extend(glyph_annotations)

    fig.update_layout(
        xaxis=dict(range=[-half, half], visible=False, showgrid=False, zeroline=False),
        yaxis=dict(range=[half, -half], visible=False, showgrid=False, zeroline=False, scaleanchor="x", scaleratio=1),
        plot_bgcolor=theme.plot_area_color, paper_bgcolor=theme.background_color,
        shapes=shapes, annotations=annotations,
        width=FIGURE_SIZE_PX, height=FIGURE_SIZE_PX,
        margin=dict(l=0, r=0, t=0, b=0),
        dragmode='select', clickmode='event+select',
        hoverlabel=dict(bgcolor="#4A4A4A", font_size=14, font_family="sans-serif"),
        showlegend=False
    )
    return fig

def create_color_distribution_trace(df: pd.DataFrame) -> go.Bar:
    """
    Creates a bar trace counting inside chips per assigned color.
    """
    if df.empty:
        return go.Bar(name='Colors')
    counts = df['color'].value_counts().reset_index()
    counts.columns = ['Color', 'Count']
    return go.Bar(
        x=counts['Color'],
        y=counts['Count'],
        name='Colors',
        marker_color=counts['Color'].tolist(),
        marker_line=dict(color='#000000', width=1)
    )
