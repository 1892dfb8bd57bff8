import pytest
import plotly.graph_objects as go
from wafermap.plotting import (
    create_wafer_shapes,
    create_chip_text_traces,
    create_chip_selection_trace,
    create_wafer_map_figure,
    create_color_distribution_trace
)
from wafermap.layout import WaferSpec, ChipSpec, generate_chip_grid
from wafermap.models import ChipCollection
from wafermap.config import SELECTION_COLOR

@pytest.fixture
def wafer_params() -> dict:
    return {'diameter': 101.6, 'flatAngle': 30.0, 'excludedRadius': 3.0, 'name': 'W01', 'exportTimestamp': '2024-05-01T12:30:05.123Z'}

@pytest.fixture
def chip_params() -> dict:
    return {'width': 10.0, 'height': 12.0, 'labelFontSize': 0.18}

@pytest.fixture
def collection(wafer_params, chip_params) -> ChipCollection:
    chips = ChipCollection(generate_chip_grid(WaferSpec.from_params(wafer_params), ChipSpec.from_params(chip_params)))
    first = chips.inside_chips()[0]
    chips.update_chip(first.id, color='#ff0000', label='A1', file_name='a1.csv')
    return chips

def test_create_wafer_shapes_smoke(collection, wafer_params):
    shapes = create_wafer_shapes(collection, wafer_params)
    assert isinstance(shapes, list)
    assert all(isinstance(s, dict) for s in shapes)
    # Outline + usable radius guide + one rect per inside chip.
    assert len(shapes) == 2 + len(collection.inside_chips())

def test_wafer_outline_with_flat_is_path(collection, wafer_params):
    outline = create_wafer_shapes(collection, wafer_params)[0]
    assert outline['type'] == 'path'
    assert outline['path'].startswith('M ') and outline['path'].endswith(' Z')

def test_wafer_outline_without_flat_is_circle(collection, wafer_params):
    outline = create_wafer_shapes(collection, {**wafer_params, 'flatAngle': 0})[0]
    assert outline['type'] == 'circle'
    assert outline['x1'] == pytest.approx(50.8)

def test_usable_radius_guide_is_dashed(collection, wafer_params):
    guide = create_wafer_shapes(collection, wafer_params)[1]
    assert guide['line']['dash'] == 'dash'
    assert guide['x1'] == pytest.approx(47.8)

def test_no_usable_radius_guide_without_exclusion(collection, wafer_params):
    shapes = create_wafer_shapes(collection, {**wafer_params, 'excludedRadius': 0})
    assert len(shapes) == 1 + len(collection.inside_chips())

def test_chip_fill_and_selection(collection, wafer_params):
    first = collection.inside_chips()[0]
    shapes = create_wafer_shapes(collection, wafer_params, selected_ids=[first.id])
    rects = [s for s in shapes if s['type'] == 'rect']
    painted = next(r for r in rects if r['x0'] == first.x and r['y0'] == first.y)
    assert painted['fillcolor'] == '#ff0000'
    assert painted['line']['color'] == SELECTION_COLOR

def test_create_chip_text_traces(collection, chip_params):
    traces = create_chip_text_traces(collection, chip_params, px_per_mm=5.0)
    assert all(isinstance(t, go.Scatter) for t in traces)
    assert [t.name for t in traces] == ['Numbers', 'Labels', 'File Names']
    assert len(traces[0].text) == len(collection.inside_chips())
    assert traces[1].text == ('A1',)

def test_text_traces_empty_without_inside_chips(chip_params):
    assert create_chip_text_traces([], chip_params, px_per_mm=5.0) == []

def test_selection_trace_carries_chip_ids(collection):
    trace = create_chip_selection_trace(collection, px_per_mm=5.0)
    inside = collection.inside_chips()
    assert [row[0] for row in trace.customdata] == [chip.id for chip in inside]
    assert trace.mode == 'markers'

def test_create_wafer_map_figure(collection, wafer_params, chip_params):
    fig = create_wafer_map_figure(collection, wafer_params, chip_params)
    assert isinstance(fig, go.Figure)
    # y axis is reversed: increasing y goes down the screen.
    y_range = fig.layout.yaxis.range
    assert y_range[0] > y_range[1]
    assert fig.layout.yaxis.scaleanchor == 'x'
    texts = [a.text for a in fig.layout.annotations]
    assert '<b>W01</b>' in texts
    assert '(2024-05-01 12:30:05)' in texts
    assert 'Z' in texts and '-Y' in texts

def test_figure_without_name_or_glyph(collection, wafer_params, chip_params):
    fig = create_wafer_map_figure(collection, {**wafer_params, 'name': ''}, chip_params, show_coordinate_system=False)
    assert len(fig.layout.annotations) == 0

def test_create_color_distribution_trace(collection):
    trace = create_color_distribution_trace(collection.to_dataframe(inside_only=True))
    assert isinstance(trace, go.Bar)
    counts = dict(zip(trace.x, trace.y))
    assert counts['#ff0000'] == 1
    assert counts['#ffffff'] == len(collection.inside_chips()) - 1
