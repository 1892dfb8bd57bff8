import json
import re
import pytest
from unittest.mock import patch
from wafermap.state import SessionStore
from wafermap.errors import InvalidDimensionError, MalformedImportError
from wafermap.enums import ViewMode
from wafermap.reporting import generate_json_export

@pytest.fixture
def store():
    """A SessionStore backed by a plain dict instead of Streamlit's session state."""
    with patch("wafermap.state.st") as mock_st:
        mock_st.session_state = {}
        yield SessionStore()

def test_store_initializes_default_map(store):
    assert store.wafer_params['diameter'] == 101.6
    assert store.wafer_params['flatAngle'] == 30.0
    assert store.chip_params == {'width': 10.0, 'height': 12.0, 'labelFontSize': 0.18}
    assert store.label_params == {'color': '#ffffff', 'label': '', 'fileName': ''}
    assert store.view_mode == ViewMode.WAFER_MAP.value
    assert len(store.chips) == 143
    assert store.chips.inside_chips()

def test_store_does_not_overwrite_existing_state(store):
    chips = store.chips
    store.wafer_params = {**store.wafer_params, 'name': 'kept'}
    again = SessionStore()
    assert again.chips is chips
    assert again.wafer_params['name'] == 'kept'

def test_paint_chips_applies_brush_to_inside_chips(store):
    inside = store.chips.inside_chips()[:2]
    outside = next(chip for chip in store.chips if not chip.inside)
    store.update_label_params(color='red', label='BIN1', file_name='bin1.csv')
    store.report_bytes = b'stale'

    painted = store.paint_chips([inside[0].id, inside[1].id, outside.id, 99999])

    assert painted == 2
    for chip in inside:
        updated = store.chips.get_chip(chip.id)
        assert (updated.color, updated.label, updated.file_name) == ('#ff0000', 'BIN1', 'bin1.csv')
    assert store.chips.get_chip(outside.id).is_default
    assert store.report_bytes is None

def test_clear_chips_resets_user_data(store):
    chip_id = store.chips.inside_chips()[0].id
    store.update_chip(chip_id, color='#00ff00', label='X', file_name='x.txt')
    assert store.clear_chips([chip_id]) == 1
    assert store.chips.get_chip(chip_id).is_default

def test_update_label_params_rejects_bad_color(store):
    with pytest.raises(ValueError):
        store.update_label_params(color='not-a-color')
    assert store.label_params['color'] == '#ffffff'

def test_update_label_params_partial(store):
    store.update_label_params(label='only label')
    assert store.label_params == {'color': '#ffffff', 'label': 'only label', 'fileName': ''}

def test_regenerate_keeps_user_data(store):
    chip_id = store.chips.inside_chips()[5].id
    store.update_chip(chip_id, label='keep me')
    store.selected_chip_ids = [chip_id]

    store.regenerate({'name': 'Renamed'})

    assert store.wafer_params['name'] == 'Renamed'
    assert store.chips.get_chip(chip_id).label == 'keep me'
    assert store.selected_chip_ids == []

def test_regenerate_without_user_data(store):
    chip_id = store.chips.inside_chips()[0].id
    store.update_chip(chip_id, label='gone')
    store.regenerate(keep_user_data=False)
    assert store.chips.get_chip(chip_id).label == ''

def test_regenerate_new_chip_size(store):
    store.regenerate(chip_params={'width': 5.0, 'height': 5.0})
    assert store.chip_params['width'] == 5.0
    assert store.chip_params['labelFontSize'] == 0.18
    assert all(chip.width == 5.0 for chip in store.chips)

def test_invalid_regenerate_leaves_state_untouched(store):
    chips_before = store.chips
    params_before = dict(store.chip_params)
    with pytest.raises(InvalidDimensionError):
        store.regenerate(chip_params={'width': 0})
    assert store.chips is chips_before
    assert store.chip_params == params_before

def test_import_replaces_map(store):
    content = json.dumps({
        'waferParams': {'diameter': 50.0, 'flatAngle': 0, 'excludedRadius': 1, 'name': 'Imported'},
        'chipParams': {'width': 5, 'height': 5},
        'chips': [{'x': -5.0, 'y': -5.0, 'label': 'center'}],
    })
    store.import_wafer_map(content)
    assert store.wafer_params['name'] == 'Imported'
    assert store.chip_params['width'] == 5.0
    assert [chip.label for chip in store.chips if chip.label] == ['center']

def test_failed_import_leaves_state_untouched(store):
    chips_before = store.chips
    params_before = dict(store.wafer_params)
    with pytest.raises(MalformedImportError):
        store.import_wafer_map('{"waferParams": {}}')
    assert store.chips is chips_before
    assert store.wafer_params == params_before

def test_export_then_import_preserves_edits(store):
    chip_id = store.chips.inside_chips()[2].id
    store.update_chip(chip_id, color='#abcdef', label='L', file_name='F')
    content = generate_json_export(store.wafer_params, store.chip_params, store.chips)

    store.regenerate(keep_user_data=False)
    store.import_wafer_map(content)

    chip = store.chips.get_chip(chip_id)
    assert (chip.color, chip.label, chip.file_name) == ('#abcdef', 'L', 'F')

def test_stamp_export(store):
    timestamp = store.stamp_export()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", timestamp)
    assert store.wafer_params['exportTimestamp'] == timestamp

def test_clear_all(store):
    store.clear_all()
    assert store.chips.chips == []
