import json
import pytest
from unittest.mock import patch, MagicMock
from wafermap.state import SessionStore
from wafermap.enums import ViewMode
from wafermap.views import get_view_renderer
from wafermap.views.wafer_view import selected_chip_ids_from_event, render_wafer_view
from wafermap.views.chip_table import render_chip_table
from wafermap.views.manager import ViewManager, EXPORT_FILE_NAME_KEY, IMPORT_UPLOADER_KEY

@pytest.fixture
def session_state() -> dict:
    return {}

@pytest.fixture
def manager(session_state):
    """A ViewManager whose store and widgets share one dict-backed session state."""
    with patch("wafermap.state.st") as state_st, patch("wafermap.views.manager.st") as view_st:
        state_st.session_state = session_state
        view_st.session_state = session_state
        manager = ViewManager(SessionStore())
        manager.sync_widgets_from_params()
        manager.mock_st = view_st
        yield manager

def test_selected_ids_from_event():
    event = {"selection": {"points": [
        {"customdata": [12, 3, "", "", "#ffffff"]},
        {"customdata": [12, 3, "", "", "#ffffff"]},
        {"point_index": 4},
        {"customdata": [7, 1, "A", "", "#ff0000"]},
    ]}}
    assert selected_chip_ids_from_event(event) == [12, 7]

@pytest.mark.parametrize("event", [None, {}, {"selection": None}, {"selection": {"points": []}}])
def test_selected_ids_from_empty_event(event):
    assert selected_chip_ids_from_event(event) == []

def test_sync_widgets_seeds_defaults(manager, session_state):
    assert session_state["wafer_diameter"] == 101.6
    assert session_state["chip_height"] == 12.0
    assert session_state["brush_color"] == "#ffffff"
    assert session_state["wafer_name"] == ""

def test_run_generation_reads_widgets(manager, session_state):
    session_state["chip_width"] = 5.0
    session_state["wafer_name"] = "W2"
    manager.run_generation()
    assert manager.store.chip_params["width"] == 5.0
    assert manager.store.wafer_params["name"] == "W2"
    manager.mock_st.error.assert_not_called()

def test_run_generation_reports_invalid_parameters(manager, session_state):
    chips_before = manager.store.chips
    session_state["excluded_radius"] = -1.0
    manager.run_generation()
    manager.mock_st.error.assert_called_once()
    assert manager.store.chips is chips_before

def test_import_document_reports_malformed_file(manager, session_state):
    uploaded = MagicMock()
    uploaded.getvalue.return_value = b"{not json"
    session_state[IMPORT_UPLOADER_KEY] = uploaded
    manager.import_document()
    manager.mock_st.error.assert_called_once()

def test_import_document_reports_oversized_number(manager, session_state):
    chips_before = manager.store.chips
    uploaded = MagicMock()
    uploaded.getvalue.return_value = (
        b'{"waferParams": {"diameter": ' + b"9" * 400 + b', "flatAngle": 0, "excludedRadius": 0},'
        b' "chipParams": {"width": 10, "height": 12}, "chips": []}'
    )
    session_state[IMPORT_UPLOADER_KEY] = uploaded
    manager.import_document()
    manager.mock_st.error.assert_called_once()
    assert manager.store.chips is chips_before

def test_import_document_updates_widgets(manager, session_state):
    uploaded = MagicMock()
    uploaded.getvalue.return_value = json.dumps({
        'waferParams': {'diameter': 76.2, 'flatAngle': 20, 'excludedRadius': 2, 'name': 'Three inch'},
        'chipParams': {'width': 4, 'height': 4, 'labelFontSize': 0.3},
        'chips': [],
    }).encode('utf-8')
    session_state[IMPORT_UPLOADER_KEY] = uploaded
    manager.import_document()
    assert session_state["wafer_diameter"] == 76.2
    assert session_state["wafer_name"] == "Three inch"
    assert session_state["label_font_size"] == 0.3

def test_update_brush(manager, session_state):
    session_state["brush_color"] = "#00FF00"
    session_state["brush_label"] = "PASS"
    manager.update_brush()
    assert manager.store.label_params == {'color': '#00ff00', 'label': 'PASS', 'fileName': ''}

def test_generate_json_export(manager, session_state):
    manager.store.wafer_params = {**manager.store.wafer_params, 'name': 'W9'}
    manager.generate_export("json")
    document = json.loads(manager.store.report_bytes)
    assert document['waferParams']['exportTimestamp'] is not None
    assert session_state[EXPORT_FILE_NAME_KEY].startswith("Wafer_Map_W9_")
    assert session_state[EXPORT_FILE_NAME_KEY].endswith(".json")

def test_generate_export_failure_clears_download(manager):
    with patch("wafermap.views.manager.generate_image_export", side_effect=RuntimeError("no renderer")):
        manager.generate_export("png")
    assert manager.store.report_bytes is None
    manager.mock_st.error.assert_called_once()

def test_view_registry():
    assert get_view_renderer(ViewMode.CHIP_TABLE.value) is render_chip_table
    assert get_view_renderer(ViewMode.WAFER_MAP.value) is render_wafer_view
    assert get_view_renderer("Unknown") is render_wafer_view
