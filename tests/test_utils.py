import pytest
from unittest.mock import patch, mock_open
from wafermap.utils import load_css, normalize_color, sanitize_filename_part, generate_standard_filename

def test_generate_standard_filename():
    """Tests the PREFIX[_name][_timestamp].ext naming scheme."""
    assert generate_standard_filename("Wafer_Map", "W01", "2024-05-01T12:30:05.123Z", "json") == "Wafer_Map_W01_20240501_123005.json"
    assert generate_standard_filename("Wafer_Map", "", "2024-05-01T12:30:05.123Z", "png") == "Wafer_Map_20240501_123005.png"
    assert generate_standard_filename("Wafer_Map", None, None, "svg") == "Wafer_Map.svg"
    assert generate_standard_filename("Chip_Report", "Lot 7 / wafer#3", None, "xlsx") == "Chip_Report_Lot_7_wafer_3.xlsx"

def test_generate_standard_filename_ignores_unparseable_timestamp():
    assert generate_standard_filename("Wafer_Map", "W", "yesterday", "json") == "Wafer_Map_W.json"

def test_sanitize_filename_part():
    assert sanitize_filename_part("a b.c-d") == "a_b_c-d"
    assert sanitize_filename_part("***") == ""

@pytest.mark.parametrize("color,expected", [
    ("#FF0000", "#ff0000"),
    ("#0f0", "#00ff00"),
    ("blue", "#0000ff"),
])
def test_normalize_color(color, expected):
    assert normalize_color(color) == expected

@pytest.mark.parametrize("color", ["", "#12345", "nope", None, 5])
def test_normalize_color_rejects_invalid(color):
    with pytest.raises(ValueError):
        normalize_color(color)

@patch("wafermap.utils.st")
def test_load_css(mock_st):
    """Tests that load_css reads the file and calls st.markdown."""

    # Mock file content
    mock_css_content = "body { color: red; }"

    with patch("builtins.open", mock_open(read_data=mock_css_content)) as mock_file:
        load_css("fake_path.css")

        # Verify file was opened
        mock_file.assert_called_once_with("fake_path.css")

        # Verify st.markdown was called
        mock_st.markdown.assert_called_once()

        # Check that the CSS content was injected (partially)
        args, _ = mock_st.markdown.call_args
        injected_style = args[0]
        assert mock_css_content in injected_style
        assert "--wafer-color" in injected_style

@patch("wafermap.utils.st")
def test_load_css_file_not_found(mock_st):
    """Tests that a missing stylesheet is reported instead of skipped."""

    with patch("builtins.open", side_effect=FileNotFoundError):
        with pytest.raises(FileNotFoundError):
            load_css("non_existent_file.css")

    mock_st.markdown.assert_not_called()
