"""
Data Handling Module.
Parses saved wafer map documents and carries the user data of a saved chip
list over to a freshly generated grid, matching chips by physical position.
"""
import json
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np

from wafermap.config import POSITION_TOLERANCE_MM, DEFAULT_LABEL_FONT_SIZE, DEFAULT_CHIP_COLOR
from wafermap.errors import MalformedImportError, WaferMapError
from wafermap.layout import WaferSpec, ChipSpec, generate_chip_grid
from wafermap.models import Chip

if TYPE_CHECKING:
    from wafermap.state import WaferParams, ChipParams

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ['waferParams', 'chipParams', 'chips']
REQUIRED_WAFER_FIELDS = ['diameter', 'flatAngle', 'excludedRadius']
REQUIRED_CHIP_PARAM_FIELDS = ['width', 'height']


@dataclass
class WaferDocument:
    """A parsed, validated wafer map document. `chips` is the saved chip list as stored."""
    wafer_params: "WaferParams"
    chip_params: "ChipParams"
    chips: List[Chip]

    @property
    def wafer_spec(self) -> WaferSpec:
        return WaferSpec.from_params(self.wafer_params)

    @property
    def chip_spec(self) -> ChipSpec:
        return ChipSpec.from_params(self.chip_params)


# ==============================================================================
# --- Document Parsing ---
# ==============================================================================

def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _require_mapping(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise MalformedImportError(f"'{key}' must be an object.")
    return value


def _require_numbers(section: Dict[str, Any], section_name: str, fields: List[str]):
    for field in fields:
        if field not in section:
            raise MalformedImportError(f"'{section_name}.{field}' is missing.")
        if not _is_number(section[field]):
            raise MalformedImportError(f"'{section_name}.{field}' must be a number, got {section[field]!r}.")


def _parse_wafer_params(data: Dict[str, Any]) -> "WaferParams":
    section = _require_mapping(data, 'waferParams')
    _require_numbers(section, 'waferParams', REQUIRED_WAFER_FIELDS)

    name = section.get('name') or ''
    if not isinstance(name, str):
        raise MalformedImportError(f"'waferParams.name' must be a string, got {name!r}.")
    timestamp = section.get('exportTimestamp')
    if timestamp is not None and not isinstance(timestamp, str):
        raise MalformedImportError(f"'waferParams.exportTimestamp' must be a string, got {timestamp!r}.")

    return {
        'diameter': float(section['diameter']),
        'flatAngle': float(section['flatAngle']),
        'excludedRadius': float(section['excludedRadius']),
        'name': name,
        'exportTimestamp': timestamp,
    }


def _parse_chip_params(data: Dict[str, Any]) -> "ChipParams":
    section = _require_mapping(data, 'chipParams')
    _require_numbers(section, 'chipParams', REQUIRED_CHIP_PARAM_FIELDS)

    font_size = section.get('labelFontSize', DEFAULT_LABEL_FONT_SIZE)
    if not _is_number(font_size):
        raise MalformedImportError(f"'chipParams.labelFontSize' must be a number, got {font_size!r}.")

    return {
        'width': float(section['width']),
        'height': float(section['height']),
        'labelFontSize': float(font_size),
    }


def _parse_saved_chip(record: Any, index: int, chip_params: "ChipParams") -> Chip:
    """
    Converts one saved chip record. Only x and y are required; every other
    field falls back to a default but must have the right type when present.
    """
    if not isinstance(record, dict):
        raise MalformedImportError(f"Chip #{index} must be an object.")
    _require_numbers(record, f"chips[{index}]", ['x', 'y'])

    for key in ('color', 'label', 'fileName'):
        if key in record and record[key] is not None and not isinstance(record[key], str):
            raise MalformedImportError(f"'chips[{index}].{key}' must be a string, got {record[key]!r}.")
    for key in ('id', 'number'):
        if record.get(key) is not None and (not isinstance(record[key], int) or isinstance(record[key], bool)):
            raise MalformedImportError(f"'chips[{index}].{key}' must be an integer, got {record[key]!r}.")
    for key in ('width', 'height'):
        if key in record and not _is_number(record[key]):
            raise MalformedImportError(f"'chips[{index}].{key}' must be a number, got {record[key]!r}.")
    if 'inside' in record and not isinstance(record['inside'], bool):
        raise MalformedImportError(f"'chips[{index}].inside' must be a boolean, got {record['inside']!r}.")

    return Chip(
        id=record.get('id') if record.get('id') is not None else index,
        x=float(record['x']),
        y=float(record['y']),
        width=float(record.get('width', chip_params['width'])),
        height=float(record.get('height', chip_params['height'])),
        inside=record.get('inside', False),
        number=record.get('number'),
        color=record.get('color') or DEFAULT_CHIP_COLOR,
        label=record.get('label') or '',
        file_name=record.get('fileName') or '',
    )


def parse_wafer_document(content: Union[str, bytes]) -> WaferDocument:
    """
    Parses and validates a saved wafer map document (JSON text or bytes).
    Raises MalformedImportError if anything does not have the expected shape;
    nothing is returned for a partially valid document.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedImportError(f"Document is not UTF-8 text: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedImportError(f"Document is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedImportError("Document must be a JSON object.")
    missing = [key for key in REQUIRED_SECTIONS if key not in data]
    if missing:
        raise MalformedImportError(f"Document is missing required section(s): {missing}.")

    wafer_params = _parse_wafer_params(data)
    chip_params = _parse_chip_params(data)

    if not isinstance(data['chips'], list):
        raise MalformedImportError("'chips' must be a list.")
    chips = [_parse_saved_chip(record, i, chip_params) for i, record in enumerate(data['chips'])]

    # Geometry must also be generatable, otherwise the import is rejected as a whole.
    try:
        WaferSpec.from_params(wafer_params)
        ChipSpec.from_params(chip_params)
    except WaferMapError as e:
        raise MalformedImportError(f"Document has invalid parameters: {e}") from e

    return WaferDocument(wafer_params=wafer_params, chip_params=chip_params, chips=chips)


# ==============================================================================
# --- Reconciliation ---
# ==============================================================================

def reconcile_chips(
    saved_chips: Sequence[Chip],
    new_chips: Sequence[Chip],
    tolerance: float = POSITION_TOLERANCE_MM
) -> List[Chip]:
    """
    Copies color, label and file name from saved chips onto new inside chips
    at the same position (both |dx| and |dy| below `tolerance`).

    For each new inside chip the first saved chip in saved-list order within
    tolerance wins. Only truthy values are copied. Returns new Chip objects;
    neither input is modified.
    """
    saved_x = np.array([chip.x for chip in saved_chips], dtype=float)
    saved_y = np.array([chip.y for chip in saved_chips], dtype=float)

    result = []
    matched = 0
    for new_chip in new_chips:
        chip = replace(new_chip)
        if chip.inside and len(saved_chips):
            mask = (np.abs(saved_x - chip.x) < tolerance) & (np.abs(saved_y - chip.y) < tolerance)
            if mask.any():
                # argmax returns the first True, i.e. the earliest saved chip.
                source = saved_chips[int(np.argmax(mask))]
                if source.color: chip.color = source.color
                if source.label: chip.label = source.label
                if source.file_name: chip.file_name = source.file_name
                matched += 1
        result.append(chip)

    logger.debug("Reconciled %d saved chips onto %d new chips: %d matches", len(saved_chips), len(new_chips), matched)
    return result


def restore_chip_grid(saved_chips: Sequence[Chip], wafer: WaferSpec, chip_spec: ChipSpec) -> List[Chip]:
    """Regenerates the grid for the given geometry and carries saved user data over to it."""
    return reconcile_chips(saved_chips, generate_chip_grid(wafer, chip_spec))


def load_wafer_map(content: Union[str, bytes]) -> Tuple["WaferParams", "ChipParams", List[Chip]]:
    """
    Parses a saved document and rebuilds its chip collection from the saved
    parameters. Raises MalformedImportError without side effects on failure.
    """
    document = parse_wafer_document(content)
    try:
        chips = restore_chip_grid(document.chips, document.wafer_spec, document.chip_spec)
    except WaferMapError as e:
        raise MalformedImportError(f"Document geometry cannot be generated: {e}") from e
    logger.info(
        "Loaded wafer map '%s' with %d saved chips -> %d chips (%d inside)",
        document.wafer_params.get('name', ''), len(document.chips), len(chips), sum(chip.inside for chip in chips)
    )
    return document.wafer_params, document.chip_params, chips
