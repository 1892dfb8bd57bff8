"""
State Management Module.
Implements the 'Store' pattern to unify access to Streamlit's session state.

The current chip collection is owned here and is only ever replaced as a
whole: a new collection is fully built before it is assigned.
"""
import logging
from datetime import datetime, timezone
import streamlit as st
from dataclasses import dataclass
from typing import Optional, Dict, List, TypedDict, Iterable, Union

from wafermap.config import (
    DEFAULT_WAFER_DIAMETER, DEFAULT_FLAT_ANGLE, DEFAULT_EXCLUDED_RADIUS,
    DEFAULT_CHIP_WIDTH, DEFAULT_CHIP_HEIGHT, DEFAULT_LABEL_FONT_SIZE, DEFAULT_CHIP_COLOR
)
from wafermap.enums import ViewMode
from wafermap.layout import WaferSpec, ChipSpec, generate_chip_grid
from wafermap.models import Chip, ChipCollection
from wafermap.utils import normalize_color

logger = logging.getLogger(__name__)

# --- TypedDict Definitions ---

class WaferParams(TypedDict, total=False):
    """
    Wafer parameters as stored in session state and saved documents.
    """
    diameter: float
    flatAngle: float
    excludedRadius: float
    name: str
    exportTimestamp: Optional[str]

class ChipParams(TypedDict, total=False):
    """
    Chip parameters as stored in session state and saved documents.
    """
    width: float
    height: float
    labelFontSize: float # Fraction of min(width, height)

class LabelParams(TypedDict, total=False):
    """
    The current brush applied to selected chips.
    """
    color: str
    label: str
    fileName: str

class AppState(TypedDict, total=False):
    """
    Type definition for the entire application session state.
    """
    wafer_params: WaferParams
    chip_params: ChipParams
    label_params: LabelParams
    chips: Optional[ChipCollection]
    selected_chip_ids: List[int]
    view_mode: str
    report_bytes: Optional[bytes]


def default_wafer_params() -> WaferParams:
    return {
        'diameter': DEFAULT_WAFER_DIAMETER,
        'flatAngle': DEFAULT_FLAT_ANGLE,
        'excludedRadius': DEFAULT_EXCLUDED_RADIUS,
        'name': '',
        'exportTimestamp': None,
    }

def default_chip_params() -> ChipParams:
    return {
        'width': DEFAULT_CHIP_WIDTH,
        'height': DEFAULT_CHIP_HEIGHT,
        'labelFontSize': DEFAULT_LABEL_FONT_SIZE,
    }

def default_label_params() -> LabelParams:
    return {'color': DEFAULT_CHIP_COLOR, 'label': '', 'fileName': ''}


@dataclass
class SessionStore:
    """
    Centralized store for application state.
    Wraps st.session_state to provide typed access and centralized modification logic.
    """

    def __post_init__(self):
        """Initialize default state values if they don't exist."""
        defaults: AppState = {
            'wafer_params': default_wafer_params(),
            'chip_params': default_chip_params(),
            'label_params': default_label_params(),
            'chips': None,
            'selected_chip_ids': [],
            'view_mode': ViewMode.WAFER_MAP.value,
            'report_bytes': None,
        }

        for key, value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = value

        if st.session_state.get('chips') is None:
            self.regenerate(keep_user_data=False)

    # --- Properties for Typed Access ---

    @property
    def wafer_params(self) -> WaferParams:
        return st.session_state.get('wafer_params', default_wafer_params())

    @wafer_params.setter
    def wafer_params(self, params: WaferParams):
        st.session_state['wafer_params'] = params

    @property
    def chip_params(self) -> ChipParams:
        return st.session_state.get('chip_params', default_chip_params())

    @chip_params.setter
    def chip_params(self, params: ChipParams):
        st.session_state['chip_params'] = params

    @property
    def label_params(self) -> LabelParams:
        return st.session_state.get('label_params', default_label_params())

    @label_params.setter
    def label_params(self, params: LabelParams):
        st.session_state['label_params'] = params

    @property
    def chips(self) -> ChipCollection:
        return st.session_state.get('chips') or ChipCollection()

    @property
    def selected_chip_ids(self) -> List[int]:
        return st.session_state.get('selected_chip_ids', [])

    @selected_chip_ids.setter
    def selected_chip_ids(self, val: List[int]):
        st.session_state['selected_chip_ids'] = val

    @property
    def view_mode(self) -> str:
        return st.session_state.get('view_mode', ViewMode.WAFER_MAP.value)

    @view_mode.setter
    def view_mode(self, val: str):
        st.session_state['view_mode'] = val

    @property
    def report_bytes(self) -> Optional[bytes]:
        return st.session_state.get('report_bytes')

    @report_bytes.setter
    def report_bytes(self, data: Optional[bytes]):
        st.session_state['report_bytes'] = data

    # --- Actions ---

    def set_chips(self, chips: Union[ChipCollection, Iterable[Chip]]):
        """Installs a complete chip collection in a single step."""
        collection = chips if isinstance(chips, ChipCollection) else ChipCollection(list(chips))
        st.session_state['chips'] = collection
        st.session_state['selected_chip_ids'] = []
        st.session_state['report_bytes'] = None

    def regenerate(
        self,
        wafer_params: Optional[WaferParams] = None,
        chip_params: Optional[ChipParams] = None,
        keep_user_data: bool = True
    ):
        """
        Regenerates the grid for new parameters. With keep_user_data the
        current chips are reconciled onto the new grid by position.
        Invalid parameters raise before any state is touched.
        """
        # Import internally to avoid circular dependency
        from wafermap.data_handler import restore_chip_grid

        new_wafer_params = {**self.wafer_params, **(wafer_params or {})}
        new_chip_params = {**self.chip_params, **(chip_params or {})}

        wafer = WaferSpec.from_params(new_wafer_params)
        chip_spec = ChipSpec.from_params(new_chip_params)

        if keep_user_data and st.session_state.get('chips'):
            chips = restore_chip_grid(self.chips.chips, wafer, chip_spec)
        else:
            chips = generate_chip_grid(wafer, chip_spec)

        self.wafer_params = new_wafer_params
        self.chip_params = new_chip_params
        self.set_chips(chips)
        logger.info("Regenerated wafer map: %d chips, %d inside", len(chips), sum(chip.inside for chip in chips))

    def import_wafer_map(self, content: Union[str, bytes]):
        """
        Replaces parameters and chips with a saved document.
        On MalformedImportError the current state is left untouched.
        """
        from wafermap.data_handler import load_wafer_map

        wafer_params, chip_params, chips = load_wafer_map(content)
        self.wafer_params = wafer_params
        self.chip_params = chip_params
        self.set_chips(chips)

    def update_chip(self, chip_id: int, **updates) -> bool:
        """Mutates color/label/file_name of one chip in place."""
        updated = self.chips.update_chip(chip_id, **updates)
        if updated:
            self.report_bytes = None
        return updated

    def update_label_params(self, color: Optional[str] = None, label: Optional[str] = None, file_name: Optional[str] = None):
        params = dict(self.label_params)
        if color is not None: params['color'] = normalize_color(color)
        if label is not None: params['label'] = label
        if file_name is not None: params['fileName'] = file_name
        self.label_params = params

    def paint_chips(self, chip_ids: Iterable[int]) -> int:
        """Applies the current brush to the given inside chips. Returns the number of chips painted."""
        brush = self.label_params
        painted = 0
        for chip_id in chip_ids:
            chip = self.chips.get_chip(chip_id)
            if chip is None or not chip.inside:
                continue
            self.update_chip(
                chip_id,
                color=brush.get('color', DEFAULT_CHIP_COLOR),
                label=brush.get('label', ''),
                file_name=brush.get('fileName', '')
            )
            painted += 1
        return painted

    def clear_chips(self, chip_ids: Iterable[int]) -> int:
        """Resets user data on the given chips."""
        cleared = 0
        for chip_id in chip_ids:
            if self.update_chip(chip_id, color=DEFAULT_CHIP_COLOR, label='', file_name=''):
                cleared += 1
        return cleared

    def stamp_export(self) -> str:
        """Records the export time on the wafer parameters and returns it."""
        timestamp = datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
        self.wafer_params = {**self.wafer_params, 'exportTimestamp': timestamp}
        return timestamp

    def clear_all(self):
        """Resets the entire session state."""
        st.session_state.clear()
