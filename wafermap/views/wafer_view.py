import streamlit as st
from typing import Any, List, Optional
from wafermap.state import SessionStore
from wafermap.plotting import create_wafer_map_figure
from wafermap.config import PlotTheme

CHART_KEY = "wafer_map_chart"
NUMBER_SELECTION_KEY = "chip_number_selection"

def selected_chip_ids_from_event(event: Optional[Any]) -> List[int]:
    """
    Extracts chip ids from a Plotly selection event. Only points of the chip
    marker trace carry customdata; text traces are ignored.
    """
    if not event:
        return []
    selection = event.get("selection") or {}
    chip_ids = []
    for point in selection.get("points", []):
        customdata = point.get("customdata")
        if customdata:
            chip_id = int(customdata[0])
            if chip_id not in chip_ids:
                chip_ids.append(chip_id)
    return chip_ids

def render_wafer_view(store: SessionStore, theme_config: PlotTheme = None):
    """Renders the wafer map with selection and painting controls."""
    chips = store.chips
    inside = chips.inside_chips()

    if not inside:
        st.warning("No chip fits inside the usable wafer area. Reduce the chip size or the excluded radius.")

    map_col, control_col = st.columns([3, 1])

    with map_col:
        fig = create_wafer_map_figure(
            chips, store.wafer_params, store.chip_params,
            theme_config=theme_config, selected_ids=store.selected_chip_ids
        )
        event = st.plotly_chart(
            fig, use_container_width=False, key=CHART_KEY,
            on_select="rerun", selection_mode=("points", "box", "lasso")
        )

    number_to_id = {chip.number: chip.id for chip in inside}

    with control_col:
        st.subheader("Selection")
        if NUMBER_SELECTION_KEY in st.session_state:
            # Numbers from a previous grid may no longer exist.
            st.session_state[NUMBER_SELECTION_KEY] = [n for n in st.session_state[NUMBER_SELECTION_KEY] if n in number_to_id]
        chosen_numbers = st.multiselect("Chips by Number", options=sorted(number_to_id), key=NUMBER_SELECTION_KEY)

        selected_ids = selected_chip_ids_from_event(event)
        for number in chosen_numbers:
            chip_id = number_to_id.get(number)
            if chip_id is not None and chip_id not in selected_ids:
                selected_ids.append(chip_id)
        store.selected_chip_ids = selected_ids

        st.metric("Selected Chips", f"{len(selected_ids):,}")

        brush = store.label_params
        st.caption(f"Brush: color {brush.get('color')}, label '{brush.get('label', '')}', file '{brush.get('fileName', '')}'")

        apply_col, clear_col = st.columns(2)
        if apply_col.button("Apply", type="primary", use_container_width=True, disabled=not selected_ids):
            painted = store.paint_chips(selected_ids)
            st.toast(f"Painted {painted} chip(s).")
            st.rerun()
        if clear_col.button("Clear", use_container_width=True, disabled=not selected_ids):
            cleared = store.clear_chips(selected_ids)
            st.toast(f"Cleared {cleared} chip(s).")
            st.rerun()

        st.divider()
        st.metric("Inside Chips", f"{len(inside):,}")
        st.metric("Grid Cells", f"{len(chips):,}")
