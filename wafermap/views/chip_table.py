import streamlit as st
import plotly.graph_objects as go
from wafermap.state import SessionStore
from wafermap.plotting import create_color_distribution_trace
from wafermap.config import DEFAULT_CHIP_COLOR, PlotTheme

DISPLAY_COLUMNS = {
    'number': 'Number', 'id': 'ID', 'x': 'X (mm)', 'y': 'Y (mm)',
    'color': 'Color', 'label': 'Label', 'file_name': 'File Name'
}

def _color_cell(value: str) -> str:
    return f"background-color: {value}"

def render_chip_table(store: SessionStore, theme_config: PlotTheme = None):
    """Renders the inside-chip table, KPIs and the color distribution."""
    inside_df = store.chips.to_dataframe(inside_only=True)

    st.header(f"Chip Summary{' - ' + store.wafer_params.get('name') if store.wafer_params.get('name') else ''}")

    if inside_df.empty:
        st.info("No chips inside the usable wafer area.")
        return

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Inside Chips", f"{len(inside_df):,}")
    col2.metric("Labeled Chips", f"{int((inside_df['label'] != '').sum()):,}")
    col3.metric("Colored Chips", f"{int((inside_df['color'] != DEFAULT_CHIP_COLOR).sum()):,}")
    col4.metric("Chips With File", f"{int((inside_df['file_name'] != '').sum()):,}")

    st.divider()
    only_edited = st.toggle("Show edited chips only", value=False)
    table_df = inside_df
    if only_edited:
        table_df = inside_df[(inside_df['label'] != '') | (inside_df['color'] != DEFAULT_CHIP_COLOR) | (inside_df['file_name'] != '')]

    display_df = table_df[list(DISPLAY_COLUMNS)].rename(columns=DISPLAY_COLUMNS)
    st.dataframe(
        display_df.style.format({'X (mm)': '{:.3f}', 'Y (mm)': '{:.3f}'}).map(_color_cell, subset=['Color']),
        use_container_width=True, hide_index=True
    )

    st.divider()
    st.markdown("### Chips by Color")
    fig = go.Figure(create_color_distribution_trace(inside_df))
    fig.update_layout(
        xaxis=dict(title="Color", categoryorder='total descending'),
        yaxis=dict(title="Count"),
        height=400
    )
    if theme_config:
        fig.update_layout(plot_bgcolor=theme_config.plot_area_color, paper_bgcolor=theme_config.background_color)
    st.plotly_chart(fig, use_container_width=True)
