from typing import Callable, Dict, Optional
from wafermap.config import PlotTheme
from wafermap.enums import ViewMode
from wafermap.state import SessionStore
from wafermap.views.wafer_view import render_wafer_view
from wafermap.views.chip_table import render_chip_table
from wafermap.documentation import render_documentation

ViewRenderer = Callable[[SessionStore, Optional[PlotTheme]], None]

def _render_documentation_page(store: SessionStore, theme_config: Optional[PlotTheme] = None):
    render_documentation()

# Registry mapping ViewMode enum values to page renderers
VIEW_REGISTRY: Dict[str, ViewRenderer] = {
    ViewMode.WAFER_MAP.value: render_wafer_view,
    ViewMode.CHIP_TABLE.value: render_chip_table,
    ViewMode.DOCUMENTATION.value: _render_documentation_page,
}

def get_view_renderer(mode_value: str) -> ViewRenderer:
    """Returns the renderer for a view mode, falling back to the wafer map."""
    return VIEW_REGISTRY.get(mode_value, render_wafer_view)
