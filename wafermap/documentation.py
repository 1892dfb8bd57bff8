"""
Documentation Module.

Loads the in-app user guide from assets/docs.md and renders it.
"""
import streamlit as st
from pathlib import Path

DOCS_PATH = Path(__file__).resolve().parent.parent / "assets" / "docs.md"

@st.cache_data
def load_technical_documentation() -> str:
    """Loads the user guide from the Markdown file."""
    if not DOCS_PATH.exists():
        return "Documentation not found."
    return DOCS_PATH.read_text(encoding="utf-8")

def render_documentation():
    """Renders the user guide in the Streamlit app."""
    st.markdown(load_technical_documentation())
