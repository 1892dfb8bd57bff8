"""Wafer chip mapping: grid generation, reconciliation, rendering and export."""
