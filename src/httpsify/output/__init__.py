"""Lookup reporters — rich terminal and JSON."""
