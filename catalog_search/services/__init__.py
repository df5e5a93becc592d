"""Reporting and persistence services built on the search tables."""
