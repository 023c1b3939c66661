"""Strata CLI utilities."""
