"""Strata CLI command implementations."""
