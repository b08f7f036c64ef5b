"""Shared types, config, and logging for the DEM viewer."""
