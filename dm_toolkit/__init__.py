"""Tabletop session toolkit: seeded dice and versioned combat tracking."""

__version__ = "0.1.0"
