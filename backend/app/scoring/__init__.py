"""Scoring engine for live table tennis matches."""

from . import table_tennis

__all__ = ["table_tennis"]
