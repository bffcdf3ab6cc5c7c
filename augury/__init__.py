"""Augury: round-based settlement engine for forecast prediction markets."""

__version__ = "0.1.0"
__author__ = "Augury Team"

__all__ = ["__version__", "__author__"]
