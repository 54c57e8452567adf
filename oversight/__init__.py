"""Oversight: on-demand repository security scanning for the operator dashboard."""

__version__ = "0.1.0"
