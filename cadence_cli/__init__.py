"""Cadence - bounded interval jobs against a remote HTTP service."""

__app_name__ = "cadence"
__version__ = "0.1.0"
