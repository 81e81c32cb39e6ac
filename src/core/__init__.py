"""
Core utilities shared across the application.
"""

from .logger import resolve_level, setup_logging

__all__ = ["resolve_level", "setup_logging"]
