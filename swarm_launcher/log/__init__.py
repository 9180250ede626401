"""
Logging module for the launcher.
This module provides functionality to set up console and file logging.
"""

from .setup import Colors, colorize, setup_logging

__all__ = ["Colors", "colorize", "setup_logging"]
