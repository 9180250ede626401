"""
This module initializes the console package, exposing the interactive menu
and the dispatch of individual menu choices.
"""

from .process import execute_choice, run_menu
from .handler import print_menu

__all__ = ["execute_choice", "run_menu", "print_menu"]
