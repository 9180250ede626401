"""
Local package for the RL-Swarm launcher.

This package provides launcher-level global configuration through the
app_globals module, along with the config store, installer, swap manager,
supervisor and console that drive the node.
"""

from .global_config import app_globals

__all__ = ["app_globals"]
