"""Interactive installer and auto-restarting launcher for the Gensyn rl-swarm node."""

__version__ = "1.0.0"
