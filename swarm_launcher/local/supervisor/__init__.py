"""
The Supervisor package.
Manages the lifecycle of the rl-swarm node process.

This package contains the NodeSupervisor class and its helper modules,
which together handle launching, restarting and stopping the node, and
the run state shared with the stop signal handler.
"""
from .context import SupervisorContext, SupervisorState
from .supervisor import EXECUTABLE_MISSING, LAUNCH_FAILED, NodeSupervisor

__all__ = ['EXECUTABLE_MISSING', 'LAUNCH_FAILED', 'NodeSupervisor', 'SupervisorContext', 'SupervisorState']
