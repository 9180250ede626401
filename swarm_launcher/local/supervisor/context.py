import enum
import logging
import threading
from typing import Optional
import psutil

log = logging.getLogger(__name__)


class SupervisorState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    RECONCILING = "reconciling"
    STOPPED = "stopped"


class SupervisorContext:
    """
    Run state shared between the supervise loop and the stop signal handler.

    `stop_requested` is only ever set, never cleared, so reading it from the
    handler and the loop needs no lock. `child` is None whenever no node
    process is running.
    """

    def __init__(self) -> None:
        self.stop_requested = threading.Event()
        self.child: Optional[psutil.Popen] = None
        self.state = SupervisorState.IDLE

    @property
    def child_pid(self) -> int:
        """The tracked child's PID, or 0 when there is none."""
        child = self.child
        return child.pid if child is not None else 0

    def request_stop(self) -> None:
        self.stop_requested.set()

    def transition(self, new_state: SupervisorState) -> None:
        """Moves to a new state. STOPPED is terminal and is never left."""
        if self.state is SupervisorState.STOPPED:
            return
        log.debug(f"Supervisor state: {self.state.value} -> {new_state.value}")
        self.state = new_state
