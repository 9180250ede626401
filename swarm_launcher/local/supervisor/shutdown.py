import sys
import psutil
import logging
from typing import Iterable, List, Optional
from swarm_launcher.local import app_globals
from swarm_launcher.local.supervisor.process_utils import find_processes_matching

log = logging.getLogger(__name__)

# Ctrl+X, the launcher's interrupt key.
INTERRUPT_KEY = b"\x18"


def _terminate_processes(processes: Iterable[psutil.Process]) -> None:
    """Sends SIGTERM to every process in the list."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to PID {proc.pid}")
            proc.terminate()
        except psutil.NoSuchProcess:
            log.debug(f"Process {proc.pid} no longer exists, skipping termination.")
            continue


def _forceful_kill(processes: list) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    if not processes:
        return

    log.warning(f"{len(processes)} processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process PID {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            continue


def stop_processes(processes: List[psutil.Process], timeout: Optional[float] = None) -> None:
    """
    Terminates processes, waits for them and kills any that remain.

    :param processes: The processes to stop.
    :param timeout: Seconds to wait before killing. Defaults to CHILD_TERMINATE_TIMEOUT.
    """
    if not processes:
        return
    if timeout is None:
        timeout = app_globals.CHILD_TERMINATE_TIMEOUT

    _terminate_processes(processes)
    try:
        _, alive = psutil.wait_procs(processes, timeout=timeout)
    except psutil.NoSuchProcess:
        alive = []
    _forceful_kill(alive)


def terminate_tree(proc: psutil.Process, timeout: Optional[float] = None) -> None:
    """Stops a process together with all of its descendants."""
    try:
        procs = [proc, *proc.children(recursive=True)]
    except psutil.NoSuchProcess:
        log.debug(f"Process {proc.pid} already exited.")
        return
    stop_processes(procs, timeout)


def kill_stale_nodes(marker: Optional[str] = None) -> int:
    """
    Stops node processes left over from a previous run.

    :param marker: The command line fragment identifying node processes.
    :return: The number of processes found.
    """
    marker = marker or app_globals.STALE_NODE_MARKER
    stale = find_processes_matching(marker)
    if stale:
        log.info(f"Stopping {len(stale)} stale node process(es) referencing '{marker}'")
        stop_processes(stale)
    return len(stale)


#* --- Terminal Interrupt Key ---
def remap_interrupt_key() -> Optional[list]:
    """
    Makes Ctrl+X the terminal's interrupt key.

    :return: The previous terminal attributes, or None when stdin is not a terminal.
    """
    try:
        import termios
    except ImportError:
        return None
    if not sys.stdin.isatty():
        return None
    try:
        fd = sys.stdin.fileno()
        original = termios.tcgetattr(fd)
        updated = termios.tcgetattr(fd)
        updated[6][termios.VINTR] = INTERRUPT_KEY
        termios.tcsetattr(fd, termios.TCSANOW, updated)
        log.debug("Interrupt key remapped to Ctrl+X")
        return original
    except (termios.error, OSError, ValueError) as e:
        log.debug(f"Could not remap interrupt key: {e}")
        return None


def restore_terminal(original: Optional[list]) -> None:
    """Restores terminal attributes saved by remap_interrupt_key."""
    if original is None:
        return
    import termios
    try:
        termios.tcsetattr(sys.stdin.fileno(), termios.TCSANOW, original)
    except (termios.error, OSError, ValueError) as e:
        log.debug(f"Could not restore terminal settings: {e}")
