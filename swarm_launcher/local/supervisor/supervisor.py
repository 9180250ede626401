import signal
import psutil
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional
from swarm_launcher.local import app_globals
from swarm_launcher.log.setup import Colors, colorize
from swarm_launcher.local.config_store import ConfigStore
from swarm_launcher.local.supervisor import process_utils, shutdown
from swarm_launcher.local.supervisor.context import SupervisorContext, SupervisorState

if TYPE_CHECKING:
    from swarm_launcher.local.installer import Installer
    from swarm_launcher.local.swap import SwapManager

log = logging.getLogger(__name__)

# Returned by launch_once when the run script is not there.
EXECUTABLE_MISSING = 127
# Returned by launch_once when the run script exists but could not be started.
LAUNCH_FAILED = 126


class NodeSupervisor:
    """
    Launches the rl-swarm node, answers its startup prompts from the config
    record and, in auto-restart mode, relaunches it until a stop is requested.
    """

    def __init__(
        self,
        installer: "Installer",
        swap_manager: "SwapManager",
        config_store: Optional[ConfigStore] = None,
        context: Optional[SupervisorContext] = None,
        backoff: Optional[float] = None,
        keep_temp_data: bool = False,
        stale_marker: Optional[str] = app_globals.STALE_NODE_MARKER,
    ) -> None:
        """
        :param installer: Provides the install root and the reconciliation step.
        :param swap_manager: Its `remove` is the mandatory cleanup action.
        :param config_store: Source of the node's startup answers.
        :param context: Shared run state. A fresh one is created if omitted.
        :param backoff: Seconds to wait between restarts.
        :param keep_temp_data: Exports KEEP_TEMP_DATA=true to the node.
        :param stale_marker: Command line fragment of leftover node processes
                             to stop before each launch. None disables it.
        """
        self.installer = installer
        self.swap_manager = swap_manager
        self.config_store = config_store or installer.config_store
        self.context = context or SupervisorContext()
        self.backoff = app_globals.RESTART_BACKOFF_SECONDS if backoff is None else backoff
        self.keep_temp_data = keep_temp_data
        self.stale_marker = stale_marker
        self._cleaned_up = False
        self._stopping = False
        self._starting = False
        self._stop_deferred = False

    @property
    def install_root(self) -> Path:
        return self.installer.install_root

    def launch_once(self) -> int:
        """
        Runs the node script to completion.

        :return: The node's exit code, EXECUTABLE_MISSING if the run script
                 does not exist, or LAUNCH_FAILED if it could not be started.
        """
        log.info("Launching rl-swarm")
        run_script = self.install_root / app_globals.RUN_SCRIPT_NAME
        if not run_script.is_file():
            log.error(f"{app_globals.RUN_SCRIPT_NAME} not found")
            return EXECUTABLE_MISSING

        input_lines = None
        if self.config_store.exists():
            record = self.config_store.load()
            log.info(f"Using config: {record.describe()}")
            input_lines = record.as_input_lines()

        env = process_utils.venv_environment(self.install_root, app_globals.VENV_DIR_NAME, self.keep_temp_data)
        # A stop arriving before the child is tracked is handled once it is.
        proc = None
        self._starting = True
        try:
            process_utils.make_executable(run_script)
            proc = process_utils.start_node(run_script, self.install_root, env, input_lines)
            self.context.child = proc
        except OSError as e:
            log.error(f"Failed to start {app_globals.RUN_SCRIPT_NAME}: {e}")
        finally:
            self._starting = False
        if self._stop_deferred:
            self.handle_stop_signal()
        if proc is None:
            return LAUNCH_FAILED

        self.context.transition(SupervisorState.RUNNING)
        log.info(f"rl-swarm started with PID: {proc.pid}")
        try:
            readers = []
            if input_lines is not None:
                readers = process_utils.log_process_output(proc, app_globals.NODE_PROCESS_NAME)
                process_utils.feed_input(proc, input_lines)
            exit_code = proc.wait()
            for reader in readers:
                reader.join(timeout=1)
        finally:
            self.context.child = None

        log.info(f"rl-swarm exited with code {exit_code}")
        return exit_code

    def _stop_stale_nodes(self) -> None:
        if self.stale_marker:
            shutdown.kill_stale_nodes(self.stale_marker)

    def _reconcile(self) -> None:
        self.installer.reconcile()
        self.installer.setup_python_env()

    def run_once(self) -> int:
        """Single-run mode: one launch, no restart and no cleanup."""
        self._stop_stale_nodes()
        return self.launch_once()

    def supervise_loop(self) -> None:
        """
        Auto-restart mode. Relaunches the node after every exit, whatever its
        status, with a reconciliation step and a fixed backoff in between.
        Returns once a stop has been requested; the cleanup always runs.
        """
        log.info("Supervisor started in auto-restart mode")
        try:
            while not self.context.stop_requested.is_set():
                self._stop_stale_nodes()
                self.launch_once()
                if self.context.stop_requested.is_set():
                    break

                self.context.transition(SupervisorState.RECONCILING)
                log.warning(f"rl-swarm exited. Restarting in {self.backoff}s...")
                self._reconcile()
                if self.context.stop_requested.wait(self.backoff):
                    break
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Runs the mandatory cleanup once and marks the supervisor stopped."""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        self.context.transition(SupervisorState.STOPPED)
        self.swap_manager.remove()

    def handle_stop_signal(self, signum: Optional[int] = None, frame=None) -> None:
        """
        Signal handler for the interrupt key. Stops the node if one is running,
        runs the cleanup and exits the launcher with status 0.

        A repeated interrupt while the stop is in progress is ignored, and one
        that lands while the node is being started is replayed once its
        process is tracked.
        """
        if self._stopping:
            log.debug("Stop already in progress, ignoring interrupt")
            return
        self.context.request_stop()
        if self._starting:
            self._stop_deferred = True
            return

        self._stopping = True
        log.info("Stopping script (Ctrl+X)")

        child = self.context.child
        if child is not None:
            try:
                shutdown.terminate_tree(child)
                log.info(f"Terminated node (PID: {child.pid})")
            except psutil.Error as e:
                log.debug(f"Could not terminate node (PID: {child.pid}): {e}")

        print(colorize("Stopped Gracefully", Colors.GREEN))
        self.shutdown()
        raise SystemExit(0)

    def install_signal_handler(self) -> Callable:
        """Routes SIGINT to handle_stop_signal and returns the previous handler."""
        return signal.signal(signal.SIGINT, self.handle_stop_signal)
