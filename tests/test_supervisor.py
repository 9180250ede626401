import os
import signal
import pathlib
import tempfile
import threading
import unittest
import uuid
from unittest import mock

import psutil

from swarm_launcher.local.config_store import ConfigStore, SwarmConfig
from swarm_launcher.local.supervisor import (
    EXECUTABLE_MISSING,
    NodeSupervisor,
    SupervisorContext,
    SupervisorState,
)
from swarm_launcher.local.supervisor import process_utils, shutdown


def write_script(path: pathlib.Path, body: str) -> pathlib.Path:
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755)
    return path


class SupervisorTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._tmp.name)
        self.store = ConfigStore(self.root / ".swarm_config")
        self.installer = mock.Mock()
        self.installer.install_root = self.root
        self.swap = mock.Mock()
        self.supervisor = NodeSupervisor(
            self.installer,
            self.swap,
            config_store=self.store,
            backoff=0,
            stale_marker=None,
        )

    def tearDown(self):
        self._tmp.cleanup()


class LaunchOnceTests(SupervisorTestCase):
    def test_missing_script_returns_distinguished_status(self):
        with mock.patch.object(process_utils, "start_node") as start_node:
            code = self.supervisor.launch_once()
        self.assertEqual(code, EXECUTABLE_MISSING)
        start_node.assert_not_called()

    def test_feeds_config_lines_and_returns_exit_code(self):
        write_script(self.root / "run_rl_swarm.sh", 'cat > received.txt\nexit 3')
        self.store.save(SwarmConfig(swarm_variant="B", parameter_count="32"))

        code = self.supervisor.launch_once()

        self.assertEqual(code, 3)
        self.assertEqual((self.root / "received.txt").read_text(), "Y\nB\n32\nN\n")
        self.assertIsNone(self.supervisor.context.child)

    def test_runs_without_input_when_no_config(self):
        write_script(self.root / "run_rl_swarm.sh", 'pwd > cwd.txt\nexit 5')

        code = self.supervisor.launch_once()

        self.assertEqual(code, 5)
        self.assertFalse(self.store.exists())
        self.assertEqual(
            pathlib.Path((self.root / "cwd.txt").read_text().strip()).resolve(),
            self.root.resolve(),
        )

    def test_script_is_made_executable(self):
        script = self.root / "run_rl_swarm.sh"
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o644)
        self.assertEqual(self.supervisor.launch_once(), 0)

    def test_keep_temp_data_is_exported(self):
        write_script(self.root / "run_rl_swarm.sh", 'echo "$KEEP_TEMP_DATA" > env.txt')
        self.supervisor.keep_temp_data = True
        self.supervisor.launch_once()
        self.assertEqual((self.root / "env.txt").read_text().strip(), "true")


class SuperviseLoopTests(SupervisorTestCase):
    def test_restarts_until_stop_then_cleans_up_once(self):
        write_script(self.root / "run_rl_swarm.sh", 'echo run >> runs.txt\nexit 1')
        reconciles = []

        def reconcile():
            reconciles.append(1)
            if len(reconciles) == 3:
                self.supervisor.context.request_stop()

        self.installer.reconcile.side_effect = reconcile

        self.supervisor.supervise_loop()

        runs = (self.root / "runs.txt").read_text().splitlines()
        self.assertEqual(len(runs), 3)
        self.swap.remove.assert_called_once_with()
        self.assertEqual(self.supervisor.context.state, SupervisorState.STOPPED)

    def test_no_launch_when_stop_already_requested(self):
        with mock.patch.object(self.supervisor, "launch_once") as launch_once:
            self.supervisor.context.request_stop()
            self.supervisor.supervise_loop()
        launch_once.assert_not_called()
        self.swap.remove.assert_called_once_with()

    def test_success_and_failure_exits_are_treated_alike(self):
        codes = iter([0, 1, 0])

        def launch():
            code = next(codes)
            if code == 0 and self.installer.reconcile.call_count == 2:
                self.supervisor.context.request_stop()
            return code

        with mock.patch.object(self.supervisor, "launch_once", side_effect=launch) as launch_once:
            self.supervisor.supervise_loop()
        self.assertEqual(launch_once.call_count, 3)
        self.assertEqual(self.installer.reconcile.call_count, 2)
        self.assertEqual(self.installer.setup_python_env.call_count, 2)

    def test_cleanup_runs_when_reconciliation_fails(self):
        self.installer.reconcile.side_effect = RuntimeError("boom")
        with mock.patch.object(self.supervisor, "launch_once", return_value=0):
            with self.assertRaises(RuntimeError):
                self.supervisor.supervise_loop()
        self.swap.remove.assert_called_once_with()


class StopSignalTests(SupervisorTestCase):
    def test_handler_without_child_exits_zero(self):
        self.assertEqual(self.supervisor.context.child_pid, 0)
        with mock.patch("builtins.print"):
            with self.assertRaises(SystemExit) as exit_info:
                self.supervisor.handle_stop_signal()
        self.assertEqual(exit_info.exception.code, 0)
        self.assertTrue(self.supervisor.context.stop_requested.is_set())
        self.swap.remove.assert_called_once_with()
        self.assertEqual(self.supervisor.context.state, SupervisorState.STOPPED)

    def test_cleanup_is_not_repeated(self):
        with mock.patch("builtins.print"):
            with self.assertRaises(SystemExit):
                self.supervisor.handle_stop_signal()
        self.supervisor.shutdown()
        self.supervisor.supervise_loop()
        self.swap.remove.assert_called_once_with()

    def test_handler_terminates_running_child(self):
        child = psutil.Popen(["sleep", "30"])
        self.addCleanup(lambda: child.poll() is None and child.kill())
        self.supervisor.context.child = child

        with mock.patch("builtins.print"):
            with self.assertRaises(SystemExit):
                self.supervisor.handle_stop_signal()

        child.wait(timeout=5)
        self.assertIsNotNone(child.poll())

    def test_repeated_interrupt_does_not_cut_cleanup_short(self):
        steps = []

        def remove():
            steps.append("swapoff")
            self.supervisor.handle_stop_signal()
            steps.append("rm swapfile")
            steps.append("fstab")

        self.swap.remove.side_effect = remove
        with mock.patch("builtins.print"):
            with self.assertRaises(SystemExit) as exit_info:
                self.supervisor.handle_stop_signal()

        self.assertEqual(exit_info.exception.code, 0)
        self.assertEqual(steps, ["swapoff", "rm swapfile", "fstab"])
        self.swap.remove.assert_called_once_with()

    def test_interrupt_while_starting_stops_new_child(self):
        write_script(self.root / "run_rl_swarm.sh", "exec sleep 30")
        started = []
        real_start_node = process_utils.start_node

        def start_node(*args):
            self.supervisor.handle_stop_signal()
            proc = real_start_node(*args)
            started.append(proc)
            self.addCleanup(lambda: proc.poll() is None and proc.kill())
            return proc

        with mock.patch.object(process_utils, "start_node", side_effect=start_node):
            with mock.patch("builtins.print"):
                with self.assertRaises(SystemExit) as exit_info:
                    self.supervisor.supervise_loop()

        self.assertEqual(exit_info.exception.code, 0)
        self.assertEqual(len(started), 1)
        started[0].wait(timeout=5)
        self.assertIsNotNone(started[0].poll())
        self.swap.remove.assert_called_once_with()
        self.assertEqual(self.supervisor.context.state, SupervisorState.STOPPED)


class InterruptSignalTests(SupervisorTestCase):
    def setUp(self):
        super().setUp()
        self.addCleanup(signal.signal, signal.SIGINT, signal.getsignal(signal.SIGINT))

    def test_sigint_mid_run_stops_node_and_exits_zero(self):
        write_script(self.root / "run_rl_swarm.sh", "echo $$ > pid.txt\nexec sleep 30")
        self.supervisor.install_signal_handler()
        timer = threading.Timer(1.0, os.kill, args=(os.getpid(), signal.SIGINT))
        self.addCleanup(timer.cancel)

        timer.start()
        with mock.patch("builtins.print"):
            with self.assertRaises(SystemExit) as exit_info:
                self.supervisor.supervise_loop()

        self.assertEqual(exit_info.exception.code, 0)
        self.swap.remove.assert_called_once_with()
        self.assertEqual(self.supervisor.context.state, SupervisorState.STOPPED)

        pid = int((self.root / "pid.txt").read_text())
        try:
            self.assertEqual(psutil.Process(pid).status(), psutil.STATUS_ZOMBIE)
        except psutil.NoSuchProcess:
            pass


class StaleNodeTests(unittest.TestCase):
    def test_processes_with_marker_are_stopped(self):
        marker = f"stale-node-{uuid.uuid4().hex}"
        stale = psutil.Popen(["sh", "-c", "sleep 5; true", marker])
        self.addCleanup(lambda: stale.poll() is None and stale.kill())

        self.assertEqual(shutdown.kill_stale_nodes(marker), 1)
        stale.wait(timeout=5)
        self.assertIsNotNone(stale.poll())

    def test_nothing_to_stop(self):
        self.assertEqual(shutdown.kill_stale_nodes(f"absent-{uuid.uuid4().hex}"), 0)


class ContextTests(unittest.TestCase):
    def test_stopped_is_terminal(self):
        context = SupervisorContext()
        self.assertEqual(context.state, SupervisorState.IDLE)
        context.transition(SupervisorState.STOPPED)
        context.transition(SupervisorState.RUNNING)
        self.assertEqual(context.state, SupervisorState.STOPPED)


if __name__ == "__main__":
    unittest.main()
