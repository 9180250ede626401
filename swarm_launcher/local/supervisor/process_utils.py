import os
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional

log = logging.getLogger(__name__)


#* --- Node Process ---
def venv_environment(install_root: Path, venv_dir_name: str, keep_temp_data: bool) -> Dict[str, str]:
    """Returns an environment with the node's virtual environment activated."""
    env = dict(os.environ)
    venv_path = install_root / venv_dir_name
    if (venv_path / "bin").is_dir():
        env["VIRTUAL_ENV"] = str(venv_path)
        env["PATH"] = f"{venv_path / 'bin'}{os.pathsep}{env.get('PATH', '')}"
        env.pop("PYTHONHOME", None)
    if keep_temp_data:
        env["KEEP_TEMP_DATA"] = "true"
    return env

def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | 0o111)

def _read_pipe(pipe, process_name: str, level: int, line_handler: Optional[Callable] = None):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            if line_handler:
                line_handler(line)
            else:
                proc_logger.log(level, line)
    except Exception as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()

def log_process_output(process: subprocess.Popen, name: str, line_handler: Optional[Callable] = None) -> List[threading.Thread]:
    """Starts background threads to consume and log a process's stdout/stderr."""
    readers = []
    if process.stdout:
        readers.append(threading.Thread(target=_read_pipe, args=(process.stdout, name, logging.INFO, line_handler), daemon=True))
    if process.stderr:
        readers.append(threading.Thread(target=_read_pipe, args=(process.stderr, name, logging.ERROR), daemon=True))
    for reader in readers:
        reader.start()
    return readers

def start_node(executable: Path, cwd: Path, env: Dict[str, str], input_lines: Optional[List[str]]) -> psutil.Popen:
    """
    Starts the node script.

    With input lines, stdin is a pipe the answers are written to and the
    output is logged through `proc.<name>` loggers. Without them the node
    shares the terminal so its own prompts work.
    """
    if input_lines is None:
        return psutil.Popen([str(executable)], cwd=str(cwd), env=env)

    return psutil.Popen(
        [str(executable)],
        cwd=str(cwd),
        env=env,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )

def feed_input(process: psutil.Popen, input_lines: List[str]) -> None:
    """Writes the answers to the node's stdin and closes it."""
    payload = "".join(f"{line}\n" for line in input_lines).encode("utf-8")
    try:
        process.stdin.write(payload)
        process.stdin.flush()
    except (BrokenPipeError, ValueError) as e:
        log.debug(f"Node closed its input before all answers were written: {e}")
    finally:
        try:
            process.stdin.close()
        except BrokenPipeError:
            pass


#* --- Stale Processes ---
def find_processes_matching(marker: str) -> List[psutil.Process]:
    """Returns processes (other than this one) whose command line mentions `marker`."""
    own_pid = os.getpid()
    matches = []
    for proc in psutil.process_iter(["pid", "cmdline"]):
        try:
            cmdline = proc.info.get("cmdline") or []
            if proc.pid != own_pid and any(marker in part for part in cmdline):
                matches.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return matches
