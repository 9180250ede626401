import os
import shutil
import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

log = logging.getLogger(__name__)


def needs_sudo() -> bool:
    """True when privileged commands must be prefixed with sudo."""
    return os.geteuid() != 0 and shutil.which("sudo") is not None

def privileged(args: Sequence[str]) -> List[str]:
    """Prefixes a command with sudo if the launcher is not running as root."""
    return ["sudo", *args] if needs_sudo() else list(args)

def command_exists(name: str) -> bool:
    """A wrapper for shutil.which for easy testing/mocking if needed."""
    return shutil.which(name) is not None

def run_command(
    args: Sequence[str],
    sudo: bool = False,
    cwd: Optional[Path] = None,
    input_text: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> bool:
    """
    Runs a helper command to completion with its output discarded.

    :param args: The command and its arguments.
    :param sudo: If True, the command is run through sudo when needed.
    :param cwd: Optional working directory.
    :param input_text: Optional text written to the command's stdin.
    :param env: Optional environment for the command.
    :return: True if the command exited with status 0.
    """
    cmd = privileged(args) if sudo else list(args)
    log.debug(f"Running command: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            input=input_text,
            text=True,
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as e:
        log.debug(f"Could not run '{cmd[0]}': {e}")
        return False
    if result.returncode != 0:
        log.debug(f"Command '{' '.join(cmd)}' exited with {result.returncode}: {(result.stderr or '').strip()}")
        return False
    return True
