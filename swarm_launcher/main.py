import os
import sys
import logging

# Basic console logger for messages BEFORE full setup is complete.
# This logger will be replaced by the full setup later.
logging.basicConfig(
    level=logging.WARNING,
    format='%(levelname)s - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("launcher")

import setproctitle
from swarm_launcher.local import app_globals
from swarm_launcher.local.console import run_menu
from swarm_launcher.local.exceptions import ConfigStoreError, SetupError
from swarm_launcher.local.manager import Launcher
from swarm_launcher.local.supervisor import shutdown
from swarm_launcher.log.setup import setup_logging


def main() -> int:
    """The main entry point for the launcher. Returns the process exit status."""
    setproctitle.setproctitle(app_globals.PROCESS_TITLE)
    console_level = logging.DEBUG if app_globals.VERBOSE_LOGGING else logging.INFO
    setup_logging(console_level)
    log.info("Starting GENSYN RL-SWARM LAUNCHER")

    try:
        os.chdir(app_globals.HOME_DIR)
    except OSError as e:
        log.error(f"Could not access {app_globals.HOME_DIR}. Exiting. ({e})")
        return 1

    launcher = Launcher.create()
    try:
        if not launcher.config_store.exists():
            launcher.config_store.load()
    except ConfigStoreError:
        log.error("Failed to create default config")

    saved_terminal = shutdown.remap_interrupt_key()
    launcher.supervisor.install_signal_handler()
    try:
        return run_menu(launcher)
    except SetupError as e:
        log.error(f"Setup failed: {e}")
        return 1
    except EOFError:
        log.warning("Input closed. Exiting.")
        return 0
    finally:
        shutdown.restore_terminal(saved_terminal)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
