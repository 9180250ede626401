import logging
from typing import TYPE_CHECKING, Callable
from swarm_launcher.local import app_globals
from swarm_launcher.local.exceptions import ConfigStoreError
from swarm_launcher.log.setup import Colors, colorize

if TYPE_CHECKING:
    from swarm_launcher.local.manager import Launcher

log = logging.getLogger(__name__)

Prompt = Callable[[str], str]


def _success(message: str) -> None:
    print(colorize(message, Colors.GREEN))

def _failure(message: str) -> None:
    print(colorize(message, Colors.RED))

def _notice(message: str) -> None:
    print(colorize(message, Colors.YELLOW))


#* --- Menu Display ---
def print_banner() -> None:
    print(colorize("RL-SWARM LAUNCHER MENU", Colors.BOLD, Colors.CYAN))
    print()

def print_menu() -> None:
    """Prints the option list shown when an existing setup is detected."""
    _notice("Existing Setup Detected!")
    print(colorize("-" * 49, Colors.GREEN))
    print("  1) Auto-Restart Mode   - Run with existing files, restarts on crash")
    print("  2) Single Run          - Run once with existing files")
    print("  3) Fresh Start         - Delete everything and start anew")
    print("  4) Update Config       - Change Swarm type and Parameter count")
    print("  5) Fix Errors          - Run the community fix-up script")
    print("  6) Fix Peer ID Issues  - Delete all key files and start fresh with new keys")
    print(colorize("-" * 49, Colors.GREEN))
    print(colorize("Press Ctrl+X to stop anytime", Colors.CYAN))


#* --- Shared Preparation ---
def _prepare_existing_install(launcher: "Launcher") -> None:
    """Brings an existing installation back to a launchable state."""
    installer = launcher.installer
    installer.import_credential()
    installer.patch_run_script()
    installer.reconcile()
    launcher.self_heal.run()
    installer.ensure_venv_package()
    installer.setup_python_env()


#* --- Menu Options ---
def handle_auto_restart(launcher: "Launcher", prompt: Prompt) -> int:
    """Option 1: launch with existing files and restart on every exit."""
    log.info("Option 1: Auto-restart with existing files")
    launcher.supervisor.keep_temp_data = True
    _prepare_existing_install(launcher)
    launcher.supervisor.supervise_loop()
    return 0

def handle_single_run(launcher: "Launcher", prompt: Prompt) -> int:
    """Option 2: launch once with existing files."""
    log.info("Option 2: Run once with existing files")
    launcher.supervisor.keep_temp_data = True
    _prepare_existing_install(launcher)
    return launcher.supervisor.run_once()

def handle_fresh_start(launcher: "Launcher", prompt: Prompt) -> int:
    """Option 3: wipe the installation and clone it again."""
    log.info("Option 3: Delete and start fresh")
    installer = launcher.installer
    answer = prompt(colorize(f"Do you want to delete {app_globals.CREDENTIAL_FILE_NAME}? (y/n): ", Colors.YELLOW))
    if answer.strip().lower() == "y":
        log.info(f"User chose to delete {app_globals.CREDENTIAL_FILE_NAME}")
        installer.remove_install_root()
        installer.remove_user_data(include_credential=True)
    else:
        log.info(f"User chose to keep {app_globals.CREDENTIAL_FILE_NAME}, copying to home")
        installer.export_credential()
        installer.remove_install_root()
        installer.remove_user_data(include_credential=False)

    installer.clone_repository()
    installer.ensure_venv_package()
    installer.setup_python_env()
    launcher.self_heal.run()

    if installer.home_credential.is_file():
        installer.import_credential()
        log.info(f"Fresh installation completed with {app_globals.CREDENTIAL_FILE_NAME}")
        _success(f"Successfully installed rl-swarm with {app_globals.CREDENTIAL_FILE_NAME} copied to {installer.install_root}!")
    else:
        log.info(f"Fresh installation completed without {app_globals.CREDENTIAL_FILE_NAME}")
        _success(
            f"Successfully installed rl-swarm! Please place {app_globals.CREDENTIAL_FILE_NAME} "
            f"in {installer.home_dir} to proceed with launching."
        )
    return 0

def handle_update_config(launcher: "Launcher", prompt: Prompt) -> int:
    """Option 4: change the swarm type and parameter count."""
    log.info("Option 4: Update configuration")
    print(colorize("Updating Configuration...", Colors.CYAN))
    try:
        current = launcher.config_store.load()
        launcher.config_store.update_interactive(current, prompt)
    except ConfigStoreError:
        log.error("Failed to save config")
        return 1
    _success("Config Updated!")
    return 0

def handle_fix_errors(launcher: "Launcher", prompt: Prompt) -> int:
    """Option 5: run the remote fix-up script."""
    log.info("Option 5: Fix all errors")
    print(colorize("Fixing Errors...", Colors.CYAN))
    if launcher.self_heal.run():
        _success("Errors Fixed!")
    else:
        _failure("Fix Failed. Check Logs.")
    return 0

def handle_reset_identity(launcher: "Launcher", prompt: Prompt) -> int:
    """Option 6: delete every key file so the node gets a new peer ID."""
    log.info("Option 6: Reset all files to fix peer ID issues")
    print(colorize("Deleting all key files to resolve peer ID issues...", Colors.CYAN))
    if launcher.installer.delete_credentials():
        log.info("Deleted swarm.pem, userData.json, and userApiKey.json")
        _success("All files deleted successfully.")
    else:
        log.error("Failed to delete some files")
        _failure("Failed to delete some files. Check logs.")
    _notice(f"Please import {app_globals.CREDENTIAL_FILE_NAME} into {launcher.installer.home_dir}")
    _notice("Then restart the node.")
    return 0


#* --- First Run ---
def handle_first_run(launcher: "Launcher") -> int:
    """Installs from scratch when no previous setup exists, then runs the node once."""
    log.info("No setup found. Starting fresh")
    _success("No Setup Found. Starting Fresh...")
    installer = launcher.installer
    installer.clone_repository()
    installer.setup_python_env()
    launcher.self_heal.run()
    launcher.supervisor.launch_once()
    return 0
