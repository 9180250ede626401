import logging
from typing import TYPE_CHECKING, Optional
from swarm_launcher.log.setup import Colors, colorize
from swarm_launcher.local.console.handler import (
    Prompt,
    handle_auto_restart,
    handle_first_run,
    handle_fix_errors,
    handle_fresh_start,
    handle_reset_identity,
    handle_single_run,
    handle_update_config,
    print_banner,
    print_menu,
)

if TYPE_CHECKING:
    from swarm_launcher.local.manager import Launcher

log = logging.getLogger(__name__)

COMMAND_MAP = {
    "1": handle_auto_restart,
    "2": handle_single_run,
    "3": handle_fresh_start,
    "4": handle_update_config,
    "5": handle_fix_errors,
    "6": handle_reset_identity,
}


def execute_choice(choice: str, launcher: "Launcher", prompt: Prompt = input) -> Optional[int]:
    """
    Executes a single menu choice.

    :param choice: The option the user typed.
    :param launcher: The launcher components to act on.
    :param prompt: The function used for follow-up questions.
    :return: The launcher's exit status, or None if the choice was invalid
             and the menu should be shown again.
    """
    log.debug(f"Executing menu choice: {choice!r}")
    handler = COMMAND_MAP.get(choice.strip())
    if handler is None:
        log.error(f"Invalid choice: {choice}")
        return None
    return handler(launcher, prompt)


def run_menu(launcher: "Launcher", prompt: Prompt = input) -> int:
    """
    Shows the menu until a valid option has been executed.

    Each pass re-validates the environment and the swapfile. Without an
    existing setup the menu is skipped and a fresh install is run instead.

    :return: The launcher's exit status.
    """
    while True:
        print_banner()
        log.info("Displaying menu")
        launcher.installer.validate_environment()
        launcher.swap_manager.ensure()

        if not launcher.installer.setup_detected():
            return handle_first_run(launcher)

        print_menu()
        choice = prompt(colorize("Select Option (1-6): ", Colors.BOLD, Colors.YELLOW))
        result = execute_choice(choice, launcher, prompt)
        if result is not None:
            return result
