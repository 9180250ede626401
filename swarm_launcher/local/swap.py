import logging
from pathlib import Path
from typing import Optional
from swarm_launcher.local import app_globals
from swarm_launcher.local.commands import run_command

log = logging.getLogger(__name__)


class SwapManager:
    """Provisions and removes the swapfile the node runs with."""

    def __init__(self, swap_file: Optional[Path] = None, size: Optional[str] = None, fstab_path: Optional[Path] = None) -> None:
        self.swap_file = Path(swap_file) if swap_file is not None else app_globals.SWAP_FILE
        self.size = size or app_globals.SWAP_SIZE
        self.fstab_path = Path(fstab_path) if fstab_path is not None else app_globals.FSTAB_PATH

    def exists(self) -> bool:
        return self.swap_file.exists()

    def ensure(self) -> bool:
        """
        Creates and enables the swapfile if it is missing.

        :return: True if the swapfile is in place, False if setup failed.
        """
        if self.exists():
            return True

        swap = str(self.swap_file)
        steps = [
            ["fallocate", "-l", self.size, swap],
            ["chmod", "600", swap],
            ["mkswap", swap],
            ["swapon", swap],
        ]
        ok = all(run_command(step, sudo=True) for step in steps)
        ok = ok and run_command(
            ["tee", "-a", str(self.fstab_path)],
            sudo=True,
            input_text=f"{swap} none swap sw 0 0\n",
        )
        if not ok:
            log.warning("Failed to enable swapfile")
            return False
        log.info(f"Swapfile of {self.size} enabled at {swap}")
        return True

    def remove(self) -> None:
        """Disables and deletes the swapfile and drops its fstab entry."""
        log.info(f"Removing swapfile at {self.swap_file}")
        if not self.exists():
            log.info("No swapfile found")
            return

        swap = str(self.swap_file)
        if run_command(["swapoff", swap], sudo=True):
            log.info("Swapfile disabled")
        else:
            log.warning("Failed to disable swapfile")

        if run_command(["rm", "-f", swap], sudo=True):
            log.info("Swapfile removed")
        else:
            log.error("Failed to remove swapfile")

        if run_command(["sed", "-i", f"\\|{swap}|d", str(self.fstab_path)], sudo=True):
            log.info(f"Removed swapfile entry from {self.fstab_path}")
        else:
            log.warning(f"Failed to remove swapfile entry from {self.fstab_path}")
