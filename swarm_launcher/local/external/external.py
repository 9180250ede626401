import logging
import requests
from pathlib import Path
from typing import Optional, Protocol, Sequence
from swarm_launcher.local import app_globals
from swarm_launcher.local.commands import run_command

log = logging.getLogger(__name__)


class RepositoryFetcher(Protocol):
    def fetch(self, url: str, dest: Path) -> bool: ...


class EnvironmentInstaller(Protocol):
    def install(self, packages: Sequence[str]) -> bool: ...


class SelfHeal(Protocol):
    def run(self) -> bool: ...


class GitRepositoryFetcher:
    """Clones a repository with the system git."""

    def fetch(self, url: str, dest: Path) -> bool:
        log.debug(f"git clone {url} {dest}")
        return run_command(["git", "clone", url, str(dest)])


class AptEnvironmentInstaller:
    """Installs system packages with apt."""

    def __init__(self) -> None:
        self._updated = False

    def install(self, packages: Sequence[str]) -> bool:
        if not packages:
            return True
        if not self._updated:
            # A failed index refresh is not fatal; the install below decides.
            self._updated = run_command(["apt", "update"], sudo=True)
        return run_command(["apt", "install", "-y", *packages], sudo=True)


class RemoteFixupScript:
    """
    Downloads the community fix-up script and runs it with bash.

    Only the script's exit status is observed. A successful run leaves a
    marker file in the install root.
    """

    def __init__(self, url: Optional[str] = None, marker_path: Optional[Path] = None, timeout: Optional[float] = None) -> None:
        self.url = url or app_globals.FIXALL_URL
        self.marker_path = Path(marker_path) if marker_path is not None else app_globals.FIXALL_MARKER_PATH
        self.timeout = timeout or app_globals.HTTP_TIMEOUT

    def _download(self) -> Optional[str]:
        try:
            headers = {"User-Agent": "RL-Swarm-Launcher/1.0"}
            res = requests.get(self.url, timeout=self.timeout, headers=headers)
            res.raise_for_status()
            return res.text
        except requests.RequestException as e:
            log.error(f"Failed to download fix-up script from {self.url}: {e}")
            return None

    def run(self) -> bool:
        log.info("Running fixall.sh")
        script = self._download()
        if script is None:
            log.error("Failed to execute fixall.sh")
            return False

        if not run_command(["bash", "-s"], input_text=script):
            log.error("Failed to execute fixall.sh")
            return False

        try:
            if self.marker_path.parent.is_dir():
                self.marker_path.touch()
        except OSError as e:
            log.debug(f"Could not write fix-up marker '{self.marker_path}': {e}")
        log.info("fixall.sh executed successfully")
        return True
