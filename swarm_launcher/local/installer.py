import os
import sys
import shutil
import logging
from pathlib import Path
from typing import List, Optional
from swarm_launcher.local import app_globals
from swarm_launcher.local.commands import command_exists, run_command
from swarm_launcher.local.config_store import ConfigStore, SwarmConfig
from swarm_launcher.local.exceptions import SetupError
from swarm_launcher.local.external import (
    AptEnvironmentInstaller,
    EnvironmentInstaller,
    GitRepositoryFetcher,
    RepositoryFetcher,
)
from swarm_launcher.local.swap import SwapManager

log = logging.getLogger(__name__)

CREDENTIAL_FILE_MODE = 0o600
INSTALL_ROOT_MODE = 0o700


class Installer:
    """
    Owns the local rl-swarm installation: the cloned repository, its
    virtual environment, the patched run script and the identity files.
    """

    def __init__(
        self,
        install_root: Optional[Path] = None,
        home_dir: Optional[Path] = None,
        fetcher: Optional[RepositoryFetcher] = None,
        env_installer: Optional[EnvironmentInstaller] = None,
        swap_manager: Optional[SwapManager] = None,
        config_store: Optional[ConfigStore] = None,
    ) -> None:
        self.install_root = Path(install_root) if install_root is not None else app_globals.SWARM_DIR
        self.home_dir = Path(home_dir) if home_dir is not None else app_globals.HOME_DIR
        self.fetcher = fetcher or GitRepositoryFetcher()
        self.env_installer = env_installer or AptEnvironmentInstaller()
        self.swap_manager = swap_manager or SwapManager()
        self.config_store = config_store or ConfigStore(self.install_root / app_globals.CONFIG_FILE.name)

    #* --- Paths ---
    @property
    def run_script(self) -> Path:
        return self.install_root / app_globals.RUN_SCRIPT_NAME

    @property
    def venv_dir(self) -> Path:
        return self.install_root / app_globals.VENV_DIR_NAME

    @property
    def home_credential(self) -> Path:
        return self.home_dir / app_globals.CREDENTIAL_FILE_NAME

    @property
    def installed_credential(self) -> Path:
        return self.install_root / app_globals.CREDENTIAL_FILE_NAME

    @property
    def temp_data_dir(self) -> Path:
        return self.install_root / "modal-login" / "temp-data"

    def home_user_data_files(self) -> List[Path]:
        return [self.home_dir / name for name in app_globals.USER_DATA_FILE_NAMES]

    def setup_detected(self) -> bool:
        """True if a previous checkout or any identity file is present."""
        candidates = [self.run_script, self.home_credential, *self.home_user_data_files()]
        return any(p.is_file() for p in candidates)

    #* --- System Dependencies ---
    def validate_environment(self) -> None:
        """
        Installs git, python3 and the venv module when they are missing.

        :raises SetupError: If the missing packages could not be installed.
        """
        log.info("Validating and installing environment dependencies")
        missing = [package for command, package in app_globals.REQUIRED_COMMANDS.items() if not command_exists(command)]
        python = shutil.which("python3") or sys.executable
        if not run_command([python, "-m", "venv", "--help"]):
            missing.append(app_globals.VENV_PROBE_PACKAGE)

        if missing:
            log.info(f"Installing missing dependencies: {' '.join(missing)}")
            if not self.env_installer.install(missing):
                log.error("Failed to install dependencies")
                raise SetupError(f"Failed to install dependencies: {', '.join(missing)}")
            log.info("Installed dependencies")
        log.info("Environment validated")

    def ensure_venv_package(self) -> bool:
        """Installs the distribution's venv package if no venv exists yet."""
        if self.venv_dir.is_dir():
            return True
        ok = self.env_installer.install([app_globals.VENV_PACKAGE])
        if not ok:
            log.warning(f"Failed to install {app_globals.VENV_PACKAGE}")
        return ok

    #* --- Repository ---
    def clone_repository(self) -> None:
        """
        Replaces the install root with a fresh clone and writes the default config.

        :raises SetupError: If the clone failed.
        """
        log.info(f"Cloning rl-swarm to {self.install_root}")
        shutil.rmtree(self.install_root, ignore_errors=True)
        if not self.fetcher.fetch(app_globals.REPO_URL, self.install_root):
            log.error("Failed to clone repository")
            raise SetupError(f"Failed to clone {app_globals.REPO_URL}")

        log.info("Repository cloned")
        self._restrict_permissions(self.install_root)
        self.patch_run_script()
        self.config_store.save(SwarmConfig())
        log.info("Default config created")

    @staticmethod
    def _restrict_permissions(root: Path) -> None:
        """chmod -R 700 on the install root."""
        for dirpath, dirnames, filenames in os.walk(root):
            for name in dirnames + filenames:
                path = os.path.join(dirpath, name)
                if not os.path.islink(path):
                    os.chmod(path, INSTALL_ROOT_MODE)
        os.chmod(root, INSTALL_ROOT_MODE)

    def patch_run_script(self) -> bool:
        """
        Makes the run script keep the login temp data when KEEP_TEMP_DATA=true.

        :return: True if the script was modified by this call.
        """
        if not self.run_script.is_file():
            return False

        content = self.run_script.read_text()
        if app_globals.TEMP_DATA_GUARD_LINE in content:
            log.info(f"{app_globals.RUN_SCRIPT_NAME} already modified")
            return False

        cleanup = app_globals.TEMP_DATA_CLEANUP_LINE
        if cleanup not in content:
            log.debug(f"Temp data cleanup line not found in {app_globals.RUN_SCRIPT_NAME}")
            return False

        guarded = f"{app_globals.TEMP_DATA_GUARD_LINE}\n    {cleanup}\nfi"
        self.run_script.write_text(content.replace(cleanup, guarded))
        log.info(f"Modified {app_globals.RUN_SCRIPT_NAME} to conditionally delete temp data")
        return True

    #* --- Python Environment ---
    def venv_intact(self) -> bool:
        return (self.venv_dir / "bin" / "activate").is_file()

    def setup_python_env(self) -> None:
        """
        Creates the node's virtual environment and installs its requirements.

        :raises SetupError: If the install root is missing or the venv could not be created.
        """
        log.info("Setting up Python environment")
        if not self.install_root.is_dir():
            log.error(f"Could not access {self.install_root}")
            raise SetupError(f"Could not access {self.install_root}")

        if not self.venv_dir.is_dir():
            python = shutil.which("python3") or sys.executable
            if not run_command([python, "-m", "venv", str(self.venv_dir)], cwd=self.install_root):
                log.error("Failed to create venv")
                raise SetupError(f"Failed to create virtual environment at {self.venv_dir}")
            log.info("Created virtual environment")

        requirements = self.install_root / app_globals.REQUIREMENTS_FILE_NAME
        if requirements.is_file():
            pip = self.venv_dir / "bin" / "pip"
            if run_command([str(pip), "install", "-r", str(requirements)], cwd=self.install_root):
                log.info("Installed dependencies")
            else:
                log.warning("Failed to install node requirements")

    #* --- Reconciliation ---
    def reconcile(self) -> None:
        """Re-verifies the installation and repairs whatever is missing."""
        log.info("Running auto-fix")
        if not self.install_root.is_dir() or not self.run_script.is_file():
            self.clone_repository()
        self.patch_run_script()
        if not self.venv_intact():
            shutil.rmtree(self.venv_dir, ignore_errors=True)
            self.setup_python_env()
        self.swap_manager.ensure()
        log.info("Auto-fix completed")

    #* --- Identity Files ---
    def _copy_credential(self, source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        os.chmod(target, CREDENTIAL_FILE_MODE)

    def import_credential(self) -> None:
        """
        Copies swarm.pem from the home directory into the install root.

        :raises SetupError: If there is no swarm.pem in the home directory.
        """
        if not self.home_credential.is_file():
            log.error(f"{app_globals.CREDENTIAL_FILE_NAME} not found in {self.home_dir}")
            raise SetupError(f"Place {app_globals.CREDENTIAL_FILE_NAME} in {self.home_dir} first")
        self._copy_credential(self.home_credential, self.installed_credential)
        log.info(f"Copied {app_globals.CREDENTIAL_FILE_NAME} to {self.install_root}")

    def export_credential(self) -> None:
        """
        Copies swarm.pem from the install root back to the home directory.

        :raises SetupError: If the install root holds no swarm.pem.
        """
        if not self.installed_credential.is_file():
            log.error(f"{app_globals.CREDENTIAL_FILE_NAME} not found in {self.install_root}")
            raise SetupError(f"No {app_globals.CREDENTIAL_FILE_NAME} in {self.install_root} to keep")
        self._copy_credential(self.installed_credential, self.home_credential)
        log.info(f"Copied {app_globals.CREDENTIAL_FILE_NAME} to {self.home_dir}")

    def _remove_files(self, paths: List[Path]) -> bool:
        all_ok = True
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.debug(f"Could not delete '{path}' directly ({e}), retrying with sudo")
                if not run_command(["rm", "-f", str(path)], sudo=True):
                    all_ok = False
        return all_ok

    def remove_user_data(self, include_credential: bool) -> bool:
        """Deletes the login data in the home directory, and optionally swarm.pem."""
        paths = self.home_user_data_files()
        if include_credential:
            paths.append(self.home_credential)
        return self._remove_files(paths)

    def delete_credentials(self) -> bool:
        """
        Deletes every identity file so the node registers a new peer ID.

        :return: True if all files are gone.
        """
        paths = [
            self.home_credential,
            *self.home_user_data_files(),
            self.installed_credential,
            *(self.temp_data_dir / name for name in app_globals.USER_DATA_FILE_NAMES),
        ]
        return self._remove_files(paths)

    def remove_install_root(self) -> None:
        shutil.rmtree(self.install_root, ignore_errors=True)
