import os
import stat
import pathlib
import tempfile
import unittest
from unittest import mock

from swarm_launcher.local import installer as installer_module
from swarm_launcher.local.config_store import ConfigStore, SwarmConfig
from swarm_launcher.local.exceptions import SetupError
from swarm_launcher.local.installer import Installer

CLEANUP_LINE = "rm -r $ROOT_DIR/modal-login/temp-data/*.json 2> /dev/null || true"


class FakeFetcher:
    """Creates a minimal checkout instead of cloning."""

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.calls = []

    def fetch(self, url, dest):
        self.calls.append((url, dest))
        if not self.succeed:
            return False
        dest.mkdir(parents=True)
        (dest / "run_rl_swarm.sh").write_text(f"#!/bin/bash\n{CLEANUP_LINE}\n./start\n")
        return True


class InstallerTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.home = pathlib.Path(self._tmp.name)
        self.root = self.home / "rl-swarm"
        self.fetcher = FakeFetcher()
        self.env_installer = mock.Mock()
        self.swap = mock.Mock()
        self.store = ConfigStore(self.root / ".swarm_config")
        self.installer = Installer(
            install_root=self.root,
            home_dir=self.home,
            fetcher=self.fetcher,
            env_installer=self.env_installer,
            swap_manager=self.swap,
            config_store=self.store,
        )

    def tearDown(self):
        self._tmp.cleanup()

    def make_checkout(self, with_venv=True):
        self.root.mkdir()
        (self.root / "run_rl_swarm.sh").write_text(f"#!/bin/bash\n{CLEANUP_LINE}\n")
        if with_venv:
            (self.root / ".venv" / "bin").mkdir(parents=True)
            (self.root / ".venv" / "bin" / "activate").write_text("")


class PatchRunScriptTests(InstallerTestCase):
    def test_guard_is_added_once(self):
        self.make_checkout()
        self.assertTrue(self.installer.patch_run_script())
        patched = self.installer.run_script.read_text()
        self.assertIn('if [ "$KEEP_TEMP_DATA" != "true" ]; then\n    ' + CLEANUP_LINE + "\nfi", patched)

        self.assertFalse(self.installer.patch_run_script())
        self.assertEqual(self.installer.run_script.read_text(), patched)

    def test_missing_script_is_ignored(self):
        self.assertFalse(self.installer.patch_run_script())


class CloneTests(InstallerTestCase):
    def test_clone_writes_default_config_and_patches(self):
        self.installer.clone_repository()
        self.assertEqual(self.store.load(), SwarmConfig())
        self.assertIn("KEEP_TEMP_DATA", self.installer.run_script.read_text())
        self.assertEqual(stat.S_IMODE(os.stat(self.root).st_mode), 0o700)

    def test_clone_replaces_existing_root(self):
        self.root.mkdir()
        (self.root / "stale.txt").write_text("old")
        self.installer.clone_repository()
        self.assertFalse((self.root / "stale.txt").exists())

    def test_failed_clone_is_fatal(self):
        self.installer.fetcher = FakeFetcher(succeed=False)
        with self.assertRaises(SetupError):
            self.installer.clone_repository()


class ReconcileTests(InstallerTestCase):
    def test_intact_install_is_left_alone(self):
        self.make_checkout()
        with mock.patch.object(self.installer, "setup_python_env") as setup_env:
            self.installer.reconcile()
        self.assertEqual(self.fetcher.calls, [])
        setup_env.assert_not_called()
        self.swap.ensure.assert_called_once_with()

    def test_missing_script_triggers_clone(self):
        self.root.mkdir()
        with mock.patch.object(self.installer, "setup_python_env"):
            self.installer.reconcile()
        self.assertEqual(len(self.fetcher.calls), 1)

    def test_broken_venv_is_rebuilt(self):
        self.make_checkout(with_venv=False)
        (self.root / ".venv").mkdir()
        with mock.patch.object(self.installer, "setup_python_env") as setup_env:
            self.installer.reconcile()
        setup_env.assert_called_once_with()
        self.assertFalse((self.root / ".venv").exists())


class PythonEnvTests(InstallerTestCase):
    def test_missing_root_is_fatal(self):
        with self.assertRaises(SetupError):
            self.installer.setup_python_env()

    def test_failed_venv_creation_is_fatal(self):
        self.make_checkout(with_venv=False)
        with mock.patch.object(installer_module, "run_command", return_value=False):
            with self.assertRaises(SetupError):
                self.installer.setup_python_env()

    def test_requirements_failure_is_only_a_warning(self):
        self.make_checkout()
        (self.root / "requirements.txt").write_text("torch\n")
        with mock.patch.object(installer_module, "run_command", return_value=False):
            with self.assertLogs("swarm_launcher.local.installer", level="WARNING"):
                self.installer.setup_python_env()


class EnvironmentValidationTests(InstallerTestCase):
    def test_missing_commands_are_installed(self):
        self.env_installer.install.return_value = True
        with mock.patch.object(installer_module, "command_exists", side_effect=lambda name: name != "git"), \
                mock.patch.object(installer_module, "run_command", return_value=True):
            self.installer.validate_environment()
        self.env_installer.install.assert_called_once_with(["git"])

    def test_failed_install_is_fatal(self):
        self.env_installer.install.return_value = False
        with mock.patch.object(installer_module, "command_exists", return_value=False), \
                mock.patch.object(installer_module, "run_command", return_value=False):
            with self.assertRaises(SetupError):
                self.installer.validate_environment()
        self.env_installer.install.assert_called_once_with(["git", "python3", "python3-venv"])

    def test_nothing_missing_installs_nothing(self):
        with mock.patch.object(installer_module, "command_exists", return_value=True), \
                mock.patch.object(installer_module, "run_command", return_value=True):
            self.installer.validate_environment()
        self.env_installer.install.assert_not_called()


class CredentialTests(InstallerTestCase):
    def test_import_requires_credential_in_home(self):
        with self.assertRaises(SetupError):
            self.installer.import_credential()

    def test_import_copies_owner_only(self):
        (self.home / "swarm.pem").write_text("key")
        self.installer.import_credential()
        copied = self.root / "swarm.pem"
        self.assertEqual(copied.read_text(), "key")
        self.assertEqual(stat.S_IMODE(os.stat(copied).st_mode), 0o600)

    def test_export_copies_back_to_home(self):
        self.make_checkout()
        (self.root / "swarm.pem").write_text("key")
        self.installer.export_credential()
        self.assertEqual((self.home / "swarm.pem").read_text(), "key")

    def test_delete_credentials_removes_every_identity_file(self):
        self.make_checkout()
        temp_data = self.root / "modal-login" / "temp-data"
        temp_data.mkdir(parents=True)
        files = [
            self.home / "swarm.pem",
            self.home / "userData.json",
            self.home / "userApiKey.json",
            self.root / "swarm.pem",
            temp_data / "userData.json",
            temp_data / "userApiKey.json",
        ]
        for path in files:
            path.write_text("x")

        self.assertTrue(self.installer.delete_credentials())
        self.assertFalse(any(path.exists() for path in files))

    def test_remove_user_data_can_keep_credential(self):
        (self.home / "swarm.pem").write_text("key")
        (self.home / "userData.json").write_text("{}")
        self.installer.remove_user_data(include_credential=False)
        self.assertTrue((self.home / "swarm.pem").exists())
        self.assertFalse((self.home / "userData.json").exists())

    def test_setup_detected(self):
        self.assertFalse(self.installer.setup_detected())
        (self.home / "userApiKey.json").write_text("{}")
        self.assertTrue(self.installer.setup_detected())


if __name__ == "__main__":
    unittest.main()
