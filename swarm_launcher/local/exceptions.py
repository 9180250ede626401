"""Custom exceptions for the swarm_launcher package."""

class LauncherError(Exception):
    """Base exception for launcher errors."""
    pass

class SetupError(LauncherError):
    """Raised for unrecoverable setup failures. The launcher exits with status 1."""
    pass

class ConfigStoreError(LauncherError):
    """Raised when the node configuration file could not be written."""
    pass
