from typing import Dict, Any
import swarm_launcher.settings as default_settings


class GlobalSync:
    """
    A singleton class that houses all launcher configuration.

    It loads every uppercase attribute of `settings.py` as the baseline and
    exposes it both by attribute and through dictionary-like access.
    """

    def __init__(self) -> None:
        """Initializes the settings object from the settings module."""
        self._config: Dict[str, Any] = {}
        self._load_defaults()

    def get(self, item: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return self._config.get(item, default)

    def __getattr__(self, name: str) -> Any:
        """Allows attribute access to settings, raising an AttributeError if not found."""
        config = self.__dict__.get("_config", {})
        if name in config:
            return config[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from settings.py as the baseline."""
        for key in dir(default_settings):
            if key.isupper():
                self._config[key] = getattr(default_settings, key)

    def get_all_settings(self) -> Dict[str, Any]:
        """Returns the entire configuration dictionary."""
        return self._config

# A singleton instance to be imported by other modules
app_globals = GlobalSync()
