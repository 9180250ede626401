import os
import logging
from pathlib import Path
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional
from swarm_launcher.local import app_globals
from swarm_launcher.local.exceptions import ConfigStoreError

log = logging.getLogger(__name__)

CONFIG_FILE_MODE = 0o600


@dataclass(frozen=True)
class SwarmConfig:
    """The four answers the node asks for on startup, in prompt order."""
    network_mode: str = app_globals.NETWORK_MODE_FIXED
    swarm_variant: str = app_globals.DEFAULT_SWARM_VARIANT
    parameter_count: str = app_globals.DEFAULT_PARAMETER_COUNT
    publish_flag: str = app_globals.PUBLISH_FLAG_FIXED

    def as_input_lines(self) -> List[str]:
        return [self.network_mode, self.swarm_variant, self.parameter_count, self.publish_flag]

    def to_text(self) -> str:
        return (
            f"{app_globals.NETWORK_MODE_KEY}={self.network_mode}\n"
            f"{app_globals.SWARM_VARIANT_KEY}={self.swarm_variant}\n"
            f"{app_globals.PARAMETER_COUNT_KEY}={self.parameter_count}\n"
            f"{app_globals.PUBLISH_FLAG_KEY}={self.publish_flag}\n"
        )

    def describe(self) -> str:
        return (
            f"Testnet={self.network_mode}, Swarm={self.swarm_variant}, "
            f"Param={self.parameter_count}, Push={self.publish_flag}"
        )


def _field_keys() -> Dict[str, str]:
    return {
        app_globals.NETWORK_MODE_KEY: "network_mode",
        app_globals.SWARM_VARIANT_KEY: "swarm_variant",
        app_globals.PARAMETER_COUNT_KEY: "parameter_count",
        app_globals.PUBLISH_FLAG_KEY: "publish_flag",
    }


def parse_config_text(text: str) -> SwarmConfig:
    """
    Parses KEY=VALUE lines into a record.

    Blank lines, comments and unknown keys are ignored. Keys missing from the
    text keep their default value.

    :param text: The raw file content.
    :return: The parsed SwarmConfig.
    """
    keys = _field_keys()
    values: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key in keys:
            values[keys[key]] = value
        else:
            log.debug(f"Ignoring unknown config key '{key}'")

    missing = [key for key, field in keys.items() if field not in values]
    if missing:
        log.warning(f"Config is missing {', '.join(missing)}; using defaults for them.")
    return SwarmConfig(**values)


def normalize_swarm_variant(value: str) -> Optional[str]:
    """Returns the canonical swarm tag, or None if it is not a known variant."""
    candidate = value.strip().upper()
    return candidate if candidate in app_globals.SWARM_VARIANTS else None


def normalize_parameter_count(value: str) -> Optional[str]:
    """Returns the canonical parameter size, or None if it is not offered."""
    candidate = value.strip().lower().rstrip("b")
    return candidate if candidate in app_globals.PARAMETER_COUNTS else None


class ConfigStore:
    """Reads and writes the persisted node configuration record."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else app_globals.CONFIG_FILE

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> SwarmConfig:
        """
        Returns the persisted record. If none exists, the default record is
        created, written with owner-only permissions and returned.
        """
        if not self.exists():
            log.info(f"Creating default config at {self.path}")
            record = SwarmConfig()
            self.save(record)
            log.info("Default config created")
            return record
        return parse_config_text(self.path.read_text())

    def save(self, record: SwarmConfig) -> None:
        """
        Atomically rewrites the record in full.

        The new content goes to a sibling temp file created owner-only and then
        renamed over the target, so a failed write leaves the old record intact.

        :param record: The record to persist.
        :raises ConfigStoreError: If the record could not be written.
        """
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.unlink(missing_ok=True)
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONFIG_FILE_MODE)
            with os.fdopen(fd, "w") as f:
                f.write(record.to_text())
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(self.path)
            os.chmod(self.path, CONFIG_FILE_MODE)
        except OSError as e:
            log.error(f"Failed to save config to '{self.path}': {e}")
            raise ConfigStoreError(f"Could not write config '{self.path}': {e}") from e
        finally:
            temp_path.unlink(missing_ok=True)
        log.debug(f"Config written: {record.describe()}")

    def update_interactive(self, current: SwarmConfig, prompt: Callable[[str], str] = input) -> SwarmConfig:
        """
        Asks for the swarm type and parameter count, then saves the result.
        A blank or unrecognised answer keeps the current value. The network
        and publish flags are always reset to their fixed values.

        :param current: The record to start from.
        :param prompt: The function used to read an answer.
        :return: The saved record.
        """
        print(f"Testnet: {app_globals.NETWORK_MODE_FIXED} (Fixed)")
        print(f"Push to HF: {app_globals.PUBLISH_FLAG_FIXED} (Fixed)")

        variants = ", ".join(f"{tag}={name}" for tag, name in app_globals.SWARM_VARIANTS.items())
        answer = prompt(f"Swarm type ({variants}) [{current.swarm_variant}]: ")
        swarm_variant = current.swarm_variant
        if answer.strip():
            normalized = normalize_swarm_variant(answer)
            if normalized is None:
                log.warning(f"Unknown swarm type '{answer.strip()}'. Keeping '{current.swarm_variant}'.")
            else:
                swarm_variant = normalized

        sizes = ", ".join(app_globals.PARAMETER_COUNTS)
        answer = prompt(f"Parameter count ({sizes}) [{current.parameter_count}]: ")
        parameter_count = current.parameter_count
        if answer.strip():
            normalized = normalize_parameter_count(answer)
            if normalized is None:
                log.warning(f"Unsupported parameter count '{answer.strip()}'. Keeping '{current.parameter_count}'.")
            else:
                parameter_count = normalized

        record = replace(
            current,
            network_mode=app_globals.NETWORK_MODE_FIXED,
            swarm_variant=swarm_variant,
            parameter_count=parameter_count,
            publish_flag=app_globals.PUBLISH_FLAG_FIXED,
        )
        self.save(record)
        log.info(f"Config saved: {record.describe()}")
        return record
