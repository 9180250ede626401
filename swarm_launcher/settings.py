"""
This module contains the configuration settings for the RL-Swarm launcher.
It defines paths, the node repository and fix-up locations, supervisor timings
and the schema of the persisted node configuration.
It is used throughout the application to ensure consistent settings and paths.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
HOME_DIR = pathlib.Path(os.getenv("SWARM_HOME", str(pathlib.Path.home()))).expanduser()
SWARM_DIR = pathlib.Path(os.getenv("SWARM_DIR", str(HOME_DIR / "rl-swarm"))).expanduser()
CONFIG_FILE = SWARM_DIR / ".swarm_config"
FIXALL_MARKER_PATH = SWARM_DIR / ".fixall_done"
LOG_FILE = pathlib.Path(os.getenv("SWARM_LOG_FILE", str(HOME_DIR / "swarm_log.txt"))).expanduser()

#* --- Swap Settings ---
SWAP_FILE = pathlib.Path(os.getenv("SWAP_FILE", "/swapfile"))
SWAP_SIZE = os.getenv("SWAP_SIZE", "2G")
FSTAB_PATH = pathlib.Path("/etc/fstab")

#* --- Node Repository ---
REPO_URL = os.getenv("RL_SWARM_REPO_URL", "https://github.com/gensyn-ai/rl-swarm.git")
RUN_SCRIPT_NAME = "run_rl_swarm.sh"
VENV_DIR_NAME = ".venv"
REQUIREMENTS_FILE_NAME = "requirements.txt"

# The run script wipes the login temp data on every start; the patch keeps it
# when the launcher restarts the node with existing files.
TEMP_DATA_CLEANUP_LINE = "rm -r $ROOT_DIR/modal-login/temp-data/*.json 2> /dev/null || true"
TEMP_DATA_GUARD_LINE = 'if [ "$KEEP_TEMP_DATA" != "true" ]; then'

#* --- Remote Fix-up Script ---
FIXALL_URL = os.getenv(
    "FIXALL_URL",
    "https://raw.githubusercontent.com/hustleairdrops/Gensyn-Advanced-Solutions/main/fixall.sh"
)
HTTP_TIMEOUT = 30  # seconds

#* --- Credentials ---
CREDENTIAL_FILE_NAME = "swarm.pem"
USER_DATA_FILE_NAMES = ("userData.json", "userApiKey.json")

#* --- System Dependencies ---
# Maps a command probe to the apt package providing it.
REQUIRED_COMMANDS = {
    "git": "git",
    "python3": "python3",
}
VENV_PROBE_PACKAGE = "python3-venv"
VENV_PACKAGE = "python3.12-venv"

#* --- Supervisor Settings ---
RESTART_BACKOFF_SECONDS = 1
CHILD_TERMINATE_TIMEOUT = 10  # seconds before force-killing
STALE_NODE_MARKER = CREDENTIAL_FILE_NAME
NODE_PROCESS_NAME = "rl-swarm"
PROCESS_TITLE = "RL-Swarm Launcher"

#* --- Node Configuration Schema ---
# File key, default value. Order is the order of the node's startup prompts.
NETWORK_MODE_KEY = "TESTNET"
SWARM_VARIANT_KEY = "SWARM"
PARAMETER_COUNT_KEY = "PARAM"
PUBLISH_FLAG_KEY = "PUSH"

NETWORK_MODE_FIXED = "Y"
PUBLISH_FLAG_FIXED = "N"
DEFAULT_SWARM_VARIANT = "A"
DEFAULT_PARAMETER_COUNT = "7"

SWARM_VARIANTS = {
    "A": "Math",
    "B": "Math Hard",
}
PARAMETER_COUNTS = ("0.5", "1.5", "7", "32", "72")

#* --- Application variables ---
VERBOSE_LOGGING = os.getenv("SWARM_VERBOSE", "False").lower() in ('true', '1', 't')
