import logging
from dataclasses import dataclass
from swarm_launcher.local.config_store import ConfigStore
from swarm_launcher.local.external import RemoteFixupScript, SelfHeal
from swarm_launcher.local.installer import Installer
from swarm_launcher.local.supervisor import NodeSupervisor
from swarm_launcher.local.swap import SwapManager

log = logging.getLogger(__name__)


@dataclass
class Launcher:
    """
    Wires the launcher's components together.

    The supervisor is created once per process so that the stop signal
    handler and every menu option share the same run state.
    """
    config_store: ConfigStore
    swap_manager: SwapManager
    installer: Installer
    self_heal: SelfHeal
    supervisor: NodeSupervisor

    @classmethod
    def create(cls) -> "Launcher":
        """Builds a launcher from the settings in app_globals."""
        config_store = ConfigStore()
        swap_manager = SwapManager()
        installer = Installer(swap_manager=swap_manager, config_store=config_store)
        supervisor = NodeSupervisor(installer, swap_manager, config_store)
        log.debug("Launcher components created")
        return cls(
            config_store=config_store,
            swap_manager=swap_manager,
            installer=installer,
            self_heal=RemoteFixupScript(),
            supervisor=supervisor,
        )
