"""
This module exposes the external collaborators the launcher relies on:
the repository fetcher, the system package installer and the remote
fix-up script used as the self-heal step.
"""

from .external import (
    AptEnvironmentInstaller,
    EnvironmentInstaller,
    GitRepositoryFetcher,
    RemoteFixupScript,
    RepositoryFetcher,
    SelfHeal,
)

__all__ = [
    "AptEnvironmentInstaller",
    "EnvironmentInstaller",
    "GitRepositoryFetcher",
    "RemoteFixupScript",
    "RepositoryFetcher",
    "SelfHeal",
]
