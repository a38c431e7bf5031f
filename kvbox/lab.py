"""The orchestration root that wires the collaborators together."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .config import KvboxConfig
from .directory import DomainDirectory
from .inventory import DomainInventory
from .net import NetworkDiscovery
from .remote import HostShell, RemoteExecutor, SessionManager
from .status import StatusOracle, VMStatus
from .vm import VM

log = logger


class Lab:
    """
    Owns the directory, inventory, sessions and probes for one host.

    VM facades handed out by :meth:`vm` share these collaborators; closing
    the lab closes every SSH session it opened.

    Example:
        >>> from kvbox.config import KvboxConfig
        >>> lab = Lab(KvboxConfig())
        >>> lab.directory.uri
        'qemu:///system'
    """

    def __init__(
        self,
        cfg: Optional[KvboxConfig] = None,
        *,
        directory: Optional[DomainDirectory] = None,
        shell: Optional[HostShell] = None,
        sessions: Optional[SessionManager] = None,
        discovery: Optional[NetworkDiscovery] = None,
    ):
        self.cfg = cfg or KvboxConfig()
        self.shell = shell or HostShell()
        self.libvirt_shell = self.shell.with_sudo(self.cfg.libvirt.sudo)
        self.directory = directory or DomainDirectory(
            uri=self.cfg.libvirt.uri, sudo=self.cfg.libvirt.sudo
        )
        self.discovery = discovery or NetworkDiscovery(self.cfg.scan, self.shell)
        self._inventory = DomainInventory(self.directory, self.discovery)
        self._inventory_loaded = False
        self.sessions = sessions or SessionManager(
            connect_timeout=self.cfg.timeouts.connect
        )
        self.executor = RemoteExecutor(
            self.sessions,
            lambda name: self.inventory.get(name).ip,
            timeout=self.cfg.command_timeout,
        )
        self.oracle = StatusOracle(
            self.directory,
            self._inventory,
            self.shell,
            probe_timeout=self.cfg.timeouts.probe,
        )

    def __enter__(self) -> 'Lab':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def inventory(self) -> DomainInventory:
        if not self._inventory_loaded:
            self._inventory.reload()
            self._inventory_loaded = True
        return self._inventory

    def vm(self, name: str) -> VM:
        self.inventory.get(name)
        return VM(self, name)

    def vms(self) -> list[VM]:
        return [VM(self, name) for name in sorted(self.inventory.vm_names())]

    def status(self, name: str) -> VMStatus:
        self.inventory.get(name)
        return self.oracle.status(name)

    def table(self) -> str:
        return self.inventory.table(self.status)

    def close(self) -> None:
        self.sessions.close_all()
