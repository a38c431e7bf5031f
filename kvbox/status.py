"""Reachability status of a VM from hypervisor state plus network probes."""

from __future__ import annotations

import enum
import socket
import time
from typing import TYPE_CHECKING, Optional

from loguru import logger

from .directory import DomainState

if TYPE_CHECKING:
    from .directory import DomainDirectory
    from .inventory import DomainInventory
    from .remote import HostShell

log = logger


class VMStatus(enum.Enum):
    STOPPED = 'stopped'
    NO_CONNECTION = 'no_connection'
    NO_SSH_RUNNING = 'no_ssh_running'
    RUNNING = 'running'
    UNKNOWN = 'unknown'

    def __str__(self) -> str:
        return self.value


_STATUS_TABLE = {
    (False, False, False): VMStatus.STOPPED,
    (True, False, False): VMStatus.NO_CONNECTION,
    (True, True, False): VMStatus.NO_SSH_RUNNING,
    (True, True, True): VMStatus.RUNNING,
}


def classify_status(box_running: bool, ping_ok: bool, ssh_ok: bool) -> VMStatus:
    """
    Combine the three signals into a :class:`VMStatus`.

    A box that libvirt reports as off but still answers on the network is a
    stale lease or ARP entry, so it is ``unknown`` rather than ``running``.

    Example:
        >>> str(classify_status(True, True, False))
        'no_ssh_running'
        >>> str(classify_status(False, True, True))
        'unknown'
    """
    key = (bool(box_running), bool(ping_ok), bool(ssh_ok))
    return _STATUS_TABLE.get(key, VMStatus.UNKNOWN)


def ping_probe(ip: str, shell: 'HostShell', *, deadline: int = 5) -> bool:
    return shell.run(
        ['ping', '-c', '1', '-W', str(deadline), ip], no_warn_on_failure=True
    ).success


def ssh_port_probe(ip: str, *, port: int = 22, timeout: float = 5) -> bool:
    try:
        sock = socket.create_connection((ip, port), timeout=timeout)
    except OSError:
        # Timeouts, refusals and unreachable routes all mean "not up yet".
        return False
    sock.close()
    return True


class StatusOracle:
    def __init__(
        self,
        directory: 'DomainDirectory',
        inventory: 'DomainInventory',
        shell: 'HostShell',
        *,
        probe_timeout: int = 5,
        ssh_port: int = 22,
    ):
        self.directory = directory
        self.inventory = inventory
        self.shell = shell
        self.probe_timeout = probe_timeout
        self.ssh_port = ssh_port

    def box_running(self, name: str) -> bool:
        return self.directory.state(name) is DomainState.RUNNING

    def status(self, name: str) -> VMStatus:
        box = self.box_running(name)
        ip = self.inventory.get(name).ip
        if ip:
            ping_ok = ping_probe(ip, self.shell, deadline=self.probe_timeout)
            ssh_ok = ssh_port_probe(
                ip, port=self.ssh_port, timeout=self.probe_timeout
            )
        else:
            ping_ok = ssh_ok = False
        status = classify_status(box, ping_ok, ssh_ok)
        log.bind(vm=name).debug(
            'status of {}: box={} ping={} ssh={} -> {}',
            name,
            box,
            ping_ok,
            ssh_ok,
            status,
        )
        return status

    def wait_for(
        self,
        name: str,
        target: VMStatus,
        *,
        timeout: Optional[float] = None,
        interval: float = 5,
    ) -> bool:
        """
        Poll until ``name`` reaches ``target``.

        Addresses are re-scanned on every iteration. Returns False once
        ``timeout`` seconds have passed without a match; ``None`` waits
        forever.
        """
        vm_log = log.bind(vm=name)
        start = time.monotonic()
        while True:
            self.inventory.reload_attributes()
            current = self.status(name)
            if current is target:
                return True
            vm_log.info('Waiting for: {}, now is: {}', target, current)
            if timeout is not None and time.monotonic() - start > timeout:
                vm_log.warning('Timeout expired.')
                return False
            time.sleep(interval)
