"""VM facade: start/stop with waits, cloning, hostname setup, and connect."""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from loguru import logger

from ..errors import KvboxError
from ..remote import ShellResult
from ..runtime import ssh_base_args
from ..snapshot import SnapshotManager
from ..status import VMStatus
from ..util import shell_join

if TYPE_CHECKING:
    from ..directory import Snapshot
    from ..lab import Lab

log = logger

# Long hostnames break some guest tooling, keep them short.
SAFE_NAME_MAX = 28
TUNNEL_SPEC = '443:localhost:443'


def safe_hostname(name: str) -> str:
    """
    Example:
        >>> safe_hostname('fedora_39 nightly')
        'fedora-39-nightly'
        >>> safe_hostname('a' * 27 + '_b')
        'aaaaaaaaaaaaaaaaaaaaaaaaaaa'
    """
    safe = re.sub(r'[^-a-zA-Z0-9.]', '-', name)[:SAFE_NAME_MAX]
    return safe[:-1] if safe.endswith('-') else safe


@dataclass(frozen=True)
class HostnameResult:
    ok: bool
    hostname: str = ''
    error: Optional[BaseException] = None


class VM:
    """
    A cheap, re-creatable view of one libvirt domain.

    The facade only remembers the domain name; addresses come from the
    lab's inventory and sessions from the lab's session manager.
    """

    def __init__(self, lab: 'Lab', name: str):
        self.lab = lab
        self.name = name
        self.log = log.bind(vm=name)
        self.snapshot_manager = SnapshotManager(
            name, lab.directory, self.stop_and_wait
        )

    def __repr__(self) -> str:
        return f'<VM {self.name} ip:{self.ip!r} mac:{self.mac!r}>'

    # attributes

    @property
    def attributes(self):
        return self.lab.inventory.get(self.name)

    @property
    def ip(self) -> str:
        return self.attributes.ip

    @property
    def mac(self) -> str:
        return self.attributes.mac

    @property
    def guest_os(self) -> str:
        return self.attributes.guest_os

    @property
    def is_fedora(self) -> bool:
        return 'Fedora' in self.guest_os

    @property
    def is_rhel(self) -> bool:
        return 'Red Hat' in self.guest_os

    @property
    def safe_name(self) -> str:
        return safe_hostname(self.name)

    # commands

    def shell(self, user: str, cmd: str, **kwargs) -> ShellResult:
        kwargs.setdefault('password', self.lab.cfg.vm.password or None)
        return self.lab.executor.run(self.name, user, cmd, **kwargs)

    def shell_strict(self, user: str, cmd: str, **kwargs) -> ShellResult:
        kwargs.setdefault('password', self.lab.cfg.vm.password or None)
        return self.lab.executor.run_strict(self.name, user, cmd, **kwargs)

    def close_sessions(self) -> None:
        self.lab.executor.close_sessions(self.name)

    # status

    def status(self) -> VMStatus:
        return self.lab.oracle.status(self.name)

    def is_running(self) -> bool:
        return self.status() is VMStatus.RUNNING

    def wait_for(
        self,
        status: VMStatus,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> bool:
        if interval is None:
            interval = self.lab.cfg.timeouts.poll_interval
        return self.lab.oracle.wait_for(
            self.name, status, timeout=timeout, interval=interval
        )

    # lifecycle

    def run(self) -> None:
        if not self.is_running():
            self.log.info('Starting {}', self.name)
            self.lab.directory.start(self.name)

    def run_and_wait(self) -> None:
        self.run()
        self.wait_for(VMStatus.RUNNING)
        result = self.set_hostname()
        if not result.ok:
            self.log.opt(exception=result.error).warning(
                'hostname setting failed: {} ({})',
                result.error,
                type(result.error).__name__,
            )
        # Give the guest services time to come up fully.
        time.sleep(self.lab.cfg.vm.settle_seconds)

    def stop(self) -> None:
        if self.status() is VMStatus.STOPPED:
            return
        pre_stop = self.lab.cfg.vm.pre_stop_command
        if pre_stop:
            self.shell('root', pre_stop)
            time.sleep(5)
        self.close_sessions()
        self.log.info('Shutting down {}', self.name)
        self.lab.directory.shutdown(self.name)

    def stop_and_wait(self, timeout: Optional[float] = None) -> None:
        if timeout is None:
            timeout = self.lab.cfg.timeouts.stop_wait
        self.stop()
        if not self.wait_for(VMStatus.STOPPED, timeout):
            self.log.warning(
                '{} did not stop in {}s, powering off', self.name, timeout
            )
            self.power_off()

    def power_off(self) -> None:
        self.close_sessions()
        self.log.info('Powering off {}', self.name)
        self.lab.directory.destroy(self.name)
        time.sleep(1)

    def set_hostname(self) -> HostnameResult:
        """Set the guest hostname; failures are returned, never raised."""
        domain = self.lab.cfg.vm.hostname_domain
        fqdn = f'{self.safe_name}.{domain}'
        try:
            if not self.is_running():
                raise KvboxError(f'{self.name} is not running')
            self.shell_strict('root', f'hostname {fqdn}')
            self.shell_strict(
                'root',
                f'echo 127.0.0.1 {self.safe_name} {fqdn} >> /etc/hosts',
            )
        except Exception as ex:
            return HostnameResult(False, fqdn, ex)
        return HostnameResult(True, fqdn)

    def clone(self, new_name: str, snapshot: str) -> 'VM':
        uri = self.lab.cfg.libvirt.uri
        self.lab.libvirt_shell.run_strict(
            [
                'virt-clone',
                f'--connect={uri}',
                f'--original={self.name}',
                f'--name={new_name}',
                '--auto-clone',
            ]
        )
        self.lab.inventory.reload()
        cloned = self.lab.vm(new_name)
        cloned.take_snapshot(snapshot)
        return cloned

    def delete(self) -> None:
        if self.is_running():
            self.power_off()
        self.log.info('Undefining {}', self.name)
        self.lab.directory.undefine(self.name)
        self.lab.inventory.reload()

    def setup_resources(self, ram_mb: int, cpus: int) -> None:
        if self.is_running():
            raise KvboxError(f'{self.name} must be stopped to change resources')
        self.lab.libvirt_shell.run_strict(
            [
                'virt-xml',
                '--connect',
                self.lab.cfg.libvirt.uri,
                self.name,
                '--edit',
                '--vcpus',
                str(cpus),
                '--memory',
                str(ram_mb),
            ]
        )

    def connect_command(self, user: str, tunnel: bool = False) -> list[str]:
        cmd = ['sudo'] if tunnel else []
        cmd += [
            'ssh',
            f'{user}@{self.ip}',
            *ssh_base_args(tunnel=TUNNEL_SPEC if tunnel else None),
        ]
        return cmd

    def connect(self, user: str, tunnel: bool = False) -> None:
        self.run_and_wait()
        cmd = self.connect_command(user, tunnel)
        self.log.info('connecting: {}', shell_join(cmd))
        if tunnel:
            self.log.info('creating ssh tunnel, logout will destroy the tunnel')
        os.execvp(cmd[0], cmd)

    # snapshots

    def snapshots(self) -> list[str]:
        return self.snapshot_manager.names()

    def take_snapshot(self, snapshot_name: str) -> 'Snapshot':
        return self.snapshot_manager.take(snapshot_name)

    def restore_snapshot(self, snapshot_name: str) -> list[str]:
        return self.snapshot_manager.restore(snapshot_name)

    def restore_last_snapshot(self) -> list[str]:
        return self.snapshot_manager.restore_last()

    def delete_snapshot(self, snapshot_name: str) -> None:
        self.snapshot_manager.delete(snapshot_name)

    def current_snapshot_name(self) -> Optional[str]:
        return self.snapshot_manager.current_name()

    def current_snapshot_parent_name(self) -> Optional[str]:
        return self.snapshot_manager.current_parent_name()


__all__ = ['HostnameResult', 'VM', 'safe_hostname']
