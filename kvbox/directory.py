"""Domain directory: the virsh-backed edge to libvirt domains and snapshots.

Everything that talks to libvirt goes through :class:`DomainDirectory`.
Raw ``domstate`` text is translated into :class:`DomainState` here so the
rest of the package never handles hypervisor strings. Failures surface as
:class:`~kvbox.util.CmdError`.
"""

from __future__ import annotations

import enum
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional
from xml.sax.saxutils import escape

from loguru import logger

from .runtime import LIBVIRT_URI, virsh_cmd
from .util import CmdResult, run_cmd

log = logger


class DomainState(enum.Enum):
    NO_STATE = 'no state'
    RUNNING = 'running'
    BLOCKED = 'blocked'
    PAUSED = 'paused'
    SHUTDOWN = 'shutdown'
    SHUTOFF = 'shutoff'
    CRASHED = 'crashed'
    PMSUSPENDED = 'pmsuspended'

    @classmethod
    def parse(cls, text: str) -> 'DomainState':
        key = (text or '').strip().lower()
        # virsh spells a few states differently from the libvirt constants.
        aliases = {'shut off': 'shutoff', 'in shutdown': 'shutdown', 'idle': 'blocked'}
        key = aliases.get(key, key)
        for member in cls:
            if member.value == key:
                return member
        return cls.NO_STATE


@dataclass(frozen=True)
class Snapshot:
    name: str
    parent: Optional[str] = None

    def to_xml(self) -> str:
        parent = (
            f'<parent><name>{escape(self.parent)}</name></parent>'
            if self.parent
            else ''
        )
        return (
            f'<domainsnapshot><name>{escape(self.name)}</name>{parent}'
            '</domainsnapshot>'
        )

    @classmethod
    def from_xml(cls, text: str) -> Optional['Snapshot']:
        if not (text or '').strip():
            return None
        root = ET.fromstring(text)
        name = (root.findtext('name') or '').strip()
        if not name:
            return None
        parent = (root.findtext('parent/name') or '').strip() or None
        return cls(name, parent)


def parse_descriptor(xml_text: str) -> ET.Element:
    return ET.fromstring(xml_text)


def _lines(res: CmdResult) -> list[str]:
    return [line.strip() for line in res.stdout.splitlines() if line.strip()]


class DomainDirectory:
    """Lists, inspects and controls libvirt domains via ``virsh``."""

    def __init__(self, *, uri: str = LIBVIRT_URI, sudo: bool = False):
        self.uri = uri
        self.sudo = sudo

    def _virsh(
        self,
        *args: str,
        input_text: Optional[str] = None,
        check: bool = True,
    ) -> CmdResult:
        return run_cmd(
            virsh_cmd(*args, uri=self.uri),
            sudo=self.sudo,
            check=check,
            capture=True,
            input_text=input_text,
        )

    # domains

    def defined_names(self) -> list[str]:
        return _lines(self._virsh('list', '--inactive', '--name'))

    def running_names(self) -> list[str]:
        return _lines(self._virsh('list', '--name'))

    def domain_names(self) -> list[str]:
        names: list[str] = []
        for name in self.defined_names() + self.running_names():
            if name not in names:
                names.append(name)
        return names

    def descriptor(self, name: str) -> ET.Element:
        return parse_descriptor(self._virsh('dumpxml', name).stdout)

    def state(self, name: str) -> DomainState:
        return DomainState.parse(self._virsh('domstate', name).stdout)

    def start(self, name: str) -> None:
        self._virsh('start', name)

    def shutdown(self, name: str) -> None:
        self._virsh('shutdown', name)

    def destroy(self, name: str) -> None:
        self._virsh('destroy', name)

    def undefine(self, name: str) -> None:
        self._virsh('undefine', name)

    # snapshots

    def snapshot_names(self, name: str) -> list[str]:
        """Snapshot names with every parent listed before its children."""
        return _lines(self._virsh('snapshot-list', name, '--name', '--topological'))

    def snapshot_create(self, name: str, snapshot: Snapshot) -> None:
        log.debug(
            'Creating snapshot {} of {} (parent={})',
            snapshot.name,
            name,
            snapshot.parent,
        )
        self._virsh(
            'snapshot-create',
            name,
            '--xmlfile',
            '/dev/stdin',
            input_text=snapshot.to_xml(),
        )

    def snapshot_revert(self, name: str, snapshot_name: str) -> None:
        self._virsh('snapshot-revert', name, '--snapshotname', snapshot_name)

    def snapshot_delete(self, name: str, snapshot_name: str) -> None:
        self._virsh('snapshot-delete', name, '--snapshotname', snapshot_name)

    def current_snapshot_xml(self, name: str) -> str:
        """Descriptor of the current snapshot, or '' when there is none."""
        res = self._virsh('snapshot-current', name, check=False)
        if not res.ok:
            log.debug(
                'No current snapshot for {}: {}', name, res.stderr.strip()
            )
            return ''
        return res.stdout
