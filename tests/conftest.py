"""Fakes for the virsh directory, arp-scan discovery, host shell and SSH."""

from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest

from kvbox.config import KvboxConfig
from kvbox.directory import DomainState, Snapshot
from kvbox.lab import Lab
from kvbox.remote import ShellResult


def domain_xml(name: str, mac: str | None = None, os_label: str = '') -> str:
    iface = (
        f"<interface type='network'><mac address='{mac}'/></interface>"
        if mac
        else ''
    )
    return (
        f'<domain type="kvm"><name>{name}</name>'
        f'<description>{os_label}</description>'
        f'<devices>{iface}</devices></domain>'
    )


class FakeDirectory:
    def __init__(self):
        self.xml: dict[str, str] = {}
        self.states: dict[str, DomainState] = {}
        self.snapshots: dict[str, list[Snapshot]] = {}
        self.current: dict[str, str] = {}
        self.calls: list[tuple] = []

    def add(self, name, mac=None, os_label='', state=DomainState.SHUTOFF):
        self.xml[name] = domain_xml(name, mac, os_label)
        self.states[name] = state
        self.snapshots.setdefault(name, [])

    def domain_names(self):
        return list(self.xml)

    def descriptor(self, name):
        return ET.fromstring(self.xml[name])

    def state(self, name):
        return self.states[name]

    def start(self, name):
        self.calls.append(('start', name))
        self.states[name] = DomainState.RUNNING

    def shutdown(self, name):
        self.calls.append(('shutdown', name))

    def destroy(self, name):
        self.calls.append(('destroy', name))
        self.states[name] = DomainState.SHUTOFF

    def undefine(self, name):
        self.calls.append(('undefine', name))
        del self.xml[name]
        del self.states[name]

    def snapshot_names(self, name):
        return [s.name for s in self.snapshots[name]]

    def snapshot_create(self, name, snapshot):
        self.calls.append(('snapshot_create', name, snapshot))
        self.snapshots[name].append(snapshot)
        self.current[name] = snapshot.name

    def snapshot_revert(self, name, snapshot_name):
        self.calls.append(('snapshot_revert', name, snapshot_name))
        self.current[name] = snapshot_name

    def snapshot_delete(self, name, snapshot_name):
        self.calls.append(('snapshot_delete', name, snapshot_name))
        self.snapshots[name] = [
            s for s in self.snapshots[name] if s.name != snapshot_name
        ]

    def current_snapshot_xml(self, name):
        cur = self.current.get(name)
        if cur is None:
            return ''
        for snap in self.snapshots[name]:
            if snap.name == cur:
                return snap.to_xml()
        raise AssertionError(cur)


class FakeDiscovery:
    def __init__(self, mapping=None):
        self.mapping = dict(mapping or {})
        self.scans = 0

    def scan(self):
        self.scans += 1
        return dict(self.mapping)


class FakeShell:
    """Host shell that answers ping by IP and records every command."""

    def __init__(self, reachable=()):
        self.reachable = set(reachable)
        self.commands: list[list[str]] = []
        self.sudo = False

    def with_sudo(self, sudo):
        return self

    def run(self, cmd, *, no_warn_on_failure=False, input_text=None):
        self.commands.append(list(cmd))
        if cmd[0] == 'ping':
            return ShellResult(cmd[-1] in self.reachable, '', '')
        return ShellResult(True, '', '')

    def run_strict(self, cmd, **kwargs):
        return self.run(cmd, **kwargs)


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def make_lab(directory, monkeypatch):
    """Build a Lab over the fakes; sleeps are disabled."""
    monkeypatch.setattr('kvbox.vm.lifecycle.time.sleep', lambda s: None)
    monkeypatch.setattr('kvbox.status.time.sleep', lambda s: None)

    def _make(mapping=None, reachable=(), ssh_open=()):
        ssh_open = set(ssh_open)
        monkeypatch.setattr(
            'kvbox.status.ssh_port_probe',
            lambda ip, **kw: ip in ssh_open,
        )
        cfg = KvboxConfig()
        cfg.vm.settle_seconds = 0
        lab = Lab(
            cfg,
            directory=directory,
            shell=FakeShell(reachable),
            discovery=FakeDiscovery(mapping),
        )
        lab.fake_ssh_open = ssh_open
        return lab

    return _make
