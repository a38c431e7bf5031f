from __future__ import annotations

import itertools
import socket
import time

import pytest

from kvbox.directory import DomainState
from kvbox.inventory import DomainInventory
from kvbox.remote import HostShell
from kvbox.status import (
    StatusOracle,
    VMStatus,
    classify_status,
    ping_probe,
    ssh_port_probe,
)

from conftest import FakeDiscovery, FakeShell

EXPECTED = {
    (False, False, False): VMStatus.STOPPED,
    (True, False, False): VMStatus.NO_CONNECTION,
    (True, True, False): VMStatus.NO_SSH_RUNNING,
    (True, True, True): VMStatus.RUNNING,
}


@pytest.mark.parametrize('signals', list(itertools.product([False, True], repeat=3)))
def test_classify_status_table(signals) -> None:
    assert classify_status(*signals) is EXPECTED.get(signals, VMStatus.UNKNOWN)


def test_off_box_answering_network_is_unknown() -> None:
    assert classify_status(False, True, True) is VMStatus.UNKNOWN
    assert classify_status(True, False, True) is VMStatus.UNKNOWN


def test_ssh_port_probe_refused_and_timeout(monkeypatch) -> None:
    def refuse(addr, timeout):
        raise ConnectionRefusedError(111, 'Connection refused')

    monkeypatch.setattr('kvbox.status.socket.create_connection', refuse)
    assert ssh_port_probe('10.0.0.5') is False

    def hang(addr, timeout):
        raise socket.timeout('timed out')

    monkeypatch.setattr('kvbox.status.socket.create_connection', hang)
    assert ssh_port_probe('10.0.0.5', timeout=0.1) is False


def test_ssh_port_probe_open_port() -> None:
    server = socket.socket()
    server.bind(('127.0.0.1', 0))
    server.listen(1)
    try:
        port = server.getsockname()[1]
        assert ssh_port_probe('127.0.0.1', port=port, timeout=2) is True
    finally:
        server.close()


def test_ping_probe_uses_deadline() -> None:
    shell = FakeShell(reachable={'10.0.0.5'})
    assert ping_probe('10.0.0.5', shell, deadline=5) is True
    assert ping_probe('10.0.0.6', shell) is False
    assert shell.commands[0] == ['ping', '-c', '1', '-W', '5', '10.0.0.5']


def _oracle(directory, monkeypatch, mapping, reachable=(), ssh_open=()):
    monkeypatch.setattr(
        'kvbox.status.ssh_port_probe', lambda ip, **kw: ip in set(ssh_open)
    )
    shell = FakeShell(reachable)
    inventory = DomainInventory(directory, FakeDiscovery(mapping)).reload()
    return StatusOracle(directory, inventory, shell), shell


def test_status_without_ip_skips_probes(directory, monkeypatch) -> None:
    directory.add('web1', mac='aa:bb:cc:dd:ee:01', state=DomainState.RUNNING)
    oracle, shell = _oracle(directory, monkeypatch, {})
    assert oracle.status('web1') is VMStatus.NO_CONNECTION
    assert shell.commands == []


def test_status_combines_signals(directory, monkeypatch) -> None:
    directory.add('web1', mac='aa:bb:cc:dd:ee:01', state=DomainState.RUNNING)
    mapping = {'aa:bb:cc:dd:ee:01': '10.0.0.5'}
    oracle, _ = _oracle(directory, monkeypatch, mapping, reachable={'10.0.0.5'})
    assert oracle.status('web1') is VMStatus.NO_SSH_RUNNING
    oracle, _ = _oracle(
        directory, monkeypatch, mapping, reachable={'10.0.0.5'}, ssh_open={'10.0.0.5'}
    )
    assert oracle.status('web1') is VMStatus.RUNNING
    directory.states['web1'] = DomainState.SHUTOFF
    assert oracle.status('web1') is VMStatus.UNKNOWN


def test_wait_for_success_rescans(directory, monkeypatch) -> None:
    directory.add('web1', mac='aa:bb:cc:dd:ee:01', state=DomainState.RUNNING)
    oracle, shell = _oracle(directory, monkeypatch, {})
    discovery = oracle.inventory.discovery
    sleeps = []

    def fake_sleep(seconds):
        sleeps.append(seconds)
        # The guest picks up a lease and starts answering after one poll.
        discovery.mapping = {'aa:bb:cc:dd:ee:01': '10.0.0.5'}
        shell.reachable.add('10.0.0.5')

    monkeypatch.setattr('kvbox.status.time.sleep', fake_sleep)
    assert oracle.wait_for('web1', VMStatus.NO_SSH_RUNNING, interval=3) is True
    assert sleeps == [3]
    assert discovery.scans == 3


def test_wait_for_times_out_bounded(directory, monkeypatch) -> None:
    directory.add('web1', state=DomainState.SHUTOFF)
    oracle, _ = _oracle(directory, monkeypatch, {})
    start = time.monotonic()
    assert oracle.wait_for('web1', VMStatus.RUNNING, timeout=1, interval=1) is False
    assert time.monotonic() - start < 3


def test_ping_probe_missing_ping_is_false(monkeypatch) -> None:
    def missing(cmd, **kwargs):
        raise FileNotFoundError(2, 'No such file or directory', cmd[0])

    monkeypatch.setattr('kvbox.remote.run_cmd', missing)
    assert ping_probe('10.0.0.5', HostShell()) is False
