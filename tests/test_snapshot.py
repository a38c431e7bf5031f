from __future__ import annotations

import pytest

from kvbox.directory import Snapshot
from kvbox.errors import ArgumentError
from kvbox.snapshot import SnapshotManager


@pytest.fixture
def manager(directory):
    directory.add('web1')
    stops = []
    mgr = SnapshotManager('web1', directory, lambda: stops.append('web1'))
    mgr.stops = stops
    return mgr


def test_take_records_current_as_parent(manager, directory) -> None:
    assert manager.current() is None
    assert manager.take('base') == Snapshot('base', None)
    assert manager.take('installed') == Snapshot('installed', 'base')
    assert manager.names() == ['base', 'installed']
    assert manager.current_name() == 'installed'
    assert manager.current_parent_name() == 'base'
    # The domain is stopped before each snapshot.
    assert manager.stops == ['web1', 'web1']


def test_restore_prunes_descendants(manager, directory) -> None:
    for name in ['base', 'a', 'b', 'c']:
        manager.take(name)
    deleted = manager.restore('a')
    assert deleted == ['c', 'b']
    assert manager.names() == ['base', 'a']
    assert manager.current_name() == 'a'
    ops = [call[0] for call in directory.calls if call[0] != 'snapshot_create']
    assert ops == ['snapshot_revert', 'snapshot_delete', 'snapshot_delete']


def test_restore_newest_deletes_nothing(manager) -> None:
    manager.take('base')
    manager.take('a')
    assert manager.restore('a') == []
    assert manager.names() == ['base', 'a']


def test_restore_unknown_leaves_chain_untouched(manager, directory) -> None:
    manager.take('base')
    before = list(directory.calls)
    with pytest.raises(ArgumentError, match='No snapshot named missing'):
        manager.restore('missing')
    assert directory.calls == before
    assert manager.names() == ['base']


def test_argument_error_is_value_error(manager) -> None:
    with pytest.raises(ValueError):
        manager.restore('missing')


def test_restore_last(manager) -> None:
    with pytest.raises(ArgumentError):
        manager.restore_last()
    manager.take('base')
    manager.take('a')
    assert manager.restore_last() == []
    assert manager.current_name() == 'a'


def test_delete_single_snapshot(manager) -> None:
    manager.take('base')
    manager.take('a')
    manager.delete('a')
    assert manager.names() == ['base']
