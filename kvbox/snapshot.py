"""Linear snapshot chain management for a single domain."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from loguru import logger

from .directory import Snapshot
from .errors import ArgumentError

if TYPE_CHECKING:
    from .directory import DomainDirectory

log = logger


class SnapshotManager:
    """
    Take, restore and prune snapshots of one VM.

    Snapshots form a single chain; ``names()`` lists it oldest first.
    Restoring a snapshot discards everything taken after it.
    """

    def __init__(
        self,
        name: str,
        directory: 'DomainDirectory',
        stop_and_wait: Callable[[], object],
    ):
        self.name = name
        self.directory = directory
        self.stop_and_wait = stop_and_wait
        self.log = log.bind(vm=name)

    def names(self) -> list[str]:
        return self.directory.snapshot_names(self.name)

    def current(self) -> Optional[Snapshot]:
        return Snapshot.from_xml(self.directory.current_snapshot_xml(self.name))

    def current_name(self) -> Optional[str]:
        snap = self.current()
        return snap.name if snap is not None else None

    def current_parent_name(self) -> Optional[str]:
        snap = self.current()
        return snap.parent if snap is not None else None

    def take(self, snapshot_name: str) -> Snapshot:
        self.stop_and_wait()
        snap = Snapshot(snapshot_name, self.current_name())
        self.log.info(
            'Taking snapshot {} of {} (parent={})',
            snap.name,
            self.name,
            snap.parent,
        )
        self.directory.snapshot_create(self.name, snap)
        return snap

    def restore(self, snapshot_name: str) -> list[str]:
        """Revert to ``snapshot_name`` and delete its descendants.

        Returns the names of the deleted snapshots, newest first.
        """
        chain = self.names()
        if snapshot_name not in chain:
            raise ArgumentError(f'No snapshot named {snapshot_name}')
        self.log.info('Restoring {} to snapshot {}', self.name, snapshot_name)
        self.directory.snapshot_revert(self.name, snapshot_name)
        deleted = []
        for snap in reversed(self.names()):
            if snap == snapshot_name:
                break
            self.delete(snap)
            deleted.append(snap)
        return deleted

    def restore_last(self) -> list[str]:
        chain = self.names()
        if not chain:
            raise ArgumentError(f'{self.name} has no snapshots')
        return self.restore(chain[-1])

    def delete(self, snapshot_name: str) -> None:
        self.log.info('Deleting snapshot {} of {}', snapshot_name, self.name)
        self.directory.snapshot_delete(self.name, snapshot_name)
