"""CLI commands for the per-VM snapshot chain."""

from __future__ import annotations

import scriptconfig as scfg

from ._common import _open_lab, _require_name, _VMCommand


class _SnapshotCommand(_VMCommand):
    snapshot = scfg.Value('', type=str, position=2, help='Snapshot name.')


def _snapshot_name(args) -> str:
    snap = str(args.snapshot or '').strip()
    if not snap:
        raise RuntimeError('A snapshot name is required.')
    return snap


class SnapshotListCLI(_VMCommand):
    """List snapshots oldest first, marking the current one."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            vm = lab.vm(_require_name(args.name))
            current = vm.current_snapshot_name()
            names = vm.snapshots()
            if not names:
                print('  (none)')
            for snap in names:
                marker = '*' if snap == current else ' '
                print(f'{marker} {snap}')
        return 0


class SnapshotTakeCLI(_SnapshotCommand):
    """Stop the VM and take a snapshot on top of the current one."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).take_snapshot(_snapshot_name(args))
        return 0


class SnapshotRestoreCLI(_SnapshotCommand):
    """Revert to a snapshot and delete every snapshot taken after it."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            deleted = lab.vm(_require_name(args.name)).restore_snapshot(
                _snapshot_name(args)
            )
        for snap in deleted:
            print(f'deleted {snap}')
        return 0


class SnapshotRestoreLastCLI(_VMCommand):
    """Revert to the newest snapshot."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).restore_last_snapshot()
        return 0


class SnapshotDeleteCLI(_SnapshotCommand):
    """Delete a single snapshot (children are left alone)."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).delete_snapshot(
                _snapshot_name(args)
            )
        return 0


class SnapshotModalCLI(scfg.ModalCLI):
    """Snapshot chain management."""

    list = SnapshotListCLI
    take = SnapshotTakeCLI
    restore = SnapshotRestoreCLI
    restore_last = SnapshotRestoreLastCLI
    delete = SnapshotDeleteCLI
