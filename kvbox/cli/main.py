"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import logging
import os
import sys

import scriptconfig as scfg
from loguru import logger

from ..host import check_commands
from ._common import _BaseCommand, _cfg_path, _load_cfg, log
from .config import ConfigModalCLI
from .snapshot import SnapshotModalCLI
from .vm import (
    CloneCLI,
    ConnectCLI,
    DeleteCLI,
    ListCLI,
    PowerOffCLI,
    ResourcesCLI,
    ShellCLI,
    StartCLI,
    StatusCLI,
    StopCLI,
)


class DoctorCLI(_BaseCommand):
    """Check host prerequisites and list missing required tools."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        cls.cli(argv=argv, data=kwargs)
        missing, missing_opt = check_commands()
        if missing:
            print('❌ Missing required commands:', ', '.join(missing))
            return 2
        if missing_opt:
            print('➖ Missing optional commands:', ', '.join(missing_opt))
        print('✅ Required host commands are present.')
        return 0


class KvboxModalCLI(scfg.ModalCLI):
    """Disposable libvirt/KVM test machines: status, snapshots, remote shell."""

    config = ConfigModalCLI
    snapshot = SnapshotModalCLI
    doctor = DoctorCLI
    list = ListCLI
    status = StatusCLI
    start = StartCLI
    stop = StopCLI
    poweroff = PowerOffCLI
    clone = CloneCLI
    delete = DeleteCLI
    shell = ShellCLI
    connect = ConnectCLI
    resources = ResourcesCLI


def main(argv: list[str] | None = None) -> None:
    verbosity = 1
    config_value = None
    if argv is None:
        argv = sys.argv[1:]
    argv = _normalize_argv(argv)
    if '--config' in argv:
        try:
            config_value = argv[argv.index('--config') + 1]
        except IndexError:
            pass
    try:
        if config_value is not None or _cfg_path(None).exists():
            verbosity = _load_cfg(config_value).verbosity
    except Exception:
        verbosity = 1

    _setup_logging(_count_verbose(argv), verbosity)

    try:
        rc = KvboxModalCLI.main(argv=argv, _noexit=True)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled kvbox error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.configure(extra={'vm': '-'})
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <magenta>{extra[vm]}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    # paramiko logs every transport negotiation at INFO through stdlib logging.
    logging.getLogger('paramiko').setLevel(logging.WARNING)
    log.debug(
        'Logging configured at {} (effective_verbosity={}, colorize={})',
        level,
        effective_verbosity,
        colorize,
    )


def _normalize_argv(argv: list[str]) -> list[str]:
    """Normalize accepted hyphenated spellings to scriptconfig command names."""
    if len(argv) >= 1 and argv[0] == 'ls':
        return ['list', *argv[1:]]
    if len(argv) >= 1 and argv[0] in {'power-off', 'power_off'}:
        return ['poweroff', *argv[1:]]
    if len(argv) >= 2 and argv[0] in {'snapshot', 'snap'}:
        sub = 'restore_last' if argv[1] == 'restore-last' else argv[1]
        return ['snapshot', sub, *argv[2:]]
    return argv


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
