"""Shared CLI option base class and config/lab loading helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import KvboxConfig, load_or_default, resolve_config_path
from ..lab import Lab

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None, help='Path to config TOML (default: .kvbox.toml or user config).'
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


class _VMCommand(_BaseCommand):
    """Base options for commands that act on one VM."""

    name = scfg.Value(
        '', type=str, position=1, help='Name of the libvirt domain.'
    )


def _cfg_path(p: str | None) -> Path:
    return resolve_config_path(p)


def _load_cfg(config_path: str | None) -> KvboxConfig:
    cfg, _ = _load_cfg_with_path(config_path)
    return cfg


def _load_cfg_with_path(config_path: str | None) -> tuple[KvboxConfig, Path]:
    path = _cfg_path(config_path)
    if config_path and not path.exists():
        raise FileNotFoundError(
            f'Config not found: {path}. Run: kvbox config init --config {path}'
        )
    return load_or_default(path), path


def _open_lab(config_path: str | None) -> Lab:
    return Lab(_load_cfg(config_path))


def _require_name(name: str) -> str:
    name = str(name or '').strip()
    if not name:
        raise RuntimeError('A VM name is required (positional or --name).')
    return name


def _print_err(msg: str) -> None:
    print(msg, file=sys.stderr)


__all__ = [name for name in globals() if not name.startswith('__')]
