"""CLI commands for creating and inspecting the kvbox config file."""

from __future__ import annotations

import scriptconfig as scfg

from ..config import KvboxConfig, dump_toml, save
from ._common import _BaseCommand, _cfg_path, _load_cfg_with_path, log


class ConfigInitCLI(_BaseCommand):
    """Write a config file populated with defaults."""

    interface = scfg.Value('', type=str, help='Interface arp-scan listens on.')
    lower_ip = scfg.Value(
        '', type=str, help='First address of the scanned range.'
    )
    upper_ip = scfg.Value(
        '', type=str, help='Last address of the scanned range.'
    )
    force = scfg.Value(
        False, isflag=True, help='Overwrite an existing config file.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _cfg_path(args.config)
        if path.exists() and not args.force:
            raise RuntimeError(
                f'Config already exists: {path} (use --force to overwrite)'
            )
        cfg = KvboxConfig()
        if args.interface:
            cfg.scan.interface = args.interface
        if args.lower_ip:
            cfg.scan.lower_ip = args.lower_ip
        if args.upper_ip:
            cfg.scan.upper_ip = args.upper_ip
        path.parent.mkdir(parents=True, exist_ok=True)
        save(path, cfg)
        log.info('Wrote config: {}', path)
        print(str(path))
        return 0


class ConfigShowCLI(_BaseCommand):
    """Print the effective config as TOML."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, path = _load_cfg_with_path(args.config)
        print(f'# {path}{"" if path.exists() else " (not found, defaults)"}')
        print(dump_toml(cfg), end='')
        return 0


class ConfigPathCLI(_BaseCommand):
    """Print the config path that would be used."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        print(str(_cfg_path(args.config)))
        return 0


class ConfigModalCLI(scfg.ModalCLI):
    """Config file management."""

    init = ConfigInitCLI
    show = ConfigShowCLI
    path = ConfigPathCLI
