"""Dataclass configuration sections with TOML load/save helpers."""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub

DEFAULT_CONFIG_NAME = '.kvbox.toml'


@dataclass
class LibvirtConfig:
    uri: str = 'qemu:///system'
    sudo: bool = False


@dataclass
class ScanConfig:
    interface: str = 'virbr0'
    lower_ip: str = '192.168.122.2'
    upper_ip: str = '192.168.122.254'
    sudo: bool = True


@dataclass
class VMDefaults:
    default_user: str = 'root'
    password: str = ''
    hostname_domain: str = 'mydomain'
    # Runs as root inside the guest before a graceful shutdown; empty skips it.
    pre_stop_command: str = ''
    settle_seconds: int = 5


@dataclass
class TimeoutsConfig:
    probe: int = 5
    stop_wait: int = 600
    poll_interval: int = 5
    command: int = 0
    connect: int = 15


@dataclass
class KvboxConfig:
    libvirt: LibvirtConfig = field(default_factory=LibvirtConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    vm: VMDefaults = field(default_factory=VMDefaults)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    verbosity: int = 1

    @property
    def command_timeout(self) -> float | None:
        return float(self.timeouts.command) if self.timeouts.command > 0 else None


SECTIONS = ('libvirt', 'scan', 'vm', 'timeouts')


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def dump_toml(cfg: KvboxConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    # Top-level keys must precede the first table header.
    if d['verbosity'] != 1:
        lines.append(f'verbosity = {d["verbosity"]}')
        lines.append('')
    for section in SECTIONS:
        lines.append(f'[{section}]')
        for k, v in d[section].items():
            if isinstance(v, bool):
                lines.append(f'{k} = {"true" if v else "false"}')
            elif isinstance(v, int):
                lines.append(f'{k} = {v}')
            else:
                lines.append(f'{k} = "{_toml_escape(str(v))}"')
        lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def loads(text: str) -> KvboxConfig:
    raw = tomllib.loads(text)
    cfg = KvboxConfig()
    for section in SECTIONS:
        if section in raw and isinstance(raw[section], dict):
            obj = getattr(cfg, section)
            for k, v in raw[section].items():
                if hasattr(obj, k):
                    setattr(obj, k, v)
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    return cfg


def load(path: Path) -> KvboxConfig:
    return loads(path.read_text(encoding='utf-8'))


def save(path: Path, cfg: KvboxConfig) -> None:
    path.write_text(dump_toml(cfg), encoding='utf-8')


def user_config_path() -> Path:
    return Path(ub.Path.appdir('kvbox', type='config')) / 'config.toml'


def resolve_config_path(explicit: str | None = None) -> Path:
    """Explicit path, then ``./.kvbox.toml``, then the per-user config dir."""
    if explicit:
        return Path(explicit).expanduser().resolve()
    local = Path(DEFAULT_CONFIG_NAME).resolve()
    if local.exists():
        return local
    return user_config_path()


def load_or_default(path: Path) -> KvboxConfig:
    if not path.exists():
        return KvboxConfig()
    return load(path)
