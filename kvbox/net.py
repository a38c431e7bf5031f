"""MAC to IP discovery by scanning the host-only subnet with arp-scan."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from loguru import logger

from .config import ScanConfig

if TYPE_CHECKING:
    from .remote import HostShell

log = logger

UNKNOWN_MAC = 'unknown'

_SCAN_LINE_RE = re.compile(
    r'^(\d{1,3}(?:\.\d{1,3}){3})\s+((?:[0-9a-fA-F]{1,2}[:-]){5}[0-9a-fA-F]{1,2})'
)


def normalize_mac(mac: str | None) -> str | None:
    """
    Lowercase a MAC and zero-pad every octet to two hex digits.

    Example:
        >>> normalize_mac('AA:B:CC:D:EE:F')
        'aa:0b:cc:0d:ee:0f'
        >>> normalize_mac('aabbccddeeff')
        'aa:bb:cc:dd:ee:ff'
        >>> normalize_mac(None) is None
        True
    """
    if mac is None:
        return None
    mac = mac.strip()
    if ':' in mac:
        parts = mac.split(':')
    else:
        flat = mac.replace('-', '')
        parts = [flat[i : i + 2] for i in range(0, len(flat), 2)]
    return ':'.join(part.lower().rjust(2, '0') for part in parts)


def parse_scan_output(text: str) -> dict[str, str]:
    """
    Map normalized MAC -> IP from arp-scan style output.

    Lines that do not start with ``<ipv4> <mac>`` are ignored. When the same
    MAC shows up twice the later line wins.
    """
    mapping: dict[str, str] = {}
    for line in (text or '').splitlines():
        m = _SCAN_LINE_RE.match(line)
        if m is None:
            continue
        ip, mac = m.group(1), m.group(2).replace('-', ':')
        mapping[normalize_mac(mac)] = ip
    return mapping


def scan_cmd(interface: str, low_ip: str, high_ip: str) -> list[str]:
    return ['arp-scan', f'--interface={interface}', f'{low_ip}-{high_ip}']


def scan(
    interface: str,
    low_ip: str,
    high_ip: str,
    *,
    shell: 'HostShell',
) -> dict[str, str]:
    result = shell.run(scan_cmd(interface, low_ip, high_ip), no_warn_on_failure=True)
    if not result.success:
        log.warning(
            'arp-scan on {} ({}-{}) failed; no addresses discovered: {}',
            interface,
            low_ip,
            high_ip,
            result.stderr.strip(),
        )
        return {}
    mapping = parse_scan_output(result.stdout)
    log.debug('arp-scan found {} address(es) on {}', len(mapping), interface)
    return mapping


class NetworkDiscovery:
    """Scans the configured interface/range and yields a MAC -> IP map."""

    def __init__(self, cfg: ScanConfig, shell: 'HostShell'):
        self.cfg = cfg
        self.shell = shell

    def scan(self) -> dict[str, str]:
        return scan(
            self.cfg.interface,
            self.cfg.lower_ip,
            self.cfg.upper_ip,
            shell=self.shell.with_sudo(self.cfg.sudo),
        )
