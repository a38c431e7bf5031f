"""Domain inventory: per-VM attributes joined with discovered addresses."""

from __future__ import annotations

import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Iterable, Mapping

from loguru import logger

from .errors import UnknownVMError
from .net import UNKNOWN_MAC, normalize_mac

if TYPE_CHECKING:
    from .directory import DomainDirectory
    from .net import NetworkDiscovery

log = logger

TABLE_COLUMNS = (-30, 15, 13, 20)
TABLE_HEAD = ('name', 'ip', 'status', 'os')


@dataclass(frozen=True)
class DomainAttributes:
    name: str
    guest_os: str
    mac: str
    ip: str


def _text(root: ET.Element, path: str) -> str:
    node = root.find(path)
    if node is None or node.text is None:
        return ''
    return node.text.strip()


def first_network_mac(root: ET.Element) -> str:
    """
    MAC of the first ``<interface type="network">``.

    Only the first matching interface is considered; additional NICs are
    ignored. Returns ``"unknown"`` when there is none.
    """
    iface = root.find(".//interface[@type='network']")
    mac = iface.find('mac') if iface is not None else None
    address = mac.get('address') if mac is not None else None
    return normalize_mac(address) if address else UNKNOWN_MAC


def derive_attributes(
    root: ET.Element, mac_ip_map: Mapping[str, str]
) -> DomainAttributes:
    mac = first_network_mac(root)
    return DomainAttributes(
        name=_text(root, 'name'),
        guest_os=_text(root, 'description'),
        mac=mac,
        ip=mac_ip_map.get(mac, '') if mac != UNKNOWN_MAC else '',
    )


def render_table(rows: Iterable[tuple[str, str, str, str]]) -> str:
    """Fixed-width (name, ip, status, os) table sorted by status then name."""
    fmt = '  '.join(f'%{c}s' for c in TABLE_COLUMNS) + '\n'
    delimiter = '  '.join('-' * abs(c) for c in TABLE_COLUMNS) + '\n'
    body = ''.join(
        fmt % row for row in sorted(rows, key=lambda r: (r[2], r[0]))
    )
    return delimiter + fmt % TABLE_HEAD + delimiter + body + delimiter


class DomainInventory:
    """
    Attribute table of every defined or running domain, keyed by name.

    Both reload flavours build a fresh dict and publish it with a single
    assignment, so readers see either the previous or the new generation.

    Example:
        >>> import xml.etree.ElementTree as ET
        >>> from kvbox.inventory import DomainInventory
        >>> class FakeDirectory:
        ...     xml = '<domain><name>web1</name><description>Fedora 39</description></domain>'
        ...     def domain_names(self):
        ...         return ['web1']
        ...     def descriptor(self, name):
        ...         return ET.fromstring(self.xml)
        >>> class NoScan:
        ...     def scan(self):
        ...         return {}
        >>> inv = DomainInventory(FakeDirectory(), NoScan()).reload()
        >>> inv.get('web1').guest_os
        'Fedora 39'
        >>> inv.get('web1').mac
        'unknown'
    """

    def __init__(
        self, directory: 'DomainDirectory', discovery: 'NetworkDiscovery'
    ):
        self.directory = directory
        self.discovery = discovery
        self._raw: dict[str, ET.Element] = {}
        self._attributes: dict[str, DomainAttributes] = {}
        self._write_lock = threading.Lock()

    def reload(self) -> 'DomainInventory':
        with self._write_lock:
            raw: dict[str, ET.Element] = {}
            for domain in self.directory.domain_names():
                root = self.directory.descriptor(domain)
                raw[_text(root, 'name') or domain] = root
            attributes = self._derive(raw)
            self._raw, self._attributes = raw, attributes
        log.debug('Inventory reloaded: {} domain(s)', len(self._attributes))
        return self

    def reload_attributes(self) -> 'DomainInventory':
        with self._write_lock:
            self._attributes = self._derive(self._raw)
        return self

    def _derive(
        self, raw: Mapping[str, ET.Element]
    ) -> dict[str, DomainAttributes]:
        mac_ip_map = self.discovery.scan()
        attributes = {}
        for root in raw.values():
            attr = derive_attributes(root, mac_ip_map)
            attributes[attr.name] = attr
        return attributes

    def attributes(self) -> Mapping[str, DomainAttributes]:
        return MappingProxyType(self._attributes)

    def raw_descriptors(self) -> Mapping[str, ET.Element]:
        return MappingProxyType(self._raw)

    def vm_names(self) -> list[str]:
        return list(self._attributes)

    def get(self, name: str) -> DomainAttributes:
        try:
            return self._attributes[name]
        except KeyError:
            raise UnknownVMError(f'Unknown VM: {name}') from None

    def __contains__(self, name: str) -> bool:
        return name in self._attributes

    def table(self, status_of: Callable[[str], object]) -> str:
        rows = []
        for attr in self._attributes.values():
            status = status_of(attr.name)
            label = str(getattr(status, 'value', status))
            rows.append((attr.name, attr.ip, label, attr.guest_os))
        return render_table(rows)
