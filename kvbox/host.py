"""Host tool checks for the commands kvbox shells out to."""

from __future__ import annotations

from .util import which

REQUIRED_CMDS = [
    'virsh',
    'virt-clone',
    'arp-scan',
    'ping',
    'ssh',
]
OPTIONAL_CMDS = ['virt-xml', 'sudo']


def check_commands() -> tuple[list[str], list[str]]:
    missing = [c for c in REQUIRED_CMDS if which(c) is None]
    missing_opt = [c for c in OPTIONAL_CMDS if which(c) is None]
    return missing, missing_opt
