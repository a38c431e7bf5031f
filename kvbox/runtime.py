"""Runtime helpers for constructing virsh and SSH command arguments."""

from __future__ import annotations

LIBVIRT_URI = 'qemu:///system'


def virsh_cmd(*args: str, uri: str = LIBVIRT_URI) -> list[str]:
    return ['virsh', '-c', uri, *args]


def ssh_base_args(
    *,
    strict_host_key_checking: str = 'no',
    user_known_hosts_file: str | None = '/dev/null',
    tunnel: str | None = None,
) -> list[str]:
    args: list[str] = []
    if tunnel:
        args.extend(['-L', tunnel])
    if user_known_hosts_file:
        args.extend(['-o', f'UserKnownHostsFile={user_known_hosts_file}'])
    args.extend(['-o', f'StrictHostKeyChecking={strict_host_key_checking}'])
    return args
