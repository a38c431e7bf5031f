"""CLI commands for VM inventory, lifecycle, remote shell and connect."""

from __future__ import annotations

import scriptconfig as scfg

from ..errors import CommandFailed
from ._common import _BaseCommand, _open_lab, _require_name, _VMCommand, log


class ListCLI(_BaseCommand):
    """Print the inventory table (name, ip, status, os) of every domain."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            print(lab.table(), end='')
        return 0


class StatusCLI(_VMCommand):
    """Print the reachability status of one VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name)
        with _open_lab(args.config) as lab:
            vm = lab.vm(name)
            print(f'{vm.name}: {vm.status()} ip={vm.ip or "-"} mac={vm.mac}')
        return 0


class StartCLI(_VMCommand):
    """Start a VM and wait until it answers on SSH."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).run_and_wait()
        return 0


class StopCLI(_VMCommand):
    """Gracefully stop a VM, powering it off if it does not stop in time."""

    timeout = scfg.Value(
        None, type=float, help='Seconds to wait before forcing power off.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).stop_and_wait(args.timeout)
        return 0


class PowerOffCLI(_VMCommand):
    """Force a VM off at the hypervisor level."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).power_off()
        return 0


class CloneCLI(_VMCommand):
    """Clone a VM with virt-clone and take an initial snapshot of the clone."""

    new_name = scfg.Value(
        '', type=str, position=2, help='Name of the new domain.'
    )
    snapshot = scfg.Value(
        'base', type=str, help='Name of the initial snapshot.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        new_name = str(args.new_name or '').strip()
        if not new_name:
            raise RuntimeError('clone requires a new VM name.')
        with _open_lab(args.config) as lab:
            cloned = lab.vm(_require_name(args.name)).clone(
                new_name, args.snapshot
            )
            print(repr(cloned))
        return 0


class DeleteCLI(_VMCommand):
    """Power off (if needed) and undefine a VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).delete()
        return 0


class ShellCLI(_VMCommand):
    """Run one command inside a VM over SSH and print its output."""

    command = scfg.Value(
        '', type=str, position=2, help='Command to run in the guest.'
    )
    user = scfg.Value(
        '', type=str, help='Remote user (default: vm.default_user).'
    )
    strict = scfg.Value(
        False, isflag=True, help='Exit non-zero if the command fails.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            vm = lab.vm(_require_name(args.name))
            user = args.user or lab.cfg.vm.default_user
            try:
                if args.strict:
                    result = vm.shell_strict(user, args.command)
                else:
                    result = vm.shell(user, args.command)
            except CommandFailed as ex:
                log.error('{}', ex)
                print(ex.result.stdout, end='')
                return 1
            print(result.stdout, end='')
        return 0 if result.success else 1


class ConnectCLI(_VMCommand):
    """Start a VM if needed and replace this process with an ssh login."""

    user = scfg.Value(
        '', type=str, help='Remote user (default: vm.default_user).'
    )
    tunnel = scfg.Value(
        False, isflag=True, help='Forward local port 443 to the guest (sudo).'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        lab = _open_lab(args.config)
        vm = lab.vm(_require_name(args.name))
        vm.connect(args.user or lab.cfg.vm.default_user, tunnel=args.tunnel)
        return 0


class ResourcesCLI(_VMCommand):
    """Change the CPU count and RAM of a stopped VM."""

    ram_mb = scfg.Value(2048, type=int, help='Memory in MiB.')
    cpus = scfg.Value(2, type=int, help='Number of vCPUs.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        with _open_lab(args.config) as lab:
            lab.vm(_require_name(args.name)).setup_resources(
                args.ram_mb, args.cpus
            )
        return 0
