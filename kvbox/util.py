"""Subprocess helpers used for every host-side command (virsh, arp-scan, ...)."""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from shutil import which
from typing import Optional, Sequence

from loguru import logger

log = logger


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.code == 0


class CmdError(RuntimeError):
    """A host command exited non-zero while ``check=True``."""

    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        shown = cmd if isinstance(cmd, str) else shell_join(cmd)
        super().__init__(
            f'{shown} exited with {result.code}\n{result.stderr}'.strip()
        )


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def with_sudo(cmd: Sequence[str]) -> list[str]:
    """
    Prefix ``cmd`` with non-interactive sudo unless already root.

    Example:
        >>> import os
        >>> expect = ['ls'] if os.geteuid() == 0 else ['sudo', '-n', 'ls']
        >>> with_sudo(['ls']) == expect
        True
    """
    if os.geteuid() == 0:
        return list(cmd)
    # -n: fail instead of prompting when a password would be required.
    return ['sudo', '-n', *cmd]


def run_cmd(
    cmd: Sequence[str],
    *,
    sudo: bool = False,
    check: bool = True,
    capture: bool = True,
    input_text: Optional[str] = None,
) -> CmdResult:
    if sudo:
        cmd = with_sudo(cmd)
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    proc = subprocess.run(
        cmd,
        input=input_text,
        capture_output=capture,
        text=True,
    )
    res = CmdResult(proc.returncode, proc.stdout or '', proc.stderr or '')
    if res.ok:
        log.opt(depth=1).trace('ok: {}', shell_join(cmd))
    elif check:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={}',
            res.code,
            shell_join(cmd),
            res.stderr.strip(),
        )
        raise CmdError(cmd, res)
    return res


__all__ = ['CmdError', 'CmdResult', 'run_cmd', 'shell_join', 'which', 'with_sudo']
