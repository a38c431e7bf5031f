"""Command execution on the host and inside guests over persistent SSH sessions.

Guest commands run over one paramiko session per (vm, user) pair. Output is
streamed: every chunk is kept for the returned :class:`ShellResult` and is
also split into lines that are logged as they arrive (stdout at DEBUG,
stderr at WARNING).
"""

from __future__ import annotations

import codecs
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import paramiko
from loguru import logger

from .errors import CommandFailed, RemoteExecutionError
from .util import CmdResult, run_cmd, shell_join

log = logger

CHUNK_SIZE = 4096


@dataclass(frozen=True)
class ShellResult:
    success: bool
    stdout: str
    stderr: str

    @classmethod
    def from_cmd_result(cls, res: CmdResult) -> 'ShellResult':
        return cls(res.code == 0, res.stdout, res.stderr)


class LinePrinter:
    """Buffers streamed text and emits it one complete line at a time."""

    def __init__(self, emit: Callable[[str], None]):
        self._emit = emit
        self._rest = ''

    def feed(self, data: str) -> None:
        self._rest += data
        while '\n' in self._rest:
            line, self._rest = self._rest.split('\n', 1)
            self._emit(line.rstrip('\r'))

    def flush(self) -> None:
        if self._rest:
            rest, self._rest = self._rest, ''
            self._emit(rest)

    @property
    def pending(self) -> str:
        return self._rest


class HostShell:
    """Runs commands on the hypervisor host and wraps them as ShellResults."""

    def __init__(self, *, sudo: bool = False):
        self.sudo = sudo

    def with_sudo(self, sudo: bool) -> 'HostShell':
        if sudo == self.sudo:
            return self
        return HostShell(sudo=sudo)

    def run(
        self,
        cmd: Sequence[str],
        *,
        no_warn_on_failure: bool = False,
        input_text: Optional[str] = None,
    ) -> ShellResult:
        log.opt(depth=1).info('sh@host$ {}', shell_join(cmd))
        try:
            res = run_cmd(
                cmd,
                sudo=self.sudo,
                check=False,
                capture=True,
                input_text=input_text,
            )
        except OSError as ex:
            # Missing host tool; report it like any other failed command.
            res = CmdResult(127, '', str(ex))
        result = ShellResult.from_cmd_result(res)
        if not result.success and not no_warn_on_failure:
            log.warning(
                "'{}' failed (code={}): {}",
                shell_join(cmd),
                res.code,
                res.stderr.strip(),
            )
        return result

    def run_strict(self, cmd: Sequence[str], **kwargs) -> ShellResult:
        result = self.run(cmd, **kwargs)
        if not result.success:
            raise CommandFailed(shell_join(cmd), result)
        return result


class SessionManager:
    """
    Owns persistent SSH sessions keyed by (vm name, user).

    Sessions are opened lazily and only closed through :meth:`close_vm` or
    :meth:`close_all`. The lock guards the cache itself; running two commands
    on the same session at once is still the caller's problem.
    """

    def __init__(self, *, connect_timeout: float = 15, port: int = 22):
        self.connect_timeout = connect_timeout
        self.port = port
        self._sessions: dict[tuple[str, str], paramiko.SSHClient] = {}
        self._lock = threading.Lock()

    def _connect(
        self, ip: str, user: str, password: Optional[str]
    ) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(
            hostname=ip,
            port=self.port,
            username=user,
            password=password or None,
            look_for_keys=not password,
            allow_agent=not password,
            timeout=self.connect_timeout,
        )
        return client

    def get(
        self,
        vm_name: str,
        ip: str,
        user: str,
        password: Optional[str] = None,
    ) -> paramiko.SSHClient:
        key = (vm_name, user)
        with self._lock:
            client = self._sessions.get(key)
            if client is not None:
                transport = client.get_transport()
                if transport is not None and transport.is_active():
                    return client
                log.debug('SSH session {}@{} went stale, reconnecting', user, vm_name)
                client.close()
                del self._sessions[key]
            if not ip:
                raise RemoteExecutionError(
                    f'VM {vm_name} has no known IP address; cannot open SSH as {user}'
                )
            log.bind(vm=vm_name).debug('SSH connecting {}@{}', user, ip)
            try:
                client = self._connect(ip, user, password)
            except (paramiko.SSHException, OSError) as ex:
                raise RemoteExecutionError(
                    f'SSH connection to {user}@{ip} ({vm_name}) failed: {ex}'
                ) from ex
            self._sessions[key] = client
            return client

    def open_users(self, vm_name: str) -> list[str]:
        with self._lock:
            return sorted(user for (vm, user) in self._sessions if vm == vm_name)

    def close_vm(self, vm_name: str) -> int:
        with self._lock:
            keys = [key for key in self._sessions if key[0] == vm_name]
            clients = [self._sessions.pop(key) for key in keys]
        for client in clients:
            client.close()
        if clients:
            log.bind(vm=vm_name).debug(
                'Closed {} SSH session(s) for {}', len(clients), vm_name
            )
        return len(clients)

    def close_all(self) -> None:
        with self._lock:
            clients = list(self._sessions.values())
            self._sessions.clear()
        for client in clients:
            client.close()


class RemoteExecutor:
    """Runs guest commands through a :class:`SessionManager`."""

    def __init__(
        self,
        sessions: SessionManager,
        ip_of: Callable[[str], str],
        *,
        timeout: Optional[float] = None,
        poll_interval: float = 0.05,
    ):
        self.sessions = sessions
        self.ip_of = ip_of
        self.timeout = timeout
        self.poll_interval = poll_interval

    def run(
        self,
        vm_name: str,
        user: str,
        command: str,
        *,
        password: Optional[str] = None,
        no_warn_on_failure: bool = False,
    ) -> ShellResult:
        vm_log = log.bind(vm=vm_name)
        vm_log.info('sh@{}$ {}', user, command)
        client = self.sessions.get(vm_name, self.ip_of(vm_name), user, password)
        try:
            channel = client.get_transport().open_session()
            channel.exec_command(command)
        except (paramiko.SSHException, OSError, AttributeError) as ex:
            raise RemoteExecutionError(
                f"FAILED: couldn't execute command on {vm_name}: {ex}"
            ) from ex

        stdout_parts: list[str] = []
        stderr_parts: list[str] = []
        out_lines = LinePrinter(vm_log.debug)
        err_lines = LinePrinter(vm_log.warning)
        out_dec = codecs.getincrementaldecoder('utf-8')(errors='replace')
        err_dec = codecs.getincrementaldecoder('utf-8')(errors='replace')
        deadline = (
            time.monotonic() + self.timeout if self.timeout is not None else None
        )
        try:
            while True:
                progressed = False
                if channel.recv_ready():
                    text = out_dec.decode(channel.recv(CHUNK_SIZE))
                    stdout_parts.append(text)
                    out_lines.feed(text)
                    progressed = True
                if channel.recv_stderr_ready():
                    text = err_dec.decode(channel.recv_stderr(CHUNK_SIZE))
                    stderr_parts.append(text)
                    err_lines.feed(text)
                    progressed = True
                if (
                    not progressed
                    and channel.exit_status_ready()
                    and not channel.recv_ready()
                    and not channel.recv_stderr_ready()
                ):
                    break
                if deadline is not None and time.monotonic() > deadline:
                    raise RemoteExecutionError(
                        f"'{command}' on {vm_name} did not finish within {self.timeout}s"
                    )
                if not progressed:
                    time.sleep(self.poll_interval)
            exit_code = channel.recv_exit_status()
        finally:
            channel.close()

        for dec, parts, printer in (
            (out_dec, stdout_parts, out_lines),
            (err_dec, stderr_parts, err_lines),
        ):
            tail = dec.decode(b'', final=True)
            if tail:
                parts.append(tail)
                printer.feed(tail)
            printer.flush()

        success = exit_code == 0
        if not success and not no_warn_on_failure:
            vm_log.warning("'{}' failed", command)
        return ShellResult(success, ''.join(stdout_parts), ''.join(stderr_parts))

    def run_strict(
        self, vm_name: str, user: str, command: str, **kwargs
    ) -> ShellResult:
        result = self.run(vm_name, user, command, **kwargs)
        if not result.success:
            raise CommandFailed(command, result)
        return result

    def close_sessions(self, vm_name: str) -> int:
        return self.sessions.close_vm(vm_name)
