"""Project-specific exception types."""

from __future__ import annotations

from typing import Any


class KvboxError(RuntimeError):
    """Base error for domain-level kvbox failures."""


class CommandFailed(KvboxError):
    """Raised by the strict command variants when the exit code is non-zero."""

    def __init__(self, command: str, result: Any = None):
        self.command = command
        self.result = result
        super().__init__(f'cmd failed: {command}')


class ArgumentError(KvboxError, ValueError):
    """Raised when an operation targets a name that does not exist."""


class UnknownVMError(KvboxError):
    """Raised when a VM name is not present in the inventory."""


class RemoteExecutionError(KvboxError):
    """Raised when a remote session cannot run a command at all."""
