"""VM facade exports."""

from __future__ import annotations

from .lifecycle import VM, HostnameResult, safe_hostname

__all__ = ['HostnameResult', 'VM', 'safe_hostname']
