"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import KvboxModalCLI, main

__all__ = ['KvboxModalCLI', 'main']
