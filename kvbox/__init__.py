"""Lifecycle management for disposable libvirt/KVM test machines."""

__version__ = '0.1.0'
