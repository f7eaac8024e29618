"""Proxmox LXC container management.

- TemplateManager: Template lookup, download and availability
- ContainerDiscovery: Query containers, storages and addresses
- ContainerLifecycle: Create, start, destroy containers and run commands in them
"""
from .discovery import ContainerDiscovery
from .lifecycle import ContainerLifecycle
from .templates import TemplateManager

__all__ = [
    'ContainerDiscovery',
    'ContainerLifecycle',
    'TemplateManager',
]
