"""Proxmox integration services."""
