"""lxcdeploy - provision Proxmox LXC containers and install self-hosted apps."""

__version__ = "0.3.0"
