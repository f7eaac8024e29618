"""Container discovery and information retrieval."""
import re
import subprocess
from typing import Dict, List, Optional, Set

from lxcdeploy.core.config import get_settings
from lxcdeploy.core.logger import get_logger

logger = get_logger(__name__)

FIRST_VMID = 100
MAX_VMID = 999999999

_INET_RE = re.compile(r'\binet\s+(\d{1,3}(?:\.\d{1,3}){3})')


class ContainerDiscovery:
    """Discovers Proxmox guests and queries running containers."""

    MOCK_CONTAINERS = [
        {'vmid': 100, 'name': 'immich', 'status': 'running'},
    ]

    def __init__(self, mock: bool = False):
        self.mock = mock

    def list_containers(self) -> List[Dict]:
        """List all LXC containers.

        Returns:
            List of container dicts with vmid, name, status
        """
        if self.mock:
            return [dict(c) for c in self.MOCK_CONTAINERS]

        containers = []
        try:
            result = subprocess.run(
                ["pct", "list"],
                capture_output=True,
                text=True,
                check=True
            )

            # VMID Status Lock Name; Lock is usually empty
            for line in result.stdout.strip().split('\n')[1:]:
                parts = line.split()
                if len(parts) >= 2 and parts[0].isdigit():
                    containers.append({
                        'vmid': int(parts[0]),
                        'status': parts[1],
                        'name': parts[-1] if len(parts) > 2 else ''
                    })

        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to list containers: {e}")

        return containers

    def list_vm_ids(self) -> Set[int]:
        """VMIDs used by QEMU guests, which share the id space with containers."""
        if self.mock:
            return set()

        try:
            result = subprocess.run(
                ["qm", "list"],
                capture_output=True,
                text=True,
                check=True
            )
        except FileNotFoundError:
            return set()
        except subprocess.CalledProcessError as e:
            logger.warning(f"Failed to list virtual machines: {e}")
            return set()

        vmids = set()
        for line in result.stdout.strip().split('\n')[1:]:
            parts = line.split()
            if parts and parts[0].isdigit():
                vmids.add(int(parts[0]))
        return vmids

    def container_exists(self, vmid: int) -> bool:
        """Check if a container exists.

        Args:
            vmid: Container ID

        Returns:
            True if `pct status` knows the container
        """
        if self.mock:
            return any(c['vmid'] == vmid for c in self.MOCK_CONTAINERS)

        try:
            subprocess.run(
                ["pct", "status", str(vmid)],
                check=True,
                capture_output=True,
                text=True
            )
            return True
        except subprocess.CalledProcessError:
            return False

    def next_free_vmid(self, start: int = FIRST_VMID) -> int:
        """Find the smallest unused VMID at or above ``start``.

        Candidates missing from the listings are confirmed with
        ``pct status`` so a failed or stale listing never hands out an id
        that is still taken.

        Raises:
            ValueError: If the id space is exhausted
        """
        used = {c['vmid'] for c in self.list_containers()} | self.list_vm_ids()

        vmid = start
        while vmid in used or self.container_exists(vmid):
            vmid += 1
            if vmid > MAX_VMID:
                raise ValueError("No free VMIDs available")

        return vmid

    def list_storages(self, content: str = "rootdir") -> List[str]:
        """Names of active storages that accept ``content``.

        Returns:
            Storage names (empty if pvesm is unavailable)
        """
        if self.mock:
            return ['local-lvm', 'local-zfs']

        try:
            result = subprocess.run(
                ["pvesm", "status", "--content", content],
                capture_output=True,
                text=True,
                check=True
            )
        except (FileNotFoundError, subprocess.CalledProcessError) as e:
            logger.warning(f"Failed to list storages: {e}")
            return []

        storages = []
        # Name Type Status Total Used Available %
        for line in result.stdout.strip().split('\n')[1:]:
            parts = line.split()
            if len(parts) >= 3 and parts[2] == 'active':
                storages.append(parts[0])
        return storages

    def get_ipv4_address(self, vmid: int, interface: str = "eth0") -> Optional[str]:
        """Read the IPv4 address assigned to ``interface`` inside the container.

        Returns:
            Dotted address or None when nothing is assigned yet
        """
        if self.mock:
            return "192.0.2.10"

        try:
            result = subprocess.run(
                ["pct", "exec", str(vmid), "--", "ip", "-4", "-o", "addr", "show", interface],
                capture_output=True,
                text=True,
                timeout=get_settings().command_check_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"Address query for container {vmid} timed out")
            return None

        if result.returncode != 0:
            logger.debug(f"Address query for container {vmid} failed: {result.stderr.strip()}")
            return None

        match = _INET_RE.search(result.stdout)
        return match.group(1) if match else None
