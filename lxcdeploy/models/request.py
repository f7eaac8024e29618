"""Provisioning request models.

A ProvisioningRequest is built once per run by the option resolver and is
immutable afterwards. Workflow phases that need to fill in a value (the
allocated id, a generated password) return an updated copy.
"""
import dataclasses
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Template used when nothing else is requested
DEFAULT_OS_TYPE = "debian"
DEFAULT_OS_VERSION = "12"
DEFAULT_ARCH = "amd64"


@dataclass(frozen=True)
class ResourceSpec:
    """Resource allocation for the container."""
    storage: str = "local-lvm"
    disk_size: str = "8G"
    memory: int = 2048  # MB
    swap: int = 512  # MB
    cores: int = 2
    unprivileged: bool = True
    nesting: bool = True
    fuse: bool = False
    keyctl: bool = True

    @property
    def disk_gb(self) -> str:
        """Disk size as pct expects it in --rootfs (number without unit)."""
        return self.disk_size.rstrip('GgMmKkTt')

    def features(self) -> str:
        """Render the pct --features value."""
        parts: List[str] = []
        if self.nesting:
            parts.append("nesting=1")
        if self.fuse:
            parts.append("fuse=1")
        # keyctl is rejected by pct for privileged containers
        if self.keyctl and self.unprivileged:
            parts.append("keyctl=1")
        return ",".join(parts)


@dataclass(frozen=True)
class NetworkSpec:
    """Network configuration for eth0."""
    bridge: str = "vmbr0"
    ip: Optional[str] = None  # None means DHCP, otherwise CIDR like "192.168.1.50/24"
    gateway: Optional[str] = None
    vlan: Optional[int] = None
    mtu: Optional[int] = None
    firewall: bool = False

    @property
    def is_static(self) -> bool:
        return bool(self.ip)

    @property
    def address(self) -> Optional[str]:
        """Static address without the prefix length."""
        if not self.ip:
            return None
        return self.ip.split('/', 1)[0]

    def descriptor(self) -> str:
        """Build the pct --net0 value.

        Example:
            name=eth0,bridge=vmbr0,firewall=0,ip=10.0.0.5/24,gw=10.0.0.1,tag=20
        """
        parts = [
            "name=eth0",
            f"bridge={self.bridge}",
            f"firewall={1 if self.firewall else 0}",
        ]
        if self.ip:
            parts.append(f"ip={self.ip}")
            if self.gateway:
                parts.append(f"gw={self.gateway}")
        else:
            parts.append("ip=dhcp")
        if self.vlan is not None:
            parts.append(f"tag={self.vlan}")
        if self.mtu is not None:
            parts.append(f"mtu={self.mtu}")
        return ",".join(parts)


@dataclass(frozen=True)
class TemplateSpec:
    """OS template identity (os/version/arch) and the storage holding it."""
    os_type: str = DEFAULT_OS_TYPE
    os_version: str = DEFAULT_OS_VERSION
    arch: str = DEFAULT_ARCH
    storage: str = "local"

    @property
    def prefix(self) -> str:
        """Template file prefix, e.g. 'debian-12-standard_'."""
        return f"{self.os_type}-{self.os_version}-standard_"


@dataclass(frozen=True)
class AppSettings:
    """Target application metadata."""
    app: str = "immich"
    install_dir: str = "/opt/immich"
    secrets: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProvisioningRequest:
    """Resolved configuration driving one container-creation-and-install run."""
    hostname: str
    ctid: Optional[int] = None
    description: str = ""
    resources: ResourceSpec = field(default_factory=ResourceSpec)
    network: NetworkSpec = field(default_factory=NetworkSpec)
    template: TemplateSpec = field(default_factory=TemplateSpec)
    app: AppSettings = field(default_factory=AppSettings)

    password: Optional[str] = None
    password_generated: bool = False
    username: str = "app"

    debug: bool = False
    force: bool = False
    interactive: bool = True
    resume: bool = True
    # install into an existing container instead of creating one
    rerun: bool = False

    def replace(self, **changes) -> "ProvisioningRequest":
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def summary_rows(self) -> List[tuple]:
        """Label/value pairs for review screens. Never includes the password itself."""
        res = self.resources
        net = self.network
        tmpl = self.template
        return [
            ("Container ID", str(self.ctid) if self.ctid is not None else "auto"),
            ("Hostname", self.hostname),
            ("Description", self.description or "-"),
            ("Application", self.app.app),
            ("OS", f"{tmpl.os_type} {tmpl.os_version} ({tmpl.arch})"),
            ("Storage", res.storage),
            ("Template storage", tmpl.storage),
            ("Disk size", res.disk_size),
            ("Memory", f"{res.memory}MB"),
            ("Swap", f"{res.swap}MB"),
            ("Cores", str(res.cores)),
            ("Unprivileged", "yes" if res.unprivileged else "no"),
            ("Features", res.features() or "-"),
            ("Bridge", net.bridge),
            ("IP address", net.ip or "DHCP"),
            ("Gateway", net.gateway or "N/A"),
            ("VLAN tag", str(net.vlan) if net.vlan is not None else "N/A"),
            ("MTU", str(net.mtu) if net.mtu is not None else "default"),
            ("Username", self.username),
            ("Password", "Set (hidden)" if self.password else "Generated at install"),
            ("Install dir", self.app.install_dir),
        ]
