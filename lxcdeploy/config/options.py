"""Option resolution: merge option layers into a ProvisioningRequest.

Layers are flat dicts keyed by option name. They are passed highest
priority first (CLI flags, interactive answers, config file, recipe
defaults). A None value means "not set in this layer" and falls through to
the next one. Building the request performs no I/O.
"""
import ipaddress
import re
from typing import Any, Callable, Dict, Iterable, Optional

from lxcdeploy.errors import ConfigValidationError
from lxcdeploy.models.request import (
    DEFAULT_ARCH,
    DEFAULT_OS_TYPE,
    DEFAULT_OS_VERSION,
    AppSettings,
    NetworkSpec,
    ProvisioningRequest,
    ResourceSpec,
    TemplateSpec,
)

DEFAULT_APP = "immich"
MIN_CTID = 100
MAX_CTID = 999999999

# Built-in defaults, lowest priority layer
BUILTIN_DEFAULTS: Dict[str, Any] = {
    'app': DEFAULT_APP,
    'hostname': None,  # falls back to the app name
    'description': "",
    'storage': "local-lvm",
    'template_storage': "local",
    'disk_size': "8G",
    'memory': 2048,
    'swap': 512,
    'cores': 2,
    'unprivileged': True,
    'nesting': True,
    'fuse': False,
    'keyctl': True,
    'bridge': "vmbr0",
    'firewall': False,
    'os_type': DEFAULT_OS_TYPE,
    'os_version': DEFAULT_OS_VERSION,
    'arch': DEFAULT_ARCH,
    'username': "app",
    'debug': False,
    'force': False,
    'interactive': True,
    'resume': True,
    'rerun': False,
}

_HOSTNAME_RE = re.compile(r'^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?$')
_DISK_RE = re.compile(r'^(\d+)([GgMmTtKk]?)$')
_USERNAME_RE = re.compile(r'^[a-z_][a-z0-9_\-]{0,31}$')
_TRUE = {'1', 'true', 'yes', 'y', 'on'}
_FALSE = {'0', 'false', 'no', 'n', 'off'}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _as_int(name: str, minimum: int, maximum: Optional[int] = None) -> Callable[[Any], int]:
    def coerce(value: Any) -> int:
        if isinstance(value, bool):
            raise ConfigValidationError(f"{name} must be an integer, got {value!r}")
        try:
            number = int(str(value).strip())
        except ValueError:
            raise ConfigValidationError(f"{name} must be an integer, got {value!r}") from None
        if number < minimum or (maximum is not None and number > maximum):
            bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
            raise ConfigValidationError(f"{name} must be {bounds}, got {number}")
        return number
    return coerce


def _as_bool(name: str) -> Callable[[Any], bool]:
    def coerce(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigValidationError(f"{name} must be yes/no, got {value!r}")
    return coerce


def _as_str(value: Any) -> str:
    return str(value).strip()


def _hostname(value: Any) -> str:
    text = str(value).strip()
    if not _HOSTNAME_RE.match(text):
        raise ConfigValidationError(
            f"Hostname '{text}' is invalid: use letters, digits and hyphens (max 63 chars)"
        )
    return text


def _username(value: Any) -> str:
    text = str(value).strip()
    if text != "root" and not _USERNAME_RE.match(text):
        raise ConfigValidationError(f"Username '{text}' is not a valid Linux user name")
    return text


def _disk_size(value: Any) -> str:
    text = str(value).strip()
    match = _DISK_RE.match(text)
    if not match or int(match.group(1)) == 0:
        raise ConfigValidationError(f"Disk size must look like '32G', got {value!r}")
    return f"{match.group(1)}{(match.group(2) or 'G').upper()}"


def _ip_cidr(value: Any) -> str:
    text = str(value).strip()
    if text.lower() == "dhcp":
        return "dhcp"
    if '/' not in text:
        raise ConfigValidationError(
            f"Static IP '{text}' must include CIDR notation (e.g. '{text}/24')"
        )
    try:
        ipaddress.IPv4Interface(text)
    except ValueError:
        raise ConfigValidationError(f"Invalid IPv4 address/CIDR: {text}") from None
    return text


def _gateway(value: Any) -> str:
    text = str(value).strip()
    try:
        ipaddress.IPv4Address(text)
    except ValueError:
        raise ConfigValidationError(f"Invalid gateway address: {text}") from None
    return text


def _ctid(value: Any) -> int:
    return _as_int("Container ID", MIN_CTID, MAX_CTID)(value)


# option name -> coercer; the set of keys is the set of recognized options
COERCERS: Dict[str, Callable[[Any], Any]] = {
    'ctid': _ctid,
    'hostname': _hostname,
    'description': _as_str,
    'storage': _as_str,
    'template_storage': _as_str,
    'disk_size': _disk_size,
    'memory': _as_int("Memory", 16),
    'swap': _as_int("Swap", 0),
    'cores': _as_int("Cores", 1, 8192),
    'unprivileged': _as_bool("unprivileged"),
    'nesting': _as_bool("nesting"),
    'fuse': _as_bool("fuse"),
    'keyctl': _as_bool("keyctl"),
    'password': str,
    'username': _username,
    'ip': _ip_cidr,
    'gateway': _gateway,
    'vlan': _as_int("VLAN tag", 1, 4094),
    'mtu': _as_int("MTU", 576, 65535),
    'bridge': _as_str,
    'firewall': _as_bool("firewall"),
    'os_type': _as_str,
    'os_version': _as_str,
    'arch': _as_str,
    'app': _as_str,
    'install_dir': _as_str,
    'debug': _as_bool("debug"),
    'force': _as_bool("force"),
    'interactive': _as_bool("interactive"),
    'resume': _as_bool("resume"),
    'rerun': _as_bool("rerun"),
}

OPTION_KEYS = frozenset(COERCERS)


def normalize_layer(layer: Optional[Dict[str, Any]], source: str = "options") -> Dict[str, Any]:
    """Validate and coerce one option layer.

    Hyphens in keys are treated as underscores. Blank values are dropped so
    they fall through to lower-priority layers.

    Raises:
        ConfigValidationError: Unknown key or invalid value
    """
    if not layer:
        return {}

    normalized: Dict[str, Any] = {}
    for raw_key, value in layer.items():
        key = str(raw_key).replace('-', '_')
        if key not in OPTION_KEYS:
            raise ConfigValidationError(f"Unknown option '{raw_key}' in {source}")
        if _blank(value):
            continue
        try:
            normalized[key] = COERCERS[key](value)
        except ConfigValidationError as e:
            raise ConfigValidationError(f"{e} (from {source})") from None
    return normalized


def merge_layers(layers: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge normalized layers, first layer wins."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if key not in merged and value is not None:
                merged[key] = value
    for key, value in BUILTIN_DEFAULTS.items():
        if key not in merged and value is not None:
            merged[key] = value
    return merged


def build_request(*layers: Dict[str, Any]) -> ProvisioningRequest:
    """Build an immutable ProvisioningRequest from option layers.

    Args:
        *layers: Option dicts, highest priority first. Each is normalized.

    Raises:
        ConfigValidationError: A layer holds an unknown key or invalid value
    """
    normalized = [normalize_layer(layer, source=f"option layer {i + 1}") for i, layer in enumerate(layers)]
    values = merge_layers(normalized)

    app = values['app']
    resources = ResourceSpec(
        storage=values['storage'],
        disk_size=values['disk_size'],
        memory=values['memory'],
        swap=values['swap'],
        cores=values['cores'],
        unprivileged=values['unprivileged'],
        nesting=values['nesting'],
        fuse=values['fuse'],
        keyctl=values['keyctl'],
    )
    network = NetworkSpec(
        bridge=values['bridge'],
        ip=None if values.get('ip') in (None, "dhcp") else values['ip'],
        gateway=values.get('gateway'),
        vlan=values.get('vlan'),
        mtu=values.get('mtu'),
        firewall=values['firewall'],
    )
    template = TemplateSpec(
        os_type=values['os_type'],
        os_version=values['os_version'],
        arch=values['arch'],
        storage=values['template_storage'],
    )
    app_settings = AppSettings(
        app=app,
        install_dir=values.get('install_dir') or f"/opt/{app}",
    )

    return ProvisioningRequest(
        ctid=values.get('ctid'),
        hostname=values.get('hostname') or _hostname(app),
        description=values['description'],
        resources=resources,
        network=network,
        template=template,
        app=app_settings,
        password=values.get('password'),
        username=values['username'],
        debug=values['debug'],
        force=values['force'],
        interactive=values['interactive'],
        resume=values['resume'],
        rerun=values['rerun'],
    )


def pinned_keys(flags: Optional[Dict[str, Any]]) -> frozenset:
    """Option names explicitly set on the command line."""
    return frozenset(normalize_layer(flags, source="command line"))
