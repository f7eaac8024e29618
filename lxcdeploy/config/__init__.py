"""Option resolution: defaults, config files and layer merging."""
from lxcdeploy.config.loader import find_config_file, load_config_file
from lxcdeploy.config.options import OPTION_KEYS, build_request, normalize_layer
from lxcdeploy.config.resolver import OptionResolver

__all__ = [
    'OPTION_KEYS',
    'OptionResolver',
    'build_request',
    'find_config_file',
    'load_config_file',
    'normalize_layer',
]
