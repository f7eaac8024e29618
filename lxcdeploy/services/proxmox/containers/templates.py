"""Template management for Proxmox LXC containers."""
import re
import subprocess
from typing import List, Optional

from lxcdeploy.core.config import get_settings
from lxcdeploy.core.logger import get_logger
from lxcdeploy.core.retry import retry
from lxcdeploy.errors import TemplateFetchError
from lxcdeploy.models.request import TemplateSpec

logger = get_logger(__name__)

TEMPLATE_EXTENSIONS = ('.tar.zst', '.tar.xz', '.tar.gz')


def _version_key(filename: str):
    """Natural sort key so 12.10 sorts after 12.9."""
    return [
        (int(part), '') if part.isdigit() else (-1, part)
        for part in re.split(r'(\d+)', filename)
    ]


def matches_template(filename: str, spec: TemplateSpec) -> bool:
    """True if ``filename`` is a standard template for the spec's os/version/arch triple."""
    return (
        filename.startswith(spec.prefix)
        and f"_{spec.arch}." in filename
        and filename.endswith(TEMPLATE_EXTENSIONS)
    )


class TemplateManager:
    """Manages Proxmox LXC templates (lookup, download, ensure availability)."""

    def __init__(self, mock: bool = False):
        self.mock = mock

    def list_local_templates(self, storage: str) -> List[str]:
        """Template filenames present on ``storage``.

        Parses `pveam list` lines like:
            local:vztmpl/debian-12-standard_12.7-1_amd64.tar.zst  120.65MB
        """
        if self.mock:
            return ['debian-12-standard_12.7-1_amd64.tar.zst']

        try:
            result = subprocess.run(
                ['pveam', 'list', storage],
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to list templates on {storage}: {e}")
            return []

        templates = []
        for line in result.stdout.splitlines():
            parts = line.split()
            if parts and 'vztmpl/' in parts[0]:
                templates.append(parts[0].split('/')[-1])
        return templates

    def list_available_templates(self) -> List[str]:
        """Template filenames offered by the Proxmox repository (system section)."""
        if self.mock:
            return [
                'debian-11-standard_11.7-1_amd64.tar.zst',
                'debian-12-standard_12.7-1_amd64.tar.zst',
                'ubuntu-24.04-standard_24.04-2_amd64.tar.zst',
            ]

        try:
            subprocess.run(['pveam', 'update'], capture_output=True, check=True)
        except subprocess.CalledProcessError:
            logger.warning("Failed to update template list, using cached index")

        try:
            result = subprocess.run(
                ['pveam', 'available', '--section', 'system'],
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to get available templates: {e}")
            return []

        # Lines look like: "system          debian-12-standard_12.7-1_amd64.tar.zst"
        templates = []
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                templates.append(parts[1])
        return templates

    def find_local_template(self, spec: TemplateSpec) -> Optional[str]:
        """Newest matching template already on the template storage."""
        candidates = [t for t in self.list_local_templates(spec.storage) if matches_template(t, spec)]
        if not candidates:
            return None
        return sorted(candidates, key=_version_key)[-1]

    def find_available_template(self, spec: TemplateSpec) -> Optional[str]:
        """Newest matching template in the repository index."""
        candidates = [t for t in self.list_available_templates() if matches_template(t, spec)]
        if not candidates:
            return None
        return sorted(candidates, key=_version_key)[-1]

    @retry(max_attempts=3, delay=5, exceptions=(subprocess.CalledProcessError,))
    def download_template(self, storage: str, filename: str) -> bool:
        """Download ``filename`` to ``storage``, retrying on failure.

        Note:
            Retries up to 3 times with exponential backoff on network failures
        """
        if self.mock:
            logger.info(f"MOCK: Would download template {filename} to {storage}")
            return True

        logger.info(f"Downloading template {filename} to {storage}...")

        try:
            subprocess.run(
                ['pveam', 'download', storage, filename],
                capture_output=True,
                text=True,
                check=True,
                timeout=get_settings().template_download_timeout
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"✗ Failed to download template {filename}: {e}")
            if e.stderr:
                logger.error(f"Error output: {e.stderr.strip()}")
            raise
        except subprocess.TimeoutExpired:
            logger.error(f"✗ Template download timed out after "
                         f"{get_settings().template_download_timeout}s")
            raise subprocess.CalledProcessError(1, ['pveam', 'download', storage, filename])

        logger.info(f"✓ Downloaded template {filename}")
        return True

    def ensure_template(self, spec: TemplateSpec) -> str:
        """Make sure a template for ``spec`` is on its storage.

        Returns:
            Volume id for pct create, e.g. 'local:vztmpl/debian-12-standard_12.7-1_amd64.tar.zst'

        Raises:
            TemplateFetchError: No matching template exists or the download failed
        """
        local = self.find_local_template(spec)
        if local:
            logger.info(f"LXC template {local} already available on {spec.storage}")
            return f"{spec.storage}:vztmpl/{local}"

        label = f"{spec.os_type} {spec.os_version} ({spec.arch})"
        logger.info(f"Template for {label} not found on {spec.storage}, downloading...")

        filename = self.find_available_template(spec)
        if not filename:
            raise TemplateFetchError(
                f"No '{spec.prefix}*_{spec.arch}' template found in the Proxmox repository"
            )

        try:
            self.download_template(spec.storage, filename)
        except subprocess.CalledProcessError as e:
            raise TemplateFetchError(
                f"Failed to download LXC template {filename} to {spec.storage}. "
                f"Check network access and that the storage accepts templates."
            ) from e

        return f"{spec.storage}:vztmpl/{filename}"
