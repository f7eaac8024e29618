"""Tests for OS template lookup and download."""
import pytest

from lxcdeploy.errors import TemplateFetchError
from lxcdeploy.models.request import TemplateSpec
from lxcdeploy.services.proxmox.containers import TemplateManager
from lxcdeploy.services.proxmox.containers.templates import matches_template


class TestMatchesTemplate:
    """Filename matching against os/version/arch."""

    @pytest.mark.parametrize("filename,expected", [
        ("debian-12-standard_12.7-1_amd64.tar.zst", True),
        ("debian-12-standard_12.2-1_amd64.tar.xz", True),
        ("debian-12-standard_12.7-1_arm64.tar.zst", False),
        ("debian-11-standard_11.7-1_amd64.tar.zst", False),
        ("debian-12-turnkey_12.7-1_amd64.tar.zst", False),
        ("debian-12-standard_12.7-1_amd64.iso", False),
    ])
    def test_matches(self, filename, expected):
        assert matches_template(filename, TemplateSpec()) is expected


class TestEnsureTemplate:
    """Template acquisition."""

    def test_local_template_used(self, proxmox):
        volid = TemplateManager().ensure_template(TemplateSpec(storage="local"))

        assert volid == "local:vztmpl/debian-12-standard_12.7-1_amd64.tar.zst"
        assert proxmox.commands("pveam", "download") == []

    def test_downloads_newest_available(self, proxmox):
        proxmox.local_templates = []
        proxmox.available_templates.append("debian-12-standard_12.10-1_amd64.tar.zst")

        volid = TemplateManager().ensure_template(TemplateSpec(storage="local"))

        assert volid == "local:vztmpl/debian-12-standard_12.10-1_amd64.tar.zst"
        assert proxmox.commands("pveam", "update") == [["pveam", "update"]]
        assert proxmox.commands("pveam", "download") == [
            ["pveam", "download", "local", "debian-12-standard_12.10-1_amd64.tar.zst"]
        ]

    def test_template_storage_distinct_from_rootfs(self, proxmox):
        TemplateManager().ensure_template(TemplateSpec(storage="nas"))
        assert proxmox.commands("pveam", "list") == [["pveam", "list", "nas"]]

    def test_download_retried(self, proxmox):
        proxmox.local_templates = []
        proxmox.download_failures = 2

        TemplateManager().ensure_template(TemplateSpec())

        assert len(proxmox.commands("pveam", "download")) == 3

    def test_download_gives_up(self, proxmox):
        proxmox.local_templates = []
        proxmox.download_failures = 5

        with pytest.raises(TemplateFetchError, match="Failed to download"):
            TemplateManager().ensure_template(TemplateSpec())
        assert len(proxmox.commands("pveam", "download")) == 3

    def test_no_matching_template(self, proxmox):
        proxmox.local_templates = []

        with pytest.raises(TemplateFetchError, match="debian-12-standard_"):
            TemplateManager().ensure_template(TemplateSpec(arch="arm64"))

    def test_mock_mode(self, proxmox):
        volid = TemplateManager(mock=True).ensure_template(TemplateSpec())

        assert volid == "local:vztmpl/debian-12-standard_12.7-1_amd64.tar.zst"
        assert proxmox.calls == []
