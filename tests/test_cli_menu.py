"""Tests for the interactive whiptail menu."""
from typing import List

import pytest

from lxcdeploy.cli_menu import configure_settings, main_menu
from lxcdeploy.config.resolver import OptionResolver
from lxcdeploy.errors import ConfigValidationError, ConflictError
from lxcdeploy.services.dialog import DialogCancelled
from lxcdeploy.services.proxmox.containers import ContainerDiscovery


class ScriptedDialog:
    """Dialog double answering from a script of (kind, value) pairs."""

    def __init__(self, script: List[tuple]):
        self.script = list(script)
        self.shown: List[str] = []
        self.asked: List[str] = []

    def _next(self, kind, text):
        self.asked.append(text)
        expected, value = self.script.pop(0)
        assert expected == kind, f"expected {expected} dialog, got {kind}: {text}"
        if value is DialogCancelled:
            raise DialogCancelled(kind)
        return value

    def inputbox(self, text, default=""):
        return self._next("input", text)

    def passwordbox(self, text):
        return self._next("password", text)

    def menu(self, text, choices, height="20", width="78"):
        return self._next("menu", text)

    def yesno(self, text, default_yes=False):
        return self._next("yesno", text)

    def msgbox(self, text, large=False):
        self.shown.append(text)


FULL_CONFIGURATION = [
    ("input", "160"),          # ctid
    ("input", "photos"),       # hostname
    ("menu", "local-zfs"),     # storage
    ("input", "64G"),          # disk
    ("input", "8192"),         # memory
    ("input", "4"),            # cores
    ("yesno", True),           # unprivileged
    ("input", "vmbr1"),        # bridge
    ("yesno", True),           # static ip
    ("input", "10.0.0.5/24"),
    ("input", "10.0.0.1"),
    ("yesno", True),           # vlan
    ("input", "20"),
    ("yesno", True),           # custom password
    ("password", "correct-horse"),
    ("password", "correct-horse"),
]


@pytest.fixture
def discovery():
    return ContainerDiscovery(mock=True)


class TestConfigureSettings:
    """Prompt sequence and validation."""

    def test_full_configuration(self, make_request, discovery):
        dialog = ScriptedDialog(FULL_CONFIGURATION)

        answers = configure_settings(dialog, make_request(), discovery)

        assert answers == {
            'ctid': '160', 'hostname': 'photos', 'storage': 'local-zfs', 'disk_size': '64G',
            'memory': '8192', 'cores': '4', 'unprivileged': True, 'bridge': 'vmbr1',
            'ip': '10.0.0.5/24', 'gateway': '10.0.0.1', 'vlan': '20', 'password': 'correct-horse',
        }
        assert dialog.script == []

    def test_pinned_fields_not_prompted(self, make_request, discovery):
        dialog = ScriptedDialog([
            ("menu", "local-lvm"),
            ("input", "32G"),
            ("input", "4096"),
            ("input", "2"),
            ("yesno", True),
            ("input", "vmbr0"),
            ("yesno", False),      # dhcp
            ("yesno", False),      # no vlan
            ("yesno", False),      # generated password
        ])

        answers = configure_settings(
            dialog, make_request(), discovery, pinned=frozenset({'ctid', 'hostname'})
        )

        assert 'ctid' not in answers
        assert 'hostname' not in answers
        assert answers['ip'] == 'dhcp'
        assert "Enter Hostname:" not in dialog.asked

    def test_password_mismatch(self, make_request, discovery):
        script = FULL_CONFIGURATION[:-2] + [("password", "one"), ("password", "two")]
        dialog = ScriptedDialog(script)

        with pytest.raises(ConfigValidationError, match="Passwords do not match"):
            configure_settings(dialog, make_request(), discovery)
        assert "Passwords do not match! Please try again." in dialog.shown

    def test_cancel(self, make_request, discovery):
        dialog = ScriptedDialog([("input", DialogCancelled)])

        with pytest.raises(ConfigValidationError, match="cancelled"):
            configure_settings(dialog, make_request(), discovery)


class TestMainMenu:
    """Menu loop."""

    def test_exit(self, discovery):
        dialog = ScriptedDialog([("menu", "5")])
        result = main_menu(dialog, OptionResolver(), discovery, run_install=None)

        assert result is None

    def test_escape_exits(self, discovery):
        dialog = ScriptedDialog([("menu", DialogCancelled)])
        assert main_menu(dialog, OptionResolver(), discovery, run_install=None) is None

    def test_configure_then_install(self, discovery):
        installs = []

        def run_install(request, recipe, confirm):
            installs.append(request)
            return FakeResult(request)

        dialog = ScriptedDialog(
            [("menu", "2")] + FULL_CONFIGURATION + [
                ("menu", "1"),
                ("yesno", True),   # proceed
            ]
        )

        result = main_menu(dialog, OptionResolver(), discovery, run_install)

        request = installs[0]
        assert request.ctid == 160
        assert request.hostname == "photos"
        assert request.resources.memory == 8192
        assert request.network.descriptor() == (
            "name=eth0,bridge=vmbr1,firewall=0,ip=10.0.0.5/24,gw=10.0.0.1,tag=20"
        )
        assert request.password == "correct-horse"
        assert result.request is request
        assert "Immich LXC Container ID: 160" in dialog.shown[-1]

    def test_invalid_answers_rejected(self, discovery):
        script = [("menu", "2")] + FULL_CONFIGURATION
        script[5] = ("input", "lots")  # memory
        dialog = ScriptedDialog(script + [("menu", "3"), ("menu", "5")])

        main_menu(dialog, OptionResolver(), discovery, run_install=None)

        assert any("Memory must be an integer" in text for text in dialog.shown)
        # settings review still shows the recipe default
        assert "4096MB" in dialog.shown[-1]

    def test_flags_win_over_answers(self, discovery):
        installs = []
        dialog = ScriptedDialog([("menu", "1"), ("yesno", True)])

        main_menu(
            dialog, OptionResolver(), discovery,
            lambda request, recipe, confirm: installs.append(request) or FakeResult(request),
            flags={'hostname': 'pinned'},
        )

        assert installs[0].hostname == 'pinned'

    def test_conflict_returns_to_menu(self, discovery):
        def run_install(request, recipe, confirm):
            raise ConflictError("Container ID 100 already exists; not overwritten.")

        dialog = ScriptedDialog([("menu", "1"), ("yesno", True), ("menu", "5")])

        assert main_menu(dialog, OptionResolver(), discovery, run_install) is None
        assert "Container ID 100 already exists; not overwritten." in dialog.shown

    def test_declined_install(self, discovery):
        dialog = ScriptedDialog([("menu", "1"), ("yesno", False), ("menu", "4"), ("menu", "5")])

        assert main_menu(dialog, OptionResolver(), discovery, run_install=None) is None
        assert dialog.shown[-1].startswith("Usage: lxcdeploy install")


class FakeReport:
    def __init__(self, request):
        self.ctid = request.ctid
        self.hostname = request.hostname
        self.username = request.username
        self.password = None
        self.url = "http://10.0.0.5:2283"
        self.address = "10.0.0.5"
        self.notes = []


class FakeResult:
    def __init__(self, request):
        self.request = request
        self.report = FakeReport(request)


class TestPinnedStaticIp:
    """A static IP given on the command line still gets a gateway prompt."""

    def test_gateway_prompted(self, make_request, discovery):
        dialog = ScriptedDialog([
            ("menu", "local-lvm"),
            ("input", "32G"),
            ("input", "4096"),
            ("input", "2"),
            ("yesno", True),
            ("input", "vmbr0"),
            ("input", "10.0.0.1"),  # gateway
            ("yesno", False),
            ("yesno", False),
        ])

        answers = configure_settings(
            dialog, make_request(ip="10.0.0.5/24"), discovery,
            pinned=frozenset({'ctid', 'hostname', 'ip'}),
        )

        assert answers['gateway'] == "10.0.0.1"
        assert 'ip' not in answers
        assert "Use Static IP Address?" not in dialog.asked

    def test_dhcp_pinned_skips_gateway(self, make_request, discovery):
        dialog = ScriptedDialog([
            ("menu", "local-lvm"),
            ("input", "32G"),
            ("input", "4096"),
            ("input", "2"),
            ("yesno", True),
            ("input", "vmbr0"),
            ("yesno", False),
            ("yesno", False),
        ])

        answers = configure_settings(
            dialog, make_request(), discovery, pinned=frozenset({'ctid', 'hostname', 'ip'}),
        )

        assert 'gateway' not in answers
        assert "Enter Gateway IP:" not in dialog.asked
