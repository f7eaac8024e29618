"""Shared test fixtures for lxcdeploy tests."""
import subprocess
from typing import Dict, List, Optional, Set

import pytest

from lxcdeploy.config.options import build_request
from lxcdeploy.core.config import RuntimeSettings, set_settings
from lxcdeploy.core.recipes import RecipeLoader
from lxcdeploy.workflow.installer import SCRIPT_PREAMBLE

MARKER_PREFIX = "/var/lib/lxcdeploy/"


@pytest.fixture(autouse=True)
def runtime_settings(tmp_path):
    """Fast, isolated runtime settings for every test."""
    settings = RuntimeSettings(
        boot_timeout=30,
        lock_file=str(tmp_path / "provision.lock"),
    )
    set_settings(settings)
    yield settings
    set_settings(None)


@pytest.fixture
def recipes():
    return RecipeLoader()


@pytest.fixture
def immich_recipe(recipes):
    return recipes.load_recipe("immich")


@pytest.fixture
def umbrel_recipe(recipes):
    return recipes.load_recipe("umbrel")


@pytest.fixture
def make_request(recipes):
    """Build a request the way the resolver does, with immich defaults."""

    def factory(**options):
        app = options.get("app", "immich")
        recipe = recipes.load_recipe(app)
        options.setdefault("interactive", False)
        return build_request(options, recipe.defaults)

    return factory


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 1000.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr("lxcdeploy.core.retry.time.monotonic", fake.monotonic)
    monkeypatch.setattr("lxcdeploy.core.retry.time.sleep", fake.sleep)
    return fake


class FakeProxmox:
    """In-memory Proxmox VE host answering pct/pveam/qm/pvesm invocations.

    Install steps are recognized by the `set -eo pipefail` preamble; any
    other `bash -c` script is a probe or marker operation.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.containers: Dict[int, str] = {}
        self.vm_ids: Set[int] = set()
        self.storages = ["local-lvm"]
        self.local_templates = ["debian-12-standard_12.7-1_amd64.tar.zst"]
        self.available_templates = [
            "debian-11-standard_11.7-1_amd64.tar.zst",
            "debian-12-standard_12.2-1_amd64.tar.zst",
            "debian-12-standard_12.7-1_amd64.tar.zst",
        ]
        self.list_error: Optional[str] = None
        self.create_error: Optional[str] = None
        self.destroy_error: Optional[str] = None
        self.download_failures = 0
        self.ready_after = 0
        self.addresses: List[Optional[str]] = []
        self.markers: Dict[int, str] = {}
        self.satisfied_probes: Set[str] = set()
        self.failing_steps: Dict[str, int] = {}
        self.steps_run: List[str] = []

    # helpers for assertions
    def commands(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if c[:len(prefix)] == list(prefix)]

    def _result(self, cmd, returncode=0, stdout="", stderr="", check=False):
        if check and returncode != 0:
            raise subprocess.CalledProcessError(returncode, cmd, output=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        check = kwargs.get("check", False)
        tool, args = cmd[0], cmd[1:]

        if tool == "pct":
            return self._pct(cmd, args, check)
        if tool == "qm":
            lines = ["VMID NAME STATUS MEM(MB) BOOTDISK(GB) PID"]
            lines += [f"{vmid} vm{vmid} stopped 2048 32.00 0" for vmid in sorted(self.vm_ids)]
            return self._result(cmd, stdout="\n".join(lines) + "\n")
        if tool == "pvesm":
            lines = ["Name Type Status Total Used Available %"]
            lines += [f"{s} lvmthin active 100 10 90 10.00%" for s in self.storages]
            return self._result(cmd, stdout="\n".join(lines) + "\n")
        if tool == "pveam":
            return self._pveam(cmd, args, check)
        if tool == "pveversion":
            return self._result(cmd, stdout="pve-manager/8.2.4/faa83925c9641325 (running kernel: 6.8.8-2-pve)\n")
        if tool == "dpkg":
            return self._result(cmd, stdout="amd64\n")
        raise AssertionError(f"Unexpected command: {cmd}")

    def _pveam(self, cmd, args, check):
        if args[0] == "list":
            lines = ["NAME SIZE"]
            lines += [f"{args[1]}:vztmpl/{t} 120.65MB" for t in self.local_templates]
            return self._result(cmd, stdout="\n".join(lines) + "\n")
        if args[0] == "update":
            return self._result(cmd, stdout="update successful\n")
        if args[0] == "available":
            lines = [f"system          {t}" for t in self.available_templates]
            return self._result(cmd, stdout="\n".join(lines) + "\n")
        if args[0] == "download":
            if self.download_failures > 0:
                self.download_failures -= 1
                return self._result(cmd, 1, stderr="download failed", check=check)
            self.local_templates.append(args[2])
            return self._result(cmd, stdout="download finished\n")
        raise AssertionError(f"Unexpected pveam call: {cmd}")

    def _pct(self, cmd, args, check):
        action = args[0]
        if action == "list":
            if self.list_error:
                return self._result(cmd, 255, stderr=self.list_error, check=check)
            lines = ["VMID       Status     Lock         Name"]
            lines += [f"{vmid}        running                 {name}" for vmid, name in sorted(self.containers.items())]
            return self._result(cmd, stdout="\n".join(lines) + "\n")
        if action == "status":
            vmid = int(args[1])
            if vmid in self.containers:
                return self._result(cmd, stdout="status: running\n")
            return self._result(cmd, 2, stderr=f"Configuration file 'nodes/pve/lxc/{vmid}.conf' does not exist", check=check)
        if action == "create":
            if self.create_error:
                return self._result(cmd, 255, stderr=self.create_error, check=check)
            vmid = int(args[1])
            self.containers[vmid] = cmd[cmd.index("--hostname") + 1]
            return self._result(cmd)
        if action == "destroy":
            if self.destroy_error:
                return self._result(cmd, 255, stderr=self.destroy_error, check=check)
            self.containers.pop(int(args[1]), None)
            self.markers.pop(int(args[1]), None)
            return self._result(cmd)
        if action == "start":
            return self._result(cmd)
        if action == "exec":
            return self._exec(cmd, int(args[1]), args[3:], check)
        raise AssertionError(f"Unexpected pct call: {cmd}")

    def _exec(self, cmd, vmid, inner, check):
        if inner[:2] == ["ip", "-4"]:
            address = self.addresses.pop(0) if self.addresses else None
            if not address:
                return self._result(cmd, stdout="")
            return self._result(cmd, stdout=f"2: eth0    inet {address}/24 brd 192.168.1.255 scope global eth0\n")

        assert inner[:2] == ["bash", "-c"], inner
        script = inner[2]

        if script == "true":
            if self.ready_after > 0:
                self.ready_after -= 1
                return self._result(cmd, 255, stderr="container not running")
            return self._result(cmd)

        if script.startswith("cat " + MARKER_PREFIX):
            return self._result(cmd, stdout=self.markers.get(vmid, "") + "\n" if vmid in self.markers else "")

        if script.startswith("mkdir -p " + MARKER_PREFIX.rstrip("/")):
            self.markers[vmid] = script.split("echo ", 1)[1].split(" >", 1)[0]
            return self._result(cmd)

        if script.startswith(SCRIPT_PREAMBLE):
            body = script[len(SCRIPT_PREAMBLE):]
            self.steps_run.append(body)
            for needle, rc in self.failing_steps.items():
                if needle in body:
                    return self._result(cmd, rc, stderr="E: step failed")
            return self._result(cmd, stdout="ok\n")

        return self._result(cmd, 0 if script in self.satisfied_probes else 1)


@pytest.fixture
def proxmox(monkeypatch):
    """Route every subprocess.run call to a fake Proxmox host."""
    fake = FakeProxmox()
    monkeypatch.setattr(subprocess, "run", fake)
    monkeypatch.setattr("lxcdeploy.core.retry.time.sleep", lambda seconds: None)
    return fake
