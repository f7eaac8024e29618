"""Tests for container discovery."""
import subprocess

from lxcdeploy.services.proxmox.containers import ContainerDiscovery


class TestNextFreeVmid:
    """Id allocation scans from 100 upward."""

    def test_empty_host(self, proxmox):
        assert ContainerDiscovery().next_free_vmid() == 100

    def test_smallest_gap(self, proxmox):
        proxmox.containers = {100: "a", 101: "b", 103: "c"}
        assert ContainerDiscovery().next_free_vmid() == 102

    def test_vm_ids_count_as_used(self, proxmox):
        proxmox.containers = {100: "a"}
        proxmox.vm_ids = {101, 102}
        assert ContainerDiscovery().next_free_vmid() == 103

    def test_qm_missing(self, monkeypatch, proxmox):
        def run(cmd, **kwargs):
            if cmd[0] == "qm":
                raise FileNotFoundError("qm")
            return proxmox(cmd, **kwargs)

        monkeypatch.setattr(subprocess, "run", run)
        proxmox.containers = {100: "a"}
        assert ContainerDiscovery().next_free_vmid() == 101


class TestContainerQueries:
    """pct list / pct status / pvesm parsing."""

    def test_list_containers(self, proxmox):
        proxmox.containers = {100: "immich", 105: "umbrel"}
        containers = ContainerDiscovery().list_containers()

        assert containers == [
            {'vmid': 100, 'status': 'running', 'name': 'immich'},
            {'vmid': 105, 'status': 'running', 'name': 'umbrel'},
        ]

    def test_container_exists(self, proxmox):
        proxmox.containers = {150: "test"}
        discovery = ContainerDiscovery()

        assert discovery.container_exists(150) is True
        assert discovery.container_exists(151) is False

    def test_list_storages(self, proxmox):
        proxmox.storages = ["local-lvm", "tank"]
        assert ContainerDiscovery().list_storages() == ["local-lvm", "tank"]
        assert proxmox.commands("pvesm") == [["pvesm", "status", "--content", "rootdir"]]

    def test_mock_mode_runs_nothing(self, proxmox):
        discovery = ContainerDiscovery(mock=True)

        assert discovery.container_exists(100) is True
        assert discovery.next_free_vmid() == 101
        assert proxmox.calls == []


class TestIpv4Address:
    """Reading the DHCP lease from inside the container."""

    def test_parses_inet(self, proxmox):
        proxmox.addresses = ["192.168.1.77"]
        assert ContainerDiscovery().get_ipv4_address(150) == "192.168.1.77"
        assert proxmox.calls[-1] == ["pct", "exec", "150", "--", "ip", "-4", "-o", "addr", "show", "eth0"]

    def test_no_address(self, proxmox):
        assert ContainerDiscovery().get_ipv4_address(150) is None

    def test_timeout(self, monkeypatch):
        def run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        monkeypatch.setattr("lxcdeploy.services.proxmox.containers.discovery.subprocess.run", run)
        assert ContainerDiscovery().get_ipv4_address(150) is None


class TestAllocationSafety:
    """A failed or stale listing never hands out a taken id."""

    def test_failed_listing_confirms_candidates(self, proxmox):
        proxmox.list_error = "ipcc_send_rec[1] failed: Connection refused"
        proxmox.containers = {100: "someone-elses-db", 101: "wiki"}

        assert ContainerDiscovery().next_free_vmid() == 102
        assert ["pct", "status", "100"] in proxmox.calls
