import socket
import sys

import pytest

from ncps.telemetry import _container_id, new_resource


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("OTEL_SERVICE_NAME", raising=False)
    monkeypatch.delenv("OTEL_RESOURCE_ATTRIBUTES", raising=False)


def test_new_resource_service_fields():
    attrs = new_resource("ncps", "0.0.1")
    assert attrs["service.name"] == "ncps"
    assert attrs["service.version"] == "0.0.1"
    assert attrs["telemetry.sdk.language"] == "python"
    assert attrs["host.name"] == socket.gethostname()
    assert attrs["process.command_args"] == list(sys.argv)


def test_env_service_name_overrides(monkeypatch):
    monkeypatch.setenv("OTEL_SERVICE_NAME", "other")
    attrs = new_resource("ncps", "0.0.1")
    assert attrs["service.name"] == "other"


def test_env_resource_attributes(monkeypatch):
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "team=cache, region=eu%20west")
    attrs = new_resource("ncps", "0.0.1")
    assert attrs["team"] == "cache"
    assert attrs["region"] == "eu west"


def test_env_malformed_attributes(monkeypatch):
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "novalue")
    with pytest.raises(ValueError, match="OTEL_RESOURCE_ATTRIBUTES"):
        new_resource("ncps", "0.0.1")


def test_container_id_from_cgroup(tmp_path):
    cid = "a" * 64
    cgroup = tmp_path / "cgroup"
    cgroup.write_text(f"12:cpu:/docker/{cid}\n")
    assert _container_id(cgroup) == cid


def test_container_id_missing_file(tmp_path):
    assert _container_id(tmp_path / "absent") == ""