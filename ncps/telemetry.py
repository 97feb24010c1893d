"""Resource attributes describing this service for telemetry exporters."""

from __future__ import annotations

import getpass
import os
import platform
import re
import socket
import sys
from pathlib import Path
from typing import Any
from urllib.parse import unquote

_CGROUP_CONTAINER_ID = re.compile(r"^.*/(?:.*[-:])?([0-9a-f]+)(?:\.|\s*$)")


def _process_attributes() -> dict[str, Any]:
    attrs: dict[str, Any] = {
        "process.pid": os.getpid(),
        "process.executable.name": os.path.basename(sys.executable),
        "process.executable.path": sys.executable,
        "process.command_args": list(sys.argv),
        "process.runtime.name": platform.python_implementation().lower(),
        "process.runtime.version": platform.python_version(),
        "process.runtime.description": sys.version.replace("\n", " "),
    }
    try:
        attrs["process.owner"] = getpass.getuser()
    except (KeyError, OSError):
        pass
    return attrs


def _attributes_from_env() -> dict[str, Any]:
    attrs: dict[str, Any] = {}
    raw = os.environ.get("OTEL_RESOURCE_ATTRIBUTES", "").strip()
    invalid: list[str] = []
    if raw:
        for pair in raw.split(","):
            key, sep, value = pair.partition("=")
            key = key.strip()
            if not sep or not key:
                invalid.append(pair)
                continue
            attrs[key] = unquote(value.strip())
    if service_name := os.environ.get("OTEL_SERVICE_NAME", "").strip():
        attrs["service.name"] = service_name
    if invalid:
        raise ValueError(
            "invalid OTEL_RESOURCE_ATTRIBUTES entries: " + ", ".join(repr(p) for p in invalid)
        )
    return attrs


def _container_id(cgroup_file: Path = Path("/proc/self/cgroup")) -> str:
    try:
        lines = cgroup_file.read_text().splitlines()
    except OSError:
        return ""
    for line in lines:
        match = _CGROUP_CONTAINER_ID.match(line.strip())
        if match:
            return match.group(1)
    return ""


def new_resource(service_name: str, service_version: str) -> dict[str, Any]:
    """Return the resource attributes for the service.

    Later sources override earlier ones: the given name and version, then
    process and runtime details, the OTEL_RESOURCE_ATTRIBUTES and
    OTEL_SERVICE_NAME environment variables, SDK, OS, container and host.
    Raises ValueError when OTEL_RESOURCE_ATTRIBUTES is malformed.
    """
    attrs: dict[str, Any] = {
        "service.name": service_name,
        "service.version": service_version,
    }
    attrs["process.command_args"] = list(sys.argv)
    attrs["process.runtime.version"] = platform.python_version()
    attrs.update(_attributes_from_env())
    attrs.update(
        {
            "telemetry.sdk.name": "ncps",
            "telemetry.sdk.language": "python",
        }
    )
    attrs.update(_process_attributes())
    attrs["os.type"] = platform.system().lower()
    attrs["os.description"] = platform.platform()
    if container_id := _container_id():
        attrs["container.id"] = container_id
    attrs["host.name"] = socket.gethostname()
    return attrs