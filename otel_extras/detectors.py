"""Resource detectors for host, Kubernetes, operating system and process."""

from __future__ import annotations

import os
import platform
import subprocess
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from otel_extras.resource import Resource, ResourceDetector

__all__ = [
    "HOST_ID",
    "HOST_ARCH",
    "K8S_POD_NAME",
    "K8S_NAMESPACE_NAME",
    "OS_TYPE",
    "PROCESS_COMMAND_ARGS",
    "PROCESS_PID",
    "K8S_NAMESPACE_PATH",
    "host_id_detect",
    "HostResourceDetector",
    "K8sResourceDetector",
    "OsResourceDetector",
    "ProcessResourceDetector",
]

HOST_ID = "host.id"
HOST_ARCH = "host.arch"
K8S_POD_NAME = "k8s.pod.name"
K8S_NAMESPACE_NAME = "k8s.namespace.name"
OS_TYPE = "os.type"
PROCESS_COMMAND_ARGS = "process.command_args"
PROCESS_PID = "process.pid"

K8S_NAMESPACE_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

_MACHINE_ID_PATHS = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "x86": "x86",
    "armv7l": "arm",
    "armv6l": "arm",
    "arm": "arm",
    "ppc64le": "powerpc64",
    "ppc64": "powerpc64",
    "s390x": "s390x",
    "riscv64": "riscv64",
}

_OS_ALIASES = {
    "darwin": "macos",
    "win32": "windows",
    "cygwin": "windows",
    "linux": "linux",
}


def _normalize_arch(machine: str) -> str:
    """Map a machine name to the canonical architecture name."""
    lowered = machine.lower()
    return _ARCH_ALIASES.get(lowered, lowered)


def _normalize_os(name: str) -> str:
    """Map a platform identifier to the canonical operating-system name."""
    lowered = name.lower()
    if lowered in _OS_ALIASES:
        return _OS_ALIASES[lowered]
    for prefix in ("freebsd", "openbsd", "netbsd", "linux", "sunos", "aix"):
        if lowered.startswith(prefix):
            return "solaris" if prefix == "sunos" else prefix
    return lowered


def _read_first(paths: Iterable[Path]) -> str | None:
    """Return the stripped content of the first readable file, if any."""
    for path in paths:
        try:
            return path.read_text().strip()
        except OSError:
            continue
    return None


def _parse_ioreg(output: str) -> str | None:
    """Extract the IOPlatformUUID value from ioreg output."""
    line = next((line for line in output.splitlines() if "IOPlatformUUID" in line), None)
    if line is None or "=" not in line:
        return None
    _, value = line.split("=", 1)
    return value.strip().strip('"')


def host_id_detect() -> str | None:
    """Return a unique host identifier for the current machine, or ``None``."""
    if sys.platform.startswith("linux"):
        return _read_first(_MACHINE_ID_PATHS)
    if sys.platform == "darwin":
        try:
            completed = subprocess.run(
                ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
                capture_output=True,
                check=False,
            )
            output = completed.stdout.decode("utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        return _parse_ioreg(output)
    return None


class HostResourceDetector(ResourceDetector):
    """Detects the host identifier (``host.id``) and architecture (``host.arch``)."""

    def __init__(self, host_id_detect: Callable[[], str | None] = host_id_detect) -> None:
        self._host_id_detect = host_id_detect

    def detect(self) -> Resource:
        attributes: dict[str, object] = {}
        host_id = self._host_id_detect()
        if host_id is not None:
            attributes[HOST_ID] = host_id
        attributes[HOST_ARCH] = _normalize_arch(platform.machine())
        return Resource(attributes)


@dataclass(frozen=True)
class K8sResourceDetector(ResourceDetector):
    """Detects the pod name (``k8s.pod.name``) and namespace (``k8s.namespace.name``)."""

    namespace_path: Path = field(default=Path(K8S_NAMESPACE_PATH))

    def detect(self) -> Resource:
        attributes: dict[str, object] = {}
        pod_name = os.environ.get("HOSTNAME")
        if pod_name is not None:
            attributes[K8S_POD_NAME] = pod_name
        try:
            attributes[K8S_NAMESPACE_NAME] = Path(self.namespace_path).read_text()
        except OSError:
            pass
        return Resource(attributes)


class OsResourceDetector(ResourceDetector):
    """Detects the operating system type (``os.type``)."""

    def detect(self) -> Resource:
        return Resource({OS_TYPE: _normalize_os(sys.platform)})


class ProcessResourceDetector(ResourceDetector):
    """Detects the command line (``process.command_args``) and pid (``process.pid``)."""

    def detect(self) -> Resource:
        args = getattr(sys, "orig_argv", None) or sys.argv
        return Resource(
            {
                PROCESS_COMMAND_ARGS: tuple(str(arg) for arg in args),
                PROCESS_PID: os.getpid(),
            }
        )