import os
import platform

from otel_extras.detectors import (
    HOST_ARCH,
    HOST_ID,
    K8S_NAMESPACE_NAME,
    K8S_POD_NAME,
    OS_TYPE,
    PROCESS_COMMAND_ARGS,
    PROCESS_PID,
    HostResourceDetector,
    K8sResourceDetector,
    OsResourceDetector,
    ProcessResourceDetector,
    _normalize_arch,
    _normalize_os,
    _parse_ioreg,
    _read_first,
)


def test_host_detector_with_id():
    resource = HostResourceDetector(lambda: "made-up-host-id").detect()
    assert len(resource) == 2
    assert resource.get(HOST_ID) == "made-up-host-id"
    assert resource.get(HOST_ARCH) == _normalize_arch(platform.machine())


def test_host_detector_without_id():
    resource = HostResourceDetector(lambda: None).detect()
    assert len(resource) == 1
    assert resource.get(HOST_ID) is None
    assert resource.get(HOST_ARCH) == _normalize_arch(platform.machine())


def test_arch_values():
    assert _normalize_arch("x86_64") == "x86_64"
    assert _normalize_arch("AMD64") == "x86_64"
    assert _normalize_arch("aarch64") == "aarch64"
    assert _normalize_arch("arm64") == "aarch64"


def test_read_first_falls_back(tmp_path):
    missing = tmp_path / "machine-id"
    fallback = tmp_path / "dbus-machine-id"
    fallback.write_text("abc123\n")
    assert _read_first([missing, fallback]) == "abc123"


def test_read_first_none_when_missing(tmp_path):
    assert _read_first([tmp_path / "nope"]) is None


def test_parse_ioreg():
    output = '  "IOPlatformSerialNumber" = "PLACEHOLDER"\n  "IOPlatformUUID" = "0000-FAKE-UUID"\n'
    assert _parse_ioreg(output) == "0000-FAKE-UUID"
    assert _parse_ioreg("nothing here") is None


def test_k8s_with_env_vars(monkeypatch, tmp_path):
    monkeypatch.setenv("HOSTNAME", "test-pod")
    resource = K8sResourceDetector(namespace_path=tmp_path / "namespace").detect()
    assert len(resource) == 1
    assert resource.get(K8S_POD_NAME) == "test-pod"


def test_k8s_with_missing_env_vars(monkeypatch, tmp_path):
    monkeypatch.delenv("HOSTNAME", raising=False)
    resource = K8sResourceDetector(namespace_path=tmp_path / "namespace").detect()
    assert len(resource) == 0


def test_k8s_reads_namespace(monkeypatch, tmp_path):
    monkeypatch.delenv("HOSTNAME", raising=False)
    path = tmp_path / "namespace"
    path.write_text("default")
    resource = K8sResourceDetector(namespace_path=path).detect()
    assert resource.get(K8S_NAMESPACE_NAME) == "default"
    assert len(resource) == 1


def test_os_detector():
    resource = OsResourceDetector().detect()
    assert len(resource) == 1
    assert resource.get(OS_TYPE) == _normalize_os(os.sys.platform)


def test_os_names():
    assert _normalize_os("linux") == "linux"
    assert _normalize_os("darwin") == "macos"
    assert _normalize_os("win32") == "windows"
    assert _normalize_os("freebsd14") == "freebsd"


def test_process_detector():
    resource = ProcessResourceDetector().detect()
    assert len(resource) == 2
    assert resource.get(PROCESS_PID) == os.getpid()
    args = resource.get(PROCESS_COMMAND_ARGS)
    assert isinstance(args, tuple) and len(args) >= 1
    assert all(isinstance(arg, str) for arg in args)