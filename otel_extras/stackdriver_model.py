"""Data model for exporting spans to Google Cloud Trace and Cloud Logging."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Optional, Union

from otel_extras.resource import Resource
from otel_extras.spancontext import INVALID_SPAN_ID, SpanContext

__all__ = [
    "MAX_ATTRIBUTES_PER_SPAN",
    "MAX_ATTRIBUTE_KEY_BYTES",
    "KEY_MAP",
    "AttributeValue",
    "attribute_value",
    "Attributes",
    "LogSeverity",
    "SpanKind",
    "StatusCode",
    "SpanStatus",
    "SpanEvent",
    "SpanLink",
    "SpanData",
    "span_status",
    "transform_links",
    "GlobalResource",
    "GenericNode",
    "GenericTask",
    "CloudRunJob",
    "CloudRunRevision",
    "MonitoredResource",
    "LogContext",
]

MAX_ATTRIBUTES_PER_SPAN = 32
MAX_ATTRIBUTE_KEY_BYTES = 128

_GRPC_OK = 0
_GRPC_UNKNOWN = 2

# Conventional OpenTelemetry attribute keys and their Cloud Trace label names.
KEY_MAP: Mapping[str, str] = {
    "http.path": "/http/path",
    "http.host": "/http/host",
    "http.request.header.host": "/http/host",
    "http.method": "/http/method",
    "http.request.method": "/http/method",
    "http.target": "/http/path",
    "url.path": "/http/path",
    "http.url": "/http/url",
    "url.full": "/http/url",
    "http.user_agent": "/http/user_agent",
    "user_agent.original": "/http/user_agent",
    "http.status_code": "/http/status_code",
    "http.response.status_code": "/http/status_code",
    "k8s.cluster.name": "g.co/r/k8s_container/cluster_name",
    "k8s.namespace.name": "g.co/r/k8s_container/namespace",
    "k8s.pod.name": "g.co/r/k8s_container/pod_name",
    "k8s.container.name": "g.co/r/k8s_container/container_name",
    "http.route": "/http/route",
}


@dataclass(frozen=True)
class AttributeValue:
    """A Cloud Trace attribute value: exactly one of the fields is set."""

    string_value: Optional[str] = None
    int_value: Optional[int] = None
    bool_value: Optional[bool] = None


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return f'"{value}"'
    return ""


def attribute_value(value: object) -> AttributeValue:
    """Convert an attribute value to its Cloud Trace representation.

    Booleans and integers keep their type; floats, strings and arrays are
    rendered as strings; anything else becomes an empty string.
    """
    if isinstance(value, bool):
        return AttributeValue(bool_value=value)
    if isinstance(value, int):
        return AttributeValue(int_value=value)
    if isinstance(value, float):
        return AttributeValue(string_value=_format_float(value))
    if isinstance(value, str):
        return AttributeValue(string_value=value)
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        rendered = ",".join(_format_scalar(item) for item in value)
        return AttributeValue(string_value=f"[{rendered}]")
    return AttributeValue(string_value="")


@dataclass
class Attributes:
    """Span attributes limited to :data:`MAX_ATTRIBUTES_PER_SPAN` entries."""

    attribute_map: dict[str, AttributeValue] = field(default_factory=dict)
    dropped_attributes_count: int = 0

    @classmethod
    def build(
        cls,
        attributes: Mapping[str, object] | Iterable[tuple[str, object]],
        resource: Resource | None = None,
    ) -> Attributes:
        """Combine resource and span attributes; resource attributes come first."""
        new = cls()
        if resource is not None:
            for key, value in resource:
                new.push(key, value)
        items = attributes.items() if isinstance(attributes, Mapping) else attributes
        for key, value in items:
            new.push(key, value)
        return new

    def push(self, key: str, value: object) -> None:
        """Add one attribute, counting it as dropped if it does not fit."""
        if len(self.attribute_map) >= MAX_ATTRIBUTES_PER_SPAN:
            self.dropped_attributes_count += 1
            return
        if len(key.encode("utf-8")) > MAX_ATTRIBUTE_KEY_BYTES:
            self.dropped_attributes_count += 1
            return
        self.attribute_map[KEY_MAP.get(key, key)] = attribute_value(value)


class LogSeverity(enum.IntEnum):
    """Cloud Logging severities."""

    DEFAULT = 0
    DEBUG = 100
    INFO = 200
    WARNING = 400
    ERROR = 500

    @classmethod
    def from_level(cls, level: str) -> LogSeverity:
        """Map a log level name to a severity; unknown names give ``DEFAULT``."""
        return {
            "DEBUG": cls.DEBUG,
            "TRACE": cls.DEBUG,
            "INFO": cls.INFO,
            "WARN": cls.WARNING,
            "ERROR": cls.ERROR,
        }.get(level, cls.DEFAULT)


class SpanKind(enum.IntEnum):
    """Span kinds, valued as Cloud Trace encodes them."""

    INTERNAL = 1
    SERVER = 2
    CLIENT = 3
    PRODUCER = 4
    CONSUMER = 5


class StatusCode(enum.Enum):
    """The status of a finished span."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class SpanStatus:
    """A span status with an optional error description."""

    code: StatusCode = StatusCode.UNSET
    description: str = ""


@dataclass(frozen=True)
class SpanEvent:
    """A timestamped event recorded on a span."""

    name: str
    timestamp: datetime
    attributes: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class SpanLink:
    """A link from one span to another span's context."""

    span_context: SpanContext
    attributes: tuple[tuple[str, Any], ...] = ()


@dataclass
class SpanData:
    """A finished span ready for export."""

    name: str
    span_context: SpanContext
    start_time: datetime
    end_time: datetime
    parent_span_id: int = INVALID_SPAN_ID
    span_kind: SpanKind = SpanKind.INTERNAL
    attributes: tuple[tuple[str, Any], ...] = ()
    events: tuple[SpanEvent, ...] = ()
    links: tuple[SpanLink, ...] = ()
    dropped_links_count: int = 0
    status: SpanStatus = field(default_factory=SpanStatus)


def span_status(status: SpanStatus) -> dict[str, Any] | None:
    """Return the RPC status for a span status, or ``None`` when unset."""
    if status.code is StatusCode.OK:
        return {"code": _GRPC_OK, "message": "", "details": []}
    if status.code is StatusCode.ERROR:
        return {"code": _GRPC_UNKNOWN, "message": status.description, "details": []}
    return None


def transform_links(
    links: Sequence[SpanLink], dropped_count: int = 0
) -> dict[str, Any] | None:
    """Return the Cloud Trace links structure, or ``None`` when there are none."""
    if not links:
        return None
    return {
        "dropped_links_count": dropped_count,
        "link": [
            {
                "trace_id": link.span_context.trace_id_hex(),
                "span_id": link.span_context.span_id_hex(),
            }
            for link in links
        ],
    }


def _labels(project_id: str, **optional: str | None) -> dict[str, str]:
    labels = {"project_id": project_id}
    labels.update({key: value for key, value in optional.items() if value is not None})
    return labels


@dataclass(frozen=True)
class GlobalResource:
    """The ``global`` monitored resource."""

    resource_type: ClassVar[str] = "global"
    project_id: str

    def labels(self) -> dict[str, str]:
        return _labels(self.project_id)


@dataclass(frozen=True)
class GenericNode:
    """The ``generic_node`` monitored resource."""

    resource_type: ClassVar[str] = "generic_node"
    project_id: str
    location: str | None = None
    namespace: str | None = None
    node_id: str | None = None

    def labels(self) -> dict[str, str]:
        return _labels(
            self.project_id,
            location=self.location,
            namespace=self.namespace,
            node_id=self.node_id,
        )


@dataclass(frozen=True)
class GenericTask:
    """The ``generic_task`` monitored resource."""

    resource_type: ClassVar[str] = "generic_task"
    project_id: str
    location: str | None = None
    namespace: str | None = None
    job: str | None = None
    task_id: str | None = None

    def labels(self) -> dict[str, str]:
        return _labels(
            self.project_id,
            location=self.location,
            namespace=self.namespace,
            job=self.job,
            task_id=self.task_id,
        )


@dataclass(frozen=True)
class CloudRunJob:
    """The ``cloud_run_job`` monitored resource."""

    resource_type: ClassVar[str] = "cloud_run_job"
    project_id: str
    job_name: str | None = None
    location: str | None = None

    def labels(self) -> dict[str, str]:
        return _labels(self.project_id, job_name=self.job_name, location=self.location)


@dataclass(frozen=True)
class CloudRunRevision:
    """The ``cloud_run_revision`` monitored resource."""

    resource_type: ClassVar[str] = "cloud_run_revision"
    project_id: str
    service_name: str | None = None
    revision_name: str | None = None
    location: str | None = None
    configuration_name: str | None = None

    def labels(self) -> dict[str, str]:
        return _labels(
            self.project_id,
            service_name=self.service_name,
            revision_name=self.revision_name,
            location=self.location,
            configuration_name=self.configuration_name,
        )


MonitoredResource = Union[
    GlobalResource, GenericNode, GenericTask, CloudRunJob, CloudRunRevision
]


@dataclass(frozen=True)
class LogContext:
    """Where span events are written as log entries."""

    log_id: str
    resource: MonitoredResource

    def monitored_resource(self) -> dict[str, Any]:
        """The monitored resource as a ``type``/``labels`` structure."""
        return {"type": self.resource.resource_type, "labels": self.resource.labels()}